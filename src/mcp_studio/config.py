"""
Application configuration

Provides the top level pydantic configuration model, its JSON loader and
the loguru sink setup.
"""

import datetime
import sys
from pathlib import Path
from typing import Dict, Final, Optional

from loguru import logger
from pydantic import BaseModel, Field

from .mcp.config import McpSettings


###########################################################################################################################################
class ProviderDefaults(BaseModel):
    """Per-vendor defaults used when a ProviderConfig leaves a value unset"""

    base_url: str
    max_retries: int = 3
    timeout: float = 30.0


###########################################################################################################################################
DEFAULT_PROVIDER_DEFAULTS: Final[Dict[str, ProviderDefaults]] = {
    "openai": ProviderDefaults(base_url="https://api.openai.com/v1"),
    "anthropic": ProviderDefaults(base_url="https://api.anthropic.com"),
    "gemini": ProviderDefaults(
        base_url="https://generativelanguage.googleapis.com/v1"
    ),
    "deepseek": ProviderDefaults(base_url="https://api.deepseek.com/v1"),
    "qwen": ProviderDefaults(
        base_url="https://dashscope.aliyuncs.com/compatible-mode/v1"
    ),
    "ollama": ProviderDefaults(base_url="http://localhost:11434", timeout=120.0),
}


###########################################################################################################################################
class AiConfig(BaseModel):
    """LLM related settings"""

    max_tokens: int = 8192
    max_history_messages: int = 50
    max_history_chars: int = 80000
    default_temperature: float = 0.7
    providers: Dict[str, ProviderDefaults] = Field(
        default_factory=lambda: {
            key: value.model_copy() for key, value in DEFAULT_PROVIDER_DEFAULTS.items()
        }
    )

    def provider_defaults(self, provider_id: str) -> ProviderDefaults:
        """Defaults for a vendor; unknown vendors fall back to the openai entry"""
        if provider_id in self.providers:
            return self.providers[provider_id]
        return self.providers.get("openai", DEFAULT_PROVIDER_DEFAULTS["openai"])


###########################################################################################################################################
class AppConfig(BaseModel):
    """Top level configuration model"""

    ai: AiConfig = Field(default_factory=AiConfig)
    mcp: McpSettings = Field(default_factory=McpSettings)
    log_level: str = "DEBUG"
    logs_dir: Path = Path("logs")


###########################################################################################################################################
def load_app_config(path: Optional[Path] = None) -> AppConfig:
    """
    Load the application configuration

    Args:
        path: JSON file path; defaults are used when it is None or missing

    Returns:
        AppConfig: the parsed configuration
    """
    if path is None or not path.exists():
        if path is not None:
            logger.warning(f"Config file not found, using defaults: {path}")
        return AppConfig()

    config = AppConfig.model_validate_json(path.read_text(encoding="utf-8"))
    logger.info(f"Loaded app config: {path}")
    return config


###########################################################################################################################################
def setup_logger(level: str = "DEBUG", logs_dir: Optional[Path] = Path("logs")) -> None:
    """Replace the default loguru sink with a stderr sink and a per-run log file"""
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    )

    if logs_dir is None:
        logger.info(f"Logger configured: level={level}")
        return

    logs_dir.mkdir(parents=True, exist_ok=True)
    log_start_time = datetime.datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    log_file_path = logs_dir / f"{log_start_time}.log"
    logger.add(log_file_path, level=level)

    logger.info(f"Logger configured: level={level}, file={log_file_path}")
