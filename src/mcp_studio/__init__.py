"""MCP Studio

Tool-orchestration core of an MCP chat client: live sessions to MCP servers,
a provider-agnostic tool catalog, tool dispatch with timeouts and
cancellation, and LLM provider adapters driven by a LangGraph turn workflow.
"""

__version__ = "0.1.0"

from .config import AppConfig, load_app_config, setup_logger
from .errors import (
    McpConnectionError,
    McpStudioError,
    ProviderError,
    ToolCallParseError,
    ToolExecutionError,
    ToolNotFoundError,
    UnknownProviderError,
)
from .mcp import McpService, ServerConfig, load_server_configs
from .orchestrator import AIService, TurnResult
from .providers import ProviderConfig, ProviderFactory

__all__ = [
    "AIService",
    "McpService",
    "TurnResult",
    "ServerConfig",
    "ProviderConfig",
    "ProviderFactory",
    "AppConfig",
    "load_app_config",
    "load_server_configs",
    "setup_logger",
    "McpStudioError",
    "McpConnectionError",
    "ToolNotFoundError",
    "ToolExecutionError",
    "ToolCallParseError",
    "ProviderError",
    "UnknownProviderError",
]
