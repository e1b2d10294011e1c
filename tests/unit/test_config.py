"""Configuration loading unit tests."""

import json
from pathlib import Path

from loguru import logger

from mcp_studio.config import (
    AppConfig,
    ProviderDefaults,
    load_app_config,
    setup_logger,
)
from mcp_studio.mcp import ConnectionKind, load_server_configs


class TestAppConfig:

    def test_defaults(self) -> None:
        config = AppConfig()

        assert config.ai.max_tokens == 8192
        assert config.ai.max_history_messages == 50
        assert config.ai.max_history_chars == 80000
        assert config.ai.default_temperature == 0.7
        assert config.mcp.tool_call_timeout == 60.0
        assert config.ai.provider_defaults("ollama").timeout == 120.0
        assert config.ai.provider_defaults("openai").max_retries == 3

    def test_unknown_provider_falls_back_to_openai_defaults(self) -> None:
        config = AppConfig()
        assert (
            config.ai.provider_defaults("mystery").base_url
            == "https://api.openai.com/v1"
        )

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        assert load_app_config(tmp_path / "missing.json") == AppConfig()
        assert load_app_config(None) == AppConfig()

    def test_load_from_json(self, tmp_path: Path) -> None:
        path = tmp_path / "app.json"
        path.write_text(
            json.dumps(
                {
                    "ai": {
                        "max_tokens": 2048,
                        "providers": {
                            "ollama": {"base_url": "http://gpu-box:11434", "timeout": 300}
                        },
                    },
                    "mcp": {"connection_timeout": 15},
                    "log_level": "INFO",
                }
            ),
            encoding="utf-8",
        )

        config = load_app_config(path)

        assert config.ai.max_tokens == 2048
        assert config.ai.provider_defaults("ollama") == ProviderDefaults(
            base_url="http://gpu-box:11434", timeout=300
        )
        assert config.mcp.connection_timeout == 15
        assert config.log_level == "INFO"


class TestServerConfigFile:

    def test_load_server_configs(self, tmp_path: Path) -> None:
        path = tmp_path / "servers.json"
        path.write_text(
            json.dumps(
                {
                    "servers": [
                        {
                            "id": "fs",
                            "name": "Files",
                            "command": "npx",
                            "args": ["-y", "@modelcontextprotocol/server-filesystem", "."],
                        },
                        {
                            "id": "weather",
                            "name": "Weather",
                            "connectionKind": "sse",
                            "baseUrl": "http://localhost:9000/sse",
                            "isActive": False,
                        },
                    ]
                }
            ),
            encoding="utf-8",
        )

        servers = load_server_configs(path)

        assert [server.id for server in servers] == ["fs", "weather"]
        assert servers[1].connection_kind == ConnectionKind.SSE
        assert servers[1].is_active is False


class TestSetupLogger:

    def test_writes_log_file(self, tmp_path: Path) -> None:
        logs_dir = tmp_path / "logs"
        setup_logger("DEBUG", logs_dir)
        logger.info("configured")
        logger.remove()

        log_files = list(logs_dir.glob("*.log"))
        assert len(log_files) == 1
        assert "configured" in log_files[0].read_text(encoding="utf-8")
