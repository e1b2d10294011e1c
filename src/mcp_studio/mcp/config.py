"""
MCP configuration module

Client-side MCP settings and the loader for the server list file.
"""

import json
from pathlib import Path
from typing import List

from loguru import logger
from pydantic import BaseModel

from .models import ServerConfig


class McpSettings(BaseModel):
    """MCP client settings"""

    connection_timeout: float = 60.0
    close_timeout: float = 5.0
    tool_call_timeout: float = 60.0
    ping_timeout: float = 5.0
    client_name: str = "MCP Studio"
    client_version: str = "0.1.0"


###########################################################################################
def load_server_configs(path: Path) -> List[ServerConfig]:
    """
    Load the MCP server list

    Args:
        path: JSON file of the form `{"servers": [{...}, ...]}`

    Returns:
        List[ServerConfig]: validated server configurations
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    servers = [ServerConfig.model_validate(item) for item in data.get("servers", [])]
    logger.info(f"Loaded {len(servers)} MCP server configs from {path}")
    return servers
