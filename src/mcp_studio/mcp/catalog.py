"""
MCP tool catalog

Queries sessions for their tools, prompts and resources and maps them into
provider-agnostic descriptors. Listing is fail-soft: one broken server yields
an empty list instead of aborting a multi-server listing.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import mcp.types as types
from loguru import logger

from .models import (
    PromptDescriptor,
    ResourceDescriptor,
    ServerConfig,
    ToolDescriptor,
    composite_tool_id,
)
from .registry import SessionRegistry


class ToolCatalog:
    """Tool, prompt and resource listings of the configured servers"""

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry

    async def list_tools(self, server: ServerConfig) -> List[ToolDescriptor]:
        """Tools of one server, minus the ones disabled in its configuration"""
        try:
            session = await self._registry.acquire(server)
            tools = await session.list_tools()

            disabled = set(server.disabled_tools)
            descriptors = [
                ToolDescriptor(
                    composite_id=composite_tool_id(server.name, tool.name),
                    name=tool.name,
                    description=tool.description or "",
                    input_schema=dict(tool.inputSchema or {}),
                    server_id=server.id,
                    server_name=server.name,
                )
                for tool in tools
                if tool.name not in disabled
            ]
            logger.debug(f"🔧 {server.name}: {len(descriptors)} tools")
            return descriptors

        except Exception as e:
            logger.error(f"❌ Failed to list tools for {server.name}: {e}")
            return []

    async def list_prompts(self, server: ServerConfig) -> List[PromptDescriptor]:
        try:
            session = await self._registry.acquire(server)
            prompts = await session.list_prompts()
            return [
                PromptDescriptor(
                    composite_id=composite_tool_id(server.name, prompt.name),
                    name=prompt.name,
                    description=prompt.description,
                    arguments=[
                        argument.model_dump(exclude_none=True)
                        for argument in (prompt.arguments or [])
                    ],
                    server_id=server.id,
                    server_name=server.name,
                )
                for prompt in prompts
            ]
        except Exception as e:
            logger.error(f"❌ Failed to list prompts for {server.name}: {e}")
            return []

    async def list_resources(self, server: ServerConfig) -> List[ResourceDescriptor]:
        try:
            session = await self._registry.acquire(server)
            resources = await session.list_resources()
            return [
                ResourceDescriptor(
                    uri=str(resource.uri),
                    name=resource.name,
                    description=resource.description,
                    mime_type=resource.mimeType,
                    server_id=server.id,
                    server_name=server.name,
                )
                for resource in resources
            ]
        except Exception as e:
            logger.error(f"❌ Failed to list resources for {server.name}: {e}")
            return []

    async def get_prompt(
        self,
        server: ServerConfig,
        name: str,
        arguments: Optional[Dict[str, str]] = None,
    ) -> types.GetPromptResult:
        session = await self._registry.acquire(server)
        return await session.get_prompt(name, arguments)

    async def read_resource(
        self, server: ServerConfig, uri: str
    ) -> List[Dict[str, Any]]:
        """Resource contents tagged with the server they came from"""
        session = await self._registry.acquire(server)
        result = await session.read_resource(uri)
        return [
            {
                **content.model_dump(mode="json", by_alias=True, exclude_none=True),
                "serverId": server.id,
                "serverName": server.name,
            }
            for content in result.contents
        ]

    async def collect(self, servers: Sequence[ServerConfig]) -> List[ToolDescriptor]:
        """Flattened tools of every server, in server order"""
        per_server = await asyncio.gather(
            *(self.list_tools(server) for server in servers)
        )
        catalog = [tool for tools in per_server for tool in tools]
        logger.info(f"🔧 Tool catalog: {len(catalog)} tools from {len(servers)} servers")
        return catalog
