"""
MCP service

Application-facing MCP operations built from the session registry, tool
catalog and call dispatcher. Constructed once by the application entry point
and shared by the orchestrator.
"""

from functools import partial
from typing import Any, Dict, List, Optional

import mcp.types as types
from loguru import logger

from .catalog import ToolCatalog
from .config import McpSettings
from .dispatcher import CallDispatcher
from .metrics import ToolMetricsCollector
from .models import (
    PromptDescriptor,
    ResourceDescriptor,
    ServerConfig,
    ToolDescriptor,
    ToolInvocationRequest,
    ToolInvocationResult,
)
from .registry import SessionRegistry
from .session import SessionFactory, open_session


class McpService:
    """MCP operations exposed to the application"""

    def __init__(
        self,
        settings: Optional[McpSettings] = None,
        session_factory: Optional[SessionFactory] = None,
        metrics: Optional[ToolMetricsCollector] = None,
    ) -> None:
        self.settings = settings if settings is not None else McpSettings()
        factory = (
            session_factory
            if session_factory is not None
            else partial(open_session, settings=self.settings)
        )
        self.registry = SessionRegistry(factory, ping_timeout=self.settings.ping_timeout)
        self.catalog = ToolCatalog(self.registry)
        self.dispatcher = CallDispatcher(
            self.registry,
            metrics=metrics,
            default_timeout=self.settings.tool_call_timeout,
        )

    async def list_tools(self, server: ServerConfig) -> List[ToolDescriptor]:
        return await self.catalog.list_tools(server)

    async def list_prompts(self, server: ServerConfig) -> List[PromptDescriptor]:
        return await self.catalog.list_prompts(server)

    async def get_prompt(
        self,
        server: ServerConfig,
        name: str,
        args: Optional[Dict[str, str]] = None,
    ) -> types.GetPromptResult:
        return await self.catalog.get_prompt(server, name, args)

    async def list_resources(self, server: ServerConfig) -> List[ResourceDescriptor]:
        return await self.catalog.list_resources(server)

    async def get_resource(self, server: ServerConfig, uri: str) -> Dict[str, Any]:
        return {"contents": await self.catalog.read_resource(server, uri)}

    async def call_tool(
        self,
        server: ServerConfig,
        name: str,
        args: Dict[str, Any],
        call_id: Optional[str] = None,
    ) -> ToolInvocationResult:
        request = ToolInvocationRequest(
            server_id=server.id, tool_name=name, arguments=args
        )
        if call_id:
            request = request.model_copy(update={"call_id": call_id})
        return await self.dispatcher.invoke(server, request)

    def abort_tool(self, call_id: str) -> bool:
        return self.dispatcher.cancel(call_id)

    async def check_connectivity(self, server: ServerConfig) -> bool:
        try:
            session = await self.registry.acquire(server)
            await session.list_tools()
            return True
        except Exception as e:
            logger.error(f"❌ Connectivity check failed for {server.name}: {e}")
            return False

    async def stop_server(self, server: ServerConfig) -> None:
        await self.registry.release(server)

    async def remove_server(self, server: ServerConfig) -> None:
        await self.stop_server(server)

    async def restart_server(self, server: ServerConfig) -> None:
        await self.stop_server(server)
        await self.registry.acquire(server)
        logger.info(f"🔄 Restarted MCP server: {server.name}")

    async def cleanup(self) -> None:
        await self.registry.close_all()
