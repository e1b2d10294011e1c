"""
MCP session

A live connection to one MCP server, built on the official `mcp` SDK:
- stdio: spawns the configured command and speaks MCP over its standard streams
- sse: opens a Server-Sent Events stream
- streamableHttp: opens a Streamable HTTP connection

The SDK transports are anyio context managers that must be exited by the task
that entered them, so every session runs inside its own owner task and the
public methods only talk to the `ClientSession` that task publishes.
"""

import asyncio
import os
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

import mcp.types as types
from loguru import logger
from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from ..errors import McpConnectionError
from .config import McpSettings
from .models import ConnectionKind, ServerConfig


class Session(Protocol):
    """What the registry, catalog and dispatcher need from a live connection"""

    config: ServerConfig

    async def ping(self) -> None: ...

    async def list_tools(self) -> List[types.Tool]: ...

    async def list_prompts(self) -> List[types.Prompt]: ...

    async def get_prompt(
        self, name: str, arguments: Optional[Dict[str, str]] = None
    ) -> types.GetPromptResult: ...

    async def list_resources(self) -> List[types.Resource]: ...

    async def read_resource(self, uri: str) -> types.ReadResourceResult: ...

    async def call_tool(
        self, name: str, arguments: Dict[str, Any]
    ) -> types.CallToolResult: ...

    async def close(self) -> None: ...


SessionFactory = Callable[[ServerConfig], Awaitable[Session]]


############################################################################################################
def describe_error(error: BaseException) -> str:
    """Readable message for an error, unwrapping anyio exception groups"""
    nested = getattr(error, "exceptions", None)
    if nested:
        return describe_error(nested[0])
    return str(error) or error.__class__.__name__


############################################################################################################
@asynccontextmanager
async def _open_streams(config: ServerConfig) -> AsyncIterator[Tuple[Any, Any]]:
    if config.connection_kind == ConnectionKind.STDIO:
        assert config.command is not None
        params = StdioServerParameters(
            command=config.command,
            args=list(config.args),
            env={**os.environ, **config.env},
        )
        async with stdio_client(params) as (read_stream, write_stream):
            yield read_stream, write_stream

    elif config.connection_kind == ConnectionKind.SSE:
        assert config.base_url is not None
        async with sse_client(config.base_url, headers=config.headers or None) as (
            read_stream,
            write_stream,
        ):
            yield read_stream, write_stream

    else:
        assert config.base_url is not None
        async with streamablehttp_client(
            config.base_url, headers=config.headers or None
        ) as (read_stream, write_stream, _):
            yield read_stream, write_stream


############################################################################################################
class McpSession:
    """SDK-backed session owned by a background task"""

    def __init__(self, config: ServerConfig, settings: McpSettings) -> None:
        self.config = config
        self._settings = settings
        self._session: Optional[ClientSession] = None
        self._closing = asyncio.Event()
        self._runner: Optional["asyncio.Task[None]"] = None

    @property
    def is_open(self) -> bool:
        return (
            self._session is not None
            and self._runner is not None
            and not self._runner.done()
        )

    async def open(self) -> None:
        """Start the owner task and wait until the MCP handshake completes"""
        ready: "asyncio.Future[None]" = asyncio.get_running_loop().create_future()
        self._runner = asyncio.create_task(
            self._run(ready), name=f"mcp-session-{self.config.id}"
        )

        try:
            await asyncio.wait_for(
                asyncio.shield(ready), timeout=self._settings.connection_timeout
            )
        except McpConnectionError:
            await self.close()
            raise
        except asyncio.TimeoutError as e:
            await self.close()
            raise McpConnectionError(
                f"Timed out after {self._settings.connection_timeout}s connecting to MCP server '{self.config.name}'"
            ) from e
        except asyncio.CancelledError:
            await self.close()
            raise

    async def _run(self, ready: "asyncio.Future[None]") -> None:
        try:
            async with AsyncExitStack() as stack:
                read_stream, write_stream = await stack.enter_async_context(
                    _open_streams(self.config)
                )
                session = await stack.enter_async_context(
                    ClientSession(
                        read_stream,
                        write_stream,
                        client_info=types.Implementation(
                            name=self._settings.client_name,
                            version=self._settings.client_version,
                        ),
                    )
                )
                await session.initialize()

                self._session = session
                ready.set_result(None)
                logger.success(
                    f"✅ Connected to MCP server: {self.config.name} ({self.config.connection_kind.value})"
                )

                await self._closing.wait()

        except Exception as e:
            if not ready.done():
                ready.set_exception(
                    McpConnectionError(
                        f"Failed to connect to MCP server '{self.config.name}': {describe_error(e)}"
                    )
                )
            else:
                logger.warning(
                    f"MCP session for '{self.config.name}' ended with error: {describe_error(e)}"
                )
        finally:
            self._session = None
            if not ready.done():
                ready.cancel()

    def _require(self) -> ClientSession:
        if self._session is None:
            raise McpConnectionError(
                f"MCP session for '{self.config.name}' is not connected"
            )
        return self._session

    async def ping(self) -> None:
        await self._require().send_ping()

    async def list_tools(self) -> List[types.Tool]:
        session = self._require()
        tools: List[types.Tool] = []
        cursor: Optional[str] = None
        while True:
            result = await session.list_tools(cursor=cursor)
            tools.extend(result.tools)
            cursor = result.nextCursor
            if not cursor:
                return tools

    async def list_prompts(self) -> List[types.Prompt]:
        session = self._require()
        prompts: List[types.Prompt] = []
        cursor: Optional[str] = None
        while True:
            result = await session.list_prompts(cursor=cursor)
            prompts.extend(result.prompts)
            cursor = result.nextCursor
            if not cursor:
                return prompts

    async def get_prompt(
        self, name: str, arguments: Optional[Dict[str, str]] = None
    ) -> types.GetPromptResult:
        return await self._require().get_prompt(name, arguments)

    async def list_resources(self) -> List[types.Resource]:
        session = self._require()
        resources: List[types.Resource] = []
        cursor: Optional[str] = None
        while True:
            result = await session.list_resources(cursor=cursor)
            resources.extend(result.resources)
            cursor = result.nextCursor
            if not cursor:
                return resources

    async def read_resource(self, uri: str) -> types.ReadResourceResult:
        return await self._require().read_resource(uri)  # type: ignore[arg-type]

    async def call_tool(
        self, name: str, arguments: Dict[str, Any]
    ) -> types.CallToolResult:
        return await self._require().call_tool(name, arguments)

    async def close(self) -> None:
        """Signal the owner task to leave its contexts and wait for it"""
        runner = self._runner
        if runner is None:
            return

        self._closing.set()
        try:
            await asyncio.wait_for(
                asyncio.shield(runner), timeout=self._settings.close_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"MCP session for '{self.config.name}' did not close within {self._settings.close_timeout}s, cancelling"
            )
            runner.cancel()
            await asyncio.gather(runner, return_exceptions=True)

        logger.info(f"🔌 MCP session closed: {self.config.name}")


############################################################################################################
async def open_session(config: ServerConfig, settings: McpSettings) -> McpSession:
    """Default session factory used by the registry"""
    session = McpSession(config, settings)
    await session.open()
    return session
