"""
MCP call dispatcher

Executes single tool invocations against the right session with a per-server
deadline and cooperative cancellation. Every outcome, including timeouts,
cancellation and transport errors, comes back as a ToolInvocationResult.
"""

import asyncio
import time
from typing import Dict, List, Optional

import mcp.types as types
from loguru import logger

from ..errors import ToolExecutionError
from .cancellation import CancellationToken
from .metrics import ToolExecutionMetric, ToolMetricsCollector
from .models import ServerConfig, ToolInvocationRequest, ToolInvocationResult
from .registry import SessionRegistry
from .session import describe_error


class CallDispatcher:
    """Executes tool calls with a deadline and cooperative cancellation"""

    def __init__(
        self,
        registry: SessionRegistry,
        metrics: Optional[ToolMetricsCollector] = None,
        default_timeout: float = 60.0,
    ) -> None:
        self._registry = registry
        self._metrics = metrics if metrics is not None else ToolMetricsCollector()
        self._default_timeout = default_timeout
        self._active_calls: Dict[str, CancellationToken] = {}

    @property
    def metrics(self) -> ToolMetricsCollector:
        return self._metrics

    @property
    def active_call_ids(self) -> List[str]:
        return list(self._active_calls.keys())

    async def invoke(
        self,
        server: ServerConfig,
        request: ToolInvocationRequest,
        token: Optional[CancellationToken] = None,
    ) -> ToolInvocationResult:
        """
        Execute one tool call

        Args:
            server: configuration of the server named by `request.server_id`
            request: the invocation
            token: cancellation token; a fresh one is created when omitted

        Returns:
            ToolInvocationResult: success or failure of the call
        """
        if request.server_id != server.id:
            raise ValueError(
                f"Request targets server '{request.server_id}' but '{server.id}' was given"
            )

        if request.call_id in self._active_calls:
            logger.warning(f"Tool call id already in flight: {request.call_id}")

        token = token if token is not None else CancellationToken()
        self._active_calls[request.call_id] = token
        timeout = server.timeout_seconds or self._default_timeout
        start_time = time.time()

        try:
            result = await self._execute(server, request, token, timeout)
            content = [
                block.model_dump(mode="json", by_alias=True, exclude_none=True)
                for block in result.content
            ]
            invocation = ToolInvocationResult(
                call_id=request.call_id,
                content=content,
                is_error=bool(result.isError),
                execution_time=time.time() - start_time,
            )
            if invocation.is_error:
                invocation = invocation.model_copy(
                    update={"error": invocation.text or "Tool reported an error"}
                )

        except Exception as e:
            error_msg = describe_error(e)
            invocation = ToolInvocationResult(
                call_id=request.call_id,
                content=[{"type": "text", "text": error_msg}],
                is_error=True,
                error=error_msg,
                execution_time=time.time() - start_time,
            )

        finally:
            if self._active_calls.get(request.call_id) is token:
                del self._active_calls[request.call_id]

        self._metrics.track(
            ToolExecutionMetric(
                tool_name=request.tool_name,
                server_id=server.id,
                duration=invocation.execution_time,
                success=not invocation.is_error,
            )
        )

        if invocation.is_error:
            logger.error(
                f"❌ Tool failed: {request.tool_name}@{server.name} | {invocation.error} | {invocation.execution_time:.2f}s"
            )
        else:
            logger.info(
                f"🔧 Tool succeeded: {request.tool_name}@{server.name} | args: {request.arguments} | {invocation.execution_time:.2f}s"
            )
        return invocation

    async def _execute(
        self,
        server: ServerConfig,
        request: ToolInvocationRequest,
        token: CancellationToken,
        timeout: float,
    ) -> types.CallToolResult:
        if token.cancelled:
            raise ToolExecutionError(f"Tool call '{request.call_id}' was cancelled")

        call_task = asyncio.create_task(self._call(server, request))
        cancel_task = asyncio.create_task(token.wait())
        try:
            done, _ = await asyncio.wait(
                {call_task, cancel_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_task.cancel()
            if not call_task.done():
                call_task.cancel()
                await asyncio.gather(call_task, return_exceptions=True)

        if call_task in done:
            return call_task.result()

        if token.cancelled:
            raise ToolExecutionError(f"Tool call '{request.call_id}' was cancelled")

        raise ToolExecutionError(
            f"Tool '{request.tool_name}' timed out after {timeout}s"
        )

    async def _call(
        self, server: ServerConfig, request: ToolInvocationRequest
    ) -> types.CallToolResult:
        session = await self._registry.acquire(server)
        return await session.call_tool(request.tool_name, request.arguments)

    def cancel(self, call_id: str) -> bool:
        """Cancel an in-flight call; False for unknown or finished ids"""
        token = self._active_calls.pop(call_id, None)
        if token is None:
            return False

        token.cancel()
        logger.info(f"🛑 Tool call cancelled: {call_id}")
        return True
