"""
Response normalizer

Executes the embedded tool calls found in model text and substitutes each
span in place with a `<tool_result>` or `<tool_error>` marker. Spans are
handled strictly in textual order; failures are contained per span.
"""

import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from pydantic import BaseModel, Field

from ..errors import ToolCallParseError, ToolNotFoundError
from .dispatcher import CallDispatcher
from .models import ServerConfig, ToolCallRecord, ToolDescriptor, ToolInvocationRequest
from .parser import (
    TOOL_SPAN_PATTERN,
    format_tool_error,
    format_tool_result,
    parse_code_arguments,
    parse_code_calls,
    parse_tool_call_body,
)


class NormalizedResponse(BaseModel):
    """Model text after tool execution, with the records of every executed span"""

    processed_response: str
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)


class ResponseNormalizer:
    """Executes embedded tool calls in model text and substitutes their results"""

    def __init__(self, dispatcher: CallDispatcher) -> None:
        self._dispatcher = dispatcher

    async def process(
        self,
        response: str,
        servers: Sequence[ServerConfig],
        catalog: Sequence[ToolDescriptor],
    ) -> NormalizedResponse:
        """
        Run every embedded tool call in `response`

        Args:
            response: raw model output
            servers: servers relevant to this turn
            catalog: tools of those servers

        Returns:
            NormalizedResponse: substituted text and one record per executed
                or attempted call
        """
        pieces: List[str] = []
        records: List[ToolCallRecord] = []
        last_end = 0

        for match in TOOL_SPAN_PATTERN.finditer(response):
            pieces.append(response[last_end : match.start()])

            call_body = match.group("call")
            if call_body is not None:
                replacement, record = await self._process_tool_call(
                    call_body, servers, catalog
                )
            else:
                replacement, record = await self._process_tool_code(
                    match.group("code"), servers, catalog
                )

            pieces.append(replacement)
            if record is not None:
                records.append(record)
            last_end = match.end()

        pieces.append(response[last_end:])

        if records:
            failed = sum(1 for record in records if record.error)
            logger.info(
                f"✅ Embedded tool calls processed: {len(records) - failed}/{len(records)} succeeded"
            )
        return NormalizedResponse(processed_response="".join(pieces), tool_calls=records)

    async def _process_tool_call(
        self,
        body: str,
        servers: Sequence[ServerConfig],
        catalog: Sequence[ToolDescriptor],
    ) -> Tuple[str, Optional[ToolCallRecord]]:
        try:
            data = parse_tool_call_body(body)
        except ToolCallParseError as e:
            logger.warning(f"⚠️ Unparseable tool call: {e}")
            return format_tool_error(str(e)), None

        server_id = data.get("serverId")
        name = data.get("name")
        args = data.get("args") or {}
        record_id = f"tool-{uuid.uuid4().hex}"

        try:
            if not isinstance(name, str) or not name:
                raise ToolCallParseError("Tool call is missing 'name'")
            if not isinstance(args, dict):
                raise ToolCallParseError("Tool call 'args' must be a JSON object")
            server = self._resolve_server(server_id, name, servers, catalog)

        except (ToolCallParseError, ToolNotFoundError) as e:
            logger.warning(f"⚠️ Tool call rejected: {e}")
            record = ToolCallRecord(
                id=record_id,
                server_id=str(server_id) if server_id is not None else None,
                name=str(name or ""),
                args=args if isinstance(args, dict) else {},
                error=str(e),
            )
            return format_tool_error(str(e)), record

        return await self._invoke(record_id, server, name, args)

    async def _process_tool_code(
        self,
        body: str,
        servers: Sequence[ServerConfig],
        catalog: Sequence[ToolDescriptor],
    ) -> Tuple[str, Optional[ToolCallRecord]]:
        servers_by_id = {server.id: server for server in servers}

        for function_name, argument_string in parse_code_calls(body):
            tool = next(
                (
                    tool
                    for tool in catalog
                    if tool.name == function_name and tool.server_id in servers_by_id
                ),
                None,
            )
            if tool is None:
                continue

            args = parse_code_arguments(argument_string, tool.input_schema)
            logger.debug(f"🔍 Code call resolved: {function_name}({args}) on {tool.server_name}")
            return await self._invoke(
                f"tool-code-{uuid.uuid4().hex}",
                servers_by_id[tool.server_id],
                function_name,
                args,
            )

        logger.warning(f"⚠️ No tool matched code call: {body.strip()[:100]}")
        return format_tool_error("Tool not found in any active server"), None

    def _resolve_server(
        self,
        server_id: Any,
        name: str,
        servers: Sequence[ServerConfig],
        catalog: Sequence[ToolDescriptor],
    ) -> ServerConfig:
        server = next((server for server in servers if server.id == server_id), None)
        if server is None:
            raise ToolNotFoundError(f"Server '{server_id}' not found")

        server_tools = {tool.name for tool in catalog if tool.server_id == server.id}
        if server_tools and name not in server_tools:
            raise ToolNotFoundError(f"Tool '{name}' not found on server '{server.id}'")
        return server

    async def _invoke(
        self, record_id: str, server: ServerConfig, name: str, args: Dict[str, Any]
    ) -> Tuple[str, ToolCallRecord]:
        logger.info(f"🚀 Executing embedded tool call: {name} on {server.name}")
        result = await self._dispatcher.invoke(
            server,
            ToolInvocationRequest(
                call_id=record_id, server_id=server.id, tool_name=name, arguments=args
            ),
        )

        record = ToolCallRecord(
            id=record_id,
            server_id=server.id,
            server_name=server.name,
            name=name,
            args=args,
            result=result.to_payload(),
            error=result.error_message() if result.is_error else None,
        )
        if result.is_error:
            return format_tool_error(result.error_message()), record
        return format_tool_result(result.to_payload()), record
