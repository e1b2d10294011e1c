"""
LangChain helpers shared by the chat-model adapters

- Conversion of `{role, content}` dicts to LangChain messages
- Function specs built from the tool catalog
- The native tool loop: one completion with tools bound, concurrent execution
  of the requested calls, one follow-up completion without tools
"""

import asyncio
import json
import re
import uuid
from collections import Counter
from typing import Any, Dict, List, Sequence, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from loguru import logger

from ..errors import ProviderError
from ..mcp.dispatcher import CallDispatcher
from ..mcp.models import ServerConfig, ToolCallRecord, ToolDescriptor, ToolInvocationRequest
from .base import ChatProvider, ToolTurnResult

FUNCTION_NAME_PATTERN = re.compile(r"[^a-zA-Z0-9_-]")
MAX_FUNCTION_NAME_LENGTH = 64


############################################################################################################
def to_langchain_messages(messages: Sequence[Dict[str, Any]]) -> List[BaseMessage]:
    result: List[BaseMessage] = []
    for message in messages:
        role = message.get("role", "user")
        content = str(message.get("content", ""))
        if role == "system":
            result.append(SystemMessage(content=content))
        elif role == "assistant":
            result.append(AIMessage(content=content))
        else:
            result.append(HumanMessage(content=content))
    return result


def message_text(message: BaseMessage) -> str:
    """Text of a message whose content is a string or a list of content blocks"""
    content = message.content
    if isinstance(content, str):
        return content

    parts: List[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


async def complete_with_langchain(
    llm: BaseChatModel, messages: Sequence[Dict[str, Any]]
) -> str:
    response = await llm.ainvoke(to_langchain_messages(messages))
    return message_text(response)


############################################################################################################
def _function_name(tool: ToolDescriptor, duplicated: bool) -> str:
    raw = f"{tool.server_name}__{tool.name}" if duplicated else tool.name
    return FUNCTION_NAME_PATTERN.sub("_", raw)[:MAX_FUNCTION_NAME_LENGTH]


def build_function_specs(
    catalog: Sequence[ToolDescriptor],
) -> Tuple[List[Dict[str, Any]], Dict[str, ToolDescriptor]]:
    """
    OpenAI-style function specs for the catalog

    A tool name offered by more than one server is qualified with its server
    name so every function name maps back to exactly one descriptor.

    Returns:
        Tuple: (function specs, function name -> descriptor)
    """
    name_counts = Counter(tool.name for tool in catalog)
    specs: List[Dict[str, Any]] = []
    functions: Dict[str, ToolDescriptor] = {}

    for tool in catalog:
        function_name = _function_name(tool, name_counts[tool.name] > 1)
        base_name, suffix = function_name, 2
        while function_name in functions:
            function_name = f"{base_name}_{suffix}"
            suffix += 1

        functions[function_name] = tool
        specs.append(
            {
                "type": "function",
                "function": {
                    "name": function_name,
                    "description": tool.description or tool.name,
                    "parameters": tool.input_schema
                    or {"type": "object", "properties": {}},
                },
            }
        )

    return specs, functions


############################################################################################################
async def execute_native_call(
    call: Dict[str, Any],
    functions: Dict[str, ToolDescriptor],
    servers_by_id: Dict[str, ServerConfig],
    dispatcher: CallDispatcher,
) -> ToolCallRecord:
    call_id = call.get("id") or f"call-{uuid.uuid4().hex}"
    function_name = str(call.get("name") or "")
    args = call.get("args") or {}

    tool = functions.get(function_name)
    if tool is None:
        return ToolCallRecord(
            id=call_id,
            name=function_name,
            args=args,
            error=f"Tool '{function_name}' not found in catalog",
        )

    server = servers_by_id.get(tool.server_id)
    if server is None:
        return ToolCallRecord(
            id=call_id,
            server_id=tool.server_id,
            server_name=tool.server_name,
            name=tool.name,
            args=args,
            error=f"Server '{tool.server_id}' not found",
        )

    result = await dispatcher.invoke(
        server,
        ToolInvocationRequest(
            call_id=call_id, server_id=server.id, tool_name=tool.name, arguments=args
        ),
    )
    return ToolCallRecord(
        id=call_id,
        server_id=server.id,
        server_name=server.name,
        name=tool.name,
        args=args,
        result=result.to_payload(),
        error=result.error_message() if result.is_error else None,
    )


def _tool_message(record: ToolCallRecord) -> ToolMessage:
    if record.error:
        content = f"Error: {record.error}"
    else:
        content = json.dumps(record.result, ensure_ascii=False)
    return ToolMessage(content=content, tool_call_id=record.id)


async def run_native_tool_turn(
    provider: ChatProvider,
    llm: BaseChatModel,
    messages: Sequence[Dict[str, Any]],
    model: str,
    catalog: Sequence[ToolDescriptor],
    servers: Sequence[ServerConfig],
) -> ToolTurnResult:
    """
    Native function-calling turn

    Args:
        provider: adapter owning the retry and timeout policy
        llm: chat model configured for this turn
        messages: conversation history
        model: model name, for logging
        catalog: tools offered to the model
        servers: servers the tools belong to

    Returns:
        ToolTurnResult: final text and one record per requested call

    Raises:
        ProviderError: a completion failed; records of calls already executed
            travel on `tool_calls`
    """
    if provider.dispatcher is None:
        raise ProviderError(f"{provider.name} has no tool dispatcher configured")

    history = to_langchain_messages(messages)
    specs, functions = build_function_specs(catalog)
    bound = llm.bind_tools(specs, tool_choice="auto") if specs else llm

    logger.info(
        f"🤖 [{provider.provider_id.upper()}] Native tool call to {model} | Tools: {len(specs)}"
    )
    first = await provider._call_with_policy(lambda: bound.ainvoke(history), model)
    if not isinstance(first, AIMessage):
        return ToolTurnResult(text=message_text(first))

    requested: List[Dict[str, Any]] = [dict(call) for call in first.tool_calls]
    if not requested and not first.invalid_tool_calls:
        return ToolTurnResult(text=message_text(first))

    servers_by_id = {server.id: server for server in servers}
    records: List[ToolCallRecord] = list(
        await asyncio.gather(
            *(
                execute_native_call(call, functions, servers_by_id, provider.dispatcher)
                for call in requested
            )
        )
    )

    for invalid in first.invalid_tool_calls:
        records.append(
            ToolCallRecord(
                id=invalid.get("id") or f"call-{uuid.uuid4().hex}",
                name=str(invalid.get("name") or ""),
                error=invalid.get("error") or "Invalid tool call arguments",
            )
        )

    logger.info(
        f"🔧 [{provider.provider_id.upper()}] Executed {len(records)} tool calls, requesting follow-up"
    )

    follow_up: List[BaseMessage] = [*history, first]
    follow_up.extend(_tool_message(record) for record in records)

    try:
        second = await provider._call_with_policy(
            lambda: llm.ainvoke(follow_up), model
        )
    except ProviderError as e:
        raise ProviderError(str(e), tool_calls=records) from e

    return ToolTurnResult(text=message_text(second) or message_text(first), tool_calls=records)
