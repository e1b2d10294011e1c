"""
Turn graph - LangGraph workflow for one tool-assisted turn

## Workflow
```
START → [route]
          ↓ (no relevant servers)
        plain_generate → END
          ↓ (servers)
        collect_tools → [route]
                          ↓ (native tools)
                        native_tools → END
                          ↓ (text only)
                        inject_tool_instructions → embedded_generate → normalize → END
```

## Stages
Each node records the `TurnStage` it moves the turn into, so the final state
shows where the turn ended.

## Errors
Nodes let exceptions propagate; the service converts them into a failed
TurnResult. A ProviderError raised after native tool calls ran carries their
records on `tool_calls`.
"""

from typing import Any, Dict, List, Optional

from langgraph.graph import END, START, StateGraph
from langgraph.graph.state import CompiledStateGraph
from loguru import logger
from typing_extensions import TypedDict

from ..mcp.models import ServerConfig, ToolCallRecord, ToolDescriptor
from ..mcp.normalizer import ResponseNormalizer
from ..mcp.prompts import build_tool_instruction_prompt, inject_tool_instructions
from ..mcp.service import McpService
from ..providers.base import ChatProvider
from .models import TurnStage


############################################################################################################
class TurnState(TypedDict, total=False):
    """
    State of one turn

    Inputs: provider, mcp_service, model, messages, max_tokens, servers.
    Outputs: response, tool_calls, stage.
    """

    provider: ChatProvider
    mcp_service: McpService
    model: str
    messages: List[Dict[str, Any]]
    max_tokens: Optional[int]
    servers: List[ServerConfig]

    catalog: List[ToolDescriptor]
    prompt_messages: List[Dict[str, Any]]
    raw_response: str
    response: str
    tool_calls: List[ToolCallRecord]
    stage: TurnStage


def _advance(state: TurnState, *stages: TurnStage) -> TurnStage:
    """Log the stage path taken from the current stage and return the last one"""
    path = [state.get("stage", TurnStage.IDLE), *stages]
    logger.debug(
        f"[{state['provider'].provider_id.upper()}] {' → '.join(stage.value for stage in path)}"
    )
    return path[-1]


############################################################################################################
async def _plain_generate_node(state: TurnState) -> TurnState:
    """No relevant servers: one plain completion"""
    stage = _advance(state, TurnStage.AWAITING_FIRST_COMPLETION)
    text = await state["provider"].generate(
        state["messages"], state["model"], state.get("max_tokens")
    )
    return {
        "response": text,
        "tool_calls": [],
        "stage": _advance(
            {**state, "stage": stage}, TurnStage.NO_TOOLS_NEEDED, TurnStage.DONE
        ),
    }


async def _collect_tools_node(state: TurnState) -> TurnState:
    catalog = await state["mcp_service"].catalog.collect(state.get("servers", []))
    return {"catalog": catalog}


async def _native_tools_node(state: TurnState) -> TurnState:
    """Native function calling, including the follow-up completion"""
    stage = _advance(state, TurnStage.AWAITING_FIRST_COMPLETION)
    result = await state["provider"].generate_with_tools(
        state["messages"],
        state["model"],
        state.get("max_tokens"),
        state.get("catalog", []),
        state.get("servers", []),
    )

    if result.tool_calls:
        path = (
            TurnStage.NATIVE_TOOLS_EXECUTING,
            TurnStage.AWAITING_FOLLOW_UP,
            TurnStage.DONE,
        )
    else:
        path = (TurnStage.NO_TOOLS_NEEDED, TurnStage.DONE)

    return {
        "response": result.text,
        "tool_calls": result.tool_calls,
        "stage": _advance({**state, "stage": stage}, *path),
    }


async def _inject_tool_instructions_node(state: TurnState) -> TurnState:
    tool_prompt = build_tool_instruction_prompt(state.get("catalog", []))
    return {"prompt_messages": inject_tool_instructions(state["messages"], tool_prompt)}


async def _embedded_generate_node(state: TurnState) -> TurnState:
    stage = _advance(state, TurnStage.AWAITING_FIRST_COMPLETION)
    text = await state["provider"].generate(
        state["prompt_messages"], state["model"], state.get("max_tokens")
    )
    return {"raw_response": text, "stage": stage}


async def _normalize_node(state: TurnState) -> TurnState:
    """Execute `<tool_call>` / `<tool_code>` spans found in the completion"""
    stage = _advance(state, TurnStage.TEXT_EMBEDDED_TOOLS_EXECUTING)
    normalizer = ResponseNormalizer(state["mcp_service"].dispatcher)
    normalized = await normalizer.process(
        state["raw_response"], state.get("servers", []), state.get("catalog", [])
    )
    return {
        "response": normalized.processed_response,
        "tool_calls": normalized.tool_calls,
        "stage": _advance({**state, "stage": stage}, TurnStage.DONE),
    }


############################################################################################################
def _route_start(state: TurnState) -> str:
    return "collect_tools" if state.get("servers") else "plain_generate"


def _route_catalog(state: TurnState) -> str:
    if state["provider"].supports_native_tools:
        return "native_tools"
    return "inject_tool_instructions"


def create_turn_graph() -> CompiledStateGraph:
    """
    Build the turn workflow

    Returns:
        CompiledStateGraph: compiled graph, reusable across turns
    """
    graph_builder = StateGraph(TurnState)

    graph_builder.add_node("plain_generate", _plain_generate_node)
    graph_builder.add_node("collect_tools", _collect_tools_node)
    graph_builder.add_node("native_tools", _native_tools_node)
    graph_builder.add_node("inject_tool_instructions", _inject_tool_instructions_node)
    graph_builder.add_node("embedded_generate", _embedded_generate_node)
    graph_builder.add_node("normalize", _normalize_node)

    graph_builder.add_conditional_edges(
        START,
        _route_start,
        {"plain_generate": "plain_generate", "collect_tools": "collect_tools"},
    )
    graph_builder.add_conditional_edges(
        "collect_tools",
        _route_catalog,
        {
            "native_tools": "native_tools",
            "inject_tool_instructions": "inject_tool_instructions",
        },
    )

    graph_builder.add_edge("plain_generate", END)
    graph_builder.add_edge("native_tools", END)
    graph_builder.add_edge("inject_tool_instructions", "embedded_generate")
    graph_builder.add_edge("embedded_generate", "normalize")
    graph_builder.add_edge("normalize", END)

    return graph_builder.compile()  # type: ignore[return-value]
