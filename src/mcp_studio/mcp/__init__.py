"""
MCP (Model Context Protocol) module

Client side of the tool-orchestration core:
- Session registry: one live session per server fingerprint (stdio / SSE / Streamable HTTP)
- Tool catalog: provider-agnostic tool, prompt and resource descriptors
- Call dispatcher: tool invocation with timeouts and cancellation
- Response normalizer: execution of `<tool_call>` / `<tool_code>` spans in model text
- Prompt builders: tool instructions for providers without native function calling
"""

from .cancellation import CancellationToken
from .catalog import ToolCatalog
from .config import McpSettings, load_server_configs
from .dispatcher import CallDispatcher
from .metrics import ToolExecutionMetric, ToolMetricsCollector
from .models import (
    ConnectionKind,
    PromptDescriptor,
    ResourceDescriptor,
    ServerConfig,
    ToolCallRecord,
    ToolDescriptor,
    ToolInvocationRequest,
    ToolInvocationResult,
)
from .normalizer import NormalizedResponse, ResponseNormalizer
from .prompts import build_tool_instruction_prompt, inject_tool_instructions
from .registry import SessionRegistry
from .service import McpService
from .session import McpSession, Session, SessionFactory, open_session

__all__ = [
    # Sessions
    "McpSession",
    "Session",
    "SessionFactory",
    "SessionRegistry",
    "open_session",
    # Models
    "ConnectionKind",
    "ServerConfig",
    "ToolDescriptor",
    "PromptDescriptor",
    "ResourceDescriptor",
    "ToolInvocationRequest",
    "ToolInvocationResult",
    "ToolCallRecord",
    # Catalog and dispatch
    "ToolCatalog",
    "CallDispatcher",
    "CancellationToken",
    "ToolExecutionMetric",
    "ToolMetricsCollector",
    # Embedded tool calls
    "ResponseNormalizer",
    "NormalizedResponse",
    "build_tool_instruction_prompt",
    "inject_tool_instructions",
    # Service and configuration
    "McpService",
    "McpSettings",
    "load_server_configs",
]
