"""Exception types raised by the orchestration core."""

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .mcp.models import ToolCallRecord


class McpStudioError(Exception):
    """Base class for every error raised by the core"""


class McpConnectionError(McpStudioError):
    """An MCP session could not be established"""


class ToolNotFoundError(McpStudioError):
    """The requested tool or server is not part of the resolved catalog"""


class ToolExecutionError(McpStudioError):
    """The MCP server reported an error, or the call timed out or was cancelled"""


class ToolCallParseError(McpStudioError):
    """Malformed embedded tool-call syntax in model output"""


class ProviderError(McpStudioError):
    """A vendor API call failed after the retry budget was spent"""

    def __init__(
        self, message: str, tool_calls: Optional[List["ToolCallRecord"]] = None
    ) -> None:
        super().__init__(message)
        self.tool_calls: List["ToolCallRecord"] = list(tool_calls or [])


class UnknownProviderError(ProviderError):
    """No adapter is registered for the provider id"""
