"""
MCP data models

Data structures shared by the session registry, catalog, dispatcher and the
response normalizer. Models that leave the core serialize with camelCase
aliases (`model_dump(by_alias=True)`).
"""

import hashlib
import json
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConnectionKind(str, Enum):
    """How the core reaches an MCP server"""

    STDIO = "stdio"
    SSE = "sse"
    STREAMABLE_HTTP = "streamableHttp"


###########################################################################################
class ServerConfig(_CamelModel):
    """One configured MCP server"""

    id: str
    name: str
    description: Optional[str] = None
    connection_kind: ConnectionKind = ConnectionKind.STDIO
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    base_url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    is_active: bool = True
    timeout_seconds: Optional[float] = None
    disabled_tools: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_endpoint(self) -> "ServerConfig":
        if bool(self.command) == bool(self.base_url):
            raise ValueError(
                f"Server '{self.id}' must define exactly one of command or base_url"
            )
        if self.connection_kind == ConnectionKind.STDIO and not self.command:
            raise ValueError(f"Server '{self.id}' uses stdio but has no command")
        if self.connection_kind != ConnectionKind.STDIO and not self.base_url:
            raise ValueError(
                f"Server '{self.id}' uses {self.connection_kind.value} but has no base_url"
            )
        return self

    def fingerprint(self) -> str:
        """Content-addressed key over every connection parameter"""
        material = json.dumps(
            {
                "id": self.id,
                "kind": self.connection_kind.value,
                "command": self.command,
                "args": self.args,
                "env": self.env,
                "baseUrl": self.base_url,
                "headers": self.headers,
            },
            sort_keys=True,
            ensure_ascii=False,
        )
        return hashlib.sha256(material.encode("utf-8")).hexdigest()


###########################################################################################
def composite_tool_id(server_name: str, name: str) -> str:
    return f"{server_name}.{name}"


class ToolDescriptor(_CamelModel):
    """A tool as seen through the catalog"""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    composite_id: str
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    server_id: str
    server_name: str


class PromptDescriptor(_CamelModel):
    """A prompt template exposed by a server"""

    composite_id: str
    name: str
    description: Optional[str] = None
    arguments: List[Dict[str, Any]] = Field(default_factory=list)
    server_id: str
    server_name: str


class ResourceDescriptor(_CamelModel):
    """A resource exposed by a server"""

    uri: str
    name: str
    description: Optional[str] = None
    mime_type: Optional[str] = None
    server_id: str
    server_name: str


###########################################################################################
class ToolInvocationRequest(_CamelModel):
    """One tool call addressed to a server"""

    call_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    server_id: str
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolInvocationResult(_CamelModel):
    """Outcome of one tool call; failures carry `is_error` and `error`"""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    call_id: str
    content: List[Dict[str, Any]] = Field(default_factory=list)
    is_error: bool = False
    error: Optional[str] = None
    execution_time: float = 0.0

    @property
    def text(self) -> str:
        """Joined text blocks of the content"""
        return "\n".join(
            str(item.get("text", "")) for item in self.content if item.get("type") == "text"
        )

    def error_message(self) -> str:
        if self.error:
            return self.error
        return self.text or "Tool execution failed"

    def to_payload(self) -> Dict[str, Any]:
        """The MCP shaped result, as embedded in `<tool_result>` markers"""
        return {"content": self.content, "isError": self.is_error}


class ToolCallRecord(_CamelModel):
    """Tool call as surfaced to the UI and storage layers"""

    id: str
    server_id: Optional[str] = None
    server_name: Optional[str] = None
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
