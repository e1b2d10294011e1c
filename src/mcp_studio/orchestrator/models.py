from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..mcp.models import ToolCallRecord


class TurnStage(str, Enum):
    """Progress of one orchestrated turn"""

    IDLE = "idle"
    AWAITING_FIRST_COMPLETION = "awaiting_first_completion"
    NO_TOOLS_NEEDED = "no_tools_needed"
    NATIVE_TOOLS_EXECUTING = "native_tools_executing"
    AWAITING_FOLLOW_UP = "awaiting_follow_up"
    TEXT_EMBEDDED_TOOLS_EXECUTING = "text_embedded_tools_executing"
    DONE = "done"


class TurnResult(BaseModel):
    """Uniform outcome of `generate_response_with_tools`; never raises past it"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    response: Optional[str] = None
    error: Optional[str] = None
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
