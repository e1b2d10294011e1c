"""
Tool prompt builders

System prompt describing the tool catalog and the `<tool_call>` syntax, used
for providers that have no native function calling.
"""

import json
from typing import Any, Dict, Final, List, Sequence

from loguru import logger

from .models import ToolDescriptor

TOOL_CALL_INSTRUCTION: Final[
    str
] = """You can call tools when you need live information or need to perform an action.

## Tool call format

Wrap every call in <tool_call></tool_call> tags holding one JSON object:

<tool_call>{"serverId": "<server id>", "name": "<tool name>", "args": {"<parameter>": "<value>"}}</tool_call>

Several calls may appear in one reply. Each call is replaced in your reply by
<tool_result>...</tool_result> or <tool_error>...</tool_error>.

## Rules

- Call a tool whenever the task requires it
- Use the exact serverId and tool name listed below
- Never guess or invent tool results"""

NO_TOOLS_INSTRUCTION: Final[str] = (
    "No tools are currently available; answer from your own knowledge."
)


############################################################################################################
def _example_value(param_info: Dict[str, Any]) -> Any:
    param_type = param_info.get("type", "string")
    if param_type == "integer":
        return 1
    if param_type == "number":
        return 1.0
    if param_type == "boolean":
        return True
    if param_type == "array":
        return []
    if param_type == "object":
        return {}
    return "example"


def build_tool_call_example(tool: ToolDescriptor) -> str:
    """`<tool_call>` example for a tool, filled with its required parameters"""
    example_args: Dict[str, Any] = {}
    properties = tool.input_schema.get("properties") or {}
    for param_name in tool.input_schema.get("required", []):
        if param_name in properties:
            example_args[param_name] = _example_value(properties[param_name])

    example = {"serverId": tool.server_id, "name": tool.name, "args": example_args}
    return f"<tool_call>{json.dumps(example, ensure_ascii=False)}</tool_call>"


def format_tool_description(tool: ToolDescriptor) -> str:
    tool_desc = f"- **{tool.name}** (serverId: `{tool.server_id}`): {tool.description}"

    required = tool.input_schema.get("required", [])
    if required:
        required_params = ", ".join(f"`{param}`" for param in required)
        tool_desc += f" (required: {required_params})"
    return tool_desc


def build_tool_instruction_prompt(catalog: Sequence[ToolDescriptor]) -> str:
    if not catalog:
        return NO_TOOLS_INSTRUCTION

    prompt = TOOL_CALL_INSTRUCTION + "\n\n## Available tools"
    for tool in catalog:
        prompt += f"\n{format_tool_description(tool)}"

    prompt += "\n\n## Example\n\n" + build_tool_call_example(catalog[0])
    return prompt


############################################################################################################
def inject_tool_instructions(
    messages: Sequence[Dict[str, Any]], tool_prompt: str
) -> List[Dict[str, Any]]:
    """
    Copy of `messages` with the tool prompt as a system message

    The prompt goes right after a leading system message so the role setup
    stays first; otherwise it becomes the first message.
    """
    result = [dict(message) for message in messages]
    tool_message = {"role": "system", "content": tool_prompt}

    if result and result[0].get("role") == "system":
        result.insert(1, tool_message)
    else:
        result.insert(0, tool_message)
        logger.debug("No leading system message, tool instructions inserted first")
    return result
