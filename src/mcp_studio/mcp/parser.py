"""
Embedded tool-call parser

Pure parsing helpers for the two text conventions used by providers without
native function calling:

- `<tool_call>{"serverId": "...", "name": "...", "args": {...}}</tool_call>`
- `<tool_code>toolName(key="value", ...)</tool_code>`, optionally wrapped in
  `print(...)`
"""

import json
import re
from typing import Any, Dict, Final, List, Optional, Pattern, Tuple

from ..errors import ToolCallParseError

TOOL_SPAN_PATTERN: Final[Pattern[str]] = re.compile(
    r"<tool_call>(?P<call>.*?)</tool_call>|<tool_code>(?P<code>.*?)</tool_code>",
    re.DOTALL,
)

PRINT_WRAPPER_PATTERN: Final[Pattern[str]] = re.compile(
    r"^\s*print\((?P<inner>.*)\)\s*$", re.DOTALL
)

FUNCTION_CALL_PATTERN: Final[Pattern[str]] = re.compile(r"(\w+)\(([^)]*)\)")

SURROUNDING_QUOTES_PATTERN: Final[Pattern[str]] = re.compile(r"^['\"`]|['\"`]$")

# Bare positional arguments land here when the tool schema declares no parameters
LEGACY_POSITIONAL_PARAMETER: Final[str] = "symbol"


############################################################################################################
def extract_balanced_json(text: str) -> Optional[str]:
    """
    First balanced `{...}` substring of `text`

    Braces inside JSON strings are ignored. Returns None when the first `{`
    is never closed.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]

    return None


############################################################################################################
def parse_tool_call_body(body: str) -> Dict[str, Any]:
    """
    Parse the JSON body of a `<tool_call>` span

    Args:
        body: text between the tags

    Returns:
        Dict[str, Any]: the decoded object

    Raises:
        ToolCallParseError: when neither the body nor its first balanced
            object decodes to a JSON object
    """
    tool_data = body.strip()

    try:
        data = json.loads(tool_data)
    except json.JSONDecodeError:
        candidate = extract_balanced_json(tool_data)
        if candidate is None:
            raise ToolCallParseError(
                f"No valid JSON found in tool call data: {tool_data[:100]}..."
            )
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            raise ToolCallParseError(f"Invalid JSON in tool call data: {e}") from e

    if not isinstance(data, dict):
        raise ToolCallParseError("Tool call data must be a JSON object")
    return data


############################################################################################################
def parse_code_calls(code: str) -> List[Tuple[str, str]]:
    """`(function_name, argument_string)` pairs found in a `<tool_code>` body"""
    code = code.strip()
    wrapped = PRINT_WRAPPER_PATTERN.match(code)
    if wrapped:
        code = wrapped.group("inner")

    return [
        (match.group(1), match.group(2))
        for match in FUNCTION_CALL_PATTERN.finditer(code)
        if match.group(1) != "print"
    ]


def split_top_level(argument_string: str) -> List[str]:
    """Split on commas that are outside quotes and brackets"""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    quote: Optional[str] = None

    for char in argument_string:
        if quote is not None:
            current.append(char)
            if char == quote:
                quote = None
            continue

        if char in "'\"`":
            quote = char
        elif char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)

    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def strip_quotes(value: str) -> str:
    return SURROUNDING_QUOTES_PATTERN.sub("", value.strip())


def positional_parameter_names(input_schema: Dict[str, Any]) -> List[str]:
    """Parameter order for positional arguments: required first, then the rest"""
    required = [name for name in input_schema.get("required", []) if isinstance(name, str)]
    properties = list((input_schema.get("properties") or {}).keys())
    return required + [name for name in properties if name not in required]


def parse_code_arguments(
    argument_string: str, input_schema: Optional[Dict[str, Any]] = None
) -> Dict[str, str]:
    """
    Bind the arguments of a pseudo function call

    Keyword arguments keep their name. Positional argument i binds to the
    i-th schema parameter, or to `LEGACY_POSITIONAL_PARAMETER` when the schema
    has no parameter at that position.
    """
    names = positional_parameter_names(input_schema or {})
    args: Dict[str, str] = {}
    position = 0

    for part in split_top_level(argument_string):
        key, separator, value = part.partition("=")
        if separator and key.strip().isidentifier():
            if value.strip():
                args[key.strip()] = strip_quotes(value)
            continue

        name = names[position] if position < len(names) else LEGACY_POSITIONAL_PARAMETER
        args[name] = strip_quotes(part)
        position += 1

    return args


############################################################################################################
def format_tool_result(payload: Dict[str, Any]) -> str:
    return f"<tool_result>{json.dumps(payload, indent=2, ensure_ascii=False)}</tool_result>"


def format_tool_error(message: str) -> str:
    return f"<tool_error>{message}</tool_error>"
