"""
LLM provider adapters

- Capability-tagged adapters: text completion for every vendor, native
  function calling where the vendor API has it
- Bounded retry with exponential backoff around every completion call
- ProviderFactory keyed by provider id
"""

from .base import ChatProvider, ProviderCapability, ProviderConfig, ToolTurnResult
from .anthropic import AnthropicProvider
from .deepseek import DeepSeekProvider
from .factory import ProviderFactory
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider
from .qwen import QwenProvider
from .retry import exponential_backoff, with_retry
from .tool_calling import build_function_specs, run_native_tool_turn

__all__ = [
    "ChatProvider",
    "ProviderCapability",
    "ProviderConfig",
    "ToolTurnResult",
    "ProviderFactory",
    "OpenAIProvider",
    "AnthropicProvider",
    "GeminiProvider",
    "DeepSeekProvider",
    "QwenProvider",
    "OllamaProvider",
    "with_retry",
    "exponential_backoff",
    "build_function_specs",
    "run_native_tool_turn",
]
