from typing import Any, Dict, Optional, Sequence

from langchain_anthropic import ChatAnthropic
from overrides import override

from ..mcp.models import ServerConfig, ToolDescriptor
from .base import ChatProvider, ProviderCapability, ToolTurnResult
from .tool_calling import complete_with_langchain, run_native_tool_turn


class AnthropicProvider(ChatProvider):
    """Claude models through the Messages API; tools are sent as `tool_use` definitions"""

    provider_id = "anthropic"
    display_name = "Anthropic"
    api_key_env = "ANTHROPIC_API_KEY"
    capabilities = frozenset(
        {ProviderCapability.TEXT_COMPLETION, ProviderCapability.NATIVE_TOOLS}
    )

    def create_llm(self, model: str, max_tokens: Optional[int]) -> ChatAnthropic:
        kwargs: Dict[str, Any] = {
            "model": model,
            "api_key": self.api_key(),
            "base_url": self.base_url,
            "temperature": self.temperature,
            "max_tokens": max_tokens or self.default_max_tokens,
            "timeout": self.defaults.timeout,
            "max_retries": 0,
        }
        return ChatAnthropic(**kwargs)

    @override
    async def _complete(
        self,
        messages: Sequence[Dict[str, Any]],
        model: str,
        max_tokens: Optional[int],
    ) -> str:
        return await complete_with_langchain(
            self.create_llm(model, max_tokens), messages
        )

    @override
    async def generate_with_tools(
        self,
        messages: Sequence[Dict[str, Any]],
        model: str,
        max_tokens: Optional[int],
        catalog: Sequence[ToolDescriptor],
        servers: Sequence[ServerConfig],
    ) -> ToolTurnResult:
        return await run_native_tool_turn(
            self,
            self.create_llm(model, max_tokens),
            messages,
            model,
            catalog,
            servers,
        )
