from typing import Any, Dict, Optional, Sequence

from langchain_deepseek import ChatDeepSeek
from overrides import override

from ..mcp.models import ServerConfig, ToolDescriptor
from .base import ChatProvider, ProviderCapability, ToolTurnResult
from .tool_calling import complete_with_langchain, run_native_tool_turn


class DeepSeekProvider(ChatProvider):
    """DeepSeek chat models through the OpenAI compatible endpoint"""

    provider_id = "deepseek"
    display_name = "DeepSeek"
    api_key_env = "DEEPSEEK_API_KEY"
    capabilities = frozenset(
        {ProviderCapability.TEXT_COMPLETION, ProviderCapability.NATIVE_TOOLS}
    )

    def create_llm(self, model: str, max_tokens: Optional[int]) -> ChatDeepSeek:
        return ChatDeepSeek(
            api_key=self.api_key(),
            api_base=self.base_url,
            model=model,
            temperature=self.temperature,
            max_tokens=max_tokens,
            timeout=self.defaults.timeout,
            max_retries=0,
        )

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
