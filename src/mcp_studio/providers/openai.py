from typing import Any, Dict, Final, Optional, Sequence, Tuple

from langchain_openai import ChatOpenAI
from loguru import logger
from overrides import override

from ..mcp.models import ServerConfig, ToolDescriptor
from .base import ChatProvider, ProviderCapability, ToolTurnResult
from .tool_calling import complete_with_langchain, run_native_tool_turn

# Reasoning models reject a custom temperature
REASONING_MODEL_PREFIXES: Final[Tuple[str, ...]] = ("o1", "o3", "o4", "gpt-5")


class OpenAIProvider(ChatProvider):
    """OpenAI chat models with native function calling"""

    provider_id = "openai"
    display_name = "OpenAI"
    api_key_env = "OPENAI_API_KEY"
    capabilities = frozenset(
        {ProviderCapability.TEXT_COMPLETION, ProviderCapability.NATIVE_TOOLS}
    )

    def create_llm(self, model: str, max_tokens: Optional[int]) -> ChatOpenAI:
        kwargs: Dict[str, Any] = {
            "model": model,
            "api_key": self.api_key(),
            "base_url": self.base_url,
            "timeout": self.defaults.timeout,
            "max_retries": 0,
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        if model.startswith(REASONING_MODEL_PREFIXES):
            logger.debug(f"[OPENAI] {model} is a reasoning model, temperature omitted")
        else:
            kwargs["temperature"] = self.temperature

        return ChatOpenAI(**kwargs)

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
