from typing import Any, Dict, Optional, Sequence

from langchain_google_genai import ChatGoogleGenerativeAI
from overrides import override

from ..mcp.models import ServerConfig, ToolDescriptor
from .base import ChatProvider, ProviderCapability, ToolTurnResult
from .tool_calling import complete_with_langchain, run_native_tool_turn


class GeminiProvider(ChatProvider):
    """
    Google Gemini models

    Catalog entries reach the model as `functionDeclarations`; the function
    specs are converted by langchain-google-genai's `bind_tools`.
    """

    provider_id = "gemini"
    display_name = "Gemini"
    api_key_env = "GOOGLE_API_KEY"
    capabilities = frozenset(
        {ProviderCapability.TEXT_COMPLETION, ProviderCapability.NATIVE_TOOLS}
    )

    def create_llm(
        self, model: str, max_tokens: Optional[int]
    ) -> ChatGoogleGenerativeAI:
        kwargs: Dict[str, Any] = {
            "model": model,
            "google_api_key": self.api_key(),
            "temperature": self.temperature,
            "timeout": self.defaults.timeout,
            "max_retries": 0,
        }
        if max_tokens is not None:
            kwargs["max_output_tokens"] = max_tokens

        return ChatGoogleGenerativeAI(**kwargs)

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
