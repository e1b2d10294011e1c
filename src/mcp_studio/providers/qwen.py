from typing import Any, Dict, Optional, Sequence

from langchain_openai import ChatOpenAI
from overrides import override

from .base import ChatProvider
from .tool_calling import complete_with_langchain


class QwenProvider(ChatProvider):
    """
    Qwen models on the DashScope OpenAI compatible endpoint

    Text completion only; tools reach Qwen through the embedded
    `<tool_call>` syntax.
    """

    provider_id = "qwen"
    display_name = "Qwen"
    api_key_env = "DASHSCOPE_API_KEY"

    def create_llm(self, model: str, max_tokens: Optional[int]) -> ChatOpenAI:
        return ChatOpenAI(
            model=model,
            api_key=self.api_key(),
            base_url=self.base_url,
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
