from typing import Any, Dict, Final, Optional, Sequence

import aiohttp
from loguru import logger
from overrides import override

from .base import ChatProvider

FALLBACK_MODEL: Final[str] = "llama3.2"
DEFAULT_NUM_PREDICT: Final[int] = 2048


class OllamaProvider(ChatProvider):
    """
    Local Ollama server over its `/api/chat` endpoint

    The configured default model takes precedence over the requested one,
    since a local server only serves the models it has pulled.
    """

    provider_id = "ollama"
    display_name = "Ollama"
    requires_api_key = False

    def resolve_model(self, model: str) -> str:
        return self.config.default_model or model or FALLBACK_MODEL

    @override
    async def _complete(
        self,
        messages: Sequence[Dict[str, Any]],
        model: str,
        max_tokens: Optional[int],
    ) -> str:
        actual_model = self.resolve_model(model)
        if actual_model != model:
            logger.debug(f"[OLLAMA] Using model {actual_model} instead of {model}")

        payload = {
            "model": actual_model,
            "messages": [
                {"role": message.get("role", "user"), "content": message.get("content", "")}
                for message in messages
            ],
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": max_tokens or DEFAULT_NUM_PREDICT,
            },
        }

        url = f"{self.base_url.rstrip('/')}/api/chat"
        timeout = aiohttp.ClientTimeout(total=self.defaults.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    raise RuntimeError(
                        f"Ollama API error: {response.status} - {error_text}"
                    )
                data = await response.json()

        message = data.get("message") or {}
        return str(message.get("content", ""))
