from typing import Dict, List, Optional, Type

from loguru import logger

from ..config import ProviderDefaults
from ..errors import UnknownProviderError
from ..mcp.dispatcher import CallDispatcher
from .anthropic import AnthropicProvider
from .base import ChatProvider, ProviderConfig
from .deepseek import DeepSeekProvider
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider
from .qwen import QwenProvider


class ProviderFactory:
    """Builds adapters from provider configs, keyed by provider id"""

    def __init__(
        self, adapters: Optional[Dict[str, Type[ChatProvider]]] = None
    ) -> None:
        if adapters is None:
            adapters = {
                adapter.provider_id: adapter
                for adapter in (
                    OpenAIProvider,
                    AnthropicProvider,
                    GeminiProvider,
                    DeepSeekProvider,
                    QwenProvider,
                    OllamaProvider,
                )
            }
        self._adapters: Dict[str, Type[ChatProvider]] = dict(adapters)

    def register(self, adapter: Type[ChatProvider]) -> None:
        self._adapters[adapter.provider_id] = adapter

    def supported_providers(self) -> List[str]:
        return list(self._adapters.keys())

    def create(
        self,
        config: ProviderConfig,
        defaults: ProviderDefaults,
        dispatcher: Optional[CallDispatcher] = None,
        temperature: float = 0.7,
        default_max_tokens: int = 8192,
    ) -> ChatProvider:
        adapter = self._adapters.get(config.id)
        if adapter is None:
            raise UnknownProviderError(f"Unknown provider type: {config.id}")

        provider = adapter(
            config,
            defaults,
            dispatcher=dispatcher,
            temperature=temperature,
            default_max_tokens=default_max_tokens,
        )
        logger.debug(
            f"🤖 Provider created: {config.id} | native tools: {provider.supports_native_tools}"
        )
        return provider
