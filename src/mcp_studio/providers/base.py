from dotenv import load_dotenv

# Load API key fallbacks from .env
load_dotenv()

import asyncio
import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    ClassVar,
    Dict,
    FrozenSet,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic.alias_generators import to_camel

from ..config import ProviderDefaults
from ..errors import ProviderError
from ..mcp.dispatcher import CallDispatcher
from ..mcp.models import ServerConfig, ToolCallRecord, ToolDescriptor
from ..mcp.session import describe_error
from .retry import exponential_backoff, with_retry

T = TypeVar("T")


############################################################################################################
class ProviderCapability(str, Enum):
    """What an adapter can do beyond plain completion"""

    TEXT_COMPLETION = "text_completion"
    NATIVE_TOOLS = "native_tools"


class ProviderConfig(BaseModel):
    """Vendor configuration supplied by the settings layer"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: Optional[str] = None
    api_key: Optional[SecretStr] = None
    base_url: Optional[str] = None
    default_model: Optional[str] = None


class ToolTurnResult(BaseModel):
    """Final text of a native tool turn and the calls it made"""

    text: str
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)


############################################################################################################
class ChatProvider(ABC):
    """
    One LLM vendor

    Every adapter implements `_complete` (text completion). Adapters that list
    `ProviderCapability.NATIVE_TOOLS` in `capabilities` also implement
    `generate_with_tools`.
    """

    provider_id: ClassVar[str] = ""
    display_name: ClassVar[str] = ""
    capabilities: ClassVar[FrozenSet[ProviderCapability]] = frozenset(
        {ProviderCapability.TEXT_COMPLETION}
    )
    api_key_env: ClassVar[Optional[str]] = None
    requires_api_key: ClassVar[bool] = True

    def __init__(
        self,
        config: ProviderConfig,
        defaults: ProviderDefaults,
        dispatcher: Optional[CallDispatcher] = None,
        temperature: float = 0.7,
        default_max_tokens: int = 8192,
        retry_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.defaults = defaults
        self.dispatcher = dispatcher
        self.temperature = temperature
        self.default_max_tokens = default_max_tokens
        self._retry_sleep = retry_sleep

    @property
    def name(self) -> str:
        return self.config.name or self.display_name or self.provider_id

    @property
    def supports_native_tools(self) -> bool:
        return ProviderCapability.NATIVE_TOOLS in self.capabilities

    @property
    def base_url(self) -> str:
        return self.config.base_url or self.defaults.base_url

    def set_config(self, config: ProviderConfig) -> None:
        logger.debug(
            f"[{self.provider_id}] provider config updated: default_model={config.default_model}, base_url={config.base_url}"
        )
        self.config = config

    def api_key(self) -> SecretStr:
        """Configured API key, falling back to the vendor environment variable"""
        if self.config.api_key is not None and self.config.api_key.get_secret_value():
            return self.config.api_key

        env_key = os.getenv(self.api_key_env) if self.api_key_env else None
        if env_key:
            return SecretStr(env_key)

        raise ProviderError(f"{self.name} API key is not configured")

    async def generate(
        self,
        messages: Sequence[Dict[str, Any]],
        model: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Single completion turn with retry and timeout"""
        if self.requires_api_key:
            self.api_key()

        logger.info(
            f"🤖 [{self.provider_id.upper()}] Starting call to {model} | Messages: {len(messages)}"
        )
        text = await self._call_with_policy(
            lambda: self._complete(messages, model, max_tokens), model
        )
        logger.info(
            f"✅ [{self.provider_id.upper()}] Success {model} | Response: {len(text)} chars"
        )
        return text

    async def generate_with_tools(
        self,
        messages: Sequence[Dict[str, Any]],
        model: str,
        max_tokens: Optional[int],
        catalog: Sequence[ToolDescriptor],
        servers: Sequence[ServerConfig],
    ) -> ToolTurnResult:
        raise NotImplementedError(
            f"{self.name} does not support native tool calling"
        )

    @abstractmethod
    async def _complete(
        self,
        messages: Sequence[Dict[str, Any]],
        model: str,
        max_tokens: Optional[int],
    ) -> str:
        pass

    async def _call_with_policy(
        self, operation: Callable[[], Awaitable[T]], model: str
    ) -> T:
        """Run one vendor request under the timeout and retry budget"""

        async def _attempt() -> T:
            return await asyncio.wait_for(operation(), timeout=self.defaults.timeout)

        try:
            return await with_retry(
                _attempt,
                max_attempts=self.defaults.max_retries,
                backoff=exponential_backoff(base=1.0, cap=10.0),
                sleep=self._retry_sleep,
                label=f"[{self.provider_id.upper()}] {model}",
            )
        except ProviderError:
            raise
        except Exception as e:
            logger.error(f"❌ [{self.provider_id.upper()}] Failed {model}: {e}")
            raise ProviderError(f"{self.name} API error: {describe_error(e)}") from e
