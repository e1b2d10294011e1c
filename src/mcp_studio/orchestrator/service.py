"""
AI service

Entry point of the orchestration core. Owns the provider adapters and runs
each tool-assisted turn through the turn graph:
- relevant servers are the active servers, optionally narrowed to `server_ids`
- providers with native function calling get the catalog as function specs
- other providers get a tool instruction prompt and their reply is normalized
- every failure inside a turn comes back as `TurnResult(success=False)`
"""

from typing import Any, Dict, List, Optional, Sequence

from langgraph.graph.state import CompiledStateGraph
from loguru import logger

from ..config import AppConfig
from ..errors import ProviderError, UnknownProviderError
from ..mcp.models import ServerConfig
from ..mcp.service import McpService
from ..mcp.session import describe_error
from ..providers.base import ChatProvider, ProviderConfig
from ..providers.factory import ProviderFactory
from .graph import TurnState, create_turn_graph
from .models import TurnResult


class AIService:
    """Runs tool-assisted turns across the configured LLM providers"""

    def __init__(
        self,
        mcp_service: McpService,
        providers: Optional[Sequence[ProviderConfig]] = None,
        factory: Optional[ProviderFactory] = None,
        config: Optional[AppConfig] = None,
    ) -> None:
        self.mcp_service = mcp_service
        self.factory = factory if factory is not None else ProviderFactory()
        self.config = config if config is not None else AppConfig()
        self._providers: Dict[str, ChatProvider] = {}
        self._servers: List[ServerConfig] = []
        self._graph: CompiledStateGraph = create_turn_graph()
        self.update_providers(providers or [])

    ############################################################################################################
    @property
    def provider_ids(self) -> List[str]:
        return list(self._providers.keys())

    def update_providers(self, providers: Sequence[ProviderConfig]) -> None:
        """
        Apply new provider configs

        Adapters already built for an id are updated in place; new ids get a
        fresh adapter, unknown ids are skipped and ids no longer listed are
        dropped.
        """
        updated: Dict[str, ChatProvider] = {}
        for provider_config in providers:
            existing = self._providers.get(provider_config.id)
            if existing is not None:
                existing.set_config(provider_config)
                updated[provider_config.id] = existing
                continue

            try:
                updated[provider_config.id] = self.factory.create(
                    provider_config,
                    self.config.ai.provider_defaults(provider_config.id),
                    dispatcher=self.mcp_service.dispatcher,
                    temperature=self.config.ai.default_temperature,
                    default_max_tokens=self.config.ai.max_tokens,
                )
            except UnknownProviderError as e:
                logger.warning(f"⚠️ Skipping provider config: {e}")

        self._providers = updated
        logger.info(f"🤖 Providers configured: {', '.join(updated) or 'none'}")

    def get_provider(self, provider_id: str) -> ChatProvider:
        provider = self._providers.get(provider_id)
        if provider is None:
            raise UnknownProviderError(f"Provider {provider_id} not found")
        return provider

    ############################################################################################################
    def set_active_servers(self, servers: Sequence[ServerConfig]) -> None:
        self._servers = list(servers)
        active = [server.name for server in self._servers if server.is_active]
        logger.info(f"🔗 Active MCP servers: {', '.join(active) or 'none'}")

    def relevant_servers(
        self, server_ids: Optional[Sequence[str]] = None
    ) -> List[ServerConfig]:
        active = [server for server in self._servers if server.is_active]
        if server_ids is None:
            return active
        wanted = set(server_ids)
        return [server for server in active if server.id in wanted]

    ############################################################################################################
    async def generate_response(
        self,
        provider_id: str,
        model: str,
        messages: Sequence[Dict[str, Any]],
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Plain completion without tools

        Raises:
            UnknownProviderError: no adapter configured for `provider_id`
            ProviderError: the vendor call failed
        """
        provider = self.get_provider(provider_id)
        return await provider.generate(messages, model, max_tokens)

    async def generate_response_with_tools(
        self,
        provider_id: str,
        model: str,
        messages: Sequence[Dict[str, Any]],
        max_tokens: Optional[int] = None,
        server_ids: Optional[Sequence[str]] = None,
    ) -> TurnResult:
        """
        One tool-assisted turn

        Args:
            provider_id: configured provider id
            model: vendor model name
            messages: `{role, content}` conversation
            max_tokens: completion budget; None leaves it to the adapter
            server_ids: restrict tools to these active servers

        Returns:
            TurnResult: final text and tool call records, or the failure
        """
        try:
            provider = self.get_provider(provider_id)
            servers = self.relevant_servers(server_ids)
            logger.info(
                f"🤖 Turn started: {provider_id}/{model} | messages: {len(messages)} | servers: {len(servers)}"
            )

            initial_state: TurnState = {
                "provider": provider,
                "mcp_service": self.mcp_service,
                "model": model,
                "messages": [dict(message) for message in messages],
                "max_tokens": max_tokens,
                "servers": servers,
                "tool_calls": [],
            }
            final_state = await self._graph.ainvoke(initial_state)

            tool_calls = final_state.get("tool_calls", [])
            logger.info(
                f"✅ Turn finished: {final_state.get('stage')} | tool calls: {len(tool_calls)}"
            )
            return TurnResult(
                success=True,
                response=final_state.get("response", ""),
                tool_calls=tool_calls,
            )

        except ProviderError as e:
            logger.error(f"❌ Turn failed: {e}")
            return TurnResult(success=False, error=str(e), tool_calls=e.tool_calls)

        except Exception as e:
            error_msg = describe_error(e)
            logger.error(f"❌ Turn failed: {error_msg}")
            return TurnResult(success=False, error=error_msg)

    ############################################################################################################
    def prune_conversation_history(
        self,
        messages: Sequence[Dict[str, Any]],
        max_messages: Optional[int] = None,
        max_chars: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Newest messages that fit both limits, oldest first

        Limits default to `max_history_messages` / `max_history_chars` of the
        AI config. The newest message is always kept, even when it alone
        exceeds the character limit.
        """
        if max_messages is None:
            max_messages = self.config.ai.max_history_messages
        if max_chars is None:
            max_chars = self.config.ai.max_history_chars

        kept: List[Dict[str, Any]] = []
        total_chars = 0

        for message in reversed(messages):
            if len(kept) >= max_messages:
                break
            message_chars = len(str(message.get("content", "")))
            if kept and total_chars + message_chars > max_chars:
                break
            kept.append(message)
            total_chars += message_chars

        kept.reverse()
        return kept
