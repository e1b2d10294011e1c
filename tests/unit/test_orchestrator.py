"""
AIService / turn graph unit tests

Scripted providers stand in for vendors; fake MCP sessions stand in for
servers. Covers the plain, native and text-embedded paths and the uniform
failure result.
"""

from typing import Any, Dict, List, Optional, Sequence

import pytest

from fakes import FakeSessionFactory
from mcp_studio.config import AppConfig, ProviderDefaults
from mcp_studio.errors import ProviderError, UnknownProviderError
from mcp_studio.mcp import McpService, ServerConfig, ToolCallRecord, ToolDescriptor
from mcp_studio.orchestrator import AIService, TurnResult, TurnStage, create_turn_graph
from mcp_studio.providers import (
    ChatProvider,
    ProviderCapability,
    ProviderConfig,
    ProviderFactory,
    ToolTurnResult,
)

MESSAGES: List[Dict[str, Any]] = [
    {"role": "system", "content": "You are a trader."},
    {"role": "user", "content": "Price of ABC?"},
]


class ScriptedProvider(ChatProvider):
    """Text-only provider returning queued replies"""

    provider_id = "scripted"
    display_name = "Scripted"
    requires_api_key = False

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.replies: List[str] = []
        self.seen: List[List[Dict[str, Any]]] = []
        self.seen_max_tokens: List[Optional[int]] = []

    async def _complete(
        self,
        messages: Sequence[Dict[str, Any]],
        model: str,
        max_tokens: Optional[int],
    ) -> str:
        self.seen.append([dict(message) for message in messages])
        self.seen_max_tokens.append(max_tokens)
        return self.replies.pop(0)


class NativeProvider(ScriptedProvider):
    """Provider with native tools returning a scripted tool turn"""

    provider_id = "native"
    display_name = "Native"
    capabilities = frozenset(
        {ProviderCapability.TEXT_COMPLETION, ProviderCapability.NATIVE_TOOLS}
    )

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.tool_turn: Optional[ToolTurnResult] = None
        self.failure: Optional[Exception] = None
        self.seen_catalog: List[ToolDescriptor] = []

    async def generate_with_tools(
        self,
        messages: Sequence[Dict[str, Any]],
        model: str,
        max_tokens: Optional[int],
        catalog: Sequence[ToolDescriptor],
        servers: Sequence[ServerConfig],
    ) -> ToolTurnResult:
        self.seen_catalog = list(catalog)
        if self.failure is not None:
            raise self.failure
        assert self.tool_turn is not None
        return self.tool_turn


@pytest.fixture
def ai_service(mcp_service: McpService) -> AIService:
    factory = ProviderFactory({"scripted": ScriptedProvider, "native": NativeProvider})
    return AIService(
        mcp_service,
        providers=[ProviderConfig(id="scripted"), ProviderConfig(id="native")],
        factory=factory,
        config=AppConfig(),
    )


def _scripted(service: AIService) -> ScriptedProvider:
    provider = service.get_provider("scripted")
    assert isinstance(provider, ScriptedProvider)
    return provider


def _native(service: AIService) -> NativeProvider:
    provider = service.get_provider("native")
    assert isinstance(provider, NativeProvider)
    return provider


class TestAIService:

    @pytest.mark.asyncio
    async def test_no_servers_uses_plain_completion(self, ai_service: AIService) -> None:
        provider = _scripted(ai_service)
        provider.replies = ["ABC is trading at 42."]

        result = await ai_service.generate_response_with_tools("scripted", "m", MESSAGES)

        assert result.success is True
        assert result.response == "ABC is trading at 42."
        assert result.tool_calls == []
        assert provider.seen == [MESSAGES]

    def test_server_ids_narrow_relevant_servers(
        self,
        ai_service: AIService,
        prices_server: ServerConfig,
        weather_server: ServerConfig,
    ) -> None:
        inactive = ServerConfig(id="off", name="Off", command="off", is_active=False)
        ai_service.set_active_servers([prices_server, weather_server, inactive])

        assert ai_service.relevant_servers() == [prices_server, weather_server]
        assert ai_service.relevant_servers(["weather", "off"]) == [weather_server]
        assert ai_service.relevant_servers([]) == []

    @pytest.mark.asyncio
    async def test_unmatched_server_ids_skip_tools(
        self,
        ai_service: AIService,
        session_factory: FakeSessionFactory,
        prices_server: ServerConfig,
    ) -> None:
        ai_service.set_active_servers([prices_server])
        provider = _scripted(ai_service)
        provider.replies = ["plain"]

        result = await ai_service.generate_response_with_tools(
            "scripted", "m", MESSAGES, server_ids=["unknown"]
        )

        assert result.response == "plain"
        assert session_factory.created == []

    @pytest.mark.asyncio
    async def test_text_embedded_path(
        self,
        ai_service: AIService,
        session_factory: FakeSessionFactory,
        prices_server: ServerConfig,
    ) -> None:
        ai_service.set_active_servers([prices_server])
        provider = _scripted(ai_service)
        provider.replies = [
            'Checking. <tool_call>{"serverId": "prices", "name": "get_price", '
            '"args": {"symbol": "ABC"}}</tool_call>'
        ]

        result = await ai_service.generate_response_with_tools("scripted", "m", MESSAGES)

        assert result.success is True
        assert result.response is not None
        assert result.response.startswith("Checking. <tool_result>")
        assert len(result.tool_calls) == 1
        assert result.tool_calls[0].name == "get_price"

        sent = provider.seen[0]
        assert sent[0] == MESSAGES[0]
        assert sent[1]["role"] == "system"
        assert "get_price" in sent[1]["content"]
        assert sent[2] == MESSAGES[1]
        session_factory.latest("prices").call_tool.assert_awaited_once_with(
            "get_price", {"symbol": "ABC"}
        )

    @pytest.mark.asyncio
    async def test_native_path_returns_tool_turn(
        self,
        ai_service: AIService,
        prices_server: ServerConfig,
        weather_server: ServerConfig,
    ) -> None:
        ai_service.set_active_servers([prices_server, weather_server])
        provider = _native(ai_service)
        record = ToolCallRecord(id="call_1", server_id="prices", name="get_price")
        provider.tool_turn = ToolTurnResult(text="ABC is 42.", tool_calls=[record])

        result = await ai_service.generate_response_with_tools("native", "m", MESSAGES)

        assert result.success is True
        assert result.response == "ABC is 42."
        assert result.tool_calls == [record]
        assert [tool.name for tool in provider.seen_catalog] == [
            "get_price",
            "get_forecast",
        ]
        assert provider.seen == []

    @pytest.mark.asyncio
    async def test_provider_error_keeps_partial_records(
        self, ai_service: AIService, prices_server: ServerConfig
    ) -> None:
        ai_service.set_active_servers([prices_server])
        record = ToolCallRecord(id="call_1", name="get_price", result={"isError": False})
        _native(ai_service).failure = ProviderError(
            "Native API error: timeout", tool_calls=[record]
        )

        result = await ai_service.generate_response_with_tools("native", "m", MESSAGES)

        assert result.success is False
        assert result.error == "Native API error: timeout"
        assert result.tool_calls == [record]

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failure(
        self, ai_service: AIService, prices_server: ServerConfig
    ) -> None:
        ai_service.set_active_servers([prices_server])
        _native(ai_service).failure = RuntimeError("socket closed")

        result = await ai_service.generate_response_with_tools("native", "m", MESSAGES)

        assert result.success is False
        assert result.error == "socket closed"
        assert result.tool_calls == []

    @pytest.mark.asyncio
    async def test_unknown_provider(self, ai_service: AIService) -> None:
        result = await ai_service.generate_response_with_tools("missing", "m", MESSAGES)
        assert result.success is False
        assert result.error == "Provider missing not found"

        with pytest.raises(UnknownProviderError):
            await ai_service.generate_response("missing", "m", MESSAGES)

    @pytest.mark.asyncio
    async def test_generate_response(self, ai_service: AIService) -> None:
        _scripted(ai_service).replies = ["hello"]
        assert await ai_service.generate_response("scripted", "m", MESSAGES) == "hello"

    def test_update_providers_skips_unknown_ids(self, ai_service: AIService) -> None:
        ai_service.update_providers(
            [ProviderConfig(id="scripted"), ProviderConfig(id="mistral")]
        )
        assert ai_service.provider_ids == ["scripted"]

    def test_update_providers_reconfigures_existing_adapters(
        self, ai_service: AIService
    ) -> None:
        before = _scripted(ai_service)

        ai_service.update_providers(
            [ProviderConfig(id="scripted", default_model="tiny", name="Renamed")]
        )

        after = _scripted(ai_service)
        assert after is before
        assert after.config.default_model == "tiny"
        assert after.name == "Renamed"
        assert ai_service.provider_ids == ["scripted"]

    @pytest.mark.asyncio
    async def test_unset_max_tokens_is_left_to_the_adapter(
        self, ai_service: AIService
    ) -> None:
        provider = _scripted(ai_service)
        provider.replies = ["a", "b", "c"]

        await ai_service.generate_response("scripted", "m", MESSAGES)
        await ai_service.generate_response_with_tools("scripted", "m", MESSAGES)
        await ai_service.generate_response("scripted", "m", MESSAGES, max_tokens=256)

        assert provider.seen_max_tokens == [None, None, 256]
        assert provider.default_max_tokens == 8192

    def test_turn_result_serializes_camel_case(self) -> None:
        result = TurnResult(
            success=True,
            response="ok",
            tool_calls=[ToolCallRecord(id="1", server_id="s", name="n")],
        )
        dumped = result.model_dump(by_alias=True)
        assert dumped["toolCalls"][0]["serverId"] == "s"


class TestTurnGraph:

    @pytest.mark.asyncio
    async def test_final_stage_is_done(
        self, mcp_service: McpService, prices_server: ServerConfig
    ) -> None:
        provider = ScriptedProvider(
            ProviderConfig(id="scripted"),
            ProviderDefaults(base_url="http://unused"),
        )
        provider.replies = ["no tools used"]

        final_state = await create_turn_graph().ainvoke(
            {
                "provider": provider,
                "mcp_service": mcp_service,
                "model": "m",
                "messages": MESSAGES,
                "max_tokens": 128,
                "servers": [prices_server],
            }
        )

        assert final_state["stage"] == TurnStage.DONE
        assert final_state["response"] == "no tools used"
        assert final_state["tool_calls"] == []
        assert [tool.name for tool in final_state["catalog"]] == ["get_price"]


class TestPruneConversationHistory:

    def test_message_limit_keeps_newest(self, ai_service: AIService) -> None:
        messages = [{"role": "user", "content": str(index)} for index in range(10)]

        pruned = ai_service.prune_conversation_history(messages, max_messages=3)

        assert [message["content"] for message in pruned] == ["7", "8", "9"]

    def test_char_limit(self, ai_service: AIService) -> None:
        messages = [{"role": "user", "content": "x" * 40} for _ in range(5)]

        pruned = ai_service.prune_conversation_history(messages, max_chars=100)
        assert len(pruned) == 2

    def test_limits_come_from_ai_config(self, mcp_service: McpService) -> None:
        config = AppConfig()
        config.ai.max_history_messages = 4
        config.ai.max_history_chars = 25
        service = AIService(mcp_service, config=config)
        messages = [{"role": "user", "content": "y" * 10} for _ in range(6)]

        assert len(service.prune_conversation_history(messages)) == 2

        config.ai.max_history_chars = 1000
        assert len(service.prune_conversation_history(messages)) == 4

    def test_newest_message_is_always_kept(self, ai_service: AIService) -> None:
        messages = [
            {"role": "user", "content": "short"},
            {"role": "user", "content": "y" * 500},
        ]

        pruned = ai_service.prune_conversation_history(messages, max_chars=100)
        assert pruned == [messages[1]]

    def test_empty_history(self, ai_service: AIService) -> None:
        assert ai_service.prune_conversation_history([]) == []
