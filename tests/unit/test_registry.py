"""
SessionRegistry unit tests

- session reuse and stale-session reconnect
- concurrent acquire opens a single session
- fault tolerance of release / close_all
- ping timeout and per-fingerprint lock lifetime
"""

import asyncio

import pytest

from fakes import FakeSession, FakeSessionFactory
from mcp_studio.errors import McpConnectionError
from mcp_studio.mcp import ServerConfig, SessionRegistry


class TestSessionRegistry:

    @pytest.fixture
    def registry(self, session_factory: FakeSessionFactory) -> SessionRegistry:
        return SessionRegistry(session_factory)

    @pytest.mark.asyncio
    async def test_acquire_reuses_live_session(
        self,
        registry: SessionRegistry,
        session_factory: FakeSessionFactory,
        prices_server: ServerConfig,
    ) -> None:
        first = await registry.acquire(prices_server)
        second = await registry.acquire(prices_server)

        assert first is second
        assert len(session_factory.created) == 1
        assert isinstance(first, FakeSession)
        first.ping.assert_awaited_once()
        assert prices_server in registry

    @pytest.mark.asyncio
    async def test_stale_session_is_replaced(
        self,
        registry: SessionRegistry,
        session_factory: FakeSessionFactory,
        prices_server: ServerConfig,
    ) -> None:
        stale = await registry.acquire(prices_server)
        assert isinstance(stale, FakeSession)
        stale.ping.side_effect = RuntimeError("connection reset")

        fresh = await registry.acquire(prices_server)

        assert fresh is not stale
        assert len(session_factory.created) == 2
        stale.close.assert_awaited_once()
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_connection_failure_propagates(
        self,
        registry: SessionRegistry,
        session_factory: FakeSessionFactory,
        prices_server: ServerConfig,
    ) -> None:
        session_factory.failing.add(prices_server.id)

        with pytest.raises(McpConnectionError):
            await registry.acquire(prices_server)
        assert prices_server not in registry

    @pytest.mark.asyncio
    async def test_concurrent_acquire_opens_one_session(
        self, prices_server: ServerConfig
    ) -> None:
        opened = []

        async def slow_factory(config: ServerConfig) -> FakeSession:
            await asyncio.sleep(0.01)
            session = FakeSession(config)
            opened.append(session)
            return session

        registry = SessionRegistry(slow_factory)
        sessions = await asyncio.gather(
            *(registry.acquire(prices_server) for _ in range(5))
        )

        assert len(opened) == 1
        assert all(session is opened[0] for session in sessions)

    @pytest.mark.asyncio
    async def test_changed_configuration_gets_its_own_session(
        self,
        registry: SessionRegistry,
        session_factory: FakeSessionFactory,
        prices_server: ServerConfig,
    ) -> None:
        changed = prices_server.model_copy(update={"env": {"API_KEY": "x"}})

        first = await registry.acquire(prices_server)
        second = await registry.acquire(changed)

        assert first is not second
        assert len(registry) == 2

    @pytest.mark.asyncio
    async def test_release_is_idempotent(
        self, registry: SessionRegistry, prices_server: ServerConfig
    ) -> None:
        session = await registry.acquire(prices_server)
        assert isinstance(session, FakeSession)

        await registry.release(prices_server)
        await registry.release(prices_server)

        session.close.assert_awaited_once()
        assert prices_server not in registry

    @pytest.mark.asyncio
    async def test_release_swallows_close_errors(
        self, registry: SessionRegistry, prices_server: ServerConfig
    ) -> None:
        session = await registry.acquire(prices_server)
        assert isinstance(session, FakeSession)
        session.close.side_effect = RuntimeError("already gone")

        await registry.release(prices_server)
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_close_all_continues_after_failures(
        self,
        registry: SessionRegistry,
        prices_server: ServerConfig,
        weather_server: ServerConfig,
    ) -> None:
        broken = await registry.acquire(prices_server)
        healthy = await registry.acquire(weather_server)
        assert isinstance(broken, FakeSession) and isinstance(healthy, FakeSession)
        broken.close.side_effect = RuntimeError("close failed")

        await registry.close_all()

        broken.close.assert_awaited_once()
        healthy.close.assert_awaited_once()
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_hung_ping_counts_as_stale(
        self, session_factory: FakeSessionFactory, prices_server: ServerConfig
    ) -> None:
        registry = SessionRegistry(session_factory, ping_timeout=0.05)
        hung = await registry.acquire(prices_server)
        assert isinstance(hung, FakeSession)

        async def never_answers() -> None:
            await asyncio.sleep(10)

        hung.ping.side_effect = never_answers

        fresh = await registry.acquire(prices_server)

        assert fresh is not hung
        hung.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_locks_are_dropped_when_idle(
        self,
        registry: SessionRegistry,
        session_factory: FakeSessionFactory,
        prices_server: ServerConfig,
        weather_server: ServerConfig,
    ) -> None:
        edited = prices_server.model_copy(update={"args": ["-m", "prices_v2"]})
        session_factory.failing.add(weather_server.id)

        await registry.acquire(prices_server)
        await registry.acquire(edited)
        with pytest.raises(McpConnectionError):
            await registry.acquire(weather_server)
        await registry.release(prices_server)
        await registry.close_all()

        assert registry._locks == {}
        assert registry._lock_users == {}
