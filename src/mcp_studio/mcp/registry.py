"""
MCP session registry

Owns one live session per server fingerprint. Sessions are opened lazily,
re-used while their ping succeeds and recreated transparently once stale.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from loguru import logger

from .models import ServerConfig
from .session import Session, SessionFactory, describe_error


class SessionRegistry:
    """Fingerprint keyed map of live MCP sessions"""

    def __init__(
        self, session_factory: SessionFactory, ping_timeout: float = 5.0
    ) -> None:
        self._session_factory = session_factory
        self._ping_timeout = ping_timeout
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, config: ServerConfig) -> bool:
        return config.fingerprint() in self._sessions

    @asynccontextmanager
    async def _locked(self, key: str) -> AsyncIterator[None]:
        """Per-fingerprint lock, dropped once no task holds or waits for it"""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    async def acquire(self, config: ServerConfig) -> Session:
        """
        Return the live session for a server, connecting when needed

        Args:
            config: server configuration

        Returns:
            Session: a connected session

        Raises:
            McpConnectionError: when a new session cannot be established
        """
        key = config.fingerprint()

        async with self._locked(key):
            existing = self._sessions.get(key)
            if existing is not None:
                try:
                    await asyncio.wait_for(existing.ping(), timeout=self._ping_timeout)
                    return existing
                except Exception as e:
                    logger.warning(
                        f"⚠️ Stale MCP session for '{config.name}', reconnecting: {describe_error(e)}"
                    )
                    self._sessions.pop(key, None)
                    await self._close_quietly(config, existing)

            session = await self._session_factory(config)
            self._sessions[key] = session
            logger.debug(f"🔗 MCP session registered: {config.name} ({key[:8]})")
            return session

    async def release(self, config: ServerConfig) -> None:
        """Close and forget the session for a server; no-op when absent"""
        key = config.fingerprint()
        async with self._locked(key):
            session = self._sessions.pop(key, None)
            if session is None:
                return
            await self._close_quietly(config, session)
            logger.info(f"Stopped MCP server session: {config.name}")

    async def close_all(self) -> None:
        """Best-effort shutdown of every tracked session"""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await self._close_quietly(session.config, session)
        logger.info(f"🔌 Closed {len(sessions)} MCP sessions")

    async def _close_quietly(self, config: ServerConfig, session: Session) -> None:
        try:
            await session.close()
        except Exception as e:
            logger.error(f"Failed to close MCP session '{config.name}': {e}")
