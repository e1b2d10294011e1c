"""Observable cancellation token for suspendable operations."""

import asyncio
from typing import Callable, List

from loguru import logger


class CancellationToken:
    """Observable cancellation signal shared by suspendable operations"""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Request cancellation; returns False when it was already requested"""
        if self._event.is_set():
            return False

        self._event.set()
        for callback in self._callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Cancellation callback failed: {e}")
        return True

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run `callback` on cancellation, immediately when already cancelled"""
        if self._event.is_set():
            callback()
            return
        self._callbacks.append(callback)

    async def wait(self) -> None:
        await self._event.wait()
