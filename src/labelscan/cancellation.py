"""Cooperative cancellation for recognition requests."""

import asyncio

from labelscan.errors import CancelledError


class CancellationToken:
    """Cancellation signal shared between a caller and a running request.

    The orchestrator checks the token before each recognition call and races
    it against the call while it is pending.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event = asyncio.Event()
        self.reason: str = ""

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._cancelled

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Request cancellation. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise ``CancelledError`` if cancellation was requested."""
        if self._cancelled:
            raise CancelledError(self.reason)

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()
