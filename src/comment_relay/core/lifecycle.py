"""Process lifecycle helpers shared by the app and long-running calls."""

from __future__ import annotations

import asyncio


class ShutdownContext:
    """Cancellation signal threaded through the server's shutdown path.

    The app's shutdown hook calls :meth:`request_shutdown`; code that waits
    between retries uses :meth:`wait` so it wakes up early instead of holding
    the process open.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def requested(self) -> bool:
        return self._event.is_set()

    def request_shutdown(self) -> None:
        self._event.set()

    async def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if shutdown was requested."""
        if self._event.is_set():
            return True
        if timeout <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True
