"""
Cooperative cancellation for one batch run.

A CancellationSignal is created fresh for every run and handed explicitly to
the orchestrator and poller. It only ever goes from not-set to set.
"""

import asyncio
from typing import Optional


class CancellationSignal:
    """One-way cancel flag with a cancellable wait."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "user_request") -> bool:
        """Set the signal. Returns False if it was already set."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    async def wait(self, timeout: float) -> bool:
        """
        Sleep for up to `timeout` seconds, waking early on cancel.

        Returns:
            True if the signal is set when the wait ends.
        """
        if self._event.is_set():
            return True
        if timeout <= 0:
            # Still yield so other tasks (e.g. a cancel request) can run
            await asyncio.sleep(0)
            return self._event.is_set()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True
