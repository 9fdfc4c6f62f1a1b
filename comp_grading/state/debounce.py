"""
Cancellable debounce timer on the running asyncio event loop.

Each ``schedule()`` cancels the pending call, if any, and re-arms the timer,
so a burst of edits results in one call once the edits go quiet. Only the
timer is cancellable; a callback that has started runs to completion.
"""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """Coalesce rapid triggers into a single deferred callback.

    Args:
        callback: Synchronous callable invoked once the delay elapses
        delay: Quiet period in seconds
    """

    def __init__(self, callback: Callable[[], object], delay: float = 0.5):
        if delay < 0:
            raise ValueError("Debounce delay cannot be negative")
        self._callback = callback
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self.fired_count = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> bool:
        """(Re)arm the timer on the running loop.

        Returns:
            False when no event loop is running, in which case nothing is scheduled.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; debounced call not scheduled")
            return False
        self.cancel()
        self._handle = loop.call_later(self.delay, self._fire)
        return True

    def cancel(self) -> bool:
        """Cancel the pending call. Returns True if one was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def flush(self) -> bool:
        """Run the pending call now instead of waiting. Returns True if one ran."""
        if not self.cancel():
            return False
        self._run()
        return True

    def _fire(self) -> None:
        self._handle = None
        self._run()

    def _run(self) -> None:
        self.fired_count += 1
        self._callback()
