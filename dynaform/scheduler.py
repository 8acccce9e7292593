"""
Next-tick callback queue.

Value and status notifications fire while a control tree is still being
updated (a group patch notifies every child before the group itself).
Work that must see the finished update, such as change detection, is
queued here with call_soon() and runs on the next run_pending().
"""

import logging
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional

logger = logging.getLogger(__name__)


class TickScheduler:
    """
    Single-threaded deferred-callback queue.

    Callbacks queued under the same key while one is still pending are
    coalesced into the pending one.
    """

    def __init__(self):
        self._queue: 'OrderedDict[Hashable, Callable[[], Any]]' = OrderedDict()
        self._counter = 0
        self._running = False

    @property
    def pending(self) -> int:
        return len(self._queue)

    def call_soon(self, callback: Callable[[], Any], key: Optional[Hashable] = None) -> bool:
        """
        Queue callback for the next tick.

        Args:
            callback: Zero-argument callable
            key: Coalescing key; None queues unconditionally

        Returns:
            True if queued, False if a callback with the same key was already pending
        """
        if key is None:
            self._counter += 1
            key = ('_anonymous', self._counter)
        elif key in self._queue:
            return False
        self._queue[key] = callback
        return True

    def run_pending(self) -> int:
        """
        Run the callbacks queued before this call.

        Callbacks queued while running wait for the following tick.

        Returns:
            Number of callbacks run
        """
        if self._running:
            return 0
        batch = list(self._queue.values())
        self._queue.clear()
        self._running = True
        try:
            for callback in batch:
                callback()
        finally:
            self._running = False
        if batch:
            logger.debug(f"Ran {len(batch)} deferred callback(s)")
        return len(batch)

    def cancel_all(self) -> None:
        self._queue.clear()
