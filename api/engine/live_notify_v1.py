from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List

logger = logging.getLogger(__name__)

Listener = Callable[[int], None]


class LiveStateNotifier:
    """
    In-process change feed for the live state record.

    Writers call ``publish`` after a committed replacement. Display long-polls
    block in ``wait_for_change``; listeners registered with ``subscribe`` are
    called synchronously with the new revision. Subscribers never write.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._revision = 0
        self._listeners: List[Listener] = []

    @property
    def revision(self) -> int:
        with self._cond:
            return self._revision

    def publish(self, revision: int) -> None:
        with self._cond:
            if int(revision) <= self._revision:
                return
            self._revision = int(revision)
            listeners = list(self._listeners)
            self._cond.notify_all()

        for listener in listeners:
            try:
                listener(int(revision))
            except Exception:
                logger.exception("live state listener failed for revision=%s", revision)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._cond:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._cond:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def wait_for_change(self, after_revision: int, timeout_s: float) -> bool:
        """True once the published revision exceeds ``after_revision``; False on timeout."""
        deadline = time.monotonic() + max(0.0, float(timeout_s))
        with self._cond:
            while self._revision <= int(after_revision):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(timeout=remaining)
            return True


live_state_notifier = LiveStateNotifier()
