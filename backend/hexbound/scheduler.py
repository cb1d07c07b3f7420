"""
Deferred callbacks on a virtual clock.

Every callback captures the game's turn token when it is scheduled and is
skipped when it fires under a different token. This is the only mechanism
that invalidates stale work such as a scripted move queued before a human
took the turn back, or a trade timeout for an offer that was already
answered.
"""
import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass(order=True)
class ScheduledCallback:
    due: float
    sequence: int
    turn_token: int = field(compare=False)
    callback: Callable[[], None] = field(compare=False)
    label: str = field(default="", compare=False)
    guard: Optional[Callable[[], bool]] = field(default=None, compare=False)


class TurnScheduler:
    """Cooperative scheduler driven by advance()/run_until_idle()."""

    def __init__(self, token_source: Callable[[], int]):
        self._token_source = token_source
        self._queue: List[ScheduledCallback] = []
        self._sequence = itertools.count()
        self.now = 0.0

    def schedule(self, delay: float, callback: Callable[[], None], label: str = "",
                 guard: Optional[Callable[[], bool]] = None) -> ScheduledCallback:
        """Run `callback` after `delay` seconds unless the turn token has changed by then.

        `guard` is an optional extra predicate checked at fire time.
        """
        entry = ScheduledCallback(
            due=self.now + delay,
            sequence=next(self._sequence),
            turn_token=self._token_source(),
            callback=callback,
            label=label,
            guard=guard,
        )
        heapq.heappush(self._queue, entry)
        return entry

    def pending(self) -> int:
        return len(self._queue)

    def next_due(self) -> Optional[float]:
        return self._queue[0].due if self._queue else None

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing everything that falls due. Returns callbacks run."""
        return self._run_until(self.now + seconds)

    def run_next(self) -> bool:
        """Jump the clock to the next entry and fire it. False when idle."""
        if not self._queue:
            return False
        self._run_until(self._queue[0].due)
        return True

    def run_until_idle(self, max_callbacks: int = 10000) -> int:
        """Fire queued callbacks in due order until none remain (bounded)."""
        fired = 0
        while self._queue and fired < max_callbacks:
            fired += self._run_until(self._queue[0].due)
        if self._queue:
            logger.warning("scheduler_not_idle", pending=len(self._queue), fired=fired)
        return fired

    def _run_until(self, deadline: float) -> int:
        fired = 0
        while self._queue and self._queue[0].due <= deadline:
            entry = heapq.heappop(self._queue)
            self.now = max(self.now, entry.due)
            if entry.turn_token != self._token_source():
                logger.debug("stale_callback_skipped", label=entry.label, token=entry.turn_token)
                continue
            if entry.guard is not None and not entry.guard():
                logger.debug("guarded_callback_skipped", label=entry.label)
                continue
            entry.callback()
            fired += 1
        self.now = max(self.now, deadline)
        return fired

    def clear(self):
        self._queue.clear()
