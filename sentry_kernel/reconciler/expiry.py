"""
Idle expiry — a single cancellable countdown owned by the StateManager.

States:
  DISARMED (no groups, no timer) → ARMED (timer running) → DISARMED

Every arm() invalidates the previous countdown by bumping a generation
token. A callback that fires with a stale token must be ignored by its
owner, so a reset racing a fire always wins.
"""

import threading
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from pydantic import BaseModel, Field

from sentry_kernel.models.events import LandedEvent


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class ThreadingScheduler:
    """Runs callbacks on daemon threading.Timer threads."""

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_seconds, callback)
        timer.daemon = True
        timer.start()
        return timer


class ExpiryNotice(BaseModel):
    """Emitted on the notification channel when idle expiry clears the state."""

    events: List[LandedEvent]
    cleared_at: datetime = Field(default_factory=datetime.utcnow)


class IdleExpiryTimer:
    """Fixed-duration countdown; each arm() restarts it from zero."""

    def __init__(
        self,
        duration_seconds: float,
        on_fire: Callable[[int], None],
        scheduler: Optional[Scheduler] = None,
    ):
        self.duration_seconds = duration_seconds
        self._on_fire = on_fire
        self._scheduler = scheduler or ThreadingScheduler()
        self._handle: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def is_armed(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        """Start (or restart) the countdown."""
        self._cancel_handle()
        self._generation += 1
        token = self._generation
        self._handle = self._scheduler.schedule(
            self.duration_seconds, lambda: self._on_fire(token)
        )

    def disarm(self) -> None:
        """Stop the countdown. Any in-flight fire becomes stale."""
        self._cancel_handle()
        self._generation += 1

    def is_current(self, token: int) -> bool:
        return self.is_armed and token == self._generation

    def mark_fired(self) -> None:
        """Forget the handle of a countdown that has completed."""
        self._handle = None

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
