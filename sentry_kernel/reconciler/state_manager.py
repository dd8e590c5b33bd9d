"""
State Manager — the single owner of the live world state.

Consumes classified event batches, reconciles them against the active
object groups, persists the full collection after every mutation and keeps
an idle-expiry countdown running while anything is tracked.

Reconciliation rules (per event, applied in batch order):
  launch   → append a new group
  continue → update the first group with the same (category, destination),
             otherwise behave as launch
  landed   → reduce the first group with the same category whose destination
             or origin equals the location; drop it at zero
  alarm    → append a group with origin = destination = region

"First" means insertion order. When several groups share a destination only
the earliest one is touched.
"""

import logging
import queue
import threading
from datetime import datetime
from typing import Iterable, List, Optional

from sentry_kernel.models.config import StateConfig
from sentry_kernel.models.events import (
    AlarmEvent,
    ContinueEvent,
    Event,
    LandedEvent,
    LaunchEvent,
)
from sentry_kernel.models.world import ActiveObjectGroup, ThreatCategory, WorldState
from sentry_kernel.reconciler.batch import SUMMARY_CATEGORY, BatchKind, classify_batch
from sentry_kernel.reconciler.expiry import ExpiryNotice, IdleExpiryTimer, Scheduler
from sentry_kernel.world_model.store import GroupStore

log = logging.getLogger(__name__)


def _effective_quantity(quantity: Optional[int]) -> int:
    return quantity if quantity and quantity > 0 else 1


class StateManager:
    """
    Owns the mutable collection of ActiveObjectGroups.

    All mutations, including timer fires, are serialized through one lock.
    Expiry notices are put on `notifications` (a thread-safe queue).
    """

    def __init__(
        self,
        store: GroupStore,
        config: Optional[StateConfig] = None,
        scheduler: Optional[Scheduler] = None,
        notifications: Optional["queue.Queue[ExpiryNotice]"] = None,
    ):
        self.store = store
        self.config = config or StateConfig()
        self.notifications = notifications if notifications is not None else queue.Queue()

        self._lock = threading.RLock()
        self._groups: List[ActiveObjectGroup] = store.load_all()
        self._timer = IdleExpiryTimer(
            self.config.idle_timeout_seconds,
            on_fire=self._on_timer_fired,
            scheduler=scheduler,
        )
        log.info("Initial state loaded with %d groups", len(self._groups))
        if self._groups:
            self._timer.arm()

    @property
    def is_timer_armed(self) -> bool:
        return self._timer.is_armed

    @property
    def idle_timeout_seconds(self) -> float:
        return self._timer.duration_seconds

    def get_state(self) -> WorldState:
        """Deep copy of the current collection."""
        with self._lock:
            return WorldState(groups=[g.model_copy(deep=True) for g in self._groups])

    def get_group(self, group_id: str) -> Optional[ActiveObjectGroup]:
        with self._lock:
            for group in self._groups:
                if group.id == group_id:
                    return group.model_copy(deep=True)
        return None

    # --- Batch entry point ---

    def update_state(self, events: Optional[Iterable[Event]]) -> Optional[BatchKind]:
        """
        Apply one batch of events. Returns how the batch was interpreted,
        or None for an empty batch (which only restarts the idle timer).
        """
        batch = list(events or [])
        with self._lock:
            if not batch:
                log.info("No new events to process")
                self._reset_timer()
                return None

            kind = classify_batch(batch)
            if kind == BatchKind.SUMMARY:
                log.info(
                    "Full '%s' summary detected, replacing all %s groups",
                    SUMMARY_CATEGORY.value, SUMMARY_CATEGORY.value,
                )
                self._replace_category(SUMMARY_CATEGORY, batch)
            else:
                log.info("Processing %d events incrementally", len(batch))
                for event in batch:
                    self.process_event(event)

            self._persist()
            self._reset_timer()
            return kind

    def process_event(self, event: Event) -> None:
        """Reconcile a single event against the current collection."""
        with self._lock:
            if isinstance(event, LaunchEvent):
                self._add_group(
                    event.quantity, event.category,
                    event.origin, event.destination, event.heading,
                )
            elif isinstance(event, ContinueEvent):
                if not self._update_group(event):
                    self._add_group(
                        event.quantity, event.category,
                        event.origin, event.destination, event.heading,
                    )
            elif isinstance(event, LandedEvent):
                self._remove_group(event.quantity, event.category, event.location)
            elif isinstance(event, AlarmEvent):
                self._add_group(
                    event.quantity, event.category, event.region, event.region, None,
                )
            else:
                log.warning("Unknown event type: %r", event)

    def close(self) -> None:
        """Cancel any pending countdown."""
        with self._lock:
            self._timer.disarm()

    # --- Reconciliation helpers ---

    def _build_group(
        self,
        quantity: Optional[int],
        category: Optional[ThreatCategory],
        origin: Optional[str],
        destination: Optional[str],
        heading: Optional[str],
    ) -> Optional[ActiveObjectGroup]:
        if not category or not origin or not destination:
            return None
        return ActiveObjectGroup(
            quantity=_effective_quantity(quantity),
            category=category,
            origin=origin,
            destination=destination,
            heading=heading or None,
        )

    def _add_group(self, quantity, category, origin, destination, heading) -> None:
        group = self._build_group(quantity, category, origin, destination, heading)
        if group is None:
            log.debug("Ignoring incomplete event: %s %s -> %s", category, origin, destination)
            return
        self._groups.append(group)
        log.info(
            "Added: %d %s from %s -> %s%s",
            group.quantity, group.category.value, group.origin, group.destination,
            f" (heading {group.heading})" if group.heading else "",
        )

    def _update_group(self, event: ContinueEvent) -> bool:
        """Overwrite the first (category, destination) match. False if none."""
        if not event.category or not event.origin or not event.destination:
            return False
        for target in self._groups:
            if target.category == event.category and target.destination == event.destination:
                new_quantity = _effective_quantity(event.quantity)
                log.info(
                    "Updated: %s %s (%d -> %d)",
                    target.category.value, target.destination, target.quantity, new_quantity,
                )
                target.quantity = new_quantity
                target.origin = event.origin
                target.heading = event.heading or None
                target.updated_at = datetime.utcnow()
                return True
        return False

    def _remove_group(
        self,
        quantity: Optional[int],
        category: Optional[ThreatCategory],
        location: Optional[str],
    ) -> None:
        if not category or not location:
            return
        for index, target in enumerate(self._groups):
            if target.category == category and location in (target.destination, target.origin):
                break
        else:
            log.warning("No matching group to remove: %s at %s", category.value, location)
            return

        removed = quantity if quantity and quantity > 0 else target.quantity
        target.quantity -= removed
        target.updated_at = datetime.utcnow()
        log.info(
            "Reduced: %s at %s by %d. New count: %d",
            category.value, location, removed, target.quantity,
        )
        if target.quantity <= 0:
            del self._groups[index]
            log.info("Removed group: %s at %s", category.value, location)
            if not self._groups:
                log.info("All groups removed, stopping idle timer")
                self._timer.disarm()

    def _replace_category(self, category: ThreatCategory, events: List[Event]) -> None:
        others = [g for g in self._groups if g.category != category]
        fresh = []
        for event in events:
            group = self._build_group(
                event.quantity, event.category,
                event.origin, event.destination, event.heading,
            )
            if group is not None:
                fresh.append(group)
        self._groups = others + fresh

    # --- Persistence and expiry ---

    def _persist(self) -> None:
        try:
            self.store.replace_all(self._groups)
        except Exception as exc:
            log.error("Failed to save state, keeping in-memory copy: %s", exc)

    def _reset_timer(self) -> None:
        if not self._groups:
            log.info("No active groups, idle timer not started")
            self._timer.disarm()
            return
        log.info(
            "Activity detected, idle timer reset to %.0f seconds",
            self._timer.duration_seconds,
        )
        self._timer.arm()

    def _on_timer_fired(self, token: int) -> None:
        with self._lock:
            if not self._timer.is_current(token):
                log.debug("Ignoring stale idle timer fire")
                return
            self._timer.mark_fired()

            landed = [LandedEvent.from_group(g) for g in self._groups]
            log.info("Idle timeout reached, clearing %d groups", len(landed))
            self._groups = []
            self._persist()
            if landed:
                self.notifications.put(ExpiryNotice(events=landed))
