"""
Report Processor — wires one incoming report through the kernel.

  report → classifier → StateManager.update_state → MapPipeline → outcome

Reports that classify to no events stop early and do not touch the idle
timer; chatter such as "stay safe" must not keep stale groups alive.
Delivery of the outcome (posting to a channel) is the caller's job.
"""

import asyncio
import logging
import queue
from collections import OrderedDict
from datetime import timezone
from typing import Awaitable, Callable, List, Optional

from pydantic import BaseModel

from sentry_kernel.audit.store import AuditStore
from sentry_kernel.classification.parser import EventClassifier, safe_classify, to_wire
from sentry_kernel.models.audit import MessageRecord
from sentry_kernel.models.events import Event
from sentry_kernel.models.geo import MapResult
from sentry_kernel.models.world import WorldState
from sentry_kernel.reconciler.expiry import ExpiryNotice
from sentry_kernel.reconciler.state_manager import StateManager
from sentry_kernel.rendering.pipeline import MapPipeline

log = logging.getLogger(__name__)

TIMEOUT_SOURCE = "SYSTEM_TIMEOUT"


class Report(BaseModel):
    message_id: str
    text: str
    source: str = "unknown"
    reply_to_id: Optional[str] = None
    reply_to_text: Optional[str] = None


class ReportOutcome(BaseModel):
    message_id: str
    skipped: bool = False                   # Duplicate delivery
    events: List[Event] = []
    state: WorldState = WorldState()
    map: Optional[MapResult] = None
    all_clear: bool = False

    @property
    def should_publish(self) -> bool:
        """Worth posting: a map to show, or an all-clear status."""
        return not self.skipped and (self.map is not None or self.all_clear)


class ReportProcessor:
    """Processes reports one at a time against a shared StateManager."""

    def __init__(
        self,
        state_manager: StateManager,
        classifier: EventClassifier,
        pipeline: MapPipeline,
        audit: Optional[AuditStore] = None,
        dedup_window: int = 200,
    ):
        self.state_manager = state_manager
        self.classifier = classifier
        self.pipeline = pipeline
        self.audit = audit
        self.dedup_window = dedup_window
        self._seen: "OrderedDict[str, None]" = OrderedDict()
        self._lock = asyncio.Lock()

    def _is_duplicate(self, message_id: str) -> bool:
        if message_id in self._seen:
            return True
        self._seen[message_id] = None
        if len(self._seen) > self.dedup_window:
            self._seen.popitem(last=False)
        return False

    async def process(self, report: Report) -> ReportOutcome:
        async with self._lock:
            if self._is_duplicate(report.message_id):
                log.info("Message %s already processed, skipping", report.message_id)
                return ReportOutcome(message_id=report.message_id, skipped=True)

            log.info("Processing message %s: %.60r", report.message_id, report.text)
            result = await safe_classify(
                self.classifier,
                report.text,
                self.state_manager.get_state(),
                report.reply_to_text,
            )
            if self.audit is not None:
                self.audit.log_message(MessageRecord(
                    message_id=report.message_id,
                    source=report.source,
                    text=report.text,
                    reply_to_id=report.reply_to_id,
                    events=[to_wire(e) for e in result.events],
                    raw_response=result.raw_response,
                ))

            if not result.events:
                log.info("No actionable events in message %s", report.message_id)
                return ReportOutcome(
                    message_id=report.message_id,
                    state=self.state_manager.get_state(),
                )

            self.state_manager.update_state(result.events)
            state = self.state_manager.get_state()
            map_result = await self.pipeline.generate(state.groups, report.message_id)
            return ReportOutcome(
                message_id=report.message_id,
                events=result.events,
                state=state,
                map=map_result,
                all_clear=state.is_empty,
            )

    async def handle_expiry(self, notice: ExpiryNotice) -> ReportOutcome:
        """Record an idle-expiry clear and report it as an all-clear."""
        cleared_at = notice.cleared_at
        if cleared_at.tzinfo is None:
            # Naive stamps are UTC
            cleared_at = cleared_at.replace(tzinfo=timezone.utc)
        message_id = f"timeout_{int(cleared_at.timestamp() * 1000)}"
        log.info("Idle expiry cleared %d groups", len(notice.events))
        if self.audit is not None:
            self.audit.log_message(MessageRecord(
                message_id=message_id,
                source=TIMEOUT_SOURCE,
                text="System timeout: all objects cleared.",
                events=[to_wire(e) for e in notice.events],
                raw_response="SYSTEM_GENERATED",
            ))
        return ReportOutcome(
            message_id=message_id,
            events=notice.events,
            state=self.state_manager.get_state(),
            all_clear=True,
        )


async def drain_notifications(
    channel: "queue.Queue[ExpiryNotice]",
    handler: Callable[[ExpiryNotice], Awaitable[None]],
    stop_event: Optional[asyncio.Event] = None,
    poll_seconds: float = 1.0,
) -> None:
    """Forward expiry notices from the timer thread to an async handler."""
    if stop_event is None:
        stop_event = asyncio.Event()

    while not stop_event.is_set():
        try:
            notice = await asyncio.to_thread(channel.get, True, poll_seconds)
        except queue.Empty:
            continue
        try:
            await handler(notice)
        except Exception as exc:
            log.error("Expiry handler failed: %s", exc)
