"""
Classifier seam — turns free-text reports into ordered Event batches.

The language-model call itself lives outside this package. What lives here
is the contract, a tolerant parser for the classifier's JSON payload and a
wrapper that turns any classifier failure into "no events".

Wire format accepted by parse_events():

    {"events": [
        {"event": "launch",   "details": {"quantity": 4, "item": "shahed",
                                          "from": "...", "to": "...",
                                          "direction": "north"}},
        {"event": "landed",   "details": {"item": "rocket", "city": "..."}},
        {"event": "alarm",    "details": {"item": "rocket", "region": "..."}}
    ]}
"""

import inspect
import json
import logging
from typing import Any, List, Optional, Protocol, Union

from json_repair import repair_json
from pydantic import BaseModel, ValidationError

from sentry_kernel.models.events import (
    AlarmEvent,
    ContinueEvent,
    Event,
    EventKind,
    LandedEvent,
    LaunchEvent,
)
from sentry_kernel.models.world import WorldState

log = logging.getLogger(__name__)


class ClassificationError(Exception):
    """Raised by a classifier that could not produce a result."""
    pass


class ClassificationResult(BaseModel):
    events: List[Event] = []
    raw_response: str = ""


class EventClassifier(Protocol):
    def classify(
        self,
        text: str,
        state: WorldState,
        reply_to_text: Optional[str] = None,
    ) -> Any:
        """Return a ClassificationResult, or an awaitable of one."""
        ...


def _load_payload(raw: Union[str, dict, None]) -> dict:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        data = json.loads(repair_json(raw) or "{}")
    return data if isinstance(data, dict) else {}


def _event_from_entry(entry: dict) -> Event:
    kind = entry.get("event")
    d = entry.get("details")
    if d is None:
        d = {}
    elif not isinstance(d, dict):
        raise ValueError(f"Event details must be an object, got {type(d).__name__}")
    if kind == EventKind.LAUNCH.value:
        return LaunchEvent(
            quantity=d.get("quantity"), category=d.get("item"),
            origin=d.get("from"), destination=d.get("to"),
            heading=d.get("direction"),
        )
    if kind == EventKind.CONTINUE.value:
        return ContinueEvent(
            quantity=d.get("quantity"), category=d.get("item"),
            origin=d.get("from"), destination=d.get("to"),
            heading=d.get("direction"),
        )
    if kind == EventKind.LANDED.value:
        return LandedEvent(
            quantity=d.get("quantity"), category=d.get("item"),
            location=d.get("city") or d.get("to") or d.get("from"),
        )
    if kind == EventKind.ALARM.value:
        return AlarmEvent(
            quantity=d.get("quantity"), category=d.get("item"),
            region=d.get("region"),
        )
    raise ValueError(f"Unknown event type: {kind!r}")


def parse_events(raw: Union[str, dict, None]) -> List[Event]:
    """Parse a classifier payload. Bad entries are logged and skipped."""
    try:
        payload = _load_payload(raw)
    except ValueError as exc:
        log.warning("Unparseable classifier payload: %s", exc)
        return []

    entries = payload.get("events")
    if not isinstance(entries, list):
        return []

    events: List[Event] = []
    for entry in entries:
        if not isinstance(entry, dict):
            log.warning("Skipping non-object event entry: %r", entry)
            continue
        try:
            events.append(_event_from_entry(entry))
        except (ValidationError, ValueError) as exc:
            log.warning("Skipping invalid event %r: %s", entry, exc)
    return events


def to_wire(event: Event) -> dict:
    """Inverse of parse_events() for one event, used in audit records."""
    if isinstance(event, LandedEvent):
        details = {"quantity": event.quantity, "city": event.location}
    elif isinstance(event, AlarmEvent):
        details = {"quantity": event.quantity, "region": event.region}
    else:
        details = {
            "quantity": event.quantity,
            "from": event.origin,
            "to": event.destination,
            "direction": event.heading,
        }
    details["item"] = event.category.value if event.category else None
    return {"event": event.kind, "details": details}


async def safe_classify(
    classifier: EventClassifier,
    text: str,
    state: WorldState,
    reply_to_text: Optional[str] = None,
) -> ClassificationResult:
    """Run a classifier; any failure degrades to an empty event list."""
    try:
        result = classifier.classify(text, state, reply_to_text)
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:
        log.error("Classifier failed: %s", exc)
        return ClassificationResult(events=[], raw_response=f"CLASSIFIER_ERROR: {exc}")

    if not isinstance(result, ClassificationResult):
        log.error("Classifier returned %s, expected ClassificationResult", type(result).__name__)
        return ClassificationResult(events=[], raw_response="CLASSIFIER_ERROR: bad result")
    return result
