"""Decides how a whole event batch is applied."""

from enum import Enum
from typing import Sequence

from sentry_kernel.models.events import ContinueEvent, Event
from sentry_kernel.models.world import ThreatCategory

# Upstream periodically restates the complete picture for this category.
SUMMARY_CATEGORY = ThreatCategory.SHAHED


class BatchKind(str, Enum):
    SUMMARY = "summary"           # Full replacement of SUMMARY_CATEGORY groups
    INCREMENTAL = "incremental"   # Apply events one at a time, in order


def classify_batch(events: Sequence[Event]) -> BatchKind:
    """
    A batch is a full summary iff it holds two or more events and every one
    of them is a `continue` for SUMMARY_CATEGORY. Anything else is a delta.
    """
    if len(events) < 2:
        return BatchKind.INCREMENTAL
    if all(
        isinstance(e, ContinueEvent) and e.category == SUMMARY_CATEGORY
        for e in events
    ):
        return BatchKind.SUMMARY
    return BatchKind.INCREMENTAL
