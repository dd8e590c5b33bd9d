"""Sentry Kernel data models."""

from sentry_kernel.models.audit import (
    GeocodingAttempt,
    MapGenerationRecord,
    MessageRecord,
)
from sentry_kernel.models.config import (
    GeocoderConfig,
    RenderConfig,
    SentryConfig,
    StateConfig,
    ViewConfig,
)
from sentry_kernel.models.events import (
    AlarmEvent,
    ContinueEvent,
    Event,
    EventKind,
    LandedEvent,
    LaunchEvent,
)
from sentry_kernel.models.geo import (
    Bounds,
    Coordinates,
    MapData,
    MapResult,
    MapView,
    PlottableObject,
)
from sentry_kernel.models.world import ActiveObjectGroup, ThreatCategory, WorldState

__all__ = [
    "ActiveObjectGroup",
    "AlarmEvent",
    "Bounds",
    "ContinueEvent",
    "Coordinates",
    "Event",
    "EventKind",
    "GeocoderConfig",
    "GeocodingAttempt",
    "LandedEvent",
    "LaunchEvent",
    "MapData",
    "MapGenerationRecord",
    "MapResult",
    "MapView",
    "MessageRecord",
    "PlottableObject",
    "RenderConfig",
    "SentryConfig",
    "StateConfig",
    "ThreatCategory",
    "ViewConfig",
    "WorldState",
]
