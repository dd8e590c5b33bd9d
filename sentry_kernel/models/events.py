"""Classified instructions describing a change to the world state."""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from sentry_kernel.models.world import ActiveObjectGroup, ThreatCategory


class EventKind(str, Enum):
    LAUNCH = "launch"       # New group in the air
    CONTINUE = "continue"   # Existing group updated (or created if unknown)
    LANDED = "landed"       # Impact / shot down / disappeared
    ALARM = "alarm"         # Diffuse, non-directional threat over a region


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class LaunchEvent(_EventBase):
    kind: Literal["launch"] = "launch"
    quantity: Optional[int] = None
    category: Optional[ThreatCategory] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    heading: Optional[str] = None


class ContinueEvent(_EventBase):
    kind: Literal["continue"] = "continue"
    quantity: Optional[int] = None
    category: Optional[ThreatCategory] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    heading: Optional[str] = None


class LandedEvent(_EventBase):
    kind: Literal["landed"] = "landed"
    quantity: Optional[int] = None      # None = the whole matched group
    category: Optional[ThreatCategory] = None
    location: Optional[str] = None      # Matches a group's destination or origin

    @classmethod
    def from_group(cls, group: ActiveObjectGroup) -> "LandedEvent":
        """Synthetic event used when a group is cleared without a report."""
        return cls(
            quantity=group.quantity,
            category=group.category,
            location=group.destination,
        )


class AlarmEvent(_EventBase):
    kind: Literal["alarm"] = "alarm"
    quantity: Optional[int] = None
    category: Optional[ThreatCategory] = None
    region: Optional[str] = None


Event = Annotated[
    Union[LaunchEvent, ContinueEvent, LandedEvent, AlarmEvent],
    Field(discriminator="kind"),
]
