"""World State — the live picture of tracked airborne object groups."""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class ThreatCategory(str, Enum):
    SHAHED = "shahed"   # Loitering munitions / attack drones
    ROCKET = "rocket"   # Cruise and ballistic missiles, guided bombs


def new_group_id() -> str:
    return uuid4().hex


class ActiveObjectGroup(BaseModel):
    """A cluster of threats of one category heading to one destination."""

    id: str = Field(default_factory=new_group_id)
    quantity: int = Field(ge=1)
    category: ThreatCategory
    origin: str = Field(min_length=1)               # Free text, e.g. "Sumy Oblast, Ukraine"
    destination: str = Field(min_length=1)
    heading: Optional[str] = None                   # Cardinal word or place; None = static
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class WorldState(BaseModel):
    """Exported snapshot. Always a copy of the owner's collection."""

    groups: List[ActiveObjectGroup] = []

    @property
    def is_empty(self) -> bool:
        return not self.groups

    def total_quantity(self) -> int:
        return sum(g.quantity for g in self.groups)
