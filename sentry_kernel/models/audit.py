"""Audit records for incoming reports, geocoding lookups and rendered maps."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class MessageRecord(BaseModel):
    """One incoming report and its classification."""

    message_id: str
    source: str                             # Channel id, or "SYSTEM_TIMEOUT"
    text: str
    reply_to_id: Optional[str] = None
    events: List[dict] = []
    raw_response: Optional[str] = None
    created_at: Optional[datetime] = None


class GeocodingAttempt(BaseModel):
    message_id: str
    location_name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    success: bool
    created_at: Optional[datetime] = None


class MapGenerationRecord(BaseModel):
    """One map per message. `artifact` holds a path or a failure marker."""

    message_id: str
    artifact: Optional[str] = None
    plottable_objects: List[dict] = []
    view_parameters: dict = {}
    created_at: Optional[datetime] = None
