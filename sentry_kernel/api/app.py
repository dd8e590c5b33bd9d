"""
Sentry Kernel API — FastAPI endpoints.

Exposes the kernel for inspection and manual operation:
- World state snapshot and single-group lookup
- Event batch ingestion (classifier wire format)
- Idle-expiry status
- View computation for already-resolved objects
- Audit queries
"""

from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from sentry_kernel.audit.store import AuditStore
from sentry_kernel.classification.parser import parse_events
from sentry_kernel.geo.view import ViewComputer
from sentry_kernel.models.geo import PlottableObject
from sentry_kernel.reconciler.state_manager import StateManager
from sentry_kernel.world_model.store import WorldStateStore


# --- Request/Response Models ---

class EventBatchRequest(BaseModel):
    events: list = []


class EventBatchResponse(BaseModel):
    batch_kind: Optional[str]
    accepted: int
    rejected: int
    state: dict


# --- Application Factory ---

def create_app(
    state_manager: Optional[StateManager] = None,
    audit_store: Optional[AuditStore] = None,
    view_computer: Optional[ViewComputer] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Sentry Kernel API",
        description="Airborne threat state reconciliation and map framing",
        version="0.1.0",
    )

    sm = state_manager or StateManager(WorldStateStore())
    audit = audit_store or AuditStore()
    vc = view_computer or ViewComputer()

    app.state.state_manager = sm
    app.state.audit_store = audit
    app.state.view_computer = vc

    # === WORLD STATE ===

    @app.get("/state")
    def get_state():
        """Current world state snapshot."""
        return sm.get_state().model_dump(mode="json")

    @app.get("/state/groups/{group_id}")
    def get_group(group_id: str):
        group = sm.get_group(group_id)
        if not group:
            raise HTTPException(404, "Group not found")
        return group.model_dump(mode="json")

    @app.post("/events", response_model=EventBatchResponse)
    def ingest_events(req: EventBatchRequest):
        """Apply one event batch, exactly as a classified report would."""
        events = parse_events({"events": req.events})
        kind = sm.update_state(events)
        return EventBatchResponse(
            batch_kind=kind.value if kind else None,
            accepted=len(events),
            rejected=len(req.events) - len(events),
            state=sm.get_state().model_dump(mode="json"),
        )

    @app.get("/expiry")
    def expiry_status():
        """Idle-expiry timer status."""
        return {
            "armed": sm.is_timer_armed,
            "idle_timeout_seconds": sm.idle_timeout_seconds,
            "tracked_groups": len(sm.get_state().groups),
        }

    # === VIEW ===

    @app.post("/view")
    def compute_view(objects: List[PlottableObject]):
        """Frame a camera around already-geocoded objects."""
        return vc.compute_view(objects).model_dump(mode="json")

    # === AUDIT ===

    @app.get("/audit/messages/{message_id}")
    def get_message(message_id: str):
        record = audit.get_message(message_id)
        if not record:
            raise HTTPException(404, "Message not found")
        return record.model_dump(mode="json")

    @app.get("/audit/messages/{message_id}/geocoding")
    def get_geocoding(message_id: str):
        """Every geocoding lookup made while rendering a message."""
        return [a.model_dump(mode="json") for a in audit.get_geocoding_attempts(message_id)]

    @app.get("/audit/maps/{message_id}")
    def get_map(message_id: str):
        record = audit.get_map_generation(message_id)
        if not record:
            raise HTTPException(404, "Map not found")
        return record.model_dump(mode="json")

    return app


# Default application instance
app = create_app()
