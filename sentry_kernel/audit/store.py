"""
Audit Store — append-mostly record of what the kernel saw and produced.

Three tables:
- messages: incoming reports with their classified events and raw response.
- geocoding_log: every provider lookup, keyed by the triggering message.
- map_generation_log: one row per message (insert-or-replace), holding the
  artifact path or a failure marker plus the objects and view used.

Message ids are stored as text; system-generated messages (idle expiry)
use ids that never collide with upstream ones.
"""

import json
import sqlite3
from pathlib import Path
from typing import List, Optional

from sentry_kernel.models.audit import (
    GeocodingAttempt,
    MapGenerationRecord,
    MessageRecord,
)


class AuditStore:
    """SQLite audit log. Pass ":memory:" for an ephemeral store."""

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                message_id TEXT PRIMARY KEY,
                source TEXT NOT NULL,
                message_text TEXT NOT NULL,
                reply_to_id TEXT,
                events_json TEXT,
                raw_response TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_source ON messages(source)
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS geocoding_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                message_id TEXT NOT NULL,
                location_name TEXT NOT NULL,
                latitude REAL,
                longitude REAL,
                success INTEGER NOT NULL CHECK (success IN (0, 1)),
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_geo_message ON geocoding_log(message_id)
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS map_generation_log (
                message_id TEXT PRIMARY KEY,
                artifact TEXT,
                plottable_objects_json TEXT,
                view_parameters_json TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.commit()

    # --- Messages ---

    def log_message(self, record: MessageRecord) -> None:
        """Insert or replace a message record."""
        self._conn.execute(
            """
            INSERT OR REPLACE INTO messages (
                message_id, source, message_text, reply_to_id,
                events_json, raw_response
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                record.message_id,
                record.source,
                record.text,
                record.reply_to_id,
                json.dumps(record.events, default=str),
                record.raw_response,
            ),
        )
        self._conn.commit()

    def get_message(self, message_id: str) -> Optional[MessageRecord]:
        row = self._conn.execute(
            "SELECT * FROM messages WHERE message_id = ?", (message_id,)
        ).fetchone()
        if not row:
            return None
        return MessageRecord(
            message_id=row["message_id"],
            source=row["source"],
            text=row["message_text"],
            reply_to_id=row["reply_to_id"],
            events=json.loads(row["events_json"] or "[]"),
            raw_response=row["raw_response"],
            created_at=row["created_at"],
        )

    # --- Geocoding ---

    def log_geocoding_attempt(self, attempt: GeocodingAttempt) -> None:
        self._conn.execute(
            """
            INSERT INTO geocoding_log (
                message_id, location_name, latitude, longitude, success
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                attempt.message_id,
                attempt.location_name,
                attempt.latitude,
                attempt.longitude,
                int(attempt.success),
            ),
        )
        self._conn.commit()

    def get_geocoding_attempts(self, message_id: str) -> List[GeocodingAttempt]:
        """All lookups made while rendering a message, oldest first."""
        rows = self._conn.execute(
            "SELECT * FROM geocoding_log WHERE message_id = ? ORDER BY id",
            (message_id,),
        ).fetchall()
        return [
            GeocodingAttempt(
                message_id=r["message_id"],
                location_name=r["location_name"],
                latitude=r["latitude"],
                longitude=r["longitude"],
                success=bool(r["success"]),
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # --- Map generation ---

    def log_map_generation(self, record: MapGenerationRecord) -> None:
        """Record the map for a message, replacing any earlier attempt."""
        self._conn.execute(
            """
            INSERT OR REPLACE INTO map_generation_log (
                message_id, artifact, plottable_objects_json, view_parameters_json
            ) VALUES (?, ?, ?, ?)
            """,
            (
                record.message_id,
                record.artifact,
                json.dumps(record.plottable_objects, default=str),
                json.dumps(record.view_parameters, default=str),
            ),
        )
        self._conn.commit()

    def get_map_generation(self, message_id: str) -> Optional[MapGenerationRecord]:
        row = self._conn.execute(
            "SELECT * FROM map_generation_log WHERE message_id = ?", (message_id,)
        ).fetchone()
        if not row:
            return None
        return MapGenerationRecord(
            message_id=row["message_id"],
            artifact=row["artifact"],
            plottable_objects=json.loads(row["plottable_objects_json"] or "[]"),
            view_parameters=json.loads(row["view_parameters_json"] or "{}"),
            created_at=row["created_at"],
        )

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
