"""
World State Store — durable copy of the active object groups.

Behavioral Contract:
- load_all() is called once at startup; groups come back in insertion order.
- replace_all() is a destructive overwrite (delete + insert in one
  transaction). There is no append log and no diffing.
- The in-memory StateManager is authoritative; this store is best-effort.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Protocol, Sequence

from sentry_kernel.models.world import ActiveObjectGroup

log = logging.getLogger(__name__)


class GroupStore(Protocol):
    """Storage contract used by the StateManager."""

    def load_all(self) -> List[ActiveObjectGroup]:
        ...

    def replace_all(self, groups: Sequence[ActiveObjectGroup]) -> None:
        ...


class WorldStateStore:
    """
    SQLite-backed world state.
    Pass ":memory:" for an ephemeral store.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode = WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the world_state table and migrate older layouts."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS world_state (
                object_id TEXT PRIMARY KEY,
                quantity INTEGER NOT NULL,
                category TEXT NOT NULL,
                origin TEXT NOT NULL,
                destination TEXT NOT NULL,
                heading TEXT,
                updated_at TEXT NOT NULL
            )
        """)
        columns = {
            row["name"]
            for row in self._conn.execute("PRAGMA table_info(world_state)")
        }
        if "heading" not in columns:
            # Databases created before headings were tracked
            log.info("Migrating world_state: adding 'heading' column")
            self._conn.execute("ALTER TABLE world_state ADD COLUMN heading TEXT")
        self._conn.commit()

    def load_all(self) -> List[ActiveObjectGroup]:
        """Load every stored group. A read failure yields an empty state."""
        try:
            rows = self._conn.execute(
                "SELECT object_id, quantity, category, origin, destination, "
                "heading, updated_at FROM world_state ORDER BY rowid"
            ).fetchall()
        except sqlite3.Error as exc:
            log.error("Error loading world state: %s", exc)
            return []

        groups = []
        for row in rows:
            try:
                groups.append(ActiveObjectGroup(
                    id=row["object_id"],
                    quantity=row["quantity"],
                    category=row["category"],
                    origin=row["origin"],
                    destination=row["destination"],
                    heading=row["heading"],
                    updated_at=datetime.fromisoformat(row["updated_at"]),
                ))
            except ValueError as exc:
                log.warning("Skipping unreadable world_state row %s: %s", row["object_id"], exc)
        return groups

    def replace_all(self, groups: Sequence[ActiveObjectGroup]) -> None:
        """Overwrite the stored state with `groups`. Raises sqlite3.Error."""
        with self._conn:
            self._conn.execute("DELETE FROM world_state")
            self._conn.executemany(
                """
                INSERT INTO world_state (
                    object_id, quantity, category, origin, destination,
                    heading, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        g.id,
                        g.quantity,
                        g.category.value,
                        g.origin,
                        g.destination,
                        g.heading,
                        g.updated_at.isoformat(),
                    )
                    for g in groups
                ],
            )

    def count(self) -> int:
        """Number of stored groups."""
        row = self._conn.execute("SELECT COUNT(*) AS cnt FROM world_state").fetchone()
        return row["cnt"]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
