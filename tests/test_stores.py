"""Tests for the world state store and the audit store."""

import sqlite3

from sentry_kernel.audit.store import AuditStore
from sentry_kernel.models.audit import (
    GeocodingAttempt,
    MapGenerationRecord,
    MessageRecord,
)
from sentry_kernel.models.world import ActiveObjectGroup, ThreatCategory
from sentry_kernel.world_model.store import WorldStateStore


def _group(destination: str, quantity: int = 1, heading=None) -> ActiveObjectGroup:
    return ActiveObjectGroup(
        quantity=quantity,
        category=ThreatCategory.SHAHED,
        origin="Sumy Oblast, Ukraine",
        destination=destination,
        heading=heading,
    )


class TestWorldStateStore:
    def setup_method(self):
        self.store = WorldStateStore(db_path=":memory:")

    def test_empty_store_loads_nothing(self):
        assert self.store.load_all() == []

    def test_replace_all_round_trip_keeps_order(self):
        groups = [_group("Kyiv, Ukraine", 3, "north"), _group("Lviv, Ukraine"), _group("Odesa, Ukraine")]
        self.store.replace_all(groups)

        loaded = self.store.load_all()
        assert [g.destination for g in loaded] == ["Kyiv, Ukraine", "Lviv, Ukraine", "Odesa, Ukraine"]
        assert loaded[0].id == groups[0].id
        assert loaded[0].heading == "north"
        assert loaded[0].quantity == 3
        assert loaded[0].category == ThreatCategory.SHAHED

    def test_replace_all_overwrites(self):
        self.store.replace_all([_group("Kyiv, Ukraine"), _group("Lviv, Ukraine")])
        self.store.replace_all([_group("Odesa, Ukraine")])
        assert self.store.count() == 1

        self.store.replace_all([])
        assert self.store.count() == 0

    def test_file_store_survives_reopen(self, tmp_path):
        path = str(tmp_path / "db" / "sentry.sqlite")
        store = WorldStateStore(path)
        store.replace_all([_group("Kyiv, Ukraine", 2)])
        store.close()

        reopened = WorldStateStore(path)
        assert [g.quantity for g in reopened.load_all()] == [2]
        reopened.close()

    def test_migrates_table_without_heading(self, tmp_path):
        path = str(tmp_path / "legacy.sqlite")
        conn = sqlite3.connect(path)
        conn.execute("""
            CREATE TABLE world_state (
                object_id TEXT PRIMARY KEY,
                quantity INTEGER NOT NULL,
                category TEXT NOT NULL,
                origin TEXT NOT NULL,
                destination TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.execute(
            "INSERT INTO world_state VALUES ('g1', 2, 'rocket', 'A', 'B', '2026-01-01T00:00:00')"
        )
        conn.commit()
        conn.close()

        store = WorldStateStore(path)
        loaded = store.load_all()
        assert len(loaded) == 1
        assert loaded[0].heading is None
        store.close()


class TestAuditStore:
    def setup_method(self):
        self.audit = AuditStore(db_path=":memory:")

    def test_message_round_trip(self):
        self.audit.log_message(MessageRecord(
            message_id="101",
            source="channel_1",
            text="3 ракеты на Днепр",
            reply_to_id="100",
            events=[{"event": "launch", "details": {"item": "rocket"}}],
            raw_response='{"events": []}',
        ))

        record = self.audit.get_message("101")
        assert record.text == "3 ракеты на Днепр"
        assert record.reply_to_id == "100"
        assert record.events[0]["event"] == "launch"
        assert record.created_at is not None

    def test_missing_message(self):
        assert self.audit.get_message("nope") is None

    def test_geocoding_attempts_by_message(self):
        self.audit.log_geocoding_attempt(GeocodingAttempt(
            message_id="7", location_name="Kyiv, Ukraine",
            latitude=50.45, longitude=30.52, success=True,
        ))
        self.audit.log_geocoding_attempt(GeocodingAttempt(
            message_id="7", location_name="Nowhere", success=False,
        ))
        self.audit.log_geocoding_attempt(GeocodingAttempt(
            message_id="8", location_name="Lviv, Ukraine", success=False,
        ))

        attempts = self.audit.get_geocoding_attempts("7")
        assert [a.location_name for a in attempts] == ["Kyiv, Ukraine", "Nowhere"]
        assert attempts[0].success is True
        assert attempts[1].latitude is None

    def test_map_generation_is_one_per_message(self):
        self.audit.log_map_generation(MapGenerationRecord(
            message_id="7", artifact="PROCESS_FAIL", view_parameters={"error": "x"},
        ))
        self.audit.log_map_generation(MapGenerationRecord(
            message_id="7", artifact="maps/map_7.html", plottable_objects=[{"id": "a"}],
        ))

        record = self.audit.get_map_generation("7")
        assert record.artifact == "maps/map_7.html"
        assert record.plottable_objects == [{"id": "a"}]
        assert self.audit.get_map_generation("8") is None
