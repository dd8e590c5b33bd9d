"""Tests for the report processor: dedup, state updates, maps and expiry."""

import asyncio
import queue
import time
from datetime import datetime

import pytest

from sentry_kernel.audit.store import AuditStore
from sentry_kernel.classification.parser import ClassificationResult
from sentry_kernel.geo.geocoder import Geocoder
from sentry_kernel.models.config import StateConfig
from sentry_kernel.models.events import LandedEvent, LaunchEvent
from sentry_kernel.models.world import ThreatCategory
from sentry_kernel.reconciler.expiry import ExpiryNotice
from sentry_kernel.reconciler.state_manager import StateManager
from sentry_kernel.reports.processor import (
    TIMEOUT_SOURCE,
    Report,
    ReportProcessor,
    drain_notifications,
)
from sentry_kernel.rendering.pipeline import MapPipeline
from sentry_kernel.world_model.store import WorldStateStore

from fakes import FakeProvider, ManualScheduler, RecordingRenderer

PLACES = {"Kursk": (51.73, 36.19), "Sumy": (50.91, 34.80)}


class ScriptedClassifier:
    """Returns canned events keyed by report text."""

    def __init__(self, script):
        self.script = script
        self.calls = 0

    def classify(self, text, state, reply_to_text=None):
        self.calls += 1
        return ClassificationResult(events=self.script.get(text, []), raw_response=text)


LAUNCH = LaunchEvent(
    quantity=3, category=ThreatCategory.SHAHED, origin="Kursk", destination="Sumy",
)
LANDED = LandedEvent(category=ThreatCategory.SHAHED, location="Sumy")


class TestReportProcessor:
    def setup_method(self):
        self.scheduler = ManualScheduler()
        self.audit = AuditStore()
        self.state = StateManager(
            WorldStateStore(), StateConfig(idle_timeout_seconds=60), self.scheduler,
        )
        self.classifier = ScriptedClassifier({
            "launch": [LAUNCH],
            "landed": [LANDED],
        })
        self.processor = ReportProcessor(
            self.state,
            self.classifier,
            MapPipeline(Geocoder(FakeProvider(PLACES)), RecordingRenderer(), audit=self.audit),
            audit=self.audit,
            dedup_window=2,
        )

    def _process(self, message_id, text):
        return asyncio.run(self.processor.process(Report(message_id=message_id, text=text)))

    def test_launch_produces_map(self):
        outcome = self._process("1", "launch")

        assert outcome.map.artifact == "map_1.png"
        assert outcome.state.total_quantity() == 3
        assert not outcome.all_clear
        assert outcome.should_publish

        record = self.audit.get_message("1")
        assert record.events[0]["details"]["from"] == "Kursk"

    def test_duplicate_delivery_skipped(self):
        self._process("1", "launch")
        outcome = self._process("1", "launch")

        assert outcome.skipped
        assert not outcome.should_publish
        assert self.classifier.calls == 1
        assert self.state.get_state().total_quantity() == 3

    def test_dedup_window_is_bounded(self):
        self._process("1", "chatter")
        self._process("2", "chatter")
        self._process("3", "chatter")
        assert not self._process("1", "chatter").skipped

    def test_no_events_leaves_timer_untouched(self):
        self._process("1", "launch")
        handles = len(self.scheduler.handles)

        outcome = self._process("2", "stay safe")

        assert len(self.scheduler.handles) == handles
        assert outcome.map is None
        assert not outcome.should_publish
        assert self.audit.get_message("2").events == []

    def test_last_landed_reports_all_clear(self):
        self._process("1", "launch")
        outcome = self._process("2", "landed")

        assert outcome.all_clear
        assert outcome.map is None
        assert outcome.should_publish
        assert not self.state.is_timer_armed

    def test_handle_expiry_logs_system_message(self):
        notice = ExpiryNotice(
            events=[LandedEvent(quantity=3, category=ThreatCategory.SHAHED, location="Sumy")],
            cleared_at=datetime(2024, 1, 1, 12, 0, 0),
        )

        outcome = asyncio.run(self.processor.handle_expiry(notice))

        assert outcome.all_clear
        assert outcome.message_id == "timeout_1704110400000"
        record = self.audit.get_message(outcome.message_id)
        assert record.source == TIMEOUT_SOURCE
        assert record.events[0]["details"]["quantity"] == 3


    @pytest.mark.skipif(not hasattr(time, "tzset"), reason="needs time.tzset")
    def test_expiry_id_independent_of_host_timezone(self, monkeypatch):
        monkeypatch.setenv("TZ", "Europe/Kyiv")
        time.tzset()
        try:
            notice = ExpiryNotice(events=[], cleared_at=datetime(2024, 1, 1, 12, 0, 0))
            outcome = asyncio.run(self.processor.handle_expiry(notice))
        finally:
            monkeypatch.undo()
            time.tzset()
        assert outcome.message_id == "timeout_1704110400000"

class TestDrainNotifications:
    def test_forwards_notices_until_stopped(self):
        channel = queue.Queue()
        received = []

        async def run():
            stop = asyncio.Event()

            async def handler(notice):
                received.append(notice)
                stop.set()

            channel.put(ExpiryNotice(events=[]))
            await asyncio.wait_for(
                drain_notifications(channel, handler, stop, poll_seconds=0.05), timeout=5,
            )

        asyncio.run(run())
        assert len(received) == 1

    def test_handler_errors_do_not_stop_the_loop(self):
        channel = queue.Queue()
        calls = []

        async def run():
            stop = asyncio.Event()

            async def handler(notice):
                calls.append(notice)
                if len(calls) == 1:
                    raise RuntimeError("post failed")
                stop.set()

            channel.put(ExpiryNotice(events=[]))
            channel.put(ExpiryNotice(events=[]))
            await asyncio.wait_for(
                drain_notifications(channel, handler, stop, poll_seconds=0.05), timeout=5,
            )

        asyncio.run(run())
        assert len(calls) == 2
