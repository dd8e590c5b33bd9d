"""Tests for idle expiry: arming, resets, firing and the reset-wins race."""

import queue
import time

from sentry_kernel.models.config import StateConfig
from sentry_kernel.models.events import LandedEvent, LaunchEvent
from sentry_kernel.models.world import ThreatCategory
from sentry_kernel.reconciler.expiry import (
    ExpiryNotice,
    IdleExpiryTimer,
    ThreadingScheduler,
)
from sentry_kernel.reconciler.state_manager import StateManager
from sentry_kernel.world_model.store import WorldStateStore

from fakes import ManualScheduler


def _launch(qty, destination, category=ThreatCategory.SHAHED):
    return LaunchEvent(
        quantity=qty, category=category, origin="Kursk, Russia", destination=destination,
    )


class TestIdleExpiryTimer:
    def test_arm_replaces_previous_countdown(self):
        scheduler = ManualScheduler()
        fired = []
        timer = IdleExpiryTimer(30, fired.append, scheduler)

        timer.arm()
        timer.arm()

        assert [h.cancelled for h in scheduler.handles] == [True, False]
        assert all(h.delay == 30 for h in scheduler.handles)
        scheduler.handles[-1].callback()
        assert fired == [2]
        assert timer.is_current(2)
        assert not timer.is_current(1)

    def test_disarm_makes_tokens_stale(self):
        scheduler = ManualScheduler()
        timer = IdleExpiryTimer(30, lambda token: None, scheduler)
        timer.arm()
        timer.disarm()
        assert not timer.is_armed
        assert not timer.is_current(1)
        assert scheduler.handles[0].cancelled


class TestStateExpiry:
    def setup_method(self):
        self.store = WorldStateStore(db_path=":memory:")
        self.scheduler = ManualScheduler()
        self.channel = queue.Queue()
        self.manager = StateManager(
            self.store,
            StateConfig(idle_timeout_seconds=3600),
            scheduler=self.scheduler,
            notifications=self.channel,
        )

    def test_empty_manager_is_disarmed(self):
        assert not self.manager.is_timer_armed
        assert self.scheduler.handles == []

    def test_update_arms_timer(self):
        self.manager.update_state([_launch(2, "Kyiv, Ukraine")])
        assert self.manager.is_timer_armed
        assert self.scheduler.pending[0].delay == 3600

    def test_fire_clears_state_persists_and_notifies(self):
        self.manager.update_state([
            _launch(2, "Kyiv, Ukraine"),
            _launch(3, "Odesa, Ukraine", ThreatCategory.ROCKET),
        ])

        self.scheduler.fire_pending()

        assert self.manager.get_state().groups == []
        assert self.store.count() == 0
        assert not self.manager.is_timer_armed
        notice = self.channel.get_nowait()
        assert isinstance(notice, ExpiryNotice)
        assert notice.events == [
            LandedEvent(quantity=2, category=ThreatCategory.SHAHED, location="Kyiv, Ukraine"),
            LandedEvent(quantity=3, category=ThreatCategory.ROCKET, location="Odesa, Ukraine"),
        ]

    def test_every_update_resets_countdown(self):
        self.manager.update_state([_launch(2, "Kyiv, Ukraine")])
        self.manager.update_state([])
        self.manager.update_state([_launch(1, "Lviv, Ukraine")])

        assert len(self.scheduler.handles) == 3
        assert len(self.scheduler.pending) == 1

    def test_reset_wins_over_stale_fire(self):
        self.manager.update_state([_launch(2, "Kyiv, Ukraine")])
        stale = self.scheduler.handles[0]

        self.manager.update_state([_launch(1, "Lviv, Ukraine")])
        # The old countdown elapsed concurrently with the reset
        stale.callback()

        assert len(self.manager.get_state().groups) == 2
        assert self.channel.empty()
        assert self.manager.is_timer_armed

    def test_last_landed_disarms_immediately(self):
        self.manager.update_state([_launch(2, "Kyiv, Ukraine")])
        handle = self.scheduler.handles[0]

        self.manager.update_state([
            LandedEvent(category=ThreatCategory.SHAHED, location="Kyiv, Ukraine")
        ])

        assert handle.cancelled
        assert not self.manager.is_timer_armed
        assert self.scheduler.pending == []

    def test_no_notice_when_already_empty(self):
        self.manager.update_state([_launch(2, "Kyiv, Ukraine")])
        handle = self.scheduler.handles[0]
        self.manager.update_state([
            LandedEvent(category=ThreatCategory.SHAHED, location="Kyiv, Ukraine")
        ])

        handle.callback()

        assert self.channel.empty()

    def test_close_cancels_countdown(self):
        self.manager.update_state([_launch(2, "Kyiv, Ukraine")])
        self.manager.close()
        assert self.scheduler.pending == []


class TestThreadingExpiry:
    def test_timer_waits_for_full_quiet_period(self):
        channel = queue.Queue()
        manager = StateManager(
            WorldStateStore(),
            StateConfig(idle_timeout_seconds=0.4),
            scheduler=ThreadingScheduler(),
            notifications=channel,
        )
        try:
            manager.update_state([_launch(2, "Kyiv, Ukraine")])
            time.sleep(0.25)
            manager.update_state([])
            time.sleep(0.25)
            # 0.5s since the first update, only 0.25s since the reset
            assert len(manager.get_state().groups) == 1

            notice = channel.get(timeout=5)
            assert len(notice.events) == 1
            assert manager.get_state().groups == []
        finally:
            manager.close()
