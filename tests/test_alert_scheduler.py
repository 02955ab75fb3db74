import logging
import threading
import time
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from alithos.alert_scheduler import AlertScheduler
from alithos.conditions import ConditionEvaluator
from alithos.config import Config
from alithos.models import AlertCondition


@pytest.fixture
def dispatcher():
    return MagicMock()


@pytest.fixture
def scheduler_factory():
    return MagicMock()


@pytest.fixture
def make_scheduler(fetcher, dispatcher, clock, scheduler_factory):
    def _make(persistence=None):
        return AlertScheduler(
            evaluator=ConditionEvaluator(fetcher),
            dispatcher=dispatcher,
            persistence=persistence,
            interval_seconds=5,
            clock=clock,
            scheduler_factory=scheduler_factory,
        )
    return _make


class TestRegistry:

    def test_add_starts_tick_loop_once(self, make_scheduler, make_alert, scheduler_factory):
        scheduler = make_scheduler()
        assert not scheduler.is_running

        scheduler.add_alert(make_alert(alert_id="a"))
        scheduler.add_alert(make_alert(alert_id="b"))

        assert scheduler.is_running
        scheduler_factory.assert_called_once()
        scheduler_factory.return_value.start.assert_called_once()

    def test_remove_last_alert_stops_tick_loop(self, make_scheduler, make_alert, scheduler_factory):
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(alert_id="a"))
        scheduler.add_alert(make_alert(alert_id="b"))

        scheduler.remove_alert("a")
        assert scheduler.is_running

        scheduler.remove_alert("b")
        assert not scheduler.is_running
        scheduler_factory.return_value.shutdown.assert_called_once_with(wait=False)

    def test_add_replaces_same_id(self, make_scheduler, make_alert):
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(alert_id="a"))
        scheduler.add_alert(make_alert(alert_id="a", market_id="m2"))

        assert len(scheduler.get_all_alerts()) == 1
        assert scheduler.get_alert("a").market_id == "m2"

    def test_update_merges_fields(self, make_scheduler, make_alert):
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(alert_id="a"))

        updated = scheduler.update_alert("a", is_active=False)

        assert updated.is_active is False
        assert scheduler.get_alert("a").is_active is False
        assert scheduler.get_alert("a").name == "Alert a"

    def test_update_unknown_returns_none(self, make_scheduler):
        assert make_scheduler().update_alert("missing", is_active=False) is None

    def test_load_replaces_registry(self, make_scheduler, make_alert):
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(alert_id="old"))

        scheduler.load_alerts([make_alert(alert_id="x"), make_alert(alert_id="y")])

        assert {a.id for a in scheduler.get_all_alerts()} == {"x", "y"}
        assert scheduler.is_running

    def test_load_empty_stops(self, make_scheduler, make_alert):
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert())
        scheduler.load_alerts([])
        assert not scheduler.is_running

    def test_status(self, make_scheduler, make_alert):
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(alert_id="a"))
        scheduler.add_alert(make_alert(alert_id="b", is_active=False))

        status = scheduler.get_status()

        assert status["alert_count"] == 2
        assert status["active_alert_count"] == 1
        assert status["interval_seconds"] == 5


class TestTickLoop:

    def test_job_wiring(self, make_scheduler, make_alert, scheduler_factory):
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert())

        kwargs = scheduler_factory.return_value.add_job.call_args.kwargs
        assert kwargs["func"] == scheduler._safe_check_alerts
        assert isinstance(kwargs["trigger"], IntervalTrigger)
        assert kwargs["trigger"].interval == timedelta(seconds=5)
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True

    def test_interval_defaults_to_config(self, make_alert, scheduler_factory):
        scheduler = AlertScheduler(scheduler_factory=scheduler_factory)
        scheduler.add_alert(make_alert(conditions=[]))

        trigger = scheduler_factory.return_value.add_job.call_args.kwargs["trigger"]
        assert trigger.interval == timedelta(seconds=Config.ALERT_CHECK_INTERVAL_SECONDS)

    def test_default_factory_runs_real_scheduler(self, make_alert, dispatcher):
        scheduler = AlertScheduler(dispatcher=dispatcher, interval_seconds=60)
        scheduler.add_alert(make_alert(conditions=[]))
        try:
            background = scheduler._scheduler
            assert isinstance(background, BackgroundScheduler)
            assert background.running
            assert scheduler.get_status()["next_run_time"] is not None
        finally:
            scheduler.remove_alert("alert-1")

        assert not scheduler.is_running
        assert not background.running

    def test_concurrent_adds_start_one_scheduler(self, make_alert, fetcher, dispatcher, clock):
        started = []

        def slow_factory():
            time.sleep(0.05)
            background = MagicMock()
            started.append(background)
            return background

        scheduler = AlertScheduler(
            evaluator=ConditionEvaluator(fetcher),
            dispatcher=dispatcher,
            clock=clock,
            scheduler_factory=slow_factory,
        )
        threads = [
            threading.Thread(target=scheduler.add_alert, args=(make_alert(alert_id=f"a{i}"),))
            for i in range(4)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(started) == 1
        assert scheduler.is_running

    def test_add_during_stop_restarts_loop(self, make_alert, fetcher, dispatcher, clock):
        stopping = threading.Event()
        started = []

        def factory():
            background = MagicMock()

            def slow_shutdown(wait):
                stopping.set()
                time.sleep(0.05)

            background.shutdown.side_effect = slow_shutdown
            started.append(background)
            return background

        scheduler = AlertScheduler(
            evaluator=ConditionEvaluator(fetcher),
            dispatcher=dispatcher,
            clock=clock,
            scheduler_factory=factory,
        )
        scheduler.add_alert(make_alert(alert_id="a"))

        remover = threading.Thread(target=scheduler.remove_alert, args=("a",))
        remover.start()
        assert stopping.wait(timeout=2)
        scheduler.add_alert(make_alert(alert_id="b"))
        remover.join()

        assert [a.id for a in scheduler.get_all_alerts()] == ["b"]
        assert scheduler.is_running
        assert len(started) == 2

    def test_shutdown_keeps_registry(self, make_scheduler, make_alert, scheduler_factory):
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert())

        scheduler.shutdown()

        assert not scheduler.is_running
        assert scheduler.get_alert("alert-1") is not None


class TestCheckAlerts:

    def test_triggers_when_all_conditions_pass(self, make_scheduler, make_alert, fetcher, dispatcher, clock):
        fetcher.get_price.return_value = 65.0
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert())

        assert scheduler.check_alerts() == ["alert-1"]
        dispatcher.dispatch.assert_called_once()
        assert scheduler.get_alert("alert-1").last_triggered == clock.now

    def test_inactive_alert_skipped(self, make_scheduler, make_alert, fetcher, dispatcher):
        fetcher.get_price.return_value = 65.0
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(is_active=False))

        assert scheduler.check_alerts() == []
        dispatcher.dispatch.assert_not_called()

    def test_empty_conditions_never_trigger(self, make_scheduler, make_alert, dispatcher):
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(conditions=[]))

        assert scheduler.check_alerts() == []
        dispatcher.dispatch.assert_not_called()

    def test_and_semantics_short_circuit(self, make_scheduler, make_alert, fetcher):
        fetcher.get_price.return_value = 40.0
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(conditions=[
            AlertCondition("price", "gt", 60),
            AlertCondition("volume", "gt", 100),
        ]))

        assert scheduler.check_alerts() == []
        fetcher.get_volume.assert_not_called()

    def test_within_cooldown_is_skipped(self, make_scheduler, make_alert, fetcher, dispatcher, clock):
        fetcher.get_price.return_value = 65.0
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(cooldown=15, last_triggered=clock.now - timedelta(minutes=10)))

        assert scheduler.check_alerts() == []
        dispatcher.dispatch.assert_not_called()
        fetcher.get_price.assert_not_called()

    def test_after_cooldown_triggers(self, make_scheduler, make_alert, fetcher, clock):
        fetcher.get_price.return_value = 65.0
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(cooldown=15, last_triggered=clock.now - timedelta(minutes=16)))

        assert scheduler.check_alerts() == ["alert-1"]

    def test_zero_cooldown_triggers_every_tick(self, make_scheduler, make_alert, fetcher, dispatcher):
        fetcher.get_price.return_value = 65.0
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(cooldown=0))

        scheduler.check_alerts()
        scheduler.check_alerts()

        assert dispatcher.dispatch.call_count == 2

    def test_cooldown_resets_after_each_trigger(self, make_scheduler, make_alert, fetcher, dispatcher, clock):
        fetcher.get_price.return_value = 65.0
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert(cooldown=15))

        assert scheduler.check_alerts() == ["alert-1"]

        clock.advance(minutes=5)
        assert scheduler.check_alerts() == []

        clock.advance(minutes=11)
        assert scheduler.check_alerts() == ["alert-1"]

        clock.advance(minutes=14)
        assert scheduler.check_alerts() == []
        assert dispatcher.dispatch.call_count == 2

    def test_trigger_is_persisted(self, make_scheduler, make_alert, fetcher):
        fetcher.get_price.return_value = 65.0
        persistence = MagicMock()
        scheduler = make_scheduler(persistence=persistence)
        scheduler.add_alert(make_alert())

        scheduler.check_alerts()

        persistence.patch_alert_trigger_timestamp.assert_called_once_with("alert-1")

    def test_persistence_failure_is_not_fatal(self, make_scheduler, make_alert, fetcher, clock):
        fetcher.get_price.return_value = 65.0
        persistence = MagicMock()
        persistence.patch_alert_trigger_timestamp.side_effect = RuntimeError("db down")
        scheduler = make_scheduler(persistence=persistence)
        scheduler.add_alert(make_alert())

        assert scheduler.check_alerts() == ["alert-1"]
        assert scheduler.get_alert("alert-1").last_triggered == clock.now

    def test_tick_exception_is_logged_not_raised(self, make_scheduler, make_alert, dispatcher, fetcher, caplog):
        fetcher.get_price.return_value = 65.0
        dispatcher.dispatch.side_effect = RuntimeError("dispatch exploded")
        scheduler = make_scheduler()
        scheduler.add_alert(make_alert())

        with caplog.at_level(logging.ERROR, logger="alithos.alert_scheduler"):
            scheduler._safe_check_alerts()

        assert "Alert check failed: dispatch exploded" in caplog.text
        assert scheduler.get_alert("alert-1").last_triggered is None


class TestDryRun:

    def test_reports_every_condition(self, make_scheduler, make_alert, fetcher, dispatcher):
        fetcher.get_price.return_value = 80.0
        fetcher.get_volume.return_value = 10.0
        scheduler = make_scheduler()
        alert = make_alert(conditions=[
            AlertCondition("price", "gt", 70),
            AlertCondition("volume", "gt", 100),
        ])

        result = scheduler.test_alert(alert)

        assert result.would_trigger is False
        assert [c.passed for c in result.conditions] == [True, False]
        assert [c.current_value for c in result.conditions] == [80.0, 10.0]
        assert result.conditions[0].description == "Price: 80.00 > 70.00"
        dispatcher.dispatch.assert_not_called()

    def test_would_trigger_without_side_effects(self, make_scheduler, make_alert, fetcher):
        fetcher.get_price.return_value = 80.0
        scheduler = make_scheduler()
        alert = make_alert(cooldown=15)
        scheduler.add_alert(alert)

        result = scheduler.test_alert(alert)

        assert result.would_trigger is True
        assert scheduler.get_alert(alert.id).last_triggered is None

    def test_no_conditions_would_not_trigger(self, make_scheduler, make_alert):
        result = make_scheduler().test_alert(make_alert(conditions=[]))
        assert result.would_trigger is False
        assert result.conditions == []
