from __future__ import annotations

import pytest

from autoserver.exceptions import ConfigurationError
from autoserver.schedule import Cron, ScheduledAction, Scheduler

pytestmark = [pytest.mark.xdist_group("unit")]


class TestCron:
    def test_defaults_to_every_minute(self):
        assert Cron().expression == "* * * * *"

    def test_expression_field_order(self):
        assert Cron(hour="21", minute="0").expression == "0 21 * * *"

    def test_parse_round_trips_expression(self):
        assert Cron.parse("0 6 * * 1-5") == Cron(minute="0", hour="6", week_day="1-5")

    def test_parse_accepts_steps_and_lists(self):
        cron = Cron.parse("*/15 8,20 1-15/2 * *")
        assert cron.minute == "*/15"
        assert cron.hour == "8,20"

    def test_parse_wrong_field_count_raises(self):
        with pytest.raises(ConfigurationError, match="expected 5 fields"):
            Cron.parse("0 21 * *")

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"hour": "24"}, "outside 0-23"),
            ({"minute": "60"}, "outside 0-59"),
            ({"day": "0"}, "outside 1-31"),
            ({"month": "13"}, "outside 1-12"),
            ({"week_day": "7"}, "outside 0-6"),
            ({"hour": "abc"}, "not a number"),
            ({"hour": "10-2"}, "descending range"),
            ({"minute": "*/0"}, "invalid step"),
            ({"minute": ""}, "empty field"),
            ({"hour": "\u00b2"}, "not a number"),
            ({"minute": "\u0661"}, "not a number"),
            ({"minute": "*/\u00b2"}, "invalid step"),
        ],
    )
    def test_invalid_fields_raise(self, kwargs, message):
        with pytest.raises(ConfigurationError, match=message):
            Cron(**kwargs)

    def test_frozen(self):
        cron = Cron()
        with pytest.raises(AttributeError):
            cron.hour = "1"  # type: ignore[misc]


class TestScheduledAction:
    def test_apply_sets_desired(self):
        action = ScheduledAction("enable", Cron(), desired_capacity=3)
        assert action.apply(current=1, min_capacity=0, max_capacity=5) == 3

    def test_apply_clamps_into_bounds(self):
        action = ScheduledAction("enable", Cron(), desired_capacity=10)
        assert action.apply(current=1, min_capacity=0, max_capacity=4) == 4

    def test_to_dict(self):
        action = ScheduledAction("disable", Cron(hour="6", minute="0"), desired_capacity=0)
        assert action.to_dict() == {"name": "disable", "schedule": "0 6 * * *", "desired_capacity": 0}


class TestScheduler:
    @pytest.fixture
    def scheduler(self) -> Scheduler:
        return Scheduler.for_bounds(Cron.parse("0 21 * * *"), Cron.parse("0 6 * * *"), 1, 4)

    def test_enable_targets_max_and_disable_targets_min(self, scheduler: Scheduler):
        assert scheduler.enable.desired_capacity == 4
        assert scheduler.disable.desired_capacity == 1

    def test_evaluate_enable(self, scheduler: Scheduler):
        assert scheduler.evaluate(["enable"], current=1) == 4

    def test_evaluate_disable(self, scheduler: Scheduler):
        assert scheduler.evaluate(["disable"], current=4) == 1

    def test_last_write_wins(self, scheduler: Scheduler):
        assert scheduler.evaluate(["enable", "disable"], current=2) == 1
        assert scheduler.evaluate(["disable", "enable"], current=2) == 4

    def test_nothing_fired_keeps_current(self, scheduler: Scheduler):
        assert scheduler.evaluate([], current=3) == 3

    def test_bounds_hold_at_every_transition(self, scheduler: Scheduler):
        desired = 4
        for name in ["disable", "enable", "enable", "disable", "disable", "enable"]:
            desired = scheduler.evaluate([name], desired)
            assert scheduler.min_capacity <= desired <= scheduler.max_capacity

    def test_unknown_action_raises(self, scheduler: Scheduler):
        with pytest.raises(ConfigurationError, match="unknown action"):
            scheduler.action("pause")  # type: ignore[arg-type]
