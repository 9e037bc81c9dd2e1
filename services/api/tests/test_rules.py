"""Pure threshold rules: no database involved."""
from datetime import datetime, timedelta, timezone

import pytest

from careo import rules
from careo.rules import (
    CRITICAL,
    INFO,
    WARNING,
    MedicationDose,
    NightCheckConfig,
    food_fluid_day,
    food_fluid_rule,
    medication_rule,
    night_check_rule,
    night_shift_start,
    period_for_section,
)


def at(hour: int, minute: int = 0, day: int = 15) -> datetime:
    # January: London local time equals UTC.
    return datetime(2026, 1, day, hour, minute, tzinfo=timezone.utc)


MORNING, AFTERNOON, EVENING, NIGHT = rules.FOOD_FLUID_PERIODS


class TestFoodFluidRule:
    def test_morning_missed_after_noon(self):
        decision = food_fluid_rule(at(13), None, MORNING, "Margaret Hughes")
        assert decision is not None
        assert decision.severity == CRITICAL
        assert decision.alert_type == rules.FOOD_FLUID
        assert decision.time_period == "morning"
        assert decision.dedupe_key == "2026-01-15:morning"
        assert "Margaret Hughes" in decision.message
        assert "6 AM - 12 PM" in decision.message

    def test_not_before_threshold(self):
        assert food_fluid_rule(at(11, 59), None, MORNING, "M H") is None
        assert food_fluid_rule(at(13), None, AFTERNOON, "M H") is None
        assert food_fluid_rule(at(21), None, EVENING, "M H") is None

    def test_logged_today_suppresses(self):
        assert food_fluid_rule(at(13), at(9), MORNING, "M H") is None

    def test_log_from_yesterday_does_not_count(self):
        assert food_fluid_rule(at(13), at(9, day=14), MORNING, "M H") is not None

    def test_evening_from_ten_pm(self):
        decision = food_fluid_rule(at(22, 5), None, EVENING, "M H")
        assert decision.severity == CRITICAL
        assert decision.dedupe_key == "2026-01-15:evening"

    def test_night_only_chased_in_the_morning(self):
        assert food_fluid_rule(at(5), None, NIGHT, "M H") is None
        decision = food_fluid_rule(at(7), None, NIGHT, "M H")
        assert decision.severity == WARNING
        assert decision.time_period == "night"
        assert food_fluid_rule(at(12), None, NIGHT, "M H") is None

    def test_night_belongs_to_the_shift_start_day(self):
        assert food_fluid_rule(at(7), None, NIGHT, "M H").dedupe_key == "2026-01-14:night"
        assert food_fluid_rule(at(7), at(23, day=14), NIGHT, "M H") is None
        assert food_fluid_rule(at(7), at(5), NIGHT, "M H") is None
        assert food_fluid_rule(at(7), at(5, day=14), NIGHT, "M H") is not None

    def test_food_fluid_day(self):
        assert food_fluid_day(NIGHT, at(23, day=14)) == "2026-01-14"
        assert food_fluid_day(NIGHT, at(5)) == "2026-01-14"
        assert food_fluid_day(MORNING, at(5)) == "2026-01-15"

    def test_period_for_section(self):
        assert period_for_section("Morning") is MORNING
        assert period_for_section("night") is NIGHT
        assert period_for_section("Brunch") is None


class TestNightShift:
    def test_evening_side(self):
        assert night_shift_start(at(23)) == at(22)

    def test_after_midnight(self):
        assert night_shift_start(at(2, day=16)) == at(22, day=15)

    def test_daytime(self):
        assert night_shift_start(at(6)) is None
        assert night_shift_start(at(14)) is None


class TestFrequencyChecks:
    positioning = NightCheckConfig("C1", "positioning", 120)
    pad_change = NightCheckConfig("C2", "pad_change", 120)

    def test_never_recorded(self):
        decision = night_check_rule(at(23), None, self.positioning, "Arthur Bennett")
        assert decision.severity == WARNING
        assert decision.title == "Positioning check not recorded"
        assert decision.message.endswith("Scheduled every 2 hours.")
        assert decision.dedupe_key == "config:C1"

    def test_within_grace(self):
        assert night_check_rule(at(23), at(20, 50), self.positioning, "A B") is None

    def test_overdue_past_grace(self):
        decision = night_check_rule(at(23), at(20, 40), self.positioning, "A B")
        assert decision.severity == CRITICAL
        assert decision.title == "Positioning check overdue"
        assert "overdue by 20 minutes" in decision.message

    def test_pad_change_grace_is_thirty_minutes(self):
        assert night_check_rule(at(23), at(20, 35), self.pad_change, "A B") is None
        decision = night_check_rule(at(23), at(20, 29), self.pad_change, "A B")
        assert decision.title == "Pad change overdue"
        assert decision.dedupe_key == "config:C2"

    def test_without_frequency(self):
        assert night_check_rule(at(23), None, NightCheckConfig("C3", "positioning"), "A B") is None


class TestShiftChecks:
    bed_rails = NightCheckConfig("C4", "bed_rails")

    def test_pending_when_nothing_this_shift(self):
        decision = night_check_rule(at(23), None, self.bed_rails, "Edith Clarke")
        assert decision.severity == WARNING
        assert decision.title == "Bed rails check pending"
        assert decision.dedupe_key == "config:C4:2026-01-15"

    def test_key_uses_shift_start_after_midnight(self):
        decision = night_check_rule(at(3, day=16), None, self.bed_rails, "E C")
        assert decision.dedupe_key == "config:C4:2026-01-15"

    def test_recorded_this_shift(self):
        assert night_check_rule(at(23), at(22, 30), self.bed_rails, "E C") is None

    def test_recorded_before_shift_does_not_count(self):
        assert night_check_rule(at(23), at(21), self.bed_rails, "E C") is not None

    def test_quiet_during_the_day(self):
        assert night_check_rule(at(14), None, self.bed_rails, "E C") is None

    def test_night_check_type(self):
        decision = night_check_rule(at(1, day=16), None, NightCheckConfig("C5", "night_check"), "E C")
        assert decision.title == "Night check pending"

    @pytest.mark.parametrize("check_type", ["environmental", "night_note", "cleaning"])
    def test_unchased_types(self, check_type):
        assert night_check_rule(at(23), None, NightCheckConfig("C6", check_type, 60), "E C") is None


def dose(scheduled: datetime, state: str = "scheduled") -> MedicationDose:
    return MedicationDose("I1", "M1", "Paracetamol", "500", "mg", scheduled, state)


class TestMedicationRule:
    now = at(8)

    def test_due_soon(self):
        decision = medication_rule(self.now, dose(self.now + timedelta(minutes=10)), "Harold Price")
        assert decision.severity == INFO
        assert decision.title == "Medication due soon"
        assert "Paracetamol (500mg)" in decision.message
        assert "due in 10 minutes" in decision.message
        assert decision.dedupe_key == "intake:I1:due_soon"
        assert decision.metadata["stage"] == "due_soon"

    def test_due_soon_window_edges(self):
        assert medication_rule(self.now, dose(self.now + timedelta(minutes=30)), "H P").severity == INFO
        assert medication_rule(self.now, dose(self.now + timedelta(minutes=31)), "H P") is None
        assert medication_rule(self.now, dose(self.now), "H P") is None

    def test_overdue(self):
        decision = medication_rule(self.now, dose(self.now - timedelta(minutes=20)), "H P")
        assert decision.severity == CRITICAL
        assert decision.title == "Medication overdue"
        assert "overdue by 20 minutes" in decision.message
        assert decision.supersedes == ("intake:I1:due_soon",)

    def test_grace_after_scheduled_time(self):
        assert medication_rule(self.now, dose(self.now - timedelta(minutes=10)), "H P") is None
        assert medication_rule(self.now, dose(self.now - timedelta(minutes=15)), "H P") is None

    def test_missed(self):
        decision = medication_rule(self.now, dose(self.now - timedelta(hours=3), "missed"), "H P")
        assert decision.severity == WARNING
        assert decision.dedupe_key == "intake:I1:missed"
        assert set(decision.supersedes) == {"intake:I1:due_soon", "intake:I1:overdue"}
        assert "at 05:00" in decision.message

    @pytest.mark.parametrize("state", ["administered", "dispensed", "refused", "skipped"])
    def test_settled_states(self, state):
        assert medication_rule(self.now, dose(self.now - timedelta(hours=1), state), "H P") is None

    def test_stages_are_exclusive(self):
        for offset in range(-120, 121):
            decision = medication_rule(self.now, dose(self.now + timedelta(minutes=offset)), "H P")
            stage = decision.metadata["stage"] if decision else None
            if 0 < offset <= 30:
                assert stage == "due_soon"
            elif offset < -15:
                assert stage == "overdue"
            else:
                assert stage is None
