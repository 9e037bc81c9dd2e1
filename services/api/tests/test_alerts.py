from datetime import datetime, timezone

import pytest

from careo import alerts
from careo.errors import NotFound
from careo.rules import CRITICAL, FOOD_FLUID, INFO, MEDICATION, WARNING, AlertDecision
from careo.timefmt import to_ms

T0 = to_ms(datetime(2026, 1, 15, 13, 0, tzinfo=timezone.utc))


def decision(key: str = "2026-01-15:morning", severity: str = CRITICAL, alert_type: str = FOOD_FLUID,
             time_period: str = "morning", supersedes=()) -> AlertDecision:
    return AlertDecision(alert_type, severity, f"Alert {key}", "message", dedupe_key=key,
                         time_period=time_period, metadata={"k": key}, supersedes=tuple(supersedes))


@pytest.fixture
def resident(make_resident):
    return make_resident()


class TestCreateAlert:
    def test_creates_once(self, db, resident):
        first_id, created = alerts.create_alert(db, resident, decision(), at_ms=T0)
        again_id, created_again = alerts.create_alert(db, resident, decision(), at_ms=T0 + 1000)
        assert created is True
        assert created_again is False
        assert again_id == first_id
        assert len(alerts.resident_alerts(db, "O-001", resident["id"])) == 1

    def test_different_key_is_a_new_alert(self, db, resident):
        alerts.create_alert(db, resident, decision("2026-01-15:morning"), at_ms=T0)
        _, created = alerts.create_alert(db, resident, decision("2026-01-15:afternoon", time_period="afternoon"),
                                         at_ms=T0)
        assert created is True

    def test_resolved_alert_does_not_block(self, db, resident):
        alert_id, _ = alerts.create_alert(db, resident, decision(), at_ms=T0)
        alerts.resolve_alert(db, "O-001", alert_id, resolved_by="U-001", note="Fed late")
        new_id, created = alerts.create_alert(db, resident, decision(), at_ms=T0 + 1000)
        assert created is True
        assert new_id != alert_id

    def test_stored_fields(self, db, resident):
        alert_id, _ = alerts.create_alert(db, resident, decision(), at_ms=T0)
        row = alerts.get_alert(db, "O-001", alert_id)
        assert row["created_at"] == T0
        assert row["metadata"] == {"k": "2026-01-15:morning"}
        assert row["team_id"] == "T-001"
        assert row["is_resolved"] is False
        assert row["auto_resolved"] is False

    def test_supersedes_earlier_stage(self, db, resident):
        soon = decision("intake:I1:due_soon", INFO, MEDICATION, None)
        overdue = decision("intake:I1:overdue", CRITICAL, MEDICATION, None, supersedes=["intake:I1:due_soon"])
        soon_id, _ = alerts.create_alert(db, resident, soon, at_ms=T0)
        alerts.create_alert(db, resident, overdue, at_ms=T0 + 1000)

        open_ = alerts.resident_alerts(db, "O-001", resident["id"])
        assert [a["severity"] for a in open_] == [CRITICAL]
        superseded = alerts.get_alert(db, "O-001", soon_id)
        assert superseded["is_resolved"] is True
        assert superseded["auto_resolved"] is True


class TestResolve:
    def test_manual_resolution(self, db, resident):
        alert_id, _ = alerts.create_alert(db, resident, decision(), at_ms=T0)
        row = alerts.resolve_alert(db, "O-001", alert_id, resolved_by="U-002", note="Ate in lounge")
        assert row["is_resolved"] is True
        assert row["resolved_by"] == "U-002"
        assert row["resolution_note"] == "Ate in lounge"
        assert row["auto_resolved"] is False
        assert row["resolved_at"] is not None

    def test_other_organization_cannot_resolve(self, db, resident):
        alert_id, _ = alerts.create_alert(db, resident, decision(), at_ms=T0)
        with pytest.raises(NotFound):
            alerts.resolve_alert(db, "O-999", alert_id)

    def test_auto_resolve_food_fluid_by_period(self, db, resident):
        alerts.create_alert(db, resident, decision("2026-01-15:morning"), at_ms=T0)
        alerts.create_alert(db, resident, decision("2026-01-15:afternoon", time_period="afternoon"), at_ms=T0)
        assert alerts.auto_resolve_food_fluid(db, resident["id"], "morning", "2026-01-15") == 1
        remaining = alerts.resident_alerts(db, "O-001", resident["id"])
        assert [a["time_period"] for a in remaining] == ["afternoon"]

    def test_auto_resolve_food_fluid_only_that_day(self, db, resident):
        alerts.create_alert(db, resident, decision("2026-01-14:morning"), at_ms=T0)
        assert alerts.auto_resolve_food_fluid(db, resident["id"], "morning", "2026-01-15") == 0
        assert alerts.auto_resolve_food_fluid(db, resident["id"], "morning", "2026-01-14") == 1

    def test_auto_resolve_night_check_matches_shift_keys(self, db, resident):
        alerts.create_alert(db, resident, decision("config:C1:2026-01-15", WARNING, "night_check", None), at_ms=T0)
        alerts.create_alert(db, resident, decision("config:C10", WARNING, "night_check", None), at_ms=T0)
        assert alerts.auto_resolve_night_check(db, resident["id"], "C1", "bed_rails") == 1

    def test_clear_unresolved(self, db, make_resident, resident):
        other = make_resident("R-002", first_name="Arthur", last_name="Bennett")
        alerts.create_alert(db, resident, decision(), at_ms=T0)
        alerts.create_alert(db, other, decision(), at_ms=T0)
        assert alerts.clear_unresolved(db, "O-001", resolved_by="U-001") == 2
        assert alerts.organization_alerts(db, "O-001") == []
        assert len(alerts.organization_alerts(db, "O-001", include_resolved=True)) == 2


class TestQueries:
    def test_sorted_by_severity_then_newest(self, db, resident):
        alerts.create_alert(db, resident, decision("a", INFO), at_ms=T0)
        alerts.create_alert(db, resident, decision("b", CRITICAL), at_ms=T0 + 1)
        alerts.create_alert(db, resident, decision("c", WARNING), at_ms=T0 + 2)
        alerts.create_alert(db, resident, decision("d", CRITICAL), at_ms=T0 + 3)
        keys = [a["dedupe_key"] for a in alerts.resident_alerts(db, "O-001", resident["id"])]
        assert keys == ["d", "b", "c", "a"]

    def test_counts(self, db, make_resident, resident):
        make_resident("R-002", first_name="Arthur", last_name="Bennett")
        alerts.create_alert(db, resident, decision("a", CRITICAL), at_ms=T0)
        alerts.create_alert(db, resident, decision("b", WARNING), at_ms=T0)
        alerts.create_alert(db, resident, decision("c", WARNING), at_ms=T0)

        counts = alerts.alert_counts(db, "O-001", ["R-001", "R-002", "R-404"])
        assert counts["R-001"] == {"total": 3, "critical": 1, "warning": 2, "info": 0}
        assert counts["R-002"] == {"total": 0, "critical": 0, "warning": 0, "info": 0}
        assert counts["R-404"]["total"] == 0
        assert alerts.resident_alert_counts(db, "O-001", "R-001")["total"] == 3

    def test_counts_empty_request(self, db):
        assert alerts.alert_counts(db, "O-001", []) == {}


def test_supersede_only_touches_named_keys(db, resident):
    alerts.create_alert(db, resident, decision("intake:I1:due_soon", INFO, MEDICATION, None), at_ms=T0)
    alerts.create_alert(db, resident, decision("intake:I2:due_soon", INFO, MEDICATION, None), at_ms=T0)
    assert alerts.supersede(db, "R-001", MEDICATION, ["intake:I1:due_soon", "intake:I1:overdue"], note="x") == 1
    assert [a["dedupe_key"] for a in alerts.resident_alerts(db, "O-001", "R-001")] == ["intake:I2:due_soon"]
