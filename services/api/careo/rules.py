"""Threshold rules evaluated by the periodic sweeps.

Every rule is a pure function of the current time, the time of the most
recent relevant care event (``None`` when nothing was recorded) and the
rule's configuration. A rule returns an :class:`AlertDecision` when the
threshold is unmet and ``None`` otherwise; rules never touch the database
and never depend on each other's outcome.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from careo.timefmt import (
    MINUTE_MS,
    care_day,
    format_duration,
    format_overdue,
    local,
    to_ms,
)

CRITICAL = "critical"
WARNING = "warning"
INFO = "info"

SEVERITY_RANK = {CRITICAL: 0, WARNING: 1, INFO: 2}

FOOD_FLUID = "food_fluid"
NIGHT_CHECK = "night_check"
MEDICATION = "medication"

ALERT_TYPES = (FOOD_FLUID, NIGHT_CHECK, MEDICATION, "activity", "vital_signs", "care_plan")

NIGHT_SHIFT_START_HOUR = 22
NIGHT_SHIFT_END_HOUR = 6

MEDICATION_DUE_SOON_MINUTES = 30
MEDICATION_OVERDUE_MINUTES = 15


@dataclass(frozen=True)
class AlertDecision:
    alert_type: str
    severity: str
    title: str
    message: str
    dedupe_key: str
    time_period: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    # Dedupe keys of earlier-stage alerts this one replaces.
    supersedes: Tuple[str, ...] = ()


# --- Food / fluid ------------------------------------------------------------

@dataclass(frozen=True)
class FoodFluidPeriod:
    section: str
    window: str
    alert_from_hour: int
    alert_until_hour: Optional[int] = None
    severity: str = CRITICAL
    # Filed under the day the night shift started.
    spans_midnight: bool = False

    @property
    def key(self) -> str:
        return self.section.lower()


FOOD_FLUID_PERIODS: Tuple[FoodFluidPeriod, ...] = (
    FoodFluidPeriod("Morning", "6 AM - 12 PM", alert_from_hour=12),
    FoodFluidPeriod("Afternoon", "12 PM - 6 PM", alert_from_hour=18),
    FoodFluidPeriod("Evening", "6 PM - 10 PM", alert_from_hour=22),
    # The night period closes at 6 AM; it is only chased during the morning.
    FoodFluidPeriod("Night", "10 PM - 6 AM", alert_from_hour=6, alert_until_hour=12, severity=WARNING,
                   spans_midnight=True),
)

FOOD_FLUID_SECTIONS = tuple(p.section for p in FOOD_FLUID_PERIODS)


def period_for_section(section: str) -> Optional[FoodFluidPeriod]:
    for period in FOOD_FLUID_PERIODS:
        if period.section.lower() == section.lower():
            return period
    return None


def food_fluid_day(period: FoodFluidPeriod, at: datetime) -> str:
    """Care day that a log or alert for ``period`` at ``at`` belongs to.

    Daytime periods use the care-home calendar day. The night period runs
    past midnight, so anything before 22:00 belongs to the previous night.
    """
    if not period.spans_midnight:
        return care_day(at)
    here = local(at)
    if here.hour >= NIGHT_SHIFT_START_HOUR:
        return here.date().isoformat()
    return (here.date() - timedelta(days=1)).isoformat()


def food_fluid_rule(now: datetime, last_logged: Optional[datetime], period: FoodFluidPeriod,
                    resident_name: str) -> Optional[AlertDecision]:
    day = food_fluid_day(period, now)
    if last_logged is not None and food_fluid_day(period, last_logged) == day:
        return None
    hour = local(now).hour
    if hour < period.alert_from_hour:
        return None
    if period.alert_until_hour is not None and hour >= period.alert_until_hour:
        return None
    return AlertDecision(
        alert_type=FOOD_FLUID,
        severity=period.severity,
        title=f"No food/fluid logged - {period.section}",
        message=(f"No food or fluid intake has been recorded for {resident_name} "
                 f"during the {period.key} period ({period.window})."),
        dedupe_key=f"{day}:{period.key}",
        time_period=period.key,
        metadata={"date": day, "section": period.section},
    )


# --- Night checks ------------------------------------------------------------

@dataclass(frozen=True)
class NightCheckConfig:
    configuration_id: str
    check_type: str
    frequency_minutes: Optional[int] = None


@dataclass(frozen=True)
class _FrequencyCheck:
    grace_minutes: int
    missing_title: str
    missing_message: str
    overdue_title: str
    overdue_message: str


_FREQUENCY_CHECKS: Dict[str, _FrequencyCheck] = {
    "positioning": _FrequencyCheck(
        grace_minutes=15,
        missing_title="Positioning check not recorded",
        missing_message="No repositioning check has been recorded for {name}.",
        overdue_title="Positioning check overdue",
        overdue_message="Repositioning check for {name} is overdue by {overdue}.",
    ),
    "pad_change": _FrequencyCheck(
        grace_minutes=30,
        missing_title="Pad change not recorded",
        missing_message="No pad change has been recorded for {name}.",
        overdue_title="Pad change overdue",
        overdue_message="Pad change for {name} is overdue by {overdue}.",
    ),
}

_SHIFT_CHECKS: Dict[str, Tuple[str, str]] = {
    "bed_rails": ("Bed rails check pending",
                  "Bed rails have not been checked for {name} during tonight's shift."),
    "night_check": ("Night check pending",
                    "Night check has not been completed for {name} during tonight's shift."),
}


def night_shift_start(now: datetime) -> Optional[datetime]:
    """Start of the night shift containing ``now`` (local time), or None by day."""
    here = local(now)
    start = here.replace(hour=NIGHT_SHIFT_START_HOUR, minute=0, second=0, microsecond=0)
    if here.hour >= NIGHT_SHIFT_START_HOUR:
        return start
    if here.hour < NIGHT_SHIFT_END_HOUR:
        return start - timedelta(days=1)
    return None


def night_check_rule(now: datetime, last_recorded: Optional[datetime], config: NightCheckConfig,
                     resident_name: str) -> Optional[AlertDecision]:
    metadata = {
        "date": care_day(now),
        "check_type": config.check_type,
        "configuration_id": config.configuration_id,
        "frequency_minutes": config.frequency_minutes,
    }

    freq = _FREQUENCY_CHECKS.get(config.check_type)
    if freq is not None:
        if not config.frequency_minutes:
            return None
        schedule = f" Scheduled every {format_duration(config.frequency_minutes)}."
        key = f"config:{config.configuration_id}"
        if last_recorded is None:
            return AlertDecision(NIGHT_CHECK, WARNING, freq.missing_title,
                                 freq.missing_message.format(name=resident_name) + schedule,
                                 dedupe_key=key, metadata=metadata)
        elapsed = to_ms(now) - to_ms(last_recorded)
        frequency_ms = config.frequency_minutes * MINUTE_MS
        if elapsed <= frequency_ms + freq.grace_minutes * MINUTE_MS:
            return None
        overdue = format_overdue(elapsed - frequency_ms)
        return AlertDecision(NIGHT_CHECK, CRITICAL, freq.overdue_title,
                             freq.overdue_message.format(name=resident_name, overdue=overdue) + schedule,
                             dedupe_key=key, metadata=metadata)

    shift = _SHIFT_CHECKS.get(config.check_type)
    if shift is not None:
        started = night_shift_start(now)
        if started is None:
            return None
        if last_recorded is not None and last_recorded >= started:
            return None
        shift_date = started.date().isoformat()
        title, message = shift
        return AlertDecision(NIGHT_CHECK, WARNING, title, message.format(name=resident_name),
                             dedupe_key=f"config:{config.configuration_id}:{shift_date}",
                             metadata={**metadata, "shift_date": shift_date})

    # environmental, night_note, cleaning: recorded but never chased.
    return None


# --- Medication --------------------------------------------------------------

@dataclass(frozen=True)
class MedicationDose:
    intake_id: str
    medication_id: str
    medication_name: str
    strength: str
    strength_unit: str
    scheduled_time: datetime
    state: str = "scheduled"

    @property
    def label(self) -> str:
        return f"{self.medication_name} ({self.strength}{self.strength_unit})"


def _intake_key(intake_id: str, stage: str) -> str:
    return f"intake:{intake_id}:{stage}"


def medication_rule(now: datetime, dose: MedicationDose, resident_name: str) -> Optional[AlertDecision]:
    """Due-soon, overdue and missed checks for one intake.

    The reference time is the intake's ``scheduled_time``; a ``scheduled``
    intake yields at most one of due-soon or overdue.
    """
    now_ms = to_ms(now)
    scheduled_ms = to_ms(dose.scheduled_time)
    metadata: Dict[str, Any] = {
        "intake_id": dose.intake_id,
        "medication_id": dose.medication_id,
        "medication_name": dose.medication_name,
        "scheduled_time": scheduled_ms,
    }

    if dose.state == "missed":
        at = local(dose.scheduled_time).strftime("%H:%M")
        return AlertDecision(
            MEDICATION, WARNING, "Missed medication dose",
            f"{dose.label} dose was missed for {resident_name} at {at}.",
            dedupe_key=_intake_key(dose.intake_id, "missed"),
            metadata={**metadata, "stage": "missed", "missed_reason": "marked_as_missed"},
            supersedes=(_intake_key(dose.intake_id, "due_soon"), _intake_key(dose.intake_id, "overdue")),
        )

    if dose.state != "scheduled":
        return None

    if now_ms < scheduled_ms <= now_ms + MEDICATION_DUE_SOON_MINUTES * MINUTE_MS:
        minutes = (scheduled_ms - now_ms) // MINUTE_MS
        return AlertDecision(
            MEDICATION, INFO, "Medication due soon",
            f"{dose.label} for {resident_name} is due in {minutes} minute{'' if minutes == 1 else 's'}.",
            dedupe_key=_intake_key(dose.intake_id, "due_soon"),
            metadata={**metadata, "stage": "due_soon"},
        )

    if scheduled_ms < now_ms - MEDICATION_OVERDUE_MINUTES * MINUTE_MS:
        return AlertDecision(
            MEDICATION, CRITICAL, "Medication overdue",
            f"{dose.label} for {resident_name} is overdue by {format_overdue(now_ms - scheduled_ms)}.",
            dedupe_key=_intake_key(dose.intake_id, "overdue"),
            metadata={**metadata, "stage": "overdue"},
            supersedes=(_intake_key(dose.intake_id, "due_soon"),),
        )

    return None
