from __future__ import annotations
from datetime import date
from typing import Any, Dict, List, Literal
from pydantic import BaseModel, Field, field_validator

Severity = Literal["critical", "warning", "info"]
ResidentStatus = Literal["active", "inactive"]
Section = Literal["Morning", "Afternoon", "Evening", "Night"]
CheckType = Literal["night_check", "positioning", "pad_change", "bed_rails", "environmental", "night_note", "cleaning"]
IntakeState = Literal["scheduled", "dispensed", "administered", "missed", "refused", "skipped"]
Frequency = Literal[
    "Once daily (OD)", "Twice daily (BD)", "Three times daily (TD)", "Four times daily (QDS)",
    "Four times daily (QIS)", "As Needed (PRN)", "One time (STAT)", "Weekly", "Monthly",
]

class Problem(BaseModel):
    type: str = "about:blank"
    title: str
    status: int
    detail: str | None = None
    code: str = "unknown_error"
    instance: str | None = None

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"

class LoginIn(BaseModel):
    email: str
    password: str

# --- Residents ---

class ResidentCreate(BaseModel):
    id: str | None = Field(None, min_length=2, max_length=64)
    first_name: str = Field(..., min_length=1, max_length=128)
    last_name: str = Field(..., min_length=1, max_length=128)
    date_of_birth: date | None = None
    room_number: str | None = Field(None, max_length=32)
    admission_date: date | None = None
    team_id: str | None = None

class ResidentStatusIn(BaseModel):
    status: ResidentStatus

class ResidentOut(BaseModel):
    id: str
    organization_id: str
    team_id: str
    first_name: str
    last_name: str
    date_of_birth: str | None = None
    room_number: str | None = None
    admission_date: str | None = None
    status: str | None = None
    created_at: int
    updated_at: int

# --- Food / fluid ---

class FoodFluidLogIn(BaseModel):
    resident_id: str
    section: Section
    type_of_food_drink: str = Field(..., min_length=1, max_length=255)
    portion_served: str = Field(..., min_length=1, max_length=64)
    amount_eaten: Literal["None", "1/4", "1/2", "3/4", "All"]
    fluid_consumed_ml: float | None = Field(None, ge=0)
    signature: str = Field(..., min_length=1, max_length=128)

class FoodFluidLogUpdate(BaseModel):
    section: Section | None = None
    type_of_food_drink: str | None = Field(None, min_length=1, max_length=255)
    portion_served: str | None = Field(None, min_length=1, max_length=64)
    amount_eaten: Literal["None", "1/4", "1/2", "3/4", "All"] | None = None
    fluid_consumed_ml: float | None = Field(None, ge=0)
    signature: str | None = Field(None, min_length=1, max_length=128)

class FoodFluidLogOut(BaseModel):
    id: str
    resident_id: str
    section: str
    type_of_food_drink: str
    portion_served: str
    amount_eaten: str
    fluid_consumed_ml: float | None = None
    signature: str
    date: str
    logged_at: int
    is_archived: bool
    archived_at: int | None = None

class ArchiveIn(BaseModel):
    target_date: date | None = None

# --- Night checks ---

class NightCheckConfigIn(BaseModel):
    resident_id: str
    check_type: CheckType
    frequency_minutes: int | None = Field(None, gt=0, le=24 * 60)
    selected_items: List[str] | None = None

class NightCheckConfigUpdate(BaseModel):
    frequency_minutes: int | None = Field(None, gt=0, le=24 * 60)
    selected_items: List[str] | None = None
    is_active: bool | None = None

class NightCheckConfigOut(BaseModel):
    id: str
    resident_id: str
    team_id: str
    check_type: str
    frequency_minutes: int | None = None
    selected_items: List[str] | None = None
    is_active: bool
    created_at: int
    updated_at: int | None = None

class NightCheckRecordingIn(BaseModel):
    configuration_id: str
    recorded_at: int | None = Field(None, description="Epoch ms; defaults to now")
    check_data: Dict[str, Any] | None = None
    notes: str | None = None
    recorded_by_name: str | None = None

class NightCheckRecordingOut(BaseModel):
    id: str
    configuration_id: str
    resident_id: str
    check_type: str
    recorded_at: int
    check_data: Dict[str, Any] | None = None
    notes: str | None = None
    recorded_by: str
    recorded_by_name: str | None = None

# --- Medication ---

class MedicationIn(BaseModel):
    resident_id: str
    name: str = Field(..., min_length=1, max_length=255)
    strength: str = Field(..., min_length=1, max_length=32)
    strength_unit: Literal["mg", "g"]
    dosage_form: Literal["Tablet", "Capsule", "Liquid", "Injection", "Cream", "Ointment", "Patch", "Inhaler"]
    route: Literal["Oral", "Topical", "Intramuscular (IM)", "Intravenous (IV)", "Subcutaneous",
                   "Inhalation", "Rectal", "Sublingual"]
    frequency: Frequency
    schedule_type: Literal["Scheduled", "PRN (As Needed)"]
    times: List[str] = Field(default_factory=list)
    instructions: str | None = None
    prescriber_name: str = Field(..., min_length=1, max_length=255)
    start_date: date
    end_date: date | None = None

    @field_validator("times")
    @classmethod
    def _check_times(cls, v: List[str]) -> List[str]:
        for t in v:
            hh, _, mm = t.partition(":")
            if not (hh.isdigit() and mm.isdigit() and 0 <= int(hh) < 24 and 0 <= int(mm) < 60):
                raise ValueError(f"invalid time {t!r}, expected HH:MM")
        return sorted(set(v))

class MedicationOut(BaseModel):
    id: str
    resident_id: str
    name: str
    strength: str
    strength_unit: str
    dosage_form: str
    route: str
    frequency: str
    schedule_type: str
    times: List[str]
    instructions: str | None = None
    prescriber_name: str
    start_date: str
    end_date: str | None = None
    status: str
    intakes_scheduled: int = 0

class IntakeOut(BaseModel):
    id: str
    medication_id: str
    resident_id: str
    scheduled_time: int
    state: str
    state_modified_by: str | None = None
    state_modified_at: int | None = None
    notes: str | None = None

class IntakeStateIn(BaseModel):
    state: IntakeState
    notes: str | None = None

# --- Alerts ---

class AlertOut(BaseModel):
    id: str
    resident_id: str
    alert_type: str
    severity: Severity
    title: str
    message: str
    time_period: str | None = None
    metadata: Dict[str, Any] | None = None
    is_resolved: bool
    created_at: int
    resolved_at: int | None = None
    resolved_by: str | None = None
    resolution_note: str | None = None
    auto_resolved: bool = False

class AlertCounts(BaseModel):
    total: int
    critical: int
    warning: int
    info: int

class AlertCountsRequest(BaseModel):
    resident_ids: List[str] = Field(default_factory=list, max_length=500)

class AlertResolveIn(BaseModel):
    resolution_note: str | None = None

class SweepRunIn(BaseModel):
    kinds: List[Literal["food_fluid", "night_check", "medication"]] | None = None

class SweepResultOut(BaseModel):
    alerts_created: int
    residents_checked: int
    failures: int
