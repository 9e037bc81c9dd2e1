from __future__ import annotations
import time, uuid
from datetime import date, datetime, timezone
from typing import Callable

import structlog
from careo.observability import init_logging, init_otel

from fastapi import FastAPI, Request, Response, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm, HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text

from careo import alerts, medication, records
from careo.audit import audit
from careo.db import db_session
from careo.errors import CareoError
from careo.security import ROLES, verify_password, create_access_token, decode_token
from careo.sweep import run_sweep
from careo.timefmt import care_day, utcnow
init_logging("careo-api")
init_otel("careo-api")
log = structlog.get_logger("careo-api")

from careo.schemas import (
    Problem, TokenResponse, LoginIn,
    ResidentCreate, ResidentStatusIn, ResidentOut,
    FoodFluidLogIn, FoodFluidLogUpdate, FoodFluidLogOut, ArchiveIn,
    NightCheckConfigIn, NightCheckConfigUpdate, NightCheckConfigOut, NightCheckRecordingIn, NightCheckRecordingOut,
    MedicationIn, MedicationOut, IntakeOut, IntakeStateIn,
    AlertOut, AlertCounts, AlertCountsRequest, AlertResolveIn, SweepRunIn, SweepResultOut,
)

REQ_COUNT = Counter("careo_http_requests_total", "HTTP requests", ["method", "path", "status"])
REQ_LAT = Histogram("careo_http_request_seconds", "Request latency", ["path"])
bearer = HTTPBearer(auto_error=False)

STAFF = set(ROLES)
CLINICAL = {"admin", "manager", "nurse"}
MANAGERS = {"admin", "manager"}

def problem(status_code: int, title: str, code: str, detail: str | None = None) -> JSONResponse:
    p = Problem(title=title, status=status_code, code=code, detail=detail)
    return JSONResponse(status_code=status_code, content=p.model_dump())

def get_principal(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> dict | None:
    if not creds:
        return None
    try:
        claims = decode_token(creds.credentials)
    except JWTError:
        return None
    if not claims.get("organization_id"):
        return None
    return claims

def require_auth(principal: dict | None = Depends(get_principal)) -> dict:
    if not principal:
        raise HTTPException(status_code=401, detail="unauthorized")
    return principal

def require_role(allowed: set[str]):
    def _dep(principal: dict = Depends(require_auth)) -> dict:
        if principal.get("role") not in allowed:
            raise HTTPException(status_code=403, detail="forbidden")
        return principal
    return _dep

app = FastAPI(title="Careo API", version="1.0.0", redirect_slashes=False)

from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
try:
    FastAPIInstrumentor.instrument_app(app)
except Exception as e:
    log.warning("otel_fastapi_instrumentation_failed", error=str(e))

@app.middleware("http")
async def request_mw(request: Request, call_next: Callable):
    rid = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    start = time.time()
    try:
        response: Response = await call_next(request)
    finally:
        dur = time.time() - start
        REQ_LAT.labels(path=request.url.path).observe(dur)
    response.headers["X-Request-Id"] = rid
    REQ_COUNT.labels(method=request.method, path=request.url.path, status=str(response.status_code)).inc()
    return response

@app.exception_handler(HTTPException)
async def http_exc(request: Request, exc: HTTPException):
    code = "http_error"
    if exc.status_code == 401: code = "unauthorized"
    if exc.status_code == 403: code = "forbidden"
    if exc.status_code == 404: code = "not_found"
    if exc.status_code == 409: code = "conflict"
    return problem(exc.status_code, "Request failed", code, str(exc.detail))

@app.exception_handler(CareoError)
async def careo_exc(request: Request, exc: CareoError):
    return problem(exc.status_code, "Request failed", exc.code, exc.detail)

@app.get("/v1/health")
def health():
    return {"status": "ok", "service": "careo_api", "time": datetime.now(timezone.utc).isoformat()}

@app.get("/v1/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

# --- Auth ---

def _login(email: str, password: str) -> TokenResponse:
    with db_session() as db:
        row = db.execute(text("SELECT id, organization_id, team_id, password_hash, role FROM users WHERE email=:e"),
                         {"e": email}).mappings().first()
        if not row or not verify_password(row["password_hash"], password):
            log.info("login_failed", email=email)
            raise HTTPException(status_code=401, detail="invalid_credentials")
        jwt_ = create_access_token(subject=row["id"], organization_id=row["organization_id"],
                                   team_id=row["team_id"], role=row["role"])
        audit(db, row["organization_id"], row["id"], "auth.login", "user", row["id"], {"email": email})
        return TokenResponse(access_token=jwt_)

@app.post("/v1/auth/token", response_model=TokenResponse)
def token(form: OAuth2PasswordRequestForm = Depends()):
    return _login(form.username, form.password)

@app.post("/v1/auth/login", response_model=TokenResponse)
def login_json(payload: LoginIn):
    # Same as /v1/auth/token for clients posting JSON.
    return _login(payload.email, payload.password)

# --- Residents ---

@app.get("/v1/residents", response_model=list[ResidentOut])
def list_residents(team_id: str | None = None, include_inactive: bool = False,
                   principal: dict = Depends(require_auth)):
    with db_session() as db:
        rows = records.list_residents(db, principal["organization_id"], team_id, include_inactive)
        return [ResidentOut(**r) for r in rows]

@app.post("/v1/residents", response_model=ResidentOut, status_code=201)
def create_resident(payload: ResidentCreate, principal: dict = Depends(require_role(CLINICAL))):
    oid = principal["organization_id"]
    team_id = payload.team_id or principal.get("team_id")
    if not team_id:
        raise HTTPException(status_code=400, detail="team_id_required")
    with db_session() as db:
        row = records.create_resident(db, oid, team_id, payload.model_dump())
        audit(db, oid, principal["sub"], "resident.create", "resident", row["id"], payload.model_dump(mode="json"))
        return ResidentOut(**row)

@app.get("/v1/residents/{resident_id}", response_model=ResidentOut)
def get_resident(resident_id: str, principal: dict = Depends(require_auth)):
    with db_session() as db:
        return ResidentOut(**records.get_resident(db, principal["organization_id"], resident_id))

@app.put("/v1/residents/{resident_id}/status", response_model=ResidentOut)
def set_resident_status(resident_id: str, payload: ResidentStatusIn, principal: dict = Depends(require_role(MANAGERS))):
    oid = principal["organization_id"]
    with db_session() as db:
        row = records.set_resident_status(db, oid, resident_id, payload.status)
        audit(db, oid, principal["sub"], f"resident.{'reactivate' if payload.status == 'active' else 'deactivate'}",
              "resident", resident_id, {"status": payload.status})
        return ResidentOut(**row)

# --- Food / fluid ---

@app.post("/v1/food-fluid-logs", response_model=FoodFluidLogOut, status_code=201)
def create_food_fluid_log(payload: FoodFluidLogIn, principal: dict = Depends(require_role(STAFF))):
    oid = principal["organization_id"]
    with db_session() as db:
        row = records.create_food_fluid_log(db, oid, principal["sub"], payload.model_dump())
        audit(db, oid, principal["sub"], "food_fluid.create", "food_fluid_log", row["id"],
              {"resident_id": payload.resident_id, "section": payload.section})
        return FoodFluidLogOut(**row)

@app.get("/v1/residents/{resident_id}/food-fluid-logs", response_model=list[FoodFluidLogOut])
def list_food_fluid_logs(resident_id: str, day: date | None = Query(None, alias="date"),
                         archived: bool | None = None, principal: dict = Depends(require_auth)):
    day_str = day.isoformat() if day else care_day(utcnow())
    with db_session() as db:
        rows = records.list_food_fluid_logs(db, principal["organization_id"], resident_id, day_str, archived)
        return [FoodFluidLogOut(**r) for r in rows]

@app.patch("/v1/food-fluid-logs/{log_id}", response_model=FoodFluidLogOut)
def update_food_fluid_log(log_id: str, payload: FoodFluidLogUpdate, principal: dict = Depends(require_role(STAFF))):
    oid = principal["organization_id"]
    updates = payload.model_dump(exclude_unset=True)
    with db_session() as db:
        row = records.update_food_fluid_log(db, oid, log_id, updates)
        audit(db, oid, principal["sub"], "food_fluid.update", "food_fluid_log", log_id, updates)
        return FoodFluidLogOut(**row)

@app.delete("/v1/food-fluid-logs/{log_id}")
def delete_food_fluid_log(log_id: str, principal: dict = Depends(require_role(CLINICAL))):
    oid = principal["organization_id"]
    with db_session() as db:
        records.delete_food_fluid_log(db, oid, log_id)
        audit(db, oid, principal["sub"], "food_fluid.delete", "food_fluid_log", log_id)
    return {"status": "deleted", "log_id": log_id}

@app.post("/v1/food-fluid-logs/archive")
def archive_food_fluid_logs(payload: ArchiveIn, principal: dict = Depends(require_role({"admin"}))):
    target = payload.target_date.isoformat() if payload.target_date else None
    count = records.archive_food_fluid_logs(target_date=target)
    with db_session() as db:
        audit(db, principal["organization_id"], principal["sub"], "food_fluid.archive", "food_fluid_log", None,
              {"target_date": target, "archived": count})
    return {"status": "ok", "archived": count}

# --- Night checks ---

@app.post("/v1/night-checks/configurations", response_model=NightCheckConfigOut, status_code=201)
def create_night_check_configuration(payload: NightCheckConfigIn, principal: dict = Depends(require_role(CLINICAL))):
    oid = principal["organization_id"]
    with db_session() as db:
        row = records.create_night_check_configuration(db, oid, principal["sub"], payload.model_dump())
        audit(db, oid, principal["sub"], "night_check.configure", "night_check_configuration", row["id"],
              payload.model_dump())
        return NightCheckConfigOut(**row)

@app.patch("/v1/night-checks/configurations/{config_id}", response_model=NightCheckConfigOut)
def update_night_check_configuration(config_id: str, payload: NightCheckConfigUpdate,
                                     principal: dict = Depends(require_role(CLINICAL))):
    oid = principal["organization_id"]
    updates = payload.model_dump(exclude_unset=True)
    with db_session() as db:
        row = records.update_night_check_configuration(db, oid, config_id, principal["sub"], updates)
        audit(db, oid, principal["sub"], "night_check.reconfigure", "night_check_configuration", config_id, updates)
        return NightCheckConfigOut(**row)

@app.get("/v1/residents/{resident_id}/night-checks/configurations", response_model=list[NightCheckConfigOut])
def list_night_check_configurations(resident_id: str, include_inactive: bool = False,
                                    principal: dict = Depends(require_auth)):
    with db_session() as db:
        rows = records.list_night_check_configurations(db, principal["organization_id"], resident_id, include_inactive)
        return [NightCheckConfigOut(**r) for r in rows]

@app.post("/v1/night-checks/recordings", response_model=NightCheckRecordingOut, status_code=201)
def create_night_check_recording(payload: NightCheckRecordingIn, principal: dict = Depends(require_role(STAFF))):
    oid = principal["organization_id"]
    with db_session() as db:
        row = records.create_night_check_recording(db, oid, principal["sub"], payload.model_dump())
        audit(db, oid, principal["sub"], "night_check.record", "night_check_recording", row["id"],
              {"configuration_id": payload.configuration_id})
        return NightCheckRecordingOut(**row)

@app.get("/v1/residents/{resident_id}/night-checks/recordings", response_model=list[NightCheckRecordingOut])
def list_night_check_recordings(resident_id: str, limit: int = Query(100, ge=1, le=1000),
                                principal: dict = Depends(require_auth)):
    with db_session() as db:
        rows = records.list_night_check_recordings(db, principal["organization_id"], resident_id, limit)
        return [NightCheckRecordingOut(**r) for r in rows]

# --- Medication ---

@app.post("/v1/medications", response_model=MedicationOut, status_code=201)
def create_medication(payload: MedicationIn, principal: dict = Depends(require_role(CLINICAL))):
    oid = principal["organization_id"]
    with db_session() as db:
        row = medication.create_medication(db, oid, principal["sub"], payload.model_dump())
        audit(db, oid, principal["sub"], "medication.create", "medication", row["id"], payload.model_dump(mode="json"))
        return MedicationOut(**row)

@app.get("/v1/residents/{resident_id}/medication-intakes", response_model=list[IntakeOut])
def list_intakes(resident_id: str, day: date | None = Query(None, alias="date"),
                 principal: dict = Depends(require_auth)):
    with db_session() as db:
        return [IntakeOut(**r) for r in medication.list_intakes(db, principal["organization_id"], resident_id, day)]

@app.patch("/v1/medication-intakes/{intake_id}", response_model=IntakeOut)
def update_intake_state(intake_id: str, payload: IntakeStateIn, principal: dict = Depends(require_role(STAFF))):
    oid = principal["organization_id"]
    with db_session() as db:
        row = medication.update_intake_state(db, oid, intake_id, payload.state, principal["sub"], payload.notes)
        audit(db, oid, principal["sub"], "medication.intake_state", "medication_intake", intake_id,
              {"state": payload.state})
        return IntakeOut(**row)

# --- Alerts ---

@app.get("/v1/residents/{resident_id}/alerts", response_model=list[AlertOut])
def resident_alerts(resident_id: str, principal: dict = Depends(require_auth)):
    with db_session() as db:
        return [AlertOut(**a) for a in alerts.resident_alerts(db, principal["organization_id"], resident_id)]

@app.get("/v1/residents/{resident_id}/alerts/counts", response_model=AlertCounts)
def resident_alert_counts(resident_id: str, principal: dict = Depends(require_auth)):
    with db_session() as db:
        return AlertCounts(**alerts.resident_alert_counts(db, principal["organization_id"], resident_id))

@app.post("/v1/alerts/counts", response_model=dict[str, AlertCounts])
def bulk_alert_counts(payload: AlertCountsRequest, principal: dict = Depends(require_auth)):
    with db_session() as db:
        counts = alerts.alert_counts(db, principal["organization_id"], payload.resident_ids)
        return {rid: AlertCounts(**c) for rid, c in counts.items()}

@app.get("/v1/alerts", response_model=list[AlertOut])
def organization_alerts(include_resolved: bool = False, principal: dict = Depends(require_auth)):
    with db_session() as db:
        return [AlertOut(**a) for a in alerts.organization_alerts(db, principal["organization_id"], include_resolved)]

@app.post("/v1/alerts/{alert_id}/resolve", response_model=AlertOut)
def resolve_alert(alert_id: str, payload: AlertResolveIn, principal: dict = Depends(require_role(STAFF))):
    oid = principal["organization_id"]
    with db_session() as db:
        row = alerts.resolve_alert(db, oid, alert_id, resolved_by=principal["sub"], note=payload.resolution_note)
        audit(db, oid, principal["sub"], "alert.resolve", "alert", alert_id, {"note": payload.resolution_note})
        return AlertOut(**row)

@app.post("/v1/alerts/clear")
def clear_alerts(principal: dict = Depends(require_role(MANAGERS))):
    oid = principal["organization_id"]
    with db_session() as db:
        n = alerts.clear_unresolved(db, oid, resolved_by=principal["sub"])
        audit(db, oid, principal["sub"], "alert.clear", "organization", oid, {"resolved": n})
    log.info("alerts_cleared", organization_id=oid, count=n)
    return {"status": "ok", "resolved": n}

# --- Sweeps ---

@app.post("/v1/sweeps/run", response_model=dict[str, SweepResultOut])
def trigger_sweep(payload: SweepRunIn, principal: dict = Depends(require_role({"admin"}))):
    results = run_sweep(kinds=payload.kinds)
    with db_session() as db:
        audit(db, principal["organization_id"], principal["sub"], "sweep.run", "sweep", None,
              {k: r.as_dict() for k, r in results.items()})
    return {k: SweepResultOut(**r.as_dict()) for k, r in results.items()}
