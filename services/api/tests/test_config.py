import pytest
from pydantic import ValidationError

from careo.config import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("DATABASE_URL_APP", "CAREO_DATABASE_URL_APP", "DATABASE_URL", "DATABASE_URL_MIGRATOR",
                "CAREO_DATABASE_URL_MIGRATOR", "CAREO_TIMEZONE", "MEDICATION_SWEEP_MINUTES"):
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    s = Settings(_env_file=None)
    assert s.careo_timezone == "Europe/London"
    assert s.food_fluid_sweep_minutes == 60
    assert s.night_check_sweep_minutes == 60
    assert s.medication_sweep_minutes == 15
    assert s.intake_generation_hour_utc == 0
    assert s.food_fluid_archive_hour_utc == 7


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MEDICATION_SWEEP_MINUTES", "5")
    monkeypatch.setenv("CAREO_TIMEZONE", "Europe/Dublin")
    s = Settings(_env_file=None)
    assert s.medication_sweep_minutes == 5
    assert s.careo_timezone == "Europe/Dublin"


def test_unknown_timezone_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, careo_timezone="Mars/Olympus_Mons")


def test_database_url_fallback(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///fallback.db")
    s = Settings(_env_file=None, database_url_app="")
    assert s.database_url_app == "sqlite:///fallback.db"


def test_migrator_url_inferred_from_app_url(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URL_APP", "postgresql+psycopg://careo_app:pw@db:5432/careo")
    s = Settings(_env_file=None)
    assert s.database_url_migrator == "postgresql+psycopg://careo_migrator:pw@db:5432/careo"
