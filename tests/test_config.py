import asyncio
import random
import time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import main
from config import Settings
from main import create_app
from scheduler import VirtualClock
from tests.conftest import TEST_SECRET

LOCATION = {"lat": 40.7128, "lng": -74.0060, "address": "Times Square"}

ENV_VARS = (
    "JWT_SECRET", "PORT", "DATABASE_URL", "BCRYPT_ROUNDS", "TOKEN_TTL_DAYS",
    "CORS_ORIGINS", "SIMULATION_REALTIME", "SIMULATION_SEED", "VITE_API_URL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_env()
    assert settings.jwt_secret == "TaxiNow"
    assert settings.port == 5000
    assert settings.token_ttl_days == 7
    assert settings.cors_origins == ["*"]
    assert settings.simulation_realtime is False
    assert settings.simulation_seed is None
    assert settings.api_url == "http://localhost:5000/api"


def test_values_from_environment(clean_env):
    clean_env.setenv("JWT_SECRET", "s3cret")
    clean_env.setenv("PORT", "8080")
    clean_env.setenv("CORS_ORIGINS", "http://localhost:5173, https://taxi.example.com ,")
    clean_env.setenv("SIMULATION_REALTIME", "true")
    clean_env.setenv("SIMULATION_SEED", "12")

    settings = Settings.from_env()
    assert settings.jwt_secret == "s3cret"
    assert settings.port == 8080
    assert settings.cors_origins == ["http://localhost:5173", "https://taxi.example.com"]
    assert settings.simulation_realtime is True
    assert settings.simulation_seed == 12


@pytest.mark.parametrize("value, expected", [
    ("1", True), ("YES", True), (" on ", True), ("false", False), ("0", False), ("", False),
])
def test_realtime_flag_parsing(clean_env, value, expected):
    clean_env.setenv("SIMULATION_REALTIME", value)
    assert Settings.from_env().simulation_realtime is expected


def test_blank_seed_means_unseeded(clean_env):
    clean_env.setenv("SIMULATION_SEED", " ")
    assert Settings.from_env().simulation_seed is None


def test_shutdown_releases_simulation_timers(store):
    clock = VirtualClock()
    app = create_app(Settings(jwt_secret=TEST_SECRET), user_store=store, clock=clock, rng=random.Random(7))

    with TestClient(app) as client:
        client.post("/api/taxis/location", json=LOCATION)
        taxi = client.get("/api/taxis").json()[0]
        assert client.post("/api/bookings", json={"taxiId": taxi["id"]}).status_code == 200
        assert clock.pending() == 2

    assert clock.pending() == 0


def test_realtime_pump_moves_the_clock(store, monkeypatch):
    monkeypatch.setattr(main, "PUMP_INTERVAL_SECONDS", 0.01)
    clock = VirtualClock()
    settings = Settings(jwt_secret=TEST_SECRET, simulation_realtime=True)
    app = create_app(settings, user_store=store, clock=clock, rng=random.Random(7))

    with TestClient(app):
        deadline = time.monotonic() + 5
        while clock.now_ms == 0 and time.monotonic() < deadline:
            time.sleep(0.02)
        assert clock.now_ms > 0


class StopPump(Exception):
    pass


def test_pump_keeps_sub_millisecond_remainder(monkeypatch):
    # Three pumps of 1.5ms each add up to 4ms, not 3
    readings = iter([0.0, 0.0015, 0.003, 0.0045])
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        if len(sleeps) > 3:
            raise StopPump()

    monkeypatch.setattr(main, "time", SimpleNamespace(monotonic=lambda: next(readings)))
    monkeypatch.setattr(main, "asyncio", SimpleNamespace(sleep=fake_sleep))
    clock = VirtualClock()
    app = SimpleNamespace(state=SimpleNamespace(clock=clock))

    with pytest.raises(StopPump):
        asyncio.run(main.pump_clock(app))
    assert clock.now_ms == 4
