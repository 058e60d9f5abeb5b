import asyncio
import os
import sys
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault('APP_ENV', 'test')
os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('SUPABASE_URL', 'https://example.supabase.co')
os.environ.setdefault('SUPABASE_ANON_KEY', 'anon-key')
os.environ.setdefault('SUPABASE_JWT_SECRET', 'test-jwt-secret')
os.environ.setdefault('OPENWEATHERMAP_API_KEY', 'weather-key')
os.environ.setdefault('REALTIME_ENABLED', 'false')
os.environ.setdefault('AUTH_REQUIRED', 'true')

from app.models import Base, Plan, Project, Workflow  # noqa: E402
from app.schemas.dashboard import WeatherSnapshot  # noqa: E402

TODAY = date(2024, 5, 1)


class FakeWeatherClient:
    """Returns queued snapshots (or raises queued errors), optionally waiting on a gate."""

    def __init__(self, *results):
        self.results = list(results) or [
            WeatherSnapshot(temperature=21.5, description="clear sky", location="Kathmandu")
        ]
        self.cities = []

    async def current(self, city):
        self.cities.append(city)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, tuple):
            gate, result = result
            await gate.wait()
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'dashboard.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def seeded(session_factory):
    with session_factory() as db:
        db.add_all(
            [
                Project(id="p1", name="Bridge Retrofit", location={"lat": 27.70, "lng": 85.32}),
                Project(id="p2", name="Hospital Wing", location={"lat": 27.68, "lng": 85.31}),
                Plan(id="pl1", task="Pour foundation", start_date=TODAY, project_id="p1"),
                Plan(id="pl2", task="Inspect rebar", start_date=TODAY, project_id="p2"),
                Plan(id="pl3", task="Order steel", start_date=date(2024, 4, 30), project_id="p1"),
                Plan(id="pl4", task="Frame walls", start_date=date(2024, 5, 2), project_id="p2"),
                Workflow(id="w1", name="Permit approval", status="delayed", project_id="p1"),
                Workflow(id="w2", name="Concrete curing", status="on_track", project_id="p1"),
                Workflow(id="w3", name="Crane delivery", status="delayed", project_id="p2"),
                Workflow(id="w4", name="Site survey", status="completed", project_id="p2"),
            ]
        )
        db.commit()
    return session_factory


@pytest.fixture
def weather():
    return FakeWeatherClient()


@pytest.fixture
def run():
    return asyncio.run
