"""
Dashboard data loader.

Fetches today's plans, delayed workflows, all projects and the current
weather concurrently, and keeps the last good result for each panel.
"""
from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Set

from pydantic import ValidationError
from sqlalchemy.orm import Session, sessionmaker

from app.config import settings
from app.core.logger import get_logger
from app.core.exceptions import AppError
from app.database import SessionLocal
from app.integrations.weather import WeatherClient
from app.models import DELAYED, Plan, Project, Workflow
from app.schemas.dashboard import (
    Coordinates,
    DashboardSnapshot,
    Notification,
    PlanOut,
    ProjectOut,
    WeatherSnapshot,
    WorkflowOut,
)

logger = get_logger(__name__)

SnapshotListener = Callable[[DashboardSnapshot], Awaitable[Any]]


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def error_text(exc: BaseException) -> str:
    if isinstance(exc, AppError):
        return exc.message
    return str(exc) or "An unexpected error occurred"


class DashboardLoader:
    """Owns the dashboard panel state and refreshes it from the backend."""

    def __init__(
        self,
        session_factory: sessionmaker | Callable[[], Session] = SessionLocal,
        weather_client: WeatherClient | None = None,
        city: str | None = None,
        today: Callable[[], date] = utc_today,
    ):
        self._session_factory = session_factory
        self._weather = weather_client or WeatherClient()
        self.city = city or settings.weather_city
        self._today = today

        self.plans: List[PlanOut] = []
        self.workflows: List[WorkflowOut] = []
        self.projects: List[ProjectOut] = []
        self.weather: Optional[WeatherSnapshot] = None
        self.notifications: List[Notification] = []
        self.loading = False

        self._generation = 0
        self._applied_generation = 0
        self.refetch_count = 0
        self.dropped_count = 0
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[SnapshotListener] = []

    @property
    def generation(self) -> int:
        return self._applied_generation

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> DashboardSnapshot:
        return DashboardSnapshot(
            plans=list(self.plans),
            workflows=list(self.workflows),
            projects=list(self.projects),
            weather=self.weather,
            loading=self.loading,
            generation=self._applied_generation,
            notifications=list(self.notifications),
        )

    def refresh(self) -> asyncio.Task:
        """Start a full refetch in the background and return its task."""
        task = asyncio.create_task(self.load())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def load(self) -> DashboardSnapshot:
        self._generation += 1
        generation = self._generation
        self.refetch_count += 1
        self.loading = True
        day = self._today()

        try:
            results = await asyncio.gather(
                asyncio.to_thread(self._fetch_plans, day),
                asyncio.to_thread(self._fetch_workflows),
                asyncio.to_thread(self._fetch_projects),
                self._weather.current(self.city),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException) and not isinstance(result, Exception):
                    raise result
        except BaseException:
            if generation == self._generation:
                self.loading = False
            raise

        plans, workflows, projects, weather = results
        notifications: List[Notification] = []
        for name, result in (("plans", plans), ("workflows", workflows), ("projects", projects), ("weather", weather)):
            if isinstance(result, Exception):
                logger.warning("Dashboard %s fetch failed: %s", name, result)
                notifications.append(
                    Notification(level="error", message=f"Error fetching data: {error_text(result)}")
                )

        fresh = DashboardSnapshot(
            plans=self.plans if isinstance(plans, Exception) else plans,
            workflows=self.workflows if isinstance(workflows, Exception) else workflows,
            projects=self.projects if isinstance(projects, Exception) else projects,
            weather=self.weather if isinstance(weather, Exception) else weather,
            loading=False,
            generation=generation,
            notifications=notifications,
        )

        if generation != self._generation:
            # A newer refetch owns the shared state; the caller still gets what this one read.
            self.dropped_count += 1
            logger.debug("Dropping superseded dashboard refetch %s (latest %s)", generation, self._generation)
            return fresh

        self.plans = list(fresh.plans)
        self.workflows = list(fresh.workflows)
        self.projects = list(fresh.projects)
        self.weather = fresh.weather
        self.notifications = list(notifications)
        self._applied_generation = generation
        self.loading = False

        snapshot = self.snapshot()
        await self._notify(snapshot)
        return snapshot

    async def _notify(self, snapshot: DashboardSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                await listener(snapshot)
            except Exception:
                logger.exception("Dashboard listener failed")

    def _fetch_plans(self, day: date) -> List[PlanOut]:
        with self._session_factory() as db:
            rows = (
                db.query(Plan)
                .filter(Plan.start_date >= day, Plan.start_date <= day)
                .order_by(Plan.task.asc())
                .all()
            )
            return [PlanOut.model_validate(row) for row in rows]

    def _fetch_workflows(self) -> List[WorkflowOut]:
        with self._session_factory() as db:
            rows = db.query(Workflow).filter(Workflow.status == DELAYED).order_by(Workflow.name.asc()).all()
            return [WorkflowOut.model_validate(row) for row in rows]

    def _fetch_projects(self) -> List[ProjectOut]:
        with self._session_factory() as db:
            rows = db.query(Project).order_by(Project.name.asc()).all()
            return [self._project_out(row) for row in rows]

    @staticmethod
    def _project_out(row: Project) -> ProjectOut:
        location = None
        if isinstance(row.location, dict):
            try:
                location = Coordinates(**row.location)
            except (TypeError, ValidationError):
                logger.warning("Project %s has an unreadable location: %r", row.id, row.location)
        return ProjectOut(id=row.id, name=row.name, location=location)
