from __future__ import annotations

import math
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    lat: float
    lng: float

    def is_valid(self) -> bool:
        """True for finite coordinates inside the WGS84 range."""
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            return False
        return -90.0 <= self.lat <= 90.0 and -180.0 <= self.lng <= 180.0


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    task: str
    start_date: date
    project_id: Optional[str] = None


class WorkflowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    status: str
    project_id: Optional[str] = None


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    location: Optional[Coordinates] = None


class WeatherSnapshot(BaseModel):
    temperature: float
    description: str
    location: str

    @property
    def summary(self) -> str:
        return f"{self.description} in {self.location}"

    @property
    def temperature_label(self) -> str:
        return f"{self.temperature}°C"


class Notification(BaseModel):
    level: Literal["success", "error", "info"] = "info"
    message: str


class DashboardSnapshot(BaseModel):
    plans: list[PlanOut] = Field(default_factory=list)
    workflows: list[WorkflowOut] = Field(default_factory=list)
    projects: list[ProjectOut] = Field(default_factory=list)
    weather: Optional[WeatherSnapshot] = None
    loading: bool = False
    generation: int = 0
    notifications: list[Notification] = Field(default_factory=list)
