"""
SQLAlchemy models mirroring the hosted construction-project tables.
"""
from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, Date, ForeignKey, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

DELAYED = "delayed"


def _new_id() -> str:
    return str(uuid.uuid4())


class Project(Base):
    __tablename__ = "projects"

    id = Column(Text, primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    # {"lat": float, "lng": float}
    location = Column(JSON)


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Text, primary_key=True, default=_new_id)
    task = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False, index=True)
    project_id = Column(Text, ForeignKey("projects.id", ondelete="CASCADE"))


class Workflow(Base):
    __tablename__ = "workflows"

    id = Column(Text, primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    status = Column(Text, nullable=False, index=True)
    project_id = Column(Text, ForeignKey("projects.id", ondelete="CASCADE"))


__all__ = ["Base", "DELAYED", "Plan", "Project", "Workflow"]
