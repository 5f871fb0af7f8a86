"""Shared test fixtures for LabTrack backend tests."""

import os
import sys

import pytest

# Ensure backend is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.dirname(__file__))
os.environ.setdefault("DATABASE_URL", "sqlite:///test.db")

from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from labtrack.db.database import create_db_and_tables, make_engine
from labtrack.db.unit_of_work import UnitOfWork
from labtrack.models.task import Project, Study, Task, TaskStatus, TaskType
from labtrack.models.user import User


def make_memory_engine():
    """Fresh in-memory SQLite database shared by every session of one test."""
    engine = make_engine("sqlite://", poolclass=StaticPool)
    create_db_and_tables(engine)
    return engine


class Lab:
    """Seeded lab: manager M, researchers R and R2, project P with study S."""

    def __init__(self, engine) -> None:
        self.engine = engine
        self.manager = self.add(User(email="mia@lab.test", first_name="Mia", last_name="Manager", role="manager"))
        self.researcher = self.add(User(email="rae@lab.test", first_name="Rae", last_name="Okafor", role="researcher"))
        self.researcher2 = self.add(User(email="ren@lab.test", first_name="Ren", last_name="Sato", role="researcher"))
        self.project = self.add(Project(name="Spaceflight anemia", created_by_id=self.manager.id))
        self.study = self.add_study("Hemolysis")

    def add(self, row):
        with Session(self.engine, expire_on_commit=False) as session:
            session.add(row)
            session.commit()
        return row

    def add_study(self, name: str = "Study", project: Project | None = None) -> Study:
        project = project or self.project
        return self.add(Study(project_id=project.id, name=name, created_by_id=self.manager.id))

    def add_task(self, study: Study | None = None, **overrides) -> Task:
        fields = {
            "name": "Quantify splenic hemolysis",
            "task_type": TaskType.RESEARCH.value,
            "study_id": (study or self.study).id,
            "status": TaskStatus.IN_PROGRESS.value,
            "assigned_to_id": self.researcher.id,
            "created_by_id": self.manager.id,
        }
        fields.update(overrides)
        return self.add(Task(**fields))

    def get(self, model, row_id: str):
        with Session(self.engine) as session:
            row = session.get(model, row_id)
            if row is not None:
                session.expunge(row)
            return row

    def uow(self) -> UnitOfWork:
        return UnitOfWork(self.engine)


@pytest.fixture
def lab():
    return Lab(make_memory_engine())
