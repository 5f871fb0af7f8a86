"""Tests for ProgressEngine — study and project progress recomputation."""

import os
import sys
from datetime import datetime, timezone
from decimal import Decimal

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("DATABASE_URL", "sqlite:///test.db")

import pytest

from labtrack.engines.progress import (
    ProgressEngine,
    mean_percentage,
    round_percentage,
    study_percentage,
)
from labtrack.errors import NotFoundError
from labtrack.models.task import Project, Study, Task, TaskStatus, TaskType


def _recompute(lab, study_id):
    with lab.uow() as uow:
        return ProgressEngine(uow.tasks, uow.studies, uow.projects).recompute(study_id)


# === Arithmetic ===


def test_study_percentage_basic():
    assert study_percentage(1, 4) == 25.0
    assert study_percentage(1, 5) == 20.0
    assert study_percentage(0, 0) == 0.0


def test_study_percentage_rounds_to_two_places():
    assert study_percentage(1, 3) == 33.33
    assert study_percentage(2, 3) == 66.67


def test_round_percentage_half_up():
    assert round_percentage(Decimal("12.345")) == 12.35
    assert round_percentage(Decimal("12.344")) == 12.34


def test_mean_percentage():
    assert mean_percentage([]) == 0.0
    assert mean_percentage([25.0, 75.0]) == 50.0
    assert mean_percentage([33.33, 66.67, 100.0]) == 66.67


# === Recompute against the database ===


def test_one_of_four_then_fifth_task(lab):
    """4 tasks, 1 completed → 25.00; adding a 5th → 20.00."""
    lab.add_task(status=TaskStatus.COMPLETED.value)
    for _ in range(3):
        lab.add_task()

    result = _recompute(lab, lab.study.id)
    assert result.study_progress == 25.0
    assert lab.get(Study, lab.study.id).progress == 25.0

    lab.add_task()
    result = _recompute(lab, lab.study.id)
    assert result.study_progress == 20.0
    assert lab.get(Study, lab.study.id).progress == 20.0


def test_empty_study_is_zero(lab):
    result = _recompute(lab, lab.study.id)
    assert result.study_progress == 0.0
    assert result.project_progress == 0.0


def test_recompute_is_idempotent(lab):
    lab.add_task(status=TaskStatus.COMPLETED.value)
    lab.add_task()
    lab.add_task()

    first = _recompute(lab, lab.study.id)
    second = _recompute(lab, lab.study.id)
    assert first == second
    assert first.study_progress == 33.33


def test_project_is_mean_of_studies(lab):
    other = lab.add_study("Erythropoiesis")
    lab.add_task(status=TaskStatus.COMPLETED.value)
    lab.add_task()
    lab.add_task(study=other, status=TaskStatus.COMPLETED.value)

    _recompute(lab, lab.study.id)
    result = _recompute(lab, other.id)

    assert result.study_progress == 100.0
    assert result.project_progress == 75.0
    assert lab.get(Project, lab.project.id).progress == 75.0


def test_deleted_tasks_are_ignored(lab):
    lab.add_task(status=TaskStatus.COMPLETED.value)
    lab.add_task(deleted_at=datetime.now(timezone.utc))

    result = _recompute(lab, lab.study.id)
    assert result.study_progress == 100.0


def test_deleted_studies_do_not_count_towards_project(lab):
    trashed = lab.add_study("Abandoned")
    lab.add(Study(
        id="unused", project_id=lab.project.id, name="Unused",
        created_by_id=lab.manager.id, deleted_at=datetime.now(timezone.utc),
    ))
    lab.add_task(status=TaskStatus.COMPLETED.value)
    lab.add_task(study=trashed)

    with lab.uow() as uow:
        study = uow.studies.get(trashed.id)
        study.deleted_at = datetime.now(timezone.utc)

    result = _recompute(lab, lab.study.id)
    assert result.study_progress == 100.0
    assert result.project_progress == 100.0


def test_admin_tasks_never_contribute(lab):
    lab.add_task(status=TaskStatus.COMPLETED.value)
    lab.add_task()
    lab.add(Task(
        name="Order reagents", task_type=TaskType.ADMIN.value, study_id=None,
        project_id=lab.project.id, status=TaskStatus.COMPLETED.value, created_by_id=lab.manager.id,
    ))

    result = _recompute(lab, lab.study.id)
    assert result.study_progress == 50.0


def test_unknown_study_raises(lab):
    with pytest.raises(NotFoundError):
        _recompute(lab, "no-such-study")


def test_recompute_project_corrects_every_study(lab):
    other = lab.add_study("Erythropoiesis")
    lab.add_task(status=TaskStatus.COMPLETED.value)
    lab.add_task(study=other)

    with lab.uow() as uow:
        progress = ProgressEngine(uow.tasks, uow.studies, uow.projects).recompute_project(lab.project.id)

    assert progress == 50.0
    assert lab.get(Study, lab.study.id).progress == 100.0
    assert lab.get(Study, other.id).progress == 0.0


def test_engine_runs_against_fakes():
    """The engine only needs the repository ports."""
    from fakes import FakeProjectRepository, FakeStore, FakeStudyRepository, FakeTaskRepository

    store = FakeStore()
    project = Project(id="p1", name="P")
    study = Study(id="s1", project_id="p1", name="S")
    store.seed(project, study)
    for i, status in enumerate(["completed", "completed", "pending", "in_progress"]):
        store.seed(Task(id=f"t{i}", name=f"T{i}", study_id="s1", status=status, created_by_id="m"))

    engine = ProgressEngine(FakeTaskRepository(store), FakeStudyRepository(store), FakeProjectRepository(store))
    result = engine.recompute("s1")

    assert result.study_progress == 50.0
    assert result.project_progress == 50.0
    assert store.projects["p1"].progress == 50.0
