"""Progress Engine — bottom-up recomputation of cached progress.

    study.progress   = 100 * completed research tasks / research tasks  (0 if none)
    project.progress = mean(progress of the project's non-deleted studies) (0 if none)

Both values are rounded half-up to 2 decimals. Soft-deleted tasks and
studies are ignored. Admin tasks (no study) never contribute at either level.

The engine never opens or commits a transaction: it must run inside the
transaction that mutated the task, so a crash between the task write and
the progress write leaves neither. Counts are always re-read from the
store; the study row is locked first so concurrent completions in the same
study serialize on it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from labtrack.db.repositories import ProjectRepository, StudyRepository, TaskRepository
from labtrack.errors import NotFoundError

logger = logging.getLogger(__name__)

_TWO_PLACES = Decimal("0.01")


def round_percentage(value: Decimal) -> float:
    return float(value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def study_percentage(completed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round_percentage(Decimal(100) * Decimal(completed) / Decimal(total))


def mean_percentage(values: list[float]) -> float:
    if not values:
        return 0.0
    total = sum((Decimal(str(v)) for v in values), Decimal(0))
    return round_percentage(total / Decimal(len(values)))


@dataclass(frozen=True)
class ProgressResult:
    study_id: str
    study_progress: float
    project_id: str
    project_progress: float


class ProgressEngine:
    """Recomputes Study and Project progress through repository ports."""

    def __init__(
        self,
        tasks: TaskRepository,
        studies: StudyRepository,
        projects: ProjectRepository,
    ) -> None:
        self._tasks = tasks
        self._studies = studies
        self._projects = projects

    def recompute(self, study_id: str) -> ProgressResult:
        """Recompute a study and its parent project.

        Raises:
            NotFoundError: If the study or its project does not exist.
        """
        study = self._studies.get(study_id, for_update=True)
        if study is None:
            raise NotFoundError(f"Study {study_id} not found")

        study_progress = self._recompute_study(study)
        project_progress = self._recompute_project_only(study.project_id)

        logger.info(
            "Progress recomputed: study %s = %.2f, project %s = %.2f",
            study_id, study_progress, study.project_id, project_progress,
        )
        return ProgressResult(
            study_id=study_id,
            study_progress=study_progress,
            project_id=study.project_id,
            project_progress=project_progress,
        )

    def recompute_project(self, project_id: str) -> float:
        """Recompute every study of a project, then the project itself.

        Bulk correction path; the per-completion path is ``recompute``.
        """
        project = self._projects.get(project_id, for_update=True)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        for study in self._studies.list_for_project(project_id):
            self._recompute_study(study)
        return self._recompute_project_only(project_id)

    def _recompute_study(self, study) -> float:
        total = self._tasks.count_research_tasks(study.id)
        completed = self._tasks.count_research_tasks(study.id, completed_only=True) if total else 0
        progress = study_percentage(completed, total)
        self._studies.set_progress(study, progress)
        return progress

    def _recompute_project_only(self, project_id: str) -> float:
        project = self._projects.get(project_id, for_update=True)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        studies = self._studies.list_for_project(project_id)
        progress = mean_percentage([s.progress for s in studies])
        self._projects.set_progress(project, progress)
        return progress
