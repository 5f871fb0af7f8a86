#!/usr/bin/env python3
"""Recompute cached Study and Project progress from task data.

Bulk correction path for data imported or edited outside the API. Each
project is recomputed in its own transaction.

Usage:
    uv run python scripts/recompute_progress.py
    uv run python scripts/recompute_progress.py --project <project-id>
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from labtrack.db.database import create_db_and_tables
from labtrack.db.unit_of_work import UnitOfWork
from labtrack.engines.progress import ProgressEngine
from labtrack.errors import LabTrackError

logger = logging.getLogger("recompute_progress")


def recompute(project_ids: list[str] | None = None) -> dict[str, float]:
    if project_ids is None:
        with UnitOfWork() as uow:
            project_ids = uow.projects.list_ids()

    results: dict[str, float] = {}
    for project_id in project_ids:
        try:
            with UnitOfWork() as uow:
                engine = ProgressEngine(uow.tasks, uow.studies, uow.projects)
                results[project_id] = engine.recompute_project(project_id)
        except LabTrackError as e:
            logger.error("Project %s: %s", project_id, e.message)
            continue
        logger.info("Project %s → %.2f%%", project_id, results[project_id])
    return results


def main() -> None:
    parser = argparse.ArgumentParser(description="Recompute study and project progress")
    parser.add_argument("--project", action="append", dest="projects", help="Project id (repeatable)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    create_db_and_tables()
    results = recompute(args.projects)
    print(f"Recomputed {len(results)} project(s)")


if __name__ == "__main__":
    main()
