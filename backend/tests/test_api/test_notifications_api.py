"""Tests for the notification API — callers only ever see their own."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("DATABASE_URL", "sqlite:///test.db")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from labtrack.api.deps import get_bus, get_uow_factory
from labtrack.api.handlers import install_error_handlers
from labtrack.api.v1.notifications import router as notifications_router
from labtrack.middleware.auth import AccessTokenAuthMiddleware
from labtrack.models.notification import Notification


@pytest.fixture
def client(lab):
    test_app = FastAPI()
    test_app.add_middleware(AccessTokenAuthMiddleware)
    install_error_handlers(test_app)
    test_app.include_router(notifications_router)
    test_app.dependency_overrides[get_uow_factory] = lambda: lab.uow
    test_app.dependency_overrides[get_bus] = lambda: None
    return TestClient(test_app)


def _seed(lab, user, count: int, **overrides) -> list[Notification]:
    start = datetime(2026, 3, 1, tzinfo=timezone.utc)
    rows = []
    for i in range(count):
        fields = {"user_id": user.id, "title": f"Update {i}", "message": "Task changed",
                  "created_at": start + timedelta(minutes=i)}
        fields.update(overrides)
        rows.append(lab.add(Notification(**fields)))
    return rows


def test_list_is_newest_first_and_scoped_to_caller(client, lab):
    _seed(lab, lab.researcher, 3)
    _seed(lab, lab.researcher2, 2)

    resp = client.get("/api/v1/notifications", headers={"X-User-Id": lab.researcher.id})

    assert resp.status_code == 200
    titles = [n["title"] for n in resp.json()["data"]]
    assert titles == ["Update 2", "Update 1", "Update 0"]


def test_list_respects_limit(client, lab):
    _seed(lab, lab.researcher, 5)

    resp = client.get("/api/v1/notifications?limit=2", headers={"X-User-Id": lab.researcher.id})

    assert len(resp.json()["data"]) == 2
    assert client.get(
        "/api/v1/notifications?limit=0", headers={"X-User-Id": lab.researcher.id},
    ).status_code == 400


def test_unread_count_and_mark_read(client, lab):
    first, _ = _seed(lab, lab.researcher, 2)
    headers = {"X-User-Id": lab.researcher.id}

    assert client.get("/api/v1/notifications/unread-count", headers=headers).json() == {"count": 2}

    resp = client.patch(f"/api/v1/notifications/{first.id}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["read"] is True
    assert client.get("/api/v1/notifications/unread-count", headers=headers).json() == {"count": 1}

    # Marking again is a no-op
    assert client.patch(f"/api/v1/notifications/{first.id}", headers=headers).status_code == 200
    assert client.get("/api/v1/notifications/unread-count", headers=headers).json() == {"count": 1}


def test_cannot_mark_someone_elses_notification(client, lab):
    (theirs,) = _seed(lab, lab.researcher2, 1)

    resp = client.patch(f"/api/v1/notifications/{theirs.id}", headers={"X-User-Id": lab.researcher.id})

    assert resp.status_code == 404
    assert resp.json()["error"] == "NotFoundError"


def test_unknown_user_is_rejected(client, lab):
    resp = client.get("/api/v1/notifications", headers={"X-User-Id": "ghost"})
    assert resp.status_code == 401
