from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from api_server import app
from time_utils import utcnow


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user(client):
    response = client.post("/users", json={"name": "Ada", "phone_number": "+15551234567"})
    assert response.status_code == 201
    return response.json()


def iso(value):
    return value.isoformat()


def test_health_reports_stopped_scheduler(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["scheduler"] == "stopped"


def test_task_lifecycle(client, user):
    due = utcnow() + timedelta(days=1)
    response = client.post("/tasks", json={
        "owner_id": user["id"],
        "title": "File report",
        "due_date": iso(due),
        "priority": "high",
        "reminders": [{"time": iso(due - timedelta(hours=1)), "method": "sms", "message": "Print it"}],
    })
    assert response.status_code == 201
    task = response.json()
    assert task["priority"] == "high"
    assert task["status"] == "pending"
    assert task["reminders"][0]["method"] == "sms"
    assert task["reminders"][0]["is_sent"] is False
    assert task["due_date"].endswith(("Z", "+00:00"))

    listed = client.get("/tasks", params={"owner_id": user["id"]}).json()
    assert [t["id"] for t in listed] == [task["id"]]

    fetched = client.get(f"/tasks/{task['id']}", params={"owner_id": user["id"]})
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "File report"

    replaced = client.put(
        f"/tasks/{task['id']}/reminders",
        params={"owner_id": user["id"]},
        json={"reminders": [{"time": iso(due)}, {"time": iso(due - timedelta(minutes=10)), "method": "email"}]},
    )
    assert replaced.status_code == 200
    assert [r["method"] for r in replaced.json()["reminders"]] == ["email", "app_notification"]

    deleted = client.delete(f"/tasks/{task['id']}", params={"owner_id": user["id"]})
    assert deleted.status_code == 200
    assert client.get(f"/tasks/{task['id']}", params={"owner_id": user["id"]}).status_code == 404


def test_entity_is_hidden_from_other_owners(client, user):
    other = client.post("/users", json={"name": "Grace"}).json()
    goal = client.post("/goals", json={
        "owner_id": user["id"],
        "title": "Read 12 books",
        "target_date": iso(utcnow() + timedelta(days=90)),
    }).json()

    assert client.get(f"/goals/{goal['id']}", params={"owner_id": other["id"]}).status_code == 404
    assert client.delete(f"/goals/{goal['id']}", params={"owner_id": other["id"]}).status_code == 404


def test_unknown_owner_is_rejected(client):
    response = client.post("/tasks", json={"owner_id": "nobody", "title": "Orphan task"})

    assert response.status_code == 400


def test_validation_errors(client, user):
    start = utcnow() + timedelta(days=1)
    bad_event = client.post("/events", json={
        "owner_id": user["id"],
        "title": "Backwards",
        "start_time": iso(start),
        "end_time": iso(start - timedelta(hours=1)),
    })
    assert bad_event.status_code == 422

    bad_method = client.post("/tasks", json={
        "owner_id": user["id"],
        "title": "Carrier pigeon",
        "reminders": [{"time": iso(start), "method": "pigeon"}],
    })
    assert bad_method.status_code == 422

    short_goal = client.post("/goals", json={
        "owner_id": user["id"],
        "title": "Gym",
        "target_date": iso(start),
    })
    assert short_goal.status_code == 422


def test_client_cannot_set_sent_state(client, user):
    response = client.post("/events", json={
        "owner_id": user["id"],
        "title": "Team sync",
        "start_time": iso(utcnow() + timedelta(days=1)),
        "reminders": [{"time": iso(utcnow() + timedelta(hours=20)), "is_sent": True}],
    })

    assert response.status_code == 201
    assert response.json()["reminders"][0]["is_sent"] is False


def test_manual_scan_sends_due_reminder(client, user):
    event = client.post("/events", json={
        "owner_id": user["id"],
        "title": "Standup",
        "start_time": iso(utcnow() + timedelta(minutes=30)),
        "reminders": [{"time": iso(utcnow() + timedelta(minutes=5)), "method": "app_notification"}],
    }).json()

    response = client.post("/scheduler/scan")
    assert response.status_code == 200
    assert response.json()["sent"] >= 1

    reminder = client.get(f"/events/{event['id']}", params={"owner_id": user["id"]}).json()["reminders"][0]
    assert reminder["is_sent"] is True
    assert reminder["sent_at"] is not None


def test_task_fields_can_be_updated_without_resetting_sent_reminders(client, user):
    task = client.post("/tasks", json={
        "owner_id": user["id"],
        "title": "File report",
        "due_date": iso(utcnow() + timedelta(hours=1)),
        "reminders": [{"time": iso(utcnow() + timedelta(minutes=5))}],
    }).json()
    assert client.post("/scheduler/scan").status_code == 200

    new_due = utcnow() + timedelta(days=2)
    response = client.put(
        f"/tasks/{task['id']}",
        params={"owner_id": user["id"]},
        json={"title": "File report v2", "due_date": iso(new_due), "status": "in-progress"},
    )

    assert response.status_code == 200
    updated = response.json()
    assert updated["title"] == "File report v2"
    assert updated["status"] == "in-progress"
    assert updated["reminders"][0]["id"] == task["reminders"][0]["id"]
    assert updated["reminders"][0]["is_sent"] is True


def test_entity_update_errors(client, user):
    other = client.post("/users", json={"name": "Grace"}).json()
    start = utcnow() + timedelta(days=1)
    event = client.post("/events", json={
        "owner_id": user["id"],
        "title": "Team sync",
        "start_time": iso(start),
    }).json()
    url = f"/events/{event['id']}"

    assert client.put(url, params={"owner_id": other["id"]}, json={"title": "Hijacked"}).status_code == 404
    assert client.put(url, params={"owner_id": user["id"]}, json={"title": "ab"}).status_code == 422
    ends_early = client.put(url, params={"owner_id": user["id"]}, json={"end_time": iso(start - timedelta(hours=1))})
    assert ends_early.status_code == 400
    assert client.get(url, params={"owner_id": user["id"]}).json()["end_time"] is None
