"""HTTP tests for the auth, task and admin routers."""

import asyncio
from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlmodel import Session, select

from taskminder.config import get_settings
from taskminder.main import app, lifespan
from taskminder.models.reminder import ReminderStatus, ScheduledReminder


def task_body(days_ahead: int = 10, **fields) -> dict:
    due = datetime.utcnow() + timedelta(days=days_ahead)
    return {
        "title": "Water plants",
        "due_date": due.date().isoformat(),
        "due_time": "18:30",
        "reminder_frequency": "Once",
        **fields,
    }


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestStartup:
    async def _start(self) -> None:
        async with lifespan(app):
            pass

    def test_startup_requires_jwt_secret(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "JWT_SECRET", "")

        with pytest.raises(ValueError, match="JWT_SECRET"):
            asyncio.run(self._start())

    def test_startup_with_secret(self):
        asyncio.run(self._start())


class TestAuthApi:
    """Tests for /api/auth."""

    def test_google_then_verify(self, client, email_sender):
        response = client.post("/api/auth/google", json={"token": "valid:Someone@Example.com"})
        assert response.status_code == 200
        assert response.json()["email"] == "someone@example.com"

        code = email_sender.sent[-1].text_body.split()[3].rstrip(".")
        response = client.post("/api/auth/verify", json={"email": "someone@example.com", "otp": code})
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["email"] == "someone@example.com"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == "someone@example.com"

    def test_invalid_google_token(self, client):
        response = client.post("/api/auth/google", json={"token": "forged"})
        assert response.status_code == 401

    def test_wrong_otp(self, client):
        client.post("/api/auth/google", json={"token": "valid:someone@example.com"})

        response = client.post("/api/auth/verify", json={"email": "someone@example.com", "otp": "abcdef"})

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid OTP"}

    def test_malformed_otp_request(self, client):
        response = client.post("/api/auth/verify", json={"email": "nope", "otp": "123"})
        assert response.status_code == 422

    def test_logout(self, client, auth_headers):
        response = client.post("/api/auth/logout", headers=auth_headers)
        assert response.status_code == 200

    def test_requires_token(self, client):
        assert client.get("/api/auth/me").status_code in (401, 403)
        bad = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert bad.status_code == 401


class TestTasksApi:
    """Tests for /api/tasks."""

    def test_create_returns_reminder_info(self, client, auth_headers, db_session: Session):
        response = client.post("/api/tasks", json=task_body(), headers=auth_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["task"]["title"] == "Water plants"
        assert body["task"]["reminder_state"]["total_reminders"] == 1
        assert body["task"]["reminder_state"]["sent_reminders"] == 0
        assert body["reminder_info"]["type"] == "Custom"
        assert body["reminder_info"]["next_reminder"] is not None

        job = db_session.exec(select(ScheduledReminder)).one()
        assert job.recipient == "user@example.com"
        assert job.status == ReminderStatus.PENDING

    def test_create_rejects_bad_time(self, client, auth_headers):
        response = client.post("/api/tasks", json=task_body(due_time="7pm"), headers=auth_headers)
        assert response.status_code == 422

    def test_crud_flow(self, client, auth_headers):
        task_id = client.post("/api/tasks", json=task_body(), headers=auth_headers).json()["task"]["id"]

        listed = client.get("/api/tasks", headers=auth_headers).json()
        assert listed["total"] == 1

        fetched = client.get(f"/api/tasks/{task_id}", headers=auth_headers)
        assert fetched.status_code == 200

        completed = client.put(f"/api/tasks/{task_id}", json={"completed": True}, headers=auth_headers)
        assert completed.status_code == 200
        assert completed.json()["completed"] is True
        assert completed.json()["reminder_state"]["next_reminder_due_at"] is None

        pending = client.get("/api/tasks?include_completed=false", headers=auth_headers).json()
        assert pending["total"] == 0

        assert client.delete(f"/api/tasks/{task_id}", headers=auth_headers).status_code == 204
        missing = client.get(f"/api/tasks/{task_id}", headers=auth_headers)
        assert missing.status_code == 404
        assert missing.json() == {"detail": "Task not found"}

    def test_filter_overdue(self, client, auth_headers):
        client.post("/api/tasks", json=task_body(days_ahead=-3, title="Late"), headers=auth_headers)
        client.post("/api/tasks", json=task_body(days_ahead=3, title="Soon"), headers=auth_headers)

        overdue = client.get("/api/tasks?filter=overdue", headers=auth_headers).json()

        assert [t["title"] for t in overdue["tasks"]] == ["Late"]

    def test_stats(self, client, auth_headers):
        client.post("/api/tasks", json=task_body(days_ahead=-3), headers=auth_headers)
        client.post("/api/tasks", json=task_body(days_ahead=3), headers=auth_headers)

        stats = client.get("/api/tasks/stats", headers=auth_headers).json()

        assert stats["total"] == 2
        assert stats["pending"] == 2
        assert stats["overdue"] == 1

    def test_other_users_task_hidden(self, client, auth_headers, admin_headers):
        task_id = client.post("/api/tasks", json=task_body(), headers=auth_headers).json()["task"]["id"]

        assert client.get(f"/api/tasks/{task_id}", headers=admin_headers).status_code == 404
        assert client.delete(f"/api/tasks/{task_id}", headers=admin_headers).status_code == 404


class TestAdminApi:
    """Tests for /api/admin."""

    def test_requires_admin(self, client, auth_headers):
        assert client.get("/api/admin/users", headers=auth_headers).status_code == 403

    def test_users_and_stats(self, client, auth_headers, admin_headers):
        client.post("/api/tasks", json=task_body(), headers=auth_headers)

        users = client.get("/api/admin/users", headers=admin_headers).json()
        assert users["count"] == 2
        assert users["users"][0]["email"] == "user@example.com"

        stats = client.get("/api/admin/stats", headers=admin_headers).json()
        assert stats["total_users"] == 2
        assert stats["total_tasks"] == 1
        assert stats["today_tasks"] == 1

        pending = client.get("/api/admin/reminders/pending", headers=admin_headers).json()
        assert pending["count"] == 1

    def test_owner_detail_and_delete(self, client, auth_headers, admin_headers, test_user):
        client.post("/api/tasks", json=task_body(), headers=auth_headers)
        owner = str(test_user.id)

        detail = client.get(f"/api/admin/users/{owner}", headers=admin_headers)
        assert detail.status_code == 200
        assert detail.json()["total_tasks"] == 1

        refused = client.request("DELETE", f"/api/admin/users/{owner}", json={}, headers=admin_headers)
        assert refused.status_code == 400

        deleted = client.request(
            "DELETE", f"/api/admin/users/{owner}", json={"confirm_delete": True}, headers=admin_headers
        )
        assert deleted.status_code == 200
        assert deleted.json() == {"deleted_user_id": owner, "user_deleted": True, "deleted_tasks_count": 1}

        assert client.get(f"/api/admin/users/{owner}", headers=admin_headers).status_code == 404

    def test_owner_action(self, client, auth_headers, admin_headers, test_user):
        client.post("/api/tasks", json=task_body(), headers=auth_headers)
        owner = str(test_user.id)

        response = client.put(
            f"/api/admin/users/{owner}", json={"action": "complete_all_tasks"}, headers=admin_headers
        )
        assert response.json() == {"action": "complete_all_tasks", "modified_count": 1}

        unknown = client.put(f"/api/admin/users/{owner}", json={"action": "archive"}, headers=admin_headers)
        assert unknown.status_code == 400

        missing_owner = client.put(
            f"/api/admin/users/{owner}", json={"action": "reassign_tasks"}, headers=admin_headers
        )
        assert missing_owner.status_code == 400
        assert missing_owner.json()["field"] == "new_owner"

    def test_task_listing(self, client, auth_headers, admin_headers):
        client.post("/api/tasks", json=task_body(title="Alpha"), headers=auth_headers)
        client.post("/api/tasks", json=task_body(title="Beta"), headers=auth_headers)

        response = client.get(
            "/api/admin/tasks?search=alp&sort_by=title&sort_order=asc", headers=admin_headers
        )

        body = response.json()
        assert [t["title"] for t in body["tasks"]] == ["Alpha"]
        assert body["pagination"]["total_tasks"] == 1

    def test_bulk_update(self, client, auth_headers, admin_headers):
        ids = [
            client.post("/api/tasks", json=task_body(), headers=auth_headers).json()["task"]["id"]
            for _ in range(2)
        ]

        response = client.put(
            "/api/admin/tasks/bulk-update",
            json={"task_ids": ids + [str(uuid4())], "action": "complete"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"action": "complete", "matched_count": 2, "modified_count": 2}

    def test_bulk_update_unknown_action(self, client, auth_headers, admin_headers):
        task_id = client.post("/api/tasks", json=task_body(), headers=auth_headers).json()["task"]["id"]

        response = client.put(
            "/api/admin/tasks/bulk-update",
            json={"task_ids": [task_id], "action": "custom", "update_data": {"owner": "x"}},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_bulk_delete(self, client, auth_headers, admin_headers):
        task_id = client.post("/api/tasks", json=task_body(), headers=auth_headers).json()["task"]["id"]

        refused = client.request(
            "DELETE", "/api/admin/tasks/bulk-delete", json={"task_ids": [task_id]}, headers=admin_headers
        )
        assert refused.status_code == 400
        assert client.get(f"/api/tasks/{task_id}", headers=auth_headers).status_code == 200

        deleted = client.request(
            "DELETE",
            "/api/admin/tasks/bulk-delete",
            json={"task_ids": [task_id], "confirm_delete": True},
            headers=admin_headers,
        )
        assert deleted.json() == {"deleted_count": 1}

    def test_manual_send(self, client, auth_headers, admin_headers, email_sender):
        task_id = client.post("/api/tasks", json=task_body(), headers=auth_headers).json()["task"]["id"]

        response = client.post(f"/api/admin/reminders/{task_id}/send", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["recipient"] == "user@example.com"
        assert email_sender.sent[-1].subject == "Admin Reminder: Water plants"

    def test_manual_send_failure(self, client, auth_headers, admin_headers, email_sender):
        task_id = client.post("/api/tasks", json=task_body(), headers=auth_headers).json()["task"]["id"]
        email_sender.fail = True

        response = client.post(f"/api/admin/reminders/{task_id}/send", headers=admin_headers)

        assert response.status_code == 502
