"""
Task Endpoint Tests
===================
Administrator task management and the per-expert assignment state machine.

Test Coverage:
- Fan-out to several experts with independent assignment statuses
- Accept / decline / complete transitions and their guards
- Visibility of tasks for experts and administrators
"""

import pytest


@pytest.fixture
def two_experts(make_user):
    return make_user("EXPERT", name="Expert One"), make_user("EXPERT", name="Expert Two")


def create_task(client, admin, expert_ids, **fields):
    payload = {"title": "Audit onboarding", "priority": "HIGH", "expert_ids": expert_ids}
    payload.update(fields)
    return client.post("/api/tasks", json=payload, headers=admin["headers"])


class TestTaskFanOut:
    """Each expert drives its own assignment row."""

    def test_accept_and_decline_diverge(self, client, admin, two_experts):
        # Arrange
        first, second = two_experts
        created = create_task(client, admin, [first["id"], second["id"]])
        assert created.status_code == 201
        task_id = created.json()["data"]["taskId"]
        assert created.json()["data"]["assignedCount"] == 2

        # Act
        accepted = client.post(f"/api/expert/tasks/{task_id}/accept", headers=first["headers"])
        declined = client.post(f"/api/expert/tasks/{task_id}/decline", headers=second["headers"])

        # Assert
        assert accepted.status_code == 200
        assert accepted.json()["data"] == {"taskId": task_id, "status": "ACCEPTED"}
        assert declined.json()["data"]["status"] == "DECLINED"

        task = client.get(f"/api/tasks/{task_id}", headers=admin["headers"]).json()["data"]
        assert task["assigned_count"] == 2
        statuses = {row["expert_id"]: row["status"] for row in task["assignments"]}
        assert statuses == {first["id"]: "ACCEPTED", second["id"]: "DECLINED"}

    def test_duplicate_expert_ids_are_assigned_once(self, client, admin, expert):
        created = create_task(client, admin, [expert["id"], expert["id"]])

        assert created.json()["data"]["assignedCount"] == 1

    def test_assign_more_experts_skips_existing(self, client, admin, two_experts):
        first, second = two_experts
        task_id = create_task(client, admin, [first["id"]]).json()["data"]["taskId"]

        response = client.post(
            f"/api/tasks/{task_id}/assign",
            json={"expert_ids": [first["id"], second["id"]]},
            headers=admin["headers"],
        )

        assert response.status_code == 200
        assert response.json()["data"]["assignedCount"] == 1

    def test_unknown_expert_is_rejected(self, client, admin, customer):
        response = create_task(client, admin, [customer["id"]])

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_assigned_expert_is_notified(self, client, admin, expert):
        create_task(client, admin, [expert["id"]])

        response = client.get("/api/notifications", headers=expert["headers"])

        data = response.json()["data"]
        assert data["unreadCount"] == 1
        assert data["notifications"][0]["title"] == "New Task Assigned"
        assert data["notifications"][0]["link"] == "/expert/tasks"

    def test_expert_of_other_org_is_rejected(self, client, admin, make_user):
        outsider = make_user("EXPERT", org_id="ORG-OTHER")

        response = create_task(client, admin, [outsider["id"]])

        assert response.status_code == 403
        assert response.json()["error"] == "TENANT_MISMATCH"
        notifications = client.get("/api/notifications", headers=outsider["headers"])
        assert notifications.json()["data"]["unreadCount"] == 0
        assert client.get("/api/tasks", headers=outsider["headers"]).json()["data"] == []

    def test_assign_expert_of_other_org_is_rejected(self, client, admin, expert, make_user):
        outsider = make_user("EXPERT", org_id="ORG-OTHER")
        task_id = create_task(client, admin, [expert["id"]]).json()["data"]["taskId"]

        response = client.post(
            f"/api/tasks/{task_id}/assign",
            json={"expert_ids": [outsider["id"]]},
            headers=admin["headers"],
        )

        assert response.status_code == 403
        assert response.json()["error"] == "TENANT_MISMATCH"
        task = client.get(f"/api/tasks/{task_id}", headers=admin["headers"]).json()["data"]
        assert task["assigned_count"] == 1

    def test_superadmin_assigns_across_orgs(self, client, superadmin, make_user):
        outsider = make_user("EXPERT", org_id="ORG-OTHER")

        response = create_task(client, superadmin, [outsider["id"]])

        assert response.status_code == 201
        assert response.json()["data"]["assignedCount"] == 1


class TestAssignmentTransitions:
    def test_complete_after_accept(self, client, admin, expert):
        task_id = create_task(client, admin, [expert["id"]]).json()["data"]["taskId"]
        client.post(f"/api/expert/tasks/{task_id}/accept", headers=expert["headers"])

        response = client.post(f"/api/expert/tasks/{task_id}/complete", headers=expert["headers"])

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "COMPLETED"

    def test_complete_pending_is_invalid(self, client, admin, expert):
        task_id = create_task(client, admin, [expert["id"]]).json()["data"]["taskId"]

        response = client.post(f"/api/expert/tasks/{task_id}/complete", headers=expert["headers"])

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "INVALID_TRANSITION"
        assert body["currentStatus"] == "PENDING"
        assert body["targetStatus"] == "COMPLETED"

    def test_accept_twice_is_invalid(self, client, admin, expert):
        task_id = create_task(client, admin, [expert["id"]]).json()["data"]["taskId"]
        client.post(f"/api/expert/tasks/{task_id}/accept", headers=expert["headers"])

        response = client.post(f"/api/expert/tasks/{task_id}/accept", headers=expert["headers"])

        assert response.status_code == 400
        assert response.json()["currentStatus"] == "ACCEPTED"

    def test_admin_cannot_accept(self, client, admin, expert):
        task_id = create_task(client, admin, [expert["id"]]).json()["data"]["taskId"]

        response = client.post(f"/api/expert/tasks/{task_id}/accept", headers=admin["headers"])

        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"

    def test_unassigned_expert_gets_not_found(self, client, admin, two_experts):
        first, second = two_experts
        task_id = create_task(client, admin, [first["id"]]).json()["data"]["taskId"]

        response = client.post(f"/api/expert/tasks/{task_id}/accept", headers=second["headers"])

        assert response.status_code == 404

    def test_task_creator_is_notified_of_decision(self, client, admin, expert):
        task_id = create_task(client, admin, [expert["id"]]).json()["data"]["taskId"]
        client.post(f"/api/expert/tasks/{task_id}/decline", headers=expert["headers"])

        notifications = client.get("/api/notifications", headers=admin["headers"]).json()["data"]

        assert notifications["notifications"][0]["title"] == "Task Declined"


class TestTaskVisibility:
    def test_expert_sees_own_assignment_status(self, client, admin, two_experts):
        first, second = two_experts
        task_id = create_task(client, admin, [first["id"], second["id"]]).json()["data"]["taskId"]
        client.post(f"/api/expert/tasks/{task_id}/accept", headers=first["headers"])

        listed = client.get("/api/tasks", headers=second["headers"]).json()["data"]
        single = client.get(f"/api/tasks/{task_id}", headers=first["headers"]).json()["data"]

        assert [row["assignment_status"] for row in listed] == ["PENDING"]
        assert [row["assigned_count"] for row in listed] == [2]
        assert single["assignment_status"] == "ACCEPTED"

    def test_customer_cannot_list_tasks(self, client, customer):
        response = client.get("/api/tasks", headers=customer["headers"])

        assert response.status_code == 403

    def test_customer_cannot_create_tasks(self, client, customer):
        response = client.post("/api/tasks", json={"title": "x"}, headers=customer["headers"])

        assert response.status_code == 403

    def test_other_org_admin_cannot_see_task(self, client, admin, other_org_admin, expert):
        task_id = create_task(client, admin, [expert["id"]]).json()["data"]["taskId"]

        response = client.get(f"/api/tasks/{task_id}", headers=other_org_admin["headers"])

        assert response.status_code == 404
        assert client.get("/api/tasks", headers=other_org_admin["headers"]).json()["data"] == []

    def test_update_task(self, client, admin):
        task_id = create_task(client, admin, []).json()["data"]["taskId"]

        response = client.patch(
            f"/api/tasks/{task_id}",
            json={"status": "CLOSED", "priority": "LOW"},
            headers=admin["headers"],
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "CLOSED"
        assert response.json()["data"]["priority"] == "LOW"
