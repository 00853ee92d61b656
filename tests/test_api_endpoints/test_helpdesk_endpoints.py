"""
Help-Desk Endpoint Tests
========================
Ticket creation, visibility, assignment guards, status changes and the
single guarded response.

Test Coverage:
- Ticket numbers and display-form statuses
- Assignment: role, tenant, lock and closed-ticket guards
- Status changes restricted to the assignee or a SUPERADMIN
- One response per ticket, one edit for non-SUPERADMIN responders
"""

import re

import pytest

TICKET_NUMBER = re.compile(r"^PV-TK-\d{8}-\d{4}-[0-9A-F]{4}$")


def raise_ticket(client, user, **fields):
    payload = {
        "subject": "Cannot upload portfolio",
        "category": "Documents",
        "description": "The upload button does nothing",
        "priority": "HIGH",
    }
    payload.update(fields)
    response = client.post("/api/helpdesk/tickets", json=payload, headers=user["headers"])
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def ticket(client, customer):
    return raise_ticket(client, customer)


@pytest.fixture
def assigned_ticket(client, admin, expert, ticket):
    response = client.patch(
        f"/api/helpdesk/tickets/{ticket['id']}/assign",
        json={"assignedToId": expert["id"]},
        headers=admin["headers"],
    )
    assert response.status_code == 200
    return response.json()["data"]


def respond(client, user, ticket_id, text, edit_requested=False):
    return client.post(
        f"/api/helpdesk/tickets/{ticket_id}/messages",
        json={"response": text, "edit_requested": edit_requested},
        headers=user["headers"],
    )


# ============================================================================
# CREATE / READ
# ============================================================================


class TestTicketCreation:
    def test_create_ticket(self, client, customer):
        data = raise_ticket(client, customer)

        assert TICKET_NUMBER.match(data["ticket_number"])
        assert data["status"] == "Open"
        assert data["raised_by"] == customer["id"]
        assert data["edit_count"] == 0

    def test_blank_subject_is_rejected(self, client, customer):
        response = client.post(
            "/api/helpdesk/tickets",
            json={"subject": "  ", "description": "text"},
            headers=customer["headers"],
        )

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_lookup_by_ticket_number(self, client, customer, ticket):
        response = client.get(
            f"/api/helpdesk/tickets/{ticket['ticket_number']}", headers=customer["headers"]
        )

        assert response.status_code == 200
        assert response.json()["data"]["id"] == ticket["id"]

    def test_other_customer_cannot_see_ticket(self, client, make_user, ticket):
        stranger = make_user("CUSTOMER")

        response = client.get(f"/api/helpdesk/tickets/{ticket['id']}", headers=stranger["headers"])
        listed = client.get("/api/helpdesk/tickets", headers=stranger["headers"]).json()["data"]

        assert response.status_code == 404
        assert listed["tickets"] == []

    def test_expert_sees_only_assigned_tickets(self, client, customer, expert, assigned_ticket):
        raise_ticket(client, customer, subject="Unrelated")

        listed = client.get("/api/helpdesk/tickets", headers=expert["headers"]).json()["data"]

        assert [row["id"] for row in listed["tickets"]] == [assigned_ticket["id"]]
        assert listed["tickets"][0]["raised_by_email"] == customer["email"]

    def test_admin_lists_by_status(self, client, admin, customer, assigned_ticket):
        raise_ticket(client, customer, subject="Second")

        listed = client.get(
            "/api/helpdesk/tickets", params={"status": "IN_PROGRESS"}, headers=admin["headers"]
        ).json()["data"]

        assert [row["id"] for row in listed["tickets"]] == [assigned_ticket["id"]]
        assert listed["pagination"]["total"] == 1


# ============================================================================
# ASSIGNMENT
# ============================================================================


class TestAssignment:
    def test_assign_moves_open_to_in_progress(self, assigned_ticket, admin, expert):
        assert assigned_ticket["status"] == "In Progress"
        assert assigned_ticket["assigned_to"] == expert["id"]
        assert assigned_ticket["locked_by"] == admin["id"]

    def test_assignee_is_notified(self, client, expert, assigned_ticket):
        notifications = client.get("/api/notifications", headers=expert["headers"]).json()["data"]

        assert notifications["notifications"][0]["title"] == "Ticket Assigned"

    def test_cannot_assign_to_customer(self, client, admin, customer, ticket):
        response = client.patch(
            f"/api/helpdesk/tickets/{ticket['id']}/assign",
            json={"assignedToId": customer["id"]},
            headers=admin["headers"],
        )

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_ASSIGNEE_ROLE"

    def test_cannot_assign_to_suspended_user(self, client, admin, make_user, ticket):
        suspended = make_user("EXPERT", status="SUSPENDED")

        response = client.patch(
            f"/api/helpdesk/tickets/{ticket['id']}/assign",
            json={"assignedToId": suspended["id"]},
            headers=admin["headers"],
        )

        assert response.status_code == 400
        assert response.json()["error"] == "TARGET_SUSPENDED"

    def test_other_org_admin_gets_tenant_mismatch(self, client, other_org_admin, expert, ticket):
        response = client.patch(
            f"/api/helpdesk/tickets/{ticket['id']}/assign",
            json={"assignedToId": expert["id"]},
            headers=other_org_admin["headers"],
        )

        assert response.status_code == 403
        assert response.json()["error"] == "TENANT_MISMATCH"

    def test_locked_ticket_cannot_be_reassigned_by_other_admin(
        self, client, make_user, assigned_ticket
    ):
        second_admin = make_user("ADMIN")
        other_expert = make_user("EXPERT")

        response = client.post(
            f"/api/helpdesk/tickets/{assigned_ticket['id']}/reassign",
            json={"assignedToId": other_expert["id"]},
            headers=second_admin["headers"],
        )

        assert response.status_code == 409
        assert response.json()["error"] == "TICKET_LOCKED"

    def test_superadmin_overrides_lock(self, client, superadmin, make_user, assigned_ticket):
        other_expert = make_user("EXPERT")

        response = client.post(
            f"/api/helpdesk/tickets/{assigned_ticket['id']}/reassign",
            json={"assigned_to_id": other_expert["id"]},
            headers=superadmin["headers"],
        )

        assert response.status_code == 200
        assert response.json()["data"]["assigned_to"] == other_expert["id"]
        assert response.json()["data"]["locked_by"] == superadmin["id"]

    def test_unassign_reopens_ticket(self, client, admin, assigned_ticket):
        response = client.post(
            f"/api/helpdesk/tickets/{assigned_ticket['id']}/unassign", headers=admin["headers"]
        )

        data = response.json()["data"]
        assert data["status"] == "Open"
        assert data["assigned_to"] is None
        assert data["locked_by"] is None

    def test_closed_ticket_cannot_be_assigned(self, client, admin, expert, assigned_ticket):
        client.patch(
            f"/api/helpdesk/tickets/{assigned_ticket['id']}/status",
            json={"status": "CLOSED"},
            headers=expert["headers"],
        )

        response = client.patch(
            f"/api/helpdesk/tickets/{assigned_ticket['id']}/assign",
            json={"assignedToId": expert["id"]},
            headers=admin["headers"],
        )

        assert response.status_code == 400
        assert response.json()["error"] == "TICKET_CLOSED"

    def test_expert_cannot_assign(self, client, expert, ticket):
        response = client.patch(
            f"/api/helpdesk/tickets/{ticket['id']}/assign",
            json={"assignedToId": expert["id"]},
            headers=expert["headers"],
        )

        assert response.status_code == 403


# ============================================================================
# STATUS
# ============================================================================


class TestStatus:
    def test_assignee_changes_status(self, client, customer, expert, assigned_ticket):
        response = client.patch(
            f"/api/helpdesk/tickets/{assigned_ticket['id']}/status",
            json={"status": "resolved"},
            headers=expert["headers"],
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "Resolved"
        assert data["previous_status"] == "In Progress"
        assert data["resolved_at"] is not None

        titles = [
            n["title"]
            for n in client.get("/api/notifications", headers=customer["headers"]).json()["data"][
                "notifications"
            ]
        ]
        assert "Ticket Status Updated" in titles

    @pytest.mark.parametrize("role", ["CUSTOMER", "ADMIN"])
    def test_non_assignee_cannot_change_status(self, client, make_user, assigned_ticket, role):
        caller = make_user(role)

        response = client.patch(
            f"/api/helpdesk/tickets/{assigned_ticket['id']}/status",
            json={"status": "Closed"},
            headers=caller["headers"],
        )

        assert response.status_code == 403

    def test_superadmin_changes_any_status(self, client, superadmin, ticket):
        response = client.patch(
            f"/api/helpdesk/tickets/{ticket['id']}/status",
            json={"status": "In Progress"},
            headers=superadmin["headers"],
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "In Progress"

    def test_unknown_status_is_rejected(self, client, expert, assigned_ticket):
        response = client.patch(
            f"/api/helpdesk/tickets/{assigned_ticket['id']}/status",
            json={"status": "Waiting"},
            headers=expert["headers"],
        )

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_status_change_with_reply_records_response(self, client, expert, assigned_ticket):
        response = client.patch(
            f"/api/helpdesk/tickets/{assigned_ticket['id']}/status",
            json={"status": "Resolved", "reply": "Fixed in the latest release"},
            headers=expert["headers"],
        )

        data = response.json()["data"]
        assert data["response_text"] == "Fixed in the latest release"
        assert data["responder_id"] == expert["id"]


# ============================================================================
# RESPONSE
# ============================================================================


class TestResponse:
    """One response per ticket; one edit unless SUPERADMIN."""

    def test_first_response(self, client, customer, expert, assigned_ticket):
        response = respond(client, expert, assigned_ticket["id"], "Please retry with a PDF")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["response_text"] == "Please retry with a PDF"
        assert data["is_edited"] is False
        unread = client.get("/api/notifications/unread-count", headers=customer["headers"])
        assert unread.json()["data"]["unreadCount"] == 1

    def test_second_response_without_edit_flag(self, client, expert, assigned_ticket):
        respond(client, expert, assigned_ticket["id"], "First")

        response = respond(client, expert, assigned_ticket["id"], "Second")

        assert response.status_code == 400
        assert response.json()["error"] == "ALREADY_RESPONDED"

    def test_single_edit_then_limit(self, client, expert, assigned_ticket):
        respond(client, expert, assigned_ticket["id"], "First")

        edited = respond(client, expert, assigned_ticket["id"], "Edited", edit_requested=True)
        again = respond(client, expert, assigned_ticket["id"], "Again", edit_requested=True)

        assert edited.status_code == 200
        assert edited.json()["data"]["edit_count"] == 1
        assert edited.json()["data"]["is_edited"] is True
        assert again.status_code == 400
        assert again.json()["error"] == "EDIT_LIMIT_REACHED"

    def test_superadmin_edits_without_limit(self, client, expert, superadmin, assigned_ticket):
        respond(client, expert, assigned_ticket["id"], "First")
        respond(client, expert, assigned_ticket["id"], "Edited", edit_requested=True)

        response = respond(
            client, superadmin, assigned_ticket["id"], "Corrected", edit_requested=True
        )

        assert response.status_code == 200
        assert response.json()["data"]["edit_count"] == 2
        assert response.json()["data"]["response_text"] == "Corrected"

    def test_non_assignee_cannot_respond(self, client, make_user, assigned_ticket):
        other_expert = make_user("EXPERT")

        response = respond(client, other_expert, assigned_ticket["id"], "Hello")

        assert response.status_code == 403
