"""
Tests for the admin back-office: approvals, overview, transactions,
platform configuration, the finance report export, support tickets and
the audit trail.
"""

from marketplace.services.reports import ReportManager
from tests.conftest import auth, register


def test_pending_and_approve_restaurateur(client, admin_token):
    owner = register(client, "RESTAURATEUR")
    pending = client.get("/api/users/pending/restaurateurs", headers=auth(admin_token)).json()
    assert owner["user"]["id"] in [p["user"]["id"] for p in pending]

    approved = client.put(
        f"/api/users/restaurateur/{owner['user']['id']}/approve",
        headers=auth(admin_token),
    )
    assert approved.status_code == 200
    assert approved.json()["restaurateur"]["is_approved"] is True

    pending = client.get("/api/users/pending/restaurateurs", headers=auth(admin_token)).json()
    assert owner["user"]["id"] not in [p["user"]["id"] for p in pending]

    inbox = client.get("/api/notifications/me", headers=auth(owner["token"])).json()
    assert len(inbox) == 1


def test_approval_is_admin_only(client):
    owner = register(client, "RESTAURATEUR")
    response = client.put(
        f"/api/users/restaurateur/{owner['user']['id']}/approve",
        headers=auth(owner["token"]),
    )
    assert response.status_code == 403


def test_overview(client, admin_token, placed_order):
    response = client.get("/api/orders/admin/overview", headers=auth(admin_token))
    assert response.status_code == 200
    data = response.json()
    assert data["users"]["by_role"]["CLIENT"] >= 1
    assert data["orders"]["by_status"]["PENDING"] >= 1
    assert data["pending_payments_amount"] >= 29.0
    assert data["revenue"]["goal"] > 0


def test_transactions_pagination(client, admin_token, placed_order):
    response = client.get(
        "/api/orders/admin/transactions",
        params={"page": 1, "page_size": 1, "status": "PENDING"},
        headers=auth(admin_token),
    )
    assert response.status_code == 200
    data = response.json()
    assert len(data["items"]) == 1
    assert data["items"][0]["status"] == "PENDING"
    assert data["total"] >= 1
    assert set(data["by_status"]) == {"PENDING", "COMPLETED", "FAILED", "REFUNDED"}


def test_config_partial_update(client, admin_token):
    before = client.get("/api/orders/admin/config", headers=auth(admin_token)).json()

    response = client.put(
        "/api/orders/admin/config",
        json={"platform_name": "Délices Test", "monthly_revenue_goal": 75000},
        headers=auth(admin_token),
    )
    assert response.status_code == 200
    after = response.json()
    assert after["platform_name"] == "Délices Test"
    assert after["monthly_revenue_goal"] == 75000
    assert after["courier_base_fee"] == before["courier_base_fee"]


def test_config_rejects_out_of_range(client, admin_token):
    response = client.put(
        "/api/orders/admin/config",
        json={"default_commission_percent": 150},
        headers=auth(admin_token),
    )
    assert response.status_code == 400


def test_admin_endpoints_forbidden_to_clients(client):
    buyer = register(client, "CLIENT")
    for path in ("/api/orders/admin/overview", "/api/orders/admin/transactions", "/api/orders/admin/config"):
        assert client.get(path, headers=auth(buyer["token"])).status_code == 403


def test_report_export_writes_workbook(client, admin_token, placed_order):
    response = client.post("/api/orders/admin/reports/export", headers=auth(admin_token))
    assert response.status_code == 202
    data = response.json()
    assert data["task_id"]
    assert data["rows"] >= 1

    rows = ReportManager.get_all_rows()
    assert placed_order["order"]["payment"]["id"] in [r["payment_id"] for r in rows]


def test_admin_sends_notification(client, admin_token):
    target = register(client, "CLIENT")
    response = client.post(
        "/api/notifications/send",
        json={"user_id": target["user"]["id"], "title": "Bienvenue", "message": "Bon appétit"},
        headers=auth(admin_token),
    )
    assert response.status_code == 201
    assert response.json()["title"] == "Bienvenue"


# =============================================================================
# SUPPORT & AUDIT
# =============================================================================

TICKETS = "/api/orders/admin/support/tickets"
AUDIT = "/api/orders/admin/audit-logs"


def test_ticket_lifecycle(client, admin_token):
    buyer = register(client, "CLIENT")
    created = client.post(
        TICKETS,
        json={"subject": "Commande froide", "message": "Le plat est arrivé froid", "priority": "URGENT"},
        headers=auth(buyer["token"]),
    )
    assert created.status_code == 201, created.text
    ticket = created.json()
    assert ticket["status"] == "OPEN"
    assert ticket["reporter_id"] == buyer["user"]["id"]

    # Only admins read the queue
    assert client.get(TICKETS, headers=auth(buyer["token"])).status_code == 403

    urgent = client.get(TICKETS, params={"priority": "URGENT", "status": "OPEN"}, headers=auth(admin_token)).json()
    assert ticket["id"] in [t["id"] for t in urgent]

    closed = client.put(
        f"{TICKETS}/{ticket['id']}",
        json={"status": "CLOSED", "resolution": "Bon d'achat envoyé"},
        headers=auth(admin_token),
    )
    assert closed.status_code == 200
    assert closed.json()["status"] == "CLOSED"
    assert closed.json()["resolution"] == "Bon d'achat envoyé"

    still_open = client.get(TICKETS, params={"status": "OPEN"}, headers=auth(admin_token)).json()
    assert ticket["id"] not in [t["id"] for t in still_open]

    trail = client.get(AUDIT, params={"action": "SUPPORT_TICKET_UPDATED"}, headers=auth(admin_token)).json()
    entry = next(e for e in trail if e["entity_id"] == ticket["id"])
    assert entry["details"] == {"status": "CLOSED", "resolution": "Bon d'achat envoyé"}


def test_update_unknown_ticket(client, admin_token):
    response = client.put(f"{TICKETS}/nope", json={"status": "CLOSED"}, headers=auth(admin_token))
    assert response.status_code == 404


def test_approvals_are_audited(client, admin_token, courier):
    trail = client.get(AUDIT, params={"action": "LIVREUR_APPROVED"}, headers=auth(admin_token)).json()
    assert courier["user"]["id"] in [e["entity_id"] for e in trail]


def test_manual_audit_entry(client, admin_token):
    created = client.post(
        AUDIT,
        json={"action": "MANUAL_REFUND", "entity_type": "Order", "entity_id": "o-42", "details": {"amount": 12.5}},
        headers=auth(admin_token),
    )
    assert created.status_code == 201
    actor = created.json()["actor_user_id"]

    mine = client.get(AUDIT, params={"actor_user_id": actor, "action": "MANUAL_REFUND"}, headers=auth(admin_token))
    assert [e["entity_id"] for e in mine.json()][0] == "o-42"

    buyer = register(client, "CLIENT")
    assert client.post(AUDIT, json={"action": "X"}, headers=auth(buyer["token"])).status_code == 403
