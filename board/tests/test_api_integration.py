"""Integration tests for the FastAPI endpoints.

Uses TestClient against an in-memory database with a signed-in admin.
"""
from __future__ import annotations

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from board import auth
from board.seed import DEMO_CHALLENGES, seed_demo_data


@pytest.fixture()
def client(test_db):
    """FastAPI TestClient using the in-memory database, not yet signed in."""
    engine, TestSession = test_db
    from board.app import app, db_session

    def override_db_session():
        session = TestSession()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    with TestSession() as session:
        auth.ensure_admin(session, email="admin@example.com", password="secret123", name="Admin")

    app.dependency_overrides[db_session] = override_db_session
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c, TestSession
    app.dependency_overrides.clear()


@pytest.fixture()
def admin_client(client):
    c, TestSession = client
    resp = c.post("/api/auth/login", json={"email": "admin@example.com", "password": "secret123"})
    assert resp.status_code == 200
    return c, TestSession


@pytest.fixture()
def seeded_client(admin_client):
    c, TestSession = admin_client
    with TestSession() as session:
        seed_demo_data(session)
    return c, TestSession


def _create_challenge(c, **overrides) -> dict:
    body = {"name": "Payment Gateway", "entity": "WafaSalaf", "startup_name": "PayFlow",
            "wenov_responsible": "Othmane"}
    body.update(overrides)
    resp = c.post("/api/challenges", json=body)
    assert resp.status_code == 201
    return resp.json()


# =========================================================================
# Auth
# =========================================================================


class TestAuth:
    def test_requires_login(self, client):
        c, _ = client
        for path in ("/api/dashboard", "/api/challenges", "/api/actions", "/api/profile", "/api/users"):
            assert c.get(path).status_code == 401

    def test_login_sets_cookie(self, client):
        c, _ = client
        resp = c.post("/api/auth/login", json={"email": "admin@example.com", "password": "secret123"})
        assert resp.status_code == 200
        assert resp.json()["is_admin"] is True
        assert "session_token" in resp.cookies
        assert "httponly" in resp.headers["set-cookie"].lower()
        assert c.get("/api/auth/me").json()["email"] == "admin@example.com"

    def test_bad_login(self, client):
        c, _ = client
        resp = c.post("/api/auth/login", json={"email": "admin@example.com", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid email or password"

    def test_logout(self, admin_client):
        c, _ = admin_client
        assert c.post("/api/auth/logout").status_code == 200
        assert c.get("/api/auth/me").status_code == 401

    def test_root_redirects_to_docs(self, client):
        c, _ = client
        resp = c.get("/", follow_redirects=False)
        assert resp.status_code in (302, 307)
        assert resp.headers["location"] == "/docs"


# =========================================================================
# Dashboard
# =========================================================================


class TestDashboard:
    def test_empty(self, admin_client):
        c, _ = admin_client
        data = c.get("/api/dashboard").json()
        assert data["kpis"]["challenges_count"] == 0
        assert data["items"] == []

    def test_seeded_ranking(self, seeded_client):
        c, _ = seeded_client
        data = c.get("/api/dashboard").json()
        assert data["total"] == len(DEMO_CHALLENGES)
        scores = [item["alert_score"] for item in data["items"]]
        assert scores == sorted(scores, reverse=True)

    def test_filters(self, seeded_client):
        c, _ = seeded_client
        data = c.get("/api/dashboard", params={"search": "appnova"}).json()
        assert [i["startup_name"] for i in data["items"]] == ["AppNova"]
        assert data["kpis"]["challenges_count"] == len(DEMO_CHALLENGES)

        data = c.get("/api/dashboard", params={"entity": "AWB IT"}).json()
        assert {i["entity"] for i in data["items"]} == {"AWB IT"}

    def test_unknown_category(self, admin_client):
        c, _ = admin_client
        assert c.get("/api/dashboard", params={"category": "late"}).status_code == 400

    def test_kpis_and_lookups(self, seeded_client):
        c, _ = seeded_client
        kpis = c.get("/api/kpis").json()
        assert kpis["challenges_count"] == len(DEMO_CHALLENGES)
        assert kpis["alerts_count"] > 0
        assert "AFM" in c.get("/api/entities").json()
        assert c.get("/api/wenov-owners").json() == ["Asmaa Ouach", "Othmane As Salih", "Rim Hachidi"]
        assert [m["name"] for m in c.get("/api/members").json()] == ["Admin"]


# =========================================================================
# Challenges, actions, activities, contacts
# =========================================================================


class TestChallenges:
    def test_crud(self, admin_client):
        c, _ = admin_client
        created = _create_challenge(c)
        assert created["status"] == "ongoing"
        assert [g["key"] for g in created["contact_groups"]] == ["WENOV", "Metier", "Startup", "OpenStart"]

        resp = c.put(f"/api/challenges/{created['id']}", json={"status": "standby"})
        assert resp.json()["status"] == "standby"
        assert resp.json()["name"] == "Payment Gateway"

        assert c.delete(f"/api/challenges/{created['id']}").status_code == 200
        assert c.get(f"/api/challenges/{created['id']}").status_code == 404

    def test_blank_name_rejected(self, admin_client):
        c, _ = admin_client
        assert c.post("/api/challenges", json={"name": "  "}).status_code == 422

    def test_missing(self, admin_client):
        c, _ = admin_client
        resp = c.get("/api/challenges/999")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Challenge 999 not found"

    def test_reorder(self, admin_client):
        c, _ = admin_client
        first = _create_challenge(c, name="First")
        second = _create_challenge(c, name="Second")
        resp = c.post("/api/challenges/reorder", json={"ordered_ids": [first["id"], second["id"]]})
        assert resp.status_code == 200
        assert [x["name"] for x in c.get("/api/challenges").json()] == ["First", "Second"]


class TestActions:
    def test_action_lifecycle(self, admin_client):
        c, _ = admin_client
        challenge = _create_challenge(c)
        due = (date.today() - timedelta(days=1)).isoformat()
        resp = c.post(f"/api/challenges/{challenge['id']}/actions",
                      json={"title": "Review docs", "owner": "WafaSalaf", "due_date": due})
        assert resp.status_code == 201
        action = resp.json()
        assert action["owner_is_entity"] is True
        assert action["is_overdue"] is True
        assert action["is_alert"] is True

        resp = c.put(f"/api/actions/{action['id']}", json={"is_done": True})
        assert resp.json()["is_done"] is True
        assert resp.json()["is_alert"] is False

        assert c.delete(f"/api/actions/{action['id']}").status_code == 200
        assert c.delete(f"/api/actions/{action['id']}").status_code == 404

    def test_assign_and_clear(self, admin_client):
        c, _ = admin_client
        challenge = _create_challenge(c)
        me = c.get("/api/auth/me").json()
        action = c.post(f"/api/challenges/{challenge['id']}/actions", json={
            "title": "Call", "owner": "WENOV", "due_date": date.today().isoformat(), "assignee_id": me["id"],
        }).json()
        assert action["assignee_name"] == "Admin"
        assert action["due_label"] == "Today"

        cleared = c.put(f"/api/actions/{action['id']}", json={"assignee_id": None}).json()
        assert cleared["assignee_id"] is None

    def test_actions_view(self, seeded_client):
        c, _ = seeded_client
        data = c.get("/api/actions").json()
        assert all(not i["is_done"] for i in data["items"])
        assert data["open_count"] == len(data["items"])

        overdue = c.get("/api/actions", params={"status": "overdue"}).json()
        assert overdue["items"]
        assert all(i["is_overdue"] for i in overdue["items"])
        assert len(overdue["items"]) == data["overdue_count"]

    def test_next_actions(self, seeded_client):
        c, _ = seeded_client
        challenge = next(i for i in c.get("/api/challenges").json() if i["startup_name"] == "BotGenius")
        data = c.get(f"/api/challenges/{challenge['id']}/next-actions", params={"limit": 2}).json()
        assert [a["title"] for a in data["actions"]] == ["Training data preparation", "Bot personality definition"]
        assert data["remaining"] == 2


class TestActivitiesAndContacts:
    def test_activity(self, admin_client):
        c, _ = admin_client
        challenge = _create_challenge(c)
        resp = c.post(f"/api/challenges/{challenge['id']}/activities", json={"type": "call", "note": "Intro"})
        assert resp.status_code == 201
        activity = resp.json()
        assert activity["type_label"] == "Call"

        updated = c.put(f"/api/activities/{activity['id']}", json={"note": "Intro call"}).json()
        assert updated["note"] == "Intro call"
        assert updated["type"] == "call"

        detail = c.get(f"/api/challenges/{challenge['id']}").json()
        assert detail["last_comment"] == {"note": "Intro call", "time_ago": "Today"}
        assert c.delete(f"/api/activities/{activity['id']}").status_code == 200

    def test_invalid_activity_type(self, admin_client):
        c, _ = admin_client
        challenge = _create_challenge(c)
        resp = c.post(f"/api/challenges/{challenge['id']}/activities", json={"type": "fax", "note": "x"})
        assert resp.status_code == 422

    def test_contact(self, admin_client):
        c, _ = admin_client
        challenge = _create_challenge(c)
        contact = c.post(f"/api/challenges/{challenge['id']}/contacts",
                         json={"first_name": "Sarah", "last_name": "Chen", "group": "Startup"}).json()
        updated = c.put(f"/api/contacts/{contact['id']}", json={"phone": "+212 600"}).json()
        assert updated["phone"] == "+212 600"
        assert updated["group"] == "Startup"

        detail = c.get(f"/api/challenges/{challenge['id']}").json()
        startup = next(g for g in detail["contact_groups"] if g["key"] == "Startup")
        assert [x["first_name"] for x in startup["contacts"]] == ["Sarah"]
        assert c.delete(f"/api/contacts/{contact['id']}").status_code == 200


# =========================================================================
# Users & profile
# =========================================================================


class TestUsers:
    def test_admin_manages_users(self, admin_client):
        c, _ = admin_client
        resp = c.post("/api/users", json={"email": "rim@example.com", "password": "member123", "name": "Rim"})
        assert resp.status_code == 201
        user = resp.json()
        assert user["entity"] == "WENOV"

        assert c.post("/api/users", json={
            "email": "rim@example.com", "password": "member123", "name": "Rim",
        }).status_code == 409

        updated = c.put(f"/api/users/{user['id']}", json={"entity": "CEED"}).json()
        assert updated["entity"] == "CEED"
        assert [u["email"] for u in c.get("/api/users").json()][0] == "rim@example.com"

        assert c.delete(f"/api/users/{user['id']}").status_code == 200

    def test_cannot_delete_self(self, admin_client):
        c, _ = admin_client
        me = c.get("/api/auth/me").json()
        assert c.delete(f"/api/users/{me['id']}").status_code == 403

    def test_member_forbidden(self, admin_client):
        c, _ = admin_client
        c.post("/api/users", json={"email": "rim@example.com", "password": "member123", "name": "Rim"})
        c.post("/api/auth/logout")
        c.post("/api/auth/login", json={"email": "rim@example.com", "password": "member123"})
        assert c.get("/api/users").status_code == 403
        assert c.get("/api/dashboard").status_code == 200


class TestProfile:
    def test_update_profile(self, admin_client):
        c, _ = admin_client
        resp = c.put("/api/profile", json={"name": "Chief"})
        assert resp.json()["name"] == "Chief"

        resp = c.put("/api/profile", json={"current_password": "wrong", "new_password": "another1"})
        assert resp.status_code == 400

        resp = c.put("/api/profile", json={"current_password": "secret123", "new_password": "another1"})
        assert resp.status_code == 200
        c.post("/api/auth/logout")
        assert c.post("/api/auth/login", json={"email": "admin@example.com", "password": "another1"}).status_code == 200
