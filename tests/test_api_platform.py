"""Health checks, session auth, activity feed and the seed-demo CLI."""

from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from campaign_engine.models import db
from campaign_engine.models.activity import append_activity
from campaign_engine.models.business import Business

API = "/api/v1"


def _token(app, email="ops@acme.test", expires_in=300, secret=None):
    payload = {
        "userId": "u-1",
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return pyjwt.encode(payload, secret or app.config["SESSION_SECRET"], algorithm="HS256")


# ═════════════════════════════════════════════════════════════════════════════
# Health
# ═════════════════════════════════════════════════════════════════════════════


class TestHealth:
    def test_ready(self, client):
        res = client.get(f"{API}/health/ready")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_live_reports_database(self, app, client, monkeypatch):
        monkeypatch.setitem(app.config, "REDIS_URL", "")
        res = client.get(f"{API}/health/live")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["redis"]["status"] == "skipped"

    def test_request_id_header(self, client):
        res = client.get(f"{API}/health/ready", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"


# ═════════════════════════════════════════════════════════════════════════════
# Session auth
# ═════════════════════════════════════════════════════════════════════════════


class TestSessionAuth:
    @pytest.fixture()
    def auth_on(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "API_AUTH_ENABLED", "true")

    def test_missing_token_401(self, client, auth_on):
        res = client.post(f"{API}/businesses", json={"name": "Acme"})
        assert res.status_code == 401
        body = res.get_json()
        assert body["code"] == "ERR_UNAUTHORIZED"
        assert body["error"] == "Authentication required"

    def test_health_is_public(self, client, auth_on):
        assert client.get(f"{API}/health/ready").status_code == 200

    def test_bearer_token_accepted(self, app, client, auth_on):
        res = client.post(
            f"{API}/businesses",
            json={"name": "Acme"},
            headers={"Authorization": f"Bearer {_token(app)}"},
        )
        assert res.status_code == 201

    def test_expired_token(self, app, client, auth_on):
        res = client.get(
            f"{API}/activity",
            headers={"Authorization": f"Bearer {_token(app, expires_in=-60)}"},
        )
        assert res.status_code == 401
        assert res.get_json()["error"] == "Session expired"

    def test_wrong_signature(self, app, client, auth_on):
        res = client.get(
            f"{API}/activity",
            headers={"Authorization": f"Bearer {_token(app, secret='another-signing-key-that-is-long-enough')}"},
        )
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid session token"

    def test_cookie_token_sets_approver(self, app, client, campaign, auth_on):
        client.set_cookie(app.config["SESSION_COOKIE_NAME_JWT"], _token(app, email="lead@acme.test"))
        res = client.post(
            f"{API}/campaigns/{campaign.id}/approve",
            json={"approved_by": "ignored@acme.test"},
        )
        assert res.status_code == 200
        assert res.get_json()["approved_by"] == "lead@acme.test"

    def test_disabled_auth_lets_anonymous_through(self, client):
        assert client.post(f"{API}/businesses", json={"name": "Acme"}).status_code == 201


# ═════════════════════════════════════════════════════════════════════════════
# Activity feed
# ═════════════════════════════════════════════════════════════════════════════


class TestActivityFeed:
    def _entries(self, business, n, action="task_completed", actor="human"):
        for i in range(n):
            append_activity(
                business_id=business.id,
                action=action,
                entity_type="task",
                entity_id=f"t-{i}",
                actor=actor,
            )
        db.session.commit()

    def test_pagination_envelope(self, client, business):
        self._entries(business, 5)
        res = client.get(f"{API}/activity", query_string={"per_page": 2, "page": 2})
        body = res.get_json()
        assert body["total"] == 5
        assert body["page"] == 2
        assert body["per_page"] == 2
        assert body["pages"] == 3
        assert len(body["items"]) == 2

    def test_newest_first(self, client, business):
        self._entries(business, 3)
        items = client.get(f"{API}/activity").get_json()["items"]
        stamps = [e["created_at"] for e in items]
        assert stamps == sorted(stamps, reverse=True)

    def test_filters(self, client, business):
        self._entries(business, 2)
        self._entries(business, 1, action="escalation_created", actor="system")

        res = client.get(f"{API}/activity", query_string={"actor": "system"})
        assert [e["action"] for e in res.get_json()["items"]] == ["escalation_created"]

        res = client.get(f"{API}/activity", query_string={"action": "task_"})
        assert res.get_json()["total"] == 2

        res = client.get(f"{API}/activity", query_string={"business_id": "someone-else"})
        assert res.get_json()["total"] == 0

    def test_per_page_capped(self, client, business):
        self._entries(business, 1)
        body = client.get(f"{API}/activity", query_string={"per_page": 5000}).get_json()
        assert body["per_page"] == 200


# ═════════════════════════════════════════════════════════════════════════════
# CLI
# ═════════════════════════════════════════════════════════════════════════════


def test_seed_demo_command(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["seed-demo"])
    assert result.exit_code == 0, result.output

    db.session.expire_all()
    assert {b.slug for b in Business.query.all()} == {"melissa", "vaquero"}

    result = runner.invoke(args=["seed-demo"])
    assert result.exit_code == 0
    assert Business.query.count() == 2
