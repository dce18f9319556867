"""
gather/tests/test_api.py
HTTP surface: routing, envelopes, header-derived actor and location.
"""

from gather.tests.helpers import LISBON, LISBON_NEARBY


def _register(client, name):
    resp = client.post(
        "/v1/auth/register",
        json={"name": name, "email": f"{name.lower()}@example.com", "password": "secret123"},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    return data["user"], {"Authorization": f"Bearer {data['token']}"}


def _with_location(headers, coordinate):
    return {**headers, "Location": f"{coordinate.latitude},{coordinate.longitude}"}


def _create_plan(client, headers, **overrides):
    body = {
        "description": "Open air cinema",
        "type": "movie",
        "location": {"latitude": LISBON.latitude, "longitude": LISBON.longitude},
        **overrides,
    }
    resp = client.post("/v1/plans", json=body, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


class TestAuthRoutes:
    def test_register_and_login(self, client):
        user, _ = _register(client, "Alice")
        resp = client.post("/v1/auth/login", json={"email": "alice@example.com", "password": "secret123"})
        assert resp.status_code == 200
        assert resp.json()["data"]["user"]["id"] == user["id"]

    def test_login_failure(self, client):
        resp = client.post("/v1/auth/login", json={"email": "nobody@example.com", "password": "x"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthenticated"

    def test_bad_token_is_401_not_anonymous(self, client):
        resp = client.get("/v1/profile", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid token"


class TestPlanFlow:
    def test_full_lifecycle(self, client):
        owner, owner_headers = _register(client, "Olive")
        guest, guest_headers = _register(client, "Gus")

        plan = _create_plan(client, owner_headers)
        assert plan["status"] == "joined"
        assert plan["user"]["id"] == owner["id"]
        plan_id = plan["id"]

        nearby = client.get("/v1/plans", params={"radius": 5}, headers=_with_location(guest_headers, LISBON_NEARBY))
        assert nearby.status_code == 200
        assert nearby.json()["count"] == 1
        listed = nearby.json()["data"][0]
        assert listed["status"] == "new"
        assert listed["members"] == []
        assert listed["meta"]["distance"] > 1000

        joined = client.post(f"/v1/plans/{plan_id}/join", headers=guest_headers)
        assert joined.json()["data"]["status"] == "requested"

        approved = client.post(f"/v1/plans/{plan_id}/members/{guest['id']}/approve", headers=owner_headers)
        assert approved.status_code == 200
        assert approved.json()["data"]["success"] is True
        assert approved.json()["data"]["member"]["approved"] is True

        comment = client.post(
            f"/v1/plans/{plan_id}/comments", json={"body": "popcorn?", "pinned": True}, headers=guest_headers
        )
        assert comment.status_code == 200
        assert comment.json()["data"]["pinned"] is False

        fetched = client.get(f"/v1/plans/{plan_id}", headers=guest_headers).json()["data"]
        assert fetched["status"] == "joined"
        assert [c["body"] for c in fetched["comments"]] == ["popcorn?"]

        inbox = client.get("/v1/notifications", headers=owner_headers).json()
        assert [n["action"] for n in inbox["data"]] == ["new_request", "new_comment"]
        assert inbox["data"][0]["source"]["__typename"] == "User"

        removed = client.delete(
            f"/v1/plans/{plan_id}/comments/{comment.json()['data']['id']}", headers=owner_headers
        )
        assert removed.json()["data"] == {"success": True}

        rated = client.post(
            "/v1/ratings", json={"plan_id": plan_id, "user_id": owner["id"], "rating": 3}, headers=guest_headers
        )
        assert rated.json()["data"] == {"success": True}
        profile = client.get("/v1/profile", headers=owner_headers).json()["data"]
        assert profile["rating"] == 4.0
        assert [p["id"] for p in profile["plans"]] == [plan_id]

    def test_non_owner_approve_is_forbidden(self, client):
        _, owner_headers = _register(client, "Olive")
        guest, guest_headers = _register(client, "Gus")
        plan_id = _create_plan(client, owner_headers)["id"]
        client.post(f"/v1/plans/{plan_id}/join", headers=guest_headers)

        resp = client.post(f"/v1/plans/{plan_id}/members/{guest['id']}/approve", headers=guest_headers)
        assert resp.status_code == 403
        assert resp.json()["error"] == {
            "code": "forbidden",
            "message": "Not allowed",
            "request_id": resp.headers["x-request-id"],
        }

    def test_blocked_fetch_is_404(self, client):
        _, owner_headers = _register(client, "Olive")
        guest, guest_headers = _register(client, "Gus")
        plan_id = _create_plan(client, owner_headers)["id"]

        blocked = client.post(f"/v1/plans/{plan_id}/members/{guest['id']}/block", headers=owner_headers)
        assert blocked.json()["data"] == {"success": True}

        resp = client.get(f"/v1/plans/{plan_id}", headers=guest_headers)
        assert resp.status_code == 404
        missing = client.get("/v1/plans/does-not-exist", headers=guest_headers)
        assert resp.json()["error"]["message"] == missing.json()["error"]["message"]

    def test_discovery_needs_location(self, client):
        _, headers = _register(client, "Gus")
        resp = client.get("/v1/plans", headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_discovery_needs_actor(self, client):
        resp = client.get("/v1/plans", headers={"Location": "38.7,-9.1"})
        assert resp.status_code == 401

    def test_malformed_location_header(self, client):
        _, headers = _register(client, "Gus")
        resp = client.get("/v1/plans", headers={**headers, "Location": "north"})
        assert resp.status_code == 400

    def test_nan_radius_rejected(self, client):
        _, headers = _register(client, "Gus")
        resp = client.get("/v1/plans", params={"radius": "nan"}, headers=_with_location(headers, LISBON))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_unknown_type_rejected(self, client):
        _, headers = _register(client, "Olive")
        resp = client.post(
            "/v1/plans",
            json={"description": "x", "type": "picnic", "location": {"latitude": 0, "longitude": 0}},
            headers=headers,
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_rating_rejects_boolean_score(self, client):
        _, rater = _register(client, "Rae")
        ratee, _ = _register(client, "Tee")
        resp = client.post("/v1/ratings", json={"plan_id": "p", "user_id": ratee["id"], "rating": True}, headers=rater)
        assert resp.status_code == 400

    def test_profile_update(self, client):
        _, headers = _register(client, "Olive")
        resp = client.patch("/v1/profile", json={"notifications": False}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["notifications"] is False
        assert resp.json()["data"]["name"] == "Olive"


class TestOperational:
    def test_healthz(self, client):
        assert client.get("/healthz").json() == {"status": "ok"}

    def test_readyz(self, client):
        assert client.get("/readyz").status_code == 200

    def test_metrics_exposes_plan_counters(self, client):
        _, headers = _register(client, "Olive")
        _create_plan(client, headers)
        text = client.get("/metrics").text
        assert 'plan_mutations_total{type="created"} 1.0' in text
        assert "http_requests_total" in text

    def test_unknown_route_uses_error_envelope(self, client):
        resp = client.get("/v1/nope")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"
