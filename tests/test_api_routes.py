"""
tests/test_api_routes.py -- Integration tests for the /api/auth and /api/products routes.

Covers:
  - Registration: 201 with token + public user, duplicate email, rule violations,
    client-supplied role ignored
  - Login: success, identical 401 for unknown email and wrong password
  - /auth/me: token required, malformed header, foreign signature, expired
    token, token for a deleted account
  - Product CRUD: create, list with filters, detail, partial update, delete
  - Authorization: 401 without token, 403 for non-admin delete
  - Error envelope: unknown route, invalid id, unknown id, 500 without leaking

Fixtures used (from conftest.py):
  - api: ApiContext(client, user_token, admin_token, credentials)
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from api.main import app
from auth.tokens import TokenService
from conftest import ADMIN_PASSWORD, USER_PASSWORD

MISSING_ID = "0123456789abcdef01234567"


def _create(api, token: str, **overrides) -> dict:
    body = {"name": "Widget", "price": 9.99, "category": "Home", **overrides}
    resp = api.client.post("/api/products", json=body, headers=api.auth(token))
    assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
    return resp.json()["data"]


class TestRegister:
    def test_register_returns_token_and_public_user(self, api) -> None:
        resp = api.client.post(
            "/api/auth/register",
            json={"name": "  Grace  ", "email": "Grace@Example.COM ", "password": "Hopper123"},
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "User registered successfully"
        assert body["token"]
        assert body["data"]["name"] == "Grace"
        assert body["data"]["email"] == "grace@example.com"
        assert body["data"]["role"] == "user"
        assert "password" not in body["data"]
        assert "hashed_password" not in body["data"]
        assert resp.headers["cache-control"] == "no-store"

    def test_register_token_works_for_me(self, api) -> None:
        resp = api.client.post(
            "/api/auth/register",
            json={"name": "Linus", "email": "linus@example.com", "password": "Kernel123"},
        )
        token = resp.json()["token"]
        me = api.client.get("/api/auth/me", headers=api.auth(token))
        assert me.status_code == 200
        assert me.json()["data"]["email"] == "linus@example.com"

    def test_duplicate_email_is_rejected(self, api) -> None:
        resp = api.client.post(
            "/api/auth/register",
            json={"name": "Copy", "email": "USER@example.com", "password": "Another123"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "User with this email already exists"}

    def test_all_violations_reported_together(self, api) -> None:
        resp = api.client.post("/api/auth/register", json={"name": "A", "email": "nope", "password": "short"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        fields = {e["field"] for e in body["errors"]}
        assert fields == {"name", "email", "password"}

    def test_password_value_not_echoed(self, api) -> None:
        resp = api.client.post(
            "/api/auth/register",
            json={"name": "Echo", "email": "echo@example.com", "password": "alllowercase1"},
        )
        assert resp.status_code == 400
        [violation] = resp.json()["errors"]
        assert violation["field"] == "password"
        assert violation.get("value") is None

    def test_client_supplied_admin_role_is_ignored(self, api) -> None:
        resp = api.client.post(
            "/api/auth/register",
            json={"name": "Mallory", "email": "mallory@example.com", "password": "Sneaky123", "role": "admin"},
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["role"] == "user"

    def test_invalid_role_value_still_rejected(self, api) -> None:
        resp = api.client.post(
            "/api/auth/register",
            json={"name": "Oscar", "email": "oscar@example.com", "password": "Grouch123", "role": "root"},
        )
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "role"

    def test_non_json_body_is_a_validation_error(self, api) -> None:
        resp = api.client.post(
            "/api/auth/register", content=b"not json", headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 400
        assert resp.json()["success"] is False


class TestLogin:
    def test_login_success(self, api) -> None:
        resp = api.client.post("/api/auth/login", json={"email": "user@example.com", "password": USER_PASSWORD})
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["message"] == "Login successful"
        assert body["token"]
        assert body["data"]["email"] == "user@example.com"

    def test_login_email_is_case_insensitive(self, api) -> None:
        resp = api.client.post("/api/auth/login", json={"email": " ADMIN@example.com", "password": ADMIN_PASSWORD})
        assert resp.status_code == 200
        assert resp.json()["data"]["role"] == "admin"

    def test_unknown_email_and_wrong_password_are_indistinguishable(self, api) -> None:
        wrong = api.client.post("/api/auth/login", json={"email": "user@example.com", "password": "Wrongpass1"})
        unknown = api.client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "Wrongpass1"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json() == {"success": False, "message": "Invalid email or password"}

    def test_missing_password(self, api) -> None:
        resp = api.client.post("/api/auth/login", json={"email": "user@example.com"})
        assert resp.status_code == 400
        [violation] = resp.json()["errors"]
        assert violation["field"] == "password"
        assert violation.get("value") is None


class TestMe:
    def test_me_requires_token(self, api) -> None:
        resp = api.client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Access denied. No token provided."

    def test_me_rejects_other_scheme(self, api) -> None:
        resp = api.client.get("/api/auth/me", headers={"Authorization": f"Token {api.user_token}"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Access denied. No token provided."

    def test_me_rejects_token_signed_with_other_secret(self, api) -> None:
        user_id = api.client.get("/api/auth/me", headers=api.auth(api.user_token)).json()["data"]["id"]
        token = TokenService("x" * 32, 3600).issue(user_id)
        resp = api.client.get("/api/auth/me", headers=api.auth(token))
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid or expired token"

    def test_me_rejects_expired_token(self, api) -> None:
        user_id = api.client.get("/api/auth/me", headers=api.auth(api.user_token)).json()["data"]["id"]
        tokens: TokenService = app.state.tokens
        issued = datetime.now(timezone.utc) - timedelta(seconds=tokens.expires_in + 60)
        resp = api.client.get("/api/auth/me", headers=api.auth(tokens.issue(user_id, now=issued)))
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "message": "Invalid or expired token"}

    def test_me_rejects_token_for_deleted_account(self, api) -> None:
        token = app.state.tokens.issue(MISSING_ID)
        resp = api.client.get("/api/auth/me", headers=api.auth(token))
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "message": "User not found. Token is invalid."}

    def test_me_returns_user_without_hash(self, api) -> None:
        resp = api.client.get("/api/auth/me", headers=api.auth(api.user_token))
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["email"] == "user@example.com"
        assert set(data) == {"id", "name", "email", "role", "createdAt"}


class TestProducts:
    def test_create_requires_auth(self, api) -> None:
        resp = api.client.post("/api/products", json={"name": "Nope", "price": 1, "category": "Books"})
        assert resp.status_code == 401

    def test_create_invalid_body_without_token_is_401(self, api) -> None:
        resp = api.client.post("/api/products", json={"name": "Bad", "price": -5, "category": "Books"})
        assert resp.status_code == 401

    def test_create_invalid_body(self, api) -> None:
        resp = api.client.post(
            "/api/products",
            json={"name": "Bad", "price": -5, "category": "Food"},
            headers=api.auth(api.user_token),
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["message"] == "Validation failed"
        assert [(e["field"], e["value"]) for e in body["errors"]] == [("price", -5), ("category", "Food")]

    def test_create_price_too_large_for_float(self, api) -> None:
        raw = '{"name": "Big", "price": 1' + "0" * 400 + ', "category": "Books"}'
        resp = api.client.post(
            "/api/products",
            content=raw,
            headers={**api.auth(api.user_token), "Content-Type": "application/json"},
        )
        assert resp.status_code == 400, resp.text
        [violation] = resp.json()["errors"]
        assert violation["field"] == "price"
        assert violation["message"] == "Price is too large"
        assert api.client.get("/api/products", params={"name": "Big"}).json()["count"] == 0

    def test_create_non_finite_price(self, api) -> None:
        resp = api.client.post(
            "/api/products",
            content=json.dumps({"name": "Odd", "price": float("nan"), "category": "Books"}),
            headers={**api.auth(api.user_token), "Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "price"

    def test_create_returns_public_shape(self, api) -> None:
        data = _create(api, api.user_token, name="Desk Lamp", price=129.5, category="Home", description=" Bright ")
        assert data["name"] == "Desk Lamp"
        assert data["formattedPrice"] == "$129.50"
        assert data["isExpensive"] is True
        assert data["description"] == "Bright"
        assert data["inStock"] is True
        assert len(data["id"]) == 24
        assert data["createdAt"] == data["updatedAt"]

    def test_duplicate_name_is_rejected(self, api) -> None:
        _create(api, api.user_token, name="Unique Mug")
        resp = api.client.post(
            "/api/products",
            json={"name": "unique mug", "price": 3, "category": "Home"},
            headers=api.auth(api.user_token),
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Product with this name already exists"

    def test_list_with_filters(self, api) -> None:
        _create(api, api.user_token, name="Tablet", price=300, category="Electronics")
        _create(api, api.user_token, name="Cable", price=5, category="Electronics", inStock=False)
        resp = api.client.get("/api/products", params={"category": "elect", "inStock": "true"})
        assert resp.status_code == 200
        body = resp.json()
        names = [p["name"] for p in body["data"]]
        assert "Tablet" in names
        assert "Cable" not in names
        assert body["count"] == len(body["data"])

        cheap = api.client.get("/api/products", params={"category": "Electronics", "maxPrice": "10"}).json()
        assert [p["name"] for p in cheap["data"]] == ["Cable"]

    def test_list_newest_first(self, api) -> None:
        _create(api, api.user_token, name="Older Book", category="Books")
        _create(api, api.user_token, name="Newer Book", category="Books")
        names = [p["name"] for p in api.client.get("/api/products", params={"category": "Books"}).json()["data"]]
        assert names.index("Newer Book") < names.index("Older Book")

    def test_list_rejects_inverted_price_bounds(self, api) -> None:
        resp = api.client.get("/api/products", params={"minPrice": "50", "maxPrice": "10"})
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "minPrice"

    def test_get_detail(self, api) -> None:
        created = _create(api, api.user_token, name="Running Shoes", category="Sports", price=80)
        resp = api.client.get(f"/api/products/{created['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"] == created

    def test_get_invalid_id(self, api) -> None:
        resp = api.client.get("/api/products/not-an-id")
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "Invalid ID format"}

    def test_get_unknown_id(self, api) -> None:
        resp = api.client.get(f"/api/products/{MISSING_ID}")
        assert resp.status_code == 404
        assert resp.json()["message"] == f"Product with ID {MISSING_ID} not found"

    def test_partial_update_changes_only_given_fields(self, api) -> None:
        created = _create(api, api.user_token, name="Jacket", category="Clothing", price=60, description="Warm")
        resp = api.client.put(
            f"/api/products/{created['id']}", json={"price": 45}, headers=api.auth(api.user_token)
        )
        assert resp.status_code == 200, resp.text
        updated = resp.json()["data"]
        assert updated["price"] == 45
        assert updated["name"] == "Jacket"
        assert updated["description"] == "Warm"
        assert updated["createdAt"] == created["createdAt"]
        assert updated["updatedAt"] > created["updatedAt"]

    def test_update_with_empty_body(self, api) -> None:
        created = _create(api, api.user_token, name="Scarf", category="Clothing")
        resp = api.client.put(f"/api/products/{created['id']}", json={}, headers=api.auth(api.user_token))
        assert resp.status_code == 400

    def test_update_invalid_value_is_not_persisted(self, api) -> None:
        created = _create(api, api.user_token, name="Hat", category="Clothing", price=15)
        resp = api.client.put(
            f"/api/products/{created['id']}", json={"price": -5}, headers=api.auth(api.user_token)
        )
        assert resp.status_code == 400
        assert api.client.get(f"/api/products/{created['id']}").json()["data"]["price"] == 15

    def test_delete_forbidden_for_regular_user(self, api) -> None:
        created = _create(api, api.user_token, name="Chair", category="Home")
        resp = api.client.delete(f"/api/products/{created['id']}", headers=api.auth(api.user_token))
        assert resp.status_code == 403
        assert resp.json()["message"] == "Access denied. user role is not authorized to access this resource."
        assert api.client.get(f"/api/products/{created['id']}").status_code == 200

    def test_delete_as_admin(self, api) -> None:
        created = _create(api, api.user_token, name="Table", category="Home")
        resp = api.client.delete(f"/api/products/{created['id']}", headers=api.auth(api.admin_token))
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == created["id"]
        assert api.client.get(f"/api/products/{created['id']}").status_code == 404

    def test_delete_unknown_id(self, api) -> None:
        resp = api.client.delete(f"/api/products/{MISSING_ID}", headers=api.auth(api.admin_token))
        assert resp.status_code == 404


class TestErrorEnvelope:
    def test_unknown_route(self, api) -> None:
        resp = api.client.get("/api/nowhere")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Route not found"}

    def test_unexpected_error_is_generic_500(self, api, monkeypatch) -> None:
        def boom(filters):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(app.state.product_store, "list", boom)
        # No context manager: reuses the services already wired by the module client.
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/api/products")
        assert resp.status_code == 500
        body = resp.json()
        assert body["success"] is False
        assert body["message"] == "Something went wrong!"
