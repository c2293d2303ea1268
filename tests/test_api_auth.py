"""
Tests for the account API.

Covers registration, login with lockout, token refresh, the current user
endpoints, sessions, password reset and the audit log permissions.
"""

from vaisu.api.rate_limit import login_limiter
from vaisu.repositories import user_repository
from vaisu.utils.auth import generate_token_pair

from conftest import TEST_PASSWORD


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestRegister:
    def test_register_success(self, client):
        response = client.post(
            "/api/auth/register",
            json={
                "email": "  New@Example.com ",
                "firstName": "New",
                "lastName": "User",
                "password": TEST_PASSWORD,
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "User registered successfully."
        assert data["email"] == "new@example.com"
        assert data["userId"]

    async def test_registered_account_is_active(self, register_user):
        user = register_user()
        record = await user_repository.get_user_by_id(user["userId"])
        assert record["status"] == "active"
        assert record["emailVerified"] is True
        assert "verificationToken" not in record

    def test_weak_password_lists_unmet_rules(self, client):
        response = client.post(
            "/api/auth/register",
            json={
                "email": "weak@example.com",
                "firstName": "Weak",
                "lastName": "User",
                "password": "alllowercase",
            },
        )
        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Password does not meet requirements"
        assert "Password must contain at least one uppercase letter" in data["details"]
        assert "Password must contain at least one number" in data["details"]

    def test_invalid_email(self, client):
        response = client.post(
            "/api/auth/register",
            json={
                "email": "not-an-email",
                "firstName": "A",
                "lastName": "B",
                "password": TEST_PASSWORD,
            },
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email format"

    def test_duplicate_email(self, client, register_user):
        register_user()
        response = client.post(
            "/api/auth/register",
            json={
                "email": "user@example.com",
                "firstName": "Again",
                "lastName": "User",
                "password": TEST_PASSWORD,
            },
        )
        assert response.status_code == 409

    def test_missing_fields(self, client):
        response = client.post("/api/auth/register", json={"email": "x@example.com"})
        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"


class TestLogin:
    def test_login_success(self, client, register_user):
        user = register_user()
        response = client.post(
            "/api/auth/login", json={"email": user["email"], "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Login successful"
        assert data["accessToken"] and data["refreshToken"] and data["sessionId"]
        assert data["user"] == {
            "userId": user["userId"],
            "email": user["email"],
            "firstName": "Test",
            "lastName": "User",
        }

    def test_unknown_email(self, client):
        response = client.post(
            "/api/auth/login", json={"email": "ghost@example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"

    def test_wrong_password(self, client, register_user):
        user = register_user()
        response = client.post(
            "/api/auth/login", json={"email": user["email"], "password": "Wrong!Passw0rd"}
        )
        assert response.status_code == 401

    def test_lockout_after_repeated_failures(self, client, register_user):
        user = register_user()
        for _ in range(5):
            response = client.post(
                "/api/auth/login", json={"email": user["email"], "password": "Wrong!Passw0rd"}
            )
            assert response.status_code == 401

        login_limiter.reset()
        response = client.post(
            "/api/auth/login", json={"email": user["email"], "password": TEST_PASSWORD}
        )
        assert response.status_code == 423
        assert response.json()["lockedUntil"]

    def test_login_rate_limited(self, client):
        for _ in range(5):
            client.post("/api/auth/login", json={"email": "a@example.com", "password": "x"})
        response = client.post("/api/auth/login", json={"email": "a@example.com", "password": "x"})
        assert response.status_code == 429
        data = response.json()
        assert data["error"] == "Too many login attempts"
        assert data["retryAfter"] > 0


class TestTokens:
    def test_refresh_issues_access_token(self, client, register_user, login):
        user = register_user()
        body = login(user["email"])

        response = client.post("/api/auth/refresh", json={"refreshToken": body["refreshToken"]})
        assert response.status_code == 200
        access_token = response.json()["accessToken"]

        me = client.get("/api/auth/me", headers=bearer(access_token))
        assert me.status_code == 200

    def test_refresh_rejects_access_token(self, client, register_user, login):
        user = register_user()
        body = login(user["email"])
        response = client.post("/api/auth/refresh", json={"refreshToken": body["accessToken"]})
        assert response.status_code == 401

    def test_refresh_requires_token(self, client):
        response = client.post("/api/auth/refresh", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "Refresh token required"

    def test_me_without_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["error"] == "No token provided"

    def test_me_with_malformed_header(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Token abc"})
        assert response.status_code == 401

    def test_token_for_unknown_user(self, client):
        tokens = generate_token_pair({"userId": "ghost", "email": "ghost@example.com"})
        response = client.get("/api/auth/me", headers=bearer(tokens["accessToken"]))
        assert response.status_code == 401
        assert response.json()["error"] == "User not found"


class TestCurrentUser:
    def test_me(self, client, auth_headers):
        response = client.get("/api/auth/me", headers=auth_headers)
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == "user@example.com"
        assert user["role"] == "free"

    def test_update_profile(self, client, auth_headers):
        response = client.put(
            "/api/auth/profile", json={"firstName": " Ada "}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["user"]["firstName"] == "Ada"
        assert response.json()["user"]["lastName"] == "User"

    def test_change_password(self, client, register_user, login):
        user = register_user()
        headers = bearer(login(user["email"])["accessToken"])

        response = client.put(
            "/api/auth/password",
            json={"currentPassword": TEST_PASSWORD, "newPassword": "N3w!Password"},
            headers=headers,
        )
        assert response.status_code == 200

        login_limiter.reset()
        assert login(user["email"], "N3w!Password")["message"] == "Login successful"

    def test_change_password_wrong_current(self, client, auth_headers):
        response = client.put(
            "/api/auth/password",
            json={"currentPassword": "Wrong!Passw0rd", "newPassword": "N3w!Password"},
            headers=auth_headers,
        )
        assert response.status_code == 401

    def test_change_password_weak_new(self, client, auth_headers):
        response = client.put(
            "/api/auth/password",
            json={"currentPassword": TEST_PASSWORD, "newPassword": "weakpassword"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "New password does not meet requirements"

    def test_delete_account_deactivates(self, client, auth_headers):
        response = client.request(
            "DELETE", "/api/auth/account", json={"password": TEST_PASSWORD}, headers=auth_headers
        )
        assert response.status_code == 200

        me = client.get("/api/auth/me", headers=auth_headers)
        assert me.status_code == 403
        assert me.json()["error"] == "Account is inactive"

    def test_delete_account_requires_password(self, client, auth_headers):
        response = client.request("DELETE", "/api/auth/account", json={}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Password required to confirm deletion"


class TestSessions:
    def test_list_own_sessions(self, client, register_user, login):
        user = register_user()
        body = login(user["email"])

        response = client.get(
            "/api/auth/sessions",
            params={"userId": user["userId"]},
            headers=bearer(body["accessToken"]),
        )
        assert response.status_code == 200
        sessions = response.json()["sessions"]
        assert [s["sessionId"] for s in sessions] == [body["sessionId"]]

    def test_other_users_sessions_forbidden(self, client, register_user, login):
        owner = register_user("owner@example.com")
        other = register_user("other@example.com")
        body = login(other["email"])

        response = client.get(
            "/api/auth/sessions",
            params={"userId": owner["userId"]},
            headers=bearer(body["accessToken"]),
        )
        assert response.status_code == 403
        assert response.json()["error"] == "Access denied"

    async def test_admin_may_list_any_sessions(self, client, register_user, login):
        owner = register_user("owner@example.com")
        admin = register_user("admin@example.com")
        await user_repository.update_user(admin["userId"], {"role": "admin"})
        body = login(admin["email"])

        response = client.get(
            "/api/auth/sessions",
            params={"userId": owner["userId"]},
            headers=bearer(body["accessToken"]),
        )
        assert response.status_code == 200

    def test_logout_revokes_session(self, client, register_user, login):
        user = register_user()
        body = login(user["email"])

        response = client.post("/api/auth/logout", json={"sessionId": body["sessionId"]})
        assert response.status_code == 200

        listed = client.get(
            "/api/auth/sessions",
            params={"userId": user["userId"]},
            headers=bearer(body["accessToken"]),
        )
        assert [s["revoked"] for s in listed.json()["sessions"]] == [True]


class TestPasswordReset:
    def test_unknown_email_gets_generic_answer(self, client):
        response = client.post(
            "/api/auth/request-password-reset", json={"email": "ghost@example.com"}
        )
        assert response.status_code == 200
        assert response.json()["message"] == "If an account exists, a reset link has been sent"

    async def test_reset_flow(self, client, register_user, login):
        user = register_user()
        response = client.post("/api/auth/request-password-reset", json={"email": user["email"]})
        assert response.status_code == 200

        record = await user_repository.get_user_by_id(user["userId"])
        token = record["resetToken"]

        bad = client.post(
            "/api/auth/reset-password",
            json={"userId": user["userId"], "token": "wrong", "newPassword": "R3set!Password"},
        )
        assert bad.status_code == 400

        good = client.post(
            "/api/auth/reset-password",
            json={"userId": user["userId"], "token": token, "newPassword": "R3set!Password"},
        )
        assert good.status_code == 200
        assert login(user["email"], "R3set!Password")["message"] == "Login successful"


class TestAuditLogs:
    def test_own_audit_logs(self, client, register_user, login):
        user = register_user()
        body = login(user["email"])

        response = client.get(
            f"/api/auth/users/{user['userId']}/audit-logs", headers=bearer(body["accessToken"])
        )
        assert response.status_code == 200
        actions = {log["action"] for log in response.json()["logs"]}
        assert {"USER_REGISTRATION", "USER_LOGIN"} <= actions

    def test_admin_logs_require_admin(self, client, auth_headers):
        response = client.get(
            "/api/auth/admin/audit-logs", params={"action": "USER_LOGIN"}, headers=auth_headers
        )
        assert response.status_code == 403
        assert response.json()["error"] == "Access denied: insufficient permissions"

    def test_admin_logs_require_authentication(self, client):
        response = client.get("/api/auth/admin/audit-logs", params={"action": "USER_LOGIN"})
        assert response.status_code == 401
