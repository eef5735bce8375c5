"""HTTP tests for registration, login, the session guard and user management."""

import unittest
from datetime import UTC, datetime, timedelta

from app.core.security import TokenService
from app.models import Role, User
from tests.helpers import TEST_PASSWORD, TEST_SECRET, ApiTestCase


class TestRegister(ApiTestCase):
    def test_register_returns_user_and_token(self) -> None:
        resp = self.client.post(
            "/api/auth/register",
            json={"email": "New@Example.com", "password": "secret1", "name": "  Newbie "},
        )
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertTrue(body["success"])
        user = body["data"]["user"]
        self.assertEqual(user["email"], "new@example.com")
        self.assertEqual(user["name"], "Newbie")
        self.assertEqual(user["role"], "USER")
        self.assertTrue(user["is_active"])
        self.assertNotIn("password_hash", user)
        identity = self.tokens.verify(body["data"]["token"])
        self.assertEqual(identity.user_id, user["id"])

    def test_duplicate_email_rejected_case_insensitively(self) -> None:
        self.create_user(email="taken@example.com")
        resp = self.client.post(
            "/api/auth/register",
            json={"email": "TAKEN@example.com", "password": "secret1", "name": "Someone"},
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(
            resp.json(), {"success": False, "error": "User with this email already exists"}
        )

    def test_duplicate_of_deactivated_account_rejected(self) -> None:
        self.create_user(email="gone@example.com", is_active=False)
        resp = self.client.post(
            "/api/auth/register",
            json={"email": "gone@example.com", "password": "secret1", "name": "Someone"},
        )
        self.assertEqual(resp.status_code, 400)

    def test_validation_errors_carry_field_detail(self) -> None:
        resp = self.client.post(
            "/api/auth/register",
            json={"email": "not-an-email", "password": "nodigits", "name": "X"},
        )
        self.assertEqual(resp.status_code, 400)
        body = resp.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"], "Validation failed")
        fields = {e["field"]: e["message"] for e in body["errors"]}
        self.assertEqual(set(fields), {"email", "password", "name"})
        self.assertEqual(fields["password"], "Password must contain at least one number")


class TestLogin(ApiTestCase):
    def test_login_is_case_insensitive_on_email(self) -> None:
        user = self.create_user(email="mixed@example.com")
        resp = self.client.post(
            "/api/auth/login", json={"email": "MIXED@example.com", "password": TEST_PASSWORD}
        )
        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertEqual(data["user"]["id"], user.id)
        self.assertEqual(self.tokens.verify(data["token"]).email, "mixed@example.com")

    def test_unknown_email_and_wrong_password_are_indistinguishable(self) -> None:
        self.create_user(email="known@example.com")
        unknown = self.client.post(
            "/api/auth/login", json={"email": "nobody@example.com", "password": TEST_PASSWORD}
        )
        wrong = self.client.post(
            "/api/auth/login", json={"email": "known@example.com", "password": "wrong-pass1"}
        )
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(unknown.json(), wrong.json())
        self.assertEqual(unknown.json()["error"], "Invalid email or password")

    def test_deactivated_account_denied(self) -> None:
        self.create_user(email="off@example.com", is_active=False)
        resp = self.client.post(
            "/api/auth/login", json={"email": "off@example.com", "password": TEST_PASSWORD}
        )
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(
            resp.json()["error"], "Account is deactivated. Please contact administrator."
        )

    def test_deactivated_account_denied_even_with_wrong_password(self) -> None:
        self.create_user(email="off@example.com", is_active=False)
        resp = self.client.post(
            "/api/auth/login", json={"email": "off@example.com", "password": "wrong-pass1"}
        )
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(
            resp.json()["error"], "Account is deactivated. Please contact administrator."
        )

    def test_malformed_stored_hash_is_invalid_credentials(self) -> None:
        user = self.create_user(email="broken@example.com")
        with self.SessionFactory() as db:
            db.get(User, user.id).password_hash = "not-a-bcrypt-hash"
            db.commit()
        with self.assertLogs("app.services.auth_flow", level="ERROR"):
            resp = self.client.post(
                "/api/auth/login", json={"email": "broken@example.com", "password": TEST_PASSWORD}
            )
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["error"], "Invalid email or password")


class TestSessionGuard(ApiTestCase):
    def test_missing_token(self) -> None:
        resp = self.client.get("/api/auth/profile")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(
            resp.json(), {"success": False, "error": "Access denied. No token provided."}
        )
        self.assertEqual(resp.headers.get("www-authenticate"), "Bearer")

    def test_non_bearer_scheme_counts_as_missing(self) -> None:
        resp = self.client.get("/api/auth/profile", headers={"Authorization": "Basic abc"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["error"], "Access denied. No token provided.")

    def test_malformed_token(self) -> None:
        resp = self.client.get("/api/auth/profile", headers={"Authorization": "Bearer nope"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["error"], "Invalid token.")

    def test_expired_token(self) -> None:
        user = self.create_user()
        issued_long_ago = TokenService(
            TEST_SECRET,
            expire_minutes=60,
            clock=lambda: datetime.now(UTC) - timedelta(hours=2),
        ).issue(user.id, user.email, Role.USER)
        resp = self.client.get(
            "/api/auth/profile", headers={"Authorization": f"Bearer {issued_long_ago}"}
        )
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["error"], "Token expired. Please login again.")

    def test_identity_comes_from_token_claims(self) -> None:
        # A promotion is not visible until a new token is issued
        user = self.create_user()
        headers = self.auth_headers(user)
        with self.SessionFactory() as db:
            db.get(User, user.id).role = Role.ADMIN.value
            db.commit()
        self.assertEqual(self.client.get("/api/auth/users", headers=headers).status_code, 403)

    def test_profile_of_deleted_account_is_not_found(self) -> None:
        user = self.create_user()
        headers = self.auth_headers(user)
        with self.SessionFactory() as db:
            db.delete(db.get(User, user.id))
            db.commit()
        resp = self.client.get("/api/auth/profile", headers=headers)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["error"], "User not found")


class TestProfile(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.create_user(email="me@example.com", name="Me Myself")
        self.headers = self.auth_headers(self.user)

    def patch(self, body: dict) -> object:
        return self.client.patch("/api/auth/profile", json=body, headers=self.headers)

    def test_get_profile(self) -> None:
        resp = self.client.get("/api/auth/profile", headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["email"], "me@example.com")

    def test_rename(self) -> None:
        resp = self.patch({"name": "  Renamed  "})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["name"], "Renamed")

    def test_name_too_short(self) -> None:
        resp = self.patch({"name": "x"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["errors"][0]["field"], "name")

    def test_new_password_requires_current(self) -> None:
        resp = self.patch({"new_password": "another1"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(
            resp.json()["error"], "Current password is required to set a new password"
        )

    def test_incorrect_current_password(self) -> None:
        resp = self.patch({"current_password": "wrong-pass1", "new_password": "another1"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Current password is incorrect")

    def test_malformed_stored_hash_rejects_password_change(self) -> None:
        with self.SessionFactory() as db:
            db.get(User, self.user.id).password_hash = "not-a-bcrypt-hash"
            db.commit()
        with self.assertLogs("app.services.auth_flow", level="ERROR"):
            resp = self.patch({"current_password": TEST_PASSWORD, "new_password": "another1"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Current password is incorrect")

    def test_weak_new_password(self) -> None:
        resp = self.patch({"current_password": TEST_PASSWORD, "new_password": "abc"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "New password must be at least 6 characters")

    def test_no_changes(self) -> None:
        resp = self.patch({})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "No valid fields to update")

    def test_name_and_password_together(self) -> None:
        resp = self.patch(
            {"name": "New Name", "current_password": TEST_PASSWORD, "new_password": "another1"}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["name"], "New Name")
        old = self.client.post(
            "/api/auth/login", json={"email": "me@example.com", "password": TEST_PASSWORD}
        )
        new = self.client.post(
            "/api/auth/login", json={"email": "me@example.com", "password": "another1"}
        )
        self.assertEqual(old.status_code, 401)
        self.assertEqual(new.status_code, 200)


class TestUserManagement(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = self.create_user(email="admin@example.com", name="Admin", role=Role.ADMIN)
        self.user = self.create_user(email="user@example.com", name="Plain User")
        self.admin_headers = self.auth_headers(self.admin)
        self.user_headers = self.auth_headers(self.user)

    def test_list_users_is_admin_only(self) -> None:
        resp = self.client.get("/api/auth/users", headers=self.user_headers)
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["error"], "Access denied. Insufficient permissions.")

    def test_list_users_newest_first(self) -> None:
        resp = self.client.get("/api/auth/users", headers=self.admin_headers)
        self.assertEqual(resp.status_code, 200)
        ids = [u["id"] for u in resp.json()["data"]]
        self.assertEqual(ids, [self.user.id, self.admin.id])

    def test_get_user_self_or_admin(self) -> None:
        own = self.client.get(f"/api/auth/users/{self.user.id}", headers=self.user_headers)
        self.assertEqual(own.status_code, 200)
        other = self.client.get(f"/api/auth/users/{self.admin.id}", headers=self.user_headers)
        self.assertEqual(other.status_code, 403)
        self.assertEqual(
            other.json()["error"], "Access denied. You can only access your own resources."
        )
        by_admin = self.client.get(f"/api/auth/users/{self.user.id}", headers=self.admin_headers)
        self.assertEqual(by_admin.status_code, 200)
        missing = self.client.get("/api/auth/users/9999", headers=self.admin_headers)
        self.assertEqual(missing.status_code, 404)

    def test_change_role(self) -> None:
        resp = self.client.patch(
            f"/api/auth/users/{self.user.id}/role",
            json={"role": "ADMIN"},
            headers=self.admin_headers,
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["role"], "ADMIN")

    def test_change_own_role_forbidden(self) -> None:
        resp = self.client.patch(
            f"/api/auth/users/{self.admin.id}/role",
            json={"role": "USER"},
            headers=self.admin_headers,
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Cannot change your own role")

    def test_invalid_role_value(self) -> None:
        resp = self.client.patch(
            f"/api/auth/users/{self.user.id}/role",
            json={"role": "ROOT"},
            headers=self.admin_headers,
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["errors"][0]["field"], "role")

    def test_role_change_on_missing_user(self) -> None:
        resp = self.client.patch(
            "/api/auth/users/9999/role", json={"role": "ADMIN"}, headers=self.admin_headers
        )
        self.assertEqual(resp.status_code, 404)

    def test_toggle_status_flips_each_time(self) -> None:
        url = f"/api/auth/users/{self.user.id}/status"
        first = self.client.patch(url, headers=self.admin_headers)
        self.assertFalse(first.json()["data"]["is_active"])
        second = self.client.patch(url, headers=self.admin_headers)
        self.assertTrue(second.json()["data"]["is_active"])

    def test_toggle_own_status_forbidden(self) -> None:
        resp = self.client.patch(
            f"/api/auth/users/{self.admin.id}/status", headers=self.admin_headers
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Cannot deactivate your own account")

    def test_delete_user_then_again_is_not_found(self) -> None:
        # Known inconsistency: repeating an item delete succeeds, repeating a user delete is a 404
        url = f"/api/auth/users/{self.user.id}"
        first = self.client.delete(url, headers=self.admin_headers)
        self.assertEqual(first.status_code, 200)
        self.assertEqual(
            first.json(), {"success": True, "message": "User deleted successfully"}
        )
        second = self.client.delete(url, headers=self.admin_headers)
        self.assertEqual(second.status_code, 404)
        self.assertEqual(second.json()["error"], "User not found")

    def test_delete_self_forbidden(self) -> None:
        resp = self.client.delete(f"/api/auth/users/{self.admin.id}", headers=self.admin_headers)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Cannot delete your own account")

    def test_delete_user_is_admin_only(self) -> None:
        resp = self.client.delete(f"/api/auth/users/{self.admin.id}", headers=self.user_headers)
        self.assertEqual(resp.status_code, 403)


if __name__ == "__main__":
    unittest.main()
