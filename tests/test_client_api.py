"""End-to-end tests of InventoryClient against the app through the test client."""

import unittest

from app.client.api import ApiError, InventoryClient
from app.client.session import SessionSynchronizer
from app.models import Role
from tests.helpers import TEST_PASSWORD, ApiTestCase, make_image


class ClientTestCase(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.session = SessionSynchronizer.in_memory()
        self.api = InventoryClient(session=self.session, http=self.client)


class TestClientAuth(ClientTestCase):
    def test_register_stores_session(self) -> None:
        user = self.api.register("client@example.com", "secret1", "Client User")
        self.assertEqual(user["email"], "client@example.com")
        self.assertTrue(self.session.is_authenticated())
        self.assertEqual(self.session.current_user(), user)
        self.assertEqual(self.api.get_profile()["id"], user["id"])

    def test_login_failure_raises_api_error(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            self.api.login("nobody@example.com", "secret1")
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.message, "Invalid email or password")
        self.assertFalse(self.session.is_authenticated())

    def test_validation_errors_are_exposed(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            self.api.register("client@example.com", "short", "Client User")
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn("password", {e["field"] for e in ctx.exception.errors})

    def test_logout_stops_sending_token(self) -> None:
        self.create_user(email="me@example.com")
        self.api.login("me@example.com", TEST_PASSWORD)
        self.api.logout()
        with self.assertRaises(ApiError) as ctx:
            self.api.get_profile()
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.message, "Access denied. No token provided.")

    def test_profile_and_avatar_changes_refresh_cached_user(self) -> None:
        self.create_user(email="me@example.com", name="Before")
        self.api.login("me@example.com", TEST_PASSWORD)
        self.api.update_profile(name="After")
        self.assertEqual(self.session.current_user()["name"], "After")

        user = self.api.upload_avatar("me.png", make_image(), "image/png")
        self.assertEqual(self.session.current_user()["avatar"], user["avatar"])
        self.assertEqual(
            self.api.avatar_url(self.session.current_user()),
            f"http://testserver/{user['avatar']}",
        )

        self.api.delete_avatar()
        self.assertIsNone(self.session.current_user()["avatar"])
        self.assertIsNone(self.api.avatar_url(self.session.current_user()))


class TestClientAdminAndItems(ClientTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.create_user(email="admin@example.com", role=Role.ADMIN)
        self.other = self.create_user(email="other@example.com")
        self.api.login("admin@example.com", TEST_PASSWORD)

    def test_user_administration(self) -> None:
        self.assertEqual(len(self.api.list_users()), 2)
        self.assertEqual(self.api.update_user_role(self.other.id, "ADMIN")["role"], "ADMIN")
        self.assertFalse(self.api.toggle_user_status(self.other.id)["is_active"])
        self.api.delete_user(self.other.id)
        with self.assertRaises(ApiError) as ctx:
            self.api.get_user(self.other.id)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_item_lifecycle(self) -> None:
        item = self.api.create_item(
            "Widget",
            description="Blue",
            price=2.5,
            quantity=4,
            image=("w.png", make_image(), "image/png"),
        )
        self.assertTrue(item["image"].startswith("uploads/items/"))
        self.assertEqual([i["id"] for i in self.api.list_items()], [item["id"]])

        updated = self.api.update_item(item["id"], quantity=5)
        self.assertEqual(updated["quantity"], 5)
        self.assertIsNone(self.api.delete_item_image(item["id"])["image"])

        first = self.api.delete_item(item["id"])
        second = self.api.delete_item(item["id"])
        self.assertEqual(first["message"], "Item deleted successfully")
        self.assertEqual(second["message"], "Item already deleted")
        self.assertEqual(self.api.list_items(), [])


if __name__ == "__main__":
    unittest.main()
