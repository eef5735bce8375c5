"""Synchronous HTTP client for the Stockroom API, wired to a SessionSynchronizer."""

import logging
from typing import Any, BinaryIO

import httpx

from app.client.session import SessionSynchronizer

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT_SEC = 30.0

# (filename, content, content_type) as accepted by httpx `files=`
FilePart = tuple[str, bytes | BinaryIO, str]


class ApiError(Exception):
    """A request that did not produce a success envelope."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[dict[str, str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors or []


class InventoryClient:
    """
    Thin wrapper over the REST API.

    Login and register store the returned session; profile and avatar calls refresh the
    stored user. Pass `http` to reuse an existing httpx.Client (e.g. a test client).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: SessionSynchronizer | None = None,
        http: httpx.Client | None = None,
        api_prefix: str = "/api",
        timeout: float = DEFAULT_TIMEOUT_SEC,
    ) -> None:
        self.session = session or SessionSynchronizer.in_memory()
        self._owns_http = http is None
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.api_prefix = api_prefix.rstrip("/")

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "InventoryClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        token = self.session.token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._http.request(
                method, f"{self.api_prefix}{path}", headers=self._headers(), **kwargs
            )
        except httpx.HTTPError as e:
            logger.warning("API request failed", extra={"method": method, "path": path, "error": str(e)})
            raise ApiError(f"Request failed: {e}") from e
        try:
            body = response.json()
        except ValueError as e:
            raise ApiError(
                f"Unexpected response from server (HTTP {response.status_code})",
                response.status_code,
            ) from e
        if not isinstance(body, dict) or not body.get("success"):
            body = body if isinstance(body, dict) else {}
            raise ApiError(
                body.get("error") or "Request failed",
                response.status_code,
                body.get("errors"),
            )
        return body

    def _data(self, method: str, path: str, **kwargs: Any) -> Any:
        return self._request(method, path, **kwargs).get("data")

    # --- auth ---

    def register(self, email: str, password: str, name: str) -> dict[str, Any]:
        data = self._data("POST", "/auth/register", json={"email": email, "password": password, "name": name})
        self.session.set_session(data["token"], data["user"])
        return data["user"]

    def login(self, email: str, password: str) -> dict[str, Any]:
        data = self._data("POST", "/auth/login", json={"email": email, "password": password})
        self.session.set_session(data["token"], data["user"])
        return data["user"]

    def logout(self) -> None:
        """Local only; tokens are stateless and simply stop being sent."""
        self.session.logout()

    def get_profile(self) -> dict[str, Any]:
        user = self._data("GET", "/auth/profile")
        self.session.update_user(user)
        return user

    def update_profile(
        self,
        name: str | None = None,
        current_password: str | None = None,
        new_password: str | None = None,
    ) -> dict[str, Any]:
        body = {
            k: v
            for k, v in (
                ("name", name),
                ("current_password", current_password),
                ("new_password", new_password),
            )
            if v is not None
        }
        user = self._data("PATCH", "/auth/profile", json=body)
        self.session.update_user(user)
        return user

    def upload_avatar(self, filename: str, content: bytes | BinaryIO, content_type: str) -> dict[str, Any]:
        user = self._data("POST", "/auth/avatar", files={"avatar": (filename, content, content_type)})
        self.session.update_user(user)
        return user

    def delete_avatar(self) -> dict[str, Any]:
        user = self._data("DELETE", "/auth/avatar")
        self.session.update_user(user)
        return user

    # --- user administration ---

    def list_users(self) -> list[dict[str, Any]]:
        return self._data("GET", "/auth/users")

    def get_user(self, user_id: int) -> dict[str, Any]:
        return self._data("GET", f"/auth/users/{user_id}")

    def update_user_role(self, user_id: int, role: str) -> dict[str, Any]:
        return self._data("PATCH", f"/auth/users/{user_id}/role", json={"role": role})

    def toggle_user_status(self, user_id: int) -> dict[str, Any]:
        return self._data("PATCH", f"/auth/users/{user_id}/status")

    def delete_user(self, user_id: int) -> None:
        self._request("DELETE", f"/auth/users/{user_id}")

    # --- items ---

    def list_items(self) -> list[dict[str, Any]]:
        return self._data("GET", "/items")

    def get_item(self, item_id: int) -> dict[str, Any]:
        return self._data("GET", f"/items/{item_id}")

    @staticmethod
    def _item_form(**fields: Any) -> dict[str, str]:
        return {k: str(v) for k, v in fields.items() if v is not None}

    def create_item(
        self,
        name: str,
        description: str | None = None,
        price: float | None = None,
        quantity: int | None = None,
        image: FilePart | None = None,
    ) -> dict[str, Any]:
        data = self._item_form(name=name, description=description, price=price, quantity=quantity)
        files = {"image": image} if image else None
        return self._data("POST", "/items", data=data, files=files)

    def update_item(
        self,
        item_id: int,
        name: str | None = None,
        description: str | None = None,
        price: float | None = None,
        quantity: int | None = None,
        image: FilePart | None = None,
    ) -> dict[str, Any]:
        data = self._item_form(name=name, description=description, price=price, quantity=quantity)
        files = {"image": image} if image else None
        return self._data("PUT", f"/items/{item_id}", data=data, files=files)

    def delete_item(self, item_id: int) -> dict[str, Any]:
        """Envelope of the delete; `data` is absent when the item was already gone."""
        return self._request("DELETE", f"/items/{item_id}")

    def delete_item_image(self, item_id: int) -> dict[str, Any]:
        return self._data("DELETE", f"/items/{item_id}/image")

    # --- static files ---

    def file_url(self, reference: str | None) -> str | None:
        """Absolute URL of a stored image reference such as 'uploads/avatars/<file>'."""
        if not reference:
            return None
        return f"{str(self._http.base_url).rstrip('/')}/{reference.lstrip('/')}"

    def avatar_url(self, user: dict[str, Any] | None) -> str | None:
        return self.file_url((user or {}).get("avatar"))
