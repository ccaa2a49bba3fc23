"""
Client-side auth session for the booking service.

Replaces a browser-global session with an explicit object: the session talks
to the API through an HTTP client and keeps its token and user under the
"auth_token" and "user_data" keys of whatever storage it is given.
"""

import json
import os
from typing import Dict, Optional

import requests

TOKEN_KEY = "auth_token"
USER_KEY = "user_data"
ALLOWED_USER_TYPES = ("driver", "admin")


class SessionError(Exception):
    pass


class StoragePort:
    """Minimal key/value storage, the shape of browser local storage"""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(StoragePort):
    def __init__(self, items: Optional[Dict[str, str]] = None):
        self.items = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileStorage(StoragePort):
    """Storage persisted to a JSON file, rewritten on every change"""

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _save(self, items: Dict[str, str]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(items, f)

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = value
        self._save(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if key in items:
            del items[key]
            self._save(items)


def _error_message(response, default: str) -> str:
    try:
        return response.json().get("error") or default
    except ValueError:
        return default


class AuthSession:
    def __init__(self, api_url: str, storage: StoragePort, http=None):
        self.api_url = api_url.rstrip("/")
        self.storage = storage
        self.http = http or requests.Session()
        self.user: Optional[dict] = None

    @property
    def token(self) -> Optional[str]:
        return self.storage.get_item(TOKEN_KEY)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_driver(self) -> bool:
        return self.user is not None and self.user.get("userType") == "driver"

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.get("userType") == "admin"

    def restore(self) -> Optional[dict]:
        """Pick up a previously stored session, clearing it if it's unusable"""
        token = self.storage.get_item(TOKEN_KEY)
        user_data = self.storage.get_item(USER_KEY)
        if not token or not user_data:
            return None

        try:
            user = json.loads(user_data)
        except ValueError as e:
            print(f"[SESSION] Error parsing user data: {e}")
            self._clear()
            return None

        if not isinstance(user, dict) or user.get("userType") not in ALLOWED_USER_TYPES:
            self._clear()
            return None

        self.user = user
        return user

    def login(self, email: str, password: str) -> dict:
        response = self.http.post(
            f"{self.api_url}/auth/login",
            json={"email": email, "password": password},
        )
        if response.status_code >= 400:
            print(f"[SESSION] Login failed with status {response.status_code}")
            raise SessionError("Login failed")

        data = response.json()
        user = dict(data["user"])
        user["userType"] = user.get("user_type")
        if user["userType"] not in ALLOWED_USER_TYPES:
            raise SessionError("Only drivers and admins can log in")

        self.storage.set_item(TOKEN_KEY, data["token"])
        self.storage.set_item(USER_KEY, json.dumps(user))
        self.user = user
        return user

    def logout(self) -> None:
        self._clear()

    def create_driver(self, email: str, password: str, first_name: str,
                      last_name: str, phone: str = "") -> dict:
        """Create a driver account with the stored admin token"""
        token = self.token
        if not token:
            raise SessionError("You must be logged in as admin.")

        try:
            response = self.http.post(
                f"{self.api_url}/auth/create-driver",
                json={
                    "email": email,
                    "password": password,
                    "first_name": first_name,
                    "last_name": last_name,
                    "phone": phone,
                },
                headers={"Authorization": f"Bearer {token}"},
            )
        except requests.RequestException as e:
            print(f"[SESSION] Create driver request failed: {e}")
            raise SessionError("Server error. Please try again.") from e
        if response.status_code >= 400:
            raise SessionError(_error_message(response, "Failed to create driver."))
        return response.json()["user"]

    def _clear(self) -> None:
        self.storage.remove_item(TOKEN_KEY)
        self.storage.remove_item(USER_KEY)
        self.user = None
