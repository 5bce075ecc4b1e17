"""
services/api_client.py

Client for the remote persistence service (auth + test history).
Public API:
  - CredentialStore : bearer token + user profile, file backed
  - ApiClient       : register / login / logout / profile / submit_test / history

Every authenticated call carries "Authorization: Bearer <token>".
A 401 clears the stored credential and raises AuthError; callers route the
user back to the login screen.
"""

import json
import logging
import os
import threading
from typing import Any, Dict, Optional

import requests

from config import API_BASE_URL, API_TIMEOUT

logger = logging.getLogger(__name__)


class NetworkError(RuntimeError):
    """Transport failure or non-2xx response from the persistence service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(NetworkError):
    """401 from the persistence service. The stored credential is discarded."""


class CredentialStore:
    """
    Cached login state.

    Loaded from disk when created (load-on-start), cleared on logout or on any
    401 from the service. path=None keeps the credential in memory only.
    """

    def __init__(self, path: Optional[str] = None):
        self._path = path
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._user: Optional[Dict[str, Any]] = None
        self._load()

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return dict(self._user) if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def save(self, token: str, user: Dict[str, Any]) -> None:
        with self._lock:
            self._token = token
            self._user = dict(user)
            self._write({"token": token, "user": self._user})

    def clear(self) -> None:
        with self._lock:
            self._token = None
            self._user = None
            if self._path and os.path.exists(self._path):
                try:
                    os.remove(self._path)
                except OSError as e:
                    logger.warning(f"Could not remove credential file: {e}")

    def _load(self) -> None:
        if not self._path or not os.path.exists(self._path):
            return
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable credential file {self._path}: {e}")
            return
        self._token = data.get("token") or None
        self._user = data.get("user") or None

    def _write(self, data: Dict[str, Any]) -> None:
        if not self._path:
            return
        try:
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
        except OSError as e:
            logger.warning(f"Could not persist credential: {e}")


class ApiClient:
    def __init__(
        self,
        credentials: CredentialStore,
        base_url: str = API_BASE_URL,
        timeout: float = API_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    # ── auth ─────────────────────────────────────────────────────────────────

    def register(self, name: str, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/register", json={"name": name, "email": email, "password": password})
        self._remember(data)
        return data

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self._remember(data)
        return data

    def logout(self) -> None:
        self.credentials.clear()

    def profile(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/profile", auth=True)

    def validate_token(self) -> Optional[Dict[str, Any]]:
        """
        Check the stored token against the service at startup.

        Returns:
            the profile, or None when no token is stored or it was rejected.
            Network failures keep the token (the service may just be down).
        """
        if not self.credentials.is_authenticated:
            return None
        try:
            return self.profile()
        except AuthError:
            logger.info("Stored token rejected; credential cleared")
            return None
        except NetworkError as e:
            logger.warning(f"Token validation skipped: {e}")
            return None

    # ── tests ────────────────────────────────────────────────────────────────

    def submit_test(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/test/submit", auth=True, json=payload)

    def history(self, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """
        Returns:
            {"history": [...], "pagination": {"page", "pages", "total"}}
        """
        return self._request("GET", "/test/history", auth=True, params={"page": page, "limit": limit})

    # ── internals ────────────────────────────────────────────────────────────

    def _remember(self, data: Dict[str, Any]) -> None:
        token = data.get("token")
        if not token:
            raise NetworkError("Auth response did not include a token.")
        user = {k: data.get(k) for k in ("name", "email", "role")}
        self.credentials.save(token, user)

    def _request(self, method: str, path: str, auth: bool = False, **kwargs) -> Dict[str, Any]:
        headers = kwargs.pop("headers", {})
        token = self.credentials.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        elif auth:
            raise AuthError("Not logged in.", status_code=401)

        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.status_code == 401:
            self.credentials.clear()
            raise AuthError("Session expired. Please log in again.", status_code=401)
        if not response.ok:
            raise NetworkError(
                f"{method} {path} returned {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"{method} {path} returned invalid JSON") from e


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        if body.get("message"):
            return str(body["message"])
        errors = body.get("errors")
        if errors and isinstance(errors, list) and isinstance(errors[0], dict):
            return str(errors[0].get("msg", ""))
    return str(body)[:200]
