"""Firebase Authentication over the Identity Toolkit REST API.

firebase-admin can create users but cannot verify a password, so the
email/password flows go through the same REST endpoints the mobile SDKs use.
"""

import logging
from typing import Any

import requests

from .errors import AuthError
from .state import UserSession

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts:{method}"


class AuthClient:
    """Email/password authentication for one Firebase project."""

    def __init__(
        self,
        api_key: str,
        session: requests.Session | None = None,
        timeout: float = 10.0,
    ):
        self._api_key = api_key
        self._session = session or requests.Session()
        self._timeout = timeout

    def sign_in(self, email: str, password: str) -> UserSession:
        data = self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        logger.info("Signed in as %s", data.get("localId"))
        return _session_from_response(data)

    def sign_up(self, email: str, password: str, display_name: str) -> UserSession:
        data = self._post(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        self._post(
            "update",
            {"idToken": data["idToken"], "displayName": display_name, "returnSecureToken": False},
        )
        logger.info("Created account %s", data.get("localId"))
        return _session_from_response({**data, "displayName": display_name})

    def send_password_reset(self, email: str) -> None:
        self._post("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    def _post(self, method: str, body: dict[str, Any]) -> dict[str, Any]:
        response = self._session.post(
            IDENTITY_TOOLKIT_URL.format(method=method),
            params={"key": self._api_key},
            json=body,
            timeout=self._timeout,
        )
        if response.status_code != 200:
            try:
                code = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                code = f"HTTP_{response.status_code}"
            raise AuthError(code)
        return response.json()


def _session_from_response(data: dict[str, Any]) -> UserSession:
    return UserSession(
        uid=data["localId"],
        email=data.get("email", ""),
        display_name=data.get("displayName") or "",
        photo_url=data.get("profilePicture") or "",
        id_token=data.get("idToken"),
        refresh_token=data.get("refreshToken"),
    )
