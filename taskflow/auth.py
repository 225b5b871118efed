"""
Authentication collaborators.

    SupabaseAuth  - Supabase GoTrue password auth over HTTP (requests)
    MemoryAuth    - in-process accounts for offline mode

Both expose current_user() plus async sign_in / sign_up / sign_out. Provider
failures raise AuthError carrying the provider's message, which the auth form
shows verbatim.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple

import requests

from .remote import SupabaseClient

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Sign-in, sign-up or sign-out was refused by the provider."""
    pass


@dataclass
class User:
    id: str
    email: str
    display_name: str = ""

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "email": self.email, "displayName": self.display_name}


class SupabaseAuth:
    """Password auth against {url}/auth/v1, sharing its token with the table client."""

    def __init__(self, url: str, api_key: str, client: Optional[SupabaseClient] = None,
                 timeout: float = 10):
        self.base_url = url.rstrip("/")
        self.api_key = api_key
        self.client = client
        self.timeout = timeout
        self._user: Optional[User] = None
        self._access_token: Optional[str] = None

    def current_user(self) -> Optional[User]:
        return self._user

    async def sign_in(self, email: str, password: str) -> User:
        body = await asyncio.to_thread(
            self._post,
            "/auth/v1/token",
            {"email": email, "password": password},
            {"grant_type": "password"},
        )
        return self._start_session(body)

    async def sign_up(self, email: str, password: str, display_name: str) -> Optional[User]:
        """
        Register an account.

        Returns the signed-in user, or None when the project requires email
        confirmation before the first session is issued.
        """
        body = await asyncio.to_thread(
            self._post,
            "/auth/v1/signup",
            {"email": email, "password": password, "data": {"username": display_name}},
        )
        if not body.get("access_token"):
            logger.info("Sign-up for %s is awaiting email confirmation", email)
            return None
        return self._start_session(body)

    async def sign_out(self) -> None:
        token = self._access_token
        self._end_session()
        if not token:
            return
        try:
            await asyncio.to_thread(self._post, "/auth/v1/logout", {}, None, token)
        except AuthError as e:
            # The local session is gone either way; the server token just expires.
            logger.warning(f"Remote sign-out failed: {e}")

    # ── helpers ──

    def _start_session(self, body: Dict[str, Any]) -> User:
        raw_user = body.get("user") or {}
        if not raw_user.get("id"):
            raise AuthError("Auth provider returned no user")
        meta = raw_user.get("user_metadata") or {}
        self._user = User(
            id=str(raw_user["id"]),
            email=raw_user.get("email", ""),
            display_name=meta.get("username", ""),
        )
        self._access_token = body.get("access_token")
        if self.client is not None:
            self.client.access_token = self._access_token
        logger.info(f"Signed in as {self._user.email}")
        return self._user

    def _end_session(self) -> None:
        self._user = None
        self._access_token = None
        if self.client is not None:
            self.client.access_token = None

    def _post(self, path: str, payload: dict, params: Optional[dict] = None,
              token: Optional[str] = None) -> Dict[str, Any]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            r = requests.post(
                f"{self.base_url}{path}",
                params=params,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthError(f"Auth service unreachable: {e}") from e

        try:
            body = r.json() if r.content else {}
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if not r.ok:
            message = (
                body.get("error_description")
                or body.get("msg")
                or body.get("message")
                or f"HTTP {r.status_code}"
            )
            raise AuthError(message)
        return body


class MemoryAuth:
    """
    Accounts kept in process memory. Passwords are compared as given.

    Several sessions may share one accounts registry while each keeps its own
    signed-in user.
    """

    def __init__(self, accounts: Optional[Dict[str, Tuple[str, User]]] = None):
        self._accounts = accounts if accounts is not None else {}
        self._user: Optional[User] = None

    def current_user(self) -> Optional[User]:
        return self._user

    async def sign_in(self, email: str, password: str) -> User:
        account = self._accounts.get(email.lower())
        if account is None or account[0] != password:
            raise AuthError("Invalid login credentials")
        self._user = account[1]
        return self._user

    async def sign_up(self, email: str, password: str, display_name: str) -> Optional[User]:
        key = email.lower()
        if key in self._accounts:
            raise AuthError("User already registered")
        user = User(id=str(uuid.uuid4()), email=email, display_name=display_name)
        self._accounts[key] = (password, user)
        self._user = user
        return user

    async def sign_out(self) -> None:
        self._user = None
