"""
Table clients for the remote persistence service.

Two interchangeable backends expose the same row-level contract:

    SupabaseClient  - PostgREST over HTTP (requests)
    MemoryClient    - rows held in process memory (offline mode)

Each table supports select-for-user, insert-one, update-by-id and
delete-by-id. Failures raise RemoteError; the "no rows / relation empty"
condition raises NoRowsError so callers can tell it apart from a real failure.
"""
import itertools
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

import requests

logger = logging.getLogger(__name__)

# PostgREST error code for "JSON object requested, multiple (or no) rows returned"
NO_ROWS_CODE = "PGRST116"


class RemoteError(Exception):
    """A persistence call failed (network, server, constraint)."""

    def __init__(self, message: str, code: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class NoRowsError(RemoteError):
    """The table reported no matching rows, or is not populated yet."""
    pass


class EmptyResult(RemoteError):
    """An insert reported success but returned no row."""

    def __init__(self, message: str = "No data returned after insert"):
        super().__init__(message)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Supabase (PostgREST)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class SupabaseClient:
    """HTTP client for the Supabase REST endpoint."""

    def __init__(self, url: str, api_key: str, timeout: float = 10):
        self.base_url = url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.access_token: Optional[str] = None  # set by SupabaseAuth on sign-in

    def table(self, name: str) -> "SupabaseTable":
        return SupabaseTable(self, name)

    def headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Issue one REST call and return the decoded body (or None)."""
        all_headers = self.headers()
        if headers:
            all_headers.update(headers)
        try:
            r = requests.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json,
                headers=all_headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteError(f"Request to {path} failed: {e}") from e

        if not r.ok:
            raise _error_from_response(r)
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise RemoteError(f"Invalid JSON from {path}", status=r.status_code) from e


def _error_from_response(r: requests.Response) -> RemoteError:
    """Translate a PostgREST error body into the matching exception."""
    code = ""
    message = r.reason or f"HTTP {r.status_code}"
    try:
        body = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = str(body.get("code") or "")
        message = body.get("message") or body.get("msg") or message

    if code == NO_ROWS_CODE or (r.status_code == 404 and not code):
        return NoRowsError(message, code=code or NO_ROWS_CODE, status=r.status_code)
    return RemoteError(message, code=code, status=r.status_code)


class SupabaseTable:
    """One PostgREST table, scoped by the caller's filters."""

    def __init__(self, client: SupabaseClient, name: str):
        self.client = client
        self.name = name
        self.path = f"/rest/v1/{name}"

    def select(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        params = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        data = self.client.request("GET", self.path, params=params)
        return list(data or [])

    def insert(self, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        data = self.client.request(
            "POST",
            self.path,
            json=row,
            headers={"Prefer": "return=representation"},
        )
        if isinstance(data, list):
            return data[0] if data else None
        return data or None

    def update(self, row_id: str, fields: Dict[str, Any]) -> None:
        self.client.request("PATCH", self.path, params={"id": f"eq.{row_id}"}, json=fields)

    def delete(self, row_id: str) -> None:
        self.client.request("DELETE", self.path, params={"id": f"eq.{row_id}"})


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# In-memory fallback
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class MemoryClient:
    """Process-local stand-in for the remote service, used when none is configured."""

    def __init__(self):
        self._tables: Dict[str, MemoryTable] = {}

    def table(self, name: str) -> "MemoryTable":
        if name not in self._tables:
            self._tables[name] = MemoryTable(name)
        return self._tables[name]


class MemoryTable:
    """Rows of one table, keyed by generated UUID strings."""

    def __init__(self, name: str):
        self.name = name
        self.rows: Dict[str, Dict[str, Any]] = {}
        self._seq: Dict[str, int] = {}  # insertion order, breaks created_at ties
        self._counter = itertools.count()

    def select(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        rows = [
            dict(r) for r in self.rows.values()
            if all(r.get(k) == v for k, v in (filters or {}).items())
        ]
        if order:
            rows.sort(
                key=lambda r: (r.get(order) or "", self._seq.get(r.get("id"), 0)),
                reverse=descending,
            )
        return rows

    def insert(self, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        stored = dict(row)
        stored["id"] = str(uuid.uuid4())
        stored["created_at"] = datetime.now(timezone.utc).isoformat()
        self.rows[stored["id"]] = stored
        self._seq[stored["id"]] = next(self._counter)
        logger.debug("memory insert table=%s id=%s", self.name, stored["id"])
        return dict(stored)

    def update(self, row_id: str, fields: Dict[str, Any]) -> None:
        if row_id in self.rows:
            self.rows[row_id].update(fields)

    def delete(self, row_id: str) -> None:
        self.rows.pop(row_id, None)
        self._seq.pop(row_id, None)
