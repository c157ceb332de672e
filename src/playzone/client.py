"""Data-source contract and the HTTP client for the remote PlayZone API."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request as URLRequest, urlopen

from .exceptions import (
    ApiError,
    NotFoundError,
    PlayZoneError,
    SessionStateError,
    TransportError,
    ValidationError,
)
from .models import ChildInput, ParentDetail, ParentSummary, PaymentMethod, Session
from .timing import format_wire_timestamp

DEFAULT_TIMEOUT = 6.0


class PlayZoneBackend(ABC):
    """Everything the console needs from its data source.

    Implemented by :class:`ApiClient` for the real API and by
    :class:`playzone.memory.InMemoryBackend` for tests and demos.
    """

    # Parents ---------------------------------------------------------------
    @abstractmethod
    def list_parents(self, q: str = "") -> List[ParentSummary]:
        ...

    @abstractmethod
    def get_parent(self, parent_id: int) -> ParentDetail:
        ...

    @abstractmethod
    def create_parent(self, name: str, phone: str, children: Sequence[ChildInput]) -> ParentDetail:
        ...

    # Sessions --------------------------------------------------------------
    @abstractmethod
    def list_sessions(self, status: Optional[str] = None, range: Optional[str] = None) -> List[Session]:
        ...

    @abstractmethod
    def get_session(self, session_id: int) -> Session:
        ...

    @abstractmethod
    def start_session(
        self,
        parent_id: int,
        child_ids: Sequence[int],
        planned_minutes: int,
        *,
        start_time: Optional[datetime] = None,
    ) -> Session:
        ...

    @abstractmethod
    def end_session(
        self,
        session_id: int,
        payment_method: PaymentMethod,
        *,
        apply_discount: bool = False,
    ) -> Session:
        ...


def clean_session_filter(status: Optional[str], range: Optional[str]) -> Dict[str, str]:
    """Query parameters for ``GET /sessions``; ``all`` and blanks are dropped."""

    params: Dict[str, str] = {}
    status_value = (status or "").strip().lower()
    if status_value and status_value != "all":
        params["status"] = status_value
    range_value = (range or "").strip().lower()
    if range_value and range_value != "all":
        params["range"] = range_value
    return params


def _error_message(raw: bytes, fallback: str) -> str:
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return fallback
    if isinstance(payload, dict):
        message = payload.get("error") or payload.get("message")
        if message:
            return str(message)
    return fallback


class ApiClient(PlayZoneBackend):
    """Thin JSON-over-HTTP wrapper around the PlayZone REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers: Dict[str, str] = {"Accept": "application/json"}
        self.headers.update(headers or {})

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _url(self, path: str, params: Optional[Mapping[str, str]] = None) -> str:
        url = f"{self.base_url}/{path.lstrip('/')}"
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        body: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        headers = dict(self.headers)
        data: Optional[bytes] = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        url = self._url(path, params)
        req = URLRequest(url, data=data, headers=headers, method=method)
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read()
        except HTTPError as exc:
            raw_error = exc.read() if exc.fp is not None else b""
            message = _error_message(raw_error, f"Request failed ({exc.code})")
            raise self._error_for_status(exc.code, message) from exc
        except (URLError, TimeoutError, OSError) as exc:
            reason = getattr(exc, "reason", None) or exc
            raise TransportError(f"Could not reach the PlayZone API: {reason}") from exc
        if not raw:
            return None
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise TransportError("The PlayZone API returned an unreadable response.") from exc
        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    @staticmethod
    def _error_for_status(status: int, message: str) -> PlayZoneError:
        if status == 404:
            return NotFoundError(message, status=status)
        if status == 409:
            return SessionStateError(message, status=status)
        if status in (400, 422):
            return ValidationError(message, status=status)
        return ApiError(message, status=status)

    # ------------------------------------------------------------------
    # Parents
    # ------------------------------------------------------------------
    def list_parents(self, q: str = "") -> List[ParentSummary]:
        query = (q or "").strip()
        rows = self._request("GET", "/parents", params={"q": query} if query else None)
        return [ParentSummary.from_api(row) for row in _as_rows(rows)]

    def get_parent(self, parent_id: int) -> ParentDetail:
        payload = self._request("GET", f"/parents/{quote(str(parent_id), safe='')}")
        if not isinstance(payload, dict):
            raise NotFoundError(f"Parent {parent_id} not found.", status=404)
        return ParentDetail.from_api(payload)

    def create_parent(self, name: str, phone: str, children: Sequence[ChildInput]) -> ParentDetail:
        body = {
            "name": name,
            "phone": phone,
            "children": [child.as_payload() for child in children],
        }
        payload = self._request("POST", "/parents", body=body)
        if isinstance(payload, dict):
            return ParentDetail.from_api(payload)
        return ParentDetail(id=0, name=name, phone=phone)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def list_sessions(self, status: Optional[str] = None, range: Optional[str] = None) -> List[Session]:
        rows = self._request("GET", "/sessions", params=clean_session_filter(status, range) or None)
        return [Session.from_api(row) for row in _as_rows(rows)]

    def get_session(self, session_id: int) -> Session:
        payload = self._request("GET", f"/sessions/{quote(str(session_id), safe='')}")
        if not isinstance(payload, dict):
            raise NotFoundError("Session not found", status=404)
        return Session.from_api(payload)

    def start_session(
        self,
        parent_id: int,
        child_ids: Sequence[int],
        planned_minutes: int,
        *,
        start_time: Optional[datetime] = None,
    ) -> Session:
        body: Dict[str, Any] = {
            "parent_id": int(parent_id),
            "child_ids": [int(child_id) for child_id in child_ids],
            "planned_minutes": int(planned_minutes),
        }
        if start_time is not None:
            # Naive local text avoids the server shifting the start by the UTC offset.
            body["start_time"] = format_wire_timestamp(start_time)
        payload = self._request("POST", "/sessions/start", body=body)
        return Session.from_api(payload or {})

    def end_session(
        self,
        session_id: int,
        payment_method: PaymentMethod,
        *,
        apply_discount: bool = False,
    ) -> Session:
        body: Dict[str, Any] = {"payment_method": PaymentMethod(payment_method).value}
        if apply_discount:
            body["apply_discount"] = True
        payload = self._request("POST", f"/sessions/{quote(str(session_id), safe='')}/end", body=body)
        return Session.from_api(payload or {})


def _as_rows(payload: Any) -> Iterable[Mapping[str, Any]]:
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    return []


__all__ = ["ApiClient", "DEFAULT_TIMEOUT", "PlayZoneBackend", "clean_session_filter"]
