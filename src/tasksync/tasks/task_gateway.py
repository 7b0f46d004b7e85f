# src/tasksync/tasks/task_gateway.py

"""
Remote Task Gateway.

The only component that knows the store's REST surface and JSON wire format:

    GET    /tasks              -> [task, ...]
    POST   /tasks              -> task            (201)
    PUT    /tasks/{id}         -> task
    PATCH  /tasks/{id}/toggle  -> task
    DELETE /tasks/{id}         -> {"message", "id"}

Wire task: {"_id", "title", "description", "completed", "priority", "createdAt"}.

One request per call, no retries. Every failure is a GatewayError.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from ..core.errors import GatewayError
from .task_models import Priority, Task, TaskDraft

logger = logging.getLogger(__name__)

# Errors raised after the request may already have reached the store.
_AMBIGUOUS_ERRORS: tuple[type[httpx.HTTPError], ...] = (
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
)

# OverflowError: numeric createdAt outside the platform's timestamp range.
_DECODE_ERRORS: tuple[type[Exception], ...] = (ValueError, KeyError, TypeError, OverflowError)

_UPDATABLE_FIELDS = {"title", "description", "priority", "completed"}


def _parse_created_at(raw: Any) -> datetime | None:
    if not raw:
        return None
    if isinstance(raw, (int, float)):
        # Epoch milliseconds (JavaScript Date.now()).
        return datetime.fromtimestamp(float(raw) / 1000.0, tz=UTC)
    ts = datetime.fromisoformat(str(raw))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


def task_from_wire(data: Any) -> Task:
    if not isinstance(data, dict):
        raise TypeError(f"expected a JSON object, got {type(data).__name__}")
    raw_id = data.get("_id", data.get("id"))
    if raw_id is None or str(raw_id).strip() == "":
        raise KeyError("_id")
    return Task(
        id=str(raw_id),
        title=str(data.get("title") or ""),
        description=str(data.get("description") or ""),
        priority=Priority.parse(data.get("priority")),
        completed=bool(data.get("completed", False)),
        # A confirmed task always has a timestamp; fall back to "now" if the store omits it.
        created_at=_parse_created_at(data.get("createdAt")) or datetime.now(UTC),
    )


def _fields_to_wire(fields: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, value in fields.items():
        if name not in _UPDATABLE_FIELDS:
            raise ValueError(f"field is not updatable: {name}")
        out[name] = value.value if isinstance(value, Priority) else value
    return out


class HttpTaskGateway:
    """
    Async HTTP adapter over httpx.AsyncClient.

    Pass `client` to share a client (or inject httpx.MockTransport in tests); otherwise the
    gateway owns one and closes it in aclose().
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        connect_timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=connect_timeout_seconds),
            headers={"Accept": "application/json"},
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---- low-level helpers ----

    def _url(self, *parts: str) -> str:
        suffix = "/".join(quote(p, safe="") for p in parts)
        return f"{self._base_url}/tasks" + (f"/{suffix}" if suffix else "")

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase or "unexpected status"
        if isinstance(body, dict):
            msg = body.get("message") or body.get("error")
            if msg:
                return str(msg)
        return response.reason_phrase or "unexpected status"

    async def _request(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        json: Any = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, json=json)
        except _AMBIGUOUS_ERRORS as e:
            logger.warning("%s: outcome unknown (%s: %s)", operation, e.__class__.__name__, e)
            raise GatewayError(operation, f"outcome unknown: {e.__class__.__name__}", ambiguous=True) from e
        except httpx.TimeoutException as e:
            raise GatewayError(operation, f"timeout: {e.__class__.__name__}") from e
        except httpx.HTTPError as e:
            raise GatewayError(operation, f"transport error: {e}") from e

        if not response.is_success:
            detail = self._error_detail(response)
            logger.warning("%s: HTTP %s %s", operation, response.status_code, detail)
            raise GatewayError(operation, detail, status_code=response.status_code)

        logger.debug("%s %s -> %s", method, url, response.status_code)
        return response

    @staticmethod
    def _decode_task(operation: str, response: httpx.Response) -> Task:
        try:
            return task_from_wire(response.json())
        except _DECODE_ERRORS as e:
            raise GatewayError(
                operation,
                f"undecodable response: {e}",
                status_code=response.status_code,
                ambiguous=True,
            ) from e

    # ---- public API ----

    async def fetch_all(self) -> list[Task]:
        operation = "fetch_all"
        response = await self._request(operation, "GET", self._url())
        try:
            body = response.json()
            if not isinstance(body, list):
                raise TypeError(f"expected a JSON array, got {type(body).__name__}")
            tasks = [task_from_wire(item) for item in body]
        except _DECODE_ERRORS as e:
            raise GatewayError(operation, f"undecodable response: {e}", status_code=response.status_code) from e
        logger.info("Fetched %d tasks from %s", len(tasks), self._base_url)
        return tasks

    async def create_one(self, draft: TaskDraft) -> Task:
        payload = {
            "title": draft.title,
            "description": draft.description,
            "priority": draft.priority.value,
        }
        response = await self._request("create_one", "POST", self._url(), json=payload)
        return self._decode_task("create_one", response)

    async def update_one(self, task_id: str, fields: dict[str, Any]) -> Task:
        payload = _fields_to_wire(fields)
        response = await self._request("update_one", "PUT", self._url(task_id), json=payload)
        return self._decode_task("update_one", response)

    async def toggle_one(self, task_id: str) -> Task:
        response = await self._request("toggle_one", "PATCH", self._url(task_id, "toggle"))
        return self._decode_task("toggle_one", response)

    async def delete_one(self, task_id: str) -> None:
        await self._request("delete_one", "DELETE", self._url(task_id))
