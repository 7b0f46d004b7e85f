# tests/test_task_gateway.py

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime

import httpx
import pytest

from tasksync.core.errors import GatewayError
from tasksync.tasks.task_gateway import HttpTaskGateway
from tasksync.tasks.task_models import Priority, TaskDraft

BASE = "http://store.test"

WIRE_TASK = {
    "_id": "a1",
    "title": "Buy milk",
    "description": "2% organic",
    "completed": False,
    "priority": "low",
    "createdAt": "2024-05-01T10:00:00.000Z",
    "__v": 0,
}


def _gateway(handler: Callable[[httpx.Request], httpx.Response]) -> tuple[HttpTaskGateway, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTaskGateway(BASE, client=client), client


@pytest.mark.asyncio
async def test_fetch_all_decodes_wire_tasks() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert str(request.url) == f"{BASE}/tasks"
        return httpx.Response(200, json=[WIRE_TASK, {**WIRE_TASK, "_id": "a2", "priority": "bogus"}])

    gateway, client = _gateway(handler)
    try:
        tasks = await gateway.fetch_all()
    finally:
        await client.aclose()

    assert [t.id for t in tasks] == ["a1", "a2"]
    first = tasks[0]
    assert first.title == "Buy milk"
    assert first.priority is Priority.LOW
    assert first.completed is False
    assert first.created_at == datetime(2024, 5, 1, 10, 0, tzinfo=UTC)
    # Unknown priority from the store falls back to the default.
    assert tasks[1].priority is Priority.MEDIUM


@pytest.mark.asyncio
async def test_create_one_posts_draft_fields() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=WIRE_TASK)

    gateway, client = _gateway(handler)
    try:
        task = await gateway.create_one(TaskDraft.create("Buy milk", "2% organic", "low"))
    finally:
        await client.aclose()

    assert seen == {
        "method": "POST",
        "path": "/tasks",
        "body": {"title": "Buy milk", "description": "2% organic", "priority": "low"},
    }
    assert task.id == "a1"
    assert not task.is_provisional


@pytest.mark.asyncio
async def test_update_toggle_and_delete_routes() -> None:
    seen: list[tuple[str, str, bytes]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.content))
        if request.method == "DELETE":
            return httpx.Response(200, json={"message": "Task deleted successfully", "id": "a1"})
        return httpx.Response(200, json={**WIRE_TASK, "completed": True, "priority": "high"})

    gateway, client = _gateway(handler)
    try:
        updated = await gateway.update_one("a1", {"completed": True, "priority": Priority.HIGH})
        toggled = await gateway.toggle_one("a1")
        assert await gateway.delete_one("a1") is None
    finally:
        await client.aclose()

    assert updated.completed is True
    assert updated.priority is Priority.HIGH
    assert toggled.completed is True
    assert [(m, p) for m, p, _ in seen] == [
        ("PUT", "/tasks/a1"),
        ("PATCH", "/tasks/a1/toggle"),
        ("DELETE", "/tasks/a1"),
    ]
    assert json.loads(seen[0][2]) == {"completed": True, "priority": "high"}


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields() -> None:
    gateway, client = _gateway(lambda request: httpx.Response(200, json=WIRE_TASK))
    try:
        with pytest.raises(ValueError):
            await gateway.update_one("a1", {"_id": "other"})
    finally:
        await client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "body", "message"),
    [
        (404, {"message": "Task not found"}, "Task not found"),
        (400, {"message": "Title and description are required"}, "Title and description are required"),
        (500, {"message": "Error fetching tasks", "error": "boom"}, "Error fetching tasks"),
    ],
)
async def test_error_status_raises_gateway_error(status: int, body: dict, message: str) -> None:
    gateway, client = _gateway(lambda request: httpx.Response(status, json=body))
    try:
        with pytest.raises(GatewayError) as excinfo:
            await gateway.update_one("a1", {"completed": True})
    finally:
        await client.aclose()

    assert excinfo.value.operation == "update_one"
    assert excinfo.value.status_code == status
    assert excinfo.value.message == message
    assert not excinfo.value.ambiguous


@pytest.mark.asyncio
async def test_connection_refused_is_a_clean_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway, client = _gateway(handler)
    try:
        with pytest.raises(GatewayError) as excinfo:
            await gateway.fetch_all()
    finally:
        await client.aclose()

    assert excinfo.value.operation == "fetch_all"
    assert excinfo.value.status_code is None
    assert not excinfo.value.ambiguous


@pytest.mark.asyncio
async def test_read_timeout_is_ambiguous_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("no response", request=request)

    gateway, client = _gateway(handler)
    try:
        with pytest.raises(GatewayError) as excinfo:
            await gateway.create_one(TaskDraft.create("t", "d"))
    finally:
        await client.aclose()

    assert excinfo.value.ambiguous
    assert excinfo.value.status_code is None


@pytest.mark.asyncio
async def test_undecodable_body_is_a_failure() -> None:
    gateway, client = _gateway(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
    try:
        with pytest.raises(GatewayError):
            await gateway.fetch_all()
        with pytest.raises(GatewayError) as excinfo:
            await gateway.toggle_one("a1")
    finally:
        await client.aclose()

    assert excinfo.value.ambiguous


@pytest.mark.asyncio
async def test_task_ids_are_path_encoded() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.raw_path.decode())
        return httpx.Response(204)

    gateway, client = _gateway(handler)
    try:
        await gateway.delete_one("a/b")
    finally:
        await client.aclose()

    assert paths == ["/tasks/a%2Fb"]


@pytest.mark.asyncio
async def test_out_of_range_timestamp_is_ambiguous_failure() -> None:
    body = {**WIRE_TASK, "createdAt": 1e300}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json=[body])
        return httpx.Response(201, json=body)

    gateway, client = _gateway(handler)
    try:
        with pytest.raises(GatewayError):
            await gateway.fetch_all()
        with pytest.raises(GatewayError) as excinfo:
            await gateway.create_one(TaskDraft.create("Buy milk", "2% organic"))
    finally:
        await client.aclose()

    assert excinfo.value.ambiguous
    assert excinfo.value.status_code == 201
