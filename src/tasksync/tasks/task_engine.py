# src/tasksync/tasks/task_engine.py

from __future__ import annotations

"""
Reconciliation engine.

Owns the canonical task list and is its only writer. Every user intent:
- validates and checks the task synchronously (ValidationError / NotFoundError / ConflictError),
- applies the change optimistically and returns a Mutation handle right away,
- runs the gateway call as an asyncio task; its continuation confirms or rolls back.

Confirmed changes are mirrored into the snapshot cache (best-effort). Failed updates and
deletes trigger a full load() to re-synchronize with the store.

All state changes happen on the event loop thread, between awaits. At most one operation is
pending per task id and at most one load() is in flight.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Mapping
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Literal, TypeVar

from ..core.errors import ConflictError, GatewayError, NotFoundError, SyncError, ValidationError
from ..core.ports import SnapshotCache, TaskGateway
from .task_models import (
    PendingOp,
    Priority,
    Task,
    TaskDraft,
    clean_description,
    clean_priority,
    clean_title,
    new_local_id,
)
from .task_projection import ListSummary, TaskFilter, TaskView, order_tasks, project, summarize

logger = logging.getLogger(__name__)

Listener = Callable[[], None]

_T = TypeVar("_T")


@dataclass(slots=True, frozen=True)
class LoadResult:
    tasks: tuple[Task, ...]
    source: Literal["remote", "cache"]
    stale: bool = False
    error: SyncError | None = None


@dataclass(slots=True, frozen=True)
class _Outcome:
    task: Task | None = None
    error: SyncError | None = None


class Mutation:
    """
    Handle for an optimistic change whose confirmation is still running.

    wait() returns the confirmed Task (None for deletes) or raises the SyncError
    recorded when the change was rolled back.
    """

    __slots__ = ("op", "task_id", "_runner")

    def __init__(self, op: PendingOp, task_id: str, runner: asyncio.Task[_Outcome]) -> None:
        self.op = op
        self.task_id = task_id
        self._runner = runner

    def done(self) -> bool:
        return self._runner.done()

    async def wait(self) -> Task | None:
        outcome = await asyncio.shield(self._runner)
        if outcome.error is not None:
            raise outcome.error
        return outcome.task

    def __repr__(self) -> str:
        state = "done" if self.done() else "pending"
        return f"Mutation(op={self.op.value}, task_id={self.task_id!r}, {state})"


def _unique(tasks: list[Task]) -> list[Task]:
    seen: set[str] = set()
    out: list[Task] = []
    for t in tasks:
        if t.id in seen:
            logger.warning("Dropping duplicate task id=%s", t.id)
            continue
        seen.add(t.id)
        out.append(t)
    return out


class ReconciliationEngine:
    def __init__(
        self,
        gateway: TaskGateway,
        cache: SnapshotCache,
        *,
        toggle_route: str = "put",
    ) -> None:
        self._gateway = gateway
        self._cache = cache
        self._toggle_route = toggle_route

        self._tasks: list[Task] = []
        self._pending: dict[str, PendingOp] = {}
        # task_id -> (index at the time of the change, last confirmed copy)
        self._rollback: dict[str, tuple[int, Task]] = {}

        self._stale = False
        self._last_error: SyncError | None = None

        self._load_task: asyncio.Task[LoadResult] | None = None
        self._inflight: set[asyncio.Task[_Outcome]] = set()
        self._listeners: list[Listener] = []

    # ---- observable state ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        """Canonical list in storage order (use view() for the user-visible order)."""
        return tuple(self._tasks)

    @property
    def pending(self) -> Mapping[str, PendingOp]:
        return MappingProxyType(self._pending)

    @property
    def last_error(self) -> SyncError | None:
        return self._last_error

    @property
    def is_stale(self) -> bool:
        return self._stale

    @property
    def is_loading(self) -> bool:
        return self._load_task is not None and not self._load_task.done()

    @property
    def is_busy(self) -> bool:
        return self.is_loading or bool(self._inflight)

    def pending_op(self, task_id: str) -> PendingOp:
        return self._pending.get(task_id, PendingOp.NONE)

    def find(self, task_id: str) -> Task | None:
        idx = self._index_of(task_id)
        return None if idx is None else self._tasks[idx]

    def get(self, task_id: str) -> Task:
        task = self.find(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def view(self, task_filter: TaskFilter | None = None) -> list[TaskView]:
        return project(self._tasks, self._pending, task_filter)

    def summary(self) -> ListSummary:
        return summarize(self._tasks, self._pending)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` after every state change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def clear_error(self) -> None:
        if self._last_error is not None:
            self._last_error = None
            self._notify()

    async def drain(self) -> None:
        """Wait until every in-flight mutation (and load) has resolved."""
        while self._inflight or self.is_loading:
            pending: list[asyncio.Future[Any]] = list(self._inflight)
            if self._load_task is not None and not self._load_task.done():
                pending.append(self._load_task)
            await asyncio.gather(*pending, return_exceptions=True)

    # ---- load ----

    async def load(self) -> LoadResult:
        """
        Replace canonical state with the store's list.

        Changes whose gateway call is still in flight are kept on top of the loaded list
        (see _merge_inflight); their own continuations settle them. A call made while another load is in flight joins it instead of issuing a second
        request. On gateway failure the cached snapshot is used (stale); with no snapshot the
        list becomes empty and SyncError is raised.
        """
        if self._load_task is None or self._load_task.done():
            self._load_task = asyncio.create_task(self._do_load())
            self._load_task.add_done_callback(lambda _t: self._notify())
            self._notify()
        else:
            logger.debug("load() already in flight; joining it")
        return await asyncio.shield(self._load_task)

    async def _do_load(self) -> LoadResult:
        try:
            fetched = await self._call("fetch_all", self._gateway.fetch_all)
        except GatewayError as e:
            return self._fall_back_to_cache(e)

        self._tasks = self._merge_inflight(fetched)
        self._stale = False
        self._last_error = None
        self._write_cache(order_tasks(_unique(fetched)))
        logger.info("Loaded %d tasks from remote store", len(fetched))
        return LoadResult(tasks=tuple(self._tasks), source="remote")

    def _merge_inflight(self, loaded: list[Task]) -> list[Task]:
        """
        Rebuild the list from `loaded`, keeping changes whose gateway call is still running.

        - provisional creates stay at the head
        - pending updates keep their optimistic value; the loaded copy becomes the rollback base
        - pending deletes stay hidden; the loaded copy becomes the rollback copy
        """
        current = {t.id: t for t in self._tasks}
        merged = [t for t in self._tasks if self._pending.get(t.id) is PendingOp.CREATING]

        for t in _unique(loaded):
            op = self._pending.get(t.id)
            if op is PendingOp.UPDATING or op is PendingOp.DELETING:
                idx, _ = self._rollback.get(t.id, (len(merged), t))
                self._rollback[t.id] = (idx, t)
                if op is PendingOp.UPDATING:
                    merged.append(current.get(t.id, t))
                continue
            merged.append(t)

        return order_tasks(merged)

    def _fall_back_to_cache(self, cause: GatewayError) -> LoadResult:
        try:
            snapshot = self._cache.read_snapshot()
        except Exception:
            logger.exception("Cache snapshot read failed")
            snapshot = None

        if snapshot is None:
            self._tasks = self._merge_inflight([])
            self._stale = False
            err = SyncError("load", cause)
            self._last_error = err
            logger.warning("Load failed and no cache snapshot is available: %s", cause)
            raise err

        self._tasks = self._merge_inflight(snapshot)
        self._stale = True
        err = SyncError("load", cause, stale=True)
        self._last_error = err
        logger.warning("Load failed; using %d cached tasks (stale): %s", len(self._tasks), cause)
        return LoadResult(tasks=tuple(self._tasks), source="cache", stale=True, error=err)

    async def _resync(self) -> None:
        try:
            await self.load()
        except SyncError:
            logger.warning("Re-sync after rollback failed; list left empty")

    # ---- user intents ----

    def create(
        self,
        title: str,
        description: str,
        priority: Priority | str | None = None,
    ) -> Mutation:
        draft = TaskDraft.create(title, description, priority)
        self._require_loop()

        provisional = draft.to_task(new_local_id())
        self._tasks.insert(0, provisional)
        self._pending[provisional.id] = PendingOp.CREATING
        logger.info("Task %s -> creating (%r)", provisional.id, draft.title)
        self._notify()

        return self._spawn(PendingOp.CREATING, provisional.id, self._confirm_create(provisional, draft))

    def toggle_completion(self, task_id: str) -> Mutation:
        self._require_loop()
        idx, current = self._require_idle(task_id)

        # New value is derived from the pre-flip value captured here, not from later state.
        new_value = not current.completed
        if self._toggle_route == "patch":
            request: Callable[[], Awaitable[Task]] = lambda: self._gateway.toggle_one(task_id)
        else:
            request = lambda: self._gateway.update_one(task_id, {"completed": new_value})

        optimistic = replace(current, completed=new_value)
        return self._begin_update("toggle", idx, current, optimistic, request)

    def edit(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        priority: Priority | str | None = None,
    ) -> Mutation:
        fields: dict[str, Any] = {}
        if title is not None:
            fields["title"] = clean_title(title)
        if description is not None:
            fields["description"] = clean_description(description)
        if priority is not None:
            fields["priority"] = clean_priority(priority)
        if not fields:
            raise ValidationError("fields", "nothing to update")

        self._require_loop()
        idx, current = self._require_idle(task_id)

        optimistic = replace(current, **fields)
        return self._begin_update(
            "edit", idx, current, optimistic, lambda: self._gateway.update_one(task_id, fields)
        )

    def remove(self, task_id: str) -> Mutation:
        self._require_loop()
        idx, current = self._require_idle(task_id)

        del self._tasks[idx]
        self._pending[task_id] = PendingOp.DELETING
        self._rollback[task_id] = (idx, current)
        logger.info("Task %s -> deleting", task_id)
        self._notify()

        return self._spawn(PendingOp.DELETING, task_id, self._confirm_remove(current))

    # ---- continuations ----

    async def _confirm_create(self, provisional: Task, draft: TaskDraft) -> _Outcome:
        try:
            created = await self._call("create_one", lambda: self._gateway.create_one(draft))
        except GatewayError as e:
            self._pending.pop(provisional.id, None)
            self._drop(provisional.id)
            return self._fail(SyncError("create", e, task_id=provisional.id, draft=draft))

        self._pending.pop(provisional.id, None)
        idx = self._index_of(provisional.id)
        if self._index_of(created.id) is not None:
            # A load() that resolved meanwhile already brought the confirmed task in.
            if idx is not None:
                del self._tasks[idx]
        elif idx is not None:
            self._tasks[idx] = created
        else:
            self._tasks.insert(0, created)

        logger.info("Task %s -> created as %s", provisional.id, created.id)
        self._confirm()
        return _Outcome(task=created)

    def _begin_update(
        self,
        operation: str,
        idx: int,
        original: Task,
        optimistic: Task,
        request: Callable[[], Awaitable[Task]],
    ) -> Mutation:
        self._tasks[idx] = optimistic
        self._pending[original.id] = PendingOp.UPDATING
        self._rollback[original.id] = (idx, original)
        logger.info("Task %s -> updating (%s)", original.id, operation)
        self._notify()

        return self._spawn(
            PendingOp.UPDATING,
            original.id,
            self._confirm_update(operation, original, optimistic, request),
        )

    async def _confirm_update(
        self,
        operation: str,
        original: Task,
        optimistic: Task,
        request: Callable[[], Awaitable[Task]],
    ) -> _Outcome:
        task_id = original.id
        try:
            confirmed = await self._call(operation, request)
        except GatewayError as e:
            self._pending.pop(task_id, None)
            # A load() that resolved meanwhile may have replaced the rollback base.
            _, base = self._rollback.pop(task_id, (0, original))
            idx = self._index_of(task_id)
            # Only revert our own optimistic value.
            if idx is not None and self._tasks[idx] is optimistic:
                self._tasks[idx] = base
            err = SyncError(operation, e, task_id=task_id)
            self._notify()
            await self._resync()
            return self._fail(err)

        self._pending.pop(task_id, None)
        self._rollback.pop(task_id, None)
        idx = self._index_of(task_id)
        if idx is not None:
            self._tasks[idx] = confirmed

        logger.info("Task %s -> updated (%s)", task_id, operation)
        self._confirm()
        return _Outcome(task=confirmed)

    async def _confirm_remove(self, original: Task) -> _Outcome:
        task_id = original.id
        try:
            await self._call("delete_one", lambda: self._gateway.delete_one(task_id))
        except GatewayError as e:
            self._pending.pop(task_id, None)
            idx, saved = self._rollback.pop(task_id, (0, original))
            if self._index_of(task_id) is None:
                self._tasks.insert(min(idx, len(self._tasks)), saved)
            err = SyncError("remove", e, task_id=task_id)
            self._notify()
            await self._resync()
            return self._fail(err)

        self._pending.pop(task_id, None)
        self._rollback.pop(task_id, None)

        logger.info("Task %s -> deleted", task_id)
        self._confirm()
        return _Outcome()

    # ---- helpers ----

    @staticmethod
    async def _call(operation: str, request: Callable[[], Awaitable[_T]]) -> _T:
        """Await a gateway call; any other exception becomes an ambiguous GatewayError."""
        try:
            return await request()
        except GatewayError:
            raise
        except Exception as e:
            logger.exception("Unexpected failure in gateway call %s", operation)
            raise GatewayError(operation, f"unexpected {e.__class__.__name__}: {e}", ambiguous=True) from e

    @staticmethod
    def _require_loop() -> None:
        # Raises RuntimeError before any state change when called outside the event loop.
        asyncio.get_running_loop()

    def _require_idle(self, task_id: str) -> tuple[int, Task]:
        idx = self._index_of(task_id)
        if idx is None:
            raise NotFoundError(task_id)
        pending = self._pending.get(task_id)
        if pending is not None:
            raise ConflictError(task_id, pending.value)
        return idx, self._tasks[idx]

    def _index_of(self, task_id: str) -> int | None:
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                return i
        return None

    def _drop(self, task_id: str) -> None:
        idx = self._index_of(task_id)
        if idx is not None:
            del self._tasks[idx]

    def _spawn(self, op: PendingOp, task_id: str, coro: Coroutine[Any, Any, _Outcome]) -> Mutation:
        runner = asyncio.create_task(coro)
        self._inflight.add(runner)
        runner.add_done_callback(self._on_runner_done)
        return Mutation(op, task_id, runner)

    def _on_runner_done(self, runner: asyncio.Task[_Outcome]) -> None:
        self._inflight.discard(runner)
        if runner.cancelled():
            return
        exc = runner.exception()
        if exc is not None:
            logger.error("Mutation continuation crashed", exc_info=exc)
        self._notify()

    def _confirm(self) -> None:
        self._last_error = None
        self._write_cache()
        self._notify()

    def _fail(self, err: SyncError) -> _Outcome:
        self._last_error = err
        logger.warning("%s", err)
        self._notify()
        return _Outcome(error=err)

    def _confirmed_tasks(self) -> list[Task]:
        """Last confirmed list: no provisional creates, in-flight changes as their rollback copies."""
        out: list[Task] = []
        for t in self._tasks:
            if t.is_provisional:
                continue
            saved = self._rollback.get(t.id)
            out.append(saved[1] if saved is not None else t)

        present = {t.id for t in out}
        for task_id, (idx, original) in self._rollback.items():
            if task_id not in present and self._pending.get(task_id) is PendingOp.DELETING:
                out.insert(min(idx, len(out)), original)
        return order_tasks(out)

    def _write_cache(self, tasks: list[Task] | None = None) -> None:
        snapshot = list(tasks) if tasks is not None else self._confirmed_tasks()
        try:
            self._cache.write_snapshot(snapshot)
        except Exception:
            # Best-effort: the snapshot is only a fallback.
            logger.exception("Cache snapshot write failed (ignored)")

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("State listener failed")
