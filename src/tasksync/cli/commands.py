# src/tasksync/cli/commands.py

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from typing import cast

from ..core.errors import SyncError, TaskSyncError
from ..core.state import AppState
from ..tasks.task_models import PendingOp, Priority
from ..tasks.task_projection import TaskFilter, TaskView

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_EDIT_FIELD_RE = re.compile(r"\b(title|description|priority)=")


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be plain functions or coroutines.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            return await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def format_view(index: int, view: TaskView) -> str:
    t = view.task
    mark = "x" if t.completed else " "
    line = f"{index:>2}. [{mark}] {t.title} ({t.priority.value}) - {t.description}"
    if view.pending is not PendingOp.NONE:
        line += f"  <{view.pending.value}...>"
    return line


def _resolve_ref(state: AppState, ref: str) -> str:
    """Accept a 1-based position in the current list or a task id."""
    if ref.isdigit():
        views = state.engine.view()
        n = int(ref)
        if 1 <= n <= len(views):
            return views[n - 1].task.id
    return ref


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    engine = state.engine
    s = engine.summary()
    err = engine.last_error
    return (
        "Status:\n"
        f"  Store: {getattr(state.settings, 'api_base_url', '?')}\n"
        f"  Data: {'STALE (from cache)' if engine.is_stale else 'live'}\n"
        f"  Busy: {'yes' if engine.is_busy else 'no'}\n"
        f"  Tasks: {s.total} total, {s.open} open, {s.done} done, {s.pending} pending\n"
        f"  Last error: {err if err is not None else 'none'}"
    )


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list                 -> all tasks
    /list open|done       -> by completion
    /list high            -> by priority (combinable: /list open high)
    """
    status = "all"
    priority: Priority | None = None
    for arg in (a.lower() for a in args):
        if arg in ("all", "open", "done"):
            status = arg
        elif arg in {p.value for p in Priority}:
            priority = Priority(arg)
        else:
            return "Usage: /list [all|open|done] [low|medium|high]"

    engine = state.engine
    views = engine.view(TaskFilter(status=status, priority=priority))  # type: ignore[arg-type]
    lines: list[str] = []
    if engine.is_stale:
        lines.append("(stale: showing cached tasks, the store is unreachable)")
    if not views:
        lines.append("No tasks.")
        return "\n".join(lines)

    # Positions refer to the unfiltered list so /toggle <n> stays unambiguous.
    positions = {v.task.id: i for i, v in enumerate(engine.view(), start=1)}
    lines.extend(format_view(positions[v.task.id], v) for v in views)
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add title | description [| priority]
    """
    parts = [p.strip() for p in " ".join(args).split("|")]
    if len(parts) < 2:
        return "Usage: /add title | description [| low|medium|high]"
    title, description = parts[0], parts[1]
    priority = parts[2] if len(parts) > 2 and parts[2] else None

    try:
        mutation = state.engine.create(title, description, priority)
    except TaskSyncError as e:
        return f"Not added: {e}"
    logger.debug("add requested task_id=%s", mutation.task_id)
    return f"Adding '{title.strip()}'..."


def cmd_toggle(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /toggle <n|id>"
    task_id = _resolve_ref(state, args[0])
    try:
        state.engine.toggle_completion(task_id)
    except TaskSyncError as e:
        return f"Not toggled: {e}"
    task = state.engine.get(task_id)
    return f"'{task.title}' marked {'done' if task.completed else 'open'}."


def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <n|id> title=New title description=New text priority=high
    """
    usage = "Usage: /edit <n|id> [title=...] [description=...] [priority=low|medium|high]"
    if len(args) < 2:
        return usage
    task_id = _resolve_ref(state, args[0])

    chunks = _EDIT_FIELD_RE.split(" ".join(args[1:]))
    if chunks[0].strip():
        return usage
    fields = {name: value.strip() for name, value in zip(chunks[1::2], chunks[2::2])}

    try:
        state.engine.edit(task_id, **fields)
    except TaskSyncError as e:
        return f"Not edited: {e}"
    return f"Updating {', '.join(sorted(fields))}..."


def cmd_remove(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /rm <n|id>"
    task_id = _resolve_ref(state, args[0])
    try:
        task = state.engine.get(task_id)
        state.engine.remove(task_id)
    except TaskSyncError as e:
        return f"Not removed: {e}"
    return f"Removed '{task.title}'."


async def cmd_reload(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        emit("Reloading from the store...")
    try:
        result = await state.engine.load()
    except SyncError as e:
        return f"Reload failed: {e}"
    if result.stale:
        return f"Store unreachable; showing {len(result.tasks)} cached tasks."
    return f"Loaded {len(result.tasks)} tasks."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show store, staleness and last error.")
registry.register("list", cmd_list, help_text="List tasks: /list [all|open|done] [low|medium|high].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add title | description [| priority].")
registry.register("toggle", cmd_toggle, help_text="Toggle completion: /toggle <n|id>.", aliases=["done"])
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <n|id> title=... description=... priority=...")
registry.register("rm", cmd_remove, help_text="Delete a task: /rm <n|id>.", aliases=["del"])
registry.register("reload", cmd_reload, help_text="Reload the list from the store.")
