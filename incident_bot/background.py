"""Shared thread pool for work that must run after a Slack acknowledgement."""

from __future__ import annotations

import threading
from contextvars import copy_context
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from structlog.contextvars import bind_contextvars, get_contextvars

DEFAULT_WORKERS = 4

_lock = threading.Lock()
_executor: ThreadPoolExecutor | None = None


def configure_executor(max_workers: int = DEFAULT_WORKERS) -> None:
    """Replace the shared executor; pending work on the old one still completes."""

    global _executor
    with _lock:
        previous = _executor
        _executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="incident-bot")
    if previous is not None:
        previous.shutdown(wait=False)


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=DEFAULT_WORKERS, thread_name_prefix="incident-bot")
        return _executor


def shutdown_background(wait: bool = True) -> None:
    """Stop accepting work and optionally wait for running tasks."""

    global _executor
    with _lock:
        executor, _executor = _executor, None
    if executor is not None:
        executor.shutdown(wait=wait)


def run_async(
    func: Callable[..., Any],
    /,
    *args: Any,
    trace_id: str | None = None,
    **kwargs: Any,
) -> Future:
    """Submit *func* to the shared pool, carrying the caller's structlog context."""

    context = copy_context()

    if trace_id is not None:
        existing_trace = context.run(lambda: get_contextvars().get("trace_id"))
        if existing_trace != trace_id:
            context.run(lambda: bind_contextvars(trace_id=trace_id))

    def runner() -> Any:
        return context.run(func, *args, **kwargs)

    return _get_executor().submit(runner)
