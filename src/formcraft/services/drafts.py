"""Autosaved in-progress answers.

Draft writes are best effort: a failed save, load or delete is logged and
reported through the return value, never raised, so form filling is not
interrupted.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from typing import Any, Callable

from formcraft.config import ANONYMOUS_USER
from formcraft.protocols import Storage
from formcraft.utils import now_utc, to_iso

logger = logging.getLogger(__name__)


def draft_id_for(form_id: str, user_id: str | None) -> str:
    return f"{form_id}_{user_id or ANONYMOUS_USER}"


class DraftService:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def save_draft(
        self,
        form_id: str,
        user_id: str | None,
        form_data: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            now = now_utc()
            metadata = dict(metadata or {})
            user_agent = metadata.pop("user_agent", "")
            draft = {
                "id": draft_id_for(form_id, user_id),
                "form_id": form_id,
                "user_id": user_id or ANONYMOUS_USER,
                "form_data": form_data,
                "metadata": {
                    **metadata,
                    "last_saved": to_iso(now),
                    "user_agent": user_agent or "",
                },
                "updated_at": now,
            }
            self._storage.drafts.put_draft(draft)
            return {"success": True, "saved_at": to_iso(now)}
        except Exception as exc:
            logger.exception("Error saving draft")
            return {"success": False, "error": str(exc)}

    def load_draft(self, form_id: str, user_id: str | None) -> dict[str, Any]:
        try:
            draft = self._storage.drafts.get_draft(draft_id_for(form_id, user_id))
            if draft:
                return {"exists": True, "data": draft}
            return {"exists": False}
        except Exception:
            logger.exception("Error loading draft")
            return {"exists": False}

    def delete_draft(self, form_id: str, user_id: str | None) -> dict[str, Any]:
        try:
            self._storage.drafts.delete_draft(draft_id_for(form_id, user_id))
            return {"success": True}
        except Exception:
            logger.exception("Error deleting draft")
            return {"success": False}


class Throttled:
    """Callable wrapper that runs ``func`` at most once per ``delay_ms`` window.

    A call arriving less than ``delay_ms`` after the last execution is deferred
    to the end of the window; later calls in the same window replace its
    arguments. The first window starts when the wrapper is created.

    ``on_settled`` is called after ``func`` runs and no further call is pending.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        delay_ms: float,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[..., Any] = threading.Timer,
        on_settled: Callable[[], None] | None = None,
    ) -> None:
        self._func = func
        self._delay = delay_ms / 1000.0
        self._clock = clock
        self._timer_factory = timer_factory
        self._on_settled = on_settled
        self._lock = threading.Lock()
        self._last_exec = clock()
        self._timer: Any = None
        # Bumped whenever the armed timer changes; a fire from an older timer is ignored.
        self._generation = 0
        self._pending: tuple[tuple[Any, ...], dict[str, Any]] | None = None
        functools.update_wrapper(self, func)

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            now = self._clock()
            elapsed = now - self._last_exec
            self._cancel_timer()
            if elapsed >= self._delay:
                self._pending = None
                self._last_exec = now
                run_now: tuple[tuple[Any, ...], dict[str, Any]] | None = (args, kwargs)
            else:
                self._pending = (args, kwargs)
                self._timer = self._timer_factory(
                    self._delay - elapsed, functools.partial(self._fire, self._generation)
                )
                self._timer.daemon = True
                self._timer.start()
                run_now = None
        if run_now is not None:
            self._run(run_now)

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def _cancel_timer(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _take_pending(self) -> tuple[tuple[Any, ...], dict[str, Any]] | None:
        pending = self._pending
        self._pending = None
        self._timer = None
        self._last_exec = self._clock()
        return pending

    def _run(self, call: tuple[tuple[Any, ...], dict[str, Any]] | None) -> None:
        if call is not None:
            args, kwargs = call
            self._func(*args, **kwargs)
        if self._on_settled is not None and self._pending is None:
            self._on_settled()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._generation += 1
            call = self._take_pending()
        self._run(call)

    def flush(self) -> None:
        """Run a deferred call now instead of at the end of its window."""
        with self._lock:
            self._cancel_timer()
            call = self._take_pending()
        self._run(call)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_timer()
            self._pending = None


def throttle(
    func: Callable[..., Any], delay_ms: float, on_settled: Callable[[], None] | None = None
) -> Throttled:
    return Throttled(func, delay_ms, on_settled=on_settled)


class DraftAutosaver:
    """Throttles draft writes per ``(form, user)`` key.

    A key's saver lives only while a write is waiting for its window; once the
    write has run the saver is dropped.
    """

    def __init__(
        self,
        drafts: DraftService,
        delay_ms: float,
        throttle_factory: Callable[..., Throttled] = throttle,
    ) -> None:
        self._drafts = drafts
        self._delay_ms = delay_ms
        self._throttle_factory = throttle_factory
        self._lock = threading.Lock()
        self._savers: dict[str, Throttled] = {}

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._savers)

    def _saver(self, key: str) -> Throttled:
        with self._lock:
            saver = self._savers.get(key)
            if saver is None:
                saver = self._throttle_factory(
                    self._drafts.save_draft,
                    self._delay_ms,
                    on_settled=functools.partial(self._forget, key),
                )
                self._savers[key] = saver
            return saver

    def _forget(self, key: str) -> None:
        with self._lock:
            saver = self._savers.get(key)
            if saver is not None and not saver.pending:
                del self._savers[key]

    def submit(
        self,
        form_id: str,
        user_id: str | None,
        form_data: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._saver(draft_id_for(form_id, user_id))(form_id, user_id, form_data, metadata)

    def discard(self, form_id: str, user_id: str | None) -> None:
        with self._lock:
            saver = self._savers.pop(draft_id_for(form_id, user_id), None)
        if saver is not None:
            saver.cancel()

    def flush_all(self) -> None:
        with self._lock:
            savers = list(self._savers.values())
        for saver in savers:
            saver.flush()
