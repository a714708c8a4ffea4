"""In-process background job dispatch backed by a thread pool."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_for_futures
from typing import Any, Callable, Dict, Optional, Protocol, Set

from .logging import get_logger
from .metrics import MetricsClient, get_metrics_client

__all__ = [
    "ErrorSink",
    "JobDispatcher",
    "JobHandler",
    "JobQueueAdapter",
    "UnknownJobTypeError",
]

logger = get_logger(__name__)

JobHandler = Callable[[Dict[str, Any]], None]
ErrorSink = Callable[[str, Dict[str, Any], BaseException], None]


class JobQueueAdapter(Protocol):
    def enqueue(self, job_type: str, payload: Dict[str, Any]) -> None: ...


class UnknownJobTypeError(LookupError):
    """Raised when a job is enqueued without a registered handler."""


def _log_job_failure(job_type: str, payload: Dict[str, Any], exc: BaseException) -> None:
    logger.error(
        "background_job_failed",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={
            "job_type": job_type,
            "entry_id": payload.get("entry_id"),
            "user_id": payload.get("user_id"),
            "error": str(exc),
        },
    )


class JobDispatcher:
    """Fire-and-forget dispatcher.

    ``enqueue`` returns as soon as the job is handed to the pool. Handler
    failures go to the error sink and are never retried or re-raised to the
    caller that enqueued the job.
    """

    def __init__(
        self,
        *,
        max_workers: int = 4,
        error_sink: Optional[ErrorSink] = None,
        metrics: Optional[MetricsClient] = None,
        thread_name_prefix: str = "voicelog-job",
    ) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix=thread_name_prefix
        )
        self._handlers: Dict[str, JobHandler] = {}
        self._error_sink = error_sink or _log_job_failure
        self._metrics = metrics or get_metrics_client()
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def register(self, job_type: str, handler: JobHandler) -> None:
        self._handlers[job_type] = handler

    @property
    def job_types(self) -> tuple[str, ...]:
        return tuple(sorted(self._handlers))

    def enqueue(self, job_type: str, payload: Dict[str, Any]) -> None:
        handler = self._handlers.get(job_type)
        if handler is None:
            raise UnknownJobTypeError(f"no handler registered for job '{job_type}'")
        if self._closed:
            raise RuntimeError("job dispatcher is shut down")
        job_payload = dict(payload)
        future = self._executor.submit(self._run, job_type, handler, job_payload)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        self._metrics.increment("jobqueue_job_enqueued_total")
        logger.debug(
            "background_job_enqueued",
            extra={"job_type": job_type, "entry_id": job_payload.get("entry_id")},
        )

    def wait_for_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every job enqueued so far (and jobs they enqueue) finished."""

        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = set(self._pending)
            if not pending:
                return True
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            wait_for_futures(pending, timeout=remaining)

    def shutdown(self, *, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait)

    def _run(self, job_type: str, handler: JobHandler, payload: Dict[str, Any]) -> None:
        start_clock = time.perf_counter()
        try:
            handler(payload)
        except Exception as exc:
            self._metrics.increment("jobqueue_job_failed_total")
            try:
                self._error_sink(job_type, payload, exc)
            except Exception:  # pragma: no cover - error sink must not kill the worker
                logger.exception("background_job_error_sink_failed", extra={"job_type": job_type})
            return
        self._metrics.increment("jobqueue_job_completed_total")
        logger.debug(
            "background_job_completed",
            extra={
                "job_type": job_type,
                "processing_ms": max(0, int((time.perf_counter() - start_clock) * 1000)),
            },
        )

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
