from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)


def _log_task_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Background task raised", exc_info=(type(exc), exc, exc.__traceback__))


class BackgroundRunner:
    """Runs extraction work off the request path with a cap on in-flight tasks."""

    def __init__(self, *, max_workers: int = 4, synchronous: bool = False):
        self.synchronous = synchronous
        self._executor: ThreadPoolExecutor | None = None
        if not synchronous:
            self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="ocr-job")

    def submit(self, fn: Callable[..., Any], **kwargs: Any) -> Future | None:
        if self._executor is None:
            try:
                fn(**kwargs)
            except Exception:
                logger.exception("Inline task raised")
            return None

        future = self._executor.submit(fn, **kwargs)
        future.add_done_callback(_log_task_failure)
        return future

    def shutdown(self, *, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
