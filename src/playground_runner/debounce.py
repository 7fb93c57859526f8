from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

from .execution import Dispatcher
from .output import ExecutionRequest, ExecutionResult

logger = logging.getLogger(__name__)

ResultCallback = Callable[[ExecutionResult], "Awaitable[Any] | Any"]


def _log_failure(task: asyncio.Task[ExecutionResult]) -> None:
    """Log an auto-run that failed, so the error surfaces even if nobody drains.

    Example:
        ```python
        task.add_done_callback(_log_failure)
        ```
    """
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Auto-run failed", exc_info=exc)


class AutoRunner:
    """Run the latest submitted code once the editor has been quiet long enough.

    Each `submit` cancels the pending run (sleeping or already executing) and
    restarts the quiet window, so only the last submission of a burst reaches
    `on_result`. Must be used from inside a running event loop.

    Example:
        ```python
        runner = AutoRunner(Dispatcher(), print, debounce_ms=300)
        runner.submit("print(1)", "python")
        result = await runner.drain()
        ```
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        on_result: ResultCallback,
        *,
        debounce_ms: int = 1000,
        timeout_ms: int | None = None,
    ) -> None:
        """Bind the dispatcher, the result callback and the quiet window.

        Example:
            ```python
            runner = AutoRunner(Dispatcher(), results.append, debounce_ms=50)
            ```
        """
        if isinstance(debounce_ms, bool) or not isinstance(debounce_ms, int) or debounce_ms < 0:
            raise ValueError("debounce_ms must be a non-negative integer")
        self._dispatcher = dispatcher
        self._on_result = on_result
        self._debounce_ms = debounce_ms
        self._timeout_ms = timeout_ms
        self._task: asyncio.Task[ExecutionResult] | None = None

    @property
    def debounce_ms(self) -> int:
        """Return the quiet window in milliseconds.

        Example:
            ```python
            window = runner.debounce_ms
            ```
        """
        return self._debounce_ms

    @property
    def pending(self) -> bool:
        """Return True while a submission is waiting or running.

        Example:
            ```python
            busy = runner.pending
            ```
        """
        return self._task is not None and not self._task.done()

    def submit(self, code: str, language: str) -> None:
        """Schedule a run of `code`, superseding any earlier submission.

        Example:
            ```python
            runner.submit("console.log(1)", "javascript")
            ```
        """
        self.cancel()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run_after_quiet(code, language))
        self._task.add_done_callback(_log_failure)

    def cancel(self) -> bool:
        """Drop the pending submission; return True if one was cancelled.

        Example:
            ```python
            runner.cancel()
            ```
        """
        task = self._task
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug("Cancelled superseded auto-run")
        return True

    async def drain(self) -> ExecutionResult | None:
        """Wait for the pending submission; None if there was none or it was cancelled.

        Example:
            ```python
            result = await runner.drain()
            ```
        """
        task = self._task
        if task is None:
            return None
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return None
            raise

    async def _run_after_quiet(self, code: str, language: str) -> ExecutionResult:
        """Sleep through the quiet window, run once, then deliver the result.

        Example:
            ```python
            result = await runner._run_after_quiet("print(1)", "python")
            ```
        """
        await asyncio.sleep(self._debounce_ms / 1000)
        result = await self._dispatcher.execute(ExecutionRequest(code, language), timeout_ms=self._timeout_ms)
        delivered = self._on_result(result)
        if inspect.isawaitable(delivered):
            await delivered
        return result
