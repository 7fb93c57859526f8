from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

from ..engines import ENGINE_TYPES, build_engine
from ..engines.base import describe_exception
from ..errors import EngineFailure, ExecutionTimeout, UnsupportedLanguage
from ..output import (
    TIMED_OUT_MESSAGE,
    UNSUPPORTED_LANGUAGE_MESSAGE,
    ExecutionRequest,
    ExecutionResult,
    Language,
)
from ..policy import PlaygroundPolicy
from .backend import ExecutionBackend
from .local_backend import LocalBackend
from .types import WorkerOutcome, WorkerRequest

logger = logging.getLogger(__name__)

# Headroom over a backend's own startup and run deadlines before the outer guard fires.
_GUARD_SLACK_MS = 250


def _elapsed_ms(started: float) -> int:
    """Return whole milliseconds since a `time.monotonic()` reading.

    Example:
        ```python
        ms = _elapsed_ms(time.monotonic())
        ```
    """
    return max(0, int((time.monotonic() - started) * 1000))


def _build_payload(code: str, language: Language, policy: PlaygroundPolicy, timeout_ms: int) -> dict[str, Any]:
    """Build the worker payload from code, language, and policy.

    Example:
        ```python
        payload = _build_payload("print(1)", Language.PYTHON_LIKE, PlaygroundPolicy(), 5000)
        ```
    """
    limits = policy.worker_limits()
    limits["timeout_ms"] = timeout_ms
    return {"language": language.value, "code": code, "limits": limits}


def _normalize(outcome: WorkerOutcome, started: float) -> ExecutionResult:
    """Turn a raw worker outcome into an ExecutionResult.

    Example:
        ```python
        result = _normalize(WorkerOutcome('{"output": "1", "error": null}', "", 0), time.monotonic())
        ```
    """
    elapsed = _elapsed_ms(started)
    raw = outcome.stdout.strip()
    if not raw:
        tail = (outcome.stderr.strip().splitlines() or [""])[-1]
        message = f"worker exited with code {outcome.returncode}"
        failure = EngineFailure(f"{message}: {tail}" if tail else message)
        return ExecutionResult(error=describe_exception(failure), execution_time_ms=elapsed)
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        parsed = None
    if not isinstance(parsed, dict):
        failure = EngineFailure("worker returned invalid JSON")
        return ExecutionResult(error=describe_exception(failure), execution_time_ms=elapsed)

    error = parsed.get("error")
    return ExecutionResult(
        output=str(parsed.get("output") or ""),
        error=str(error) if error is not None else None,
        execution_time_ms=elapsed,
    )


class Dispatcher:
    """Route run requests to language engines under a timeout guard.

    Example:
        ```python
        dispatcher = Dispatcher()
        result = await dispatcher.execute(ExecutionRequest("print(1)", Language.PYTHON_LIKE))
        ```
    """

    def __init__(
        self,
        backend: ExecutionBackend | None = None,
        policy: PlaygroundPolicy | None = None,
    ) -> None:
        """Attach a backend (a local worker subprocess by default) and policy.

        Example:
            ```python
            dispatcher = Dispatcher(backend=LocalBackend(), policy=PlaygroundPolicy(timeout_ms=2000))
            ```
        """
        self._backend: ExecutionBackend = backend or LocalBackend()
        self._policy = policy or PlaygroundPolicy()

    @property
    def policy(self) -> PlaygroundPolicy:
        """Return the policy applied to runs.

        Example:
            ```python
            limit = dispatcher.policy.timeout_ms
            ```
        """
        return self._policy

    async def execute(self, request: ExecutionRequest, timeout_ms: int | None = None) -> ExecutionResult:
        """Run one request; failures and timeouts come back as result data.

        Example:
            ```python
            result = await dispatcher.execute(ExecutionRequest("print(1)", "python"), timeout_ms=500)
            ```
        """
        started = time.monotonic()
        try:
            language = Language.parse(request.language)
        except UnsupportedLanguage:
            logger.debug("Rejected unsupported language %r", request.language)
            return ExecutionResult(error=UNSUPPORTED_LANGUAGE_MESSAGE, execution_time_ms=0)

        budget_ms = int(timeout_ms) if timeout_ms is not None else self._policy.timeout_ms
        if budget_ms <= 0:
            raise ValueError("timeout_ms must be greater than zero")

        if not ENGINE_TYPES[language].isolated:
            return self._run_inline(language, request.code, started)

        payload = _build_payload(request.code, language, self._policy, budget_ms)
        startup_ms = self._policy.startup_timeout_ms
        logger.debug("Dispatching %s run (%d chars, %dms budget)", language.value, len(request.code), budget_ms)
        try:
            outcome = await asyncio.wait_for(
                self._backend.execute(
                    WorkerRequest(payload=payload, timeout_ms=budget_ms, startup_timeout_ms=startup_ms)
                ),
                timeout=(startup_ms + budget_ms + _GUARD_SLACK_MS) / 1000,
            )
        except (asyncio.TimeoutError, ExecutionTimeout):
            logger.warning("%s run exceeded %dms and was killed", language.value, budget_ms)
            return ExecutionResult(error=TIMED_OUT_MESSAGE, execution_time_ms=_elapsed_ms(started))
        except EngineFailure as exc:
            logger.warning("%s worker failed: %s", language.value, exc)
            return ExecutionResult(error=describe_exception(exc), execution_time_ms=_elapsed_ms(started))
        except Exception as exc:
            logger.warning("Execution backend failed for %s run", language.value, exc_info=True)
            return ExecutionResult(
                error=describe_exception(EngineFailure(describe_exception(exc))),
                execution_time_ms=_elapsed_ms(started),
            )

        result = _normalize(outcome, started)
        if result.error and result.error.startswith("EngineFailure"):
            logger.warning("%s engine failed: %s", language.value, result.error)
        return result

    def execute_sync(self, request: ExecutionRequest, timeout_ms: int | None = None) -> ExecutionResult:
        """Blocking wrapper around `execute` for callers without an event loop.

        Example:
            ```python
            result = Dispatcher().execute_sync(ExecutionRequest("<p>", "html"))
            ```
        """
        return asyncio.run(self.execute(request, timeout_ms=timeout_ms))

    def _run_inline(self, language: Language, code: str, started: float) -> ExecutionResult:
        """Run a pass-through engine in-process; it never executes user code.

        Example:
            ```python
            result = dispatcher._run_inline(Language.MARKUP, "<p>", time.monotonic())
            ```
        """
        try:
            out = build_engine(language).run(code)
        except Exception as exc:
            logger.warning("%s engine failed", language.value, exc_info=True)
            return ExecutionResult(
                error=describe_exception(EngineFailure(describe_exception(exc))),
                execution_time_ms=_elapsed_ms(started),
            )
        return ExecutionResult(output=out.output, error=out.error, execution_time_ms=_elapsed_ms(started))
