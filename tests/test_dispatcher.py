from __future__ import annotations

import asyncio
import json
import time

import pytest

from playground_runner import Dispatcher, ExecutionRequest, Language, PlaygroundPolicy
from playground_runner.engines.passthrough import MARKUP_NOTICE
from playground_runner.errors import EngineFailure, ExecutionTimeout
from playground_runner.execution import LocalBackend, WorkerOutcome, WorkerRequest
from playground_runner.output import TIMED_OUT_MESSAGE, UNSUPPORTED_LANGUAGE_MESSAGE


class _FakeBackend:
    def __init__(self, outcome: WorkerOutcome | None = None, exc: BaseException | None = None, delay: float = 0) -> None:
        self.outcome = outcome or WorkerOutcome(json.dumps({"output": "ok", "error": None}), "", 0)
        self.exc = exc
        self.delay = delay
        self.requests: list[WorkerRequest] = []

    async def execute(self, request: WorkerRequest) -> WorkerOutcome:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.outcome


@pytest.mark.asyncio
async def test_isolated_run_goes_through_backend() -> None:
    backend = _FakeBackend()
    dispatcher = Dispatcher(backend=backend, policy=PlaygroundPolicy(memory_limit_mb=64))

    result = await dispatcher.execute(ExecutionRequest("print(1)", "py"), timeout_ms=750)

    assert result.output == "ok"
    assert result.ok
    assert result.execution_time_ms >= 0
    sent = backend.requests[0]
    assert sent.timeout_ms == 750
    assert sent.startup_timeout_ms == dispatcher.policy.startup_timeout_ms
    assert sent.payload["language"] == "python"
    assert sent.payload["code"] == "print(1)"
    assert sent.payload["limits"]["timeout_ms"] == 750
    assert sent.payload["limits"]["memory_limit_mb"] == 64


@pytest.mark.asyncio
async def test_unsupported_language_is_a_result() -> None:
    backend = _FakeBackend()
    result = await Dispatcher(backend=backend).execute(ExecutionRequest("puts 1", "ruby"))

    assert result.error == UNSUPPORTED_LANGUAGE_MESSAGE
    assert result.output == ""
    assert result.execution_time_ms == 0
    assert backend.requests == []


@pytest.mark.asyncio
async def test_markup_runs_inline() -> None:
    backend = _FakeBackend()
    result = await Dispatcher(backend=backend).execute(ExecutionRequest("<p>hi</p>", Language.MARKUP))

    assert result.output == MARKUP_NOTICE
    assert backend.requests == []


@pytest.mark.asyncio
async def test_engine_error_passes_through() -> None:
    outcome = WorkerOutcome(json.dumps({"output": "a", "error": "NameError: name 'b' is not defined"}), "", 0)
    result = await Dispatcher(backend=_FakeBackend(outcome)).execute(ExecutionRequest("x", "python"))

    assert result.output == "a"
    assert result.error == "NameError: name 'b' is not defined"


@pytest.mark.asyncio
async def test_crashed_worker_becomes_engine_failure() -> None:
    outcome = WorkerOutcome("", "Traceback (most recent call last):\nSegfaultish", 139)
    result = await Dispatcher(backend=_FakeBackend(outcome)).execute(ExecutionRequest("x", "cpp"))

    assert result.error == "EngineFailure: worker exited with code 139: Segfaultish"


@pytest.mark.asyncio
async def test_invalid_worker_json_becomes_engine_failure() -> None:
    outcome = WorkerOutcome("not json", "", 0)
    result = await Dispatcher(backend=_FakeBackend(outcome)).execute(ExecutionRequest("x", "cpp"))

    assert result.error == "EngineFailure: worker returned invalid JSON"


@pytest.mark.asyncio
async def test_backend_exception_becomes_engine_failure() -> None:
    backend = _FakeBackend(exc=OSError("spawn failed"))
    result = await Dispatcher(backend=backend).execute(ExecutionRequest("x", "javascript"))

    assert result.error == "EngineFailure: OSError: spawn failed"


@pytest.mark.asyncio
async def test_worker_startup_failure_is_reported_once() -> None:
    backend = _FakeBackend(exc=EngineFailure("worker did not start within 50ms"))
    result = await Dispatcher(backend=backend).execute(ExecutionRequest("x", "python"))

    assert result.error == "EngineFailure: worker did not start within 50ms"


@pytest.mark.asyncio
async def test_backend_timeout_becomes_timed_out_result() -> None:
    backend = _FakeBackend(exc=ExecutionTimeout("worker exceeded 50ms and was killed"))
    result = await Dispatcher(backend=backend).execute(ExecutionRequest("x", "javascript"), timeout_ms=50)

    assert result.error == TIMED_OUT_MESSAGE


@pytest.mark.asyncio
async def test_slow_backend_is_abandoned_at_budget() -> None:
    started = time.monotonic()
    dispatcher = Dispatcher(backend=_FakeBackend(delay=5), policy=PlaygroundPolicy(startup_timeout_ms=50))
    result = await dispatcher.execute(ExecutionRequest("x", "javascript"), timeout_ms=50)

    assert result.error == TIMED_OUT_MESSAGE
    assert time.monotonic() - started < 1


@pytest.mark.asyncio
async def test_non_positive_timeout_is_rejected() -> None:
    with pytest.raises(ValueError, match="timeout_ms"):
        await Dispatcher(backend=_FakeBackend()).execute(ExecutionRequest("x", "python"), timeout_ms=0)


def test_execute_sync() -> None:
    result = Dispatcher(backend=_FakeBackend()).execute_sync(ExecutionRequest("print(1)", "python"))

    assert result.output == "ok"


@pytest.mark.asyncio
async def test_real_worker_runs_python_like() -> None:
    result = await Dispatcher().execute(ExecutionRequest('x = 5\nprint(f"value: {x}")', "python"))

    assert result.output == "value: 5"
    assert result.error is None


@pytest.mark.asyncio
async def test_real_worker_runs_ecmascript() -> None:
    result = await Dispatcher().execute(
        ExecutionRequest("for (let i = 0; i < 3; i++) { console.log(i); }", "javascript")
    )

    assert result.output == "0\n1\n2"
    assert result.error is None


@pytest.mark.asyncio
async def test_real_worker_is_killed_at_timeout() -> None:
    code = "const end = Date.now() + 5000; while (Date.now() < end) {}"
    started = time.monotonic()
    result = await Dispatcher().execute(ExecutionRequest(code, "javascript"), timeout_ms=50)
    elapsed = time.monotonic() - started

    assert result.error == TIMED_OUT_MESSAGE
    assert result.output == ""
    assert elapsed < 2
    assert 50 <= result.execution_time_ms < 2000


@pytest.mark.asyncio
async def test_short_budget_does_not_count_worker_startup() -> None:
    result = await Dispatcher().execute(ExecutionRequest("print(1)", "python"), timeout_ms=150)

    assert result.output == "1"
    assert result.error is None


@pytest.mark.asyncio
async def test_worker_that_never_gets_ready_is_killed() -> None:
    request = WorkerRequest(payload={"language": "python", "code": "print(1)"}, timeout_ms=1000, startup_timeout_ms=1)

    with pytest.raises(EngineFailure, match="did not start within 1ms"):
        await LocalBackend().execute(request)
