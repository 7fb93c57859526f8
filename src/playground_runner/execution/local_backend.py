from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path

from ..errors import EngineFailure, ExecutionTimeout
from ..worker import WORKER_READY
from .types import WorkerOutcome, WorkerRequest

WORKER_MODULE = "playground_runner.worker"


def _source_root() -> Path:
    """Return the directory that contains the `playground_runner` package.

    Example:
        ```python
        root = _source_root()
        ```
    """
    return Path(__file__).resolve().parents[2]


def _worker_env() -> dict[str, str]:
    """Build the worker environment so it imports this same package tree.

    Example:
        ```python
        env = _worker_env()
        ```
    """
    env = dict(os.environ)
    existing = env.get("PYTHONPATH")
    root = str(_source_root())
    env["PYTHONPATH"] = root if not existing else os.pathsep.join([root, existing])
    return env


def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill a worker process that may already have exited.

    Example:
        ```python
        _kill(proc)
        ```
    """
    try:
        proc.kill()
    except ProcessLookupError:
        pass


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill a worker and wait for it to exit.

    Example:
        ```python
        await _reap(proc)
        ```
    """
    _kill(proc)
    await proc.wait()


def _outcome(proc: asyncio.subprocess.Process, stdout: bytes, stderr: bytes) -> WorkerOutcome:
    """Decode what a finished worker wrote.

    Example:
        ```python
        outcome = _outcome(proc, b'{"output": "1", "error": null}', b"")
        ```
    """
    return WorkerOutcome(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        returncode=proc.returncode or 0,
    )


class LocalBackend:
    """Run each request in a fresh local worker subprocess.

    Example:
        ```python
        backend = LocalBackend()
        ```
    """

    def __init__(self, *, python: str | None = None) -> None:
        """Choose the interpreter used to launch workers.

        Example:
            ```python
            backend = LocalBackend(python="/usr/bin/python3")
            ```
        """
        cleaned = (python or sys.executable).strip()
        if not cleaned:
            raise ValueError("LocalBackend requires a Python interpreter path")
        self._python = cleaned

    async def execute(self, request: WorkerRequest) -> WorkerOutcome:
        """Start a worker, then run one request in it under the request's budget.

        The worker has `startup_timeout_ms` to announce it is ready; the run
        budget `timeout_ms` starts only once the request has been written.
        A worker that overruns is killed and `ExecutionTimeout` is raised.

        Example:
            ```python
            outcome = await backend.execute(WorkerRequest(payload={"language": "cpp", "code": ""}, timeout_ms=5000))
            ```
        """
        language = str(request.payload.get("language", ""))
        proc = await asyncio.create_subprocess_exec(
            self._python,
            "-m",
            WORKER_MODULE,
            language,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=_worker_env(),
        )
        try:
            ready = await self._await_ready(proc, request.startup_timeout_ms)
            if not ready:
                stdout, stderr = await proc.communicate()
                return _outcome(proc, stdout, stderr)
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(json.dumps(request.payload).encode("utf-8")),
                timeout=max(1, int(request.timeout_ms)) / 1000,
            )
        except asyncio.TimeoutError:
            await _reap(proc)
            raise ExecutionTimeout(f"worker exceeded {request.timeout_ms}ms and was killed") from None
        except BaseException:
            await _reap(proc)
            raise
        return _outcome(proc, stdout, stderr)

    async def _await_ready(self, proc: asyncio.subprocess.Process, startup_timeout_ms: int) -> bool:
        """Wait for the worker's ready line; False if it exited before sending one.

        Example:
            ```python
            ready = await backend._await_ready(proc, 5000)
            ```
        """
        if proc.stdout is None:
            raise EngineFailure("worker stdout is not piped")
        try:
            line = await asyncio.wait_for(
                proc.stdout.readline(),
                timeout=max(1, int(startup_timeout_ms)) / 1000,
            )
        except asyncio.TimeoutError:
            raise EngineFailure(f"worker did not start within {startup_timeout_ms}ms") from None
        if not line:
            return False
        if line.decode("utf-8", errors="replace").strip() != WORKER_READY:
            raise EngineFailure("worker sent an unexpected handshake")
        return True
