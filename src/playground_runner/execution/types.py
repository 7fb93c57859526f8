from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class WorkerRequest:
    """Normalized request sent to an execution backend.

    `timeout_ms` bounds the run itself; `startup_timeout_ms` separately bounds
    bringing a worker up to the point where it can accept the request.

    Example:
        ```python
        req = WorkerRequest(payload={"language": "python", "code": "print(1)"}, timeout_ms=5000, startup_timeout_ms=5000)
        ```
    """

    payload: dict[str, Any]
    timeout_ms: int
    startup_timeout_ms: int = 5000


@dataclass(slots=True)
class WorkerOutcome:
    """Raw response returned by an execution backend.

    Example:
        ```python
        out = WorkerOutcome(stdout='{"output": "1", "error": null}', stderr="", returncode=0)
        ```
    """

    stdout: str
    stderr: str
    returncode: int
