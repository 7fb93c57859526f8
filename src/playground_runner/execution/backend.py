from __future__ import annotations

from typing import Protocol

from .types import WorkerOutcome, WorkerRequest


class ExecutionBackend(Protocol):
    async def execute(self, request: WorkerRequest) -> WorkerOutcome:
        """Run one request in isolation and return its raw outcome.

        Example:
            ```python
            outcome = await backend.execute(WorkerRequest(payload={"language": "python", "code": "print(1)"}, timeout_ms=5000))
            ```
        """
        ...
