from .backend import ExecutionBackend
from .dispatcher import Dispatcher
from .local_backend import LocalBackend
from .types import WorkerOutcome, WorkerRequest

__all__ = [
    "Dispatcher",
    "ExecutionBackend",
    "LocalBackend",
    "WorkerOutcome",
    "WorkerRequest",
]
