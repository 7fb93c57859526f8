from .debounce import AutoRunner
from .diff import DiffKind, DiffLine, DiffResult, DiffSummary, diff
from .errors import (
    EngineFailure,
    ExecutionTimeout,
    MalformedInput,
    PlaygroundError,
    UnsupportedLanguage,
    VersionNotFound,
)
from .execution import Dispatcher, LocalBackend
from .output import ExecutionRequest, ExecutionResult, Language
from .policy import PlaygroundPolicy
from .session import PlaygroundSession
from .versions import ChangeDescriptor, CodeVersion, VersionHistory, VersionStore

__all__ = [
    "AutoRunner",
    "ChangeDescriptor",
    "CodeVersion",
    "DiffKind",
    "DiffLine",
    "DiffResult",
    "DiffSummary",
    "Dispatcher",
    "EngineFailure",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionTimeout",
    "Language",
    "LocalBackend",
    "MalformedInput",
    "PlaygroundError",
    "PlaygroundPolicy",
    "PlaygroundSession",
    "UnsupportedLanguage",
    "VersionHistory",
    "VersionNotFound",
    "VersionStore",
    "diff",
]
