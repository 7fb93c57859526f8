from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import UnsupportedLanguage

UNSUPPORTED_LANGUAGE_MESSAGE = "unsupported language"
TIMED_OUT_MESSAGE = "execution timed out"


class Language(str, Enum):
    """Languages the playground can run, valued by the host UI's tags.

    Example:
        ```python
        lang = Language.parse("py")
        assert lang is Language.PYTHON_LIKE
        ```
    """

    ECMASCRIPT = "javascript"
    PYTHON_LIKE = "python"
    C_LIKE = "cpp"
    MARKUP = "html"
    STYLESHEET = "css"

    @classmethod
    def parse(cls, tag: "Language | str") -> "Language":
        """Resolve an enum member, tag value or alias to a Language.

        Example:
            ```python
            assert Language.parse("C++") is Language.C_LIKE
            ```
        """
        if isinstance(tag, cls):
            return tag
        if not isinstance(tag, str):
            raise UnsupportedLanguage(tag)
        key = tag.strip().lower()
        for member in cls:
            if key == member.value:
                return member
        try:
            return _ALIASES[key]
        except KeyError:
            raise UnsupportedLanguage(tag) from None


_ALIASES = {
    "js": Language.ECMASCRIPT,
    "ecmascript": Language.ECMASCRIPT,
    "py": Language.PYTHON_LIKE,
    "c": Language.C_LIKE,
    "c++": Language.C_LIKE,
    "htm": Language.MARKUP,
    "markup": Language.MARKUP,
    "stylesheet": Language.STYLESHEET,
}


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """One run request: a code string plus its language tag.

    Example:
        ```python
        req = ExecutionRequest(code="print(1)", language=Language.PYTHON_LIKE)
        ```
    """

    code: str
    language: Language | str


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Normalized result of one run, as rendered by the host UI.

    Example:
        ```python
        result = ExecutionResult(output="0\\n1\\n2", execution_time_ms=12)
        assert result.ok
        ```
    """

    output: str = ""
    error: str | None = None
    execution_time_ms: int = 0

    def __post_init__(self) -> None:
        """Reject negative timings.

        Example:
            ```python
            ExecutionResult(execution_time_ms=0)
            ```
        """
        if self.execution_time_ms < 0:
            raise ValueError("execution_time_ms must be >= 0")

    @property
    def ok(self) -> bool:
        """Return True when the run produced no error.

        Example:
            ```python
            assert not ExecutionResult(error="execution timed out").ok
            ```
        """
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible mapping of this result.

        Example:
            ```python
            payload = ExecutionResult(output="hi").to_dict()
            ```
        """
        return {
            "output": self.output,
            "error": self.error,
            "execution_time_ms": self.execution_time_ms,
        }
