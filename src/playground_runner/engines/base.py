from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Protocol

from ..output import Language


@dataclass(frozen=True, slots=True)
class EngineOutput:
    """What a single engine run produced, before timing is attached.

    Example:
        ```python
        out = EngineOutput(output="value: 5")
        ```
    """

    output: str = ""
    error: str | None = None


def finish_output(chunks: list[str], error: str | None = None) -> EngineOutput:
    """Join buffered output chunks and drop trailing line breaks.

    Example:
        ```python
        out = finish_output(["a\\n", "b\\n"])
        assert out.output == "a\\nb"
        ```
    """
    return EngineOutput(output="".join(chunks).rstrip("\n"), error=error)


def describe_exception(exc: BaseException) -> str:
    """Render an exception as the `Name: message` text shown to users.

    Example:
        ```python
        text = describe_exception(ZeroDivisionError("division by zero"))
        ```
    """
    message = str(exc)
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


class Executable(Protocol):
    language: ClassVar[Language]
    isolated: ClassVar[bool]

    def run(self, code: str) -> EngineOutput:
        """Execute or emulate one program and return its output.

        Example:
            ```python
            out = engine.run("print(1)")
            ```
        """
        ...
