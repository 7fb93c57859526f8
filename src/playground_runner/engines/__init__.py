from __future__ import annotations

from typing import Any, Mapping

from ..output import Language
from .base import EngineOutput, Executable
from .clike import CLikeEngine
from .ecmascript import EcmaScriptEngine
from .passthrough import MarkupEngine, StyleSheetEngine
from .pythonlike import PythonLikeEngine

ENGINE_TYPES: dict[Language, type] = {
    Language.ECMASCRIPT: EcmaScriptEngine,
    Language.PYTHON_LIKE: PythonLikeEngine,
    Language.C_LIKE: CLikeEngine,
    Language.MARKUP: MarkupEngine,
    Language.STYLESHEET: StyleSheetEngine,
}


def build_engine(language: Language, limits: Mapping[str, Any] | None = None) -> Executable:
    """Create the engine for a language, applying whichever limits it accepts.

    Example:
        ```python
        engine = build_engine(Language.PYTHON_LIKE, {"max_loop_iterations": 500})
        ```
    """
    limits = limits or {}
    if language is Language.ECMASCRIPT:
        return EcmaScriptEngine(
            timeout_ms=limits.get("timeout_ms"),
            memory_limit_mb=limits.get("memory_limit_mb"),
        )
    if language is Language.PYTHON_LIKE:
        if "max_loop_iterations" in limits:
            return PythonLikeEngine(max_loop_iterations=int(limits["max_loop_iterations"]))
        return PythonLikeEngine()
    return ENGINE_TYPES[language]()


__all__ = [
    "CLikeEngine",
    "ENGINE_TYPES",
    "EcmaScriptEngine",
    "EngineOutput",
    "Executable",
    "MarkupEngine",
    "PythonLikeEngine",
    "StyleSheetEngine",
    "build_engine",
]
