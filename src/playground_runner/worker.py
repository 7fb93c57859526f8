from __future__ import annotations

import json
import sys
from typing import Any, Sequence

from playground_runner.engines import ENGINE_TYPES, build_engine
from playground_runner.engines.base import describe_exception
from playground_runner.errors import EngineFailure, UnsupportedLanguage
from playground_runner.output import UNSUPPORTED_LANGUAGE_MESSAGE, Language

# First stdout line; the request is only written once the worker sends it.
WORKER_READY = "ready"

_resource: Any
try:
    import resource as _resource_module  # POSIX only
    _resource = _resource_module
except ImportError:  # pragma: no cover - platform specific
    _resource = None


def _set_limits(memory_limit_mb: int) -> list[str]:
    """Cap the worker's address space; return notes for limits not applied.

    Example:
        ```python
        notes = _set_limits(memory_limit_mb=256)
        ```
    """
    errors: list[str] = []
    if _resource is None:
        errors.append("RLIMIT limits unavailable on this platform")
        return errors

    mem_bytes = int(memory_limit_mb) * 1024 * 1024

    try:
        _, current_hard = _resource.getrlimit(_resource.RLIMIT_AS)
        if current_hard in (-1, _resource.RLIM_INFINITY):
            target_hard = mem_bytes
        else:
            target_hard = min(mem_bytes, current_hard)
        target_soft = min(mem_bytes, target_hard)
        _resource.setrlimit(_resource.RLIMIT_AS, (target_soft, target_hard))
    except (ValueError, OSError) as exc:
        errors.append(f"RLIMIT_AS not applied: {exc}")

    return errors


def _reply(output: str, error: str | None, max_output_kb: int) -> None:
    """Write the JSON reply the dispatcher reads back.

    Example:
        ```python
        _reply("value: 5", None, max_output_kb=128)
        ```
    """
    sys.stdout.write(
        json.dumps({"output": output[: max_output_kb * 1024], "error": error}, default=str)
    )


def handle(req: dict[str, Any]) -> tuple[str, str | None]:
    """Run one decoded request and return `(output, error)`.

    Example:
        ```python
        output, error = handle({"language": "python", "code": "print(1)", "limits": {}})
        ```
    """
    limits = req.get("limits", {}) or {}
    try:
        language = Language.parse(req.get("language", ""))
    except UnsupportedLanguage:
        return "", UNSUPPORTED_LANGUAGE_MESSAGE
    engine = build_engine(language, limits)
    if not getattr(engine, "manages_own_memory", False):
        _set_limits(memory_limit_mb=int(limits.get("memory_limit_mb", 256)))
    result = engine.run(str(req.get("code", "")))
    return result.output, result.error


def _warm_up(tag: str) -> None:
    """Load whatever the engine for `tag` needs before announcing readiness.

    Example:
        ```python
        _warm_up("javascript")
        ```
    """
    try:
        language = Language.parse(tag)
    except UnsupportedLanguage:
        return
    warm_up = getattr(ENGINE_TYPES[language], "warm_up", None)
    if warm_up is not None:
        warm_up()


def main(argv: Sequence[str] | None = None) -> int:
    """Warm up, announce readiness, then read one request and reply on stdout.

    Example:
        ```python
        # echo '{"language": "python", "code": "print(1)"}' | python -m playground_runner.worker python
        exit_code = main(["python"])
        ```
    """
    for tag in argv or ():
        _warm_up(tag)
    sys.stdout.write(WORKER_READY + "\n")
    sys.stdout.flush()

    req = json.loads(sys.stdin.read() or "{}")
    max_output_kb = int((req.get("limits", {}) or {}).get("max_output_kb", 128))
    try:
        output, error = handle(req)
    except MemoryError:
        _reply("", "MemoryError: memory limit exceeded", max_output_kb)
        return 2
    except Exception as exc:
        _reply("", describe_exception(EngineFailure(describe_exception(exc))), max_output_kb)
        return 1
    _reply(output, error, max_output_kb)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
