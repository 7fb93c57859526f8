from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any


def _default_policy_path() -> Path:
    """Return bundled default policy TOML path.

    Example:
        ```python
        path = _default_policy_path()
        ```
    """
    return Path(__file__).with_name("default_policy.toml")


def _read_policy_toml(path: Path) -> dict[str, Any]:
    """Read policy TOML and return the policy table.

    Example:
        ```python
        raw = _read_policy_toml(Path("/tmp/policy.toml"))
        ```
    """
    if not path.exists():
        return {
            "timeout_ms": 5000,
            "memory_limit_mb": 256,
            "max_output_kb": 128,
            "max_loop_iterations": 100_000,
            "debounce_ms": 1000,
            "startup_timeout_ms": 5000,
        }
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    policy_obj = raw.get("policy", raw)
    if not isinstance(policy_obj, dict):
        raise ValueError("Policy config must be a TOML table")
    return policy_obj


def _positive_int(value: Any, field_name: str) -> int:
    """Validate and normalize a positive integer policy field.

    Example:
        ```python
        timeout = _positive_int(250, "timeout_ms")
        ```
    """
    if isinstance(value, bool):
        raise ValueError(f"'{field_name}' must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{field_name}' must be an integer") from None
    if number <= 0:
        raise ValueError(f"'{field_name}' must be greater than zero")
    return number


_DEFAULT_POLICY_RAW = _read_policy_toml(_default_policy_path())
DEFAULT_TIMEOUT_MS = _positive_int(_DEFAULT_POLICY_RAW.get("timeout_ms", 5000), "timeout_ms")
DEFAULT_MEMORY_LIMIT_MB = _positive_int(
    _DEFAULT_POLICY_RAW.get("memory_limit_mb", 256), "memory_limit_mb"
)
DEFAULT_MAX_OUTPUT_KB = _positive_int(_DEFAULT_POLICY_RAW.get("max_output_kb", 128), "max_output_kb")
DEFAULT_MAX_LOOP_ITERATIONS = _positive_int(
    _DEFAULT_POLICY_RAW.get("max_loop_iterations", 100_000), "max_loop_iterations"
)
DEFAULT_DEBOUNCE_MS = _positive_int(_DEFAULT_POLICY_RAW.get("debounce_ms", 1000), "debounce_ms")
DEFAULT_STARTUP_TIMEOUT_MS = _positive_int(
    _DEFAULT_POLICY_RAW.get("startup_timeout_ms", 5000), "startup_timeout_ms"
)

_FIELDS = (
    "timeout_ms",
    "memory_limit_mb",
    "max_output_kb",
    "max_loop_iterations",
    "debounce_ms",
    "startup_timeout_ms",
)


@dataclass(slots=True)
class PlaygroundPolicy:
    """Resource limits applied to playground runs.

    Example:
        ```python
        policy = PlaygroundPolicy(timeout_ms=2000, memory_limit_mb=128)
        ```
    """

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    memory_limit_mb: int = DEFAULT_MEMORY_LIMIT_MB
    max_output_kb: int = DEFAULT_MAX_OUTPUT_KB
    max_loop_iterations: int = DEFAULT_MAX_LOOP_ITERATIONS
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    startup_timeout_ms: int = DEFAULT_STARTUP_TIMEOUT_MS
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Validate every limit after dataclass initialization.

        Example:
            ```python
            PlaygroundPolicy(timeout_ms=50)
            ```
        """
        for name in _FIELDS:
            setattr(self, name, _positive_int(getattr(self, name), name))

    @classmethod
    def from_file(cls, config_path: str) -> "PlaygroundPolicy":
        """Create a policy instance from a TOML file.

        Example:
            ```python
            policy = PlaygroundPolicy.from_file("/tmp/policy.toml")
            ```
        """
        raw = _read_policy_toml(Path(config_path))
        unknown = sorted(set(raw) - set(_FIELDS))
        if unknown:
            raise ValueError(f"Unknown policy keys: {', '.join(unknown)}")
        return cls(
            timeout_ms=raw.get("timeout_ms", DEFAULT_TIMEOUT_MS),
            memory_limit_mb=raw.get("memory_limit_mb", DEFAULT_MEMORY_LIMIT_MB),
            max_output_kb=raw.get("max_output_kb", DEFAULT_MAX_OUTPUT_KB),
            max_loop_iterations=raw.get("max_loop_iterations", DEFAULT_MAX_LOOP_ITERATIONS),
            debounce_ms=raw.get("debounce_ms", DEFAULT_DEBOUNCE_MS),
            startup_timeout_ms=raw.get("startup_timeout_ms", DEFAULT_STARTUP_TIMEOUT_MS),
            config_path=config_path,
        )

    def worker_limits(self) -> dict[str, int]:
        """Return the limits forwarded to the isolation worker.

        Example:
            ```python
            limits = PlaygroundPolicy().worker_limits()
            ```
        """
        return {
            "timeout_ms": self.timeout_ms,
            "memory_limit_mb": self.memory_limit_mb,
            "max_output_kb": self.max_output_kb,
            "max_loop_iterations": self.max_loop_iterations,
        }
