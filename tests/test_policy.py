from pathlib import Path

import pytest

from playground_runner import PlaygroundPolicy


def test_defaults_come_from_bundled_toml() -> None:
    policy = PlaygroundPolicy()

    assert policy.timeout_ms == 5000
    assert policy.memory_limit_mb == 256
    assert policy.max_output_kb == 128
    assert policy.max_loop_iterations == 100_000
    assert policy.debounce_ms == 1000
    assert policy.startup_timeout_ms == 5000
    assert "startup_timeout_ms" not in policy.worker_limits()


def test_policy_file_with_table(tmp_path: Path) -> None:
    policy_file = tmp_path / "policy.toml"
    policy_file.write_text("[policy]\ntimeout_ms = 250\ndebounce_ms = 300\n", encoding="utf-8")

    policy = PlaygroundPolicy.from_file(str(policy_file))

    assert policy.timeout_ms == 250
    assert policy.debounce_ms == 300
    assert policy.memory_limit_mb == 256
    assert policy.config_path == str(policy_file)


def test_policy_file_with_top_level_keys(tmp_path: Path) -> None:
    policy_file = tmp_path / "policy.toml"
    policy_file.write_text("max_loop_iterations = 10\n", encoding="utf-8")

    assert PlaygroundPolicy.from_file(str(policy_file)).max_loop_iterations == 10


def test_missing_policy_file_falls_back_to_defaults(tmp_path: Path) -> None:
    policy = PlaygroundPolicy.from_file(str(tmp_path / "absent.toml"))

    assert policy.timeout_ms == 5000


def test_unknown_policy_keys_are_rejected(tmp_path: Path) -> None:
    policy_file = tmp_path / "policy.toml"
    policy_file.write_text("[policy]\ntimeout_seconds = 2\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Unknown policy keys: timeout_seconds"):
        PlaygroundPolicy.from_file(str(policy_file))


@pytest.mark.parametrize("value", [0, -5, True, "soon", None])
def test_invalid_limits_are_rejected(value) -> None:
    with pytest.raises(ValueError, match="timeout_ms"):
        PlaygroundPolicy(timeout_ms=value)


def test_numeric_strings_are_normalized() -> None:
    assert PlaygroundPolicy(memory_limit_mb="64").memory_limit_mb == 64


def test_worker_limits_exclude_host_only_settings() -> None:
    limits = PlaygroundPolicy(timeout_ms=900).worker_limits()

    assert limits == {
        "timeout_ms": 900,
        "memory_limit_mb": 256,
        "max_output_kb": 128,
        "max_loop_iterations": 100_000,
    }
