from __future__ import annotations

import json
from pathlib import Path

import pytest

from pgr import cli
from playground_runner import ExecutionResult, VersionStore


class _FakeSession:
    calls: list[tuple[str, str, int | None]] = []

    def __init__(self, policy_file: str | None = None) -> None:
        self.policy_file = policy_file

    def run_sync(self, code: str, language: str, timeout_ms: int | None = None) -> ExecutionResult:
        self.calls.append((code, language, timeout_ms))
        if "boom" in code:
            return ExecutionResult(error="Error: boom", execution_time_ms=4)
        return ExecutionResult(output="value: 5", execution_time_ms=3)


@pytest.fixture
def fake_session(monkeypatch: pytest.MonkeyPatch) -> type[_FakeSession]:
    _FakeSession.calls = []
    monkeypatch.setattr(cli, "PlaygroundSession", _FakeSession)
    return _FakeSession


def test_cli_run_infers_language(
    tmp_path: Path, fake_session: type[_FakeSession], capsys: pytest.CaptureFixture[str]
) -> None:
    snippet = tmp_path / "snippet.py"
    snippet.write_text('x = 5\nprint(f"value: {x}")', encoding="utf-8")

    code = cli.main(["run", str(snippet), "--timeout-ms", "500"])
    output = capsys.readouterr().out

    assert code == 0
    assert "value: 5" in output
    assert fake_session.calls == [('x = 5\nprint(f"value: {x}")', "python", 500)]


def test_cli_run_error_exit_code(
    tmp_path: Path, fake_session: type[_FakeSession], capsys: pytest.CaptureFixture[str]
) -> None:
    snippet = tmp_path / "snippet.txt"
    snippet.write_text("throw new Error('boom')", encoding="utf-8")

    code = cli.main(["run", str(snippet), "--language", "js"])
    output = capsys.readouterr().out

    assert code == 1
    assert "Error: boom" in output
    assert fake_session.calls[0][1] == "js"


def test_cli_run_needs_language_for_unknown_extension(
    tmp_path: Path, fake_session: type[_FakeSession], capsys: pytest.CaptureFixture[str]
) -> None:
    snippet = tmp_path / "snippet.txt"
    snippet.write_text("print(1)", encoding="utf-8")

    code = cli.main(["run", str(snippet)])
    output = capsys.readouterr().out

    assert code == 1
    assert "Cannot infer language" in output
    assert fake_session.calls == []


def test_cli_diff(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    original = tmp_path / "before.py"
    revised = tmp_path / "after.py"
    original.write_text("a\nb\nc", encoding="utf-8")
    revised.write_text("a\nx\nc", encoding="utf-8")

    code = cli.main(["diff", str(original), str(revised)])
    output = capsys.readouterr().out

    assert code == 0
    assert "~1 modified" in output


def test_cli_history(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    store = VersionStore()
    store.commit("buffer-1", "print(1)", "ana", "Initial")
    store.commit("buffer-1", "print(2)", "ben", "Second")
    export = tmp_path / "export.json"
    export.write_text(
        json.dumps({"artifact_id": "buffer-1", "versions": store.export_history("buffer-1")}),
        encoding="utf-8",
    )

    code = cli.main(["history", str(export)])
    output = capsys.readouterr().out

    assert code == 0
    assert "buffer-1" in output
    assert "v2" in output and "ben" in output


def test_cli_history_rejects_bad_export(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    export = tmp_path / "export.json"
    export.write_text(json.dumps({"nope": 1}), encoding="utf-8")

    code = cli.main(["history", str(export)])

    assert code == 1
    assert "History export" in capsys.readouterr().out


def test_cli_languages(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["languages"])
    output = capsys.readouterr().out

    assert code == 0
    for tag in ("javascript", "python", "cpp", "html", "css"):
        assert tag in output


def test_cli_requires_command() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])

    assert excinfo.value.code == 2
