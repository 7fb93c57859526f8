from __future__ import annotations

import argparse
import json
import logging
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich_argparse import RawTextRichHelpFormatter
from playground_runner import DiffKind, Language, PlaygroundSession, VersionNotFound
from playground_runner.engines import ENGINE_TYPES

_CONSOLE = Console(no_color=False)

_EXTENSIONS = {
    ".js": Language.ECMASCRIPT,
    ".mjs": Language.ECMASCRIPT,
    ".py": Language.PYTHON_LIKE,
    ".c": Language.C_LIKE,
    ".cc": Language.C_LIKE,
    ".cpp": Language.C_LIKE,
    ".html": Language.MARKUP,
    ".htm": Language.MARKUP,
    ".css": Language.STYLESHEET,
}

_KIND_STYLES = {
    DiffKind.ADDED: "green",
    DiffKind.REMOVED: "red",
    DiffKind.UNCHANGED: "dim",
}


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="python -m pgr")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for running, diffing, and inspecting snippets.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="python -m pgr",
        description=(
            "playground-runner CLI\n"
            "Run snippets through the sandboxed language engines,\n"
            "diff two files, and inspect exported version histories."
        ),
        epilog=(
            "Quick Examples:\n"
            "  python -m pgr run snippet.js\n"
            "  python -m pgr run main.cpp --timeout-ms 500\n"
            "  python -m pgr run notes.txt --language python\n"
            "  python -m pgr diff before.py after.py --aligned\n"
            "  python -m pgr history buffer-1.json\n"
            "  python -m pgr languages"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Library log level rendered through Rich (default: WARNING).",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Execute a source file in its language engine.",
        description=(
            "Execute one source file.\n"
            "The language is inferred from the file extension unless --language is given."
        ),
        epilog=(
            "Examples:\n"
            "  python -m pgr run loop.js\n"
            "  python -m pgr run loop.js --timeout-ms 50\n"
            "  python -m pgr run snippet --language cpp --policy-file policy.toml"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("file")
    run_cmd.add_argument(
        "--language",
        help="Language tag or alias (javascript, python, cpp, html, css, ...).",
    )
    run_cmd.add_argument(
        "--timeout-ms",
        type=int,
        help="Per-run wall-clock cap in milliseconds (default: policy timeout).",
    )
    run_cmd.add_argument(
        "--policy-file",
        help="TOML policy file overriding the bundled limits.",
    )

    diff_cmd = sub.add_parser(
        "diff",
        help="Show a line diff between two files.",
        description=(
            "Diff two files line by line.\n"
            "The default positional walk compares same-index lines;\n"
            "--aligned re-synchronises after insertions."
        ),
        formatter_class=_HELP_FORMATTER,
    )
    diff_cmd.add_argument("original")
    diff_cmd.add_argument("revised")
    diff_cmd.add_argument(
        "--aligned",
        action="store_true",
        help="Use the aligned strategy instead of the positional walk.",
    )

    history_cmd = sub.add_parser(
        "history",
        help="Show an exported version history.",
        description=(
            "Load a JSON export (a list of version records, or an object with\n"
            "'artifact_id' and 'versions') and list it newest first."
        ),
        formatter_class=_HELP_FORMATTER,
    )
    history_cmd.add_argument("export_file")

    sub.add_parser(
        "languages",
        help="List supported languages and their tags.",
        description="List supported languages and whether runs are isolated in a worker.",
        formatter_class=_HELP_FORMATTER,
    )

    return parser


def build_session(args: argparse.Namespace) -> PlaygroundSession:
    """Create a PlaygroundSession from CLI flags.

    Example:
        ```python
        session = build_session(args)
        ```
    """
    return PlaygroundSession(policy_file=getattr(args, "policy_file", None))


def _configure_logging(level: str) -> None:
    """Route library logging through a Rich handler.

    Example:
        ```python
        _configure_logging("INFO")
        ```
    """
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_CONSOLE, show_path=False)],
        force=True,
    )


def _infer_language(path: Path, explicit: str | None) -> str:
    """Pick the language tag from `--language` or the file extension.

    Example:
        ```python
        tag = _infer_language(Path("main.cpp"), None)
        ```
    """
    if explicit:
        return explicit
    language = _EXTENSIONS.get(path.suffix.lower())
    if language is None:
        raise ValueError(f"Cannot infer language from '{path.name}'; pass --language")
    return language.value


def _print_result(result: Any) -> None:
    """Render an execution result as output and error panels.

    Example:
        ```python
        _print_result(session.run_sync("print(1)", "python"))
        ```
    """
    if result.output:
        _CONSOLE.print(Panel.fit(Text(result.output), title="Output", border_style="cyan"))
    if result.error:
        _CONSOLE.print(Panel.fit(Text(result.error), title="Error", border_style="red"))
    if not result.output and not result.error:
        _CONSOLE.print(Panel.fit("(no output)", style="dim"))
    _CONSOLE.print(f"[dim]{result.execution_time_ms} ms[/dim]")


def _print_diff(result: Any) -> None:
    """Render diff lines in a rich table followed by summary counts.

    Example:
        ```python
        _print_diff(session.diff("a", "b"))
        ```
    """
    table = Table(title="Diff")
    table.add_column("Old", justify="right", style="dim")
    table.add_column("New", justify="right", style="dim")
    table.add_column(" ")
    table.add_column("Line")
    for line in result:
        style = _KIND_STYLES[line.kind]
        table.add_row(
            str(line.source_line or ""),
            str(line.revised_line or ""),
            Text(line.kind.prefix, style=style),
            Text(line.text, style=style),
        )
    _CONSOLE.print(table)
    summary = result.summary
    _CONSOLE.print(
        Panel.fit(
            f"+{summary.added} added  -{summary.removed} removed  ~{summary.modified} modified",
            title="Summary",
            border_style="green" if not summary.changed else "yellow",
        )
    )


def _print_history(artifact_id: str, versions: Sequence[Any]) -> None:
    """Render versions newest first in a rich table.

    Example:
        ```python
        _print_history("buffer-1", session.history("buffer-1"))
        ```
    """
    table = Table(title=f"History of {artifact_id}")
    table.add_column("ID", style="cyan")
    table.add_column("Created")
    table.add_column("Author", style="magenta")
    table.add_column("Message")
    table.add_column("Changes")
    table.add_column("Current")
    for version in versions:
        table.add_row(
            version.id,
            version.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            version.author,
            version.message,
            ", ".join(f"{c.kind}: {c.description}" for c in version.change_descriptors),
            "*" if version.is_current else "",
        )
    _CONSOLE.print(table)


def _load_export(path: Path) -> tuple[str, list[dict[str, Any]]]:
    """Read a history export and return `(artifact_id, records)`.

    Example:
        ```python
        artifact_id, records = _load_export(Path("buffer-1.json"))
        ```
    """
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, list):
        return path.stem, raw
    if isinstance(raw, dict) and isinstance(raw.get("versions"), list):
        return str(raw.get("artifact_id") or path.stem), raw["versions"]
    raise ValueError("History export must be a list of records or an object with 'versions'")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `pgr` CLI command handler.

    Example:
        ```python
        code = main(["run", "snippet.js"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.log_level)

    if args.command == "languages":
        table = Table(title="Supported Languages")
        table.add_column("Tag", style="cyan")
        table.add_column("Name", style="magenta")
        table.add_column("Isolated")
        for language in PlaygroundSession.languages():
            isolated = "worker" if ENGINE_TYPES[language].isolated else "inline"
            table.add_row(language.value, language.name.lower().replace("_", "-"), isolated)
        _CONSOLE.print(table)
        return 0

    try:
        session = build_session(args)
        if args.command == "run":
            path = Path(args.file)
            language = _infer_language(path, args.language)
            result = session.run_sync(path.read_text(encoding="utf-8"), language, timeout_ms=args.timeout_ms)
            _print_result(result)
            return 0 if result.ok else 1
        if args.command == "diff":
            original = Path(args.original).read_text(encoding="utf-8")
            revised = Path(args.revised).read_text(encoding="utf-8")
            _print_diff(session.diff(original, revised, strategy="aligned" if args.aligned else "positional"))
            return 0
        if args.command == "history":
            artifact_id, records = _load_export(Path(args.export_file))
            versions = session.import_history(artifact_id, records)
            _print_history(artifact_id, versions)
            return 0
    except (OSError, ValueError, VersionNotFound) as exc:
        _CONSOLE.print(Panel.fit(Text(str(exc)), title="Error", border_style="red"))
        return 1

    parser.error("Unhandled command")
    return 2
