from __future__ import annotations

from dataclasses import dataclass
from difflib import SequenceMatcher
from enum import Enum
from typing import Iterator

POSITIONAL = "positional"
ALIGNED = "aligned"
STRATEGIES = (POSITIONAL, ALIGNED)


class DiffKind(str, Enum):
    """How a line relates the original text to the revised one.

    Example:
        ```python
        assert DiffKind.ADDED.prefix == "+"
        ```
    """

    ADDED = "added"
    REMOVED = "removed"
    UNCHANGED = "unchanged"

    @property
    def prefix(self) -> str:
        """Return the one-character marker used when rendering a diff.

        Example:
            ```python
            assert DiffKind.REMOVED.prefix == "-"
            ```
        """
        return {"added": "+", "removed": "-", "unchanged": " "}[self.value]


@dataclass(frozen=True, slots=True)
class DiffLine:
    """One line of a diff with its 1-based position on each side.

    Example:
        ```python
        line = DiffLine(DiffKind.UNCHANGED, "a", source_line=1, revised_line=1)
        ```
    """

    kind: DiffKind
    text: str
    source_line: int | None = None
    revised_line: int | None = None


@dataclass(frozen=True, slots=True)
class DiffSummary:
    """Line counts where a paired removal and addition counts once as modified.

    Example:
        ```python
        summary = DiffSummary(added=0, removed=0, modified=1)
        ```
    """

    added: int
    removed: int
    modified: int

    @property
    def changed(self) -> bool:
        """Return True when any line differs.

        Example:
            ```python
            assert not DiffSummary(0, 0, 0).changed
            ```
        """
        return bool(self.added or self.removed or self.modified)


@dataclass(frozen=True, slots=True)
class DiffResult:
    """Ordered diff lines, read top to bottom across both inputs.

    Example:
        ```python
        result = diff("a\\nb", "a\\nc")
        assert [line.kind for line in result][0] is DiffKind.UNCHANGED
        ```
    """

    lines: tuple[DiffLine, ...]

    def __iter__(self) -> Iterator[DiffLine]:
        """Iterate the diff lines in order.

        Example:
            ```python
            texts = [line.text for line in result]
            ```
        """
        return iter(self.lines)

    def __len__(self) -> int:
        """Return the number of diff lines.

        Example:
            ```python
            count = len(result)
            ```
        """
        return len(self.lines)

    @property
    def summary(self) -> DiffSummary:
        """Count added, removed and modified lines.

        Example:
            ```python
            assert diff("a", "b").summary == DiffSummary(added=0, removed=0, modified=1)
            ```
        """
        added = sum(1 for line in self.lines if line.kind is DiffKind.ADDED)
        removed = sum(1 for line in self.lines if line.kind is DiffKind.REMOVED)
        modified = min(added, removed)
        return DiffSummary(added=added - modified, removed=removed - modified, modified=modified)

    def render(self) -> str:
        """Render the diff as `+`/`-`/` ` prefixed text, one line per entry.

        Example:
            ```python
            print(diff("a", "b").render())
            ```
        """
        return "\n".join(f"{line.kind.prefix} {line.text}" for line in self.lines)

    def to_records(self) -> list[dict[str, object]]:
        """Return JSON-compatible records for every line.

        Example:
            ```python
            records = diff("a", "b").to_records()
            ```
        """
        return [
            {
                "kind": line.kind.value,
                "text": line.text,
                "source_line": line.source_line,
                "revised_line": line.revised_line,
            }
            for line in self.lines
        ]


def split_lines(text: str) -> list[str]:
    """Split text into lines on `\\n`; the empty string has no lines.

    Example:
        ```python
        assert split_lines("a\\r\\nb") == ["a", "b"]
        ```
    """
    if not text:
        return []
    return text.replace("\r\n", "\n").split("\n")


def _positional(original: list[str], revised: list[str]) -> list[DiffLine]:
    """Greedy two-cursor walk; a mismatch is a removal followed by an addition.

    Example:
        ```python
        lines = _positional(["a", "b"], ["a", "x"])
        ```
    """
    out: list[DiffLine] = []
    i = j = 0
    while i < len(original) or j < len(revised):
        if i >= len(original):
            out.append(DiffLine(DiffKind.ADDED, revised[j], revised_line=j + 1))
            j += 1
        elif j >= len(revised):
            out.append(DiffLine(DiffKind.REMOVED, original[i], source_line=i + 1))
            i += 1
        elif original[i] == revised[j]:
            out.append(DiffLine(DiffKind.UNCHANGED, revised[j], source_line=i + 1, revised_line=j + 1))
            i += 1
            j += 1
        else:
            out.append(DiffLine(DiffKind.REMOVED, original[i], source_line=i + 1))
            out.append(DiffLine(DiffKind.ADDED, revised[j], revised_line=j + 1))
            i += 1
            j += 1
    return out


def _aligned(original: list[str], revised: list[str]) -> list[DiffLine]:
    """Align matching runs with SequenceMatcher before emitting changes.

    Example:
        ```python
        lines = _aligned(["a", "c"], ["a", "b", "c"])
        ```
    """
    out: list[DiffLine] = []
    matcher = SequenceMatcher(a=original, b=revised, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for offset in range(i2 - i1):
                out.append(
                    DiffLine(
                        DiffKind.UNCHANGED,
                        revised[j1 + offset],
                        source_line=i1 + offset + 1,
                        revised_line=j1 + offset + 1,
                    )
                )
            continue
        for i in range(i1, i2):
            out.append(DiffLine(DiffKind.REMOVED, original[i], source_line=i + 1))
        for j in range(j1, j2):
            out.append(DiffLine(DiffKind.ADDED, revised[j], revised_line=j + 1))
    return out


def diff(original: str, revised: str, *, strategy: str = POSITIONAL) -> DiffResult:
    """Compute a line-level diff of two code strings.

    The default `positional` strategy compares lines at the same cursor
    positions and never re-synchronises after an insertion, so one inserted
    line shows every following line as modified. `aligned` pairs up equal runs
    first (minimal edit script) and reports only the real insertion.

    Example:
        ```python
        result = diff("a\\nb\\nc", "a\\nx\\nc")
        assert [l.kind.value for l in result] == ["unchanged", "removed", "added", "unchanged"]
        ```
    """
    original_lines = split_lines(original)
    revised_lines = split_lines(revised)
    if strategy == POSITIONAL:
        return DiffResult(tuple(_positional(original_lines, revised_lines)))
    if strategy == ALIGNED:
        return DiffResult(tuple(_aligned(original_lines, revised_lines)))
    raise ValueError(f"strategy must be one of {', '.join(STRATEGIES)}")
