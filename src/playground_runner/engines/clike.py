from __future__ import annotations

import re

from ..errors import MalformedInput
from ..output import Language
from .base import EngineOutput, finish_output

_ENTRY_PATTERN = re.compile(r"\b(?:int|void)\s+main\s*\(")
_STRING_RUN = re.compile(r'(?:"(?:[^"\\\n]|\\.)*"\s*)+')
_STRING_LITERAL = re.compile(r'"((?:[^"\\\n]|\\.)*)"')
_CHAR_LITERAL = re.compile(r"'((?:[^'\\\n]|\\.)+)'")
_NUMBER_LITERAL = re.compile(r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?[uUlLfF]*")
_IDENTIFIER = re.compile(r"[A-Za-z_]\w*")
_ESCAPE = re.compile(r"\\(.)")
_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "v": "\v",
}
_STREAM_PATTERN = re.compile(r"^(?:std::)?cout\s*<<", re.DOTALL)
_CALL_PATTERN = re.compile(r"^(?:std::)?(printf|puts)\s*\((.*)\)$", re.DOTALL)
_DECLARATION_PATTERN = re.compile(
    r"^(?:const\s+)?(?:(?:unsigned|signed|long|short)\s+)*"
    r"(?:std::)?(?:int|long|short|double|float|char|bool|auto|string|size_t)\b\s*[*&]?\s*"
    r"([A-Za-z_]\w*)\s*=\s*(.+)$",
    re.DOTALL,
)
_FORMAT_SPEC = re.compile(r"%[-+ 0#]*\d*(?:\.\d+)?(?:hh|h|ll|l|L|z)?([diufFeEgGxXcs%])")
_NEWLINE_TOKENS = {"endl", "std::endl"}


def _decode(body: str) -> str:
    """Decode C escape sequences inside a literal body.

    Example:
        ```python
        assert _decode("a\\\\tb") == "a\\tb"
        ```
    """
    return _ESCAPE.sub(lambda match: _ESCAPES.get(match.group(1), match.group(1)), body)


def _blank_comments(source: str) -> str:
    """Replace comments with spaces, keeping literals and line breaks intact.

    Example:
        ```python
        text = _blank_comments('int x; // note')
        ```
    """
    out: list[str] = []
    index = 0
    length = len(source)
    while index < length:
        char = source[index]
        if char in "\"'":
            end = _literal_end(source, index)
            out.append(source[index:end])
            index = end
        elif source.startswith("//", index):
            end = source.find("\n", index)
            end = length if end == -1 else end
            out.append(" " * (end - index))
            index = end
        elif source.startswith("/*", index):
            end = source.find("*/", index + 2)
            end = length if end == -1 else end + 2
            out.append(re.sub(r"[^\n]", " ", source[index:end]))
            index = end
        else:
            out.append(char)
            index += 1
    return "".join(out)


def _literal_end(source: str, start: int) -> int:
    """Return the index just past the string or char literal opening at `start`.

    Example:
        ```python
        assert _literal_end('"ab" x', 0) == 4
        ```
    """
    quote = source[start]
    index = start + 1
    while index < len(source):
        char = source[index]
        if char == "\\":
            index += 2
            continue
        if char == quote or char == "\n":
            return index + 1
        index += 1
    return len(source)


def _matching_brace(source: str, open_index: int) -> int | None:
    """Find the brace that closes the one at `open_index`, skipping literals.

    Example:
        ```python
        assert _matching_brace("{ { } }", 0) == 6
        ```
    """
    depth = 0
    index = open_index
    while index < len(source):
        char = source[index]
        if char in "\"'":
            index = _literal_end(source, index)
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return None


def _split_top_level(text: str, separators: str) -> list[str]:
    """Split on separator characters that sit outside literals and parentheses.

    Example:
        ```python
        parts = _split_top_level('for (a; b; c) { x; }', ";{}")
        ```
    """
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    index = 0
    while index < len(text):
        char = text[index]
        if char in "\"'":
            end = _literal_end(text, index)
            current.append(text[index:end])
            index = end
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        if char in separators and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
        index += 1
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def _split_stream(text: str) -> list[str]:
    """Split a `cout << a << b` chain on `<<` outside literals.

    Example:
        ```python
        assert _split_stream('cout << "a" << endl') == ["cout", '"a"', "endl"]
        ```
    """
    parts: list[str] = []
    start = 0
    depth = 0
    index = 0
    while index < len(text):
        char = text[index]
        if char in "\"'":
            index = _literal_end(text, index)
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        elif depth == 0 and text.startswith("<<", index):
            parts.append(text[start:index])
            index += 2
            start = index
            continue
        index += 1
    parts.append(text[start:])
    return [part.strip() for part in parts if part.strip()]


def _strip_control_prefix(statement: str) -> str:
    """Drop leading `if (...)`, `for (...)`, `while (...)` and `else` headers.

    Example:
        ```python
        assert _strip_control_prefix('if (x) puts("y")') == 'puts("y")'
        ```
    """
    while True:
        stripped = statement.lstrip()
        if re.match(r"else\b", stripped):
            statement = stripped[4:]
            continue
        header = re.match(r"(?:if|for|while)\s*\(", stripped)
        if not header:
            return stripped
        depth = 0
        index = header.end() - 1
        while index < len(stripped):
            char = stripped[index]
            if char in "\"'":
                index = _literal_end(stripped, index)
                continue
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    break
            index += 1
        statement = stripped[index + 1 :]


class _Emulator:
    """Walk entry-block statements, buffering everything they emit.

    Example:
        ```python
        emu = _Emulator()
        emu.statement('cout << "hi" << endl')
        ```
    """

    def __init__(self) -> None:
        """Start with no known variables and an empty buffer.

        Example:
            ```python
            emu = _Emulator()
            ```
        """
        self.chunks: list[str] = []
        self._values: dict[str, str] = {}

    def statement(self, text: str) -> bool:
        """Emulate one statement; return False once `return` is reached.

        Example:
            ```python
            keep_going = emu.statement("return 0")
            ```
        """
        text = _strip_control_prefix(text)
        if re.match(r"return\b", text):
            return False
        if _STREAM_PATTERN.match(text):
            for operand in _split_stream(text)[1:]:
                self.chunks.append(self._render(operand))
            return True
        call = _CALL_PATTERN.match(text)
        if call:
            name, arguments = call.groups()
            args = _split_top_level(arguments, ",")
            if name == "puts" and args:
                self.chunks.append(self._render(args[0]) + "\n")
            elif name == "printf" and args:
                self.chunks.append(self._format(args[0], args[1:]))
            return True
        declaration = _DECLARATION_PATTERN.match(text)
        if declaration:
            name, value = declaration.groups()
            rendered = self._literal_value(value.strip())
            if rendered is None:
                self._values.pop(name, None)
            else:
                self._values[name] = rendered
        return True

    def _literal_value(self, operand: str) -> str | None:
        """Return the printed form of a literal or known identifier, else None.

        Example:
            ```python
            assert emu._literal_value("42") == "42"
            ```
        """
        if _STRING_RUN.fullmatch(operand):
            return "".join(_decode(body) for body in _STRING_LITERAL.findall(operand))
        char = _CHAR_LITERAL.fullmatch(operand)
        if char:
            return _decode(char.group(1))
        if _NUMBER_LITERAL.fullmatch(operand):
            return operand.rstrip("uUlLfF")
        if operand in {"true", "false"}:
            return "1" if operand == "true" else "0"
        if _IDENTIFIER.fullmatch(operand):
            return self._values.get(operand)
        return None

    def _render(self, operand: str) -> str:
        """Render one stream operand; unknown expressions emit nothing.

        Example:
            ```python
            assert emu._render("endl") == "\\n"
            ```
        """
        if operand in _NEWLINE_TOKENS:
            return "\n"
        value = self._literal_value(operand)
        return value if value is not None else ""

    def _format(self, fmt: str, args: list[str]) -> str:
        """Expand a printf format string with whatever argument values are known.

        Example:
            ```python
            text = emu._format('"%d items\\\\n"', ["3"])
            ```
        """
        template = self._literal_value(fmt)
        if template is None:
            return ""
        remaining = iter(args)

        def _substitute(match: re.Match[str]) -> str:
            """Replace one conversion spec with the next argument.

            Example:
                ```python
                text = _FORMAT_SPEC.sub(_substitute, "%d")
                ```
            """
            if match.group(1) == "%":
                return "%"
            arg = next(remaining, None)
            return self._render(arg) if arg is not None else ""

        return _FORMAT_SPEC.sub(_substitute, template)


class CLikeEngine:
    """Emulate the output of a C/C++ `main` block without compiling it.

    Example:
        ```python
        out = CLikeEngine().run('int main() { cout << "hi" << endl; }')
        assert out.output == "hi"
        ```
    """

    language = Language.C_LIKE
    isolated = True
    manages_own_memory = False

    def run(self, code: str) -> EngineOutput:
        """Locate the entry block and emulate its emission statements.

        Example:
            ```python
            out = CLikeEngine().run("int main() { return 0; }")
            ```
        """
        try:
            body = self._entry_block(_blank_comments(code))
        except MalformedInput as exc:
            return EngineOutput(error=f"MalformedInput: {exc}")
        if body is None:
            return EngineOutput()
        emulator = _Emulator()
        for statement in _split_top_level(body, ";{}"):
            if not emulator.statement(statement):
                break
        return finish_output(emulator.chunks)

    def _entry_block(self, source: str) -> str | None:
        """Return the text between the entry block's braces, or None if absent.

        Example:
            ```python
            body = engine._entry_block("int main() { return 0; }")
            ```
        """
        entry = _ENTRY_PATTERN.search(source)
        if entry is None:
            return None
        line = source.count("\n", 0, entry.start()) + 1
        open_index = source.find("{", entry.end())
        if open_index == -1:
            raise MalformedInput(f"entry block on line {line} has no opening brace")
        close_index = _matching_brace(source, open_index)
        if close_index is None:
            raise MalformedInput(f"entry block on line {line} is never closed")
        return source[open_index + 1 : close_index]
