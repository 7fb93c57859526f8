from __future__ import annotations

import json
import re
from functools import lru_cache
from types import ModuleType
from typing import Any

from ..output import TIMED_OUT_MESSAGE, Language
from .base import EngineOutput, describe_exception

# Globals left in the context after the prelude runs. Everything else
# (eval, WebAssembly, SharedArrayBuffer, Atomics, ...) is deleted.
SAFE_GLOBALS = (
    "Array",
    "ArrayBuffer",
    "BigInt",
    "Boolean",
    "DataView",
    "Date",
    "Error",
    "EvalError",
    "Float32Array",
    "Float64Array",
    "Infinity",
    "Int16Array",
    "Int32Array",
    "Int8Array",
    "JSON",
    "Map",
    "Math",
    "NaN",
    "Number",
    "Object",
    "Promise",
    "RangeError",
    "ReferenceError",
    "Reflect",
    "RegExp",
    "Set",
    "String",
    "Symbol",
    "SyntaxError",
    "TypeError",
    "URIError",
    "Uint16Array",
    "Uint32Array",
    "Uint8Array",
    "WeakMap",
    "WeakSet",
    "decodeURIComponent",
    "encodeURIComponent",
    "globalThis",
    "isFinite",
    "isNaN",
    "parseFloat",
    "parseInt",
    "undefined",
    "print",
    "console",
    "__collect__",
)

_PRELUDE = """
(function (root, keep) {
  var apply = Reflect.apply;
  var stringify = JSON.stringify;
  var map = Array.prototype.map;
  var join = Array.prototype.join;
  var push = Array.prototype.push;
  var toText = String;
  var lines = [];
  function show(value) {
    if (typeof value === "string") return value;
    if (value !== null && typeof value === "object") {
      try {
        var text = apply(stringify, null, [value]);
        if (text !== undefined) return text;
      } catch (e) {}
    }
    return toText(value);
  }
  function emit(prefix, args) {
    apply(push, lines, [prefix + apply(join, apply(map, args, [show]), [" "])]);
  }
  root.print = function () { emit("", arguments); };
  root.console = Object.freeze({
    log: root.print,
    info: root.print,
    debug: root.print,
    warn: function () { emit("Warning: ", arguments); },
    error: function () { emit("Error: ", arguments); }
  });
  Object.defineProperty(root, "__collect__", {
    value: function () { return apply(join, lines, ["\\n"]); }
  });
  Object.getOwnPropertyNames(root).forEach(function (name) {
    if (keep.indexOf(name) === -1) {
      try { delete root[name]; } catch (e) {}
    }
  });
})(globalThis, %s);
"""

_PROGRAM_TEMPLATE = """(function () {
  try {
    (function () {
%s
    })();
    return null;
  } catch (e) {
    if (e instanceof Error) return e.name + ": " + e.message;
    return "Uncaught " + String(e);
  }
})()"""

_SYNTAX_ERROR_PATTERN = re.compile(r"SyntaxError: [^\n]*")


def _syntax_error_text(exc: Exception) -> str:
    """Pull the `SyntaxError: ...` line out of a V8 parse report.

    Example:
        ```python
        text = _syntax_error_text(exc)
        ```
    """
    match = _SYNTAX_ERROR_PATTERN.search(str(exc))
    if match:
        return match.group(0)
    first_line = str(exc).strip().splitlines()[0] if str(exc).strip() else "invalid program"
    return f"SyntaxError: {first_line}"


@lru_cache(maxsize=1)
def _racer() -> ModuleType:
    """Import the V8 binding on first use; workers for other languages never load it.

    Example:
        ```python
        ctx = _racer().MiniRacer()
        ```
    """
    import py_mini_racer

    return py_mini_racer


class EcmaScriptEngine:
    """Run JavaScript in a fresh V8 isolate with only `print`/`console` exposed.

    Example:
        ```python
        out = EcmaScriptEngine().run("for (let i = 0; i < 3; i++) { print(i); }")
        assert out.output == "0\\n1\\n2"
        ```
    """

    language = Language.ECMASCRIPT
    isolated = True
    manages_own_memory = True

    def __init__(self, *, timeout_ms: int | None = None, memory_limit_mb: int | None = None) -> None:
        """Store V8-side limits applied to every evaluation.

        Example:
            ```python
            engine = EcmaScriptEngine(timeout_ms=2000, memory_limit_mb=64)
            ```
        """
        self._timeout_sec = timeout_ms / 1000 if timeout_ms else None
        self._max_memory = memory_limit_mb * 1024 * 1024 if memory_limit_mb else None

    @staticmethod
    def warm_up() -> None:
        """Load the V8 binding and start the platform ahead of the first run.

        Example:
            ```python
            EcmaScriptEngine.warm_up()
            ```
        """
        _racer().MiniRacer()

    def run(self, code: str) -> EngineOutput:
        """Evaluate one program and collect everything it printed.

        Example:
            ```python
            out = EcmaScriptEngine().run("throw new TypeError('bad')")
            assert out.error == "TypeError: bad"
            ```
        """
        racer = _racer()
        ctx = racer.MiniRacer()
        ctx.eval(_PRELUDE % json.dumps(list(SAFE_GLOBALS)))
        try:
            error = ctx.eval(
                _PROGRAM_TEMPLATE % code,
                timeout_sec=self._timeout_sec,
                max_memory=self._max_memory,
            )
        except racer.JSTimeoutException:
            return EngineOutput(error=TIMED_OUT_MESSAGE)
        except racer.JSOOMException:
            return EngineOutput(error="RangeError: memory limit exceeded")
        except racer.JSParseException as exc:
            return EngineOutput(error=_syntax_error_text(exc))
        except racer.JSEvalException as exc:
            return EngineOutput(output=self._collect(ctx), error=describe_exception(exc))
        return EngineOutput(
            output=self._collect(ctx),
            error=str(error) if error is not None else None,
        )

    def _collect(self, ctx: Any) -> str:
        """Read the buffered print lines back out of the isolate.

        Example:
            ```python
            text = engine._collect(ctx)
            ```
        """
        text = ctx.eval("__collect__()")
        if not isinstance(text, str):
            return ""
        return text.rstrip("\n")
