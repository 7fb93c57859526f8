from __future__ import annotations

import ast
import logging
import operator
import string
from typing import Any, Callable

from ..output import Language
from .base import EngineOutput, describe_exception, finish_output

logger = logging.getLogger(__name__)

DEFAULT_MAX_LOOP_ITERATIONS = 100_000

_BIN_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.BitAnd: operator.and_,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
}

_UNARY_OPS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Not: operator.not_,
    ast.Invert: operator.invert,
}

_COMPARE_OPS: dict[type[ast.cmpop], Callable[[Any, Any], Any]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
}

SAFE_BUILTINS: dict[str, Callable[..., Any]] = {
    "abs": abs,
    "bool": bool,
    "enumerate": enumerate,
    "float": float,
    "int": int,
    "len": len,
    "list": list,
    "max": max,
    "min": min,
    "range": range,
    "reversed": reversed,
    "round": round,
    "sorted": sorted,
    "str": str,
    "sum": sum,
    "tuple": tuple,
    "zip": zip,
}

_FORMATTER = string.Formatter()

_SAFE_METHODS: dict[type, frozenset[str]] = {
    str: frozenset(
        {
            "capitalize", "center", "count", "endswith", "find", "format", "isalpha",
            "isdigit", "join", "ljust", "lower", "lstrip", "replace", "rjust", "rstrip",
            "split", "startswith", "strip", "title", "upper", "zfill",
        }
    ),
    list: frozenset(
        {"append", "copy", "count", "extend", "index", "insert", "pop", "remove", "reverse", "sort"}
    ),
    dict: frozenset({"copy", "get", "items", "keys", "pop", "update", "values"}),
    tuple: frozenset({"count", "index"}),
}

# Faults a supported construct can raise while running user code.
_PROGRAM_ERRORS = (
    ArithmeticError,
    AttributeError,
    LookupError,
    NameError,
    RuntimeError,
    TypeError,
    ValueError,
)


class _Unsupported(Exception):
    """Construct outside the supported subset; the enclosing statement is skipped.

    Example:
        ```python
        raise _Unsupported("Lambda")
        ```
    """


class _Break(Exception):
    """Unwinds to the innermost loop on `break`.

    Example:
        ```python
        raise _Break()
        ```
    """


class _Continue(Exception):
    """Unwinds to the innermost loop on `continue`.

    Example:
        ```python
        raise _Continue()
        ```
    """


class _Interpreter:
    """Tree-walking evaluator for the supported Python subset.

    Example:
        ```python
        interp = _Interpreter(max_loop_iterations=1000)
        interp.exec_block(ast.parse("print(1)").body)
        ```
    """

    def __init__(self, max_loop_iterations: int) -> None:
        """Start with an empty namespace and output buffer.

        Example:
            ```python
            interp = _Interpreter(max_loop_iterations=10)
            ```
        """
        self.chunks: list[str] = []
        self._vars: dict[str, Any] = {}
        self._opaque: set[str] = set()
        self._max_steps = max_loop_iterations
        self._steps = 0

    def exec_block(self, body: list[ast.stmt]) -> None:
        """Execute statements in order.

        Example:
            ```python
            interp.exec_block(ast.parse("x = 1").body)
            ```
        """
        for stmt in body:
            self._exec(stmt)

    def _exec(self, stmt: ast.stmt) -> None:
        """Run one statement, skipping it when it is outside the subset.

        Example:
            ```python
            interp._exec(ast.parse("pass").body[0])
            ```
        """
        handler = getattr(self, f"_stmt_{type(stmt).__name__}", None)
        if handler is None:
            self._opaque.update(_bound_names(stmt))
            logger.debug("Skipping unsupported %s on line %s", type(stmt).__name__, stmt.lineno)
            return
        try:
            handler(stmt)
        except _Unsupported as exc:
            logger.debug("Skipping line %s: %s is not supported", stmt.lineno, exc)

    def _tick(self) -> None:
        """Count one loop iteration against the configured cap.

        Example:
            ```python
            interp._tick()
            ```
        """
        self._steps += 1
        if self._steps > self._max_steps:
            raise RuntimeError(f"loop iteration limit of {self._max_steps} exceeded")

    # statements

    def _stmt_Expr(self, stmt: ast.Expr) -> None:
        """Evaluate an expression statement for its side effects.

        Example:
            ```python
            interp._stmt_Expr(ast.parse("print('hi')").body[0])
            ```
        """
        self._eval(stmt.value)

    def _stmt_Pass(self, stmt: ast.Pass) -> None:
        """Do nothing.

        Example:
            ```python
            interp._stmt_Pass(ast.parse("pass").body[0])
            ```
        """

    def _stmt_Assign(self, stmt: ast.Assign) -> None:
        """Bind the value to every target, left to right.

        Example:
            ```python
            interp._stmt_Assign(ast.parse("a = b = 1").body[0])
            ```
        """
        value = self._eval(stmt.value)
        for target in stmt.targets:
            self._assign(target, value)

    def _stmt_AugAssign(self, stmt: ast.AugAssign) -> None:
        """Apply `x op= value`.

        Example:
            ```python
            interp._stmt_AugAssign(ast.parse("x += 1").body[0])
            ```
        """
        op = _BIN_OPS.get(type(stmt.op))
        if op is None:
            raise _Unsupported(type(stmt.op).__name__)
        current = self._eval(_as_load(stmt.target))
        self._assign(stmt.target, op(current, self._eval(stmt.value)))

    def _stmt_For(self, stmt: ast.For) -> None:
        """Iterate a range, list, string or other finite sequence.

        Example:
            ```python
            interp._stmt_For(ast.parse("for i in range(3):\\n    print(i)").body[0])
            ```
        """
        iterable = self._eval(stmt.iter)
        for item in iter(iterable):
            self._tick()
            self._assign(stmt.target, item)
            try:
                self.exec_block(stmt.body)
            except _Break:
                return
            except _Continue:
                continue
        self.exec_block(stmt.orelse)

    def _stmt_If(self, stmt: ast.If) -> None:
        """Run the first branch whose test holds.

        Example:
            ```python
            interp._stmt_If(ast.parse("if x:\\n    print(x)").body[0])
            ```
        """
        if self._eval(stmt.test):
            self.exec_block(stmt.body)
        else:
            self.exec_block(stmt.orelse)

    def _stmt_Break(self, stmt: ast.Break) -> None:
        """Leave the innermost loop.

        Example:
            ```python
            interp._stmt_Break(ast.Break())
            ```
        """
        raise _Break()

    def _stmt_Continue(self, stmt: ast.Continue) -> None:
        """Skip to the next iteration of the innermost loop.

        Example:
            ```python
            interp._stmt_Continue(ast.Continue())
            ```
        """
        raise _Continue()

    def _assign(self, target: ast.expr, value: Any) -> None:
        """Bind a value to a name, subscript or unpacking target.

        Example:
            ```python
            interp._assign(ast.Name(id="x", ctx=ast.Store()), 5)
            ```
        """
        if isinstance(target, ast.Name):
            self._vars[target.id] = value
            self._opaque.discard(target.id)
        elif isinstance(target, (ast.Tuple, ast.List)):
            if any(isinstance(elt, ast.Starred) for elt in target.elts):
                raise _Unsupported("Starred")
            values = list(value)
            if len(values) != len(target.elts):
                raise ValueError(
                    f"cannot unpack {len(values)} values into {len(target.elts)} targets"
                )
            for elt, item in zip(target.elts, values):
                self._assign(elt, item)
        elif isinstance(target, ast.Subscript):
            container = self._eval(target.value)
            if not isinstance(container, (list, dict)):
                raise TypeError(f"'{type(container).__name__}' object does not support item assignment")
            container[self._eval(target.slice)] = value
        else:
            raise _Unsupported(type(target).__name__)

    # expressions

    def _eval(self, node: ast.expr) -> Any:
        """Evaluate an expression node inside the supported subset.

        Example:
            ```python
            value = interp._eval(ast.parse("1 + 2", mode="eval").body)
            ```
        """
        handler = getattr(self, f"_expr_{type(node).__name__}", None)
        if handler is None:
            raise _Unsupported(type(node).__name__)
        return handler(node)

    def _expr_Constant(self, node: ast.Constant) -> Any:
        """Return a literal value.

        Example:
            ```python
            assert interp._expr_Constant(ast.Constant(value=3)) == 3
            ```
        """
        return node.value

    def _expr_Name(self, node: ast.Name) -> Any:
        """Look up a variable, then a safe builtin.

        Example:
            ```python
            value = interp._expr_Name(ast.Name(id="x", ctx=ast.Load()))
            ```
        """
        if node.id in self._vars:
            return self._vars[node.id]
        if node.id in self._opaque:
            raise _Unsupported(f"name {node.id!r} bound by a skipped statement")
        if node.id in SAFE_BUILTINS:
            return SAFE_BUILTINS[node.id]
        raise NameError(f"name '{node.id}' is not defined")

    def _expr_List(self, node: ast.List) -> list[Any]:
        """Build a list literal.

        Example:
            ```python
            items = interp._expr_List(ast.parse("[1, 2]", mode="eval").body)
            ```
        """
        return [self._eval(elt) for elt in node.elts]

    def _expr_Tuple(self, node: ast.Tuple) -> tuple[Any, ...]:
        """Build a tuple literal.

        Example:
            ```python
            pair = interp._expr_Tuple(ast.parse("(1, 2)", mode="eval").body)
            ```
        """
        return tuple(self._eval(elt) for elt in node.elts)

    def _expr_Dict(self, node: ast.Dict) -> dict[Any, Any]:
        """Build a dict literal.

        Example:
            ```python
            mapping = interp._expr_Dict(ast.parse("{'a': 1}", mode="eval").body)
            ```
        """
        if any(key is None for key in node.keys):
            raise _Unsupported("dict unpacking")
        return {self._eval(key): self._eval(value) for key, value in zip(node.keys, node.values)}

    def _expr_BinOp(self, node: ast.BinOp) -> Any:
        """Apply an arithmetic or bitwise operator.

        Example:
            ```python
            assert interp._expr_BinOp(ast.parse("2 * 3", mode="eval").body) == 6
            ```
        """
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise _Unsupported(type(node.op).__name__)
        return op(self._eval(node.left), self._eval(node.right))

    def _expr_UnaryOp(self, node: ast.UnaryOp) -> Any:
        """Apply a unary operator.

        Example:
            ```python
            assert interp._expr_UnaryOp(ast.parse("-4", mode="eval").body) == -4
            ```
        """
        return _UNARY_OPS[type(node.op)](self._eval(node.operand))

    def _expr_BoolOp(self, node: ast.BoolOp) -> Any:
        """Short-circuit `and` / `or`.

        Example:
            ```python
            assert interp._expr_BoolOp(ast.parse("0 or 5", mode="eval").body) == 5
            ```
        """
        result: Any = None
        for value_node in node.values:
            result = self._eval(value_node)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    def _expr_Compare(self, node: ast.Compare) -> bool:
        """Evaluate a (possibly chained) comparison.

        Example:
            ```python
            assert interp._expr_Compare(ast.parse("1 < 2 < 3", mode="eval").body)
            ```
        """
        left = self._eval(node.left)
        for op_node, right_node in zip(node.ops, node.comparators):
            right = self._eval(right_node)
            if not _COMPARE_OPS[type(op_node)](left, right):
                return False
            left = right
        return True

    def _expr_IfExp(self, node: ast.IfExp) -> Any:
        """Evaluate `a if cond else b`.

        Example:
            ```python
            value = interp._expr_IfExp(ast.parse("1 if x else 2", mode="eval").body)
            ```
        """
        return self._eval(node.body) if self._eval(node.test) else self._eval(node.orelse)

    def _expr_JoinedStr(self, node: ast.JoinedStr) -> str:
        """Render an f-string.

        Example:
            ```python
            text = interp._expr_JoinedStr(ast.parse('f"v: {x}"', mode="eval").body)
            ```
        """
        parts: list[str] = []
        for value in node.values:
            if isinstance(value, ast.Constant):
                parts.append(str(value.value))
            else:
                parts.append(self._eval(value))
        return "".join(parts)

    def _expr_FormattedValue(self, node: ast.FormattedValue) -> str:
        """Render one `{expr!conv:spec}` field.

        Example:
            ```python
            text = interp._expr_FormattedValue(field_node)
            ```
        """
        value = self._eval(node.value)
        if node.conversion == ord("r"):
            value = repr(value)
        elif node.conversion == ord("s"):
            value = str(value)
        elif node.conversion == ord("a"):
            value = ascii(value)
        spec = self._eval(node.format_spec) if node.format_spec is not None else ""
        return format(value, spec)

    def _expr_Subscript(self, node: ast.Subscript) -> Any:
        """Index or slice a sequence or mapping.

        Example:
            ```python
            first = interp._expr_Subscript(ast.parse("items[0]", mode="eval").body)
            ```
        """
        return self._eval(node.value)[self._eval(node.slice)]

    def _expr_Slice(self, node: ast.Slice) -> slice:
        """Build a slice object for `a[lo:hi:step]`.

        Example:
            ```python
            part = interp._expr_Slice(ast.Slice(lower=None, upper=ast.Constant(2), step=None))
            ```
        """
        return slice(
            self._eval(node.lower) if node.lower is not None else None,
            self._eval(node.upper) if node.upper is not None else None,
            self._eval(node.step) if node.step is not None else None,
        )

    def _expr_ListComp(self, node: ast.ListComp) -> list[Any]:
        """Evaluate a list comprehension in its own scope.

        Example:
            ```python
            doubled = interp._expr_ListComp(ast.parse("[x * 2 for x in items]", mode="eval").body)
            ```
        """
        saved = dict(self._vars)
        out: list[Any] = []
        try:
            self._comprehend(node.generators, 0, node.elt, out)
        finally:
            self._vars = saved
        return out

    _expr_GeneratorExp = _expr_ListComp

    def _comprehend(self, generators: list[ast.comprehension], index: int, elt: ast.expr, out: list[Any]) -> None:
        """Walk nested comprehension clauses, collecting `elt` values.

        Example:
            ```python
            interp._comprehend(node.generators, 0, node.elt, out)
            ```
        """
        if index == len(generators):
            out.append(self._eval(elt))
            return
        clause = generators[index]
        if clause.is_async:
            raise _Unsupported("async comprehension")
        for item in iter(self._eval(clause.iter)):
            self._tick()
            self._assign(clause.target, item)
            if all(self._eval(cond) for cond in clause.ifs):
                self._comprehend(generators, index + 1, elt, out)

    def _expr_Call(self, node: ast.Call) -> Any:
        """Call `print`, a safe builtin, or a safe str/list/dict method.

        Example:
            ```python
            interp._expr_Call(ast.parse("print('hi')", mode="eval").body)
            ```
        """
        if any(isinstance(arg, ast.Starred) for arg in node.args):
            raise _Unsupported("Starred")
        if any(kw.arg is None for kw in node.keywords):
            raise _Unsupported("keyword unpacking")
        func = node.func
        if isinstance(func, ast.Name) and func.id == "print" and func.id not in self._vars:
            return self._print(node)
        if isinstance(func, ast.Attribute):
            target = self._eval(func.value)
            allowed = _SAFE_METHODS.get(type(target), frozenset())
            if func.attr not in allowed:
                raise _Unsupported(f"method {type(target).__name__}.{func.attr}")
            if isinstance(target, str) and func.attr == "format":
                _check_format_fields(target)
            callee = getattr(target, func.attr)
        else:
            callee = self._eval(func)
            if callee not in SAFE_BUILTINS.values():
                if callable(callee):
                    raise _Unsupported("call to a non-whitelisted function")
                raise TypeError(f"'{type(callee).__name__}' object is not callable")
        args = [self._eval(arg) for arg in node.args]
        kwargs = {kw.arg: self._eval(kw.value) for kw in node.keywords}
        return callee(*args, **kwargs)

    def _print(self, node: ast.Call) -> None:
        """Buffer `print(*args, sep=" ", end="\\n")` output.

        Example:
            ```python
            interp._print(ast.parse("print(1, 2, sep='-')", mode="eval").body)
            ```
        """
        options = {"sep": " ", "end": "\n"}
        for kw in node.keywords:
            if kw.arg not in options:
                raise _Unsupported(f"print keyword {kw.arg!r}")
            value = self._eval(kw.value)
            if value is not None:
                if not isinstance(value, str):
                    raise TypeError(f"{kw.arg} must be None or a string, not {type(value).__name__}")
                options[kw.arg] = value
        values = [self._eval(arg) for arg in node.args]
        self.chunks.append(options["sep"].join(str(value) for value in values) + options["end"])
        return None


def _as_load(target: ast.expr) -> ast.expr:
    """Return a Load-context copy of an assignment target.

    Example:
        ```python
        node = _as_load(ast.Name(id="x", ctx=ast.Store()))
        ```
    """
    if isinstance(target, ast.Name):
        return ast.Name(id=target.id, ctx=ast.Load())
    if isinstance(target, ast.Subscript):
        return ast.Subscript(value=target.value, slice=target.slice, ctx=ast.Load())
    raise _Unsupported(type(target).__name__)


def _check_format_fields(template: str) -> None:
    """Reject `str.format` fields that reach attributes or items of an argument.

    Example:
        ```python
        _check_format_fields("{0} {name:>4}")
        ```
    """
    for _, field, spec, _ in _FORMATTER.parse(template):
        if field and ("." in field or "[" in field):
            raise _Unsupported(f"format field {field!r}")
        if spec:
            _check_format_fields(spec)


def _bound_names(stmt: ast.stmt) -> set[str]:
    """Names a skipped statement would have bound at module level.

    Example:
        ```python
        names = _bound_names(ast.parse("import math").body[0])
        ```
    """
    if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
        return {stmt.name}
    if isinstance(stmt, (ast.Import, ast.ImportFrom)):
        return {(alias.asname or alias.name).split(".")[0] for alias in stmt.names}
    names: set[str] = set()
    for node in ast.walk(stmt):
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store):
            names.add(node.id)
    return names


class PythonLikeEngine:
    """Interpret a safe subset of Python without executing host code.

    Example:
        ```python
        out = PythonLikeEngine().run('x = 5\\nprint(f"value: {x}")')
        assert out.output == "value: 5"
        ```
    """

    language = Language.PYTHON_LIKE
    isolated = True
    manages_own_memory = False

    def __init__(self, *, max_loop_iterations: int = DEFAULT_MAX_LOOP_ITERATIONS) -> None:
        """Configure the loop iteration cap.

        Example:
            ```python
            engine = PythonLikeEngine(max_loop_iterations=1000)
            ```
        """
        self._max_loop_iterations = max_loop_iterations

    def run(self, code: str) -> EngineOutput:
        """Parse the program and interpret the supported statements.

        Example:
            ```python
            out = PythonLikeEngine().run("for i in range(2):\\n    print(i)")
            ```
        """
        try:
            tree = ast.parse(code, mode="exec")
        except SyntaxError as exc:
            return EngineOutput(error=f"SyntaxError: {exc.msg} (line {exc.lineno})")
        interpreter = _Interpreter(self._max_loop_iterations)
        try:
            interpreter.exec_block(tree.body)
        except (_Break, _Continue):
            return finish_output(interpreter.chunks, "SyntaxError: 'break' or 'continue' outside loop")
        except _PROGRAM_ERRORS as exc:
            return finish_output(interpreter.chunks, describe_exception(exc))
        return finish_output(interpreter.chunks)
