from playground_runner.engines import EcmaScriptEngine
from playground_runner.output import TIMED_OUT_MESSAGE


def _run(code: str, **kwargs):
    return EcmaScriptEngine(**kwargs).run(code)


def test_loop_logs_each_value() -> None:
    out = _run("for (let i = 0; i < 3; i++) { console.log(i); }")

    assert out.output == "0\n1\n2"
    assert out.error is None


def test_print_and_object_formatting() -> None:
    out = _run("print('a', 1); console.log({a: 1}); console.log([1, 'x']);")

    assert out.output == 'a 1\n{"a":1}\n[1,"x"]'


def test_console_levels_are_prefixed() -> None:
    out = _run("console.warn('careful'); console.error('bad'); console.info('fine');")

    assert out.output == "Warning: careful\nError: bad\nfine"


def test_thrown_error_keeps_prior_output() -> None:
    out = _run("console.log('before'); throw new TypeError('boom'); console.log('after');")

    assert out.output == "before"
    assert out.error == "TypeError: boom"


def test_thrown_non_error_value() -> None:
    assert _run("throw 'plain';").error == "Uncaught plain"


def test_reference_error() -> None:
    assert _run("undefinedThing();").error == "ReferenceError: undefinedThing is not defined"


def test_syntax_error() -> None:
    out = _run("let = ;")

    assert out.output == ""
    assert out.error is not None
    assert out.error.startswith("SyntaxError")


def test_dangerous_globals_are_removed() -> None:
    out = _run("print(typeof eval, typeof WebAssembly, typeof Math);")

    assert out.output == "undefined undefined object"


def test_infinite_loop_hits_timeout() -> None:
    out = _run("while (true) {}", timeout_ms=100)

    assert out.error == TIMED_OUT_MESSAGE


def test_each_run_gets_a_fresh_context() -> None:
    engine = EcmaScriptEngine()
    engine.run("globalThis.leak = 1;")

    assert engine.run("print(typeof leak);").output == "undefined"


def test_reassigned_json_stringify_keeps_output() -> None:
    out = _run("JSON.stringify = () => 'x'; print(1); console.log({a: 1});")

    assert out.output == '1\n{"a":1}'
    assert out.error is None


def test_mutated_array_prototype_keeps_output() -> None:
    out = _run("Array.prototype.map = null; Array.prototype.join = null; Array.prototype.push = null; print('a', 2);")

    assert out.output == "a 2"
    assert out.error is None


def test_reflect_override_does_not_reach_print() -> None:
    out = _run("Reflect.apply = () => { throw new Error('hijacked'); }; print('still');")

    assert out.output == "still"
    assert out.error is None
