from playground_runner.engines import CLikeEngine


def _run(code: str):
    return CLikeEngine().run(code)


def test_stream_output_with_endl() -> None:
    code = (
        "#include <iostream>\n"
        "using namespace std;\n"
        "int main() {\n"
        '    cout << "Hello" << endl;\n'
        '    std::cout << "World" << std::endl;\n'
        "    return 0;\n"
        "}\n"
    )
    out = _run(code)

    assert out.output == "Hello\nWorld"
    assert out.error is None


def test_printf_substitutes_known_values() -> None:
    code = r'int main() { int n = 3; const char* unit = "items"; printf("%d %s\n", n, unit); }'

    assert _run(code).output == "3 items"


def test_puts_appends_newline() -> None:
    assert _run(r'int main() { puts("a"); puts("b"); }').output == "a\nb"


def test_comments_are_ignored() -> None:
    code = '// cout << "no";\nint main() { /* cout << "x"; */ std::cout << "yes"; }'

    assert _run(code).output == "yes"


def test_return_stops_emission() -> None:
    assert _run(r'int main() { puts("a"); return 0; puts("b"); }').output == "a"


def test_stream_operator_inside_literal() -> None:
    assert _run(r'int main() { cout << "a << b" << endl; }').output == "a << b"


def test_escapes_are_decoded() -> None:
    assert _run(r'int main() { cout << "a\tb"; }').output == "a\tb"


def test_unknown_expressions_emit_nothing() -> None:
    code = r'int main() { int x = compute(); cout << x << "!" << endl; }'

    assert _run(code).output == "!"


def test_control_flow_headers_are_stripped() -> None:
    assert _run(r'int main() { if (true) cout << "y"; }').output == "y"


def test_no_entry_block_is_empty_output() -> None:
    out = _run("int helper() { return 1; }")

    assert out.output == ""
    assert out.error is None


def test_unclosed_entry_block_is_malformed() -> None:
    out = _run('int main() {\n  cout << "x";\n')

    assert out.error is not None
    assert out.error.startswith("MalformedInput:")
    assert "line 1" in out.error
