from playground_runner.engines import PythonLikeEngine


def _run(code: str, **kwargs):
    return PythonLikeEngine(**kwargs).run(code)


def test_fstring_print() -> None:
    out = _run('x = 5\nprint(f"value: {x}")')

    assert out.output == "value: 5"
    assert out.error is None


def test_for_range_loop() -> None:
    assert _run("for i in range(3):\n    print(i)").output == "0\n1\n2"


def test_break_continue_and_else() -> None:
    code = (
        "for i in range(5):\n"
        "    if i == 1:\n"
        "        continue\n"
        "    if i == 3:\n"
        "        break\n"
        "    print(i)\n"
        "for j in []:\n"
        "    pass\n"
        "else:\n"
        "    print('done')\n"
    )

    assert _run(code).output == "0\n2\ndone"


def test_lists_comprehensions_and_safe_methods() -> None:
    code = (
        "items = [3, 1, 2]\n"
        "items.sort()\n"
        "print(', '.join([str(i * 2) for i in items]))\n"
        "scores = {'ana': 3}\n"
        "scores['ben'] = 4\n"
        "total = 0\n"
        "for name, score in scores.items():\n"
        "    total += score\n"
        "print(f'{total:>4}|{len(scores)}')\n"
    )

    assert _run(code).output == "2, 4, 6\n   7|2"


def test_print_keywords() -> None:
    assert _run("print(1, 2, sep='-')\nprint('a', end='')\nprint('b')").output == "1-2\nab"


def test_unsupported_statements_are_skipped() -> None:
    code = (
        "import math\n"
        "print('a')\n"
        "print(math.pi)\n"
        "def helper():\n"
        "    return 1\n"
        "helper()\n"
        "print('b')\n"
    )
    out = _run(code)

    assert out.output == "a\nb"
    assert out.error is None


def test_attribute_access_is_not_reachable() -> None:
    out = _run("print(''.__class__)\nprint('still here')")

    assert out.output == "still here"
    assert out.error is None


def test_format_fields_cannot_reach_attributes() -> None:
    code = (
        "print('{0.__class__}'.format(1))\n"
        "print('{0[0]}'.format([1]))\n"
        "print('{0:{1.__class__}}'.format(1, 2))\n"
        "print('{} and {name:>3}'.format(1, name='b'))\n"
    )
    out = _run(code)

    assert out.output == "1 and   b"
    assert out.error is None


def test_host_builtins_are_not_defined() -> None:
    out = _run("open('/etc/passwd')")

    assert out.output == ""
    assert out.error == "NameError: name 'open' is not defined"


def test_name_error_keeps_prior_output() -> None:
    out = _run("print('a')\nprint(missing)\nprint('never')")

    assert out.output == "a"
    assert out.error == "NameError: name 'missing' is not defined"


def test_runtime_error_text() -> None:
    assert _run("print(1 / 0)").error == "ZeroDivisionError: division by zero"


def test_syntax_error_reports_line() -> None:
    out = _run("print('ok')\nprint(")

    assert out.output == ""
    assert out.error is not None
    assert out.error.startswith("SyntaxError:")
    assert "(line 2)" in out.error


def test_loop_iteration_cap() -> None:
    out = _run("for i in range(100):\n    pass", max_loop_iterations=10)

    assert out.error == "RuntimeError: loop iteration limit of 10 exceeded"


def test_break_outside_loop() -> None:
    assert _run("print(1)\nbreak").error == "SyntaxError: 'break' or 'continue' outside loop"
