import pytest

from playground_runner import Language, UnsupportedLanguage
from playground_runner.engines import (
    ENGINE_TYPES,
    CLikeEngine,
    EcmaScriptEngine,
    MarkupEngine,
    PythonLikeEngine,
    StyleSheetEngine,
    build_engine,
)
from playground_runner.engines.passthrough import MARKUP_NOTICE, STYLESHEET_NOTICE


def test_every_language_has_an_engine() -> None:
    assert set(ENGINE_TYPES) == set(Language)
    for language, engine_type in ENGINE_TYPES.items():
        assert engine_type.language is language


def test_build_engine_applies_limits() -> None:
    python_engine = build_engine(Language.PYTHON_LIKE, {"max_loop_iterations": 2})
    out = python_engine.run("for i in range(5):\n    print(i)")

    assert isinstance(python_engine, PythonLikeEngine)
    assert out.output == "0\n1"
    assert out.error == "RuntimeError: loop iteration limit of 2 exceeded"
    assert isinstance(build_engine(Language.ECMASCRIPT, {"timeout_ms": 100}), EcmaScriptEngine)
    assert isinstance(build_engine(Language.C_LIKE), CLikeEngine)


def test_passthrough_engines_return_notices() -> None:
    assert MarkupEngine().run("<h1>hi</h1>").output == MARKUP_NOTICE
    assert StyleSheetEngine().run("body { margin: 0; }").output == STYLESHEET_NOTICE
    assert MarkupEngine().run("").error is None
    assert not MarkupEngine.isolated and not StyleSheetEngine.isolated


@pytest.mark.parametrize(
    ("tag", "expected"),
    [
        ("javascript", Language.ECMASCRIPT),
        ("JS", Language.ECMASCRIPT),
        ("py", Language.PYTHON_LIKE),
        ("C++", Language.C_LIKE),
        (" html ", Language.MARKUP),
        ("css", Language.STYLESHEET),
        (Language.C_LIKE, Language.C_LIKE),
    ],
)
def test_language_parse(tag, expected) -> None:
    assert Language.parse(tag) is expected


def test_unknown_language_is_rejected() -> None:
    with pytest.raises(UnsupportedLanguage) as excinfo:
        Language.parse("ruby")

    assert excinfo.value.tag == "ruby"
    assert isinstance(excinfo.value, ValueError)
