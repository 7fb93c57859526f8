from __future__ import annotations


class PlaygroundError(Exception):
    """Base class for every failure raised by playground_runner.

    Example:
        ```python
        try:
            store.restore("buffer-1", "v99")
        except PlaygroundError as exc:
            print(exc)
        ```
    """


class UnsupportedLanguage(PlaygroundError, ValueError):
    """Raised when a language tag does not name a supported language.

    Example:
        ```python
        raise UnsupportedLanguage("ruby")
        ```
    """

    def __init__(self, tag: object) -> None:
        """Remember the rejected tag.

        Example:
            ```python
            exc = UnsupportedLanguage("ruby")
            assert exc.tag == "ruby"
            ```
        """
        super().__init__(f"unsupported language: {tag!r}")
        self.tag = tag


class EngineFailure(PlaygroundError):
    """Engine-internal failure; reported as result text, never fatal.

    Example:
        ```python
        raise EngineFailure("worker exited with code -11")
        ```
    """


class ExecutionTimeout(PlaygroundError):
    """Run exceeded its wall-clock budget.

    Example:
        ```python
        raise ExecutionTimeout("execution timed out")
        ```
    """


class MalformedInput(PlaygroundError, ValueError):
    """Program text matches no pattern an engine can recognise.

    Example:
        ```python
        raise MalformedInput("main block is never closed")
        ```
    """


class VersionNotFound(PlaygroundError, LookupError):
    """Restore or compare referenced a version id that is not in the history.

    Example:
        ```python
        raise VersionNotFound("buffer-1", "v42")
        ```
    """

    def __init__(self, artifact_id: str, version_id: str) -> None:
        """Record which artifact and version were missing.

        Example:
            ```python
            exc = VersionNotFound("buffer-1", "v42")
            assert exc.version_id == "v42"
            ```
        """
        super().__init__(f"version {version_id!r} not found in artifact {artifact_id!r}")
        self.artifact_id = artifact_id
        self.version_id = version_id
