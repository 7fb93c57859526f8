from __future__ import annotations

import asyncio
from typing import Any, Iterable, Mapping

from .debounce import AutoRunner, ResultCallback
from .diff import POSITIONAL, DiffResult, diff
from .execution import Dispatcher
from .output import ExecutionRequest, ExecutionResult, Language
from .policy import PlaygroundPolicy
from .versions import CodeVersion, VersionStore


def _resolve_policy(policy: PlaygroundPolicy | None, policy_file: str | None) -> PlaygroundPolicy:
    """Resolve the effective policy object for a session.

    Example:
        ```python
        policy = _resolve_policy(None, "/tmp/policy.toml")
        ```
    """
    if policy is not None and policy_file is not None:
        raise ValueError("Provide either 'policy' or 'policy_file', not both")
    if policy is None and policy_file is not None:
        return PlaygroundPolicy.from_file(policy_file)
    if policy is None:
        return PlaygroundPolicy()
    if policy.config_path is not None:
        return PlaygroundPolicy.from_file(policy.config_path)
    return policy


class PlaygroundSession:
    """Single entry point for running code, diffing, and versioning artifacts.

    Example:
        ```python
        session = PlaygroundSession()
        result = session.run_sync('x = 5\\nprint(f"value: {x}")', "python")
        session.commit("buffer-1", "x = 5", "ana", "Initial snippet")
        ```
    """

    def __init__(
        self,
        policy: PlaygroundPolicy | None = None,
        policy_file: str | None = None,
        dispatcher: Dispatcher | None = None,
        store: VersionStore | None = None,
    ) -> None:
        """Wire the dispatcher and version store; a given dispatcher keeps its own policy.

        Example:
            ```python
            session = PlaygroundSession(policy=PlaygroundPolicy(timeout_ms=2000))
            ```
        """
        if dispatcher is not None and (policy is not None or policy_file is not None):
            raise ValueError("Provide either 'dispatcher' or a policy, not both")
        if dispatcher is None:
            dispatcher = Dispatcher(policy=_resolve_policy(policy, policy_file))
        self._dispatcher = dispatcher
        self._store = store if store is not None else VersionStore()

    @property
    def policy(self) -> PlaygroundPolicy:
        """Return the policy applied to runs.

        Example:
            ```python
            window = session.policy.debounce_ms
            ```
        """
        return self._dispatcher.policy

    @property
    def store(self) -> VersionStore:
        """Return the version store backing this session.

        Example:
            ```python
            ids = session.store.artifacts()
            ```
        """
        return self._store

    @staticmethod
    def languages() -> tuple[Language, ...]:
        """Return every supported language.

        Example:
            ```python
            tags = [language.value for language in PlaygroundSession.languages()]
            ```
        """
        return tuple(Language)

    async def run(self, code: str, language: str, timeout_ms: int | None = None) -> ExecutionResult:
        """Execute code in the given language.

        Example:
            ```python
            result = await session.run("console.log(1)", "javascript", timeout_ms=500)
            ```
        """
        return await self._dispatcher.execute(ExecutionRequest(code, language), timeout_ms=timeout_ms)

    def run_sync(self, code: str, language: str, timeout_ms: int | None = None) -> ExecutionResult:
        """Blocking wrapper around `run`.

        Example:
            ```python
            result = session.run_sync("<p>hi</p>", "html")
            ```
        """
        return asyncio.run(self.run(code, language, timeout_ms=timeout_ms))

    def diff(self, original: str, revised: str, strategy: str = POSITIONAL) -> DiffResult:
        """Diff two code strings.

        Example:
            ```python
            result = session.diff("a\\nb", "a\\nc")
            ```
        """
        return diff(original, revised, strategy=strategy)

    def commit(
        self,
        artifact_id: str,
        snapshot: str,
        author: str,
        message: str,
        change_descriptors: Iterable[Any] = (),
    ) -> CodeVersion:
        """Record a new current version of an artifact.

        Example:
            ```python
            version = session.commit("buffer-1", "print(1)", "ana", "Initial snippet")
            ```
        """
        return self._store.commit(artifact_id, snapshot, author, message, change_descriptors)

    def restore(self, artifact_id: str, version_id: str, author: str = "system") -> CodeVersion:
        """Restore an earlier snapshot as a new version.

        Example:
            ```python
            version = session.restore("buffer-1", "v1")
            ```
        """
        return self._store.restore(artifact_id, version_id, author=author)

    def history(self, artifact_id: str) -> tuple[CodeVersion, ...]:
        """Return an artifact's versions, newest first.

        Example:
            ```python
            versions = session.history("buffer-1")
            ```
        """
        return self._store.history(artifact_id)

    def compare(
        self,
        artifact_id: str,
        id_a: str,
        id_b: str,
        *,
        chronological: bool = True,
        strategy: str = POSITIONAL,
    ) -> DiffResult:
        """Diff two versions of an artifact.

        Example:
            ```python
            result = session.compare("buffer-1", "v1", "v2")
            ```
        """
        return self._store.compare(artifact_id, id_a, id_b, chronological=chronological, strategy=strategy)

    def fork(
        self,
        source_artifact_id: str,
        target_artifact_id: str,
        author: str,
        version_id: str | None = None,
    ) -> CodeVersion:
        """Start another artifact's history from a source version.

        Example:
            ```python
            version = session.fork("buffer-1", "buffer-2", "ben")
            ```
        """
        return self._store.fork(source_artifact_id, target_artifact_id, author, version_id=version_id)

    def export_history(self, artifact_id: str) -> list[dict[str, Any]]:
        """Export an artifact's history as JSON-compatible records.

        Example:
            ```python
            records = session.export_history("buffer-1")
            ```
        """
        return self._store.export_history(artifact_id)

    def import_history(self, artifact_id: str, records: Iterable[Mapping[str, Any]]) -> tuple[CodeVersion, ...]:
        """Replace an artifact's history with exported records.

        Example:
            ```python
            session.import_history("buffer-1", records)
            ```
        """
        return self._store.import_history(artifact_id, records)

    def clear(self, artifact_id: str) -> None:
        """Clear an artifact's history.

        Example:
            ```python
            session.clear("buffer-1")
            ```
        """
        self._store.clear(artifact_id)

    def auto_runner(self, on_result: ResultCallback, timeout_ms: int | None = None) -> AutoRunner:
        """Return a debounced runner using the policy's quiet window.

        Example:
            ```python
            runner = session.auto_runner(results.append)
            runner.submit("print(1)", "python")
            ```
        """
        return AutoRunner(
            self._dispatcher,
            on_result,
            debounce_ms=self.policy.debounce_ms,
            timeout_ms=timeout_ms,
        )
