from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from .diff import POSITIONAL, DiffResult, diff
from .errors import VersionNotFound

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return the current time as an aware UTC datetime.

    Example:
        ```python
        stamp = _utcnow()
        ```
    """
    return datetime.now(timezone.utc)


def _require_artifact_id(artifact_id: str) -> None:
    """Reject empty or non-string artifact ids.

    Example:
        ```python
        _require_artifact_id("buffer-1")
        ```
    """
    if not isinstance(artifact_id, str) or not artifact_id:
        raise ValueError("artifact_id must be a non-empty string")


@dataclass(frozen=True, slots=True)
class ChangeDescriptor:
    """One labelled change carried by a version.

    Example:
        ```python
        change = ChangeDescriptor("code", "Added try/catch blocks")
        ```
    """

    kind: str
    description: str

    @classmethod
    def coerce(cls, value: "ChangeDescriptor | Mapping[str, Any] | tuple[str, str]") -> "ChangeDescriptor":
        """Accept a descriptor, a `{kind, description}` mapping or a pair.

        Example:
            ```python
            change = ChangeDescriptor.coerce({"kind": "code", "description": "Refactor"})
            ```
        """
        if isinstance(value, ChangeDescriptor):
            return value
        if isinstance(value, Mapping):
            kind, description = value.get("kind"), value.get("description")
        elif isinstance(value, tuple) and len(value) == 2:
            kind, description = value
        else:
            raise ValueError(f"Cannot interpret change descriptor: {value!r}")
        if not isinstance(kind, str) or not isinstance(description, str):
            raise ValueError("Change descriptor 'kind' and 'description' must be strings")
        return cls(kind=kind, description=description)

    def to_record(self) -> dict[str, str]:
        """Return a JSON-compatible mapping.

        Example:
            ```python
            record = ChangeDescriptor("code", "Refactor").to_record()
            ```
        """
        return {"kind": self.kind, "description": self.description}


@dataclass(frozen=True, slots=True)
class CodeVersion:
    """Immutable snapshot of an artifact's code at one commit.

    Example:
        ```python
        version = store.commit("buffer-1", "print(1)", "ana", "Initial snippet")
        ```
    """

    id: str
    sequence: int
    created_at: datetime
    author: str
    message: str
    code_snapshot: str
    change_descriptors: tuple[ChangeDescriptor, ...] = ()
    is_current: bool = False

    def to_record(self) -> dict[str, Any]:
        """Return a JSON-compatible record for host-side persistence.

        Example:
            ```python
            record = version.to_record()
            ```
        """
        return {
            "id": self.id,
            "sequence": self.sequence,
            "created_at": self.created_at.isoformat(),
            "author": self.author,
            "message": self.message,
            "code_snapshot": self.code_snapshot,
            "change_descriptors": [change.to_record() for change in self.change_descriptors],
            "is_current": self.is_current,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "CodeVersion":
        """Rebuild a version from a record produced by `to_record`.

        Example:
            ```python
            version = CodeVersion.from_record(record)
            ```
        """
        try:
            created_at = datetime.fromisoformat(str(record["created_at"]))
            version = cls(
                id=str(record["id"]),
                sequence=int(record["sequence"]),
                created_at=created_at,
                author=str(record["author"]),
                message=str(record["message"]),
                code_snapshot=str(record["code_snapshot"]),
                change_descriptors=tuple(
                    ChangeDescriptor.coerce(item) for item in record.get("change_descriptors", [])
                ),
                is_current=bool(record.get("is_current", False)),
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed version record: {exc}") from None
        if created_at.tzinfo is None:
            version = replace(version, created_at=created_at.replace(tzinfo=timezone.utc))
        return version


class VersionHistory:
    """Append-only, newest-first version log for one artifact.

    Example:
        ```python
        history = VersionHistory("buffer-1")
        history.commit("print(1)", "ana", "Initial snippet")
        ```
    """

    def __init__(self, artifact_id: str, *, clock: Callable[[], datetime] = _utcnow) -> None:
        """Create an empty history.

        Example:
            ```python
            history = VersionHistory("buffer-1")
            ```
        """
        self.artifact_id = artifact_id
        self._clock = clock
        self._lock = threading.Lock()
        self._versions: list[CodeVersion] = []
        self._next_sequence = 1

    def __len__(self) -> int:
        """Return how many versions the history holds.

        Example:
            ```python
            count = len(history)
            ```
        """
        with self._lock:
            return len(self._versions)

    def commit(
        self,
        snapshot: str,
        author: str,
        message: str,
        change_descriptors: Iterable[Any] = (),
    ) -> CodeVersion:
        """Append a new current version.

        Example:
            ```python
            version = history.commit("print(2)", "ana", "Fix", [("code", "Changed output")])
            ```
        """
        changes = tuple(ChangeDescriptor.coerce(item) for item in change_descriptors)
        with self._lock:
            version = self._append(snapshot, author, message, changes)
        logger.info("Committed %s to %s by %s", version.id, self.artifact_id, author)
        return version

    def restore(self, version_id: str, author: str = "system") -> CodeVersion:
        """Append a new current version copying an earlier snapshot.

        Example:
            ```python
            restored = history.restore("v1")
            ```
        """
        with self._lock:
            source = self._find(version_id)
            version = self._append(
                source.code_snapshot,
                author,
                f"Restored {version_id}",
                (ChangeDescriptor("restore", f"Restored snapshot of {version_id}"),),
            )
        logger.info("Restored %s as %s in %s", version_id, version.id, self.artifact_id)
        return version

    def versions(self) -> tuple[CodeVersion, ...]:
        """Return every version, newest first, with the current flag set.

        Example:
            ```python
            newest = history.versions()[0]
            ```
        """
        with self._lock:
            return tuple(self._flagged(version) for version in reversed(self._versions))

    def get(self, version_id: str) -> CodeVersion:
        """Return one version by id.

        Example:
            ```python
            version = history.get("v2")
            ```
        """
        with self._lock:
            return self._flagged(self._find(version_id))

    def current(self) -> CodeVersion | None:
        """Return the current version, or None for an empty history.

        Example:
            ```python
            head = history.current()
            ```
        """
        with self._lock:
            return self._flagged(self._versions[-1]) if self._versions else None

    def compare(
        self,
        id_a: str,
        id_b: str,
        *,
        chronological: bool = True,
        strategy: str = POSITIONAL,
    ) -> DiffResult:
        """Diff two versions; by default the earlier one is the original.

        Example:
            ```python
            result = history.compare("v3", "v1")
            ```
        """
        with self._lock:
            first = self._find(id_a)
            second = self._find(id_b)
        if chronological and second.sequence < first.sequence:
            first, second = second, first
        return diff(first.code_snapshot, second.code_snapshot, strategy=strategy)

    def clear(self) -> None:
        """Drop every version.

        Example:
            ```python
            history.clear()
            ```
        """
        with self._lock:
            dropped = len(self._versions)
            self._versions.clear()
            self._next_sequence = 1
        logger.info("Cleared %d versions from %s", dropped, self.artifact_id)

    def to_records(self) -> list[dict[str, Any]]:
        """Return JSON-compatible records, newest first.

        Example:
            ```python
            records = history.to_records()
            ```
        """
        return [version.to_record() for version in self.versions()]

    @classmethod
    def from_records(
        cls,
        artifact_id: str,
        records: Iterable[Mapping[str, Any]],
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> "VersionHistory":
        """Rebuild a history from exported records.

        Example:
            ```python
            history = VersionHistory.from_records("buffer-1", records)
            ```
        """
        versions = sorted((CodeVersion.from_record(record) for record in records), key=lambda v: v.sequence)
        ids = [version.id for version in versions]
        if len(set(ids)) != len(ids):
            raise ValueError("Version records contain duplicate ids")
        if len({version.sequence for version in versions}) != len(versions):
            raise ValueError("Version records contain duplicate sequence numbers")
        mismatched = [version.id for version in versions if version.id != f"v{version.sequence}"]
        if mismatched:
            raise ValueError(f"Version ids must be v<sequence>: {', '.join(mismatched)}")
        flagged = [version for version in versions if version.is_current]
        if versions and (len(flagged) != 1 or flagged[0] is not versions[-1]):
            raise ValueError("Exactly the newest version record must be marked current")
        history = cls(artifact_id, clock=clock)
        history._versions = [replace(version, is_current=False) for version in versions]
        history._next_sequence = versions[-1].sequence + 1 if versions else 1
        return history

    def _append(
        self,
        snapshot: str,
        author: str,
        message: str,
        changes: tuple[ChangeDescriptor, ...],
    ) -> CodeVersion:
        """Append a version; the caller holds the lock.

        Example:
            ```python
            version = history._append("x = 1", "ana", "Init", ())
            ```
        """
        sequence = self._next_sequence
        version = CodeVersion(
            id=f"v{sequence}",
            sequence=sequence,
            created_at=self._clock(),
            author=author,
            message=message,
            code_snapshot=snapshot,
            change_descriptors=changes,
        )
        self._versions.append(version)
        self._next_sequence += 1
        return replace(version, is_current=True)

    def _find(self, version_id: str) -> CodeVersion:
        """Look up a stored version; the caller holds the lock.

        Example:
            ```python
            version = history._find("v1")
            ```
        """
        for version in self._versions:
            if version.id == version_id:
                return version
        raise VersionNotFound(self.artifact_id, version_id)

    def _flagged(self, version: CodeVersion) -> CodeVersion:
        """Return the version with `is_current` reflecting the history head.

        Example:
            ```python
            version = history._flagged(stored)
            ```
        """
        return replace(version, is_current=version is self._versions[-1])


class VersionStore:
    """Version histories keyed by caller-supplied artifact ids.

    Example:
        ```python
        store = VersionStore()
        store.commit("buffer-1", "print(1)", "ana", "Initial snippet")
        ```
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        """Create an empty store.

        Example:
            ```python
            store = VersionStore()
            ```
        """
        self._clock = clock
        self._lock = threading.Lock()
        self._histories: dict[str, VersionHistory] = {}

    def _history(self, artifact_id: str, *, create: bool = False) -> VersionHistory:
        """Return the history for an artifact; unknown ids read as an empty, unregistered history.

        Example:
            ```python
            history = store._history("buffer-1", create=True)
            ```
        """
        _require_artifact_id(artifact_id)
        with self._lock:
            history = self._histories.get(artifact_id)
            if history is None:
                history = VersionHistory(artifact_id, clock=self._clock)
                if create:
                    self._histories[artifact_id] = history
            return history

    def artifacts(self) -> tuple[str, ...]:
        """Return the ids of artifacts that have a history.

        Example:
            ```python
            ids = store.artifacts()
            ```
        """
        with self._lock:
            return tuple(self._histories)

    def commit(
        self,
        artifact_id: str,
        snapshot: str,
        author: str,
        message: str,
        change_descriptors: Iterable[Any] = (),
    ) -> CodeVersion:
        """Append a new current version to an artifact's history.

        Example:
            ```python
            version = store.commit("buffer-1", "print(1)", "ana", "Initial", [("code", "First draft")])
            ```
        """
        return self._history(artifact_id, create=True).commit(snapshot, author, message, change_descriptors)

    def restore(self, artifact_id: str, version_id: str, author: str = "system") -> CodeVersion:
        """Append a new version copying `version_id`'s snapshot.

        Example:
            ```python
            version = store.restore("buffer-1", "v1")
            ```
        """
        return self._history(artifact_id).restore(version_id, author=author)

    def history(self, artifact_id: str) -> tuple[CodeVersion, ...]:
        """Return an artifact's versions, newest first.

        Example:
            ```python
            versions = store.history("buffer-1")
            ```
        """
        return self._history(artifact_id).versions()

    def get(self, artifact_id: str, version_id: str) -> CodeVersion:
        """Return one version of an artifact.

        Example:
            ```python
            version = store.get("buffer-1", "v2")
            ```
        """
        return self._history(artifact_id).get(version_id)

    def current(self, artifact_id: str) -> CodeVersion | None:
        """Return an artifact's current version, if any.

        Example:
            ```python
            head = store.current("buffer-1")
            ```
        """
        return self._history(artifact_id).current()

    def compare(
        self,
        artifact_id: str,
        id_a: str,
        id_b: str,
        *,
        chronological: bool = True,
        strategy: str = POSITIONAL,
    ) -> DiffResult:
        """Diff two versions of one artifact.

        Example:
            ```python
            result = store.compare("buffer-1", "v1", "v3")
            ```
        """
        return self._history(artifact_id).compare(
            id_a, id_b, chronological=chronological, strategy=strategy
        )

    def fork(
        self,
        source_artifact_id: str,
        target_artifact_id: str,
        author: str,
        version_id: str | None = None,
    ) -> CodeVersion:
        """Commit a source version's snapshot into another artifact's history.

        Example:
            ```python
            forked = store.fork("buffer-1", "buffer-2", "ben")
            ```
        """
        source_history = self._history(source_artifact_id)
        if version_id is None:
            source = source_history.current()
            if source is None:
                raise VersionNotFound(source_artifact_id, "current")
        else:
            source = source_history.get(version_id)
        return self.commit(
            target_artifact_id,
            source.code_snapshot,
            author,
            f"Forked from {source_artifact_id}@{source.id}",
            [ChangeDescriptor("fork", f"Forked from {source_artifact_id}@{source.id}")],
        )

    def clear(self, artifact_id: str) -> None:
        """Clear an artifact's whole history.

        Example:
            ```python
            store.clear("buffer-1")
            ```
        """
        self._history(artifact_id).clear()

    def export_history(self, artifact_id: str) -> list[dict[str, Any]]:
        """Export an artifact's history as JSON-compatible records.

        Example:
            ```python
            records = store.export_history("buffer-1")
            ```
        """
        return self._history(artifact_id).to_records()

    def import_history(self, artifact_id: str, records: Iterable[Mapping[str, Any]]) -> tuple[CodeVersion, ...]:
        """Replace an artifact's history with previously exported records.

        Example:
            ```python
            versions = store.import_history("buffer-1", records)
            ```
        """
        _require_artifact_id(artifact_id)
        history = VersionHistory.from_records(artifact_id, records, clock=self._clock)
        with self._lock:
            self._histories[artifact_id] = history
        logger.info("Imported %d versions into %s", len(history), artifact_id)
        return history.versions()
