"""
Migration Engine

Every stored document carries a ``schemaVersion``. A document without one is
legacy: its version is detected from its shape once, and it is then upgraded
by an ordered chain of steps, each of which moves exactly one version
forward (n -> n+1).

Rules every step follows:
- Pure: it works on its own deep copy of the document
- Idempotent: re-applying it to already-upgraded data changes nothing
- Lossless: fields it does not know about pass through untouched; a missing
  expected field gets a documented default, never a value inferred from
  other fields

A document no step can interpret raises MigrationError. The caller must treat
that as a failed load; it is never an excuse to treat the data as empty.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from src.models.record import SCHEMA_VERSION_KEY


class MigrationError(Exception):
    """A stored document could not be brought up to the current shape."""

    def __init__(
        self,
        message: str,
        document_kind: Optional[str] = None,
        document_id: Optional[str] = None,
    ):
        self.document_kind = document_kind
        self.document_id = document_id
        prefix = ""
        if document_kind:
            prefix = f"{document_kind}"
            if document_id:
                prefix += f" {document_id}"
            prefix += ": "
        super().__init__(f"{prefix}{message}")


@dataclass(frozen=True)
class MigrationStep:
    """Upgrade from ``from_version`` to ``from_version + 1``."""

    from_version: int
    description: str
    apply: Callable[[Any], Any]


@dataclass
class MigrationResult:
    """Outcome of migrating one document."""

    document: Any
    changed: bool
    from_version: int
    applied_steps: list[str] = field(default_factory=list)


@dataclass
class CollectionMigrationResult:
    """Outcome of migrating a list of documents."""

    documents: list[Any]
    changed_documents: list[Any]
    applied_steps: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changed_documents)


def _require_mapping(raw: Any) -> int:
    if not isinstance(raw, dict):
        raise MigrationError(f"Expected an object, got {type(raw).__name__}")
    return 0


class MigrationChain:
    """
    An ordered, statically verified list of migration steps for one kind of
    document.

    Args:
        name: Document kind, used in errors and logs
        steps: Steps covering versions 0 .. current_version - 1, in order
        current_version: Version of the current shape
        detect_legacy_version: Called for documents without a schemaVersion
            tag; returns the version the shape corresponds to, or raises
            MigrationError. Defaults to "any object is version 0".
    """

    def __init__(
        self,
        name: str,
        steps: list[MigrationStep],
        current_version: int,
        detect_legacy_version: Optional[Callable[[Any], int]] = None,
    ):
        expected = list(range(current_version))
        actual = [step.from_version for step in steps]
        if actual != expected:
            raise ValueError(
                f"Migration chain '{name}' must cover versions {expected}, got {actual}"
            )
        self.name = name
        self.current_version = current_version
        self._steps = list(steps)
        self._detect_legacy_version = detect_legacy_version or _require_mapping

    @property
    def steps(self) -> list[MigrationStep]:
        return list(self._steps)

    def version_of(self, raw: Any) -> int:
        """Version of a stored document; explicit tag first, shape second."""
        if isinstance(raw, dict) and SCHEMA_VERSION_KEY in raw:
            version = raw[SCHEMA_VERSION_KEY]
            if isinstance(version, bool) or not isinstance(version, int) or version < 0:
                raise MigrationError(f"Invalid schemaVersion {version!r}", self.name)
            if version > self.current_version:
                raise MigrationError(
                    f"schemaVersion {version} is newer than supported "
                    f"version {self.current_version}",
                    self.name,
                )
            return version
        return self._detect_legacy_version(raw)

    def migrate(self, raw: Any, document_id: Optional[str] = None) -> MigrationResult:
        """
        Bring ``raw`` up to the current version.

        Returns the upgraded document and whether anything changed.
        The input is never modified.
        """
        try:
            version = self.version_of(raw)
        except MigrationError as e:
            if e.document_id is None and document_id is not None:
                raise MigrationError(str(e), self.name, document_id) from e
            raise

        if version == self.current_version:
            return MigrationResult(
                document=copy.deepcopy(raw),
                changed=False,
                from_version=version,
            )

        document = copy.deepcopy(raw)
        applied = []
        for step in self._steps[version:]:
            try:
                document = step.apply(document)
            except MigrationError as e:
                raise MigrationError(str(e), self.name, document_id) from e
            except (TypeError, ValueError, KeyError, AttributeError) as e:
                raise MigrationError(
                    f"Step '{step.description}' failed: {e}",
                    self.name,
                    document_id,
                ) from e
            if not isinstance(document, dict):
                raise MigrationError(
                    f"Step '{step.description}' did not produce an object",
                    self.name,
                    document_id,
                )
            applied.append(step.description)

        document[SCHEMA_VERSION_KEY] = self.current_version
        return MigrationResult(
            document=document,
            changed=True,
            from_version=version,
            applied_steps=applied,
        )

    def migrate_collection(self, raw_documents: list[Any]) -> CollectionMigrationResult:
        """
        Migrate every document in a list.

        Fails on the first document that cannot be migrated; nothing is
        skipped silently.
        """
        if not isinstance(raw_documents, list):
            raise MigrationError(
                f"Expected a list of documents, got {type(raw_documents).__name__}",
                self.name,
            )

        documents = []
        changed = []
        applied: list[str] = []
        for raw in raw_documents:
            doc_id = raw.get("id") if isinstance(raw, dict) else None
            result = self.migrate(raw, document_id=doc_id if isinstance(doc_id, str) else None)
            documents.append(result.document)
            if result.changed:
                changed.append(result.document)
                for step in result.applied_steps:
                    if step not in applied:
                        applied.append(step)

        return CollectionMigrationResult(
            documents=documents,
            changed_documents=changed,
            applied_steps=applied,
        )
