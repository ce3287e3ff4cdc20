"""
Error taxonomy for manifest resolution.

Every failure the merge pipeline can report is a ManifestError. Errors are
raised where they are detected and propagate unchanged to the caller; there
is no partial or best-effort merge.

Hierarchy:
    ManifestError
    ├── MergeConflict            (path + both sources + both values)
    │   ├── LockViolation        higher source set a locked field
    │   ├── StructuralConflict   mismatched document variants at a path
    │   └── MissingRequiredField required field absent after the merge
    ├── MalformedSource          source unusable before the merge starts
    └── ManifestValidationError  merged manifest failed verification

Nothing from the rest of the package is imported here: the Document Model
imports this module to raise StructuralConflict.
"""

from __future__ import annotations

import typing as _typing


def _plain(value: _typing.Any) -> _typing.Any:
    """Convert a Document (or anything with to_python) into plain data."""
    to_python = getattr(value, "to_python", None)
    if callable(to_python):
        return to_python()
    return value


def _source_name(source: _typing.Any) -> str | None:
    """Human-readable name of a source identity (SourceKind, str or None)."""
    if source is None:
        return None
    return str(getattr(source, "label", source))


def _dotted(path: tuple[str, ...]) -> str:
    return ".".join(path) if path else "<root>"


class ManifestError(Exception):
    """Base class for all manifest resolution failures."""

    code: _typing.ClassVar[str] = "manifest_error"

    def to_dict(self) -> dict[str, _typing.Any]:
        """Structured diagnostic payload (used for the CLI's --json output)."""
        return {"error": self.code, "message": str(self)}


class MergeConflict(ManifestError):
    """
    A conflict detected while merging two sources.

    Attributes:
        path: Field path where the conflict was found.
        description: Human-readable description of the problem.
        lower_source: Identity of the lower-precedence side (may be None).
        higher_source: Identity of the higher-precedence side (may be None).
        lower_value: Lower side's value at path (None if absent).
        higher_value: Higher side's value at path (None if absent).
        lower_origin: Where the lower side was loaded from, if known.
        higher_origin: Where the higher side was loaded from, if known.
    """

    code = "merge_conflict"
    title: _typing.ClassVar[str] = "Merge conflict"

    def __init__(
        self,
        path: tuple[str, ...] | str,
        description: str,
        *,
        lower_source: _typing.Any = None,
        higher_source: _typing.Any = None,
        lower_value: _typing.Any = None,
        higher_value: _typing.Any = None,
        lower_origin: str | None = None,
        higher_origin: str | None = None,
    ) -> None:
        if isinstance(path, str):
            path = tuple(path.split(".")) if path else ()
        self.path: tuple[str, ...] = tuple(path)
        self.description = description
        self.lower_source = lower_source
        self.higher_source = higher_source
        self.lower_value = lower_value
        self.higher_value = higher_value
        self.lower_origin = lower_origin
        self.higher_origin = higher_origin
        super().__init__(self._format())

    @property
    def dotted_path(self) -> str:
        """The conflict path as a dotted string."""
        return _dotted(self.path)

    def _format(self) -> str:
        message = f"{self.title} at '{self.dotted_path}': {self.description}"
        lower = _source_name(self.lower_source)
        higher = _source_name(self.higher_source)
        if lower or higher:
            message += f" (lower: {lower or 'n/a'}, higher: {higher or 'n/a'})"
        return message

    def annotate_origins(
        self,
        lower_origin: str | None,
        higher_origin: str | None,
    ) -> _typing.Self:
        """Record where both sides were loaded from; returns self for re-raise."""
        if self.lower_origin is None:
            self.lower_origin = lower_origin
        if self.higher_origin is None:
            self.higher_origin = higher_origin
        return self

    def to_dict(self) -> dict[str, _typing.Any]:
        payload: dict[str, _typing.Any] = {
            "error": self.code,
            "path": self.dotted_path,
            "lower_source": _source_name(self.lower_source),
            "higher_source": _source_name(self.higher_source),
            "lower_value": _plain(self.lower_value),
            "higher_value": _plain(self.higher_value),
            "message": str(self),
        }
        if self.lower_origin or self.higher_origin:
            payload["lower_origin"] = self.lower_origin
            payload["higher_origin"] = self.higher_origin
        return payload


class LockViolation(MergeConflict):
    """A source other than the service base attempted to set a locked field."""

    code = "lock_violation"
    title = "Lock violation"


class StructuralConflict(MergeConflict):
    """Two sources disagree on the document variant at a shared path."""

    code = "structural_conflict"
    title = "Structural conflict"


class MissingRequiredField(MergeConflict):
    """A required field is absent from the fully merged manifest."""

    code = "missing_required_field"
    title = "Missing required field"

    def __init__(self, path: tuple[str, ...] | str, description: str | None = None) -> None:
        super().__init__(path, description or "field is required but no source sets it")


class MalformedSource(ManifestError):
    """A source could not be turned into a usable document; no merge was run."""

    code = "malformed_source"

    def __init__(
        self,
        message: str,
        *,
        source: _typing.Any = None,
        origin: str | None = None,
        line: int | None = None,
    ) -> None:
        self.message = message
        self.source = source
        self.origin = origin
        self.line = line
        where = origin or _source_name(source) or "source"
        if line is not None:
            where = f"{where}:{line}"
        super().__init__(f"Malformed source {where}: {message}")

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            "error": self.code,
            "source": _source_name(self.source),
            "origin": self.origin,
            "line": self.line,
            "message": str(self),
        }


class ManifestValidationError(ManifestError):
    """The merged manifest violates a post-merge rule."""

    code = "invalid_manifest"

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.message = message
        self.path = path
        prefix = f"Invalid manifest at '{path}'" if path else "Invalid manifest"
        super().__init__(f"{prefix}: {message}")

    def to_dict(self) -> dict[str, _typing.Any]:
        return {"error": self.code, "path": self.path, "message": str(self)}
