"""
Merge Engine: combine a lower- and a higher-precedence document.

The engine walks the union of field paths of both inputs, consulting the
Field Policy Table at every path it reaches:

- path only in lower: carried unchanged
- path only in higher: carried, unless it is locked and higher is not the
  service base
- path in both: REPLACE takes higher wholesale, MAP_MERGE recurses key by
  key, APPEND extends lower's sequence with higher's new entries, and a
  locked field keeps the base value

Higher's keys are visited first so conflicts are reported in override order.
The result keeps lower's key order, followed by keys only higher has.

Each side is a Layer: a document plus a provenance tag per field path (the
SourceKind that last set it, or None for an anonymous document). Locked
fields are checked against these tags.

The engine fails fast: the first conflict raises and nothing is returned.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import logging as _logging
import types as _types

import shipwright.document as doc_model
import shipwright.errors as errors
import shipwright.merge.policy as policy
import shipwright.merge.source as merge_source

_logger = _logging.getLogger(__name__)

Provenance = _abc.Mapping[doc_model.Path, merge_source.SourceKind | None]


@_dataclasses.dataclass(frozen=True, slots=True)
class Layer:
    """
    A document with per-field provenance.

    Attributes:
        document: The (partially) merged document.
        provenance: Field path -> SourceKind that last set it (None if unknown).
        source: The most recent source folded into this layer.
    """

    document: doc_model.Document
    provenance: Provenance = _dataclasses.field(
        default_factory=lambda: _types.MappingProxyType({})
    )
    source: merge_source.SourceKind | None = None

    @classmethod
    def from_document(
        cls,
        document: doc_model.Document,
        kind: merge_source.SourceKind | None = None,
    ) -> Layer:
        """Tag every field path of document with kind. A Null root becomes {}."""
        if document is doc_model.NULL:
            document = doc_model.Mapping()
        tags = {path: kind for path, _node in document.walk()}
        return cls(document, _types.MappingProxyType(tags), kind)

    def source_at(self, path: doc_model.Path) -> merge_source.SourceKind | None:
        if not path:
            return self.source
        return self.provenance.get(path, self.source)


class MergeEngine:
    """
    Pairwise merge driven by a FieldPolicyTable.

    The engine holds no per-merge state and can be shared between threads.

    Example:
        >>> engine = MergeEngine()
        >>> base = Layer.from_document(from_python({"env": {"A": "1"}}), SourceKind.SERVICE_BASE)
        >>> env = Layer.from_document(from_python({"env": {"B": "2"}}), SourceKind.SERVICE_ENVIRONMENT)
        >>> engine.merge_layers(base, env).document.to_python()
        {'env': {'A': '1', 'B': '2'}}
    """

    def __init__(self, policies: policy.FieldPolicyTable | None = None) -> None:
        self._policies = policies if policies is not None else policy.default_policy_table()

    @property
    def policies(self) -> policy.FieldPolicyTable:
        return self._policies

    def merge_layers(self, lower: Layer, higher: Layer) -> Layer:
        """
        Merge higher onto lower.

        Raises:
            LockViolation: higher sets a locked field it may not set.
            StructuralConflict: the two sides disagree on a value's variant
                where the policy needs them to agree.
        """
        run = _MergeRun(self._policies, lower, higher)
        lower_root = _as_root(lower, "lower")
        higher_root = _as_root(higher, "higher")
        document = run.merge_mapping(lower_root, higher_root, ())
        _logger.debug(
            "Merged %s onto %s (%d fields)",
            _describe(higher.source),
            _describe(lower.source),
            len(run.provenance),
        )
        return Layer(
            document,
            _types.MappingProxyType(run.provenance),
            higher.source if higher.source is not None else lower.source,
        )

    def merge(self, lower: doc_model.Document, higher: doc_model.Document) -> doc_model.Document:
        """Merge two anonymous documents; see merge()."""
        return self.merge_layers(Layer.from_document(lower), Layer.from_document(higher)).document


def merge(
    lower: doc_model.Document,
    higher: doc_model.Document,
    policies: policy.FieldPolicyTable | None = None,
) -> doc_model.Document:
    """
    Merge two documents, higher taking precedence.

    Neither side carries a source identity, so lower is taken to hold the
    base value of any locked field: higher may repeat it but not change it.

    Example:
        >>> lower = from_python({"env": {"A": "1", "B": "2"}})
        >>> higher = from_python({"env": {"B": "3", "C": "4"}})
        >>> merge(lower, higher).to_python()
        {'env': {'A': '1', 'B': '3', 'C': '4'}}
    """
    return MergeEngine(policies).merge(lower, higher)


# =============================================================================
# Implementation
# =============================================================================


def _describe(kind: merge_source.SourceKind | None) -> str:
    return kind.label if kind is not None else "anonymous document"


def _as_root(layer: Layer, side: str) -> doc_model.Mapping:
    document = layer.document
    if document is doc_model.NULL:
        return doc_model.Mapping()
    if not isinstance(document, doc_model.Mapping):
        kwargs = {f"{side}_source": layer.source, f"{side}_value": document}
        raise errors.StructuralConflict(
            (),
            f"a manifest must be a mapping, {side} side is a {document.kind}",
            **kwargs,
        )
    return document


class _MergeRun:
    """State for one merge_layers() call: the two inputs and the provenance being built."""

    __slots__ = ("_policies", "_lower", "_higher", "provenance")

    def __init__(self, policies: policy.FieldPolicyTable, lower: Layer, higher: Layer) -> None:
        self._policies = policies
        self._lower = lower
        self._higher = higher
        self.provenance: dict[doc_model.Path, merge_source.SourceKind | None] = {}

    # -------------------------------------------------------------------------
    # Provenance
    # -------------------------------------------------------------------------

    def _carry(self, layer: Layer, path: doc_model.Path, value: doc_model.Document) -> doc_model.Document:
        """Take value from layer as-is, copying provenance for its whole subtree."""
        self.provenance[path] = layer.source_at(path)
        for sub_path, _node in value.walk(path):
            self.provenance[sub_path] = layer.source_at(sub_path)
        return value

    # -------------------------------------------------------------------------
    # Conflicts
    # -------------------------------------------------------------------------

    def _conflict(
        self,
        error_type: type[errors.MergeConflict],
        path: doc_model.Path,
        description: str,
        lower_value: doc_model.Document | None,
        higher_value: doc_model.Document | None,
    ) -> errors.MergeConflict:
        # A path lower never set has no lower source
        return error_type(
            path,
            description,
            lower_source=self._lower.source_at(path) if lower_value is not None else None,
            higher_source=self._higher.source_at(path),
            lower_value=lower_value,
            higher_value=higher_value,
        )

    def _check_lock(
        self,
        path: doc_model.Path,
        lower_value: doc_model.Document | None,
        higher_value: doc_model.Document,
    ) -> None:
        higher_source = self._higher.source_at(path)
        if higher_source is not None and not higher_source.is_base:
            raise self._conflict(
                errors.LockViolation,
                path,
                f"'{doc_model.format_path(path)}' is locked and may only be set "
                f"in the service base manifest, not the {higher_source.label} source",
                lower_value,
                higher_value,
            )
        if lower_value is not None and lower_value != higher_value:
            raise self._conflict(
                errors.LockViolation,
                path,
                f"'{doc_model.format_path(path)}' is locked; the base value cannot be changed",
                lower_value,
                higher_value,
            )

    # -------------------------------------------------------------------------
    # Merging
    # -------------------------------------------------------------------------

    def merge_mapping(
        self,
        lower: doc_model.Mapping,
        higher: doc_model.Mapping,
        path: doc_model.Path,
    ) -> doc_model.Mapping:
        merged: dict[str, doc_model.Document] = {}
        for key, higher_value in higher.items():
            child = path + (key,)
            if key in lower:
                merged[key] = self._merge_shared(child, lower[key], higher_value)
            else:
                merged[key] = self._merge_higher_only(child, higher_value)

        entries: list[tuple[str, doc_model.Document]] = []
        for key, lower_value in lower.items():
            if key in merged:
                entries.append((key, merged[key]))
            else:
                entries.append((key, self._carry(self._lower, path + (key,), lower_value)))
        entries.extend((key, value) for key, value in merged.items() if key not in lower)
        return doc_model.Mapping(entries)

    def _merge_higher_only(self, path: doc_model.Path, value: doc_model.Document) -> doc_model.Document:
        if self._policies.is_locked(path):
            self._check_lock(path, None, value)
        return self._carry(self._higher, path, value)

    def _merge_shared(
        self,
        path: doc_model.Path,
        lower: doc_model.Document,
        higher: doc_model.Document,
    ) -> doc_model.Document:
        field_policy = self._policies.policy_for(path)

        if field_policy.is_locked:
            self._check_lock(path, lower, higher)
            return self._carry(self._lower, path, lower)

        mode = field_policy.value_mode
        if mode is policy.MergeMode.MAP_MERGE:
            if not isinstance(lower, doc_model.Mapping) or not isinstance(higher, doc_model.Mapping):
                raise self._conflict(
                    errors.StructuralConflict,
                    path,
                    f"map_merge field expects a mapping on both sides, "
                    f"got {lower.kind} (lower) and {higher.kind} (higher)",
                    lower,
                    higher,
                )
            self.provenance[path] = self._higher.source_at(path)
            return self.merge_mapping(lower, higher, path)

        if mode is policy.MergeMode.APPEND:
            if not isinstance(lower, doc_model.Sequence) or not isinstance(higher, doc_model.Sequence):
                raise self._conflict(
                    errors.StructuralConflict,
                    path,
                    f"append field expects a sequence on both sides, "
                    f"got {lower.kind} (lower) and {higher.kind} (higher)",
                    lower,
                    higher,
                )
            self.provenance[path] = self._higher.source_at(path)
            return _append_unique(lower, higher)

        return self._carry(self._higher, path, higher)


def _append_unique(lower: doc_model.Sequence, higher: doc_model.Sequence) -> doc_model.Sequence:
    """Lower's items then higher's, keeping only the first occurrence of each value."""
    seen: set[doc_model.Document] = set()
    items: list[doc_model.Document] = []
    for item in (*lower, *higher):
        if item not in seen:
            seen.add(item)
            items.append(item)
    return doc_model.Sequence(items)
