"""
Source Stack Resolver: fold the five sources into one manifest.

Sources are merged left to right, lowest precedence first:

    service base -> service/environment -> service/region -> global -> region

The accumulator is always the lower side, so every field keeps a tag of the
source that last set it and locked fields stay anchored to the service base
through the whole chain.

Resolution is fail-fast. The first conflict propagates with the field path,
both source identities, both values and, when known, the files they came
from.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import logging as _logging
import types as _types
import typing as _typing

import shipwright.constants as constants
import shipwright.document as doc_model
import shipwright.errors as errors
import shipwright.merge.engine as engine
import shipwright.merge.policy as policy
import shipwright.merge.source as merge_source

_logger = _logging.getLogger(__name__)

SourceInput = _typing.Union[
    merge_source.Source,
    doc_model.Document,
    _abc.Mapping[str, _typing.Any],
    None,
]


@_dataclasses.dataclass(frozen=True, slots=True)
class MergedManifest:
    """
    The result of resolving a service for one environment and region.

    Immutable. `provenance` maps every field path to the SourceKind that last
    set it; fields added after the merge (see manifest.implicits) map to None.
    """

    document: doc_model.Mapping
    provenance: _abc.Mapping[doc_model.Path, merge_source.SourceKind | None] = _dataclasses.field(
        default_factory=lambda: _types.MappingProxyType({})
    )

    def get(self, path: doc_model.PathLike) -> doc_model.Document | None:
        return self.document.get(path)

    def value(self, path: doc_model.PathLike, default: _typing.Any = None) -> _typing.Any:
        """Plain Python value at path, or default if absent."""
        node = self.document.get(path)
        return default if node is None else node.to_python()

    def source_of(self, path: doc_model.PathLike) -> merge_source.SourceKind | None:
        """Which source last set path (None if unset or set after the merge)."""
        return self.provenance.get(doc_model.to_path(path))

    def set(self, path: doc_model.PathLike, value: _typing.Any) -> MergedManifest:
        """Return a copy with value at path; the path and its subtree lose their provenance."""
        key = doc_model.to_path(path)
        document = self.document.set(key, value)
        assert isinstance(document, doc_model.Mapping)
        provenance = {
            existing: kind
            for existing, kind in self.provenance.items()
            if not doc_model.is_prefix(key, existing)
        }
        provenance[key] = None
        return MergedManifest(document, _types.MappingProxyType(provenance))

    def to_dict(self) -> dict[str, _typing.Any]:
        return self.document.to_python()  # type: ignore[no-any-return]

    def to_yaml(self) -> str:
        return doc_model.dump(self.document)

    def provenance_report(self, *, max_depth: int | None = None) -> dict[str, str | None]:
        """Dotted path -> source label, in document order."""
        report: dict[str, str | None] = {}
        for path, _node in self.document.walk():
            if max_depth is not None and len(path) > max_depth:
                continue
            kind = self.provenance.get(path)
            report[doc_model.format_path(path)] = kind.label if kind is not None else None
        return report


# =============================================================================
# Resolution
# =============================================================================


def resolve(
    base: SourceInput,
    env_config: SourceInput,
    region_overlay: SourceInput,
    global_config: SourceInput,
    region_config: SourceInput,
    *,
    policies: policy.FieldPolicyTable | None = None,
    required: _abc.Iterable[str] = (),
) -> MergedManifest:
    """
    Merge the five sources, given in increasing precedence order.

    Each argument is a Source, a Document, a plain mapping, or None for a
    missing layer. A Source must be of the kind its position calls for.

    Args:
        base: The service base manifest.
        env_config: Service overrides for the environment.
        region_overlay: Service overrides for the region.
        global_config: Defaults shared by every service.
        region_config: Defaults shared by every service in the region.
        policies: Field policy table (defaults to the built-in table).
        required: Fields that must be present after the merge.

    Raises:
        MalformedSource: A source is not usable (wrong kind, not a mapping,
            sets an output-only field). Raised before any merging.
        LockViolation, StructuralConflict: The first merge conflict.
        MissingRequiredField: A required field is absent after the merge.
    """
    inputs = (base, env_config, region_overlay, global_config, region_config)
    sources = [_to_source(value, kind) for value, kind in zip(inputs, merge_source.PRECEDENCE)]
    return resolve_sources(sources, policies=policies, required=required)


def resolve_sources(
    sources: _abc.Sequence[merge_source.Source],
    *,
    policies: policy.FieldPolicyTable | None = None,
    required: _abc.Iterable[str] = (),
) -> MergedManifest:
    """
    Merge an explicit list of exactly five sources, lowest precedence first.

    Raises:
        ValueError: The list does not hold one source of each kind in rank order.
        See resolve() for the merge errors.
    """
    kinds = tuple(source.kind for source in sources)
    if kinds != merge_source.PRECEDENCE:
        expected = ", ".join(kind.label for kind in merge_source.PRECEDENCE)
        got = ", ".join(kind.label for kind in kinds) or "nothing"
        raise ValueError(f"expected exactly five sources ({expected}), got: {got}")

    for source in sources:
        _check_source(source)

    merger = engine.MergeEngine(policies)
    origins = {source.kind: source.origin for source in sources}

    accumulated = engine.Layer.from_document(sources[0].document, sources[0].kind)
    for source in sources[1:]:
        _logger.debug("Folding %s source (%s)", source.kind.label, source.origin or "inline")
        try:
            accumulated = merger.merge_layers(
                accumulated,
                engine.Layer.from_document(source.document, source.kind),
            )
        except errors.MergeConflict as e:
            e.annotate_origins(origins.get(e.lower_source), origins.get(e.higher_source))
            raise

    document = accumulated.document
    assert isinstance(document, doc_model.Mapping)
    manifest = MergedManifest(document, accumulated.provenance)
    check_required(manifest, required)
    return manifest


def check_required(manifest: MergedManifest, required: _abc.Iterable[str]) -> None:
    """
    Raise MissingRequiredField for the first required field that is absent.

    A field explicitly set to null counts as absent.
    """
    for field in required:
        node = manifest.get(field)
        if node is None or node is doc_model.NULL:
            raise errors.MissingRequiredField(field)


# =============================================================================
# Source checks
# =============================================================================


def _to_source(value: SourceInput, kind: merge_source.SourceKind) -> merge_source.Source:
    if isinstance(value, merge_source.Source):
        if value.kind is not kind:
            raise errors.MalformedSource(
                f"a {value.kind.label} source was passed where the {kind.label} source belongs",
                source=value.kind,
                origin=value.origin,
            )
        return value
    if value is None:
        return merge_source.Source(kind)
    try:
        return merge_source.Source(kind, doc_model.from_python(value))
    except (TypeError, ValueError) as e:
        raise errors.MalformedSource(str(e), source=kind) from e


def _check_source(source: merge_source.Source) -> None:
    document = source.document
    if document is doc_model.NULL:
        return
    if not isinstance(document, doc_model.Mapping):
        raise errors.MalformedSource(
            f"expected a mapping at the top level, found a {document.kind}",
            source=source.kind,
            origin=source.origin,
        )
    illegal = sorted(constants.OUTPUT_FIELDS.intersection(document.keys()))
    if illegal:
        raise errors.MalformedSource(
            f"{', '.join(illegal)} cannot be set in a manifest source "
            "(filled in after the merge)",
            source=source.kind,
            origin=source.origin,
        )
