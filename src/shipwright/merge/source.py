"""
Source identities for the five configuration layers.

A Source is one parsed configuration document tagged with the kind of layer
it came from. The kind fixes its precedence rank: the service base manifest
is the lowest, region-wide defaults the highest.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum

import shipwright.document as doc_model


class SourceKind(_enum.IntEnum):
    """The five layers, valued by precedence rank (0 = lowest)."""

    SERVICE_BASE = 0
    """services/<svc>/manifest.yml. The only layer that may set locked fields."""

    SERVICE_ENVIRONMENT = 1
    """services/<svc>/<environment>.yml."""

    SERVICE_REGION = 2
    """services/<svc>/<region>.yml."""

    GLOBAL = 3
    """global.yml, shared by every service."""

    REGION = 4
    """regions/<region>.yml, shared by every service in a region."""

    @property
    def label(self) -> str:
        """Human-readable name used in diagnostics."""
        return self.name.lower().replace("_", " ")

    @property
    def is_base(self) -> bool:
        return self is SourceKind.SERVICE_BASE


PRECEDENCE: tuple[SourceKind, ...] = tuple(sorted(SourceKind))
"""All kinds in increasing precedence order."""


@_dataclasses.dataclass(frozen=True, slots=True)
class Source:
    """
    A configuration document tagged with its layer.

    Attributes:
        kind: Which layer this is; determines precedence.
        document: Parsed content. NULL (an empty file) counts as an empty mapping.
        origin: Where the document was loaded from, for diagnostics.
    """

    kind: SourceKind
    document: doc_model.Document = doc_model.NULL
    origin: str | None = None

    @property
    def rank(self) -> int:
        return int(self.kind)

    @property
    def name(self) -> str:
        return self.origin or self.kind.label
