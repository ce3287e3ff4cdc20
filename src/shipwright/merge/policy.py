"""
Field Policy Table: how each manifest field merges.

Every field path reachable in a manifest has exactly one applicable policy.
Paths without an explicit entry fall back to REPLACE. The table is built and
validated once, then shared read-only by every merge.

Paths are dotted strings or tuples. A `*` segment matches any single key, so
`workers.*` would apply to every entry of a map-merged `workers` mapping.
An exact entry always wins over a wildcard one.

Validation rules (PolicyTableError on failure):
- the first segment must be a recognized, source-settable manifest field
- the locked set must be exactly constants.LOCKED_FIELDS
- nested entries must sit directly under a MAP_MERGE parent, since the
  engine never looks below a REPLACE, LOCKED or APPEND field
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import enum as _enum
import functools as _functools
import types as _types
import typing as _typing

import shipwright.constants as constants
import shipwright.document as document
import shipwright.manifest.schema as schema


class MergeMode(_enum.Enum):
    """How a higher-precedence value combines with a lower-precedence one."""

    REPLACE = "replace"
    """Higher value replaces lower wholesale, nested structure included."""

    MAP_MERGE = "map_merge"
    """Union of both mappings; higher wins on shared keys."""

    LOCKED = "locked"
    """Only the service base may set the field."""

    APPEND = "append"
    """Lower sequence followed by higher's entries not already present."""


@_dataclasses.dataclass(frozen=True, slots=True)
class FieldPolicy:
    """
    Merge behavior for one field path.

    `locked` is independent of the merge mode: a field can be map-merged
    between anonymous documents and still refuse overrides from any source
    other than the service base. MergeMode.LOCKED implies locked.
    """

    mode: MergeMode = MergeMode.REPLACE
    locked: bool = False

    @property
    def is_locked(self) -> bool:
        return self.locked or self.mode is MergeMode.LOCKED

    @property
    def value_mode(self) -> MergeMode:
        """Mode used to combine values once lock checks have passed."""
        return MergeMode.REPLACE if self.mode is MergeMode.LOCKED else self.mode

    def describe(self) -> str:
        if self.locked and self.mode is not MergeMode.LOCKED:
            return f"{self.mode.value}+locked"
        return self.mode.value


DEFAULT_POLICY = FieldPolicy()

PolicySpec: _typing.TypeAlias = "FieldPolicy | MergeMode | str"


class PolicyTableError(ValueError):
    """The policy table is inconsistent; raised at construction time."""


def _to_policy(path: document.Path, spec: PolicySpec) -> FieldPolicy:
    if isinstance(spec, FieldPolicy):
        return spec
    if isinstance(spec, MergeMode):
        return FieldPolicy(spec)
    try:
        return FieldPolicy(MergeMode(spec))
    except ValueError:
        valid = ", ".join(mode.value for mode in MergeMode)
        raise PolicyTableError(
            f"'{document.format_path(path)}': unknown merge mode {spec!r} (expected one of: {valid})"
        ) from None


def _matches(pattern: document.Path, path: document.Path) -> bool:
    return len(pattern) == len(path) and all(
        want == "*" or want == got for want, got in zip(pattern, path)
    )


class FieldPolicyTable:
    """
    Immutable mapping of field paths to FieldPolicy.

    Example:
        >>> table = default_policy_table()
        >>> table.mode_for("env")
        <MergeMode.MAP_MERGE: 'map_merge'>
        >>> table.mode_for("env.LOG_LEVEL")
        <MergeMode.REPLACE: 'replace'>
        >>> table.policy_for("name").is_locked
        True
    """

    __slots__ = ("_policies", "_wildcards")

    def __init__(
        self,
        policies: _abc.Mapping[str | document.Path, PolicySpec],
        *,
        recognized_fields: _abc.Set[str] = schema.MERGEABLE_FIELDS,
    ) -> None:
        normalized: dict[document.Path, FieldPolicy] = {}
        for raw_path, spec in policies.items():
            path = document.to_path(raw_path)
            if not path or any(not segment for segment in path):
                raise PolicyTableError(f"invalid policy path {raw_path!r}")
            if path in normalized:
                raise PolicyTableError(
                    f"'{document.format_path(path)}' is declared more than once"
                )
            normalized[path] = _to_policy(path, spec)

        self._policies = _types.MappingProxyType(normalized)
        self._wildcards = tuple(
            (path, policy) for path, policy in normalized.items() if "*" in path
        )
        self._validate(recognized_fields)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def policy_for(self, path: document.PathLike) -> FieldPolicy:
        """Return the policy for a path (REPLACE when nothing matches)."""
        key = document.to_path(path)
        exact = self._policies.get(key)
        if exact is not None:
            return exact

        best: tuple[int, FieldPolicy] | None = None
        for pattern, policy in self._wildcards:
            if _matches(pattern, key):
                wildcards = pattern.count("*")
                if best is None or wildcards < best[0]:
                    best = (wildcards, policy)
        return best[1] if best is not None else DEFAULT_POLICY

    def mode_for(self, path: document.PathLike) -> MergeMode:
        return self.policy_for(path).mode

    def is_locked(self, path: document.PathLike) -> bool:
        return self.policy_for(path).is_locked

    @property
    def locked_fields(self) -> frozenset[str]:
        return frozenset(
            document.format_path(path)
            for path, policy in self._policies.items()
            if policy.is_locked
        )

    def items(self) -> _abc.ItemsView[document.Path, FieldPolicy]:
        return self._policies.items()

    def __len__(self) -> int:
        return len(self._policies)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, tuple)):
            return False
        return document.to_path(path) in self._policies

    def __repr__(self) -> str:
        return f"FieldPolicyTable({self.to_dict()!r})"

    # -------------------------------------------------------------------------
    # Derivation
    # -------------------------------------------------------------------------

    def with_overrides(
        self,
        overrides: _abc.Mapping[str | document.Path, PolicySpec],
    ) -> FieldPolicyTable:
        """
        Return a new table with entries added or changed.

        Raises:
            PolicyTableError: If an override touches the locked set, or the
                resulting table fails validation.
        """
        merged: dict[str | document.Path, PolicySpec] = dict(self._policies)
        for raw_path, spec in overrides.items():
            path = document.to_path(raw_path)
            current = self._policies.get(path)
            policy = _to_policy(path, spec)
            if (current is not None and current.is_locked) or policy.is_locked:
                raise PolicyTableError(
                    f"'{document.format_path(path)}': the locked field set is fixed "
                    f"({', '.join(sorted(constants.LOCKED_FIELDS))}) and cannot be overridden"
                )
            merged[path] = policy
        return FieldPolicyTable(merged)

    def to_dict(self) -> dict[str, str]:
        """Dotted path -> mode name, sorted by path."""
        return {
            document.format_path(path): policy.describe()
            for path, policy in sorted(self._policies.items())
        }

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _validate(self, recognized_fields: _abc.Set[str]) -> None:
        for path, policy in self._policies.items():
            dotted = document.format_path(path)
            if path[0] == "*":
                raise PolicyTableError(f"'{dotted}': top-level wildcards are not allowed")
            if path[0] not in recognized_fields:
                raise PolicyTableError(f"'{dotted}': '{path[0]}' is not a recognized manifest field")
            if policy.is_locked and len(path) > 1:
                raise PolicyTableError(f"'{dotted}': only top-level fields can be locked")
            if len(path) > 1:
                parent = self.policy_for(path[:-1])
                if parent.value_mode is not MergeMode.MAP_MERGE:
                    raise PolicyTableError(
                        f"'{dotted}' is unreachable: parent "
                        f"'{document.format_path(path[:-1])}' is {parent.describe()}, not map_merge"
                    )

        locked = {path[0] for path, policy in self._policies.items() if policy.is_locked}
        missing = constants.LOCKED_FIELDS - locked
        if missing:
            raise PolicyTableError(f"locked fields must be declared: {', '.join(sorted(missing))}")
        extra = locked - constants.LOCKED_FIELDS
        if extra:
            raise PolicyTableError(
                f"fields cannot be locked (the locked set is closed): {', '.join(sorted(extra))}"
            )


DEFAULT_POLICIES: dict[str, MergeMode] = {
    # Locked: service base only
    "name": MergeMode.LOCKED,
    "kong": MergeMode.LOCKED,
    "regions": MergeMode.LOCKED,
    "metadata": MergeMode.LOCKED,
    # Per-key maps
    "env": MergeMode.MAP_MERGE,
    "labels": MergeMode.MAP_MERGE,
    "serviceAnnotations": MergeMode.MAP_MERGE,
    "secretFiles": MergeMode.MAP_MERGE,
    "health": MergeMode.MAP_MERGE,
    "resources": MergeMode.MAP_MERGE,
    "resources.requests": MergeMode.MAP_MERGE,
    "resources.limits": MergeMode.MAP_MERGE,
    # List extension
    "tolerations": MergeMode.APPEND,
    "hosts": MergeMode.APPEND,
    "sourceRanges": MergeMode.APPEND,
}
"""Built-in policies. Everything not listed (sidecars, rbac, volumes, ...) is REPLACE."""


@_functools.cache
def default_policy_table() -> FieldPolicyTable:
    """The built-in table, constructed and validated once per process."""
    return FieldPolicyTable(DEFAULT_POLICIES)
