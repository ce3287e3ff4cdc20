"""
Shipwright - layered service manifest merging

Builds the final manifest for a service in one environment and region by
merging five configuration sources under per-field merge policies.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("shipwright")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)

from shipwright.document import Document, from_python  # noqa: E402
from shipwright.errors import (  # noqa: E402
    LockViolation,
    MalformedSource,
    ManifestError,
    ManifestValidationError,
    MergeConflict,
    MissingRequiredField,
    StructuralConflict,
)
from shipwright.merge import (  # noqa: E402
    FieldPolicyTable,
    MergedManifest,
    MergeMode,
    Source,
    SourceKind,
    resolve,
)

__all__ = [
    "__version__",
    "__version_info__",
    "Document",
    "FieldPolicyTable",
    "LockViolation",
    "MalformedSource",
    "ManifestError",
    "ManifestValidationError",
    "MergeConflict",
    "MergeMode",
    "MergedManifest",
    "MissingRequiredField",
    "Source",
    "SourceKind",
    "StructuralConflict",
    "from_python",
    "resolve",
]
