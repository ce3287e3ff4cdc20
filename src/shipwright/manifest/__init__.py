"""
Manifest schema, implicits and post-merge verification.

Only the schema is re-exported here: it is needed while the field policy
table is built, before the merge package has finished importing. Import
`shipwright.manifest.implicits` and `shipwright.manifest.verify` directly.
"""

from shipwright.manifest.schema import (
    MERGEABLE_FIELDS,
    RECOGNIZED_FIELDS,
    ManifestModel,
    ManifestSection,
)

__all__ = ["MERGEABLE_FIELDS", "RECOGNIZED_FIELDS", "ManifestModel", "ManifestSection"]
