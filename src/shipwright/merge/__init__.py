"""
Manifest merge: field policies, the pairwise merge engine and the
five-source resolver.
"""

from shipwright.merge.engine import Layer, MergeEngine, merge
from shipwright.merge.policy import (
    DEFAULT_POLICIES,
    FieldPolicy,
    FieldPolicyTable,
    MergeMode,
    PolicyTableError,
    default_policy_table,
)
from shipwright.merge.resolver import MergedManifest, check_required, resolve, resolve_sources
from shipwright.merge.source import PRECEDENCE, Source, SourceKind

__all__ = [
    "DEFAULT_POLICIES",
    "FieldPolicy",
    "FieldPolicyTable",
    "Layer",
    "MergeEngine",
    "MergeMode",
    "MergedManifest",
    "PRECEDENCE",
    "PolicyTableError",
    "Source",
    "SourceKind",
    "check_required",
    "default_policy_table",
    "merge",
    "resolve",
    "resolve_sources",
]
