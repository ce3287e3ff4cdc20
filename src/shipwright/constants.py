"""
Shared constants for shipwright.

This module provides a single source of truth for names and defaults
that are used across multiple modules.
"""

import re as _re

# Manifest repository layout
SERVICES_DIR = "services"
"""Directory (under the manifests root) holding one folder per service."""

BASE_MANIFEST_FILE = "manifest.yml"
"""Service base manifest filename inside a service folder."""

GLOBAL_CONFIG_FILE = "global.yml"
"""Global defaults, shared by every service and region."""

REGIONS_DIR = "regions"
"""Directory holding one <region>.yml of region-wide defaults."""

SETTINGS_FILE = "shipwright.yaml"
"""Optional tool settings file at the manifests root."""

# Locked fields
LOCKED_FIELDS = frozenset({"name", "kong", "regions", "metadata"})
"""Fields only the service base manifest may set. Closed set, not configurable."""

# Fields computed after the merge; sources may not set them
OUTPUT_FIELDS = frozenset({"region", "environment", "namespace", "secrets"})
"""Fields filled in by implicits after the merge."""

DEFAULT_REQUIRED_FIELDS = ("name", "image", "regions", "metadata", "resources")
"""Fields that must be present once all sources are merged."""

# Verification
SERVICE_NAME_PATTERN = _re.compile(r"^[0-9a-z\-]{1,50}$")
"""Short, lower case, dash separated names (kube dns leaves 13 chars of suffix)."""
