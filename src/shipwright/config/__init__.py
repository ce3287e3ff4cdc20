"""
Configuration module for shipwright.

Uses pydantic-settings for environment variable and shipwright.yaml loading.
"""

from shipwright.config.settings import Settings
from shipwright.config.sources import ConfigFileError, find_manifests_root

__all__ = ["ConfigFileError", "Settings", "find_manifests_root"]
