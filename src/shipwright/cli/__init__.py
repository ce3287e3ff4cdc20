"""
CLI module for shipwright.

Provides the command-line interface using Click.
"""

from shipwright.cli.main import cli, main

__all__ = ["main", "cli"]
