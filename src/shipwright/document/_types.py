"""
Type aliases and path helpers for the Document Model.

This module provides:
- Path: Tuple of strings representing a nested field path
- ScalarValue: The Python types a Scalar document can hold
- PathLike: Either a dotted string or an explicit Path tuple
"""

from __future__ import annotations

import typing as _typing

# Path alias for nested field paths
# Example: ("health", "port") represents health.port
Path: _typing.TypeAlias = tuple[str, ...]

# A dotted string ("health.port") or an explicit tuple
PathLike: _typing.TypeAlias = "str | Path"

ScalarValue: _typing.TypeAlias = "str | int | float | bool"

# Line registry: maps field paths to (line, column), 1-indexed
LineRegistry: _typing.TypeAlias = dict[Path, tuple[int, int]]


def to_path(path: PathLike) -> Path:
    """
    Normalize a dotted string or tuple into a Path.

    The empty string and the empty tuple both denote the document root.

    Raises:
        TypeError: If any tuple component is not a string.
    """
    if isinstance(path, str):
        return tuple(path.split(".")) if path else ()
    for component in path:
        if not isinstance(component, str):
            raise TypeError(
                f"Path components must be strings, got {type(component).__name__}"
            )
    return tuple(path)


def format_path(path: Path) -> str:
    """Render a Path as a dotted string ("<root>" for the empty path)."""
    return ".".join(path) if path else "<root>"


def is_prefix(prefix: Path, path: Path) -> bool:
    """Check whether prefix is path itself or one of its ancestors."""
    return path[: len(prefix)] == prefix
