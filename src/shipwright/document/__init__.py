"""
Document Model: immutable, order-preserving configuration trees.

Configuration sources are parsed into Documents (Mapping, Sequence, Scalar,
Null) before they reach the merge engine. Documents are values: edits return
new documents, so merges never share mutable state.

Example:
    >>> from shipwright.document import from_python
    >>> base = from_python({"name": "webapp", "env": {"A": "1"}})
    >>> base.get("env.A")
    Scalar('1')
    >>> base.set("env.B", "2").to_python()
    {'name': 'webapp', 'env': {'A': '1', 'B': '2'}}
"""

from shipwright.document._core import (
    NULL,
    Document,
    Mapping,
    Scalar,
    Sequence,
    from_python,
)
from shipwright.document._types import (
    LineRegistry,
    Path,
    PathLike,
    format_path,
    is_prefix,
    to_path,
)
from shipwright.document._yaml import DocumentLoadError, dump, load, loads

__all__ = [
    "NULL",
    "Document",
    "DocumentLoadError",
    "LineRegistry",
    "Mapping",
    "Path",
    "PathLike",
    "Scalar",
    "Sequence",
    "dump",
    "format_path",
    "from_python",
    "is_prefix",
    "load",
    "loads",
    "to_path",
]
