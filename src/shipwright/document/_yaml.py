"""
YAML adapter for the Document Model.

Parsing is PyYAML's job; this module only turns PyYAML's node graph into
Documents. Going through nodes (rather than the dicts SafeLoader would
build) lets us:
- keep the 1-indexed line/column of every key for diagnostics
- reject duplicate mapping keys instead of silently keeping the last one
- keep timestamps as the literal text the author wrote

Example:
    >>> doc, lines = load('''
    ... name: webapp
    ... env:
    ...   LOG_LEVEL: info
    ... ''')
    >>> doc.get("env.LOG_LEVEL")
    Scalar('info')
    >>> lines[("env", "LOG_LEVEL")]
    (4, 3)
"""

from __future__ import annotations

import datetime as _datetime
import typing as _typing

import yaml as _yaml

import shipwright.document._core as _core
import shipwright.document._types as _doc_types


class DocumentLoadError(ValueError):
    """YAML text could not be turned into a Document."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        self.message = message
        self.line = line
        location = f"line {line}: " if line is not None else ""
        super().__init__(f"{location}{message}")


class DocumentLoader(_yaml.SafeLoader):
    """
    SafeLoader that builds Documents from the composed node graph.

    Use build_document() after get_single_node(); the line registry is
    available afterwards as `line_registry`.
    """

    def __init__(self, stream: _typing.Any) -> None:
        super().__init__(stream)
        self.line_registry: _doc_types.LineRegistry = {}
        self._building: set[int] = set()

    def build_document(self, node: _yaml.Node | None) -> _core.Document:
        """Build a Document for the root node (None for an empty stream)."""
        if node is None:
            return _core.NULL
        self.line_registry[()] = (node.start_mark.line + 1, node.start_mark.column + 1)
        return self._build(node, ())

    def _build(self, node: _yaml.Node, path: _doc_types.Path) -> _core.Document:
        if id(node) in self._building:
            raise DocumentLoadError(
                f"recursive alias at '{_doc_types.format_path(path)}'",
                line=node.start_mark.line + 1,
            )
        self._building.add(id(node))
        try:
            if isinstance(node, _yaml.MappingNode):
                return self._build_mapping(node, path)
            if isinstance(node, _yaml.SequenceNode):
                return _core.Sequence(self._build(item, path) for item in node.value)
            return self._build_scalar(node)
        finally:
            self._building.discard(id(node))

    def _build_mapping(self, node: _yaml.MappingNode, path: _doc_types.Path) -> _core.Mapping:
        # Resolve "<<" merge keys into plain entries first
        self.flatten_mapping(node)

        entries: dict[str, _core.Document] = {}
        for key_node, value_node in node.value:
            key = self.construct_object(key_node, deep=True)
            line = key_node.start_mark.line + 1
            if not isinstance(key, str):
                raise DocumentLoadError(
                    f"mapping keys must be strings, got {type(key).__name__} {key!r}",
                    line=line,
                )
            if key in entries:
                raise DocumentLoadError(
                    f"duplicate key '{_doc_types.format_path(path + (key,))}'",
                    line=line,
                )
            key_path = path + (key,)
            self.line_registry[key_path] = (line, key_node.start_mark.column + 1)
            entries[key] = self._build(value_node, key_path)
        return _core.Mapping(entries)

    def _build_scalar(self, node: _yaml.Node) -> _core.Document:
        value = self.construct_object(node, deep=True)
        if value is None:
            return _core.NULL
        if isinstance(value, (_datetime.date, _datetime.datetime)):
            return _core.Scalar(str(node.value))
        if isinstance(value, (str, int, float, bool)):
            return _core.Scalar(value)
        raise DocumentLoadError(
            f"unsupported scalar type {type(value).__name__}",
            line=node.start_mark.line + 1,
        )


def load(stream: _typing.Any) -> tuple[_core.Document, _doc_types.LineRegistry]:
    """
    Parse YAML into a Document and a line registry.

    Args:
        stream: YAML content (string, bytes, or file-like object).

    Returns:
        Tuple of (document, line_registry). An empty stream yields NULL.

    Raises:
        DocumentLoadError: On YAML syntax errors, duplicate or non-string
            keys, or unsupported scalar types.
    """
    loader = DocumentLoader(stream)
    try:
        try:
            document = loader.build_document(loader.get_single_node())
        except _yaml.MarkedYAMLError as e:
            line = e.problem_mark.line + 1 if e.problem_mark is not None else None
            raise DocumentLoadError(f"invalid YAML: {e.problem or e}", line=line) from e
        except _yaml.YAMLError as e:
            raise DocumentLoadError(f"invalid YAML: {e}") from e
    finally:
        loader.dispose()
    return document, loader.line_registry


def loads(stream: _typing.Any) -> _core.Document:
    """Parse YAML into a Document, discarding line information."""
    document, _lines = load(stream)
    return document


def dump(document: _core.Document) -> str:
    """Serialize a Document to YAML, keeping mapping insertion order."""
    return _yaml.safe_dump(
        document.to_python(),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
