"""
Document: an immutable, order-preserving configuration tree.

A Document is one of four variants:
- Mapping: ordered str -> Document, keys unique
- Sequence: ordered list of Documents
- Scalar: str, int, float or bool
- Null: the absence of a value (a singleton)

Documents are values. They never change after construction; every edit
(set, delete) returns a new Document and shares unchanged subtrees with the
original. This makes them safe to share between concurrent merges.

Equality is structural. Sequences compare order-sensitively. Mappings
compare by key/value content regardless of key order, but keep insertion
order for iteration and serialization. Booleans never equal numbers.

Example:
    >>> doc = from_python({"health": {"uri": "/health"}})
    >>> doc.get("health.uri")
    Scalar('/health')
    >>> doc.set("health.port", 8080).to_python()
    {'health': {'uri': '/health', 'port': 8080}}
"""

from __future__ import annotations

import collections.abc as _abc
import types as _types
import typing as _typing

import shipwright.document._types as _doc_types
import shipwright.errors as errors


class Document:
    """Base class for all document variants."""

    __slots__ = ()

    kind: _typing.ClassVar[str] = "document"

    def __setattr__(self, name: str, value: _typing.Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    # -------------------------------------------------------------------------
    # Path access
    # -------------------------------------------------------------------------

    def get(self, path: _doc_types.PathLike) -> Document | None:
        """
        Look up the document at a nested path.

        Args:
            path: Dotted string ("health.port") or tuple of keys.

        Returns:
            The document at path, or None if any component is missing or
            a non-mapping is encountered along the way.
        """
        node: Document = self
        for key in _doc_types.to_path(path):
            if not isinstance(node, Mapping) or key not in node:
                return None
            node = node[key]
        return node

    def has(self, path: _doc_types.PathLike) -> bool:
        """Check whether a path is present."""
        return self.get(path) is not None

    def set(self, path: _doc_types.PathLike, value: _typing.Any) -> Document:
        """
        Return a new document with value placed at path.

        Intermediate mappings are created as needed; a Null intermediate is
        treated as an empty mapping. Plain Python values are converted with
        from_python().

        Raises:
            StructuralConflict: If a path component resolves to a scalar or
                sequence (no implicit coercion).
        """
        keys = _doc_types.to_path(path)
        new_value = from_python(value)
        if not keys:
            return new_value
        return _set_in(self, keys, new_value, ())

    def delete(self, path: _doc_types.PathLike) -> Document:
        """
        Return a new document with the key at path removed.

        Missing paths leave the document unchanged.
        """
        keys = _doc_types.to_path(path)
        if not keys:
            return NULL
        return _delete_in(self, keys)

    def walk(self, prefix: _doc_types.Path = ()) -> _typing.Iterator[tuple[_doc_types.Path, Document]]:
        """
        Yield (path, document) for every field path below this node.

        Field paths are mapping keys, followed recursively through nested
        mappings. Sequences are leaves: their items have no field path.
        """
        return iter(())

    def to_python(self) -> _typing.Any:
        """Convert to plain Python containers (dict, list, scalars, None)."""
        raise NotImplementedError


class _NullType(Document):
    """The Null variant. Use the NULL singleton."""

    __slots__ = ()

    kind = "null"
    _instance: _typing.ClassVar[_NullType | None] = None

    def __new__(cls) -> _NullType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __reduce__(self) -> tuple[_typing.Callable[[], _NullType], tuple[()]]:
        return (_get_null_singleton, ())

    def __repr__(self) -> str:
        return "NULL"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _NullType)

    def __hash__(self) -> int:
        return hash("shipwright.document.NULL")

    def __bool__(self) -> bool:
        return False

    def to_python(self) -> None:
        return None


def _get_null_singleton() -> _NullType:
    """Return the NULL singleton. Used by pickle."""
    return NULL


NULL = _NullType()


class Scalar(Document):
    """A leaf value: str, int, float or bool."""

    __slots__ = ("_value",)

    kind = "scalar"

    def __init__(self, value: _doc_types.ScalarValue) -> None:
        if not isinstance(value, (str, int, float, bool)):
            raise TypeError(
                f"Scalar value must be str, int, float or bool, got {type(value).__name__}"
            )
        object.__setattr__(self, "_value", value)

    @property
    def value(self) -> _doc_types.ScalarValue:
        """The wrapped Python value."""
        return self._value  # type: ignore[no-any-return]

    def _identity(self) -> tuple[str, _doc_types.ScalarValue]:
        # bool is an int subclass; keep it in its own class so True != 1
        if isinstance(self._value, bool):
            return ("bool", self._value)
        if isinstance(self._value, (int, float)):
            return ("number", self._value)
        return ("str", self._value)

    def __repr__(self) -> str:
        return f"Scalar({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Scalar):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(("scalar",) + self._identity())

    def to_python(self) -> _doc_types.ScalarValue:
        return self._value  # type: ignore[no-any-return]


class Sequence(Document):
    """An ordered list of documents."""

    __slots__ = ("_items",)

    kind = "sequence"

    def __init__(self, items: _typing.Iterable[Document] = ()) -> None:
        checked = tuple(items)
        for item in checked:
            if not isinstance(item, Document):
                raise TypeError(
                    f"Sequence items must be Documents, got {type(item).__name__}"
                )
        object.__setattr__(self, "_items", checked)

    @property
    def items(self) -> tuple[Document, ...]:
        """The items as a tuple."""
        return self._items  # type: ignore[no-any-return]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> _typing.Iterator[Document]:
        return iter(self._items)

    def __getitem__(self, index: int) -> Document:
        return self._items[index]  # type: ignore[no-any-return]

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __repr__(self) -> str:
        return f"Sequence({self.to_python()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sequence):
            return NotImplemented
        return bool(self._items == other._items)

    def __hash__(self) -> int:
        return hash(("sequence", self._items))

    def to_python(self) -> list[_typing.Any]:
        return [item.to_python() for item in self._items]


class Mapping(Document):
    """An ordered mapping of unique string keys to documents."""

    __slots__ = ("_data",)

    kind = "mapping"

    def __init__(
        self,
        entries: _abc.Mapping[str, Document]
        | Mapping
        | _typing.Iterable[tuple[str, Document]] = (),
    ) -> None:
        pairs: _typing.Iterable[tuple[str, Document]]
        if isinstance(entries, (_abc.Mapping, Mapping)):
            pairs = entries.items()
        else:
            pairs = entries

        data: dict[str, Document] = {}
        for key, value in pairs:
            if not isinstance(key, str):
                raise TypeError(f"Mapping keys must be strings, got {type(key).__name__}")
            if key in data:
                raise ValueError(f"Duplicate mapping key: {key!r}")
            if not isinstance(value, Document):
                raise TypeError(
                    f"Mapping values must be Documents, got {type(value).__name__} for {key!r}"
                )
            data[key] = value
        object.__setattr__(self, "_data", _types.MappingProxyType(data))

    def __getitem__(self, key: str) -> Document:
        return self._data[key]  # type: ignore[no-any-return]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def keys(self) -> _abc.KeysView[str]:
        return self._data.keys()  # type: ignore[no-any-return]

    def values(self) -> _abc.ValuesView[Document]:
        return self._data.values()  # type: ignore[no-any-return]

    def items(self) -> _abc.ItemsView[str, Document]:
        return self._data.items()  # type: ignore[no-any-return]

    def with_item(self, key: str, value: Document) -> Mapping:
        """Return a copy with key set; existing keys keep their position."""
        data = dict(self._data)
        data[key] = value
        return Mapping(data)

    def without(self, key: str) -> Mapping:
        """Return a copy with key removed (unchanged if absent)."""
        if key not in self._data:
            return self
        return Mapping((k, v) for k, v in self._data.items() if k != key)

    def __repr__(self) -> str:
        return f"Mapping({self.to_python()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        return dict(self._data) == dict(other._data)

    def __hash__(self) -> int:
        return hash(("mapping", frozenset(self._data.items())))

    def walk(self, prefix: _doc_types.Path = ()) -> _typing.Iterator[tuple[_doc_types.Path, Document]]:
        for key, value in self._data.items():
            path = prefix + (key,)
            yield path, value
            yield from value.walk(path)

    def to_python(self) -> dict[str, _typing.Any]:
        return {key: value.to_python() for key, value in self._data.items()}


# =============================================================================
# Conversion
# =============================================================================


def from_python(value: _typing.Any) -> Document:
    """
    Build a Document from plain Python data.

    - None -> NULL
    - str, int, float, bool -> Scalar
    - dict / Mapping -> Mapping (keys must be strings)
    - list / tuple -> Sequence
    - Documents are returned unchanged

    Raises:
        TypeError: For unsupported types or non-string mapping keys.
    """
    if isinstance(value, Document):
        return value
    if value is None:
        return NULL
    if isinstance(value, (str, int, float, bool)):
        return Scalar(value)
    if isinstance(value, _abc.Mapping):
        return Mapping((key, from_python(item)) for key, item in value.items())
    if isinstance(value, (list, tuple)):
        return Sequence(from_python(item) for item in value)
    raise TypeError(f"Cannot convert {type(value).__name__} to a Document")


def _set_in(
    node: Document,
    keys: _doc_types.Path,
    value: Document,
    walked: _doc_types.Path,
) -> Document:
    if node is NULL:
        node = Mapping()
    if not isinstance(node, Mapping):
        raise errors.StructuralConflict(
            walked,
            f"cannot set '{_doc_types.format_path(walked + keys)}': "
            f"expected a mapping at '{_doc_types.format_path(walked)}', found a {node.kind}",
            lower_value=node,
        )

    key = keys[0]
    if len(keys) == 1:
        return node.with_item(key, value)

    child = node[key] if key in node else Mapping()
    return node.with_item(key, _set_in(child, keys[1:], value, walked + (key,)))


def _delete_in(node: Document, keys: _doc_types.Path) -> Document:
    if not isinstance(node, Mapping) or keys[0] not in node:
        return node
    key = keys[0]
    if len(keys) == 1:
        return node.without(key)
    child = node[key]
    updated = _delete_in(child, keys[1:])
    if updated is child:
        return node
    return node.with_item(key, updated)
