"""Tests for the Document Model (Mapping, Sequence, Scalar, NULL)."""

import pickle as _pickle

import pytest as _pytest

import shipwright.document as doc_model
import shipwright.errors as errors


class TestConstruction:
    """Building documents from variants and from plain Python data."""

    def test_from_python_builds_each_variant(self) -> None:
        """dict, list, scalars and None map onto the four variants."""
        document = doc_model.from_python(
            {"name": "webapp", "ports": [80, 443], "debug": False, "chart": None}
        )

        assert isinstance(document, doc_model.Mapping)
        assert isinstance(document["ports"], doc_model.Sequence)
        assert document["name"] == doc_model.Scalar("webapp")
        assert document["chart"] is doc_model.NULL

    def test_round_trip_preserves_key_order(self) -> None:
        """to_python() returns keys in insertion order."""
        data = {"zeta": 1, "alpha": 2, "mid": {"b": 1, "a": 2}}

        result = doc_model.from_python(data).to_python()

        assert list(result) == ["zeta", "alpha", "mid"]
        assert list(result["mid"]) == ["b", "a"]

    def test_non_string_keys_rejected(self) -> None:
        """Mapping keys must be strings."""
        with _pytest.raises(TypeError, match="keys must be strings"):
            doc_model.from_python({1: "one"})

    def test_duplicate_keys_rejected(self) -> None:
        """A Mapping cannot be built with the same key twice."""
        with _pytest.raises(ValueError, match="Duplicate"):
            doc_model.Mapping([("a", doc_model.NULL), ("a", doc_model.NULL)])

    def test_unsupported_leaf_rejected(self) -> None:
        """Objects other than str/int/float/bool/None are not scalars."""
        with _pytest.raises(TypeError):
            doc_model.from_python({"when": object()})

    def test_documents_pass_through(self) -> None:
        """from_python() returns Documents unchanged."""
        scalar = doc_model.Scalar("x")
        assert doc_model.from_python(scalar) is scalar

    def test_null_is_singleton(self) -> None:
        """NULL survives pickling as the same object."""
        assert _pickle.loads(_pickle.dumps(doc_model.NULL)) is doc_model.NULL


class TestImmutability:
    """Documents never change after construction."""

    def test_attributes_cannot_be_set(self) -> None:
        """Assigning attributes raises AttributeError."""
        scalar = doc_model.Scalar(1)
        with _pytest.raises(AttributeError):
            scalar._value = 2  # type: ignore[misc]

    def test_set_returns_new_document(self) -> None:
        """set() leaves the original untouched."""
        original = doc_model.from_python({"env": {"A": "1"}})

        updated = original.set("env.B", "2")

        assert original.to_python() == {"env": {"A": "1"}}
        assert updated.to_python() == {"env": {"A": "1", "B": "2"}}

    def test_unchanged_subtrees_are_shared(self) -> None:
        """Edits only rebuild the path that changed."""
        original = doc_model.from_python({"env": {"A": "1"}, "labels": {"x": "y"}})

        updated = original.set("env.B", "2")

        assert updated["labels"] is original["labels"]


class TestPathAccess:
    """get(), has(), set() and delete() over nested paths."""

    def test_get_dotted_and_tuple_paths(self) -> None:
        """Dotted strings and tuples address the same node."""
        document = doc_model.from_python({"health": {"port": 8080}})

        assert document.get("health.port") == doc_model.Scalar(8080)
        assert document.get(("health", "port")) == doc_model.Scalar(8080)

    def test_get_missing_returns_none(self) -> None:
        """A missing key yields None rather than raising."""
        document = doc_model.from_python({"health": {"port": 8080}})

        assert document.get("health.uri") is None
        assert document.get("nope.deeper") is None

    def test_get_through_scalar_returns_none(self) -> None:
        """Traversing into a scalar is a miss, not an error."""
        document = doc_model.from_python({"image": "nginx"})

        assert document.get("image.tag") is None

    def test_get_empty_path_is_root(self) -> None:
        """The empty path denotes the document itself."""
        document = doc_model.from_python({"a": 1})
        assert document.get("") is document

    def test_has_distinguishes_null_from_missing(self) -> None:
        """A key explicitly set to null is present."""
        document = doc_model.from_python({"chart": None})

        assert document.has("chart")
        assert not document.has("image")

    def test_set_creates_intermediate_mappings(self) -> None:
        """Missing parents are created as empty mappings."""
        document = doc_model.from_python({}).set("resources.limits.cpu", "1")

        assert document.to_python() == {"resources": {"limits": {"cpu": "1"}}}

    def test_set_through_null_creates_mapping(self) -> None:
        """A null parent is replaced by a mapping."""
        document = doc_model.from_python({"health": None}).set("health.uri", "/health")

        assert document.to_python() == {"health": {"uri": "/health"}}

    def test_set_keeps_key_position(self) -> None:
        """Overwriting an existing key does not move it."""
        document = doc_model.from_python({"a": 1, "b": 2, "c": 3}).set("b", 20)

        assert list(document.to_python()) == ["a", "b", "c"]

    def test_set_through_scalar_is_structural_conflict(self) -> None:
        """No implicit coercion of a scalar into a mapping."""
        document = doc_model.from_python({"image": "nginx"})

        with _pytest.raises(errors.StructuralConflict) as exc_info:
            document.set("image.tag", "1.0")

        assert exc_info.value.path == ("image",)

    def test_set_through_sequence_is_structural_conflict(self) -> None:
        """Sequences have no field paths."""
        document = doc_model.from_python({"ports": [80]})

        with _pytest.raises(errors.StructuralConflict):
            document.set("ports.http", 80)

    def test_delete_removes_key(self) -> None:
        """delete() drops the key and keeps the rest."""
        document = doc_model.from_python({"env": {"A": "1", "B": "2"}})

        assert document.delete("env.A").to_python() == {"env": {"B": "2"}}

    def test_delete_missing_is_noop(self) -> None:
        """Deleting a path that does not exist returns the same document."""
        document = doc_model.from_python({"env": {"A": "1"}})

        assert document.delete("env.Z") is document

    def test_walk_yields_field_paths(self) -> None:
        """walk() recurses through mappings and treats sequences as leaves."""
        document = doc_model.from_python({"health": {"uri": "/h"}, "ports": [{"name": "http"}]})

        paths = [path for path, _node in document.walk()]

        assert paths == [("health",), ("health", "uri"), ("ports",)]


class TestEquality:
    """Structural equality rules."""

    def test_mapping_equality_ignores_key_order(self) -> None:
        """Mappings with the same entries are equal whatever their order."""
        first = doc_model.from_python({"a": 1, "b": 2})
        second = doc_model.from_python({"b": 2, "a": 1})

        assert first == second
        assert hash(first) == hash(second)

    def test_sequence_equality_is_order_sensitive(self) -> None:
        """[1, 2] != [2, 1]."""
        assert doc_model.from_python([1, 2]) != doc_model.from_python([2, 1])

    def test_bool_never_equals_number(self) -> None:
        """True and 1 are different values."""
        assert doc_model.Scalar(True) != doc_model.Scalar(1)
        assert doc_model.Scalar(False) != doc_model.Scalar(0)

    def test_int_equals_float(self) -> None:
        """Numbers compare numerically."""
        assert doc_model.Scalar(1) == doc_model.Scalar(1.0)

    def test_string_never_equals_number(self) -> None:
        """'1' and 1 are different values."""
        assert doc_model.Scalar("1") != doc_model.Scalar(1)

    def test_documents_are_hashable(self) -> None:
        """Documents can be used in sets (needed for append de-duplication)."""
        items = {doc_model.from_python({"key": "a"}), doc_model.from_python({"key": "a"})}
        assert len(items) == 1

    def test_null_is_falsy_and_equal_to_itself(self) -> None:
        """NULL behaves like None in boolean context."""
        assert not doc_model.NULL
        assert doc_model.NULL == doc_model.from_python(None)


class TestPaths:
    """Path helpers."""

    def test_to_path_splits_dots(self) -> None:
        """Dotted strings become tuples."""
        assert doc_model.to_path("a.b.c") == ("a", "b", "c")
        assert doc_model.to_path("") == ()

    def test_to_path_rejects_non_string_components(self) -> None:
        """Tuple components must be strings."""
        with _pytest.raises(TypeError):
            doc_model.to_path(("a", 1))  # type: ignore[arg-type]

    def test_format_path(self) -> None:
        """The empty path renders as <root>."""
        assert doc_model.format_path(("env", "A")) == "env.A"
        assert doc_model.format_path(()) == "<root>"

    def test_is_prefix(self) -> None:
        """A path is a prefix of itself and of its descendants."""
        assert doc_model.is_prefix(("env",), ("env", "A"))
        assert doc_model.is_prefix(("env",), ("env",))
        assert not doc_model.is_prefix(("env",), ("envelope",))
