"""Tests for the pairwise Merge Engine."""

import pytest as _pytest

import shipwright.document as doc_model
import shipwright.errors as errors
import shipwright.merge.engine as engine
import shipwright.merge.policy as policy
import shipwright.merge.source as merge_source
import tests.conftest as conftest

doc = conftest.doc
SourceKind = merge_source.SourceKind


def _layer(data: object, kind: SourceKind | None) -> engine.Layer:
    return engine.Layer.from_document(doc(data), kind)


class TestReplace:
    """Default REPLACE semantics."""

    def test_higher_replaces_scalar(self) -> None:
        """A field set by both sides takes higher's value."""
        result = engine.merge(doc({"image": "a", "replicaCount": 1}), doc({"image": "b"}))

        assert result.to_python() == {"image": "b", "replicaCount": 1}

    def test_higher_replaces_nested_structure_wholesale(self) -> None:
        """Nested mappings under a REPLACE field are not merged."""
        lower = doc({"lifecycle": {"preStop": {"exec": "sleep 5"}, "postStart": "x"}})
        higher = doc({"lifecycle": {"preStop": {"exec": "sleep 10"}}})

        result = engine.merge(lower, higher)

        assert result.get("lifecycle") == higher.get("lifecycle")

    def test_sidecars_replaced_not_appended(self) -> None:
        """Scenario C: an overlay's sidecars replace the base list."""
        result = engine.merge(
            doc({"sidecars": [{"name": "sidecarA"}]}),
            doc({"sidecars": [{"name": "sidecarB"}]}),
        )

        assert result.to_python() == {"sidecars": [{"name": "sidecarB"}]}

    def test_absent_is_not_null(self) -> None:
        """A field higher does not mention keeps lower's value."""
        result = engine.merge(doc({"chart": "base"}), doc({}))

        assert result.get("chart") == doc_model.Scalar("base")

    def test_explicit_null_replaces(self) -> None:
        """A field higher sets to null is null in the result."""
        result = engine.merge(doc({"chart": "base"}), doc({"chart": None}))

        assert result.get("chart") is doc_model.NULL

    def test_type_change_under_replace_is_allowed(self) -> None:
        """REPLACE does not care about the variants on either side."""
        result = engine.merge(doc({"command": "run"}), doc({"command": ["run", "--fast"]}))

        assert result.get("command").to_python() == ["run", "--fast"]


class TestMapMerge:
    """MAP_MERGE semantics."""

    def test_scenario_a_env_union(self) -> None:
        """Scenario A: union of keys, higher wins on shared keys."""
        result = engine.merge(
            doc({"env": {"A": "1", "B": "2"}}),
            doc({"env": {"B": "3", "C": "4"}}),
        )

        assert result.get("env").to_python() == {"A": "1", "B": "3", "C": "4"}

    def test_key_order_lower_then_new(self) -> None:
        """Merged keys keep lower's order with higher-only keys after."""
        result = engine.merge(
            doc({"env": {"Z": "1", "A": "2"}}),
            doc({"env": {"N": "3", "Z": "9"}}),
        )

        assert list(result.get("env").to_python()) == ["Z", "A", "N"]

    def test_nested_values_are_replaced(self) -> None:
        """Values under a map-merged key follow REPLACE unless configured."""
        result = engine.merge(
            doc({"env": {"JSON": {"a": 1, "b": 2}}}),
            doc({"env": {"JSON": {"c": 3}}}),
        )

        assert result.get("env.JSON").to_python() == {"c": 3}

    def test_explicit_nested_policy_recurses(self) -> None:
        """resources.limits has its own MAP_MERGE entry and is merged too."""
        result = engine.merge(
            doc({"resources": {"limits": {"cpu": "1", "memory": "1Gi"}, "requests": {"cpu": "1"}}}),
            doc({"resources": {"limits": {"memory": "2Gi"}}}),
        )

        assert result.get("resources").to_python() == {
            "limits": {"cpu": "1", "memory": "2Gi"},
            "requests": {"cpu": "1"},
        }

    def test_mapping_against_scalar_is_structural_conflict(self) -> None:
        """Both sides of a MAP_MERGE field must be mappings."""
        with _pytest.raises(errors.StructuralConflict) as exc_info:
            engine.merge(doc({"env": {"A": "1"}}), doc({"env": "A=1"}))

        error = exc_info.value
        assert error.path == ("env",)
        assert error.lower_value == doc({"A": "1"})
        assert error.higher_value == doc_model.Scalar("A=1")

    def test_null_under_map_merge_is_structural_conflict(self) -> None:
        """Null is not an empty mapping."""
        with _pytest.raises(errors.StructuralConflict):
            engine.merge(doc({"env": None}), doc({"env": {"A": "1"}}))

    def test_higher_only_map_is_carried(self) -> None:
        """A MAP_MERGE field only one side sets needs no merging."""
        result = engine.merge(doc({}), doc({"labels": {"team": "web"}}))

        assert result.get("labels").to_python() == {"team": "web"}


class TestAppend:
    """APPEND semantics."""

    def test_scenario_d_no_duplicates(self) -> None:
        """Scenario D: [t1] + [t1, t2] = [t1, t2]."""
        t1 = {"key": "t1"}
        t2 = {"key": "t2"}

        result = engine.merge(doc({"tolerations": [t1]}), doc({"tolerations": [t1, t2]}))

        assert result.get("tolerations").to_python() == [t1, t2]

    def test_lower_order_preserved(self) -> None:
        """Lower's entries come first in their original order."""
        result = engine.merge(
            doc({"hosts": ["b.example.com", "a.example.com"]}),
            doc({"hosts": ["c.example.com", "a.example.com"]}),
        )

        assert result.get("hosts").to_python() == [
            "b.example.com",
            "a.example.com",
            "c.example.com",
        ]

    def test_duplicates_within_one_side_dropped(self) -> None:
        """Only the first occurrence of a value is kept."""
        result = engine.merge(doc({"hosts": ["a", "a"]}), doc({"hosts": ["b", "b"]}))

        assert result.get("hosts").to_python() == ["a", "b"]

    def test_equality_is_exact(self) -> None:
        """"1" and 1 and True are different entries."""
        result = engine.merge(doc({"sourceRanges": ["1"]}), doc({"sourceRanges": [1, True]}))

        assert result.get("sourceRanges").to_python() == ["1", 1, True]

    def test_sequence_against_mapping_is_structural_conflict(self) -> None:
        """Both sides of an APPEND field must be sequences."""
        with _pytest.raises(errors.StructuralConflict, match="tolerations"):
            engine.merge(doc({"tolerations": [{"key": "a"}]}), doc({"tolerations": {"key": "b"}}))


class TestLockedAnonymous:
    """Locked fields when neither side has a source identity."""

    def test_same_value_is_allowed(self) -> None:
        """Repeating the base value is not an override."""
        result = engine.merge(doc({"name": "svc"}), doc({"name": "svc"}))

        assert result.get("name") == doc_model.Scalar("svc")

    def test_different_value_is_lock_violation(self) -> None:
        """Changing a locked value fails."""
        with _pytest.raises(errors.LockViolation) as exc_info:
            engine.merge(doc({"name": "svc"}), doc({"name": "svc2"}))

        assert exc_info.value.path == ("name",)
        assert exc_info.value.lower_value == doc_model.Scalar("svc")
        assert exc_info.value.higher_value == doc_model.Scalar("svc2")

    def test_lower_without_field_takes_higher(self) -> None:
        """Without a base value there is nothing to protect."""
        result = engine.merge(doc({}), doc({"regions": ["dev-uk"]}))

        assert result.get("regions").to_python() == ["dev-uk"]


class TestLockedWithSources:
    """Locked fields with known source identities."""

    def test_non_base_source_cannot_set_locked_field(self) -> None:
        """Even a field lower lacks cannot be set by an override source."""
        merger = engine.MergeEngine()
        base = _layer({"image": "x"}, SourceKind.SERVICE_BASE)
        overlay = _layer({"kong": {"uris": "/api"}}, SourceKind.GLOBAL)

        with _pytest.raises(errors.LockViolation) as exc_info:
            merger.merge_layers(base, overlay)

        assert exc_info.value.lower_source is None
        assert exc_info.value.higher_source is SourceKind.GLOBAL

    def test_non_base_source_repeating_value_is_violation(self) -> None:
        """A known override source may not touch the field at all."""
        merger = engine.MergeEngine()
        base = _layer({"name": "svc"}, SourceKind.SERVICE_BASE)
        overlay = _layer({"name": "svc"}, SourceKind.SERVICE_ENVIRONMENT)

        with _pytest.raises(errors.LockViolation, match="service environment"):
            merger.merge_layers(base, overlay)

    def test_base_value_keeps_base_provenance(self) -> None:
        """Locked values carried through folds stay tagged with the base."""
        merger = engine.MergeEngine()
        layer = _layer({"name": "svc", "image": "a"}, SourceKind.SERVICE_BASE)
        layer = merger.merge_layers(layer, _layer({"image": "b"}, SourceKind.SERVICE_ENVIRONMENT))
        layer = merger.merge_layers(layer, _layer({"replicaCount": 3}, SourceKind.REGION))

        assert layer.provenance[("name",)] is SourceKind.SERVICE_BASE
        assert layer.provenance[("image",)] is SourceKind.SERVICE_ENVIRONMENT
        assert layer.provenance[("replicaCount",)] is SourceKind.REGION
        assert layer.source is SourceKind.REGION


class TestProvenance:
    """Per-field provenance of merged layers."""

    def test_map_merge_tracks_each_key(self) -> None:
        """Each env key remembers which source set it."""
        merger = engine.MergeEngine()
        base = _layer({"env": {"A": "1", "B": "2"}}, SourceKind.SERVICE_BASE)
        overlay = _layer({"env": {"B": "3"}}, SourceKind.SERVICE_ENVIRONMENT)

        result = merger.merge_layers(base, overlay)

        assert result.provenance[("env", "A")] is SourceKind.SERVICE_BASE
        assert result.provenance[("env", "B")] is SourceKind.SERVICE_ENVIRONMENT
        assert result.provenance[("env",)] is SourceKind.SERVICE_ENVIRONMENT

    def test_replaced_subtree_drops_lower_paths(self) -> None:
        """Paths that only existed under a replaced value disappear."""
        merger = engine.MergeEngine()
        base = _layer({"gate": {"public": True, "websockets": True}}, SourceKind.SERVICE_BASE)
        overlay = _layer({"gate": {"public": False}}, SourceKind.REGION)

        result = merger.merge_layers(base, overlay)

        assert ("gate", "websockets") not in result.provenance
        assert result.provenance[("gate", "public")] is SourceKind.REGION

    def test_provenance_is_read_only(self) -> None:
        """Layers cannot be mutated after the merge."""
        result = engine.MergeEngine().merge_layers(
            _layer({"image": "a"}, SourceKind.SERVICE_BASE),
            _layer({}, SourceKind.SERVICE_ENVIRONMENT),
        )

        with _pytest.raises(TypeError):
            result.provenance[("image",)] = None  # type: ignore[index]


class TestRoot:
    """Root-level handling."""

    def test_null_root_is_empty_mapping(self) -> None:
        """An empty source merges as {}."""
        lower = doc({"image": "a"})

        assert engine.merge(lower, doc_model.NULL) == lower
        assert engine.merge(doc_model.NULL, lower) == lower

    def test_non_mapping_root_is_structural_conflict(self) -> None:
        """A manifest must be a mapping."""
        with _pytest.raises(errors.StructuralConflict) as exc_info:
            engine.merge(doc({"image": "a"}), doc(["not", "a", "mapping"]))

        assert exc_info.value.path == ()
        assert exc_info.value.dotted_path == "<root>"


class TestProperties:
    """Algebraic properties of merge()."""

    @_pytest.mark.parametrize(
        "data",
        [
            {},
            {"name": "svc", "env": {"A": "1"}, "tolerations": [{"key": "a"}]},
            {"resources": {"limits": {"cpu": "1"}}, "sidecars": [{"name": "x"}], "chart": None},
            {"kong": {"uris": "/api"}, "regions": ["a", "b"], "hosts": ["x", "y"]},
        ],
    )
    def test_idempotence(self, data: dict) -> None:
        """merge(d, d) == d."""
        document = doc(data)

        assert engine.merge(document, document) == document

    def test_idempotence_deduplicates_append_fields(self) -> None:
        """The one exception: APPEND fields lose their duplicates."""
        document = doc({"hosts": ["a", "a"]})

        assert engine.merge(document, document).to_python() == {"hosts": ["a"]}

    def test_associativity_for_unlocked_fields(self) -> None:
        """Grouping does not change the result when no locked field is involved."""
        base = doc({"env": {"A": "1"}, "hosts": ["a"], "image": "x", "resources": {"limits": {"cpu": "1"}}})
        env = doc({"env": {"B": "2"}, "hosts": ["b"], "resources": {"limits": {"memory": "1Gi"}}})
        svc_region = doc({"env": {"A": "3"}, "image": "y"})
        global_config = doc({"hosts": ["a", "c"], "labels": {"x": "1"}})
        region = doc({"env": {"C": "4"}, "resources": {"requests": {"cpu": "1"}}})

        left = engine.merge(
            engine.merge(engine.merge(engine.merge(base, env), svc_region), global_config),
            region,
        )
        right = engine.merge(
            base,
            engine.merge(env, engine.merge(svc_region, engine.merge(global_config, region))),
        )
        middle = engine.merge(
            engine.merge(base, engine.merge(env, svc_region)),
            engine.merge(global_config, region),
        )

        assert left == right == middle

    def test_engine_uses_given_policies(self) -> None:
        """A custom table changes how fields merge."""
        table = policy.default_policy_table().with_overrides({"volumes": "append"})

        result = engine.merge(
            doc({"volumes": [{"name": "a"}]}),
            doc({"volumes": [{"name": "b"}]}),
            table,
        )

        assert result.get("volumes").to_python() == [{"name": "a"}, {"name": "b"}]
