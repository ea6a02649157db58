"""
Tests for metadata selection trees.
"""

import json

import pytest

from sfconnector.engine.errors import InvalidInput
from sfconnector.metadata.models import MetadataDetail, MetadataItem, MetadataObject, MetadataType
from sfconnector.metadata.registry import MetadataTypes, special_types_to_retrieve
from sfconnector.metadata.tree import (
    check_all,
    combine,
    have_children,
    metadata_members,
    metadata_type_names,
    order_metadata,
    validate_metadata_json,
)


def _make_type(name, objects, checked=False):
    """Build a type from {object: [items]}."""
    metadata_type = MetadataType(name=name, checked=checked)
    for object_name, items in objects.items():
        metadata_object = metadata_type.add_child(MetadataObject(name=object_name))
        for item_name in items:
            metadata_object.add_child(MetadataItem(name=item_name))
    return metadata_type


def _dump(tree):
    return {name: metadata_type.model_dump() for name, metadata_type in tree.items()}


# ============================================================================
# TestCombine
# ============================================================================


class TestCombine:
    """Tests for the union of two trees."""

    def test_children_unioned_by_name(self):
        local = {"CustomField": _make_type("CustomField", {"Account": ["Rating__c"]})}
        org = {"CustomField": _make_type("CustomField", {"Account": ["Type__c"], "Contact": ["Email__c"]})}

        result = combine(local, org)

        assert set(result["CustomField"].childs.keys()) == {"Account", "Contact"}
        assert set(result["CustomField"].childs["Account"].childs.keys()) == {"Rating__c", "Type__c"}

    def test_checked_flags_are_or_ed(self):
        left = {"Profile": _make_type("Profile", {"Admin": []}, checked=True)}
        right = {"Profile": _make_type("Profile", {"Admin": []})}
        right["Profile"].childs["Admin"].checked = True

        result = combine(left, right)

        assert result["Profile"].checked is True
        assert result["Profile"].childs["Admin"].checked is True

    def test_combine_is_commutative_up_to_order(self):
        a = {"CustomField": _make_type("CustomField", {"Account": ["A__c"]}), "Flow": _make_type("Flow", {"F1": []})}
        b = {"CustomField": _make_type("CustomField", {"Lead": ["B__c"]})}

        assert _dump(order_metadata(combine(a, b))) == _dump(order_metadata(combine(b, a)))

    def test_combine_is_idempotent(self):
        a = {"CustomField": _make_type("CustomField", {"Account": ["A__c", "B__c"]})}

        assert _dump(combine(a, a)) == _dump(a)

    def test_inputs_not_mutated(self):
        a = {"CustomField": _make_type("CustomField", {"Account": ["A__c"]})}
        b = {"CustomField": _make_type("CustomField", {"Account": ["B__c"]}), "Flow": _make_type("Flow", {"F": []})}
        before_a, before_b = _dump(a), _dump(b)

        result = combine(a, b)
        check_all(result)

        assert _dump(a) == before_a
        assert _dump(b) == before_b

    def test_combine_with_missing_side(self):
        a = {"Flow": _make_type("Flow", {"F": []})}

        assert _dump(combine(a, None)) == _dump(a)
        assert combine(None, None) == {}


# ============================================================================
# TestTreeHelpers
# ============================================================================


class TestTreeHelpers:
    """Tests for check_all, ordering, names and have_children."""

    def test_check_all_marks_every_level(self):
        tree = {"CustomField": _make_type("CustomField", {"Account": ["A__c"], "Lead": []})}

        check_all(tree)

        metadata_type = tree["CustomField"]
        assert metadata_type.checked
        assert all(obj.checked for obj in metadata_type.childs.values())
        assert metadata_type.childs["Account"].childs["A__c"].checked

    def test_order_is_case_insensitive_at_every_level(self):
        tree = {
            "flow": _make_type("flow", {}),
            "ApexClass": _make_type("ApexClass", {"beta": [], "Alpha": []}),
            "CustomField": _make_type("CustomField", {"Account": ["zeta__c", "Alpha__c"]}),
        }

        ordered = order_metadata(tree)

        assert list(ordered.keys()) == ["ApexClass", "CustomField", "flow"]
        assert list(ordered["ApexClass"].childs.keys()) == ["Alpha", "beta"]
        assert list(ordered["CustomField"].childs["Account"].childs.keys()) == ["Alpha__c", "zeta__c"]

    def test_metadata_type_names_accepts_details(self):
        names = metadata_type_names([
            "flow",
            MetadataDetail(xml_name="ApexClass"),
            {"xmlName": "CustomObject"},
        ])

        assert names == ["ApexClass", "CustomObject", "flow"]
        assert metadata_type_names("Profile") == ["Profile"]
        assert metadata_type_names(None) == []

    def test_metadata_members_from_names(self):
        assert metadata_members("ApexClass:Util, CustomObject,") == ["ApexClass:Util", "CustomObject"]
        assert metadata_members([" Flow ", ""]) == ["Flow"]

    def test_metadata_members_from_selection(self):
        selection = {
            "ApexClass": {"checked": False, "childs": {"Util": {"checked": True}, "Other": {"checked": False}}},
            "CustomField": {
                "checked": False,
                "childs": {"Account": {"checked": True, "childs": {"Rating__c": {"checked": True}}}},
            },
            "Flow": {"checked": True},
            "Profile": {"checked": False},
        }

        assert metadata_members(selection) == ["ApexClass:Util", "CustomField:Account.Rating__c", "Flow"]

    def test_have_children_for_models_and_dicts(self):
        assert have_children(_make_type("Flow", {"F": []}))
        assert not have_children(_make_type("Flow", {}))
        assert have_children({"childs": {"A": {}}})
        assert not have_children(None)

    def test_unknown_type_kind_is_other(self):
        assert MetadataType(name="Profile").kind == MetadataTypes.PROFILE
        assert MetadataType(name="BrandNewType").kind == MetadataTypes.OTHER


# ============================================================================
# TestValidateMetadataJson
# ============================================================================


class TestValidateMetadataJson:
    """Tests for user-supplied selections."""

    def test_selection_from_file(self, tmp_path):
        selection = {
            "Profile": {
                "name": "Profile",
                "checked": False,
                "childs": {"Admin": {"name": "Admin", "checked": True}},
            }
        }
        path = tmp_path / "types.json"
        path.write_text(json.dumps(selection), encoding="utf-8")

        tree = validate_metadata_json(str(path))

        assert tree["Profile"].childs["Admin"].checked is True

    def test_children_without_names_take_their_key(self):
        tree = validate_metadata_json({"CustomField": {"childs": {"Account": {"childs": {"A__c": {"checked": True}}}}}})

        assert tree["CustomField"].childs["Account"].childs["A__c"].name == "A__c"

    def test_missing_file_rejected(self, tmp_path):
        with pytest.raises(InvalidInput):
            validate_metadata_json(str(tmp_path / "missing.json"))

    def test_invalid_json_rejected(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(InvalidInput):
            validate_metadata_json(str(path))

    def test_wrong_shape_rejected(self):
        with pytest.raises(InvalidInput):
            validate_metadata_json({"Profile": "Admin"})

        with pytest.raises(InvalidInput):
            validate_metadata_json(["Profile"])


# ============================================================================
# TestSpecialTypesRegistry
# ============================================================================


class TestSpecialTypesRegistry:
    """Tests for the special-types expansion."""

    def test_no_selection_expands_whole_registry(self):
        types = special_types_to_retrieve(None)

        assert "Profile" in types
        assert "CustomObjectTranslation" in types
        assert len(types) == len(set(types))

    def test_selection_limits_expansion(self):
        types = special_types_to_retrieve({"RecordType": {}})

        assert types == ["RecordType", "CustomField"]
