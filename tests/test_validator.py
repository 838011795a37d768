from edit_generator.models import CreateInstance, DeleteInstance, EditScript, ModifyInstance, TypedProperty
from edit_generator.property_codec import PropertyType
from edit_generator.validator import clean_property, validate_operations

import pytest

from edit_generator.errors import InvalidPropertyValue


def _modify(properties, path=("Workspace", "Part1")):
    return {"type": "modify_instance", "path": list(path), "properties": properties}


def test_make_all_parts_red_decodes_color():
    report = validate_operations([_modify({"Color": {"type": "Color3", "value": "1,0,0"}})])

    assert report.rejected == []
    op = report.accepted[0]
    assert isinstance(op, ModifyInstance)
    assert op.properties["Color"] == TypedProperty(type="Color3", value="1,0,0")
    assert op.properties["Color"].decoded == (1.0, 0.0, 0.0)


def test_invalid_property_is_dropped_and_operation_kept():
    report = validate_operations([
        _modify({
            "Color": {"type": "Color3", "value": "1,0,0"},
            "Size": {"type": "Vector3", "value": "4,1"},
            "Anchored": True,
        })
    ])

    op = report.accepted[0]
    assert set(op.properties) == {"Color", "Anchored"}
    assert op.properties["Anchored"] is True
    assert len(report.warnings) == 1
    assert "Size" in report.warnings[0]


def test_operation_without_valid_properties_is_rejected():
    report = validate_operations([_modify({"Size": {"type": "Vector3", "value": "x,y,z"}})])

    assert report.accepted == []
    assert report.rejected[0].reason == "no valid properties"


def test_all_malformed_batch():
    report = validate_operations([
        "not an object",
        {"type": "teleport_instance", "path": ["Workspace"]},
        {"type": "delete_instance", "path": []},
        {"type": "edit_script", "path": ["ServerScriptService", "Main"], "edits": []},
    ])

    assert report.accepted == []
    assert [r.index for r in report.rejected] == [0, 1, 2, 3]
    assert report.rejected[0].reason == "operation must be an object"
    assert report.rejected[1].reason == "unknown operation type"


def test_non_list_input_is_rejected():
    report = validate_operations({"type": "delete_instance"})

    assert report.accepted == []
    assert report.rejected[0].reason == "operations must be a list"


def test_edit_script_required_fields():
    report = validate_operations([
        {"type": "edit_script", "path": ["S", "Main"], "edits": [{"action": "replace", "content": "x"}]},
        {"type": "edit_script", "path": ["S", "Main"], "edits": [{"action": "insert", "lineNumber": 2}]},
        {"type": "edit_script", "path": ["S", "Main"], "edits": [{"action": "delete", "lineNumber": 0}]},
        {"type": "edit_script", "path": ["S", "Main"], "edits": [{"action": "append", "content": "-- end"}]},
    ])

    assert [r.index for r in report.rejected] == [0, 1, 2]
    assert isinstance(report.accepted[0], EditScript)


def test_edit_script_accepts_legacy_keys():
    report = validate_operations([
        {
            "type": "edit_script",
            "path": ["ServerScriptService", "Main"],
            "modifications": [{"action": "replace", "lineNumber": 3, "newContent": "print('x')"}],
        }
    ])

    edit = report.accepted[0].edits[0]
    assert (edit.line_number, edit.content) == (3, "print('x')")


def test_create_instance_keeps_op_when_a_property_is_bad():
    report = validate_operations([
        {
            "type": "create_instance",
            "className": "Part",
            "name": "Floor",
            "path": ["Workspace"],
            "properties": {
                "Size": {"type": "Vector3", "value": "10,1,10"},
                "Color": {"type": "Color3", "value": "255,0,0"},
            },
        }
    ])

    op = report.accepted[0]
    assert isinstance(op, CreateInstance)
    assert op.class_tag == "Part"
    assert list(op.properties) == ["Size"]
    assert report.warnings


def test_accepted_order_is_stable():
    ops = [
        {"type": "delete_instance", "path": ["Workspace", "A"]},
        {"type": "bogus"},
        {"type": "delete_instance", "path": ["Workspace", "B"]},
    ]

    report = validate_operations(ops)

    assert [op.path[-1] for op in report.accepted] == ["A", "B"]
    assert all(isinstance(op, DeleteInstance) for op in report.accepted)


def test_validation_is_idempotent():
    first = validate_operations([
        _modify({"Color": {"type": "color3", "value": "1.0, 0, 0"}, "Name": "Lava"}),
        {"type": "edit_script", "path": ["S", "Main"], "edits": [{"action": "append", "content": "--"}]},
        {"type": "create_script", "path": ["ServerScriptService"], "name": "Boot", "source": "print(1)"},
        {"type": "delete_instance", "path": ["Workspace", "Old"]},
    ])

    second = validate_operations(first.accepted)

    assert second.rejected == []
    assert second.accepted == first.accepted


def test_clean_property():
    assert clean_property(3) == 3
    assert clean_property({"type": "Number", "value": "2.0"}) == TypedProperty(type="Number", value="2")
    assert clean_property({"type": "Quaternion", "value": "1"}).kind is PropertyType.STRING
    with pytest.raises(InvalidPropertyValue):
        clean_property({"value": "1,0,0"})
    with pytest.raises(InvalidPropertyValue):
        clean_property([1, 2, 3])


def test_editor_type_tags_survive_validation():
    report = validate_operations([
        _modify({
            "BrickColor": {"type": "BrickColor", "value": "Bright red"},
            "Material": {"type": "Material", "value": "Neon"},
            "Size": {"type": "UDim2", "value": "0, 100, 0.5, 0"},
            "Pivot": {"type": "CFrame", "value": "0,5,0"},
            "Tint": {"type": "Quaternion", "value": "1"},
        })
    ])

    properties = report.accepted[0].model_dump(mode="json")["properties"]
    assert {name: prop["type"] for name, prop in properties.items()} == {
        "BrickColor": "BrickColor",
        "Material": "Material",
        "Size": "UDim2",
        "Pivot": "CFrame",
        "Tint": "Quaternion",
    }
    assert properties["Size"]["value"] == "0,100,0.5,0"
    assert report.accepted[0].properties["Size"].kind is PropertyType.TRANSFORM2D


def test_typed_property_needs_a_text_tag():
    with pytest.raises(InvalidPropertyValue):
        clean_property({"type": 3, "value": "1"})
