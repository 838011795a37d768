import pytest

from edit_generator.errors import RequestValidationError
from edit_generator.scene import build_scene_tree, count_nodes, find_scripts, iter_nodes
from edit_generator.scene_context import (
    MAX_SIBLINGS,
    TRUNCATION_MARKER,
    cap_text,
    render_subtree,
    summarize,
)


def _deep_payload(depth):
    root = {"ClassName": "Workspace", "Name": "Workspace", "Children": []}
    current = root
    for index in range(depth):
        child = {"ClassName": "Folder", "Name": f"Level{index}", "Children": []}
        current["Children"].append(child)
        current = child
    return {"Workspace": root}


def test_build_scene_tree_reads_editor_keys(scene_payload):
    scene = build_scene_tree(scene_payload)

    workspace = scene["Workspace"]
    assert [child.name for child in workspace.children] == ["Baseplate", "Part1", "House", "SpawnLocation"]
    assert workspace.children[0].properties["Anchored"] is True
    assert count_nodes(scene) == 9


def test_build_scene_tree_rejects_bad_children():
    with pytest.raises(RequestValidationError, match="invalid") as info:
        build_scene_tree({"Workspace": {"ClassName": "Workspace", "Children": {"not": "a list"}}})
    assert "children must be a list" in info.value.details


def test_build_scene_tree_rejects_non_object_node():
    with pytest.raises(RequestValidationError):
        build_scene_tree({"Workspace": {"ClassName": "Workspace", "Children": ["Part"]}})


def test_build_scene_tree_enforces_node_limit(scene_payload):
    with pytest.raises(RequestValidationError, match="too large"):
        build_scene_tree(scene_payload, max_nodes=5)


def test_deep_trees_do_not_recurse():
    scene = build_scene_tree(_deep_payload(5000))

    assert count_nodes(scene) == 5001
    depths = [depth for _, depth, _ in iter_nodes(scene["Workspace"])]
    assert max(depths) == 5000


def test_iter_nodes_preserves_insertion_order(scene_payload):
    scene = build_scene_tree(scene_payload)
    names = [node.name for _, _, node in iter_nodes(scene["Workspace"])]

    assert names == ["Workspace", "Baseplate", "Part1", "House", "Door", "Roof", "SpawnLocation"]


def test_find_scripts_reports_paths(scene_payload):
    scene = build_scene_tree(scene_payload)
    scripts = find_scripts(scene["ServerScriptService"])

    assert [(path, node.name) for path, node in scripts] == [
        (("ServerScriptService", "GameLoop"), "GameLoop"),
    ]


def test_summary_header_counts_whole_tree(scene_payload):
    digest = summarize(build_scene_tree(scene_payload), "hello there", 6000)

    assert digest.startswith("Scene summary: 9 objects, 1 scripts")
    assert "- Workspace (Workspace): 4 children" in digest
    assert "Part x4" in digest


def test_workspace_rendered_only_for_structural_requests(scene_payload):
    scene = build_scene_tree(scene_payload)

    assert "Workspace Contents:" in summarize(scene, "make all parts red", 6000)
    assert "Workspace Contents:" not in summarize(scene, "hello there", 6000)


def test_rendered_lines_show_key_properties(scene_payload):
    digest = summarize(build_scene_tree(scene_payload), "move the part", 6000)

    assert "Baseplate (Part) [Size:512,20,512, Anchored:True]" in digest


def test_script_listing_for_behavioral_requests(scene_payload):
    digest = summarize(build_scene_tree(scene_payload), "fix the script", 6000)

    assert "ServerScriptService Scripts:" in digest
    assert "GameLoop (Script) at ServerScriptService/GameLoop" in digest
    assert "Source preview: while true do\\n  wait(1)\\nend" in digest


def test_render_subtree_limits_siblings_and_depth():
    children = [{"ClassName": "Part", "Name": f"P{i}", "Children": [{"ClassName": "Folder", "Name": "Inner", "Children": [{"ClassName": "Part", "Name": "TooDeep"}]}]} for i in range(MAX_SIBLINGS + 5)]
    scene = build_scene_tree({"Workspace": {"ClassName": "Workspace", "Children": children}})

    lines = render_subtree(scene["Workspace"])

    assert lines[-1].strip() == "... (5 more)"
    assert not any("TooDeep" in line for line in lines)
    assert any("Inner" in line for line in lines)


def test_summary_never_exceeds_cap():
    scene = build_scene_tree(_deep_payload(2000))

    digest = summarize(scene, "show every part", 80)

    assert len(digest) <= 80
    assert digest.endswith(TRUNCATION_MARKER)


def test_cap_text_smaller_than_marker():
    assert len(cap_text("x" * 100, 5)) == 5
    assert cap_text("short", 100) == "short"


@pytest.mark.parametrize("cap", [0, -10])
def test_non_positive_cap_yields_empty_digest(cap):
    assert cap_text("some text", cap) == ""
    assert summarize({}, "make a part", cap) == ""
