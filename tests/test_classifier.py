import pytest

from edit_generator import classifier
from edit_generator.classifier import classify, complexity_score, estimate_cost, matched_keywords, mode_votes
from edit_generator.models import EditMode, SelectedInstance
from edit_generator.scene import build_scene_tree


def _selected(count):
    return [
        SelectedInstance(name=f"Part{i}", class_tag="Part", path=["Workspace", f"Part{i}"])
        for i in range(count)
    ]


def test_make_all_parts_red_is_a_direct_edit(scene_payload):
    result = classify("make all parts red", build_scene_tree(scene_payload))

    assert result.mode is EditMode.DIRECT_EDIT
    assert result.direct_edit_votes == 6
    assert result.generation_votes == 0
    assert result.deletion_requested is False


def test_behavioral_request_votes_for_generation():
    result = classify("when the button is clicked open the door", {})

    assert result.mode is EditMode.GENERATE
    assert result.generation_votes > result.direct_edit_votes


def test_high_complexity_forces_generation():
    instruction = "create a leaderboard system that saves player inventory to datastore"

    result = classify(instruction, {})

    assert result.complexity_score > classifier.FORCE_GENERATE_ABOVE
    assert result.mode is EditMode.GENERATE


def test_ties_resolve_to_direct_edit():
    direct, generate = mode_votes("please look at the thing over there in the corner")

    assert direct == generate == 0
    assert classify("please look at the thing over there in the corner", None).mode is EditMode.DIRECT_EDIT


@pytest.mark.parametrize(
    "instruction,expected",
    [
        ("delete the old spawn", True),
        ("Remove every light", True),
        ("I removed it already", True),
        ("please tidy the lobby area", False),
    ],
)
def test_deletion_signal(instruction, expected):
    assert classify(instruction, None).deletion_requested is expected


def test_complexity_is_clamped():
    instruction = " ".join(classifier.COMPLEX_KEYWORDS) + " script " + "x" * 900

    assert complexity_score(instruction, None) == classifier.MAX_COMPLEXITY


def test_complexity_counts_scene_and_selection(scene_payload):
    scene = build_scene_tree(scene_payload)
    base = complexity_score("tidy", None)

    with_scene = complexity_score("tidy", scene)
    with_selection = complexity_score("tidy", None, _selected(5))

    assert with_scene == pytest.approx(base + 9 / 50)
    assert with_selection == pytest.approx(base + 0.5)


def test_code_reference_bonus():
    assert complexity_score("fix the code", None) - complexity_score("fix the door", None) == pytest.approx(3.0)


def test_selection_adds_direct_vote():
    plain_direct, _ = mode_votes("please look at the thing over there in the corner")
    selected_direct, _ = mode_votes("please look at the thing over there in the corner", _selected(1))

    assert selected_direct == plain_direct + classifier.SELECTION_VOTE


def test_matched_keywords_uses_word_prefix():
    assert matched_keywords("Recolor the parts", ["color"]) == []
    assert matched_keywords("colors everywhere", ["color"]) == ["color"]


def test_estimate_cost():
    assert estimate_cost(EditMode.DIRECT_EDIT, "small", 0) == 1
    assert estimate_cost(EditMode.GENERATE, "large", 10) == 10
    assert estimate_cost(EditMode.DIRECT_EDIT, "medium", 5) == 3


def test_classification_serializes_camel_case():
    payload = classify("make all parts red", None, request_size="small").model_dump(mode="json", by_alias=True)

    assert payload["mode"] == "direct_edit"
    assert payload["estimatedCost"] >= 1
    assert "complexityScore" in payload
