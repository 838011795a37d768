"""Instruction complexity scoring and direct-edit vs generate mode selection.

All weights live in the tables below so callers and tests can read them
directly. The result is advisory; callers may override the chosen mode.
"""
from __future__ import annotations

import math
import re
from typing import Sequence

from .models import ClassificationResult, EditMode, SelectedInstance
from .scene import SceneRoot, count_nodes

# ---------------------------------------------------------------------------
# Complexity tables
# ---------------------------------------------------------------------------

COMPLEX_KEYWORDS: dict[str, float] = {
    "batch": 2.0,
    "recursive": 2.0,
    "optimize": 2.0,
    "pathfinding": 2.0,
    "algorithm": 2.0,
    "procedural": 2.0,
    "multiplayer": 2.0,
    "datastore": 2.0,
    "inventory": 2.0,
    "leaderboard": 2.0,
    "physics": 2.0,
    "animation": 2.0,
    "system": 2.0,
    "framework": 2.0,
}

SIMPLE_KEYWORDS: dict[str, float] = {
    "color": 0.5,
    "colour": 0.5,
    "size": 0.5,
    "position": 0.5,
    "rotate": 0.5,
    "move": 0.5,
    "anchor": 0.5,
    "transparency": 0.5,
    "material": 0.5,
    "rename": 0.5,
    "resize": 0.5,
    "delete": 0.5,
    "remove": 0.5,
}

CODE_REFERENCE_KEYWORDS = ("script", "code", "function")
CODE_REFERENCE_BONUS = 3.0

LENGTH_DIVISOR = 100
LENGTH_CAP = 5.0
SCENE_SIZE_DIVISOR = 50
SCENE_SIZE_CAP = 3.0
SELECTION_DIVISOR = 10
SELECTION_CAP = 2.0
MAX_COMPLEXITY = 10.0

# ---------------------------------------------------------------------------
# Mode vote tables
# ---------------------------------------------------------------------------

KEYWORD_VOTE = 2.0
PATTERN_VOTE = 3.0
SELECTION_VOTE = 1.0
LENGTH_VOTE = 1.0
SHORT_INSTRUCTION_CHARS = 30
LONG_INSTRUCTION_CHARS = 100
FORCE_GENERATE_ABOVE = 7.0

DIRECT_EDIT_KEYWORDS = (
    "change", "set", "make", "color", "colour", "size", "resize", "scale",
    "position", "move", "rotate", "anchor", "transparency", "material",
    "rename", "delete", "remove", "fix", "bigger", "smaller",
)

GENERATION_KEYWORDS = (
    "when", "click", "touch", "spawn", "create", "script", "event", "loop",
    "timer", "behavior", "behaviour", "animate", "gui", "button", "respawn",
    "countdown", "leaderboard", "system",
)

_COLOR_WORDS = r"red|green|blue|yellow|orange|purple|pink|black|white|gr[ae]y|brown|cyan|magenta"

DIRECT_EDIT_PATTERNS = (
    re.compile(r"\b(change|set|turn)\b.+\b(to|into)\b"),
    re.compile(rf"\b(make|turn|paint|color|colour)\b.+\b({_COLOR_WORDS}|bigger|smaller|taller|shorter|transparent|invisible|visible|anchored)\b"),
    re.compile(r"\b(delete|remove|destroy)\b"),
    re.compile(r"\b(resize|move|rotate|rename|anchor)\b"),
    re.compile(r"\b(fix|edit)\b.+\bline\s+\d+"),
)

GENERATION_PATTERNS = (
    re.compile(r"\bwhen\b.+\b(click|touch|press|join|die|enter|leave)"),
    re.compile(r"\b(create|make|build|add)\s+(a|an)\s+(\w+\s+)?(system|script|game|gui|menu|shop|leaderboard)\b"),
    re.compile(r"\bevery\s+\d+\s*(seconds?|secs?|minutes?|mins?)\b"),
    re.compile(r"\b(if|whenever)\b.+\bthen\b"),
)

DELETION_KEYWORDS = ("delete", "remove")

# ---------------------------------------------------------------------------
# Cost tables
# ---------------------------------------------------------------------------

MODE_COST_MULTIPLIER: dict[EditMode, float] = {
    EditMode.DIRECT_EDIT: 1.0,
    EditMode.GENERATE: 2.0,
}

SIZE_COST_MULTIPLIER: dict[str, float] = {
    "small": 1.0,
    "medium": 1.5,
    "large": 2.5,
}


def _matches(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}", text) is not None


def matched_keywords(text: str, keywords) -> list[str]:
    lowered = text.lower()
    return [keyword for keyword in keywords if _matches(lowered, keyword)]


def complexity_score(
    instruction: str,
    scene_root: SceneRoot | None,
    selected_instances: Sequence[SelectedInstance] = (),
) -> float:
    lowered = instruction.lower()
    score = min(len(instruction) / LENGTH_DIVISOR, LENGTH_CAP)

    score += sum(COMPLEX_KEYWORDS[k] for k in matched_keywords(lowered, COMPLEX_KEYWORDS))
    score += sum(SIMPLE_KEYWORDS[k] for k in matched_keywords(lowered, SIMPLE_KEYWORDS))

    if scene_root:
        score += min(count_nodes(scene_root) / SCENE_SIZE_DIVISOR, SCENE_SIZE_CAP)

    score += min(len(selected_instances) / SELECTION_DIVISOR, SELECTION_CAP)

    if matched_keywords(lowered, CODE_REFERENCE_KEYWORDS):
        score += CODE_REFERENCE_BONUS

    return round(max(0.0, min(score, MAX_COMPLEXITY)), 2)


def mode_votes(instruction: str, selected_instances: Sequence[SelectedInstance] = ()) -> tuple[float, float]:
    """Return ``(direct_edit_votes, generation_votes)`` for ``instruction``."""
    lowered = instruction.lower()
    direct = KEYWORD_VOTE * len(matched_keywords(lowered, DIRECT_EDIT_KEYWORDS))
    generate = KEYWORD_VOTE * len(matched_keywords(lowered, GENERATION_KEYWORDS))

    direct += PATTERN_VOTE * sum(1 for pattern in DIRECT_EDIT_PATTERNS if pattern.search(lowered))
    generate += PATTERN_VOTE * sum(1 for pattern in GENERATION_PATTERNS if pattern.search(lowered))

    if selected_instances:
        direct += SELECTION_VOTE

    if len(instruction) < SHORT_INSTRUCTION_CHARS:
        direct += LENGTH_VOTE
    elif len(instruction) > LONG_INSTRUCTION_CHARS:
        generate += LENGTH_VOTE

    return direct, generate


def estimate_cost(mode: EditMode, request_size: str, complexity: float) -> int:
    multiplier = MODE_COST_MULTIPLIER[mode] * SIZE_COST_MULTIPLIER.get(request_size, SIZE_COST_MULTIPLIER["medium"])
    return max(1, math.ceil(multiplier * (1 + complexity / 10)))


def classify(
    instruction: str,
    scene_root: SceneRoot | None,
    selected_instances: Sequence[SelectedInstance] = (),
    request_size: str = "medium",
) -> ClassificationResult:
    """Score ``instruction`` and pick the operating mode. Pure and deterministic."""
    complexity = complexity_score(instruction, scene_root, selected_instances)
    direct, generate = mode_votes(instruction, selected_instances)

    if complexity > FORCE_GENERATE_ABOVE:
        mode = EditMode.GENERATE
    elif generate > direct:
        mode = EditMode.GENERATE
    else:
        mode = EditMode.DIRECT_EDIT

    lowered = instruction.lower()
    keywords = sorted(set(
        matched_keywords(lowered, COMPLEX_KEYWORDS)
        + matched_keywords(lowered, SIMPLE_KEYWORDS)
        + matched_keywords(lowered, DIRECT_EDIT_KEYWORDS)
        + matched_keywords(lowered, GENERATION_KEYWORDS)
    ))

    return ClassificationResult(
        complexity_score=complexity,
        mode=mode,
        estimated_cost=estimate_cost(mode, request_size, complexity),
        deletion_requested=bool(matched_keywords(lowered, DELETION_KEYWORDS)),
        matched_keywords=keywords,
        direct_edit_votes=direct,
        generation_votes=generate,
    )
