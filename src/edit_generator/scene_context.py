"""Bounded scene digest used to ground model prompts.

The digest size is capped regardless of scene size so prompt cost stays
bounded: subtree rendering is limited in depth and breadth, and the final
text is cut at ``max_chars``.
"""
from __future__ import annotations

import re

from .scene import SceneNode, SceneRoot, count_nodes, find_scripts, iter_nodes

PRIMARY_CONTAINER = "Workspace"
SCRIPT_CONTAINERS = (
    "ServerScriptService",
    "ReplicatedStorage",
    "ServerStorage",
    "StarterGui",
    "StarterPlayer",
)

STRUCTURAL_KEYWORDS = ("part", "model", "spawn")
BEHAVIORAL_KEYWORDS = ("script", "code", "function")

MAX_DEPTH = 3
MAX_SIBLINGS = 25
MAX_SCRIPTS_PER_CONTAINER = 20
SOURCE_PREVIEW_CHARS = 200
MAX_CLASS_COUNTS = 10
KEY_PROPERTIES = ("Position", "Size", "Anchored")
TRUNCATION_MARKER = "\n... [context truncated]"


def mentions_any(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(re.search(rf"\b{re.escape(keyword)}", lowered) for keyword in keywords)


def _describe(node: SceneNode) -> str:
    line = f"{node.name} ({node.class_tag})"
    key_props = [
        f"{prop}:{node.properties[prop]}"
        for prop in KEY_PROPERTIES
        if prop in node.properties and node.properties[prop] is not None
    ]
    if key_props:
        line += f" [{', '.join(key_props)}]"
    return line


def render_subtree(node: SceneNode, max_depth: int = MAX_DEPTH, max_siblings: int = MAX_SIBLINGS) -> list[str]:
    """Render ``node`` as an indented listing bounded in depth and breadth."""
    lines: list[str] = []
    # Entries are either a node to render or a pre-formatted overflow line.
    stack: list[tuple[int, SceneNode | str]] = [(0, node)]
    while stack:
        depth, item = stack.pop()
        indent = "  " * depth
        if isinstance(item, str):
            lines.append(f"{indent}{item}")
            continue
        lines.append(f"{indent}- {_describe(item)}")
        if depth + 1 >= max_depth or not item.children:
            continue
        shown = item.children[:max_siblings]
        hidden = len(item.children) - len(shown)
        if hidden > 0:
            stack.append((depth + 1, f"... ({hidden} more)"))
        for child in reversed(shown):
            stack.append((depth + 1, child))
    return lines


def _script_listing(container: SceneNode) -> list[str]:
    scripts = find_scripts(container)
    lines: list[str] = []
    for path, script in scripts[:MAX_SCRIPTS_PER_CONTAINER]:
        lines.append(f"- {script.name} ({script.class_tag}) at {'/'.join(path)}")
        source = script.properties.get("Source")
        if isinstance(source, str) and source:
            preview = source[:SOURCE_PREVIEW_CHARS].replace("\n", "\\n")
            lines.append(f"  Source preview: {preview}...")
    if len(scripts) > MAX_SCRIPTS_PER_CONTAINER:
        lines.append(f"... ({len(scripts) - MAX_SCRIPTS_PER_CONTAINER} more scripts)")
    return lines


def cap_text(text: str, max_chars: int) -> str:
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    if max_chars <= len(TRUNCATION_MARKER):
        return TRUNCATION_MARKER[:max_chars]
    return text[: max_chars - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def summarize(scene_root: SceneRoot, instruction: str, max_chars: int) -> str:
    """Build the scene digest for ``instruction``, never longer than ``max_chars``."""
    total_nodes = count_nodes(scene_root)
    total_scripts = sum(len(find_scripts(node)) for node in scene_root.values())

    sections: list[str] = [
        f"Scene summary: {total_nodes} objects, {total_scripts} scripts",
        "Services:",
    ]
    for service_name, node in scene_root.items():
        sections.append(f"- {service_name} ({node.class_tag}): {len(node.children)} children")

    class_counts = node_count_by_class(scene_root)
    if class_counts:
        ranked = sorted(class_counts.items(), key=lambda item: (-item[1], item[0]))[:MAX_CLASS_COUNTS]
        sections.append("Object types: " + ", ".join(f"{tag} x{count}" for tag, count in ranked))

    if mentions_any(instruction, STRUCTURAL_KEYWORDS) and PRIMARY_CONTAINER in scene_root:
        sections.append("")
        sections.append(f"{PRIMARY_CONTAINER} Contents:")
        sections.extend(render_subtree(scene_root[PRIMARY_CONTAINER]))

    if mentions_any(instruction, BEHAVIORAL_KEYWORDS):
        for container_name in SCRIPT_CONTAINERS:
            container = scene_root.get(container_name)
            if container is None:
                continue
            listing = _script_listing(container)
            if listing:
                sections.append("")
                sections.append(f"{container_name} Scripts:")
                sections.extend(listing)

    return cap_text("\n".join(sections), max_chars)


def node_count_by_class(scene_root: SceneRoot) -> dict[str, int]:
    counts: dict[str, int] = {}
    for node in scene_root.values():
        for _, _, current in iter_nodes(node):
            counts[current.class_tag] = counts.get(current.class_tag, 0) + 1
    return counts
