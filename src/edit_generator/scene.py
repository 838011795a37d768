"""Scene tree model built from the editor's JSON snapshot.

Scene payloads are supplied by the editor client and their depth is not
bounded, so building and walking the tree uses an explicit stack.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from .errors import RequestValidationError

SCRIPT_CLASSES = frozenset({"Script", "LocalScript", "ModuleScript"})


@dataclass
class SceneNode:
    class_tag: str
    name: str
    properties: dict[str, Any] = field(default_factory=dict)
    children: list["SceneNode"] = field(default_factory=list)

    @property
    def is_script(self) -> bool:
        return self.class_tag in SCRIPT_CLASSES or self.class_tag.endswith("Script")


SceneRoot = Mapping[str, SceneNode]


def _pick(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return default


def _node_shell(payload: Any, where: str, fallback_name: str) -> tuple[SceneNode, list[Any]]:
    if not isinstance(payload, Mapping):
        raise RequestValidationError("Scene tree is invalid", details=f"{where}: node must be an object")

    class_tag = _pick(payload, "className", "ClassName", "classTag", "class", default=None)
    name = _pick(payload, "name", "Name", default=None)
    properties = _pick(payload, "properties", "Properties", default=None) or {}
    children = _pick(payload, "children", "Children", default=None) or []

    if not isinstance(properties, Mapping):
        raise RequestValidationError("Scene tree is invalid", details=f"{where}: properties must be an object")
    if not isinstance(children, list):
        raise RequestValidationError("Scene tree is invalid", details=f"{where}: children must be a list")

    node = SceneNode(
        class_tag=str(class_tag) if class_tag is not None else fallback_name,
        name=str(name) if name is not None else fallback_name,
        properties=dict(properties),
    )
    return node, children


def build_scene_tree(payload: Any, *, max_nodes: int = 100_000) -> dict[str, SceneNode]:
    """Convert the raw ``{service: node}`` payload into SceneNode trees.

    Raises RequestValidationError for non-object nodes, malformed children or
    a tree larger than ``max_nodes``.
    """
    if not isinstance(payload, Mapping):
        raise RequestValidationError("Scene tree is invalid", details="scene tree must be an object")

    root: dict[str, SceneNode] = {}
    count = 0
    stack: list[tuple[SceneNode, list[Any], str]] = []

    for service_name, service_payload in payload.items():
        node, raw_children = _node_shell(service_payload, str(service_name), str(service_name))
        root[str(service_name)] = node
        count += 1
        stack.append((node, raw_children, str(service_name)))

        while stack:
            parent, pending, where = stack.pop()
            for index, child_payload in enumerate(pending):
                count += 1
                if count > max_nodes:
                    raise RequestValidationError(
                        "Scene tree is too large",
                        details=f"scene tree exceeds {max_nodes} nodes",
                    )
                child_where = f"{where}/{index}"
                child, grandchildren = _node_shell(child_payload, child_where, "Instance")
                parent.children.append(child)
                if grandchildren:
                    stack.append((child, grandchildren, child_where))

    return root


def iter_nodes(node: SceneNode, path: tuple[str, ...] = ()) -> Iterator[tuple[tuple[str, ...], int, SceneNode]]:
    """Yield ``(path, depth, node)`` in pre-order, children in insertion order."""
    stack: list[tuple[tuple[str, ...], int, SceneNode]] = [(path + (node.name,), 0, node)]
    while stack:
        node_path, depth, current = stack.pop()
        yield node_path, depth, current
        for child in reversed(current.children):
            stack.append((node_path + (child.name,), depth + 1, child))


def count_nodes(scene_root: SceneRoot) -> int:
    return sum(1 for node in scene_root.values() for _ in iter_nodes(node))


def find_scripts(node: SceneNode) -> list[tuple[tuple[str, ...], SceneNode]]:
    return [(path, current) for path, _, current in iter_nodes(node) if current.is_script]
