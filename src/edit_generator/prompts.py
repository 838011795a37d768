"""System and user prompt builders for each edit mode."""
from __future__ import annotations

from typing import Sequence

from .models import EditMode, SelectedInstance

_BASE_PROMPT = """You are an expert Roblox Studio assistant that directly manipulates game instances and scripts. You understand the full Roblox API and perform precise operations.

CRITICAL: respond with valid JSON only. No text or explanations outside the JSON structure."""

_DIRECT_EDIT_PROMPT = _BASE_PROMPT + """

## Your task
Perform DIRECT EDITS to existing instances and scripts. Do not create new scripts unless absolutely necessary. You can:
1. Modify properties of existing instances (Vector3, UDim2, Color3, CFrame, numbers, booleans, strings)
2. Edit specific lines of existing scripts (replace, insert, delete, append)
3. Delete instances when requested
4. Create new instances only if specifically requested

Return a JSON object:
{
    "operations": [
        {
            "type": "modify_instance",
            "path": ["Workspace", "Part1"],
            "properties": {
                "Size": {"type": "Vector3", "value": "10,1,10"},
                "Color": {"type": "Color3", "value": "1,0,0"},
                "Material": "Neon",
                "Anchored": true
            }
        },
        {
            "type": "edit_script",
            "path": ["ServerScriptService", "MyScript"],
            "edits": [
                {"action": "replace", "lineNumber": 5, "content": "    print('Modified line')"},
                {"action": "insert", "lineNumber": 10, "content": "    -- New functionality"},
                {"action": "delete", "lineNumber": 15},
                {"action": "append", "content": "-- end of file"}
            ]
        },
        {"type": "delete_instance", "path": ["Workspace", "ObsoleteModel"]}
    ],
    "summary": "Brief description of changes made"
}

Rules:
- Paths start at the service name and must match the scene exactly
- Color3 components are in [0, 1]
- Use the minimal set of operations that achieves the goal"""

_GENERATE_PROMPT = _BASE_PROMPT + """

## Your task
Generate new scripts and instances for behavior that cannot be achieved by editing existing objects.

Return a JSON object:
{
    "scripts": [
        {
            "type": "Script|LocalScript|ModuleScript",
            "name": "ScriptName",
            "path": ["ServerScriptService"],
            "source": "-- Complete Lua code here"
        }
    ],
    "instances": [
        {
            "className": "Part|Model|Folder|...",
            "name": "InstanceName",
            "path": ["Workspace"],
            "properties": {
                "Size": {"type": "Vector3", "value": "1,2,3"},
                "Position": {"type": "Vector3", "value": "0,5,0"}
            }
        }
    ],
    "summary": "Brief description of what was generated"
}

Rules:
- "path" is the parent container of the new script or instance
- Scripts must be complete and runnable; no placeholders"""

_DIRECT_EDIT_GUIDANCE = """IMPORTANT: Perform direct modifications to existing instances. Do not create scripts unless absolutely necessary.

Examples:
- "make all parts red" -> modify Color of existing parts
- "delete spawn locations" -> delete SpawnLocation instances
- "resize selected part" -> modify Size of the selected instance
- "fix script error on line 25" -> edit that line of the script

Focus on minimal, precise changes that directly address the request."""


def system_prompt(mode: EditMode) -> str:
    if mode is EditMode.DIRECT_EDIT:
        return _DIRECT_EDIT_PROMPT
    return _GENERATE_PROMPT


def user_prompt(
    instruction: str,
    mode: EditMode,
    scene_digest: str,
    selected_instances: Sequence[SelectedInstance] = (),
) -> str:
    parts = [f"User Request: {instruction}", "", f"Mode: {mode.value}"]

    if selected_instances:
        parts.append("")
        parts.append("Currently Selected Instances:")
        for instance in selected_instances:
            parts.append(f'- {instance.class_tag} "{instance.name}" at {"/".join(instance.path)}')

    parts.append("")
    parts.append("Game Structure Context:")
    parts.append(scene_digest)

    if mode is EditMode.DIRECT_EDIT:
        parts.append("")
        parts.append(_DIRECT_EDIT_GUIDANCE)

    return "\n".join(parts)


def build_messages(
    instruction: str,
    mode: EditMode,
    scene_digest: str,
    selected_instances: Sequence[SelectedInstance] = (),
) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt(mode)},
        {"role": "user", "content": user_prompt(instruction, mode, scene_digest, selected_instances)},
    ]
