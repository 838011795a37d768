"""Turn raw model output into a list of (unvalidated) operation dicts.

Model output is untrusted: malformed text degrades to an empty or best-effort
result rather than failing the request.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from .models import EditMode

logger = logging.getLogger(__name__)

MAX_RAW_SUMMARY_CHARS = 2000
DEFAULT_SCRIPT_NAME = "GeneratedScript"
DEFAULT_SCRIPT_PARENT = ("ServerScriptService",)

_FENCE_WRAPPER = re.compile(r"^\s*```[\w-]*\s*\n?([\s\S]*?)\n?\s*```\s*$")
_FENCED_BLOCK = re.compile(r"```([\w-]*)[ \t]*\n([\s\S]*?)```")
_JSON_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_HEADING = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)


@dataclass
class ParsedResponse:
    operations: list[dict[str, Any]] = field(default_factory=list)
    summary: str = ""
    strategy: str = "json"      # "json", "code_block" or "raw_text"


def strip_code_fence(text: str) -> str:
    match = _FENCE_WRAPPER.match(text)
    return match.group(1) if match else text


def parse_json_payload(text: str) -> dict[str, Any] | list[Any] | None:
    """Parse LLM JSON output, tolerating code fences and surrounding prose."""
    if not text or not text.strip():
        return None

    candidates = [strip_code_fence(text).strip()]
    candidates.extend(block.strip() for block in _JSON_BLOCK.findall(text) if block.strip())
    candidates.append(text.strip())

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
            if isinstance(parsed, (dict, list)):
                return parsed
        except json.JSONDecodeError:
            pass
        # Try raw_decode from first {
        start = candidate.find("{")
        if start >= 0:
            try:
                parsed, _ = json.JSONDecoder().raw_decode(candidate[start:])
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                pass
    return None


def _script_operation(entry: Any) -> dict[str, Any] | Any:
    if not isinstance(entry, dict):
        return entry
    return {
        "type": "create_script",
        "classTag": entry.get("classTag") or entry.get("className") or entry.get("type") or "Script",
        "name": entry.get("name"),
        "path": entry.get("path"),
        "source": entry.get("source"),
    }


def _instance_operation(entry: Any) -> dict[str, Any] | Any:
    if not isinstance(entry, dict):
        return entry
    return {
        "type": "create_instance",
        "classTag": entry.get("classTag") or entry.get("className"),
        "name": entry.get("name"),
        "path": entry.get("path"),
        "properties": entry.get("properties") or {},
    }


def _from_structured(payload: dict[str, Any] | list[Any], mode: EditMode) -> ParsedResponse | None:
    if isinstance(payload, list):
        return ParsedResponse(operations=list(payload), summary="", strategy="json")

    summary = payload.get("summary")
    summary = summary if isinstance(summary, str) else ""

    operations = payload.get("operations")
    if isinstance(operations, list):
        return ParsedResponse(
            operations=list(operations),
            summary=summary or "AI operations completed",
            strategy="json",
        )

    if mode is EditMode.GENERATE:
        scripts = payload.get("scripts")
        instances = payload.get("instances")
        if isinstance(scripts, list) or isinstance(instances, list):
            ops = [_instance_operation(i) for i in instances or []]
            ops.extend(_script_operation(s) for s in scripts or [])
            return ParsedResponse(operations=ops, summary=summary or "Scripts generated", strategy="json")

    return None


def _script_name_from_heading(heading: str | None) -> str:
    if not heading:
        return DEFAULT_SCRIPT_NAME
    name = re.sub(r"[^A-Za-z0-9_]", "", heading.title())
    return name or DEFAULT_SCRIPT_NAME


def _extract_code_block(text: str) -> tuple[str | None, str] | None:
    """Return ``(heading, code)`` for the best fenced block in ``text``.

    A block placed under a markdown heading wins over a bare block.
    """
    blocks = list(_FENCED_BLOCK.finditer(text))
    if not blocks:
        return None

    headings = list(_HEADING.finditer(text))
    best: tuple[str | None, str] | None = None
    for block in blocks:
        code = block.group(2).strip("\n")
        if not code.strip():
            continue
        preceding = [h for h in headings if h.end() <= block.start()]
        heading = preceding[-1].group(1) if preceding else None
        if heading is not None:
            return heading, code
        if best is None:
            best = (None, code)
    return best


def parse(raw: Any, mode: EditMode) -> ParsedResponse:
    """Extract operations from ``raw`` model output.

    Raises TypeError only when ``raw`` is neither text nor an already-parsed
    object; malformed text never raises.
    """
    if isinstance(raw, dict):
        structured = _from_structured(raw, mode)
        if structured is not None:
            return structured
        return ParsedResponse(summary=str(raw.get("summary") or ""), strategy="raw_text")

    if not isinstance(raw, str):
        raise TypeError(f"Model output must be str or dict, got {type(raw).__name__}")

    payload = parse_json_payload(raw)
    if payload is not None:
        structured = _from_structured(payload, mode)
        if structured is not None:
            return structured

    if mode is EditMode.GENERATE:
        extracted = _extract_code_block(raw)
        if extracted is not None:
            heading, code = extracted
            name = _script_name_from_heading(heading)
            logger.info("Recovered script '%s' from unstructured model output", name)
            return ParsedResponse(
                operations=[{
                    "type": "create_script",
                    "classTag": "Script",
                    "name": name,
                    "path": list(DEFAULT_SCRIPT_PARENT),
                    "source": code,
                }],
                summary=heading or "Script generated from unstructured response",
                strategy="code_block",
            )

    logger.warning("Model output had no operations; returning raw text as summary")
    return ParsedResponse(summary=raw.strip()[:MAX_RAW_SUMMARY_CHARS], strategy="raw_text")
