"""Request pipeline behind the HTTP routes and the CLI.

Inbound payload validation -> scene tree -> classifier -> orchestrator.
"""
from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from edit_generator.classifier import classify
from edit_generator.config import cfg
from edit_generator.errors import RequestValidationError
from edit_generator.models import AnalyzeRequest, ClassificationResult, EditMode, GenerateRequest
from edit_generator.orchestrator import GenerationOrchestrator
from edit_generator.scene import build_scene_tree, count_nodes
from edit_generator.scene_context import summarize

logger = logging.getLogger("edit-assistant-server")

RequestModel = TypeVar("RequestModel", bound=BaseModel)


def validation_details(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())) or "body",
            "message": error.get("msg", "invalid value"),
        }
        for error in exc.errors()
    ]


def parse_request(model: type[RequestModel], payload: Any) -> RequestModel:
    if not isinstance(payload, dict):
        raise RequestValidationError("Validation failed", details=[
            {"field": "body", "message": "request body must be a JSON object"},
        ])
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError("Validation failed", details=validation_details(exc)) from None


def resolve_mode(requested: str, classification: ClassificationResult) -> EditMode:
    """``auto`` defers to the classifier; an explicit mode always wins."""
    if requested == "auto":
        return classification.mode
    return EditMode(requested)


def analyze_request(
    payload: Any,
    *,
    max_scene_nodes: int | None = None,
    context_max_chars: int | None = None,
) -> dict[str, Any]:
    """Classify a prompt without calling any provider."""
    request = parse_request(AnalyzeRequest, payload)
    scene_root = build_scene_tree(
        request.scene_tree or {},
        max_nodes=max_scene_nodes if max_scene_nodes is not None else cfg.max_scene_nodes,
    )

    classification = classify(
        request.prompt,
        scene_root,
        request.selected_instances,
        request.request_size,
    )
    digest = summarize(
        scene_root,
        request.prompt,
        context_max_chars if context_max_chars is not None else cfg.context_max_chars,
    )
    return {
        "success": True,
        "analysis": classification.model_dump(mode="json", by_alias=True),
        "recommendedMode": classification.mode.value,
        "sceneNodes": count_nodes(scene_root),
        "contextLength": len(digest),
    }


class GenerationService:
    def __init__(self, orchestrator: GenerationOrchestrator, *, max_scene_nodes: int | None = None) -> None:
        self.orchestrator = orchestrator
        self.max_scene_nodes = max_scene_nodes if max_scene_nodes is not None else cfg.max_scene_nodes

    async def generate(self, payload: Any) -> dict[str, Any]:
        request = parse_request(GenerateRequest, payload)
        scene_root = build_scene_tree(request.scene_tree, max_nodes=self.max_scene_nodes)

        classification = classify(
            request.prompt,
            scene_root,
            request.selected_instances,
            request.request_size,
        )
        mode = resolve_mode(request.mode, classification)
        logger.info(
            "Generate request: mode=%s (requested %s) complexity=%.2f size=%s",
            mode.value,
            request.mode,
            classification.complexity_score,
            request.request_size,
        )

        result = await self.orchestrator.generate(
            request.prompt,
            scene_root,
            request.request_size,
            mode,
            request.selected_instances,
        )
        return {
            "success": True,
            **result.to_payload(),
            "mode": mode.value,
            "classification": classification.model_dump(mode="json", by_alias=True),
        }

    def analyze(self, payload: Any) -> dict[str, Any]:
        return analyze_request(
            payload,
            max_scene_nodes=self.max_scene_nodes,
            context_max_chars=self.orchestrator.context_max_chars,
        )
