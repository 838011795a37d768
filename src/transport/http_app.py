"""Starlette application exposing the edit assistant over HTTP."""

from __future__ import annotations

import functools
import json
import logging
from typing import Any, Awaitable, Callable

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from core.auth import AuthSettings, build_http_auth_guard
from edit_generator import __version__
from edit_generator.config import cfg
from edit_generator.errors import (
    AllProvidersExhausted,
    EditAssistantError,
    PayloadTooLarge,
    ProviderUnavailable,
    RequestValidationError,
)
from edit_generator.models import SwitchProviderRequest
from edit_generator.orchestrator import GenerationOrchestrator
from edit_generator.providers import ProviderRegistry
from services.generation import GenerationService, parse_request

logger = logging.getLogger("edit-assistant-server")

SERVICE_NAME = "edit-assistant"

# Checked in order; subclasses must precede their bases.
ERROR_STATUS: tuple[tuple[type[EditAssistantError], int], ...] = (
    (PayloadTooLarge, 413),
    (RequestValidationError, 400),
    (ProviderUnavailable, 400),
    (AllProvidersExhausted, 502),
)

Handler = Callable[[Request], Awaitable[JSONResponse]]


def error_response(message: str, status_code: int, details: Any = None) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "error": message}
    if details is not None:
        body["details"] = details
    return JSONResponse(body, status_code=status_code)


def _status_for(exc: EditAssistantError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


def json_envelope(handler: Handler) -> Handler:
    """Map pipeline errors onto ``{success: false, error, details?}`` responses."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> JSONResponse:
        try:
            return await handler(request)
        except EditAssistantError as exc:
            status_code = _status_for(exc)
            if status_code >= 500:
                logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
                if isinstance(exc, AllProvidersExhausted):
                    return error_response("AI generation failed", status_code, exc.message)
                return error_response("Internal server error", status_code)
            logger.info("%s %s rejected (%d): %s", request.method, request.url.path, status_code, exc.message)
            return error_response(exc.message, status_code, getattr(exc, "details", None))
        except Exception:
            logger.exception("Unhandled error in %s %s", request.method, request.url.path)
            return error_response("Internal server error", 500)

    return wrapper


async def read_json_body(request: Request, max_bytes: int) -> Any:
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLarge("Request body too large", details=f"limit is {max_bytes} bytes")

    body = await request.body()
    if len(body) > max_bytes:
        raise PayloadTooLarge("Request body too large", details=f"limit is {max_bytes} bytes")
    if not body:
        raise RequestValidationError("Validation failed", details=[
            {"field": "body", "message": "request body is required"},
        ])
    try:
        return json.loads(body)
    except ValueError:
        raise RequestValidationError("Validation failed", details=[
            {"field": "body", "message": "request body is not valid JSON"},
        ]) from None


def create_app(
    registry: ProviderRegistry,
    orchestrator: GenerationOrchestrator | None = None,
    *,
    auth_settings: AuthSettings | None = None,
    max_body_bytes: int | None = None,
) -> Starlette:
    orchestrator = orchestrator or GenerationOrchestrator(registry)
    service = GenerationService(orchestrator)
    body_limit = max_body_bytes if max_body_bytes is not None else cfg.max_body_bytes

    @json_envelope
    async def generate(request: Request) -> JSONResponse:
        payload = await read_json_body(request, body_limit)
        return JSONResponse(await service.generate(payload))

    @json_envelope
    async def analyze(request: Request) -> JSONResponse:
        payload = await read_json_body(request, body_limit)
        return JSONResponse(service.analyze(payload))

    @json_envelope
    async def provider_info(request: Request) -> JSONResponse:
        return JSONResponse({"success": True, **registry.info()})

    @json_envelope
    async def provider_switch(request: Request) -> JSONResponse:
        payload = await read_json_body(request, body_limit)
        switch_request = parse_request(SwitchProviderRequest, payload)
        try:
            registry.switch(switch_request.provider)
        except ProviderUnavailable as exc:
            raise RequestValidationError("Failed to switch provider", details=exc.message) from exc
        info = registry.info()
        return JSONResponse({
            "success": True,
            "provider": info["name"],
            "message": f"Switched to {info['name']}",
            "info": info,
        })

    @json_envelope
    async def provider_test(request: Request) -> JSONResponse:
        result = await orchestrator.test_connection(request.query_params.get("provider"))
        status_code = 200 if result.get("success") else 502
        return JSONResponse(result, status_code=status_code)

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": __version__,
            "provider": registry.info()["name"],
            "providers": [kind.value for kind in registry.available_kinds()],
        })

    routes = [
        Route("/generate", generate, methods=["POST"]),
        Route("/analyze", analyze, methods=["POST"]),
        Route("/provider/info", provider_info, methods=["GET"]),
        Route("/provider/switch", provider_switch, methods=["POST"]),
        Route("/provider/test", provider_test, methods=["GET"]),
        Route("/health", health, methods=["GET"]),
    ]

    middleware: list[Middleware] = []
    if auth_settings is not None and auth_settings.enabled:
        middleware.append(Middleware(build_http_auth_guard(auth_settings)))
        logger.info("HTTP auth enabled (allowed IPs: %s)", auth_settings.allowlist_label)

    return Starlette(routes=routes, middleware=middleware)
