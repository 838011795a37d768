"""Generation orchestrator: prompt building, provider fallback, parse, validate.

Providers are attempted strictly one after another (no parallel calls, no
retry inside a provider); any provider failure advances to the next one.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx

from . import response_parser
from .config import cfg
from .errors import AllProvidersExhausted, ProviderError, ProviderTimeout
from .models import EditMode, GenerationResult, SelectedInstance
from .prompts import build_messages, system_prompt
from .providers import Completion, ProviderKind, ProviderRegistry, lookup_kind, max_tokens_for
from .scene import SceneRoot
from .scene_context import summarize
from .validator import validate_operations

logger = logging.getLogger(__name__)

_CONNECTION_TEST_PROMPT = 'Return JSON: {"test": "success"}'


class GenerationOrchestrator:
    """Runs one generation request against the registry's providers.

    ``transport`` lets callers (tests, proxies) supply the httpx transport used
    for provider calls.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        timeout: float | None = None,
        context_max_chars: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.registry = registry
        self.timeout = timeout if timeout is not None else cfg.provider_timeout_seconds
        self.context_max_chars = context_max_chars if context_max_chars is not None else cfg.context_max_chars
        self._transport = transport

    async def _call_provider(
        self,
        kind: ProviderKind,
        messages: list[dict[str, str]],
        max_tokens: int,
    ) -> Completion:
        backend = self.registry.backend(kind)
        name = backend.config.name
        api_key = self.registry.credential(kind)
        if api_key is None:
            raise ProviderError(name, f"API key not found for {name}")

        model = self.registry.model_for(kind)
        logger.info("Generating with %s using model: %s", name, model)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                return await asyncio.wait_for(
                    backend.complete(client, messages, model, max_tokens, api_key),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                raise ProviderTimeout(name, f"{name} request timed out after {self.timeout:g}s") from None

    async def generate(
        self,
        instruction: str,
        scene_root: SceneRoot,
        request_size: str = "medium",
        mode: EditMode = EditMode.DIRECT_EDIT,
        selected_instances: Sequence[SelectedInstance] = (),
    ) -> GenerationResult:
        """Generate operations for ``instruction``, falling back across providers.

        Raises AllProvidersExhausted carrying the last provider's error when
        every provider fails.
        """
        # Later provider switches must not affect this call.
        selection = self.registry.selection
        attempts = selection.attempt_order

        digest = summarize(scene_root, instruction, self.context_max_chars)
        messages = build_messages(instruction, mode, digest, selected_instances)
        max_tokens = max_tokens_for(request_size)

        last_error: ProviderError | None = None
        for position, kind in enumerate(attempts, start=1):
            name = self.registry.backend(kind).config.name
            logger.info("Attempting generation with %s (attempt %d/%d)", name, position, len(attempts))
            try:
                completion = await self._call_provider(kind, messages, max_tokens)
            except ProviderError as exc:
                last_error = exc
                logger.error("%s failed: %s", name, exc.message)
                continue

            if position > 1:
                logger.warning("Primary provider failed, successfully used fallback: %s", name)
            return self._finish(completion, mode, name)

        raise AllProvidersExhausted(last_error.message if last_error else "no providers attempted")

    def _finish(self, completion: Completion, mode: EditMode, provider_name: str) -> GenerationResult:
        parsed = response_parser.parse(completion.text, mode)
        report = validate_operations(parsed.operations)
        logger.info(
            "%s response processed (%s): %d accepted, %d rejected",
            provider_name,
            parsed.strategy,
            len(report.accepted),
            len(report.rejected),
        )
        return GenerationResult(
            operations=report.accepted,
            summary=parsed.summary,
            provider_used=provider_name,
            tokens_consumed=completion.tokens,
            rejected=report.rejected,
            warnings=report.warnings,
        )

    async def test_connection(self, provider: str | None = None) -> dict[str, Any]:
        """Send a tiny request to one provider (the primary by default)."""
        if provider:
            kind = lookup_kind(provider)
            if kind is None:
                return {"success": False, "error": f"Unknown provider: {provider}"}
        else:
            kind = self.registry.selection.primary

        name = self.registry.backend(kind).config.name
        messages = [
            {"role": "system", "content": system_prompt(EditMode.DIRECT_EDIT)},
            {"role": "user", "content": _CONNECTION_TEST_PROMPT},
        ]
        try:
            completion = await self._call_provider(kind, messages, max_tokens_for("small"))
        except ProviderError as exc:
            return {"success": False, "provider": name, "error": exc.message}
        return {"success": True, "provider": name, "tokens": completion.tokens}
