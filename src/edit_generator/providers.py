"""AI provider backends and the registry that picks primary and fallbacks.

Each backend is one member of ``ProviderKind`` with one ``ProviderBackend``
implementation registered in ``BACKENDS``. Adding a provider means adding an
enum member and a backend class; the import-time check below fails if a kind
has no backend.

OpenAI-compatible providers and Anthropic go through their official SDKs;
Gemini is called over plain httpx. Every backend is handed the httpx client
owned by the caller, so timeouts and transports are controlled in one place.
"""
from __future__ import annotations

import abc
import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import anthropic
import httpx
import openai

from .config import cfg
from .errors import (
    ProviderConfigurationError,
    ProviderError,
    ProviderHTTPError,
    ProviderResponseError,
    ProviderTimeout,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.3
MAX_ERROR_DETAIL_CHARS = 300

TOKEN_BUDGETS: dict[str, int] = {
    "small": 1500,
    "medium": 3000,
    "large": 6000,
}


def max_tokens_for(request_size: str) -> int:
    return TOKEN_BUDGETS.get(request_size, TOKEN_BUDGETS["medium"])


class ProviderKind(str, Enum):
    """Known backends, in priority order."""
    OPENROUTER = "openrouter"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


@dataclass(frozen=True)
class ProviderConfig:
    kind: ProviderKind
    name: str
    key_env_var: str
    endpoint: str
    default_model: str
    models: tuple[str, ...] = ()
    base_url: str | None = None     # SDK base URL when it differs from ``endpoint``


@dataclass(frozen=True)
class Completion:
    text: str
    tokens: int = 0


def _as_int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def error_detail(response: httpx.Response) -> str:
    """Best-effort human-readable error text from a failed provider response."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"][:MAX_ERROR_DETAIL_CHARS]
        if isinstance(error, str):
            return error[:MAX_ERROR_DETAIL_CHARS]
        if isinstance(payload.get("message"), str):
            return payload["message"][:MAX_ERROR_DETAIL_CHARS]
    text = response.text.strip()
    return text[:MAX_ERROR_DETAIL_CHARS] if text else response.reason_phrase


def split_system(messages: list[dict[str, str]]) -> tuple[str, list[dict[str, str]]]:
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    return system, [m for m in messages if m["role"] != "system"]


class ProviderBackend(abc.ABC):
    """Request/response shaping for one provider.

    Subclasses shape the request (``build_request``), send it (``send``) and
    read the reply (``parse_response``). ``complete`` runs the three and
    guarantees that any failure surfaces as a ProviderError, so the
    orchestrator can move on to the next provider.
    """

    config: ProviderConfig

    async def complete(
        self,
        client: httpx.AsyncClient,
        messages: list[dict[str, str]],
        model: str,
        max_tokens: int,
        api_key: str,
    ) -> Completion:
        try:
            return await self.send(client, self.build_request(messages, model, max_tokens), api_key)
        except ProviderError:
            raise
        except Exception as exc:
            logger.exception("Unexpected failure calling %s", self.config.name)
            detail = str(exc).strip() or exc.__class__.__name__
            raise ProviderResponseError(
                self.config.name,
                f"{self.config.name} call failed unexpectedly: {detail}",
            ) from exc

    @abc.abstractmethod
    def build_request(self, messages: list[dict[str, str]], model: str, max_tokens: int) -> dict[str, Any]:
        """Return the request payload for one completion."""

    @abc.abstractmethod
    async def send(self, client: httpx.AsyncClient, request: dict[str, Any], api_key: str) -> Completion:
        """Send ``request``, raising a ProviderError subclass on failure."""

    @abc.abstractmethod
    def parse_response(self, response: Any) -> Completion:
        """Read text and token usage out of a provider reply."""

    def _malformed(self, detail: str) -> ProviderResponseError:
        return ProviderResponseError(self.config.name, f"Malformed {self.config.name} response: {detail}")

    def _http_error(self, response: httpx.Response) -> ProviderHTTPError:
        return ProviderHTTPError(
            self.config.name,
            f"{self.config.name} returned HTTP {response.status_code}: {error_detail(response)}",
            status_code=response.status_code,
        )

    def _timeout(self) -> ProviderTimeout:
        return ProviderTimeout(self.config.name, f"{self.config.name} request timed out")

    def _transport_error(self, exc: Exception) -> ProviderHTTPError:
        detail = str(exc).strip() or exc.__class__.__name__
        return ProviderHTTPError(self.config.name, f"{self.config.name} request failed: {detail}")


class _ChatCompletionsBackend(ProviderBackend):
    """OpenAI-compatible chat completions through the ``openai`` SDK."""

    def default_headers(self) -> dict[str, str]:
        return {}

    def sdk_client(self, client: httpx.AsyncClient, api_key: str) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(
            api_key=api_key,
            base_url=self.config.base_url,
            http_client=client,
            timeout=client.timeout,
            max_retries=0,
            default_headers=self.default_headers() or None,
        )

    def build_request(self, messages, model, max_tokens):
        return {
            "model": model,
            "messages": messages,
            "temperature": DEFAULT_TEMPERATURE,
            "max_tokens": max_tokens,
        }

    async def send(self, client, request, api_key):
        sdk = self.sdk_client(client, api_key)
        try:
            response = await sdk.chat.completions.create(**request)
        except openai.APITimeoutError:
            raise self._timeout() from None
        except openai.APIStatusError as exc:
            raise self._http_error(exc.response) from None
        except openai.APIConnectionError as exc:
            raise self._transport_error(exc) from None
        except openai.APIError as exc:
            raise self._malformed(str(exc)) from None
        return self.parse_response(response)

    def parse_response(self, response: Any) -> Completion:
        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError, KeyError, TypeError):
            raise self._malformed("missing choices[0].message.content") from None
        if not isinstance(text, str):
            raise self._malformed("completion content is not text")
        usage = getattr(response, "usage", None)
        return Completion(text=text, tokens=_as_int(getattr(usage, "total_tokens", 0)))


class OpenRouterBackend(_ChatCompletionsBackend):
    config = ProviderConfig(
        kind=ProviderKind.OPENROUTER,
        name="OpenRouter",
        key_env_var="OPENROUTER_API_KEY",
        endpoint="https://openrouter.ai/api/v1/chat/completions",
        base_url="https://openrouter.ai/api/v1",
        default_model="deepseek/deepseek-r1-0528:free",
        models=(
            "deepseek/deepseek-r1-0528:free",
            "anthropic/claude-3.5-sonnet",
            "openai/gpt-4-turbo",
            "google/gemini-pro",
        ),
    )

    def default_headers(self) -> dict[str, str]:
        return {
            "HTTP-Referer": cfg.site_url,
            "X-Title": cfg.site_name,
        }


class OpenAIBackend(_ChatCompletionsBackend):
    config = ProviderConfig(
        kind=ProviderKind.OPENAI,
        name="OpenAI",
        key_env_var="OPENAI_API_KEY",
        endpoint="https://api.openai.com/v1/chat/completions",
        base_url="https://api.openai.com/v1",
        default_model="gpt-4-turbo-preview",
        models=("gpt-4-turbo-preview", "gpt-4", "gpt-3.5-turbo"),
    )


class AnthropicBackend(ProviderBackend):
    config = ProviderConfig(
        kind=ProviderKind.ANTHROPIC,
        name="Anthropic Claude",
        key_env_var="ANTHROPIC_API_KEY",
        endpoint="https://api.anthropic.com/v1/messages",
        base_url="https://api.anthropic.com",
        default_model="claude-3-sonnet-20240229",
        models=("claude-3-opus-20240229", "claude-3-sonnet-20240229", "claude-3-haiku-20240307"),
    )

    def sdk_client(self, client: httpx.AsyncClient, api_key: str) -> anthropic.AsyncAnthropic:
        return anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=self.config.base_url,
            http_client=client,
            timeout=client.timeout,
            max_retries=0,
        )

    def build_request(self, messages, model, max_tokens):
        system, conversation = split_system(messages)
        request: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": DEFAULT_TEMPERATURE,
            "messages": conversation,
        }
        if system:
            request["system"] = system
        return request

    async def send(self, client, request, api_key):
        sdk = self.sdk_client(client, api_key)
        try:
            response = await sdk.messages.create(**request)
        except anthropic.APITimeoutError:
            raise self._timeout() from None
        except anthropic.APIStatusError as exc:
            raise self._http_error(exc.response) from None
        except anthropic.APIConnectionError as exc:
            raise self._transport_error(exc) from None
        except anthropic.APIError as exc:
            raise self._malformed(str(exc)) from None
        return self.parse_response(response)

    def parse_response(self, response: Any) -> Completion:
        try:
            blocks = list(response.content)
            text = "".join(block.text for block in blocks if getattr(block, "type", "text") == "text")
        except (AttributeError, TypeError):
            raise self._malformed("missing content[].text") from None
        if not blocks:
            raise self._malformed("empty content")
        usage = getattr(response, "usage", None)
        tokens = _as_int(getattr(usage, "input_tokens", 0)) + _as_int(getattr(usage, "output_tokens", 0))
        return Completion(text=text, tokens=tokens)


class GoogleBackend(ProviderBackend):
    """Gemini ``generateContent`` over plain httpx."""

    config = ProviderConfig(
        kind=ProviderKind.GOOGLE,
        name="Google Gemini",
        key_env_var="GOOGLE_API_KEY",
        endpoint="https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
        default_model="gemini-pro",
        models=("gemini-pro", "gemini-pro-vision"),
    )

    def url_for(self, model: str) -> str:
        return self.config.endpoint.format(model=model)

    def build_request(self, messages, model, max_tokens):
        contents = [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
        ]
        return {
            "model": model,
            "body": {
                "contents": contents,
                "generationConfig": {
                    "temperature": DEFAULT_TEMPERATURE,
                    "maxOutputTokens": max_tokens,
                },
            },
        }

    async def send(self, client, request, api_key):
        try:
            # The key travels as a query parameter.
            response = await client.post(
                self.url_for(request["model"]),
                params={"key": api_key},
                json=request["body"],
            )
        except httpx.TimeoutException:
            raise self._timeout() from None
        except httpx.HTTPError as exc:
            raise self._transport_error(exc) from None

        if not response.is_success:
            raise self._http_error(response)
        try:
            payload = response.json()
        except ValueError:
            raise self._malformed("body is not JSON") from None
        return self.parse_response(payload)

    def parse_response(self, payload: Any) -> Completion:
        try:
            text = payload["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise self._malformed("missing candidates[0].content.parts[0].text") from None
        if not isinstance(text, str):
            raise self._malformed("completion text is not a string")
        usage = payload.get("usageMetadata") or {}
        return Completion(text=text, tokens=_as_int(usage.get("totalTokenCount")))


BACKENDS: dict[ProviderKind, ProviderBackend] = {
    ProviderKind.OPENROUTER: OpenRouterBackend(),
    ProviderKind.OPENAI: OpenAIBackend(),
    ProviderKind.ANTHROPIC: AnthropicBackend(),
    ProviderKind.GOOGLE: GoogleBackend(),
}

_missing = [kind for kind in ProviderKind if kind not in BACKENDS]
if _missing:
    raise RuntimeError(f"No backend registered for provider kinds: {_missing}")


def lookup_kind(name: str) -> ProviderKind | None:
    """Resolve a provider by kind value, enum name or display name (case-insensitive)."""
    wanted = name.strip().lower()
    for kind, backend in BACKENDS.items():
        if wanted in (kind.value, kind.name.lower(), backend.config.name.lower()):
            return kind
    return None


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderSelection:
    primary: ProviderKind
    fallbacks: tuple[ProviderKind, ...] = ()

    @property
    def attempt_order(self) -> tuple[ProviderKind, ...]:
        return (self.primary,) + self.fallbacks


class ProviderRegistry:
    """Holds the provider selection shared by all in-flight requests.

    The selection is an immutable value replaced as a whole; readers take one
    reference at the start of a call and later switches do not affect them.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ
        self._lock = threading.Lock()

        available = self.available_kinds()
        if not available:
            env_vars = ", ".join(b.config.key_env_var for b in BACKENDS.values())
            raise ProviderConfigurationError(f"No AI provider API key found. Please set one of: {env_vars}")

        self._selection = ProviderSelection(primary=available[0], fallbacks=tuple(available[1:]))
        logger.info("Initialized with primary provider: %s", self.backend(available[0]).config.name)
        if len(available) > 1:
            logger.info(
                "Available fallback providers: %s",
                ", ".join(self.backend(k).config.name for k in available[1:]),
            )

    @property
    def selection(self) -> ProviderSelection:
        return self._selection

    def backend(self, kind: ProviderKind) -> ProviderBackend:
        return BACKENDS[kind]

    def credential(self, kind: ProviderKind) -> str | None:
        value = self._environ.get(BACKENDS[kind].config.key_env_var)
        return value.strip() if value and value.strip() else None

    def model_for(self, kind: ProviderKind) -> str:
        """Model to request from ``kind``; ``<KIND>_MODEL`` overrides the default."""
        override = self._environ.get(f"{kind.name}_MODEL")
        if override and override.strip():
            return override.strip()
        return BACKENDS[kind].config.default_model

    def is_available(self, kind: ProviderKind) -> bool:
        return self.credential(kind) is not None

    def available_kinds(self) -> list[ProviderKind]:
        return [kind for kind in ProviderKind if self.is_available(kind)]

    def switch(self, name: str) -> ProviderSelection:
        """Make ``name`` the primary provider.

        Raises ProviderUnavailable for unknown providers or missing credentials;
        the previous selection is left unchanged in that case.
        """
        kind = lookup_kind(name)
        if kind is None:
            known = ", ".join(k.value for k in ProviderKind)
            raise ProviderUnavailable(f"Unknown provider: {name}. Available: {known}")
        if not self.is_available(kind):
            raise ProviderUnavailable(
                f"API key not found for {BACKENDS[kind].config.name}. "
                f"Please set {BACKENDS[kind].config.key_env_var}"
            )

        fallbacks = tuple(k for k in self.available_kinds() if k is not kind)
        new_selection = ProviderSelection(primary=kind, fallbacks=fallbacks)
        with self._lock:
            self._selection = new_selection
        logger.info("Switched to provider: %s", BACKENDS[kind].config.name)
        return new_selection

    def info(self) -> dict[str, Any]:
        selection = self._selection
        primary = BACKENDS[selection.primary].config
        return {
            "name": primary.name,
            "kind": primary.kind.value,
            "model": self.model_for(selection.primary),
            "models": list(primary.models),
            "available": [
                {
                    "name": BACKENDS[k].config.name,
                    "kind": k.value,
                    "models": list(BACKENDS[k].config.models),
                    "defaultModel": BACKENDS[k].config.default_model,
                }
                for k in selection.fallbacks
            ],
        }
