"""Error taxonomy for the edit generation pipeline."""
from __future__ import annotations

from typing import Any


class EditAssistantError(Exception):
    code = "edit_assistant_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidPropertyValue(EditAssistantError):
    """A single property value does not match its declared type."""
    code = "invalid_property_value"


class MalformedOperation(EditAssistantError):
    """An operation is missing a required field or has an unknown type."""
    code = "malformed_operation"


class ProviderError(EditAssistantError):
    """One provider attempt failed. Triggers fallback to the next provider."""
    code = "provider_error"

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderTimeout(ProviderError):
    code = "provider_timeout"


class ProviderHTTPError(ProviderError):
    code = "provider_http_error"

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(provider, message)
        self.status_code = status_code


class ProviderResponseError(ProviderError):
    """The provider answered 2xx but the body did not have the expected shape."""
    code = "provider_response_error"


class AllProvidersExhausted(EditAssistantError):
    code = "all_providers_exhausted"

    def __init__(self, last_error: str) -> None:
        super().__init__(f"All AI providers failed. Last error: {last_error}")
        self.last_error = last_error


class ProviderUnavailable(EditAssistantError):
    code = "provider_unavailable"


class ProviderConfigurationError(EditAssistantError):
    code = "provider_configuration_error"


class RequestValidationError(EditAssistantError):
    """Inbound instruction or scene payload is invalid (HTTP 4xx)."""
    code = "request_validation_error"

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.details = details


class PayloadTooLarge(RequestValidationError):
    """Request body exceeds the configured size limit (HTTP 413)."""
    code = "payload_too_large"
