"""Custom exception classes for the application."""

from typing import Any


class ProductFactoryError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# External API Errors
class ExternalAPIError(ProductFactoryError):
    """Error calling external API."""

    def __init__(self, api_name: str, message: str) -> None:
        self.api_name = api_name
        super().__init__(f"{api_name} API error: {message}")


class RateLimitExceededError(ExternalAPIError):
    """Rate limit exceeded for external API."""

    def __init__(self, api_name: str) -> None:
        super().__init__(api_name, "Rate limit exceeded")


class APIKeyMissingError(ExternalAPIError):
    """API key not configured."""

    def __init__(self, api_name: str) -> None:
        super().__init__(api_name, "API key not configured")


# AI Errors
class GenerationError(ProductFactoryError):
    """A single provider attempt failed."""

    def __init__(self, provider: str, model: str, message: str) -> None:
        self.provider = provider
        self.model = model
        super().__init__(f"{provider}/{model}: {message}")


class UnsupportedProviderError(ProductFactoryError):
    """Provider name has no model factory."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Unsupported provider: {provider}")


class StructuredOutputError(ProductFactoryError):
    """Model text could not be parsed into the expected structure."""

    def __init__(self, message: str, raw_text: str) -> None:
        self.raw_text = raw_text
        super().__init__(message, details={"raw_text": raw_text[:500]})


# Pipeline Errors
class UnknownStageError(ProductFactoryError):
    """Pipeline stage not registered."""

    def __init__(self, stage: str) -> None:
        super().__init__(f"Unknown pipeline stage: {stage}")
