"""
Custom exceptions for the WeatherDeck backend.

Every error that may reach the chat endpoint derives from WeatherDeckError and
carries the status code and user-facing message it is rendered with.
"""

from typing import Optional


class WeatherDeckError(Exception):
    """Base exception for all WeatherDeck errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        detail: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        self.message = message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_body(self) -> dict:
        body = {"error": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class ConfigurationError(WeatherDeckError):
    """Raised when a required credential or setting is missing."""

    status_code = 500


class QuotaExhaustedError(WeatherDeckError):
    """Raised when both the primary and the fallback model are rate-limited."""

    status_code = 503

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            "AI free-tier quota reached and fallback failed. Weather tools still work.",
            detail=detail,
        )


class ModelUnavailableError(WeatherDeckError):
    """Raised when the configured model id is unknown or not accessible."""

    status_code = 500

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            "AI model unavailable for this project. Please set GEMINI_MODEL to a model "
            "your Google Cloud project has access to (e.g., gemini-2.5-flash).",
            detail=detail,
        )


class ModelServiceError(WeatherDeckError):
    """Raised for any other model provider failure."""

    status_code = 500

    def __init__(self, detail: Optional[str] = None):
        super().__init__("AI service failed", detail=detail)


class ModelCallError(Exception):
    """A single failed model call, before classification."""

    def __init__(self, model_id: str, status: int, detail: str, phase: str = "Model call"):
        self.model_id = model_id
        self.status = status
        self.detail = detail
        super().__init__(f"{phase} failed ({model_id}): {detail}")


class ToolExecutionError(Exception):
    """Raised by the tool adapter when an operation cannot be carried out."""

    def __init__(self, tool_name: str, message: str, status_code: Optional[int] = None):
        self.tool_name = tool_name
        self.status_code = status_code
        super().__init__(message)
