"""Error types shared by the converters, the upstream client and the API layer."""


class ConversionError(Exception):
    """Raised when an upstream document cannot be translated."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class EmptyChoicesError(ConversionError):
    """Raised when a buffered upstream response carries no choices."""

    def __init__(self, message: str = "No choices in OpenAI response"):
        super().__init__(message)


class UpstreamError(Exception):
    """Exception raised when the upstream transport fails."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


def error_payload(message: str, error_type: str = "api_error") -> dict:
    """Build an Anthropic-style error document."""
    return {
        "type": "error",
        "error": {
            "type": error_type,
            "message": message,
        },
    }
