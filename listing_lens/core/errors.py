"""
Purpose:
- Failure taxonomy for one analyze request.
- Each error knows its HTTP status and renders the outbound {error, message?, raw?} body.
"""

from __future__ import annotations
from typing import Any, Dict, Optional


class ListingLensError(Exception):
    status_code: int = 500
    error: str = "Analysis failed"

    def __init__(self, error: Optional[str] = None, *, message: Optional[str] = None, raw: Optional[str] = None):
        if error is not None:
            self.error = error
        self.message = message
        self.raw = raw
        super().__init__(message or self.error)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        if self.raw is not None:
            body["raw"] = self.raw
        return body


class InvalidInput(ListingLensError):
    """Request shape violates the intake contract; the gateway is never called."""
    status_code = 400
    error = "Invalid request"


class PayloadTooLarge(InvalidInput):
    status_code = 413
    error = "Image too large. Use a smaller screenshot."


class InvalidImageData(InvalidInput):
    """An image string got past intake but is not decodable base64 or image data."""
    error = "Invalid image data"

    def __init__(self, message: str):
        super().__init__(message=message)


class ConfigurationError(ListingLensError):
    status_code = 500


class ProviderError(ListingLensError):
    """The model gateway produced no text. Carries the provider's message."""
    status_code = 500
    error = "Analysis failed"

    def __init__(self, message: str):
        super().__init__(message=message)


class ProviderTimeout(ProviderError):
    status_code = 504
    error = "Analysis timed out"


class ExtractionFailure(ListingLensError):
    """The model replied, but no JSON object could be recovered from the text."""
    status_code = 502
    error = "Model returned non-JSON output"

    def __init__(self, raw: str):
        super().__init__(raw=raw)
