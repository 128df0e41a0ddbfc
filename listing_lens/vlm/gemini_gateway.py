"""
Google Gemini gateway via the google-genai SDK; images are sent inline as bytes.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, Optional, Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..core.errors import ConfigurationError, ProviderError
from .gateway import decode_images

logger = logging.getLogger(__name__)

class GeminiGateway:
    name = "gemini"

    def __init__(self, api_key: Optional[str], model: str = "gemini-2.5-flash",
                 client: Optional[Any] = None):
        self.model = model
        self._api_key = api_key
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError("Missing GEMINI_API_KEY in environment variables")
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def invoke(self, images: Sequence[str], system_prompt: str, user_prompt: str,
               mime_type: str = "image/jpeg") -> str:
        client = self._get_client()
        parts = [types.Part.from_text(text=user_prompt)]
        parts += [types.Part.from_bytes(data=raw, mime_type=mime_type) for raw in decode_images(images)]

        try:
            response = client.models.generate_content(
                model=self.model,
                contents=[types.Content(role="user", parts=parts)],
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    response_mime_type="application/json",
                    temperature=0.2,
                ),
            )
        except genai_errors.APIError as e:
            logger.error("Gemini request failed: %s", e)
            raise ProviderError(f"Gemini Error: {e}") from e

        return response.text or ""

    def status(self) -> Dict[str, Any]:
        return {"provider": self.name, "model": self.model, "configured": bool(self._api_key or self._client)}
