"""
OpenAI Responses API gateway: screenshots go up as data URLs, JSON-object output is requested.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, Optional, Sequence

import openai
from openai import OpenAI

from ..core.errors import ConfigurationError, ProviderError
from .gateway import data_url

logger = logging.getLogger(__name__)

class OpenAIGateway:
    name = "openai"

    def __init__(self, api_key: Optional[str], model: str = "gpt-4.1-mini",
                 timeout: float = 60.0, client: Optional[Any] = None):
        self.model = model
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError("Missing OPENAI_API_KEY in environment variables")
            self._client = OpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    def invoke(self, images: Sequence[str], system_prompt: str, user_prompt: str,
               mime_type: str = "image/jpeg") -> str:
        client = self._get_client()
        content = [{"type": "input_text", "text": user_prompt}]
        content += [{"type": "input_image", "image_url": data_url(b64, mime_type)} for b64 in images]

        try:
            resp = client.responses.create(
                model=self.model,
                input=[
                    {"role": "system", "content": [{"type": "input_text", "text": system_prompt}]},
                    {"role": "user", "content": content},
                ],
                # strongly nudges valid JSON output
                text={"format": {"type": "json_object"}},
            )
        except openai.OpenAIError as e:
            logger.error("OpenAI request failed: %s", e)
            raise ProviderError(str(e)) from e

        return resp.output_text or ""

    def status(self) -> Dict[str, Any]:
        return {"provider": self.name, "model": self.model, "configured": bool(self._api_key or self._client)}
