"""
Purpose:
- Small interface every model backend implements: images + prompts in, raw reply text out.
- build_gateway() picks the backend named by settings.provider; credentials travel with the settings object.

Notes:
- Gateways raise ProviderError for anything that keeps them from returning text,
  and InvalidImageData when a caller's image string cannot be decoded.
- Heavy backends are imported only when selected.
"""

from __future__ import annotations
import base64
import binascii
from typing import Any, Dict, List, Protocol, Sequence

from ..core.errors import InvalidImageData
from ..core.settings import Settings

class ModelGateway(Protocol):
    name: str
    model: str

    def invoke(self, images: Sequence[str], system_prompt: str, user_prompt: str,
               mime_type: str = "image/jpeg") -> str:
        ...

    def status(self) -> Dict[str, Any]:
        ...

def data_url(image_b64: str, mime_type: str) -> str:
    return f"data:{mime_type};base64,{image_b64}"

def decode_images(images: Sequence[str]) -> List[bytes]:
    out: List[bytes] = []
    for i, b64 in enumerate(images):
        try:
            out.append(base64.b64decode(b64, validate=False))
        except (binascii.Error, ValueError) as e:
            raise InvalidImageData(f"images[{i}] is not valid base64: {e}") from e
    return out

def build_gateway(settings: Settings) -> ModelGateway:
    if settings.provider == "openai":
        from .openai_gateway import OpenAIGateway
        return OpenAIGateway(api_key=settings.openai_api_key, model=settings.openai_model,
                             timeout=settings.request_timeout_s)
    if settings.provider == "gemini":
        from .gemini_gateway import GeminiGateway
        return GeminiGateway(api_key=settings.gemini_api_key, model=settings.gemini_model)
    if settings.provider == "qwen":
        from .qwen_gateway import QwenGateway, QwenConfig
        return QwenGateway(QwenConfig.from_settings(settings))
    if settings.provider == "stub":
        from .stub import StubGateway
        return StubGateway()
    raise ValueError(f"unknown provider: {settings.provider!r}")
