"""
Purpose:
- Decode an analyze request body into a ListingRequest, or raise InvalidInput.
- One decoder for both endpoints; the only difference is the ImagePolicy (max images).

Accepted shapes:
- {"imageBase64": "...", "mimeType": "image/png"}      single image (legacy)
- {"images": ["...", "..."], "mimeType": "image/png"}  ordered list, up to policy.max_images
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List

from ..core.errors import InvalidInput, PayloadTooLarge
from ..core.settings import Settings
from ..report.schema import ListingRequest

@dataclass(frozen=True)
class ImagePolicy:
    max_images: int
    max_image_chars: int = 12_000_000
    default_mime_type: str = "image/jpeg"

    @classmethod
    def multi(cls, settings: Settings) -> "ImagePolicy":
        return cls(settings.max_images, settings.max_image_chars, settings.default_mime_type)

    @classmethod
    def single(cls, settings: Settings) -> "ImagePolicy":
        return cls(1, settings.max_image_chars, settings.default_mime_type)

def _collect_images(payload: dict) -> List[Any]:
    if payload.get("images") is not None:
        images = payload["images"]
        if not isinstance(images, list):
            raise InvalidInput("images must be an array of base64 strings")
        return images
    if "imageBase64" in payload:
        return [payload["imageBase64"]]
    raise InvalidInput("Image data missing. Send imageBase64 or images.")

def _mime_type(payload: dict, policy: ImagePolicy) -> str:
    mime = payload.get("mimeType")
    if mime is None or mime == "":
        return policy.default_mime_type
    if not isinstance(mime, str) or not mime.lower().startswith("image/"):
        raise InvalidInput("mimeType must be an image/* type")
    return mime

def decode_request(payload: Any, policy: ImagePolicy) -> ListingRequest:
    if not isinstance(payload, dict):
        raise InvalidInput("Invalid JSON body")

    images = _collect_images(payload)
    if not images:
        raise InvalidInput("At least one image is required")
    if len(images) > policy.max_images:
        raise InvalidInput(f"Too many images: {len(images)} (max {policy.max_images})")

    for i, img in enumerate(images):
        if not isinstance(img, str) or not img:
            raise InvalidInput(f"images[{i}] must be a non-empty base64 string")
        # base64 can get huge
        if len(img) > policy.max_image_chars:
            raise PayloadTooLarge()

    return ListingRequest(images=images, mime_type=_mime_type(payload, policy))
