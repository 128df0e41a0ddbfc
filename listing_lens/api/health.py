# Common language: Environment/ops check that surfaces library versions, provider config, and gateway status.
# Use this before/after upgrades to confirm no silent drift. Never echoes credential values.

from fastapi import APIRouter, Depends
import sys, importlib

from ..core.settings import Settings
from ..vlm.gateway import ModelGateway
from .analyze import get_gateway, get_settings

router = APIRouter(tags=["health"])

def _ver(modname: str) -> str:
    try:
        m = importlib.import_module(modname)
        return getattr(m, "__version__", "unknown")
    except ImportError:
        return "not-installed"

@router.get("/healthz")
def healthz(
    gateway: ModelGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    return {
        "status": "ok",
        "python": sys.version.split()[0],
        "versions": {
            "fastapi": _ver("fastapi"),
            "uvicorn": _ver("uvicorn"),
            "pydantic": _ver("pydantic"),
            "pydantic_settings": _ver("pydantic_settings"),
            "openai": _ver("openai"),
            "google.genai": _ver("google.genai"),
            "PIL": _ver("PIL"),
        },
        "config": {
            "provider": settings.provider,
            "max_images": settings.max_images,
            "max_image_chars": settings.max_image_chars,
            "request_timeout_s": settings.request_timeout_s,
        },
        "env_keys_present": settings.credentials_present(),
        "gateway": gateway.status(),
    }
