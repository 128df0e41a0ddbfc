"""
Purpose:
- One analyze run: gateway call (bounded by the request budget) -> normalize.
- Gateway failures pass through as ProviderError; nothing is retried here.
"""

from __future__ import annotations
import asyncio
import logging

from ..core.errors import ListingLensError, ProviderError, ProviderTimeout
from ..core.settings import Settings
from ..report.normalizer import normalize
from ..report.prompts import SYSTEM_PROMPT, USER_PROMPT
from ..report.schema import ListingReport, ListingRequest
from ..vlm.gateway import ModelGateway

logger = logging.getLogger(__name__)

async def analyze_listing(listing: ListingRequest, gateway: ModelGateway, settings: Settings) -> ListingReport:
    logger.info("Analyzing %d image(s) with %s/%s", len(listing.images), gateway.name, gateway.model)
    try:
        raw = await asyncio.wait_for(
            asyncio.to_thread(
                gateway.invoke, listing.images, SYSTEM_PROMPT, USER_PROMPT, mime_type=listing.mime_type
            ),
            timeout=settings.request_timeout_s,
        )
    except asyncio.TimeoutError as e:
        logger.error("%s call exceeded %.0fs", gateway.name, settings.request_timeout_s)
        raise ProviderTimeout(f"No reply from {gateway.name} within {settings.request_timeout_s:.0f}s") from e
    except ListingLensError:
        raise
    except Exception as e:
        logger.exception("%s gateway error", gateway.name)
        raise ProviderError(str(e) or e.__class__.__name__) from e

    return normalize(raw, preview_chars=settings.raw_preview_chars)
