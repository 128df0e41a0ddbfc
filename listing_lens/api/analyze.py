"""
Purpose:
- POST endpoints that take listing screenshots (base64 JSON) and return {"data": ListingReport}.
- /analyze accepts up to settings.max_images; /analyze/single keeps the one-image contract.
- Errors are raised as ListingLensError and rendered by the app's exception handlers.
"""

from fastapi import APIRouter, Depends, Request

from ..core.errors import InvalidInput
from ..core.settings import Settings
from ..report.schema import AnalyzeResponse, ErrorBody
from ..services.intake import ImagePolicy, decode_request
from ..services.pipeline import analyze_listing
from ..vlm.gateway import ModelGateway

router = APIRouter(prefix="/api/v1/listings", tags=["listings"])

ERROR_RESPONSES = {
    400: {"model": ErrorBody},
    413: {"model": ErrorBody},
    500: {"model": ErrorBody},
    502: {"model": ErrorBody},
    504: {"model": ErrorBody},
}

def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_gateway(request: Request) -> ModelGateway:
    return request.app.state.gateway

async def _read_json(request: Request):
    body = await request.body()
    if not body:
        return {}
    try:
        return await request.json()
    except ValueError as e:
        raise InvalidInput("Invalid JSON body") from e

async def _run(request: Request, policy: ImagePolicy, gateway: ModelGateway, settings: Settings) -> AnalyzeResponse:
    # validate everything before the (slow, billed) model call
    listing = decode_request(await _read_json(request), policy)
    report = await analyze_listing(listing, gateway, settings)
    return AnalyzeResponse(data=report)

@router.post("/analyze", response_model=AnalyzeResponse, responses=ERROR_RESPONSES)
async def analyze(
    request: Request,
    gateway: ModelGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    """
    Analyze 1..max_images screenshots of one listing.
    Body: {"images": [...base64], "mimeType"?} or {"imageBase64": "...", "mimeType"?}
    """
    return await _run(request, ImagePolicy.multi(settings), gateway, settings)

@router.post("/analyze/single", response_model=AnalyzeResponse, responses=ERROR_RESPONSES)
async def analyze_single(
    request: Request,
    gateway: ModelGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    """Legacy single-screenshot contract: {"imageBase64": "...", "mimeType"?}."""
    return await _run(request, ImagePolicy.single(settings), gateway, settings)
