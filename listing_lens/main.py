"""
Purpose:
- FastAPI application factory and router mounts.
- Settings are read once here and the model gateway is built from them.
- Adds CORS for the browser front-end and renders every failure as {"error", "message"?, "raw"?}.
- Uvicorn will serve this on 0.0.0.0:8000 by default (`listing-lens` or `uvicorn listing_lens.main:app`).
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.errors import ListingLensError
from .core.settings import Settings
from .vlm.gateway import ModelGateway, build_gateway
from .api.analyze import router as analyze_router
from .api.health import router as health_router

logger = logging.getLogger(__name__)

async def _listing_lens_error(request: Request, exc: ListingLensError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.error)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.error)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())

async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)},
                        headers=getattr(exc, "headers", None))

def create_app(settings: Optional[Settings] = None, gateway: Optional[ModelGateway] = None) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Listing Lens API", version="0.1.0")
    app.state.settings = settings
    app.state.gateway = gateway or build_gateway(settings)
    logger.info("Model provider: %s (%s)", app.state.gateway.name, app.state.gateway.model)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.add_exception_handler(ListingLensError, _listing_lens_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)

    app.include_router(health_router)
    app.include_router(analyze_router)
    return app

def serve() -> None:
    import uvicorn
    settings = Settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)

app = create_app()
