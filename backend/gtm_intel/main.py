from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from .core.config import Settings, get_settings
from .core.errors import (
    ConfigurationError,
    GTMIntelError,
    NotFoundError,
    ParseError,
    StateTransitionError,
    UpstreamCallError,
)
from .core.logging import configure_logging
from .api.routes_research import router as research_router
from .api.routes_pipelines import router as pipelines_router

configure_logging()
settings = get_settings()
logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (NotFoundError, 404),
    (StateTransitionError, 409),
    (UpstreamCallError, 502),
    (ParseError, 502),
    (ConfigurationError, 503),
)


def resolve_cors_origins(settings: Settings) -> list[str]:
    """
    - In prod, FRONTEND_ORIGIN is required and we never fall back to "*".
    - In non-prod, "*" unless FRONTEND_ORIGIN narrows it.
    """
    configured = [
        o.strip() for o in (settings.FRONTEND_ORIGIN or "").split(",") if o.strip()
    ]
    if settings.ENV.lower() == "prod":
        if not configured:
            raise RuntimeError(
                "FRONTEND_ORIGIN must be set in production – refusing to start with wide-open CORS."
            )
        return configured
    if settings.CORS_ALLOW_ALL_ORIGINS or not configured:
        return ["*"]
    return configured


app = FastAPI(title="GTM Intel API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=resolve_cors_origins(settings),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=False,
)


@app.exception_handler(GTMIntelError)
async def domain_error_handler(request: Request, exc: GTMIntelError) -> JSONResponse:
    """Fallback for domain errors a route did not translate itself."""
    status = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    if status == 500:
        logger.exception("Unhandled domain error", exc_info=exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


app.include_router(research_router, prefix=settings.API_PREFIX)
app.include_router(pipelines_router, prefix=settings.API_PREFIX)
