"""FastAPI application setup for the picnic planner."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from picnic_planner.api import router as api_router
from picnic_planner.config import settings
from picnic_planner.errors import PreferenceValidationError, ProviderError
from picnic_planner.services import Services, build_services
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="main")


async def _preference_validation_handler(request: Request, exc: PreferenceValidationError):
    """Surface per-field messages so the caller can block the save."""
    return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})


async def _provider_error_handler(request: Request, exc: ProviderError):
    """Report upstream failures as a single descriptive 502."""
    logger.error("Provider error while serving request",
                 extra={"path": request.url.path, "error": str(exc), "status_code": exc.status_code})
    return JSONResponse(status_code=502, content={"detail": str(exc)})


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the application around ``services`` (wired from settings when omitted)."""
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        services.close()

    app = FastAPI(title="Picnic Planner", lifespan=lifespan)
    app.state.services = services
    app.add_exception_handler(PreferenceValidationError, _preference_validation_handler)
    app.add_exception_handler(ProviderError, _provider_error_handler)

    @app.get("/health")
    def health():
        """Liveness check."""
        return {"status": "ok", "cache_version": services.cache.version}

    # API routes
    app.include_router(api_router, prefix="/v1")
    return app


app = create_app()
