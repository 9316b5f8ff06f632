import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .errors import BundleNotFoundError, InvalidInputError, PlatformApiError
from .routers.bundles import router as bundles_router
from .utils.cache import TTLCache

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Bundle Discounts API", version="0.2.0")
app.state.variant_cache = TTLCache(settings.variant_cache_ttl_seconds, settings.variant_cache_max_entries)

# CORS
origins = [o.strip() for o in (settings.cors_origins or "").split(",") if o.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidInputError)
def invalid_input_handler(request: Request, exc: InvalidInputError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "code": exc.code})


@app.exception_handler(BundleNotFoundError)
def not_found_handler(request: Request, exc: BundleNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc) or "Bundle not found"})


@app.exception_handler(PlatformApiError)
def platform_error_handler(request: Request, exc: PlatformApiError):
    logger.error(f"Platform call failed on {request.url.path}: {exc}")
    status = exc.status_code if 400 <= exc.status_code < 600 else 502
    return JSONResponse(status_code=status, content={"detail": exc.args[0], "code": exc.code, "details": exc.details})


@app.get("/health")
def health():
    return {"status": "ok"}

# Routers
app.include_router(bundles_router, prefix="/bundles", tags=["bundles"])


def run() -> None:
    import uvicorn

    uvicorn.run("bundle_discounts.main:app", host="0.0.0.0", port=8000, reload=settings.app_debug)
