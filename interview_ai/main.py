import asyncio
import contextlib
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from interview_ai.api.v1.router import api_v1_router
from interview_ai.core.config import settings, validate_settings_for_production
from interview_ai.core.exceptions import AppError
from interview_ai.core.logging import setup_logging
from interview_ai.core.metrics import PrometheusMiddleware, metrics_response
from interview_ai.core.rate_limit import limiter
from interview_ai.core.sentry import init_sentry
from interview_ai.gateway.gateway import AIGateway
from interview_ai.services.ai_evaluator import InterviewAIService

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()

    gateway = AIGateway.from_settings(settings)
    app.state.gateway = gateway
    app.state.ai_service = InterviewAIService(gateway, settings)
    maintenance = asyncio.create_task(gateway.run_maintenance(settings.maintenance_interval_seconds))
    logger.info(
        "Starting Interview AI gateway (keys=%d, concurrency=%d)",
        gateway.key_rotator.pool_size,
        gateway.config.concurrency_limit,
    )

    yield

    # Shutdown
    maintenance.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await maintenance
    await gateway.close()
    logger.info("Interview AI gateway shut down")


app = FastAPI(
    title="Interview AI",
    description="AI request orchestration for recorded interview answers",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


@app.exception_handler(AppError)
async def _app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
    )


# Log unhandled exceptions with their traceback
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": f"{type(exc).__name__}: {exc}", "error_code": "internal_error"})


# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(PrometheusMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("interview_ai.main:app", host=settings.app_host, port=settings.app_port)
