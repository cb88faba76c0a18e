import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.cors import CORSMiddleware

from recurbill.api.rate_limit import increment_rate_limit_exceeded, limiter
from recurbill.api.routes_billing import router as billing_router
from recurbill.api.routes_charges import router as charges_router
from recurbill.api.routes_clients import router as clients_router
from recurbill.api.routes_config import router as config_router
from recurbill.api.routes_health import router as health_router
from recurbill.api.routes_metrics import router as metrics_router
from recurbill.api.routes_plans import router as plans_router
from recurbill.core.config import settings
from recurbill.core.errors import register_error_handlers
from recurbill.core.logger import init_logging

logger = logging.getLogger(__name__)


async def _rate_limit_handler(request, exc: RateLimitExceeded):
    increment_rate_limit_exceeded()
    return JSONResponse(status_code=429, content={"detail": "Too many requests"})


def create_app() -> FastAPI:
    init_logging()

    # Disable interactive docs in production
    is_production = settings.ENV.lower() == "prod"
    app = FastAPI(
        title=settings.APP_NAME,
        debug=False,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
    )
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )
    register_error_handlers(app)
    app.include_router(config_router, prefix="/config", tags=["config"])
    app.include_router(plans_router, prefix="/plans", tags=["plans"])
    app.include_router(clients_router, prefix="/clients", tags=["clients"])
    app.include_router(charges_router, prefix="/charges", tags=["charges"])
    app.include_router(billing_router, prefix="/billing", tags=["billing"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(health_router)
    logger.info("%s API ready (env=%s, billing tz=%s)", settings.APP_NAME, settings.ENV, settings.BILLING_TIMEZONE)
    return app


app = create_app()
