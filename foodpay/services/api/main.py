"""FoodPay ordering and payment API.

One process serves order creation, payment intents, payment verification,
the gateway webhook, operator status changes and the live WebSocket feed.
"""

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from foodpay.common.config import settings
from foodpay.common.db import SessionLocal
from foodpay.common.errors import ServiceError
from foodpay.common.logging import configure_logging, logger, trace_id_ctx
from foodpay.common.metrics import http_request_duration_seconds, http_requests_total
from foodpay.common.startup import log_startup_config
from foodpay.common.tracing import instrument_app, setup_tracing
from foodpay.services.api.routes import router
from foodpay.services.api.wiring import Services, build_services

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(settings.service_name)


async def metrics_middleware(request: Request, call_next):
    """Record request count and latency for every HTTP call."""

    trace_id_ctx.set(request.headers.get("x-trace-id") or str(uuid4()))
    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        route_obj = request.scope.get("route")
        if route_obj is not None and getattr(route_obj, "path", None):
            route = route_obj.path
        return response
    finally:
        elapsed = max(0.0, perf_counter() - start)
        http_request_duration_seconds.labels(
            service=settings.service_name,
            route=route,
            method=method,
        ).observe(elapsed)
        http_requests_total.labels(
            service=settings.service_name,
            route=route,
            method=method,
            status_code=str(status_code),
        ).inc()


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed path=%s error=%s", request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": "invalid request", "errors": jsonable_encoder(exc.errors())},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error path=%s", request.url.path)
    return JSONResponse(status_code=500, content={"detail": "internal error"})


def create_app(services: Services | None = None) -> FastAPI:
    """Build the API around an injected service graph (defaults from settings)."""

    if services is None:
        services = build_services(SessionLocal)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "api_started service=%s gateway_configured=%s",
            settings.service_name,
            services.gateway.configured,
        )
        yield
        services.gateway.close()

    app = FastAPI(title="FoodPay Ordering API", lifespan=lifespan)
    app.state.services = services
    instrument_app(app)
    app.middleware("http")(metrics_middleware)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    return app


app = create_app()
