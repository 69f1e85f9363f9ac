"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.api.v1.analysis import ANALYSIS_PATH
from src.api.v1.analysis import router as analysis_router
from src.api.v1.diagnostics import router as diagnostics_router
from src.api.v1.health import VERSION
from src.api.v1.health import router as health_router
from src.config import settings
from src.errors import DiagnosticError, ValidationError
from src.middleware.origins import OriginGuardMiddleware, OriginPolicy

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer() if settings.environment == "development"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.log_level.upper(), logging.INFO)
    ),
)

logger = structlog.get_logger()

origin_policy = OriginPolicy.build(extra_origin=settings.allowed_origin)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info(
        "app_starting",
        environment=settings.environment,
        llm_model=settings.llm_model,
        allowed_origins=sorted(origin_policy.exact),
    )
    yield
    logger.info("app_shutting_down")


app = FastAPI(
    title="Diagnostic Assistant API",
    description="AI-assisted vehicle fault diagnosis for mechanics",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(OriginGuardMiddleware, policy=origin_policy, paths=[ANALYSIS_PATH])


@app.exception_handler(DiagnosticError)
async def diagnostic_error_handler(request: Request, exc: DiagnosticError) -> JSONResponse:
    content = {"error": exc.message}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.messages
    return JSONResponse(content, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = [
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return JSONResponse({"error": "Données invalides", "errors": messages}, status_code=422)


# Include routers
app.include_router(health_router)
app.include_router(diagnostics_router)
app.include_router(analysis_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Diagnostic Assistant API",
        "version": VERSION,
        "status": "running",
    }
