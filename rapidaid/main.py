"""
RapidAid Dispatch - FastAPI Application Entry Point

Emergency-dispatch alerting backend: a citizen reports an incident
(police/fire/ambulance) with a location; the backend merges it into a
recent nearby incident or dispatches the nearest active facility.

DESIGN PRINCIPLES:
- The persisted alert is authoritative; push delivery is best-effort
- One incident per physical event: nearby repeat reports are merged
- Every status change goes through one transition table
"""

import logging
import sys
import traceback
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rapidaid.core.exceptions import (
    InvalidTransition,
    NotFoundError,
    ReportValidationError,
    StoreError,
)
from rapidaid.core.settings import settings
from rapidaid.routes import alerts, facilities, health
from rapidaid.services.alert_service import get_alert_service

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Emergency alert aggregation and nearest-facility dispatch",
    debug=settings.DEBUG
)


@app.exception_handler(ReportValidationError)
async def report_validation_handler(request: Request, exc: ReportValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"success": False, "detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"success": False, "detail": str(exc)})


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"success": False, "detail": f"Alert is already {exc.from_status}", "allowed": exc.allowed},
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Store failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"success": False, "detail": "Alert store unavailable"},
    )


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("🔥 GLOBAL EXCEPTION HANDLER CAUGHT EXCEPTION\n")
    sys.stderr.write(f"Path: {request.url.path}\n")
    sys.stderr.write(f"Method: {request.method}\n")
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.flush()
    
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Internal server error: {str(exc)}"}
    )


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Catch Pydantic validation errors and log them."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc)}
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances and input may hold NaN or Infinity,
    # neither of which JSONResponse can serialize
    return [{k: v for k, v in error.items() if k not in ("ctx", "input")} for error in exc.errors()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """
    Wire stores and notifier on startup.
    A failure is logged; requests will retry the wiring lazily.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    try:
        get_alert_service()
    except RuntimeError as e:
        logger.warning(f"Alert service initialization failed: {e}")
        logger.warning("The app will start but store operations may fail.")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(alerts.router)
app.include_router(facilities.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "alerts": "/alerts",
    }


def run():
    """Serve the app with uvicorn (console script `rapidaid-dispatch`)."""
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
