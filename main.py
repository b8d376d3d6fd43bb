"""
FITSIGHT Backend API
Real-time exercise form feedback and repetition counting

FastAPI application entry point. Clients run pose inference on their side and
stream body landmarks here for analysis.
"""

import logging
import sys
import time
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from core.config import settings
from shared.utils import LOG_DATE_FORMAT, LOG_FORMAT, parse_log_level, setup_logger

# ============================================
# Configure Root Logger First
# ============================================
logging.basicConfig(
    level=parse_log_level(settings.LOG_LEVEL),
    format=LOG_FORMAT,
    datefmt=LOG_DATE_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)]
)

from coach_service.router import router as coach_router, get_services

# Setup logging
logger = setup_logger("fitsight.main", level=parse_log_level(settings.LOG_LEVEL))
request_logger = setup_logger("fitsight.requests", level=parse_log_level(settings.LOG_LEVEL))


# ============================================
# Request Logging Middleware
# ============================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all incoming requests and responses with timing."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        query_string = f"?{request.url.query}" if request.url.query else ""
        request_logger.debug(f"➡️  {request.method} {request.url.path}{query_string}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000

            if response.status_code < 400:
                status_emoji = "✅"
            elif response.status_code < 500:
                status_emoji = "⚠️"
            else:
                status_emoji = "❌"

            request_logger.info(
                f"{status_emoji} {request.method} {request.url.path} → {response.status_code} ({process_time:.1f}ms)"
            )

            return response
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            request_logger.error(f"💥 {request.method} {request.url.path} → ERROR: {type(e).__name__}: {str(e)} ({process_time:.1f}ms)")
            request_logger.error(traceback.format_exc())
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    logger.info(f"🚀 {settings.APP_NAME} API starting up...")

    _, _, tip_generator = get_services()
    if tip_generator.enabled:
        logger.info(f"💬 Gemini tips enabled ({tip_generator.model_name})")
    else:
        logger.warning("⚠️ Gemini tips disabled, using canned tips")

    logger.info(f"✅ {settings.APP_NAME} API ready!")

    yield

    logger.info(f"👋 {settings.APP_NAME} API shutting down...")


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Real-time exercise form feedback and rep counting from body landmarks",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    _, session_handler, tip_generator = get_services()
    return {
        "status": "healthy",
        "service": "fitsight-api",
        "tips": "gemini" if tip_generator.enabled else "canned",
        "active_sessions": len(session_handler.active_sessions)
    }


app.include_router(coach_router, prefix="/api/coach", tags=["Coach Service"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
