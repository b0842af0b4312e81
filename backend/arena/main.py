import logging
import os
import subprocess
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from arena import __version__
from arena.config import (
    AUTO_FINALIZE_ENABLED,
    AUTO_FINALIZE_INTERVAL_SECONDS,
    CORS_ORIGINS,
    LOG_LEVEL,
)
from arena.database import engine, init_db
from arena.errors import AppError, ErrorCode
from arena.routes import matches, tournaments, users
from arena.services.sweep_scheduler import AutoFinalizeScheduler

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Arena Tournament API", version=__version__)


def get_build_info():
    """Get git commit hash or build timestamp"""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=os.path.dirname(os.path.dirname(__file__)),
            capture_output=True,
            text=True,
            timeout=2,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except Exception:
        pass

    return datetime.now().strftime("%Y%m%d-%H%M%S")


BUILD_HASH = get_build_info()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users.router, prefix="/api", tags=["users"])
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(matches.router, prefix="/api", tags=["matches"])

scheduler = AutoFinalizeScheduler(engine, AUTO_FINALIZE_INTERVAL_SECONDS)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = AppError(ErrorCode.VALIDATION_ERROR, {"errors": jsonable_encoder(exc.errors())})
    return JSONResponse(status_code=422, content={"detail": error.to_dict()})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = AppError(ErrorCode.UNKNOWN)
    return JSONResponse(status_code=500, content={"detail": error.to_dict()})


@app.on_event("startup")
async def on_startup():
    init_db()
    if AUTO_FINALIZE_ENABLED:
        scheduler.start()
    logger.info("Arena API started (build %s)", BUILD_HASH)


@app.on_event("shutdown")
async def on_shutdown():
    await scheduler.stop()


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify which code is running"""
    return {
        "app_name": "Arena Tournament API",
        "version": __version__,
        "build_hash": BUILD_HASH,
        "auto_finalize": scheduler.running,
        "status": "healthy",
    }
