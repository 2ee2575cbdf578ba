# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import EvaluationSessionError
from app.core.log_config import configure_logging
from app.db.session import init_db

# Import routers (router objects, not modules)
from app.api.evaluations import router as evaluations_router
from app.api.sessions import router as sessions_router
from app.api.results import router as results_router

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Evaluation session service started")
    yield


app = FastAPI(
    title="Evaluation Session Service",
    version="1.0.0",
    lifespan=lifespan,
)

# --------------------------------------------------
# CORS CONFIG
# --------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    # allow origin variations on localhost (ports) during development
    allow_origin_regex=r"http://localhost(:[0-9]+)?",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --------------------------------------------------
# DOMAIN ERRORS
# --------------------------------------------------
@app.exception_handler(EvaluationSessionError)
async def evaluation_session_error_handler(request: Request, exc: EvaluationSessionError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


# --------------------------------------------------
# API ROUTES
# --------------------------------------------------

# Catalogue + start attempt
app.include_router(
    evaluations_router,
    prefix="/api/v1",
)

# Status, drafts, attachments, submit, result
app.include_router(
    sessions_router,
    prefix="/api/v1",
)

# Manual grading (reviewers)
app.include_router(
    results_router,
    prefix="/api/v1",
)

# --------------------------------------------------
# ROOT HEALTH CHECK
# --------------------------------------------------
@app.get("/")
def health_check():
    return {
        "status": "ok",
        "service": "Evaluation Session Service",
        "version": "1.0.0"
    }
