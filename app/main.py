"""
Campus Placement Platform - Main Application

FastAPI backend with:
- MongoDB for all documents
- JWT authentication (students, recruiters, admins)
- GitHub / LeetCode sync and job matching
- Daily market data refresh (Adzuna)

Run: uvicorn app.main:app --reload
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import api_router
from app.db.mongodb import init_mongo_indexes, test_mongo_connection
from app.core.config import get_settings
from app.jobs.market_data_refresher import get_market_refresher

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Campus Placement Platform",
    description="""
    Placement preparation and recruiting backend.

    ## Features
    - **Students**: Profile, projects, certifications, coding logs, readiness score
    - **Integrations**: GitHub sync (repositories, languages, skills), LeetCode stats
    - **Recruiters**: Talent pool, saved candidates, job postings with matching
    - **Admins**: Verification of projects/certifications/events, market refresh
    - **Interviews**: Text mock interviews with feedback
    - **Market**: Skill demand and trends
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


# ============================================================
# ERROR HANDLERS
# ============================================================

def error_body(message: str, exc: Exception = None) -> dict:
    body = {"message": message}
    if exc is not None and not settings.is_production:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Not Found - {request.url.path}"
    else:
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": message},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=error_body(str(exc) or "Server Error", exc))


# ============================================================
# LIFECYCLE
# ============================================================

@app.on_event("startup")
async def startup_event():
    """Initialize MongoDB indexes and start the market refresh scheduler."""
    try:
        init_mongo_indexes()
    except Exception as e:
        logger.error(f"MongoDB index initialization failed: {e}")

    if settings.market_refresh_enabled:
        get_market_refresher().start()


@app.on_event("shutdown")
async def shutdown_event():
    get_market_refresher().stop()


@app.get("/", tags=["Health"])
async def root():
    return {"status": "healthy", "app": "Campus Placement Platform"}


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "mongodb": "connected" if test_mongo_connection() else "disconnected",
        "market_refresh": get_market_refresher().get_last_run_status(),
    }
