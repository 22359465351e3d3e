import logging
import sqlite3
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ddx_survey.config import settings
from ddx_survey.database import get_db
from ddx_survey.db_init import init_database
from ddx_survey.exceptions import StudyError
from ddx_survey.models import HealthResponse
from ddx_survey.routers import admin, auth, survey

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the study tables before serving requests"""
    logger.info(f"Opening study database at {settings.database_path}")
    init_database()
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Differential Diagnosis Evaluation Study",
    description="API for collecting clinician evaluations of AI-generated differential diagnoses",
    version=VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(survey.router)


@app.get("/health", response_model=HealthResponse)
def health_check():
    """Report whether the study database answers"""
    try:
        with get_db() as conn:
            conn.execute("SELECT 1")
    except sqlite3.Error as e:
        logger.error(f"Health check failed: {e}")
        return HealthResponse(status="unhealthy", version=VERSION, database="unavailable")

    return HealthResponse(status="healthy", version=VERSION, database="connected")


@app.get("/")
async def root():
    return {
        "message": "Differential Diagnosis Evaluation Study API",
        "version": VERSION,
        "docs": "/docs"
    }


# Error handlers
@app.exception_handler(StudyError)
async def study_error_handler(request: Request, exc: StudyError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")

    content = {"status": "error", "error": exc.user_message}
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Report the first offending field, like FormValidationError does
    first = exc.errors()[0] if exc.errors() else {}
    location = [str(part) for part in first.get("loc", ()) if part != "body"]
    content = {"status": "error", "error": first.get("msg", "Invalid request")}
    if location:
        content["field"] = ".".join(location)
    return JSONResponse(status_code=422, content=content)


@app.exception_handler(404)
async def not_found_handler(request, exc):
    return JSONResponse(
        status_code=404,
        content={"status": "error", "error": "Not found"}
    )


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    logger.error(f"Internal server error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"status": "error", "error": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ddx_survey.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
