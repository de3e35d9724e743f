import time
import traceback
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.core.config import settings
from app.core.exceptions import ApiError
from app.core.logging_config import setup_logging, get_logger, RequestLogger
from app.core.rate_limit import limiter
from app.db.database import init_db
from app.api.routes import notes, quiz
from app.services.ai_service import GenerativeClient, GenerativeConfig
from app.services.file_processor import ContentExtractor, ExtractorConfig

# Initialize logging first (auto-determines level based on environment)
setup_logging(
    app_name="noteforge",
    log_level=settings.log_level,
    environment=settings.environment,
    enable_console=True,
    enable_file=settings.log_to_file,
    log_dir=settings.log_dir or None,
)

logger = get_logger(__name__)
request_logger = RequestLogger(get_logger("noteforge.requests"))

logger.info("Starting NoteForge application...")

init_db()
logger.info("Database tables created/verified")

UPLOAD_DIR = Path(settings.upload_dir)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

app = FastAPI(
    title=settings.app_name,
    description="Turns uploaded study material into summaries, key concepts and mind maps",
    version="0.1.0",
)

# External collaborators are configured once here and injected into routes
app.state.generative_client = GenerativeClient(GenerativeConfig.from_settings(settings))
app.state.content_extractor = ContentExtractor(ExtractorConfig.from_settings(settings))

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


# Unhandled errors are logged with their traceback and answered with a generic 500
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}\n"
        f"{traceback.format_exc()}"
    )
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests with timing."""
    start_time = time.time()
    client_ip = request.client.host if request.client else "unknown"

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    request_logger.log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
        client_ip=client_ip,
        content_length=request.headers.get("content-length"),
    )
    return response


# CORS: explicit origins only, credentials are allowed
if settings.allowed_origins:
    cors_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
elif settings.environment == "production":
    cors_origins = [settings.frontend_url]
else:
    cors_origins = ["http://localhost:5173", "http://localhost:8000", settings.frontend_url]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(notes.router, prefix="/api")
app.include_router(quiz.router, prefix="/api")
logger.info("API routes registered at /api")

# Stored uploads, referenced by each note's fileUrl
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")


@app.get("/health")
def health_check():
    logger.debug("Health check requested")
    return {"status": "healthy"}


@app.get("/")
def root():
    return {"message": "NoteForge API", "app": settings.app_name, "docs": "/docs"}
