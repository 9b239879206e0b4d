"""Main FastAPI application for PortfolioAPI."""

import os
import logging
from datetime import datetime, timedelta, timezone
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from dotenv import load_dotenv

from portfolio_api.database import init_db
from portfolio_api.errors import APIError, RateLimitError
from portfolio_api.middleware import AdminSessionGuardMiddleware
from portfolio_api.routers import admin_auth, blogs, contact

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(os.getenv("PATH_LOG_FILE", "portfolio_api.log"))
    ]
)

logger = logging.getLogger(__name__)

# Get configuration from environment
NAME_APP = os.getenv("NAME_APP", "PortfolioAPI")


def is_development() -> bool:
    return os.getenv("ENVIRONMENT", "production").lower() == "development"


# Create FastAPI application
app = FastAPI(
    title=NAME_APP,
    description="API for the portfolio site: admin login by emailed code, blog posts, engagement and contact form",
    version="1.0.0"
)

# Redirect admin page loads without a session cookie
app.add_middleware(AdminSessionGuardMiddleware, admin_prefix="/admin", login_path="/admin")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(admin_auth.router)
app.include_router(blogs.router)
app.include_router(contact.router)


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    """Render API errors as ``{"error": message, ...}``."""
    content = {"error": exc.message}
    extra = dict(exc.extra)
    if exc.status_code >= 500 and not is_development():
        extra.pop("details", None)
    content.update(extra)

    headers = None
    if isinstance(exc, RateLimitError):
        reset_at = datetime.now(timezone.utc) + timedelta(seconds=exc.retry_after)
        headers = {
            "Retry-After": str(exc.retry_after),
            "X-RateLimit-Reset": reset_at.isoformat(),
        }

    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Render request validation failures as 400 with the offending field names."""
    errors = exc.errors()
    fields = []
    for error in errors:
        name = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        if name and name not in fields:
            fields.append(name)

    if errors and all(error.get("type") == "missing" for error in errors):
        content = {"error": "Missing required fields", "required": fields}
    else:
        content = {"error": "Invalid request", "fields": fields}

    logger.warning(f"Validation failed on {request.url.path}: {fields}")
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    """Render store failures as 500; details only in development."""
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
    content = {"error": "Storage error"}
    if is_development():
        content["details"] = str(exc)
    return JSONResponse(status_code=500, content=content)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Last-resort handler; details only in development."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    content = {"error": "Internal server error"}
    if is_development():
        content["details"] = str(exc)
    return JSONResponse(status_code=500, content=content)


@app.on_event("startup")
def startup_event():
    """Initialize database on application startup."""
    logger.info("Starting PortfolioAPI")
    init_db()
    logger.info("Database initialized successfully")


@app.options("/{full_path:path}")
def preflight(full_path: str):
    """Answer bare OPTIONS requests with an empty 200."""
    return Response(status_code=200)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": NAME_APP,
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
