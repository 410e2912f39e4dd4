from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from .api.v1 import appointments, auth, dashboard, doctors, patients, prescriptions
from .core.config import settings
from .core.database import init_db, SessionLocal
from .core.seed import seed_sample_data

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
ROUTERS = {
    "authentication": auth.router,
    "appointments": appointments.router,
    "doctors": doctors.router,
    "patients": patients.router,
    "dashboard": dashboard.router,
    "prescriptions": prescriptions.router,
}


def _database_kind(url: str) -> str:
    if url.startswith("postgresql"):
        return "PostgreSQL"
    if url.startswith("sqlite"):
        return "SQLite"
    return "Unknown"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} {settings.VERSION}")
    logger.info(f"Using {_database_kind(settings.get_database_url)} database")

    try:
        init_db()
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    if settings.SEED_SAMPLE_DATA:
        db = SessionLocal()
        try:
            seed_sample_data(db)
        finally:
            db.close()

    yield
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Clinic appointment scheduling with role-based access for admins, doctors and patients",
    openapi_url=f"{API_PREFIX}/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if not settings.TESTING:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=["localhost", "127.0.0.1", "*.localhost"]
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started
    response.headers["X-Process-Time"] = f"{elapsed:.4f}"

    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed:.4f}s)")
    return response


@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    detail = getattr(exc, "detail", None) or "The requested resource was not found"
    return JSONResponse(
        status_code=404,
        content={"error": "Not Found", "detail": detail, "path": request.url.path}
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "detail": "An unexpected error occurred"}
    )


for _router in ROUTERS.values():
    app.include_router(_router, prefix=API_PREFIX)


@app.get("/health")
async def health_check():
    """Liveness plus a trivial database round trip."""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.error(f"Health check database failure: {str(e)}")
        database = "unavailable"
    finally:
        db.close()

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "version": settings.VERSION
    }


@app.get("/")
async def root():
    return {
        "message": f"Welcome to the {settings.APP_NAME} API",
        "version": settings.VERSION,
        "docs": "/docs",
        "health": "/health"
    }


@app.get(f"{API_PREFIX}/info")
async def api_info():
    """List the mounted API sections."""
    endpoints = {name: f"{API_PREFIX}{router.prefix}" for name, router in ROUTERS.items()}
    endpoints["openapi"] = app.openapi_url
    return {"name": settings.APP_NAME, "version": settings.VERSION, "endpoints": endpoints}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "clinic.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info"
    )
