import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import errors, models
from database import engine, get_db
from redis_client import get_book_cache
from routers import books, internal
from config import settings
from logging_config import setup_logging

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up book-service...")
    if settings.AUTO_CREATE_TABLES:
        models.Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured")
    yield
    logger.info("Shutting down book-service...")
    engine.dispose()

app = FastAPI(
    title="Library Book Service",
    description="Book catalog, stock and recommendations",
    version="1.0.0",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000
    logger.info(
        "%s %s -> %s (%.2f ms) ip=%s",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        request.client.host if request.client else "-",
    )
    return response

@app.exception_handler(errors.CatalogError)
async def catalog_error_handler(request: Request, exc: errors.CatalogError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

@app.get("/", tags=["System"])
def home():
    return f"Library API Book {datetime.now().year}"

# Health check endpoint
@app.get("/health", tags=["System"])
def health_check(db: Session = Depends(get_db)):
    health_status = {"status": "healthy", "service": "book-service", "components": {}}

    # Check database
    try:
        db.execute(text("SELECT 1"))
        health_status["components"]["database"] = "connected"
    except SQLAlchemyError as e:
        logger.error(f"DB health check failed: {e}")
        health_status["components"]["database"] = "unhealthy"
        health_status["status"] = "degraded"

    # Check cache
    cache = get_book_cache()
    if cache is None:
        health_status["components"]["cache"] = "disabled"
    elif cache.ping():
        health_status["components"]["cache"] = "connected"
    else:
        health_status["components"]["cache"] = "unhealthy"
        health_status["status"] = "degraded"

    if health_status["status"] != "healthy":
         raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=health_status
        )
    return health_status

app.include_router(books.router)
app.include_router(internal.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8002)
