"""
Main FastAPI application for the Green-Tax Compliance & Rebate Monitor
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from greentax.config import settings
from greentax.db.database import init_db
from greentax.exceptions import GreenTaxError
from greentax.api import (
    system,
    society,
    proofs,
    admin,
    compliance
)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.APP_DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Green-Tax Compliance service...")
    init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down Green-Tax Compliance service...")


app = FastAPI(
    title="Green-Tax Compliance & Rebate Monitor",
    description="""
    Waste segregation proof validation and weekly compliance scoring.

    - Proof validation: geo-fence (500m), freshness (30 min), duplicate image detection
    - Compliance tiers: GREEN (10% rebate), YELLOW (5%), RED (0%)
    - Admin review of flagged proofs
    """,
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GreenTaxError)
async def greentax_exception_handler(request: Request, exc: GreenTaxError):
    """Map domain errors to client/server errors."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": str(exc) if settings.APP_DEBUG else "Server error"
        }
    )


# Include routers
app.include_router(system.router, tags=["System"])
app.include_router(society.router, prefix="/api/society", tags=["Society"])
app.include_router(proofs.router, prefix="/api/proof", tags=["Proofs"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(compliance.router, prefix="/api", tags=["Compliance"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Green-Tax Compliance & Rebate Monitor",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "society": "/api/society",
            "proof": "/api/proof",
            "admin": "/api/admin",
            "compliance": "/api/compliance",
            "rebate": "/api/rebate",
            "resident": "/api/resident",
            "heatmap": "/api/heatmap"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "greentax.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.APP_DEBUG
    )
