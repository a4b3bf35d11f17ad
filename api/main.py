"""
Patient Journey Platform API - Main Application.

Serves the lead pipeline, document approvals, access checks and the cart under
`/api/v1`. Run with `uvicorn api.main:app`.
"""

import logging
import os

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.routers import approvals, auth, cart, leads
from config.settings import Settings, get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

SERVICE_NAME = "patient-journey-platform-api"

app = FastAPI(
    title="Patient Journey Platform API",
    description="Patient leads, prescription and ANVISA approvals, and the product cart",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Session cookies need allow_credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])
app.include_router(approvals.router, prefix="/api/v1", tags=["Approvals"])
app.include_router(cart.router, prefix="/api/v1", tags=["Cart"])
app.include_router(auth.router, prefix="/api/v1", tags=["Auth"])


@app.get("/health", tags=["Health"])
def health_check(settings: Settings = Depends(get_settings)):
    """Liveness check, with the storage backend the core was built for."""
    return {
        "status": "healthy",
        "version": __version__,
        "service": SERVICE_NAME,
        "storage_backend": settings.storage_backend,
    }


@app.get("/", tags=["Root"])
def root():
    return {
        "message": "Patient Journey Platform API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1",
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
