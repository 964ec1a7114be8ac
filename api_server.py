"""
FastAPI backend server for AutoValue.
This provides the diminished value REST API for the web frontend.
"""

from __future__ import annotations

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from autovalue import __version__
from autovalue.config import load_settings, validate_settings
from autovalue.utils import setup_logging
from autovalue.valuation.api import router as valuation_router

settings = load_settings()

# Setup logging
logger = setup_logging(settings.log_level)

for problem in validate_settings(settings):
    logger.warning("Configuration: %s", problem)

# Initialize FastAPI app
app = FastAPI(
    title="AutoValue API",
    description="REST API for AutoValue - diminished value appraisals",
    version=__version__,
)

# Configure CORS for frontend access
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

frontend_url = settings.frontend_url or os.getenv("FRONTEND_URL")
if frontend_url:
    allowed_origins.append(frontend_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(valuation_router)
logger.info("Valuation API router registered")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__, "name": "AutoValue"}


# Entry point for running with uvicorn directly
def main():
    """Entry point for the API server."""
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
