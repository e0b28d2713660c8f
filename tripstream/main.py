"""
FastAPI application entry point.

Assembles the FastAPI app with the chat and places routers.
"""

import logging
import os
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tripstream.server.chat_api import router as chat_router
from tripstream.server.config import get_server_config
from tripstream.server.places import router as places_router
from tripstream.shared.logging.config import setup_logging


# ============================================================================
# Logging configuration (single source of truth for all modules)
# ============================================================================
LOG_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)-35s | %(message)s"
)

if os.environ.get("LOG_FORMAT", "").lower() == "json":
    setup_logging(level=logging.INFO, log_file=os.environ.get("LOG_FILE"))
else:
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,  # Override any prior basicConfig calls
    )

# Quiet noisy third-party loggers
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)


# Create FastAPI app
app = FastAPI(
    title="Tripstream",
    description="Streaming itinerary planner with progressive plan reconciliation",
    version="0.1.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_server_config().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(chat_router)
app.include_router(places_router)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    config = get_server_config()
    return {
        "name": "Tripstream",
        "version": "0.1.0",
        "endpoints": {
            "chat": "/api/chat",
            "chat_stream": "/api/chat/stream",
            "places": "/api/places/search",
        },
        "plan_mode": config.plan_mode,
        "enrichment": "active" if config.enrichment_enabled else "disabled",
    }


@app.get("/health")
async def health():
    """Global health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
