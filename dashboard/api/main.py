"""
Sales Funnel Dashboard — API Server
=====================================

Serves the aggregated sales snapshot over HTTP.

Route groups:
  /api/health      - Health check
  /api/metrics/*   - Dashboard snapshot and rep drill-down
"""

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scripts.fetch_csv import csv_path
from scripts.lib.logger import setup_logger
from scripts.lib.rules import load_rules

BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

logger = setup_logger(__name__)

SERVICE_NAME = "Sales Funnel Dashboard"
VERSION = "1.0.0"


# ─── Lifespan ─────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app):
    """Application startup and shutdown."""
    logger.info("Starting %s...", SERVICE_NAME)

    # Raises ConfigError on a missing or invalid rules file
    load_rules()

    status = "configured" if os.getenv("HUBSPOT_API_KEY") else "not configured"
    logger.info("HubSpot: %s", status)
    logger.info("CSV fallback: %s", csv_path())

    logger.info("%s ready", SERVICE_NAME)
    yield
    logger.info("Shutting down %s...", SERVICE_NAME)


# ─── App Setup ────────────────────────────────────────────────

cors_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:8001"
).split(",")

app = FastAPI(
    title=SERVICE_NAME,
    version=VERSION,
    description="Sales funnel analytics over HubSpot leads with CSV fallback",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Include Routers ──────────────────────────────────────────

from dashboard.api.routers.metrics import router as metrics_router

app.include_router(metrics_router)


# ─── Health ───────────────────────────────────────────────────

@app.get("/api/health", tags=["system"])
async def health():
    """Health check with data source status."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sources": {
            "hubspot": bool(os.getenv("HUBSPOT_API_KEY")),
            "csv": csv_path().exists(),
        },
    }
