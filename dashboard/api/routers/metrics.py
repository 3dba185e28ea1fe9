"""
Sales Funnel Dashboard — Metrics Router
========================================
Runs the pipeline on request and returns the aggregated snapshot.

Endpoints:
  GET /api/metrics/snapshot                   - Snapshot (HubSpot, CSV fallback)
  GET /api/metrics/snapshot/csv               - Snapshot from the CSV export only
  GET /api/metrics/reps/{rep_name}/accounts   - Accounts for one rep, by sales

Endpoints are sync so the blocking pipeline runs in FastAPI's threadpool.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from models.dashboard_models import DashboardSnapshot
from scripts.account_analyzer import accounts_for_rep
from scripts.lib.errors import ConfigError, DashboardError, DataFetchError
from scripts.lib.formatting import account_display_row, clean_snapshot_for_display
from scripts.lib.logger import setup_logger
from scripts.pipeline_orchestrator import SOURCE_AUTO, SOURCE_CSV, run_dashboard

logger = setup_logger("metrics_router")

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


def _check_range(start_date: Optional[date], end_date: Optional[date]):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")


def _build(start_date: Optional[date], end_date: Optional[date], source: str) -> DashboardSnapshot:
    """Run the pipeline, mapping pipeline errors onto HTTP status codes."""
    try:
        return run_dashboard(start_date, end_date, source=source)
    except ConfigError as e:
        logger.error("Dashboard not configured: %s", e)
        raise HTTPException(status_code=503, detail=str(e))
    except DataFetchError as e:
        logger.error("Data fetch failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    except DashboardError as e:
        logger.error("Dashboard build failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to build dashboard")


@router.get("/snapshot", response_model=DashboardSnapshot)
def snapshot(
    start_date: Optional[date] = Query(None, description="Created on or after"),
    end_date: Optional[date] = Query(None, description="Created on or before"),
    clean: bool = Query(False, description="Drop placeholder reps, brands and accounts"),
):
    """Full dashboard snapshot. An empty snapshot is a valid result."""
    _check_range(start_date, end_date)
    result = _build(start_date, end_date, SOURCE_AUTO)
    return clean_snapshot_for_display(result) if clean else result


@router.get("/snapshot/csv", response_model=DashboardSnapshot)
def snapshot_csv(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    clean: bool = Query(False),
):
    """Snapshot built from the CSV export, skipping HubSpot."""
    _check_range(start_date, end_date)
    result = _build(start_date, end_date, SOURCE_CSV)
    return clean_snapshot_for_display(result) if clean else result


@router.get("/reps/{rep_name}/accounts")
def rep_accounts(
    rep_name: str,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    _check_range(start_date, end_date)
    result = _build(start_date, end_date, SOURCE_AUTO)
    accounts = accounts_for_rep(result.all_accounts, rep_name)
    return {
        "rep_name": rep_name,
        "data_source": result.data_source,
        "count": len(accounts),
        "accounts": [account_display_row(a) for a in accounts],
    }
