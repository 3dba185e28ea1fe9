"""
Sales Funnel Dashboard — Pipeline Orchestrator
===============================================
Loads accounts from a data source and aggregates them into a snapshot.

Source policy ("auto"):
    1. HubSpot qualified leads (scripts/fetch_hubspot.py)
    2. If no contact qualifies, the CSV export (scripts/fetch_csv.py)

ConfigError and DataFetchError propagate; they never trigger the fallback.

Usage:
    python scripts/pipeline_orchestrator.py                              # all dates, auto source
    python scripts/pipeline_orchestrator.py --start 2025-01-01           # created on/after
    python scripts/pipeline_orchestrator.py --source csv --end 2025-06-30
    python scripts/pipeline_orchestrator.py --output data/processed/snapshot.json
"""
from __future__ import annotations

import argparse
import sys
import time
from datetime import date, datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Path setup
# ---------------------------------------------------------------------------
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

from models.dashboard_models import Account, DashboardSnapshot
from scripts.account_analyzer import build_snapshot
from scripts.fetch_csv import load_csv_accounts
from scripts.fetch_hubspot import fetch_hubspot_accounts
from scripts.lib.errors import DashboardError
from scripts.lib.logger import setup_logger
from scripts.lib.utils import atomic_write_json

logger = setup_logger("pipeline_orchestrator")

SOURCE_AUTO = "auto"
SOURCE_HUBSPOT = "hubspot"
SOURCE_CSV = "csv"
SOURCES = (SOURCE_AUTO, SOURCE_HUBSPOT, SOURCE_CSV)

DEFAULT_OUTPUT = PROJECT_ROOT / "data" / "processed" / "dashboard_snapshot.json"


def load_accounts(
    start: Optional[date] = None,
    end: Optional[date] = None,
    source: str = SOURCE_AUTO,
) -> Tuple[str, List[Account]]:
    """
    Load accounts for the creation-date range.

    Returns:
        Tuple of (data_source, accounts), where data_source is "hubspot" or "csv".
    """
    if source not in SOURCES:
        raise ValueError(f"Unknown data source: {source}")

    if source == SOURCE_CSV:
        return SOURCE_CSV, load_csv_accounts(start, end)

    accounts = fetch_hubspot_accounts(start, end)
    if accounts is not None:
        logger.info("Using HubSpot data: %d accounts", len(accounts))
        return SOURCE_HUBSPOT, accounts

    if source == SOURCE_HUBSPOT:
        logger.info("No qualified leads in HubSpot; fallback disabled")
        return SOURCE_HUBSPOT, []

    logger.info("No qualified leads in HubSpot, falling back to CSV data")
    return SOURCE_CSV, load_csv_accounts(start, end)


def run_dashboard(
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
    source: str = SOURCE_AUTO,
) -> DashboardSnapshot:
    """Load accounts and build the snapshot. ``now`` defaults to the current UTC time."""
    started = time.time()
    data_source, accounts = load_accounts(start, end, source)
    snapshot = build_snapshot(
        accounts,
        now or datetime.now(timezone.utc),
        data_source=data_source,
    )
    logger.info(
        "Dashboard built from %s in %.1fs (%d accounts)",
        data_source, time.time() - started, snapshot.total_accounts,
    )
    return snapshot


def _parse_date_arg(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {value}")


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Sales Funnel Dashboard pipeline")
    parser.add_argument("--start", type=_parse_date_arg, help="Created on or after (YYYY-MM-DD)")
    parser.add_argument("--end", type=_parse_date_arg, help="Created on or before (YYYY-MM-DD)")
    parser.add_argument(
        "--source", choices=SOURCES, default=SOURCE_AUTO,
        help="Data source (default: hubspot with CSV fallback)",
    )
    parser.add_argument(
        "--output", type=Path, default=DEFAULT_OUTPUT,
        help=f"Snapshot JSON path (default: {DEFAULT_OUTPUT})",
    )
    args = parser.parse_args(argv)

    logger.info("=" * 60)
    logger.info("SALES FUNNEL DASHBOARD PIPELINE")
    logger.info("  Range: %s -> %s | Source: %s", args.start or "*", args.end or "*", args.source)
    logger.info("=" * 60)

    try:
        snapshot = run_dashboard(args.start, args.end, source=args.source)
    except DashboardError as e:
        logger.error("Pipeline failed: %s", e)
        sys.exit(1)

    if not atomic_write_json(snapshot.model_dump(mode="json"), args.output):
        logger.error("Could not write snapshot to %s", args.output)
        sys.exit(1)

    logger.info(
        "Snapshot written to %s: %d accounts, revenue %.2f",
        args.output, snapshot.total_accounts, snapshot.total_revenue,
    )


if __name__ == "__main__":
    main()
