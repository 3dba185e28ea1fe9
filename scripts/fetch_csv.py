"""
CSV Account Loader
==================

Fallback data source used when HubSpot yields no qualified leads.
Reads a comma-delimited export whose header row names the columns:

    Account ID, Account Name, Address, Total Sales, Date Created,
    Date Last Quoted, Primary Rep Name

The export carries no lifecycle stage, so one is synthesized from the
sales amount. Location defaults to data/accounts.csv (ACCOUNTS_CSV_PATH).
"""

import csv
import os
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from models.dashboard_models import Account
from scripts.lib.errors import DataFetchError
from scripts.lib.logger import setup_logger
from scripts.lib.utils import parse_currency, parse_ts, safe_int

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

logger = setup_logger(__name__)

DEFAULT_CSV_PATH = BASE_DIR / "data" / "accounts.csv"

UNKNOWN_ACCOUNT = "Unknown Account"

# (exclusive lower bound, stage), highest first; anything else is a lead.
SALES_STAGE_THRESHOLDS = [
    (50000, "customer"),
    (10000, "salesqualifiedlead"),
    (0, "marketingqualifiedlead"),
]


def csv_path() -> Path:
    return Path(os.getenv("ACCOUNTS_CSV_PATH") or DEFAULT_CSV_PATH)


def lifecycle_stage_for_sales(amount: float) -> str:
    for threshold, stage in SALES_STAGE_THRESHOLDS:
        if amount > threshold:
            return stage
    return "lead"


def parse_us_date(value: Optional[str]) -> Optional[datetime]:
    """Parse ``MM/DD/YYYY`` into a UTC midnight datetime."""
    if not value:
        return None
    parts = value.strip().split("/")
    if len(parts) != 3:
        return None
    try:
        month, day, year = (int(p) for p in parts)
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


def in_date_range(created: Optional[datetime], start: Optional[date], end: Optional[date]) -> bool:
    """Inclusive calendar-date range check. Undated records fail any active range."""
    if start is None and end is None:
        return True
    if created is None:
        return False
    day = created.date()
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


def row_to_account(row: Dict[str, str], created: Optional[datetime]) -> Account:
    total_sales = row.get("Total Sales") or "$0"
    return Account(
        account_id=safe_int(row.get("Account ID"), default=0),
        account_name=row.get("Account Name") or UNKNOWN_ACCOUNT,
        address=row.get("Address") or None,
        total_sales=total_sales,
        sales_is_estimate=False,
        created_at=created,
        last_activity_at=parse_ts(row.get("Date Last Quoted")),
        rep_name=row.get("Primary Rep Name") or None,
        lifecycle_stage=lifecycle_stage_for_sales(parse_currency(total_sales)),
    )


def read_rows(path: Path) -> List[Dict[str, str]]:
    """Read the export into header-keyed dicts; short rows are dropped."""
    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as fh:
            lines = [line for line in fh if line.strip()]
    except OSError as e:
        raise DataFetchError(f"Failed to read CSV data: {e}", source=str(path)) from e

    if not lines:
        return []

    reader = csv.reader(lines)
    headers = [h.replace('"', "").strip() for h in next(reader)]
    rows = []
    skipped = 0
    for values in reader:
        if len(values) < len(headers):
            skipped += 1
            continue
        rows.append({
            header: values[i].replace('"', "").strip()
            for i, header in enumerate(headers)
        })
    if skipped:
        logger.warning("Skipped %d short rows in %s", skipped, path.name)
    return rows


def load_csv_accounts(
    start: Optional[date] = None,
    end: Optional[date] = None,
    path: Optional[Path] = None,
) -> List[Account]:
    """Load Accounts from the CSV export, filtered to the creation date range."""
    path = Path(path) if path else csv_path()
    rows = read_rows(path)
    logger.info("Processing CSV data with %d accounts from %s", len(rows), path)

    accounts = []
    for row in rows:
        created = parse_us_date(row.get("Date Created"))
        if not in_date_range(created, start, end):
            continue
        accounts.append(row_to_account(row, created))

    logger.info("CSV processing complete: %d accounts after date filtering", len(accounts))
    return accounts
