"""
Display formatting for dashboard values.

Placeholder labels ("N/A", "Unknown") exist only here, at the presentation
boundary; the snapshot itself keeps None for missing values.
"""

import math
from datetime import datetime
from typing import Any, Dict, Optional

from models.dashboard_models import Account, DashboardSnapshot

NOT_AVAILABLE = "N/A"
UNKNOWN_REP = "Unknown Rep"
UNKNOWN_ACCOUNT = "Unknown Account"

HIDDEN_REPS = {NOT_AVAILABLE, UNKNOWN_REP}
HIDDEN_BRANDS = {"Other", "Unknown"}

_COMPACT_UNITS = [
    (1e12, "T"),
    (1e9, "B"),
    (1e6, "M"),
    (1e3, "K"),
]


def _to_float(value: Any) -> Optional[float]:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def format_currency(value: Any, symbol: str = "$") -> str:
    """Compact USD: $950, $1.2K, $3.4M, $1.5B, $1T. Negatives render as -$."""
    v = _to_float(value)
    if v is None:
        return f"{symbol}0"
    sign = "-" if v < 0 else ""
    v = abs(v)
    for threshold, unit in _COMPACT_UNITS:
        if v >= threshold:
            scaled = f"{v / threshold:.1f}".rstrip("0").rstrip(".")
            return f"{sign}{symbol}{scaled}{unit}"
    return f"{sign}{symbol}{v:,.0f}"


def format_number(value: Any) -> str:
    """Format a number with commas."""
    v = _to_float(value)
    if v is None:
        return "0"
    if v == int(v):
        return f"{int(v):,}"
    return f"{v:,.1f}"


def format_pct(value: Any) -> str:
    v = _to_float(value)
    if v is None:
        return "0%"
    return f"{v:.1f}%"


def display_date(value: Optional[datetime]) -> str:
    if value is None:
        return NOT_AVAILABLE
    return value.strftime("%b %d, %Y")


def account_display_row(account: Account) -> Dict[str, str]:
    """Table row for an account with sentinels filled in."""
    return {
        "Account ID": str(account.account_id),
        "Account Name": account.account_name or UNKNOWN_ACCOUNT,
        "Address": account.address or NOT_AVAILABLE,
        "Total Sales": account.total_sales,
        "Date Created": display_date(account.created_at),
        "Date Last Quoted": display_date(account.last_activity_at),
        "Primary Rep Name": account.rep_name or NOT_AVAILABLE,
        "Lifecycle Stage": account.lifecycle_stage or "unknown",
    }


def _shown_rep(rep: Optional[str]) -> bool:
    return bool(rep and rep.strip()) and rep not in HIDDEN_REPS


def _shown_brand(brand: Optional[str]) -> bool:
    return bool(brand and brand.strip()) and brand not in HIDDEN_BRANDS


def _named(account: Account) -> bool:
    return bool(account.account_name) and account.account_name != UNKNOWN_ACCOUNT


def clean_snapshot_for_display(snapshot: DashboardSnapshot) -> DashboardSnapshot:
    """
    Drop placeholder buckets before display.

    Removes unassigned reps, generic brands, unnamed accounts, and top
    accounts without a rep. Totals are left as computed.
    """
    return snapshot.model_copy(update={
        "sales_by_rep": {
            rep: rollup for rep, rollup in snapshot.sales_by_rep.items() if _shown_rep(rep)
        },
        "sales_by_brand": {
            brand: rollup for brand, rollup in snapshot.sales_by_brand.items()
            if _shown_brand(brand)
        },
        "top_performing_accounts": [
            a for a in snapshot.top_performing_accounts
            if _named(a) and _shown_rep(a.rep_name)
        ],
        "all_accounts": [a for a in snapshot.all_accounts if _named(a)],
    })
