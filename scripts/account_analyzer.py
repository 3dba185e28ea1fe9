"""
Account Aggregation Engine
===========================
Turns a list of normalized Accounts into a single DashboardSnapshot:
revenue totals and distribution, rep/brand/state rollups, monthly trends,
rankings, source/campaign/landing-page attribution and lead health scores.

Every computation is a standalone function over the account list so it can
be tested on its own; build_snapshot() runs them all. Nothing in here reads
the system clock: the reference instant ``now`` is passed in by the caller.

Sales values that parse to a non-finite number or to a magnitude above
1e12 are treated as invalid. They are skipped by every revenue sum and
average but the account is still counted (total_accounts, bucket counts).

Exports:
    build_snapshot, sales_value, revenue_totals, sales_distribution,
    sales_by_rep, sales_by_brand, top_states, geographic_distribution,
    count_recently_quoted, monthly_trends, rank_accounts,
    lifecycle_stage_distribution, traffic_source_performance,
    campaign_performance, landing_page_performance, score_lead,
    lead_temperature, lead_risk_level, lead_health_scores,
    peak_activity_hours, seasonal_trends, response_time_metrics,
    accounts_for_rep
"""

from __future__ import annotations

import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from models.dashboard_models import (
    Account,
    CampaignRollup,
    DashboardSnapshot,
    GeoRollup,
    HourActivity,
    LandingPageRollup,
    LeadHealth,
    MonthlyTrend,
    ResponseTimeMetrics,
    SalesRollup,
    SeasonalTrend,
    StateRollup,
    TimeBasedInsights,
    TrafficSourceRollup,
)
from scripts.lib.classifiers import (
    classify_landing_page,
    extract_brand,
    extract_state,
    normalize_traffic_source,
)
from scripts.lib.logger import setup_logger
from scripts.lib.rules import ClassificationRules
from scripts.lib.utils import parse_currency, parse_ts, safe_div

logger = setup_logger(__name__)

# ---------------------------------------------------------------------------
# Default configuration
# ---------------------------------------------------------------------------
DEFAULT_CONFIG: Dict[str, Any] = {
    "recency_window_days": 90,
    "monthly_trend_months": 12,
    "ranked_list_size": 5,
    "peak_hours_count": 5,
    "fast_responder_count": 3,
    "slow_responder_count": 2,
    # Placeholder, no response-time telemetry exists.
    "placeholder_avg_response_hours": 24.0,
}

MAX_VALID_SALES = 1e12

UNASSIGNED_REP = "N/A"
UNKNOWN_STATE = "Unknown"
UNKNOWN_STAGE = "unknown"
SQL_STAGE = "salesqualifiedlead"
EXCLUDED_CAMPAIGN = "Unknown Campaign"

# (inclusive upper bound, label); anything above the last bound is "$25K+".
SALES_BANDS: List[Tuple[float, str]] = [
    (1000, "$0-$1K"),
    (5000, "$1K-$5K"),
    (10000, "$5K-$10K"),
    (25000, "$10K-$25K"),
]
NEGATIVE_BAND = "Negative"
TOP_BAND = "$25K+"

SOURCE_SCORE_BONUS: Dict[str, int] = {
    "Referral": 20,
    "Organic Search": 15,
    "Paid Search": 10,
}
STAGE_SCORE_BONUS: Dict[str, int] = {
    "customer": 30,
    "salesqualifiedlead": 25,
    "marketingqualifiedlead": 15,
}
BASE_HEALTH_SCORE = 50

TEMPERATURE_THRESHOLDS: List[Tuple[int, str]] = [
    (80, "Hot"),
    (60, "Warm"),
    (40, "Cool"),
]
COLDEST_TEMPERATURE = "Cold"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def sales_value(account: Account) -> Optional[float]:
    """Parsed sales value, or None when it is invalid for aggregation."""
    value = parse_currency(account.total_sales)
    if not math.isfinite(value) or abs(value) > MAX_VALID_SALES:
        return None
    return value


def _revenue(account: Account) -> float:
    value = sales_value(account)
    return value if value is not None else 0.0


def _is_sql(account: Account) -> bool:
    return (account.lifecycle_stage or "").lower() == SQL_STAGE


def _rep_key(account: Account) -> str:
    return account.rep_name or UNASSIGNED_REP


def _traffic_source(account: Account, rules: ClassificationRules = None) -> str:
    attribution = account.attribution
    return normalize_traffic_source(
        attribution.analytics_source or attribution.latest_source, rules
    )


def _rollup_sales(accounts: List[Account], key_fn: Callable[[Account], str]) -> Dict[str, SalesRollup]:
    buckets: Dict[str, Dict[str, float]] = {}
    for account in accounts:
        entry = buckets.setdefault(key_fn(account), {"sales": 0.0, "accounts": 0})
        entry["accounts"] += 1
        entry["sales"] += _revenue(account)
    return {key: SalesRollup(**entry) for key, entry in buckets.items()}


# ---------------------------------------------------------------------------
# Revenue
# ---------------------------------------------------------------------------

def revenue_totals(accounts: List[Account]) -> Tuple[float, float]:
    """Return (total revenue, average deal size over positive values)."""
    valid = [v for v in (sales_value(a) for a in accounts) if v is not None]
    positive = [v for v in valid if v > 0]
    return sum(valid), safe_div(sum(positive), len(positive))


def sales_distribution(accounts: List[Account]) -> Dict[str, int]:
    """Count valid sales values per fixed band. All bands are always present."""
    distribution = {NEGATIVE_BAND: 0}
    distribution.update({label: 0 for _, label in SALES_BANDS})
    distribution[TOP_BAND] = 0

    for account in accounts:
        value = sales_value(account)
        if value is None:
            continue
        if value < 0:
            distribution[NEGATIVE_BAND] += 1
            continue
        for upper, label in SALES_BANDS:
            if value <= upper:
                distribution[label] += 1
                break
        else:
            distribution[TOP_BAND] += 1
    return distribution


def sales_by_rep(accounts: List[Account]) -> Dict[str, SalesRollup]:
    return _rollup_sales(accounts, _rep_key)


def sales_by_brand(accounts: List[Account], rules: ClassificationRules = None) -> Dict[str, SalesRollup]:
    return _rollup_sales(accounts, lambda a: extract_brand(a.account_name, rules))


# ---------------------------------------------------------------------------
# Geography
# ---------------------------------------------------------------------------

def top_states(accounts: List[Account]) -> Dict[str, StateRollup]:
    """Accounts and sales per state, for addresses ending in STATE ZIP only."""
    states: Dict[str, StateRollup] = {}
    for account in accounts:
        state = extract_state(account.address)
        if state is None:
            continue
        entry = states.setdefault(state, StateRollup())
        entry.accounts += 1
        entry.sales += _revenue(account)
    return states


def geographic_distribution(accounts: List[Account]) -> Dict[str, GeoRollup]:
    """Leads and revenue per state; unmatched addresses go to "Unknown"."""
    geo: Dict[str, GeoRollup] = {}
    for account in accounts:
        state = extract_state(account.address) or UNKNOWN_STATE
        entry = geo.setdefault(state, GeoRollup())
        entry.leads += 1
        entry.revenue += _revenue(account)
    return geo


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

def count_recently_quoted(accounts: List[Account], now: datetime, window_days: int = 90) -> int:
    """Accounts whose last activity falls in the ``window_days`` before ``now``."""
    cutoff = now - timedelta(days=window_days)
    return sum(
        1 for a in accounts
        if a.last_activity_at is not None and cutoff < a.last_activity_at <= now
    )


def monthly_trends(accounts: List[Account], months: int = 12) -> List[MonthlyTrend]:
    """
    Accounts and revenue per creation month.

    Only the most recent ``months`` buckets present in the data are kept,
    independent of the calendar, sorted ascending.
    """
    if months <= 0:
        return []
    buckets: Dict[str, Dict[str, float]] = {}
    for account in accounts:
        if account.created_at is None:
            continue
        key = account.created_at.strftime("%Y-%m")
        entry = buckets.setdefault(key, {"accounts": 0, "revenue": 0.0})
        entry["accounts"] += 1
        entry["revenue"] += _revenue(account)

    trends = []
    for key in sorted(buckets)[-months:]:
        label = datetime.strptime(key, "%Y-%m").strftime("%b %y")
        trends.append(MonthlyTrend(month=key, label=label, **buckets[key]))
    return trends


def seasonal_trends(accounts: List[Account]) -> List[SeasonalTrend]:
    """Leads and revenue for every creation month, oldest first."""
    buckets: Dict[Tuple[int, int], Dict[str, float]] = {}
    for account in accounts:
        if account.created_at is None:
            continue
        key = (account.created_at.year, account.created_at.month)
        entry = buckets.setdefault(key, {"leads": 0, "revenue": 0.0})
        entry["leads"] += 1
        entry["revenue"] += _revenue(account)

    return [
        SeasonalTrend(month=datetime(year, month, 1).strftime("%b %Y"), **buckets[(year, month)])
        for year, month in sorted(buckets)
    ]


def peak_activity_hours(accounts: List[Account], top: int = 5) -> List[HourActivity]:
    """Most common creation hours (UTC), busiest first; ties go to the earlier hour."""
    hours = Counter(a.created_at.hour for a in accounts if a.created_at is not None)
    ranked = sorted(hours.items(), key=lambda kv: (-kv[1], kv[0]))
    return [HourActivity(hour=hour, activity=count) for hour, count in ranked[:top]]


def response_time_metrics(
    accounts: List[Account],
    config: Optional[Dict[str, Any]] = None,
) -> ResponseTimeMetrics:
    """
    Rank reps by lead count.

    There is no response-time data; the average is a fixed placeholder and
    the model flags it with ``is_estimate=True``.
    """
    config = config or DEFAULT_CONFIG
    lead_counts = Counter(_rep_key(a) for a in accounts)
    ranked = [rep for rep, _ in sorted(lead_counts.items(), key=lambda kv: kv[1], reverse=True)]

    fast_n = config.get("fast_responder_count", 3)
    slow_n = config.get("slow_responder_count", 2)
    return ResponseTimeMetrics(
        avg_response_time_hours=config.get("placeholder_avg_response_hours", 24.0),
        is_estimate=True,
        fast_responders=ranked[:fast_n],
        slow_responders=ranked[-slow_n:] if slow_n > 0 else [],
    )


# ---------------------------------------------------------------------------
# Rankings
# ---------------------------------------------------------------------------

def rank_accounts(accounts: List[Account], size: int = 5) -> Tuple[List[Account], List[Account]]:
    """
    Return (top performers, least performers).

    Accounts with valid sales are sorted by value, descending; the sort is
    stable so ties keep input order. Least performers are the most negative
    accounts, most negative first. When fewer than ``size`` are negative,
    the list is padded with the lowest non-negative accounts, lowest first.
    """
    if size <= 0:
        return [], []
    valued = []
    for account in accounts:
        value = sales_value(account)
        if value is not None:
            valued.append((value, account))
    ordered = sorted(valued, key=lambda pair: pair[0], reverse=True)

    top = [account for _, account in ordered[:size]]

    negatives = [account for value, account in ordered if value < 0]
    least = negatives[-size:][::-1]
    if len(least) < size and ordered:
        missing = size - len(least)
        non_negative = [account for value, account in ordered if value >= 0]
        least.extend(non_negative[-missing:][::-1])
    return top, least


def accounts_for_rep(accounts: List[Account], rep_name: str) -> List[Account]:
    """One rep's accounts, highest sales first (invalid values last)."""
    def _sort_key(account: Account) -> float:
        value = sales_value(account)
        return value if value is not None else -math.inf

    owned = [a for a in accounts if _rep_key(a) == rep_name]
    return sorted(owned, key=_sort_key, reverse=True)


# ---------------------------------------------------------------------------
# Funnel and attribution
# ---------------------------------------------------------------------------

def lifecycle_stage_distribution(accounts: List[Account]) -> Dict[str, int]:
    return dict(Counter(a.lifecycle_stage or UNKNOWN_STAGE for a in accounts))


def traffic_source_performance(
    accounts: List[Account], rules: ClassificationRules = None,
) -> Dict[str, TrafficSourceRollup]:
    """Leads, revenue, average deal size and SQL conversion rate per source category."""
    buckets: Dict[str, Dict[str, float]] = {}
    for account in accounts:
        entry = buckets.setdefault(
            _traffic_source(account, rules), {"leads": 0, "revenue": 0.0, "sqls": 0}
        )
        entry["leads"] += 1
        entry["revenue"] += _revenue(account)
        if _is_sql(account):
            entry["sqls"] += 1

    return {
        source: TrafficSourceRollup(
            leads=entry["leads"],
            revenue=entry["revenue"],
            avg_deal_size=safe_div(entry["revenue"], entry["leads"]),
            conversion_rate=safe_div(entry["sqls"], entry["leads"]) * 100,
        )
        for source, entry in buckets.items()
    }


def campaign_performance(accounts: List[Account]) -> Dict[str, CampaignRollup]:
    """Leads and revenue per last-touch (else first-touch) campaign."""
    campaigns: Dict[str, CampaignRollup] = {}
    for account in accounts:
        attribution = account.attribution
        campaign = attribution.last_touch_campaign or attribution.first_touch_campaign
        if not campaign or not campaign.strip() or campaign == EXCLUDED_CAMPAIGN:
            continue
        entry = campaigns.setdefault(campaign, CampaignRollup())
        entry.leads += 1
        entry.revenue += _revenue(account)
    return campaigns


def landing_page_performance(
    accounts: List[Account], rules: ClassificationRules = None,
) -> Dict[str, LandingPageRollup]:
    """Per first-visit landing page: leads, revenue, SQLs and conversion rate."""
    pages: Dict[str, LandingPageRollup] = {}
    for account in accounts:
        page = classify_landing_page(account.attribution.first_url, rules)
        if page is None:
            continue
        entry = pages.setdefault(page, LandingPageRollup())
        entry.leads += 1
        entry.revenue += _revenue(account)
        if _is_sql(account):
            entry.sql_count += 1

    for entry in pages.values():
        entry.avg_deal_size = safe_div(entry.revenue, entry.leads)
        entry.conversion_rate = safe_div(entry.sql_count, entry.leads) * 100
    return pages


# ---------------------------------------------------------------------------
# Lead health
# ---------------------------------------------------------------------------

def score_lead(account: Account, rules: ClassificationRules = None) -> int:
    """
    Lead health score in [0, 100].

    Base 50, plus one source bonus (Referral +20, Organic Search +15,
    Paid Search +10), one visit bonus (>5: +15, >2: +10) and one stage
    bonus (customer +30, SQL +25, MQL +15).
    """
    score = BASE_HEALTH_SCORE
    score += SOURCE_SCORE_BONUS.get(_traffic_source(account, rules), 0)

    visits = account.attribution.num_visits or 0
    if visits > 5:
        score += 15
    elif visits > 2:
        score += 10

    score += STAGE_SCORE_BONUS.get((account.lifecycle_stage or "").lower(), 0)
    return max(0, min(100, score))


def lead_temperature(score: int) -> str:
    for threshold, label in TEMPERATURE_THRESHOLDS:
        if score >= threshold:
            return label
    return COLDEST_TEMPERATURE


def lead_risk_level(account: Account, now: datetime) -> str:
    """Risk from account age: >60 days High, >30 days Medium, else Low."""
    if account.created_at is None:
        return "Unknown"
    days_since_created = (now - account.created_at).total_seconds() / 86400
    if days_since_created > 60:
        return "High Risk"
    if days_since_created > 30:
        return "Medium Risk"
    return "Low Risk"


def lead_health_scores(
    accounts: List[Account], now: datetime, rules: ClassificationRules = None,
) -> List[LeadHealth]:
    """Health score, temperature and risk for every account, best first."""
    scored = []
    for account in accounts:
        score = score_lead(account, rules)
        scored.append(LeadHealth(
            account_id=account.account_id,
            account_name=account.account_name,
            health_score=score,
            temperature=lead_temperature(score),
            risk_level=lead_risk_level(account, now),
        ))
    return sorted(scored, key=lambda h: h.health_score, reverse=True)


# ============================================================================
# Main aggregation
# ============================================================================

def build_snapshot(
    accounts: List[Account],
    now: datetime,
    config: Optional[Dict[str, Any]] = None,
    data_source: Optional[str] = None,
    rules: ClassificationRules = None,
) -> DashboardSnapshot:
    """Run every computation over ``accounts`` and assemble the snapshot.

    ``now`` pins the recency window and lead risk levels; the same accounts
    and the same ``now`` always give the same snapshot.
    """
    config = config or DEFAULT_CONFIG
    now = parse_ts(now)
    if now is None:
        raise ValueError("build_snapshot requires a reference instant")

    logger.info("Aggregating %d accounts (source: %s)", len(accounts), data_source or "n/a")

    total_revenue, average_deal_size = revenue_totals(accounts)
    ranked_size = config.get("ranked_list_size", 5)
    top, least = rank_accounts(accounts, ranked_size)

    snapshot = DashboardSnapshot(
        generated_at=now,
        data_source=data_source,
        total_accounts=len(accounts),
        total_revenue=total_revenue,
        average_deal_size=average_deal_size,
        recently_quoted=count_recently_quoted(
            accounts, now, config.get("recency_window_days", 90)
        ),
        revenue_is_estimate=bool(accounts) and all(a.sales_is_estimate for a in accounts),
        sales_by_rep=sales_by_rep(accounts),
        sales_by_brand=sales_by_brand(accounts, rules),
        sales_distribution=sales_distribution(accounts),
        top_states=top_states(accounts),
        geographic_distribution=geographic_distribution(accounts),
        lifecycle_stage_distribution=lifecycle_stage_distribution(accounts),
        traffic_source_performance=traffic_source_performance(accounts, rules),
        campaign_performance=campaign_performance(accounts),
        landing_page_performance=landing_page_performance(accounts, rules),
        monthly_trends=monthly_trends(accounts, config.get("monthly_trend_months", 12)),
        top_performing_accounts=top,
        least_performing_accounts=least,
        lead_health_scores=lead_health_scores(accounts, now, rules),
        time_based_insights=TimeBasedInsights(
            peak_activity_hours=peak_activity_hours(accounts, config.get("peak_hours_count", 5)),
            seasonal_trends=seasonal_trends(accounts),
            response_time_metrics=response_time_metrics(accounts, config),
        ),
        all_accounts=list(accounts),
    )

    logger.info(
        "Snapshot ready: revenue=%.2f, reps=%d, brands=%d, sources=%d",
        snapshot.total_revenue,
        len(snapshot.sales_by_rep),
        len(snapshot.sales_by_brand),
        len(snapshot.traffic_source_performance),
    )
    return snapshot
