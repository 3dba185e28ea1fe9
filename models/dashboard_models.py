"""
Sales Funnel Dashboard — Pydantic Models
==========================================

Normalized Account records and the Summary Snapshot built from them.

Optional fields are None when the source had no value; "N/A" / "Unknown"
placeholders are only rendered by scripts/lib/formatting.py.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─── Account ────────────────────────────────────────────────

class Attribution(BaseModel):
    """Marketing-origin metadata carried over verbatim from the CRM."""
    model_config = ConfigDict(frozen=True)

    analytics_source: Optional[str] = None
    latest_source: Optional[str] = None
    source_data_1: Optional[str] = None
    source_data_2: Optional[str] = None
    first_touch_campaign: Optional[str] = None
    last_touch_campaign: Optional[str] = None
    first_url: Optional[str] = None
    last_url: Optional[str] = None
    num_visits: Optional[int] = None
    num_page_views: Optional[int] = None


class Account(BaseModel):
    """One normalized lead/company record, the unit of aggregation."""
    model_config = ConfigDict(frozen=True)

    account_id: int
    account_name: str
    address: Optional[str] = None
    # Source-formatted currency text; parse with scripts.lib.utils.parse_currency.
    total_sales: str = "0"
    # True when total_sales is the lifecycle-stage estimate, not a real amount.
    sales_is_estimate: bool = False
    created_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    rep_name: Optional[str] = None
    lifecycle_stage: Optional[str] = None
    attribution: Attribution = Field(default_factory=Attribution)

    @field_validator("created_at", "last_activity_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ─── Rollups ────────────────────────────────────────────────

class SalesRollup(BaseModel):
    sales: float = 0.0
    accounts: int = 0


class StateRollup(BaseModel):
    accounts: int = 0
    sales: float = 0.0


class GeoRollup(BaseModel):
    leads: int = 0
    revenue: float = 0.0


class CampaignRollup(BaseModel):
    leads: int = 0
    revenue: float = 0.0


class TrafficSourceRollup(BaseModel):
    leads: int = 0
    revenue: float = 0.0
    conversion_rate: float = 0.0
    avg_deal_size: float = 0.0


class LandingPageRollup(BaseModel):
    leads: int = 0
    revenue: float = 0.0
    avg_deal_size: float = 0.0
    sql_count: int = 0
    conversion_rate: float = 0.0


# ─── Series and ranked lists ────────────────────────────────

class MonthlyTrend(BaseModel):
    month: str            # YYYY-MM
    label: str            # "Jan 25"
    accounts: int
    revenue: float


class SeasonalTrend(BaseModel):
    month: str            # "Jan 2025"
    leads: int
    revenue: float


class HourActivity(BaseModel):
    hour: int
    activity: int


class ResponseTimeMetrics(BaseModel):
    """Rep responsiveness. The average is a fixed placeholder, not telemetry."""
    avg_response_time_hours: float = 24.0
    is_estimate: bool = True
    fast_responders: List[str] = Field(default_factory=list)
    slow_responders: List[str] = Field(default_factory=list)


class TimeBasedInsights(BaseModel):
    peak_activity_hours: List[HourActivity] = Field(default_factory=list)
    seasonal_trends: List[SeasonalTrend] = Field(default_factory=list)
    response_time_metrics: ResponseTimeMetrics = Field(default_factory=ResponseTimeMetrics)


class LeadHealth(BaseModel):
    account_id: int
    account_name: str
    health_score: int
    temperature: str
    risk_level: str


# ─── Snapshot ───────────────────────────────────────────────

class DashboardSnapshot(BaseModel):
    """Complete aggregation result for one run."""
    generated_at: datetime
    data_source: Optional[str] = None

    total_accounts: int = 0
    total_revenue: float = 0.0
    average_deal_size: float = 0.0
    recently_quoted: int = 0
    # True when every revenue figure derives from lifecycle-stage estimates.
    revenue_is_estimate: bool = False

    sales_by_rep: Dict[str, SalesRollup] = Field(default_factory=dict)
    sales_by_brand: Dict[str, SalesRollup] = Field(default_factory=dict)
    sales_distribution: Dict[str, int] = Field(default_factory=dict)
    top_states: Dict[str, StateRollup] = Field(default_factory=dict)
    geographic_distribution: Dict[str, GeoRollup] = Field(default_factory=dict)
    lifecycle_stage_distribution: Dict[str, int] = Field(default_factory=dict)
    traffic_source_performance: Dict[str, TrafficSourceRollup] = Field(default_factory=dict)
    campaign_performance: Dict[str, CampaignRollup] = Field(default_factory=dict)
    landing_page_performance: Dict[str, LandingPageRollup] = Field(default_factory=dict)

    monthly_trends: List[MonthlyTrend] = Field(default_factory=list)
    top_performing_accounts: List[Account] = Field(default_factory=list)
    least_performing_accounts: List[Account] = Field(default_factory=list)
    lead_health_scores: List[LeadHealth] = Field(default_factory=list)
    time_based_insights: TimeBasedInsights = Field(default_factory=TimeBasedInsights)

    all_accounts: List[Account] = Field(default_factory=list)
