"""
HubSpot Contact -> Account Transformer
=======================================
Maps raw HubSpot contact objects (plus their associated company and owner)
into normalized Account records.

Contacts have no transaction amount, so ``total_sales`` is an estimated
value keyed by lifecycle stage (see stage_value_estimates in
configs/classification_rules.yaml) and every account produced here is
flagged ``sales_is_estimate=True``.

Exports:
    estimate_stage_value, transform_contact, transform_contacts
"""
from __future__ import annotations

import random
from typing import Dict, List, Optional

from models.dashboard_models import Account, Attribution
from scripts.lib.rules import ClassificationRules, load_rules
from scripts.lib.utils import parse_ts, safe_int

UNKNOWN_ACCOUNT = "Unknown Account"
RANDOM_ID_CEILING = 1_000_000


def _prop(obj: Optional[dict], key: str) -> Optional[str]:
    """Non-blank property value from a HubSpot object, else None."""
    if not obj:
        return None
    value = (obj.get("properties") or {}).get(key)
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def _join_address(parts: List[Optional[str]]) -> Optional[str]:
    joined = ", ".join(p for p in parts if p).strip()
    return joined or None


def _associated_company_id(contact: dict) -> Optional[str]:
    companies = (contact.get("associations") or {}).get("companies") or {}
    results = companies.get("results") or []
    if not results:
        return None
    company_id = results[0].get("id")
    return str(company_id) if company_id is not None else None


def _account_id(company: Optional[dict], contact: dict) -> int:
    raw_id = (company or {}).get("id") or contact.get("id")
    parsed = safe_int(raw_id)
    if parsed:
        return parsed
    return random.randrange(RANDOM_ID_CEILING)


def estimate_stage_value(lifecycle_stage: Optional[str], rules: ClassificationRules = None) -> float:
    """Fixed estimated deal value for a lifecycle stage (business heuristic)."""
    estimates = (rules or load_rules()).stage_value_estimates
    stage = (lifecycle_stage or "").lower()
    return estimates.get(stage, estimates.get("default", 0.0))


def _format_amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def transform_contact(
    contact: dict,
    companies_map: Dict[str, dict],
    owners_map: Dict[str, dict],
    rules: ClassificationRules = None,
) -> Account:
    """Build one Account from a contact and its company/owner lookups."""
    company_id = _associated_company_id(contact)
    company = companies_map.get(company_id) if company_id else None
    owner_id = _prop(contact, "hubspot_owner_id")
    owner = owners_map.get(owner_id) if owner_id else None

    contact_name = " ".join(
        p for p in (_prop(contact, "firstname"), _prop(contact, "lastname")) if p
    ).strip()
    account_name = (
        _prop(company, "name")
        or _prop(contact, "company")
        or contact_name
        or UNKNOWN_ACCOUNT
    )

    if company is not None:
        address = _join_address([
            _prop(company, "address"), _prop(company, "city"),
            _prop(company, "state"), _prop(company, "zip"),
        ])
    else:
        address = _join_address([
            _prop(contact, "city"), _prop(contact, "state"), _prop(contact, "country"),
        ])

    created_at = parse_ts(_prop(contact, "createdate")) or parse_ts(_prop(company, "createdate"))

    rep_name = None
    if owner:
        rep_name = f"{owner.get('firstName') or ''} {owner.get('lastName') or ''}".strip() or None

    lifecycle_stage = _prop(contact, "lifecyclestage")

    attribution = Attribution(
        analytics_source=_prop(contact, "hs_analytics_source"),
        latest_source=_prop(contact, "hs_latest_source"),
        source_data_1=_prop(contact, "hs_analytics_source_data_1"),
        source_data_2=_prop(contact, "hs_analytics_source_data_2"),
        first_touch_campaign=_prop(contact, "hs_analytics_first_touch_converting_campaign"),
        last_touch_campaign=_prop(contact, "hs_analytics_last_touch_converting_campaign"),
        first_url=_prop(contact, "hs_analytics_first_url"),
        last_url=_prop(contact, "hs_analytics_last_url"),
        num_visits=safe_int(_prop(contact, "hs_analytics_num_visits")),
        num_page_views=safe_int(_prop(contact, "hs_analytics_num_page_views")),
    )

    return Account(
        account_id=_account_id(company, contact),
        account_name=account_name,
        address=address,
        total_sales=_format_amount(estimate_stage_value(lifecycle_stage, rules)),
        sales_is_estimate=True,
        created_at=created_at,
        last_activity_at=parse_ts(_prop(contact, "lastmodifieddate")),
        rep_name=rep_name,
        lifecycle_stage=lifecycle_stage,
        attribution=attribution,
    )


def transform_contacts(
    contacts: List[dict],
    companies_map: Dict[str, dict],
    owners_map: Dict[str, dict],
) -> List[Account]:
    """Transform every contact, preserving input order."""
    return [transform_contact(c, companies_map, owners_map) for c in contacts]
