"""
HubSpot Lead Fetcher
====================

Connects to HubSpot API v3 via Private App token and returns qualified
leads (MQLs/SQLs) as normalized Accounts.

Flow:
    1. Page contacts: Search API when a start date is given (createdate >= start),
       basic list otherwise. Hard page caps bound the walk.
    2. Keep contacts qualified by lifecycle stage or lead status.
       None qualified -> return None (caller falls back to CSV).
    3. Apply the inclusive creation-date range.
    4. Look up associated companies and owners one ID at a time; a failed
       lookup is logged and the association is skipped.
    5. Transform into Accounts.

No retries: a failed contact page raises DataFetchError.
"""

import os
import time
from datetime import date, datetime, time as dt_time, timezone
from pathlib import Path
from typing import Dict, List, Optional

import requests
from dotenv import load_dotenv

from models.dashboard_models import Account
from scripts.account_transformer import transform_contacts
from scripts.lib.errors import (
    APIAuthError,
    APIError,
    APIRateLimitError,
    APITimeoutError,
    ConfigError,
    DataFetchError,
)
from scripts.lib.logger import setup_logger
from scripts.lib.utils import parse_ts

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

logger = setup_logger(__name__)

HUBSPOT_BASE_URL = "https://api.hubapi.com"
HUBSPOT_PAGE_LIMIT = 100
HUBSPOT_RATE_LIMIT = 100
HUBSPOT_RATE_WINDOW = 10  # seconds
HUBSPOT_TIMEOUT = 30  # seconds
HUBSPOT_MAX_PAGES = 500
HUBSPOT_FALLBACK_MAX_PAGES = 200
ASSOCIATION_BATCH_SIZE = 100

CONTACT_PROPERTIES = [
    "firstname", "lastname", "email", "company",
    "lifecyclestage", "lead_status", "hs_lead_status",
    "createdate", "lastmodifieddate", "hubspot_owner_id",
    "city", "state", "country", "jobtitle", "phone",
    "hs_analytics_source", "hs_latest_source",
    "hs_analytics_source_data_1", "hs_analytics_source_data_2",
    "hs_latest_source_data_1", "hs_latest_source_data_2",
    "hs_analytics_first_touch_converting_campaign",
    "hs_analytics_last_touch_converting_campaign",
    "hs_analytics_first_url", "hs_analytics_last_url",
    "hs_analytics_num_visits", "hs_analytics_num_page_views",
    "hs_analytics_first_visit_timestamp", "hs_analytics_last_visit_timestamp",
]
COMPANY_PROPERTIES = ["name", "address", "city", "state", "zip", "createdate"]

QUALIFIED_STAGES = {"salesqualifiedlead", "marketingqualifiedlead", "sql", "mql"}
QUALIFIED_LEAD_STATUSES = {"sales qualified lead", "marketing qualified lead", "sql", "mql"}


def _retry_after(value) -> Optional[int]:
    """Retry-After in seconds; HTTP-date and missing values give None."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class HubSpotClient:
    """HubSpot API v3 client with pagination and client-side rate limiting."""

    def __init__(self, api_key: str, base_url: str = None, timeout: int = HUBSPOT_TIMEOUT):
        self.api_key = api_key
        self.base_url = (base_url or os.getenv("HUBSPOT_BASE_URL") or HUBSPOT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        })
        self._request_timestamps: List[float] = []

    def _rate_limit_wait(self):
        now = time.time()
        self._request_timestamps = [
            t for t in self._request_timestamps if now - t < HUBSPOT_RATE_WINDOW
        ]
        if len(self._request_timestamps) >= HUBSPOT_RATE_LIMIT:
            sleep_time = HUBSPOT_RATE_WINDOW - (now - self._request_timestamps[0]) + 0.1
            logger.debug(f"Rate limit approaching, sleeping {sleep_time:.1f}s")
            time.sleep(sleep_time)
        self._request_timestamps.append(time.time())

    def _request(self, method: str, endpoint: str, params: dict = None, body: dict = None) -> dict:
        """Make one authenticated request. Failures raise APIError subclasses."""
        self._rate_limit_wait()
        url = f"{self.base_url}{endpoint}"
        try:
            resp = self.session.request(method, url, params=params, json=body, timeout=self.timeout)
        except requests.Timeout as e:
            raise APITimeoutError(url, self.timeout) from e
        except requests.RequestException as e:
            raise APIError(f"{method} {endpoint} failed: {e}", url=url) from e

        if resp.status_code in (401, 403):
            raise APIAuthError(url, status_code=resp.status_code)
        if resp.status_code == 429:
            raise APIRateLimitError(url, retry_after=_retry_after(resp.headers.get("Retry-After")))
        if resp.status_code >= 400:
            raise APIError(
                f"{method} {endpoint} returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code, url=url,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise APIError(
                f"{method} {endpoint} returned a non-JSON body", status_code=resp.status_code, url=url,
            ) from e

    def _get(self, endpoint: str, params: dict = None) -> dict:
        return self._request("GET", endpoint, params=params)

    def _post(self, endpoint: str, body: dict) -> dict:
        return self._request("POST", endpoint, body=body)

    def list_contacts(self, max_pages: int = HUBSPOT_MAX_PAGES) -> List[dict]:
        """Page through all contacts, with company associations, up to ``max_pages``."""
        contacts: List[dict] = []
        params = {
            "limit": HUBSPOT_PAGE_LIMIT,
            "properties": ",".join(CONTACT_PROPERTIES),
            "associations": "companies",
            "archived": "false",
        }
        after = None
        page = 0
        while page < max_pages:
            page += 1
            if after:
                params["after"] = after
            data = self._get("/crm/v3/objects/contacts", params)
            results = data.get("results", [])
            contacts.extend(results)
            if page <= 10 or page % 20 == 0:
                logger.info(f"Page {page}: {len(results)} contacts (total: {len(contacts)})")
            after = data.get("paging", {}).get("next", {}).get("after")
            if not after:
                break
        return contacts

    def search_contacts_created_since(self, start: datetime,
                                      max_pages: int = HUBSPOT_MAX_PAGES) -> List[dict]:
        """Search API: contacts with createdate >= ``start``. Results carry no associations."""
        contacts: List[dict] = []
        after = None
        page = 0
        while page < max_pages:
            page += 1
            body = {
                "properties": CONTACT_PROPERTIES,
                "limit": HUBSPOT_PAGE_LIMIT,
                "filterGroups": [{
                    "filters": [{
                        "propertyName": "createdate",
                        "operator": "GTE",
                        "value": str(int(start.timestamp() * 1000)),
                    }]
                }],
            }
            if after:
                body["after"] = after
            data = self._post("/crm/v3/objects/contacts/search", body)
            results = data.get("results", [])
            contacts.extend(results)
            logger.info(f"Search page {page}: {len(results)} contacts (total: {len(contacts)})")
            after = data.get("paging", {}).get("next", {}).get("after")
            if not after:
                break
        return contacts

    def fetch_company_associations(self, contact_ids: List[str]) -> Dict[str, List[str]]:
        """contact_id -> [company_id, ...] via the v4 batch association API."""
        associations: Dict[str, List[str]] = {}
        for i in range(0, len(contact_ids), ASSOCIATION_BATCH_SIZE):
            batch = contact_ids[i:i + ASSOCIATION_BATCH_SIZE]
            body = {"inputs": [{"id": cid} for cid in batch]}
            data = self._post("/crm/v4/associations/contacts/companies/batch/read", body)
            for result in data.get("results", []):
                from_id = result.get("from", {}).get("id")
                to_ids = [str(t.get("toObjectId")) for t in result.get("to", [])]
                if from_id:
                    associations[str(from_id)] = to_ids
        logger.info(f"Fetched {len(associations)} contact->company associations")
        return associations

    def get_company(self, company_id: str) -> dict:
        return self._get(
            f"/crm/v3/objects/companies/{company_id}",
            {"properties": ",".join(COMPANY_PROPERTIES)},
        )

    def get_owner(self, owner_id: str) -> dict:
        return self._get(f"/crm/v3/owners/{owner_id}")


# ---------------------------------------------------------------------------
# Contact selection
# ---------------------------------------------------------------------------

def is_qualified_lead(contact: dict) -> bool:
    """MQL/SQL by lifecycle stage, lead_status or hs_lead_status."""
    props = contact.get("properties") or {}
    stage = (props.get("lifecyclestage") or "").lower()
    lead_status = (props.get("lead_status") or "").lower()
    hs_lead_status = (props.get("hs_lead_status") or "").lower()
    return (
        stage in QUALIFIED_STAGES
        or lead_status in QUALIFIED_LEAD_STATUSES
        or hs_lead_status in QUALIFIED_LEAD_STATUSES
    )


def filter_by_created_range(contacts: List[dict], start: Optional[date],
                            end: Optional[date]) -> List[dict]:
    """Inclusive calendar-date filter on createdate; undated contacts are dropped."""
    if start is None and end is None:
        return contacts
    kept = []
    for contact in contacts:
        created = parse_ts((contact.get("properties") or {}).get("createdate"))
        if created is None:
            continue
        day = created.date()
        if start is not None and day < start:
            continue
        if end is not None and day > end:
            continue
        kept.append(contact)
    return kept


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, dt_time.min, tzinfo=timezone.utc)


def fetch_contacts(client: HubSpotClient, start: Optional[date] = None,
                   max_pages: int = HUBSPOT_MAX_PAGES) -> List[dict]:
    """Raw contacts for the run; transport failures raise DataFetchError."""
    try:
        if start is not None:
            try:
                contacts = client.search_contacts_created_since(_start_of_day(start), max_pages)
            except APIError as e:
                logger.warning(f"Search API failed, falling back to basic pagination: {e}")
                return client.list_contacts(min(max_pages, HUBSPOT_FALLBACK_MAX_PAGES))
        else:
            return client.list_contacts(max_pages)
    except APIError as e:
        raise DataFetchError(f"HubSpot contact fetch failed: {e}", source="hubspot") from e

    try:
        _attach_company_associations(client, contacts)
    except APIError as e:
        logger.warning(f"Company association read failed, continuing without companies: {e}")
    return contacts


def _company_associations(contact: dict) -> List[dict]:
    companies = (contact.get("associations") or {}).get("companies") or {}
    return companies.get("results") or []


def _attach_company_associations(client: HubSpotClient, contacts: List[dict]) -> None:
    ids = [str(c["id"]) for c in contacts if c.get("id") and "associations" not in c]
    if not ids:
        return
    associations = client.fetch_company_associations(ids)
    for contact in contacts:
        company_ids = associations.get(str(contact.get("id")))
        if company_ids and "associations" not in contact:
            contact["associations"] = {
                "companies": {"results": [{"id": cid} for cid in company_ids]}
            }


def fetch_lookups(client: HubSpotClient, contacts: List[dict]):
    """Fetch associated companies and owners one ID at a time."""
    company_ids: List[str] = []
    owner_ids: List[str] = []
    for contact in contacts:
        for assoc in _company_associations(contact):
            cid = str(assoc.get("id"))
            if cid not in company_ids:
                company_ids.append(cid)
        owner_id = (contact.get("properties") or {}).get("hubspot_owner_id")
        if owner_id and str(owner_id) not in owner_ids:
            owner_ids.append(str(owner_id))

    companies_map: Dict[str, dict] = {}
    for company_id in company_ids:
        try:
            companies_map[company_id] = client.get_company(company_id)
        except APIError as e:
            logger.warning(f"Failed to fetch company {company_id}: {e}")

    owners_map: Dict[str, dict] = {}
    for owner_id in owner_ids:
        try:
            owners_map[owner_id] = client.get_owner(owner_id)
        except APIError as e:
            logger.warning(f"Failed to fetch owner {owner_id}: {e}")

    logger.info(
        f"Resolved {len(companies_map)}/{len(company_ids)} companies, "
        f"{len(owners_map)}/{len(owner_ids)} owners"
    )
    return companies_map, owners_map


def fetch_hubspot_accounts(
    start: Optional[date] = None,
    end: Optional[date] = None,
    api_key: str = None,
    client: HubSpotClient = None,
) -> Optional[List[Account]]:
    """
    Qualified HubSpot leads as Accounts.

    Returns None when no contact qualifies (the fallback trigger); an empty
    list means leads qualified but none fell inside the date range.
    Raises ConfigError without HUBSPOT_API_KEY and DataFetchError when the
    contact fetch fails.
    """
    if client is None:
        api_key = (api_key or os.getenv("HUBSPOT_API_KEY") or "").strip()
        if not api_key:
            raise ConfigError(
                "HubSpot API key (HUBSPOT_API_KEY) is not configured",
                setting="HUBSPOT_API_KEY",
            )
        client = HubSpotClient(api_key)

    max_pages = int(os.getenv("HUBSPOT_MAX_PAGES", HUBSPOT_MAX_PAGES))
    logger.info(f"Fetching contacts from HubSpot (start={start}, end={end})")
    contacts = fetch_contacts(client, start, max_pages)
    logger.info(f"Total contacts found: {len(contacts)}")

    qualified = [c for c in contacts if is_qualified_lead(c)]
    logger.info(f"Found {len(qualified)} qualified leads (SQLs/MQLs) out of {len(contacts)} contacts")
    if not qualified:
        return None

    in_range = filter_by_created_range(qualified, start, end)
    if start or end:
        logger.info(f"Date filtering: {len(qualified)} -> {len(in_range)} qualified leads")

    companies_map, owners_map = fetch_lookups(client, in_range)
    return transform_contacts(in_range, companies_map, owners_map)
