"""Shared fixtures for the dashboard test suite."""

import os
from datetime import datetime, timezone

import pytest

# Keep test runs from writing daily log files
os.environ.setdefault("LOG_TO_FILE", "false")

from models.dashboard_models import Account, Attribution


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_account(account_id=1, sales="0", **overrides) -> Account:
    """Account with sensible defaults; attribution fields may be passed as a dict."""
    attribution = overrides.pop("attribution", None) or {}
    fields = {
        "account_id": account_id,
        "account_name": f"Account {account_id}",
        "total_sales": str(sales),
    }
    fields.update(overrides)
    return Account(attribution=Attribution(**attribution), **fields)


@pytest.fixture
def now():
    return NOW
