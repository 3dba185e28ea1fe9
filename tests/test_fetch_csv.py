"""Tests for the CSV fallback loader."""

from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest

from scripts.fetch_csv import (
    csv_path,
    lifecycle_stage_for_sales,
    load_csv_accounts,
    parse_us_date,
)
from scripts.lib.errors import DataFetchError

HEADER = '"Account ID","Account Name","Address","Total Sales","Date Created","Date Last Quoted","Primary Rep Name"\n'


def _write(tmp_path, body: str):
    path = tmp_path / "accounts.csv"
    path.write_text(HEADER + body, encoding="utf-8")
    return path


class TestLifecycleStage:
    @pytest.mark.parametrize("amount, stage", [
        (60000, "customer"),
        (50000, "salesqualifiedlead"),
        (10001, "salesqualifiedlead"),
        (10000, "marketingqualifiedlead"),
        (0.01, "marketingqualifiedlead"),
        (0, "lead"),
        (-20, "lead"),
    ])
    def test_thresholds(self, amount, stage):
        assert lifecycle_stage_for_sales(amount) == stage


class TestParseUsDate:
    def test_valid(self):
        assert parse_us_date("03/15/2025") == datetime(2025, 3, 15, tzinfo=timezone.utc)

    def test_invalid(self):
        for value in (None, "", "2025-03-15", "02/30/2025", "x/y/z"):
            assert parse_us_date(value) is None


class TestLoadCsvAccounts:
    def test_parses_rows(self, tmp_path):
        path = _write(tmp_path, (
            '1001,"Hospeco Brands, Group","200 Main St, Cleveland, OH 44135","$62,450.00",01/15/2025,03/02/2025,"Dana Miller"\n'
        ))
        accounts = load_csv_accounts(path=path)
        assert len(accounts) == 1
        account = accounts[0]
        assert account.account_id == 1001
        assert account.account_name == "Hospeco Brands, Group"
        assert account.address == "200 Main St, Cleveland, OH 44135"
        assert account.total_sales == "$62,450.00"
        assert account.sales_is_estimate is False
        assert account.lifecycle_stage == "customer"
        assert account.created_at == datetime(2025, 1, 15, tzinfo=timezone.utc)
        assert account.last_activity_at == datetime(2025, 3, 2, tzinfo=timezone.utc)
        assert account.rep_name == "Dana Miller"

    def test_defaults_for_blank_fields(self, tmp_path):
        path = _write(tmp_path, ",,,,,,\n")
        account = load_csv_accounts(path=path)[0]
        assert account.account_id == 0
        assert account.account_name == "Unknown Account"
        assert account.total_sales == "$0"
        assert account.address is None
        assert account.rep_name is None
        assert account.lifecycle_stage == "lead"

    def test_short_and_blank_rows_skipped(self, tmp_path):
        path = _write(tmp_path, "1,A,,$5,01/01/2025,,Rep\n\n2,B\n")
        accounts = load_csv_accounts(path=path)
        assert [a.account_id for a in accounts] == [1]

    def test_inclusive_date_range(self, tmp_path):
        path = _write(tmp_path, (
            "1,A,,$1,12/31/2024,,\n"
            "2,B,,$1,01/01/2025,,\n"
            "3,C,,$1,01/31/2025,,\n"
            "4,D,,$1,02/01/2025,,\n"
            "5,E,,$1,,,\n"
        ))
        accounts = load_csv_accounts(date(2025, 1, 1), date(2025, 1, 31), path=path)
        assert [a.account_id for a in accounts] == [2, 3]

    def test_undated_rows_kept_without_range(self, tmp_path):
        path = _write(tmp_path, "5,E,,$1,,,\n")
        assert len(load_csv_accounts(path=path)) == 1

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(DataFetchError):
            load_csv_accounts(path=tmp_path / "nope.csv")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "accounts.csv"
        path.write_text("", encoding="utf-8")
        assert load_csv_accounts(path=path) == []

    def test_path_from_environment(self, tmp_path):
        with patch.dict("os.environ", {"ACCOUNTS_CSV_PATH": str(tmp_path / "x.csv")}):
            assert csv_path() == tmp_path / "x.csv"
