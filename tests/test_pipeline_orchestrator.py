"""Tests for source selection and the pipeline CLI."""

import json
from unittest.mock import patch

import pytest

from scripts.lib.errors import ConfigError, DataFetchError
from scripts.pipeline_orchestrator import load_accounts, main, run_dashboard
from tests.conftest import NOW, make_account

FETCH_HUBSPOT = "scripts.pipeline_orchestrator.fetch_hubspot_accounts"
LOAD_CSV = "scripts.pipeline_orchestrator.load_csv_accounts"


class TestLoadAccounts:
    def test_uses_hubspot_when_leads_qualify(self):
        remote = [make_account(1, "10000", sales_is_estimate=True)]
        with patch(FETCH_HUBSPOT, return_value=remote), patch(LOAD_CSV) as csv_loader:
            assert load_accounts() == ("hubspot", remote)
        csv_loader.assert_not_called()

    def test_falls_back_to_csv_when_none_qualify(self):
        local = [make_account(2, "$5")]
        with patch(FETCH_HUBSPOT, return_value=None), patch(LOAD_CSV, return_value=local) as csv_loader:
            assert load_accounts("start", "end") == ("csv", local)
        csv_loader.assert_called_once_with("start", "end")

    def test_empty_range_does_not_fall_back(self):
        with patch(FETCH_HUBSPOT, return_value=[]), patch(LOAD_CSV) as csv_loader:
            assert load_accounts() == ("hubspot", [])
        csv_loader.assert_not_called()

    @pytest.mark.parametrize("error", [
        ConfigError("no key", setting="HUBSPOT_API_KEY"),
        DataFetchError("boom", source="hubspot"),
    ])
    def test_errors_propagate_without_fallback(self, error):
        with patch(FETCH_HUBSPOT, side_effect=error), patch(LOAD_CSV) as csv_loader:
            with pytest.raises(type(error)):
                load_accounts()
        csv_loader.assert_not_called()

    def test_csv_only(self):
        with patch(FETCH_HUBSPOT) as remote, patch(LOAD_CSV, return_value=[]):
            assert load_accounts(source="csv") == ("csv", [])
        remote.assert_not_called()

    def test_hubspot_only_never_falls_back(self):
        with patch(FETCH_HUBSPOT, return_value=None), patch(LOAD_CSV) as csv_loader:
            assert load_accounts(source="hubspot") == ("hubspot", [])
        csv_loader.assert_not_called()

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            load_accounts(source="ftp")


class TestRunDashboard:
    def test_builds_snapshot_from_source(self):
        local = [make_account(1, "$100"), make_account(2, "$50")]
        with patch(FETCH_HUBSPOT, return_value=None), patch(LOAD_CSV, return_value=local):
            snapshot = run_dashboard(now=NOW)
        assert snapshot.data_source == "csv"
        assert snapshot.total_accounts == 2
        assert snapshot.total_revenue == 150
        assert snapshot.generated_at == NOW


    def test_csv_fallback_reflects_file_contents(self, tmp_path):
        path = tmp_path / "accounts.csv"
        path.write_text(
            '"Account ID","Account Name","Address","Total Sales","Date Created","Date Last Quoted","Primary Rep Name"\n'
            '1001,"Hospeco Brands Group","200 Main St, Cleveland, OH 44135","$62,450.00",01/15/2025,05/20/2025,"Dana Miller"\n'
            '1002,"Indoff Inc","11816 Lackland Rd, St. Louis, MO 63146","$18,900.50",02/03/2025,,"Chris Lee"\n'
            '1003,"Acme Corp","1 Main St, Springfield, IL 62701","$-350.00",04/07/2025,,"Chris Lee"\n',
            encoding="utf-8",
        )
        with patch.dict("os.environ", {"ACCOUNTS_CSV_PATH": str(path)}), \
                patch(FETCH_HUBSPOT, return_value=None):
            snapshot = run_dashboard(now=NOW)

        assert snapshot.data_source == "csv"
        assert snapshot.total_accounts == 3
        assert snapshot.total_revenue == pytest.approx(81000.50)
        assert snapshot.average_deal_size == pytest.approx(40675.25)
        assert snapshot.recently_quoted == 1
        assert snapshot.sales_by_rep["Chris Lee"].accounts == 2
        assert snapshot.sales_by_rep["Chris Lee"].sales == pytest.approx(18550.50)
        assert set(snapshot.top_states) == {"OH", "MO", "IL"}
        assert snapshot.lifecycle_stage_distribution == {
            "customer": 1, "salesqualifiedlead": 1, "lead": 1,
        }
        assert [a.account_id for a in snapshot.least_performing_accounts][0] == 1003


class TestMain:
    def test_writes_snapshot(self, tmp_path):
        output = tmp_path / "snapshot.json"
        with patch(LOAD_CSV, return_value=[make_account(1, "$10")]):
            main(["--source", "csv", "--start", "2025-01-01", "--output", str(output)])
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["data_source"] == "csv"
        assert data["total_accounts"] == 1

    def test_exits_nonzero_on_failure(self, tmp_path):
        with patch(FETCH_HUBSPOT, side_effect=ConfigError("no key")):
            with pytest.raises(SystemExit) as exc_info:
                main(["--output", str(tmp_path / "x.json")])
        assert exc_info.value.code == 1

    def test_rejects_bad_date(self):
        with pytest.raises(SystemExit):
            main(["--start", "01/02/2025"])
