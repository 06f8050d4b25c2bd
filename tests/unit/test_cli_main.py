from __future__ import annotations

import json
from pathlib import Path

import pytest

from lenient_import.cli import __main__ as cli_main
from lenient_import.errors import StoreUnavailableError
from lenient_import.models.filter_models import FilterPage


@pytest.fixture()
def csv_file(temp_workdir: Path, po_csv_bytes: bytes) -> Path:
    path = temp_workdir / "data" / "orders.csv"
    path.write_bytes(po_csv_bytes)
    return path


@pytest.fixture()
def use_store(monkeypatch):
    def _install(store):
        monkeypatch.setattr(cli_main, "PostgresPurchaseOrderStore", lambda *a, **kw: store)
        return store
    return _install


def _run(*argv: str) -> int:
    return cli_main.main(["--env-file", "missing.env", *argv])


def test_import_all_rows_persisted_exits_zero(csv_file, use_store, fake_store, capsys):
    use_store(fake_store)
    code = _run("import", str(csv_file))
    assert code == cli_main.EXIT_SUCCESS_ALL
    out = capsys.readouterr().out
    summary = [line for line in out.splitlines() if line.startswith("SUMMARY ")]
    assert len(summary) == 1
    assert "status=success rows=3 success=3 failed=0" in summary[0]
    assert len(fake_store.saved) == 3


def test_import_partial_failure_exits_two_and_writes_error_log(csv_file, use_store, store_factory, temp_workdir, capsys):
    use_store(store_factory(existing={"PO2"}))
    code = _run("import", str(csv_file), "--report")
    assert code == cli_main.EXIT_PARTIAL_FAILURE
    out = capsys.readouterr().out
    assert "status=partial" in out
    assert "Row 2 (PO: PO2):" in out
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1


def test_import_with_config_file(write_config, csv_file, use_store, fake_store, capsys):
    use_store(fake_store)
    code = _run("--config", str(write_config), "import", str(csv_file))
    assert code == cli_main.EXIT_SUCCESS_ALL
    # batch_size 2 from the config file -> two chunks for three rows
    assert "chunks=2" in capsys.readouterr().out


def test_import_explicit_mapping_file(csv_file, temp_workdir, use_store, fake_store):
    use_store(fake_store)
    mapping = temp_workdir / "mapping.json"
    mapping.write_text(json.dumps({"poNo": "PO No", "notes": "Sales Remarks"}), encoding="utf-8")
    assert _run("import", str(csv_file), "--mapping", str(mapping)) == cli_main.EXIT_SUCCESS_ALL
    assert {d["poNo"] for d in fake_store.saved} == {"PO1", "PO2", "PO3"}
    assert all(set(d) <= {"poNo", "notes"} for d in fake_store.saved)


def test_database_unavailable_is_fatal(csv_file, monkeypatch):
    def refuse(*args, **kwargs):
        raise StoreUnavailableError("cannot connect to database: refused")

    monkeypatch.setattr(cli_main, "PostgresPurchaseOrderStore", refuse)
    assert _run("import", str(csv_file)) == cli_main.EXIT_FATAL


def test_missing_file_is_fatal(temp_workdir, use_store, fake_store):
    use_store(fake_store)
    assert _run("import", str(temp_workdir / "nope.csv")) == cli_main.EXIT_FATAL


def test_invalid_config_is_fatal(temp_workdir, csv_file, capsys):
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text("import:\n  batch_size: -1\n", encoding="utf-8")
    assert _run("import", str(csv_file)) == cli_main.EXIT_FATAL
    assert "ERROR config:" in capsys.readouterr().out


def test_detect_prints_mapping_json(csv_file, capsys):
    assert _run("detect", str(csv_file)) == cli_main.EXIT_SUCCESS_ALL
    payload = json.loads(capsys.readouterr().out)
    assert payload["mapping"]["poNo"] == "PO No"
    assert payload["mapping"]["foilQuantity"] == "Foil Quantity"
    assert payload["unmappedHeaders"] == ["Sales Remarks"]


def test_test_mapping_prints_dry_run(csv_file, capsys):
    assert _run("test-mapping", str(csv_file), "--limit", "2") == cli_main.EXIT_SUCCESS_ALL
    payload = json.loads(capsys.readouterr().out)
    assert payload["summary"] == {"total": 2, "valid": 1, "warnings": 1, "errors": 0}
    assert payload["rows"][1]["errors"][0]["field"] == "foilQuantity"


def test_filter_with_query_parameters(temp_workdir, monkeypatch, capsys):
    received = {}

    class Pool:
        def closeall(self):
            received["closed"] = True

    class Engine:
        def __init__(self, *, pool, procedure):
            received["procedure"] = procedure

        def execute(self, canonical):
            received["canonical"] = canonical
            return FilterPage(1, canonical.page, canonical.limit, 1, [{"poNo": "PO1"}])

    monkeypatch.setattr(cli_main, "create_pool", lambda dsn, maxconn: Pool())
    monkeypatch.setattr(cli_main, "StoredProcedureFilterEngine", Engine)

    code = _run("filter", "--query", "brandName=Amox", "poDate_from=2024-01-01", "limit=10")
    assert code == cli_main.EXIT_SUCCESS_ALL
    assert received["closed"] is True
    assert received["procedure"] == "filter_ppic_dynamic"
    assert set(received["canonical"].filters) == {"brandName", "poDate"}
    payload = json.loads(capsys.readouterr().out)
    assert payload["totalCount"] == 1
    assert payload["pageSize"] == 10


def test_filter_bad_request_json_is_fatal(temp_workdir):
    assert _run("filter", "--request", "{oops") == cli_main.EXIT_FATAL
