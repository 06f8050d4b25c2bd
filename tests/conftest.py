# Shared pytest fixtures
from __future__ import annotations

import tempfile
import threading
from pathlib import Path
from typing import Any

import pytest

from lenient_import.errors import StoreUnavailableError
from lenient_import.logging.init import reset_logging
from lenient_import.models.persist_result import PersistResult


class FakeStore:
    """In-memory purchase-order store with the save() contract of the Postgres store.

    existing: poNo values that already exist before the import
    raise_on: poNo -> exception raised by save() for that row
    """

    def __init__(self, existing: set[str] | None = None, raise_on: dict[str, Exception] | None = None) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self.saved: list[dict[str, Any]] = []
        self.raise_on = raise_on or {}
        self._lock = threading.Lock()
        self._next_id = 0
        for po in existing or set():
            self.records[po] = {"poNo": po}

    def save(self, data: dict[str, Any], update_if_exists: bool = False) -> PersistResult:
        po_no = data.get("poNo")
        if po_no in self.raise_on:
            raise self.raise_on[po_no]
        with self._lock:
            if po_no is not None and po_no in self.records:
                if not update_if_exists:
                    return PersistResult(False, error=f"Purchase order {po_no} already exists")
                self.records[po_no].update(data)
                self.saved.append(dict(data))
                return PersistResult(True, id=f"upd-{po_no}")
            self._next_id += 1
            new_id = f"po-{self._next_id}"
            if po_no is not None:
                self.records[po_no] = dict(data)
            self.saved.append(dict(data))
            return PersistResult(True, id=new_id)

    def close(self) -> None:
        pass


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def store_factory():
    return FakeStore


@pytest.fixture()
def unavailable_error() -> StoreUnavailableError:
    return StoreUnavailableError("connection reset by peer")


@pytest.fixture(autouse=True)
def _reset_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """import:
  batch_size: 2
  skip_on_error: false
  update_if_exists: false
  null_sentinels: ["N/A", "-"]
mapping:
  extra_aliases:
    poNo: ["order ref"]
filters:
  procedure: filter_ppic_dynamic
  default_sort_by: poDate
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
error_log_dir: logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def po_csv_bytes() -> bytes:
    return (
        "PO No,GST No,Po Date,Qty,Brand Name,Foil Quantity,Sales Remarks\n"
        "PO1,07ABCDE1234F1Z5,01/02/2024,100,Amoxy,500,urgent\n"
        "PO2,07ABCDE1234F1Z5,15/03/2024,250 boxes,Paracet,lots,\n"
        "PO3,29XYZAB9876C1Z2,2024/04/10,50,Cetri,200,\n"
    ).encode("utf-8")
