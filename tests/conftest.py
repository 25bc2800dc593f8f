# Shared pytest fixtures
from __future__ import annotations

import json
import tempfile
import threading
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from prodsheet.logging.init import reset_logging
from prodsheet.models.config_models import DEFAULT_TABS, AppConfig, EndpointConfig
from prodsheet.sheets.columns import column_index, column_letter

SPREADSHEET_ID = "test-sheet"
WRITE_URL = "https://script.example.com/macros/s/test/exec"


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200, body: Any = None) -> None:
        self.text = text
        self.status_code = status_code
        self._body = body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        if self._body is None:
            return json.loads(self.text)
        return self._body


class FakeSpreadsheet:
    """In-memory spreadsheet answering gviz reads and applying posted commands.

    Rows are dicts keyed by column letter; rows[0] sits on the tab's
    ``first_row_number``. Stands in for ``requests.Session``.
    """

    def __init__(self) -> None:
        self.tabs: dict[str, list[dict[str, Any]]] = {}
        self.failing: set[str] = set()
        self.reject: dict[str, str] = {}  # action -> error message
        self.gets: list[str] = []
        self.posts: list[dict[str, str]] = []
        self._lock = threading.Lock()

    # --- setup ------------------------------------------------------------
    def set_rows(self, tab: str, rows: list[dict[str, Any]]) -> None:
        self.tabs[tab] = [dict(r) for r in rows]

    def first_row(self, tab: str) -> int:
        cfg = DEFAULT_TABS.get(tab)
        return cfg.first_row_number if cfg else 2

    def cell(self, tab: str, row_number: int, letter: str) -> Any:
        return self.tabs[tab][row_number - self.first_row(tab)].get(letter)

    # --- gviz ---------------------------------------------------------------
    def gviz_text(self, tab: str) -> str:
        rows = self.tabs.get(tab, [])
        width = max([column_index(k) for r in rows for k in r] or [1])
        cols = [{"id": column_letter(i), "label": "", "type": "string"} for i in range(width)]
        out_rows = []
        for r in rows:
            cells = []
            for i in range(width):
                value = r.get(column_letter(i))
                cells.append(None if value is None else {"v": value})
            out_rows.append({"c": cells})
        payload = {"version": "0.6", "status": "ok", "table": {"cols": cols, "rows": out_rows}}
        return f"/*O_o*/\ngoogle.visualization.Query.setResponse({json.dumps(payload)});"

    def get(self, url: str, timeout: float | None = None, **kwargs: Any) -> FakeResponse:
        tab = parse_qs(urlparse(url).query)["sheet"][0]
        with self._lock:
            self.gets.append(tab)
        if tab in self.failing:
            raise requests.ConnectionError(f"cannot reach {tab}")
        if tab not in self.tabs:
            return FakeResponse(status_code=400)
        return FakeResponse(self.gviz_text(tab))

    # --- writes ---------------------------------------------------------------
    def post(self, url: str, data: dict[str, str] | None = None, timeout: float | None = None, **kwargs: Any) -> FakeResponse:
        form = dict(data or {})
        with self._lock:
            self.posts.append(form)
        action = form["action"]
        if action in self.reject:
            return FakeResponse(body={"success": False, "error": self.reject[action]})
        tab = form.get("sheetName", "")
        if action == "insert":
            self._put(tab, None, json.loads(form["rowData"]))
        elif action == "update":
            self._put(tab, int(form["rowIndex"]), json.loads(form["rowData"]))
        elif action == "updateColumns":
            self._update(tab, int(form["rowIndex"]) - self.first_row(tab), form["columnUpdates"])
        elif action == "updateByJobCard":
            rows = self.tabs.get(tab, [])
            pos = next((i for i, r in enumerate(rows) if str(r.get("B", "")).strip() == form["jobCardNo"]), None)
            if pos is None:
                return FakeResponse(body={"success": False, "error": "Job card not found"})
            self._update(tab, pos, form["columnUpdates"])
        return FakeResponse(body={"success": True})

    def _put(self, tab: str, row_number: int | None, values: list[Any]) -> None:
        row = {column_letter(i): v for i, v in enumerate(values) if v not in (None, "")}
        rows = self.tabs.setdefault(tab, [])
        if row_number is None:
            rows.append(row)
        else:
            rows[row_number - self.first_row(tab)] = row

    def _update(self, tab: str, pos: int, updates_json: str) -> None:
        row = self.tabs[tab][pos]
        for col, value in json.loads(updates_json).items():
            letter = column_letter(int(col) - 1)
            if value in (None, ""):
                row.pop(letter, None)
            else:
                row[letter] = value


@pytest.fixture(autouse=True)
def _reset_logging() -> Any:
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("PRODSHEET_SPREADSHEET_ID", raising=False)
        monkeypatch.delenv("PRODSHEET_WRITE_URL", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return f"""spreadsheet_id: {SPREADSHEET_ID}
write_url: {WRITE_URL}
timeout_seconds: 5
session_file: .prodsheet-session.json
log_dir: logs
tabs:
  JobCards:
    first_row_number: 5
  Master:
    optional: true
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "planner.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def app_config() -> AppConfig:
    return AppConfig(endpoint=EndpointConfig(SPREADSHEET_ID, WRITE_URL, timeout_seconds=5))


@pytest.fixture()
def fake_sheet() -> FakeSpreadsheet:
    return FakeSpreadsheet()


@pytest.fixture()
def planner_sheet(fake_sheet: FakeSpreadsheet) -> FakeSpreadsheet:
    """A small but complete planner: one order per stage."""
    fake_sheet.set_rows("Orders", [
        {"A": "Acme", "B": "Party One", "C": "DO-100", "D": "Castable 60"},
        {"A": "Acme", "B": "Party Two", "C": "DO-101", "D": "Mortar"},
        {"A": "Brick Co", "B": "Party Three", "C": "DO-200", "D": "Castable 60"},
    ])
    fake_sheet.set_rows("Production", [
        {"A": "Date(2024,0,2,10,0,0)", "B": "DO-100", "C": "Acme", "D": "Party One", "E": "Castable 60",
         "F": 50.0, "G": "Date(2024,0,15)", "H": "High", "U": "Date(2024,0,3,9,0,0)",
         "X": "Date(2024,0,4,9,0,0)", "Y": "Date(2024,0,5,9,0,0)"},
        {"A": "Date(2024,0,3,10,0,0)", "B": "DO-101", "C": "Acme", "D": "Party Two", "E": "Mortar",
         "F": 20.0, "G": "Date(2024,0,20)", "H": "Normal", "X": "Date(2024,0,6,9,0,0)"},
    ])
    fake_sheet.set_rows("JobCards", [
        {"A": "Date(2024,0,5,9,0,0)", "B": "JC-001", "C": "Acme", "D": "Ravi", "E": "DO-100",
         "F": "Party One", "G": "Castable 60", "H": 50.0, "I": "Date(2024,0,6)", "J": "Day",
         "P": "x", "Q": "Date(2024,0,7,9,0,0)", "S": "x"},
    ])
    fake_sheet.set_rows("Actual Production", [
        {"A": "Date(2024,0,7,9,0,0)", "B": "JC-001", "C": "Acme", "D": "Date(2024,0,6)", "E": "Ravi",
         "F": "Castable 60", "G": 48.0, "H": 1.0, "I": "Alumina", "J": 30.0, "K": "", "L": 5.0,
         "M": "Cement", "N": 12.5, "AW": 8.5, "BF": "x"},
    ])
    fake_sheet.set_rows("Master", [
        {"A": "Normal", "B": "Ravi", "C": "Day", "D": "Pass", "E": "Anita", "J": "Alumina", "K": "Good"},
        {"A": "High", "B": "Sunil", "C": "Night", "D": "Fail", "E": "Vikram", "J": "Cement", "K": "Poor"},
    ])
    fake_sheet.set_rows("KYC", [
        {"A": "Alumina", "B": 0.9, "C": 0.01, "D": 2.9, "E": 0.5, "F": 40.0},
        {"A": "Cement", "B": 0.5, "C": 0.02, "D": 1.4, "E": 0.3, "F": 10.0},
    ])
    fake_sheet.set_rows("Costing Response", [
        {"A": "Date(2024,0,1,9,0,0)", "B": "CN-007"},
    ])
    fake_sheet.set_rows("Login_v2", [
        {"A": "admin", "B": "1", "C": "secret1", "D": "admin", "E": ""},
        {"A": "Lab", "B": "2", "C": "labpass", "D": "user", "E": "lab-testing1,lab-testing2"},
    ])
    return fake_sheet
