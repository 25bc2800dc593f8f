from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlencode

import requests

from ..models.config_models import EndpointConfig
from ..models.tabular import Cell, ColumnDef, TabularResult

"""gviz Sheet Reader.

Reads one tab of the shared spreadsheet through the public visualization
query endpoint. The response body is JavaScript::

    /*O_o*/
    google.visualization.Query.setResponse({... "table": {"cols": [...], "rows": [...]}});

and the JSON object has to be cut out of the callback wrapper before parsing.
Every read goes to the network; nothing is cached.
"""

__all__ = [
    "FetchBatch",
    "GVIZ_URL",
    "SheetFormatError",
    "SheetReadError",
    "SheetReader",
    "build_query_url",
    "extract_payload",
    "parse_table",
]

logger = logging.getLogger(__name__)

GVIZ_URL = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/gviz/tq"


class SheetReadError(Exception):
    """Raised when a tab cannot be read (transport error or non-2xx status)."""

    def __init__(self, sheet_name: str, message: str) -> None:
        super().__init__(f"{sheet_name}: {message}")
        self.sheet_name = sheet_name
        self.message = message


class SheetFormatError(SheetReadError):
    """Raised when the response body does not carry the expected JSON shape."""


def build_query_url(
    spreadsheet_id: str,
    sheet_name: str,
    headers: int | None = None,
    *,
    cache_buster: int | None = None,
) -> str:
    """Build the gviz query URL for ``sheet_name``.

    ``headers`` is passed through as the endpoint's header-row hint; ``cb``
    defeats intermediate caches (epoch millis unless given).
    """
    params: dict[str, str] = {"tqx": "out:json", "sheet": sheet_name}
    if headers is not None:
        params["headers"] = str(headers)
    params["cb"] = str(cache_buster if cache_buster is not None else int(time.time() * 1000))
    base = GVIZ_URL.format(spreadsheet_id=quote(spreadsheet_id, safe=""))
    return f"{base}?{urlencode(params, quote_via=quote)}"


def extract_payload(text: str, sheet_name: str = "") -> dict[str, Any]:
    """Cut the JSON object out of the setResponse(...) wrapper and parse it."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise SheetFormatError(sheet_name, "response does not contain a JSON object")
    try:
        payload = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise SheetFormatError(sheet_name, f"invalid JSON payload: {e}") from e
    if not isinstance(payload, dict) or not isinstance(payload.get("table"), dict):
        # status=error のレスポンスは table を持たない
        detail = ""
        if isinstance(payload, dict) and payload.get("errors"):
            detail = f" ({payload['errors'][0].get('detailed_message') or payload['errors'][0].get('message')})"
        raise SheetFormatError(sheet_name, f"payload has no table{detail}")
    return payload


def parse_table(payload: dict[str, Any], sheet_name: str = "") -> TabularResult:
    """Decode ``payload["table"]`` into a TabularResult."""
    table = payload["table"]
    cols = table.get("cols")
    rows = table.get("rows")
    cols = [] if cols is None else cols
    rows = [] if rows is None else rows
    if not isinstance(cols, list) or not isinstance(rows, list):
        raise SheetFormatError(sheet_name, "table.cols / table.rows must be arrays")

    columns = [
        ColumnDef(id=str(c.get("id") or ""), label=str(c.get("label") or ""), type=str(c.get("type") or ""))
        for c in cols
        if isinstance(c, dict)
    ]
    parsed_rows: list[list[Cell | None]] = []
    for i, raw in enumerate(rows):
        if raw is None:
            parsed_rows.append([])
            continue
        if not isinstance(raw, dict):
            raise SheetFormatError(sheet_name, f"row {i} is not an object")
        cells = raw.get("c")
        cells = [] if cells is None else cells
        if not isinstance(cells, list):
            raise SheetFormatError(sheet_name, f"row {i}: c must be an array")
        parsed: list[Cell | None] = []
        for c in cells:
            if c is None:
                parsed.append(None)
            elif isinstance(c, dict):
                parsed.append(Cell(value=c.get("v"), formatted=c.get("f")))
            else:
                raise SheetFormatError(sheet_name, f"row {i}: cell is not an object")
        parsed_rows.append(parsed)
    return TabularResult(columns=columns, rows=parsed_rows)


@dataclass
class FetchBatch:
    """Tables read for one page load; ``degraded`` lists optional tabs that failed."""
    tables: dict[str, TabularResult] = field(default_factory=dict)
    degraded: list[str] = field(default_factory=list)
    errors: dict[str, SheetReadError] = field(default_factory=dict)

    def __getitem__(self, name: str) -> TabularResult:
        return self.tables[name]


class SheetReader:
    """Fetches tabs of one spreadsheet over HTTP.

    Reads carry the configured timeout; a hung request fails with
    SheetReadError instead of blocking the page forever.
    """

    def __init__(
        self,
        endpoint: EndpointConfig,
        session: requests.Session | None = None,
        *,
        max_workers: int = 6,
    ) -> None:
        self._spreadsheet_id = endpoint.spreadsheet_id
        self._timeout = endpoint.timeout_seconds
        self._session = session or requests.Session()
        self._max_workers = max_workers

    def fetch(self, sheet_name: str, headers: int | None = None) -> TabularResult:
        url = build_query_url(self._spreadsheet_id, sheet_name, headers)
        logger.debug("gviz read sheet=%s headers=%s", sheet_name, headers)
        try:
            resp = self._session.get(url, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise SheetReadError(sheet_name, str(e)) from e
        return parse_table(extract_payload(resp.text, sheet_name), sheet_name)

    def fetch_many(
        self,
        names: Iterable[str],
        *,
        headers: Mapping[str, int | None] | None = None,
        optional: Iterable[str] = (),
    ) -> FetchBatch:
        """Read every tab concurrently and wait for all of them.

        A failed required tab raises (the first failure in ``names`` order)
        once every read has finished. A failed optional tab is logged as WARN
        and replaced by an empty table.
        """
        names = list(dict.fromkeys(names))
        optional_set = set(optional)
        hints = headers or {}
        batch = FetchBatch()
        if not names:
            return batch

        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(names))) as pool:
            futures = {name: pool.submit(self.fetch, name, hints.get(name)) for name in names}
            for name, fut in futures.items():
                try:
                    batch.tables[name] = fut.result()
                except SheetReadError as e:
                    batch.errors[name] = e

        for name in names:
            err = batch.errors.get(name)
            if err is None:
                continue
            if name not in optional_set:
                raise err
            logger.warning("optional sheet %s unavailable, using empty table: %s", name, err.message)
            batch.tables[name] = TabularResult.empty()
            batch.degraded.append(name)
        return batch
