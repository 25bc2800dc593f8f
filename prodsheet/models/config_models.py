from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the production planning tool.

These are the domain models for configuration; loading and validation live
in prodsheet/config/loader.py.
"""

__all__ = [
    "AppConfig",
    "DEFAULT_TABS",
    "EndpointConfig",
    "TabConfig",
]


@dataclass(frozen=True)
class EndpointConfig:
    """Read / write endpoints of the shared spreadsheet.

    Environment variables take precedence over the config file values
    (see loader.apply_env_overrides).
    """
    spreadsheet_id: str  # gviz read path
    write_url: str  # remote script endpoint (POST, form encoded)
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class TabConfig:
    """Layout of one spreadsheet tab.

    ``first_row_number`` is the sheet row number of the first row the query
    endpoint returns; normalized records get ``row_index = position +
    first_row_number`` so that targeted updates hit the real row.
    """
    name: str
    headers: int = 1  # gviz "headers" hint
    first_row_number: int = 2
    skip_header: bool = False  # drop rows[0] when the endpoint leaves the header in
    optional: bool = False  # a failed read degrades to an empty table


# 既存シートの実レイアウト (上書きは config/planner.yml の tabs で)
DEFAULT_TABS: dict[str, TabConfig] = {
    "Orders": TabConfig("Orders"),
    "Production": TabConfig("Production"),
    "JobCards": TabConfig("JobCards", first_row_number=5),
    "Actual Production": TabConfig("Actual Production"),
    "Master": TabConfig("Master"),
    "KYC": TabConfig("KYC"),
    "Costing Response": TabConfig("Costing Response"),
    "Login_v2": TabConfig("Login_v2"),
}


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    endpoint: EndpointConfig
    tabs: dict[str, TabConfig] = field(default_factory=lambda: dict(DEFAULT_TABS))
    session_file: str = ".prodsheet-session.json"
    log_dir: str = "logs"

    def tab(self, name: str) -> TabConfig:
        """Layout for ``name``; unknown tabs get the default layout."""
        return self.tabs.get(name) or DEFAULT_TABS.get(name) or TabConfig(name)
