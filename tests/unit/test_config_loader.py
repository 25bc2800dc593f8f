from __future__ import annotations

from pathlib import Path

import pytest

from prodsheet.config.loader import ConfigError, load_config


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.endpoint.spreadsheet_id == "test-sheet"
    assert cfg.endpoint.write_url.startswith("https://")
    assert cfg.endpoint.timeout_seconds == 5
    assert cfg.session_file == ".prodsheet-session.json"


def test_tab_overrides_merge_with_defaults(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.tab("JobCards").first_row_number == 5
    assert cfg.tab("Master").optional is True
    # 未指定のタブは既定レイアウト
    assert cfg.tab("Production").first_row_number == 2
    assert cfg.tab("Unknown Tab").headers == 1


def test_timeout_defaults_to_thirty_seconds(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("timeout_seconds: 5\n", "")
    write_config.write_text(text, encoding="utf-8")
    assert load_config(write_config).endpoint.timeout_seconds == 30


def test_load_config_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(temp_workdir / "config" / "not_exists.yml")


def test_load_config_invalid_yaml(write_config: Path):
    write_config.write_text("spreadsheet_id: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(write_config)


def test_load_config_missing_required(write_config: Path):
    text = "\n".join(l for l in write_config.read_text(encoding="utf-8").splitlines() if not l.startswith("write_url"))
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value) and "required property" in str(e.value)


def test_load_config_rejects_non_http_write_url(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("write_url: https://", "write_url: ftp://")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config(write_config)


def test_load_config_extra_field(write_config: Path):
    text = write_config.read_text(encoding="utf-8") + "\nextra_field: not_allowed\n"
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config(write_config)


def test_load_config_unknown_tab_option(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("    optional: true", "    optional: true\n    color: red")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(write_config)


def test_env_overrides_win(write_config: Path, monkeypatch):
    monkeypatch.setenv("PRODSHEET_SPREADSHEET_ID", "from-env")
    monkeypatch.setenv("PRODSHEET_WRITE_URL", "https://env.example/exec")
    cfg = load_config(write_config)
    assert cfg.endpoint.spreadsheet_id == "from-env"
    assert cfg.endpoint.write_url == "https://env.example/exec"


def test_env_supplies_missing_required(write_config: Path, monkeypatch):
    text = "\n".join(l for l in write_config.read_text(encoding="utf-8").splitlines() if not l.startswith("spreadsheet_id"))
    write_config.write_text(text, encoding="utf-8")
    monkeypatch.setenv("PRODSHEET_SPREADSHEET_ID", "from-env")
    assert load_config(write_config).endpoint.spreadsheet_id == "from-env"
