"""Tests for settings and configuration loading."""

import pytest

from ledgeracio.config import LedgeracioConfig, load_config
from ledgeracio.settings import get_settings


def test_defaults():
    config = load_config()
    assert config.network is None
    assert config.allow_custom_network is False
    assert config.logging.level == "WARNING"
    assert config.logging.json is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LEDGERACIO_NETWORK", "kusama")
    monkeypatch.setenv("LEDGERACIO_NONCE_STORE", "/tmp/nonces.json")
    monkeypatch.setenv("LEDGERACIO_ALLOW_CUSTOM_NETWORK", "yes")
    monkeypatch.setenv("LEDGERACIO_LOG_LEVEL", "debug")
    monkeypatch.setenv("LEDGERACIO_LOG_JSON", "1")
    config = load_config()
    assert config.network == "kusama"
    assert config.nonce_store == "/tmp/nonces.json"
    assert config.allow_custom_network is True
    assert config.logging.level == "DEBUG"
    assert config.logging.json is True


def test_malformed_boolean_is_ignored(monkeypatch):
    monkeypatch.setenv("LEDGERACIO_ALLOW_CUSTOM_NETWORK", "maybe")
    assert get_settings().allow_custom_network is None
    assert load_config().allow_custom_network is False


def test_yaml_file_overrides_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("LEDGERACIO_NETWORK", "kusama")
    cfg = tmp_path / "ledgeracio.yml"
    cfg.write_text(
        "network: Polkadot\ncustody_dir: /srv/custody\nlogging:\n  level: info\n",
        encoding="utf-8",
    )
    config = load_config(str(cfg))
    assert config.network == "Polkadot"
    assert config.custody_dir == "/srv/custody"
    assert config.logging.level == "INFO"


def test_json_file_via_environment(tmp_path, monkeypatch):
    cfg = tmp_path / "ledgeracio.json"
    cfg.write_text('{"allow_custom_network": true, "logging": {"json": true}}', encoding="utf-8")
    monkeypatch.setenv("LEDGERACIO_CONFIG", str(cfg))
    config = load_config()
    assert config.allow_custom_network is True
    assert config.logging.json is True


def test_default_location_is_discovered(tmp_path):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "ledgeracio.yml").write_text("network: kusama\n", encoding="utf-8")
    assert load_config().network == "kusama"


@pytest.mark.parametrize(
    ("name", "content"),
    [("bad.json", "{invalid json}"), ("bad.yml", "network: [unclosed"), ("list.yml", "- a\n")],
)
def test_malformed_files_are_ignored(tmp_path, name, content):
    cfg = tmp_path / name
    cfg.write_text(content, encoding="utf-8")
    assert load_config(str(cfg)) == LedgeracioConfig()
