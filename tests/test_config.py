"""Tests for settings and network configuration loading."""

import pytest

from config import get_network_config, NetworkConfigError, SettingsError, DEFAULT_MARKETPLACE_ID
from config.lib.load_network_conf import load_network_conf
from config.lib.load_settings_conf import load_settings_conf, DEFAULTS

def write_settings(tmp_path, text):
    (tmp_path / 'settings.conf').write_text(text)
    return str(tmp_path)

def test_defaults_without_settings_file(tmp_path):
    """Test a missing settings.conf falls back to defaults."""
    settings = load_settings_conf(str(tmp_path))
    assert settings['default_network'] == DEFAULTS['default_network']
    assert settings['fallback_precision'] == 6
    assert settings['listings_cache_ttl'] == 30.0
    assert load_network_conf(str(tmp_path)).keys() == {'mainnet', 'testnet'}

def test_settings_override_defaults(tmp_path):
    path = write_settings(tmp_path, (
        "[DEFAULT]\n"
        "default_network = TestNet\n"
        "metadata_batch_size = 4\n"
        "ipfs_gateway = ipfs.io/\n"
    ))
    settings = load_settings_conf(path)
    assert settings['default_network'] == "testnet"
    assert settings['metadata_batch_size'] == 4
    assert settings['ipfs_gateway'] == "ipfs.io"

@pytest.mark.parametrize("line", [
    "metadata_batch_size = lots",
    "metadata_batch_size = 0",
    "listings_cache_ttl = -1",
    "default_listing_duration_days = 400",
])
def test_invalid_settings(tmp_path, line):
    """Test bad values are reported."""
    path = write_settings(tmp_path, f"[DEFAULT]\n{line}\n")
    with pytest.raises(SettingsError):
        load_settings_conf(path)

def test_network_sections(tmp_path):
    """Test networks can be added and built-ins overridden."""
    path = write_settings(tmp_path, (
        "[DEFAULT]\n"
        "default_network = devnet\n\n"
        "[network:devnet]\n"
        "api_url = https://api.devnet.klever.org/\n"
        "explorer_url = https://devnet.kleverscan.org\n\n"
        "[network:mainnet]\n"
        "marketplace_id = feedbeef\n"
    ))
    networks = load_network_conf(path)

    assert networks['devnet'].api_url == "https://api.devnet.klever.org"
    assert networks['devnet'].marketplace_id == DEFAULT_MARKETPLACE_ID
    assert networks['mainnet'].marketplace_id == "feedbeef"
    assert networks['mainnet'].api_url == "https://api.mainnet.klever.org"
    assert networks['devnet'].transaction_url("abc") == "https://devnet.kleverscan.org/transaction/abc"
    assert networks['devnet'].asset_url("CAT-1", 7) == "https://devnet.kleverscan.org/asset/CAT-1/7"
    assert networks['devnet'].collection_url("CAT-1") == "https://devnet.kleverscan.org/asset/CAT-1"

@pytest.mark.parametrize("section", [
    "[network:devnet]\napi_url = https://api.devnet.klever.org\n",
    "[network:devnet]\napi_url = ftp://x\nexplorer_url = https://x\n",
])
def test_invalid_network_sections(tmp_path, section):
    path = write_settings(tmp_path, f"[DEFAULT]\n\n{section}")
    with pytest.raises(NetworkConfigError):
        load_network_conf(path)

def test_get_network_config():
    assert get_network_config(" MainNet ").name == "mainnet"
    with pytest.raises(NetworkConfigError):
        get_network_config("moonnet")
