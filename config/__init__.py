"""Configuration module for loading and managing marketplace settings"""
from typing import Dict, Any
from .lib.load_settings_conf import load_settings_conf, SettingsError, DEFAULTS
from .lib.load_network_conf import (
    load_network_conf, NetworkConfig, NetworkConfigError, DEFAULT_MARKETPLACE_ID
)

__all__ = [
    'settings_conf', 'network_conf', 'get_network_config',
    'NetworkConfig', 'SettingsError', 'NetworkConfigError',
    'DEFAULTS', 'DEFAULT_MARKETPLACE_ID',
]

def get_network_config(network: str) -> NetworkConfig:
    """Resolve a network identifier to its configuration.

    Args:
        network: Network name, e.g. "mainnet" or "testnet"

    Returns:
        The NetworkConfig for that network

    Raises:
        NetworkConfigError: If the network is not configured
    """
    key = (network or '').strip().lower()
    try:
        return network_conf[key]
    except KeyError:
        raise NetworkConfigError(
            f"Unknown network: {network!r} (known: {', '.join(sorted(network_conf))})"
        ) from None

try:
    settings_conf: Dict[str, Any] = load_settings_conf()
    network_conf: Dict[str, NetworkConfig] = load_network_conf()

except (SettingsError, NetworkConfigError) as e:
    # Re-raise the error but provide more context
    raise type(e)(
        f"Configuration Error\n"
        "=================\n\n"
        f"{str(e)}\n\n"
        "Please ensure settings.conf is properly configured.\n"
        "See settings.conf.example for the available settings."
    )
