"""Network configuration loader module.

This module resolves, per network identifier, the proxy API base URL, the block
explorer base URL and the default marketplace identifier used when listing.

Built-in networks are mainnet and testnet. Either can be overridden, and new
networks added, with sections in settings.conf named ``network:<name>``:

    [network:devnet]
    api_url = https://api.devnet.klever.org
    explorer_url = https://devnet.kleverscan.org
    marketplace_id = 417b70c0eb7a33cb

Required settings for a new network:
    - api_url
    - explorer_url

Raises:
    NetworkConfigError: If a network section is invalid or a network is unknown
"""
from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List
import logging

logger = logging.getLogger(__name__)

SECTION_PREFIX = 'network:'

# Rare Canvas marketplace
DEFAULT_MARKETPLACE_ID = '417b70c0eb7a33cb'

class NetworkConfigError(ValueError):
    """Raised when a network is unknown or its configuration is invalid"""
    pass

@dataclass(frozen=True)
class NetworkConfig:
    """Endpoints and defaults for a single network."""
    name: str
    api_url: str
    explorer_url: str
    marketplace_id: str = DEFAULT_MARKETPLACE_ID

    def transaction_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/transaction/{tx_hash}"

    def asset_url(self, collection_id: str, index: int) -> str:
        return f"{self.explorer_url}/asset/{collection_id}/{index}"

    def collection_url(self, collection_id: str) -> str:
        return f"{self.explorer_url}/asset/{collection_id}"

BUILTIN_NETWORKS = {
    'mainnet': NetworkConfig(
        name='mainnet',
        api_url='https://api.mainnet.klever.org',
        explorer_url='https://kleverscan.org',
    ),
    'testnet': NetworkConfig(
        name='testnet',
        api_url='https://api.testnet.klever.org',
        explorer_url='https://testnet.kleverscan.org',
    ),
}

def _validate_url(key: str, value: str, errors: List[str]) -> str:
    value = value.strip().rstrip('/')
    if not value.startswith(('http://', 'https://')):
        errors.append(f"{key}: {value} (must start with http:// or https://)")
    return value

def load_network_conf(settings_path: str = ".") -> Dict[str, NetworkConfig]:
    """
    Load network definitions, merging settings.conf overrides over the built-ins

    Args:
        settings_path: Directory containing settings.conf

    Returns:
        Dictionary mapping network name to its NetworkConfig

    Raises:
        NetworkConfigError: If a network section is missing settings or has bad URLs
    """
    networks = dict(BUILTIN_NETWORKS)
    config_path = Path(settings_path) / 'settings.conf'

    if not config_path.exists():
        return networks

    try:
        parser = ConfigParser(default_section='__none__')
        parser.read(config_path)
    except Exception as e:
        raise NetworkConfigError(f"Error parsing network sections: {str(e)}") from e

    errors: List[str] = []
    for section in parser.sections():
        if not section.startswith(SECTION_PREFIX):
            continue
        name = section[len(SECTION_PREFIX):].strip().lower()
        values = dict(parser[section])
        base = networks.get(name)

        if base is None:
            missing = [key for key in ('api_url', 'explorer_url') if key not in values]
            if missing:
                errors.extend(f"{section}: missing {key}" for key in missing)
                continue

        api_url = values.get('api_url', base.api_url if base else '')
        explorer_url = values.get('explorer_url', base.explorer_url if base else '')
        networks[name] = NetworkConfig(
            name=name,
            api_url=_validate_url(f"{section}.api_url", api_url, errors),
            explorer_url=_validate_url(f"{section}.explorer_url", explorer_url, errors),
            marketplace_id=values.get(
                'marketplace_id',
                base.marketplace_id if base else DEFAULT_MARKETPLACE_ID
            ).strip(),
        )
        logger.debug(f"Loaded network configuration for {name}")

    if errors:
        raise NetworkConfigError(
            "Network Configuration Validation Failed\n\n" +
            "\n".join(f"  - {item}" for item in errors)
        )

    return networks
