"""Settings configuration loader module.

This module handles loading and parsing of the main settings.conf file which contains
general marketplace settings: network selection, batching, caching and listing limits.

The settings file uses INI format with a [DEFAULT] section containing key-value pairs.
Every setting has a default, so a missing settings.conf is not an error.

Example settings.conf:
    [DEFAULT]
    default_network = testnet
    listings_cache_ttl = 30
    ipfs_gateway = cloudflare-ipfs.com

Raises:
    SettingsError: If the settings file cannot be parsed or holds invalid values
"""
from configparser import ConfigParser
from pathlib import Path
from typing import Dict, Any, List
import logging

logger = logging.getLogger(__name__)

class ConfigValidationError:
    """Helper class to format configuration validation errors"""
    def __init__(self):
        self.invalid: List[str] = []
        self.out_of_range: List[str] = []

    def has_errors(self) -> bool:
        """Check if any errors exist"""
        return bool(self.invalid or self.out_of_range)

    def format_message(self) -> str:
        """Format error message in a clean, readable way"""
        messages = []

        if self.invalid:
            messages.append("Invalid setting types:")
            messages.extend(f"  - {item}" for item in self.invalid)

        if self.out_of_range:
            if messages:
                messages.append("")
            messages.append("Settings out of range:")
            messages.extend(f"  - {item}" for item in self.out_of_range)

        return "\n".join(messages)

class SettingsError(Exception):
    """Raised when there are issues loading or parsing the settings configuration."""
    pass

# Default settings
DEFAULTS = {
    'default_network': 'mainnet',
    'fallback_precision': '6',  # KLV precision, used for unknown currencies
    'metadata_batch_size': '10',  # Concurrent metadata requests per batch
    'listings_page_size': '12',
    'listings_cache_ttl': '30',  # Seconds before a cached page is stale
    'listings_cache_gc': '300',  # Seconds before a cached page is dropped
    'activity_page_size': '20',
    'request_timeout': '10',
    'max_request_tries': '3',
    'ipfs_gateway': 'cloudflare-ipfs.com',
    'default_currency': 'KLV',
    'default_listing_duration_days': '30',
    'max_listing_duration_days': '180',
    'min_listing_price': '1',  # In smallest units
}

INT_SETTINGS = {
    'fallback_precision': 0,
    'metadata_batch_size': 1,
    'listings_page_size': 1,
    'activity_page_size': 1,
    'max_request_tries': 1,
    'default_listing_duration_days': 1,
    'max_listing_duration_days': 1,
    'min_listing_price': 0,
}

FLOAT_SETTINGS = {
    'listings_cache_ttl': 0.0,
    'listings_cache_gc': 0.0,
    'request_timeout': 0.1,
}

def load_settings_conf(settings_path: str = ".") -> Dict[str, Any]:
    """Load and parse settings.conf file with strict validation

    Args:
        settings_path: Directory containing settings.conf

    Returns:
        Dictionary containing parsed settings

    Raises:
        SettingsError: If parsing fails or validation fails
    """
    config_path = Path(settings_path) / 'settings.conf'
    settings = dict(DEFAULTS)

    if not config_path.exists():
        logger.debug(f"No settings file at {config_path}, using defaults")
        return validate_settings(settings)

    try:
        parser = ConfigParser()
        parser.read(config_path)
        settings.update(parser['DEFAULT'])
    except Exception as e:
        raise SettingsError(f"Error parsing settings.conf: {str(e)}") from e

    return validate_settings(settings)

def validate_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Validate loaded settings.

    Args:
        settings: Dictionary of settings to validate

    Returns:
        Validated and processed settings

    Raises:
        SettingsError: If validation fails
    """
    errors = ConfigValidationError()

    for key, minimum in INT_SETTINGS.items():
        try:
            settings[key] = int(settings[key])
        except (TypeError, ValueError):
            errors.invalid.append(f"{key} (expected int)")
            continue
        if settings[key] < minimum:
            errors.out_of_range.append(f"{key} must be at least {minimum}")

    for key, minimum in FLOAT_SETTINGS.items():
        try:
            settings[key] = float(settings[key])
        except (TypeError, ValueError):
            errors.invalid.append(f"{key} (expected number)")
            continue
        if settings[key] < minimum:
            errors.out_of_range.append(f"{key} must be at least {minimum}")

    if not errors.has_errors():
        if settings['default_listing_duration_days'] > settings['max_listing_duration_days']:
            errors.out_of_range.append(
                "default_listing_duration_days must not exceed max_listing_duration_days"
            )

    if errors.has_errors():
        raise SettingsError(
            "Settings Configuration Validation Failed\n\n" +
            errors.format_message()
        )

    settings['default_network'] = str(settings['default_network']).strip().lower()
    settings['ipfs_gateway'] = str(settings['ipfs_gateway']).strip().strip('/')
    settings['default_currency'] = str(settings['default_currency']).strip().upper()
    return settings
