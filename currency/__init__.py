"""Currency precision module.

Maps a currency identifier (symbol or on-chain asset id) to its number of
decimal places and converts between display amounts and integer smallest
units. Conversions use exact decimal arithmetic and always round down, so a
converted amount never exceeds the quoted one.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Dict, Optional, Union

from config import settings_conf

logger = logging.getLogger(__name__)

Amount = Union[int, float, str, Decimal]

# symbol: (mainnet asset id, decimals)
TOKEN_PRECISIONS: Dict[str, tuple] = {
    'KLV': ('KLV', 6),
    'KFI': ('KFI', 6),
    'DGKO': ('DGKO-CXVJ', 4),
    'BABYDGKO': ('BABYDGKO-3S67', 8),
    'DRG': ('DRG-17KE', 6),
    'KUNAI': ('KUNAI-18TK', 6),
    'KID': ('KID-36W3', 3),
    'DAXDO': ('DAXDO-1A4L', 8),
    'GOAT': ('GOAT-3NXV', 3),
    'HGT': ('HGT-1V37', 6),
    'CTR': ('CTR-2N54', 6),
    'KAKA': ('KAKA-3DRY', 0),
    'KBLOC': ('KBLOC-1AIX', 3),
    'KONG': ('KONG-LGAJ', 3),
    'SAVO': ('SAVO-3EX7', 3),
    'TCT': ('TCT-3B99', 3),
    'SHIT': ('SHIT-3UF0', 6),
    'WSOL': ('WSOL-1C4Q', 8),
    'USDT': ('USDT-23V8', 6),
    'USDC': ('USDC-1LN4', 6),
    'PMD': ('PMD-2U7V', 0),
    'CHIPS': ('CHIPS-1GZP', 6),
    'KPEPE': ('KPEPE-1EOD', 6),
    'MEME': ('MEME-1P0M', 6),
    'MOTO': ('MOTO-2XES', 8),
    'PHARAO': ('PHARAO-204Q', 6),
    'SAME': ('SAME-3LRL', 6),
    'VLX': ('VLX-3LAS', 6),
    'KIRA': ('KIRA-31QW', 3),
}

_PRECISION_BY_ID: Dict[str, int] = {}
for _symbol, (_asset_id, _decimals) in TOKEN_PRECISIONS.items():
    _PRECISION_BY_ID[_symbol] = _decimals
    _PRECISION_BY_ID[_asset_id] = _decimals


def get_currency_precision(currency_id: str, fallback: Optional[int] = None) -> int:
    """Return the number of decimals for a currency symbol or asset id.

    Unknown currencies resolve to ``fallback``, or to the configured
    ``fallback_precision`` when no fallback is given.
    """
    key = (currency_id or '').strip().upper()
    precision = _PRECISION_BY_ID.get(key)
    if precision is None:
        precision = settings_conf['fallback_precision'] if fallback is None else fallback
        logger.debug(f"Unknown currency {currency_id!r}, using fallback precision {precision}")
    return precision


def _to_decimal(amount: Amount) -> Decimal:
    try:
        # str() keeps float inputs at their shortest repr (1.5 not 1.4999...)
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Amount must be finite: {amount!r}")
    if value < 0:
        raise ValueError(f"Amount must not be negative: {amount!r}")
    return value


def _digits_needed(value: Decimal, shift: int) -> int:
    # Enough precision that scaling and rounding to an integer are exact
    sign, digits, exponent = value.as_tuple()
    return max(28, len(digits) + abs(exponent) + abs(shift) + 1)


def to_smallest_units(amount: Amount, currency_id: str, precision: Optional[int] = None) -> int:
    """Convert a display amount into integer smallest units, rounding down.

    Args:
        amount: Display amount, e.g. 1.5
        currency_id: Currency symbol or asset id
        precision: Explicit precision overriding the currency table

    Returns:
        The amount in smallest units

    Raises:
        ValueError: If the amount is negative, non-finite or not a number
    """
    value = _to_decimal(amount)
    if precision is None:
        precision = get_currency_precision(currency_id)
    with localcontext() as ctx:
        ctx.prec = _digits_needed(value, precision)
        scaled = value.scaleb(precision).to_integral_value(rounding=ROUND_DOWN)
    return int(scaled)


def from_smallest_units(amount: int, currency_id: str, precision: Optional[int] = None) -> Decimal:
    """Convert integer smallest units into an exact display amount."""
    if precision is None:
        precision = get_currency_precision(currency_id)
    value = Decimal(int(amount))
    with localcontext() as ctx:
        ctx.prec = _digits_needed(value, precision)
        return value.scaleb(-precision)


def format_amount(amount: int, currency_id: str, places: int = 2) -> str:
    """Format smallest units for display, e.g. ``1500000 KLV`` -> ``1.5 KLV``."""
    value = from_smallest_units(amount, currency_id)
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        ctx.prec = _digits_needed(value, places)
        shown = value.quantize(quantum, rounding=ROUND_DOWN)
    text = f"{shown:,f}"
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return f"{text} {currency_id}"
