"""Klever contract type codes used by the marketplace"""
from enum import IntEnum
from typing import Dict, List

from models import ActivityKind

class ContractType(IntEnum):
    BUY = 17
    SELL = 18
    CANCEL_MARKET_ORDER = 19

# Contract type -> activity kind. Codes missing here produce no activity.
CONTRACT_KINDS: Dict[int, ActivityKind] = {
    ContractType.BUY: ActivityKind.SALE,
    ContractType.SELL: ActivityKind.LISTING,
    ContractType.CANCEL_MARKET_ORDER: ActivityKind.CANCEL,
}

def codes_for(kind: str) -> List[int]:
    """Contract codes to fetch for an activity kind, or all codes for ``all``."""
    if kind == 'all':
        return [int(code) for code in CONTRACT_KINDS]
    wanted = ActivityKind(kind)
    return [int(code) for code, mapped in CONTRACT_KINDS.items() if mapped is wanted]

# BuyType / MarketType values of the marketplace contracts
BUY_TYPE_MARKET = 1
MARKET_TYPE_INSTANT_SELL = 0
