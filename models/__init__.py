"""Domain models shared by the marketplace query and transaction paths.

All models are immutable once constructed. Amounts are integers in the
smallest unit of their currency.
"""
import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ErrorKind(str, Enum):
    NOT_CONNECTED = "not_connected"
    USER_REJECTED = "user_rejected"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    MALFORMED_RESPONSE = "malformed_response"
    INVALID_INPUT = "invalid_input"


class ListingStatus(str, Enum):
    ACTIVE = "active"
    SOLD = "sold"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not ListingStatus.ACTIVE


class SortOption(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    RECENT = "recent"
    OLDEST = "oldest"


class ActivityKind(str, Enum):
    SALE = "sale"
    LISTING = "listing"
    CANCEL = "cancel"


class UriHint(BaseModel):
    """One entry of an asset's ``uris`` list."""
    model_config = ConfigDict(frozen=True)

    key: str = ""
    value: str = ""


class AssetMetadata(BaseModel):
    """Canonical asset metadata as returned by the asset endpoints."""
    model_config = ConfigDict(frozen=True)

    asset_id: str = ""
    name: Optional[str] = None
    asset_name: Optional[str] = None
    ticker: Optional[str] = None
    owner_address: Optional[str] = None
    creator_address: Optional[str] = None
    logo: Optional[str] = None
    uris: List[UriHint] = Field(default_factory=list)
    royalty_bps: int = Field(default=0, ge=0, le=10000)
    mime: Optional[str] = None
    max_supply: int = 0
    circulating_supply: int = 0

    @property
    def display_name(self) -> Optional[str]:
        """First present of name, asset name and ticker."""
        return self.name or self.asset_name or self.ticker or None


class Asset(BaseModel):
    """A single NFT/SFT unit, identified by (collection_id, index)."""
    model_config = ConfigDict(frozen=True)

    collection_id: str
    index: int = Field(ge=0)
    name: str
    image_url: Optional[str] = None
    creator: str = ""
    owner: str = ""
    royalty_bps: int = Field(default=0, ge=0, le=10000)
    balance: Optional[int] = None

    @property
    def asset_id(self) -> str:
        """The ``collection/index`` form used by sell payloads."""
        return f"{self.collection_id}/{self.index}"


class InvalidStatusTransition(ValueError):
    """Raised when a listing would leave a terminal status."""

    def __init__(self, current: ListingStatus, requested: ListingStatus):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move listing from {current.value} to {requested.value}"
        )


class Listing(BaseModel):
    """A tradable offer: a normalized order plus its asset."""
    model_config = ConfigDict(frozen=True)

    id: str
    asset: Asset
    seller: str = ""
    price: int = Field(ge=0)
    currency: str = "KLV"
    status: ListingStatus = ListingStatus.ACTIVE
    created_at: int
    expires_at: Optional[int] = None
    marketplace_id: Optional[str] = None
    explorer_url: Optional[str] = None

    def transition_to(self, status: ListingStatus) -> "Listing":
        """Return a copy with ``status``; terminal states are final."""
        if status == self.status:
            return self
        if self.status.is_terminal:
            raise InvalidStatusTransition(self.status, status)
        return self.model_copy(update={"status": status})

    def expire_if_due(self, now: int) -> "Listing":
        if (
            self.status is ListingStatus.ACTIVE
            and self.expires_at is not None
            and self.expires_at > 0
            and self.expires_at <= now
        ):
            return self.transition_to(ListingStatus.EXPIRED)
        return self


class Filter(BaseModel):
    """Listing query parameters. Prices are in smallest units."""
    model_config = ConfigDict(frozen=True)

    collection_id: Optional[str] = None
    min_price: Optional[int] = Field(default=None, ge=0)
    max_price: Optional[int] = Field(default=None, ge=0)
    search: Optional[str] = None
    sort: Optional[SortOption] = None

    @field_validator("collection_id", "search")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def cache_key(self) -> str:
        """Deterministic serialization used as part of cache keys."""
        return json.dumps(self.model_dump(mode="json"), sort_keys=True)


class Activity(BaseModel):
    """A reconstructed marketplace event."""
    model_config = ConfigDict(frozen=True)

    kind: ActivityKind
    tx_hash: str
    timestamp: int = 0
    collection_id: str = ""
    index: str = ""
    price: Optional[int] = None
    currency: Optional[str] = None
    counterparty_from: Optional[str] = None
    counterparty_to: Optional[str] = None
    order_id: Optional[str] = None


class Collection(BaseModel):
    model_config = ConfigDict(frozen=True)

    collection_id: str
    name: str
    ticker: str = ""
    creator: str = ""
    logo: Optional[str] = None
    royalty_bps: int = Field(default=0, ge=0, le=10000)
    total_supply: int = 0
    minted_count: int = 0
    floor_price: Optional[int] = None
    explorer_url: Optional[str] = None


class CollectionStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    floor_price: int = 0
    listings: int = 0
    owners: int = 0
    items: int = 0


class CollectionDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    collection: Optional[Collection] = None
    listings: List[Listing] = Field(default_factory=list)
    stats: CollectionStats = Field(default_factory=CollectionStats)


class ListingPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    listings: List[Listing] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    has_more: bool = False
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


class ActivityPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    activities: List[Activity] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


class UserAssetStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_owned: int = 0
    collections: int = 0


class UserAssets(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    assets: List[Asset] = Field(default_factory=list)
    stats: UserAssetStats = Field(default_factory=UserAssetStats)


class TxState(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    SIGNING = "signing"
    BROADCASTING = "broadcasting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class TxResult(BaseModel):
    """Terminal outcome of one buy, sell or cancel attempt."""
    model_config = ConfigDict(frozen=True)

    operation: str
    network: str
    state: TxState
    history: List[TxState] = Field(default_factory=list)
    payload: Dict[str, Any] = Field(default_factory=dict)
    tx_hash: Optional[str] = None
    explorer_url: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state is TxState.SUCCEEDED
