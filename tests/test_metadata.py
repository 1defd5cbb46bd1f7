"""Tests for the metadata batch fetcher."""

import pytest

from metadata import MetadataFetcher, normalize_uris, parse_asset_metadata
from models import UriHint
from proxy import MalformedResponseError, UpstreamUnavailableError

from conftest import FakeProxy, asset_body

def test_normalize_uris_list_and_object():
    """Test both upstream uris shapes become a UriHint list."""
    as_list = normalize_uris([{"key": "image", "value": "ipfs://Qm1"}, {"key": "x"}])
    as_object = normalize_uris({"image": "ipfs://Qm1", "count": 3})
    assert as_list == [UriHint(key="image", value="ipfs://Qm1")]
    assert as_object == [UriHint(key="image", value="ipfs://Qm1")]
    assert normalize_uris(None) == []
    assert normalize_uris("garbage") == []

def test_parse_asset_metadata_unwraps():
    """Test every wrapper shape is unwrapped."""
    fields = {"assetId": "ABC-1234", "name": "Cat", "royalties": {"transferPercentage": 250}}
    for body in (asset_body(**fields), {"data": fields}, {"asset": fields}, fields):
        meta = parse_asset_metadata(body)
        assert meta.name == "Cat"
        assert meta.asset_id == "ABC-1234"
        assert meta.royalty_bps == 250

def test_parse_asset_metadata_clamps_royalties():
    """Test royalties are clamped to basis point range."""
    assert parse_asset_metadata({"royalties": {"transferPercentage": 20000}}).royalty_bps == 10000
    assert parse_asset_metadata({"royalties": {"transferPercentage": -5}}).royalty_bps == 0

def test_parse_asset_metadata_rejects_non_objects():
    """Test a non-object body is malformed."""
    with pytest.raises(MalformedResponseError):
        parse_asset_metadata(["not", "an", "asset"])

@pytest.mark.asyncio
async def test_failures_keep_length_and_order():
    """Test ten fetches with items 3 and 7 failing."""
    nfts = {}
    for index in range(10):
        if index in (3, 7):
            nfts[("COL-1", index)] = UpstreamUnavailableError("connection reset")
        else:
            nfts[("COL-1", index)] = asset_body(name=f"Item {index}", logo=f"https://x/{index}.png")
    proxy = FakeProxy(nfts=nfts)
    fetcher = MetadataFetcher(proxy, batch_size=10)

    results = await fetcher.fetch_many("mainnet", [("COL-1", index) for index in range(10)])

    assert len(results) == 10
    assert results[3] is None
    assert results[7] is None
    for index in (0, 1, 2, 4, 5, 6, 8, 9):
        assert results[index].name == f"Item {index}"

@pytest.mark.asyncio
async def test_unexpected_exception_degrades_to_none():
    """Test a non-proxy exception in one item does not abort the batch."""
    proxy = FakeProxy(nfts={
        ("COL-1", 0): RuntimeError("boom"),
        ("COL-1", 1): asset_body(name="Fine", logo="https://x/1.png"),
    })
    results = await MetadataFetcher(proxy).fetch_many("mainnet", [("COL-1", 0), ("COL-1", 1)])
    assert results[0] is None
    assert results[1].name == "Fine"

@pytest.mark.asyncio
async def test_batches_bound_concurrency():
    """Test at most batch_size requests are in flight."""
    nfts = {("COL-1", index): asset_body(name="n", logo="https://x/a.png") for index in range(25)}
    proxy = FakeProxy(nfts=nfts)
    results = await MetadataFetcher(proxy, batch_size=10).fetch_many(
        "mainnet", [("COL-1", index) for index in range(25)]
    )
    assert len(results) == 25
    assert proxy.peak_in_flight <= 10

@pytest.mark.asyncio
async def test_falls_back_to_collection_metadata():
    """Test the collection endpoint is used when the unit has no image data."""
    proxy = FakeProxy(
        nfts={("COL-1", 5): asset_body(name="Bare")},
        assets={"COL-1": asset_body(name="Collection", logo="https://x/logo.png")},
    )
    meta = await MetadataFetcher(proxy).fetch_one("mainnet", "COL-1", 5)
    assert meta.name == "Collection"
    assert meta.logo == "https://x/logo.png"

@pytest.mark.asyncio
async def test_keeps_unit_metadata_when_collection_fails():
    """Test unit metadata survives a failing collection lookup."""
    proxy = FakeProxy(nfts={("COL-1", 5): asset_body(name="Bare")})
    meta = await MetadataFetcher(proxy).fetch_one("mainnet", "COL-1", 5)
    assert meta.name == "Bare"

@pytest.mark.asyncio
async def test_empty_collection_id_makes_no_request():
    """Test an empty collection id resolves to None without I/O."""
    proxy = FakeProxy()
    assert await MetadataFetcher(proxy).fetch_one("mainnet", "", 1) is None
    assert proxy.calls == []
