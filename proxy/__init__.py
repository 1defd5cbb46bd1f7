"""Client for the Klever proxy REST API.

Every call takes the network explicitly and resolves its base URL through
``config.get_network_config``, so requests against different networks never
share ambient state. Transient transport failures are retried with
exponential backoff; HTTP and decoding failures are not.
"""
import logging
from typing import Any, Dict, Optional

import backoff
import httpx

from config import settings_conf, get_network_config
from models import ErrorKind

logger = logging.getLogger(__name__)

class ProxyError(Exception):
    """Base exception for proxy API errors"""
    kind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(self, message: str, status: Optional[int] = None, path: Optional[str] = None):
        self.status = status
        self.path = path
        super().__init__(message)

class UpstreamUnavailableError(ProxyError):
    """Raised when the API cannot be reached or answers with an error status"""
    kind = ErrorKind.UPSTREAM_UNAVAILABLE

class MalformedResponseError(ProxyError):
    """Raised when a response does not have the expected shape"""
    kind = ErrorKind.MALFORMED_RESPONSE

def _empty_page(key: str, page: int) -> Dict[str, Any]:
    return {
        'data': {key: []},
        'pagination': {'self': page, 'totalPages': 0, 'totalRecords': 0},
    }

class KleverProxy:
    """Async Klever proxy API client"""

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_tries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize the client

        Args:
            timeout: Per-request timeout in seconds (``request_timeout`` setting by default)
            max_tries: Attempts per request on transport errors (``max_request_tries`` by default)
            transport: Optional httpx transport, used to mock the API in tests
        """
        self.timeout = settings_conf['request_timeout'] if timeout is None else timeout
        self.max_tries = settings_conf['max_request_tries'] if max_tries is None else max_tries
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={'accept': 'application/json'},
            )
        return self._client

    async def close(self):
        """Close the underlying HTTP client"""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "KleverProxy":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def _send_once(self, url: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        return await self._get_client().get(url, params=params)

    async def _request(
        self,
        network: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False
    ) -> Optional[Dict[str, Any]]:
        """Make a GET request against a network's API

        Args:
            network: Network name
            path: API path starting with ``/``
            params: Query parameters; None values are dropped
            allow_not_found: Return None instead of raising on 404

        Returns:
            Decoded JSON body, or None for an allowed 404

        Raises:
            NetworkConfigError: Unknown network
            UpstreamUnavailableError: Connection failure, timeout or error status
            MalformedResponseError: Body is not a JSON object
        """
        base = get_network_config(network).api_url
        url = f"{base}{path}"
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        send = backoff.on_exception(
            backoff.expo,
            httpx.TransportError,
            max_tries=self.max_tries,
            logger=logger,
        )(self._send_once)

        logger.debug(f"GET {url} {params or ''}")
        try:
            response = await send(url, params)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailableError(
                f"Request to {path} timed out after {self.timeout} seconds", path=path
            ) from e
        except httpx.TransportError as e:
            raise UpstreamUnavailableError(
                f"Failed to reach {base}: {str(e)}", path=path
            ) from e

        if response.status_code == 404 and allow_not_found:
            logger.debug(f"{path} returned 404, treating as empty")
            return None

        if response.is_error:
            raise UpstreamUnavailableError(
                f"HTTP {response.status_code} from {path}",
                status=response.status_code,
                path=path
            )

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Invalid JSON from {path}", status=response.status_code, path=path
            ) from e

        if not isinstance(body, dict):
            raise MalformedResponseError(
                f"Expected an object from {path}, got {type(body).__name__}",
                status=response.status_code,
                path=path
            )

        if body.get('error'):
            raise UpstreamUnavailableError(
                f"API error from {path}: {body['error']}",
                status=response.status_code,
                path=path
            )

        return body

    async def get_orders(
        self,
        network: str,
        status: str = 'created',
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: Optional[str] = None,
        order_by: Optional[str] = None,
        collection: Optional[str] = None
    ) -> Dict[str, Any]:
        """Fetch one page of marketplace orders. A 404 means no orders."""
        params = {
            'status': status,
            'page': page,
            'limit': limit or settings_conf['listings_page_size'],
            'sortBy': sort_by,
            'orderBy': order_by,
            'collection': collection,
        }
        body = await self._request(
            network, '/v1.0/marketplaces/orders/list', params, allow_not_found=True
        )
        return _empty_page('orders', page) if body is None else body

    async def get_nft(self, network: str, collection_id: str, index: int) -> Dict[str, Any]:
        """Fetch metadata of one NFT/SFT unit"""
        return await self._request(network, f'/v1.0/assets/sft/{collection_id}/{index}')

    async def get_asset(self, network: str, collection_id: str) -> Dict[str, Any]:
        """Fetch collection-level asset metadata"""
        return await self._request(network, f'/v1.0/assets/{collection_id}')

    async def get_transactions(
        self,
        network: str,
        contract_type: int,
        page: int = 1,
        limit: Optional[int] = None,
        status: str = 'success'
    ) -> Dict[str, Any]:
        """Fetch transactions of one contract type. A 404 means no transactions."""
        params = {
            'type': int(contract_type),
            'status': status,
            'page': page,
            'limit': limit or settings_conf['activity_page_size'],
        }
        body = await self._request(
            network, '/v1.0/transaction/list', params, allow_not_found=True
        )
        return _empty_page('transactions', page) if body is None else body

    async def get_account(self, network: str, address: str) -> Dict[str, Any]:
        """Fetch an account with its asset holdings"""
        return await self._request(network, f'/v1.0/address/{address}')

# Shared client used when no proxy is injected
client = KleverProxy()

__all__ = [
    'KleverProxy',
    'ProxyError',
    'UpstreamUnavailableError',
    'MalformedResponseError',
    'client',
]
