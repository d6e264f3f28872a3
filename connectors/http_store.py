"""Order-management REST backend client.

Low-level aiohttp client for the order store. Handles the bearer token,
the backend's `{"data": ...}` response envelope and error mapping.

Every call is a single request. A transient failure raises
StoreUnavailableError at once; retrying is up to the caller (the batch
runner's RetryConfig, or the Temporal activity RetryPolicy).
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from core.observability.logging import get_logger
from models.canonical import EntityType
from connectors.order_store import (
    CATALOG_DRIVER_RATES,
    CATALOG_LABOUR_RATES,
    CATALOG_STOCK,
    OrderNotFoundError,
    OrderStore,
    OrderStoreError,
    RawRecord,
    StoreUnavailableError,
    TRANSIENT_STATUSES,
)

logger = get_logger(__name__)


@dataclass
class StoreEndpoints:
    """Backend paths, relative to the base URL."""
    order: str = "/order/{order_id}"
    orders: str = "/order/list"
    assignment: str = "/order-assignment/{order_id}"
    drivers: str = "/driver/list"
    entities: Dict[EntityType, str] = field(default_factory=lambda: {
        EntityType.FARMER: "/farmer/list",
        EntityType.SUPPLIER: "/supplier/list",
        EntityType.THIRD_PARTY: "/third-party/list",
    })
    catalogs: Dict[str, str] = field(default_factory=lambda: {
        CATALOG_STOCK: "/inventory-stock/",
        CATALOG_LABOUR_RATES: "/labour-rate/list",
        CATALOG_DRIVER_RATES: "/driver-rate/list",
    })


def unwrap(body: Any) -> Any:
    """Strip the backend's {"data": ...} envelope when present."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _as_records(body: Any) -> List[RawRecord]:
    body = unwrap(body)
    if isinstance(body, dict):
        # Paginated listings nest the rows one level further down
        for key in ("items", "rows", "results"):
            if isinstance(body.get(key), list):
                body = body[key]
                break
    if not isinstance(body, list):
        return []
    return [r for r in body if isinstance(r, dict)]


class HttpOrderStore(OrderStore):
    """Order store backed by the order-management REST API.

    Usage:
        async with HttpOrderStore("https://orders.example.com/api", token) as store:
            order = await store.get_order("ORD-001")
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout_seconds: float = 30.0,
        transient_statuses: Tuple[int, ...] = TRANSIENT_STATUSES,
        endpoints: Optional[StoreEndpoints] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_seconds = timeout_seconds
        self.transient_statuses = tuple(transient_statuses)
        self.endpoints = endpoints or StoreEndpoints()
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_settings(cls, settings) -> "HttpOrderStore":
        if not settings.store_url:
            raise ValueError("ORDER_STORE_URL is not set")
        return cls(
            settings.store_url,
            token=settings.store_token,
            timeout_seconds=settings.store_timeout,
        )

    async def connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()

    async def disconnect(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get(self, path: str, not_found_id: Optional[str] = None) -> Any:
        """GET a backend path (one request, no retry).

        Args:
            path: Path relative to the base URL
            not_found_id: Order id reported when the backend answers 404;
                None turns a 404 into an empty result

        Returns:
            Decoded JSON body (None for 404 without not_found_id)

        Raises:
            OrderNotFoundError: 404 for an order lookup
            StoreUnavailableError: Transient failure (timeout, connection
                error, bad JSON, or a status in transient_statuses)
            OrderStoreError: Any other non-success response
        """
        if self._session is None:
            await self.connect()

        url = f"{self.base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with self._session.get(url, headers=self._headers(), timeout=timeout) as response:
                text = await response.text()

                if response.status < 400:
                    return json.loads(text) if text else None

                if response.status == 404:
                    if not_found_id is not None:
                        raise OrderNotFoundError(not_found_id, response.status, text)
                    return None

                if response.status in self.transient_statuses:
                    logger.warning(f"GET {path} returned {response.status}")
                    raise StoreUnavailableError(
                        f"Order store returned {response.status}", response.status, text
                    )

                raise OrderStoreError(
                    f"Order store error {response.status}: {text}",
                    response.status,
                    text,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            logger.warning(f"GET {path} failed: {e}")
            raise StoreUnavailableError(f"GET {path} failed: {e}") from e

    # =========================================================================
    # Raw Records
    # =========================================================================

    async def fetch_order(self, order_id: str) -> RawRecord:
        body = unwrap(await self._get(self.endpoints.order.format(order_id=order_id), not_found_id=str(order_id)))
        if not isinstance(body, dict):
            raise OrderNotFoundError(str(order_id))
        return body

    async def fetch_assignment(self, order_id: str) -> Optional[RawRecord]:
        body = unwrap(await self._get(self.endpoints.assignment.format(order_id=order_id)))
        return body if isinstance(body, dict) and body else None

    async def fetch_orders(self) -> List[RawRecord]:
        return _as_records(await self._get(self.endpoints.orders))

    async def fetch_drivers(self) -> List[RawRecord]:
        return _as_records(await self._get(self.endpoints.drivers))

    async def fetch_entities(self, entity_type: EntityType) -> List[RawRecord]:
        return _as_records(await self._get(self.endpoints.entities[entity_type]))

    async def fetch_catalog(self, name: str) -> List[RawRecord]:
        path = self.endpoints.catalogs.get(name)
        if path is None:
            return []
        return _as_records(await self._get(path))
