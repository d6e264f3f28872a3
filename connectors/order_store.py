"""Abstract Order Store Interface.

The reporting core reads orders, order assignments and directory data
through this interface only. Implementations supply raw records (dicts
as the order-management backend stores them); the typed accessors on
the base class turn those into models.

Implementations:
- connectors/memory_store.py (fixtures, JSON snapshots, tests)
- connectors/http_store.py (order-management REST backend, aiohttp)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from models.canonical import (
    Directory,
    Driver,
    EntityRecord,
    EntityType,
    Order,
    OrderBundle,
    OrderStages,
)
from stages.record import (
    parse_driver_record,
    parse_entity_record,
    parse_order_record,
    split_assignment_record,
)

RawRecord = Dict[str, Any]

# Catalogues used by the driver expense sheet
CATALOG_STOCK = "stock"
CATALOG_LABOUR_RATES = "labour_rates"
CATALOG_DRIVER_RATES = "driver_rates"
CATALOGS = (CATALOG_STOCK, CATALOG_LABOUR_RATES, CATALOG_DRIVER_RATES)


# =============================================================================
# Errors
# =============================================================================

class OrderStoreError(Exception):
    """Base exception for order store failures."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class OrderNotFoundError(OrderStoreError):
    """The order does not exist. Never retried."""
    def __init__(self, order_id: str, status_code: int = 404, response_body: str = ""):
        super().__init__(f"Order not found: {order_id}", status_code, response_body)
        self.order_id = order_id


class StoreUnavailableError(OrderStoreError):
    """Transient failure (timeout, connection error, 5xx). Retried."""
    pass


class RetriesExhaustedError(StoreUnavailableError):
    """Every fetch attempt for an order failed transiently."""
    def __init__(self, order_id: str, attempts: int, last_error: Exception):
        super().__init__(f"Fetching order {order_id} failed after {attempts} attempt(s): {last_error}")
        self.order_id = order_id
        self.attempts = attempts
        self.last_error = last_error


# Backend statuses treated as transient (StoreUnavailableError)
TRANSIENT_STATUSES: Tuple[int, ...] = (429, 500, 502, 503, 504)


@dataclass
class RetryConfig:
    """Retry behaviour for store fetches.

    Applied by the caller of a store (batch runner), never inside a
    store, so each attempt is exactly one backend request.
    """
    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 60.0  # seconds
    exponential_base: float = 2.0

    def get_delay(self, attempt: int) -> float:
        """Delay before retrying after the given 0-based attempt."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return min(delay, self.max_delay)

    @classmethod
    def from_settings(cls, settings) -> "RetryConfig":
        return cls(
            max_attempts=settings.retry_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )


# =============================================================================
# Order Store Interface
# =============================================================================

class OrderStore(ABC):
    """Read access to orders, order assignments and the directory."""

    async def connect(self) -> None:
        """Open any underlying connection."""

    async def disconnect(self) -> None:
        """Release any underlying connection."""

    async def __aenter__(self) -> "OrderStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    # =========================================================================
    # Raw Records
    # =========================================================================

    @abstractmethod
    async def fetch_order(self, order_id: str) -> RawRecord:
        """Raw order record.

        Raises:
            OrderNotFoundError: The order does not exist
            StoreUnavailableError: Transient failure
        """

    @abstractmethod
    async def fetch_assignment(self, order_id: str) -> Optional[RawRecord]:
        """Raw order-assignment record, or None when nothing is assigned yet."""

    @abstractmethod
    async def fetch_orders(self) -> List[RawRecord]:
        """Raw records of every order."""

    @abstractmethod
    async def fetch_drivers(self) -> List[RawRecord]:
        """Raw driver directory records."""

    @abstractmethod
    async def fetch_entities(self, entity_type: EntityType) -> List[RawRecord]:
        """Raw farmer / supplier / third-party records."""

    async def fetch_catalog(self, name: str) -> List[RawRecord]:
        """Raw stock or rate catalogue; stores without catalogues return []."""
        return []

    # =========================================================================
    # Typed Accessors
    # =========================================================================

    async def get_order(self, order_id: str) -> Order:
        order = parse_order_record(await self.fetch_order(order_id))
        if not order.order_id:
            order.order_id = str(order_id)
        return order

    async def get_stage_assignment(self, order_id: str) -> OrderStages:
        """Stage assignments of the order; every stage absent when unassigned."""
        return split_assignment_record(str(order_id), await self.fetch_assignment(order_id))

    async def get_bundle(self, order_id: str) -> OrderBundle:
        order = await self.get_order(order_id)
        stages = await self.get_stage_assignment(order_id)
        return OrderBundle(order=order, stages=stages)

    async def list_orders(self) -> List[Order]:
        return [parse_order_record(raw) for raw in await self.fetch_orders() if isinstance(raw, dict)]

    async def list_drivers(self) -> List[Driver]:
        drivers = [parse_driver_record(raw) for raw in await self.fetch_drivers() if isinstance(raw, dict)]
        return [d for d in drivers if d is not None]

    async def list_entities(self, entity_type: Union[EntityType, str]) -> List[EntityRecord]:
        parsed_type = EntityType.parse(entity_type)
        if parsed_type is None:
            raise ValueError(f"Unknown entity type: {entity_type!r}")
        records = [parse_entity_record(raw) for raw in await self.fetch_entities(parsed_type) if isinstance(raw, dict)]
        return [r for r in records if r is not None]


# =============================================================================
# Helpers
# =============================================================================

async def load_directory(store: OrderStore) -> Directory:
    """Driver and entity lookup tables, read once per run."""
    entities = {}
    for entity_type in EntityType:
        entities[entity_type] = await store.list_entities(entity_type)
    return Directory(drivers=await store.list_drivers(), entities=entities)


async def load_bundles(store: OrderStore, order_ids: Optional[List[str]] = None) -> List[OrderBundle]:
    """Orders with their stages, in store order (or the given id order)."""
    if order_ids is None:
        order_ids = [o.order_id for o in await store.list_orders() if o.order_id]
    return [await store.get_bundle(order_id) for order_id in order_ids]


async def load_catalogs(store: OrderStore) -> Dict[str, List[RawRecord]]:
    return {name: await store.fetch_catalog(name) for name in CATALOGS}
