"""Order store connectors.

The reporting core depends only on the OrderStore interface; concrete
stores live alongside it:
- InMemoryOrderStore: JSON snapshots and tests
- HttpOrderStore: the order-management REST backend (aiohttp)
"""

from connectors.order_store import (
    OrderStore,
    OrderStoreError,
    OrderNotFoundError,
    StoreUnavailableError,
    RetriesExhaustedError,
    RetryConfig,
    load_bundles,
    load_catalogs,
    load_directory,
)
from connectors.memory_store import InMemoryOrderStore
from connectors.http_store import HttpOrderStore, StoreEndpoints

__all__ = [
    "OrderStore",
    "OrderStoreError",
    "OrderNotFoundError",
    "StoreUnavailableError",
    "RetriesExhaustedError",
    "RetryConfig",
    "load_bundles",
    "load_catalogs",
    "load_directory",
    "InMemoryOrderStore",
    "HttpOrderStore",
    "StoreEndpoints",
]
