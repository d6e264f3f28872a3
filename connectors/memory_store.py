"""In-memory order store.

Backs the CLI (JSON snapshots of the order-management backend) and the
tests. Failures can be injected per order to exercise the retry path.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from models.canonical import EntityType
from connectors.order_store import (
    CATALOGS,
    OrderNotFoundError,
    OrderStore,
    RawRecord,
    StoreUnavailableError,
)
from stages import accessors as acc

SNAPSHOT_ENTITY_KEYS = {
    EntityType.FARMER: "farmers",
    EntityType.SUPPLIER: "suppliers",
    EntityType.THIRD_PARTY: "third_parties",
}


class InMemoryOrderStore(OrderStore):
    """Order store over plain dicts.

    Args:
        orders: Raw order records (keyed by their oid)
        assignments: Raw order-assignment records keyed by order id
        drivers: Raw driver records
        entities: Raw entity records per entity type
        catalogs: Raw stock / rate catalogues by name
    """

    def __init__(
        self,
        orders: Iterable[RawRecord] = (),
        assignments: Optional[Dict[str, RawRecord]] = None,
        drivers: Iterable[RawRecord] = (),
        entities: Optional[Dict[Union[EntityType, str], List[RawRecord]]] = None,
        catalogs: Optional[Dict[str, List[RawRecord]]] = None,
    ):
        self._orders: Dict[str, RawRecord] = {}
        for record in orders:
            order_id = acc.first_present(record, acc.ORDER_ID)
            if order_id is not None:
                self._orders[str(order_id)] = record
        self._assignments = {str(k): v for k, v in (assignments or {}).items()}
        self._drivers = list(drivers)
        self._entities: Dict[EntityType, List[RawRecord]] = {}
        for key, records in (entities or {}).items():
            entity_type = EntityType.parse(key)
            if entity_type is not None:
                self._entities[entity_type] = list(records)
        self._catalogs = {k: list(v) for k, v in (catalogs or {}).items()}

        # order_id -> remaining transient failures to raise
        self._failures: Dict[str, int] = {}
        self.calls: Dict[str, int] = {}

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "InMemoryOrderStore":
        """Build a store from a snapshot dict.

        Snapshot keys: orders, assignments (list of records carrying their
        oid, or a dict keyed by order id), drivers, farmers, suppliers,
        third_parties, and optionally stock, labour_rates, driver_rates.
        """
        assignments = data.get("assignments") or {}
        if isinstance(assignments, list):
            assignments = {
                str(acc.first_present(record, acc.ORDER_ID)): record
                for record in assignments
                if acc.first_present(record, acc.ORDER_ID) is not None
            }
        return cls(
            orders=data.get("orders") or [],
            assignments=assignments,
            drivers=data.get("drivers") or [],
            entities={t: data.get(key) or [] for t, key in SNAPSHOT_ENTITY_KEYS.items()},
            catalogs={name: data.get(name) or [] for name in CATALOGS},
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "InMemoryOrderStore":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_snapshot(json.load(f))

    def fail_next(self, order_id: str, times: int = 1) -> None:
        """Make the next `times` fetches of order_id raise StoreUnavailableError."""
        self._failures[str(order_id)] = times

    # =========================================================================
    # Raw Records
    # =========================================================================

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    async def fetch_order(self, order_id: str) -> RawRecord:
        key = str(order_id)
        self._count(f"order:{key}")
        remaining = self._failures.get(key, 0)
        if remaining > 0:
            self._failures[key] = remaining - 1
            raise StoreUnavailableError(f"Order store unavailable for {key}", 503)
        record = self._orders.get(key)
        if record is None:
            raise OrderNotFoundError(key)
        return copy.deepcopy(record)

    async def fetch_assignment(self, order_id: str) -> Optional[RawRecord]:
        self._count(f"assignment:{order_id}")
        record = self._assignments.get(str(order_id))
        return copy.deepcopy(record) if record is not None else None

    async def fetch_orders(self) -> List[RawRecord]:
        return [copy.deepcopy(r) for r in self._orders.values()]

    async def fetch_drivers(self) -> List[RawRecord]:
        self._count("drivers")
        return copy.deepcopy(self._drivers)

    async def fetch_entities(self, entity_type: EntityType) -> List[RawRecord]:
        self._count(f"entities:{entity_type.value}")
        return copy.deepcopy(self._entities.get(entity_type, []))

    async def fetch_catalog(self, name: str) -> List[RawRecord]:
        return copy.deepcopy(self._catalogs.get(name, []))
