# User value: This file keeps sandbox vendors, contracts and reports in an injectable store instead of globals.
import threading
import uuid
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Generic, List, Optional, Protocol, TypeVar

Record = Dict[str, object]
T = TypeVar("T")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository(Protocol[T]):
    def get_all(self) -> List[T]: ...

    def get_by_id(self, record_id: str) -> Optional[T]: ...

    def create(self, record: T) -> T: ...

    def update(self, record_id: str, changes: dict) -> Optional[T]: ...

    def delete(self, record_id: str) -> bool: ...


class InMemoryRepository(Generic[T]):
    """Dict-backed repository; records are copied in and out."""

    def __init__(self, id_prefix: str):
        self.id_prefix = id_prefix
        self._items: Dict[str, Record] = {}
        self._lock = threading.Lock()

    def _new_id(self) -> str:
        return f"{self.id_prefix}-{uuid.uuid4().hex[:12]}"

    def get_all(self) -> List[Record]:
        with self._lock:
            return [deepcopy(item) for item in self._items.values()]

    def get_by_id(self, record_id: str) -> Optional[Record]:
        with self._lock:
            item = self._items.get(record_id)
            return deepcopy(item) if item is not None else None

    def create(self, record: Record) -> Record:
        now = utc_now_iso()
        item = dict(record)
        item["id"] = str(item.get("id") or self._new_id())
        item.setdefault("created_at", now)
        item["updated_at"] = now
        with self._lock:
            if item["id"] in self._items:
                raise KeyError(f"{self.id_prefix} {item['id']} already exists")
            self._items[item["id"]] = item
            return deepcopy(item)

    def update(self, record_id: str, changes: dict) -> Optional[Record]:
        with self._lock:
            item = self._items.get(record_id)
            if item is None:
                return None
            item.update({k: v for k, v in changes.items() if k != "id"})
            item["updated_at"] = utc_now_iso()
            return deepcopy(item)

    def replace(self, record: Record) -> Record:
        """Store ``record`` as-is under its id (used after a status transition)."""
        with self._lock:
            item = dict(record)
            item["updated_at"] = utc_now_iso()
            self._items[str(item["id"])] = item
            return deepcopy(item)

    def delete(self, record_id: str) -> bool:
        with self._lock:
            return self._items.pop(record_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


@dataclass
class SandboxStore:
    vendors: InMemoryRepository = field(default_factory=lambda: InMemoryRepository("vendor"))
    contracts: InMemoryRepository = field(default_factory=lambda: InMemoryRepository("contract"))
    invoices: InMemoryRepository = field(default_factory=lambda: InMemoryRepository("invoice"))
    findings: InMemoryRepository = field(default_factory=lambda: InMemoryRepository("finding"))
    jobs: InMemoryRepository = field(default_factory=lambda: InMemoryRepository("job"))
    exports: InMemoryRepository = field(default_factory=lambda: InMemoryRepository("export"))


# User value: matches names the way users think of them, ignoring case and stray spaces.
def normalize_name(value: object) -> str:
    return " ".join(str(value or "").split()).casefold()


def find_vendor_by_name(store: SandboxStore, name: str) -> Optional[Record]:
    wanted = normalize_name(name)
    if not wanted:
        return None
    for vendor in store.vendors.get_all():
        if wanted in (normalize_name(vendor.get("name")), normalize_name(vendor.get("canonical_name"))):
            return vendor
    return None
