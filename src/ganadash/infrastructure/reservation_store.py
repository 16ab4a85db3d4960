from __future__ import annotations

from datetime import UTC, datetime
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol

from ..domain.reservation_models import Reservation
from .mongo import get_database, mongo_enabled, new_id


ACTIVE_STATUSES = ("pending", "confirmed")


class ReservationStore(Protocol):
    def list(self, status: Optional[str] = None, date: Optional[str] = None) -> List[Reservation]: ...

    def insert(self, fields: Dict[str, Any]) -> Reservation: ...

    def get(self, reservation_id: str) -> Optional[Reservation]: ...

    def find_by_external(self, external_id: str, source: str) -> Optional[Reservation]: ...

    def find_active_in_slot(self, date: str, time: str) -> Optional[Reservation]: ...

    def update(self, reservation_id: str, changes: Dict[str, Any]) -> Optional[Reservation]: ...

    def update_by_external(self, external_id: str, source: str, changes: Dict[str, Any]) -> Optional[Reservation]: ...

    def delete(self, reservation_id: str) -> bool: ...


def build_reservation(fields: Dict[str, Any]) -> Reservation:
    now = datetime.now(UTC)
    data = {k: v for k, v in fields.items() if v is not None}
    data.setdefault("status", "pending")
    data.setdefault("source", "website")
    data["customer_email"] = str(data.get("customer_email", "")).strip().lower()
    for key in ("customer_name", "customer_phone", "special_requests", "table_number", "external_id"):
        if isinstance(data.get(key), str):
            data[key] = data[key].strip()
    data.update(id=new_id(), created_at=now, updated_at=now)
    return Reservation.model_validate(data)


def _apply(existing: Reservation, changes: Dict[str, Any]) -> Reservation:
    data = existing.model_dump()
    for key, value in changes.items():
        if key in ("id", "created_at", "updated_at"):
            continue
        if key == "metadata" and isinstance(value, dict):
            merged = dict(data.get("metadata") or {})
            merged.update({k: v for k, v in value.items() if v is not None})
            data["metadata"] = merged
            continue
        if value is not None:
            data[key] = value
    data["updated_at"] = datetime.now(UTC)
    return Reservation.model_validate(data)


class InMemoryReservationStore:
    def __init__(self) -> None:
        self._items: Dict[str, Reservation] = {}
        self._lock = RLock()

    def list(self, status: Optional[str] = None, date: Optional[str] = None) -> List[Reservation]:
        with self._lock:
            out = [
                r.model_copy(deep=True)
                for r in self._items.values()
                if (not status or r.status == status) and (not date or r.date == date)
            ]
        return sorted(out, key=lambda r: (r.date, r.time))

    def insert(self, fields: Dict[str, Any]) -> Reservation:
        reservation = build_reservation(fields)
        with self._lock:
            self._items[reservation.id] = reservation
            return reservation.model_copy(deep=True)

    def get(self, reservation_id: str) -> Optional[Reservation]:
        with self._lock:
            r = self._items.get(reservation_id)
            return r.model_copy(deep=True) if r else None

    def find_by_external(self, external_id: str, source: str) -> Optional[Reservation]:
        with self._lock:
            for r in self._items.values():
                if r.external_id == external_id and r.source == source:
                    return r.model_copy(deep=True)
        return None

    def find_active_in_slot(self, date: str, time: str) -> Optional[Reservation]:
        with self._lock:
            for r in self._items.values():
                if r.date == date and r.time == time and r.status in ACTIVE_STATUSES:
                    return r.model_copy(deep=True)
        return None

    def update(self, reservation_id: str, changes: Dict[str, Any]) -> Optional[Reservation]:
        with self._lock:
            existing = self._items.get(reservation_id)
            if existing is None:
                return None
            updated = _apply(existing, changes)
            self._items[reservation_id] = updated
            return updated.model_copy(deep=True)

    def update_by_external(self, external_id: str, source: str, changes: Dict[str, Any]) -> Optional[Reservation]:
        with self._lock:
            found = self.find_by_external(external_id, source)
            if found is None:
                return None
            return self.update(found.id, changes)

    def delete(self, reservation_id: str) -> bool:
        with self._lock:
            return self._items.pop(reservation_id, None) is not None


_store: ReservationStore | None = None


def get_reservation_store() -> ReservationStore:
    global _store
    if _store is not None:
        return _store
    if mongo_enabled():
        db = get_database()
        if db is not None:
            from .reservation_store_mongo import MongoReservationStore

            _store = MongoReservationStore(db)
            return _store
    _store = InMemoryReservationStore()
    return _store


def reset_reservation_store() -> None:
    global _store
    _store = None
