from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database

from ..domain.reservation_models import Reservation
from .mongo import is_valid_id
from .reservation_store import ACTIVE_STATUSES, build_reservation


class MongoReservationStore:
    def __init__(self, db: Database) -> None:
        self._items = db["reservations"]
        self._items.create_index([("date", ASCENDING), ("time", ASCENDING)])
        self._items.create_index("customer_email")
        self._items.create_index("status")
        self._items.create_index("source")
        self._items.create_index("external_id", sparse=True)
        self._items.create_index("metadata.reference_number", sparse=True)

    def list(self, status: Optional[str] = None, date: Optional[str] = None) -> List[Reservation]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if date:
            query["date"] = date
        cursor = self._items.find(query).sort([("date", ASCENDING), ("time", ASCENDING)])
        return [self._to_reservation(doc) for doc in cursor]

    def insert(self, fields: Dict[str, Any]) -> Reservation:
        reservation = build_reservation(fields)
        doc = reservation.model_dump(exclude={"id"})
        doc["_id"] = ObjectId(reservation.id)
        self._items.insert_one(doc)
        return reservation

    def get(self, reservation_id: str) -> Optional[Reservation]:
        if not is_valid_id(reservation_id):
            return None
        doc = self._items.find_one({"_id": ObjectId(reservation_id)})
        return self._to_reservation(doc) if doc else None

    def find_by_external(self, external_id: str, source: str) -> Optional[Reservation]:
        doc = self._items.find_one({"external_id": external_id, "source": source})
        return self._to_reservation(doc) if doc else None

    def find_active_in_slot(self, date: str, time: str) -> Optional[Reservation]:
        doc = self._items.find_one({"date": date, "time": time, "status": {"$in": list(ACTIVE_STATUSES)}})
        return self._to_reservation(doc) if doc else None

    def update(self, reservation_id: str, changes: Dict[str, Any]) -> Optional[Reservation]:
        if not is_valid_id(reservation_id):
            return None
        return self._update_one({"_id": ObjectId(reservation_id)}, changes)

    def update_by_external(self, external_id: str, source: str, changes: Dict[str, Any]) -> Optional[Reservation]:
        return self._update_one({"external_id": external_id, "source": source}, changes)

    def delete(self, reservation_id: str) -> bool:
        if not is_valid_id(reservation_id):
            return False
        return self._items.delete_one({"_id": ObjectId(reservation_id)}).deleted_count > 0

    def _update_one(self, query: Dict[str, Any], changes: Dict[str, Any]) -> Optional[Reservation]:
        fields: Dict[str, Any] = {"updated_at": datetime.now(UTC)}
        for key, value in changes.items():
            if key in ("id", "_id", "created_at", "updated_at") or value is None:
                continue
            if key == "metadata" and isinstance(value, dict):
                for meta_key, meta_value in value.items():
                    if meta_value is not None:
                        fields[f"metadata.{meta_key}"] = meta_value
                continue
            fields[key] = value
        doc = self._items.find_one_and_update(query, {"$set": fields}, return_document=ReturnDocument.AFTER)
        return self._to_reservation(doc) if doc else None

    def _to_reservation(self, doc: Dict[str, Any]) -> Reservation:
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return Reservation.model_validate(data)
