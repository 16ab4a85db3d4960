from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from ...domain.reservation_models import RESERVATION_SOURCES, ReservationCreate, ReservationUpdate
from ...infrastructure.events import publish_event
from ...infrastructure.reservation_store import get_reservation_store
from ...security.rbac import Permission, require_permission
from ...services.reservation_mapping import platform_name
from ..deps import client_ip, require_object_id

logger = logging.getLogger("ganadash.api.reservations")

router = APIRouter(prefix="/reservations", tags=["reservations"])

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

REQUIRED_FIELDS = ("customer_name", "customer_email", "customer_phone", "date", "time", "party_size")

_host = require_permission(Permission.RESERVATION_MANAGE)


def _check_slot_format(date: Optional[str], time: Optional[str]) -> None:
    if date is not None and not DATE_RE.match(date):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Date must be YYYY-MM-DD")
    if time is not None and not TIME_RE.match(time):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Time must be HH:MM")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_reservation(
    body: ReservationCreate,
    request: Request,
    x_source: Optional[str] = Header(default=None),
) -> dict:
    """Public booking endpoint used by the embeddable reservation widget."""
    data = body.model_dump()
    if any(not data.get(field) for field in REQUIRED_FIELDS):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")
    _check_slot_format(body.date, body.time)

    source = (x_source or body.source).strip().lower()
    if source not in RESERVATION_SOURCES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown source: {source}")

    store = get_reservation_store()
    if body.external_id and store.find_by_external(body.external_id, source):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Reservation with this external ID already exists",
        )
    if store.find_active_in_slot(body.date, body.time):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Time slot is already booked")

    metadata = body.metadata.model_dump(exclude_none=True)
    metadata.setdefault("platform", platform_name(source))
    metadata.update(
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
        original_url=request.headers.get("referer") or metadata.get("original_url"),
    )
    data.update(source=source, status="pending", metadata=metadata)
    reservation = store.insert(data)
    logger.info("Reservation %s created from %s for %s %s", reservation.id, source, reservation.date, reservation.time)
    publish_event("reservation.created", {"id": reservation.id, "source": source})
    return {"success": True, "data": reservation.model_dump(mode="json")}


@router.get("")
def list_reservations(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    date: Optional[str] = None,
    user=Depends(_host),
) -> dict:
    items = get_reservation_store().list(status=status_filter, date=date)
    return {"success": True, "data": [r.model_dump(mode="json") for r in items]}


@router.get("/{reservation_id}")
def get_reservation(reservation_id: str, user=Depends(_host)) -> dict:
    require_object_id(reservation_id, "reservation ID")
    reservation = get_reservation_store().get(reservation_id)
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    return {"success": True, "data": reservation.model_dump(mode="json")}


@router.put("/{reservation_id}")
def update_reservation(reservation_id: str, body: ReservationUpdate, user=Depends(_host)) -> dict:
    require_object_id(reservation_id, "reservation ID")
    changes = body.model_dump(exclude_unset=True)
    _check_slot_format(changes.get("date"), changes.get("time"))
    if "customer_email" in changes and changes["customer_email"]:
        changes["customer_email"] = changes["customer_email"].strip().lower()
    reservation = get_reservation_store().update(reservation_id, changes)
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    publish_event("reservation.updated", {"id": reservation.id, "status": reservation.status})
    return {"success": True, "data": reservation.model_dump(mode="json")}


@router.delete("/{reservation_id}")
def delete_reservation(reservation_id: str, user=Depends(_host)) -> dict:
    require_object_id(reservation_id, "reservation ID")
    if not get_reservation_store().delete(reservation_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    publish_event("reservation.deleted", {"id": reservation_id})
    return {"success": True, "message": "Reservation deleted successfully"}
