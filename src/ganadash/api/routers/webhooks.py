from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

from fastapi import APIRouter, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ...domain.reservation_models import RESERVATION_SOURCES, WebhookPayload
from ...infrastructure.events import publish_event
from ...infrastructure.reservation_store import get_reservation_store
from ...security.signatures import verify_webhook_signature
from ...services.reservation_mapping import map_external_data
from ..deps import require_object_id

logger = logging.getLogger("ganadash.api.webhooks")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"success": False, "error": "Reservation not found"})


def _created(data: Dict[str, Any], source: str) -> Any:
    store = get_reservation_store()
    external_id = data.get("externalId")
    if external_id:
        existing = store.find_by_external(str(external_id), source)
        if existing:
            return {"success": True, "message": "Reservation already exists", "data": {"id": existing.id}}
    fields = map_external_data(data, source)
    reservation = store.insert(fields)
    publish_event("reservation.created", {"id": reservation.id, "source": source})
    return {
        "success": True,
        "message": "Reservation created from webhook",
        "data": {"id": reservation.id, "source": source, "external_id": reservation.external_id},
    }


def _lookup_and_update(data: Dict[str, Any], source: str, changes: Dict[str, Any]):
    store = get_reservation_store()
    external_id = data.get("externalId")
    if external_id:
        return store.update_by_external(str(external_id), source, changes)
    internal_id = str(data.get("id") or "")
    require_object_id(internal_id, "reservation ID")
    return store.update(internal_id, changes)


def _updated(data: Dict[str, Any], source: str) -> Any:
    changes = map_external_data(data, source, partial=True)
    # The lookup key never changes on update.
    changes.pop("external_id", None)
    reservation = _lookup_and_update(data, source, changes)
    if reservation is None:
        return _not_found()
    publish_event("reservation.updated", {"id": reservation.id, "status": reservation.status})
    return {"success": True, "message": "Reservation updated from webhook", "data": {"id": reservation.id}}


def _cancelled(data: Dict[str, Any], source: str) -> Any:
    reservation = _lookup_and_update(data, source, {"status": "cancelled"})
    if reservation is None:
        return _not_found()
    publish_event("reservation.cancelled", {"id": reservation.id})
    return {"success": True, "message": "Reservation cancelled from webhook", "data": {"id": reservation.id}}


HANDLERS = {
    "reservation.created": _created,
    "reservation.updated": _updated,
    "reservation.cancelled": _cancelled,
}


@router.post("/reservations")
async def reservation_webhook(
    request: Request,
    x_webhook_signature: Optional[str] = Header(default=None),
    x_source: Optional[str] = Header(default=None),
):
    raw = await request.body()
    secret = os.getenv("WEBHOOK_SECRET")
    if secret and not verify_webhook_signature(raw, x_webhook_signature or "", secret):
        logger.warning("Rejected webhook with invalid signature from %s", x_source or "unknown")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")

    source = (x_source or "").strip().lower()
    if source not in RESERVATION_SOURCES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown source: {source or 'missing'}")

    try:
        payload = WebhookPayload.model_validate(json.loads(raw))
    except ValueError as exc:  # JSONDecodeError, ValidationError
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Malformed webhook body: {exc}")

    handler = HANDLERS.get(payload.event)
    if handler is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown event type: {payload.event}")

    logger.info("Webhook received: %s from %s", payload.event, source)
    try:
        return await run_in_threadpool(handler, payload.data, source)
    except (TypeError, ValueError) as exc:
        # Partner data that cannot form a valid reservation
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid reservation data: {exc}")
