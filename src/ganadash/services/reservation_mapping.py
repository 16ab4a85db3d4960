from __future__ import annotations

"""Translate partner webhook payloads into reservation fields.

Partners disagree on field names (``partySize`` / ``party_size`` /
``guests``) and status vocabularies, so each payload is normalised here
before it reaches the store.
"""

from typing import Any, Dict, Optional


STATUS_MAPS: Dict[str, Dict[str, str]] = {
    "opentable": {
        "pending": "pending",
        "confirmed": "confirmed",
        "seated": "confirmed",
        "cancelled": "cancelled",
        "no_show": "cancelled",
        "completed": "completed",
    },
    "resy": {
        "booked": "confirmed",
        "cancelled": "cancelled",
        "seated": "confirmed",
        "finished": "completed",
    },
    "default": {
        "pending": "pending",
        "confirmed": "confirmed",
        "cancelled": "cancelled",
        "completed": "completed",
    },
}

PLATFORM_NAMES = {
    "opentable": "OpenTable",
    "resy": "Resy",
    "partner": "Partner Site",
    "mobile_app": "Mobile App",
    "website": "Website",
    "phone": "Phone",
    "walk_in": "Walk-in",
}

DEFAULT_COMMISSION = {"opentable": 2.5, "resy": 3.0}


def _first(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if "." in key:
            outer, inner = key.split(".", 1)
            nested = data.get(outer)
            value = nested.get(inner) if isinstance(nested, dict) else None
        else:
            value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _party_size(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"party size must be a number, got {type(value).__name__}")
    try:
        return int(value)
    except OverflowError as exc:
        raise ValueError(f"party size out of range: {value}") from exc


def map_status(external_status: Optional[str], source: str) -> str:
    status_map = STATUS_MAPS.get(source, STATUS_MAPS["default"])
    return status_map.get(str(external_status or "").lower(), "pending")


def platform_name(source: str) -> str:
    return PLATFORM_NAMES.get(source, source)


def map_external_data(data: Dict[str, Any], source: str, partial: bool = False) -> Dict[str, Any]:
    """Map a partner payload to reservation fields.

    With ``partial`` (updates) a missing status is left out instead of
    defaulting to ``pending``.
    """
    party_size = _first(data, "partySize", "party_size", "guests")
    external_id = _first(data, "externalId", "id", "reservation_id")
    fields: Dict[str, Any] = {
        "customer_name": _first(data, "customerName", "customer.name", "name"),
        "customer_email": _first(data, "customerEmail", "customer.email", "email"),
        "customer_phone": _first(data, "customerPhone", "customer.phone", "phone"),
        "date": _first(data, "date", "reservation_date"),
        "time": _first(data, "time", "reservation_time"),
        "party_size": _party_size(party_size),
        "special_requests": _first(data, "specialRequests", "special_requests", "notes"),
        "source": source,
        "external_id": str(external_id) if external_id is not None else None,
    }
    if data.get("status") is not None or not partial:
        fields["status"] = map_status(data.get("status"), source)

    metadata: Dict[str, Any] = {
        "platform": platform_name(source),
        "reference_number": _first(data, "referenceNumber", "confirmation_number", "reference"),
        "original_url": _first(data, "originalUrl", "booking_url"),
    }
    if source in DEFAULT_COMMISSION:
        metadata["commission"] = _first(data, "commission") or DEFAULT_COMMISSION[source]
    if source == "opentable":
        metadata["table_preference"] = data.get("table_preference")
    elif source == "resy":
        metadata["resy_id"] = data.get("resy_id")
    elif source == "partner":
        metadata["partner_fee"] = data.get("partner_fee")
        metadata["partner_id"] = data.get("partner_id")
    fields["metadata"] = {k: v for k, v in metadata.items() if v is not None}
    return fields
