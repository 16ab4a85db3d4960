from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


ReservationStatus = Literal["pending", "confirmed", "cancelled", "completed"]
ReservationSource = Literal["website", "opentable", "resy", "partner", "mobile_app", "phone", "walk_in"]

RESERVATION_SOURCES = ("website", "opentable", "resy", "partner", "mobile_app", "phone", "walk_in")


class ReservationMetadata(BaseModel):
    # Partner payloads carry extra keys (table preference, partner ids); keep them.
    model_config = ConfigDict(extra="allow")

    platform: Optional[str] = None
    reference_number: Optional[str] = None
    commission: Optional[float] = None
    partner_fee: Optional[float] = None
    original_url: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


class ReservationCreate(BaseModel):
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    date: str = Field(default="", description="YYYY-MM-DD")
    time: str = Field(default="", description="HH:MM")
    party_size: int = Field(default=0, ge=0, le=20)
    special_requests: Optional[str] = None
    source: ReservationSource = "website"
    external_id: Optional[str] = None
    metadata: ReservationMetadata = Field(default_factory=ReservationMetadata)


class ReservationUpdate(BaseModel):
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    party_size: Optional[int] = Field(default=None, ge=1, le=20)
    special_requests: Optional[str] = None
    status: Optional[ReservationStatus] = None
    table_number: Optional[str] = None


class Reservation(BaseModel):
    id: str
    customer_name: str
    customer_email: str
    customer_phone: str
    date: str
    time: str
    party_size: int = Field(ge=1, le=20)
    special_requests: Optional[str] = None
    status: ReservationStatus = "pending"
    table_number: Optional[str] = None
    source: ReservationSource = "website"
    external_id: Optional[str] = None
    metadata: ReservationMetadata = Field(default_factory=ReservationMetadata)
    created_at: datetime
    updated_at: datetime


class WebhookPayload(BaseModel):
    event: str
    data: Dict[str, Any] = Field(default_factory=dict)
