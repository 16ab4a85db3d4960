from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


ComponentType = Literal["hero", "about", "gallery", "contact", "products"]
DeploymentStatus = Literal["pending", "deployed", "failed"]


class ProductItem(BaseModel):
    name: str
    description: str = ""
    price: float = 0


class WebsiteComponent(BaseModel):
    type: ComponentType
    title: Optional[str] = None
    subtitle: Optional[str] = None
    text: Optional[str] = None
    image: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    email: Optional[str] = None
    products: List[ProductItem] = Field(default_factory=list)


class WebsiteUpsert(BaseModel):
    slug: str = ""
    title: str = ""
    components: List[WebsiteComponent] = Field(default_factory=list)
    custom_domain: Optional[str] = None


class Website(BaseModel):
    id: str
    user_id: str
    slug: str
    title: str
    components: List[WebsiteComponent] = Field(default_factory=list)
    deployment_status: DeploymentStatus = "pending"
    deployment_url: Optional[str] = None
    custom_domain: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class WebsiteList(BaseModel):
    websites: List[Website]


class WebsiteEnvelope(BaseModel):
    website: Website
