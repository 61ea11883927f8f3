from pydantic import AliasChoices, Field, field_validator
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime
from app.models.property import PriceType, PropertyStatus, ApprovalStatus
from app.schemas.common import CamelModel, Pagination


# ─── Nested value objects ─────────────────────────────────────────────────────

class Location(CamelModel):
    area: Optional[str] = None
    address: Optional[str] = None
    landmark: Optional[str] = None


class ContactInfo(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    whatsapp: Optional[str] = None
    # Sellers add free-form extras (preferred call time, alternate numbers)
    model_config = {"extra": "allow"}


# ─── Create (built from the multipart form after JSON fields are parsed) ──────

class PropertyCreate(CamelModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    price_type: PriceType
    property_type: str = Field(..., min_length=1, max_length=50)
    sub_category: Optional[str] = None
    location: Location = Location()
    specifications: Dict[str, Any] = {}
    amenities: List[str] = []
    contact_info: ContactInfo = ContactInfo()

    @field_validator("title", "property_type")
    @classmethod
    def strip_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


# ─── Response ─────────────────────────────────────────────────────────────────

class PropertyResponse(CamelModel):
    id: UUID
    owner_id: UUID
    title: str
    description: str
    price: float
    price_type: PriceType
    property_type: str
    sub_category: Optional[str] = None
    location: Location
    specifications: Dict[str, Any] = {}
    amenities: List[str] = []
    contact_info: Dict[str, Any] = {}
    images: List[str] = Field(
        default=[],
        validation_alias=AliasChoices("image_urls", "images"),
        serialization_alias="images",
    )
    status: PropertyStatus
    approval_status: ApprovalStatus
    rejection_reason: Optional[str] = None
    admin_comments: Optional[str] = None
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    featured: bool
    package_id: Optional[UUID] = None
    package_expiry: Optional[datetime] = None
    views: int
    inquiries: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("specifications", "contact_info", mode="before")
    @classmethod
    def _none_as_empty_dict(cls, v):
        return v or {}

    @field_validator("amenities", mode="before")
    @classmethod
    def _none_as_empty_list(cls, v):
        return v or []


class PropertyList(CamelModel):
    properties: List[PropertyResponse]
    pagination: Pagination


# ─── Workflow actions ─────────────────────────────────────────────────────────

class ApprovalAction(CamelModel):
    approval_status: ApprovalStatus
    rejection_reason: Optional[str] = None
    admin_comments: Optional[str] = None


class StatusChange(CamelModel):
    status: PropertyStatus
