import json
from fastapi import APIRouter, Depends, status, Query, Form, UploadFile, File
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from sqlalchemy import or_, and_, case
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import NotFound, ValidationError
from app.models.base import utcnow
from app.models.property import Property, PriceType, PropertyStatus, ApprovalStatus
from app.schemas.common import ApiResponse, MessageData, paginate
from app.schemas.property import PropertyCreate, PropertyResponse, PropertyList, StatusChange
from app.api.deps import (
    CurrentIdentity, get_current_identity, get_optional_identity,
    require_seller_or_agent, parse_id,
)
from app.services import property_workflow as workflow
from app.utils.file_storage import save_property_images, delete_property_images
from typing import Any, List, Optional

router = APIRouter(prefix="/properties", tags=["Properties"])
user_router = APIRouter(prefix="/user", tags=["User"])

SORT_OPTIONS = "^(newest|oldest|price_low|price_high|most_viewed)$"


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _parse_json_field(raw: Optional[str], field: str, expected: type) -> Any:
    """Decode a JSON-encoded multipart field. Empty means the type's empty value."""
    if raw is None or not raw.strip():
        return expected()
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        raise ValidationError(f"'{field}' must be a valid JSON string.")
    if not isinstance(parsed, expected):
        raise ValidationError(f"'{field}' must be a JSON {'object' if expected is dict else 'array'}.")
    return parsed


def _validation_message(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return f"{field}: {first.get('msg', 'Invalid value')}" if field else first.get("msg", "Invalid value")


def featured_first(now):
    """Listings with a live featured package sort ahead of the rest."""
    return case(
        (and_(Property.featured.is_(True), Property.package_expiry > now), 1),
        else_=0,
    ).desc()


def apply_sort(query, sort_by: str):
    if sort_by == "oldest":
        return query.order_by(Property.created_at.asc())
    if sort_by == "price_low":
        return query.order_by(Property.price.asc())
    if sort_by == "price_high":
        return query.order_by(Property.price.desc())
    if sort_by == "most_viewed":
        return query.order_by(Property.views.desc())
    return query.order_by(Property.created_at.desc())


def page_of(query, page: int, limit: int) -> PropertyList:
    total = query.count()
    properties = query.offset((page - 1) * limit).limit(limit).all()
    return PropertyList(
        properties=[PropertyResponse.model_validate(p) for p in properties],
        pagination=paginate(page, limit, total),
    )


# ─── CREATE: Multipart form + image uploads ───────────────────────────────────

@router.post("", response_model=ApiResponse[PropertyResponse], status_code=status.HTTP_201_CREATED)
async def create_property(
    # ── Required text fields ──────────────────────────────────────────────────
    title: str = Form(...),
    description: str = Form(...),
    price: float = Form(...),
    price_type: PriceType = Form(..., alias="priceType"),
    property_type: str = Form(..., alias="propertyType"),

    # ── Optional text fields ──────────────────────────────────────────────────
    sub_category: Optional[str] = Form(None, alias="subCategory"),

    # ── JSON-encoded string fields ────────────────────────────────────────────
    location: Optional[str] = Form(None),              # {"area", "address", "landmark"}
    specifications: Optional[str] = Form(None),        # {"bedrooms": 3, ...}
    amenities: Optional[str] = Form(None),             # ["parking", ...]
    contact_info: Optional[str] = Form(None, alias="contactInfo"),

    # ── Image files ───────────────────────────────────────────────────────────
    images: Optional[List[UploadFile]] = File(None),

    # ── Auth / DB ─────────────────────────────────────────────────────────────
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(require_seller_or_agent),
):
    """
    Submit a new listing for review.
    The listing is stored as pending and stays out of public results until an admin approves it.
    """
    try:
        payload = PropertyCreate(
            title=title,
            description=description,
            price=price,
            price_type=price_type,
            property_type=property_type,
            sub_category=sub_category,
            location=_parse_json_field(location, "location", dict),
            specifications=_parse_json_field(specifications, "specifications", dict),
            amenities=_parse_json_field(amenities, "amenities", list),
            contact_info=_parse_json_field(contact_info, "contactInfo", dict),
        )
    except PydanticValidationError as e:
        raise ValidationError(_validation_message(e))

    uploads = [f for f in (images or []) if f and f.filename]
    if len(uploads) > settings.MAX_IMAGES_PER_PROPERTY:
        raise ValidationError(f"At most {settings.MAX_IMAGES_PER_PROPERTY} images are allowed.")
    image_urls = await save_property_images(uploads)

    try:
        prop = workflow.create_property(db, identity, payload, image_urls)
    except Exception:
        db.rollback()
        delete_property_images(image_urls)
        raise
    return ApiResponse(
        data=PropertyResponse.model_validate(prop),
        message="Property submitted for approval",
    )


# ─── LIST (public) ────────────────────────────────────────────────────────────

@router.get("", response_model=ApiResponse[PropertyList])
async def list_properties(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, min_length=2),
    property_type: Optional[str] = Query(None, alias="propertyType"),
    sub_category: Optional[str] = Query(None, alias="subCategory"),
    price_type: Optional[PriceType] = Query(None, alias="priceType"),
    area: Optional[str] = Query(None),
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    bedrooms: Optional[int] = Query(None, ge=0),
    sort_by: str = Query("newest", alias="sortBy", pattern=SORT_OPTIONS),
):
    """Approved, active listings only."""
    query = db.query(Property).filter(
        Property.approval_status == ApprovalStatus.APPROVED,
        Property.status == PropertyStatus.ACTIVE,
    )

    if search:
        term = f"%{search}%"
        query = query.filter(
            or_(
                Property.title.ilike(term),
                Property.description.ilike(term),
                Property.area.ilike(term),
                Property.address.ilike(term),
                Property.landmark.ilike(term),
            )
        )
    if property_type:
        query = query.filter(Property.property_type == property_type)
    if sub_category:
        query = query.filter(Property.sub_category == sub_category)
    if price_type:
        query = query.filter(Property.price_type == price_type)
    if area:
        query = query.filter(Property.area.ilike(f"%{area}%"))
    if min_price is not None:
        query = query.filter(Property.price >= min_price)
    if max_price is not None:
        query = query.filter(Property.price <= max_price)
    if bedrooms:
        query = query.filter(Property.specifications["bedrooms"].as_integer() >= bedrooms)

    query = apply_sort(query.order_by(featured_first(utcnow())), sort_by)
    return ApiResponse(data=page_of(query, page, limit))


# ─── GET single property ──────────────────────────────────────────────────────

@router.get("/{property_id}", response_model=ApiResponse[PropertyResponse])
async def get_property(
    property_id: str,
    db: Session = Depends(get_db),
    identity: Optional[CurrentIdentity] = Depends(get_optional_identity),
):
    """Approved listings are public and count a view; others are visible to owner and admins only."""
    prop = workflow.get_property_or_404(db, parse_id(property_id, "property ID"))
    if not workflow.can_view(prop, identity):
        raise NotFound("Property not found")

    if prop.approval_status == ApprovalStatus.APPROVED:
        prop = workflow.record_view(db, prop)
    return ApiResponse(data=PropertyResponse.model_validate(prop))


# ─── Owner actions ────────────────────────────────────────────────────────────

@router.put("/{property_id}/status", response_model=ApiResponse[PropertyResponse])
async def update_property_status(
    property_id: str,
    change: StatusChange,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
):
    """Mark a listing sold, rented, inactive, or active again."""
    prop = workflow.get_property_or_404(db, parse_id(property_id, "property ID"))
    workflow.ensure_owner_or_admin(prop, identity)
    prop = workflow.change_listing_status(db, prop, change.status)
    return ApiResponse(data=PropertyResponse.model_validate(prop), message="Property status updated")


@router.delete("/{property_id}", response_model=ApiResponse[MessageData])
async def delete_property(
    property_id: str,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
):
    prop = workflow.get_property_or_404(db, parse_id(property_id, "property ID"))
    workflow.ensure_owner_or_admin(prop, identity)
    workflow.delete_property(db, prop)
    return ApiResponse(data=MessageData(message="Property deleted successfully"))


@user_router.get("/properties", response_model=ApiResponse[PropertyList])
async def list_my_properties(
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    approval_status: Optional[ApprovalStatus] = Query(None, alias="approvalStatus"),
):
    """The caller's own listings in every approval state, with rejection reasons."""
    query = db.query(Property).filter(Property.owner_id == identity.user_id)
    if approval_status:
        query = query.filter(Property.approval_status == approval_status)
    query = query.order_by(Property.created_at.desc())
    return ApiResponse(data=page_of(query, page, limit))
