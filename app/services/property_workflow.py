"""
Property listing workflow.

A listing moves along two independent axes:

- approval: pending -> approved | rejected (admin only)
- listing status: active <-> inactive, active -> sold, active -> rented

Routers resolve ids, load entities and check roles; this module owns the
transitions and their side effects.
"""

import logging
from typing import List, Optional
from sqlalchemy.orm import Session

from app.api.deps import CurrentIdentity
from app.core.errors import Conflict, Forbidden, NotFound, ValidationError
from app.models.base import utcnow
from app.models.property import Property, PropertyImage, PropertyStatus, ApprovalStatus
from app.models.transaction import Transaction
from app.schemas.property import PropertyCreate
from app.utils.file_storage import delete_property_images

logger = logging.getLogger(__name__)

LISTING_TRANSITIONS = {
    PropertyStatus.ACTIVE: {PropertyStatus.INACTIVE, PropertyStatus.SOLD, PropertyStatus.RENTED},
    PropertyStatus.INACTIVE: {PropertyStatus.ACTIVE},
    PropertyStatus.SOLD: set(),
    PropertyStatus.RENTED: set(),
}


def get_property_or_404(db: Session, property_id) -> Property:
    prop = db.query(Property).filter(Property.id == property_id).first()
    if not prop:
        raise NotFound("Property not found")
    return prop


def ensure_owner_or_admin(prop: Property, identity: CurrentIdentity):
    if prop.owner_id != identity.user_id and not identity.is_admin:
        raise Forbidden("You can only manage your own properties")


def can_view(prop: Property, identity: Optional[CurrentIdentity]) -> bool:
    """Approved listings are public; anything else only to its owner and admins."""
    if prop.approval_status == ApprovalStatus.APPROVED:
        return True
    if identity is None:
        return False
    return identity.is_admin or prop.owner_id == identity.user_id


def create_property(
    db: Session,
    owner: CurrentIdentity,
    payload: PropertyCreate,
    image_urls: List[str],
) -> Property:
    """Persist a new listing. It always enters review as pending; nothing is auto-approved."""
    prop = Property(
        owner_id=owner.user_id,
        title=payload.title,
        description=payload.description,
        price=payload.price,
        price_type=payload.price_type,
        property_type=payload.property_type,
        sub_category=payload.sub_category,
        area=payload.location.area,
        address=payload.location.address,
        landmark=payload.location.landmark,
        specifications=payload.specifications,
        amenities=payload.amenities,
        contact_info=payload.contact_info.model_dump(exclude_none=True),
        status=PropertyStatus.ACTIVE,
        approval_status=ApprovalStatus.PENDING,
        featured=False,
        package_id=None,
        package_expiry=None,
    )
    db.add(prop)
    db.flush()

    for idx, url in enumerate(image_urls):
        db.add(PropertyImage(
            property_id=prop.id,
            image_url=url,
            is_main=(idx == 0),
            display_order=idx,
        ))

    db.commit()
    db.refresh(prop)
    logger.info("Property %s created by %s (pending review)", prop.id, owner.user_id)
    return prop


def review_property(
    db: Session,
    prop: Property,
    reviewer: CurrentIdentity,
    approval_status: ApprovalStatus,
    rejection_reason: Optional[str] = None,
    admin_comments: Optional[str] = None,
) -> Property:
    """
    Apply an admin approval decision.

    Repeating the current decision is a no-op. Reversing a decision is a
    conflict: a rejected listing comes back only as a fresh submission.
    """
    if approval_status == ApprovalStatus.PENDING:
        raise ValidationError("approvalStatus must be 'approved' or 'rejected'")

    reason = (rejection_reason or "").strip()
    if approval_status == ApprovalStatus.REJECTED and not reason:
        raise ValidationError("rejectionReason is required when rejecting a property")

    if prop.approval_status == approval_status:
        return prop

    if prop.approval_status != ApprovalStatus.PENDING:
        raise Conflict(f"Property is already {prop.approval_status.value}")

    prop.approval_status = approval_status
    if approval_status == ApprovalStatus.APPROVED:
        prop.rejection_reason = None
    else:
        prop.rejection_reason = reason
    if admin_comments is not None:
        prop.admin_comments = admin_comments
    prop.reviewed_by = reviewer.user_id
    prop.reviewed_at = utcnow()

    db.commit()
    db.refresh(prop)
    logger.info("Property %s %s by admin %s", prop.id, approval_status.value, reviewer.user_id)
    return prop


def change_listing_status(db: Session, prop: Property, new_status: PropertyStatus) -> Property:
    if prop.status == new_status:
        return prop

    if new_status not in LISTING_TRANSITIONS[prop.status]:
        raise Conflict(f"Cannot change property status from {prop.status.value} to {new_status.value}")

    prop.status = new_status
    db.commit()
    db.refresh(prop)
    logger.info("Property %s marked %s", prop.id, new_status.value)
    return prop


def record_view(db: Session, prop: Property) -> Property:
    prop.views = (prop.views or 0) + 1
    db.commit()
    db.refresh(prop)
    return prop


def delete_property(db: Session, prop: Property, commit: bool = True) -> List[str]:
    """
    Remove a listing and its images. Transactions keep their history, unlinked.

    With commit=False the deletion is only staged: the caller commits and
    then removes the returned image files.
    """
    image_urls = prop.image_urls
    property_id = prop.id

    db.query(Transaction).filter(Transaction.property_id == property_id).update(
        {Transaction.property_id: None}, synchronize_session=False
    )
    db.delete(prop)
    if not commit:
        return image_urls

    db.commit()
    delete_property_images(image_urls)
    logger.info("Property %s deleted", property_id)
    return image_urls
