import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, func
from sqlalchemy.orm import Session
from typing import List, Optional
from app.core.database import get_db
from app.core.errors import Conflict, NotFound, ValidationError
from app.models.property import Property, PropertyStatus, ApprovalStatus
from app.models.transaction import Transaction, TransactionStatus
from app.models.user import User, UserRole
from app.schemas.common import ApiResponse, MessageData, paginate
from app.schemas.property import PropertyResponse, PropertyList, ApprovalAction, StatusChange
from app.schemas.transaction import TransactionList, TransactionResponse, TransactionStatusUpdate
from app.schemas.user import UserList, UserResponse, UserStatusUpdate
from app.api.deps import CurrentIdentity, require_admin, parse_id
from app.services import property_workflow as workflow
from app.services import packages as package_service
from app.utils.file_storage import delete_property_images

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


# ─── Properties ───────────────────────────────────────────────────────────────

@router.get("/properties", response_model=ApiResponse[PropertyList])
async def list_all_properties(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[PropertyStatus] = Query(None),
    approval_status: Optional[ApprovalStatus] = Query(None, alias="approvalStatus"),
    search: Optional[str] = Query(None),
):
    """Every listing regardless of approval or listing status."""
    query = db.query(Property)
    if status:
        query = query.filter(Property.status == status)
    if approval_status:
        query = query.filter(Property.approval_status == approval_status)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(Property.title.ilike(term), Property.address.ilike(term), Property.area.ilike(term)))

    total = query.count()
    properties = query.order_by(Property.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return ApiResponse(data=PropertyList(
        properties=[PropertyResponse.model_validate(p) for p in properties],
        pagination=paginate(page, limit, total),
    ))


@router.get("/properties/pending", response_model=ApiResponse[List[PropertyResponse]])
async def list_pending_properties(
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    """Review queue, oldest submission first."""
    properties = (
        db.query(Property)
        .filter(Property.approval_status == ApprovalStatus.PENDING)
        .order_by(Property.created_at.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return ApiResponse(data=[PropertyResponse.model_validate(p) for p in properties])


@router.put("/properties/{property_id}/approval", response_model=ApiResponse[PropertyResponse])
async def review_property(
    property_id: str,
    action: ApprovalAction,
    db: Session = Depends(get_db),
    admin: CurrentIdentity = Depends(require_admin),
):
    """Approve or reject a pending listing. A rejection must carry a reason for the owner."""
    prop = workflow.get_property_or_404(db, parse_id(property_id, "property ID"))
    prop = workflow.review_property(
        db,
        prop,
        admin,
        approval_status=action.approval_status,
        rejection_reason=action.rejection_reason,
        admin_comments=action.admin_comments,
    )
    return ApiResponse(
        data=PropertyResponse.model_validate(prop),
        message=f"Property {prop.approval_status.value}",
    )


@router.put("/properties/{property_id}", response_model=ApiResponse[PropertyResponse])
async def update_property_status(
    property_id: str,
    change: StatusChange,
    db: Session = Depends(get_db),
):
    prop = workflow.get_property_or_404(db, parse_id(property_id, "property ID"))
    prop = workflow.change_listing_status(db, prop, change.status)
    return ApiResponse(data=PropertyResponse.model_validate(prop), message="Property updated successfully")


@router.delete("/properties/{property_id}", response_model=ApiResponse[MessageData])
async def delete_property(property_id: str, db: Session = Depends(get_db)):
    prop = workflow.get_property_or_404(db, parse_id(property_id, "property ID"))
    workflow.delete_property(db, prop)
    return ApiResponse(data=MessageData(message="Property deleted successfully"))


# ─── Transactions ─────────────────────────────────────────────────────────────

@router.get("/transactions", response_model=ApiResponse[TransactionList])
async def list_transactions(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[TransactionStatus] = Query(None),
    payment_method: Optional[str] = Query(None, alias="paymentMethod"),
):
    query = db.query(Transaction)
    if status:
        query = query.filter(Transaction.status == status)
    if payment_method:
        query = query.filter(Transaction.payment_method == payment_method)

    total = query.count()
    transactions = query.order_by(Transaction.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return ApiResponse(data=TransactionList(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        pagination=paginate(page, limit, total),
    ))


@router.put("/transactions/{transaction_id}", response_model=ApiResponse[TransactionResponse])
async def update_transaction(
    transaction_id: str,
    update: TransactionStatusUpdate,
    db: Session = Depends(get_db),
):
    """Manual payment confirmation. Marking paid activates the linked listing's package once."""
    transaction = package_service.get_transaction_or_404(db, parse_id(transaction_id, "transaction ID"))
    transaction = package_service.update_transaction_status(db, transaction, update.status, update.admin_notes)
    return ApiResponse(
        data=TransactionResponse.model_validate(transaction),
        message="Transaction status updated successfully",
    )


# ─── Users ────────────────────────────────────────────────────────────────────

@router.get("/users", response_model=ApiResponse[UserList])
async def list_users(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_type: Optional[str] = Query(None, alias="userType"),
    search: Optional[str] = Query(None),
):
    query = db.query(User)
    if user_type and user_type != "all":
        try:
            role = UserRole(user_type)
        except ValueError:
            raise ValidationError(f"Unknown userType '{user_type}'")
        query = query.filter(User.role == role)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(User.name.ilike(term), User.email.ilike(term), User.phone.ilike(term)))

    total = query.count()
    users = query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return ApiResponse(data=UserList(
        users=[UserResponse.model_validate(u) for u in users],
        pagination=paginate(page, limit, total),
    ))


@router.put("/users/{user_id}/status", response_model=ApiResponse[UserResponse])
async def update_user_status(
    user_id: str,
    update: UserStatusUpdate,
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.id == parse_id(user_id, "user ID")).first()
    if not user:
        raise NotFound("User not found")
    user.status = update.status
    db.commit()
    db.refresh(user)
    logger.info("User %s marked %s", user.id, update.status.value)
    return ApiResponse(data=UserResponse.model_validate(user), message="User status updated successfully")


@router.delete("/users/{user_id}", response_model=ApiResponse[MessageData])
async def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    admin: CurrentIdentity = Depends(require_admin),
):
    """Removes the account together with its listings and payment history."""
    user = db.query(User).filter(User.id == parse_id(user_id, "user ID")).first()
    if not user:
        raise NotFound("User not found")
    if user.id == admin.user_id:
        raise Conflict("Admins cannot delete their own account")

    # Listings, transactions and the account go in one commit
    listings = list(user.properties)
    image_urls = []
    for prop in listings:
        image_urls.extend(workflow.delete_property(db, prop, commit=False))

    db.delete(user)
    db.commit()
    delete_property_images(image_urls)
    logger.info("User %s deleted by admin %s with %d listings", user_id, admin.user_id, len(listings))
    return ApiResponse(data=MessageData(message="User deleted successfully"))


@router.get("/stats", response_model=ApiResponse[dict])
async def get_stats(db: Session = Depends(get_db)):
    users_by_type = db.query(User.role, func.count(User.id)).group_by(User.role).all()
    return ApiResponse(data={
        "totalUsers": db.query(User).count(),
        "totalProperties": db.query(Property).count(),
        "activeProperties": db.query(Property).filter(Property.status == PropertyStatus.ACTIVE).count(),
        "pendingProperties": db.query(Property).filter(Property.approval_status == ApprovalStatus.PENDING).count(),
        "paidTransactions": db.query(Transaction).filter(Transaction.status == TransactionStatus.PAID).count(),
        "usersByType": [{"userType": role.value, "count": count} for role, count in users_by_type],
    })
