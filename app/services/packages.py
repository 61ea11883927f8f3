"""
Promotion packages and the payments that activate them.

Every path that can move a transaction to "paid" (a free package at
checkout, an admin status update, gateway verification) goes through
settle_transaction(), which flips the status with a compare-and-set and
activates the linked listing in the same database transaction. A second
settlement of the same transaction is a no-op, so the package expiry is
never pushed out by duplicate confirmations.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from app.api.deps import CurrentIdentity, parse_id
from app.core.errors import Conflict, Forbidden, NotFound
from app.models.base import utcnow
from app.models.package import AdPackage, PackageType, FEATURED_PACKAGE_TYPES
from app.models.property import Property
from app.models.transaction import Transaction, TransactionStatus, OPEN_TRANSACTION_STATUSES

logger = logging.getLogger(__name__)

DEFAULT_PACKAGES = [
    {
        "name": "Basic Listing",
        "description": "Standard property listing with basic visibility",
        "price": 0,
        "duration": 30,
        "features": [
            "30 days listing",
            "Standard visibility",
            "Basic property details",
            "Contact information display",
        ],
        "type": PackageType.BASIC,
    },
    {
        "name": "Featured Listing",
        "description": "Enhanced visibility with featured badge",
        "price": 299,
        "duration": 30,
        "features": [
            "30 days listing",
            "Featured badge",
            "Top of search results",
            "Homepage visibility",
            "Priority in category",
            "Enhanced property details",
            "Contact information display",
        ],
        "type": PackageType.FEATURED,
    },
    {
        "name": "Premium Listing",
        "description": "Maximum visibility with premium features",
        "price": 599,
        "duration": 30,
        "features": [
            "30 days listing",
            "Premium badge",
            "Top priority in all searches",
            "Homepage banner slot",
            "Featured in category top",
            "Enhanced property details",
            "Multiple image gallery",
            "Contact information display",
            "Analytics dashboard",
            "Priority customer support",
        ],
        "type": PackageType.PREMIUM,
    },
    {
        "name": "Weekly Featured",
        "description": "7-day featured listing for quick sales",
        "price": 99,
        "duration": 7,
        "features": [
            "7 days listing",
            "Featured badge",
            "Top of search results",
            "Contact information display",
        ],
        "type": PackageType.FEATURED,
    },
    {
        "name": "Extended Premium",
        "description": "60-day premium listing with maximum exposure",
        "price": 999,
        "duration": 60,
        "features": [
            "60 days listing",
            "Premium badge",
            "Top priority in all searches",
            "Homepage banner slot",
            "Featured in category top",
            "Enhanced property details",
            "Multiple image gallery",
            "Contact information display",
            "Analytics dashboard",
            "Priority customer support",
            "Social media promotion",
        ],
        "type": PackageType.PREMIUM,
    },
]


# ─── Catalog ──────────────────────────────────────────────────────────────────

def get_package_or_404(db: Session, package_id) -> AdPackage:
    package = db.query(AdPackage).filter(AdPackage.id == package_id).first()
    if not package:
        raise NotFound("Package not found")
    return package


def delete_package(db: Session, package: AdPackage):
    """Blocked while a pending or paid transaction still references the package."""
    if has_open_transactions(db, package):
        raise Conflict("Cannot delete package with active transactions")

    db.query(Transaction).filter(Transaction.package_id == package.id).update(
        {Transaction.package_id: None}, synchronize_session=False
    )
    db.delete(package)
    db.commit()
    logger.info("Package %s (%s) deleted", package.id, package.name)


# Terms a pending or paid transaction was bought under
LOCKED_PACKAGE_FIELDS = {"price", "duration", "type"}


def has_open_transactions(db: Session, package: AdPackage) -> bool:
    return (
        db.query(Transaction)
        .filter(
            Transaction.package_id == package.id,
            Transaction.status.in_(OPEN_TRANSACTION_STATUSES),
        )
        .count()
        > 0
    )


def update_package(db: Session, package: AdPackage, changes: Dict[str, Any]) -> AdPackage:
    """Price, duration and type are frozen while open transactions reference the package."""
    locked = sorted(
        field for field in LOCKED_PACKAGE_FIELDS
        if field in changes and changes[field] != getattr(package, field)
    )
    if locked and has_open_transactions(db, package):
        raise Conflict(f"Cannot change {', '.join(locked)} of a package with active transactions")

    for field, value in changes.items():
        setattr(package, field, value)
    db.commit()
    db.refresh(package)
    return package


def seed_default_packages(db: Session) -> int:
    """Insert the default catalog when no packages exist. Returns how many were added."""
    if db.query(AdPackage).count() > 0:
        return 0
    for data in DEFAULT_PACKAGES:
        db.add(AdPackage(category="property", location="rohtak", active=True, **data))
    db.commit()
    logger.info("Seeded %d default packages", len(DEFAULT_PACKAGES))
    return len(DEFAULT_PACKAGES)


# ─── Activation ───────────────────────────────────────────────────────────────

def apply_package(prop: Property, package: AdPackage, now: Optional[datetime] = None) -> Property:
    """Set the promotion fields a paid package grants. Touches nothing but the property."""
    now = now or utcnow()
    prop.package_id = package.id
    prop.package_expiry = now + timedelta(days=package.duration)
    prop.featured = package.type in FEATURED_PACKAGE_TYPES
    return prop


def settle_transaction(db: Session, transaction: Transaction) -> bool:
    """
    Move a transaction to paid and activate its listing, exactly once.

    Returns True when this call performed the transition, False when the
    transaction was already paid.
    """
    now = utcnow()
    updated = (
        db.query(Transaction)
        .filter(
            Transaction.id == transaction.id,
            Transaction.status != TransactionStatus.PAID,
        )
        .update(
            {
                Transaction.status: TransactionStatus.PAID,
                Transaction.paid_at: now,
                Transaction.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        db.refresh(transaction)
        return False

    if transaction.property_id and transaction.package_id:
        package = db.query(AdPackage).filter(AdPackage.id == transaction.package_id).first()
        prop = db.query(Property).filter(Property.id == transaction.property_id).first()
        if package and prop:
            apply_package(prop, package, now)
            logger.info(
                "Property %s activated with package %s until %s",
                prop.id, package.name, prop.package_expiry,
            )

    db.commit()
    db.refresh(transaction)
    logger.info("Transaction %s settled", transaction.id)
    return True


# ─── Transactions ─────────────────────────────────────────────────────────────

def get_transaction_or_404(db: Session, transaction_id) -> Transaction:
    transaction = db.query(Transaction).filter(Transaction.id == transaction_id).first()
    if not transaction:
        raise NotFound("Transaction not found")
    return transaction


def create_transaction(
    db: Session,
    buyer: CurrentIdentity,
    package_id: str,
    property_id: Optional[str],
    payment_method: str,
    payment_details: Optional[Dict[str, Any]] = None,
) -> Transaction:
    package = get_package_or_404(db, parse_id(package_id, "package ID"))
    if not package.active:
        raise NotFound("Package not found")

    prop = None
    if property_id:
        prop = db.query(Property).filter(Property.id == parse_id(property_id, "property ID")).first()
        if not prop:
            raise NotFound("Property not found")
        if prop.owner_id != buyer.user_id and not buyer.is_admin:
            raise Forbidden("You can only promote your own properties")

    transaction = Transaction(
        user_id=buyer.user_id,
        package_id=package.id,
        property_id=prop.id if prop else None,
        amount=package.price,
        payment_method=payment_method,
        payment_details=payment_details or {},
        status=TransactionStatus.PENDING,
    )
    db.add(transaction)
    db.commit()
    db.refresh(transaction)
    logger.info(
        "Transaction %s created by %s for package %s (amount %s)",
        transaction.id, buyer.user_id, package.name, package.price,
    )

    if package.is_free:
        settle_transaction(db, transaction)

    return transaction


def _leave_unpaid(db: Session, transaction: Transaction, values: Dict[Any, Any]) -> bool:
    """
    Write a non-paid status only while the stored row is still unpaid.

    The in-session status may be stale, so the check rides on the UPDATE
    itself. Returns False, with the session rolled back and the
    transaction reloaded, when the row was settled in the meantime.
    """
    values[Transaction.updated_at] = utcnow()
    updated = (
        db.query(Transaction)
        .filter(
            Transaction.id == transaction.id,
            Transaction.status != TransactionStatus.PAID,
        )
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        db.refresh(transaction)
        return False
    db.commit()
    db.refresh(transaction)
    return True


def update_transaction_status(
    db: Session,
    transaction: Transaction,
    status: TransactionStatus,
    admin_notes: Optional[str] = None,
) -> Transaction:
    """Admin status change. Paid is terminal; setting paid again changes nothing."""
    if status == TransactionStatus.PAID:
        if admin_notes:
            transaction.admin_notes = admin_notes
            db.commit()
        settle_transaction(db, transaction)
        return transaction

    values = {Transaction.status: status}
    if admin_notes:
        values[Transaction.admin_notes] = admin_notes
    if not _leave_unpaid(db, transaction, values):
        raise Conflict("Transaction is already paid")

    logger.info("Transaction %s marked %s", transaction.id, status.value)
    return transaction


def verify_payment(
    db: Session,
    transaction: Transaction,
    payment_data: Optional[Dict[str, Any]],
) -> Transaction:
    """Record a gateway confirmation; status 'success' settles, anything else fails the payment."""
    if transaction.status == TransactionStatus.PAID:
        return transaction

    details = dict(transaction.payment_details or {})
    details["gatewayResponse"] = payment_data

    if payment_data and payment_data.get("status") == "success":
        transaction.payment_details = details
        db.commit()
        settle_transaction(db, transaction)
        return transaction

    failed = _leave_unpaid(db, transaction, {
        Transaction.status: TransactionStatus.FAILED,
        Transaction.payment_details: details,
    })
    if failed:
        logger.warning("Payment verification failed for transaction %s", transaction.id)
    return transaction
