import uuid
from datetime import datetime, timedelta

import pytest

from app.models.base import utcnow
from app.models.package import AdPackage, PackageType
from app.models.property import Property
from app.core.errors import Conflict
from app.models.transaction import TransactionStatus
from app.services.packages import (
    apply_package, get_transaction_or_404, settle_transaction, update_transaction_status, verify_payment,
)
from conftest import auth_header, create_listing


def buy(client, token, package_id, property_id=None, method="upi"):
    body = {"packageId": package_id, "paymentMethod": method, "paymentDetails": {"upiRef": "REF123"}}
    if property_id:
        body["propertyId"] = property_id
    return client.post("/api/payments/transaction", json=body, headers=auth_header(token))


def mark(client, admin_token, transaction_id, status, notes=None):
    body = {"status": status}
    if notes:
        body["adminNotes"] = notes
    return client.put(f"/api/admin/transactions/{transaction_id}", json=body, headers=auth_header(admin_token))


def load_property(db, property_id):
    db.expire_all()
    return db.query(Property).filter(Property.id == uuid.UUID(property_id)).first()


def test_free_package_settles_immediately(client, db, seller_token, packages):
    prop = create_listing(client, seller_token)

    response = buy(client, seller_token, packages["Basic Listing"], prop["id"])
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "paid"

    stored = load_property(db, prop["id"])
    assert str(stored.package_id) == packages["Basic Listing"]
    assert stored.featured is False
    assert stored.package_expiry is not None


def test_paid_package_waits_for_confirmation(client, db, seller_token, packages):
    prop = create_listing(client, seller_token)

    response = buy(client, seller_token, packages["Premium Listing"], prop["id"])
    assert response.json()["data"]["status"] == "pending"

    stored = load_property(db, prop["id"])
    assert stored.package_id is None
    assert stored.featured is False

    history = client.get("/api/payments/transactions", headers=auth_header(seller_token)).json()["data"]
    assert history["transactions"][0]["amount"] == 599
    assert history["transactions"][0]["packageName"] == "Premium Listing"
    assert history["transactions"][0]["propertyTitle"] == prop["title"]


def test_admin_confirmation_activates_package_once(client, db, seller_token, admin_token, packages):
    prop = create_listing(client, seller_token)
    transaction_id = buy(client, seller_token, packages["Premium Listing"], prop["id"]).json()["data"]["transactionId"]

    before = utcnow()
    response = mark(client, admin_token, transaction_id, "paid", notes="UPI ref checked")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "paid"
    assert response.json()["data"]["adminNotes"] == "UPI ref checked"
    assert response.json()["data"]["paidAt"] is not None

    stored = load_property(db, prop["id"])
    assert stored.featured is True
    assert str(stored.package_id) == packages["Premium Listing"]
    expiry = stored.package_expiry
    assert before + timedelta(days=30) - timedelta(minutes=1) <= expiry <= utcnow() + timedelta(days=30)

    # A duplicate confirmation must not extend the promotion
    assert mark(client, admin_token, transaction_id, "paid").status_code == 200
    assert load_property(db, prop["id"]).package_expiry == expiry


def test_paid_is_terminal_for_admin(client, seller_token, admin_token, packages):
    prop = create_listing(client, seller_token)
    transaction_id = buy(client, seller_token, packages["Featured Listing"], prop["id"]).json()["data"]["transactionId"]
    mark(client, admin_token, transaction_id, "paid")

    assert mark(client, admin_token, transaction_id, "cancelled").status_code == 409


def test_admin_can_fail_pending_payment(client, db, seller_token, admin_token, packages):
    prop = create_listing(client, seller_token)
    transaction_id = buy(client, seller_token, packages["Featured Listing"], prop["id"]).json()["data"]["transactionId"]

    response = mark(client, admin_token, transaction_id, "failed")
    assert response.json()["data"]["status"] == "failed"
    assert load_property(db, prop["id"]).featured is False


def test_gateway_verification(client, db, seller_token, packages):
    prop = create_listing(client, seller_token)
    transaction_id = buy(client, seller_token, packages["Weekly Featured"], prop["id"], method="online").json()["data"]["transactionId"]

    response = client.post(
        "/api/payments/verify",
        json={"transactionId": transaction_id, "paymentData": {"status": "success", "gatewayId": "pay_1"}},
        headers=auth_header(seller_token),
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "paid"

    stored = load_property(db, prop["id"])
    assert stored.featured is True
    assert stored.package_expiry - utcnow() <= timedelta(days=7)


def test_gateway_failure_marks_failed(client, seller_token, packages):
    transaction_id = buy(client, seller_token, packages["Featured Listing"], method="online").json()["data"]["transactionId"]

    response = client.post(
        "/api/payments/verify",
        json={"transactionId": transaction_id, "paymentData": {"status": "declined"}},
        headers=auth_header(seller_token),
    )
    assert response.json()["data"]["status"] == "failed"

    history = client.get("/api/payments/transactions", headers=auth_header(seller_token)).json()["data"]
    assert history["transactions"][0]["paymentDetails"]["gatewayResponse"] == {"status": "declined"}


def test_verify_other_users_transaction_forbidden(client, seller_token, buyer_token, packages):
    transaction_id = buy(client, seller_token, packages["Featured Listing"]).json()["data"]["transactionId"]

    response = client.post(
        "/api/payments/verify",
        json={"transactionId": transaction_id, "paymentData": {"status": "success"}},
        headers=auth_header(buyer_token),
    )
    assert response.status_code == 403


def test_cannot_promote_someone_elses_listing(client, seller_token, buyer_token, packages):
    prop = create_listing(client, seller_token)
    assert buy(client, buyer_token, packages["Featured Listing"], prop["id"]).status_code == 403


def test_unknown_or_inactive_package(client, db, seller_token, packages):
    assert buy(client, seller_token, str(uuid.uuid4())).status_code == 404
    assert buy(client, seller_token, "bogus").status_code == 400

    package = db.query(AdPackage).filter(AdPackage.name == "Weekly Featured").first()
    package.active = False
    db.commit()
    assert buy(client, seller_token, packages["Weekly Featured"]).status_code == 404


def test_deleting_listing_keeps_transaction_history(client, seller_token, packages):
    prop = create_listing(client, seller_token)
    buy(client, seller_token, packages["Basic Listing"], prop["id"])
    client.delete(f"/api/properties/{prop['id']}", headers=auth_header(seller_token))

    history = client.get("/api/payments/transactions", headers=auth_header(seller_token)).json()["data"]
    assert history["pagination"]["total"] == 1
    assert history["transactions"][0]["propertyId"] is None


def test_payment_methods(client):
    data = client.get("/api/payments/methods").json()["data"]
    assert data["upi"]["enabled"] is True
    assert "ifscCode" in data["bankTransfer"]


def test_apply_package_only_touches_promotion_fields():
    now = datetime(2024, 1, 1, 12, 0)
    prop = Property(title="Flat", views=5, featured=False)
    package = AdPackage(id=uuid.uuid4(), name="Featured Listing", duration=30, type=PackageType.FEATURED, price=299)

    apply_package(prop, package, now)

    assert prop.featured is True
    assert prop.package_id == package.id
    assert prop.package_expiry == datetime(2024, 1, 31, 12, 0)
    assert prop.views == 5


def test_basic_package_is_not_featured():
    prop = Property(title="Flat", featured=True)
    package = AdPackage(id=uuid.uuid4(), name="Basic", duration=30, type=PackageType.BASIC, price=0)

    apply_package(prop, package, datetime(2024, 1, 1))

    assert prop.featured is False


def _settled_behind_a_stale_read(client, session_factory, seller_token, packages):
    """Load a pending transaction in one session, then settle it from another."""
    prop = create_listing(client, seller_token)
    created = buy(client, seller_token, packages["Premium Listing"], prop["id"]).json()["data"]
    transaction_id = uuid.UUID(created["transactionId"])

    admin_session = session_factory()
    gateway_session = session_factory()
    stale = get_transaction_or_404(admin_session, transaction_id)
    assert stale.status == TransactionStatus.PENDING

    fresh = get_transaction_or_404(gateway_session, transaction_id)
    assert settle_transaction(gateway_session, fresh) is True
    gateway_session.close()
    return admin_session, stale, transaction_id


def test_stale_admin_cancel_cannot_undo_payment(client, session_factory, seller_token, packages):
    admin_session, stale, transaction_id = _settled_behind_a_stale_read(
        client, session_factory, seller_token, packages
    )
    try:
        with pytest.raises(Conflict):
            update_transaction_status(admin_session, stale, TransactionStatus.CANCELLED, "duplicate order")
    finally:
        admin_session.close()

    check = session_factory()
    try:
        stored = get_transaction_or_404(check, transaction_id)
        assert stored.status == TransactionStatus.PAID
        assert stored.admin_notes is None
    finally:
        check.close()


def test_stale_declined_webhook_cannot_undo_payment(client, session_factory, seller_token, packages):
    admin_session, stale, transaction_id = _settled_behind_a_stale_read(
        client, session_factory, seller_token, packages
    )
    try:
        result = verify_payment(admin_session, stale, {"status": "declined"})
        assert result.status == TransactionStatus.PAID
    finally:
        admin_session.close()

    check = session_factory()
    try:
        assert get_transaction_or_404(check, transaction_id).status == TransactionStatus.PAID
    finally:
        check.close()
