from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import Forbidden
from app.models.transaction import Transaction
from app.schemas.common import ApiResponse, paginate
from app.schemas.transaction import (
    TransactionCreate, TransactionCreated, TransactionList, TransactionResponse,
    PaymentVerification, PaymentVerified,
)
from app.api.deps import CurrentIdentity, get_current_identity, parse_id
from app.services import packages as package_service

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/transaction", response_model=ApiResponse[TransactionCreated])
async def create_transaction(
    request: TransactionCreate,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
):
    """Buy a package, optionally for one of the caller's listings. Free packages settle immediately."""
    transaction = package_service.create_transaction(
        db,
        identity,
        package_id=request.package_id,
        property_id=request.property_id,
        payment_method=request.payment_method,
        payment_details=request.payment_details,
    )
    return ApiResponse(data=TransactionCreated(transaction_id=transaction.id, status=transaction.status))


@router.get("/transactions", response_model=ApiResponse[TransactionList])
async def list_my_transactions(
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    query = db.query(Transaction).filter(Transaction.user_id == identity.user_id)
    total = query.count()
    transactions = (
        query.order_by(Transaction.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return ApiResponse(data=TransactionList(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        pagination=paginate(page, limit, total),
    ))


@router.post("/verify", response_model=ApiResponse[PaymentVerified])
async def verify_payment(
    request: PaymentVerification,
    db: Session = Depends(get_db),
    identity: CurrentIdentity = Depends(get_current_identity),
):
    """Gateway confirmation: paymentData.status == "success" marks the transaction paid."""
    transaction = package_service.get_transaction_or_404(db, parse_id(request.transaction_id, "transaction ID"))
    if transaction.user_id != identity.user_id and not identity.is_admin:
        raise Forbidden("You can only verify your own transactions")

    transaction = package_service.verify_payment(db, transaction, request.payment_data)
    return ApiResponse(data=PaymentVerified(status=transaction.status))


@router.get("/methods", response_model=ApiResponse[dict])
async def get_payment_methods():
    return ApiResponse(data={
        "upi": {
            "enabled": True,
            "upiId": settings.UPI_ID,
        },
        "bankTransfer": {
            "enabled": True,
            "bankName": settings.BANK_NAME,
            "accountNumber": settings.BANK_ACCOUNT_NUMBER,
            "ifscCode": settings.BANK_IFSC,
            "accountHolder": settings.BANK_ACCOUNT_HOLDER,
        },
        "online": {
            "enabled": True,
            "gateways": ["razorpay", "paytm", "phonepe"],
        },
    })
