from pydantic import Field, field_validator
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime
from app.models.transaction import TransactionStatus
from app.schemas.common import CamelModel, Pagination


class TransactionCreate(CamelModel):
    package_id: str
    property_id: Optional[str] = None
    payment_method: str = Field(..., min_length=1, max_length=30)
    payment_details: Dict[str, Any] = {}


class TransactionCreated(CamelModel):
    transaction_id: UUID
    status: TransactionStatus


class TransactionStatusUpdate(CamelModel):
    status: TransactionStatus
    admin_notes: Optional[str] = None


class PaymentVerification(CamelModel):
    transaction_id: str
    payment_data: Optional[Dict[str, Any]] = None


class PaymentVerified(CamelModel):
    status: TransactionStatus


class TransactionResponse(CamelModel):
    id: UUID
    user_id: UUID
    package_id: Optional[UUID] = None
    property_id: Optional[UUID] = None
    amount: float
    payment_method: str
    payment_details: Dict[str, Any] = {}
    status: TransactionStatus
    admin_notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    package_name: Optional[str] = None
    property_title: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("payment_details", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return v or {}


class TransactionList(CamelModel):
    transactions: List[TransactionResponse]
    pagination: Pagination
