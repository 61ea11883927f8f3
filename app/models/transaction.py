from sqlalchemy import Column, String, Float, Text, Enum, ForeignKey, JSON, DateTime, Uuid
from sqlalchemy.orm import relationship
from app.models.base import BaseModel
import enum

class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"

# Statuses that pin a package in the catalog
OPEN_TRANSACTION_STATUSES = (TransactionStatus.PENDING, TransactionStatus.PAID)

class Transaction(BaseModel):
    __tablename__ = "transactions"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    package_id = Column(Uuid(as_uuid=True), ForeignKey("ad_packages.id", ondelete="SET NULL"), nullable=True, index=True)
    property_id = Column(Uuid(as_uuid=True), ForeignKey("properties.id", ondelete="SET NULL"), nullable=True)

    amount = Column(Float, nullable=False)
    payment_method = Column(String(30), nullable=False)
    payment_details = Column(JSON, default=dict)
    status = Column(Enum(TransactionStatus), nullable=False, default=TransactionStatus.PENDING, index=True)
    admin_notes = Column(Text, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    @property
    def package_name(self):
        return self.package.name if self.package else None

    @property
    def property_title(self):
        return self.property.title if self.property else None

    # Declared last: the `property` attribute shadows the builtin for the rest of the class body
    user = relationship("User", back_populates="transactions")
    package = relationship("AdPackage")
    property = relationship("Property")
