from sqlalchemy import Column, String, Integer, Float, Boolean, Text, Enum, ForeignKey, JSON, DateTime, Uuid
from sqlalchemy.orm import relationship
from app.models.base import BaseModel
import enum

class PriceType(str, enum.Enum):
    SALE = "sale"
    RENT = "rent"

class PropertyStatus(str, enum.Enum):
    ACTIVE = "active"
    SOLD = "sold"
    RENTED = "rented"
    INACTIVE = "inactive"

class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class Property(BaseModel):
    __tablename__ = "properties"

    # Basic Info
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    price_type = Column(Enum(PriceType), nullable=False)
    property_type = Column(String(50), nullable=False, index=True)
    sub_category = Column(String(50), nullable=True)

    # Location
    area = Column(String(100), nullable=True, index=True)
    address = Column(String(255), nullable=True)
    landmark = Column(String(100), nullable=True)

    # Details
    specifications = Column(JSON, default=dict)  # bedrooms, bathrooms, area, floor...
    amenities = Column(JSON, default=list)
    contact_info = Column(JSON, default=dict)

    # Listing lifecycle
    status = Column(Enum(PropertyStatus), nullable=False, default=PropertyStatus.ACTIVE)

    # Approval workflow
    approval_status = Column(Enum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING, index=True)
    rejection_reason = Column(Text, nullable=True)
    admin_comments = Column(Text, nullable=True)
    reviewed_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    # Promotion (only written by package activation)
    featured = Column(Boolean, nullable=False, default=False)
    package_id = Column(Uuid(as_uuid=True), ForeignKey("ad_packages.id", ondelete="SET NULL"), nullable=True)
    package_expiry = Column(DateTime, nullable=True)

    # Engagement
    views = Column(Integer, nullable=False, default=0)
    inquiries = Column(Integer, nullable=False, default=0)

    # Relationships
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    owner = relationship(
        "User",
        back_populates="properties",
        foreign_keys=[owner_id]
    )
    images = relationship(
        "PropertyImage",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="PropertyImage.display_order",
    )

    @property
    def location(self) -> dict:
        return {"area": self.area, "address": self.address, "landmark": self.landmark}

    @property
    def image_urls(self) -> list:
        return [img.image_url for img in self.images]

class PropertyImage(BaseModel):
    __tablename__ = "property_images"

    property_id = Column(Uuid(as_uuid=True), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    image_url = Column(String(255), nullable=False)
    is_main = Column(Boolean, default=False)
    display_order = Column(Integer, default=0)

    property = relationship("Property", back_populates="images")
