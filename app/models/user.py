from sqlalchemy import Column, String, JSON, Enum
from sqlalchemy.orm import relationship
from app.models.base import BaseModel
import enum

class UserRole(str, enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"
    AGENT = "agent"
    ADMIN = "admin"

class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

def default_preferences():
    return {
        "propertyTypes": [],
        "priceRange": {"min": 0, "max": 10000000},
        "locations": [],
    }

class User(BaseModel):
    __tablename__ = "users"

    name = Column(String(100), nullable=False)
    # OTP-only accounts have neither an email nor a password
    email = Column(String(100), unique=True, index=True, nullable=True)
    phone = Column(String(20), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=True)

    role = Column(Enum(UserRole), nullable=False, default=UserRole.BUYER)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE)

    preferences = Column(JSON, default=default_preferences)
    favorites = Column(JSON, default=list)
    agent_profile = Column(JSON, nullable=True)

    properties = relationship(
        "Property",
        back_populates="owner",
        foreign_keys="Property.owner_id",
        cascade="all, delete-orphan",
    )
    transactions = relationship(
        "Transaction",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE
