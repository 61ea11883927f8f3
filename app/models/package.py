from sqlalchemy import Column, String, Integer, Float, Boolean, Text, Enum, JSON
from app.models.base import BaseModel
import enum

class PackageType(str, enum.Enum):
    BASIC = "basic"
    FEATURED = "featured"
    PREMIUM = "premium"

# Package types that put the featured badge on a listing
FEATURED_PACKAGE_TYPES = {PackageType.FEATURED, PackageType.PREMIUM}

class AdPackage(BaseModel):
    __tablename__ = "ad_packages"

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False, default=0)
    duration = Column(Integer, nullable=False)  # days
    features = Column(JSON, default=list)
    type = Column(Enum(PackageType), nullable=False, default=PackageType.BASIC)
    category = Column(String(50), nullable=True, default="property")
    location = Column(String(100), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    @property
    def is_free(self) -> bool:
        return not self.price
