from pydantic import Field
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from app.models.package import PackageType
from app.schemas.common import CamelModel


class PackageBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: float = Field(0, ge=0)
    duration: int = Field(..., gt=0)
    features: List[str] = []
    type: PackageType = PackageType.BASIC
    category: Optional[str] = "property"
    location: Optional[str] = None
    active: bool = True


class PackageCreate(PackageBase):
    pass


class PackageUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    duration: Optional[int] = Field(None, gt=0)
    features: Optional[List[str]] = None
    type: Optional[PackageType] = None
    category: Optional[str] = None
    location: Optional[str] = None
    active: Optional[bool] = None


class PackageResponse(PackageBase):
    id: UUID
    created_at: datetime
    updated_at: Optional[datetime] = None
