from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from app.core.database import get_db
from app.models.package import AdPackage
from app.schemas.common import ApiResponse, MessageData
from app.schemas.package import PackageCreate, PackageUpdate, PackageResponse
from app.api.deps import CurrentIdentity, require_admin, parse_id
from app.services import packages as package_service

router = APIRouter(prefix="/packages", tags=["Packages"])


@router.get("", response_model=ApiResponse[List[PackageResponse]])
async def list_packages(
    db: Session = Depends(get_db),
    category: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
):
    """Active packages, cheapest first within each tier."""
    query = db.query(AdPackage).filter(AdPackage.active.is_(True))
    if category:
        query = query.filter(AdPackage.category == category)
    if location:
        query = query.filter(AdPackage.location == location)
    packages = query.order_by(AdPackage.type.asc(), AdPackage.price.asc()).all()
    return ApiResponse(data=[PackageResponse.model_validate(p) for p in packages])


@router.post("/initialize", response_model=ApiResponse[MessageData])
async def initialize_packages(
    db: Session = Depends(get_db),
    _: CurrentIdentity = Depends(require_admin),
):
    added = package_service.seed_default_packages(db)
    message = "Packages initialized successfully" if added else "Packages already initialized"
    return ApiResponse(data=MessageData(message=message), message=message)


@router.get("/{package_id}", response_model=ApiResponse[PackageResponse])
async def get_package(package_id: str, db: Session = Depends(get_db)):
    package = package_service.get_package_or_404(db, parse_id(package_id, "package ID"))
    return ApiResponse(data=PackageResponse.model_validate(package))


@router.post("", response_model=ApiResponse[PackageResponse], status_code=status.HTTP_201_CREATED)
async def create_package(
    package_data: PackageCreate,
    db: Session = Depends(get_db),
    _: CurrentIdentity = Depends(require_admin),
):
    package = AdPackage(**package_data.model_dump())
    db.add(package)
    db.commit()
    db.refresh(package)
    return ApiResponse(data=PackageResponse.model_validate(package), message="Package created successfully")


@router.put("/{package_id}", response_model=ApiResponse[PackageResponse])
async def update_package(
    package_id: str,
    update: PackageUpdate,
    db: Session = Depends(get_db),
    _: CurrentIdentity = Depends(require_admin),
):
    package = package_service.get_package_or_404(db, parse_id(package_id, "package ID"))
    changes = {k: v for k, v in update.model_dump(exclude_unset=True).items() if v is not None}
    package = package_service.update_package(db, package, changes)
    return ApiResponse(data=PackageResponse.model_validate(package), message="Package updated successfully")


@router.delete("/{package_id}", response_model=ApiResponse[MessageData])
async def delete_package(
    package_id: str,
    db: Session = Depends(get_db),
    _: CurrentIdentity = Depends(require_admin),
):
    package = package_service.get_package_or_404(db, parse_id(package_id, "package ID"))
    package_service.delete_package(db, package)
    return ApiResponse(data=MessageData(message="Package deleted successfully"))
