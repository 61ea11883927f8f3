import logging
from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, status
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import Conflict, Forbidden, NotFound, ValidationError, AuthRequired
from app.models.auth import OtpCode, RevokedToken
from app.models.base import utcnow
from app.models.user import User, UserRole, default_preferences
from app.schemas.common import ApiResponse, MessageData
from app.schemas.user import (
    UserCreate, UserLogin, SendOtpRequest, VerifyOtpRequest, ProfileUpdate,
    TokenResponse, UserSummary, UserResponse,
)
from app.utils.auth import get_password_hash, verify_password, issue_token
from app.api.deps import CurrentIdentity, get_current_identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

# Same message for unknown account and wrong password
INVALID_CREDENTIALS = "Invalid credentials"


def _token_payload(user: User) -> TokenResponse:
    return TokenResponse(token=issue_token(user), user=UserSummary.model_validate(user))


@router.post("/register", response_model=ApiResponse[TokenResponse], status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: Session = Depends(get_db)):
    existing = db.query(User).filter(
        or_(User.email == user_data.email.lower(), User.phone == user_data.phone)
    ).first()
    if existing:
        raise Conflict("User with this email or phone already exists")

    user = User(
        name=user_data.name.strip(),
        email=user_data.email.lower(),
        phone=user_data.phone,
        password_hash=get_password_hash(user_data.password),
        role=user_data.user_type,
        preferences=default_preferences(),
        favorites=[],
    )
    if user_data.user_type == UserRole.AGENT:
        user.agent_profile = {
            "experience": user_data.experience or 0,
            "specializations": user_data.specializations or [],
            "rating": 0,
            "reviewCount": 0,
            "aboutMe": "",
            "serviceAreas": user_data.service_areas or [],
        }

    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered %s %s", user.role.value, user.id)

    return ApiResponse(data=_token_payload(user), message="User registered successfully")


@router.post("/login", response_model=ApiResponse[TokenResponse])
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    if not credentials.email and not credentials.phone:
        raise ValidationError("Email or phone number is required")

    query = db.query(User)
    if credentials.email and credentials.phone:
        query = query.filter(or_(User.email == credentials.email.lower(), User.phone == credentials.phone))
    elif credentials.email:
        query = query.filter(User.email == credentials.email.lower())
    else:
        query = query.filter(User.phone == credentials.phone)

    # Admin console logs in with userType=admin
    if credentials.user_type:
        query = query.filter(User.role == credentials.user_type)

    user = query.first()
    if not user or not verify_password(credentials.password, user.password_hash):
        logger.warning("Failed login for %s", credentials.email or credentials.phone)
        raise AuthRequired(INVALID_CREDENTIALS)

    if not user.is_active:
        raise Forbidden("Account is deactivated")

    return ApiResponse(data=_token_payload(user), message="Login successful")


@router.post("/send-otp", response_model=ApiResponse[MessageData])
async def send_otp(request: SendOtpRequest, db: Session = Depends(get_db)):
    """
    Start phone login. The code is the configured demo code and is only
    written to the log until an SMS provider is integrated.
    """
    db.query(OtpCode).filter(OtpCode.phone == request.phone).delete()
    db.add(OtpCode(
        phone=request.phone,
        code=settings.OTP_DEMO_CODE,
        expires_at=utcnow() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
    ))
    db.commit()

    logger.info("OTP for %s: %s", request.phone, settings.OTP_DEMO_CODE)
    return ApiResponse(data=MessageData(message="OTP sent successfully"))


@router.post("/verify-otp", response_model=ApiResponse[TokenResponse])
async def verify_otp(request: VerifyOtpRequest, db: Session = Depends(get_db)):
    record = db.query(OtpCode).filter(
        OtpCode.phone == request.phone,
        OtpCode.code == request.otp,
        OtpCode.expires_at > utcnow(),
    ).first()
    if not record:
        raise ValidationError("Invalid or expired OTP")

    db.delete(record)

    user = db.query(User).filter(User.phone == request.phone).first()
    if not user:
        # First phone login creates a seller account with no email or password
        user = User(
            name=request.phone,
            email=None,
            phone=request.phone,
            password_hash=None,
            role=UserRole.SELLER,
            preferences=default_preferences(),
            favorites=[],
        )
        db.add(user)
        logger.info("Created seller account for phone %s via OTP", request.phone)

    db.commit()
    db.refresh(user)

    if not user.is_active:
        raise Forbidden("Account is deactivated")

    return ApiResponse(data=_token_payload(user), message="OTP verified successfully")


@router.get("/profile", response_model=ApiResponse[UserResponse])
async def get_profile(
    identity: CurrentIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.id == identity.user_id).first()
    if not user:
        raise NotFound("User not found")
    return ApiResponse(data=UserResponse.model_validate(user))


@router.put("/profile", response_model=ApiResponse[UserResponse])
async def update_profile(
    update: ProfileUpdate,
    identity: CurrentIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Password, role and account status are not editable here."""
    user = db.query(User).filter(User.id == identity.user_id).first()
    if not user:
        raise NotFound("User not found")

    changes = update.model_dump(exclude_unset=True)
    if update.agent_profile is not None:
        # Stored with the same camelCase keys registration writes
        changes["agent_profile"] = update.agent_profile.model_dump(by_alias=True)

    if changes.get("email") and changes["email"].lower() != (user.email or ""):
        email = changes["email"].lower()
        if db.query(User).filter(User.email == email, User.id != user.id).first():
            raise Conflict("Email already registered")
        changes["email"] = email
    if changes.get("phone") and changes["phone"] != user.phone:
        if db.query(User).filter(User.phone == changes["phone"], User.id != user.id).first():
            raise Conflict("Phone number already registered")

    for field, value in changes.items():
        # Null never clears a login identifier
        if value is None and field in ("name", "email", "phone"):
            continue
        setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return ApiResponse(data=UserResponse.model_validate(user), message="Profile updated successfully")


@router.post("/logout", response_model=ApiResponse[MessageData])
async def logout(
    identity: CurrentIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Revoke the presented token until it would have expired anyway."""
    if identity.jti:
        expires_at = (
            datetime.fromtimestamp(identity.exp, tz=timezone.utc).replace(tzinfo=None)
            if identity.exp else utcnow() + timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
        )
        # Entries outlive their token only until its exp
        db.query(RevokedToken).filter(RevokedToken.expires_at <= utcnow()).delete(synchronize_session=False)
        db.add(RevokedToken(jti=identity.jti, expires_at=expires_at))
        db.commit()
    return ApiResponse(data=MessageData(message="Logout successful"))
