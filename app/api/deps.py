from dataclasses import dataclass
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.core.errors import AuthRequired, InvalidToken, Forbidden, ValidationError
from app.models.auth import RevokedToken
from app.models.user import UserRole
from app.utils.auth import decode_token
from typing import Optional
from uuid import UUID

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentIdentity:
    """Claims attached to the request once the bearer token has been verified."""
    user_id: UUID
    role: UserRole
    email: Optional[str]
    jti: Optional[str] = None
    exp: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def parse_id(raw: str, label: str = "ID") -> UUID:
    """Path ids are taken as strings so a malformed one is a 400, not a 422."""
    try:
        return UUID(str(raw))
    except (ValueError, TypeError):
        raise ValidationError(f"Invalid {label}")


def _identity_from_token(db: Session, token: str) -> CurrentIdentity:
    payload = decode_token(token)
    if not payload:
        raise InvalidToken()

    try:
        identity = CurrentIdentity(
            user_id=UUID(payload["sub"]),
            role=UserRole(payload["role"]),
            email=payload.get("email"),
            jti=payload.get("jti"),
            exp=payload.get("exp"),
        )
    except ValueError:
        raise InvalidToken()

    if identity.jti and db.query(RevokedToken).filter(RevokedToken.jti == identity.jti).first():
        raise InvalidToken()

    return identity


async def get_current_identity(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentIdentity:
    if not credentials or not credentials.credentials:
        raise AuthRequired()
    return _identity_from_token(db, credentials.credentials)


async def get_optional_identity(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[CurrentIdentity]:
    if not credentials or not credentials.credentials:
        return None
    try:
        return _identity_from_token(db, credentials.credentials)
    except InvalidToken:
        return None


def require_roles(*allowed_roles: str, detail: Optional[str] = None):
    allowed = {UserRole(role) for role in allowed_roles}

    async def role_checker(
        identity: CurrentIdentity = Depends(get_current_identity)
    ) -> CurrentIdentity:
        if identity.role not in allowed:
            raise Forbidden(detail or f"Access denied. Required roles: {', '.join(allowed_roles)}")
        return identity
    return role_checker


require_admin = require_roles("admin", detail="Admin access required")
require_seller_or_agent = require_roles("seller", "agent", "admin", detail="Seller or agent access required")
