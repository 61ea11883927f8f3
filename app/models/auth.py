from sqlalchemy import Column, String, DateTime
from app.models.base import BaseModel

class OtpCode(BaseModel):
    __tablename__ = "otp_codes"

    phone = Column(String(20), index=True, nullable=False)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False)

class RevokedToken(BaseModel):
    """Denylist entry for a token logged out before its natural expiry."""
    __tablename__ = "revoked_tokens"

    jti = Column(String(64), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
