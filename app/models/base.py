import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Uuid
from app.core.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column in the schema stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(Base):
    __abstract__ = True

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)
