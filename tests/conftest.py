import os
import tempfile

# Settings are read from the environment at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="property-media-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

import json
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.database import Base, get_db
from app.main import app
from app.models import user, property, package, transaction, auth  # noqa: F401
from app.models.package import AdPackage
from app.models.user import User, UserRole
from app.services.packages import seed_default_packages
from app.utils.auth import get_password_hash, issue_token

# One tiny valid PNG (1x1, transparent)
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def media_root(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "MEDIA_ROOT", str(tmp_path))
    return tmp_path


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # Not used as a context manager: the lifespan would create tables on the real engine
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_user(client, user_type="seller", email="seller@example.com", phone="9876543210", password="secret123"):
    response = client.post("/api/auth/register", json={
        "name": f"Test {user_type.title()}",
        "email": email,
        "phone": phone,
        "password": password,
        "userType": user_type,
    })
    assert response.status_code == 201, response.text
    return response.json()["data"]


def create_listing(client, token, with_image=False, **overrides):
    form = {
        "title": "3BHK Apartment near Sector 14",
        "description": "Spacious flat with parking",
        "price": "4500000",
        "priceType": "sale",
        "propertyType": "apartment",
        "subCategory": "flat",
        "location": json.dumps({"area": "Sector 14", "address": "House 12", "landmark": "Near park"}),
        "specifications": json.dumps({"bedrooms": 3, "bathrooms": 2}),
        "amenities": json.dumps(["parking", "lift"]),
        "contactInfo": json.dumps({"name": "Ravi", "phone": "9876543210"}),
    }
    form.update(overrides)
    files = [("images", ("front.png", PNG_BYTES, "image/png"))] if with_image else None
    response = client.post("/api/properties", data=form, files=files, headers=auth_header(token))
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture()
def seller(client):
    return register_user(client)


@pytest.fixture()
def seller_token(seller):
    return seller["token"]


@pytest.fixture()
def buyer_token(client):
    return register_user(client, user_type="buyer", email="buyer@example.com", phone="9123456780")["token"]


@pytest.fixture()
def admin_user(db):
    admin = User(
        name="Site Admin",
        email="admin@example.com",
        phone="9000000001",
        password_hash=get_password_hash("adminpass"),
        role=UserRole.ADMIN,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


@pytest.fixture()
def admin_token(admin_user):
    return issue_token(admin_user)


@pytest.fixture()
def packages(db):
    seed_default_packages(db)
    return {p.name: str(p.id) for p in db.query(AdPackage).all()}
