"""
scripts/create_admin.py

Run this once from your project root to create the first admin account:

    python -m scripts.create_admin

You will be prompted for name, email, phone, and password.
Registration through the API never grants the admin role, so this is
the only way to bootstrap one.
"""

import sys
import os

# Make sure app is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.database import SessionLocal, init_db
from app.models.user import User, UserRole, UserStatus
from app.schemas.user import normalize_phone
from app.utils.auth import get_password_hash


def create_admin():
    print("\n── Create Admin User ─────────────────────")

    name     = input("Full name:       ").strip()
    email    = input("Email:           ").strip().lower()
    phone    = input("Phone (+91...):  ").strip()
    password = input("Password:        ").strip()

    if not all([name, email, phone, password]):
        print("All fields are required.")
        sys.exit(1)

    if len(password) < 6:
        print("Password must be at least 6 characters.")
        sys.exit(1)

    try:
        phone = normalize_phone(phone)
    except ValueError as e:
        print(e)
        sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == email).first():
            print(f"Email '{email}' is already registered.")
            sys.exit(1)

        if db.query(User).filter(User.phone == phone).first():
            print(f"Phone '{phone}' is already registered.")
            sys.exit(1)

        admin = User(
            name=name,
            email=email,
            phone=phone,
            password_hash=get_password_hash(password),
            role=UserRole.ADMIN,
            status=UserStatus.ACTIVE,
        )

        db.add(admin)
        db.commit()
        db.refresh(admin)

        print("\nAdmin user created successfully!")
        print(f"   ID:    {admin.id}")
        print(f"   Name:  {admin.name}")
        print(f"   Email: {admin.email}")
        print("\nLog in through POST /api/auth/login.\n")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    create_admin()
