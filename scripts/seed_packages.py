"""
scripts/seed_packages.py

Insert the default promotion packages into an empty catalog:

    python -m scripts.seed_packages
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.database import SessionLocal, init_db
from app.services.packages import seed_default_packages


def main():
    init_db()
    db = SessionLocal()
    try:
        added = seed_default_packages(db)
    finally:
        db.close()

    if added:
        print(f"Added {added} default packages.")
    else:
        print("Packages already exist, nothing to do.")


if __name__ == "__main__":
    main()
