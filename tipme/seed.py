"""
Seed demo accounts
- Creates the tables if they are missing
- Adds a demo barista (handle 'demo-barista') and an admin (handle 'admin')
- Existing accounts (matched by email) are left untouched, so re-running is safe

Usage:
  python -m tipme.seed --db sqlite:///./tipme.db
"""
import argparse
import logging
from typing import List

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from . import models
from .auth import hash_password
from .config import get_settings
from .db import Base

logger = logging.getLogger(__name__)

DEMO_USERS = [
    {
        "email": "barista@example.com",
        "password": "password123",
        "name": "Demo Barista",
        "role": models.Role.BARISTA,
        "handle": "demo-barista",
    },
    {
        "email": "admin@example.com",
        "password": "adminpassword123",
        "name": "Admin",
        "role": models.Role.ADMIN,
        "handle": "admin",
    },
]


def seed(database_url: str) -> List[str]:
    """Create missing demo users and return the emails that were inserted."""
    engine = create_engine(database_url, future=True)
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, future=True)

    created = []
    try:
        with Session() as db:
            for account in DEMO_USERS:
                exists = db.query(models.User).filter(models.User.email == account["email"]).first()
                if exists:
                    continue
                db.add(models.User(
                    email=account["email"],
                    password_hash=hash_password(account["password"]),
                    name=account["name"],
                    role=account["role"],
                    handle=account["handle"],
                ))
                created.append(account["email"])
            db.commit()
    finally:
        engine.dispose()
    for email in created:
        logger.info("seeded %s", email)
    return created


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", default=None, help="SQLAlchemy database URL (defaults to DATABASE_URL)")
    args = parser.parse_args()
    logging.basicConfig(level=get_settings().log_level)
    seed(args.db or get_settings().database_url)


if __name__ == "__main__":
    main()
