#!/usr/bin/env python3
"""
Create a dashboard user, or reset the password of an existing one.

Usage (from the project root):
    python3 -m scripts.create_user --org wd-logistics --email admin@example.com \
        --name "Fleet Admin" --role admin --password 'secret' --dry-run
    python3 -m scripts.create_user --org wd-logistics --email admin@example.com \
        --name "Fleet Admin" --role admin --password 'secret'

Uses DATABASE_URL (or the DB_* settings) from the environment / .env.
"""
import argparse
import sys

from app import models  # noqa: F401
from app.database import Base, engine, session_scope
from app.models.user import User
from app.services.passwords import hash_password
from app.services.permissions import ROLES


def upsert_user(db, *, organization_id: str, email: str, name: str, role: str, password: str) -> tuple[User, bool]:
    normalized_email = email.strip().lower()
    user = db.query(User).filter(User.email == normalized_email).first()
    created = user is None
    if created:
        user = User(organization_id=organization_id, email=normalized_email)
        db.add(user)

    user.name = name
    user.role = role
    user.is_active = True
    user.password_hash = hash_password(password)
    return user, created


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--org", required=True, help="organization id the user belongs to")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--role", default="staff")
    parser.add_argument("--password", required=True)
    parser.add_argument("--dry-run", action="store_true", help="show the change without committing")
    args = parser.parse_args(argv)

    role = args.role.strip().lower()
    if role not in ROLES:
        print(f"ERROR: role must be one of {', '.join(ROLES)}", file=sys.stderr)
        return 1

    Base.metadata.create_all(bind=engine)
    with session_scope() as db:
        user, created = upsert_user(
            db,
            organization_id=args.org,
            email=args.email,
            name=args.name,
            role=role,
            password=args.password,
        )
        action = "create" if created else "update"
        if args.dry_run:
            print(f"[dry-run] would {action} {user.email} role={role} org={args.org}")
            db.rollback()
            return 0
        db.flush()
        print(f"{action}d {user.email} role={role} org={args.org} id={user.id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
