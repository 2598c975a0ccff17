"""Create an account directly in the database.

Usage:
    python -m schoolmail.create_admin --name "Office" --email office@example.org --password secret
"""
import argparse
import sys

from sqlalchemy.exc import IntegrityError

from schoolmail.auth.passwords import hash_password
from schoolmail.core.config import load_settings
from schoolmail.database import Base, build_engine, build_session_factory
from schoolmail.models import email_log, school_class  # noqa: F401  registers tables
from schoolmail.models.user import DEFAULT_ROLE, USER_ROLES, User


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--name', required=True)
    parser.add_argument('--email', required=True)
    parser.add_argument('--password', required=True)
    parser.add_argument('--role', choices=USER_ROLES, default=DEFAULT_ROLE)
    return parser.parse_args(argv)


def create_user(session_factory, name: str, email: str, password: str, role: str) -> User | None:
    db = session_factory()
    try:
        if db.query(User).filter(User.email == email).first():
            return None
        user = User(name=name, email=email, hashed_password=hash_password(password), role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    except IntegrityError:
        db.rollback()
        return None
    finally:
        db.close()


def main(argv: list[str] | None = None, database_url: str | None = None) -> None:
    args = parse_args(argv)
    engine = build_engine(database_url or load_settings().database_url)
    Base.metadata.create_all(bind=engine)

    user = create_user(build_session_factory(engine), args.name, args.email, args.password, args.role)
    if user is None:
        print(f'Email already registered: {args.email}', file=sys.stderr)
        sys.exit(1)
    print(f'Created {user.role} {user.email} (id {user.id})')


if __name__ == '__main__':
    main()
