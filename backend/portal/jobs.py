"""Command-line jobs for cron and first-time setup.

    portal-expire-subscriptions
    portal-create-admin admin@example.com 's3cret'
"""

import argparse
import logging
import sys

from portal.config import settings
from portal.database import Base, SessionLocal, engine
from portal.exceptions import PortalError
from portal.models.profile import ROLE_ADMIN
from portal.services import profile_service, subscription_service
import portal.models  # noqa: F401

logger = logging.getLogger("portal.jobs")


def _setup() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    Base.metadata.create_all(bind=engine)


def expire_subscriptions(argv: list[str] | None = None) -> int:
    """Run the expiry sweep once. Meant to be scheduled (e.g. hourly cron)."""
    argparse.ArgumentParser(description=expire_subscriptions.__doc__).parse_args(argv)
    _setup()
    db = SessionLocal()
    try:
        count = subscription_service.expire_sweep(db)
    finally:
        db.close()
    print(f"Expired {count} subscription(s)")
    return 0


def create_admin(argv: list[str] | None = None) -> int:
    """Create an approved admin account."""
    parser = argparse.ArgumentParser(description=create_admin.__doc__)
    parser.add_argument("email")
    parser.add_argument("password")
    args = parser.parse_args(argv)

    _setup()
    db = SessionLocal()
    try:
        profile = profile_service.register_user(db, args.email, args.password, role=ROLE_ADMIN)
    except PortalError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()
    print(f"Admin {profile.email} created ({profile.user_id})")
    return 0


def expire_main() -> None:
    sys.exit(expire_subscriptions())


def create_admin_main() -> None:
    sys.exit(create_admin())
