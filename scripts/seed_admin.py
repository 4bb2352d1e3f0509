"""
Create (or reset) a super admin.

    python scripts/seed_admin.py --email admin@stableride.com --password '...'
"""
import argparse
import asyncio
import logging

from sqlalchemy import select

from stableride.database import AsyncSessionLocal
from stableride.models.admin import AdminUser
from stableride.services.auth import hash_password

logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
logger = logging.getLogger("seed_admin")


async def seed(email: str, password: str, first_name: str, last_name: str, reset: bool) -> None:
    async with AsyncSessionLocal() as db:
        admin = (await db.execute(select(AdminUser).where(AdminUser.email == email))).scalar_one_or_none()
        if admin and not reset:
            logger.info("Admin %s already exists (use --reset to change the password)", email)
            return
        if admin is None:
            admin = AdminUser(email=email, first_name=first_name, last_name=last_name, permissions=[])
            db.add(admin)
        admin.password_hash = hash_password(password)
        admin.role = "SUPER_ADMIN"
        admin.is_active = True
        await db.commit()
        logger.info("Super admin %s ready", email)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--first-name", default="Super")
    parser.add_argument("--last-name", default="Admin")
    parser.add_argument("--reset", action="store_true")
    args = parser.parse_args()
    if len(args.password) < 8:
        parser.error("password must be at least 8 characters")
    asyncio.run(seed(args.email.lower(), args.password, args.first_name, args.last_name, args.reset))


if __name__ == "__main__":
    main()
