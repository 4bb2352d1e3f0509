"""
Create a driver account, or promote an existing customer to driver.

    python scripts/seed_driver.py --email driver@stableride.com --password '...' \
        --vehicle make=Mercedes-Benz model=S-Class plate="LUX 123"
"""
import argparse
import asyncio
import logging

from sqlalchemy import select

from stableride.database import AsyncSessionLocal
from stableride.models.user import User
from stableride.services.auth import hash_password

logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
logger = logging.getLogger("seed_driver")


def parse_vehicle(pairs: list[str]) -> dict:
    vehicle = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"expected key=value, got {pair!r}")
        vehicle[key] = value
    return vehicle


async def seed(args: argparse.Namespace, vehicle: dict) -> None:
    async with AsyncSessionLocal() as db:
        user = (await db.execute(select(User).where(User.email == args.email))).scalar_one_or_none()
        if user is None:
            if not args.password:
                raise SystemExit("--password is required for a new driver")
            user = User(
                email=args.email,
                password_hash=hash_password(args.password),
                first_name=args.first_name,
                last_name=args.last_name,
                phone=args.phone,
            )
            db.add(user)
            logger.info("Creating driver %s", args.email)
        else:
            logger.info("Promoting existing user %s to driver", args.email)

        user.is_driver = True
        user.driver_status = user.driver_status or "OFFLINE"
        if vehicle:
            user.vehicle_info = {**(user.vehicle_info or {}), **vehicle}
        await db.commit()
        logger.info("Driver %s ready (status=%s)", args.email, user.driver_status)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password")
    parser.add_argument("--first-name", default="Stable")
    parser.add_argument("--last-name", default="Driver")
    parser.add_argument("--phone")
    parser.add_argument("--vehicle", nargs="*", default=[], metavar="KEY=VALUE")
    args = parser.parse_args()
    args.email = args.email.lower()
    try:
        vehicle = parse_vehicle(args.vehicle)
    except ValueError as e:
        parser.error(str(e))
    asyncio.run(seed(args, vehicle))


if __name__ == "__main__":
    main()
