#!/usr/bin/env python3
"""
Create the first super admin.

Super admins can only be created by other super admins through the API, so the
very first one is bootstrapped here:

    python scripts/create_super_admin.py --name "Root" --email root@carespot.com --phone 9876543210
"""

import argparse
import asyncio
import getpass

from carespot.core.exceptions import CarespotError
from carespot.core.logger import logger
from carespot.db.session import async_session, engine, init_db
from carespot.schemas.user import AdminLevel, Role, UserCreate
from carespot.services.user_service import UserService


async def create_super_admin(name: str, email: str, phone: str, password: str):
    await init_db()
    async with async_session() as session:
        service = UserService(session)
        user = await service.create_identity(UserCreate(
            name=name,
            email=email,
            phone=phone,
            password=password,
            role=Role.ADMIN,
            admin_level=AdminLevel.SUPER_ADMIN,
        ))
    await engine.dispose()
    return user


def main():
    parser = argparse.ArgumentParser(description="Create a Carespot super admin")
    parser.add_argument("--name", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--phone", required=True)
    parser.add_argument("--password", help="prompted for when omitted")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    try:
        user = asyncio.run(create_super_admin(args.name, args.email, args.phone, password))
    except CarespotError as exc:
        logger.error(f"Could not create super admin: {exc.message}")
        raise SystemExit(1)
    print(f"✅ Super admin created: {user.email} ({user.id})")


if __name__ == "__main__":
    main()
