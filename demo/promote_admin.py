#!/usr/bin/env python3
"""Grant a role to an existing user. Run on the server.

    python demo/promote_admin.py admin@example.com
    python demo/promote_admin.py guide@example.com --role lead-guide
"""
import argparse
import asyncio

from sqlalchemy import update

from webauth.database import AsyncSessionLocal, engine
from webauth.models.user import User, UserRole


async def promote(email: str, role: UserRole):
    async with AsyncSessionLocal() as s:
        r = await s.execute(
            update(User)
            .where(User.email == email.lower())
            .values(role=role)
        )
        await s.commit()
        print(f"Rows updated: {r.rowcount}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("email")
    parser.add_argument("--role", default=UserRole.ADMIN.value,
                        choices=[r.value for r in UserRole])
    args = parser.parse_args()
    asyncio.run(promote(args.email, UserRole(args.role)))
