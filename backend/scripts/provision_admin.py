"""
BakeryCore - Provision Dashboard Admin
======================================
Creates (or re-activates) an admin user record and prints a bearer token
signed with JWT_SECRET, for environments without the identity provider.

Usage:
    python scripts/provision_admin.py owner@example.com "Owner Name"
"""

import asyncio
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from core.auth import create_token
from core.database import client, db
from core.models import UserRole


async def provision_admin(email: str, name: str) -> dict:
    email = email.strip().lower()
    now = datetime.now(timezone.utc).isoformat()

    user = await db.users.find_one({"email": email}, {"_id": 0})
    if user:
        await db.users.update_one(
            {"email": email},
            {"$set": {"role": UserRole.ADMIN.value, "is_active": True, "archived": False, "updated_at": now}}
        )
        user.update({"role": UserRole.ADMIN.value, "is_active": True})
        print(f"⚠️  User {email} exists - promoted to admin")
    else:
        user = {
            "id": str(uuid.uuid4()),
            "email": email,
            "name": name,
            "role": UserRole.ADMIN.value,
            "is_active": True,
            "archived": False,
            "created_at": now,
            "updated_at": now,
        }
        await db.users.insert_one(user)
        user.pop("_id", None)
        print(f"✅ Admin {email} created")

    return user


async def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    email = sys.argv[1]
    name = sys.argv[2] if len(sys.argv) > 2 else email.split("@")[0]

    user = await provision_admin(email, name)
    token = create_token(user["id"], user["email"], user["role"])

    print("\nBearer token:")
    print(token)

    client.close()


if __name__ == "__main__":
    asyncio.run(main())
