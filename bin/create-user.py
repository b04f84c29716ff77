"""Create a user account in the JSON user store.

Usage: python bin/create-user.py <identifier>

The password is read interactively and never echoed. The store path comes
from AUTH_USERS_FILE (default data/users.json).
"""

import asyncio
import getpass
import sys
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from common.auth import AuthError, FileUserStore, InMemorySessionStore, SessionAuthenticator, get_hasher
from common.auth.settings import AuthSettings


async def main() -> None:
    if len(sys.argv) != 2:
        print(f"Usage: {sys.argv[0]} <identifier>")
        sys.exit(1)

    identifier = sys.argv[1]
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Confirm password: "):
        print("Error: passwords do not match")
        sys.exit(1)

    auth_settings = AuthSettings()
    authenticator = SessionAuthenticator(
        FileUserStore(auth_settings.users_file),
        InMemorySessionStore(),
        password_hasher=get_hasher(auth_settings.password_hasher, cost=auth_settings.hash_cost),
        settings=auth_settings,
    )

    try:
        record = await authenticator.register(identifier, password)
    except AuthError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"User created: {record.identifier} in {auth_settings.users_file}")


if __name__ == "__main__":
    asyncio.run(main())
