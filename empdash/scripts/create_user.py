"""
Create a registered user (e.g. a named admin). Run from project root:
  python -m empdash.scripts.create_user USERNAME PASSWORD [role] [--email E] [--name N]
Example:
  python -m empdash.scripts.create_user budi secret-pass admin --name "Budi Santoso"
"""
import argparse
import sys

from empdash.core.config import get_settings
from empdash.schemas.users import RegisteredUser
from empdash.services.identity_store import get_identity_store
from empdash.services.users import add_registered_user


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Create an EmpDash user without the registration UI.")
    parser.add_argument("username", help=f"Username (at least {settings.USERNAME_MIN_LENGTH} chars)")
    parser.add_argument("password", help=f"Password (at least {settings.PASSWORD_MIN_LENGTH} chars)")
    parser.add_argument("role", nargs="?", default="user", choices=["user", "admin", "superadmin"])
    parser.add_argument("--email", default="")
    parser.add_argument("--name", default="")
    args = parser.parse_args(argv)

    username = args.username.strip()
    if len(username) < settings.USERNAME_MIN_LENGTH or len(username) > 255:
        print("Invalid username length.", file=sys.stderr)
        return 1
    if len(args.password) < settings.PASSWORD_MIN_LENGTH or len(args.password) > 128:
        print(f"Password must be {settings.PASSWORD_MIN_LENGTH}-128 characters.", file=sys.stderr)
        return 1

    result = add_registered_user(
        get_identity_store(),
        RegisteredUser(
            username=username,
            password=args.password,
            email=args.email or f"{username}@example.com",
            name=args.name or username,
            role=args.role,
        ),
    )
    if not result.success:
        print(f"Cannot create '{username}': {result.message}.", file=sys.stderr)
        return 1
    print(f"Created user '{username}' with role '{args.role}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
