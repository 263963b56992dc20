"""CLI tool for admin operations.

Usage:
    python -m authcore.cli create-admin
    python -m authcore.cli generate-key
"""

import sys
import getpass

from sqlmodel import Session

from authcore.database import engine, create_db_and_tables
from authcore.services import vault
from authcore.services.auth import create_first_admin
from authcore.services.encryption import generate_key
from authcore.services.errors import BootstrapClosed
from authcore.utils.logging import setup_logging


def create_admin():
    """Seed the first admin user. Refused once any user exists."""
    setup_logging()
    create_db_and_tables()

    email = input("Email: ").strip().lower()
    if not email or "@" not in email:
        print("A valid email is required.")
        sys.exit(1)

    with Session(engine) as session:
        if vault.count_users(session) > 0:
            print("Users already exist; the first admin can only be created once.")
            sys.exit(1)

    password = getpass.getpass("Password: ")
    password_confirm = getpass.getpass("Confirm password: ")
    if password != password_confirm:
        print("Passwords do not match.")
        sys.exit(1)
    if len(password) < 8:
        print("Password must be at least 8 characters.")
        sys.exit(1)

    with Session(engine) as session:
        try:
            outcome = create_first_admin(session, email, password)
        except BootstrapClosed as e:
            print(e.detail)
            sys.exit(1)

    print(f"\nAdmin user '{email}' created successfully (id {outcome.user['id']}).")
    print("Log in and enable 2FA or register a passkey from your account settings.")


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m authcore.cli <command>")
        print("Commands: create-admin, generate-key")
        sys.exit(1)

    command = sys.argv[1]
    if command == "create-admin":
        create_admin()
    elif command == "generate-key":
        print(generate_key())
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
