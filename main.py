#!/usr/bin/env python3
"""
CampusAuth -- administrative command line.

Usage:
  python main.py keygen
  python main.py keygen --format base64
  python main.py create-super-admin --username root --email root@example.edu

keygen prints a fresh RS256 keypair as JWT_PRIVATE_KEY / JWT_PUBLIC_KEY lines
ready to paste into .env. create-super-admin creates the single bootstrap
account; it is the only way to obtain that role and refuses to run twice.

Environment variables:
  DATABASE_URL          SQLAlchemy URL of the user store (default: bundled SQLite file)
  JWT_PRIVATE_KEY       Signing key, required unless DEBUG=true
  JWT_PUBLIC_KEY        Verification key matching JWT_PRIVATE_KEY
"""

import argparse
import getpass
import sys

from auth.errors import IdentityError, KeyConfigurationError
from auth.events import publisher_from_settings
from auth.keys import export_der_base64, generate_keypair
from auth.models import Registration
from auth.passwords import MAX_PASSWORD_BYTES, BcryptPasswordHasher
from auth.service import AuthenticationService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings

_MIN_PASSWORD_LENGTH = 8


def _env_line(name: str, value: str) -> str:
    """Render one .env assignment. PEM newlines are escaped so the value stays on one line."""
    return f'{name}="{value.strip()}"'.replace("\n", "\\n")


def _cmd_keygen(args: argparse.Namespace) -> int:
    keypair = generate_keypair(args.bits)
    if args.format == "base64":
        private_value, public_value = export_der_base64(keypair)
    else:
        private_value, public_value = keypair.private_pem, keypair.public_pem
    print(_env_line("JWT_PRIVATE_KEY", private_value))
    print(_env_line("JWT_PUBLIC_KEY", public_value))
    return 0


def _read_password() -> str | None:
    password = getpass.getpass("  Password: ")
    if len(password) < _MIN_PASSWORD_LENGTH:
        print(f"  [!] Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
        return None
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded.")
        return None
    if getpass.getpass("  Confirm password: ") != password:
        print("  [!] Passwords do not match.")
        return None
    return password


def _cmd_create_super_admin(args: argparse.Namespace) -> int:
    settings = get_settings()
    password = _read_password()
    if password is None:
        return 1

    store = UserStore(settings.database_url)
    events = publisher_from_settings(settings)
    try:
        service = AuthenticationService(
            store,
            BcryptPasswordHasher(rounds=settings.bcrypt_rounds),
            TokenService.from_settings(settings),
            events=events,
        )
        user = service.bootstrap_super_admin(
            Registration(
                username=args.username,
                email=args.email,
                password=password,
                name=args.name,
                surname=args.surname,
            )
        )
    except IdentityError as e:
        print(f"  [!] {e.message}")
        return 1
    finally:
        close = getattr(events, "close", None)
        if close is not None:
            close()
        store.close()

    print(f"  Created {user.role.display_name} '{user.username}' (id {user.id}).")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="campusauth",
        description="CampusAuth administrative commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py keygen >> .env
  python main.py keygen --format base64
  python main.py create-super-admin --username root --email root@example.edu
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    keygen = sub.add_parser("keygen", help="Generate an RS256 signing keypair")
    keygen.add_argument(
        "--format",
        choices=["pem", "base64"],
        default="pem",
        help="Key encoding: PEM text (default) or base64-encoded DER",
    )
    keygen.add_argument(
        "--bits",
        type=int,
        choices=[2048, 3072, 4096],
        default=2048,
        help="RSA modulus size in bits (default: 2048)",
    )
    keygen.set_defaults(handler=_cmd_keygen)

    bootstrap = sub.add_parser("create-super-admin", help="Create the bootstrap SUPER_ADMIN account")
    bootstrap.add_argument("--username", required=True)
    bootstrap.add_argument("--email", required=True)
    bootstrap.add_argument("--name", default="")
    bootstrap.add_argument("--surname", default="")
    bootstrap.set_defaults(handler=_cmd_create_super_admin)

    args = parser.parse_args()
    try:
        sys.exit(args.handler(args))
    except KeyConfigurationError as e:
        print(f"  [!] {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
