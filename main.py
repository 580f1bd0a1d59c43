#!/usr/bin/env python3
"""
Mosifra admin CLI -- bootstrap secrets and accounts without going through the API.

Usage:
  python main.py gen-secret
  python main.py hash-password
  python main.py hash-password --password 'correct horse'
  python main.py create-university --name "Université de Lille" --login ulille --mail contact@univ-lille.fr
  python main.py create-company --name Acme --login acme --mail hr@acme.com --db-url sqlite:///mosifra.db

gen-secret prints a value suitable for JWT_SECRET.
hash-password prints an argon2 hash suitable for ADMIN_PASSWORD_HASH.
create-* generate a password when --password is omitted and print it once.
"""

import argparse
import getpass
import secrets
import sys
from typing import Optional

from auth.errors import AuthError
from auth.passwords import generate_password, hash_password, validate_password
from users.store import UserRepository

_DEFAULT_DB_URL = "sqlite:///mosifra.db"


def _cmd_gen_secret(args: argparse.Namespace) -> int:
    print(secrets.token_urlsafe(48))
    return 0


def _cmd_hash_password(args: argparse.Namespace) -> int:
    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Repeat: "):
            print("  [!] Passwords do not match.", file=sys.stderr)
            return 1
    validate_password(password)
    print(hash_password(password))
    return 0


def _cmd_create_account(args: argparse.Namespace) -> int:
    password = args.password or generate_password()
    repo = UserRepository(args.db_url)
    try:
        if args.command == "create-university":
            account_id = repo.create_university(args.name, args.login, password, args.mail)
        else:
            account_id = repo.create_company(args.name, args.login, password, args.mail)
    finally:
        repo.close()
    print(f"Created {args.command.split('-', 1)[1]} {args.login} (id={account_id})")
    if args.password is None:
        print(f"Generated password: {password}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mosifra",
        description="Mosifra administration helpers.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_secret = sub.add_parser("gen-secret", help="Print a random value for JWT_SECRET")
    p_secret.set_defaults(func=_cmd_gen_secret)

    p_hash = sub.add_parser("hash-password", help="Print an argon2 hash (e.g. for ADMIN_PASSWORD_HASH)")
    p_hash.add_argument("--password", default=None, help="Password to hash (prompted when omitted)")
    p_hash.set_defaults(func=_cmd_hash_password)

    for name in ("create-university", "create-company"):
        p = sub.add_parser(name, help=f"Create a {name.split('-', 1)[1]} account")
        p.add_argument("--name", required=True)
        p.add_argument("--login", required=True)
        p.add_argument("--mail", required=True)
        p.add_argument("--password", default=None, help="Generated when omitted")
        p.add_argument("--db-url", default=_DEFAULT_DB_URL, metavar="URL", help="SQLAlchemy database URL")
        p.set_defaults(func=_cmd_create_account)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except AuthError as exc:
        print(f"  [!] {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
