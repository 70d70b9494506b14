#!/usr/bin/env python3
"""
Scholarship portal operator CLI.

Repairs and inspects accounts across the credential store, the identity
provider and the profile mirror using the same PortalServices as the API.

Usage:
  python main.py list
  python main.py show a@x.com
  python main.py resync a@x.com
  python main.py verify a@x.com
  python main.py delete a@x.com
  python main.py delete a@x.com --student-no 2024-0001

Environment variables: see core/config.py (DATABASE_URL, FIREBASE_*, SENDGRID_API_KEY, ...).
Exit status is 0 on success, 1 on any reported failure.
"""

import argparse
import logging
import sys
from collections.abc import Callable
from typing import Optional

from container import PortalServices
from core.errors import PortalError


def _show(services: PortalServices, args: argparse.Namespace) -> int:
    record = services.users.find_by_email(args.email.strip().lower())
    if record is None:
        print(f"  [!] No account for {args.email}.")
        return 1
    print(f"  student_no   {record.student_no}")
    print(f"  email        {record.email}")
    print(f"  name         {record.display_name or '-'}")
    print(f"  role         {record.role}")
    print(f"  verified     {'yes' if record.is_verified else 'no'}")
    if record.verified_at:
        print(f"  verified_at  {record.verified_at}")
    if not record.is_verified and record.code_expires_at:
        print(f"  code expires {record.code_expires_at}")
    print(f"  created_at   {record.created_at}")
    print(f"  last_login   {record.last_login_at or '-'}")
    return 0


def _list(services: PortalServices, args: argparse.Namespace) -> int:
    records = services.users.list_users()
    if not records:
        print("  No accounts.")
        return 0
    for r in records:
        print(f"  {r.student_no:<34} {r.email:<40} {'verified' if r.is_verified else 'unverified'}")
    print(f"  {len(records)} account(s).")
    return 0


def _resync(services: PortalServices, args: argparse.Namespace) -> int:
    result = services.accounts.resync(args.email)
    action = "created" if result.created else "updated"
    mirror = "synced" if result.mirror_synced else "FAILED (see log)"
    print(f"  Identity provider user {result.uid} {action}; profile mirror {mirror}.")
    return 0 if result.mirror_synced else 1


def _verify(services: PortalServices, args: argparse.Namespace) -> int:
    result = services.accounts.mark_verified(args.email)
    print(f"  {args.email} verified and synced as {result.uid}.")
    return 0


def _delete(services: PortalServices, args: argparse.Namespace) -> int:
    report = services.accounts.delete_user(args.email, args.student_no)
    print(f"  credential store   {'deleted' if report.credential_deleted else 'not found'}")
    print(f"  identity provider  {'deleted' if report.identity_deleted else 'not found'}")
    print(f"  profile mirror     {'deleted' if report.mirror_deleted else 'not found'}")
    return 0 if report.anything_deleted else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scholarship-admin",
        description="Inspect and repair scholarship portal accounts across all three stores.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List every account in the credential store")
    p.set_defaults(handler=_list)

    p = sub.add_parser("show", help="Print the credential store record for an email")
    p.add_argument("email")
    p.set_defaults(handler=_show)

    p = sub.add_parser("resync", help="Push the credential store record to the identity provider and mirror")
    p.add_argument("email")
    p.set_defaults(handler=_resync)

    p = sub.add_parser("verify", help="Mark an account verified without a code, then resync")
    p.add_argument("email")
    p.set_defaults(handler=_verify)

    p = sub.add_parser("delete", help="Delete an account from all three stores")
    p.add_argument("email")
    p.add_argument(
        "--student-no",
        default=None,
        metavar="N",
        help="Join key to clean up when the credential store record is already gone",
    )
    p.set_defaults(handler=_delete)
    return parser


def main(argv: Optional[list[str]] = None, services_factory: Callable[[], PortalServices] = PortalServices) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.WARNING, format="%(levelname)-5s %(name)s %(message)s")

    services = services_factory()
    try:
        services.connect()
        return args.handler(services, args)
    except PortalError as e:
        print(f"  [!] {e.message} ({e.code})")
        return 1
    finally:
        services.close()


if __name__ == "__main__":
    sys.exit(main())
