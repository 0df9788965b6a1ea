#!/usr/bin/env python3
"""
Admin CLI for access requests.

Usage:
    python scripts/approve_request.py --admin admin@example.com pending
    python scripts/approve_request.py --admin admin@example.com approve user@example.com [--level Admin]
    python scripts/approve_request.py --admin admin@example.com reject user@example.com

The admin email can also come from SPEND_TRACKER_ADMIN_EMAIL.
Transient Google API failures are retried with backoff.
"""

import argparse
import asyncio
import logging
import os
import sys

from spend_tracker.config import get_settings, validate_all_settings
from spend_tracker.errors import SpendTrackerError
from spend_tracker.models.registry import AccessLevel
from spend_tracker.orchestrator import FlowContext, create_app_components
from spend_tracker.services.retry import retry_transient


async def list_pending(context: FlowContext, admin: str) -> int:
    requests = await retry_transient(lambda: context.access().pending_requests(admin))
    if not requests:
        print("No pending access requests.")
        return 0
    print(f"{len(requests)} pending request(s):")
    for request in requests:
        requested = request.requested_at.isoformat() if request.requested_at else "unknown"
        notes = f" - {request.notes}" if request.notes else ""
        print(f"   {request.email} (requested {requested}){notes}")
    return 0


async def approve(context: FlowContext, admin: str, email: str, level: str) -> int:
    entry = await retry_transient(lambda: context.access().approve(admin, email, level))
    print(f"✅ Approved {entry.email} as {entry.access_level.value} ({entry.status.value})")
    return 0


async def reject(context: FlowContext, admin: str, email: str) -> int:
    request = await retry_transient(lambda: context.access().reject(admin, email))
    print(f"✅ Rejected {request.email}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Approve or reject Spend Tracker access requests")
    parser.add_argument(
        "--admin",
        default=os.environ.get("SPEND_TRACKER_ADMIN_EMAIL"),
        help="Email of the admin performing the action (default: $SPEND_TRACKER_ADMIN_EMAIL)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("pending", help="List pending access requests")

    approve_cmd = commands.add_parser("approve", help="Approve an access request")
    approve_cmd.add_argument("email", help="Email to approve")
    approve_cmd.add_argument(
        "--level",
        choices=[level.value for level in AccessLevel],
        default=AccessLevel.USER.value,
        help="Access level to grant",
    )

    reject_cmd = commands.add_parser("reject", help="Reject an access request")
    reject_cmd.add_argument("email", help="Email to reject")
    return parser


async def run(args: argparse.Namespace) -> int:
    context, _, _, _ = create_app_components(use_parser=False)
    if args.command == "pending":
        return await list_pending(context, args.admin)
    if args.command == "approve":
        return await approve(context, args.admin, args.email, args.level)
    return await reject(context, args.admin, args.email)


def main() -> None:
    args = build_parser().parse_args()
    if not args.admin:
        print("❌ ERROR: An admin email is required (--admin or SPEND_TRACKER_ADMIN_EMAIL)")
        sys.exit(1)

    checks = validate_all_settings(require_parser=False)
    if not checks.get("google_sheets") or not checks.get("registry_configured"):
        print("❌ ERROR: Google Sheets is not configured (GOOGLE_SHEETS_CREDENTIALS_PATH, GOOGLE_SHEETS_REGISTRY_SPREADSHEET_ID)")
        if checks.get("google_sheets_error"):
            print(f"   {checks['google_sheets_error']}")
        sys.exit(1)

    debug = checks.get("app") and get_settings().app.debug_mode
    logging.basicConfig(format="%(message)s", level=logging.DEBUG if debug else logging.INFO)

    try:
        sys.exit(asyncio.run(run(args)))
    except SpendTrackerError as e:
        print(f"❌ {type(e).__name__}: {e}")
        for detail in getattr(e, "details", []) or []:
            print(f"   - {detail}")
        sys.exit(1)


if __name__ == "__main__":
    main()
