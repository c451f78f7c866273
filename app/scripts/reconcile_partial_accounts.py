"""
List (and optionally remove) authentication principals whose signup never wrote directory records.

A principal is committed before the User and profile rows; if that second write failed the
caller got a partial_account error carrying the principal id. This script finds such
principals. With --apply they are deleted so the email can sign up again.

Usage: python -m app.scripts.reconcile_partial_accounts [--apply]
"""

import argparse
import asyncio

from app.auth.provider import LocalAuthProvider
from app.auth.services import find_orphaned_principals, rollback_partial_account
from app.db.session import AsyncSessionLocal


async def reconcile_partial_accounts(apply: bool) -> int:
    """Return the number of orphaned principals found (and removed when apply is set)."""
    async with AsyncSessionLocal() as session:
        orphans = await find_orphaned_principals(session)
        if not orphans:
            print("No partial accounts found. Exiting.")
            return 0

        print(f"Found {len(orphans)} principal(s) without a directory user:")
        # Capture plain values before any commit expires the instances
        rows = [(p.id, p.email, p.created_at) for p in orphans]
        for principal_id, email, created_at in rows:
            print(f"  {email} (id={principal_id}, created {created_at:%Y-%m-%d %H:%M})")

        if not apply:
            print("Dry run. Re-run with --apply to delete them.")
            return len(rows)

        provider = LocalAuthProvider(session)
        removed = 0
        for principal_id, email, _ in rows:
            if await rollback_partial_account(session, provider, principal_id):
                removed += 1
                print(f"  removed {email}")
        print(f"Done. Removed {removed} principal(s).")
        return len(rows)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--apply", action="store_true", help="delete the orphaned principals")
    args = parser.parse_args()
    asyncio.run(reconcile_partial_accounts(args.apply))


if __name__ == "__main__":
    main()
