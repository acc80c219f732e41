#!/usr/bin/env python3
"""
Run one expired-object cleanup pass against the configured storage.

Usage:
    python scripts/run_cleanup.py
    python scripts/run_cleanup.py --dry-run
    python scripts/run_cleanup.py --deadline 240 --json
"""

import argparse
import asyncio
import json
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main() -> int:
    from certstore.core.config import get_settings
    from certstore.core.exceptions import CertStoreError
    from certstore.core.logging import configure_logging
    from certstore.workers.tasks import run_cleanup

    parser = argparse.ArgumentParser(description="Delete expired certificate artifacts")
    parser.add_argument("--dry-run", action="store_true", help="Report without deleting")
    parser.add_argument("--deadline", type=float, default=None, help="Time budget in seconds")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings)

    try:
        report = asyncio.run(
            run_cleanup(settings, dry_run=args.dry_run, deadline=args.deadline)
        )
    except CertStoreError as e:
        print(f"Cleanup failed: {e.message}", file=sys.stderr)
        if e.details:
            print(f"  {e.details}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
        return 0

    action = "Would delete" if report.dry_run else "Deleted"
    print("=" * 70)
    print(f"  Cleanup on {report.provider}")
    print("=" * 70)
    print(f"  Examined: {report.examined}")
    print(f"  {action}: {len(report.deleted_keys)}")
    for key in report.deleted_keys:
        print(f"    - {key}")
    print(f"  Kept:     {len(report.kept_keys)}")
    print(f"  Errors:   {len(report.errors)}")
    for key, reason in sorted(report.errors.items()):
        print(f"    ! {key}: {reason}")
    if report.incomplete:
        print()
        print("  Run was incomplete; remaining objects are handled next time.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
