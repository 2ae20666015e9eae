"""
Scheduled data removal entry point.

Usage:
    python -m dataspace_broker.worker [OPTIONS]

Options:
    --interval N    Seconds between scans (default: from config)
    --once          Run a single scan and exit
"""
from __future__ import annotations

import argparse
import sys

from .removal import run_worker


def main() -> int:
    """Main entry point for the removal worker CLI."""
    parser = argparse.ArgumentParser(
        description="Scheduled data removal - erases data whose deletion duties are due",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run with default settings
    python -m dataspace_broker.worker

    # Scan every 10 seconds
    python -m dataspace_broker.worker --interval 10

    # Single scan, e.g. from cron
    python -m dataspace_broker.worker --once
        """,
    )

    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between scans (default: from config)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single scan and exit",
    )

    args = parser.parse_args()

    try:
        result = run_worker(interval=args.interval, once=args.once)
        if args.once and result is not None:
            print(
                f"Scanned {result.agreements_scanned} agreements, "
                f"erased {len(result.erased)} artifacts, {result.failures} failures"
            )
        return 0
    except KeyboardInterrupt:
        print("\nWorker stopped by user")
        return 0
    except Exception as e:
        print(f"Worker error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
