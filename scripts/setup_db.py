#!/usr/bin/env python3
"""Create or upgrade the detection log schema with Alembic.

Usage:
    python scripts/setup_db.py            # upgrades to head
    python scripts/setup_db.py --check    # prints current revision
    python scripts/setup_db.py --sql      # prints the upgrade SQL, no DB needed
"""
from __future__ import annotations

import argparse
import subprocess
import sys


def _alembic(*args: str, capture: bool = False) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["uv", "run", "alembic", *args], capture_output=capture, text=True, check=False
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Set up the detection log database")
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--check", action="store_true", help="Print current Alembic revision and exit"
    )
    group.add_argument(
        "--sql", action="store_true", help="Print upgrade SQL (offline mode) and exit"
    )
    args = parser.parse_args()

    if args.check:
        result = _alembic("current", capture=True)
        print(result.stdout or result.stderr)
        sys.exit(result.returncode)

    if args.sql:
        sys.exit(_alembic("upgrade", "head", "--sql").returncode)

    print("Running Alembic migrations…")
    if _alembic("upgrade", "head").returncode != 0:
        print("Migration failed. Is PostgreSQL running and DATABASE_URL set?", file=sys.stderr)
        sys.exit(1)
    print("Detection log schema is up to date.")


if __name__ == "__main__":
    main()
