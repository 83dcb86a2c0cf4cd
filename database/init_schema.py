#!/usr/bin/env python3
"""Create the dashboard record tables (deposits, withdrawals, trade_pnl, wallets).

Idempotent: every statement is CREATE ... IF NOT EXISTS.

Usage:
    python database/init_schema.py            # DSN from POSTGRES_* env / .env
    python database/init_schema.py --print    # only print the DDL
"""
import argparse
import sys
import time
from pathlib import Path

import dotenv

dotenv.load_dotenv()

# Allow running from the repo root without installing the package
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "backend"))

from tradezone.core.config import get_settings  # noqa: E402
from tradezone.core.exceptions import UpstreamFetchError  # noqa: E402
from tradezone.services.record_store import SCHEMA_DDL, RecordStore  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the dashboard record tables")
    parser.add_argument("--print", dest="print_only", action="store_true", help="print DDL and exit")
    args = parser.parse_args()

    if args.print_only:
        for ddl in SCHEMA_DDL:
            print(ddl.strip())
            print()
        return

    start = time.perf_counter()
    settings = get_settings()
    print(f"[INFO] Ensuring schema on {settings.POSTGRES_HOST or 'localhost'}:{settings.POSTGRES_PORT} ...")
    try:
        RecordStore(settings.postgres_dsn()).init_schema()
    except UpstreamFetchError as e:
        print(f"[ERROR] Schema init failed: {e.message}")
        sys.exit(1)

    elapsed = time.perf_counter() - start
    print(f"[INFO] Schema ready. Elapsed: {elapsed:.2f} sec")


if __name__ == "__main__":
    main()
