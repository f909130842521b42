#!/usr/bin/env python
"""Check ERP and record-store connectivity.

Logs in to every configured tenant and, optionally, reads one record from
the record store.

Usage:
    python scripts/check_connections.py
    python scripts/check_connections.py --record recM1 --table Masters
"""

import argparse
import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api.container import ServiceContainer
from core.config import load_settings
from core.errors import SyncError


async def check(record_id: str = None, table: str = None) -> int:
    settings = load_settings()
    container = ServiceContainer.from_settings(settings)
    failures = 0

    try:
        print("=" * 60)
        print("ERP tenants")
        print("=" * 60)
        results = await container.pool.test_connections()
        for tenant, result in results.items():
            if result["status"] == "ok":
                print(f"  ✓ {tenant}: uid {result['uid']} (company {result['company_id']})")
            else:
                failures += 1
                print(f"  ✗ {tenant}: {result['error']}")

        if record_id:
            print("\n" + "=" * 60)
            print("Record store")
            print("=" * 60)
            table = table or settings.record_store.tables.masters
            try:
                record = await container.record_store.get_record(table, record_id)
                print(f"  ✓ {table}/{record_id}: {len(record.get('fields', {}))} fields")
            except SyncError as e:
                failures += 1
                print(f"  ✗ {table}/{record_id}: {e.message}")
    finally:
        await container.close()

    return 1 if failures else 0


def main():
    parser = argparse.ArgumentParser(description="Check ERP and record-store connectivity")
    parser.add_argument("--record", help="Record id to read from the record store")
    parser.add_argument("--table", help="Record-store table (defaults to the masters table)")
    args = parser.parse_args()

    sys.exit(asyncio.run(check(args.record, args.table)))


if __name__ == "__main__":
    main()
