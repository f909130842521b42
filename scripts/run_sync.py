#!/usr/bin/env python
"""Run one sync operation from the command line.

Same operations as the API, without the HTTP server. Prints the result as
JSON.

Usage:
    python scripts/run_sync.py master-process recM1
    python scripts/run_sync.py master-invoice recM1
    python scripts/run_sync.py leg-process recL1
    python scripts/run_sync.py carrier-invoice recL1
    python scripts/run_sync.py leg-fields recL1
    python scripts/run_sync.py company recE1
    python scripts/run_sync.py tariffs --tenant CL
    python scripts/run_sync.py products --tenant CL
"""

import argparse
import asyncio
import logging
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api.container import ServiceContainer
from core.config import load_settings
from core.errors import SyncError
from core.observability import configure_logging
from core.tenants import TenantCode


COMMANDS = {
    "master-process": lambda c, rid: c.masters.process(rid),
    "master-invoice": lambda c, rid: c.masters.invoice(rid),
    "leg-process": lambda c, rid: c.operations.process(rid),
    "carrier-invoice": lambda c, rid: c.operations.invoice_carrier(rid),
    "leg-fields": lambda c, rid: c.operations.describe(rid),
    "company": lambda c, rid: c.catalog.sync_company(rid),
}

TENANT_COMMANDS = {
    "tariffs": lambda c, tenant: c.catalog.sync_tariffs(tenant),
    "products": lambda c, tenant: c.catalog.sync_products(tenant),
}


async def run(command: str, record_id: str, tenant: TenantCode) -> int:
    settings = load_settings()
    configure_logging(getattr(logging, settings.log_level, logging.INFO), settings.log_json)
    container = ServiceContainer.from_settings(settings)

    try:
        if command in TENANT_COMMANDS:
            result = await TENANT_COMMANDS[command](container, tenant)
        else:
            result = await COMMANDS[command](container, record_id)
    except SyncError as e:
        print(f"✗ {type(e).__name__}: {e.message}", file=sys.stderr)
        return 1
    finally:
        await container.close()

    print(result.model_dump_json(indent=2))
    return 0


def main():
    parser = argparse.ArgumentParser(description="Run one sync operation")
    parser.add_argument("command", choices=sorted(list(COMMANDS) + list(TENANT_COMMANDS)))
    parser.add_argument("record_id", nargs="?", help="Record-store id (not used by tariffs/products)")
    parser.add_argument("--tenant", default="AR", choices=[t.value for t in TenantCode],
                        help="Tenant for tariffs/products")
    args = parser.parse_args()

    if args.command not in TENANT_COMMANDS and not args.record_id:
        parser.error(f"{args.command} needs a record id")

    sys.exit(asyncio.run(run(args.command, args.record_id, TenantCode(args.tenant))))


if __name__ == "__main__":
    main()
