#!/usr/bin/env python3
"""
Manual Delivery Trigger

Calls the scheduler endpoints the way the cron invoker does, with the
shared secret header.

Usage:
    python scripts/trigger_delivery.py run
    python scripts/trigger_delivery.py status
    python scripts/trigger_delivery.py cleanup
    python scripts/trigger_delivery.py reconcile
    python scripts/trigger_delivery.py run --concurrent 3   # overlapping runs; all but one should skip
"""

import argparse
import asyncio
import json
import os
import sys

import httpx

DEFAULT_CONFIG = {
    "base_url": "http://localhost:8000",
    "cron_secret": os.environ.get("CRON_SECRET", ""),
    "header": "x-cron-secret",
    "timeout": 90
}

ACTIONS = {
    "run": ("POST", "/v1/delivery/run"),
    "status": ("GET", "/v1/delivery/status"),
    "cleanup": ("POST", "/v1/maintenance/cleanup-logs"),
    "reconcile": ("POST", "/v1/maintenance/reconcile"),
}


async def call(client: httpx.AsyncClient, method: str, url: str, secret: str) -> httpx.Response:
    return await client.request(method, url, headers={DEFAULT_CONFIG["header"]: secret})


async def trigger(args) -> bool:
    method, path = ACTIONS[args.action]
    url = f"{args.base_url.rstrip('/')}{path}"
    print(f"📤 {method} {url} (x{args.concurrent})")

    async with httpx.AsyncClient(timeout=DEFAULT_CONFIG["timeout"]) as client:
        responses = await asyncio.gather(
            *(call(client, method, url, args.secret) for _ in range(args.concurrent)),
            return_exceptions=True
        )

    ok = True
    for response in responses:
        if isinstance(response, Exception):
            print(f"❌ Error: {response}")
            ok = False
            continue
        print(f"{'✅' if response.status_code < 400 else '❌'} {response.status_code}")
        try:
            print(json.dumps(response.json(), indent=2))
        except ValueError:
            print(response.text)
        ok = ok and response.status_code < 400
    return ok


def main():
    parser = argparse.ArgumentParser(description="Trigger scheduler endpoints")
    parser.add_argument("action", choices=sorted(ACTIONS), help="Endpoint to call")
    parser.add_argument("--base-url", default=DEFAULT_CONFIG["base_url"], help="Service base URL")
    parser.add_argument("--secret", default=DEFAULT_CONFIG["cron_secret"], help="Scheduler shared secret")
    parser.add_argument("--concurrent", type=int, default=1, help="Number of simultaneous calls")
    args = parser.parse_args()

    if not args.secret:
        print("❌ Error: set CRON_SECRET or pass --secret")
        sys.exit(1)

    sys.exit(0 if asyncio.run(trigger(args)) else 1)


if __name__ == "__main__":
    main()
