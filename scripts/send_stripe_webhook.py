#!/usr/bin/env python3
"""
Stripe Webhook Sender

Sends a Stripe-signed `checkout.session.completed` event to a running
instance, for exercising the Pro upgrade flow locally.

Usage:
    python scripts/send_stripe_webhook.py --help
    python scripts/send_stripe_webhook.py completed --user-id 550e8400-e29b-41d4-a716-446655440001
    python scripts/send_stripe_webhook.py completed --user-id ... --session-id cs_test_repeat   # resend same event
    python scripts/send_stripe_webhook.py invalid
"""

import argparse
import asyncio
import json
import os
import sys
import time
from typing import Any, Dict, Optional
from uuid import uuid4

import httpx

# Add parent directory to path to import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ftrmsg.core.stripe_signature import SIGNATURE_HEADER, StripeSignatureVerifier  # noqa: E402

DEFAULT_CONFIG = {
    "base_url": "http://localhost:8000",
    "webhook_secret": os.environ.get("STRIPE_WEBHOOK_SECRET", "whsec_dev"),
    "timeout": 30
}


def create_checkout_completed_event(
    user_id: Optional[str],
    session_id: Optional[str] = None,
    amount_cents: int = 900
) -> Dict[str, Any]:
    """Build a minimal checkout.session.completed event."""
    return {
        "id": f"evt_test_{int(time.time())}",
        "object": "event",
        "type": "checkout.session.completed",
        "created": int(time.time()),
        "data": {
            "object": {
                "id": session_id or f"cs_test_{uuid4().hex[:24]}",
                "object": "checkout.session",
                "amount_total": amount_cents,
                "currency": "usd",
                "customer": f"cus_test_{uuid4().hex[:14]}",
                "payment_intent": f"pi_test_{uuid4().hex[:24]}",
                "payment_status": "paid",
                "metadata": {"userId": user_id, "productType": "pro_upgrade"} if user_id else {},
            }
        },
    }


async def send_event(url: str, event: Dict[str, Any], secret: str) -> Dict[str, Any]:
    payload = json.dumps(event, separators=(',', ':'))
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: StripeSignatureVerifier.build_header(payload, secret),
        "User-Agent": "stripe-webhook-sender/1.0"
    }

    print(f"📤 Sending {event['type']} to: {url}")
    print(f"🧾 Checkout session: {event['data']['object']['id']}")
    print()

    try:
        async with httpx.AsyncClient(timeout=DEFAULT_CONFIG["timeout"]) as client:
            response = await client.post(url, content=payload, headers=headers)
    except httpx.HTTPError as e:
        print(f"❌ Error: {e}")
        return {"status_code": 0, "success": False, "error": str(e)}

    print(f"✅ Response: {response.status_code}")
    print(f"📄 Response body: {response.text}")
    return {"status_code": response.status_code, "success": response.status_code < 400}


async def send_invalid_signature(url: str) -> Dict[str, Any]:
    payload = json.dumps(create_checkout_completed_event(str(uuid4())))
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: f"t={int(time.time())},v1={'0' * 64}",
    }

    async with httpx.AsyncClient(timeout=DEFAULT_CONFIG["timeout"]) as client:
        response = await client.post(url, content=payload, headers=headers)

    print(f"❌ Expected failure: {response.status_code}")
    print(f"📄 Error response: {response.text}")
    return {"status_code": response.status_code, "expected_failure": response.status_code == 400}


def main():
    parser = argparse.ArgumentParser(description="Send Stripe-signed webhook events")
    parser.add_argument("event", choices=["completed", "invalid"], help="Which event to send")
    parser.add_argument("--base-url", default=DEFAULT_CONFIG["base_url"], help="Service base URL")
    parser.add_argument("--secret", default=DEFAULT_CONFIG["webhook_secret"], help="Webhook signing secret")
    parser.add_argument("--user-id", help="Profile id placed in session metadata")
    parser.add_argument("--session-id", help="Checkout session id (reuse one to test redelivery)")
    args = parser.parse_args()

    url = f"{args.base_url.rstrip('/')}/v1/webhooks/stripe"

    if args.event == "completed":
        event = create_checkout_completed_event(args.user_id, args.session_id)
        result = asyncio.run(send_event(url, event, args.secret))
    else:
        result = asyncio.run(send_invalid_signature(url))

    print()
    if result.get("success") or result.get("expected_failure"):
        print("✅ Webhook test PASSED")
        sys.exit(0)
    print("❌ Webhook test FAILED")
    sys.exit(1)


if __name__ == "__main__":
    main()
