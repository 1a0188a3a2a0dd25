#!/usr/bin/env python3
"""
Smoke test against a running server: checkout -> confirm webhook -> fetch.

Usage:
    python smoke_checkout.py 99.99 test@example.com
"""
import json
import sys
import uuid
from datetime import datetime, timezone

import requests

BASE_URL = "http://localhost:8000"


def run_checkout_flow(amount: float, email: str):
    """Create a checkout, confirm it via webhook, and print the final transaction."""

    print(f"🛒 Checkout: amount={amount}, email={email}")
    response = requests.post(f"{BASE_URL}/api/checkout", json={"amount": amount, "email": email}, timeout=30)
    if response.status_code != 200:
        print(f"❌ Checkout failed: HTTP {response.status_code}")
        print(response.text)
        return

    checkout = response.json()["data"]
    print(f"   ✅ checkout_id={checkout['checkout_id']}")
    print(f"   🔗 {checkout['payment_url']} (expires {checkout['expires_at']})")

    # Find the transaction and its charge id
    listing = requests.get(f"{BASE_URL}/api/transactions", params={"email": email, "limit": 100}, timeout=30)
    transaction = next(
        (t for t in listing.json()["data"]["transactions"] if t["checkout_id"] == checkout["checkout_id"]),
        None
    )
    if transaction is None:
        print("❌ Transaction not found in listing")
        return

    event = {
        "id": str(uuid.uuid4()),
        "type": "charge:confirmed",
        "created_at": datetime.now(timezone.utc).isoformat(),
        "data": {
            "id": transaction["provider_charge_id"],
            "code": transaction["provider_charge_code"],
            "metadata": {"email": email, "checkout_id": checkout["checkout_id"]},
        },
    }

    print(f"📡 Webhook: charge:confirmed for {transaction['provider_charge_id']}")
    response = requests.post(
        f"{BASE_URL}/api/webhook",
        data=json.dumps(event),
        headers={"Content-Type": "application/json", "X-CC-Webhook-Signature": "sha256=smoke"},
        timeout=30,
    )
    print(f"   HTTP {response.status_code}: {response.text}")

    final = requests.get(f"{BASE_URL}/api/transactions/{transaction['id']}", timeout=30).json()["data"]
    print(f"🏁 status={final['status']}, confirmed_at={final['confirmed_at']}")


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python smoke_checkout.py <amount> <email>")
        sys.exit(1)

    run_checkout_flow(float(sys.argv[1]), sys.argv[2])
