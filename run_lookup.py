#!/usr/bin/env python3
"""
run_lookup.py: One-command group-order lookup.

Usage:
  python run_lookup.py --url <group order link>            # Formatted report
  python run_lookup.py --url <link> --sid <session token>  # Seed the session first
  python run_lookup.py --url <link> --json                 # Raw JSON output

This script:
1. Loads the session credential (checkpoint file, then UBER_SID)
2. Runs the lookup pipeline once against the live provider
3. Prints a formatted report
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from group_order_service.config import config
from group_order_service.credentials import SessionCredentialStore
from group_order_service.models import ExtractedOrder
from group_order_service.pipeline import get_order_details

SEP = "--------------------------------------------------"


# ============================================================
# Formatted output
# ============================================================


def print_report(link: str, order: ExtractedOrder) -> None:
    """Print the console report for one lookup."""
    print()
    print(SEP)
    print("\U0001f37d\ufe0f GROUP ORDER LOOKUP")
    print(SEP)
    print()
    print(f"Link: {link}")
    print()

    if not order.success:
        print(SEP)
        print("\u274c LOOKUP FAILED")
        print(SEP)
        print(order.error)
        print()
        return

    print(SEP)
    print("\U0001f3ea RESTAURANT")
    print(SEP)
    print(f"Name: {order.restaurant_name or '-'}")
    print(f"Address: {order.restaurant_address or '-'}")
    print(f"Hours: {order.restaurant_hours or '-'}")
    print()

    print(SEP)
    print("\U0001f6d2 ITEMS")
    print(SEP)
    for item in order.items:
        print(f"{item.quantity} x {item.name}  ${item.price:.2f}")
        for option in item.customizations:
            print(f"    + {option}")
    if not order.items:
        print("(none)")
    print()

    print(SEP)
    print("\U0001f4ca FARE BREAKDOWN")
    print(SEP)
    print(f"Subtotal: ${order.subtotal:.2f}")
    print(f"Delivery fee: ${order.delivery_fee:.2f}")
    print(f"Service fee: ${order.service_fee:.2f}")
    if order.small_order_fee:
        print(f"Small order fee: ${order.small_order_fee:.2f}")
    if order.other_fees:
        print(f"Other fees: ${order.other_fees:.2f}")
    print(f"Fees: ${order.fees:.2f}")
    print(f"Taxes: ${order.taxes:.2f}")
    print(f"Total: ${order.total:.2f} {order.currency or ''}".rstrip())
    if order.has_uber_one:
        print(f"Uber One benefit: ${order.uber_one_benefit:.2f}")
    print()

    print(SEP)
    print("\U0001f4cd DELIVERY")
    print(SEP)
    print(f"Address: {order.delivery_address or '-'}")
    print(f"Instructions: {order.delivery_instructions or '-'}")
    if order.delivery_coordinates:
        coords = order.delivery_coordinates
        print(f"Coordinates: {coords.latitude}, {coords.longitude}")
    print(f"Customer fields found: {len(order.customer_details)}")
    print()
    print("Lookup complete.")
    print(SEP)


# ============================================================
# Main
# ============================================================


async def run_lookup(link: str, sid: str | None) -> ExtractedOrder:
    credentials = SessionCredentialStore.from_config(config)
    if sid:
        credentials.update(sid, source="cli")
    return await get_order_details(link, credentials)


def main() -> None:
    parser = argparse.ArgumentParser(description="Uber Eats group-order lookup")
    parser.add_argument("--url", required=True, help="Group order share link")
    parser.add_argument("--sid", default=None, help="Session token to store before the lookup")
    parser.add_argument("--json", action="store_true", help="Print the raw result as JSON")

    args = parser.parse_args()

    # Keep pipeline logs out of the report
    logging.basicConfig(level=logging.WARNING)

    try:
        order = asyncio.run(run_lookup(args.url, args.sid))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)

    if args.json:
        print(order.model_dump_json(indent=2))
    else:
        print_report(args.url, order)
    sys.exit(0 if order.success else 1)


if __name__ == "__main__":
    main()
