#!/usr/bin/env python3
"""
Quick sanity check script to verify the heartbeat is publishing snapshots.

Usage:
    python verify_heartbeat.py
    python verify_heartbeat.py --url http://127.0.0.1:8080 --wait 12

This script:
1. Checks the core API is reachable
2. Shows the latest snapshot and its age
3. Shows the last fetch error (if any)
4. Waits one heartbeat and verifies the snapshot timestamp advanced
"""

import argparse
import sys
import time

import requests


def get_json(base_url: str, path: str) -> dict:
    response = requests.get(f"{base_url}{path}", timeout=5)
    response.raise_for_status()
    return response.json()


def print_snapshot(snapshot: dict) -> None:
    ts_str = time.strftime('%Y-%m-%d %H:%M:%S', time.gmtime(snapshot['ts']))
    print("-" * 80)
    print(f"{'Symbol':<10} {'Timestamp (UTC)':<20} {'Price':>10} {'MACD':>10} {'Signal':>10} {'Hist':>10}")
    print("-" * 80)
    print(
        f"{snapshot['symbol']:<10} {ts_str:<20} {snapshot['price']:>10.4f} "
        f"{snapshot['macd']:>10.4f} {snapshot['signal']:>10.4f} {snapshot['hist']:>10.4f}"
    )
    print("-" * 80)
    print()


def verify(base_url: str, wait_seconds: float) -> bool:
    """Verify the API and show the latest snapshot."""
    try:
        health = get_json(base_url, "/health")
    except requests.RequestException as e:
        print(f"❌ Core API not reachable at {base_url}: {e}")
        print("   → Start it with: apex-heartbeat (or uvicorn datafeed.main:app)")
        return False

    print(f"✅ Core API is up (provider: {health.get('provider')}, symbol: {health.get('symbol')})\n")

    result = get_json(base_url, "/v1/snapshot/latest")
    status = get_json(base_url, "/v1/snapshot/status")

    if status.get("last_error"):
        print(f"⚠️  Last fetch error: {status['last_error']}")
        print(f"   Consecutive failures: {status.get('consecutive_failures', 0)}\n")

    first = result.get("data")
    if not first:
        print("⚠️  No snapshot yet.")
        print("   → Wait one heartbeat interval after starting the core API.")
        return False

    print("📊 Latest snapshot:")
    print_snapshot(first)
    print(f"⏱️  Age: {status.get('age_seconds', 0):.1f} seconds\n")

    print(f"Waiting {wait_seconds:.0f}s for the next heartbeat...")
    time.sleep(wait_seconds)

    second = get_json(base_url, "/v1/snapshot/latest").get("data")
    if second and second["ts"] > first["ts"]:
        print("✅ Heartbeat is ACTIVE! Snapshot timestamp advanced.")
        return True

    print("⚠️  Snapshot did not change. Heartbeat may be stalled or rate limited.")
    print("   → Check core API logs for errors")
    return False


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Verify the market heartbeat is running")
    parser.add_argument("--url", default="http://127.0.0.1:8080", help="Core API base URL")
    parser.add_argument("--wait", type=float, default=12.0, help="Seconds to wait for the next heartbeat")
    args = parser.parse_args()

    print("=" * 60)
    print("Apex Market Heartbeat - Verification")
    print("=" * 60)
    print()

    success = verify(args.url.rstrip("/"), args.wait)

    print()
    print("=" * 60)

    if success:
        print("✅ Verification complete!")
    else:
        print("⚠️  Issues found. See messages above.")

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
