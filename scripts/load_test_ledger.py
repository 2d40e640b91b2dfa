#!/usr/bin/env python3
"""Load test: many concurrent reports for ONE ledger key.

RUN:  TOKEN=<bearer token> python scripts/load_test_ledger.py

Fires CONCURRENCY progress reports for the same (student, lesson) at
once, each adding DELTA_MINUTES.  The ledger merges with compare-and-set,
so no applied update may be lost: the stored time must grow by exactly
(applied reports) * DELTA_MINUTES.  Reports that exhaust their retries
come back 503 and are not applied.

Prerequisites:
  - The API must be running with DATABASE_URL set (Postgres CAS path)
  - TOKEN must be signed by the key in the server's AUTH_PUBLIC_KEY_PEM
"""

from __future__ import annotations

import asyncio
import os
import sys
import time

import httpx

BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")
CONCURRENCY = 50
DELTA_MINUTES = 1.5
LESSON_ID = "load-test-lesson"


async def _report(client: httpx.AsyncClient, delta: float) -> httpx.Response:
    return await client.post(
        "/v1/progress/completions",
        json={
            "lesson_id": LESSON_ID,
            "progress_percentage": 50,
            "time_spent_delta_minutes": delta,
        },
    )


async def main() -> None:
    token = os.getenv("TOKEN")
    if not token:
        print("TOKEN is not set")
        sys.exit(2)

    print("Ledger Contention Load Test")
    print("=" * 50)
    print(f"Target: {BASE_URL}/v1/progress/completions")
    print(f"Concurrent reports: {CONCURRENCY}")
    print()

    headers = {"Authorization": f"Bearer {token}"}
    async with httpx.AsyncClient(base_url=BASE_URL, headers=headers, timeout=30) as client:
        # A zero-delta report reads the current total without changing it.
        baseline = await _report(client, 0)
        if baseline.status_code not in (200, 201):
            print(f"Baseline report failed: {baseline.status_code} {baseline.text}")
            sys.exit(1)
        before = baseline.json()["record"]["time_spent_minutes"]

        start = time.monotonic()
        responses = await asyncio.gather(
            *(_report(client, DELTA_MINUTES) for _ in range(CONCURRENCY))
        )
        elapsed = time.monotonic() - start

        after = (await _report(client, 0)).json()["record"]["time_spent_minutes"]

    results: dict[int, int] = {}
    for resp in responses:
        results[resp.status_code] = results.get(resp.status_code, 0) + 1

    applied = results.get(200, 0) + results.get(201, 0)
    busy = results.get(503, 0)
    other = sum(v for k, v in results.items() if k not in (200, 201, 503))

    print(f"Results after {CONCURRENCY} reports ({elapsed:.2f}s):")
    print("─" * 40)
    print(f"  Applied (200/201): {applied:>4}")
    print(f"  Busy    (503):     {busy:>4}")
    if other:
        print(f"  Other:             {other:>4}")
    print()

    expected = applied * DELTA_MINUTES
    gained = after - before
    print(f"Time gained: {gained} min   expected: {expected} min")
    if abs(gained - expected) < 1e-6:
        print("No lost updates.")
    else:
        print("WARNING: lost or double-applied updates detected!")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
