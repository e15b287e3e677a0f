#!/usr/bin/env python3
"""Example: Sync windows and retry backoff

Shows how allow and deny windows gate automated and manual syncs, and
when a failed sync would be retried.

Usage:
    python examples/02_sync_windows.py

Requirements:
    pip install appproject-governance
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import appproject_governance as gov


def main() -> None:
    business_hours = gov.SyncWindow.create(
        kind="allow",
        schedule="0 8 * * 1-5",
        duration="10h",
        applications=["*"],
        time_zone="Europe/Berlin",
        manual_sync=True,
    )
    freeze = gov.SyncWindow.create(
        kind="deny",
        schedule="0 0 24 12 *",
        duration="72h",
        namespaces=["*-prod"],
    )
    project = gov.AppProject(name="shop", source_repos=["*"]).with_windows([business_hours, freeze])
    governor = gov.ProjectGovernor(project)

    app = gov.Application(
        name="checkout",
        project="shop",
        destination=gov.ApplicationDestination(server="https://prod.example.com", namespace="shop-prod"),
    )

    instants = {
        "Tuesday 10:00 Berlin": datetime(2026, 3, 3, 9, 0, tzinfo=timezone.utc),
        "Tuesday 22:00 Berlin": datetime(2026, 3, 3, 21, 0, tzinfo=timezone.utc),
        "Christmas Day": datetime(2026, 12, 25, 12, 0, tzinfo=timezone.utc),
    }
    print("Sync decisions for 'checkout':")
    for label, now in instants.items():
        state = governor.window_state(app, now)
        print(
            f"  {label:<22} automatic={state.can_sync_automatic!s:<5} "
            f"manual={state.can_sync_manual!s:<5} active={len(state.active)}"
        )

    print("\nRetry schedule with the default backoff:")
    failed_at = datetime(2026, 3, 3, 9, 0, tzinfo=timezone.utc)
    attempt = 0
    next_at = governor.next_retry_at(failed_at, attempt)
    while next_at is not None:
        print(f"  retry {attempt}: after {(next_at - failed_at) / timedelta(seconds=1):g}s")
        attempt += 1
        next_at = governor.next_retry_at(failed_at, attempt)
    print(f"  gave up after {attempt} retries")


if __name__ == "__main__":
    main()
