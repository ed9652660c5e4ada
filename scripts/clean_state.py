#!/usr/bin/env python3
"""Utility script to inspect and clean the state database."""
import sqlite3
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from covidstats.config import config
from covidstats.jobs.run_control import LEASE_NAME

STATE_DB = config.STATE_DB


def show_stats() -> None:
    """Show run counts and the current lease."""
    conn = sqlite3.connect(STATE_DB)
    cursor = conn.cursor()

    cursor.execute("SELECT COUNT(*) FROM scrape_runs")
    total = cursor.fetchone()[0]

    cursor.execute("SELECT state, COUNT(*) FROM scrape_runs GROUP BY state")
    by_state = dict(cursor.fetchall())

    cursor.execute("SELECT MIN(started_at), MAX(started_at) FROM scrape_runs")
    first, last = cursor.fetchone()

    cursor.execute("SELECT holder, expires_at FROM run_lease WHERE name = ?", (LEASE_NAME,))
    lease = cursor.fetchone()

    print(f"State database: {STATE_DB}")
    print(f"Total runs: {total}")
    print(f"Runs by state: {by_state}")
    if first is not None:
        print(f"Started between: {first} - {last}")
    else:
        print("Started between: (empty)")
    if lease:
        holder, expires_at = lease
        remaining = expires_at - time.time()
        status = f"expires in {remaining:.0f}s" if remaining > 0 else "expired"
        print(f"Lease: held by {holder} ({status})")
    else:
        print("Lease: free")

    conn.close()


def release_lease() -> None:
    """Drop the run lease, e.g. after a crashed run."""
    conn = sqlite3.connect(STATE_DB)
    cursor = conn.cursor()

    cursor.execute("DELETE FROM run_lease WHERE name = ?", (LEASE_NAME,))
    conn.commit()

    if cursor.rowcount:
        print("Released run lease")
    else:
        print("No lease was held")

    conn.close()


def prune_runs(days: int) -> None:
    """Delete run rows started more than ``days`` days ago."""
    conn = sqlite3.connect(STATE_DB)
    cursor = conn.cursor()

    cursor.execute(
        "DELETE FROM scrape_runs WHERE started_at < datetime('now', ?)",
        (f"-{days} days",),
    )
    deleted = cursor.rowcount
    conn.commit()

    cursor.execute("SELECT COUNT(*) FROM scrape_runs")
    count_remaining = cursor.fetchone()[0]

    print(f"Deleted {deleted} runs older than {days} days")
    print(f"Remaining runs in database: {count_remaining}")

    conn.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage:")
        print("  python scripts/clean_state.py stats            # Show statistics")
        print("  python scripts/clean_state.py release-lease    # Free a stuck run slot")
        print("  python scripts/clean_state.py prune <days>     # Delete old run rows")
        sys.exit(1)

    if not STATE_DB.exists():
        print(f"No state database at {STATE_DB}")
        sys.exit(1)

    command = sys.argv[1]

    if command == "stats":
        show_stats()
    elif command == "release-lease":
        confirm = input("Only release the lease if no run is active. Continue? (yes/no): ")
        if confirm.lower() == "yes":
            release_lease()
        else:
            print("Cancelled")
    elif command == "prune":
        if len(sys.argv) < 3:
            print("Error: Please provide the number of days to keep")
            sys.exit(1)
        prune_runs(int(sys.argv[2]))
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)
