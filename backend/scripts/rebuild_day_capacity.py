"""
BakeryCore - Rebuild Day Capacity Counters
==========================================
Resets every per-day counter (day_capacity) to the number of active
bookings (pending/confirmed) in the ledger.

Use after editing bookings directly in the database.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from core.database import client, db
from booking_capacity import rebuild_day_counters


async def main():
    print("=" * 70)
    print("🔄 REBUILD DAY CAPACITY COUNTERS")
    print("=" * 70)

    counters = await rebuild_day_counters(db)

    if not counters:
        print("\nNo bookings and no counters found.")
    for day, reserved in counters.items():
        print(f"   • {day}: {reserved} active booking(s)")

    client.close()
    print("\n✅ Done!")


if __name__ == "__main__":
    asyncio.run(main())
