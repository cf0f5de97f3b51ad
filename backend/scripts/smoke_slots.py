from __future__ import annotations

import argparse
import asyncio
import json
from datetime import date, timedelta

from app.core.config import LOG_LEVEL
from app.core.logging import configure_logging
from app.services.db_service import DBService
from app.core.database import AsyncSessionLocal
from app.services.slot_generator import SlotGenerator


async def run_smoke(
    organizer_id: str,
    duration: int,
    days: int,
    timezone: str | None,
) -> None:
    async with AsyncSessionLocal() as session:
        db = DBService(session)
        policy = await db.load_policy(organizer_id)
        rules = await db.load_availability(organizer_id)

    if policy is None or rules is None:
        print(json.dumps({"error": f"organizer {organizer_id} not found"}))
        return

    start = date.today()
    slots = await SlotGenerator().generate_slots(
        organizer_id,
        duration,
        (start, start + timedelta(days=days)),
        requester_timezone=timezone,
    )

    print(json.dumps({
        "timezone": rules.timezone,
        "windows": len(rules.windows),
        "overrides": len(rules.overrides),
        "policy": {
            "buffer_minutes": policy.buffer_minutes,
            "advance_booking_days": policy.advance_booking_days,
            "min_advance_hours": policy.min_advance_hours,
        },
        "slot_count": len(slots),
        "first_slots": [slot.to_dict() for slot in slots[:5]],
    }, indent=2))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Smoke test slot generation against the DB.")
    parser.add_argument("--organizer-id", required=True, help="Organizer UUID")
    parser.add_argument("--duration", type=int, default=30, help="Meeting length in minutes")
    parser.add_argument("--days", type=int, default=7, help="Days ahead to scan")
    parser.add_argument("--timezone", default=None, help="Requester IANA timezone")
    return parser.parse_args()


def main() -> None:
    configure_logging(LOG_LEVEL)
    args = parse_args()
    asyncio.run(run_smoke(args.organizer_id, args.duration, args.days, args.timezone))


if __name__ == "__main__":
    main()
