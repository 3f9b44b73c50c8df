"""
Database Seeding Script.

Populates the `leads` table with sample leads for local testing.
"""

import asyncio
import os
import sys

# Add project root to path so we can import lead_reasoner
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dotenv import load_dotenv
load_dotenv(".env.local")

from lead_reasoner.db import get_db
from lead_reasoner.logging_config import setup_logging, get_logger

setup_logging()
logger = get_logger(__name__)

SAMPLE_LEADS = [
    {
        "name": "Maria Lopez",
        "phone": "+15125550101",
        "email": "maria.lopez@example.com",
        "lead_type": "buyer",
        "status": "contacted",
        "budget_range": "$500K-$600K",
        "location": "Austin",
        "timeline": "3 months",
        "motivation": "relocation",
        "intent_score": 9,
        "urgency_score": 8,
        "readiness_score": 84,
    },
    {
        "name": "James Carter",
        "phone": "+15125550102",
        "email": "james.carter@example.com",
        "lead_type": "seller",
        "status": "new",
        "location": "Round Rock",
        "intent_score": 5,
        "urgency_score": 3,
        "readiness_score": 31,
    },
    {
        "name": "Priya Shah",
        "phone": "+15125550103",
        "email": "priya.shah@example.com",
        "lead_type": "investor",
        "status": "qualified",
        "budget_range": "$300K-$400K",
        "location": "East Austin",
        "timeline": "this year",
        "motivation": "rental income",
        "intent_score": 8,
        "urgency_score": 5,
        "readiness_score": 68,
    },
]


async def seed() -> None:
    db = get_db()

    logger.info("seeding_started", leads=len(SAMPLE_LEADS))

    for lead in SAMPLE_LEADS:
        existing = db.client.table("leads").select("id").eq("email", lead["email"]).execute()

        if existing.data:
            logger.info("seed_lead_skipped", name=lead["name"], reason="already_exists")
            continue

        created = await db.create_lead(lead)
        if created:
            logger.info("seed_lead_created", name=lead["name"], id=created["id"])
        else:
            logger.error("seed_lead_failed", name=lead["name"])

    logger.info("seeding_complete")


if __name__ == "__main__":
    asyncio.run(seed())
