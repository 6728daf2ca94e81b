"""
MongoDB Connection Utility

MongoDB is the only datastore. Collections:
- students, recruiters, admins: one document per account with embedded arrays
  (projects, certifications, events, coding logs)
- jobs: postings with their cached match results
- notifications: per-recipient inbox
- skill_market_data: daily aggregated job-market signals
- interview_sessions: mock interview transcripts and summaries
"""
import logging

from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.collection import Collection
from app.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri, tz_aware=True)
    return _client


def get_mongo_db() -> Database:
    """Get the application database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def get_collection(name: str) -> Collection:
    """Get a specific collection by name (see COLLECTIONS)."""
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        client.admin.command('ping')
        return True
    except Exception as e:
        logger.error(f"MongoDB connection failed: {e}")
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "students": "students",
    "recruiters": "recruiters",
    "admins": "admins",
    "jobs": "jobs",
    "notifications": "notifications",
    "skill_market_data": "skill_market_data",
    "interview_sessions": "interview_sessions",
}


def init_mongo_indexes():
    """
    Create indexes for uniqueness and query performance.
    Call this once during app startup.
    """
    db = get_mongo_db()

    # One account per email in each role collection
    for name in ("students", "recruiters", "admins"):
        db[COLLECTIONS[name]].create_index("email", unique=True)

    db[COLLECTIONS["students"]].create_index([("readiness_score", DESCENDING)])

    db[COLLECTIONS["jobs"]].create_index([("recruiter_id", ASCENDING), ("status", ASCENDING)])
    db[COLLECTIONS["jobs"]].create_index([("status", ASCENDING), ("expires_at", ASCENDING)])

    db[COLLECTIONS["notifications"]].create_index([
        ("recipient_id", ASCENDING),
        ("created_at", DESCENDING)
    ])

    db[COLLECTIONS["skill_market_data"]].create_index("skill_name", unique=True)
    db[COLLECTIONS["skill_market_data"]].create_index([
        ("category", ASCENDING),
        ("demand_score", DESCENDING)
    ])

    db[COLLECTIONS["interview_sessions"]].create_index([
        ("student_id", ASCENDING),
        ("started_at", DESCENDING)
    ])

    logger.info("MongoDB indexes created successfully")
