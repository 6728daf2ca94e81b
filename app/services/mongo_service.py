"""
MongoDB Service - CRUD operations for document collections.

Collections in this database:
1. students            - Student accounts with embedded projects, certifications,
                         events and coding logs
2. recruiters          - Recruiter accounts and saved candidates
3. admins              - Admin accounts
4. jobs                - Job postings and cached match results
5. notifications       - Per-user notification inbox
6. skill_market_data   - Aggregated job-market signals per skill
7. interview_sessions  - Mock interview sessions

Documents are plain dicts. Embedded array items get their own ObjectId `_id`
so they can be addressed individually (verification, edits, deletes).
"""

from typing import Optional, List, Dict, Any
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument, DESCENDING
from pymongo.collection import Collection

from app.db.mongodb import get_collection, COLLECTIONS
from app.utils.dates import utcnow


# ============================================================
# HELPERS: ObjectId conversion and JSON serialization
# ============================================================

def is_valid_id(value: Any) -> bool:
    return isinstance(value, ObjectId) or (isinstance(value, str) and ObjectId.is_valid(value))


def to_object_id(value: Any) -> ObjectId:
    """Convert a string id to ObjectId. Raises ValueError for malformed ids."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError) as e:
        raise ValueError(f"Invalid id: {value}") from e


def serialize_doc(doc: Any) -> Any:
    """Convert a MongoDB document (recursively) to a JSON-serializable value."""
    if doc is None:
        return None
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, dict):
        return {key: serialize_doc(value) for key, value in doc.items()}
    if isinstance(doc, list):
        return [serialize_doc(item) for item in doc]
    return doc


def serialize_docs(docs: list) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


def find_embedded(doc: dict, array_name: str, item_id: Any) -> Optional[dict]:
    """Locate an embedded array item by its `_id`."""
    if not is_valid_id(item_id):
        return None
    target = to_object_id(item_id)
    for item in doc.get(array_name) or []:
        if item.get("_id") == target:
            return item
    return None


# Embedded arrays that admins can verify
VERIFIABLE_ARRAYS = {
    "project": "projects",
    "certification": "certifications",
    "event": "events",
}

# Never returned to clients
PRIVATE_FIELDS = {"password_hash": 0}


# ============================================================
# ACCOUNT COLLECTIONS (students, recruiters, admins)
# ============================================================

class AccountService:
    """
    Shared account operations. Subclasses set `collection_key`.
    Emails are stored lowercased and unique per collection.
    """

    collection_key: str = ""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS[self.collection_key])

    def _defaults(self) -> dict:
        return {}

    def create(self, data: dict) -> str:
        """Insert a new account. `data` must already carry `password_hash`."""
        now = utcnow()
        doc = {**self._defaults(), **data}
        doc["email"] = doc["email"].strip().lower()
        doc["created_at"] = now
        doc["updated_at"] = now
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def get_by_id(self, account_id: Any, projection: dict = None) -> Optional[dict]:
        if not is_valid_id(account_id):
            return None
        return self.collection.find_one(
            {"_id": to_object_id(account_id)},
            projection if projection is not None else PRIVATE_FIELDS
        )

    def get_by_email(self, email: str, include_password: bool = False) -> Optional[dict]:
        projection = None if include_password else PRIVATE_FIELDS
        return self.collection.find_one({"email": email.strip().lower()}, projection)

    def email_exists(self, email: str) -> bool:
        return self.collection.count_documents({"email": email.strip().lower()}, limit=1) > 0

    def update_fields(self, account_id: Any, fields: dict) -> Optional[dict]:
        """Set fields and return the updated document (without password)."""
        fields = {**fields, "updated_at": utcnow()}
        return self.collection.find_one_and_update(
            {"_id": to_object_id(account_id)},
            {"$set": fields},
            projection=PRIVATE_FIELDS,
            return_document=ReturnDocument.AFTER
        )

    def touch_login(self, account_id: Any) -> None:
        self.collection.update_one(
            {"_id": to_object_id(account_id)},
            {"$set": {"last_login_at": utcnow()}}
        )

    def delete(self, account_id: Any) -> bool:
        result = self.collection.delete_one({"_id": to_object_id(account_id)})
        return result.deleted_count > 0


class StudentService(AccountService):
    """
    Handles student documents.
    Embedded arrays: projects, certifications, events, coding_logs.
    """

    collection_key = "students"

    def _defaults(self) -> dict:
        return {
            "skills": [],
            "projects": [],
            "certifications": [],
            "events": [],
            "coding_logs": [],
            "badges": [],
            "skill_radar": {},
            "readiness_score": 0,
            "readiness_history": [],
            "streak_days": 0,
            "coding_profiles": {},
            "leetcode_stats": {},
            "github_stats": {},
            "validated_skills": [],
        }

    def list_students(self, query: dict = None, projection: dict = None) -> List[dict]:
        cursor = self.collection.find(
            query or {},
            projection if projection is not None else PRIVATE_FIELDS
        )
        return list(cursor)

    def get_many(self, student_ids: List[Any]) -> List[dict]:
        ids = [to_object_id(s) for s in student_ids if is_valid_id(s)]
        if not ids:
            return []
        return list(self.collection.find({"_id": {"$in": ids}}, PRIVATE_FIELDS))

    def save(self, student: dict) -> bool:
        """Write back a whole (modified) student document."""
        fields = {k: v for k, v in student.items() if k not in ("_id", "password_hash")}
        fields["updated_at"] = utcnow()
        result = self.collection.update_one({"_id": student["_id"]}, {"$set": fields})
        return result.matched_count > 0

    def unset_fields(self, student_id: Any, *field_names: str) -> bool:
        result = self.collection.update_one(
            {"_id": to_object_id(student_id)},
            {"$unset": {name: "" for name in field_names}, "$set": {"updated_at": utcnow()}}
        )
        return result.matched_count > 0

    # ---------- embedded arrays ----------

    def add_item(self, student_id: Any, array_name: str, item: dict) -> dict:
        """Push an item into an embedded array; returns the item with its new `_id`."""
        item = {"_id": ObjectId(), **item}
        self.collection.update_one(
            {"_id": to_object_id(student_id)},
            {"$push": {array_name: item}, "$set": {"updated_at": utcnow()}}
        )
        return item

    def update_item(self, student_id: Any, array_name: str, item_id: Any, fields: dict) -> bool:
        """Update fields of one embedded item using the positional operator."""
        if not is_valid_id(item_id):
            return False
        updates = {f"{array_name}.$.{key}": value for key, value in fields.items()}
        updates["updated_at"] = utcnow()
        result = self.collection.update_one(
            {"_id": to_object_id(student_id), f"{array_name}._id": to_object_id(item_id)},
            {"$set": updates}
        )
        return result.matched_count > 0

    def remove_item(self, student_id: Any, array_name: str, item_id: Any) -> bool:
        if not is_valid_id(item_id):
            return False
        result = self.collection.update_one(
            {"_id": to_object_id(student_id)},
            {"$pull": {array_name: {"_id": to_object_id(item_id)}}}
        )
        return result.modified_count > 0

    # ---------- readiness ----------

    def record_readiness(self, student_id: Any, score: int) -> None:
        """Store the new readiness score and append it to the history."""
        now = utcnow()
        self.collection.update_one(
            {"_id": to_object_id(student_id)},
            {
                "$set": {"readiness_score": score, "updated_at": now},
                "$push": {"readiness_history": {"score": score, "calculated_at": now}}
            }
        )

    def leaderboard(self, limit: int = 20) -> List[dict]:
        cursor = self.collection.find(
            {},
            {"name": 1, "college": 1, "branch": 1, "readiness_score": 1,
             "badges": 1, "streak_days": 1, "avatar_url": 1}
        ).sort("readiness_score", DESCENDING).limit(limit)
        return list(cursor)

    # ---------- admin views ----------

    def find_with_pending_items(self) -> List[dict]:
        return list(self.collection.find(
            {"$or": [
                {"projects.status": "pending"},
                {"certifications.status": "pending"},
                {"events.status": "pending"},
            ]},
            {"name": 1, "email": 1, "projects": 1, "certifications": 1, "events": 1}
        ))

    def count(self) -> int:
        return self.collection.count_documents({})

    def count_verified_projects(self) -> int:
        result = list(self.collection.aggregate([
            {"$unwind": "$projects"},
            {"$match": {"projects.status": "verified"}},
            {"$count": "count"},
        ]))
        return result[0]["count"] if result else 0

    def count_pending_items(self) -> int:
        def pending_size(array_name: str) -> dict:
            return {"$size": {"$filter": {
                "input": {"$ifNull": [f"${array_name}", []]},
                "as": "item",
                "cond": {"$eq": ["$$item.status", "pending"]},
            }}}

        result = list(self.collection.aggregate([
            {"$project": {"pending_total": {"$add": [
                pending_size("projects"),
                pending_size("certifications"),
                pending_size("events"),
            ]}}},
            {"$group": {"_id": None, "total": {"$sum": "$pending_total"}}},
        ]))
        return result[0]["total"] if result else 0


class RecruiterService(AccountService):
    """Handles recruiter documents and their saved candidates."""

    collection_key = "recruiters"

    def _defaults(self) -> dict:
        return {
            "preferences": {"roles": [], "min_score": 0, "skills": []},
            "saved_candidates": [],
            "profile_completed": False,
        }

    def save_candidate(self, recruiter_id: Any, student_id: Any) -> bool:
        result = self.collection.update_one(
            {"_id": to_object_id(recruiter_id)},
            {"$addToSet": {"saved_candidates": to_object_id(student_id)}}
        )
        return result.modified_count > 0

    def remove_candidate(self, recruiter_id: Any, student_id: Any) -> bool:
        result = self.collection.update_one(
            {"_id": to_object_id(recruiter_id)},
            {"$pull": {"saved_candidates": to_object_id(student_id)}}
        )
        return result.modified_count > 0


class AdminService(AccountService):
    """Handles admin documents."""

    collection_key = "admins"


# ============================================================
# JOBS COLLECTION
# Stores postings plus the cached output of the matcher
# ============================================================

class JobService:
    """
    Handles job postings.
    `matched_students` is a cache: every matching run overwrites it.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["jobs"])

    def create(self, data: dict) -> dict:
        now = utcnow()
        doc = {
            "matched_students": [],
            "match_count": 0,
            "last_matched_at": None,
            "status": "draft",
            "view_count": 0,
            **data,
            "created_at": now,
            "updated_at": now,
        }
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def get_by_id(self, job_id: Any) -> Optional[dict]:
        if not is_valid_id(job_id):
            return None
        return self.collection.find_one({"_id": to_object_id(job_id)})

    def list_by_recruiter(self, recruiter_id: Any, status: str = None) -> List[dict]:
        query = {"recruiter_id": to_object_id(recruiter_id)}
        if status:
            query["status"] = status
        return list(self.collection.find(query).sort("created_at", DESCENDING))

    def list_active(self) -> List[dict]:
        return list(self.collection.find({"status": "active"}))

    def update_fields(self, job_id: Any, fields: dict) -> Optional[dict]:
        fields = {**fields, "updated_at": utcnow()}
        return self.collection.find_one_and_update(
            {"_id": to_object_id(job_id)},
            {"$set": fields},
            return_document=ReturnDocument.AFTER
        )

    def increment_views(self, job_id: Any) -> None:
        self.collection.update_one({"_id": to_object_id(job_id)}, {"$inc": {"view_count": 1}})

    def save_matches(self, job_id: Any, matched_students: List[dict]) -> None:
        """Overwrite the cached match results."""
        now = utcnow()
        self.collection.update_one(
            {"_id": to_object_id(job_id)},
            {"$set": {
                "matched_students": matched_students,
                "match_count": len(matched_students),
                "last_matched_at": now,
                "updated_at": now,
            }}
        )

    def delete(self, job_id: Any) -> bool:
        result = self.collection.delete_one({"_id": to_object_id(job_id)})
        return result.deleted_count > 0


# ============================================================
# NOTIFICATIONS COLLECTION
# ============================================================

class NotificationService:
    """Stored notifications, scoped to their recipient."""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["notifications"])

    def create(
        self,
        recipient_id: Any,
        recipient_role: str,
        type: str,
        title: str,
        message: str,
        data: dict = None
    ) -> str:
        doc = {
            "recipient_id": to_object_id(recipient_id),
            "recipient_role": recipient_role,
            "type": type,
            "title": title,
            "message": message,
            "data": data or {},
            "read": False,
            "created_at": utcnow(),
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def list_for(self, recipient_id: Any, unread_only: bool = False, limit: int = 50) -> List[dict]:
        query = {"recipient_id": to_object_id(recipient_id)}
        if unread_only:
            query["read"] = False
        cursor = self.collection.find(query).sort("created_at", DESCENDING).limit(limit)
        return list(cursor)

    def unread_count(self, recipient_id: Any) -> int:
        return self.collection.count_documents(
            {"recipient_id": to_object_id(recipient_id), "read": False}
        )

    def mark_read(self, notification_id: Any, recipient_id: Any) -> bool:
        if not is_valid_id(notification_id):
            return False
        result = self.collection.update_one(
            {"_id": to_object_id(notification_id), "recipient_id": to_object_id(recipient_id)},
            {"$set": {"read": True, "read_at": utcnow()}}
        )
        return result.matched_count > 0

    def mark_all_read(self, recipient_id: Any) -> int:
        result = self.collection.update_many(
            {"recipient_id": to_object_id(recipient_id), "read": False},
            {"$set": {"read": True, "read_at": utcnow()}}
        )
        return result.modified_count

    def delete(self, notification_id: Any, recipient_id: Any) -> bool:
        if not is_valid_id(notification_id):
            return False
        result = self.collection.delete_one(
            {"_id": to_object_id(notification_id), "recipient_id": to_object_id(recipient_id)}
        )
        return result.deleted_count > 0


# ============================================================
# SKILL MARKET DATA COLLECTION
# ============================================================

class SkillMarketDataService:
    """One document per tracked skill, upserted by the daily refresh."""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["skill_market_data"])

    def get_by_name(self, skill_name: str) -> Optional[dict]:
        return self.collection.find_one({"skill_name": skill_name})

    def upsert(self, skill_name: str, fields: dict) -> None:
        self.collection.update_one(
            {"skill_name": skill_name},
            {"$set": fields, "$setOnInsert": {"created_at": utcnow()}},
            upsert=True
        )

    def count(self) -> int:
        return self.collection.count_documents({})

    def most_recent(self) -> Optional[dict]:
        return self.collection.find_one({}, sort=[("last_updated", DESCENDING)])

    def list_skills(self, category: str = None, limit: int = 50) -> List[dict]:
        query = {"category": category} if category else {}
        cursor = self.collection.find(query).sort("demand_score", DESCENDING).limit(limit)
        return list(cursor)

    def list_by_trend(self, trend: str, limit: int = 10) -> List[dict]:
        cursor = self.collection.find({"trend": trend}).sort("yoy_growth", DESCENDING).limit(limit)
        return list(cursor)


# ============================================================
# INTERVIEW SESSIONS COLLECTION
# ============================================================

class InterviewSessionService:
    """Mock interview sessions, one document per session."""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["interview_sessions"])

    def create(self, data: dict) -> dict:
        doc = {**data, "started_at": utcnow()}
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def get_by_id(self, session_id: Any) -> Optional[dict]:
        if not is_valid_id(session_id):
            return None
        return self.collection.find_one({"_id": to_object_id(session_id)})

    def save(self, session: dict) -> None:
        fields = {k: v for k, v in session.items() if k != "_id"}
        self.collection.update_one({"_id": session["_id"]}, {"$set": fields})

    def list_by_student(self, student_id: Any, status: str = None, limit: int = 50) -> List[dict]:
        query = {"student_id": to_object_id(student_id)}
        if status:
            query["status"] = status
        cursor = self.collection.find(query).sort("started_at", DESCENDING).limit(limit)
        return list(cursor)

    def latest_completed(self, student_id: Any, exclude_id: Any = None) -> Optional[dict]:
        query = {"student_id": to_object_id(student_id), "status": "completed"}
        if exclude_id is not None:
            query["_id"] = {"$ne": to_object_id(exclude_id)}
        return self.collection.find_one(query, sort=[("completed_at", DESCENDING)])


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def get_student_service() -> StudentService:
    return StudentService()


def get_recruiter_service() -> RecruiterService:
    return RecruiterService()


def get_admin_service() -> AdminService:
    return AdminService()


def get_job_service() -> JobService:
    return JobService()


def get_notification_service() -> NotificationService:
    return NotificationService()


def get_market_data_service() -> SkillMarketDataService:
    return SkillMarketDataService()


def get_interview_service() -> InterviewSessionService:
    return InterviewSessionService()
