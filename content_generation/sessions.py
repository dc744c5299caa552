"""
Content session persistence.

Every operation takes the acting user's id explicitly. Ownership is an
equality check against the stored userId, done here before any read result
is returned or any write is issued.
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pymongo import DESCENDING

from content_generation import database
from content_generation.documents import DocumentSchema, normalize_many, now_millis
from content_generation.prompts import make_title

logger = logging.getLogger(__name__)

SESSION_SCHEMA = (
    DocumentSchema("contentSession")
    .field("userId", "", str, required=True)
    .field("title", "Untitled Content", str, required=True)
    .field("contentType", "other", str, required=True)
    .field("idea", "", str)
    .field("questions", list, list)
    .field("transcript", "", str)
    .field("research", "", str)
    .field("generatedContent", "", str)
    .field("contentSource", None)
    .timestamp("createdAt")
    .timestamp("updatedAt")
)

# Never taken from caller-supplied data
PROTECTED_FIELDS = {"_id", "id", "userId", "createdAt", "updatedAt"}

LIST_RETRIES = 3
LIST_RETRY_DELAY = 1.0


def _collection():
    return database.db[database.CONTENT_SESSIONS]


def _error_entry(doc: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    now = now_millis()
    return {
        "id": str(doc.get("_id", "")),
        "userId": user_id,
        "title": "Content (Error Loading)",
        "contentType": "other",
        "idea": "",
        "questions": [],
        "transcript": "",
        "research": "",
        "generatedContent": "",
        "contentSource": None,
        "createdAt": now,
        "updatedAt": now,
    }


def get_session_owner(session_id: str) -> Optional[str]:
    """Stored userId of a session, or None when the session does not exist."""
    doc = database.find_by_id(_collection(), session_id)
    if not doc:
        return None
    return doc.get("userId") or ""


def save_content_session(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Insert a new session owned by `user_id`. The id and both timestamps are
    assigned here; the title defaults to the start of the idea.
    """
    if not user_id:
        raise ValueError("A user id is required to save a content session")

    fields = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS and v is not None}
    now = datetime.utcnow()
    doc = {
        **fields,
        "userId": user_id,
        "title": fields.get("title") or make_title(fields.get("idea", "")),
        "questions": fields.get("questions") or [],
        "createdAt": now,
        "updatedAt": now,
    }

    result = _collection().insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("[sessions] Saved content session %s for user %s", result.inserted_id, user_id)
    return SESSION_SCHEMA.normalize(doc, defaults={"userId": user_id})


def get_content_session(session_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    """Normalized session, or None when it does not exist or belongs to another user."""
    doc = database.find_by_id(_collection(), session_id)
    if not doc:
        logger.info("[sessions] Content session %s not found", session_id)
        return None
    if doc.get("userId") != user_id:
        logger.warning("[sessions] User %s may not read content session %s", user_id, session_id)
        return None
    return SESSION_SCHEMA.normalize(doc, defaults={"userId": user_id})


def list_content_sessions(
    user_id: str,
    retry_on_empty: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> List[Dict[str, Any]]:
    """
    All sessions of a user, newest first.

    With `retry_on_empty` (used right after a save) an empty result is
    retried up to LIST_RETRIES times, LIST_RETRY_DELAY seconds apart, to ride
    out replication lag. Query failures are logged and yield [].
    """
    attempt = 0
    while True:
        try:
            docs = list(_collection().find({"userId": user_id}).sort("createdAt", DESCENDING))
        except Exception as e:
            logger.error("[sessions] Error listing content sessions for user %s: %s", user_id, e)
            docs = []

        if docs or not retry_on_empty or attempt >= LIST_RETRIES:
            break
        attempt += 1
        logger.info("[sessions] No sessions found for %s, retrying (%d/%d)", user_id, attempt, LIST_RETRIES)
        sleep(LIST_RETRY_DELAY)

    return normalize_many(
        SESSION_SCHEMA,
        docs,
        defaults={"userId": user_id},
        on_error=lambda doc, e: _error_entry(doc, user_id),
    )


def update_content_session(session_id: str, user_id: str, updates: Dict[str, Any]) -> bool:
    """Apply `updates` to a session the user owns and stamp updatedAt. False when refused."""
    collection = _collection()
    doc = database.find_by_id(collection, session_id)
    if not doc or doc.get("userId") != user_id:
        logger.warning("[sessions] Update of content session %s refused for user %s", session_id, user_id)
        return False

    changes = {k: v for k, v in updates.items() if k not in PROTECTED_FIELDS}
    changes["updatedAt"] = datetime.utcnow()
    collection.update_one({"_id": doc["_id"]}, {"$set": changes})
    return True


def delete_content_session(session_id: str, user_id: str) -> bool:
    """Delete a session the user owns. A foreign or missing session is left untouched."""
    collection = _collection()
    doc = database.find_by_id(collection, session_id)
    if not doc:
        logger.warning("[sessions] Cannot delete content session %s: not found", session_id)
        return False
    if doc.get("userId") != user_id:
        logger.warning("[sessions] Cannot delete content session %s: user %s does not have permission", session_id, user_id)
        return False

    collection.delete_one({"_id": doc["_id"]})
    logger.info("[sessions] Deleted content session %s", session_id)
    return True


# --- Repair ---

def repair_updates(doc: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """The $set that gives a stored session every required field with the right type."""
    now = datetime.utcnow()
    overrides = {"userId": user_id, "title": "Repaired Content", "createdAt": now, "updatedAt": now}
    return {name: SESSION_SCHEMA.default_for(name, overrides) for name in SESSION_SCHEMA.missing_fields(doc)}


def repair_content_session(session_id: str, user_id: str) -> bool:
    """
    Fill in missing required fields of one stored session.

    A session without a userId is adopted by the repairing user; a session
    owned by someone else is refused.
    """
    collection = _collection()
    try:
        doc = database.find_by_id(collection, session_id)
        if not doc:
            logger.error("[repair] Document %s does not exist", session_id)
            return False

        owner = doc.get("userId")
        if owner and owner != user_id:
            logger.warning("[repair] User %s may not repair content session %s", user_id, session_id)
            return False

        updates = repair_updates(doc, user_id)
        if updates:
            logger.info("[repair] Applying repairs to %s: %s", session_id, sorted(updates))
            collection.update_one({"_id": doc["_id"]}, {"$set": updates})
        else:
            logger.info("[repair] No repairs needed for %s", session_id)
        return True
    except Exception as e:
        logger.error("[repair] Error repairing content session %s: %s", session_id, e)
        return False


def repair_all_user_sessions(user_id: str) -> int:
    """Repair every session of a user. Returns how many were repaired (or needed nothing)."""
    try:
        ids = [str(doc["_id"]) for doc in _collection().find({"userId": user_id}, {"_id": 1})]
    except Exception as e:
        logger.error("[repair] Error listing sessions of user %s: %s", user_id, e)
        return 0

    repaired = sum(1 for session_id in ids if repair_content_session(session_id, user_id))
    logger.info("[repair] Repaired %d of %d sessions for user %s", repaired, len(ids), user_id)
    return repaired
