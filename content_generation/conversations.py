"""Chat conversation persistence. Conversations are written once and only ever deleted afterwards."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from content_generation import database
from content_generation.documents import DocumentSchema, normalize_many, now_millis, to_epoch_millis

logger = logging.getLogger(__name__)

CONVERSATION_SCHEMA = (
    DocumentSchema("conversation")
    .field("userId", "", str)
    .field("title", "Untitled Conversation", str)
    .field("messages", list, list)
    .timestamp("createdAt")
    .timestamp("updatedAt")
)


def _collection():
    return database.db[database.CONVERSATIONS]


def conversation_title(messages: List[Dict[str, Any]], title: Optional[str] = None) -> str:
    if title:
        return title
    if messages and messages[0].get("role") == "user":
        first = messages[0].get("content") or ""
        return first[:50] + ("..." if len(first) > 50 else "")
    return "New Conversation"


def _normalize_messages(conversation: Dict[str, Any]) -> Dict[str, Any]:
    conversation["messages"] = [
        {
            "role": m.get("role"),
            "content": m.get("content") or "",
            "timestamp": to_epoch_millis(m.get("timestamp"), default=conversation["createdAt"]),
        }
        for m in conversation["messages"]
        if isinstance(m, dict)
    ]
    return conversation


def _normalize(doc: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    return _normalize_messages(CONVERSATION_SCHEMA.normalize(doc, defaults={"userId": user_id}))


def get_conversation_owner(conversation_id: str) -> Optional[str]:
    doc = database.find_by_id(_collection(), conversation_id)
    if not doc:
        return None
    return doc.get("userId") or ""


def save_conversation(user_id: str, messages: List[Dict[str, Any]], title: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Persist a finished chat. Messages without a timestamp are stamped now. None when there is no user."""
    if not user_id:
        logger.error("[conversations] Cannot save conversation: no authenticated user")
        return None

    now = datetime.utcnow()
    doc = {
        "userId": user_id,
        "title": conversation_title(messages, title),
        "messages": [
            {
                "role": m["role"],
                "content": m["content"],
                "timestamp": m.get("timestamp") or now,
            }
            for m in messages
        ],
        "createdAt": now,
        "updatedAt": now,
    }
    result = _collection().insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("[conversations] Saved conversation %s (%d messages) for user %s", result.inserted_id, len(messages), user_id)
    return _normalize(doc, user_id)


def list_conversations(user_id: str) -> List[Dict[str, Any]]:
    """Conversations of a user, newest first. Errors are logged and yield []."""
    try:
        docs = list(_collection().find({"userId": user_id}).sort("createdAt", DESCENDING))
    except Exception as e:
        logger.error("[conversations] Error getting conversations for user %s: %s", user_id, e)
        return []

    def error_entry(doc, exc):
        logger.error("[conversations] Error processing conversation %s: %s", doc.get("_id"), exc)
        now = now_millis()
        return {
            "id": str(doc.get("_id", "")),
            "userId": user_id,
            "title": "Conversation (Error Loading)",
            "messages": [],
            "createdAt": now,
            "updatedAt": now,
        }

    conversations = normalize_many(CONVERSATION_SCHEMA, docs, defaults={"userId": user_id}, on_error=error_entry)
    return [_normalize_messages(c) for c in conversations]


def get_conversation(conversation_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    doc = database.find_by_id(_collection(), conversation_id)
    if not doc:
        logger.error("[conversations] Conversation not found: %s", conversation_id)
        return None
    if doc.get("userId") != user_id:
        logger.error("[conversations] Cannot access conversation %s: user does not have permission", conversation_id)
        return None
    return _normalize(doc, user_id)


def delete_conversation(conversation_id: str, user_id: str) -> bool:
    collection = _collection()
    doc = database.find_by_id(collection, conversation_id)
    if not doc:
        logger.error("[conversations] Cannot delete conversation %s: not found", conversation_id)
        return False
    if doc.get("userId") != user_id:
        logger.error("[conversations] Cannot delete conversation %s: user does not have permission", conversation_id)
        return False
    collection.delete_one({"_id": doc["_id"]})
    return True
