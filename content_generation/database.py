"""
MongoDB connection shared by the persistence modules.
"""

import os
from dotenv import load_dotenv
from bson import ObjectId
from pymongo import MongoClient, DESCENDING

load_dotenv()

MONGODB_URI = os.getenv('MONGODB_URI', 'mongodb://localhost:27017/')
MONGODB_DB_NAME = os.getenv('MONGODB_DB_NAME', 'deep_content')

CONTENT_SESSIONS = 'contentSessions'
CONVERSATIONS = 'conversations'

# MongoClient connects lazily; nothing touches the network until the first query
client = MongoClient(MONGODB_URI)
db = client[MONGODB_DB_NAME]


def ensure_indexes(database=None):
    """Create the per-user listing indexes. Called once at application startup."""
    database = database if database is not None else db
    database[CONTENT_SESSIONS].create_index([("userId", 1), ("createdAt", DESCENDING)])
    database[CONVERSATIONS].create_index([("userId", 1), ("createdAt", DESCENDING)])


def find_by_id(collection, doc_id: str):
    """Document with the given string id, or None when the id is malformed or unknown."""
    if not doc_id or not ObjectId.is_valid(doc_id):
        return None
    return collection.find_one({"_id": ObjectId(doc_id)})
