"""Tests for chat conversation persistence."""

from datetime import datetime

from bson import ObjectId

from content_generation import conversations

MESSAGES = [
    {"role": "user", "content": "Help me outline a post about remote work"},
    {"role": "assistant", "content": "Sure, here is an outline...", "timestamp": 1709294400000},
]


class TestTitle:
    def test_explicit_title_wins(self):
        assert conversations.conversation_title(MESSAGES, "Mine") == "Mine"

    def test_first_user_message(self):
        assert conversations.conversation_title(MESSAGES) == "Help me outline a post about remote work"

    def test_long_first_message_is_cut(self):
        title = conversations.conversation_title([{"role": "user", "content": "w" * 60}])
        assert title == "w" * 50 + "..."

    def test_default(self):
        assert conversations.conversation_title([]) == "New Conversation"
        assert conversations.conversation_title([{"role": "assistant", "content": "Hi"}]) == "New Conversation"


class TestPersistence:
    def test_save_and_get(self, mongo_db):
        saved = conversations.save_conversation("user-a", MESSAGES)
        fetched = conversations.get_conversation(saved["id"], "user-a")

        assert fetched["title"] == "Help me outline a post about remote work"
        assert [m["role"] for m in fetched["messages"]] == ["user", "assistant"]
        assert fetched["messages"][1]["timestamp"] == 1709294400000
        # stamped at save
        assert fetched["messages"][0]["timestamp"] == fetched["createdAt"]

    def test_save_without_user(self, mongo_db):
        assert conversations.save_conversation("", MESSAGES) is None
        assert mongo_db["conversations"].count_documents({}) == 0

    def test_list_newest_first(self, mongo_db):
        mongo_db["conversations"].insert_many([
            {"userId": "user-a", "title": "old", "messages": [], "createdAt": datetime(2024, 1, 1)},
            {"userId": "user-a", "title": "new", "messages": [], "createdAt": datetime(2024, 2, 1)},
            {"userId": "user-b", "title": "theirs", "messages": [], "createdAt": datetime(2024, 3, 1)},
        ])
        assert [c["title"] for c in conversations.list_conversations("user-a")] == ["new", "old"]

    def test_broken_messages_are_normalized(self, mongo_db):
        inserted = mongo_db["conversations"].insert_one({
            "userId": "user-a",
            "messages": [{"role": "user", "content": None, "timestamp": {"seconds": 1709294400}}, "garbage"],
            "createdAt": datetime(2024, 3, 1, 12, 0, 0),
        })
        fetched = conversations.get_conversation(str(inserted.inserted_id), "user-a")

        assert fetched["title"] == "Untitled Conversation"
        assert fetched["messages"] == [{"role": "user", "content": "", "timestamp": 1709294400000}]

    def test_infinite_timestamps_fall_back(self, mongo_db):
        inserted = mongo_db["conversations"].insert_one({
            "userId": "user-a",
            "messages": [
                {"role": "user", "content": "Hi", "timestamp": "inf"},
                {"role": "assistant", "content": "Hello", "timestamp": {"seconds": 1709294400, "nanoseconds": "7"}},
            ],
            "createdAt": datetime(2024, 3, 1, 12, 0, 0),
            "updatedAt": float("inf"),
        })
        fetched = conversations.get_conversation(str(inserted.inserted_id), "user-a")

        assert [m["timestamp"] for m in fetched["messages"]] == [1709294400000, 1709294400000]
        assert isinstance(fetched["updatedAt"], int)

    def test_other_user_cannot_read_or_delete(self, mongo_db):
        saved = conversations.save_conversation("user-a", MESSAGES)

        assert conversations.get_conversation(saved["id"], "user-b") is None
        assert conversations.delete_conversation(saved["id"], "user-b") is False
        assert mongo_db["conversations"].count_documents({"_id": ObjectId(saved["id"])}) == 1

    def test_delete(self, mongo_db):
        saved = conversations.save_conversation("user-a", MESSAGES)
        assert conversations.delete_conversation(saved["id"], "user-a") is True
        assert conversations.get_conversation(saved["id"], "user-a") is None
        assert conversations.get_conversation_owner(saved["id"]) is None
