"""User accounts stored in a MongoDB collection."""

from __future__ import annotations

from typing import Any, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .packet import MAX_NAME_LEN
from .users import User

_FIELD_LIMIT = MAX_NAME_LEN - 1
_UID_BASE = 1000


class DatabaseError(Exception):
    """Raised when the database cannot be reached or a query fails."""


def _is_int32(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class UserDatabase:
    """Queries over the ``users`` collection."""

    def __init__(self, collection: Any, client: Any = None) -> None:
        self.collection = collection
        self.client = client

    @classmethod
    def connect(cls, uri: str, dbname: str) -> "UserDatabase":
        """Connect to ``uri``, check the server answers a ping, and open ``dbname.users``."""
        client = None
        try:
            client = MongoClient(uri)
            client.admin.command("ping")
        except PyMongoError as exc:
            if client is not None:
                client.close()
            raise DatabaseError(f"cannot connect to MongoDB: {exc}") from exc
        return cls(client[dbname]["users"], client)

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None

    def __enter__(self) -> "UserDatabase":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _find(self, query: dict) -> list[dict]:
        try:
            return list(self.collection.find(query))
        except PyMongoError as exc:
            raise DatabaseError(f"query failed: {exc}") from exc

    def find_user_by_id(self, user_id: str) -> bool:
        """Whether an account with ``user_id`` exists."""
        return any(doc.get("id") == user_id for doc in self._find({"id": user_id}))

    def find_user_by_pw(self, user_id: str, password: str) -> Optional[User]:
        """Return the account matching ``user_id`` and ``password``, or None."""
        for doc in self._find({"id": user_id}):
            stored_pw = doc.get("password")
            name = doc.get("name")
            uid = doc.get("uid")
            uid = uid if _is_int32(uid) else -1
            if not isinstance(stored_pw, str) or not isinstance(name, str) or uid == 0:
                continue
            if stored_pw != password:
                continue
            return User(id=user_id[:_FIELD_LIMIT], name=name[:_FIELD_LIMIT], uid=uid)
        return None

    def find_all_users(self) -> list[User]:
        """Every account that has both an id and a name."""
        users = []
        for doc in self._find({}):
            user_id, name = doc.get("id"), doc.get("name")
            if isinstance(user_id, str) and isinstance(name, str):
                users.append(User(id=user_id[:_FIELD_LIMIT], name=name[:_FIELD_LIMIT]))
        return users

    def insert_user(self, user_id: str, password: str, nickname: str) -> bool:
        """Create an account; return False if ``user_id`` is already taken."""
        uid = self.next_uid()
        if self.find_user_by_id(user_id):
            return False
        document = {"id": user_id, "password": password, "name": nickname, "uid": uid}
        try:
            self.collection.insert_one(document)
        except PyMongoError as exc:
            raise DatabaseError(f"insert failed: {exc}") from exc
        return True

    def update_user_name(self, uid: int, new_name: str) -> None:
        """Set the display name of the account with ``uid``."""
        try:
            self.collection.update_one({"uid": uid}, {"$set": {"name": new_name}})
        except PyMongoError as exc:
            raise DatabaseError(f"name update failed: {exc}") from exc

    def next_uid(self) -> int:
        """The uid for the next account: the account count plus 1000."""
        try:
            count = self.collection.count_documents({})
        except PyMongoError as exc:
            raise DatabaseError(f"count failed: {exc}") from exc
        return count + _UID_BASE