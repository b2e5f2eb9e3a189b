import copy
import itertools
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from marketplace_client.devserver.security import get_password_hash


class InMemoryStore:
    """
    Collection/document store for the development backend.

    Mirrors the save/get/query/update/delete surface of a document
    database, keyed by integer ids allocated per collection. Documents are
    copied on the way in and out so callers never share state with the store.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self._counters: Dict[str, itertools.count] = {}

    def _collection(self, collection_name: str) -> Dict[int, Dict[str, Any]]:
        return self._collections.setdefault(collection_name, {})

    def next_id(self, collection_name: str) -> int:
        counter = self._counters.setdefault(collection_name, itertools.count(1))
        collection = self._collection(collection_name)
        document_id = next(counter)
        while document_id in collection:
            document_id = next(counter)
        return document_id

    def save(self, collection_name: str, data: Dict[str, Any], document_id: Optional[int] = None) -> int:
        """Create or merge a document; returns its id."""
        collection = self._collection(collection_name)
        if document_id is None:
            document_id = data.get("id") or self.next_id(collection_name)
        now = datetime.now(timezone.utc)
        record = copy.deepcopy(collection.get(document_id, {}))
        record.update(copy.deepcopy(data))
        record["id"] = document_id
        record.setdefault("created_at", now)
        record["updated_at"] = now
        collection[document_id] = record
        return document_id

    def get(self, collection_name: str, document_id: int) -> Optional[Dict[str, Any]]:
        record = self._collection(collection_name).get(document_id)
        return copy.deepcopy(record) if record is not None else None

    def get_all(self, collection_name: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(record) for record in self._collection(collection_name).values()]

    def query(self, collection_name: str, field: str, operator: str, value: Any) -> List[Dict[str, Any]]:
        if operator == "==":
            return self.filter(collection_name, lambda record: record.get(field) == value)
        if operator == "!=":
            return self.filter(collection_name, lambda record: record.get(field) != value)
        raise ValueError(f"Unsupported operator: {operator}")

    def filter(self, collection_name: str, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        return [copy.deepcopy(record) for record in self._collection(collection_name).values() if predicate(record)]

    def update(self, collection_name: str, document_id: int, updates: Dict[str, Any]) -> bool:
        record = self._collection(collection_name).get(document_id)
        if record is None:
            return False
        record.update(copy.deepcopy(updates))
        record["updated_at"] = datetime.now(timezone.utc)
        return True

    def delete(self, collection_name: str, document_id: int) -> bool:
        return self._collection(collection_name).pop(document_id, None) is not None


DEMO_PASSWORD = "password123"

SEED_USERS = [
    {"id": 1, "name": "Client Demo", "email": "client@example.com", "role": "client"},
    {"id": 2, "name": "Freelancer Demo", "email": "freelancer@example.com", "role": "freelancer",
     "profile_completed": True},
    {"id": 3, "name": "Admin Demo", "email": "admin@example.com", "role": "admin"},
    {"id": 4, "name": "New Freelancer", "email": "newbie@example.com", "role": "freelancer",
     "profile_completed": False},
]

SEED_PROJECTS = [
    {"id": 10, "title": "Landing page redesign", "description": "Refresh the marketing site.",
     "budget": 500.0, "status": "in_progress", "client_id": 1, "accepted_offer_id": 100},
    {"id": 11, "title": "Logo design", "description": "A logo for a bakery.",
     "budget": 120.0, "status": "open", "client_id": 1, "accepted_offer_id": None},
    {"id": 12, "title": "Data entry", "description": "Move 300 rows into a spreadsheet.",
     "budget": 60.0, "status": "open", "client_id": 1, "accepted_offer_id": None},
    {"id": 13, "title": "Mobile app prototype", "description": "Clickable prototype in Figma.",
     "budget": 900.0, "status": "open", "client_id": 1, "accepted_offer_id": None},
]

SEED_OFFERS = [
    {"id": 100, "project_id": 10, "freelancer_id": 2, "amount": 450.0, "delivery_days": 7, "status": "accepted"},
]

SEED_MESSAGES = [
    {"id": 1000, "project_id": 10, "sender_id": 1, "receiver_id": 2,
     "content": "Hi, thanks for taking this on!", "is_read": True,
     "created_at": datetime(2026, 1, 8, 10, 0, tzinfo=timezone.utc)},
    {"id": 1001, "project_id": 10, "sender_id": 2, "receiver_id": 1,
     "content": "Happy to help. Sending a first draft tomorrow.", "is_read": True,
     "created_at": datetime(2026, 1, 8, 10, 30, tzinfo=timezone.utc)},
    {"id": 1002, "project_id": 10, "sender_id": 2, "receiver_id": 1,
     "content": "Draft is ready for review.", "is_read": False,
     "created_at": datetime(2026, 1, 9, 9, 0, tzinfo=timezone.utc)},
]


def seed(store: InMemoryStore) -> InMemoryStore:
    for user in SEED_USERS:
        store.save("users", {**user, "hashed_password": get_password_hash(DEMO_PASSWORD)}, document_id=user["id"])
    for project in SEED_PROJECTS:
        store.save("projects", project, document_id=project["id"])
    for offer in SEED_OFFERS:
        store.save("offers", offer, document_id=offer["id"])
    for message in SEED_MESSAGES:
        store.save("messages", message, document_id=message["id"])
    return store


_store: Optional[InMemoryStore] = None


def get_store_instance() -> InMemoryStore:
    global _store
    if _store is None:
        _store = seed(InMemoryStore())
    return _store


def reset_store() -> InMemoryStore:
    """Drop all changes and start again from the seed data."""
    global _store
    _store = seed(InMemoryStore())
    return _store
