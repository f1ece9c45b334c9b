"""
In-memory Firestore stand-in for local development and tests.

Implements the subset of the google-cloud-firestore client API used by
alerthub services:

    db.collection(name).document(doc_id).get() / set() / update()
    db.collection(name).where(field, op, value).limit(n).stream()

Dotted field paths ("evidence.phone_number") are supported in queries and
in update(). Documents are deep-copied on read and write so callers never
share mutable state with the store.
"""

import copy
import threading
import uuid
from typing import Any, Dict, Iterator, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

_MISSING = object()


def _get_path(data: Dict, path: str) -> Any:
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set_path(data: Dict, path: str, value: Any) -> None:
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def _matches(value: Any, op: str, expected: Any) -> bool:
    if value is _MISSING:
        return False
    try:
        if op == "==":
            return value == expected
        if op == "!=":
            return value != expected
        if op == "in":
            return value in expected
        if op == "not-in":
            return value not in expected
        if op == "array_contains":
            return isinstance(value, list) and expected in value
        if op == "array_contains_any":
            return isinstance(value, list) and any(v in value for v in expected)
        if value is None:
            return False
        if op == ">":
            return value > expected
        if op == ">=":
            return value >= expected
        if op == "<":
            return value < expected
        if op == "<=":
            return value <= expected
    except TypeError:
        return False
    raise ValueError(f"Unsupported query operator: {op}")


class MockDocumentSnapshot:
    def __init__(self, reference: "MockDocumentReference", data: Optional[Dict]):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict]:
        return copy.deepcopy(self._data) if self._data is not None else None


class MockDocumentReference:
    def __init__(self, db: "MockFirestore", collection: str, doc_id: str):
        self._db = db
        self._collection = collection
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self._collection}/{self.id}"

    def get(self) -> MockDocumentSnapshot:
        with self._db.lock:
            data = self._db.data.get(self._collection, {}).get(self.id)
            return MockDocumentSnapshot(self, copy.deepcopy(data))

    def set(self, data: Dict, merge: bool = False) -> None:
        with self._db.lock:
            docs = self._db.data.setdefault(self._collection, {})
            if merge and self.id in docs:
                docs[self.id].update(copy.deepcopy(data))
            else:
                docs[self.id] = copy.deepcopy(data)

    def update(self, data: Dict) -> None:
        with self._db.lock:
            docs = self._db.data.get(self._collection, {})
            if self.id not in docs:
                raise KeyError(f"No document to update: {self.path}")
            for path, value in data.items():
                _set_path(docs[self.id], path, copy.deepcopy(value))


class MockQuery:
    def __init__(
        self,
        db: "MockFirestore",
        collection: str,
        filters: Optional[List[Tuple[str, str, Any]]] = None,
        limit_count: Optional[int] = None,
    ):
        self._db = db
        self._collection = collection
        self._filters = filters or []
        self._limit = limit_count

    def _copy(self, **changes) -> "MockQuery":
        params = {
            "filters": list(self._filters),
            "limit_count": self._limit,
        }
        params.update(changes)
        return MockQuery(self._db, self._collection, **params)

    def where(self, field_path: str, op_string: str, value: Any) -> "MockQuery":
        return self._copy(filters=self._filters + [(field_path, op_string, value)])

    def limit(self, count: int) -> "MockQuery":
        return self._copy(limit_count=count)

    def stream(self) -> Iterator[MockDocumentSnapshot]:
        with self._db.lock:
            docs = list(self._db.data.get(self._collection, {}).items())
            snapshot = [(doc_id, copy.deepcopy(data)) for doc_id, data in docs]

        results = [
            (doc_id, data)
            for doc_id, data in snapshot
            if all(_matches(_get_path(data, f), op, v) for f, op, v in self._filters)
        ]

        if self._limit is not None:
            results = results[: self._limit]

        for doc_id, data in results:
            ref = MockDocumentReference(self._db, self._collection, doc_id)
            yield MockDocumentSnapshot(ref, data)

    def get(self) -> List[MockDocumentSnapshot]:
        return list(self.stream())


class MockCollectionReference(MockQuery):
    def __init__(self, db: "MockFirestore", name: str):
        super().__init__(db, name)
        self.id = name

    def document(self, document_id: Optional[str] = None) -> MockDocumentReference:
        return MockDocumentReference(self._db, self._collection, document_id or uuid.uuid4().hex[:20])


class MockFirestore:
    """Thread-safe in-memory database keyed by collection then document id."""

    def __init__(self):
        self.data: Dict[str, Dict[str, Dict]] = {}
        self.lock = threading.RLock()

    def collection(self, name: str) -> MockCollectionReference:
        return MockCollectionReference(self, name)

    def collections(self) -> List[MockCollectionReference]:
        with self.lock:
            return [MockCollectionReference(self, name) for name in self.data]


_mock_db: Optional[MockFirestore] = None


def get_mock_db() -> MockFirestore:
    global _mock_db
    if _mock_db is None:
        _mock_db = MockFirestore()
        logger.info("In-memory mock Firestore created")
    return _mock_db
