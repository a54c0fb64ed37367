"""In-process document store for tests and local development.

Not for production (single process only). Transactions are serialized by a
re-entrant lock, writes are buffered and applied only when the callback
returns, so a raising callback leaves no trace.
"""
from __future__ import annotations

import copy
import threading
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any, TypeVar

from .store import SERVER_TIMESTAMP, DocPath, Document, DocumentMissing

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _resolve(data: Mapping[str, Any], now: datetime) -> Document:
    return {k: (now if v is SERVER_TIMESTAMP else copy.deepcopy(v)) for k, v in data.items()}


def _utc(value: Any) -> Any:
    # Firestore timestamps are always UTC; naive datetimes are read as UTC
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _comparable(a: Any, b: Any) -> bool:
    # Firestore only orders values of the same type class
    numeric = (int, float)
    if isinstance(a, bool) or isinstance(b, bool):
        return False
    if isinstance(a, numeric) and isinstance(b, numeric):
        return True
    return type(a) is type(b) or (isinstance(a, datetime) and isinstance(b, datetime))


class ReadAfterWriteError(RuntimeError):
    """Transaction read issued after a write, which Firestore rejects too."""


class _MemoryTransaction:
    def __init__(self, store: MemoryStore) -> None:
        self._store = store
        self._writes: list[tuple[str, DocPath, Mapping[str, Any], bool]] = []

    def get(self, path: DocPath) -> Document | None:
        if self._writes:
            raise ReadAfterWriteError("all reads must happen before the first write")
        return self._store.get(path)

    def set(self, path: DocPath, data: Mapping[str, Any], merge: bool = False) -> None:
        self._writes.append(("set", path, dict(data), merge))

    def update(self, path: DocPath, patch: Mapping[str, Any]) -> None:
        self._writes.append(("update", path, dict(patch), False))

    def delete(self, path: DocPath) -> None:
        self._writes.append(("delete", path, {}, False))

    def commit(self) -> None:
        # validate first so a missing update target aborts the whole batch
        present = set(self._store._docs)
        for op, path, _data, _merge in self._writes:
            if op == "set":
                present.add(path)
            elif op == "delete":
                present.discard(path)
            elif path not in present:
                raise DocumentMissing(path)
        for op, path, data, merge in self._writes:
            if op == "set":
                self._store.set(path, data, merge=merge)
            elif op == "update":
                self._store.update(path, data)
            else:
                self._store.delete(path)


class MemoryStore:
    def __init__(self, now: Callable[[], datetime] = _utcnow) -> None:
        self._docs: dict[DocPath, Document] = {}
        self._lock = threading.RLock()
        self._now = now

    def get(self, path: DocPath) -> Document | None:
        with self._lock:
            doc = self._docs.get(tuple(path))
            return copy.deepcopy(doc) if doc is not None else None

    def set(self, path: DocPath, data: Mapping[str, Any], merge: bool = False) -> None:
        with self._lock:
            resolved = _resolve(data, self._now())
            key = tuple(path)
            if merge and key in self._docs:
                self._docs[key].update(resolved)
            else:
                self._docs[key] = resolved

    def update(self, path: DocPath, patch: Mapping[str, Any]) -> None:
        with self._lock:
            key = tuple(path)
            if key not in self._docs:
                raise DocumentMissing(key)
            self._docs[key].update(_resolve(patch, self._now()))

    def delete(self, path: DocPath) -> None:
        with self._lock:
            self._docs.pop(tuple(path), None)

    def list(
        self, collection: DocPath, order_by: str | None = None, descending: bool = False
    ) -> list[tuple[str, Document]]:
        prefix = tuple(collection)
        with self._lock:
            rows = [
                (path[-1], copy.deepcopy(doc))
                for path, doc in self._docs.items()
                if len(path) == len(prefix) + 1 and path[: len(prefix)] == prefix
            ]
        if order_by:
            # Firestore drops documents lacking the ordering field
            rows = [r for r in rows if r[1].get(order_by) is not None]
            rows.sort(key=lambda r: r[1][order_by], reverse=descending)
        return rows

    def count_after(self, collection: DocPath, field: str, value: Any) -> int:
        value = _utc(value)
        total = 0
        for _id, doc in self.list(collection):
            current = _utc(doc.get(field))
            if current is not None and _comparable(current, value) and current > value:
                total += 1
        return total

    def run_transaction(self, fn: Callable[[Any], T]) -> T:
        with self._lock:
            tx = _MemoryTransaction(self)
            result = fn(tx)
            tx.commit()
            return result


__all__ = ["MemoryStore", "ReadAfterWriteError"]
