"""Cloud Firestore backend for the DocumentStore contract."""
from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import firebase_admin
from firebase_admin import firestore as fb_firestore
from google.api_core import exceptions as gexc
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .store import SERVER_TIMESTAMP, DocPath, Document, DocumentMissing

T = TypeVar("T")


def _wire(data: Mapping[str, Any]) -> dict[str, Any]:
    return {k: (firestore.SERVER_TIMESTAMP if v is SERVER_TIMESTAMP else v) for k, v in data.items()}


class _FirestoreTransaction:
    def __init__(self, client: firestore.Client, tx: firestore.Transaction) -> None:
        self._client = client
        self._tx = tx

    def get(self, path: DocPath) -> Document | None:
        snap = self._client.document(*path).get(transaction=self._tx)
        return snap.to_dict() if snap.exists else None

    def set(self, path: DocPath, data: Mapping[str, Any], merge: bool = False) -> None:
        self._tx.set(self._client.document(*path), _wire(data), merge=merge)

    def update(self, path: DocPath, patch: Mapping[str, Any]) -> None:
        self._tx.update(self._client.document(*path), _wire(patch))

    def delete(self, path: DocPath) -> None:
        self._tx.delete(self._client.document(*path))


class FirestoreStore:
    def __init__(self, app: firebase_admin.App) -> None:
        self._client = fb_firestore.client(app)

    def get(self, path: DocPath) -> Document | None:
        snap = self._client.document(*path).get()
        return snap.to_dict() if snap.exists else None

    def set(self, path: DocPath, data: Mapping[str, Any], merge: bool = False) -> None:
        self._client.document(*path).set(_wire(data), merge=merge)

    def update(self, path: DocPath, patch: Mapping[str, Any]) -> None:
        try:
            self._client.document(*path).update(_wire(patch))
        except gexc.NotFound as e:
            raise DocumentMissing(tuple(path)) from e

    def delete(self, path: DocPath) -> None:
        self._client.document(*path).delete()

    def list(
        self, collection: DocPath, order_by: str | None = None, descending: bool = False
    ) -> list[tuple[str, Document]]:
        query: Any = self._client.collection(*collection)
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        return [(snap.id, snap.to_dict() or {}) for snap in query.stream()]

    def count_after(self, collection: DocPath, field: str, value: Any) -> int:
        query = self._client.collection(*collection).where(filter=FieldFilter(field, ">", value))
        results = query.count().get()
        return int(results[0][0].value) if results else 0

    def run_transaction(self, fn: Callable[[Any], T]) -> T:
        client = self._client

        @firestore.transactional
        def _run(tx: firestore.Transaction) -> T:
            return fn(_FirestoreTransaction(client, tx))

        return _run(client.transaction())


__all__ = ["FirestoreStore"]
