from __future__ import annotations

import asyncio
import copy
from typing import Any, Protocol
from uuid import uuid4

from .errors import StoreError

RESERVATIONS = "reservations"
FACILITIES = "facilities"
ADMIN = "admin"

Document = dict[str, Any]


class DocumentStore(Protocol):
    """Narrow CRUD surface over a document database.

    Every returned document is a copy carrying its id under ``"id"``.
    """

    async def list_all(self, collection: str) -> list[Document]: ...

    async def insert(self, collection: str, record: Document) -> str: ...

    async def set_by_id(self, collection: str, document_id: str, record: Document) -> None: ...

    async def update_by_id(self, collection: str, document_id: str, partial: Document) -> None: ...

    async def delete_by_id(self, collection: str, document_id: str) -> None: ...

    async def get_by_id(self, collection: str, document_id: str) -> Document | None: ...

    async def query_by_field(self, collection: str, field: str, value: Any) -> list[Document]: ...


class InMemoryDocumentStore:
    """Dict-backed store; yields to the event loop on every call like a network client would."""

    def __init__(self, collections: dict[str, dict[str, Document]] | None = None) -> None:
        self._collections: dict[str, dict[str, Document]] = copy.deepcopy(collections or {})

    def _collection(self, name: str) -> dict[str, Document]:
        return self._collections.setdefault(name, {})

    async def list_all(self, collection: str) -> list[Document]:
        await asyncio.sleep(0)
        return [_with_id(document_id, body) for document_id, body in self._collection(collection).items()]

    async def insert(self, collection: str, record: Document) -> str:
        await asyncio.sleep(0)
        document_id = uuid4().hex
        self._collection(collection)[document_id] = _strip_id(record)
        return document_id

    async def set_by_id(self, collection: str, document_id: str, record: Document) -> None:
        await asyncio.sleep(0)
        self._collection(collection)[document_id] = _strip_id(record)

    async def update_by_id(self, collection: str, document_id: str, partial: Document) -> None:
        await asyncio.sleep(0)
        rows = self._collection(collection)
        if document_id not in rows:
            raise StoreError(f"No document to update: {collection}/{document_id}")
        rows[document_id] = {**rows[document_id], **_strip_id(partial)}

    async def delete_by_id(self, collection: str, document_id: str) -> None:
        await asyncio.sleep(0)
        self._collection(collection).pop(document_id, None)

    async def get_by_id(self, collection: str, document_id: str) -> Document | None:
        await asyncio.sleep(0)
        body = self._collection(collection).get(document_id)
        return None if body is None else _with_id(document_id, body)

    async def query_by_field(self, collection: str, field: str, value: Any) -> list[Document]:
        await asyncio.sleep(0)
        return [
            _with_id(document_id, body)
            for document_id, body in self._collection(collection).items()
            if field in body and body[field] == value
        ]


def _with_id(document_id: str, body: Document) -> Document:
    return {**copy.deepcopy(body), "id": document_id}


def _strip_id(record: Document) -> Document:
    return {key: copy.deepcopy(value) for key, value in record.items() if key != "id"}
