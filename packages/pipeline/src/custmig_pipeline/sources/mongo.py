"""
sources/mongo.py — MongoDB source adapter.

Streams the customer collection with a pymongo cursor. The cursor is
advanced in a worker thread so network round trips don't block the event
loop (and the schedule running on it).

Document shape:
  {
    "_id": ObjectId("..."),
    "name": "Jane Doe",
    "email": "jane@x.com",
    "address": {"street": "Main 1", "city": "Lima", "country": "Peru"}
  }

Usage:
    source = MongoSource()
    async for doc in source.stream():
        ...
    await source.close()
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Any

from custmig_pipeline.sources.base import BaseSource, RawRecord
from custmig_shared.config import settings
from custmig_shared.constants import SOURCE_ID_FIELD
from custmig_shared.db import create_mongo_client

if TYPE_CHECKING:
    from pymongo import MongoClient
    from pymongo.collection import Collection

_EXHAUSTED = object()


def _id_filter(source_id: str) -> dict[str, Any]:
    """Match ObjectId-shaped identifiers as ObjectIds, anything else verbatim."""
    from bson import ObjectId

    if ObjectId.is_valid(source_id):
        return {SOURCE_ID_FIELD: {"$in": [ObjectId(source_id), source_id]}}
    return {SOURCE_ID_FIELD: source_id}


class MongoSource(BaseSource):
    """Reads customer documents from a MongoDB collection."""

    name = "mongodb"

    def __init__(
        self,
        uri: str | None = None,
        database: str | None = None,
        collection: str | None = None,
        *,
        batch_size: int = 500,
        client_factory: Callable[[str | None], "MongoClient"] = create_mongo_client,
    ) -> None:
        super().__init__()
        self._uri = uri
        self._database = database or settings.mongo_database
        self._collection_name = collection or settings.mongo_collection
        self._batch_size = batch_size
        self._client_factory = client_factory
        self._client: MongoClient | None = None

    def _collection(self) -> "Collection":
        if self._client is None:
            self._client = self._client_factory(self._uri)
            self._log.info(
                "mongo_source_opened",
                database=self._database,
                collection=self._collection_name,
            )
        return self._client[self._database][self._collection_name]

    async def stream(self) -> AsyncIterator[RawRecord]:
        collection = self._collection()
        cursor = collection.find({}, batch_size=self._batch_size)
        read = 0
        try:
            while True:
                doc = await asyncio.to_thread(next, cursor, _EXHAUSTED)
                if doc is _EXHAUSTED:
                    break
                read += 1
                yield doc
        finally:
            cursor.close()
            self._log.info("mongo_stream_complete", documents=read)

    async def get(self, source_id: str) -> RawRecord | None:
        collection = self._collection()
        return await asyncio.to_thread(collection.find_one, _id_filter(source_id))

    async def count(self) -> int | None:
        collection = self._collection()
        return await asyncio.to_thread(collection.estimated_document_count)

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._log.debug("mongo_source_closed")
