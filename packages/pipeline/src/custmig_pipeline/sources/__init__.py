"""
custmig_pipeline.sources — source-store adapters.

Each source streams raw customer documents:
  MongoSource      — live MongoDB collection (pymongo)
  JsonLinesSource  — mongoexport JSON-lines dump
"""

from custmig_pipeline.sources.base import BaseSource, RawRecord
from custmig_pipeline.sources.jsonl import JsonLinesSource
from custmig_pipeline.sources.mongo import MongoSource

__all__ = [
    "BaseSource",
    "RawRecord",
    "MongoSource",
    "JsonLinesSource",
]
