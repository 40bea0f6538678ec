"""
sources/jsonl.py — JSON-lines source adapter for mongoexport dumps.

``mongoexport --collection customers --out customers.jsonl`` writes one
document per line in extended JSON, so identifiers look like
``{"_id": {"$oid": "65f0..."}}``. The adapter unwraps ``$oid`` to the plain
hex string; everything else is passed through as parsed.

Usage:
    source = JsonLinesSource("./data/customers.jsonl")
    async for doc in source.stream():
        ...
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import aclosing
from pathlib import Path
from typing import Any

from custmig_pipeline.sources.base import BaseSource, RawRecord
from custmig_shared.config import settings
from custmig_shared.constants import SOURCE_ID_FIELD


def _unwrap_extended(value: Any) -> Any:
    if isinstance(value, dict) and len(value) == 1 and "$oid" in value:
        return value["$oid"]
    return value


class JsonLinesSource(BaseSource):
    """Reads one JSON document per line from a file."""

    name = "jsonl"

    def __init__(self, path: str | Path | None = None) -> None:
        super().__init__()
        self._path = Path(path or settings.source_file)

    def _parse(self, line: str, line_no: int) -> RawRecord | None:
        if not line.strip():
            return None
        try:
            doc = json.loads(line)
        except json.JSONDecodeError as exc:
            # Unparseable lines still flow through so they get dead-lettered.
            self._log.warning("jsonl_line_unparseable", line=line_no, error=str(exc))
            return {"_line": line_no, "_raw": line.rstrip("\n")}
        if not isinstance(doc, dict):
            return {"_line": line_no, "_raw": doc}
        if SOURCE_ID_FIELD in doc:
            doc[SOURCE_ID_FIELD] = _unwrap_extended(doc[SOURCE_ID_FIELD])
        return doc

    async def stream(self) -> AsyncIterator[RawRecord]:
        read = 0
        with self._path.open(encoding="utf-8") as fh:
            for line_no, line in enumerate(fh, start=1):
                doc = self._parse(line, line_no)
                if doc is None:
                    continue
                read += 1
                yield doc
        self._log.info("jsonl_stream_complete", path=str(self._path), documents=read)

    async def get(self, source_id: str) -> RawRecord | None:
        async with aclosing(self.stream()) as docs:
            async for doc in docs:
                if str(doc.get(SOURCE_ID_FIELD)) == source_id:
                    return doc
        return None
