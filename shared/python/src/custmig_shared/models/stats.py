"""
models/stats.py — Post-run reconciliation counts of the target store.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class MigrationStats(BaseModel):
    """Row returned by the migration statistics query."""

    customer_count: int = 0
    address_count: int = 0
    distinct_countries: int = 0
    distinct_cities: int = 0

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "MigrationStats":
        return cls(**{k: int(row.get(k) or 0) for k in cls.model_fields})

    def describe(self) -> str:
        return (
            f"Migration stats: {self.customer_count} customers, "
            f"{self.address_count} addresses, {self.distinct_countries} countries, "
            f"{self.distinct_cities} cities"
        )
