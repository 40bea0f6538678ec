"""
models/customer.py — Pydantic models for the customers and addresses tables.

Address identity is the exact (street, city, country) tuple: values are stored
as received, with no trimming or case folding.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class Address(BaseModel):
    """Matches the addresses table row (minus id/timestamps)."""

    model_config = ConfigDict(frozen=True)

    street: str | None = None
    city: str | None = None
    country: str | None = None

    @field_validator("street", "city", "country")
    @classmethod
    def not_blank_when_present(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("must not be blank when present")
        return v

    @property
    def key(self) -> tuple[str | None, str | None, str | None]:
        return (self.street, self.city, self.country)


class Customer(BaseModel):
    """
    Matches the customers table row.

    source_id is the natural key from the origin store and never changes
    across re-runs.
    """

    model_config = ConfigDict(frozen=True)

    source_id: str
    name: str
    email: str
    address: Address

    @field_validator("source_id", "name", "email")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    def to_insert_dict(self, address_id: int) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "name": self.name,
            "email": self.email,
            "address_id": address_id,
        }

    def to_rpc_params(self) -> dict[str, Any]:
        """Arguments of the server-side upsert_customer function."""
        return {
            "p_source_id": self.source_id,
            "p_name": self.name,
            "p_email": self.email,
            "p_street": self.address.street,
            "p_city": self.address.city,
            "p_country": self.address.country,
        }
