"""
custmig_shared.models — Pydantic models for the migration domain.

These models are used by:
- transforms: the validated canonical shape of a source record
- loaders: rows and RPC parameters written to the target store
- pipelines: reconciliation counts and dead-letter entries
"""

from custmig_shared.models.customer import Address, Customer
from custmig_shared.models.dead_letter import DeadLetter
from custmig_shared.models.stats import MigrationStats

__all__ = [
    "Address",
    "Customer",
    "DeadLetter",
    "MigrationStats",
]
