"""
transforms/customers.py — Raw source document → validated Customer.

Source documents come straight from the document store: an identifier, a
few scalar fields and an embedded address object. This module maps them onto
the canonical Customer/Address models and rejects malformed records.

Rules:
  - identifier, name and email must be present and non-blank
  - the address object itself must be present
  - individual address fields may be missing (partial addresses propagate None)
  - present address fields must be non-blank

Usage:
    from custmig_pipeline.transforms.customers import transform_record, FIELD_MAPS

    customer = transform_record(doc)                        # English field names
    customer = transform_record(doc, FIELD_MAPS["es"])      # legacy Spanish export
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import pydantic
import structlog

from custmig_pipeline.errors import ValidationError
from custmig_shared.constants import SOURCE_ID_FIELD
from custmig_shared.models import Address, Customer

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FieldMap:
    """Names of the source document fields that feed each canonical field."""

    source_id: str = SOURCE_ID_FIELD
    name: str = "name"
    email: str = "email"
    address: str = "address"
    street: str = "street"
    city: str = "city"
    country: str = "country"


DEFAULT_FIELD_MAP = FieldMap()

FIELD_MAPS: dict[str, FieldMap] = {
    "en": DEFAULT_FIELD_MAP,
    "es": FieldMap(
        name="nombre",
        email="correo",
        address="direccion",
        street="calle",
        city="ciudad",
        country="pais",
    ),
}


def record_identifier(raw: Mapping[str, Any], field_map: FieldMap = DEFAULT_FIELD_MAP) -> str | None:
    """Best-effort identifier of a raw record, for logs and dead letters."""
    value = raw.get(field_map.source_id)
    if value is None:
        return None
    return str(value)


def _require_text(raw: Mapping[str, Any], field: str, source_id: str | None) -> str:
    value = raw.get(field)
    if value is None:
        raise ValidationError(f"missing required field {field!r}", source_id=source_id)
    if not isinstance(value, str):
        raise ValidationError(
            f"field {field!r} must be a string, got {type(value).__name__}",
            source_id=source_id,
        )
    if not value.strip():
        raise ValidationError(f"field {field!r} must not be blank", source_id=source_id)
    return value


def _address(raw: Mapping[str, Any], field_map: FieldMap, source_id: str | None) -> Address:
    doc = raw.get(field_map.address)
    if doc is None:
        raise ValidationError(
            f"missing required field {field_map.address!r}", source_id=source_id
        )
    if not isinstance(doc, Mapping):
        raise ValidationError(
            f"field {field_map.address!r} must be an object, got {type(doc).__name__}",
            source_id=source_id,
        )
    try:
        return Address(
            street=doc.get(field_map.street),
            city=doc.get(field_map.city),
            country=doc.get(field_map.country),
        )
    except pydantic.ValidationError as exc:
        fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
        raise ValidationError(
            f"invalid address fields: {fields or exc}", source_id=source_id
        ) from exc


def transform_record(
    raw: Mapping[str, Any],
    field_map: FieldMap = DEFAULT_FIELD_MAP,
) -> Customer:
    """
    Convert one raw source document into a validated Customer.

    Args:
        raw:       Document as read from the source store.
        field_map: Source field names (see FIELD_MAPS).

    Returns:
        Customer with a possibly partial Address.

    Raises:
        ValidationError: when a required field is missing, blank or mistyped.
    """
    source_id = record_identifier(raw, field_map)
    if source_id is None or not source_id.strip():
        raise ValidationError(f"missing required field {field_map.source_id!r}")

    name = _require_text(raw, field_map.name, source_id)
    email = _require_text(raw, field_map.email, source_id)
    address = _address(raw, field_map, source_id)

    customer = Customer(source_id=source_id, name=name, email=email, address=address)
    log.debug("record_transformed", source_id=source_id)
    return customer
