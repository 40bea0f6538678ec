"""
tests/test_transforms/test_customer_transform.py — Raw document → Customer.

Tests cover:
  - Required identifier/name/email/address
  - Partial addresses (missing fields propagate None)
  - Blank and mistyped values
  - ObjectId identifiers and the legacy Spanish field map
"""

from __future__ import annotations

import pytest
from bson import ObjectId

from custmig_pipeline.errors import ValidationError
from custmig_pipeline.transforms.customers import (
    FIELD_MAPS,
    record_identifier,
    transform_record,
)
from custmig_shared.models import Address


class TestTransformRecord:
    def test_valid_record(self, jane_doc):
        customer = transform_record(jane_doc)

        assert customer.source_id == "abc123"
        assert customer.name == "Jane Doe"
        assert customer.email == "jane@x.com"
        assert customer.address == Address(street="Main 1", city="Lima", country="Peru")

    @pytest.mark.parametrize("field", ["name", "email", "_id"])
    def test_missing_required_field_rejected(self, jane_doc, field):
        del jane_doc[field]

        with pytest.raises(ValidationError, match=field):
            transform_record(jane_doc)

    @pytest.mark.parametrize("field", ["name", "email"])
    def test_blank_required_field_rejected(self, jane_doc, field):
        jane_doc[field] = "   "

        with pytest.raises(ValidationError, match="must not be blank"):
            transform_record(jane_doc)

    def test_missing_address_object_rejected(self, jane_doc):
        del jane_doc["address"]

        with pytest.raises(ValidationError, match="address"):
            transform_record(jane_doc)

    def test_null_address_object_rejected(self, jane_doc):
        jane_doc["address"] = None

        with pytest.raises(ValidationError, match="address"):
            transform_record(jane_doc)

    def test_non_object_address_rejected(self, jane_doc):
        jane_doc["address"] = "Main 1, Lima"

        with pytest.raises(ValidationError, match="must be an object"):
            transform_record(jane_doc)

    def test_partial_address_accepted(self, jane_doc):
        jane_doc["address"] = {"city": "Lima"}

        customer = transform_record(jane_doc)

        assert customer.address.street is None
        assert customer.address.city == "Lima"
        assert customer.address.country is None

    def test_empty_address_object_accepted(self, jane_doc):
        jane_doc["address"] = {}

        customer = transform_record(jane_doc)

        assert customer.address.key == (None, None, None)

    def test_blank_address_field_rejected(self, jane_doc):
        jane_doc["address"]["street"] = ""

        with pytest.raises(ValidationError, match="street"):
            transform_record(jane_doc)

    def test_non_string_name_rejected(self, jane_doc):
        jane_doc["name"] = 42

        with pytest.raises(ValidationError, match="must be a string"):
            transform_record(jane_doc)

    def test_values_kept_verbatim(self, jane_doc):
        jane_doc["address"]["city"] = " lima "

        customer = transform_record(jane_doc)

        assert customer.address.city == " lima "

    def test_objectid_identifier_rendered_as_hex(self, jane_doc):
        oid = ObjectId()
        jane_doc["_id"] = oid

        customer = transform_record(jane_doc)

        assert customer.source_id == str(oid)

    def test_error_carries_source_id(self, jane_doc):
        del jane_doc["email"]

        with pytest.raises(ValidationError) as exc_info:
            transform_record(jane_doc)

        assert exc_info.value.source_id == "abc123"


class TestSpanishFieldMap:
    def test_legacy_export_fields(self):
        doc = {
            "_id": "65f0c3a2e4b0f1a2b3c4d5e6",
            "nombre": "Juan Pérez",
            "correo": "juan.perez@email.com",
            "direccion": {"calle": "Calle Mayor 123", "ciudad": "Madrid", "pais": "España"},
        }

        customer = transform_record(doc, FIELD_MAPS["es"])

        assert customer.name == "Juan Pérez"
        assert customer.address.key == ("Calle Mayor 123", "Madrid", "España")

    def test_english_document_fails_spanish_map(self, jane_doc):
        with pytest.raises(ValidationError, match="nombre"):
            transform_record(jane_doc, FIELD_MAPS["es"])


class TestRecordIdentifier:
    def test_present(self, jane_doc):
        assert record_identifier(jane_doc) == "abc123"

    def test_absent(self):
        assert record_identifier({"name": "x"}) is None
