"""Tests for product and batch request schemas."""

import pytest
from pydantic import ValidationError

from qrvault.schemas.product import GramBatchCreateRequest, ProductCreateRequest


class TestProductCreateRequest:
    """Test ProductCreateRequest validation."""

    def test_defaults(self):
        request = ProductCreateRequest(name="Silver King Bar 250gr", weight=250)
        assert request.quantity == 1
        assert request.serial_code is None
        assert request.serial_prefix is None

    def test_code_and_prefix_rejected(self):
        with pytest.raises(ValidationError, match="not both"):
            ProductCreateRequest(name="Silver King Bar 250gr", weight=250, serial_code="ABC123", serial_prefix="SK")

    def test_code_with_quantity_rejected(self):
        with pytest.raises(ValidationError, match="quantity is 1"):
            ProductCreateRequest(name="Silver King Bar 250gr", weight=250, serial_code="ABC123", quantity=2)

    def test_blank_code_with_prefix_allowed(self):
        request = ProductCreateRequest(name="Silver King Bar 250gr", weight=250, serial_code=" ", serial_prefix="SK", quantity=5)
        assert request.quantity == 5

    @pytest.mark.parametrize("field,value", [
        ("weight", 0),
        ("quantity", 0),
        ("quantity", 10_001),
        ("name", "B"),
    ])
    def test_bounds(self, field, value):
        payload = {"name": "Silver King Bar 250gr", "weight": 250, field: value}
        with pytest.raises(ValidationError):
            ProductCreateRequest(**payload)

    def test_extra_fields_rejected(self):
        with pytest.raises(ValidationError):
            ProductCreateRequest(name="Silver King Bar 250gr", weight=250, color="green")


class TestGramBatchCreateRequest:
    def test_quantity_up_to_gram_limit(self):
        request = GramBatchCreateRequest(name="Silver King 20gr", weight=20, quantity=99_999)
        assert request.quantity == 99_999

    def test_quantity_required(self):
        with pytest.raises(ValidationError):
            GramBatchCreateRequest(name="Silver King 20gr", weight=20)

    def test_code_and_prefix_rejected(self):
        with pytest.raises(ValidationError):
            GramBatchCreateRequest(name="Silver King 20gr", weight=20, quantity=1, serial_code="A1B", serial_prefix="G")
