"""Tests for QR regeneration schemas."""

import pytest
from pydantic import ValidationError

from qrvault.infra.storage import StorageMode
from qrvault.schemas.qr import RegenerateItem, RegenerateRequest


class TestRegenerateRequest:
    def test_empty_request_means_all_missing(self):
        request = RegenerateRequest()
        assert request.serial_code is None
        assert request.product_id is None
        assert request.check_storage is False

    def test_check_storage_flag(self):
        assert RegenerateRequest(check_storage=True).check_storage is True

    def test_both_targets_rejected(self):
        with pytest.raises(ValidationError):
            RegenerateRequest(serial_code="SK000001", product_id=1)


class TestRegenerateItem:
    def test_mode_from_string(self):
        item = RegenerateItem(serial_code="SK000001", success=True, qr_image_url="/qr/SK000001.png", mode="OBJECT_STORE")
        assert item.mode is StorageMode.OBJECT_STORE

    def test_defaults(self):
        item = RegenerateItem(serial_code="SK000001", success=False, error="boom")
        assert item.qr_image_url is None
        assert item.mode is None
