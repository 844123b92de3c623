"""Tests for product and gram batch endpoints."""

from pathlib import Path

import pytest
from httpx import AsyncClient


class TestCreateProducts:
    """Tests for POST /api/products."""

    @pytest.mark.asyncio
    async def test_create_batch(self, client: AsyncClient, tmp_path: Path):
        response = await client.post(
            "/api/products",
            json={"name": "Silver King Bar 250gr", "weight": 250, "serial_prefix": "SKN", "quantity": 3},
        )
        assert response.status_code == 201

        data = response.json()
        assert data["count"] == 3
        serials = [p["serial_code"] for p in data["products"]]
        assert serials == ["SKN000001", "SKN000002", "SKN000003"]
        assert data["products"][0]["qr_image_url"] == "/qr/SKN000001.png"
        assert data["products"][0]["qr_storage_mode"] == "LOCAL"
        assert (tmp_path / "qr" / "SKN000003.png").exists()

    @pytest.mark.asyncio
    async def test_duplicate_code_conflict(self, client: AsyncClient):
        payload = {"name": "Silver King Bar 250gr", "weight": 250, "serial_code": "ABC123"}
        assert (await client.post("/api/products", json=payload)).status_code == 201

        response = await client.post("/api/products", json=payload)

        assert response.status_code == 409
        data = response.json()
        assert data["success"] is False
        assert data["error_type"] == "DuplicateCodeError"
        assert data["detail"]["existing_serials"] == ["ABC123"]

    @pytest.mark.asyncio
    async def test_invalid_prefix(self, client: AsyncClient):
        response = await client.post(
            "/api/products",
            json={"name": "Silver King Bar 250gr", "weight": 250, "serial_prefix": "TOOLONG"},
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidPrefixError"

    @pytest.mark.asyncio
    async def test_code_and_prefix_together_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/products",
            json={"name": "Silver King Bar 250gr", "weight": 250, "serial_prefix": "SK", "serial_code": "ABC123"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_quantity_limit(self, client: AsyncClient):
        response = await client.post(
            "/api/products",
            json={"name": "Silver King Bar 250gr", "weight": 250, "quantity": 10_001},
        )
        assert response.status_code == 422


class TestCheckSerial:
    @pytest.mark.asyncio
    async def test_empty_prefix_state(self, client: AsyncClient):
        response = await client.get("/api/products/check-serial", params={"serial_prefix": "skn"})
        assert response.status_code == 200

        data = response.json()
        assert data["exists"] is False
        assert data["prefix"] == "SKN"
        assert data["next_number"] == 1

    @pytest.mark.asyncio
    async def test_after_creation(self, client: AsyncClient):
        await client.post("/api/products", json={"name": "Silver King Bar 250gr", "weight": 250, "serial_prefix": "SKN", "quantity": 4})

        data = (await client.get("/api/products/check-serial", params={"serial_prefix": "SKN"})).json()

        assert data["exists"] is True
        assert data["last_serial"] == "SKN000004"
        assert data["next_number"] == 5
        assert data["total_existing"] == 4


class TestDeleteProduct:
    @pytest.mark.asyncio
    async def test_delete_then_missing(self, client: AsyncClient, tmp_path: Path):
        created = await client.post("/api/products", json={"name": "Silver King Bar 250gr", "weight": 250})
        product = created.json()["products"][0]

        response = await client.delete(f"/api/products/{product['id']}")
        assert response.status_code == 200
        assert response.json()["serial_code"] == product["serial_code"]
        assert not (tmp_path / "qr" / f"{product['serial_code']}.png").exists()

        response = await client.delete(f"/api/products/{product['id']}")
        assert response.status_code == 404


class TestGramProducts:
    """Tests for gram batch endpoints."""

    @pytest.mark.asyncio
    async def test_single_qr_batch(self, client: AsyncClient):
        response = await client.post(
            "/api/gram-products",
            json={"name": "Silver King 20gr", "weight": 20, "quantity": 500},
        )
        assert response.status_code == 201

        data = response.json()
        assert data["qr_mode"] == "SINGLE_QR"
        assert data["weight_group"] == "SMALL"
        assert data["qr_count"] == 1
        assert data["items"][0]["serial_code"] == "SKP00001"
        assert data["items"][0]["qr_image_url"] == "/qr-gram/SKP00001.png"

    @pytest.mark.asyncio
    async def test_per_unit_batch_and_delete(self, client: AsyncClient):
        response = await client.post(
            "/api/gram-products",
            json={"name": "Silver King Bar 1000gr", "weight": 1000, "quantity": 3},
        )
        data = response.json()
        assert data["qr_mode"] == "PER_UNIT"
        assert data["qr_count"] == 3

        response = await client.delete(f"/api/gram-products/batch/{data['id']}")
        assert response.status_code == 200
        assert response.json()["items_deleted"] == 3


class TestDeleteAll:
    """Tests for the bulk delete endpoints."""

    @pytest.mark.asyncio
    async def test_delete_all_products(self, client: AsyncClient, tmp_path: Path):
        await client.post("/api/products", json={"name": "Silver King 50gr", "weight": 50, "quantity": 3})

        response = await client.delete("/api/products")

        assert response.status_code == 200
        assert response.json() == {"success": True, "deleted_count": 3}
        assert list((tmp_path / "qr").iterdir()) == []

        check = await client.get("/api/products/check-serial", params={"serial_prefix": "SK"})
        assert check.json()["total_existing"] == 0

    @pytest.mark.asyncio
    async def test_delete_all_gram_batches(self, client: AsyncClient, tmp_path: Path):
        await client.post("/api/gram-products", json={"name": "Silver King 20gr", "weight": 20, "quantity": 500})
        await client.post("/api/gram-products", json={"name": "Silver King Bar 1000gr", "weight": 1000, "quantity": 2})

        response = await client.delete("/api/gram-products")

        assert response.status_code == 200
        assert response.json() == {"success": True, "deleted_count": 2}
        assert list((tmp_path / "qr-gram").iterdir()) == []
        assert (await client.get("/api/qr-gram/SKP00001")).status_code == 404
