"""Product and gram batch endpoints."""

from fastapi import APIRouter, Query, status

from qrvault.api.deps import GramProducts, Products
from qrvault.infra.logging import get_logger
from qrvault.schemas.product import (
    CheckSerialResponse,
    GramBatchCreateRequest,
    GramBatchResponse,
    GramItemResponse,
    ProductBatchResponse,
    ProductCreateRequest,
    ProductResponse,
)

router = APIRouter()
logger = get_logger(__name__)


@router.get(
    "/products/check-serial",
    response_model=CheckSerialResponse,
    summary="Preview where serial numbering continues for a prefix",
)
async def check_serial(
    products: Products,
    serial_prefix: str = Query(min_length=1, max_length=10),
) -> CheckSerialResponse:
    state = await products.check_serial(serial_prefix)
    return CheckSerialResponse(
        exists=state.total_existing > 0,
        prefix=state.prefix,
        last_serial=state.last_serial,
        last_number=state.last_number,
        next_number=state.next_number,
        total_existing=state.total_existing,
    )


@router.post(
    "/products",
    response_model=ProductBatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create products with serials and QR artifacts",
)
async def create_products(request: ProductCreateRequest, products: Products) -> ProductBatchResponse:
    logger.info(
        "Product creation request received",
        product_name=request.name,
        quantity=request.quantity,
        serial_prefix=request.serial_prefix,
        serial_code=request.serial_code,
    )
    created = await products.create_products(
        name=request.name,
        weight=request.weight,
        serial_code=request.serial_code,
        serial_prefix=request.serial_prefix,
        quantity=request.quantity,
        price=request.price,
        stock=request.stock,
    )
    return ProductBatchResponse(
        products=[ProductResponse.model_validate(p) for p in created],
        count=len(created),
        message=f"Successfully created {len(created)} products",
    )


@router.delete("/products", summary="Delete every product and its QR artifact")
async def delete_all_products(products: Products) -> dict:
    removed = await products.delete_all()
    return {"success": True, "deleted_count": removed}


@router.delete("/products/{product_id}", summary="Delete a product and its QR artifact")
async def delete_product(product_id: int, products: Products) -> dict:
    product = await products.delete_product(product_id)
    return {"success": True, "id": product_id, "serial_code": product.serial_code}


@router.post(
    "/gram-products",
    response_model=GramBatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a gram-based batch",
)
async def create_gram_batch(request: GramBatchCreateRequest, gram_products: GramProducts) -> GramBatchResponse:
    batch = await gram_products.create_batch(
        name=request.name,
        weight=request.weight,
        quantity=request.quantity,
        serial_code=request.serial_code,
        serial_prefix=request.serial_prefix,
    )
    items = [GramItemResponse.model_validate(item) for item in batch.items]
    return GramBatchResponse(
        id=batch.id,
        name=batch.name,
        weight=batch.weight,
        quantity=batch.quantity,
        qr_mode=batch.qr_mode,
        weight_group=batch.weight_group,
        items=items,
        qr_count=len(items),
    )


@router.delete("/gram-products", summary="Delete every gram batch with its items")
async def delete_all_gram_batches(gram_products: GramProducts) -> dict:
    removed = await gram_products.delete_all()
    return {"success": True, "deleted_count": removed}


@router.delete("/gram-products/batch/{batch_id}", summary="Delete a gram batch with its items")
async def delete_gram_batch(batch_id: int, gram_products: GramProducts) -> dict:
    removed = await gram_products.delete_batch(batch_id)
    return {"success": True, "id": batch_id, "items_deleted": removed}
