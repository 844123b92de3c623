"""On-demand QR endpoints.

These URLs are what the on-demand storage backend hands out, so they must
rebuild an artifact from the stored serial code and the verification URL
alone.
"""

from fastapi import APIRouter
from fastapi.responses import Response

from qrvault.api.deps import Artifacts, GramProducts, Products
from qrvault.core.errors import NotFoundError
from qrvault.core.renderer import RenderResult
from qrvault.core.serial import normalize_serial_code
from qrvault.infra.logging import get_logger
from qrvault.infra.storage import ARTIFACT_CACHE_CONTROL, ARTIFACT_CONTENT_TYPE
from qrvault.schemas.qr import RegenerateItem, RegenerateRequest, RegenerateResponse

router = APIRouter()
logger = get_logger(__name__)


def _png_response(result: RenderResult, serial_code: str) -> Response:
    return Response(
        content=result.png,
        media_type=ARTIFACT_CONTENT_TYPE,
        headers={
            "Cache-Control": ARTIFACT_CACHE_CONTROL,
            "ETag": f'"{serial_code}"',
        },
    )


@router.get("/qr/{serial_code}", summary="Labelled QR artifact, rendered on demand")
async def get_qr(serial_code: str, products: Products, artifacts: Artifacts) -> Response:
    code = normalize_serial_code(serial_code)
    product = await products.get_by_serial(code)
    if product is None:
        raise NotFoundError(f"Product {code} not found", serial_code=code)

    result = await artifacts.render(product.serial_code, product_name=product.name)
    logger.info("QR rendered on demand", serial_code=code, labelled=result.labelled)
    return _png_response(result, code)


@router.get("/qr/{serial_code}/qr-only", summary="Bare QR matrix without label")
async def get_qr_only(serial_code: str, products: Products, artifacts: Artifacts) -> Response:
    code = normalize_serial_code(serial_code)
    product = await products.get_by_serial(code)
    if product is None:
        raise NotFoundError(f"Product {code} not found", serial_code=code)

    result = await artifacts.render_qr_only(product.serial_code)
    return _png_response(result, code)


@router.get("/qr-gram/{serial_code}", summary="Gram item QR artifact, rendered on demand")
async def get_gram_qr(serial_code: str, gram_products: GramProducts, artifacts: Artifacts) -> Response:
    code = normalize_serial_code(serial_code)
    item = await gram_products.get_item(code)
    if item is None:
        raise NotFoundError(f"Gram item {code} not found", serial_code=code)

    result = await artifacts.render(item.serial_code, product_name=item.batch.name)
    logger.info("Gram QR rendered on demand", serial_code=code, labelled=result.labelled)
    return _png_response(result, code)


@router.get("/qr-gram/{serial_code}/qr-only", summary="Bare gram item QR matrix without label")
async def get_gram_qr_only(serial_code: str, gram_products: GramProducts, artifacts: Artifacts) -> Response:
    code = normalize_serial_code(serial_code)
    item = await gram_products.get_item(code)
    if item is None:
        raise NotFoundError(f"Gram item {code} not found", serial_code=code)

    result = await artifacts.render_qr_only(item.serial_code)
    return _png_response(result, code)


@router.post(
    "/qr/regenerate",
    response_model=RegenerateResponse,
    summary="Regenerate one artifact, or all missing ones",
)
async def regenerate(request: RegenerateRequest, products: Products) -> RegenerateResponse:
    if request.serial_code is None and request.product_id is None:
        missing = await products.regenerate_missing(check_storage=request.check_storage)
        results = [RegenerateItem(**r) for r in missing]
        return RegenerateResponse(
            success=True,
            regenerated=sum(1 for r in results if r.success),
            total=len(results),
            results=results,
        )

    product = await products.regenerate_by(
        serial_code=request.serial_code,
        product_id=request.product_id,
    )
    item = RegenerateItem(
        serial_code=product.serial_code,
        success=True,
        qr_image_url=product.qr_image_url,
        mode=product.qr_storage_mode,
    )
    return RegenerateResponse(success=True, regenerated=1, total=1, results=[item])
