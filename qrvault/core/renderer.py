"""QR artifact renderer.

Encodes a verification URL into a high error-correction QR matrix and
composes it with a product-name band and a serial-code band into a PNG.

An unprintable serial code does not fail the render: the bare QR is
returned and the result is tagged RENDERED_WITHOUT_LABEL.
"""

import io
from dataclasses import dataclass, replace
from enum import Enum

import qrcode
from PIL import Image, ImageDraw, ImageFont

from qrvault.config import settings
from qrvault.core.serial import MIN_LABEL_LENGTH, is_all_zero
from qrvault.infra.logging import get_audit_logger, get_logger

logger = get_logger(__name__)
audit = get_audit_logger(__name__)

QR_TARGET_SIZE = 560
QR_BORDER = 1
QR_DARK_COLOR = "#0c0c0c"
QR_LIGHT_COLOR = "#ffffff"
QR_IMAGE_FORMAT = "PNG"

CANVAS_PADDING = 40
BAND_SPACING = 30
TITLE_FONT_SIZE = 28
SERIAL_FONT_SIZE = 24
TEXT_COLOR = "#000000"
ELLIPSIS = "..."

FontType = ImageFont.FreeTypeFont | ImageFont.ImageFont


class RenderOutcome(str, Enum):
    RENDERED = "RENDERED"
    RENDERED_WITHOUT_LABEL = "RENDERED_WITHOUT_LABEL"


@dataclass(frozen=True)
class RenderResult:
    """Rendered artifact plus the layout that produced it.

    Layout fields let callers and tests compare artifacts without relying
    on byte equality, which varies with font rasterization.
    """

    outcome: RenderOutcome
    png: bytes
    width: int
    height: int
    target_url: str
    qr_box: tuple[int, int, int, int]
    serial_text: str | None = None
    title_text: str | None = None
    reason: str | None = None

    @property
    def labelled(self) -> bool:
        return self.outcome is RenderOutcome.RENDERED


def label_rejection_reason(serial_code: str | None) -> str | None:
    """Why a serial code cannot be printed, or None if it can."""
    code = (serial_code or "").strip()
    if not code:
        return "empty serial code"
    if len(code) < MIN_LABEL_LENGTH:
        return f"serial code shorter than {MIN_LABEL_LENGTH} characters"
    if is_all_zero(code):
        return "serial code is all zeros"
    return None


def build_qr_image(target_url: str) -> Image.Image:
    """Encode a URL into a dark-on-light QR image close to QR_TARGET_SIZE.

    Module size is an integer number of pixels so every module stays crisp;
    the final side length follows from the module count.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=1,
        border=QR_BORDER,
    )
    qr.add_data(target_url)
    qr.make(fit=True)

    modules = qr.modules_count + 2 * QR_BORDER
    qr.box_size = max(1, QR_TARGET_SIZE // modules)

    img = qr.make_image(fill_color=QR_DARK_COLOR, back_color=QR_LIGHT_COLOR)
    return img.get_image().convert("RGB")


def load_font(path: str, size: int, role: str) -> FontType:
    """Load a TrueType font, falling back to Pillow's built-in font."""
    try:
        return ImageFont.truetype(path, size)
    except OSError as e:
        logger.warning(
            "Font registration failed, using default font",
            font_path=path,
            role=role,
            error=str(e),
        )
        return ImageFont.load_default(size=size)


def fit_text(
    draw: ImageDraw.ImageDraw,
    text: str,
    font: FontType,
    max_width: float,
) -> str:
    """Truncate text with an ellipsis until its rendered width fits."""
    if draw.textlength(text, font=font) <= max_width:
        return text

    truncated = text
    while truncated:
        truncated = truncated[:-1]
        candidate = truncated.rstrip() + ELLIPSIS
        if draw.textlength(candidate, font=font) <= max_width:
            return candidate
    return ELLIPSIS


def _encode_png(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format=QR_IMAGE_FORMAT, optimize=True)
    return buffer.getvalue()


def _draw_centered(
    draw: ImageDraw.ImageDraw,
    text: str,
    font: FontType,
    center_x: float,
    y: int,
) -> None:
    x = center_x - draw.textlength(text, font=font) / 2
    draw.text((x, y), text, font=font, fill=TEXT_COLOR)


def _text_height(draw: ImageDraw.ImageDraw, text: str, font: FontType) -> int:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    return int(bottom)


def render_qr_only(target_url: str) -> RenderResult:
    """Render the bare QR matrix without any text."""
    qr_img = build_qr_image(target_url)
    return RenderResult(
        outcome=RenderOutcome.RENDERED_WITHOUT_LABEL,
        png=_encode_png(qr_img),
        width=qr_img.width,
        height=qr_img.height,
        target_url=target_url,
        qr_box=(0, 0, qr_img.width, qr_img.height),
        reason="label not requested",
    )


def render(
    target_url: str,
    serial_code: str | None,
    product_name: str | None = None,
) -> RenderResult:
    """Render a labelled QR artifact.

    Args:
        target_url: URL encoded in the QR matrix
        serial_code: Code printed in the serial band
        product_name: Optional title printed above the QR

    Returns:
        RenderResult tagged RENDERED, or RENDERED_WITHOUT_LABEL when the
        serial code is not printable
    """
    reason = label_rejection_reason(serial_code)
    if reason is not None:
        audit.warning(
            "QR label rejected, rendering without label",
            serial_code=serial_code,
            reason=reason,
            target_url=target_url,
        )
        return replace(render_qr_only(target_url), reason=reason)

    serial_text = serial_code.strip()
    title = (product_name or "").strip() or None

    qr_img = build_qr_image(target_url)
    qr_size = qr_img.width

    serial_font = load_font(settings.qr_font_path, SERIAL_FONT_SIZE, role="serial")
    title_font = (
        load_font(settings.qr_title_font_path, TITLE_FONT_SIZE, role="title") if title else None
    )

    canvas_width = qr_size + CANVAS_PADDING * 2
    max_text_width = canvas_width - CANVAS_PADDING * 2

    # Measure on a scratch surface before sizing the canvas
    measure = ImageDraw.Draw(Image.new("RGB", (1, 1)))
    title_text = fit_text(measure, title, title_font, max_text_width) if title else None
    title_band = _text_height(measure, title_text, title_font) + BAND_SPACING if title_text else 0
    serial_band = _text_height(measure, serial_text, serial_font)

    canvas_height = CANVAS_PADDING + title_band + qr_size + BAND_SPACING + serial_band + CANVAS_PADDING

    canvas = Image.new("RGB", (canvas_width, canvas_height), QR_LIGHT_COLOR)
    draw = ImageDraw.Draw(canvas)
    center_x = canvas_width / 2

    if title_text:
        _draw_centered(draw, title_text, title_font, center_x, CANVAS_PADDING)

    qr_x = CANVAS_PADDING
    qr_y = CANVAS_PADDING + title_band
    canvas.paste(qr_img, (qr_x, qr_y))

    serial_y = qr_y + qr_size + BAND_SPACING
    _draw_centered(draw, serial_text, serial_font, center_x, serial_y)

    if title and title_text != title:
        logger.info(
            "Product name truncated to fit QR label",
            serial_code=serial_text,
            product_name=title,
            rendered=title_text,
        )

    return RenderResult(
        outcome=RenderOutcome.RENDERED,
        png=_encode_png(canvas),
        width=canvas_width,
        height=canvas_height,
        target_url=target_url,
        qr_box=(qr_x, qr_y, qr_size, qr_size),
        serial_text=serial_text,
        title_text=title_text,
    )
