import asyncio
from io import BytesIO

import qrcode
import structlog
from qrcode.image.pil import PilImage

from sendo.core.core import Service

logger = structlog.get_logger(__name__)

QR_BOX_SIZE = 6
QR_BORDER = 1


def render_qr_png(data: str, box_size: int = QR_BOX_SIZE, border: int = QR_BORDER) -> bytes:
    """Encode data as a QR code PNG.

    Args:
        data: Text to encode, typically a join URL
        box_size: Pixels per QR module
        border: Quiet zone width in modules

    Returns:
        PNG image bytes
    """
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)
    image = qr.make_image(image_factory=PilImage)
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class QrService(Service):
    """Renders join URLs as QR images for the receiver page."""

    async def render(self, data: str) -> bytes:
        png = await asyncio.to_thread(render_qr_png, data)
        logger.debug("qr_rendered", size=len(png))
        return png
