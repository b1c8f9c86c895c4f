"""
QR verification payloads

Builds the verification string encoded into the prescription QR code and
renders it as a PNG image for the PDF.
"""

from datetime import date, datetime
from io import BytesIO
from typing import Optional, Union
from urllib.parse import quote

import qrcode
from reportlab.lib.utils import ImageReader

import config


def encode(prescription_id: str, issued_date: Union[date, datetime], base_url: Optional[str] = None) -> str:
    """
    Verification payload for a prescription.

    The payload is opaque to the layout engine; scanning it opens the
    verification page for this prescription id.
    """
    if isinstance(issued_date, datetime):
        issued_date = issued_date.date()
    base = (base_url or config.VERIFY_BASE_URL).rstrip("/")
    return f"{base}/{quote(str(prescription_id), safe='')}?issued={issued_date.isoformat()}"


def format_prescription_number(prescription_id: str, issued_at: Union[date, datetime]) -> str:
    """RX-YYYY-MM-DD-NNNNN using the last five characters of the id"""
    suffix = str(prescription_id)[-5:].rjust(5, "0")
    return f"RX-{issued_at.year:04d}-{issued_at.month:02d}-{issued_at.day:02d}-{suffix}"


def render_qr_png(payload: str) -> bytes:
    """Render a payload to PNG bytes"""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=1,
    )
    qr.add_data(str(payload))
    qr.make(fit=True)

    qr_image = qr.make_image(fill_color="black", back_color="white")

    # PilImage wrapper exposes the underlying PIL image
    if hasattr(qr_image, "get_image"):
        pil_image = qr_image.get_image()
    else:
        pil_image = qr_image

    img_buffer = BytesIO()
    pil_image.save(img_buffer, format="PNG")
    return img_buffer.getvalue()


def render_qr_image(payload: str) -> ImageReader:
    """QR code as a reportlab ImageReader"""
    return ImageReader(BytesIO(render_qr_png(payload)))
