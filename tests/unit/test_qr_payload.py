"""
Tests for QR verification payloads.
"""

from datetime import date, datetime
from io import BytesIO

from PIL import Image

import qr_payload


class TestEncode:

    def test_payload_format(self):
        payload = qr_payload.encode("65f2a1b3", date(2025, 3, 14), base_url="https://verify.example.com/rx/")
        assert payload == "https://verify.example.com/rx/65f2a1b3?issued=2025-03-14"

    def test_datetime_reduced_to_date(self):
        payload = qr_payload.encode("abc", datetime(2025, 3, 14, 23, 59), base_url="https://v.example.com")
        assert payload.endswith("?issued=2025-03-14")

    def test_id_is_url_quoted(self):
        payload = qr_payload.encode("a/b c", date(2025, 1, 2), base_url="https://v.example.com")
        assert "/a%2Fb%20c?" in payload

    def test_default_base_url(self, monkeypatch):
        monkeypatch.setattr(qr_payload.config, "VERIFY_BASE_URL", "https://medizo.test/verify")
        assert qr_payload.encode("x1", date(2025, 1, 2)).startswith("https://medizo.test/verify/x1")


class TestPrescriptionNumber:

    def test_last_five_characters(self):
        number = qr_payload.format_prescription_number("65f2a1b3c4d5e6f7a8b9c0d1", datetime(2025, 3, 4))
        assert number == "RX-2025-03-04-9c0d1"

    def test_short_id_zero_padded(self):
        assert qr_payload.format_prescription_number("42", date(2024, 12, 31)) == "RX-2024-12-31-00042"


class TestRenderQr:

    def test_png_bytes(self):
        png = qr_payload.render_qr_png("https://www.medizo.life/verify/abc?issued=2025-03-14")
        assert png.startswith(b"\x89PNG")
        image = Image.open(BytesIO(png))
        assert image.size[0] == image.size[1]

    def test_image_reader(self):
        reader = qr_payload.render_qr_image("payload")
        width, height = reader.getSize()
        assert width == height > 0
