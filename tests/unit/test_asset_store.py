"""
Tests for branding asset lookup and resolution.

HTTP lookups use a mocked requests session; nothing touches the network.
"""

import time
from unittest.mock import MagicMock

import pytest
import requests

from asset_store import (
    AssetStore,
    ChainedAssetStore,
    HttpAssetStore,
    InMemoryAssetStore,
    LocalAssetStore,
    decode_image,
    reference_filename,
    resolve_branding,
)
from models.prescription import BrandingAssets


def _response(status_code: int, content: bytes = b"") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.content = content
    return response


class _RaisingStore(AssetStore):
    def resolve(self, reference):
        raise RuntimeError("database unavailable")


class _SlowStore(AssetStore):
    def __init__(self, data: bytes, delay: float):
        self.data = data
        self.delay = delay

    def resolve(self, reference):
        time.sleep(self.delay)
        return self.data


class TestReferenceFilename:

    def test_api_path(self):
        assert reference_filename("/api/doctors/images/clinicLogo-123.png") == "clinicLogo-123.png"

    def test_absolute_url_with_query(self):
        assert reference_filename("https://cdn.example.com/a/b/logo.png?v=2") == "logo.png"


class TestInMemoryAssetStore:

    def test_lookup_by_filename(self, png_bytes):
        store = InMemoryAssetStore({"clinicLogo-1.png": png_bytes})
        assert store.resolve("/api/doctors/images/clinicLogo-1.png") == png_bytes

    def test_missing_returns_none(self):
        assert InMemoryAssetStore().resolve("/api/doctors/images/nope.png") is None
        assert InMemoryAssetStore().resolve("") is None


class TestLocalAssetStore:

    def test_relative_path(self, tmp_path, png_bytes):
        (tmp_path / "uploads").mkdir()
        (tmp_path / "uploads" / "logo.png").write_bytes(png_bytes)
        store = LocalAssetStore(str(tmp_path))
        assert store.resolve("/uploads/logo.png") == png_bytes

    def test_bare_filename_fallback(self, tmp_path, png_bytes):
        (tmp_path / "clinicLogo-9.png").write_bytes(png_bytes)
        store = LocalAssetStore(str(tmp_path))
        assert store.resolve("/api/doctors/images/clinicLogo-9.png") == png_bytes

    def test_path_outside_root_refused(self, tmp_path):
        root = tmp_path / "uploads"
        root.mkdir()
        (tmp_path / "secret.txt").write_bytes(b"secret")
        store = LocalAssetStore(str(root))
        assert store.resolve("../secret.txt") is None

    def test_missing_file(self, tmp_path):
        assert LocalAssetStore(str(tmp_path)).resolve("/uploads/missing.png") is None


class TestHttpAssetStore:

    def test_absolute_url_fetched(self, png_bytes):
        session = MagicMock()
        session.get.return_value = _response(200, png_bytes)
        store = HttpAssetStore(session=session, timeout=2)

        assert store.resolve("https://cdn.example.com/logo.png") == png_bytes
        session.get.assert_called_once_with("https://cdn.example.com/logo.png", timeout=2)

    def test_relative_reference_joined_to_base(self, png_bytes):
        session = MagicMock()
        session.get.return_value = _response(200, png_bytes)
        store = HttpAssetStore("https://api.medizo.life/", session=session)

        store.resolve("/api/doctors/images/logo.png")
        assert session.get.call_args[0][0] == "https://api.medizo.life/api/doctors/images/logo.png"

    def test_relative_reference_without_base_skipped(self):
        session = MagicMock()
        store = HttpAssetStore(session=session)
        assert store.resolve("/api/doctors/images/logo.png") is None
        session.get.assert_not_called()

    @pytest.mark.parametrize("status_code", [404, 500, 403])
    def test_error_status_returns_none(self, status_code):
        session = MagicMock()
        session.get.return_value = _response(status_code, b"error page")
        store = HttpAssetStore(session=session)
        assert store.resolve("https://cdn.example.com/logo.png") is None

    def test_network_error_returns_none(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("connection refused")
        store = HttpAssetStore(session=session)
        assert store.resolve("https://cdn.example.com/logo.png") is None


class TestChainedAssetStore:

    def test_first_hit_wins(self, png_bytes):
        store = ChainedAssetStore([
            InMemoryAssetStore(),
            InMemoryAssetStore({"logo.png": png_bytes}),
            InMemoryAssetStore({"logo.png": b"other"}),
        ])
        assert store.resolve("/x/logo.png") == png_bytes

    def test_failing_store_skipped(self, png_bytes):
        store = ChainedAssetStore([_RaisingStore(), InMemoryAssetStore({"logo.png": png_bytes})])
        assert store.resolve("/x/logo.png") == png_bytes


class TestResolveBranding:

    def test_all_images_resolved(self, asset_store, branding):
        resolved = resolve_branding(BrandingAssets.model_validate(branding), asset_store)
        assert resolved.logo is not None
        assert resolved.signature is not None
        assert resolved.profile_image is not None
        assert resolved.warnings == []

    def test_no_branding(self, asset_store):
        resolved = resolve_branding(None, asset_store)
        assert resolved.logo is None
        assert resolved.warnings == []

    def test_missing_image_falls_back(self, asset_store):
        assets = BrandingAssets(clinic_logo="/api/doctors/images/does-not-exist.png")
        resolved = resolve_branding(assets, asset_store)
        assert resolved.logo is None
        assert len(resolved.warnings) == 1
        assert resolved.warnings[0].startswith("logo:")

    def test_undecodable_image_falls_back(self):
        store = InMemoryAssetStore({"logo.png": b"definitely not a png"})
        resolved = resolve_branding(BrandingAssets(clinic_logo="/logo.png"), store)
        assert resolved.logo is None
        assert "unreadable" in resolved.warnings[0]

    def test_store_error_falls_back(self):
        resolved = resolve_branding(BrandingAssets(signature="/sig.png"), _RaisingStore())
        assert resolved.signature is None
        assert "failed" in resolved.warnings[0]

    def test_timeout_falls_back(self, png_bytes):
        store = _SlowStore(png_bytes, delay=1.0)
        started = time.monotonic()
        resolved = resolve_branding(BrandingAssets(clinic_logo="/logo.png"), store, timeout=0.05)

        assert resolved.logo is None
        assert "timed out" in resolved.warnings[0]
        assert time.monotonic() - started < 0.9

    def test_no_store_configured(self):
        resolved = resolve_branding(BrandingAssets(clinic_logo="/logo.png"), None)
        assert resolved.logo is None
        assert len(resolved.warnings) == 1


class TestDecodeImage:

    def test_valid_png(self, png_bytes):
        image = decode_image(png_bytes)
        assert image is not None
        assert image.getSize() == (240, 120)

    def test_empty_and_garbage(self):
        assert decode_image(None) is None
        assert decode_image(b"") is None
        assert decode_image(b"\x00\x01garbage") is None
