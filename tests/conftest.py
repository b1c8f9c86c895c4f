"""
Pytest configuration and shared fixtures for the prescription PDF tests.

This module provides:
- FastAPI TestClient configuration with an in-memory asset store
- Prescription record fixtures
- Branding image fixtures
- PDF text extraction helpers
"""

import os
import sys
from io import BytesIO
from pathlib import Path
from typing import List

import pytest
from PIL import Image
from PyPDF2 import PdfReader

# Add the backend directory to the path
BACKEND_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from tests.fixtures import prescriptions as records  # noqa: E402


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers and load environment."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")

    # Load .env file
    env_file = BACKEND_DIR / ".env"
    if env_file.exists():
        from dotenv import load_dotenv
        load_dotenv(env_file)


# ============================================================================
# IMAGE FIXTURES
# ============================================================================

def make_png(width: int = 240, height: int = 120, color: str = "teal") -> bytes:
    """Small solid-colour PNG"""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def asset_store(png_bytes):
    """Store holding a logo, a signature and a profile photo"""
    from asset_store import InMemoryAssetStore

    return InMemoryAssetStore({
        "clinicLogo-1.png": png_bytes,
        "signature-1.png": make_png(300, 100, "black"),
        "profileImage-1.png": make_png(100, 100, "gray"),
    })


@pytest.fixture
def branding():
    return {
        "clinicLogo": "/api/doctors/images/clinicLogo-1.png",
        "signature": "/api/doctors/images/signature-1.png",
        "profileImage": "/api/doctors/images/profileImage-1.png",
    }


# ============================================================================
# PRESCRIPTION FIXTURES
# ============================================================================

@pytest.fixture
def minimal_record():
    return records.minimal_record()


@pytest.fixture
def full_record():
    return records.full_record()


# ============================================================================
# PDF HELPERS
# ============================================================================

def pdf_pages_text(pdf_bytes: bytes) -> List[str]:
    """Extracted text of every page"""
    reader = PdfReader(BytesIO(pdf_bytes))
    return [page.extract_text() or "" for page in reader.pages]


def pdf_page_count(pdf_bytes: bytes) -> int:
    return len(PdfReader(BytesIO(pdf_bytes)).pages)


# ============================================================================
# FASTAPI TEST CLIENT
# ============================================================================

@pytest.fixture(scope="module")
def test_client():
    """
    FastAPI TestClient with the asset store swapped for an in-memory one,
    so no test reaches the network or the local upload directory.
    """
    from fastapi.testclient import TestClient

    from api import app
    from asset_store import InMemoryAssetStore
    from routers.prescriptions import get_asset_store

    store = InMemoryAssetStore({"clinicLogo-1.png": make_png()})
    app.dependency_overrides[get_asset_store] = lambda: store
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
