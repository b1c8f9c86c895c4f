"""
Configuration Module for the Medizo prescription PDF service
Centralizes all environment variables and tunables
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


# Verification
VERIFY_BASE_URL = os.getenv("VERIFY_BASE_URL", "https://www.medizo.life/verify")
PLATFORM_SITE = os.getenv("PLATFORM_SITE", "www.medizo.life")

# Branding asset lookup
ASSET_BASE_URL = os.getenv("ASSET_BASE_URL")  # e.g. "https://api.medizo.life"
ASSET_LOCAL_DIR = os.getenv("ASSET_LOCAL_DIR", "./uploads")
ASSET_TIMEOUT_SECONDS = float(os.getenv("ASSET_TIMEOUT_SECONDS", "5"))

# PDF output
PDF_INVARIANT = _env_bool("PDF_INVARIANT")  # strips creation timestamps from the output
PDF_CHUNK_SIZE = int(os.getenv("PDF_CHUNK_SIZE", str(64 * 1024)))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# CORS Origins
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,https://www.medizo.life",
    ).split(",")
    if origin.strip()
]


def build_asset_store():
    """
    Default asset store: HTTP lookup first (absolute URLs, or relative paths
    when ASSET_BASE_URL is set), then the local upload directory.
    """
    from asset_store import ChainedAssetStore, HttpAssetStore, LocalAssetStore

    return ChainedAssetStore([
        HttpAssetStore(ASSET_BASE_URL, timeout=ASSET_TIMEOUT_SECONDS),
        LocalAssetStore(ASSET_LOCAL_DIR),
    ])
