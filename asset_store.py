"""
Branding Asset Store

Resolves clinic logo, doctor signature and profile photo references to raw
image bytes. A lookup never raises for a missing asset: every store returns
None when the reference cannot be resolved, so the PDF layout only ever sees
"image" or "no image".
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlparse

import requests
from reportlab.lib.utils import ImageReader

from models.prescription import BrandingAssets

logger = logging.getLogger(__name__)


def reference_filename(reference: str) -> str:
    """Last path segment, e.g. /api/doctors/images/clinicLogo-123.png -> clinicLogo-123.png"""
    path = urlparse(reference).path or reference
    return path.rstrip("/").split("/")[-1]


class AssetStore:
    """Base class for branding image lookups."""

    def resolve(self, reference: str) -> Optional[bytes]:
        raise NotImplementedError


class InMemoryAssetStore(AssetStore):
    """Assets keyed by full reference or by bare filename."""

    def __init__(self, assets: Optional[Dict[str, bytes]] = None):
        self._assets = dict(assets or {})

    def add(self, reference: str, data: bytes):
        self._assets[reference] = data

    def resolve(self, reference: str) -> Optional[bytes]:
        if not reference:
            return None
        if reference in self._assets:
            return self._assets[reference]
        return self._assets.get(reference_filename(reference))


class LocalAssetStore(AssetStore):
    """
    Uploaded images on local disk.

    A reference like "/uploads/logo.png" is looked up relative to the root
    first, then by bare filename directly under the root.
    """

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def _candidates(self, reference: str) -> List[Path]:
        relative = urlparse(reference).path.lstrip("/")
        candidates = []
        if relative:
            candidates.append(self.root / relative)
        filename = reference_filename(reference)
        if filename:
            candidates.append(self.root / filename)
        return candidates

    def resolve(self, reference: str) -> Optional[bytes]:
        if not reference:
            return None

        for candidate in self._candidates(reference):
            path = candidate.resolve()
            # Never serve files outside the upload root
            if self.root not in path.parents:
                continue
            if path.is_file():
                try:
                    return path.read_bytes()
                except OSError as e:
                    logger.warning(f"Failed to read asset {path}: {e}")
                    return None
        return None


class HttpAssetStore(AssetStore):
    """
    Fetch images over HTTP.

    Absolute http(s) references are fetched as-is; relative references are
    joined to base_url (and skipped when no base_url is configured).
    """

    def __init__(self, base_url: Optional[str] = None, timeout: float = 5.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url_for(self, reference: str) -> Optional[str]:
        if urlparse(reference).scheme in ("http", "https"):
            return reference
        if not self.base_url:
            return None
        return urljoin(self.base_url.rstrip("/") + "/", reference.lstrip("/"))

    def resolve(self, reference: str) -> Optional[bytes]:
        if not reference:
            return None

        url = self._url_for(reference)
        if url is None:
            return None

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Asset request failed for {url}: {e}")
            return None

        if response.status_code == 404:
            return None
        if not response.ok:
            logger.warning(f"Asset request for {url} returned HTTP {response.status_code}")
            return None
        return response.content or None


class ChainedAssetStore(AssetStore):
    """First store that returns bytes wins."""

    def __init__(self, stores: Iterable[AssetStore]):
        self.stores = list(stores)

    def resolve(self, reference: str) -> Optional[bytes]:
        for store in self.stores:
            try:
                data = store.resolve(reference)
            except Exception as e:
                logger.warning(f"{type(store).__name__} failed for {reference}: {e}")
                continue
            if data:
                return data
        return None


@dataclass
class ResolvedBranding:
    """Decoded branding images; None means "render the fallback"."""
    logo: Optional[ImageReader] = None
    signature: Optional[ImageReader] = None
    profile_image: Optional[ImageReader] = None
    warnings: List[str] = field(default_factory=list)


def decode_image(data: Optional[bytes]) -> Optional[ImageReader]:
    """Decode image bytes for reportlab, None if they are not a usable image."""
    if not data:
        return None
    try:
        reader = ImageReader(BytesIO(data))
        width, height = reader.getSize()
    except Exception as e:
        logger.warning(f"Could not decode branding image: {e}")
        return None
    if not width or not height:
        return None
    return reader


def _resolve_with_timeout(store: AssetStore, reference: str, timeout: float) -> Optional[bytes]:
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(store.resolve, reference)
        return future.result(timeout=timeout)
    finally:
        # Do not wait for a hung lookup
        executor.shutdown(wait=False, cancel_futures=True)


def resolve_branding(
    assets: Optional[BrandingAssets],
    store: Optional[AssetStore],
    timeout: float = 5.0,
) -> ResolvedBranding:
    """
    Resolve every branding reference before layout starts.

    Lookups run one after another, each bounded by `timeout` seconds. Absent,
    missing, failed, timed-out and undecodable images all come back as None.
    """
    resolved = ResolvedBranding()
    if assets is None:
        return resolved

    for slot in ("logo", "signature", "profile_image"):
        reference = getattr(assets, "clinic_logo" if slot == "logo" else slot)
        if not reference:
            continue

        if store is None:
            resolved.warnings.append(f"{slot}: no asset store configured for {reference}")
            logger.warning(f"No asset store configured, skipping {slot} ({reference})")
            continue

        try:
            data = _resolve_with_timeout(store, reference, timeout)
        except FutureTimeoutError:
            resolved.warnings.append(f"{slot}: lookup timed out for {reference}")
            logger.warning(f"Timed out resolving {slot} after {timeout}s: {reference}")
            continue
        except Exception as e:
            resolved.warnings.append(f"{slot}: lookup failed for {reference}")
            logger.warning(f"Failed to resolve {slot} ({reference}): {e}")
            continue

        if data is None:
            resolved.warnings.append(f"{slot}: not found {reference}")
            logger.warning(f"Branding image not found for {slot}: {reference}")
            continue

        image = decode_image(data)
        if image is None:
            resolved.warnings.append(f"{slot}: unreadable image {reference}")
            continue

        setattr(resolved, slot, image)

    return resolved
