"""
PDF Generator for Prescriptions

This module renders a prescription into a multi-page A4 PDF:
- Validates the prescription record before any byte is produced
- Resolves branding images (logo, signature, profile photo) with fallbacks
- Builds the QR verification code
- Lays the sections out page by page (see prescription_layout)
"""

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Iterator, List, Optional, Union

from pydantic import ValidationError
from reportlab.lib.utils import ImageReader

import config
import qr_payload
from asset_store import AssetStore, resolve_branding
from errors import PdfOutputError, PrescriptionDataError, RenderCancelled
from models.design_tokens import DesignTokens
from models.prescription import BrandingAssets, PrescriptionDocument
from prescription_layout import (
    DocumentHeader,
    FinalBlock,
    FlowController,
    LayoutReport,
    NumberedCanvas,
    PageGeometry,
    RenderContext,
    RunningHeader,
    build_sections,
    draw_page_number,
)
from prescription_layout.sections import doctor_display_name

logger = logging.getLogger(__name__)

DocumentInput = Union[PrescriptionDocument, Dict[str, Any]]
BrandingInput = Union[BrandingAssets, Dict[str, Any], None]


@dataclass
class PrescriptionRender:
    """A finished render: PDF bytes, where everything landed, and asset warnings"""
    buffer: BytesIO
    layout: LayoutReport
    warnings: List[str] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return self.layout.page_count

    def getvalue(self) -> bytes:
        return self.buffer.getvalue()


def pdf_filename(prescription_id: str) -> str:
    """Download filename, e.g. prescription-65f1c0ffee.pdf"""
    safe_id = re.sub(r"[^A-Za-z0-9._-]", "_", str(prescription_id))
    return f"prescription-{safe_id}.pdf"


def _coerce_document(document: DocumentInput) -> PrescriptionDocument:
    if isinstance(document, PrescriptionDocument):
        return document
    if isinstance(document, dict):
        return PrescriptionDocument.from_record(document)
    raise PrescriptionDataError([{
        "loc": [],
        "msg": f"Expected a prescription record, got {type(document).__name__}",
        "type": "model_type",
    }])


def _coerce_branding(branding: BrandingInput) -> Optional[BrandingAssets]:
    if branding is None or isinstance(branding, BrandingAssets):
        return branding
    try:
        return BrandingAssets.model_validate(branding)
    except ValidationError as e:
        errors = [
            {"loc": ["branding", *err["loc"]], "msg": err["msg"], "type": err["type"]}
            for err in e.errors()
        ]
        raise PrescriptionDataError(errors) from e


def _qr_image(payload: str, warnings: List[str]) -> Optional[ImageReader]:
    try:
        return qr_payload.render_qr_image(payload)
    except Exception as e:
        # Same fallback as a missing branding image: placeholder box, render continues
        logger.warning(f"QR code generation failed: {e}")
        warnings.append("qr: generation failed")
        return None


def render_prescription(
    document: DocumentInput,
    branding: BrandingInput = None,
    asset_store: Optional[AssetStore] = None,
    tokens: Optional[DesignTokens] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> PrescriptionRender:
    """
    Render one prescription to PDF.

    Args:
        document: PrescriptionDocument, or a raw record validated into one
        branding: Optional references to the clinic logo, signature and profile photo
        asset_store: Where branding references are looked up; None skips the lookups
        tokens: Optional design tokens (colors, fonts, page geometry)
        should_cancel: Polled at section boundaries and page breaks; True aborts the render

    Returns:
        PrescriptionRender with the PDF buffer rewound to the start

    Raises:
        PrescriptionDataError: the record is missing required data (nothing is rendered)
        RenderCancelled: should_cancel returned True (partial output is discarded)
    """
    doc = _coerce_document(document)
    assets = _coerce_branding(branding)
    if tokens is None:
        tokens = DesignTokens.default()

    geometry = PageGeometry(tokens.layout)
    issued_at = doc.created_at or datetime.now()
    logger.info(f"Rendering prescription {doc.id} ({len(doc.medications)} medications)")

    resolved = resolve_branding(assets, asset_store, timeout=config.ASSET_TIMEOUT_SECONDS)
    warnings = list(resolved.warnings)

    payload = doc.qr_payload or qr_payload.encode(doc.id, issued_at)
    context = RenderContext(
        prescription_number=qr_payload.format_prescription_number(doc.id, issued_at),
        issued_at=issued_at,
        platform_site=config.PLATFORM_SITE,
        logo=resolved.logo,
        signature=resolved.signature,
        profile_image=resolved.profile_image,
        qr_image=_qr_image(payload, warnings),
    )

    width = geometry.content_width
    buffer = BytesIO()
    c = NumberedCanvas(
        buffer,
        pagesize=(tokens.layout.page_width, tokens.layout.page_height),
        invariant=1 if config.PDF_INVARIANT else 0,
        footer_cb=lambda canvas, page, total: draw_page_number(canvas, page, total, tokens),
    )
    c.setTitle(f"Prescription {context.prescription_number}")
    c.setAuthor(doctor_display_name(doc.doctor.name))
    c.setSubject(f"Prescription for {doc.patient.name}")

    controller = FlowController(
        c, geometry, RunningHeader(doc, context, tokens, width), should_cancel=should_cancel,
    )
    try:
        report = controller.run(
            DocumentHeader(doc, context, tokens, width),
            build_sections(doc, context, tokens, width),
            FinalBlock(doc, context, tokens, width),
        )
    except RenderCancelled:
        buffer.close()
        raise

    c.save()
    buffer.seek(0)

    logger.info(
        f"Prescription PDF generated for {doc.id}: {report.page_count} pages, "
        f"{len(warnings)} warnings"
    )
    return PrescriptionRender(buffer=buffer, layout=report, warnings=warnings)


def generate_prescription_pdf(
    document: DocumentInput,
    branding: BrandingInput = None,
    asset_store: Optional[AssetStore] = None,
    tokens: Optional[DesignTokens] = None,
) -> BytesIO:
    """
    Generate a prescription PDF document.

    Returns:
        BytesIO containing PDF bytes
    """
    return render_prescription(document, branding, asset_store, tokens).buffer


def iter_pdf_chunks(buffer: BytesIO, chunk_size: Optional[int] = None) -> Iterator[bytes]:
    """Yield the rendered PDF in fixed-size chunks (for streaming responses)"""
    chunk_size = chunk_size or config.PDF_CHUNK_SIZE
    buffer.seek(0)
    while True:
        chunk = buffer.read(chunk_size)
        if not chunk:
            break
        yield chunk


def write_prescription_pdf(
    document: DocumentInput,
    out: Union[BinaryIO, str, Path],
    chunk_size: Optional[int] = None,
    **render_kwargs: Any,
) -> PrescriptionRender:
    """
    Render completely, then write the PDF to `out` (a binary stream or a path).

    Nothing is written when validation fails or the render is cancelled.
    Write failures raise PdfOutputError and are not retried; a failed write
    to a path leaves no file behind.
    """
    render = render_prescription(document, **render_kwargs)

    partial: Optional[Path] = None
    try:
        if isinstance(out, (str, Path)):
            target = Path(out)
            # Written beside the target and moved into place only once complete
            partial = target.with_name(f".{target.name}.part")
            with open(partial, "wb") as f:
                for chunk in iter_pdf_chunks(render.buffer, chunk_size):
                    f.write(chunk)
            os.replace(partial, target)
        else:
            for chunk in iter_pdf_chunks(render.buffer, chunk_size):
                out.write(chunk)
            if hasattr(out, "flush"):
                out.flush()
    except (OSError, ValueError) as e:
        if partial is not None:
            partial.unlink(missing_ok=True)
        raise PdfOutputError(f"Failed to write prescription PDF: {e}") from e

    render.buffer.seek(0)
    return render
