"""
Exceptions raised by the prescription PDF pipeline
"""

from typing import Any, Dict, List, Optional


class PrescriptionPdfError(Exception):
    """Base class for prescription PDF failures"""


class PrescriptionDataError(PrescriptionPdfError):
    """
    The prescription record is missing required data or has the wrong shape.

    Raised before any PDF bytes are produced. `errors` holds one dict per
    problem with the offending field location and a message.
    """

    def __init__(self, errors: List[Dict[str, Any]], message: Optional[str] = None):
        self.errors = errors
        if message is None:
            fields = ", ".join(".".join(str(p) for p in e.get("loc", ())) or "<root>" for e in errors)
            message = f"Invalid prescription data: {fields}"
        super().__init__(message)


class RenderCancelled(PrescriptionPdfError):
    """The caller abandoned the render; partial output is discarded"""


class PdfOutputError(PrescriptionPdfError):
    """Writing the rendered PDF to the output stream failed"""
