"""
Prescription PDF Router
Streams a rendered prescription PDF back to the client
"""
import asyncio
import logging
import threading
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

import config
from asset_store import AssetStore
from errors import PrescriptionDataError, RenderCancelled
from pdf_generator import iter_pdf_chunks, pdf_filename, render_prescription

logger = logging.getLogger(__name__)

# Initialize router
router = APIRouter(prefix="/api/prescriptions", tags=["prescriptions"])

# Seconds between client-disconnect checks while a render is running
DISCONNECT_POLL_SECONDS = 0.5


class PrescriptionPdfRequest(BaseModel):
    """Request body: the prescription record plus optional branding references"""
    prescription: Dict[str, Any]
    branding: Optional[Dict[str, Any]] = None


def get_asset_store() -> AssetStore:
    """Asset store used for branding lookups (overridden in tests)"""
    return config.build_asset_store()


async def _watch_disconnect(request: Request, cancelled: threading.Event):
    while not cancelled.is_set():
        if await request.is_disconnected():
            cancelled.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.post("/{prescription_id}/pdf")
async def download_prescription_pdf(
    prescription_id: str,
    body: PrescriptionPdfRequest,
    request: Request,
    asset_store: AssetStore = Depends(get_asset_store),
):
    """
    Render a prescription as a downloadable PDF.

    Returns 422 with structured errors when the record is missing required
    data, and 500 when rendering fails for any other reason. A client that
    disconnects mid-render cancels the render.
    """
    record = dict(body.prescription)
    if "id" not in record and "_id" not in record:
        record["id"] = prescription_id

    cancelled = threading.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancelled))
    try:
        render = await run_in_threadpool(
            render_prescription,
            record,
            body.branding,
            asset_store,
            should_cancel=cancelled.is_set,
        )
    except PrescriptionDataError as e:
        logger.info(f"Rejected prescription {prescription_id}: {e}")
        raise HTTPException(status_code=422, detail={"message": str(e), "errors": e.errors})
    except RenderCancelled:
        logger.info(f"Client disconnected, render of prescription {prescription_id} cancelled")
        return Response(status_code=499)
    except Exception:
        logger.exception(f"Prescription PDF generation failed for {prescription_id}")
        raise HTTPException(status_code=500, detail="Prescription PDF generation failed")
    finally:
        cancelled.set()
        watcher.cancel()

    return StreamingResponse(
        iter_pdf_chunks(render.buffer),
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{pdf_filename(prescription_id)}"',
            "X-Page-Count": str(render.page_count),
        },
    )
