"""API routes for submitting short-clip jobs and fetching results."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import Response

from shortify.config import MAX_VIDEO_SIZE_BYTES
from shortify.conversion.errors import BUSY_NOTICE, InputError, JobInProgressError
from shortify.conversion.models import DEFAULT_CONTENT_TYPE, MediaInput, Selection
from shortify.conversion.orchestrator import Orchestrator

logger = logging.getLogger("shortify.api")
router = APIRouter(prefix="/api", tags=["shortify"])


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def _snapshot_to_dict(o: Orchestrator) -> dict:
    handle = o.sink.live_handle if o.result_visible else None
    return {
        "state": o.state.value,
        "submit_enabled": o.submit_enabled,
        "submit_label": o.submit_label,
        "file_label": o.file_label,
        "progress": {
            "visible": o.reporter.visible,
            "ratio": o.reporter.ratio,
            "display": o.reporter.display,
        },
        "result": {
            "handle_id": handle.handle_id,
            "player_src": handle.locator,
            "download_href": handle.locator,
        } if handle else None,
        "notice": o.notice,
    }


async def _read_upload(file: UploadFile) -> MediaInput:
    max_mb = MAX_VIDEO_SIZE_BYTES // (1024 * 1024)
    chunks: list[bytes] = []
    total = 0
    while chunk := await file.read(1024 * 1024):
        total += len(chunk)
        if total > MAX_VIDEO_SIZE_BYTES:
            raise HTTPException(413, f"File too large (max {max_mb} MB)")
        chunks.append(chunk)
    return MediaInput(
        name=file.filename,
        data=b"".join(chunks),
        content_type=file.content_type or DEFAULT_CONTENT_TYPE,
    )


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/shorts", status_code=202)
async def create_short(
    file: Optional[UploadFile] = File(None),
    url: Optional[str] = Form(None),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """Start generating a short from an uploaded file or a video URL. File wins if both are given."""
    if orchestrator.state.busy:
        raise HTTPException(409, BUSY_NOTICE)
    media = None
    if file is not None and file.filename:
        media = await _read_upload(file)
    try:
        orchestrator.submit(Selection(file=media, url=url))
    except JobInProgressError as e:
        raise HTTPException(409, e.notice)
    except InputError as e:
        raise HTTPException(400, e.notice)
    return _snapshot_to_dict(orchestrator)


@router.get("/job")
async def job_status(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Current job state, progress bar, result and last notice."""
    return _snapshot_to_dict(orchestrator)


@router.get("/results/{handle_id}")
async def get_result(handle_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Serve the live result for both the player and the download link."""
    artifact = orchestrator.sink.get(handle_id)
    if artifact is None:
        raise HTTPException(404, "Result not found")
    return Response(
        content=artifact.data,
        media_type=artifact.content_type,
        headers={"Content-Disposition": f'inline; filename="{artifact.filename}"'},
    )
