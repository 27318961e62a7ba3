"""API endpoints for uploading videos into the session store and playing them back."""

import re
from typing import Iterator, Optional, Tuple

from fastapi import APIRouter, Depends, File, Header, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse

from video_snipper.dependencies import get_clip_pipeline
from video_snipper.exceptions import PayloadTooLargeException, ValidationException
from video_snipper.logging_config import get_logger
from video_snipper.schemas.api import UploadResponse
from video_snipper.services.clip_pipeline import ClipPipeline
from video_snipper.utils import ErrorContext

router = APIRouter()
logger = get_logger(__name__)

PLAYBACK_CHUNK_SIZE = 256 * 1024

_RANGE = re.compile(r"^bytes=(\d*)-(\d*)$")


async def read_upload(upload: UploadFile, max_bytes: int, chunk_size: int) -> bytes:
    """Read an uploaded file, giving up as soon as it passes ``max_bytes``."""
    chunks = []
    size = 0
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            raise PayloadTooLargeException(max_bytes)
        chunks.append(chunk)
    return b"".join(chunks)


def parse_range(header: str, size: int) -> Optional[Tuple[int, int]]:
    """
    Parse a single ``bytes=start-end`` range against a body of ``size`` bytes.

    Returns the inclusive ``(start, end)`` pair, or None if the range cannot
    be satisfied.
    """
    match = _RANGE.match(header.strip())
    if not match or size == 0:
        return None
    first, last = match.groups()
    if not first and not last:
        return None
    if not first:
        # Suffix range: the last N bytes
        length = int(last)
        if length == 0:
            return None
        return max(size - length, 0), size - 1
    start = int(first)
    end = int(last) if last else size - 1
    if start >= size or end < start:
        return None
    return start, min(end, size - 1)


def _iter_slice(data: bytes, start: int, end: int) -> Iterator[bytes]:
    view = memoryview(data)
    position = start
    while position <= end:
        stop = min(position + PLAYBACK_CHUNK_SIZE, end + 1)
        yield bytes(view[position:stop])
        position = stop


@router.post(
    "/upload",
    response_model=UploadResponse,
    summary="Upload a video into the caller's session",
)
async def upload_video(
    video: Optional[UploadFile] = File(None),
    x_session_id: Optional[str] = Header(None),
    pipeline: ClipPipeline = Depends(get_clip_pipeline),
) -> UploadResponse:
    """
    Keeps the uploaded video in memory for the session named by the
    ``X-Session-Id`` header (a new session is created when it is missing).
    A session holds one video at a time; uploading again replaces it.
    """
    if video is None:
        raise ValidationException("No video file provided", field="video")

    with ErrorContext(
        "video_upload",
        session_id=x_session_id,
        original_name=video.filename,
        content_type=video.content_type,
    ):
        pipeline.check_media_type(video.content_type)
        upload_settings = pipeline.settings.upload
        data = await read_upload(video, upload_settings.max_bytes, upload_settings.read_chunk_size)
        result = pipeline.ingest(
            x_session_id,
            data,
            video.content_type,
            video.filename or "upload",
        )

    return UploadResponse(
        video_id=result.video_id,
        session_id=result.session_id,
        original_name=result.original_name,
        size=result.size,
    )


@router.get(
    "/uploaded-video/{video_id}",
    summary="Stream a previously uploaded video",
)
def stream_uploaded_video(
    video_id: str,
    range_header: Optional[str] = Header(None, alias="range"),
    pipeline: ClipPipeline = Depends(get_clip_pipeline),
):
    """Plays back an uploaded video, honouring single byte-range requests."""
    video = pipeline.store.get(video_id)
    size = video.size

    headers = {
        "Accept-Ranges": "bytes",
        "Cache-Control": "no-cache, no-store, must-revalidate",
    }

    if range_header:
        byte_range = parse_range(range_header, size)
        if byte_range is None:
            logger.warning(
                "Requested range not satisfiable",
                extra={"video_id": video_id, "range": range_header, "size": size},
            )
            return JSONResponse(
                status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
                content={"error": "Requested range not satisfiable"},
                headers={"Content-Range": f"bytes */{size}"},
            )
        start, end = byte_range
        headers["Content-Range"] = f"bytes {start}-{end}/{size}"
        headers["Content-Length"] = str(end - start + 1)
        return StreamingResponse(
            _iter_slice(video.data, start, end),
            status_code=status.HTTP_206_PARTIAL_CONTENT,
            media_type=video.mime_type,
            headers=headers,
        )

    headers["Content-Length"] = str(size)
    return StreamingResponse(
        _iter_slice(video.data, 0, size - 1),
        media_type=video.mime_type,
        headers=headers,
    )
