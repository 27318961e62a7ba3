from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from video_snipper.dependencies import get_clip_pipeline
from video_snipper.schemas.api import SnipRequest
from video_snipper.services.clip_pipeline import ClipPipeline
from video_snipper.services.request_validator import validate_clip_request

router = APIRouter()


@router.post(
    "/snip",
    summary="Stream the clip that ends at the marked timestamp",
    response_class=StreamingResponse,
)
async def snip_video(
    request: SnipRequest,
    pipeline: ClipPipeline = Depends(get_clip_pipeline),
) -> StreamingResponse:
    """
    Cuts ``[timestamp - duration, timestamp)`` out of the source video and streams
    it back as a fragmented MP4 attachment.

    Errors raised before the first clip byte is available become regular
    JSON error responses. An engine failure after that point can only abort
    the stream.
    """
    clip_request = validate_clip_request(
        video_url=request.video_url,
        video_id=request.video_id,
        timestamp=request.timestamp,
        clip_duration=pipeline.settings.clip.duration_seconds,
    )
    clip = await pipeline.extract(clip_request)

    return StreamingResponse(
        clip.body(),
        media_type=clip.content_type,
        headers=clip.headers,
        background=BackgroundTask(clip.close),
    )
