from fastapi import APIRouter, Depends

from video_snipper.dependencies import get_clip_pipeline
from video_snipper.schemas.api import CleanupResponse
from video_snipper.services.clip_pipeline import ClipPipeline

router = APIRouter()


@router.delete(
    "/cleanup-session/{session_id}",
    response_model=CleanupResponse,
    summary="Drop every uploaded video of a session",
)
def cleanup_session(
    session_id: str,
    pipeline: ClipPipeline = Depends(get_clip_pipeline),
) -> CleanupResponse:
    """Idempotent: cleaning up an unknown or already clean session returns 0."""
    removed = pipeline.release_session(session_id)
    return CleanupResponse(cleaned_count=removed)
