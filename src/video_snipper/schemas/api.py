from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SnipRequest(BaseModel):
    """
    Request body for clip extraction.

    Exactly one of ``video_url`` and ``video_id`` must be given. Presence and
    range checks happen in the request validator so that they produce the
    same error envelope as every other pipeline failure.
    """
    video_url: Optional[str] = Field(None, description="Remote location of the source video.")
    video_id: Optional[str] = Field(None, description="Identifier of a previously uploaded video.")
    timestamp: Optional[float] = Field(
        None, description="Marked moment in seconds; the clip ends here."
    )


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class UploadResponse(_CamelModel):
    success: bool = True
    video_id: str = Field(..., alias="videoId")
    session_id: str = Field(..., alias="sessionId")
    original_name: str = Field(..., alias="originalName")
    size: int
    message: str = "Video uploaded successfully"


class CleanupResponse(_CamelModel):
    success: bool = True
    cleaned_count: int = Field(..., alias="cleanedCount")


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str
    stored_videos: int
