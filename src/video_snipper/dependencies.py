from functools import lru_cache

from video_snipper.config import Settings, settings
from video_snipper.services.clip_pipeline import ClipPipeline


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Returns a cached instance of the application settings.
    """
    return settings


@lru_cache(maxsize=1)
def get_clip_pipeline() -> ClipPipeline:
    """
    Returns the process-wide clip pipeline.

    The pipeline owns the session video store, so every request must share
    the same instance.
    """
    return ClipPipeline(settings=get_settings())
