"""
Orchestrates the clip pipeline: ingest uploads, extract clips, release sessions.

``extract`` creates a workspace, materializes the source, starts ffmpeg and
waits for its first output bytes before handing back a ``ClipStream``. Any
failure up to that point removes the workspace and propagates, so the
transport can still send a clean error response. Once the stream has been
handed out, the workspace is released when the stream is exhausted, closed
or abandoned.
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional

from video_snipper.config import Settings, settings as default_settings
from video_snipper.exceptions import PayloadTooLargeException, UnsupportedMediaTypeException
from video_snipper.logging_config import get_logger
from video_snipper.models import ClipRequest, RemoteSource
from video_snipper.services.clip_extractor import ClipExtraction, ClipExtractor
from video_snipper.services.session_store import SessionVideoStore
from video_snipper.services.source_resolver import RemoteVideoFetcher, SourceResolver
from video_snipper.services.workspace import TransientWorkspace, sweep_orphaned_workspaces
from video_snipper.utils import ErrorContext

logger = get_logger(__name__)


@dataclass(frozen=True)
class IngestResult:
    video_id: str
    session_id: str
    original_name: str
    size: int


class ClipStream:
    """A clip being produced, with the metadata needed to serve it."""

    def __init__(
        self,
        extraction: ClipExtraction,
        workspace: TransientWorkspace,
        content_type: str,
        filename: str,
        headers: Dict[str, str],
    ):
        self.extraction = extraction
        self.workspace = workspace
        self.content_type = content_type
        self.filename = filename
        self.headers = headers

    async def body(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.extraction.chunks():
                yield chunk
        finally:
            await self.close()

    async def close(self) -> None:
        """Stop the engine and remove the workspace. Safe to call repeatedly."""
        try:
            await self.extraction.cancel()
        finally:
            if not self.workspace.released:
                await asyncio.to_thread(self.workspace.release)


class ClipPipeline:
    """The ``ingest`` / ``extract`` / ``release_session`` boundary of the service."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[SessionVideoStore] = None,
        resolver: Optional[SourceResolver] = None,
        extractor: Optional[ClipExtractor] = None,
    ):
        self.settings = settings or default_settings
        self.store = store if store is not None else SessionVideoStore()
        self.resolver = resolver or SourceResolver(self.store, RemoteVideoFetcher(self.settings.fetch))
        self.extractor = extractor or ClipExtractor(self.settings.clip)

    # --- ingest ---

    def check_media_type(self, mime_type: Optional[str]) -> None:
        if not mime_type or not mime_type.lower().startswith(self.settings.upload.allowed_mime_prefix):
            raise UnsupportedMediaTypeException(mime_type)

    def check_size(self, size: int) -> None:
        if size > self.settings.upload.max_bytes:
            raise PayloadTooLargeException(self.settings.upload.max_bytes)

    def ingest(
        self,
        session_id: Optional[str],
        data: bytes,
        mime_type: str,
        original_name: str,
    ) -> IngestResult:
        """Keep an uploaded video for the session, replacing its previous upload."""
        self.check_media_type(mime_type)
        self.check_size(len(data))

        session_id = session_id or str(uuid.uuid4())
        video_id = self.store.put(session_id, data, mime_type, original_name)
        logger.info(
            "Video uploaded",
            extra={
                "video_id": video_id,
                "session_id": session_id,
                "original_name": original_name,
                "size": len(data),
                "mime_type": mime_type,
            },
        )
        return IngestResult(
            video_id=video_id,
            session_id=session_id,
            original_name=original_name,
            size=len(data),
        )

    # --- extract ---

    async def extract(self, request: ClipRequest) -> ClipStream:
        """
        Produce the clip for a validated request.

        Raises:
            VideoNotFoundException: unknown stored video.
            RemoteVideoNotFoundException: remote 4xx.
            UpstreamException: remote 5xx or network failure.
            FetchLimitException: remote fetch exceeded its time or size bound.
            ProcessingException: the window starts past the end of the source,
                or ffmpeg failed before producing output.
        """
        source = request.source
        context = {
            "timestamp": request.timestamp,
            "source": "remote" if isinstance(source, RemoteSource) else "upload",
        }
        workspace = TransientWorkspace.create(
            self.settings.workspace.root,
            prefix=self.settings.workspace.prefix,
            input_filename=self.settings.workspace.input_filename,
        )
        try:
            with ErrorContext("clip_extraction", log_exit=False, workspace=workspace.path.name, **context):
                source_path = await self.resolver.resolve(request, workspace)
                await self.extractor.check_window(source_path, request.window)
                extraction = await self.extractor.start(source_path, request.window)
                try:
                    await extraction.first_chunk()
                except BaseException:
                    await extraction.cancel()
                    raise
        except BaseException:
            await asyncio.to_thread(workspace.release)
            raise

        return ClipStream(
            extraction=extraction,
            workspace=workspace,
            content_type=self.settings.clip.content_type,
            filename=request.suggested_filename,
            headers=self.extractor.response_headers(request.suggested_filename),
        )

    # --- sessions and housekeeping ---

    def release_session(self, session_id: str) -> int:
        removed = self.store.delete_by_session(session_id)
        logger.info(
            f"Cleaned up {removed} videos for session",
            extra={"session_id": session_id, "removed": removed},
        )
        return removed

    def sweep_workspaces(self) -> int:
        return sweep_orphaned_workspaces(
            self.settings.workspace.root,
            prefix=self.settings.workspace.prefix,
        )

    def shutdown(self) -> None:
        """Remove leftover workspaces and drop every stored upload."""
        swept = self.sweep_workspaces()
        cleared = self.store.clear()
        logger.info(
            "Cleared session videos",
            extra={"workspaces_removed": swept, "videos_cleared": cleared},
        )
