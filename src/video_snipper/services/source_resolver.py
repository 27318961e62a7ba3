"""
Materializes the source video of a clip request as a local file.

Stored uploads are copied out of the session store; remote links are
streamed to disk with ``httpx``. Either way the result is a path inside the
request's workspace, so the extractor never needs to know where the video
came from and fetch failures short-circuit before any ffmpeg work starts.
"""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Sequence
from urllib.parse import urljoin

import httpx

from video_snipper.config import FetchSettings
from video_snipper.exceptions import (
    FetchSizeExceededException,
    FetchTimeoutException,
    RemoteVideoNotFoundException,
    SnipperException,
    UpstreamException,
)
from video_snipper.logging_config import get_logger
from video_snipper.models import ClipRequest, RemoteSource, StoredSource
from video_snipper.services.link_strategies import (
    DEFAULT_STRATEGIES,
    DownloadLink,
    LinkStrategy,
    select_strategy,
)
from video_snipper.services.session_store import SessionVideoStore
from video_snipper.services.workspace import TransientWorkspace

logger = get_logger(__name__)

HTML_INSTEAD_OF_VIDEO_MESSAGE = (
    "Remote host returned a web page instead of a video. "
    "Make sure the file is shared publicly (\"Anyone with the link\")."
)


def _is_html(response: httpx.Response) -> bool:
    return "text/html" in response.headers.get("content-type", "").lower()


class RemoteVideoFetcher:
    """
    Streams a remote video into a local file.

    Redirects are followed, the whole download is bounded by
    ``total_timeout_seconds`` and by ``max_bytes``. Remote 4xx answers raise
    ``RemoteVideoNotFoundException``; 5xx answers and network failures raise
    ``UpstreamException``; exceeded bounds raise a ``FetchLimitException``.
    """

    def __init__(
        self,
        fetch_settings: Optional[FetchSettings] = None,
        strategies: Sequence[LinkStrategy] = DEFAULT_STRATEGIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = fetch_settings or FetchSettings()
        self.strategies = strategies
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=True,
            max_redirects=self.settings.max_redirects,
            timeout=httpx.Timeout(
                self.settings.read_timeout_seconds,
                connect=self.settings.connect_timeout_seconds,
            ),
            headers={
                "User-Agent": self.settings.user_agent,
                "Accept": "video/mp4,video/*,*/*;q=0.9",
            },
        )

    async def fetch(self, url: str, destination: Path) -> int:
        """Download ``url`` into ``destination``. Returns the number of bytes written."""
        try:
            return await asyncio.wait_for(
                self._fetch(url, destination),
                timeout=self.settings.total_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Remote fetch timed out",
                extra={"timeout_seconds": self.settings.total_timeout_seconds},
            )
            raise FetchTimeoutException(self.settings.total_timeout_seconds)

    async def _fetch(self, url: str, destination: Path) -> int:
        strategy = select_strategy(url, self.strategies)
        candidates = strategy.candidate_urls(url)
        logger.info(
            "Fetching remote video",
            extra={"strategy": strategy.name, "candidates": len(candidates)},
        )

        async with self._client() as client:
            if not strategy.inspects_html:
                return await self._download(client, client.build_request("GET", candidates[0]), destination)

            last_error: Optional[SnipperException] = None
            for candidate in candidates:
                try:
                    written = await self._attempt(client, strategy, candidate, destination)
                except FetchSizeExceededException:
                    raise
                except (RemoteVideoNotFoundException, UpstreamException, FetchTimeoutException) as e:
                    logger.info("Candidate URL failed", extra={"error_code": e.error_code.value})
                    last_error = e
                    continue
                if written is not None:
                    return written
                logger.info("Skipping HTML response", extra={"strategy": strategy.name})

            if last_error is not None:
                raise last_error
            raise RemoteVideoNotFoundException(
                status_code=200,
                message=HTML_INSTEAD_OF_VIDEO_MESSAGE,
            )

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        strategy: LinkStrategy,
        url: str,
        destination: Path,
    ) -> Optional[int]:
        """Try one candidate URL. Returns None when only an HTML page came back."""
        response = await self._open(client, client.build_request("GET", url))
        try:
            if not _is_html(response):
                return await self._stream_to_file(response, destination)
            page = await self._read_page(response)
        finally:
            await response.aclose()

        link = strategy.extract_download_link(page)
        if link is None:
            return None

        logger.info("Found download link in HTML", extra={"with_confirm": link.confirm is not None})
        response = await self._open(client, self._link_request(client, link, referer=url))
        try:
            if _is_html(response):
                return None
            return await self._stream_to_file(response, destination)
        finally:
            await response.aclose()

    def _link_request(self, client: httpx.AsyncClient, link: DownloadLink, referer: str) -> httpx.Request:
        headers = {"Referer": referer}
        url = urljoin(referer, link.url)
        if link.confirm:
            return client.build_request("POST", url, data={"confirm": link.confirm}, headers=headers)
        return client.build_request("GET", url, headers=headers)

    async def _download(self, client: httpx.AsyncClient, request: httpx.Request, destination: Path) -> int:
        response = await self._open(client, request)
        try:
            return await self._stream_to_file(response, destination)
        finally:
            await response.aclose()

    async def _open(self, client: httpx.AsyncClient, request: httpx.Request) -> httpx.Response:
        """Send ``request`` and map transport failures and error statuses."""
        try:
            response = await asyncio.wait_for(
                client.send(request, stream=True),
                timeout=self.settings.attempt_timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise FetchTimeoutException(self.settings.attempt_timeout_seconds)
        except httpx.TimeoutException:
            raise FetchTimeoutException(self.settings.read_timeout_seconds)
        except httpx.HTTPError as e:
            raise UpstreamException(
                f"Failed to download video: {type(e).__name__}",
                details={"error_type": type(e).__name__},
            )

        if response.status_code >= 400:
            await response.aclose()
            logger.warning(
                "Remote source answered with an error status",
                extra={"status_code": response.status_code},
            )
            if response.status_code >= 500:
                raise UpstreamException(
                    f"Failed to download video: {response.status_code} {response.reason_phrase}",
                    status_code=response.status_code,
                )
            raise RemoteVideoNotFoundException(response.status_code)

        return response

    async def _read_page(self, response: httpx.Response) -> str:
        body = bytearray()
        try:
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) >= self.settings.html_scan_limit:
                    break
        except httpx.HTTPError as e:
            raise UpstreamException(
                f"Failed to read remote page: {type(e).__name__}",
                details={"error_type": type(e).__name__},
            )
        return body.decode(response.encoding or "utf-8", errors="replace")

    async def _stream_to_file(self, response: httpx.Response, destination: Path) -> int:
        max_bytes = self.settings.max_bytes
        declared = response.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > max_bytes:
            raise FetchSizeExceededException(max_bytes, int(declared))

        received = 0
        try:
            with open(destination, "wb") as fh:
                async for chunk in response.aiter_bytes(self.settings.chunk_size):
                    received += len(chunk)
                    if received > max_bytes:
                        raise FetchSizeExceededException(max_bytes, received)
                    await asyncio.to_thread(fh.write, chunk)
        except httpx.TimeoutException:
            raise FetchTimeoutException(self.settings.read_timeout_seconds)
        except httpx.HTTPError as e:
            raise UpstreamException(
                f"Remote transfer interrupted: {type(e).__name__}",
                details={"error_type": type(e).__name__, "received_bytes": received},
            )

        logger.info("Video downloaded successfully", extra={"bytes": received})
        return received


SourceHandler = Callable[[object, TransientWorkspace], Awaitable[Path]]


class SourceResolver:
    """
    Produces a local copy of a request's source video inside its workspace.

    Handlers are registered per source type, so a new kind of source only
    needs a new handler.
    """

    def __init__(self, store: SessionVideoStore, fetcher: Optional[RemoteVideoFetcher] = None):
        self.store = store
        self.fetcher = fetcher or RemoteVideoFetcher()
        self._handlers: Dict[type, SourceHandler] = {
            StoredSource: self._resolve_stored,
            RemoteSource: self._resolve_remote,
        }

    def register(self, source_type: type, handler: SourceHandler) -> None:
        self._handlers[source_type] = handler

    async def resolve(self, request: ClipRequest, workspace: TransientWorkspace) -> Path:
        handler = self._handlers.get(type(request.source))
        if handler is None:
            raise TypeError(f"No resolver registered for {type(request.source).__name__}")
        return await handler(request.source, workspace)

    async def _resolve_stored(self, source: StoredSource, workspace: TransientWorkspace) -> Path:
        video = self.store.get(source.video_id)
        logger.info(
            "Processing uploaded video",
            extra={"video_id": video.video_id, "size": video.size},
        )
        await asyncio.to_thread(workspace.input_path.write_bytes, video.data)
        return workspace.input_path

    async def _resolve_remote(self, source: RemoteSource, workspace: TransientWorkspace) -> Path:
        await self.fetcher.fetch(source.url, workspace.input_path)
        return workspace.input_path
