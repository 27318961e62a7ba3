"""Unit tests for materializing stored and remote source videos."""

import asyncio

import httpx
import pytest

from video_snipper.config import FetchSettings
from video_snipper.exceptions import (
    FetchSizeExceededException,
    FetchTimeoutException,
    RemoteVideoNotFoundException,
    UpstreamException,
    VideoNotFoundException,
)
from video_snipper.models import ClipRequest, RemoteSource, StoredSource
from video_snipper.services.source_resolver import (
    HTML_INSTEAD_OF_VIDEO_MESSAGE,
    RemoteVideoFetcher,
    SourceResolver,
)
from video_snipper.services.workspace import TransientWorkspace

VIDEO = b"\x00\x00\x00\x18ftypmp42" + b"\x02" * 4000
DRIVE_URL = "https://drive.google.com/file/d/FILE123/view?usp=sharing"


def video_response(content: bytes = VIDEO) -> httpx.Response:
    return httpx.Response(200, headers={"content-type": "video/mp4"}, content=content)


def html_response(body: str) -> httpx.Response:
    return httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, text=body)


def make_fetcher(handler, **overrides) -> RemoteVideoFetcher:
    settings = FetchSettings(
        total_timeout_seconds=overrides.pop("total_timeout_seconds", 5.0),
        attempt_timeout_seconds=2.0,
        max_bytes=overrides.pop("max_bytes", 64 * 1024),
        chunk_size=512,
        **overrides,
    )
    return RemoteVideoFetcher(settings, transport=httpx.MockTransport(handler))


@pytest.fixture
def destination(tmp_path):
    return tmp_path / "input.mp4"


class TestRemoteVideoFetcher:
    """Test remote downloads against a mocked transport."""

    @pytest.mark.asyncio
    async def test_direct_download(self, destination):
        requests = []

        def handler(request):
            requests.append(request)
            return video_response()

        written = await make_fetcher(handler).fetch("https://cdn.example.com/v.mp4", destination)

        assert written == len(VIDEO)
        assert destination.read_bytes() == VIDEO
        assert len(requests) == 1
        assert "Mozilla" in requests[0].headers["user-agent"]

    @pytest.mark.asyncio
    async def test_follows_redirects(self, destination):
        def handler(request):
            if request.url.path == "/short":
                return httpx.Response(302, headers={"location": "https://cdn.example.com/real.mp4"})
            return video_response()

        await make_fetcher(handler).fetch("https://example.com/short", destination)

        assert destination.read_bytes() == VIDEO

    @pytest.mark.asyncio
    async def test_client_error_is_not_found(self, destination):
        fetcher = make_fetcher(lambda request: httpx.Response(404))

        with pytest.raises(RemoteVideoNotFoundException) as exc_info:
            await fetcher.fetch("https://cdn.example.com/missing.mp4", destination)

        assert exc_info.value.details["status_code"] == 404

    @pytest.mark.asyncio
    async def test_server_error_is_upstream(self, destination):
        fetcher = make_fetcher(lambda request: httpx.Response(503))

        with pytest.raises(UpstreamException) as exc_info:
            await fetcher.fetch("https://cdn.example.com/v.mp4", destination)

        assert exc_info.value.details["status_code"] == 503

    @pytest.mark.asyncio
    async def test_network_error_is_upstream(self, destination):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamException):
            await make_fetcher(handler).fetch("https://cdn.example.com/v.mp4", destination)

    @pytest.mark.asyncio
    async def test_read_timeout(self, destination):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(FetchTimeoutException):
            await make_fetcher(handler).fetch("https://cdn.example.com/v.mp4", destination)

    @pytest.mark.asyncio
    async def test_total_timeout(self, destination):
        """Test that the whole download is bounded in time."""
        async def handler(request):
            await asyncio.sleep(5)
            return video_response()

        fetcher = make_fetcher(handler, total_timeout_seconds=0.05)

        with pytest.raises(FetchTimeoutException) as exc_info:
            await fetcher.fetch("https://cdn.example.com/slow.mp4", destination)

        assert exc_info.value.details["timeout_seconds"] == 0.05

    @pytest.mark.asyncio
    async def test_declared_size_over_limit(self, destination):
        fetcher = make_fetcher(lambda request: video_response(b"x" * 2048), max_bytes=1024)

        with pytest.raises(FetchSizeExceededException) as exc_info:
            await fetcher.fetch("https://cdn.example.com/big.mp4", destination)

        assert exc_info.value.details == {"max_bytes": 1024, "received_bytes": 2048}

    @pytest.mark.asyncio
    async def test_streamed_size_over_limit(self, destination):
        """Test the byte ceiling when no Content-Length is sent."""
        async def body():
            for _ in range(8):
                yield b"y" * 256

        def handler(request):
            return httpx.Response(200, headers={"content-type": "video/mp4"}, content=body())

        fetcher = make_fetcher(handler, max_bytes=1024)

        with pytest.raises(FetchSizeExceededException):
            await fetcher.fetch("https://cdn.example.com/chunked.mp4", destination)

    @pytest.mark.asyncio
    async def test_drive_direct_candidate(self, destination):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return video_response()

        await make_fetcher(handler).fetch(DRIVE_URL, destination)

        assert destination.read_bytes() == VIDEO
        assert seen[0].startswith("https://drive.google.com/uc?export=download&id=FILE123")

    @pytest.mark.asyncio
    async def test_drive_interstitial_form(self, destination):
        """Test that the download form of a warning page is followed."""
        page = (
            '<html><form id="download-form" action="https://drive.usercontent.google.com/download">'
            '<input type="hidden" name="confirm" value="abc123"></form></html>'
        )
        posted = []

        def handler(request):
            if request.url.host == "drive.usercontent.google.com":
                posted.append(request)
                return video_response()
            return html_response(page)

        await make_fetcher(handler).fetch(DRIVE_URL, destination)

        assert destination.read_bytes() == VIDEO
        assert posted[0].method == "POST"
        assert posted[0].content == b"confirm=abc123"
        assert posted[0].headers["referer"].startswith("https://drive.google.com/uc")

    @pytest.mark.asyncio
    async def test_drive_relative_link(self, destination):
        page = '<a href="/uc?export=download&amp;id=FILE123&amp;at=zz">Download anyway</a>'

        def handler(request):
            if request.url.params.get("at") == "zz":
                return video_response()
            return html_response(page)

        await make_fetcher(handler).fetch(DRIVE_URL, destination)

        assert destination.read_bytes() == VIDEO

    @pytest.mark.asyncio
    async def test_drive_falls_through_failing_candidates(self, destination):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(500)
            return video_response()

        await make_fetcher(handler).fetch(DRIVE_URL, destination)

        assert len(calls) == 2
        assert destination.read_bytes() == VIDEO

    @pytest.mark.asyncio
    async def test_drive_only_html(self, destination):
        """Test that a page that is never a video ends as not found."""
        fetcher = make_fetcher(lambda request: html_response("<html>Sign in</html>"))

        with pytest.raises(RemoteVideoNotFoundException) as exc_info:
            await fetcher.fetch(DRIVE_URL, destination)

        assert exc_info.value.message == HTML_INSTEAD_OF_VIDEO_MESSAGE

    @pytest.mark.asyncio
    async def test_drive_all_candidates_fail(self, destination):
        fetcher = make_fetcher(lambda request: httpx.Response(403))

        with pytest.raises(RemoteVideoNotFoundException) as exc_info:
            await fetcher.fetch(DRIVE_URL, destination)

        assert exc_info.value.details["status_code"] == 403


class TestSourceResolver:

    @pytest.fixture
    def workspace(self, workspace_root):
        workspace = TransientWorkspace.create(workspace_root)
        yield workspace
        workspace.release()

    @pytest.mark.asyncio
    async def test_stored_source_is_written_to_workspace(self, store, workspace):
        video_id = store.put("session-a", VIDEO, "video/mp4", "a.mp4")
        resolver = SourceResolver(store, make_fetcher(lambda request: httpx.Response(500)))

        path = await resolver.resolve(ClipRequest(StoredSource(video_id), 90), workspace)

        assert path == workspace.input_path
        assert path.read_bytes() == VIDEO

    @pytest.mark.asyncio
    async def test_unknown_stored_source(self, store, workspace):
        resolver = SourceResolver(store)

        with pytest.raises(VideoNotFoundException):
            await resolver.resolve(ClipRequest(StoredSource("missing"), 90), workspace)

        assert not workspace.input_path.exists()

    @pytest.mark.asyncio
    async def test_remote_source(self, store, workspace):
        resolver = SourceResolver(store, make_fetcher(lambda request: video_response()))

        path = await resolver.resolve(ClipRequest(RemoteSource("https://cdn.example.com/v.mp4"), 90), workspace)

        assert path.read_bytes() == VIDEO

    @pytest.mark.asyncio
    async def test_registered_handler(self, store, workspace):
        """Test that new source kinds plug in without touching the resolver."""
        class LocalSource:
            pass

        async def handler(source, ws):
            ws.input_path.write_bytes(b"local")
            return ws.input_path

        resolver = SourceResolver(store)
        resolver.register(LocalSource, handler)

        path = await resolver.resolve(ClipRequest(LocalSource(), 90), workspace)

        assert path.read_bytes() == b"local"
