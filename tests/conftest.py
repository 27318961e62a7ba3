import asyncio
import os
from typing import Callable, Iterable, Optional

import pytest
from fastapi.testclient import TestClient

# Set test environment before the settings module is imported
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("LOGGING__LEVEL", "WARNING")

from video_snipper.config import (  # noqa: E402
    ClipSettings,
    FetchSettings,
    Settings,
    UploadSettings,
    WorkspaceSettings,
)
from video_snipper.services.clip_pipeline import ClipPipeline  # noqa: E402
from video_snipper.services.session_store import SessionVideoStore  # noqa: E402


class FakeProcess:
    """
    Stand-in for ``asyncio.subprocess.Process``.

    Output is fed up front. A process created with ``hang=True`` keeps its
    pipes open until it is killed, like an ffmpeg cut still in progress.
    """

    def __init__(
        self,
        stdout_chunks: Iterable[bytes] = (),
        stderr_lines: Iterable[bytes] = (),
        returncode: int = 0,
        hang: bool = False,
    ):
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        for chunk in stdout_chunks:
            self.stdout.feed_data(chunk)
        for line in stderr_lines:
            self.stderr.feed_data(line)
        self.returncode: Optional[int] = None
        self.killed = False
        self._exit_code = returncode
        self._exited = asyncio.Event()
        if not hang:
            self._close_pipes()
            self._exited.set()

    def _close_pipes(self) -> None:
        self.stdout.feed_eof()
        self.stderr.feed_eof()

    async def wait(self) -> int:
        await self._exited.wait()
        if self.returncode is None:
            self.returncode = self._exit_code
        return self.returncode

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9
        self._close_pipes()
        self._exited.set()


@pytest.fixture
def fake_process() -> Callable[..., FakeProcess]:
    """Factory for fake ffmpeg processes; call it inside a running event loop."""
    return FakeProcess


@pytest.fixture
def patch_ffmpeg(mocker):
    """
    Replace ``asyncio.create_subprocess_exec`` with a fake engine.

    Returns a function taking the ``FakeProcess`` keyword arguments. The
    created processes are collected on ``mock.processes``.
    """
    def install(**process_kwargs):
        processes = []

        async def spawn(*args, **kwargs):
            process = FakeProcess(**process_kwargs)
            processes.append(process)
            return process

        mock = mocker.patch("asyncio.create_subprocess_exec", side_effect=spawn)
        mock.processes = processes
        return mock

    return install


@pytest.fixture
def workspace_root(tmp_path):
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def test_settings(workspace_root) -> Settings:
    """Settings pointing every scratch directory at a per-test temp dir."""
    return Settings(
        ENVIRONMENT="test",
        upload=UploadSettings(max_bytes=64 * 1024, read_chunk_size=4096),
        fetch=FetchSettings(
            total_timeout_seconds=5.0,
            attempt_timeout_seconds=2.0,
            max_bytes=64 * 1024,
            chunk_size=1024,
        ),
        clip=ClipSettings(ffmpeg_binary="ffmpeg", stream_chunk_size=4, check_source_duration=False),
        workspace=WorkspaceSettings(root=str(workspace_root), sweep_on_startup=False),
    )


@pytest.fixture
def store() -> SessionVideoStore:
    return SessionVideoStore()


@pytest.fixture
def pipeline(test_settings, store) -> ClipPipeline:
    return ClipPipeline(settings=test_settings, store=store)


@pytest.fixture
def client(pipeline) -> TestClient:
    """TestClient wired to a pipeline that writes into the per-test temp dir."""
    from video_snipper.dependencies import get_clip_pipeline
    from video_snipper.main import app

    app.dependency_overrides[get_clip_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()
