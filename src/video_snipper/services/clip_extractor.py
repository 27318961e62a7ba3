"""
Service for cutting the trailing clip out of a local source video.

ffmpeg runs as a child process that writes a fragmented MP4 to its stdout.
The caller gets a ``ClipExtraction`` handle: a lazy, finite, single-use
sequence of output chunks plus ``cancel()`` to stop the engine when the
client goes away.
"""

import asyncio
from collections import deque
from pathlib import Path
from typing import AsyncIterator, Deque, Dict, List, Optional

import ffmpeg

from video_snipper.config import ClipSettings
from video_snipper.exceptions import ProcessingException
from video_snipper.logging_config import get_logger
from video_snipper.models import ClipWindow

logger = get_logger(__name__)

STDERR_TAIL_LINES = 20


class ClipExtraction:
    """A running ffmpeg cut whose stdout is consumed chunk by chunk."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        command: List[str],
        chunk_size: int = 64 * 1024,
    ):
        self.process = process
        self.command = command
        self.chunk_size = chunk_size
        self.bytes_produced = 0
        self._pending: Optional[bytes] = None
        self._consumed = False
        self._cancelled = False
        self._stderr_tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._stderr_task = asyncio.create_task(self._drain_stderr())

    @property
    def running(self) -> bool:
        return self.process.returncode is None

    async def _drain_stderr(self) -> None:
        """Log ffmpeg's ``-progress`` blocks and keep the last error lines."""
        stream = self.process.stderr
        if stream is None:
            return
        progress: Dict[str, str] = {}
        while True:
            line = await stream.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").strip()
            if not text:
                continue
            key, sep, value = text.partition("=")
            if not sep or " " in key:
                self._stderr_tail.append(text)
                continue
            progress[key] = value
            if key == "progress":
                logger.debug(
                    "FFmpeg progress",
                    extra={
                        "out_time": progress.get("out_time"),
                        "speed": progress.get("speed"),
                        "total_size": progress.get("total_size"),
                        "state": value,
                    },
                )
                progress = {}

    async def _read(self) -> bytes:
        chunk = await self.process.stdout.read(self.chunk_size)
        self.bytes_produced += len(chunk)
        return chunk

    async def first_chunk(self) -> bytes:
        """
        Wait for the first output bytes.

        Raises ``ProcessingException`` if the engine exits without producing
        any output, so the caller can still answer with an error status.
        """
        if self._pending is None:
            chunk = await self._read()
            if not chunk:
                await self._finish()
                raise ProcessingException("Video processing produced no output")
            self._pending = chunk
        return self._pending

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield the clip bytes. The sequence can be consumed only once."""
        if self._consumed:
            raise RuntimeError("Clip output has already been consumed")
        self._consumed = True

        try:
            if self._pending is not None:
                chunk, self._pending = self._pending, None
                yield chunk
            while True:
                chunk = await self._read()
                if not chunk:
                    break
                yield chunk
            await self._finish()
        finally:
            if self.running:
                await self.cancel()

    async def _finish(self) -> None:
        return_code = await self.process.wait()
        await self._stderr_task
        if return_code != 0:
            logger.error(
                "FFmpeg error",
                extra={"return_code": return_code, "stderr_tail": list(self._stderr_tail)},
            )
            raise ProcessingException(return_code=return_code)
        logger.info(
            "Video processing completed successfully",
            extra={"bytes": self.bytes_produced},
        )

    async def cancel(self) -> None:
        """Terminate the engine if it is still running."""
        if self.running:
            self._cancelled = True
            try:
                self.process.kill()
            except ProcessLookupError:
                pass
            await self.process.wait()
            logger.info("FFmpeg process terminated", extra={"bytes": self.bytes_produced})
        if not self._stderr_task.done():
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ClipExtractor:
    """Starts ffmpeg cuts of a ``ClipWindow`` out of a local file."""

    def __init__(self, clip_settings: Optional[ClipSettings] = None):
        self.settings = clip_settings or ClipSettings()

    def build_command(self, source_path: Path, window: ClipWindow) -> List[str]:
        # Input-side -ss seeks before decoding; copy mode keeps the codecs.
        stream = ffmpeg.input(str(source_path), ss=window.start)
        stream = ffmpeg.output(
            stream,
            "pipe:1",
            t=window.duration,
            c="copy",
            avoid_negative_ts="make_zero",
            f=self.settings.output_format,
            movflags=self.settings.movflags,
        )
        # Global options go before the inputs; ffmpeg ignores trailing ones.
        cmd = [
            self.settings.ffmpeg_binary,
            "-hide_banner", "-nostdin", "-nostats",
            "-loglevel", "error",
            "-progress", "pipe:2",
        ]
        return ffmpeg.compile(stream, cmd=cmd)

    async def source_duration(self, source_path: Path) -> Optional[float]:
        """
        Read the container duration with ffprobe.

        Returns None when ffprobe is unavailable or reports no duration.
        Raises ``ProcessingException`` when ffprobe cannot read the file.
        """
        try:
            info = await asyncio.to_thread(
                ffmpeg.probe, str(source_path), cmd=self.settings.ffprobe_binary
            )
        except ffmpeg.Error as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip().splitlines()
            logger.error("FFprobe error", extra={"stderr_tail": stderr[-STDERR_TAIL_LINES:]})
            raise ProcessingException("Video processing failed")
        except OSError as e:
            logger.warning(
                "Could not start ffprobe, skipping duration check",
                extra={"binary": self.settings.ffprobe_binary, "exception_message": str(e)},
            )
            return None

        try:
            return float(info["format"]["duration"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Source duration unknown, skipping duration check")
            return None

    async def check_window(self, source_path: Path, window: ClipWindow) -> None:
        """Reject a window that starts at or after the end of the source."""
        if not self.settings.check_source_duration:
            return
        duration = await self.source_duration(source_path)
        if duration is None:
            return
        if window.start >= duration:
            logger.warning(
                "Clip window starts past the end of the source",
                extra={"start_time": window.start, "source_duration": duration},
            )
            raise ProcessingException("Timestamp is beyond the end of the video")

    async def start(self, source_path: Path, window: ClipWindow) -> ClipExtraction:
        command = self.build_command(source_path, window)
        logger.info(
            "Starting FFmpeg processing",
            extra={
                "start_time": window.start,
                "duration": window.duration,
                "output_format": self.settings.output_format,
            },
        )
        logger.debug("FFmpeg command", extra={"command": " ".join(command)})

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(
                "Could not start media engine",
                extra={"binary": self.settings.ffmpeg_binary, "exception_message": str(e)},
            )
            raise ProcessingException("Video processing engine is unavailable")

        return ClipExtraction(process, command, chunk_size=self.settings.stream_chunk_size)

    def response_headers(self, filename: str) -> Dict[str, str]:
        """Headers for a streamed clip download."""
        return {
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
            "Expires": "0",
        }
