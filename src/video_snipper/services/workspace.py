"""
Per-request scratch directories and their cleanup.

Each snip request materializes its source video inside a uniquely named
directory under the temp root. The directory is released exactly once when
the response finishes, the client disconnects or processing fails, and any
directory left behind by an ungraceful exit is swept by name prefix on
start-up and shutdown. Names carry the pid of the owning process, so a
sweep in one worker leaves the live workspaces of its siblings alone.
"""

import os
import shutil
import threading
import uuid
from pathlib import Path
from typing import Optional, Union

from video_snipper.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_PREFIX = "video-labeling-"


class TransientWorkspace:
    """A scratch directory owned by exactly one in-flight request."""

    def __init__(self, path: Path, input_filename: str = "input.mp4"):
        self.path = path
        self.input_path = path / input_filename
        self._released = False
        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        root: Union[str, Path],
        prefix: str = DEFAULT_PREFIX,
        input_filename: str = "input.mp4",
    ) -> "TransientWorkspace":
        path = Path(root) / f"{prefix}{os.getpid()}-{uuid.uuid4()}"
        path.mkdir(parents=True, exist_ok=False)
        logger.debug("Created workspace", extra={"workspace": path.name})
        return cls(path, input_filename=input_filename)

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """
        Remove the directory and its contents.

        Only the first call does any work; later calls return False. Removal
        failures are logged, never raised.
        """
        with self._lock:
            if self._released:
                return False
            self._released = True

        try:
            shutil.rmtree(self.path)
            logger.info("Cleaned up temp directory", extra={"workspace": self.path.name})
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(
                "Error cleaning up temp directory",
                extra={"workspace": self.path.name, "exception_message": str(e)},
            )
        return True

    def __enter__(self) -> "TransientWorkspace":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.release()
        return False


def owner_pid(name: str, prefix: str = DEFAULT_PREFIX) -> Optional[int]:
    """Pid encoded in a workspace name, or None for names without one."""
    owner, sep, _ = name[len(prefix):].partition("-")
    if sep and owner.isdigit() and int(owner) > 0:
        return int(owner)
    return None


def _process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by another user
        return True
    return True


def sweep_orphaned_workspaces(root: Union[str, Path], prefix: str = DEFAULT_PREFIX) -> int:
    """
    Remove workspace directories left behind under ``root``.

    Entries owned by another live process are kept; entries of this process
    and of dead ones are removed. Returns the number of entries removed.
    Best effort: entries that cannot be removed are logged and skipped.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        return 0

    removed = 0
    for entry in root_path.iterdir():
        if not entry.name.startswith(prefix):
            continue
        pid = owner_pid(entry.name, prefix)
        if pid is not None and pid != os.getpid() and _process_alive(pid):
            logger.debug("Skipping workspace of live process", extra={"workspace": entry.name, "pid": pid})
            continue
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
            logger.info("Removed temp file", extra={"workspace": entry.name})
        except OSError as e:
            logger.error(
                "Error during cleanup",
                extra={"workspace": entry.name, "exception_message": str(e)},
            )
    return removed
