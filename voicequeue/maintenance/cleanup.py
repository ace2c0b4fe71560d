"""
Stale Artifact Cleanup

Deletes old audio artifacts in batches with bounded concurrency. Runs on its
own thread pool and never uses the job queue's lane.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from voicequeue.transcription.config import CleanupConfig


logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = frozenset({".wav", ".mp3", ".m4a", ".flac", ".ogg", ".aac", ".webm", ".mp4"})

SECONDS_PER_DAY = 24 * 60 * 60


class AdmissionGate:
    """Counting gate capping how many file operations run at once.

    Records the highest number of holders seen so callers can verify the cap.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._semaphore = threading.BoundedSemaphore(capacity)
        self._lock = threading.Lock()
        self._active = 0
        self._peak = 0

    @property
    def peak(self) -> int:
        return self._peak

    def __enter__(self) -> "AdmissionGate":
        self._semaphore.acquire()
        with self._lock:
            self._active += 1
            self._peak = max(self._peak, self._active)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        with self._lock:
            self._active -= 1
        self._semaphore.release()


@dataclass
class CleanupResult:
    """Summary of a cleanup run."""
    deleted_count: int = 0
    deleted_bytes: int = 0
    errors: List[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def is_success(self) -> bool:
        return not self.errors

    @property
    def has_partial_success(self) -> bool:
        return self.deleted_count > 0 and bool(self.errors)


class ArtifactCleanupService:
    """
    Removes audio artifacts older than the retention period.

    Example:
        >>> service = ArtifactCleanupService(CleanupConfig(retention_days=7))
        >>> result = service.cleanup_directory("recordings/")
        >>> print(f"Deleted {result.deleted_count} files")
    """

    def __init__(
        self,
        config: Optional[CleanupConfig] = None,
        in_use: Optional[Callable[[Path], bool]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            config: Batch size, concurrency cap and retention
            in_use: Returns True for files that must not be deleted (e.g. the
                source of a pending or running job)
            clock: Wall clock used for the retention cutoff
        """
        self.config = config or CleanupConfig()
        self.in_use = in_use or (lambda path: False)
        self.clock = clock
        self.gate = AdmissionGate(self.config.max_concurrent_deletions)

    def find_stale(self, directory, retention_days: Optional[int] = None) -> List[Path]:
        """List audio files in ``directory`` older than the retention period."""
        days = self.config.retention_days if retention_days is None else retention_days
        cutoff = self.clock() - days * SECONDS_PER_DAY
        root = Path(directory)
        if not root.is_dir():
            raise FileNotFoundError(f"Directory not found: {directory}")

        stale = []
        for path in sorted(root.rglob("*")):
            if path.is_file() and path.suffix.lower() in AUDIO_EXTENSIONS:
                if path.stat().st_mtime < cutoff:
                    stale.append(path)
        return stale

    def cleanup_directory(self, directory, retention_days: Optional[int] = None,
                          dry_run: bool = False,
                          on_progress: Optional[Callable[[float], None]] = None) -> CleanupResult:
        paths = self.find_stale(directory, retention_days)
        logger.info(f"Found {len(paths)} stale artifact(s) in {directory}")
        return self.cleanup(paths, dry_run=dry_run, on_progress=on_progress)

    def cleanup(self, paths: Iterable[Path], dry_run: bool = False,
                on_progress: Optional[Callable[[float], None]] = None) -> CleanupResult:
        """Delete ``paths`` in batches with at most ``max_concurrent_deletions`` in flight.

        Args:
            paths: Files to delete
            dry_run: Report what would be deleted without deleting
            on_progress: Called with the completed fraction after each batch
        """
        started = time.monotonic()
        paths = [Path(p) for p in paths]
        result = CleanupResult()
        if not paths:
            return result

        batch_size = max(1, self.config.batch_size)
        batches = [paths[i:i + batch_size] for i in range(0, len(paths), batch_size)]
        done = 0

        with ThreadPoolExecutor(max_workers=batch_size, thread_name_prefix="voicequeue-cleanup") as pool:
            for index, batch in enumerate(batches, start=1):
                logger.debug(f"Processing batch {index} of {len(batches)} (size: {len(batch)})")
                for size, error in pool.map(lambda p: self._delete(p, dry_run), batch):
                    if error:
                        result.errors.append(error)
                    else:
                        result.deleted_count += 1
                        result.deleted_bytes += size
                done += len(batch)
                if on_progress is not None:
                    on_progress(done / len(paths))

        result.duration = time.monotonic() - started
        logger.info(
            f"Cleanup {'(dry run) ' if dry_run else ''}finished: "
            f"{result.deleted_count} file(s), {result.deleted_bytes} bytes, "
            f"{len(result.errors)} error(s) in {result.duration:.2f}s"
        )
        return result

    def _delete(self, path: Path, dry_run: bool) -> Tuple[int, Optional[str]]:
        with self.gate:
            if self.in_use(path):
                return 0, f"Artifact in use: {path}"
            try:
                size = path.stat().st_size
                if not dry_run:
                    path.unlink()
            except FileNotFoundError:
                return 0, f"File not found: {path}"
            except OSError as e:
                logger.warning(f"Could not delete {path}: {e}")
                return 0, f"Could not delete {path}: {e}"
            return size, None
