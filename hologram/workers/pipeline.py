"""Scan pipeline - orchestrates discovery, per-file processing and pairing.

Architecture:
  Discovery (thread) -> file queue -> N workers (EXIF || thumbnail per file)
      -> results queue -> orchestrator (sole index writer) -> pairing -> seal

Progress is reported on a ProgressChannel as results are collected, so the
processed counter never goes backwards even when workers finish out of order.
"""

import asyncio
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from hologram.config import settings
from hologram.schemas.photo import (
    Photo,
    ScanEvent,
    ScanEventType,
    ScanPhase,
    ScanProgress,
    ScanResult,
)
from hologram.services.exif import extract_exif
from hologram.services.index import PhotoIndex
from hologram.services.pairing import pair_photos
from hologram.services.scanner import (
    Candidate,
    ScanRootError,
    describe,
    iter_directories,
    validate_root,
)
from hologram.services.thumbnail import generate_thumbnail
from hologram.workers.progress import ProgressChannel

logger = logging.getLogger(__name__)

_DONE = object()


class ScanInProgressError(Exception):
    """A scan was requested while another one is still running."""


@dataclass
class _ScanCounters:
    processed: int = 0
    total: int = 0
    skipped: int = 0


class ScanPipeline:
    """Runs one scan: a fresh PhotoIndex per call to ``run``."""

    def __init__(self, channel: ProgressChannel | None = None, workers: int | None = None):
        self.channel = channel
        self.workers = workers or settings.worker_count
        self._cancel = asyncio.Event()

    def cancel(self) -> None:
        """Ask the running scan to stop after the files already in flight."""
        self._cancel.set()

    def _emit(
        self,
        event_type: ScanEventType,
        scan_id: str,
        counters: _ScanCounters,
        phase: ScanPhase,
        current_file: str | None = None,
        error: str | None = None,
    ) -> None:
        if self.channel is None:
            return
        total = max(counters.total, counters.processed)
        percentage = counters.processed / total * 100 if total else 0.0
        if phase == ScanPhase.COMPLETE:
            percentage = 100.0
        progress = ScanProgress(
            scan_id=scan_id,
            current=counters.processed,
            total=total,
            percentage=round(percentage, 2),
            current_file=current_file,
            phase=phase,
        )
        self.channel.publish(ScanEvent(event=event_type, progress=progress, error=error))

    async def _discover(self, root, files: asyncio.Queue, scan_id: str, counters: _ScanCounters) -> None:
        """Walk the tree in a thread, queueing candidates as each directory is listed."""
        walker = iter_directories(root)
        sequence = 0
        try:
            while not self._cancel.is_set():
                item = await asyncio.to_thread(next, walker, None)
                if item is None:
                    break
                directory, candidates = item
                for candidate in candidates:
                    files.put_nowait((sequence, candidate))
                    sequence += 1
                counters.total += len(candidates)
                if candidates:
                    self._emit(
                        ScanEventType.PROGRESS, scan_id, counters,
                        ScanPhase.DISCOVERING, current_file=str(directory),
                    )
        finally:
            walker.close()
            for _ in range(self.workers):
                files.put_nowait(_DONE)

    async def _process(self, candidate: Candidate, executor: ThreadPoolExecutor) -> Photo | None:
        """Stat, extract and thumbnail one file. Returns None if the file is unreadable."""
        loop = asyncio.get_running_loop()
        try:
            base = await loop.run_in_executor(executor, describe, candidate)
            exif, thumbnail = await asyncio.gather(
                loop.run_in_executor(executor, extract_exif, candidate.path, candidate.file_type),
                loop.run_in_executor(executor, generate_thumbnail, candidate.path, candidate.file_type),
            )
        except OSError as e:
            logger.warning("Skipping unreadable file %s: %s", candidate.path, e)
            return None
        except Exception:
            logger.exception("Error processing %s", candidate.path)
            return None
        return base.model_copy(update={"exif": exif, "thumbnail": thumbnail})

    async def _work(self, files: asyncio.Queue, results: asyncio.Queue, executor: ThreadPoolExecutor) -> None:
        while True:
            item = await files.get()
            if item is _DONE:
                return
            if self._cancel.is_set():
                # Drain without starting new files
                continue
            sequence, candidate = item
            photo = await self._process(candidate, executor)
            await results.put((sequence, candidate, photo))

    async def run(self, folder_path: str) -> tuple[ScanResult, PhotoIndex]:
        """Scan a folder into a new, sealed PhotoIndex.

        Raises ScanRootError if the folder cannot be scanned at all. A
        cancelled scan still returns the files it finished, paired among
        themselves, with ``cancelled=True``.
        """
        scan_id = uuid.uuid4().hex
        counters = _ScanCounters()
        index = PhotoIndex()

        try:
            root = await asyncio.to_thread(validate_root, folder_path)
        except ScanRootError as e:
            logger.error("Cannot scan %s: %s", folder_path, e)
            self._emit(ScanEventType.FAILED, scan_id, counters, ScanPhase.FAILED, error=str(e))
            raise

        logger.info("Scanning %s with %d workers", root, self.workers)
        self._emit(ScanEventType.PROGRESS, scan_id, counters, ScanPhase.DISCOVERING)

        files: asyncio.Queue = asyncio.Queue()
        results: asyncio.Queue = asyncio.Queue()
        finished: dict[int, Photo] = {}
        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="hologram-scan")

        async def produce() -> list:
            try:
                return await asyncio.gather(
                    self._discover(root, files, scan_id, counters),
                    *(self._work(files, results, executor) for _ in range(self.workers)),
                    return_exceptions=True,
                )
            finally:
                results.put_nowait(_DONE)

        producer = asyncio.create_task(produce())
        try:
            while (item := await results.get()) is not _DONE:
                sequence, candidate, photo = item
                counters.processed += 1
                if photo is None:
                    counters.skipped += 1
                else:
                    index.insert(photo)
                    finished[sequence] = photo
                if counters.processed % settings.progress_every == 0 or counters.processed == counters.total:
                    self._emit(
                        ScanEventType.PROGRESS, scan_id, counters,
                        ScanPhase.EXTRACTING, current_file=str(candidate.path),
                    )

            errors = [r for r in await producer if isinstance(r, BaseException)]
            if errors:
                raise errors[0]
        except asyncio.CancelledError:
            # Caller abandoned the request
            producer.cancel()
            self._emit(ScanEventType.CANCELLED, scan_id, counters, ScanPhase.CANCELLED)
            raise
        except Exception as e:
            producer.cancel()
            logger.error("Scan of %s failed: %s", root, e)
            self._emit(ScanEventType.FAILED, scan_id, counters, ScanPhase.FAILED, error=str(e))
            raise
        finally:
            executor.shutdown(wait=False)

        # Barrier: every file is known, so siblings can be resolved
        self._emit(ScanEventType.PROGRESS, scan_id, counters, ScanPhase.PAIRING)
        paired = pair_photos([finished[s] for s in sorted(finished)])
        index.apply(paired)
        index.seal()

        cancelled = self._cancel.is_set()
        if cancelled:
            logger.info("Scan of %s cancelled after %d files", root, counters.processed)
            self._emit(ScanEventType.CANCELLED, scan_id, counters, ScanPhase.CANCELLED)
        else:
            logger.info(
                "Scan complete: %d photos, %d skipped in %s",
                len(paired), counters.skipped, root,
            )
            self._emit(ScanEventType.COMPLETE, scan_id, counters, ScanPhase.COMPLETE)

        result = ScanResult(scan_id=scan_id, photos=paired, cancelled=cancelled, skipped=counters.skipped)
        return result, index
