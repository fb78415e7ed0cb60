"""Archive conversion job lifecycle.

Drives one job through extracting -> converting -> zipping -> completed,
publishing a fresh JobRecord to the registry after every stage and every
file. Any error outside the per-file conversion path fails the job.
"""

import asyncio
import gc
import logging
import os
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set

from webp_service.config import settings
from webp_service.conversion.archive import extract_archive, write_archive
from webp_service.conversion.quality_search import QualitySearchConverter
from webp_service.conversion.tree_walker import OnConvertible, converted_name, count_convertible, walk
from webp_service.errors import ConversionError, FilesystemError, JobNotFound
from webp_service.jobs.dispatcher import JobDispatcher
from webp_service.jobs.models import JobRecord, JobStatus
from webp_service.jobs.registry import JobRegistry
from webp_service.storage.temp_results import TempResultStore

logger = logging.getLogger(__name__)

# Progress bands per stage (percent)
EXTRACTED_PROGRESS = 10
CONVERTED_PROGRESS = 90
COMPLETED_PROGRESS = 100


def conversion_progress(processed: int, total: int) -> int:
    """Map processed/total onto the 10-90 band of the converting stage."""
    if total <= 0:
        return CONVERTED_PROGRESS
    span = CONVERTED_PROGRESS - EXTRACTED_PROGRESS
    return min(CONVERTED_PROGRESS, EXTRACTED_PROGRESS + int(span * processed / total))


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _write_file(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


class JobOrchestrator:
    """Submits, runs, reports on and cleans up archive conversion jobs."""

    def __init__(
        self,
        registry: JobRegistry,
        dispatcher: JobDispatcher,
        store: TempResultStore,
        converter: Optional[QualitySearchConverter] = None,
        cleanup_delay_seconds: Optional[float] = None,
        job_ttl_seconds: Optional[float] = None,
        gc_every_files: Optional[int] = None,
        yield_every_files: Optional[int] = None,
        yield_seconds: Optional[float] = None,
        compact: Callable[[], object] = gc.collect,
        download_url_template: str = "/api/v1/jobs/{job_id}/download",
    ):
        self._registry = registry
        self._dispatcher = dispatcher
        self._store = store
        self._converter = converter or QualitySearchConverter()
        self._cleanup_delay = (
            settings.cleanup_delay_seconds if cleanup_delay_seconds is None else cleanup_delay_seconds
        )
        self._job_ttl = settings.job_ttl_hours * 3600 if job_ttl_seconds is None else job_ttl_seconds
        self._gc_every = settings.gc_every_files if gc_every_files is None else gc_every_files
        self._yield_every = settings.yield_every_files if yield_every_files is None else yield_every_files
        self._yield_seconds = settings.yield_seconds if yield_seconds is None else yield_seconds
        self._compact = compact
        self._download_url_template = download_url_template
        self._cleanup_scheduled: Set[str] = set()
        self._removed_dirs: Set[str] = set()

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    async def submit_job(self, data: bytes, filename: Optional[str] = None) -> str:
        """Register a job and queue it. Returns before any work starts."""
        job = JobRecord(filename=filename)
        job.temp_dir = self._store.paths_for(job.id).root
        self._registry.set(job.id, job)
        logger.info("[%s] Job created (%d bytes)", job.id, len(data))
        await self._dispatcher.submit(job.id, lambda: self.run_job(job.id, data))
        return job.id

    def get_status(self, job_id: str) -> JobRecord:
        job = self._registry.get(job_id)
        if job is None:
            raise JobNotFound.for_job(job_id)
        return job

    def list_jobs(self) -> List[JobRecord]:
        return self._registry.list()

    async def get_output_archive(self, job_id: str) -> bytes:
        """Return the finished archive and schedule the job's cleanup."""
        job = self._registry.get(job_id)
        if job is None:
            raise JobNotFound.for_job(job_id)
        if job.status is not JobStatus.COMPLETED or not job.output_path:
            raise JobNotFound.not_ready(job_id)

        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, _read_file, job.output_path)
        except OSError as e:
            raise JobNotFound(f"Output for job '{job_id}' is no longer on disk", original_error=e)

        self._schedule_cleanup(job_id)
        return data

    def start(self) -> None:
        """Start the expiry sweep for jobs that are never downloaded."""
        self._dispatcher.spawn(self._reap_forever())

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    async def run_job(self, job_id: str, data: bytes) -> None:
        """Run one job to a terminal state. Never raises for job errors."""
        loop = asyncio.get_running_loop()
        paths = self._store.paths_for(job_id)
        try:
            self._store.create_job_dirs(job_id)
            await loop.run_in_executor(None, extract_archive, data, paths.extracted)

            total = count_convertible(paths.extracted)
            self._update(
                job_id,
                status=JobStatus.CONVERTING,
                progress=EXTRACTED_PROGRESS,
                total_files=total,
            )
            logger.info("[%s] Extracted, %d PNG files to convert", job_id, total)

            await walk(paths.extracted, paths.output, self._file_handler(job_id, total))

            self._update(job_id, status=JobStatus.ZIPPING, progress=CONVERTED_PROGRESS)
            await loop.run_in_executor(None, write_archive, paths.output, paths.archive)

            job = self._update(
                job_id,
                status=JobStatus.COMPLETED,
                progress=COMPLETED_PROGRESS,
                output_path=paths.archive,
                download_url=self._download_url_template.format(job_id=job_id),
                completed_at=datetime.utcnow(),
            )
            logger.info(
                "[%s] Completed: %d/%d converted",
                job_id,
                job.processed_files - job.failed_files if job else 0,
                job.total_files if job else 0,
            )
        except Exception as e:
            logger.exception("[%s] Job failed: %s", job_id, e)
            self._fail(job_id, e)

    def _file_handler(self, job_id: str, total: int) -> OnConvertible:
        loop = asyncio.get_running_loop()

        async def on_convertible(source_path: str, dest_dir: str) -> None:
            job = self._registry.get(job_id)
            if job is not None and job.processed_files:
                await self._yield_point(job.processed_files)

            try:
                raw = await loop.run_in_executor(None, _read_file, source_path)
            except OSError as e:
                raise FilesystemError(f"Could not read {source_path}: {e}", original_error=e)

            try:
                webp = await self._converter.convert(raw)
            except ConversionError:
                # The walker logs and moves on; only the counters are ours
                self._file_done(job_id, total, failed=True)
                raise

            dest_path = os.path.join(dest_dir, converted_name(os.path.basename(source_path)))
            try:
                await loop.run_in_executor(None, _write_file, dest_path, webp)
            except OSError as e:
                raise FilesystemError(f"Could not write {dest_path}: {e}", original_error=e)
            self._file_done(job_id, total, failed=False)
            logger.debug("[%s] Converted %s -> %s", job_id, source_path, dest_path)

        return on_convertible

    def _file_done(self, job_id: str, total: int, failed: bool) -> None:
        job = self._registry.get(job_id)
        if job is None:
            return
        processed = job.processed_files + 1
        self._update(
            job_id,
            processed_files=processed,
            failed_files=job.failed_files + (1 if failed else 0),
            progress=conversion_progress(processed, total),
        )

    async def _yield_point(self, processed: int) -> None:
        """Periodic compaction hint and cooperative pause between files."""
        if self._gc_every and processed % self._gc_every == 0:
            self._compact()
        if self._yield_every and processed % self._yield_every == 0:
            await asyncio.sleep(self._yield_seconds)

    def _update(self, job_id: str, **changes) -> Optional[JobRecord]:
        """Read-modify-write the full record for job_id."""
        job = self._registry.get(job_id)
        if job is None:
            logger.warning("[%s] Update for unknown job dropped: %s", job_id, changes)
            return None
        if "progress" in changes and not job.status.is_terminal:
            changes["progress"] = max(job.progress, changes["progress"])
        updated = job.model_copy(update=changes)
        self._registry.set(job_id, updated)

        if "status" in changes and changes["status"] is not job.status:
            logger.info("[%s] Status: %s (%d%%)", job_id, updated.status.value, updated.progress)
        else:
            logger.debug("[%s] Progress: %d%%", job_id, updated.progress)
        return updated

    def _fail(self, job_id: str, error: Exception) -> None:
        message = str(error) or type(error).__name__
        self._update(
            job_id,
            status=JobStatus.FAILED,
            error=message,
            output_path=None,
            completed_at=datetime.utcnow(),
        )
        self._remove_temp_dir(job_id)

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def _schedule_cleanup(self, job_id: str) -> None:
        if job_id in self._cleanup_scheduled:
            return
        self._cleanup_scheduled.add(job_id)
        logger.info("[%s] Cleanup scheduled in %gs", job_id, self._cleanup_delay)
        self._dispatcher.spawn(self._delayed_cleanup(job_id))

    async def _delayed_cleanup(self, job_id: str) -> None:
        await asyncio.sleep(self._cleanup_delay)
        self.cleanup(job_id)

    def cleanup(self, job_id: str) -> None:
        """Remove a job's temp directory, then its registry entry."""
        self._remove_temp_dir(job_id)
        self._registry.delete(job_id)
        # Record is gone, so nothing can ask for this directory again
        self._removed_dirs.discard(job_id)
        self._cleanup_scheduled.discard(job_id)
        logger.info("[%s] Cleaned up", job_id)

    @property
    def pending_removals(self) -> int:
        """Jobs whose temp dir is gone but whose record is still registered."""
        return len(self._removed_dirs)

    def _remove_temp_dir(self, job_id: str) -> None:
        if job_id in self._removed_dirs:
            return
        self._removed_dirs.add(job_id)
        if not self._store.remove(self._store.paths_for(job_id).root):
            logger.warning("[%s] Temp directory cleanup incomplete", job_id)

    def reap_expired(self, now: Optional[datetime] = None) -> int:
        """Clean up terminal jobs older than the TTL. Returns how many."""
        now = now or datetime.utcnow()
        cutoff = now - timedelta(seconds=self._job_ttl)
        reaped = 0
        for job in self._registry.list():
            if not job.status.is_terminal:
                continue
            finished = job.completed_at or job.created_at
            if finished < cutoff:
                self.cleanup(job.id)
                reaped += 1
        orphans = self._store.cleanup_orphans(
            self._job_ttl, keep=frozenset(job.id for job in self._registry.list())
        )
        if reaped or orphans:
            logger.info("Reaped %d expired jobs, %d orphaned directories", reaped, orphans)
        return reaped

    async def _reap_forever(self) -> None:
        while True:
            await asyncio.sleep(settings.reaper_interval_seconds)
            try:
                self.reap_expired()
            except Exception:
                logger.exception("Expired job sweep failed")
