"""Per-job temporary directories: extracted input, converted output, final zip."""

import logging
import os
import shutil
import time
from dataclasses import dataclass
from typing import Optional

from webp_service.config import settings
from webp_service.errors import FilesystemError

logger = logging.getLogger(__name__)

EXTRACTED_DIRNAME = "extracted"
OUTPUT_DIRNAME = "output"
ARCHIVE_FILENAME = "converted_images.zip"


@dataclass(frozen=True)
class JobPaths:
    root: str
    extracted: str
    output: str
    archive: str


class TempResultStore:
    """Owns the temp root; each job gets <base_dir>/<job_id>/."""

    def __init__(self, base_dir: Optional[str] = None):
        self._base_dir = base_dir or settings.temp_dir

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def paths_for(self, job_id: str) -> JobPaths:
        root = os.path.join(self._base_dir, job_id)
        return JobPaths(
            root=root,
            extracted=os.path.join(root, EXTRACTED_DIRNAME),
            output=os.path.join(root, OUTPUT_DIRNAME),
            archive=os.path.join(root, ARCHIVE_FILENAME),
        )

    def create_job_dirs(self, job_id: str) -> JobPaths:
        """Create the extracted/ and output/ directories for a job."""
        paths = self.paths_for(job_id)
        try:
            os.makedirs(paths.extracted, exist_ok=True)
            os.makedirs(paths.output, exist_ok=True)
        except OSError as e:
            raise FilesystemError(
                f"Could not create temp directories for job {job_id}: {e}", original_error=e
            )
        return paths

    def remove(self, path: str) -> bool:
        """Best-effort recursive delete. Returns True if the path is gone."""
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.error("Failed to remove %s: %s", path, e)
            return False
        return True

    def cleanup_orphans(self, ttl_seconds: float, keep: frozenset = frozenset()) -> int:
        """Remove job directories older than ttl_seconds not listed in keep.

        Catches directories left behind by a previous process, whose jobs
        are no longer in the registry. Returns the number removed.
        """
        if not os.path.isdir(self._base_dir):
            return 0
        now = time.time()
        removed = 0
        for entry in os.listdir(self._base_dir):
            job_dir = os.path.join(self._base_dir, entry)
            if entry in keep or not os.path.isdir(job_dir):
                continue
            if now - os.path.getmtime(job_dir) > ttl_seconds and self.remove(job_dir):
                removed += 1
        return removed
