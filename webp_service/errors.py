"""Exceptions raised by the conversion core.

Per-file errors (``ConversionError`` and its subclasses) are absorbed by the
tree walker; everything else raised while a job is running fails the job.
"""

from typing import Optional


class ConversionServiceError(Exception):
    """Base exception for all conversion service errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ConversionError(ConversionServiceError):
    """A single image could not be converted."""


class CodecError(ConversionError):
    """The codec could not decode or encode the image."""

    status_code = 400


class CompressionFailed(ConversionError):
    """No quality level on the ladder met the size ceiling."""

    status_code = 422

    @staticmethod
    def for_ceiling(max_bytes: int) -> "CompressionFailed":
        return CompressionFailed(
            f"Could not compress image under {max_bytes / (1024 * 1024):g}MB"
        )


class ArchiveError(ConversionServiceError):
    """An archive could not be extracted or written."""

    status_code = 400


class FilesystemError(ConversionServiceError):
    """Directory creation, copy or removal failed."""


class JobNotFound(ConversionServiceError):
    """Unknown job id, or the job has no output to serve yet."""

    status_code = 404

    @staticmethod
    def for_job(job_id: str) -> "JobNotFound":
        return JobNotFound(f"Job '{job_id}' not found")

    @staticmethod
    def not_ready(job_id: str) -> "JobNotFound":
        return JobNotFound(f"Output for job '{job_id}' is not available")
