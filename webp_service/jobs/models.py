"""Job record data model for async archive conversion."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
import uuid


class JobStatus(str, Enum):
    EXTRACTING = "extracting"
    CONVERTING = "converting"
    ZIPPING = "zipping"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobRecord(BaseModel):
    """Tracks the lifecycle of an archive conversion job."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    status: JobStatus = JobStatus.EXTRACTING
    progress: int = 0
    processed_files: int = 0
    total_files: int = 0
    failed_files: int = 0
    filename: Optional[str] = None
    temp_dir: Optional[str] = None
    output_path: Optional[str] = None
    download_url: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
