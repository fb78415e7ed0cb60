"""Job management API — submit archives, poll status, download outputs."""

from typing import Optional

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from webp_service.api.v1.upload import read_upload
from webp_service.config import settings
from webp_service.jobs.models import JobRecord, JobStatus

router = APIRouter()

# Set by main.py during lifespan
_orchestrator = None


def set_orchestrator(orchestrator):
    global _orchestrator
    _orchestrator = orchestrator


class JobSubmitResponse(BaseModel):
    job_id: str
    status: str
    message: str


def _require_orchestrator():
    if _orchestrator is None:
        raise HTTPException(status_code=503, detail="Job orchestrator not initialized")
    return _orchestrator


def _job_response(job: JobRecord) -> dict:
    response = {
        "job_id": job.id,
        "status": job.status.value,
        "progress": job.progress,
        "processed_files": job.processed_files,
        "total_files": job.total_files,
        "failed_files": job.failed_files,
        "filename": job.filename,
        "created_at": job.created_at.isoformat(),
        "completed_at": job.completed_at.isoformat() if job.completed_at else None,
    }
    if job.status == JobStatus.COMPLETED:
        response["download_url"] = job.download_url
    if job.status == JobStatus.FAILED:
        response["error"] = job.error
    return response


@router.post("/jobs", response_model=JobSubmitResponse)
async def submit_job(zipFile: Optional[UploadFile] = File(None)):
    """Accept a zip upload and start converting it in the background."""
    orchestrator = _require_orchestrator()
    if zipFile is None:
        raise HTTPException(status_code=400, detail="No zip file uploaded")

    data = await read_upload(zipFile, settings.max_upload_bytes)
    job_id = await orchestrator.submit_job(data, filename=zipFile.filename)
    return JobSubmitResponse(
        job_id=job_id,
        status=JobStatus.EXTRACTING.value,
        message="Job submitted successfully. Poll GET /api/v1/jobs/{id} for status.",
    )


@router.get("/jobs")
async def list_jobs():
    orchestrator = _require_orchestrator()
    jobs = [_job_response(job) for job in orchestrator.list_jobs()]
    return {"jobs": jobs, "count": len(jobs)}


@router.get("/jobs/{job_id}")
async def get_job_status(job_id: str):
    """Get the current status and progress of a job."""
    orchestrator = _require_orchestrator()
    return _job_response(orchestrator.get_status(job_id))


@router.get("/jobs/{job_id}/download")
async def download_job_output(job_id: str):
    """Download the converted archive. Cleanup follows a few seconds later."""
    orchestrator = _require_orchestrator()
    data = await orchestrator.get_output_archive(job_id)
    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="converted_{job_id}.zip"'},
    )
