# User value: This file reports sandbox extraction progress so the client poller has something real to follow.
# routes/jobs.py
from fastapi import APIRouter, Depends, Request

from auth import verify_token
from services.repository import SandboxStore
from services.sandbox_jobs import job_payload, read_job

router = APIRouter(tags=["jobs"], dependencies=[Depends(verify_token)])


def get_store(request: Request) -> SandboxStore:
    return request.app.state.store


@router.get("/jobs/{job_id}")
def get_job(job_id: str, request: Request, store: SandboxStore = Depends(get_store)):
    record = read_job(store, job_id, polls_to_complete=request.app.state.job_polls_to_complete)
    return job_payload(record)
