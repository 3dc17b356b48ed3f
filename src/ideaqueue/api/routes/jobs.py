from typing import Any

from fastapi import APIRouter, Body, Depends, status

from ideaqueue.api.auth import require_admin
from ideaqueue.api.routes import get_services
from ideaqueue.jobs.dispatcher import list_jobs
from ideaqueue.jobs.models import JobSpec, SubmissionAck
from ideaqueue.services import Services

router = APIRouter(
    prefix="/api/admin/jobs", tags=["jobs"], dependencies=[Depends(require_admin)]
)


@router.get("", response_model=list[JobSpec])
def get_jobs():
    return list_jobs()


@router.post("/{name}/run", response_model=SubmissionAck, status_code=status.HTTP_202_ACCEPTED)
def run_job(
    name: str,
    params: dict[str, Any] | None = Body(default=None),
    services: Services = Depends(get_services),
):
    return services.engine.run_job(name, params)
