from typing import Any

from fastapi import APIRouter, Body, Depends, status
from pydantic import BaseModel, ConfigDict

from ideaqueue.api.auth import require_admin
from ideaqueue.api.routes import get_services
from ideaqueue.engine import TransitionResult
from ideaqueue.errors import ValidationError
from ideaqueue.ideas.models import Idea
from ideaqueue.ideas.queue import StageView
from ideaqueue.services import Services
from ideaqueue.stages import Stage

router = APIRouter(
    prefix="/api/admin/ideas", tags=["ideas"], dependencies=[Depends(require_admin)]
)
queues_router = APIRouter(
    prefix="/api/admin/queues", tags=["queues"], dependencies=[Depends(require_admin)]
)


class IdeaIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    phrase: str = ""
    phrase_bucket_id: str | None = None


class AdvanceIn(BaseModel):
    bucket_id: str | None = None
    guidance: str | None = None


class RefineIn(BaseModel):
    notes: str = ""
    stage: str | None = None


def _stage_param(value: str | None) -> Stage | None:
    if not value:
        return None
    try:
        return Stage(value)
    except ValueError:
        raise ValidationError(f"Unknown stage: {value!r}") from None


@router.get("", response_model=list[Idea])
def list_ideas(
    stage: str | None = None,
    status: str | None = None,
    bucket_id: str | None = None,
    services: Services = Depends(get_services),
):
    return services.queue.list(_stage_param(stage), status, bucket_id)


@router.post("", response_model=Idea, status_code=status.HTTP_201_CREATED)
def create_idea(payload: IdeaIn, services: Services = Depends(get_services)):
    extra = payload.model_extra or {}
    return services.engine.create_idea(
        payload.phrase, phrase_bucket_id=payload.phrase_bucket_id, **extra
    )


@router.get("/{idea_id}", response_model=Idea)
def get_idea(idea_id: str, services: Services = Depends(get_services)):
    return services.ideas.require(idea_id)


@router.patch("/{idea_id}", response_model=Idea)
def update_idea(
    idea_id: str,
    fields: dict[str, Any] = Body(...),
    services: Services = Depends(get_services),
):
    fields = dict(fields)
    target = fields.pop("stage", None)
    if target is not None and fields.get("status") in (None, "pending"):
        # a send-back always resets status to pending
        fields.pop("status", None)
    return services.engine.update_idea(idea_id, fields, stage=target)


@router.post("/{idea_id}/advance", response_model=TransitionResult)
def advance_idea(
    idea_id: str,
    payload: AdvanceIn | None = None,
    services: Services = Depends(get_services),
):
    payload = payload or AdvanceIn()
    return services.engine.advance(
        idea_id, next_bucket_id=payload.bucket_id, guidance=payload.guidance
    )


@router.post("/{idea_id}/reject", response_model=TransitionResult)
def reject_idea(idea_id: str, services: Services = Depends(get_services)):
    return services.engine.reject(idea_id)


@router.post("/{idea_id}/refine", response_model=TransitionResult)
def refine_idea(idea_id: str, payload: RefineIn, services: Services = Depends(get_services)):
    return services.engine.refine(idea_id, payload.notes, stage_override=payload.stage)


@router.post("/{idea_id}/publish", response_model=TransitionResult)
def publish_idea(idea_id: str, services: Services = Depends(get_services)):
    return services.engine.publish(idea_id)


@queues_router.get("/{stage}", response_model=StageView)
def stage_view(
    stage: str,
    status: str | None = None,
    bucket_id: str | None = None,
    services: Services = Depends(get_services),
):
    return services.queue.view(_stage_param(stage), status, bucket_id)
