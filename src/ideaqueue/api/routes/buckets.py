from typing import Any

from fastapi import APIRouter, Body, Depends, status
from pydantic import BaseModel

from ideaqueue.api.auth import require_admin
from ideaqueue.api.routes import get_services
from ideaqueue.buckets.models import Bucket, DeleteResult
from ideaqueue.services import Services

router = APIRouter(
    prefix="/api/admin/buckets", tags=["buckets"], dependencies=[Depends(require_admin)]
)


class BucketIn(BaseModel):
    name: str = ""
    stage: str = ""
    prompt: str = ""
    is_active: bool = True
    sort_order: int = 0


@router.get("", response_model=list[Bucket])
def list_buckets(
    stage: str | None = None,
    active: bool = False,
    services: Services = Depends(get_services),
):
    if active:
        return services.catalog.list_active(stage)
    return services.catalog.list(stage)


@router.post("", response_model=Bucket, status_code=status.HTTP_201_CREATED)
def create_bucket(payload: BucketIn, services: Services = Depends(get_services)):
    return services.catalog.create(
        payload.name,
        payload.stage,
        payload.prompt,
        is_active=payload.is_active,
        sort_order=payload.sort_order,
    )


@router.patch("/{bucket_id}", response_model=Bucket)
def update_bucket(
    bucket_id: str,
    fields: dict[str, Any] = Body(...),
    services: Services = Depends(get_services),
):
    return services.catalog.update(bucket_id, fields)


@router.delete("/{bucket_id}", response_model=DeleteResult)
def delete_bucket(bucket_id: str, services: Services = Depends(get_services)):
    return services.catalog.delete(bucket_id)
