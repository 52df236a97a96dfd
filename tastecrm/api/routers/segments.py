"""Customer segment routes."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from tastecrm.api.auth import require_user
from tastecrm.api.http_errors import flow_errors
from tastecrm.db import models
from tastecrm.flows import segments

router = APIRouter(prefix="/api/customer-segments", tags=["segments"],
                   dependencies=[Depends(require_user)])


class PerformanceIn(BaseModel):
    actualROI: float = Field(strict=True)


@router.post("")
def generate_segments():
    with flow_errors("segments"):
        return segments.generate_customer_segments()


@router.get("")
def get_segments():
    return segments.get_segmentation()


@router.post("/{segment_id}/performance")
def record_performance(segment_id: str, data: PerformanceIn):
    result = models.update_segment_performance(segment_id, data.actualROI)
    if not result:
        raise HTTPException(status_code=404, detail="Segment not found")
    return result
