"""Collateral generation and customer CSV export routes."""

from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from tastecrm.api.auth import require_user
from tastecrm.api.http_errors import flow_errors
from tastecrm.flows import collateral
from tastecrm.flows.export import export_customers_csv

router = APIRouter(prefix="/api/export", tags=["export"], dependencies=[Depends(require_user)])


class SegmentNameIn(BaseModel):
    segmentName: str = Field(min_length=1)


@router.post("/campaign-brief")
def campaign_brief(data: SegmentNameIn):
    with flow_errors("campaign_brief"):
        return collateral.generate_campaign_brief(data.segmentName)


@router.post("/sales-script")
def sales_script(data: SegmentNameIn):
    with flow_errors("sales_script"):
        return collateral.generate_sales_script(data.segmentName)


@router.post("/content-calendar")
def content_calendar():
    with flow_errors("content_calendar"):
        return collateral.generate_content_calendar()


@router.get("/customers")
def export_customers():
    """Export profiles with assigned segment and top affinities as CSV."""
    filename = f"customer_segments_export_{datetime.now().strftime('%Y%m%d')}.csv"
    return StreamingResponse(
        iter([export_customers_csv()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
