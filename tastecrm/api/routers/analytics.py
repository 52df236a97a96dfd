"""Analytics insight routes."""

from fastapi import APIRouter, Depends

from tastecrm.api.auth import require_user
from tastecrm.api.http_errors import flow_errors
from tastecrm.flows import analytics

router = APIRouter(prefix="/api/analytics-insights", tags=["analytics"],
                   dependencies=[Depends(require_user)])


@router.post("")
def generate_insights():
    with flow_errors("analytics"):
        return analytics.generate_analytics_insights()


@router.get("")
def story_history(limit: int = 50):
    return analytics.get_story_history(limit=limit)
