"""Data housekeeping routes: clear customer data, review import errors."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from tastecrm.api.auth import require_user
from tastecrm.db import models
from tastecrm.flows import error_handler

logger = logging.getLogger("tastecrm.api.data")

router = APIRouter(prefix="/api", tags=["data"])


@router.post("/data/clear")
def clear_data(user: dict = Depends(require_user)):
    counts = models.clear_customer_data()
    logger.warning("Customer data cleared", extra={"user_id": user["id"]})
    return {"message": "All customer data has been cleared.", "deleted": counts}


@router.get("/flow-errors", dependencies=[Depends(require_user)])
def list_flow_errors(flow: str = None, include_resolved: bool = False, limit: int = 200):
    return error_handler.get_errors(flow=flow, unresolved_only=not include_resolved, limit=limit)


@router.post("/flow-errors/{error_id}/resolve", dependencies=[Depends(require_user)])
def resolve_flow_error(error_id: int):
    if not error_handler.resolve_error(error_id):
        raise HTTPException(status_code=404, detail="Flow error not found")
    return {"ok": True, "id": error_id}
