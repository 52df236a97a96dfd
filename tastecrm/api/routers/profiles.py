"""Customer profile routes."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from tastecrm.api.auth import require_user
from tastecrm.db import models

router = APIRouter(prefix="/api/customer-profiles", tags=["profiles"],
                   dependencies=[Depends(require_user)])


class FeedbackIn(BaseModel):
    feedback: int = Field(strict=True)


@router.get("")
def list_profiles(limit: int = None):
    return models.list_profiles(limit=limit, newest_first=True)


@router.get("/{profile_id}")
def get_profile(profile_id: str):
    result = models.get_profile(profile_id)
    if not result:
        raise HTTPException(status_code=404, detail="Customer profile not found")
    return result


@router.post("/{profile_id}/feedback")
def set_feedback(profile_id: str, data: FeedbackIn):
    if data.feedback not in (-1, 1):
        raise HTTPException(status_code=400, detail="Invalid feedback value. Must be 1 or -1.")
    result = models.set_profile_feedback(profile_id, data.feedback)
    if not result:
        raise HTTPException(status_code=404, detail="Customer profile not found")
    return result
