"""Business baseline settings routes."""

from fastapi import APIRouter, Body, Depends

from tastecrm.api.auth import require_user
from tastecrm.db import models

router = APIRouter(prefix="/api/settings", tags=["settings"], dependencies=[Depends(require_user)])

SETTINGS_FIELDS = ("averageLTV", "averageConversionRate", "averageCPA")


def _to_float(value) -> float:
    """Coerce a form value to float; anything unparseable becomes 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if number == number else 0.0  # NaN


@router.get("")
def get_settings():
    settings = models.get_settings()
    if not settings:
        return {f: 0 for f in SETTINGS_FIELDS}
    return settings


@router.post("")
def save_settings(payload: dict = Body(...)):
    values = {f: _to_float(payload.get(f)) for f in SETTINGS_FIELDS}
    return models.upsert_settings(
        average_ltv=values["averageLTV"],
        average_conversion_rate=values["averageConversionRate"],
        average_cpa=values["averageCPA"],
    )
