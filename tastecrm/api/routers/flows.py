"""Flow invocation routes: POST /api/genkit/flow/{name} plus the column-mapping shortcut."""

from typing import Callable

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError

from tastecrm.api.auth import require_user
from tastecrm.api.http_errors import flow_errors
from tastecrm.flows import analytics, collateral, segments, strategy
from tastecrm.flows.schemas import CulturalDNAScores
from tastecrm.ingest.column_mapper import suggest_mapping
from tastecrm.ingest.importer import process_customer_data

router = APIRouter(tags=["flows"], dependencies=[Depends(require_user)])


class ProcessCustomerDataIn(BaseModel):
    csvData: str = Field(min_length=1)
    columnMapping: dict[str, str]


class ColumnMappingIn(BaseModel):
    headers: list[str] = Field(min_length=1)
    previewData: list[list[str]] = []


class SegmentNameIn(BaseModel):
    segmentName: str = Field(min_length=1)


class QueryIn(BaseModel):
    query: str = Field(min_length=1)


def _parse(model_cls, payload: dict):
    try:
        return model_cls.model_validate(payload or {})
    except ValidationError as e:
        missing = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise HTTPException(status_code=400, detail=f"Invalid or missing input: {missing}")


def _process_customer_data(payload: dict):
    data = _parse(ProcessCustomerDataIn, payload)
    return process_customer_data(data.csvData, data.columnMapping)


def _generate_column_mapping(payload: dict):
    data = _parse(ColumnMappingIn, payload)
    return suggest_mapping(data.headers, data.previewData)


def _campaign_brief(payload: dict):
    return collateral.generate_campaign_brief(_parse(SegmentNameIn, payload).segmentName)


def _sales_script(payload: dict):
    return collateral.generate_sales_script(_parse(SegmentNameIn, payload).segmentName)


def _communication_strategy(payload: dict):
    # Accept either {"dna": {...}} or the DNA object itself
    dna = payload.get("dna") if isinstance(payload.get("dna"), dict) else payload
    return strategy.generate_communication_strategy(_parse(CulturalDNAScores, dna).to_doc())


def _conversational_insights(payload: dict):
    return strategy.answer_question(_parse(QueryIn, payload).query)


FLOW_REGISTRY: dict[str, Callable[[dict], object]] = {
    "processCustomerData": _process_customer_data,
    "generateColumnMapping": _generate_column_mapping,
    "generateCustomerSegments": lambda payload: segments.generate_customer_segments(),
    "generateAnalyticsInsights": lambda payload: analytics.generate_analytics_insights(),
    "generateCampaignBrief": _campaign_brief,
    "generateSalesScript": _sales_script,
    "generateContentCalendar": lambda payload: collateral.generate_content_calendar(),
    "generateCommunicationStrategy": _communication_strategy,
    "conversationalInsights": _conversational_insights,
}


@router.post("/api/genkit/flow/{flow_name}")
def run_flow(flow_name: str, payload: dict = Body(default=None)):
    payload = payload or {}
    handler = FLOW_REGISTRY.get(flow_name)
    if not handler:
        raise HTTPException(status_code=404, detail=f"Unknown flow: {flow_name}")
    with flow_errors(flow_name):
        return handler(payload)


@router.post("/api/smart-map-columns")
def smart_map_columns(data: ColumnMappingIn):
    return suggest_mapping(data.headers, data.previewData)
