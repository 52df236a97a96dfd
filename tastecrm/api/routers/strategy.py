"""Communication strategy and conversational insight routes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from tastecrm.api.auth import require_user
from tastecrm.api.http_errors import flow_errors
from tastecrm.flows import strategy
from tastecrm.flows.schemas import CulturalDNAScores

router = APIRouter(prefix="/api", tags=["strategy"], dependencies=[Depends(require_user)])


class QueryIn(BaseModel):
    query: str = Field(min_length=1)


@router.post("/communication-strategy")
def communication_strategy(dna: CulturalDNAScores):
    with flow_errors("communication_strategy"):
        return strategy.generate_communication_strategy(dna.to_doc())


@router.post("/conversational-insights")
def conversational_insights(data: QueryIn):
    with flow_errors("conversational_insights"):
        return strategy.answer_question(data.query)
