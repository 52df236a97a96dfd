"""
Structured result types for every model-backed flow.

Model output is untrusted text. Flows pass it through validate_or_fail(),
which extracts the JSON payload, validates it against one of the models
below, and raises StructuredOutputError when it does not fit. Nothing
downstream ever sees a half-valid result.

All models read and write camelCase keys (the API/document shape) while
exposing snake_case attributes in Python.
"""

import json
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel


class StructuredOutputError(Exception):
    """Raised when model output is empty, not JSON, or violates its schema."""
    pass


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_doc(self) -> dict:
        """Dump with camelCase keys, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ─── CULTURAL DNA ──────────────────────────────────────────────

class CategoryAffinity(CamelModel):
    score: float = Field(ge=0, le=100)
    preferences: list[str] = Field(default_factory=list)


class CulturalDNAScores(CamelModel):
    """The six affinity categories on their own (communication strategy input)."""
    music: CategoryAffinity
    entertainment: CategoryAffinity
    dining: CategoryAffinity
    fashion: CategoryAffinity
    travel: CategoryAffinity
    social_causes: CategoryAffinity


class CulturalDNA(CulturalDNAScores):
    surprise_connections: list[str] = Field(default_factory=list)
    confidence_score: float = Field(ge=0, le=100)


# ─── SEGMENTATION ──────────────────────────────────────────────

class Segment(CamelModel):
    segment_name: str = Field(min_length=1)
    segment_size: int = Field(ge=0)
    average_customer_value: str
    top_cultural_characteristics: list[str] = Field(min_length=5, max_length=5)
    communication_preferences: str
    loved_product_categories: list[str] = Field(default_factory=list)
    best_marketing_channels: list[str] = Field(default_factory=list)
    sample_messaging: str
    potential_lifetime_value: str
    business_opportunity_rank: int = Field(ge=1)
    bias_warning: Optional[str] = None


class CampaignIdea(CamelModel):
    target_segment: str
    campaign_title: str
    description: str
    suggested_channels: list[str] = Field(default_factory=list)


class SegmentationReport(CamelModel):
    segments: list[Segment] = Field(min_length=1)
    top_campaign_ideas: list[CampaignIdea] = Field(min_length=3, max_length=3)
    summary: str

    @model_validator(mode="after")
    def ranks_are_unique(self):
        ranks = [s.business_opportunity_rank for s in self.segments]
        if len(ranks) != len(set(ranks)):
            raise ValueError(f"businessOpportunityRank values must be unique, got {sorted(ranks)}")
        return self


# ─── ANALYTICS ─────────────────────────────────────────────────

class Prediction(CamelModel):
    segment_description: str
    prediction: str
    confidence_score: float = Field(ge=0, le=100)
    recommendation: str


class Predictions(CamelModel):
    purchase_likelihood: Prediction
    churn_risk: Prediction
    brand_advocacy: Prediction
    upsell_opportunity: Prediction


class Trend(CamelModel):
    trend: str
    supporting_data: str
    implication: str


class SeasonalForecast(CamelModel):
    season: str
    segment_description: str
    predicted_behavior: str
    recommendation: str


class Story(CamelModel):
    title: str = Field(min_length=1)
    narrative: str
    key_data_points: list[str] = Field(default_factory=list)
    recommendation: str


class AnalyticsReport(CamelModel):
    overall_summary: str
    key_patterns: list[str]
    predictions: Predictions
    emerging_trends: list[Trend]
    seasonal_forecasts: list[SeasonalForecast]
    data_shift_alert: Optional[str] = None
    story: Story


# ─── COLLATERAL ────────────────────────────────────────────────

class MessagingStrategy(CamelModel):
    core_message: str
    key_themes: list[str]
    sample_snippets: list[str]


class CampaignBrief(CamelModel):
    campaign_title: str
    target_segment: str
    executive_summary: str
    target_segment_analysis: str
    cultural_insights: str
    messaging_strategy: MessagingStrategy
    visual_direction: list[str]
    success_metrics: list[str]
    budget_allocation: str


class TalkingPoint(CamelModel):
    point: str
    cultural_justification: str


class ObjectionResponse(CamelModel):
    potential_objection: str
    suggested_response: str


class SalesScript(CamelModel):
    script_title: str
    target_segment: str
    script_introduction: str
    opening_lines: list[str]
    key_talking_points: list[TalkingPoint]
    objection_handling: list[ObjectionResponse]
    closing_techniques: list[str]


class CalendarDay(CamelModel):
    day: int = Field(ge=1, le=30)
    theme: str
    platform: str
    post_suggestion: str
    cultural_tie_in: str


class ContentCalendar(CamelModel):
    summary: str
    calendar: list[CalendarDay] = Field(min_length=30, max_length=30)


# ─── STRATEGY ──────────────────────────────────────────────────

class EmailMarketing(CamelModel):
    tone: str
    language: str
    subject_line_examples: list[str]


class SocialMediaApproach(CamelModel):
    platforms: list[str]
    content_types: list[str]
    posting_style: str


class CulturalGuardrails(CamelModel):
    dos: list[str]
    donts: list[str]


class CommunicationStrategy(CamelModel):
    email_marketing: EmailMarketing
    social_media_approach: SocialMediaApproach
    product_recommendation_strategy: str
    customer_service_approach: str
    visual_branding_elements: list[str]
    cultural_guardrails: CulturalGuardrails
    predicted_roi: str = Field(alias="predictedROI")


class ConversationalAnswer(CamelModel):
    answer: str = Field(min_length=1)


# ─── VALIDATE-OR-FAIL BOUNDARY ─────────────────────────────────

def extract_json(text: str):
    """Pull the first JSON object or array out of model text.

    Tolerates ```json fences and prose around the payload.

    Raises:
        StructuredOutputError: If nothing decodable is found.
    """
    if text is None or not str(text).strip():
        raise StructuredOutputError("The model returned an empty response.")

    text = str(text).strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
        text = text.strip()

    try:
        return json.loads(text)
    except ValueError:
        pass

    starts = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    if not starts:
        raise StructuredOutputError("The model response did not contain JSON.")
    start = min(starts)
    closer = "}" if text[start] == "{" else "]"
    end = text.rfind(closer) + 1
    if end <= start:
        raise StructuredOutputError("The model response contained truncated JSON.")
    try:
        return json.loads(text[start:end])
    except ValueError as e:
        raise StructuredOutputError(f"The model response was not valid JSON: {e}")


def validate_or_fail(model_cls, raw, what: str = None):
    """Validate raw model output against model_cls.

    Args:
        model_cls: One of the result models above.
        raw: Model text, or an already-decoded dict.
        what: Human label for error messages ("segmentation report").

    Returns:
        A model_cls instance.

    Raises:
        StructuredOutputError: Empty, non-JSON, or schema-violating output.
    """
    label = what or model_cls.__name__
    payload = raw if isinstance(raw, (dict, list)) else extract_json(raw)
    if not isinstance(payload, dict):
        raise StructuredOutputError(f"The model did not return a valid {label}: expected a JSON object.")
    try:
        return model_cls.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '(root)'}: {err['msg']}"
            for err in e.errors()[:5]
        )
        raise StructuredOutputError(f"The model did not return a valid {label}: {problems}")


def schema_prompt(model_cls) -> str:
    """JSON schema text to append to a prompt."""
    return json.dumps(model_cls.model_json_schema(by_alias=True), indent=2)
