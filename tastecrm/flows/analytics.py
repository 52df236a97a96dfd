"""
Analytics Insights - Predictive trend report over all stored profiles.

The report itself is returned, not stored. Its story (a short narrative of
the headline trend) is appended to the stories collection.
"""

import json

from tastecrm import config
from tastecrm.db import models
from tastecrm.flows.llm_gateway import get_gateway
from tastecrm.flows.profile_sampling import sample_profiles
from tastecrm.flows.schemas import AnalyticsReport, schema_prompt, validate_or_fail
from tastecrm.logging_config import get_flow_logger

logger = get_flow_logger("analytics")

ANALYTICS_PROMPT = """You are a world-class marketing analyst and data scientist. Analyze these anonymised
customer cultural profiles and produce a predictive analytics report.

Customer profiles:
{profiles}

Produce:
1. overallSummary: the most critical insights a marketing director needs.
2. keyPatterns: 3-5 significant recurring patterns.
3. predictions for purchaseLikelihood, churnRisk, brandAdvocacy and upsellOpportunity, each with
   the segment, the prediction, a 0-100 confidence score and a recommendation.
4. emergingTrends: 2-3 emerging cultural or behavioural trends.
5. seasonalForecasts: 2-3 seasonal behaviour forecasts for key segments.
6. dataShiftAlert: only if the data (assumed chronological) shows a significant shift; omit otherwise.
7. story: a short data story about the single most important trend, with a title, a narrative,
   the key data points behind it and a recommendation.

Return ONLY a JSON object matching this schema:
{schema}
"""


def generate_analytics_insights(gateway=None) -> dict:
    """Generate an analytics report and append its story.

    Returns:
        The report document; report["story"] carries the stored story's id.

    Raises:
        LLMError: The model call failed.
        StructuredOutputError: The model answer did not fit the schema.
    """
    profiles = sample_profiles(config.ANALYTICS_PROFILE_CAP)
    logger.info("Generating analytics over %d profiles", len(profiles),
                extra={"flow": "analytics", "stage": "prompt"})

    prompt = ANALYTICS_PROMPT.format(
        profiles=json.dumps(profiles),
        schema=schema_prompt(AnalyticsReport),
    )

    gateway = gateway or get_gateway()
    result = gateway.generate(prompt, stage_name="analytics", temperature=0.5,
                              max_tokens=4096, json_mode=True)
    report = validate_or_fail(AnalyticsReport, result["response"], "analytics report")

    doc = report.to_doc()
    doc["story"] = models.create_story(doc["story"])
    return doc


def get_story_history(limit: int = 50) -> list:
    return models.list_stories(limit=limit)
