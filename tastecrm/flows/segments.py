"""
Customer Segmentation - Clusters stored profiles into ranked cultural segments.

The model returns 8-12 segments plus three campaign ideas. Segments are
sorted by businessOpportunityRank and then replace the stored segments and
campaigns wholesale; there is no incremental update.
"""

import json

from tastecrm import config
from tastecrm.db import models
from tastecrm.flows.llm_gateway import get_gateway
from tastecrm.flows.profile_sampling import sample_profiles
from tastecrm.flows.schemas import SegmentationReport, schema_prompt, validate_or_fail
from tastecrm.logging_config import get_flow_logger

logger = get_flow_logger("segments")

SEGMENTATION_PROMPT = """You are a world-class market research analyst and product strategist with a strong
commitment to ethical AI. Analyze these customer profiles, each with a "Cultural DNA" derived from
taste-graph correlations, and create 8-12 distinct cultural segments.

Business baseline (use it to judge customer value and opportunity):
- Average customer lifetime value: {ltv}
- Average conversion rate: {conversion}%
- Average cost per acquisition: {cpa}

Customer profiles:
{profiles}

Steps:
1. Cluster the customers into 8-12 meaningful segments. Create personas that feel real, not plain
   taste clusters.
2. Give each segment a descriptive, memorable name.
3. For each segment give: its size (customer count), a qualitative average customer value
   ('Low', 'Medium', 'High'), exactly 5 top cultural characteristics, communication preferences,
   loved product categories (a feature preference matrix for product development), best marketing
   channels, a sample message, and potential lifetime value ('Low', 'Moderate', 'High', 'Very High').
4. Bias check: if a segment leans on a possibly stereotypical correlation (age, gender, location),
   explain it in biasWarning. Omit biasWarning otherwise.
5. Rank segments by business opportunity, 1 is highest. Every rank must be unique.
6. Suggest exactly 3 campaign ideas for the top 3 segments.
7. Summarize the findings.

Return ONLY a JSON object matching this schema:
{schema}
"""


def generate_customer_segments(gateway=None) -> dict:
    """Generate, store and return a segmentation report.

    Returns:
        {"segments": [...stored segments, rank order], "topCampaignIdeas": [...], "summary": str}

    Raises:
        LLMError: The model call failed.
        StructuredOutputError: The model answer did not fit the schema.
    """
    profiles = sample_profiles(config.SEGMENT_PROFILE_CAP)
    metrics = models.get_business_metrics()
    logger.info("Segmenting %d profiles (baseline from %s)", len(profiles), metrics["source"],
                extra={"flow": "segments", "stage": "prompt"})

    prompt = SEGMENTATION_PROMPT.format(
        ltv=metrics["averageLTV"],
        conversion=metrics["averageConversionRate"],
        cpa=metrics["averageCPA"],
        profiles=json.dumps(profiles),
        schema=schema_prompt(SegmentationReport),
    )

    gateway = gateway or get_gateway()
    result = gateway.generate(prompt, stage_name="segments", temperature=0.5,
                              max_tokens=6000, json_mode=True)
    report = validate_or_fail(SegmentationReport, result["response"], "segmentation report")

    segments = sorted(report.segments, key=lambda s: s.business_opportunity_rank)
    counts = models.replace_segmentation(
        [s.to_doc() for s in segments],
        [c.to_doc() for c in report.top_campaign_ideas],
    )
    logger.info("Stored %d segments and %d campaign ideas", counts["segments"],
                counts["campaigns"], extra={"flow": "segments", "stage": "persist"})

    return {
        "segments": models.list_segments(),
        "topCampaignIdeas": [c.to_doc() for c in report.top_campaign_ideas],
        "summary": report.summary,
    }


def get_segmentation() -> dict:
    """Stored segments (rank order) and the latest campaign ideas.

    The summary is not persisted, so it is rebuilt from the stored data.
    """
    segments = models.list_segments()
    campaigns = models.list_campaigns(limit=3)
    if segments:
        summary = f"{len(segments)} segments identified. Top opportunity: {segments[0]['segmentName']}."
    else:
        summary = "No segments have been generated yet."
    return {"segments": segments, "summary": summary, "topCampaignIdeas": campaigns}
