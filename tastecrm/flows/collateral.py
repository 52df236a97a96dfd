"""
Campaign Collateral - Campaign briefs, sales scripts and content calendars.

All three are ephemeral: generated on request, returned, never stored.
- Brief:    stored segment if present, else segment name + first stored profile
- Script:   requires the stored segment (SegmentNotFoundError otherwise)
- Calendar: 30 days of content from the customer base's DNA
"""

import json

from tastecrm import config
from tastecrm.db import models
from tastecrm.flows.llm_gateway import get_gateway
from tastecrm.flows.profile_sampling import profile_view, sample_profiles
from tastecrm.flows.schemas import (
    CampaignBrief, ContentCalendar, SalesScript, schema_prompt, validate_or_fail,
)
from tastecrm.logging_config import get_flow_logger

logger = get_flow_logger("collateral")


class SegmentNotFoundError(LookupError):
    """Raised when a flow needs a stored segment that does not exist."""

    def __init__(self, segment_name: str):
        self.segment_name = segment_name
        super().__init__(f'Segment "{segment_name}" not found. Please generate segments first.')


def _segment_for_prompt(segment: dict) -> dict:
    return {k: v for k, v in segment.items() if k not in ("id", "createdAt", "updatedAt")}


# ─── CAMPAIGN BRIEF ────────────────────────────────────────────

BRIEF_PROMPT = """You are a world-class marketing campaign strategist. Write a comprehensive campaign brief
for this customer segment.

Target Segment Profile:
{segment}

Sections: campaignTitle, targetSegment, executiveSummary, targetSegmentAnalysis (cultural DNA,
motivations, behaviours), culturalInsights, messagingStrategy (coreMessage, keyThemes, 2-3
sampleSnippets), visualDirection, successMetrics (KPIs) and budgetAllocation.

Return ONLY a JSON object matching this schema:
{schema}
"""


def generate_campaign_brief(segment_name: str, gateway=None) -> dict:
    """Campaign brief for a segment.

    Raises:
        LLMError: The model call failed.
        StructuredOutputError: The model answer did not fit the schema.
    """
    segment = models.get_segment_by_name(segment_name)
    if segment:
        subject = _segment_for_prompt(segment)
    else:
        first = models.list_profiles(limit=1)
        subject = {
            "name": segment_name,
            "sampleProfile": profile_view(first[0]) if first else {},
            "note": "This is a representative profile. Infer the segment's broader "
                    "characteristics from its descriptive name.",
        }
        logger.info("Segment %r not stored; briefing from name and a sample profile",
                    segment_name, extra={"flow": "campaign_brief"})

    prompt = BRIEF_PROMPT.format(segment=json.dumps(subject, indent=2),
                                 schema=schema_prompt(CampaignBrief))
    gateway = gateway or get_gateway()
    result = gateway.generate(prompt, stage_name="campaign_brief", temperature=0.7,
                              max_tokens=2048, json_mode=True)
    return validate_or_fail(CampaignBrief, result["response"], "campaign brief").to_doc()


# ─── SALES SCRIPT ──────────────────────────────────────────────

SCRIPT_PROMPT = """You are a world-class sales trainer specializing in cultural psychology. Write a detailed,
actionable sales script for this customer segment.

Target Segment Profile:
{segment}

Sections: scriptTitle, targetSegment, scriptIntroduction (mindset and tone for the sales team),
3-4 openingLines, keyTalkingPoints (each with its culturalJustification), objectionHandling
(potentialObjection + suggestedResponse) and 2-3 closingTechniques.

Return ONLY a JSON object matching this schema:
{schema}
"""


def generate_sales_script(segment_name: str, gateway=None) -> dict:
    """Sales script for a stored segment.

    Raises:
        SegmentNotFoundError: No stored segment has this name.
        LLMError: The model call failed.
        StructuredOutputError: The model answer did not fit the schema.
    """
    segment = models.get_segment_by_name(segment_name)
    if not segment:
        raise SegmentNotFoundError(segment_name)

    prompt = SCRIPT_PROMPT.format(segment=json.dumps(_segment_for_prompt(segment), indent=2),
                                  schema=schema_prompt(SalesScript))
    gateway = gateway or get_gateway()
    result = gateway.generate(prompt, stage_name="sales_script", temperature=0.7,
                              max_tokens=2048, json_mode=True)
    return validate_or_fail(SalesScript, result["response"], "sales script").to_doc()


# ─── CONTENT CALENDAR ──────────────────────────────────────────

CALENDAR_PROMPT = """You are a creative, strategic social media manager with a deep understanding of cultural
trends. Build a 30-day content calendar for an e-commerce brand from its customers' cultural DNA.

Customer profiles:
{profiles}

1. summary: the month's content strategy and the cultural trends it leans into.
2. calendar: exactly 30 entries, days 1 to 30, each with a theme, a platform, a specific
   postSuggestion and a culturalTieIn explaining the cultural event, holiday or trend it rides.
Mix content types and platforms. Avoid generic ideas.

Return ONLY a JSON object matching this schema:
{schema}
"""


def generate_content_calendar(gateway=None) -> dict:
    """30-day content calendar.

    Raises:
        LLMError: The model call failed.
        StructuredOutputError: The model answer did not fit the schema.
    """
    profiles = sample_profiles(config.CALENDAR_PROFILE_CAP, behaviour=False)
    prompt = CALENDAR_PROMPT.format(profiles=json.dumps(profiles),
                                    schema=schema_prompt(ContentCalendar))
    gateway = gateway or get_gateway()
    result = gateway.generate(prompt, stage_name="content_calendar", temperature=0.8,
                              max_tokens=6000, json_mode=True)
    return validate_or_fail(ContentCalendar, result["response"], "content calendar").to_doc()
