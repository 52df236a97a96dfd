"""
Strategy flows - Communication playbooks and conversational Q&A.

- generate_communication_strategy(): playbook for one Cultural DNA
- answer_question(): free-text answer grounded on stored profiles,
  segments and the business baseline
"""

import json

from tastecrm.db import models
from tastecrm.flows.llm_gateway import get_gateway
from tastecrm.flows.profile_sampling import summarized_view
from tastecrm.flows.schemas import (
    CommunicationStrategy, ConversationalAnswer, CulturalDNAScores,
    schema_prompt, validate_or_fail,
)
from tastecrm.logging_config import get_flow_logger

logger = get_flow_logger("strategy")

QA_PROFILE_CAP = 100

STRATEGY_PROMPT = """You are an expert marketing strategist and cultural analyst for a modern e-commerce brand.
Turn this customer's Cultural DNA (derived from taste-graph correlations) into a complete,
actionable communication playbook.

Cultural DNA:
{dna}

Playbook sections:
1. emailMarketing: tone, language style and three subject line examples optimized for open rates.
2. socialMediaApproach: best platforms, content types and posting style.
3. visualBrandingElements: palettes, imagery and aesthetics that resonate.
4. productRecommendationStrategy and customerServiceApproach.
5. culturalGuardrails: dos (references and values to emphasize) and donts (topics, tones or
   imagery to avoid). Be specific.
6. predictedROI: one sentence estimating the ROI of this strategy.

Return ONLY a JSON object matching this schema:
{schema}
"""

QA_PROMPT = """You are "Cultura", an AI strategy co-pilot helping a marketer understand their customers.

Business baseline:
{metrics}

Customer segments (rank order):
{segments}

Customer profiles (scores only, first {n}):
{profiles}

Answer the user's question using this data. Synthesize it into a narrative rather than dumping
numbers, use markdown for readability, and end with 1-2 follow-up questions worth asking next.

User's question:
"{query}"

Return ONLY a JSON object of the form {{"answer": "<markdown answer>"}}.
"""


def generate_communication_strategy(dna: dict, gateway=None) -> dict:
    """Communication playbook for one Cultural DNA.

    Raises:
        StructuredOutputError: dna is not a Cultural DNA, or the model answer did not fit.
        LLMError: The model call failed.
    """
    scores = validate_or_fail(CulturalDNAScores, dna, "cultural DNA input")
    prompt = STRATEGY_PROMPT.format(
        dna=json.dumps(scores.to_doc(), indent=2),
        schema=schema_prompt(CommunicationStrategy),
    )
    gateway = gateway or get_gateway()
    result = gateway.generate(prompt, stage_name="communication_strategy", temperature=0.6,
                              max_tokens=2048, json_mode=True)
    return validate_or_fail(CommunicationStrategy, result["response"],
                            "communication strategy").to_doc()


def _segment_brief(segment: dict) -> dict:
    keys = ("segmentName", "segmentSize", "averageCustomerValue", "topCulturalCharacteristics",
            "bestMarketingChannels", "businessOpportunityRank", "actualROI")
    return {k: segment[k] for k in keys if k in segment}


def answer_question(query: str, gateway=None) -> dict:
    """Answer a natural-language question about the customer base.

    Returns:
        {"answer": str}
    """
    profiles = models.list_profiles(limit=QA_PROFILE_CAP)
    segments = models.list_segments()
    metrics = models.get_business_metrics()
    logger.info("Answering question over %d profiles / %d segments", len(profiles), len(segments),
                extra={"flow": "conversational_insights"})

    prompt = QA_PROMPT.format(
        metrics=json.dumps(metrics),
        segments=json.dumps([_segment_brief(s) for s in segments]),
        n=QA_PROFILE_CAP,
        profiles=json.dumps([summarized_view(p) for p in profiles]),
        query=query,
    )
    gateway = gateway or get_gateway()
    result = gateway.generate(prompt, stage_name="conversational_insights", temperature=0.7,
                              max_tokens=1500, json_mode=True)
    return validate_or_fail(ConversationalAnswer, result["response"], "answer").to_doc()
