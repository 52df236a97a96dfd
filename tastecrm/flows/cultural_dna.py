"""
Profile Synthesizer - Generates a customer's Cultural DNA.

Pipeline for one behavioural record:
1. No purchase categories   -> canned DNA, confidence 10 (no API or model call)
2. No correlation data      -> canned DNA, confidence 20 (no model call)
3. Otherwise                -> model call under the CulturalDNA schema

A malformed model answer raises StructuredOutputError; the importer catches
it per row, direct callers see it.
"""

import json

from tastecrm.flows.correlation_client import get_correlation_client
from tastecrm.flows.llm_gateway import get_gateway
from tastecrm.flows.schemas import CulturalDNA, schema_prompt, validate_or_fail
from tastecrm.logging_config import get_flow_logger

logger = get_flow_logger("cultural_dna")

DNA_CATEGORIES = ("music", "entertainment", "dining", "fashion", "travel", "socialCauses")

NO_PURCHASE_DATA_NOTE = "Not enough purchase data to generate cultural insights."
NO_CORRELATION_NOTE = (
    "Taste correlation data was unavailable for these purchase categories; "
    "cultural affinities could not be inferred."
)
NO_PURCHASE_DATA_CONFIDENCE = 10
NO_CORRELATION_CONFIDENCE = 20

DNA_PROMPT = """You are a cultural intelligence expert. Build a "Cultural DNA" profile for an anonymised customer.

Behavioural Data:
- Age Range: {age_range}
- Spending Level: {spending_level}
- Purchase Categories: {categories}
- Interaction Frequency: {interaction_frequency}

Taste correlations from the Qloo taste graph for these purchase categories
(category, name, correlation score):
{correlations}

Using the correlations as your primary evidence:
1. Score Affinities: give each of the six categories (music, entertainment, dining, fashion,
   travel, socialCauses) an affinity score from 0-100.
2. List Preferences: list 2-4 specific preferences per category (e.g. music: 'Indie Folk').
3. Find Surprising Connections: 2-3 non-obvious connections between the preferences.
4. Confidence: rate your overall confidence in this profile from 0-100.

Return ONLY a JSON object matching this schema:
{schema}
"""


def canned_dna(note: str, confidence: int) -> dict:
    """Zero-score DNA carrying an explanatory note."""
    dna = {c: {"score": 0, "preferences": []} for c in DNA_CATEGORIES}
    dna["surpriseConnections"] = [note]
    dna["confidenceScore"] = confidence
    return dna


def behaviour_from_record(record: dict) -> dict:
    """Behavioural document (camelCase) from a parsed CSV record."""
    return {
        "ageRange": record.get("age_range") or "",
        "spendingLevel": record.get("spending_level") or "",
        "purchaseCategories": list(record.get("purchase_categories") or []),
        "interactionFrequency": record.get("interaction_frequency") or "",
    }


def _format_correlations(correlations: list) -> str:
    return "\n".join(
        f"- {c.category}: {c.name} ({c.correlation_score:.2f})" for c in correlations
    )


def generate_cultural_dna(behaviour: dict, correlation_client=None, gateway=None) -> dict:
    """Synthesize Cultural DNA for one customer.

    Args:
        behaviour: {ageRange, spendingLevel, purchaseCategories, interactionFrequency}
        correlation_client: Injected client (defaults to the module singleton).
        gateway: Injected LLM gateway (defaults to the module singleton).

    Returns:
        CulturalDNA document (camelCase dict).

    Raises:
        LLMError: The model call failed.
        StructuredOutputError: The model answer did not fit the schema.
    """
    categories = [c for c in behaviour.get("purchaseCategories") or [] if c]
    if not categories:
        logger.debug("No purchase categories; returning placeholder DNA",
                     extra={"flow": "cultural_dna", "stage": "no_categories"})
        return canned_dna(NO_PURCHASE_DATA_NOTE, NO_PURCHASE_DATA_CONFIDENCE)

    client = correlation_client or get_correlation_client()
    correlations = client.get_correlations(categories)
    if not correlations:
        logger.info("No correlation data for %s; returning placeholder DNA", categories,
                    extra={"flow": "cultural_dna", "stage": "no_correlations"})
        return canned_dna(NO_CORRELATION_NOTE, NO_CORRELATION_CONFIDENCE)

    prompt = DNA_PROMPT.format(
        age_range=behaviour.get("ageRange") or "unknown",
        spending_level=behaviour.get("spendingLevel") or "unknown",
        categories=json.dumps(categories),
        interaction_frequency=behaviour.get("interactionFrequency") or "unknown",
        correlations=_format_correlations(correlations),
        schema=schema_prompt(CulturalDNA),
    )

    gateway = gateway or get_gateway()
    result = gateway.generate(prompt, stage_name="cultural_dna", temperature=0.4,
                              max_tokens=1024, json_mode=True)
    dna = validate_or_fail(CulturalDNA, result["response"], "cultural DNA profile")
    return dna.to_doc()
