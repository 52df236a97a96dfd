"""
Column Mapper - Suggests which CSV header feeds which canonical field.

Two strategies:
- heuristic_mapping(): deterministic keyword match on header words
- suggest_mapping(): asks the LLM, normalizes its answer, and falls back to
  the heuristic whenever the answer cannot be trusted

Either way the result maps every header to a canonical field name or "".
"""

import json
import logging
import re

from tastecrm.flows.llm_gateway import LLMError, get_gateway
from tastecrm.flows.schemas import StructuredOutputError, extract_json
from tastecrm.ingest.csv_parser import CANONICAL_FIELDS

logger = logging.getLogger("tastecrm.ingest.mapper")

PREVIEW_ROWS = 5

# Matched against the start of each header word, so "average" never hits "age".
# Checked in order: "Purchase Frequency" is a frequency, not a category.
FIELD_KEYWORDS = {
    "age_range": ("age", "birth", "dob", "born"),
    "interaction_frequency": ("frequency", "visit", "interaction", "engagement", "session", "activity"),
    "spending_level": ("spend", "ltv", "lifetime", "revenue", "value", "tier", "budget", "amount"),
    "purchase_categories": ("categor", "product", "purchase", "item", "interest", "genre"),
}

UNMAPPED_TOKENS = {"unmapped", "none", "null", "n/a", ""}

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def header_words(header: str) -> list:
    """Split a header into lower-case words ("PurchaseCategory_v2" -> purchase, category, v2)."""
    spaced = _CAMEL_BOUNDARY.sub(r"\1 \2", header or "")
    return [w for w in _NON_ALNUM.split(spaced.lower()) if w]


def match_field(header: str) -> str:
    """Canonical field for one header, or "" if no keyword matches."""
    words = header_words(header)
    for field, keywords in FIELD_KEYWORDS.items():
        if any(w.startswith(k) for w in words for k in keywords):
            return field
    return ""


def heuristic_mapping(headers: list) -> dict:
    """Keyword-based mapping. Unmatched headers map to ""."""
    return {h: match_field(h) for h in headers}


# ─── LLM STRATEGY ─────────────────────────────────────────────

MAPPING_PROMPT = """You are a data mapping expert. Map each CSV header to one of the system fields below.

System fields:
- 'age_range': the customer's age bracket (e.g. '25-34'). Look for ages or birth years.
- 'spending_level': the customer's spending tier (e.g. 'Low', 'High'). Look for currency values, LTV or tiers.
- 'purchase_categories': what the customer has bought. The most important field. Look for product names or categories.
- 'interaction_frequency': how often the customer interacts with the brand (e.g. 'Weekly'). Look for visit counts.

Rules:
1. Look at both the header names and the data in each column.
2. Each system field may be claimed by at most one header: pick the best primary match.
3. Map every other header to 'unmapped'.

Return ONLY a JSON object whose keys are the CSV headers and whose values are
'age_range', 'spending_level', 'purchase_categories', 'interaction_frequency' or 'unmapped'.

CSV Headers:
{headers}

CSV Data Preview (first {n} rows):
{preview}
"""


class MappingRejected(ValueError):
    """Raised when an LLM mapping cannot be normalized."""
    pass


def normalize_mapping(raw, headers: list) -> dict:
    """Coerce an LLM answer into a complete header -> field mapping.

    "unmapped"/null become "", omitted headers become "", keys that are not
    headers are dropped, and a field claimed twice keeps its first claimant.

    Raises:
        MappingRejected: Non-object answer or a value that is not a field.
    """
    if not isinstance(raw, dict):
        raise MappingRejected(f"expected a JSON object, got {type(raw).__name__}")

    mapping = {}
    claimed = set()
    for header in headers:
        value = raw.get(header)
        if value is None:
            mapping[header] = ""
            continue
        if not isinstance(value, str):
            raise MappingRejected(f"non-string value for {header!r}: {value!r}")
        value = value.strip()
        if value.lower() in UNMAPPED_TOKENS:
            mapping[header] = ""
        elif value in CANONICAL_FIELDS:
            if value in claimed:
                logger.info("Field %s claimed twice; keeping first claimant, unmapping %r",
                            value, header)
                mapping[header] = ""
            else:
                claimed.add(value)
                mapping[header] = value
        else:
            raise MappingRejected(f"unknown field {value!r} for header {header!r}")

    dropped = [k for k in raw if k not in mapping]
    if dropped:
        logger.debug("Ignoring mapping keys that are not headers: %s", dropped)
    return mapping


def suggest_mapping(headers: list, preview_rows: list, gateway=None) -> dict:
    """Ask the LLM for a mapping, falling back to the heuristic on any failure."""
    headers = [str(h) for h in headers]
    if not headers:
        return {}

    gateway = gateway or get_gateway()
    prompt = MAPPING_PROMPT.format(
        headers=json.dumps(headers),
        n=PREVIEW_ROWS,
        preview=json.dumps((preview_rows or [])[:PREVIEW_ROWS]),
    )

    try:
        result = gateway.generate(prompt, stage_name="column_mapping", temperature=0.1,
                                  max_tokens=512, json_mode=True)
        return normalize_mapping(extract_json(result["response"]), headers)
    except (LLMError, StructuredOutputError, MappingRejected) as e:
        logger.warning("LLM column mapping unusable (%s); using keyword heuristic", e,
                       extra={"flow": "column_mapping"})
        return heuristic_mapping(headers)
