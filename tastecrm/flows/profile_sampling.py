"""
Profile sampling for the aggregate analyzers.

Profiles are read in import order. When the corpus exceeds a flow's cap it
is truncated to the first `cap` profiles and each DNA is reduced to its six
scores, which bounds prompt size. Truncation biases results toward
early-imported customers.
"""

from tastecrm.db import models
from tastecrm.flows.cultural_dna import DNA_CATEGORIES
from tastecrm.logging_config import get_flow_logger

logger = get_flow_logger("sampling")

BEHAVIOUR_FIELDS = ("ageRange", "spendingLevel", "purchaseCategories", "interactionFrequency")


def dna_scores(dna: dict) -> dict:
    """{category: score} for the six DNA categories; {} when there is no DNA."""
    if not dna:
        return {}
    return {c: (dna.get(c) or {}).get("score", 0) for c in DNA_CATEGORIES}


def profile_view(profile: dict, behaviour: bool = True) -> dict:
    """Full prompt view of a profile (no ids, timestamps or feedback)."""
    view = {f: profile.get(f) for f in BEHAVIOUR_FIELDS} if behaviour else {}
    if profile.get("culturalDNA"):
        view["culturalDNA"] = profile["culturalDNA"]
    return view


def summarized_view(profile: dict, behaviour: bool = True) -> dict:
    view = {}
    if behaviour:
        view = {
            "ageRange": profile.get("ageRange"),
            "spendingLevel": profile.get("spendingLevel"),
            "interactionFrequency": profile.get("interactionFrequency"),
        }
    view["culturalDNA"] = dna_scores(profile.get("culturalDNA"))
    return view


def sample_profiles(cap: int, behaviour: bool = True, profiles: list = None) -> list:
    """Profiles prepared for an analyzer prompt.

    Args:
        cap: Maximum profiles sent in full; above it, first `cap` summarized.
        behaviour: Include behavioural fields (the calendar only wants DNA).
        profiles: Pre-loaded profiles; read from the database when None.
    """
    if profiles is None:
        profiles = models.list_profiles()

    if len(profiles) > cap:
        logger.info("Truncating %d profiles to first %d (scores only)", len(profiles), cap)
        return [summarized_view(p, behaviour) for p in profiles[:cap]]
    return [profile_view(p, behaviour) for p in profiles]
