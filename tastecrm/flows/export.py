"""
Customer export - CSV of profiles with their best-matching segment.

A profile is assigned to the stored segment whose top cultural
characteristics appear most often in its DNA preferences. Ties go to the
better-ranked segment. At least one match is required: a profile whose
preferences match no segment is exported as "Uncategorized" instead of
falling through to the top-ranked segment.
"""

import csv
import io

from tastecrm.db import models
from tastecrm.flows.cultural_dna import DNA_CATEGORIES

EXPORT_COLUMNS = [
    "customerId", "assignedSegment", "topAffinity1", "topAffinity2", "topAffinity3",
    "interactionFrequency", "spendingLevel",
]

CATEGORY_LABELS = {
    "music": "Music",
    "entertainment": "Entertainment",
    "dining": "Dining",
    "fashion": "Fashion",
    "travel": "Travel",
    "socialCauses": "Social Causes",
}

UNCATEGORIZED = "Uncategorized"
MISSING = "N/A"


def segment_match_score(dna: dict, segment: dict) -> int:
    """Count (characteristic, category) pairs where a preference contains the characteristic."""
    score = 0
    for characteristic in segment.get("topCulturalCharacteristics") or []:
        needle = characteristic.lower()
        for category in DNA_CATEGORIES:
            prefs = (dna.get(category) or {}).get("preferences") or []
            if any(needle in p.lower() for p in prefs):
                score += 1
    return score


def assign_segment(profile: dict, segments: list):
    """Best-matching segment for a profile, or None. segments must be in rank order."""
    dna = profile.get("culturalDNA")
    if not dna:
        return None
    best, best_score = None, 0
    for segment in segments:
        score = segment_match_score(dna, segment)
        if score > best_score:
            best, best_score = segment, score
    return best


def top_affinities(dna: dict, n: int = 3) -> list:
    """Highest-scoring categories formatted like "Music (85%)"."""
    if not dna:
        return []
    scored = [(CATEGORY_LABELS[c], (dna.get(c) or {}).get("score", 0)) for c in DNA_CATEGORIES]
    scored.sort(key=lambda item: item[1], reverse=True)
    return [f"{name} ({score:.0f}%)" for name, score in scored[:n]]


def export_rows(profiles: list = None, segments: list = None) -> list:
    profiles = models.list_profiles() if profiles is None else profiles
    segments = models.list_segments() if segments is None else segments

    rows = []
    for profile in profiles:
        segment = assign_segment(profile, segments)
        affinities = top_affinities(profile.get("culturalDNA"))
        affinities += [MISSING] * (3 - len(affinities))
        rows.append({
            "customerId": profile["id"],
            "assignedSegment": segment["segmentName"] if segment else UNCATEGORIZED,
            "topAffinity1": affinities[0],
            "topAffinity2": affinities[1],
            "topAffinity3": affinities[2],
            "interactionFrequency": profile.get("interactionFrequency") or MISSING,
            "spendingLevel": profile.get("spendingLevel") or MISSING,
        })
    return rows


def export_customers_csv(profiles: list = None, segments: list = None) -> str:
    """Render the customer export as CSV text (every value quoted)."""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS, quoting=csv.QUOTE_ALL)
    writer.writeheader()
    writer.writerows(export_rows(profiles, segments))
    return output.getvalue()
