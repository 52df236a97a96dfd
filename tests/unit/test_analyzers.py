"""
Unit tests for analytics, campaign collateral, communication strategy,
conversational insights and the customer export.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))

import csv
import io

import pytest

from conftest import (
    FakeGateway,
    make_analytics_report,
    make_campaign_brief,
    make_communication_strategy,
    make_content_calendar,
    make_dna,
    make_sales_script,
    make_segment,
)
from tastecrm.db import models
from tastecrm.flows.analytics import generate_analytics_insights, get_story_history
from tastecrm.flows.collateral import (
    SegmentNotFoundError,
    generate_campaign_brief,
    generate_content_calendar,
    generate_sales_script,
)
from tastecrm.flows.export import (
    EXPORT_COLUMNS,
    UNCATEGORIZED,
    assign_segment,
    export_customers_csv,
    top_affinities,
)
from tastecrm.flows.schemas import StructuredOutputError
from tastecrm.flows.strategy import answer_question, generate_communication_strategy


def _profile(age="25-34", dna=None, categories=("coffee",)):
    doc = {"ageRange": age, "spendingLevel": "High", "purchaseCategories": list(categories),
           "interactionFrequency": "Weekly"}
    if dna is not None:
        doc["culturalDNA"] = dna
    return doc


# ─── ANALYTICS ────────────────────────────────────────────────

def test_analytics_appends_story(test_db):
    models.replace_profiles([_profile(dna=make_dna())])
    gateway = FakeGateway({"analytics": make_analytics_report()})

    first = generate_analytics_insights(gateway=gateway)
    second = generate_analytics_insights(gateway=gateway)

    assert first["story"]["id"] != second["story"]["id"]
    assert first["predictions"]["churnRisk"]["confidenceScore"] == 70
    history = get_story_history()
    assert len(history) == 2
    assert history[0]["id"] == second["story"]["id"]


def test_analytics_invalid_output_stores_no_story(test_db):
    report = make_analytics_report()
    del report["predictions"]["churnRisk"]
    with pytest.raises(StructuredOutputError):
        generate_analytics_insights(gateway=FakeGateway({"analytics": report}))
    assert get_story_history() == []


# ─── COLLATERAL ───────────────────────────────────────────────

def test_brief_uses_stored_segment(test_db):
    models.replace_segmentation([make_segment("Vinyl Revivalists", 1)], [])
    gateway = FakeGateway({"campaign_brief": make_campaign_brief("Vinyl Revivalists")})

    brief = generate_campaign_brief("Vinyl Revivalists", gateway=gateway)

    assert brief["messagingStrategy"]["coreMessage"] == "Play on"
    assert "Witty, infrequent emails" in gateway.calls[0]["prompt"]


def test_brief_falls_back_to_name_and_sample_profile(test_db):
    models.replace_profiles([_profile(age="45-54")])
    gateway = FakeGateway({"campaign_brief": make_campaign_brief("Weekend Hikers")})

    generate_campaign_brief("Weekend Hikers", gateway=gateway)

    prompt = gateway.calls[0]["prompt"]
    assert "Weekend Hikers" in prompt
    assert "45-54" in prompt


def test_script_requires_stored_segment(test_db):
    gateway = FakeGateway({"sales_script": make_sales_script()})
    with pytest.raises(SegmentNotFoundError) as exc:
        generate_sales_script("Ghosts", gateway=gateway)
    assert exc.value.segment_name == "Ghosts"
    assert "Please generate segments first" in str(exc.value)
    assert gateway.calls == []


def test_script_for_stored_segment(test_db):
    models.replace_segmentation([make_segment("Segment 1", 1)], [])
    script = generate_sales_script("Segment 1",
                                   gateway=FakeGateway({"sales_script": make_sales_script()}))
    assert script["objectionHandling"][0]["potentialObjection"] == "Too pricey"


def test_calendar_requires_thirty_days(test_db):
    calendar = generate_content_calendar(
        gateway=FakeGateway({"content_calendar": make_content_calendar(30)}))
    assert [d["day"] for d in calendar["calendar"]] == list(range(1, 31))

    with pytest.raises(StructuredOutputError):
        generate_content_calendar(
            gateway=FakeGateway({"content_calendar": make_content_calendar(29)}))


def test_calendar_prompt_omits_behaviour(test_db):
    models.replace_profiles([_profile(age="65+", dna=make_dna())])
    gateway = FakeGateway({"content_calendar": make_content_calendar()})
    generate_content_calendar(gateway=gateway)
    assert "65+" not in gateway.calls[0]["prompt"]


# ─── STRATEGY & QUESTIONS ─────────────────────────────────────

def test_communication_strategy_accepts_bare_scores():
    dna = make_dna()
    del dna["surpriseConnections"]
    del dna["confidenceScore"]
    gateway = FakeGateway({"communication_strategy": make_communication_strategy()})

    strategy = generate_communication_strategy(dna, gateway=gateway)

    assert strategy["predictedROI"] == "15-20% uplift in engagement."
    assert strategy["culturalGuardrails"]["donts"] == ["Luxury talk"]


def test_communication_strategy_rejects_bad_input():
    gateway = FakeGateway({"communication_strategy": make_communication_strategy()})
    with pytest.raises(StructuredOutputError):
        generate_communication_strategy({"music": {"score": 50}}, gateway=gateway)
    assert gateway.calls == []


def test_answer_question_includes_context(test_db):
    models.replace_profiles([_profile(dna=make_dna())])
    models.replace_segmentation([make_segment("Night Owls", 1)], [])
    gateway = FakeGateway({"conversational_insights": {"answer": "**Night Owls** love vinyl."}})

    result = answer_question("Who buys vinyl?", gateway=gateway)

    assert result == {"answer": "**Night Owls** love vinyl."}
    prompt = gateway.calls[0]["prompt"]
    assert "Who buys vinyl?" in prompt
    assert "Night Owls" in prompt


def test_answer_must_not_be_empty(test_db):
    with pytest.raises(StructuredOutputError):
        answer_question("Anything?", gateway=FakeGateway({"conversational_insights": {"answer": ""}}))


# ─── EXPORT ───────────────────────────────────────────────────

def _dna_with(preferences):
    return make_dna(preferences=preferences)


def test_assign_segment_needs_a_match():
    segments = [make_segment("Coffee People", 1, ["espresso", "qx1", "qx2", "qx3", "qx4"])]
    profile = _profile(dna=_dna_with({"dining": ["Third-wave coffee"]}))
    assert assign_segment(profile, segments) is None


def test_assign_segment_ties_go_to_better_rank():
    segments = [make_segment("Top", 1, ["coffee", "qx1", "qx2", "qx3", "qx4"]),
                make_segment("Second", 2, ["coffee", "qx5", "qx6", "qx7", "qx8"])]
    profile = _profile(dna=_dna_with({"dining": ["Third-wave coffee"]}))
    assert assign_segment(profile, segments)["segmentName"] == "Top"


def test_assign_segment_picks_most_matches():
    segments = [make_segment("One", 1, ["coffee", "qx1", "qx2", "qx3", "qx4"]),
                make_segment("Two", 2, ["coffee", "jazz", "qx5", "qx6", "qx7"])]
    profile = _profile(dna=_dna_with({"dining": ["coffee"], "music": ["Jazz standards"]}))
    assert assign_segment(profile, segments)["segmentName"] == "Two"


def test_top_affinities_formatting():
    assert top_affinities(make_dna()) == ["Music (80%)", "Dining (70%)", "Entertainment (60%)"]
    assert top_affinities(None) == []


def test_export_csv(test_db):
    models.replace_profiles([
        _profile(dna=_dna_with({"music": ["indie folk"]})),
        {"ageRange": "18-24", "spendingLevel": "", "purchaseCategories": [],
         "interactionFrequency": ""},
    ])
    models.replace_segmentation([make_segment("Indie Kids", 1)], [])

    text = export_customers_csv()

    assert text.splitlines()[0] == ",".join(f'"{c}"' for c in EXPORT_COLUMNS)
    rows = list(csv.DictReader(io.StringIO(text)))
    assert rows[0]["assignedSegment"] == "Indie Kids"
    assert rows[0]["topAffinity1"] == "Music (80%)"
    assert rows[1]["assignedSegment"] == UNCATEGORIZED
    assert rows[1]["topAffinity3"] == "N/A"
    assert rows[1]["spendingLevel"] == "N/A"
