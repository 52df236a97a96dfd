"""
Shared pytest fixtures for the TasteCRM test suite.

No network: the LLM gateway and the correlation client are replaced with
in-process fakes, and every test gets its own SQLite file.
"""

import json

import pytest

from tastecrm import config
from tastecrm.db import connection
from tastecrm.db.init_db import init_db
from tastecrm.flows import correlation_client as correlation_module
from tastecrm.flows import llm_gateway as gateway_module
from tastecrm.flows.correlation_client import CorrelationResult
from tastecrm.flows.llm_gateway import LLMError


# ─── FAKES ────────────────────────────────────────────────────

class FakeGateway:
    """Stands in for LLMGateway. Responses are keyed by stage name.

    A response may be a dict/list (sent back as JSON text), a str (sent as-is)
    or an Exception instance (raised).
    """

    def __init__(self, responses: dict = None):
        self.responses = dict(responses or {})
        self.calls = []

    def generate(self, prompt, stage_name="unknown", **kwargs):
        self.calls.append({"stage": stage_name, "prompt": prompt, **kwargs})
        if stage_name not in self.responses:
            raise LLMError(f"no fake response for stage {stage_name}")
        response = self.responses[stage_name]
        if isinstance(response, Exception):
            raise response
        if not isinstance(response, str):
            response = json.dumps(response)
        return {"response": response, "provider": "fake", "model": "fake",
                "request_id": "test", "stage": stage_name, "duration_ms": 0}

    def stages(self) -> list:
        return [c["stage"] for c in self.calls]


class FakeCorrelationClient:
    """Stands in for CorrelationClient; returns a fixed result."""

    auth_mode = None

    def __init__(self, results=None):
        self.results = results
        self.calls = []

    def get_correlations(self, categories):
        self.calls.append(list(categories))
        return self.results


# ─── SAMPLE PAYLOADS ──────────────────────────────────────────

def make_dna(music=80, entertainment=60, dining=70, fashion=40, travel=50, social=30,
             preferences=None, confidence=75):
    prefs = preferences or {}
    scores = {"music": music, "entertainment": entertainment, "dining": dining,
              "fashion": fashion, "travel": travel, "socialCauses": social}
    dna = {c: {"score": s, "preferences": prefs.get(c, [f"{c} pick"])} for c, s in scores.items()}
    dna["surpriseConnections"] = ["Vinyl collectors favour slow travel"]
    dna["confidenceScore"] = confidence
    return dna


def make_segment(name, rank, characteristics=None, size=10):
    return {
        "segmentName": name,
        "segmentSize": size,
        "averageCustomerValue": "High",
        "topCulturalCharacteristics": characteristics or ["indie", "coffee", "vinyl", "hiking", "thrift"],
        "communicationPreferences": "Witty, infrequent emails",
        "lovedProductCategories": ["Turntables"],
        "bestMarketingChannels": ["Instagram Stories"],
        "sampleMessaging": "Spin something new.",
        "potentialLifetimeValue": "Very High",
        "businessOpportunityRank": rank,
    }


def make_campaign(segment_name, title="Campaign"):
    return {"targetSegment": segment_name, "campaignTitle": title,
            "description": "Launch it", "suggestedChannels": ["Email"]}


def make_segmentation_report(ranks=(3, 1, 2)):
    segments = [make_segment(f"Segment {r}", r) for r in ranks]
    return {
        "segments": segments,
        "topCampaignIdeas": [make_campaign(f"Segment {i}", f"Idea {i}") for i in (1, 2, 3)],
        "summary": "Three clear clusters.",
    }


def make_prediction():
    return {"segmentDescription": "Indie fans", "prediction": "Will buy",
            "confidenceScore": 70, "recommendation": "Offer vinyl bundles"}


def make_analytics_report():
    return {
        "overallSummary": "Music drives everything.",
        "keyPatterns": ["Indie + coffee", "Vinyl + travel", "Thrift + causes"],
        "predictions": {k: make_prediction() for k in
                        ("purchaseLikelihood", "churnRisk", "brandAdvocacy", "upsellOpportunity")},
        "emergingTrends": [{"trend": "Slow travel", "supportingData": "40% travel > 70",
                            "implication": "Bundle trips"}],
        "seasonalForecasts": [{"season": "Summer", "segmentDescription": "Festival goers",
                               "predictedBehavior": "Spend on tickets", "recommendation": "Partner"}],
        "story": {"title": "The Vinyl Revival", "narrative": "Customers are spinning records.",
                  "keyDataPoints": ["62% music > 70"], "recommendation": "Stock turntables"},
    }


def make_campaign_brief(segment_name="Segment 1"):
    return {
        "campaignTitle": "Press Play", "targetSegment": segment_name,
        "executiveSummary": "Summary", "targetSegmentAnalysis": "Analysis",
        "culturalInsights": "Insights",
        "messagingStrategy": {"coreMessage": "Play on", "keyThemes": ["sound"],
                              "sampleSnippets": ["Drop the needle."]},
        "visualDirection": ["Warm tones"], "successMetrics": ["CTR"],
        "budgetAllocation": "60% social",
    }


def make_sales_script(segment_name="Segment 1"):
    return {
        "scriptTitle": f"Script for {segment_name}", "targetSegment": segment_name,
        "scriptIntroduction": "Be relaxed.", "openingLines": ["Hey there"],
        "keyTalkingPoints": [{"point": "Sound quality", "culturalJustification": "Audiophiles"}],
        "objectionHandling": [{"potentialObjection": "Too pricey",
                               "suggestedResponse": "Built to last"}],
        "closingTechniques": ["Trial offer"],
    }


def make_content_calendar(days=30):
    return {
        "summary": "Lean into festival season.",
        "calendar": [{"day": d, "theme": "Theme", "platform": "Instagram",
                      "postSuggestion": "Post", "culturalTieIn": "Festival"}
                     for d in range(1, days + 1)],
    }


def make_communication_strategy():
    return {
        "emailMarketing": {"tone": "Warm", "language": "Casual",
                           "subjectLineExamples": ["a", "b", "c"]},
        "socialMediaApproach": {"platforms": ["Instagram"], "contentTypes": ["Reels"],
                                "postingStyle": "Lo-fi"},
        "productRecommendationStrategy": "Story-driven",
        "customerServiceApproach": "Friendly",
        "visualBrandingElements": ["Earthy tones"],
        "culturalGuardrails": {"dos": ["Local artists"], "donts": ["Luxury talk"]},
        "predictedROI": "15-20% uplift in engagement.",
    }


CORRELATIONS = [
    CorrelationResult(category="music", name="Khruangbin", correlation_score=0.91),
    CorrelationResult(category="dining", name="Third-wave coffee", correlation_score=0.84),
]


# ─── FIXTURES ─────────────────────────────────────────────────

@pytest.fixture
def test_db(tmp_path, monkeypatch):
    """Fresh SQLite database for one test."""
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(connection, "DB_PATH", db_path)
    monkeypatch.setattr(config, "DB_JOURNAL_MODE", "DELETE")
    init_db(db_path)
    yield db_path


@pytest.fixture
def fake_gateway(monkeypatch):
    """FakeGateway installed as the module-level LLM gateway."""
    gateway = FakeGateway()
    monkeypatch.setattr(gateway_module, "_gateway_instance", gateway)
    return gateway


@pytest.fixture
def fake_correlations(monkeypatch):
    """FakeCorrelationClient (with two correlations) installed as the module-level client."""
    client = FakeCorrelationClient(results=list(CORRELATIONS))
    monkeypatch.setattr(correlation_module, "_client_instance", client)
    return client


@pytest.fixture
def client(test_db, fake_gateway, fake_correlations):
    """Unauthenticated TestClient over a fresh database."""
    from starlette.testclient import TestClient
    from tastecrm.api.app import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_client(client):
    """TestClient with a signed-in user (session cookie set by signup)."""
    resp = client.post("/api/auth/signup", json={
        "name": "Dana Analyst", "email": "dana@example.com", "password": "correct-horse",
    })
    assert resp.status_code == 201, resp.text
    return client
