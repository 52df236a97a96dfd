"""
TasteCRM - Data Access Layer
CRUD operations for every collection. Rows come back as camelCase documents,
the shape the HTTP API serves.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from tastecrm.db.connection import get_db_conn, transaction, insert_each, gen_id

logger = logging.getLogger("tastecrm.db")


def _now() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat()


def _loads(value, default):
    if value is None or value == "":
        return default
    return json.loads(value)


# ─── CUSTOMER PROFILES ─────────────────────────────────────────

PROFILE_INSERT_SQL = """
    INSERT INTO customer_profiles (id, age_range, spending_level, purchase_categories,
        interaction_frequency, cultural_dna, accuracy_feedback, created_at, updated_at)
    VALUES (?,?,?,?,?,?,?,?,?)
"""


def _profile_from_row(row) -> dict:
    d = dict(row)
    profile = {
        "id": d["id"],
        "ageRange": d["age_range"] or "",
        "spendingLevel": d["spending_level"] or "",
        "purchaseCategories": _loads(d["purchase_categories"], []),
        "interactionFrequency": d["interaction_frequency"] or "",
        "accuracyFeedback": d["accuracy_feedback"],
        "createdAt": d["created_at"],
        "updatedAt": d["updated_at"],
    }
    dna = _loads(d["cultural_dna"], None)
    if dna is not None:
        profile["culturalDNA"] = dna
    return profile


def _profile_params(doc: dict, now: str) -> tuple:
    dna = doc.get("culturalDNA")
    return (
        doc.get("id") or gen_id("cust"),
        doc.get("ageRange") or "",
        doc.get("spendingLevel") or "",
        json.dumps(list(doc.get("purchaseCategories") or [])),
        doc.get("interactionFrequency") or "",
        json.dumps(dna) if dna is not None else None,
        doc.get("accuracyFeedback", 0),
        now, now,
    )


def replace_profiles(docs: list) -> int:
    """Delete every stored profile, then insert the new batch.

    Inserts continue past documents that fail (bad types, constraint
    violations); those are logged and skipped.

    Returns:
        Number of documents saved.
    """
    now = _now()
    rows = []
    for i, doc in enumerate(docs):
        try:
            rows.append(_profile_params(doc, now))
        except (TypeError, ValueError) as e:
            logger.warning("Skipping unserializable profile document %d: %s", i, e,
                           extra={"row_index": i})

    with transaction() as conn:
        deleted = conn.execute("DELETE FROM customer_profiles").rowcount
        inserted = insert_each(conn, PROFILE_INSERT_SQL, rows, "customer_profile")

    logger.info("Replaced customer profiles: deleted=%d inserted=%d skipped=%d",
                deleted, len(inserted), len(docs) - len(inserted))
    return len(inserted)


def list_profiles(limit: int = None, newest_first: bool = False) -> list:
    """List profiles in import order (or newest first for display)."""
    query = "SELECT * FROM customer_profiles"
    if newest_first:
        query += " ORDER BY created_at DESC, rowid DESC"
    else:
        query += " ORDER BY rowid ASC"
    params = []
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)
    with get_db_conn() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_profile_from_row(r) for r in rows]


def get_profile(profile_id: str) -> Optional[dict]:
    with get_db_conn() as conn:
        row = conn.execute("SELECT * FROM customer_profiles WHERE id=?", (profile_id,)).fetchone()
    return _profile_from_row(row) if row else None


def count_profiles() -> int:
    with get_db_conn() as conn:
        return conn.execute("SELECT COUNT(*) FROM customer_profiles").fetchone()[0]


def set_profile_feedback(profile_id: str, feedback: int) -> Optional[dict]:
    """Record accuracy feedback (-1 inaccurate, 0 none, 1 accurate)."""
    if feedback not in (-1, 0, 1):
        raise ValueError(f"feedback must be -1, 0 or 1, got {feedback!r}")
    with get_db_conn() as conn:
        conn.execute(
            "UPDATE customer_profiles SET accuracy_feedback=?, updated_at=? WHERE id=?",
            (feedback, _now(), profile_id),
        )
        conn.commit()
        row = conn.execute("SELECT * FROM customer_profiles WHERE id=?", (profile_id,)).fetchone()
    return _profile_from_row(row) if row else None


# ─── SEGMENTS & CAMPAIGNS ──────────────────────────────────────

SEGMENT_INSERT_SQL = """
    INSERT INTO segments (id, segment_name, segment_size, average_customer_value,
        top_cultural_characteristics, communication_preferences, loved_product_categories,
        best_marketing_channels, sample_messaging, potential_lifetime_value,
        business_opportunity_rank, bias_warning, actual_roi, comparison_roi,
        created_at, updated_at)
    VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
"""

CAMPAIGN_INSERT_SQL = """
    INSERT INTO campaigns (id, target_segment, campaign_title, description,
        suggested_channels, created_at)
    VALUES (?,?,?,?,?,?)
"""


def _segment_from_row(row) -> dict:
    d = dict(row)
    segment = {
        "id": d["id"],
        "segmentName": d["segment_name"],
        "segmentSize": d["segment_size"],
        "averageCustomerValue": d["average_customer_value"],
        "topCulturalCharacteristics": _loads(d["top_cultural_characteristics"], []),
        "communicationPreferences": d["communication_preferences"],
        "lovedProductCategories": _loads(d["loved_product_categories"], []),
        "bestMarketingChannels": _loads(d["best_marketing_channels"], []),
        "sampleMessaging": d["sample_messaging"],
        "potentialLifetimeValue": d["potential_lifetime_value"],
        "businessOpportunityRank": d["business_opportunity_rank"],
        "createdAt": d["created_at"],
        "updatedAt": d["updated_at"],
    }
    for column, key in (("bias_warning", "biasWarning"), ("actual_roi", "actualROI"),
                        ("comparison_roi", "comparisonROI")):
        if d[column] is not None:
            segment[key] = d[column]
    return segment


def _segment_params(seg: dict, now: str) -> tuple:
    return (
        gen_id("seg"),
        seg["segmentName"],
        seg["segmentSize"],
        seg["averageCustomerValue"],
        json.dumps(seg.get("topCulturalCharacteristics", [])),
        seg["communicationPreferences"],
        json.dumps(seg.get("lovedProductCategories", [])),
        json.dumps(seg.get("bestMarketingChannels", [])),
        seg["sampleMessaging"],
        seg["potentialLifetimeValue"],
        seg["businessOpportunityRank"],
        seg.get("biasWarning"),
        seg.get("actualROI"),
        seg.get("comparisonROI"),
        now, now,
    )


def _campaign_from_row(row) -> dict:
    d = dict(row)
    return {
        "id": d["id"],
        "targetSegment": d["target_segment"],
        "campaignTitle": d["campaign_title"],
        "description": d["description"],
        "suggestedChannels": _loads(d["suggested_channels"], []),
        "createdAt": d["created_at"],
    }


def replace_segmentation(segments: list, campaigns: list) -> dict:
    """Replace all segments and campaign ideas with a freshly generated set.

    Segments are inserted in the order given; callers sort by rank first.
    """
    now = _now()
    segment_rows = [_segment_params(s, now) for s in segments]
    campaign_rows = [
        (gen_id("camp"), c["targetSegment"], c["campaignTitle"], c["description"],
         json.dumps(c.get("suggestedChannels", [])), now)
        for c in campaigns
    ]

    with transaction() as conn:
        conn.execute("DELETE FROM segments")
        conn.execute("DELETE FROM campaigns")
        saved_segments = insert_each(conn, SEGMENT_INSERT_SQL, segment_rows, "segment")
        saved_campaigns = insert_each(conn, CAMPAIGN_INSERT_SQL, campaign_rows, "campaign")

    logger.info("Replaced segmentation: segments=%d campaigns=%d",
                len(saved_segments), len(saved_campaigns))
    return {"segments": len(saved_segments), "campaigns": len(saved_campaigns)}


def list_segments() -> list:
    with get_db_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM segments ORDER BY business_opportunity_rank ASC, rowid ASC"
        ).fetchall()
    return [_segment_from_row(r) for r in rows]


def get_segment_by_name(segment_name: str) -> Optional[dict]:
    with get_db_conn() as conn:
        row = conn.execute(
            "SELECT * FROM segments WHERE segment_name=? ORDER BY business_opportunity_rank LIMIT 1",
            (segment_name,),
        ).fetchone()
    return _segment_from_row(row) if row else None


def update_segment_performance(segment_id: str, actual_roi: float) -> Optional[dict]:
    with get_db_conn() as conn:
        conn.execute(
            "UPDATE segments SET actual_roi=?, updated_at=? WHERE id=?",
            (actual_roi, _now(), segment_id),
        )
        conn.commit()
        row = conn.execute("SELECT * FROM segments WHERE id=?", (segment_id,)).fetchone()
    return _segment_from_row(row) if row else None


def list_campaigns(limit: int = 3) -> list:
    with get_db_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM campaigns ORDER BY created_at DESC, rowid ASC LIMIT ?", (limit,)
        ).fetchall()
    return [_campaign_from_row(r) for r in rows]


# ─── STORIES ───────────────────────────────────────────────────

def _story_from_row(row) -> dict:
    d = dict(row)
    return {
        "id": d["id"],
        "title": d["title"],
        "narrative": d["narrative"],
        "keyDataPoints": _loads(d["key_data_points"], []),
        "recommendation": d["recommendation"],
        "createdAt": d["created_at"],
    }


def create_story(data: dict) -> dict:
    sid = gen_id("story")
    with get_db_conn() as conn:
        conn.execute("""
            INSERT INTO stories (id, title, narrative, key_data_points, recommendation, created_at)
            VALUES (?,?,?,?,?,?)
        """, (
            sid, data["title"], data["narrative"],
            json.dumps(data.get("keyDataPoints", [])), data["recommendation"], _now(),
        ))
        conn.commit()
        row = conn.execute("SELECT * FROM stories WHERE id=?", (sid,)).fetchone()
    return _story_from_row(row)


def list_stories(limit: int = 50) -> list:
    with get_db_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM stories ORDER BY created_at DESC, rowid DESC LIMIT ?", (limit,)
        ).fetchall()
    return [_story_from_row(r) for r in rows]


# ─── SETTINGS ──────────────────────────────────────────────────

def _settings_from_row(row) -> dict:
    d = dict(row)
    return {
        "averageLTV": d["average_ltv"],
        "averageConversionRate": d["average_conversion_rate"],
        "averageCPA": d["average_cpa"],
        "updatedAt": d["updated_at"],
    }


def get_settings() -> Optional[dict]:
    with get_db_conn() as conn:
        row = conn.execute("SELECT * FROM settings WHERE singleton=1").fetchone()
    return _settings_from_row(row) if row else None


def upsert_settings(average_ltv: float, average_conversion_rate: float,
                    average_cpa: float) -> dict:
    """Create or overwrite the settings document. Last write wins."""
    with get_db_conn() as conn:
        conn.execute("""
            INSERT INTO settings (singleton, average_ltv, average_conversion_rate, average_cpa, updated_at)
            VALUES (1, ?, ?, ?, ?)
            ON CONFLICT(singleton) DO UPDATE SET
                average_ltv=excluded.average_ltv,
                average_conversion_rate=excluded.average_conversion_rate,
                average_cpa=excluded.average_cpa,
                updated_at=excluded.updated_at
        """, (average_ltv, average_conversion_rate, average_cpa, _now()))
        conn.commit()
        row = conn.execute("SELECT * FROM settings WHERE singleton=1").fetchone()
    return _settings_from_row(row)


DEFAULT_BUSINESS_METRICS = {"averageLTV": 500.0, "averageConversionRate": 2.5, "averageCPA": 50.0}


def get_business_metrics() -> dict:
    """Baseline metrics for prompts: stored settings, or industry defaults when unset."""
    settings = get_settings()
    if not settings:
        return dict(DEFAULT_BUSINESS_METRICS, source="default")
    return {
        "averageLTV": settings["averageLTV"],
        "averageConversionRate": settings["averageConversionRate"],
        "averageCPA": settings["averageCPA"],
        "source": "settings",
    }


# ─── USERS ─────────────────────────────────────────────────────

def _user_from_row(row, include_hash: bool = False) -> dict:
    d = dict(row)
    user = {"id": d["id"], "name": d["name"], "email": d["email"], "createdAt": d["created_at"]}
    if include_hash:
        user["passwordHash"] = d["password_hash"]
    return user


def create_user(name: str, email: str, password_hash: Optional[str]) -> dict:
    """Create a user. Raises sqlite3.IntegrityError if the email is taken."""
    uid = gen_id("usr")
    with get_db_conn() as conn:
        conn.execute(
            "INSERT INTO users (id, name, email, password_hash, created_at) VALUES (?,?,?,?,?)",
            (uid, name, email.strip().lower(), password_hash, _now()),
        )
        conn.commit()
        row = conn.execute("SELECT * FROM users WHERE id=?", (uid,)).fetchone()
    return _user_from_row(row)


def get_user(user_id: str) -> Optional[dict]:
    with get_db_conn() as conn:
        row = conn.execute("SELECT * FROM users WHERE id=?", (user_id,)).fetchone()
    return _user_from_row(row) if row else None


def get_user_by_email(email: str, include_hash: bool = False) -> Optional[dict]:
    with get_db_conn() as conn:
        row = conn.execute("SELECT * FROM users WHERE email=?", (email.strip().lower(),)).fetchone()
    return _user_from_row(row, include_hash=include_hash) if row else None


# ─── HOUSEKEEPING ──────────────────────────────────────────────

CUSTOMER_DATA_TABLES = {
    "customerProfiles": "customer_profiles",
    "segments": "segments",
    "campaigns": "campaigns",
    "stories": "stories",
}


def clear_customer_data() -> dict:
    """Delete profiles, segments, campaigns and stories. Settings and users stay."""
    counts = {}
    with transaction() as conn:
        for key, table in CUSTOMER_DATA_TABLES.items():
            counts[key] = conn.execute(f"DELETE FROM {table}").rowcount
    logger.info("Cleared customer data: %s", counts)
    return counts


def collection_counts() -> dict:
    tables = list(CUSTOMER_DATA_TABLES.values()) + ["users", "flow_errors"]
    with get_db_conn() as conn:
        try:
            return {t: conn.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0] for t in tables}
        except sqlite3.OperationalError as e:
            logger.error("Collection count failed: %s", e)
            return {}
