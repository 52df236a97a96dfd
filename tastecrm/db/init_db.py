"""
TasteCRM - Database Initialization
Creates all collections (tables) and indexes.

Collections are stored document-style: scalar fields as columns, lists and
nested objects as JSON text.
"""

import logging
import sqlite3

from tastecrm import config

logger = logging.getLogger("tastecrm.db")

SCHEMA_SQL = """
-- Customer profiles (one per imported CSV row)
CREATE TABLE IF NOT EXISTS customer_profiles (
    id TEXT PRIMARY KEY,
    age_range TEXT DEFAULT '',
    spending_level TEXT DEFAULT '',
    purchase_categories TEXT NOT NULL DEFAULT '[]',
    interaction_frequency TEXT DEFAULT '',
    cultural_dna TEXT,
    accuracy_feedback INTEGER NOT NULL DEFAULT 0 CHECK (accuracy_feedback IN (-1, 0, 1)),
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT DEFAULT (datetime('now')),
    -- a profile without purchase categories never carries DNA
    CHECK (cultural_dna IS NULL OR purchase_categories != '[]')
);

-- Generated segments (wholly replaced on each segmentation run)
CREATE TABLE IF NOT EXISTS segments (
    id TEXT PRIMARY KEY,
    segment_name TEXT NOT NULL,
    segment_size INTEGER NOT NULL,
    average_customer_value TEXT NOT NULL,
    top_cultural_characteristics TEXT NOT NULL DEFAULT '[]',
    communication_preferences TEXT NOT NULL,
    loved_product_categories TEXT NOT NULL DEFAULT '[]',
    best_marketing_channels TEXT NOT NULL DEFAULT '[]',
    sample_messaging TEXT NOT NULL,
    potential_lifetime_value TEXT NOT NULL,
    business_opportunity_rank INTEGER NOT NULL,
    bias_warning TEXT,
    actual_roi REAL,
    comparison_roi REAL,
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT DEFAULT (datetime('now'))
);

-- Campaign idea stubs produced alongside segments
CREATE TABLE IF NOT EXISTS campaigns (
    id TEXT PRIMARY KEY,
    target_segment TEXT NOT NULL,
    campaign_title TEXT NOT NULL,
    description TEXT NOT NULL,
    suggested_channels TEXT NOT NULL DEFAULT '[]',
    created_at TEXT DEFAULT (datetime('now'))
);

-- Trend narratives (append-only)
CREATE TABLE IF NOT EXISTS stories (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    narrative TEXT NOT NULL,
    key_data_points TEXT NOT NULL DEFAULT '[]',
    recommendation TEXT NOT NULL,
    created_at TEXT DEFAULT (datetime('now'))
);

-- Business baseline metrics (single document)
CREATE TABLE IF NOT EXISTS settings (
    singleton INTEGER PRIMARY KEY CHECK (singleton = 1),
    average_ltv REAL NOT NULL DEFAULT 0,
    average_conversion_rate REAL NOT NULL DEFAULT 0,
    average_cpa REAL NOT NULL DEFAULT 0,
    updated_at TEXT DEFAULT (datetime('now'))
);

-- Application users
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT,
    created_at TEXT DEFAULT (datetime('now'))
);

-- Non-fatal errors swallowed by the import pipeline
CREATE TABLE IF NOT EXISTS flow_errors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    flow TEXT NOT NULL,
    stage TEXT,
    row_index INTEGER,
    error_type TEXT,
    error_message TEXT,
    context TEXT DEFAULT '{}',
    severity TEXT DEFAULT 'warning',
    resolved INTEGER DEFAULT 0,
    created_at TEXT DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_segments_rank ON segments(business_opportunity_rank);
CREATE INDEX IF NOT EXISTS idx_segments_name ON segments(segment_name);
CREATE INDEX IF NOT EXISTS idx_stories_created ON stories(created_at);
CREATE INDEX IF NOT EXISTS idx_flow_errors_flow ON flow_errors(flow, resolved);
"""

EXPECTED_TABLES = [
    "campaigns", "customer_profiles", "flow_errors", "segments",
    "settings", "stories", "users",
]


def init_db(db_path=None):
    """Initialize the database with all tables and indexes."""
    path = db_path or config.DB_PATH
    conn = sqlite3.connect(path)
    conn.executescript(SCHEMA_SQL)
    conn.commit()

    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    )
    tables = [row[0] for row in cursor.fetchall()]
    logger.info("Database initialized at %s (%d tables)", path, len(tables))
    conn.close()
    return tables


def verify_db(db_path=None):
    """Verify the database schema is correct."""
    path = db_path or config.DB_PATH
    conn = sqlite3.connect(path)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    actual_tables = [row[0] for row in cursor.fetchall()]
    conn.close()

    missing = set(EXPECTED_TABLES) - set(actual_tables)
    if missing:
        print(f"FAIL: Missing tables: {missing}")
        return False

    print(f"PASS: All {len(EXPECTED_TABLES)} tables present")
    return True


if __name__ == "__main__":
    init_db()
    verify_db()
