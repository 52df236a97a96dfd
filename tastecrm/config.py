"""
Centralized Configuration - Single source of truth for all settings.

All environment variables are read here, validated, and exposed as module-level
constants. Other modules import from here instead of reading os.environ directly.

Usage:
    from tastecrm.config import DB_PATH, OLLAMA_HOST, LOG_LEVEL
"""

import os
import sys

# ─── PATHS ───────────────────────────────────────────────────

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# ─── DATABASE ────────────────────────────────────────────────

DB_PATH = os.environ.get("CRM_DB_PATH", os.path.join(PROJECT_ROOT, "tastecrm.db"))
DB_JOURNAL_MODE = os.environ.get("CRM_JOURNAL_MODE", "WAL")

# ─── GENERATIVE MODEL ────────────────────────────────────────

OLLAMA_HOST = os.environ.get("OLLAMA_HOST", "http://127.0.0.1:11434")
OLLAMA_MODEL = os.environ.get("OLLAMA_MODEL", "qwen2.5:7b")
OLLAMA_TIMEOUT = int(os.environ.get("OLLAMA_TIMEOUT_SECONDS", "120"))
LLM_API_KEY = os.environ.get("LLM_API_KEY", "")  # sent as Bearer for hosted endpoints

# ─── TASTE CORRELATION API ───────────────────────────────────

QLOO_API_URL = os.environ.get("QLOO_API_URL", "")
QLOO_API_KEY = os.environ.get("QLOO_API_KEY", "")
QLOO_CLIENT_ID = os.environ.get("QLOO_CLIENT_ID", "")
QLOO_CLIENT_SECRET = os.environ.get("QLOO_CLIENT_SECRET", "")
QLOO_TOKEN_URL = os.environ.get("QLOO_TOKEN_URL", "https://accounts.qloo.com/oauth2/token")
QLOO_TIMEOUT = int(os.environ.get("QLOO_TIMEOUT_SECONDS", "10"))

# ─── API ─────────────────────────────────────────────────────

API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "8000"))
DEV_SESSION_SECRET = "dev-session-secret"
SESSION_SECRET = os.environ.get("SESSION_SECRET", DEV_SESSION_SECRET)
CORS_ORIGINS = os.environ.get("CRM_CORS_ORIGINS", "http://localhost:3000,http://localhost:8000").split(",")

# ─── ANALYZERS ───────────────────────────────────────────────

SEGMENT_PROFILE_CAP = int(os.environ.get("SEGMENT_PROFILE_CAP", "100"))
ANALYTICS_PROFILE_CAP = int(os.environ.get("ANALYTICS_PROFILE_CAP", "100"))
CALENDAR_PROFILE_CAP = int(os.environ.get("CALENDAR_PROFILE_CAP", "50"))

# ─── LOGGING ─────────────────────────────────────────────────

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "text" or "json"
LOG_FILE = os.environ.get("LOG_FILE", "")  # empty = stdout only

# ─── VALIDATION ──────────────────────────────────────────────

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_LOG_FORMATS = {"text", "json"}
_VALID_JOURNAL_MODES = {"WAL", "DELETE", "MEMORY", "OFF"}

_errors = []

if LOG_LEVEL not in _VALID_LOG_LEVELS:
    _errors.append(f"LOG_LEVEL must be one of {_VALID_LOG_LEVELS}, got '{LOG_LEVEL}'")

if LOG_FORMAT not in _VALID_LOG_FORMATS:
    _errors.append(f"LOG_FORMAT must be one of {_VALID_LOG_FORMATS}, got '{LOG_FORMAT}'")

if DB_JOURNAL_MODE not in _VALID_JOURNAL_MODES:
    _errors.append(f"CRM_JOURNAL_MODE must be one of {_VALID_JOURNAL_MODES}, got '{DB_JOURNAL_MODE}'")

if OLLAMA_TIMEOUT < 1:
    _errors.append(f"OLLAMA_TIMEOUT_SECONDS must be positive, got {OLLAMA_TIMEOUT}")

if QLOO_TIMEOUT < 1:
    _errors.append(f"QLOO_TIMEOUT_SECONDS must be positive, got {QLOO_TIMEOUT}")

for _name, _cap in (("SEGMENT_PROFILE_CAP", SEGMENT_PROFILE_CAP),
                    ("ANALYTICS_PROFILE_CAP", ANALYTICS_PROFILE_CAP),
                    ("CALENDAR_PROFILE_CAP", CALENDAR_PROFILE_CAP)):
    if _cap < 1:
        _errors.append(f"{_name} must be positive, got {_cap}")

if not SESSION_SECRET or SESSION_SECRET == DEV_SESSION_SECRET:
    _errors.append("SESSION_SECRET is not set; session cookies would be signed with the public development key")

if not QLOO_API_URL:
    _errors.append("QLOO_API_URL is not set; cultural DNA will fall back to low-confidence placeholders")

if _errors:
    for e in _errors:
        print(f"[config] ERROR: {e}", file=sys.stderr)
    # Don't crash during import - scripts and tests may not need all config


def validate(strict: bool = False) -> list:
    """Validate all configuration settings.

    Args:
        strict: If True, raise ValueError on any errors.

    Returns:
        List of error messages (empty if all valid).
    """
    if strict and _errors:
        raise ValueError(f"Configuration errors: {'; '.join(_errors)}")
    return list(_errors)


def _mask(secret: str) -> str:
    if not secret:
        return "(not set)"
    return secret[:3] + "*" * max(len(secret) - 3, 3)


def print_config():
    """Print current configuration (secrets masked)."""
    print("=" * 50)
    print("TasteCRM Configuration")
    print("=" * 50)
    print(f"  DB_PATH:               {DB_PATH}")
    print(f"  DB_JOURNAL_MODE:       {DB_JOURNAL_MODE}")
    print(f"  OLLAMA_HOST:           {OLLAMA_HOST}")
    print(f"  OLLAMA_MODEL:          {OLLAMA_MODEL}")
    print(f"  OLLAMA_TIMEOUT:        {OLLAMA_TIMEOUT}s")
    print(f"  LLM_API_KEY:           {_mask(LLM_API_KEY)}")
    print(f"  QLOO_API_URL:          {QLOO_API_URL or '(not set)'}")
    print(f"  QLOO_API_KEY:          {_mask(QLOO_API_KEY)}")
    print(f"  QLOO_CLIENT_ID:        {_mask(QLOO_CLIENT_ID)}")
    print(f"  QLOO_TIMEOUT:          {QLOO_TIMEOUT}s")
    print(f"  API_HOST:              {API_HOST}")
    print(f"  API_PORT:              {API_PORT}")
    print(f"  SESSION_SECRET:        {_mask(SESSION_SECRET)}")
    print(f"  LOG_LEVEL:             {LOG_LEVEL}")
    print(f"  LOG_FORMAT:            {LOG_FORMAT}")
    print(f"  SEGMENT_PROFILE_CAP:   {SEGMENT_PROFILE_CAP}")
    print(f"  ANALYTICS_PROFILE_CAP: {ANALYTICS_PROFILE_CAP}")
    print(f"  CALENDAR_PROFILE_CAP:  {CALENDAR_PROFILE_CAP}")
    print(f"  PROJECT_ROOT:          {PROJECT_ROOT}")
    print("=" * 50)
