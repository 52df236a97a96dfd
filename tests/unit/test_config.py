"""
Unit tests for environment configuration validation.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))

import importlib

import pytest

from tastecrm import config


@pytest.fixture
def reload_config(monkeypatch):
    """Re-read tastecrm.config under patched env; restores it afterwards."""
    def _reload(**env):
        for name, value in env.items():
            if value is None:
                monkeypatch.delenv(name, raising=False)
            else:
                monkeypatch.setenv(name, value)
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)


def _session_errors(errors):
    return [e for e in errors if "SESSION_SECRET" in e]


# ─── SESSION SECRET ───────────────────────────────────────────

def test_missing_session_secret_is_an_error(reload_config):
    cfg = reload_config(SESSION_SECRET=None)
    assert cfg.SESSION_SECRET == cfg.DEV_SESSION_SECRET
    assert _session_errors(cfg.validate())
    with pytest.raises(ValueError, match="SESSION_SECRET"):
        cfg.validate(strict=True)


def test_development_session_secret_is_an_error(reload_config):
    cfg = reload_config(SESSION_SECRET="dev-session-secret")
    assert _session_errors(cfg.validate())


def test_explicit_session_secret_passes(reload_config):
    cfg = reload_config(SESSION_SECRET="a-long-random-value", QLOO_API_URL="https://taste.test",
                        LOG_LEVEL="INFO", LOG_FORMAT="text", CRM_JOURNAL_MODE="WAL")
    assert cfg.SESSION_SECRET == "a-long-random-value"
    assert cfg.validate(strict=True) == []


# ─── OTHER CHECKS ─────────────────────────────────────────────

def test_bad_log_level_reported(reload_config):
    cfg = reload_config(SESSION_SECRET="s3cret", LOG_LEVEL="chatty")
    assert any("LOG_LEVEL" in e for e in cfg.validate())


def test_nonpositive_cap_reported(reload_config):
    cfg = reload_config(SESSION_SECRET="s3cret", SEGMENT_PROFILE_CAP="0")
    assert any("SEGMENT_PROFILE_CAP" in e for e in cfg.validate())


def test_print_config_masks_secrets(reload_config, capsys):
    cfg = reload_config(SESSION_SECRET="supersecretvalue", QLOO_API_KEY="qk-abcdef")
    cfg.print_config()
    out = capsys.readouterr().out
    assert "supersecretvalue" not in out
    assert "qk-abcdef" not in out
    assert "sup" in out
