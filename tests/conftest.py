"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults are set before any app module reads settings.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("N8N_WEBHOOK_URL", "http://webhook.test/search-referral")
os.environ.setdefault("VALIDATOR_MOCK", "false")
os.environ.setdefault("VALIDATOR_MOCK_DELAY_MS", "0")
os.environ.setdefault("VALIDATOR_TIMEOUT_MS", "2000")

import pytest

from app.core import rate_limit as rate_limit_module


@pytest.fixture(autouse=True)
def reset_rate_limiter(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give every test a fresh process-wide limiter."""
    monkeypatch.setattr(rate_limit_module, "_limiter", None)
    monkeypatch.setattr(rate_limit_module, "_limiter_config", None)
