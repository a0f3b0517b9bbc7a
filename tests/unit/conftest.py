"""Shared fixtures for unit tests."""

from __future__ import annotations

import pytest

from product_factory.config import Settings


@pytest.fixture
def fast_settings() -> Settings:
    """Settings without pacing delays between items or autocomplete requests."""
    return Settings(stage_item_delay_seconds=0, autocomplete_request_delay_seconds=0)
