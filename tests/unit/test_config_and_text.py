"""Unit tests for settings validation and text helpers."""

import pytest
from pydantic import ValidationError

from product_factory.config import Settings
from product_factory.core.text import content_hash, slugify


def test_default_score_weights_sum_to_one() -> None:
    assert sum(Settings().score_weights.values()) == pytest.approx(1.0)


def test_score_weights_must_sum_to_one() -> None:
    with pytest.raises(ValidationError):
        Settings(score_weights={"novelty": 0.5, "demand": 0.4})


def test_score_weights_must_be_non_negative() -> None:
    with pytest.raises(ValidationError):
        Settings(score_weights={"novelty": 1.5, "demand": -0.5})


def test_database_url_is_normalized_to_asyncpg() -> None:
    config = Settings(database_url="postgres://user:pw@db:5432/factory")

    assert config.database_url == "postgresql+asyncpg://user:pw@db:5432/factory"


def test_model_rate_tiers() -> None:
    config = Settings()

    assert config.is_cheap_model("gemini-2.0-flash")
    assert config.is_cheap_model("gpt-4o-mini")
    assert not config.is_cheap_model("claude-sonnet-4")
    assert config.get_model_rates("claude-sonnet-4") == (config.cost_quality_input_per_1k, config.cost_quality_output_per_1k)


def test_slugify() -> None:
    assert slugify("Seedance 2.0: Prompt Library!") == "seedance-2-0-prompt-library"
    assert slugify("") == ""
    assert len(slugify("word " * 40)) == 80


def test_content_hash_ignores_case_and_whitespace() -> None:
    assert content_hash("  Seedance 2.0 ", "hackernews") == content_hash("seedance 2.0", "hackernews")
    assert content_hash("Seedance 2.0", "hackernews") != content_hash("Seedance 2.0", "github")
