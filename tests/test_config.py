import logging

import colorlog
import pytest
from pydantic import ValidationError

from recohub.core.config import Settings, get_settings
from recohub.core.logging import configure_logging
from recohub.domain.services.constants import DEFAULT_KNN_NEIGHBORS, DEFAULT_MIN_PRODUCTS_FOR_ML, STRATEGY_HYBRID


def test_defaults():
    s = Settings(_env_file=None)
    assert s.RECOMMENDATION_FALLBACK_STRATEGY == "hybrid"
    assert s.RECOMMENDATION_MIN_PRODUCTS_FOR_ML == 5
    assert s.RECOMMENDATION_KNN_NEIGHBORS == 5
    assert s.MONGO_URI is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("RECOMMENDATION_FALLBACK_STRATEGY", "category_only")
    monkeypatch.setenv("RECOMMENDATION_MIN_PRODUCTS_FOR_ML", "12")
    s = Settings(_env_file=None)
    assert s.RECOMMENDATION_FALLBACK_STRATEGY == "category_only"
    assert s.RECOMMENDATION_MIN_PRODUCTS_FOR_ML == 12


def test_threshold_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, RECOMMENDATION_MIN_PRODUCTS_FOR_ML=0)


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
        assert get_settings().APP_ENV == "production"
    finally:
        get_settings.cache_clear()


def test_configure_logging_installs_color_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(logging.DEBUG)
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, colorlog.ColoredFormatter)
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)


def test_recommendation_defaults_follow_pipeline_constants():
    s = Settings(_env_file=None)
    assert s.RECOMMENDATION_MIN_PRODUCTS_FOR_ML == DEFAULT_MIN_PRODUCTS_FOR_ML
    assert s.RECOMMENDATION_KNN_NEIGHBORS == DEFAULT_KNN_NEIGHBORS
    assert s.RECOMMENDATION_FALLBACK_STRATEGY == STRATEGY_HYBRID
