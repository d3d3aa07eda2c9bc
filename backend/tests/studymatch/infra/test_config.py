"""Tests for StudyMatchConfig."""

from __future__ import annotations

import pytest

from studymatch.core.errors import ConfigError
from studymatch.infra.config import StudyMatchConfig


class TestStudyMatchConfig:
    def test_default_values(self):
        config = StudyMatchConfig()
        assert config.default_max_results == 20
        assert config.default_min_score == 60
        assert config.cache_window_hours == 24.0
        assert config.snapshot_ttl_days == 7.0
        assert config.algorithm_version == "2.0"
        assert config.user_quota_share == 0.6
        assert config.database_url == "sqlite:///:memory:"
        assert config.log_level == "INFO"
        assert config.profiles_file is None

    def test_loads_from_env(self, monkeypatch):
        monkeypatch.setenv("STUDYMATCH_DEFAULT_MIN_SCORE", "70")
        monkeypatch.setenv("STUDYMATCH_CACHE_WINDOW_HOURS", "12")
        monkeypatch.setenv("STUDYMATCH_DATABASE_URL", "sqlite:///./studymatch.db")
        monkeypatch.setenv("STUDYMATCH_PROFILES_FILE", "/srv/studymatch/profiles.json")

        config = StudyMatchConfig()
        assert config.default_min_score == 70
        assert config.cache_window_hours == 12.0
        assert config.database_url == "sqlite:///./studymatch.db"
        assert config.profiles_file == "/srv/studymatch/profiles.json"

    def test_default_scoring_weights(self):
        weights = StudyMatchConfig().scoring_weights()
        assert (weights.subject, weights.schedule, weights.experience) == (0.30, 0.25, 0.20)
        assert (weights.study_style, weights.goals) == (0.15, 0.10)

    def test_weights_from_env(self, monkeypatch):
        monkeypatch.setenv("STUDYMATCH_WEIGHT_SUBJECT", "0.40")
        monkeypatch.setenv("STUDYMATCH_WEIGHT_GOALS", "0.00")

        weights = StudyMatchConfig().scoring_weights()
        assert weights.subject == 0.40
        assert weights.goals == 0.0

    def test_weights_not_summing_to_one(self, monkeypatch):
        monkeypatch.setenv("STUDYMATCH_WEIGHT_SUBJECT", "0.90")

        with pytest.raises(ConfigError):
            StudyMatchConfig().scoring_weights()
