"""
Configuration management using pydantic-settings.

All StudyMatch settings are loaded from environment variables
with the STUDYMATCH_ prefix.
"""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings

from studymatch.core.scorer import ScoringWeights


class StudyMatchConfig(BaseSettings):
    """
    StudyMatch configuration.

    Environment variables are prefixed with STUDYMATCH_, e.g.:
    - STUDYMATCH_WEIGHT_SUBJECT=0.35
    - STUDYMATCH_DATABASE_URL=sqlite:///./data/studymatch.db
    """

    model_config = {"env_prefix": "STUDYMATCH_"}

    # Scoring weights (must sum to 1.0)
    weight_subject: float = 0.30
    weight_schedule: float = 0.25
    weight_experience: float = 0.20
    weight_study_style: float = 0.15
    weight_goals: float = 0.10

    def scoring_weights(self) -> ScoringWeights:
        """Immutable weights for the scorer. Raises ConfigError if invalid."""
        return ScoringWeights(
            subject=self.weight_subject,
            schedule=self.weight_schedule,
            experience=self.weight_experience,
            study_style=self.weight_study_style,
            goals=self.weight_goals,
        )

    # Match requests
    default_max_results: int = 20
    default_min_score: int = 60
    user_quota_share: float = 0.6
    user_candidate_multiplier: int = 3
    group_candidate_multiplier: int = 2

    # Snapshots
    algorithm_version: str = "2.0"
    cache_window_hours: float = 24.0
    snapshot_ttl_days: float = 7.0
    sweep_interval_seconds: float = 3600.0

    # Group suggestions
    suggestion_min_size: int = 3
    suggestion_max_size: int = 6
    suggestion_pool_limit: int = 100

    # Infra
    # JSON document of {"users": [...], "groups": [...]} served by the
    # default in-memory profile directory.
    profiles_file: Optional[str] = None
    database_url: str = "sqlite:///:memory:"
    log_level: str = "INFO"
