"""
Unified exception hierarchy for StudyMatch.

All exceptions inherit from StudyMatchError. Callers map each kind to
their own status codes; the core only guarantees the kinds are distinct.
"""


class StudyMatchError(Exception):
    """Base exception for all StudyMatch errors."""
    pass


class NotFoundError(StudyMatchError):
    """A user, group, snapshot or candidate id could not be resolved."""
    pass


class ProfileIncompleteError(StudyMatchError):
    """Required profile fields are missing, so matching is blocked."""
    pass


class InvalidOptionError(StudyMatchError):
    """A caller-supplied option is out of range (min_score, max_results, ...)."""
    pass


class StorageError(StudyMatchError):
    """Collaborator I/O failure. Never retried by the core."""
    pass


class ConfigError(StudyMatchError):
    """Configuration error (weights not summing to 1.0, bad env values, etc.)."""
    pass
