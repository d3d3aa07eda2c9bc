from .config import StudyMatchConfig
from .database import SqlSnapshotStore
from .memory_store import InMemoryProfileDirectory, InMemorySnapshotStore
from .sweeper import SnapshotSweeper

__all__ = [
    "StudyMatchConfig",
    "SqlSnapshotStore",
    "InMemoryProfileDirectory",
    "InMemorySnapshotStore",
    "SnapshotSweeper",
]
