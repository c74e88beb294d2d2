# Practice Back Office - Core Library
"""
Exports for the CLI and host applications.
"""

from .compliance import FilingStatus, assess, classify, summarize
from .scheduling import ConflictDetector, ConflictReport
from .store import Store, get_store
from .time_tracking import TimerController, TimerState

__all__ = [
    "FilingStatus",
    "assess",
    "classify",
    "summarize",
    "ConflictDetector",
    "ConflictReport",
    "Store",
    "get_store",
    "TimerController",
    "TimerState",
]
