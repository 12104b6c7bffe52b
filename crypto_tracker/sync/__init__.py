"""Client-side synchronisation: cache-first loads, selection tracking and timers."""
from .orchestrator import FetchOutcome, SyncOrchestrator
from .scheduler import Debouncer, RepeatingTimer, Scheduler
from .selection import SelectionContext, SelectionTag
from .source import DataSource
from .state import ViewState

__all__ = [
    "DataSource",
    "Debouncer",
    "FetchOutcome",
    "RepeatingTimer",
    "Scheduler",
    "SelectionContext",
    "SelectionTag",
    "SyncOrchestrator",
    "ViewState",
]
