"""Client-side key-value persistence."""
from .json_codec import dump_json, load_json
from .kv_store import KeyValueBackend, MemoryBackend, SqliteBackend
from .preferences import PreferenceStore, ViewMode

__all__ = [
    "KeyValueBackend",
    "MemoryBackend",
    "PreferenceStore",
    "SqliteBackend",
    "ViewMode",
    "dump_json",
    "load_json",
]
