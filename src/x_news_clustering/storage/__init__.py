from .item_source import JsonFileItemSource, SupabaseItemSource, merge_by_id
from .persisted_store import SupabasePersistedClusterStore
from .protocols import ItemSource, PersistedClusterStore

__all__ = [
    "ItemSource",
    "PersistedClusterStore",
    "SupabaseItemSource",
    "JsonFileItemSource",
    "SupabasePersistedClusterStore",
    "merge_by_id",
]
