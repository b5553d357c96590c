"""Storage protocols consumed by the cluster evaluation engine."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from ..models import EligibleItem, PersistedClusterMeta


@runtime_checkable
class ItemSource(Protocol):
    """Source of the eligible item set for a lookback window.

    Implementations must either return the complete set or raise
    ``ItemSourceError``; a partially loaded window is never returned.
    """

    def load_eligible_items(self, since: Optional[datetime]) -> List[EligibleItem]:
        ...


@runtime_checkable
class PersistedClusterStore(Protocol):
    """Read-only access to a previously persisted clustering.

    Both lookups raise ``ReconciliationError`` on any failure.
    """

    def load_assignments(self, item_ids: Sequence[Any]) -> Dict[Any, Any]:
        """Map item id to persisted cluster id; unassigned items are absent."""
        ...

    def load_cluster_meta(self, cluster_ids: Sequence[Any]) -> Dict[Any, PersistedClusterMeta]:
        ...
