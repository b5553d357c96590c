"""Read access to the persisted clustering in Supabase."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from ..errors import ReconciliationError
from ..models import PersistedClusterMeta

logger = logging.getLogger(__name__)


class SupabasePersistedClusterStore:
    """Look up persisted cluster assignments and metadata.

    Args:
        client: Supabase client
        assignments_table: Table mapping ``tweet_id`` to ``cluster_id``
        clusters_table: Table holding cluster headline, size and story flag
        assignment_chunk_size: Item ids per assignment request
        meta_chunk_size: Cluster ids per metadata request
    """

    def __init__(
        self,
        client: Any,
        assignments_table: str = "x_news_cluster_tweets",
        clusters_table: str = "x_news_clusters",
        assignment_chunk_size: int = 300,
        meta_chunk_size: int = 200,
    ):
        self.supabase = client
        self.assignments_table = assignments_table
        self.clusters_table = clusters_table
        self.assignment_chunk_size = max(1, assignment_chunk_size)
        self.meta_chunk_size = max(1, meta_chunk_size)

    def load_assignments(self, item_ids: Sequence[Any]) -> Dict[Any, Any]:
        """Map item id to persisted cluster id for every assigned item.

        Raises:
            ReconciliationError: If any chunk fails to load
        """
        rows = self._fetch_in_chunks(
            self.assignments_table,
            "tweet_id,cluster_id",
            "tweet_id",
            item_ids,
            self.assignment_chunk_size,
            "Persistent assignment load failed",
        )
        assignments = {
            row["tweet_id"]: row["cluster_id"]
            for row in rows
            if row.get("tweet_id") is not None and row.get("cluster_id") is not None
        }
        logger.info(f"Loaded persisted assignments for {len(assignments)}/{len(item_ids)} items")
        return assignments

    def load_cluster_meta(self, cluster_ids: Sequence[Any]) -> Dict[Any, PersistedClusterMeta]:
        """Load headline, size and story flag per persisted cluster.

        Raises:
            ReconciliationError: If any chunk fails to load
        """
        rows = self._fetch_in_chunks(
            self.clusters_table,
            "id,normalized_headline,tweet_count,is_story_candidate",
            "id",
            cluster_ids,
            self.meta_chunk_size,
            "Persistent cluster load failed",
        )
        return {row["id"]: PersistedClusterMeta.from_db(row) for row in rows if row.get("id") is not None}

    def _fetch_in_chunks(
        self,
        table: str,
        columns: str,
        key: str,
        values: Sequence[Any],
        chunk_size: int,
        failure: str,
    ) -> List[Dict[str, Any]]:
        values = list(values)
        rows: List[Dict[str, Any]] = []
        for index in range(0, len(values), chunk_size):
            chunk = values[index : index + chunk_size]
            try:
                response = self.supabase.table(table).select(columns).in_(key, chunk).execute()
            except Exception as e:
                raise ReconciliationError(f"{failure}: {e}") from e
            rows.extend(response.data or [])
        return rows
