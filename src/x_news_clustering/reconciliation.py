"""Compare fresh clusters with the persisted clustering."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from .errors import ClusterEvalError, ReconciliationError
from .models import (
    Cluster,
    MappedPersistedCluster,
    PersistedClusterMeta,
    ReconciliationVerdict,
    ScoredCluster,
    VerdictKind,
)
from .storage.protocols import PersistedClusterStore

logger = logging.getLogger(__name__)

NO_HEADLINE = "(no headline)"


def compare_cluster(
    cluster: Cluster,
    assignments: Dict[Any, Any],
    meta: Dict[Any, PersistedClusterMeta],
) -> ReconciliationVerdict:
    """Build the verdict for one cluster from preloaded lookups.

    Mapped persisted clusters are ranked by overlap, descending; ties keep the
    order in which the persisted id was first seen among the members.
    """
    overlap: Dict[Any, int] = {}
    unassigned = 0
    for item_id in cluster.item_ids:
        persisted_id = assignments.get(item_id)
        if not persisted_id:
            unassigned += 1
            continue
        overlap[persisted_id] = overlap.get(persisted_id, 0) + 1

    ranked = sorted(overlap.items(), key=lambda kv: kv[1], reverse=True)
    mapped = []
    for persisted_id, count in ranked:
        info: Optional[PersistedClusterMeta] = meta.get(persisted_id)
        mapped.append(
            MappedPersistedCluster(
                id=persisted_id,
                overlap=count,
                persisted_total=info.member_count if info else None,
                headline=(info.headline if info and info.headline else NO_HEADLINE),
                is_story=bool(info.is_story) if info else False,
            )
        )

    return ReconciliationVerdict(
        kind=VerdictKind.classify(len(mapped), unassigned),
        unassigned=unassigned,
        mapped=tuple(mapped),
    )


class Reconciler:
    """Attach reconciliation verdicts to scored clusters.

    All member ids are looked up in one pass so the store sees a handful of
    chunked requests regardless of cluster count.
    """

    def __init__(self, store: PersistedClusterStore):
        self.store = store

    def reconcile(self, scored: Sequence[ScoredCluster]) -> List[ScoredCluster]:
        if not scored:
            return []

        item_ids: List[Any] = []
        seen = set()
        for entry in scored:
            for item_id in entry.cluster.item_ids:
                if item_id not in seen:
                    seen.add(item_id)
                    item_ids.append(item_id)

        try:
            assignments = self.store.load_assignments(item_ids)
            persisted_ids = list(dict.fromkeys(v for v in assignments.values() if v))
            meta = self.store.load_cluster_meta(persisted_ids) if persisted_ids else {}
        except ClusterEvalError:
            raise
        except Exception as e:
            raise ReconciliationError(f"Persistent lookup failed: {e}") from e

        logger.info(
            f"Reconciling {len(scored)} clusters against {len(persisted_ids)} persisted clusters "
            f"({len(assignments)}/{len(item_ids)} items assigned)"
        )
        return [
            replace(entry, verdict=compare_cluster(entry.cluster, assignments, meta))
            for entry in scored
        ]


def verdict_tally(scored: Sequence[ScoredCluster]) -> Dict[str, int]:
    """Count clusters per verdict plus the total of unassigned member slots."""
    tally = {kind.value: 0 for kind in VerdictKind}
    unassigned = 0
    for entry in scored:
        if entry.verdict is None:
            continue
        tally[entry.verdict.kind.value] += 1
        unassigned += entry.verdict.unassigned
    tally["unassigned_items"] = unassigned
    return tally
