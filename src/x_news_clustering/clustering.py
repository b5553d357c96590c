"""
Threshold clustering: graph components filtered into ordered clusters.

A clustering run takes the snapshot's embedded items, keeps every pair scoring
at or above the threshold, extracts connected components and turns the ones
that pass the size and time-span filters into clusters with dense 1-based ids
ordered by earliest timestamp.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .graph import SimilarityGraph
from .models import Cluster, EligibleItem, to_iso
from .similarity import EdgeList, SimilarityIndex
from .vector import ItemSnapshot

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400.0


@dataclass(frozen=True)
class ClusteringRun:
    """Clusters produced for one threshold plus timing."""

    threshold: float
    clusters: List[Cluster]
    node_count: int
    edge_count: int
    elapsed_s: float

    @property
    def covered_item_ids(self) -> set:
        return {item_id for cluster in self.clusters for item_id in cluster.item_ids}


def build_clusters(
    components: Sequence[Sequence[int]],
    items: Sequence[EligibleItem],
    min_cluster_size: int,
    max_day_span: float,
) -> List[Cluster]:
    """Filter components by size and span, order them, and assign ids.

    Args:
        components: Lists of indices into ``items``
        items: The embedded items the graph was built over
        min_cluster_size: Components with fewer members are dropped
        max_day_span: Components whose latest minus earliest timestamp exceeds
            this many days are dropped

    Returns:
        Clusters sorted by earliest timestamp with ids 1..n
    """
    survivors: List[Cluster] = []
    dropped_size = 0
    dropped_span = 0

    for component in components:
        if len(component) < min_cluster_size:
            dropped_size += 1
            continue

        members = tuple(items[idx] for idx in component)
        times = [item.timestamp for item in members if item.timestamp is not None]
        earliest = min(times) if times else None
        latest = max(times) if times else None
        span_days = (latest - earliest).total_seconds() / SECONDS_PER_DAY if times else 0.0

        if span_days > max_day_span:
            dropped_span += 1
            continue

        survivors.append(Cluster(cluster_id=0, members=members, earliest=earliest, latest=latest))

    # sorted() is stable, so equal timestamps keep traversal order
    survivors = sorted(survivors, key=lambda c: to_iso(c.earliest) or "")
    clusters = [
        Cluster(cluster_id=seq, members=c.members, earliest=c.earliest, latest=c.latest)
        for seq, c in enumerate(survivors, start=1)
    ]

    if dropped_size or dropped_span:
        logger.debug(
            f"Dropped {dropped_size} components below size {min_cluster_size} "
            f"and {dropped_span} spanning more than {max_day_span} days"
        )
    return clusters


def cluster_snapshot(
    snapshot: ItemSnapshot,
    threshold: float,
    min_cluster_size: int,
    max_day_span: float,
    *,
    edges: Optional[EdgeList] = None,
    block_size: int = 512,
    max_workers: int = 1,
) -> ClusteringRun:
    """Run graph build, component extraction and filtering for one threshold.

    Args:
        snapshot: Loaded items; never modified
        threshold: Minimum cosine similarity for an edge (inclusive)
        min_cluster_size: Minimum members per cluster
        max_day_span: Maximum days between earliest and latest member
        edges: Precomputed edges cut at or below ``threshold``; when given no
            similarity is recomputed
        block_size: Row block size for similarity scoring
        max_workers: Threads for similarity scoring

    Returns:
        ClusteringRun for this threshold
    """
    start = time.perf_counter()

    if edges is None:
        index = SimilarityIndex(snapshot.vectors, block_size=block_size, max_workers=max_workers)
        edges = index.edges_at_or_above(threshold)
    elif edges.node_count != snapshot.embedded_count:
        raise ValueError("edges were computed for a different snapshot")

    active = edges.at_or_above(threshold) if edges.threshold != threshold else edges
    graph = SimilarityGraph.from_edges(active)
    components = graph.connected_components()
    clusters = build_clusters(components, snapshot.embedded, min_cluster_size, max_day_span)

    elapsed = time.perf_counter() - start
    logger.info(
        f"threshold={threshold:.2f}: {len(clusters)} clusters from "
        f"{snapshot.embedded_count} embedded items ({len(active)} edges) in {elapsed:.2f}s"
    )
    return ClusteringRun(
        threshold=threshold,
        clusters=clusters,
        node_count=snapshot.embedded_count,
        edge_count=len(active),
        elapsed_s=elapsed,
    )
