"""
Tests for cluster filtering, ordering and single-threshold clustering runs.
"""

import numpy as np
import pytest

from src.x_news_clustering.clustering import build_clusters, cluster_snapshot
from src.x_news_clustering.similarity import SimilarityIndex
from src.x_news_clustering.vector import build_snapshot

from tests.factories import make_item


X = [1.0, 0.0, 0.0]
Y = [0.0, 1.0, 0.0]
Z = [0.0, 0.0, 1.0]


class TestBuildClusters:
    def test_size_filter(self):
        items = [make_item(i, hours=i) for i in range(5)]
        clusters = build_clusters([[0, 1, 2], [3, 4]], items, min_cluster_size=3, max_day_span=3)
        assert [c.item_ids for c in clusters] == [[0, 1, 2]]

    def test_span_filter_drops_long_components(self):
        # three near-identical items spread over ten days
        items = [make_item(i, hours=h) for i, h in enumerate([0, 120, 240])]
        assert build_clusters([[0, 1, 2]], items, min_cluster_size=2, max_day_span=3) == []

    def test_span_filter_is_inclusive(self):
        items = [make_item(0, hours=0), make_item(1, hours=72)]
        clusters = build_clusters([[0, 1]], items, min_cluster_size=2, max_day_span=3)
        assert len(clusters) == 1

    def test_ordering_by_earliest_and_dense_ids(self):
        items = [
            make_item("late-a", hours=10),
            make_item("late-b", hours=11),
            make_item("early-a", hours=1),
            make_item("early-b", hours=0),
        ]
        clusters = build_clusters([[0, 1], [2, 3]], items, min_cluster_size=2, max_day_span=3)

        assert [c.cluster_id for c in clusters] == [1, 2]
        assert clusters[0].item_ids == ["early-a", "early-b"]
        assert clusters[0].earliest_iso == "2026-03-01T12:00:00.000Z"
        assert clusters[0].latest_iso == "2026-03-01T13:00:00.000Z"
        assert clusters[1].item_ids == ["late-a", "late-b"]

    def test_equal_earliest_keeps_traversal_order(self):
        items = [make_item(i, hours=0) for i in range(4)]
        clusters = build_clusters([[2, 3], [0, 1]], items, min_cluster_size=2, max_day_span=3)
        assert [c.item_ids for c in clusters] == [[2, 3], [0, 1]]


class TestClusterSnapshot:
    def test_scenario_b_yields_zero_clusters(self):
        snapshot = build_snapshot(
            [make_item(i, X, hours=h) for i, h in enumerate([0, 120, 240])]
        )
        run = cluster_snapshot(snapshot, 0.86, min_cluster_size=2, max_day_span=3)
        assert run.clusters == []
        assert run.edge_count == 3

    def test_clusters_partition_members(self):
        items = [
            make_item(1, X, hours=5),
            make_item(2, Y, hours=0),
            make_item(3, X, hours=6),
            make_item(4, Z, hours=1),
            make_item(5, Y, hours=2),
        ]
        run = cluster_snapshot(build_snapshot(items), 0.9, min_cluster_size=2, max_day_span=3)

        assert [c.item_ids for c in run.clusters] == [[2, 5], [1, 3]]
        flat = [i for c in run.clusters for i in c.item_ids]
        assert len(flat) == len(set(flat))
        assert run.covered_item_ids == {1, 2, 3, 5}

    def test_items_without_embeddings_are_not_clustered(self):
        items = [
            make_item(1, X),
            make_item(2, X, hours=1),
            make_item(3, None),
            make_item(4, "not a vector"),
        ]
        snapshot = build_snapshot(items)
        run = cluster_snapshot(snapshot, 0.9, min_cluster_size=2, max_day_span=3)

        assert snapshot.eligible_count == 4
        assert snapshot.embedded_count == 2
        assert run.node_count == 2
        assert [c.item_ids for c in run.clusters] == [[1, 2]]

    def test_precomputed_edges_are_refiltered(self):
        items = [make_item(i, v, hours=i) for i, v in enumerate([X, [0.8, 0.6, 0.0], Y])]
        snapshot = build_snapshot(items)
        edges = SimilarityIndex(snapshot.vectors).edges_at_or_above(0.5)

        loose = cluster_snapshot(snapshot, 0.5, 2, 3, edges=edges)
        tight = cluster_snapshot(snapshot, 0.9, 2, 3, edges=edges)
        assert loose.threshold == 0.5
        assert [c.item_ids for c in loose.clusters] == [[0, 1, 2]]
        assert tight.clusters == []

    def test_edges_from_other_snapshot_rejected(self):
        snapshot = build_snapshot([make_item(i, X) for i in range(3)])
        other = SimilarityIndex(np.array([X, Y])).edges_at_or_above(0.5)
        with pytest.raises(ValueError, match="different snapshot"):
            cluster_snapshot(snapshot, 0.5, 2, 3, edges=other)

    def test_empty_snapshot(self):
        run = cluster_snapshot(build_snapshot([]), 0.86, 2, 3)
        assert run.clusters == []
        assert run.node_count == 0
