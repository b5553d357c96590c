"""
Tests for report building, writing and console rendering.
"""

import json

import pytest

from src.x_news_clustering.models import (
    Cluster,
    ClusterMetrics,
    MappedPersistedCluster,
    ReconciliationVerdict,
    ScoredCluster,
    SweepResult,
    VerdictKind,
)
from src.x_news_clustering.report import LATEST_NAME, ReportEmitter, report_filename, size_distribution

from tests.factories import BASE_TIME, make_item


def scored(cluster_id, size, coherence, *, story=False, promo=False, verdict=None, start=0):
    items = tuple(make_item(start + i, headline=f"headline {start + i}", hours=i) for i in range(size))
    return ScoredCluster(
        cluster=Cluster(cluster_id=cluster_id, members=items, earliest=items[0].timestamp, latest=items[-1].timestamp),
        metrics=ClusterMetrics(
            coherence=coherence,
            unique_authors=1,
            span_hours=float(size - 1),
            is_story_candidate=story,
            likely_promo=promo,
        ),
        verdict=verdict,
    )


@pytest.fixture
def clusters():
    return [
        scored(1, 2, 0.5, start=0),
        scored(2, 3, 0.05, story=True, start=10),
        scored(3, 21, 0.2, story=True, promo=True, start=100),
        scored(4, 2, None, start=200),
        scored(5, 4, 0.9, story=True, start=300),
    ]


class TestSummary:
    def test_aggregates(self, clusters):
        summary = ReportEmitter().summarize(clusters, eligible_count=100, embedded_count=90)

        assert summary["eligible_items"] == 100
        assert summary["embedded_items"] == 90
        assert summary["total_clusters"] == 5
        assert summary["unique_items_covered"] == 32
        assert summary["coverage_pct"] == 32.0
        assert summary["story_candidates"] == 3
        assert summary["avg_cluster_size"] == 6.4
        assert summary["max_cluster_size"] == 21
        # coherences 0.05, 0.2, 0.5, 0.9 (None excluded)
        assert summary["avg_coherence"] == pytest.approx(0.4125)
        assert summary["median_coherence"] == 0.5
        assert summary["low_coherence_count"] == 1
        assert summary["mega_cluster_count"] == 1
        assert summary["promo_flagged_count"] == 1
        assert summary["size_distribution"] == {"2": 2, "3-5": 2, "6-10": 0, "11-20": 0, "21+": 1}
        assert "verdicts" not in summary

    def test_low_coherence_needs_three_members(self):
        entry = scored(1, 2, 0.01)
        assert not ReportEmitter().is_low_coherence(entry)
        assert ReportEmitter().is_low_coherence(scored(1, 3, 0.01))
        assert not ReportEmitter().is_low_coherence(scored(1, 3, None))

    def test_mega_is_strictly_more_than_twenty(self):
        assert not ReportEmitter().is_mega(scored(1, 20, 0.5))
        assert ReportEmitter().is_mega(scored(1, 21, 0.5))

    def test_zero_clusters(self):
        summary = ReportEmitter().summarize([], eligible_count=0, embedded_count=0)
        assert summary["total_clusters"] == 0
        assert summary["coverage_pct"] == 0.0
        assert summary["avg_cluster_size"] == 0.0
        assert summary["max_cluster_size"] == 0
        assert summary["avg_coherence"] is None
        assert summary["median_coherence"] is None

    def test_size_distribution_buckets(self):
        assert size_distribution([2, 5, 6, 20, 25]) == {"2": 1, "3-5": 1, "6-10": 1, "11-20": 1, "21+": 1}


class TestBuild:
    def test_document_shape(self, clusters):
        sweep = [SweepResult(0.8, 3, 2.5, 4, 1, 12.3456, 0.01)]
        report = ReportEmitter().build(
            clusters,
            eligible_count=100,
            embedded_count=90,
            params={"hours": 24, "threshold": 0.86, "min_cluster": 2, "max_days": 3, "compare": False, "seed": None},
            elapsed_s=1.23456,
            similarity_elapsed_s=0.5,
            sweep=sweep,
            generated_at=BASE_TIME,
        )

        assert report["generated_at"] == "2026-03-01T12:00:00.000Z"
        assert report["elapsed_s"] == 1.235
        assert report["params"]["threshold"] == 0.86
        assert report["sweep"][0]["coverage_pct"] == 12.35
        entry = report["clusters"][0]
        assert set(entry) == {
            "cluster_id", "item_count", "unique_authors", "coherence", "is_story", "likely_promo",
            "span_hours", "earliest", "latest", "sample_headlines", "comparison",
        }
        assert entry["earliest"] == "2026-03-01T12:00:00.000Z"
        assert entry["comparison"] is None
        assert len(report["clusters"][2]["sample_headlines"]) == 4

    def test_sweep_omitted_when_not_run(self, clusters):
        report = ReportEmitter().build(
            clusters, eligible_count=1, embedded_count=1, params={}, elapsed_s=0, similarity_elapsed_s=0
        )
        assert "sweep" not in report

    def test_rounding_and_truncation(self):
        long_item = make_item(1, headline="x" * 200, text="y" * 300)
        entry = ScoredCluster(
            cluster=Cluster(cluster_id=1, members=(long_item, make_item(2))),
            metrics=ClusterMetrics(coherence=0.123456, unique_authors=2, span_hours=1.26, is_story_candidate=False),
        )
        data = ReportEmitter().cluster_entry(entry)
        assert data["coherence"] == 0.1235
        assert data["span_hours"] == 1.3
        assert len(data["sample_headlines"][0]["headline"]) == 120
        assert len(data["sample_headlines"][0]["text"]) == 120

    def test_verdicts_included_when_compared(self):
        verdict = ReconciliationVerdict(
            kind=VerdictKind.EXACT_MATCH,
            unassigned=0,
            mapped=(MappedPersistedCluster(id=7, overlap=2, persisted_total=2, headline="h", is_story=True),),
        )
        report = ReportEmitter().build(
            [scored(1, 2, 0.5, verdict=verdict)],
            eligible_count=2,
            embedded_count=2,
            params={"compare": True},
            elapsed_s=0,
            similarity_elapsed_s=0,
        )
        assert report["summary"]["verdicts"]["exact-match"] == 1
        assert report["clusters"][0]["comparison"]["verdict"] == "exact-match"


class TestWrite:
    def test_writes_timestamped_and_latest(self, tmp_path, clusters):
        emitter = ReportEmitter()
        report = emitter.build(
            clusters, eligible_count=10, embedded_count=10, params={}, elapsed_s=0, similarity_elapsed_s=0
        )
        out_path, latest_path = emitter.write(report, tmp_path / "out", now=BASE_TIME)

        assert out_path.name == "embedding-cluster-eval-2026-03-01T12-00-00-000Z.json"
        assert latest_path.name == LATEST_NAME
        assert json.loads(out_path.read_text()) == json.loads(latest_path.read_text())
        assert json.loads(latest_path.read_text())["summary"]["total_clusters"] == 5

    def test_report_filename(self):
        assert report_filename(BASE_TIME) == "embedding-cluster-eval-2026-03-01T12-00-00-000Z.json"


class TestRenderSummary:
    def test_sections(self, clusters):
        emitter = ReportEmitter()
        text = emitter.render_summary(clusters, emitter.summarize(clusters, 100, 90))

        assert "Summary" in text
        assert "Mega clusters" in text
        assert "Low-coherence clusters" in text
        assert "Top story clusters" in text
        assert "[promo?]" in text
        assert "Comparison with persistent clusters" not in text

    def test_top_stories_ordered_by_size(self, clusters):
        emitter = ReportEmitter(top_story_count=2)
        text = emitter.render_summary(clusters, emitter.summarize(clusters, 100, 90))
        story_section = text.split("Top story clusters")[1]
        assert story_section.index("#3 [21 items") < story_section.index("#5 [4 items")
        assert "#2 [3 items" not in story_section

    def test_no_stories(self):
        entry = scored(1, 2, 0.5)
        emitter = ReportEmitter()
        text = emitter.render_summary([entry], emitter.summarize([entry], 2, 2))
        assert "(none)" in text

    def test_verdict_lines(self):
        verdict = ReconciliationVerdict(
            kind=VerdictKind.PARTIAL_MATCH,
            unassigned=1,
            mapped=(MappedPersistedCluster(id=7, overlap=2, persisted_total=None, headline="ETF", is_story=True),),
        )
        entry = scored(1, 3, 0.5, story=True, verdict=verdict)
        emitter = ReportEmitter()
        summary = emitter.summarize([entry], 3, 3, compared=True)
        text = emitter.render_summary([entry], summary)

        assert "persistent verdict: partial-match  unassigned=1" in text
        assert '-> persistent #7 [2/? items] "ETF"' in text
        assert "Comparison with persistent clusters" in text
