"""Threshold sweep: cluster one snapshot at several thresholds and compare."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Sequence

from .clustering import ClusteringRun, cluster_snapshot
from .models import SweepResult
from .similarity import SimilarityIndex
from .vector import ItemSnapshot

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_THRESHOLDS = (0.78, 0.82, 0.86, 0.88, 0.90, 0.92, 0.94)


@dataclass
class ThresholdSweep:
    """Evaluate several thresholds against the same loaded snapshot.

    Similarity is scored once at the lowest threshold and the resulting edges are
    re-filtered for each higher threshold, so each run only pays for graph
    traversal and filtering.
    """

    min_cluster_size: int = 2
    max_day_span: float = 3.0
    story_min_items: int = 3
    block_size: int = 512
    max_workers: int = 1
    scoring_elapsed_s: float = field(default=0.0, init=False)

    def run(self, snapshot: ItemSnapshot, thresholds: Sequence[float] = DEFAULT_SWEEP_THRESHOLDS) -> List[SweepResult]:
        ordered = sorted(set(float(t) for t in thresholds))
        if not ordered:
            return []

        index = SimilarityIndex(snapshot.vectors, block_size=self.block_size, max_workers=self.max_workers)
        base_edges = index.edges_at_or_above(ordered[0])
        self.scoring_elapsed_s = index.last_elapsed_s
        logger.info(
            f"Sweep scored {snapshot.embedded_count} vectors once: "
            f"{len(base_edges)} edges >= {ordered[0]:.2f} in {index.last_elapsed_s:.2f}s"
        )

        results = []
        for threshold in ordered:
            start = time.perf_counter()
            run = cluster_snapshot(
                snapshot,
                threshold,
                self.min_cluster_size,
                self.max_day_span,
                edges=base_edges,
            )
            results.append(self._summarize(snapshot, run, time.perf_counter() - start))
        return results

    def _summarize(self, snapshot: ItemSnapshot, run: ClusteringRun, elapsed: float) -> SweepResult:
        clusters = run.clusters
        threshold = run.threshold
        if not clusters:
            return SweepResult(
                threshold=threshold,
                clusters=0,
                avg_size=0.0,
                max_size=0,
                story_like=0,
                coverage_pct=0.0,
                elapsed_s=elapsed,
            )

        sizes = [c.member_count for c in clusters]
        eligible = snapshot.eligible_count
        return SweepResult(
            threshold=threshold,
            clusters=len(clusters),
            avg_size=sum(sizes) / len(sizes),
            max_size=max(sizes),
            # author diversity is not checked in sweep mode
            story_like=sum(1 for size in sizes if size >= self.story_min_items),
            coverage_pct=(len(run.covered_item_ids) / eligible) * 100 if eligible > 0 else 0.0,
            elapsed_s=elapsed,
        )


def format_sweep_table(results: Sequence[SweepResult]) -> str:
    """Render sweep rows as a fixed-width text table."""
    header = ["threshold", "clusters", "avg_size", "max_size", "story_cands*", "coverage%", "elapsed_s"]
    widths = [10, 9, 9, 9, 13, 10, 10]

    def row(values):
        return "  ".join(str(v).rjust(w) for v, w in zip(values, widths))

    lines = [row(header), "-" * sum(w + 2 for w in widths)]
    for r in results:
        lines.append(
            row(
                [
                    f"{r.threshold:.2f}",
                    r.clusters,
                    f"{r.avg_size:.1f}",
                    r.max_size,
                    r.story_like,
                    f"{r.coverage_pct:.1f}",
                    f"{r.elapsed_s:.2f}",
                ]
            )
        )
    lines.append("")
    lines.append("* story_cands = clusters meeting the minimum size (author diversity not checked in sweep)")
    return "\n".join(lines)
