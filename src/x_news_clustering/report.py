"""
Evaluation report: JSON document, files on disk and console summary.

The report is written twice per run, once under a timestamped name and once as
``embedding-cluster-eval-latest.json`` which is overwritten every time.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .models import ScoredCluster, SweepResult, compact_whitespace, to_iso
from .reconciliation import verdict_tally

logger = logging.getLogger(__name__)

REPORT_PREFIX = "embedding-cluster-eval"
LATEST_NAME = f"{REPORT_PREFIX}-latest.json"
FIELD_LIMIT = 120

SIZE_BUCKETS = (
    ("2", 2, 2),
    ("3-5", 3, 5),
    ("6-10", 6, 10),
    ("11-20", 11, 20),
    ("21+", 21, None),
)

VERDICT_LABELS = (
    ("exact-match", "exact-match (same story, same items):"),
    ("partial-match", "partial-match (some items not in DB):"),
    ("split-in-persistent", "split-in-persistent (persistent split what we grouped):"),
    ("all-new", "all-new (no persistent assignment):"),
)


def _round(value: Optional[float], digits: int) -> Optional[float]:
    return round(value, digits) if value is not None else None


def _fmt(value: Optional[float]) -> str:
    return f"{value:.3f}" if value is not None else "n/a"


def _rule(title: str) -> str:
    return f"\n─── {title} " + "─" * max(3, 76 - len(title))


def size_distribution(sizes: Sequence[int]) -> Dict[str, int]:
    """Count clusters per size bucket."""
    dist = {label: 0 for label, _, _ in SIZE_BUCKETS}
    for size in sizes:
        for label, low, high in SIZE_BUCKETS:
            if size >= low and (high is None or size <= high):
                dist[label] += 1
                break
    return dist


def report_filename(now: datetime) -> str:
    stamp = to_iso(now).replace(":", "-").replace(".", "-")
    return f"{REPORT_PREFIX}-{stamp}.json"


@dataclass
class ReportEmitter:
    """Build, persist and render evaluation reports.

    Args:
        low_coherence_cutoff: Coherence below this is flagged as incoherent
        low_coherence_min_size: Clusters smaller than this are never flagged
        mega_cluster_size: Clusters with more members are mega clusters
        sample_size: Members listed as sample headlines per cluster
        top_story_count: Story clusters shown in the console summary
    """

    low_coherence_cutoff: float = 0.10
    low_coherence_min_size: int = 3
    mega_cluster_size: int = 20
    sample_size: int = 4
    top_story_count: int = 12

    def is_low_coherence(self, entry: ScoredCluster) -> bool:
        coherence = entry.metrics.coherence
        return (
            coherence is not None
            and coherence < self.low_coherence_cutoff
            and entry.cluster.member_count >= self.low_coherence_min_size
        )

    def is_mega(self, entry: ScoredCluster) -> bool:
        return entry.cluster.member_count > self.mega_cluster_size

    def summarize(
        self,
        scored: Sequence[ScoredCluster],
        eligible_count: int,
        embedded_count: int,
        compared: bool = False,
    ) -> Dict[str, Any]:
        """Aggregate statistics over scored clusters.

        Undefined coherence values are left out of the averages.
        """
        sizes = [entry.cluster.member_count for entry in scored]
        covered = {item_id for entry in scored for item_id in entry.cluster.item_ids}
        coherences = sorted(
            entry.metrics.coherence for entry in scored if entry.metrics.coherence is not None
        )

        summary: Dict[str, Any] = {
            "eligible_items": eligible_count,
            "embedded_items": embedded_count,
            "total_clusters": len(scored),
            "unique_items_covered": len(covered),
            "coverage_pct": round(len(covered) / eligible_count * 100, 2) if eligible_count > 0 else 0.0,
            "story_candidates": sum(1 for entry in scored if entry.metrics.is_story_candidate),
            "avg_cluster_size": round(sum(sizes) / len(sizes), 2) if sizes else 0.0,
            "max_cluster_size": max(sizes) if sizes else 0,
            "avg_coherence": _round(sum(coherences) / len(coherences), 4) if coherences else None,
            "median_coherence": _round(coherences[len(coherences) // 2], 4) if coherences else None,
            "low_coherence_count": sum(1 for entry in scored if self.is_low_coherence(entry)),
            "mega_cluster_count": sum(1 for entry in scored if self.is_mega(entry)),
            "promo_flagged_count": sum(1 for entry in scored if entry.metrics.likely_promo),
            "size_distribution": size_distribution(sizes),
        }
        if compared:
            summary["verdicts"] = verdict_tally(scored)
        return summary

    def cluster_entry(self, entry: ScoredCluster) -> Dict[str, Any]:
        cluster, metrics = entry.cluster, entry.metrics
        return {
            "cluster_id": cluster.cluster_id,
            "item_count": cluster.member_count,
            "unique_authors": metrics.unique_authors,
            "coherence": _round(metrics.coherence, 4),
            "is_story": metrics.is_story_candidate,
            "likely_promo": metrics.likely_promo,
            "span_hours": _round(metrics.span_hours, 1),
            "earliest": cluster.earliest_iso,
            "latest": cluster.latest_iso,
            "sample_headlines": [
                {
                    "username": item.username,
                    "headline": compact_whitespace(item.headline)[:FIELD_LIMIT],
                    "text": compact_whitespace(item.text)[:FIELD_LIMIT],
                }
                for item in cluster.members[: self.sample_size]
            ],
            "comparison": entry.verdict.to_dict() if entry.verdict is not None else None,
        }

    def build(
        self,
        scored: Sequence[ScoredCluster],
        *,
        eligible_count: int,
        embedded_count: int,
        params: Dict[str, Any],
        elapsed_s: float,
        similarity_elapsed_s: float,
        sweep: Optional[Sequence[SweepResult]] = None,
        generated_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        report: Dict[str, Any] = {
            "generated_at": to_iso(generated_at or datetime.now(timezone.utc)),
            "params": dict(params),
            "elapsed_s": round(elapsed_s, 3),
            "similarity_elapsed_s": round(similarity_elapsed_s, 3),
            "summary": self.summarize(
                scored, eligible_count, embedded_count, compared=bool(params.get("compare"))
            ),
            "clusters": [self.cluster_entry(entry) for entry in scored],
        }
        if sweep is not None:
            report["sweep"] = [row.to_dict() for row in sweep]
        return report

    def write(
        self,
        report: Dict[str, Any],
        output_dir: Union[str, Path],
        now: Optional[datetime] = None,
    ) -> Tuple[Path, Path]:
        """Write the report under a timestamped name and as the latest report."""
        directory = Path(output_dir)
        directory.mkdir(parents=True, exist_ok=True)

        payload = json.dumps(report, indent=2, ensure_ascii=False)
        out_path = directory / report_filename(now or datetime.now(timezone.utc))
        latest_path = directory / LATEST_NAME
        out_path.write_text(payload, encoding="utf-8")
        latest_path.write_text(payload, encoding="utf-8")
        logger.info(f"Report saved to {out_path}")
        return out_path, latest_path

    def render_summary(self, scored: Sequence[ScoredCluster], summary: Dict[str, Any]) -> str:
        """Render the human-readable summary printed after a detailed run."""
        lines: List[str] = [_rule("Summary")]
        lines.append(f"  Clusters:              {summary['total_clusters']}")
        lines.append(
            f"  Unique items covered:  {summary['unique_items_covered']} / {summary['eligible_items']}"
            f"  ({summary['coverage_pct']:.1f}% of eligible)"
        )
        lines.append(f"  Story candidates:      {summary['story_candidates']}")
        lines.append(
            f"  Avg / max cluster:     {summary['avg_cluster_size']:.1f} / {summary['max_cluster_size']} items"
        )
        lines.append(f"  Avg coherence:         {_fmt(summary['avg_coherence'])}")
        lines.append(f"  Median coherence:      {_fmt(summary['median_coherence'])}")
        lines.append(
            f"  Low-coherence (<{self.low_coherence_cutoff:.2f}): {summary['low_coherence_count']} cluster(s)"
        )
        lines.append(f"  Mega-clusters (>{self.mega_cluster_size}):   {summary['mega_cluster_count']}")
        lines.append(f"  Likely promo:          {summary['promo_flagged_count']}")

        mega = [entry for entry in scored if self.is_mega(entry)]
        if mega:
            lines.append(_rule("Mega clusters (threshold may be too low)"))
            for entry in mega:
                lines.append(self._cluster_line(entry, "coherence"))
                lines.extend(self._sample_lines(entry, 3, 90))

        low = [entry for entry in scored if self.is_low_coherence(entry)]
        if low:
            lines.append(_rule("Low-coherence clusters (incoherent grouping)"))
            for entry in low[:5]:
                lines.append(self._cluster_line(entry, "coherence"))
                lines.extend(self._sample_lines(entry, 4, 80))
                lines.append("")

        stories = sorted(
            (entry for entry in scored if entry.metrics.is_story_candidate),
            key=lambda entry: entry.cluster.member_count,
            reverse=True,
        )[: self.top_story_count]
        lines.append(_rule("Top story clusters"))
        if not stories:
            lines.append("  (none)")
        for entry in stories:
            lines.append(self._cluster_line(entry, "coh"))
            first = entry.cluster.members[0].display_text[:80] if entry.cluster.members else ""
            lines.append(f'    "{first}"')
            if entry.verdict is not None:
                lines.append(
                    f"    persistent verdict: {entry.verdict.kind.value}  unassigned={entry.verdict.unassigned}"
                )
                for mapped in entry.verdict.mapped[:3]:
                    total = mapped.persisted_total if mapped.persisted_total is not None else "?"
                    lines.append(
                        f'      -> persistent #{mapped.id} [{mapped.overlap}/{total} items] "{mapped.headline[:60]}"'
                    )

        verdicts = summary.get("verdicts")
        if verdicts:
            lines.append(_rule("Comparison with persistent clusters"))
            for key, label in VERDICT_LABELS:
                lines.append(f"  {label.ljust(40)} {verdicts.get(key, 0)}")
            lines.append(f"  {'Total unassigned item slots:'.ljust(40)} {verdicts.get('unassigned_items', 0)}")

        return "\n".join(lines)

    def _cluster_line(self, entry: ScoredCluster, label: str) -> str:
        span = f"{entry.metrics.span_hours:.1f}h" if entry.metrics.span_hours is not None else "?h"
        promo = "  [promo?]" if entry.metrics.likely_promo else ""
        return (
            f"  #{entry.cluster.cluster_id} [{entry.cluster.member_count} items / "
            f"{entry.metrics.unique_authors} authors]  {label}={_fmt(entry.metrics.coherence)}  span={span}{promo}"
        )

    def _sample_lines(self, entry: ScoredCluster, count: int, width: int) -> List[str]:
        return [
            f"    @{item.username or '?'}: {item.display_text[:width]}"
            for item in entry.cluster.members[:count]
        ]
