"""
End-to-end evaluation run.

One invocation loads the eligible window once, optionally sweeps several
thresholds over that snapshot, then evaluates the target threshold in detail:
clusters, coherence and story metrics, an optional comparison with the persisted
clustering, and the JSON report. The report is only written after every step
that can fail has succeeded.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .clustering import ClusteringRun, cluster_snapshot
from .coherence import CoherenceScorer
from .config import EvaluationConfig
from .errors import ConfigError
from .models import ScoredCluster, SweepResult
from .reconciliation import Reconciler
from .report import ReportEmitter
from .similarity import SimilarityIndex
from .storage.protocols import ItemSource, PersistedClusterStore
from .sweep import ThresholdSweep
from .vector import ItemSnapshot, build_snapshot

logger = logging.getLogger(__name__)

DEFAULT_HOURS = 24
DEFAULT_THRESHOLD = 0.86


def normalize_hours(value: Any, default: int = DEFAULT_HOURS, max_hours: int = 168) -> int:
    """Floor the lookback to whole hours and cap it; unusable values fall back to the default."""
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(hours) or hours <= 0:
        return default
    return max(1, min(int(math.floor(hours)), max_hours))


def normalize_threshold(value: Any, default: float = DEFAULT_THRESHOLD) -> float:
    try:
        threshold = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(threshold) or threshold <= 0:
        return default
    return threshold


@dataclass
class EvaluationOptions:
    """Per-invocation options, already normalized."""

    hours: int = DEFAULT_HOURS
    threshold: float = DEFAULT_THRESHOLD
    min_cluster_size: int = 2
    max_day_span: float = 3.0
    sweep: bool = False
    compare: bool = False
    sweep_thresholds: Sequence[float] = field(default_factory=tuple)
    seed: Optional[int] = None
    output_dir: Optional[str] = None
    write_report: bool = True

    @classmethod
    def from_config(cls, config: EvaluationConfig, **overrides: Any) -> "EvaluationOptions":
        """Start from config values; ``None`` overrides keep the config value."""
        values: Dict[str, Any] = {
            "hours": config.window.hours,
            "threshold": config.clustering.threshold,
            "min_cluster_size": config.clustering.min_cluster_size,
            "max_day_span": config.clustering.max_day_span,
            "sweep_thresholds": tuple(config.clustering.sweep_thresholds),
            "seed": config.coherence.seed,
            "output_dir": config.report.output_dir,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        values["hours"] = normalize_hours(values["hours"], max_hours=config.window.max_hours)
        values["threshold"] = normalize_threshold(values["threshold"])
        return cls(**values)

    def report_params(self) -> Dict[str, Any]:
        return {
            "hours": self.hours,
            "threshold": self.threshold,
            "min_cluster": self.min_cluster_size,
            "max_days": self.max_day_span,
            "compare": self.compare,
            "seed": self.seed,
        }


@dataclass
class EvaluationResult:
    """Everything a run produced, for printing and tests."""

    snapshot: ItemSnapshot
    run: ClusteringRun
    scored: List[ScoredCluster]
    report: Dict[str, Any]
    sweep: Optional[List[SweepResult]] = None
    report_paths: Optional[Tuple[Path, Path]] = None


class EvaluationRunner:
    """Coordinate one evaluation invocation.

    Args:
        source: Where eligible items come from
        config: Loaded evaluation config
        store: Persisted clustering; required only when comparing
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        source: ItemSource,
        config: Optional[EvaluationConfig] = None,
        store: Optional[PersistedClusterStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.source = source
        self.config = config or EvaluationConfig()
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.emitter = ReportEmitter(
            low_coherence_cutoff=self.config.coherence.low_coherence_cutoff,
            low_coherence_min_size=self.config.coherence.low_coherence_min_size,
            mega_cluster_size=self.config.coherence.mega_cluster_size,
            sample_size=self.config.report.sample_size,
            top_story_count=self.config.report.top_story_count,
        )

    def run(self, options: EvaluationOptions) -> EvaluationResult:
        if options.compare and self.store is None:
            raise ConfigError("Comparison requested but no persisted cluster store is configured")

        started = time.perf_counter()
        now = self.clock()
        since = now - timedelta(hours=options.hours)

        logger.info(f"Fetching eligible items from the last {options.hours}h")
        items = self.source.load_eligible_items(since)
        snapshot = build_snapshot(items)
        logger.info(
            f"Fetched {snapshot.eligible_count} eligible items, "
            f"{snapshot.embedded_count} with usable embeddings (dimension {snapshot.dimension})"
        )

        sweep_results = None
        if options.sweep:
            sweep_results = self.sweep(snapshot, options)

        clustering = self.config.clustering
        index = SimilarityIndex(snapshot.vectors, block_size=clustering.block_size, max_workers=clustering.max_workers)
        edges = index.edges_at_or_above(options.threshold)
        run = cluster_snapshot(
            snapshot,
            options.threshold,
            options.min_cluster_size,
            options.max_day_span,
            edges=edges,
        )
        if not run.clusters:
            logger.info("No clusters at this threshold; try lowering --threshold")

        scorer = CoherenceScorer(
            max_tokens=self.config.coherence.max_tokens,
            sample_cap=self.config.coherence.sample_cap,
            story_min_items=self.config.classification.story_min_items,
            story_min_authors=self.config.classification.story_min_authors,
            seed=options.seed,
        )
        scored = scorer.score_all(run.clusters)

        if options.compare:
            logger.info("Cross-referencing against persisted clusters")
            scored = Reconciler(self.store).reconcile(scored)

        report = self.emitter.build(
            scored,
            eligible_count=snapshot.eligible_count,
            embedded_count=snapshot.embedded_count,
            params=options.report_params(),
            elapsed_s=time.perf_counter() - started,
            similarity_elapsed_s=index.last_elapsed_s,
            sweep=sweep_results,
            generated_at=now,
        )

        paths = None
        if options.write_report:
            paths = self.emitter.write(report, options.output_dir or self.config.report.output_dir, now=now)

        return EvaluationResult(
            snapshot=snapshot,
            run=run,
            scored=scored,
            report=report,
            sweep=sweep_results,
            report_paths=paths,
        )

    def sweep(self, snapshot: ItemSnapshot, options: EvaluationOptions) -> List[SweepResult]:
        thresholds = options.sweep_thresholds or tuple(self.config.clustering.sweep_thresholds)
        logger.info(
            f"Sweeping {len(thresholds)} thresholds over last {options.hours}h "
            f"min_cluster={options.min_cluster_size} max_days={options.max_day_span}"
        )
        sweeper = ThresholdSweep(
            min_cluster_size=options.min_cluster_size,
            max_day_span=options.max_day_span,
            story_min_items=self.config.classification.story_min_items,
            block_size=self.config.clustering.block_size,
            max_workers=self.config.clustering.max_workers,
        )
        return sweeper.run(snapshot, thresholds)
