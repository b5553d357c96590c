"""Offline evaluation of embedding-based story clustering for X news posts."""

from .models import (
	EligibleItem,
	Cluster,
	ClusterMetrics,
	ScoredCluster,
	PersistedClusterMeta,
	MappedPersistedCluster,
	VerdictKind,
	ReconciliationVerdict,
	SweepResult,
)
from .errors import ClusterEvalError, ItemSourceError, ReconciliationError, ConfigError
from .vector import ItemSnapshot, build_snapshot, parse_embedding
from .similarity import EdgeList, SimilarityIndex, cosine_similarity
from .graph import SimilarityGraph
from .clustering import ClusteringRun, build_clusters, cluster_snapshot
from .coherence import CoherenceScorer
from .sweep import ThresholdSweep, DEFAULT_SWEEP_THRESHOLDS
from .reconciliation import Reconciler, verdict_tally
from .report import ReportEmitter
from .config import EvaluationConfig, EvaluationConfigManager
from .evaluation import EvaluationOptions, EvaluationResult, EvaluationRunner

__all__ = [
	"EligibleItem",
	"Cluster",
	"ClusterMetrics",
	"ScoredCluster",
	"PersistedClusterMeta",
	"MappedPersistedCluster",
	"VerdictKind",
	"ReconciliationVerdict",
	"SweepResult",
	"ClusterEvalError",
	"ItemSourceError",
	"ReconciliationError",
	"ConfigError",
	"ItemSnapshot",
	"build_snapshot",
	"parse_embedding",
	"EdgeList",
	"SimilarityIndex",
	"cosine_similarity",
	"SimilarityGraph",
	"ClusteringRun",
	"build_clusters",
	"cluster_snapshot",
	"CoherenceScorer",
	"ThresholdSweep",
	"DEFAULT_SWEEP_THRESHOLDS",
	"Reconciler",
	"verdict_tally",
	"ReportEmitter",
	"EvaluationConfig",
	"EvaluationConfigManager",
	"EvaluationOptions",
	"EvaluationResult",
	"EvaluationRunner",
]
