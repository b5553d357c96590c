"""Configuration management for embedding cluster evaluation.

Settings are grouped into dataclass sections that validate themselves, loaded
from ``cluster_eval_config.yaml`` (or the path in ``CLUSTER_EVAL_CONFIG``) and
overridden by CLI flags.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import ConfigError
from .sweep import DEFAULT_SWEEP_THRESHOLDS


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "cluster_eval_config.yaml"
CONFIG_ENV_VAR = "CLUSTER_EVAL_CONFIG"


@dataclass
class WindowConfig:
    """Lookback window for eligible items."""

    hours: int = 24
    max_hours: int = 168

    def validate(self) -> None:
        if self.hours <= 0:
            raise ConfigError("hours must be positive")
        if self.max_hours <= 0:
            raise ConfigError("max_hours must be positive")


@dataclass
class ClusteringConfig:
    """Graph construction and cluster filtering."""

    threshold: float = 0.86
    min_cluster_size: int = 2
    max_day_span: float = 3.0
    sweep_thresholds: List[float] = field(default_factory=lambda: list(DEFAULT_SWEEP_THRESHOLDS))
    block_size: int = 512
    max_workers: int = 1

    def validate(self) -> None:
        if not (0.0 < self.threshold <= 1.0):
            raise ConfigError("threshold must be in (0.0, 1.0]")
        if self.min_cluster_size < 1:
            raise ConfigError("min_cluster_size must be at least 1")
        if self.max_day_span < 0:
            raise ConfigError("max_day_span must be non-negative")
        if not self.sweep_thresholds:
            raise ConfigError("sweep_thresholds must not be empty")
        for t in self.sweep_thresholds:
            if not (0.0 < t <= 1.0):
                raise ConfigError(f"sweep threshold out of range: {t}")
        if self.block_size <= 0:
            raise ConfigError("block_size must be positive")
        if self.max_workers <= 0:
            raise ConfigError("max_workers must be positive")


@dataclass
class CoherenceConfig:
    """Lexical coherence scoring and quality flags."""

    max_tokens: int = 240
    sample_cap: int = 40
    seed: Optional[int] = None
    low_coherence_cutoff: float = 0.10
    low_coherence_min_size: int = 3
    mega_cluster_size: int = 20

    def validate(self) -> None:
        if self.max_tokens <= 0:
            raise ConfigError("max_tokens must be positive")
        if self.sample_cap < 2:
            raise ConfigError("sample_cap must be at least 2")
        if not (0.0 <= self.low_coherence_cutoff <= 1.0):
            raise ConfigError("low_coherence_cutoff must be between 0.0 and 1.0")
        if self.low_coherence_min_size < 2:
            raise ConfigError("low_coherence_min_size must be at least 2")
        if self.mega_cluster_size <= 0:
            raise ConfigError("mega_cluster_size must be positive")


@dataclass
class ClassificationConfig:
    """Story candidate rule."""

    story_min_items: int = 3
    story_min_authors: int = 2

    def validate(self) -> None:
        if self.story_min_items <= 0:
            raise ConfigError("story_min_items must be positive")
        if self.story_min_authors <= 0:
            raise ConfigError("story_min_authors must be positive")


@dataclass
class SourceConfig:
    """Supabase tables and request sizes."""

    items_table: str = "tweets"
    assignments_table: str = "x_news_cluster_tweets"
    clusters_table: str = "x_news_clusters"
    id_page_size: int = 1000
    row_chunk_size: int = 500
    assignment_chunk_size: int = 300
    meta_chunk_size: int = 200

    def validate(self) -> None:
        for name in ("items_table", "assignments_table", "clusters_table"):
            if not getattr(self, name):
                raise ConfigError(f"{name} must not be empty")
        for name in ("id_page_size", "row_chunk_size", "assignment_chunk_size", "meta_chunk_size"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")


@dataclass
class ReportConfig:
    """Report output."""

    output_dir: str = "scripts/output"
    sample_size: int = 4
    top_story_count: int = 12

    def validate(self) -> None:
        if not self.output_dir:
            raise ConfigError("output_dir must not be empty")
        if self.sample_size < 0:
            raise ConfigError("sample_size must be non-negative")
        if self.top_story_count < 0:
            raise ConfigError("top_story_count must be non-negative")


@dataclass
class MonitoringConfig:
    """Logging."""

    log_level: str = "INFO"

    def validate(self) -> None:
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_log_levels:
            raise ConfigError(f"log_level must be one of: {valid_log_levels}")


@dataclass
class EvaluationConfig:
    """Complete configuration for a cluster evaluation run."""

    window: WindowConfig = field(default_factory=WindowConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    coherence: CoherenceConfig = field(default_factory=CoherenceConfig)
    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def validate(self) -> None:
        """Validate all configuration sections."""
        self.window.validate()
        self.clustering.validate()
        self.coherence.validate()
        self.classification.validate()
        self.source.validate()
        self.report.validate()
        self.monitoring.validate()


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    data = raw.get(name) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return data


class EvaluationConfigManager:
    """Manager for evaluation configuration loading and validation."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None) -> None:
        self.config_path = Path(config_path or os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
        self._config: Optional[EvaluationConfig] = None

    def load_config(self) -> EvaluationConfig:
        """Load and validate configuration; a missing file yields defaults.

        Raises:
            ConfigError: On unreadable YAML or invalid values
        """
        if not self.config_path.exists():
            logger.debug(f"Config file not found: {self.config_path}, using defaults")
            self._config = EvaluationConfig()
            self._config.validate()
            return self._config

        try:
            raw = yaml.safe_load(self.config_path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Top level of {self.config_path} must be a mapping")

        try:
            self._config = EvaluationConfig(
                window=self._parse_window(_section(raw, "window")),
                clustering=self._parse_clustering(_section(raw, "clustering")),
                coherence=self._parse_coherence(_section(raw, "coherence")),
                classification=self._parse_classification(_section(raw, "classification")),
                source=self._parse_source(_section(raw, "source")),
                report=self._parse_report(_section(raw, "report")),
                monitoring=MonitoringConfig(log_level=str(_section(raw, "monitoring").get("log_level", "INFO")).upper()),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value in {self.config_path}: {e}") from e

        self._config.validate()
        logger.info(f"Loaded evaluation config from {self.config_path}")
        return self._config

    def _parse_window(self, data: Dict[str, Any]) -> WindowConfig:
        return WindowConfig(
            hours=int(data.get("hours", 24)),
            max_hours=int(data.get("max_hours", 168)),
        )

    def _parse_clustering(self, data: Dict[str, Any]) -> ClusteringConfig:
        thresholds = data.get("sweep_thresholds", DEFAULT_SWEEP_THRESHOLDS)
        if not isinstance(thresholds, (list, tuple)):
            raise ConfigError("sweep_thresholds must be a list")
        return ClusteringConfig(
            threshold=float(data.get("threshold", 0.86)),
            min_cluster_size=int(data.get("min_cluster_size", 2)),
            max_day_span=float(data.get("max_day_span", 3.0)),
            sweep_thresholds=[float(t) for t in thresholds],
            block_size=int(data.get("block_size", 512)),
            max_workers=int(data.get("max_workers", 1)),
        )

    def _parse_coherence(self, data: Dict[str, Any]) -> CoherenceConfig:
        seed = data.get("seed")
        return CoherenceConfig(
            max_tokens=int(data.get("max_tokens", 240)),
            sample_cap=int(data.get("sample_cap", 40)),
            seed=int(seed) if seed is not None else None,
            low_coherence_cutoff=float(data.get("low_coherence_cutoff", 0.10)),
            low_coherence_min_size=int(data.get("low_coherence_min_size", 3)),
            mega_cluster_size=int(data.get("mega_cluster_size", 20)),
        )

    def _parse_classification(self, data: Dict[str, Any]) -> ClassificationConfig:
        return ClassificationConfig(
            story_min_items=int(data.get("story_min_items", 3)),
            story_min_authors=int(data.get("story_min_authors", 2)),
        )

    def _parse_source(self, data: Dict[str, Any]) -> SourceConfig:
        return SourceConfig(
            items_table=str(data.get("items_table", "tweets")),
            assignments_table=str(data.get("assignments_table", "x_news_cluster_tweets")),
            clusters_table=str(data.get("clusters_table", "x_news_clusters")),
            id_page_size=int(data.get("id_page_size", 1000)),
            row_chunk_size=int(data.get("row_chunk_size", 500)),
            assignment_chunk_size=int(data.get("assignment_chunk_size", 300)),
            meta_chunk_size=int(data.get("meta_chunk_size", 200)),
        )

    def _parse_report(self, data: Dict[str, Any]) -> ReportConfig:
        return ReportConfig(
            output_dir=str(data.get("output_dir", "scripts/output")),
            sample_size=int(data.get("sample_size", 4)),
            top_story_count=int(data.get("top_story_count", 12)),
        )

    def get_config(self) -> EvaluationConfig:
        """Get loaded configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config


def get_evaluation_config(config_path: Optional[Union[str, Path]] = None) -> EvaluationConfig:
    """Convenience function to load the evaluation configuration."""
    return EvaluationConfigManager(config_path).load_config()
