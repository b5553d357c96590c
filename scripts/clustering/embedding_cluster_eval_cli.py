#!/usr/bin/env python3
"""Evaluate embedding-based clustering of recent X news posts.

Default mode evaluates a single threshold in detail. ``--sweep`` first tests a
range of thresholds on the same snapshot and prints a comparison table, then
runs the detailed evaluation. ``--compare`` cross-references the fresh clusters
against the persisted clustering.

Usage:
    python scripts/clustering/embedding_cluster_eval_cli.py [options]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

# --------------------------------------------------------------------------------------
# Repository bootstrap
# --------------------------------------------------------------------------------------


def _repo_root() -> Path:
    start = Path(__file__).resolve()
    for candidate in [start] + list(start.parents):
        if (candidate / "src").exists() and (candidate / "pyproject.toml").exists():
            return candidate
    return start.parents[0]


ROOT = _repo_root()
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# --------------------------------------------------------------------------------------
# Domain imports (after sys.path adjustments)
# --------------------------------------------------------------------------------------
from src.core.db.database_init import SupabaseConfigError, get_supabase_client
from src.core.utils.cli import handle_cli_errors, setup_cli_logging, setup_cli_parser
from src.x_news_clustering.config import EvaluationConfig, EvaluationConfigManager
from src.x_news_clustering.errors import ItemSourceError
from src.x_news_clustering.evaluation import EvaluationOptions, EvaluationRunner
from src.x_news_clustering.storage import (
    JsonFileItemSource,
    SupabaseItemSource,
    SupabasePersistedClusterStore,
)
from src.x_news_clustering.sweep import format_sweep_table


def _parse_thresholds(raw: Optional[str]) -> Optional[tuple]:
    if not raw:
        return None
    try:
        return tuple(float(part) for part in raw.split(",") if part.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid threshold list: {raw}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = setup_cli_parser("Evaluate embedding clustering of recent X news posts")
    parser.add_argument("--hours", type=float, default=None, help="Lookback window in hours (default: 24, max 168)")
    parser.add_argument("--threshold", type=float, default=None, help="Similarity threshold to evaluate (default: 0.86)")
    parser.add_argument("--min-cluster", type=int, default=None, help="Minimum items per cluster (default: 2)")
    parser.add_argument("--max-days", type=float, default=None, help="Maximum day span within a cluster (default: 3)")
    parser.add_argument("--sweep", action="store_true", help="Test a range of thresholds before the detailed run")
    parser.add_argument(
        "--sweep-thresholds",
        type=_parse_thresholds,
        default=None,
        help="Comma-separated thresholds for --sweep (default: 0.78,0.82,0.86,0.88,0.90,0.92,0.94)",
    )
    parser.add_argument("--compare", action="store_true", help="Cross-reference clusters against persisted clusters")
    parser.add_argument("--config", default=None, help="Path to cluster_eval_config.yaml")
    parser.add_argument("--input", default=None, help="Read items from a JSON/JSONL export instead of Supabase")
    parser.add_argument("--output-dir", default=None, help="Directory for report files (default: scripts/output)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for coherence sampling of large clusters")
    parser.add_argument("--block-size", type=int, default=None, help="Rows per similarity block")
    parser.add_argument("--max-workers", type=int, default=None, help="Threads for similarity scoring")
    parser.add_argument("--no-write", action="store_true", help="Skip writing report files")
    return parser


def _apply_overrides(config: EvaluationConfig, args: argparse.Namespace) -> None:
    if args.block_size is not None:
        config.clustering.block_size = args.block_size
    if args.max_workers is not None:
        config.clustering.max_workers = args.max_workers
    config.clustering.validate()


def _build_runner(config: EvaluationConfig, args: argparse.Namespace) -> EvaluationRunner:
    source_cfg = config.source
    if args.input:
        source = JsonFileItemSource(args.input)
        client = None
    else:
        try:
            client = get_supabase_client()
        except SupabaseConfigError as exc:
            raise ItemSourceError(str(exc)) from exc
        source = SupabaseItemSource(
            client,
            table=source_cfg.items_table,
            id_page_size=source_cfg.id_page_size,
            row_chunk_size=source_cfg.row_chunk_size,
        )

    store = None
    if args.compare:
        if client is None:
            try:
                client = get_supabase_client()
            except SupabaseConfigError as exc:
                raise ItemSourceError(str(exc)) from exc
        store = SupabasePersistedClusterStore(
            client,
            assignments_table=source_cfg.assignments_table,
            clusters_table=source_cfg.clusters_table,
            assignment_chunk_size=source_cfg.assignment_chunk_size,
            meta_chunk_size=source_cfg.meta_chunk_size,
        )
    return EvaluationRunner(source, config=config, store=store)


@handle_cli_errors
def _run(args: argparse.Namespace) -> bool:
    config = EvaluationConfigManager(args.config).load_config()
    setup_cli_logging(args, default_level=config.monitoring.log_level)
    _apply_overrides(config, args)

    options = EvaluationOptions.from_config(
        config,
        hours=args.hours,
        threshold=args.threshold,
        min_cluster_size=args.min_cluster,
        max_day_span=args.max_days,
        sweep=args.sweep,
        compare=args.compare,
        sweep_thresholds=args.sweep_thresholds,
        seed=args.seed,
        output_dir=args.output_dir,
        write_report=not args.no_write,
    )

    runner = _build_runner(config, args)
    result = runner.run(options)

    if result.sweep is not None:
        print(
            f"\nSweep over last {options.hours}h  min_cluster={options.min_cluster_size}  "
            f"max_days={options.max_day_span}  ({result.snapshot.embedded_count} embedded items)\n"
        )
        print(format_sweep_table(result.sweep))

    print(
        f"\nDetailed eval  threshold={options.threshold}  hours={options.hours}  "
        f"min_cluster={options.min_cluster_size}  max_days={options.max_day_span}"
    )
    print(
        f"  {len(result.scored)} clusters from {result.snapshot.embedded_count} embedded items "
        f"in {result.report['similarity_elapsed_s']:.2f}s"
    )
    print(runner.emitter.render_summary(result.scored, result.report["summary"]))
    if result.report_paths:
        print(f"\n  saved -> {result.report_paths[0]}")
    return True


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return _run(args)


if __name__ == "__main__":
    sys.exit(main())
