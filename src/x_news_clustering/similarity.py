"""
Pairwise cosine similarity over an item snapshot.

This module computes the O(N^2) similarity work that dominates a clustering run.
Candidate pairs are found in row blocks so memory stays bounded. Every retained
edge is then rescored with the same pairwise formula ``cosine_similarity`` uses,
so a pair whose cosine equals the threshold is always kept and the retained
edges can be re-filtered for any higher threshold without recomputing.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Block scores may differ from the pairwise formula in the last few bits.
CANDIDATE_SLACK = 1e-9


def pairwise_cosines(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    """Cosine of ``left[k]`` with ``right[k]`` for every row ``k``.

    Computed as ``dot / sqrt(|a|^2 * |b|^2)``; rows with zero norm score 0.
    Identical vectors score exactly 1.0.
    """
    dots = np.sum(left * right, axis=1)
    squared = np.sum(left * left, axis=1) * np.sum(right * right, axis=1)
    out = np.zeros(dots.shape, dtype=np.float64)
    nonzero = squared > 0
    out[nonzero] = dots[nonzero] / np.sqrt(squared[nonzero])
    return np.clip(out, -1.0, 1.0)


def cosine_similarity(vec1: np.ndarray, vec2: np.ndarray) -> float:
    """Calculate cosine similarity between two vectors.

    Returns a value in [-1, 1]; 0.0 when either vector has zero norm.

    Raises:
        ValueError: If the vectors have different shapes
    """
    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError("Embeddings must have the same dimensions")
    return float(pairwise_cosines(a.reshape(1, -1), b.reshape(1, -1))[0])


@dataclass(frozen=True)
class EdgeList:
    """Undirected edges ``(rows[k], cols[k])`` with ``rows[k] < cols[k]``."""

    node_count: int
    rows: np.ndarray
    cols: np.ndarray
    scores: np.ndarray
    threshold: float

    def __len__(self) -> int:
        return int(self.rows.size)

    def at_or_above(self, threshold: float) -> "EdgeList":
        """Edges scoring at least ``threshold``.

        Raises:
            ValueError: If ``threshold`` is below the threshold these edges were cut at
        """
        if threshold < self.threshold:
            raise ValueError(
                f"Cannot lower threshold from {self.threshold} to {threshold} without recomputing"
            )
        mask = self.scores >= threshold
        return EdgeList(
            node_count=self.node_count,
            rows=self.rows[mask],
            cols=self.cols[mask],
            scores=self.scores[mask],
            threshold=threshold,
        )

    def pairs(self) -> List[Tuple[int, int]]:
        return list(zip(self.rows.tolist(), self.cols.tolist()))


class SimilarityIndex:
    """Blocked all-pairs cosine similarity for one snapshot's vectors.

    Args:
        vectors: (N, D) matrix of embeddings; rows are item indices
        block_size: Rows scored per block
        max_workers: Threads used to score blocks; 1 scores them inline
    """

    def __init__(self, vectors: np.ndarray, block_size: int = 512, max_workers: int = 1):
        if block_size <= 0:
            raise ValueError("block_size must be positive")
        if max_workers <= 0:
            raise ValueError("max_workers must be positive")

        matrix = np.asarray(vectors, dtype=np.float64)
        if matrix.size and matrix.ndim != 2:
            raise ValueError("vectors must be a 2-dimensional matrix")

        self.node_count = int(matrix.shape[0]) if matrix.size else 0
        self.block_size = block_size
        self.max_workers = max_workers
        self._raw = matrix
        self._norms = np.sqrt(np.sum(matrix * matrix, axis=1)) if self.node_count else matrix
        self.last_elapsed_s = 0.0

    def edges_at_or_above(self, threshold: float) -> EdgeList:
        """Compute every unordered pair scoring at least ``threshold``."""
        start = time.perf_counter()
        starts = list(range(0, self.node_count, self.block_size))

        if self.max_workers > 1 and len(starts) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                blocks = list(pool.map(lambda s: self._score_block(s, threshold), starts))
        else:
            blocks = [self._score_block(s, threshold) for s in starts]

        if blocks:
            rows = np.concatenate([b[0] for b in blocks])
            cols = np.concatenate([b[1] for b in blocks])
            scores = np.concatenate([b[2] for b in blocks])
        else:
            rows = np.empty(0, dtype=np.int64)
            cols = np.empty(0, dtype=np.int64)
            scores = np.empty(0, dtype=np.float64)

        self.last_elapsed_s = time.perf_counter() - start
        logger.debug(
            f"Scored {self.node_count} vectors in {len(starts)} blocks: "
            f"{rows.size} edges >= {threshold} in {self.last_elapsed_s:.2f}s"
        )
        return EdgeList(
            node_count=self.node_count,
            rows=rows,
            cols=cols,
            scores=scores,
            threshold=threshold,
        )

    def _score_block(self, start: int, threshold: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        stop = min(start + self.block_size, self.node_count)
        # Only columns to the right of each row: every unordered pair scored once
        dots = self._raw[start:stop] @ self._raw[start:].T
        denom = np.outer(self._norms[start:stop], self._norms[start:])
        block = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)

        local_rows, local_cols = np.nonzero(block >= threshold - CANDIDATE_SLACK)
        rows = (local_rows + start).astype(np.int64)
        cols = (local_cols + start).astype(np.int64)
        upper = cols > rows
        rows, cols = rows[upper], cols[upper]

        scores = pairwise_cosines(self._raw[rows], self._raw[cols])
        keep = scores >= threshold
        return rows[keep], cols[keep], scores[keep]
