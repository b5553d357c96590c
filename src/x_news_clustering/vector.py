"""Embedding parsing and snapshot construction.

Supabase returns pgvector columns as strings like ``"[0.1,0.2,...]"``; tests and
local exports may hand over lists or numpy arrays instead. Anything that cannot
be turned into a non-empty vector of finite numbers is treated as absent; a
single bad element rejects the whole vector.
"""

from __future__ import annotations

import json
import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .models import EligibleItem

logger = logging.getLogger(__name__)


def _finite_floats(values: Iterable[Any]) -> Optional[List[float]]:
    """All elements as floats, or None if any one is not a finite number.

    Dropping a bad element would shift the rest into the wrong dimensions.
    """
    out: List[float] = []
    for value in values:
        if isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(number):
            return None
        out.append(number)
    return out or None


def parse_embedding(raw: Any) -> Optional[List[float]]:
    """Parse a stored embedding into a list of floats.

    Args:
        raw: JSON array string, bracketed comma-separated string, list, tuple
            or numpy array

    Returns:
        List of finite floats, or None if the value is not a clean numeric vector
    """
    if raw is None:
        return None
    if isinstance(raw, np.ndarray):
        if raw.ndim != 1:
            return None
        return _finite_floats(raw.tolist())
    if isinstance(raw, (list, tuple)):
        return _finite_floats(raw)
    if not isinstance(raw, str):
        return None

    trimmed = raw.strip()
    if not trimmed:
        return None
    try:
        parsed = json.loads(trimmed)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, list):
        return _finite_floats(parsed)

    # Numbers JSON rejects, such as ".5" or "+1"
    if not (trimmed.startswith("[") and trimmed.endswith("]")):
        return None
    inner = trimmed[1:-1].strip()
    if not inner:
        return None
    return _finite_floats(part.strip() for part in inner.split(","))


@dataclass(frozen=True)
class ItemSnapshot:
    """Immutable view of one load: every eligible item plus the embedded subset.

    ``vectors`` row ``k`` belongs to ``embedded[k]``. The matrix is marked
    read-only so threshold runs can share it safely.
    """

    items: Tuple[EligibleItem, ...]
    embedded: Tuple[EligibleItem, ...]
    vectors: np.ndarray
    dimension: int
    unparsable: int = 0
    mismatched: int = 0

    @property
    def eligible_count(self) -> int:
        return len(self.items)

    @property
    def embedded_count(self) -> int:
        return len(self.embedded)


def build_snapshot(items: Sequence[EligibleItem]) -> ItemSnapshot:
    """Parse embeddings and stack the usable ones into a float64 matrix.

    The snapshot dimension is the most common parsed vector length; items whose
    vector is missing, unparsable or of another length are left out of the
    matrix but still count as eligible.
    """
    parsed: List[Tuple[EligibleItem, List[float]]] = []
    unparsable = 0
    for item in items:
        vector = parse_embedding(item.embedding)
        if vector is None:
            unparsable += 1
            continue
        parsed.append((item, vector))

    if not parsed:
        if items:
            logger.warning(f"No parseable embeddings among {len(items)} items")
        return ItemSnapshot(
            items=tuple(items),
            embedded=(),
            vectors=_readonly(np.empty((0, 0), dtype=np.float64)),
            dimension=0,
            unparsable=unparsable,
        )

    dimension = Counter(len(vector) for _, vector in parsed).most_common(1)[0][0]
    kept = [(item, vector) for item, vector in parsed if len(vector) == dimension]
    mismatched = len(parsed) - len(kept)

    if unparsable:
        logger.warning(f"Excluded {unparsable} items with missing or unparsable embeddings")
    if mismatched:
        logger.warning(f"Excluded {mismatched} items whose embedding length differs from {dimension}")

    matrix = np.asarray([vector for _, vector in kept], dtype=np.float64)
    return ItemSnapshot(
        items=tuple(items),
        embedded=tuple(item for item, _ in kept),
        vectors=_readonly(matrix),
        dimension=dimension,
        unparsable=unparsable,
        mismatched=mismatched,
    )


def _readonly(matrix: np.ndarray) -> np.ndarray:
    matrix.setflags(write=False)
    return matrix
