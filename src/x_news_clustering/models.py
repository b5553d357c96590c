from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


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
    "compact_whitespace",
    "to_iso",
]


_WHITESPACE_RE = re.compile(r"\s+")


def compact_whitespace(value: Any) -> str:
    """Collapse runs of whitespace and strip; ``None`` becomes an empty string."""
    return _WHITESPACE_RE.sub(" ", str(value or "")).strip()


@dataclass(frozen=True)
class EligibleItem:
    """A post eligible for clustering.

    Mirrors the subset of the `tweets` table the eligibility query selects.
    The embedding is kept in its raw store encoding; parsing happens when a
    snapshot is built so unparsable vectors never abort a load.
    """

    id: Any
    external_id: Optional[str] = None
    username: Optional[str] = None
    text: Optional[str] = None
    headline: Optional[str] = None
    timestamp: Optional[datetime] = None
    embedding: Any = None

    @classmethod
    def from_db(cls, row: Dict[str, Any]) -> "EligibleItem":
        external_id = row.get("tweet_id")
        return cls(
            id=row["id"],
            external_id=str(external_id) if external_id is not None else None,
            username=row.get("username"),
            text=row.get("tweet_text"),
            headline=row.get("normalized_headline"),
            timestamp=_parse_dt(row.get("tweet_time")),
            embedding=row.get("normalized_headline_embedding"),
        )

    @property
    def display_text(self) -> str:
        """Headline used for tokenization and samples, falling back to raw text."""
        return compact_whitespace(self.headline or self.text or "")

    @property
    def author_key(self) -> str:
        """Case-insensitive author identity; anonymous items count individually."""
        return compact_whitespace(self.username or f"id:{self.external_id or self.id}").lower()


@dataclass(frozen=True)
class Cluster:
    """Connected component that survived size and span filtering."""

    cluster_id: int
    members: Tuple[EligibleItem, ...]
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def item_ids(self) -> List[Any]:
        return [item.id for item in self.members]

    @property
    def earliest_iso(self) -> Optional[str]:
        return to_iso(self.earliest)

    @property
    def latest_iso(self) -> Optional[str]:
        return to_iso(self.latest)


@dataclass(frozen=True)
class ClusterMetrics:
    """Quality signals derived from a cluster's members."""

    coherence: Optional[float]
    unique_authors: int
    span_hours: Optional[float]
    is_story_candidate: bool
    likely_promo: bool = False

    def validate(self) -> None:
        if self.coherence is not None and not (0.0 <= self.coherence <= 1.0):
            raise ValueError("coherence must be in [0,1] or None")
        if self.unique_authors < 0:
            raise ValueError("unique_authors must be non-negative")


@dataclass(frozen=True)
class ScoredCluster:
    """A cluster paired with its metrics and, optionally, a reconciliation verdict."""

    cluster: Cluster
    metrics: ClusterMetrics
    verdict: Optional["ReconciliationVerdict"] = None


@dataclass(frozen=True)
class PersistedClusterMeta:
    """Metadata for a persisted cluster.

    Mirrors `x_news_clusters` table.
    """

    id: Any
    headline: Optional[str] = None
    member_count: Optional[int] = None
    is_story: bool = False

    @classmethod
    def from_db(cls, row: Dict[str, Any]) -> "PersistedClusterMeta":
        count = row.get("tweet_count")
        return cls(
            id=row["id"],
            headline=row.get("normalized_headline"),
            member_count=int(count) if count is not None else None,
            is_story=bool(row.get("is_story_candidate", False)),
        )


@dataclass(frozen=True)
class MappedPersistedCluster:
    """A persisted cluster that shares members with a fresh cluster."""

    id: Any
    overlap: int
    persisted_total: Optional[int]
    headline: str
    is_story: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "item_count_in_this_cluster": self.overlap,
            "persisted_total": self.persisted_total,
            "headline": self.headline,
            "is_story": self.is_story,
        }


class VerdictKind(Enum):
    EXACT_MATCH = "exact-match"
    PARTIAL_MATCH = "partial-match"
    SPLIT_IN_PERSISTENT = "split-in-persistent"
    ALL_NEW = "all-new"

    @classmethod
    def classify(cls, mapped_count: int, unassigned: int) -> "VerdictKind":
        """Pick a verdict; unassigned members outrank the one-vs-many split."""
        if mapped_count == 0:
            return cls.ALL_NEW
        if unassigned > 0:
            return cls.PARTIAL_MATCH
        if mapped_count == 1:
            return cls.EXACT_MATCH
        return cls.SPLIT_IN_PERSISTENT


@dataclass(frozen=True)
class ReconciliationVerdict:
    """How a fresh cluster's membership lines up with the persisted clustering."""

    kind: VerdictKind
    unassigned: int
    mapped: Tuple[MappedPersistedCluster, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verdict": self.kind.value,
            "unassigned": self.unassigned,
            "mapped_clusters": [m.to_dict() for m in self.mapped],
        }


@dataclass(frozen=True)
class SweepResult:
    """Summary statistics for one threshold of a sweep."""

    threshold: float
    clusters: int
    avg_size: float
    max_size: int
    story_like: int
    coverage_pct: float
    elapsed_s: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threshold": self.threshold,
            "clusters": self.clusters,
            "avg_size": round(self.avg_size, 2),
            "max_size": self.max_size,
            "story_like": self.story_like,
            "coverage_pct": round(self.coverage_pct, 2),
            "elapsed_s": round(self.elapsed_s, 3),
        }


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Render a UTC timestamp with millisecond precision and a ``Z`` suffix.

    Fixed width output keeps lexicographic order equal to chronological order.
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"


def _parse_dt(value: Any) -> Optional[datetime]:
    """Parse a datetime if value is a string; pass through datetime; else None.

    Supabase returns timestamps as ISO strings; naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
