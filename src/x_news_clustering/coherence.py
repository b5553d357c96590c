"""
Lexical coherence and story classification for clusters.

Coherence is measured independently of the embeddings that formed a cluster:
it is the mean pairwise Jaccard overlap of the members' headline token sets.
Large clusters are scored on a random sample of members; pass a seed to make
those scores reproducible.
"""

from __future__ import annotations

import logging
import random
import re
from itertools import combinations
from typing import FrozenSet, List, Optional, Sequence

from .lexical import DEFAULT_MAX_TOKENS, jaccard_similarity, token_sets
from .models import Cluster, ClusterMetrics, ScoredCluster, compact_whitespace

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_CAP = 40
STORY_MIN_ITEMS = 3
STORY_MIN_AUTHORS = 2

PROMO_SPAM_TERMS = (
    "airdrop",
    "claim",
    "claims",
    "wallet",
    "connect wallet",
    "giveaway",
    "distribution is live",
    "trading signal",
    "signal service",
    "telegram channel",
    "free signal",
    "free signals",
    "accuracy rate",
    "guaranteed returns",
    "dm for access",
)

_SIGNAL_PATTERN = re.compile(r"(trading signal|signal service|telegram channel|accuracy rate|free signals?)")
_SUSPICIOUS_HANDLE = re.compile(r"[0-9]{4,}")


def average_pairwise_jaccard(
    sets: Sequence[FrozenSet[str]],
    sample_cap: int = DEFAULT_SAMPLE_CAP,
    rng: Optional[random.Random] = None,
) -> Optional[float]:
    """Mean Jaccard over all pairs, sampling ``sample_cap`` sets when there are more.

    Returns None when fewer than two sets are given.
    """
    if len(sets) < 2:
        return None
    sample = list(sets)
    if len(sample) > sample_cap:
        sample = (rng or random.Random()).sample(sample, sample_cap)

    total = 0.0
    pairs = 0
    for a, b in combinations(sample, 2):
        total += jaccard_similarity(a, b)
        pairs += 1
    return total / pairs if pairs else None


def is_likely_promo(cluster: Cluster) -> bool:
    """Heuristic for giveaway and signal-selling spam that clusters tightly."""
    handles = [compact_whitespace(item.username).lower() for item in cluster.members]
    handles = [h for h in handles if h]
    texts = [compact_whitespace(item.text) for item in cluster.members]
    headline = cluster.members[0].headline if cluster.members else ""
    combined = compact_whitespace(" ".join([headline or ""] + [t for t in texts if t]).lower())

    if _SIGNAL_PATTERN.search(combined):
        return True

    hits = sum(1 for term in PROMO_SPAM_TERMS if term in combined)
    if hits >= 3:
        return True

    suspicious_ratio = 0.0
    if len(handles) >= 3:
        suspicious_ratio = sum(1 for h in handles if _SUSPICIOUS_HANDLE.search(h)) / len(handles)
    return hits >= 2 and suspicious_ratio >= 0.6


class CoherenceScorer:
    """Compute ClusterMetrics for clusters.

    Args:
        max_tokens: Token cap per item
        sample_cap: Members scored pairwise before sampling kicks in
        story_min_items: Minimum members for a story candidate
        story_min_authors: Minimum distinct authors for a story candidate
        seed: Seed for the member sampler; None leaves sampling non-deterministic
    """

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        sample_cap: int = DEFAULT_SAMPLE_CAP,
        story_min_items: int = STORY_MIN_ITEMS,
        story_min_authors: int = STORY_MIN_AUTHORS,
        seed: Optional[int] = None,
    ):
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if sample_cap < 2:
            raise ValueError("sample_cap must be at least 2")
        self.max_tokens = max_tokens
        self.sample_cap = sample_cap
        self.story_min_items = story_min_items
        self.story_min_authors = story_min_authors
        self._rng = random.Random(seed)

    def coherence(self, cluster: Cluster) -> Optional[float]:
        sets = token_sets([item.display_text for item in cluster.members], self.max_tokens)
        return average_pairwise_jaccard(sets, self.sample_cap, self._rng)

    def score(self, cluster: Cluster) -> ClusterMetrics:
        unique_authors = len({item.author_key for item in cluster.members})
        times = [item.timestamp for item in cluster.members if item.timestamp is not None]
        span_hours = (max(times) - min(times)).total_seconds() / 3600.0 if len(times) >= 2 else None

        metrics = ClusterMetrics(
            coherence=self.coherence(cluster),
            unique_authors=unique_authors,
            span_hours=span_hours,
            is_story_candidate=(
                cluster.member_count >= self.story_min_items
                and unique_authors >= self.story_min_authors
            ),
            likely_promo=is_likely_promo(cluster),
        )
        metrics.validate()
        return metrics

    def score_all(self, clusters: Sequence[Cluster]) -> List[ScoredCluster]:
        scored = [ScoredCluster(cluster=c, metrics=self.score(c)) for c in clusters]
        logger.debug(f"Scored coherence for {len(scored)} clusters")
        return scored
