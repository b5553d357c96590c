"""
Tests for headline tokenization, coherence scoring and story classification.
"""

import pytest

from src.x_news_clustering.coherence import (
    CoherenceScorer,
    average_pairwise_jaccard,
    is_likely_promo,
)
from src.x_news_clustering.lexical import jaccard_similarity, token_sets, tokenize
from src.x_news_clustering.models import Cluster, ClusterMetrics

from tests.factories import make_item


def cluster_of(items, cluster_id=1):
    times = [item.timestamp for item in items]
    return Cluster(cluster_id=cluster_id, members=tuple(items), earliest=min(times), latest=max(times))


class TestTokenize:
    def test_basic_rules(self):
        tokens = tokenize("Bitcoin ETF approved: $BTC up 2.5% on the news")
        assert tokens == ["bitcoin", "etf", "approved", "$btc", "2.5", "news"]

    def test_short_numbers_and_tickers_kept(self):
        assert tokenize("7 $op go") == ["7", "$op"]

    def test_lone_dollar_dropped(self):
        assert tokenize("$ sign") == ["sign"]

    def test_edge_separators_stripped(self):
        assert tokenize("...breaking... -news-") == ["breaking", "news"]

    def test_deduplicated_in_first_seen_order(self):
        assert tokenize("eth ETH Eth solana eth") == ["eth", "solana"]

    def test_max_tokens(self):
        assert tokenize("aaa bbb ccc ddd", max_tokens=2) == ["aaa", "bbb"]

    def test_empty_and_none(self):
        assert tokenize("") == []
        assert tokenize(None) == []

    def test_stopwords_removed(self):
        assert tokenize("this was the best of times and their fault") == ["best", "times", "fault"]


class TestJaccard:
    def test_overlap(self):
        assert jaccard_similarity({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)

    def test_identical(self):
        assert jaccard_similarity(["x", "y"], ["y", "x"]) == 1.0

    def test_empty_side(self):
        assert jaccard_similarity(set(), {"a"}) == 0.0

    def test_token_sets_drop_empty(self):
        sets = token_sets(["etf approved", "", "on to"])
        assert sets == [frozenset({"etf", "approved"})]


class TestAveragePairwiseJaccard:
    def test_fewer_than_two_sets(self):
        assert average_pairwise_jaccard([]) is None
        assert average_pairwise_jaccard([frozenset({"a"})]) is None

    def test_mean_over_pairs(self):
        sets = [frozenset({"a", "b"}), frozenset({"a", "b"}), frozenset({"c"})]
        # pairs: 1.0, 0.0, 0.0
        assert average_pairwise_jaccard(sets) == pytest.approx(1 / 3)


class TestCoherenceScorer:
    def test_identical_headlines(self):
        items = [make_item(i, headline="SEC approves spot bitcoin ETF", hours=i) for i in range(3)]
        assert CoherenceScorer().coherence(cluster_of(items)) == pytest.approx(1.0)

    def test_undefined_when_fewer_than_two_token_sets(self):
        items = [
            make_item(1, headline="Solana outage resolved"),
            make_item(2, headline="", text=""),
        ]
        assert CoherenceScorer().coherence(cluster_of(items)) is None

    def test_headline_falls_back_to_text(self):
        items = [
            make_item(1, headline=None, text="Coinbase lists new token"),
            make_item(2, headline="Coinbase lists new token"),
        ]
        assert CoherenceScorer().coherence(cluster_of(items)) == pytest.approx(1.0)

    def test_seeded_sampling_is_reproducible(self):
        words = ["bitcoin", "ether", "solana", "ripple", "cardano", "polygon", "chainlink", "uniswap"]
        items = [
            make_item(i, headline=f"{words[i % 8]} {words[(i * 3) % 8]} rally update{i}", hours=i / 10)
            for i in range(60)
        ]
        cluster = cluster_of(items)
        first = CoherenceScorer(seed=42).coherence(cluster)
        second = CoherenceScorer(seed=42).coherence(cluster)
        assert first == second
        assert 0.0 <= first <= 1.0

    def test_coherence_bounds(self):
        items = [make_item(i, headline=h) for i, h in enumerate(["alpha beta", "gamma delta", "alpha gamma"])]
        value = CoherenceScorer(seed=1).coherence(cluster_of(items))
        assert 0.0 <= value <= 1.0

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            CoherenceScorer(max_tokens=0)
        with pytest.raises(ValueError):
            CoherenceScorer(sample_cap=1)


class TestStoryClassification:
    def test_story_candidate(self):
        items = [
            make_item(1, username="alice", hours=0),
            make_item(2, username="bob", hours=1),
            make_item(3, username="alice", hours=5),
        ]
        metrics = CoherenceScorer().score(cluster_of(items))
        assert metrics.is_story_candidate
        assert metrics.unique_authors == 2
        assert metrics.span_hours == pytest.approx(5.0)

    def test_single_author_is_not_story(self):
        items = [make_item(i, username="Alice") for i in range(4)]
        assert not CoherenceScorer().score(cluster_of(items)).is_story_candidate

    def test_two_items_is_not_story(self):
        items = [make_item(1, username="alice"), make_item(2, username="bob")]
        assert not CoherenceScorer().score(cluster_of(items)).is_story_candidate

    def test_author_identity_is_case_insensitive(self):
        items = [make_item(1, username="Alice"), make_item(2, username=" alice "), make_item(3, username="ALICE")]
        assert CoherenceScorer().score(cluster_of(items)).unique_authors == 1

    def test_anonymous_items_count_individually(self):
        items = [make_item(i, username=None) for i in range(3)]
        metrics = CoherenceScorer().score(cluster_of(items))
        assert metrics.unique_authors == 3
        assert metrics.is_story_candidate

    def test_score_all_keeps_order(self):
        clusters = [cluster_of([make_item(i), make_item(i + 10)], cluster_id=i) for i in (1, 2)]
        scored = CoherenceScorer().score_all(clusters)
        assert [s.cluster.cluster_id for s in scored] == [1, 2]
        assert all(s.verdict is None for s in scored)

    def test_metrics_validate(self):
        with pytest.raises(ValueError):
            ClusterMetrics(coherence=1.5, unique_authors=1, span_hours=None, is_story_candidate=False).validate()

    def test_score_rejects_out_of_range_coherence(self, monkeypatch):
        scorer = CoherenceScorer()
        monkeypatch.setattr(scorer, "coherence", lambda cluster: 1.5)
        with pytest.raises(ValueError, match="coherence"):
            scorer.score(cluster_of([make_item(1), make_item(2)]))


class TestPromoHeuristic:
    def test_signal_selling(self):
        items = [
            make_item(1, headline="Join our telegram channel", text="95% accuracy rate, free signals daily"),
            make_item(2, headline="Join our telegram channel", text="DM for access"),
        ]
        assert is_likely_promo(cluster_of(items))

    def test_airdrop_spam_from_numbered_handles(self):
        items = [
            make_item(i, username=f"user{1000 + i}", headline="Airdrop live", text="claim now, connect wallet")
            for i in range(3)
        ]
        assert is_likely_promo(cluster_of(items))

    def test_regular_news(self):
        items = [
            make_item(1, headline="Fed holds rates steady", text="Powell signals patience"),
            make_item(2, headline="Fed holds rates steady", text="Markets flat after decision"),
        ]
        assert not is_likely_promo(cluster_of(items))
