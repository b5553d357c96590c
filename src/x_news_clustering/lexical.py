"""Headline tokenization and token-set overlap."""

from __future__ import annotations

import re
from typing import FrozenSet, Iterable, List, Sequence

DEFAULT_MAX_TOKENS = 240

STOPWORDS: FrozenSet[str] = frozenset(
    "a an and are as at be by for from has have in is it its of on or that"
    " the their this to was were will with".split()
)

_TOKEN_RE = re.compile(r"[a-z0-9$][a-z0-9$._-]*")
_EDGE_SEPARATORS_RE = re.compile(r"^[._-]+|[._-]+$")
_NUMERIC_RE = re.compile(r"^[0-9]+(?:\.[0-9]+)?$")


def is_ticker(token: str) -> bool:
    return token.startswith("$") and len(token) > 1


def is_numeric(token: str) -> bool:
    return bool(_NUMERIC_RE.match(token))


def tokenize(text: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> List[str]:
    """Split text into de-duplicated lexical tokens in first-seen order.

    Tickers like ``$btc`` and numbers like ``2.5`` are kept at any length and
    are never treated as stopwords; other tokens need three characters.
    """
    out: List[str] = []
    seen = set()
    for raw in _TOKEN_RE.findall(str(text or "").lower()):
        token = _EDGE_SEPARATORS_RE.sub("", raw)
        if not token:
            continue

        ticker = is_ticker(token)
        if not ticker and not is_numeric(token) and len(token) < 3:
            continue
        if not ticker and token in STOPWORDS:
            continue
        if token in seen:
            continue

        seen.add(token)
        out.append(token)
        if len(out) >= max_tokens:
            break
    return out


def jaccard_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """Intersection over union of two token collections; 0.0 if either is empty."""
    set_a = set(a)
    set_b = set(b)
    if not set_a or not set_b:
        return 0.0
    intersection = len(set_a & set_b)
    union = len(set_a) + len(set_b) - intersection
    return intersection / union if union > 0 else 0.0


def token_sets(texts: Sequence[str], max_tokens: int = DEFAULT_MAX_TOKENS) -> List[FrozenSet[str]]:
    """Tokenize each text, dropping the ones that yield no tokens."""
    sets = (frozenset(tokenize(text, max_tokens)) for text in texts)
    return [tokens for tokens in sets if tokens]
