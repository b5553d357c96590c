"""Loading the eligible item set from Supabase or a local export."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..errors import ItemSourceError
from ..models import EligibleItem, to_iso

logger = logging.getLogger(__name__)

ITEM_COLUMNS = (
    "id",
    "tweet_id",
    "username",
    "tweet_text",
    "normalized_headline",
    "tweet_time",
    "normalized_headline_embedding",
)


def _chunked(values: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for index in range(0, len(values), size):
        yield values[index : index + size]


def merge_by_id(rows: Iterable[Dict[str, Any]]) -> List[EligibleItem]:
    """Build items from rows, keeping the first row seen for each id."""
    items: List[EligibleItem] = []
    seen = set()
    for row in rows:
        row_id = row.get("id")
        if row_id is None or row_id in seen:
            continue
        seen.add(row_id)
        items.append(EligibleItem.from_db(row))
    return items


@dataclass
class SupabaseItemSource:
    """Page the eligible posts for a window out of the `tweets` table.

    Eligible means: latest version only, not a retweet, reply or quote, and
    both a normalized headline and its embedding present. Ids are listed first
    in ranged pages, then full rows are fetched in ``in_`` chunks so no single
    request carries thousands of vectors.
    """

    client: Any
    table: str = "tweets"
    id_page_size: int = 1000
    row_chunk_size: int = 500

    def load_eligible_items(self, since: Optional[datetime]) -> List[EligibleItem]:
        ids = self._load_eligible_ids(since)
        logger.info(f"Found {len(ids)} eligible ids in {self.table}")

        rows: List[Dict[str, Any]] = []
        for chunk in _chunked(ids, max(1, self.row_chunk_size)):
            try:
                response = (
                    self.client.table(self.table)
                    .select(",".join(ITEM_COLUMNS))
                    .in_("id", list(chunk))
                    .execute()
                )
            except Exception as e:
                raise ItemSourceError(f"Embedding fetch failed: {e}") from e
            rows.extend(response.data or [])
            logger.debug(f"Fetched {len(rows)}/{len(ids)} rows")

        items = merge_by_id(rows)
        logger.info(f"Loaded {len(items)} eligible items with embeddings")
        return items

    def _load_eligible_ids(self, since: Optional[datetime]) -> List[Any]:
        page_size = max(1, self.id_page_size)
        ids: List[Any] = []
        seen = set()
        offset = 0

        while True:
            query = (
                self.client.table(self.table)
                .select("id")
                .not_.is_("normalized_headline_embedding", "null")
                .not_.is_("normalized_headline", "null")
                .eq("is_latest_version", True)
                .eq("is_retweet", False)
                .eq("is_reply", False)
                .eq("is_quote", False)
            )
            if since is not None:
                query = query.gte("tweet_time", to_iso(since))
            try:
                response = query.order("id").range(offset, offset + page_size - 1).execute()
            except Exception as e:
                raise ItemSourceError(f"ID fetch failed: {e}") from e

            page = response.data or []
            for row in page:
                row_id = row.get("id")
                if row_id is not None and row_id not in seen:
                    seen.add(row_id)
                    ids.append(row_id)

            if len(page) < page_size:
                break
            offset += page_size

        return ids


class JsonFileItemSource:
    """Read eligible items from a local export instead of the database.

    Accepts a JSON document (``{"items": [...]}`` or a bare list) or JSONL with
    one row per line, using the same column names as the `tweets` table.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load_eligible_items(self, since: Optional[datetime]) -> List[EligibleItem]:
        try:
            rows = self._read_rows()
        except (OSError, ValueError) as e:
            raise ItemSourceError(f"Failed to read items from {self.path}: {e}") from e

        items = merge_by_id(rows)
        if since is not None:
            items = [item for item in items if item.timestamp is not None and item.timestamp >= since]
        logger.info(f"Loaded {len(items)} items from {self.path}")
        return items

    def _read_rows(self) -> List[Dict[str, Any]]:
        text = self.path.read_text(encoding="utf-8")
        if self.path.suffix == ".jsonl":
            return [json.loads(line) for line in text.splitlines() if line.strip()]

        payload = json.loads(text)
        if isinstance(payload, dict):
            payload = payload.get("items", [])
        if not isinstance(payload, list):
            raise ValueError("expected a list of item rows")
        return [row for row in payload if isinstance(row, dict)]
