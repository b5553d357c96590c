"""Similarity graph over item indices and connected-component extraction."""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, List, Tuple

from .similarity import EdgeList

logger = logging.getLogger(__name__)


class SimilarityGraph:
    """Undirected graph over items ``0..N-1`` stored as an adjacency list."""

    def __init__(self, node_count: int):
        if node_count < 0:
            raise ValueError("node_count must be non-negative")
        self.node_count = node_count
        self.adjacency: List[List[int]] = [[] for _ in range(node_count)]
        self.edge_count = 0

    @classmethod
    def from_edges(cls, edges: EdgeList) -> "SimilarityGraph":
        graph = cls(edges.node_count)
        graph.add_edges(edges.pairs())
        return graph

    def add_edges(self, pairs: Iterable[Tuple[int, int]]) -> None:
        for a, b in pairs:
            if a == b:
                continue
            self.adjacency[a].append(b)
            self.adjacency[b].append(a)
            self.edge_count += 1

    def has_edges(self, node: int) -> bool:
        return bool(self.adjacency[node])

    def connected_components(self) -> List[List[int]]:
        """Breadth-first components, started from each unvisited node in index order.

        Nodes without any edge never appear in the output.
        """
        visited = [False] * self.node_count
        components: List[List[int]] = []

        for start in range(self.node_count):
            if visited[start] or not self.has_edges(start):
                continue
            component: List[int] = []
            queue = deque([start])
            visited[start] = True
            while queue:
                current = queue.popleft()
                component.append(current)
                for neighbor in self.adjacency[current]:
                    if not visited[neighbor]:
                        visited[neighbor] = True
                        queue.append(neighbor)
            components.append(component)

        logger.debug(f"Found {len(components)} components over {self.edge_count} edges")
        return components
