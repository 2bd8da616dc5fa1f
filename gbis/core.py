"""
Core functionality for graph-based segmentation.

Implements the algorithm from "Efficient Graph-Based Image Segmentation" by
Felzenszwalb and Huttenlocher (2004) over any source satisfying
:class:`gbis.graph.Graph`.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .graph import Graph

logger = logging.getLogger(__name__)


class InvalidEdgeWeightError(ValueError):
    """Raised when a graph source reports a NaN edge weight."""


@dataclass(frozen=True)
class Component:
    """Statistics of one segment.

    internal_diff is the largest edge weight merged inside the component,
    node_count the number of original nodes it holds.
    """

    internal_diff: float = 0.0
    node_count: int = 1

    def threshold(self, k: float) -> float:
        return self.internal_diff + k / self.node_count


@dataclass
class Segmentation:
    """
    Result of :func:`segment`.

    node_components : np.ndarray
        int64 array, one entry per node index, holding its dense segment id
    components : List[Component]
        surviving components, indexed by segment id
    """

    node_components: np.ndarray
    components: List[Component]

    @property
    def num_segments(self) -> int:
        return len(self.components)


class _ComponentForest:
    """
    Disjoint-set forest over node indices.

    A slot is either a root (parent[i] == i) owning components[i], or a
    forward reference to another slot. Lookups compress paths. The absorbing
    root is always the one found for the first endpoint, so the root that
    stores each component matches an uncompressed forest.
    """

    def __init__(self, n: int):
        self.parent = list(range(n))
        self.components = [Component()] * n

    def find(self, i: int) -> int:
        root = i
        parent = self.parent
        while parent[root] != root:
            root = parent[root]
        while parent[i] != root:
            parent[i], i = root, parent[i]
        return root

    def merge(self, a: int, b: int, weight: float) -> None:
        ca, cb = self.components[a], self.components[b]
        self.components[a] = Component(
            internal_diff=max(ca.internal_diff, cb.internal_diff, weight),
            node_count=ca.node_count + cb.node_count,
        )
        self.parent[b] = a

    def relabel(self) -> Tuple[np.ndarray, List[Component]]:
        n = len(self.parent)
        for i in range(n):
            self.find(i)
        roots = np.asarray(self.parent, dtype=np.int64)
        is_root = roots == np.arange(n, dtype=np.int64)
        dense = np.cumsum(is_root, dtype=np.int64) - 1
        components = [self.components[i] for i in np.flatnonzero(is_root).tolist()]
        return dense[roots], components


def _collect_edges(graph: Graph) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    if hasattr(graph, "index_edges"):
        sources, targets, weights = graph.index_edges()
        return (np.asarray(sources, dtype=np.int64),
                np.asarray(targets, dtype=np.int64),
                np.asarray(weights, dtype=np.float64))

    sources, targets, weights = [], [], []
    for source, target, weight in graph.edges():
        sources.append(graph.to_index(source))
        targets.append(graph.to_index(target))
        weights.append(float(weight))
    return (np.asarray(sources, dtype=np.int64),
            np.asarray(targets, dtype=np.int64),
            np.asarray(weights, dtype=np.float64))


def segment(graph: Graph, k: float) -> Segmentation:
    """
    Partition the nodes of a graph into segments.

    Parameters:
    ----------
    graph : Graph
        Node/edge source. Edge weights must not be NaN.

    k : float
        Scale parameter, k >= 0. Larger values favour larger segments.
        k == 0 only merges along zero-weight edges.

    Returns:
    -------
    Segmentation
        Dense segment id per node, numbered in ascending order of the lowest
        root index, plus the statistics of each segment.

    Raises:
    ------
    InvalidEdgeWeightError
        If any edge weight is NaN. No partial result is produced.

    Notes:
    -----
    Weights and thresholds are compared as float64, so a weight that ties
    MInt only within float32 rounding may merge differently than a float32
    implementation would.
    """
    k = float(k)
    if math.isnan(k) or k < 0:
        raise ValueError(f"k must be a non-negative number, got {k}")

    n = graph.node_bound()
    sources, targets, weights = _collect_edges(graph)
    nan_mask = np.isnan(weights)
    if nan_mask.any():
        first = int(np.flatnonzero(nan_mask)[0])
        raise InvalidEdgeWeightError(
            f"NaN edge weight between nodes {int(sources[first])} and {int(targets[first])}"
        )

    # Stable: equal weights keep the graph's enumeration order
    order = np.argsort(weights, kind="stable")

    forest = _ComponentForest(n)
    merges = 0
    for u, v, w in zip(sources[order].tolist(), targets[order].tolist(), weights[order].tolist()):
        cu_idx = forest.find(u)
        cv_idx = forest.find(v)
        if cu_idx == cv_idx:
            continue

        cu = forest.components[cu_idx]
        cv = forest.components[cv_idx]
        mint = min(cu.threshold(k), cv.threshold(k))
        if w > mint:
            continue

        forest.merge(cu_idx, cv_idx, w)
        merges += 1

    node_components, components = forest.relabel()
    logger.debug(f"segment: nodes {n}, edges {weights.size}, merges {merges}, segments {len(components)}")
    return Segmentation(node_components=node_components, components=components)
