"""
Graph sources for the segmentation engine.

Any object with ``node_bound``, ``to_index``, ``from_index`` and ``edges`` can be
segmented by :func:`gbis.core.segment`. Node identities are whatever the source
finds natural (pixel coordinates, strings, ...), as long as ``to_index`` maps
them densely onto ``[0, node_bound())``.
"""

from typing import Any, Dict, Hashable, Iterable, Iterator, List, Protocol, Sequence, Tuple, runtime_checkable

Edge = Tuple[Any, Any, float]


@runtime_checkable
class Graph(Protocol):
    """Read-only view of an undirected, weighted graph."""

    def node_bound(self) -> int:
        ...

    def to_index(self, node: Any) -> int:
        ...

    def from_index(self, index: int) -> Any:
        ...

    def edges(self) -> Iterable[Edge]:
        """Yield ``(source, target, weight)``, each undirected edge once, no NaN weights."""
        ...


class EdgeListGraph:
    """
    Adjacency-list graph over arbitrary hashable nodes.

    Parameters:
    ----------
    nodes : Sequence[Hashable]
        Node identities. Their position in the sequence is their dense index.

    edges : Iterable[Tuple[Hashable, Hashable, float]]
        Undirected weighted edges. Enumeration order is kept as given, which
        decides tie-breaking among equal weights.
    """

    def __init__(self, nodes: Sequence[Hashable], edges: Iterable[Edge]):
        self._nodes: List[Hashable] = list(nodes)
        self._index: Dict[Hashable, int] = {}
        for i, node in enumerate(self._nodes):
            if node in self._index:
                raise ValueError(f"Duplicate node {node!r}")
            self._index[node] = i

        self._edges: List[Edge] = []
        for source, target, weight in edges:
            if source not in self._index or target not in self._index:
                raise ValueError(f"Edge ({source!r}, {target!r}) references an unknown node")
            self._edges.append((source, target, float(weight)))

    def node_bound(self) -> int:
        return len(self._nodes)

    def to_index(self, node: Hashable) -> int:
        return self._index[node]

    def from_index(self, index: int) -> Hashable:
        return self._nodes[index]

    def edges(self) -> Iterator[Edge]:
        return iter(self._edges)

    def __repr__(self) -> str:
        return f"EdgeListGraph(nodes={len(self._nodes)}, edges={len(self._edges)})"
