"""Tests for the segmentation engine."""

from __future__ import annotations

import math

import numpy as np
import pytest

from gbis.core import Component, InvalidEdgeWeightError, Segmentation, segment
from gbis.graph import EdgeListGraph
from gbis.pixel_grid import PixelGrid


class EdgesOnly:
    """Expose only the four graph operations of a wrapped source."""

    def __init__(self, inner):
        self.inner = inner

    def node_bound(self):
        return self.inner.node_bound()

    def to_index(self, node):
        return self.inner.to_index(node)

    def from_index(self, index):
        return self.inner.from_index(index)

    def edges(self):
        return self.inner.edges()


class NaNGraph:
    def node_bound(self):
        return 3

    def to_index(self, node):
        return node

    def from_index(self, index):
        return index

    def edges(self):
        yield 0, 1, 0.2
        yield 1, 2, float("nan")


class NaNIndexGraph(NaNGraph):
    def index_edges(self):
        return (np.array([0, 1]), np.array([1, 2]), np.array([0.2, np.nan]))


def _blocks_image() -> np.ndarray:
    """8x8 image made of four flat 4x4 quadrants."""
    img = np.zeros((8, 8), dtype=np.uint8)
    img[:4, :4] = 0
    img[:4, 4:] = 30
    img[4:, :4] = 120
    img[4:, 4:] = 250
    return img


def _as_sets(result: Segmentation):
    groups = {}
    for node, seg in enumerate(result.node_components.tolist()):
        groups.setdefault(seg, set()).add(node)
    return [frozenset(g) for g in groups.values()]


class TestMergeRule:
    def test_uniform_image_single_component(self) -> None:
        img = np.full((2, 2), 100, dtype=np.uint8)
        result = segment(PixelGrid(img), k=0.3)
        assert result.num_segments == 1
        assert result.node_components.tolist() == [0, 0, 0, 0]
        assert result.components == [Component(internal_diff=0.0, node_count=4)]

    def test_high_contrast_small_k_no_merge(self) -> None:
        img = np.array([[0, 255]], dtype=np.uint8)
        result = segment(PixelGrid(img), k=0.01)
        assert result.node_components.tolist() == [0, 1]
        assert result.components == [Component(0.0, 1), Component(0.0, 1)]

    def test_high_contrast_large_k_merges(self) -> None:
        img = np.array([[0, 255]], dtype=np.uint8)
        result = segment(PixelGrid(img), k=1.0)
        assert result.node_components.tolist() == [0, 0]
        assert result.components == [Component(1.0, 2)]

    def test_weight_equal_to_threshold_merges(self) -> None:
        graph = EdgeListGraph(["a", "b"], [("a", "b", 0.5)])
        result = segment(graph, k=0.5)
        assert result.num_segments == 1

    def test_internal_diff_tracks_largest_merged_weight(self) -> None:
        graph = EdgeListGraph(
            ["a", "b", "c"],
            [("b", "c", 0.4), ("a", "b", 0.1)],
        )
        result = segment(graph, k=1.0)
        assert result.components == [Component(internal_diff=0.4, node_count=3)]

    def test_size_normalised_threshold_blocks_large_component(self) -> None:
        # {a, b} joined at 0 has threshold k/2, c alone has threshold k
        graph = EdgeListGraph(
            ["a", "b", "c"],
            [("a", "b", 0.0), ("b", "c", 0.4)],
        )
        result = segment(graph, k=0.5)
        assert result.node_components.tolist() == [0, 0, 1]
        assert result.components == [Component(0.0, 2), Component(0.0, 1)]

    def test_zero_k_merges_only_zero_weights(self) -> None:
        graph = EdgeListGraph(
            [0, 1, 2, 3],
            [(0, 1, 0.0), (1, 2, 1e-9), (2, 3, 0.0)],
        )
        result = segment(graph, k=0.0)
        assert result.node_components.tolist() == [0, 0, 1, 1]

    def test_negative_k_rejected(self) -> None:
        with pytest.raises(ValueError, match="k must be"):
            segment(EdgeListGraph([0], []), k=-1.0)

    def test_nan_k_rejected(self) -> None:
        with pytest.raises(ValueError, match="k must be"):
            segment(EdgeListGraph([0], []), k=math.nan)


class TestDegenerateGraphs:
    def test_single_pixel(self) -> None:
        result = segment(PixelGrid(np.zeros((1, 1), dtype=np.uint8)), k=1.0)
        assert result.node_components.tolist() == [0]
        assert result.components == [Component(0.0, 1)]

    def test_empty_graph(self) -> None:
        result = segment(EdgeListGraph([], []), k=1.0)
        assert result.node_components.size == 0
        assert result.components == []

    def test_no_edges_gives_singletons(self) -> None:
        result = segment(EdgeListGraph(["x", "y", "z"], []), k=10.0)
        assert result.node_components.tolist() == [0, 1, 2]
        assert result.num_segments == 3


class TestRelabeling:
    def test_absorbing_root_is_first_endpoint(self) -> None:
        # c absorbs a, so the merged segment lives at index 2, after b
        graph = EdgeListGraph(["a", "b", "c"], [("c", "a", 0.0)])
        result = segment(graph, k=1.0)
        assert result.node_components.tolist() == [1, 0, 1]

    def test_equal_weights_keep_enumeration_order(self) -> None:
        nodes = ["a", "b", "x", "c"]
        forward = EdgeListGraph(nodes, [("c", "a", 0.0), ("b", "a", 0.0)])
        backward = EdgeListGraph(nodes, [("b", "a", 0.0), ("c", "a", 0.0)])

        # final root b (index 1) comes before x
        assert segment(forward, k=1.0).node_components.tolist() == [0, 0, 1, 0]
        # final root c (index 3) comes after x
        assert segment(backward, k=1.0).node_components.tolist() == [1, 1, 0, 1]

    def test_edges_processed_by_weight_not_input_order(self) -> None:
        graph = EdgeListGraph(
            ["a", "b", "c"],
            [("b", "c", 0.3), ("a", "b", 0.1)],
        )
        # a-b first: threshold of {a, b} is 0.1 + 0.2 / 2, too small for 0.3
        result = segment(graph, k=0.2)
        assert result.node_components.tolist() == [0, 0, 1]

    def test_ids_dense_and_components_cover_nodes(self) -> None:
        rng = np.random.default_rng(7)
        img = rng.integers(0, 256, size=(9, 11), dtype=np.uint8)
        result = segment(PixelGrid(img), k=0.8)
        ids = result.node_components
        assert ids.dtype == np.int64
        assert ids.min() == 0
        assert ids.max() == result.num_segments - 1
        assert set(ids.tolist()) == set(range(result.num_segments))
        assert sum(c.node_count for c in result.components) == img.size
        counts = np.bincount(ids, minlength=result.num_segments)
        assert counts.tolist() == [c.node_count for c in result.components]


class TestFailure:
    def test_nan_weight_raises(self) -> None:
        with pytest.raises(InvalidEdgeWeightError, match="NaN"):
            segment(NaNGraph(), k=1.0)

    def test_nan_weight_is_value_error(self) -> None:
        graph = EdgeListGraph(["a", "b"], [("a", "b", float("nan"))])
        with pytest.raises(ValueError):
            segment(graph, k=1.0)

    def test_nan_weight_from_index_edges_raises(self) -> None:
        with pytest.raises(InvalidEdgeWeightError, match="nodes 1 and 2"):
            segment(NaNIndexGraph(), k=1.0)


class TestProperties:
    def test_deterministic(self) -> None:
        rng = np.random.default_rng(3)
        img = rng.integers(0, 256, size=(16, 16), dtype=np.uint8)
        a = segment(PixelGrid(img), k=1.5)
        b = segment(PixelGrid(img), k=1.5)
        assert a.node_components.tobytes() == b.node_components.tobytes()
        assert a.components == b.components

    def test_index_edges_matches_generic_path(self) -> None:
        rng = np.random.default_rng(11)
        img = rng.integers(0, 256, size=(10, 13), dtype=np.uint8)
        grid = PixelGrid(img)
        fast = segment(grid, k=0.7)
        slow = segment(EdgesOnly(grid), k=0.7)
        assert np.array_equal(fast.node_components, slow.node_components)
        assert fast.components == slow.components

    @pytest.mark.parametrize("k, expected", [(0.5, 4), (2.0, 3), (6.0, 3), (10.0, 1), (20.0, 1)])
    def test_block_image_segment_counts(self, k: float, expected: int) -> None:
        result = segment(PixelGrid(_blocks_image()), k=k)
        assert result.num_segments == expected

    def test_larger_k_only_coarsens(self) -> None:
        grid = PixelGrid(_blocks_image())
        ks = [0.5, 2.0, 6.0, 10.0, 20.0]
        partitions = [_as_sets(segment(grid, k=k)) for k in ks]
        for fine, coarse in zip(partitions, partitions[1:]):
            for seg in coarse:
                pieces = [f for f in fine if f & seg]
                assert all(p <= seg for p in pieces)
                assert frozenset().union(*pieces) == seg
