"""
Pixel grid graph: pixels are nodes, edges link each pixel to its 8 neighbours.

Edge weights are the absolute intensity difference of the two pixels scaled
from 8-bit to [0, 1].
"""

from enum import Enum
from typing import Iterator, NamedTuple, Tuple

import numpy as np

MAX_INTENSITY = 255.0


class PixelCoordinate(NamedTuple):
    x: int
    y: int


class Neighbor(Enum):
    """Forward half of the 8-neighbourhood, in emission order."""

    RIGHT = (1, 0)
    DOWN = (0, 1)
    DOWN_RIGHT = (1, 1)
    DOWN_LEFT = (-1, 1)

    @property
    def dx(self) -> int:
        return self.value[0]

    @property
    def dy(self) -> int:
        return self.value[1]

    def apply(self, c: PixelCoordinate) -> PixelCoordinate:
        return PixelCoordinate(c.x + self.dx, c.y + self.dy)


class PixelGrid:
    """
    Represent a single-channel 8-bit image as an implicit 8-connected graph.

    Parameters:
    ----------
    image : np.ndarray
        Grayscale image as uint8 array, shape [height, width]

    Every undirected edge is emitted once: pixels are visited in row-major
    order and each emits Right, Down, DownRight, DownLeft where the neighbour
    exists. This order decides which edge wins among equal weights.
    """

    def __init__(self, image: np.ndarray):
        image = np.asarray(image)
        if image.ndim != 2:
            raise ValueError(f"Image must be 2-D (height, width), got shape {image.shape}")
        if image.dtype != np.uint8:
            raise ValueError(f"Image must be uint8, got {image.dtype}")
        self.image = np.ascontiguousarray(image)
        self.height, self.width = self.image.shape

    def node_bound(self) -> int:
        return self.width * self.height

    def to_index(self, node: PixelCoordinate) -> int:
        return node.y * self.width + node.x

    def from_index(self, index: int) -> PixelCoordinate:
        y, x = divmod(index, self.width)
        return PixelCoordinate(x, y)

    def _in_bounds(self, c: PixelCoordinate) -> bool:
        return 0 <= c.x < self.width and 0 <= c.y < self.height

    def weight(self, a: PixelCoordinate, b: PixelCoordinate) -> float:
        ia = int(self.image[a.y, a.x])
        ib = int(self.image[b.y, b.x])
        return abs(ia - ib) / MAX_INTENSITY

    def edges(self) -> Iterator[Tuple[PixelCoordinate, PixelCoordinate, float]]:
        for y in range(self.height):
            for x in range(self.width):
                base = PixelCoordinate(x, y)
                for neighbor in Neighbor:
                    target = neighbor.apply(base)
                    if self._in_bounds(target):
                        yield base, target, self.weight(base, target)

    def index_edges(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Vectorized equivalent of :meth:`edges` using dense node indices.

        Returns:
        -------
        (sources, targets, weights) : Tuple[np.ndarray, np.ndarray, np.ndarray]
            int64, int64 and float64 arrays in exactly the order :meth:`edges`
            yields them.
        """
        H, W = self.height, self.width
        ys, xs = np.mgrid[0:H, 0:W]
        index = ys * W + xs
        img = self.image.astype(np.int16)

        sources, targets, weights, valid = [], [], [], []
        for neighbor in Neighbor:
            tx = xs + neighbor.dx
            ty = ys + neighbor.dy
            ok = (tx >= 0) & (tx < W) & (ty < H)
            # clip so gathering is safe, masked entries are dropped below
            cx = np.clip(tx, 0, max(W - 1, 0))
            cy = np.clip(ty, 0, max(H - 1, 0))
            sources.append(index)
            targets.append(ty * W + tx)
            weights.append(np.abs(img - img[cy, cx]).astype(np.float64) / MAX_INTENSITY)
            valid.append(ok)

        # stack on the last axis so C-order flattening gives per-pixel emission order
        valid_flat = np.stack(valid, axis=-1).ravel()
        src = np.stack(sources, axis=-1).ravel()[valid_flat].astype(np.int64)
        dst = np.stack(targets, axis=-1).ravel()[valid_flat].astype(np.int64)
        w = np.stack(weights, axis=-1).ravel()[valid_flat]
        return src, dst, w

    def __repr__(self) -> str:
        return f"PixelGrid(width={self.width}, height={self.height})"
