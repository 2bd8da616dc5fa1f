"""
Image-level pipeline: blur, build the pixel graph, segment, regroup pixels.
"""

import logging
from typing import List

import numpy as np
from PIL import Image
from skimage import filters

from .core import Segmentation, segment
from .pixel_grid import PixelCoordinate, PixelGrid

logger = logging.getLogger(__name__)

DEFAULT_K = 1.0
DEFAULT_SIGMA = 0.8


def load_image_grayscale(path: str) -> np.ndarray:
    """Return uint8 grayscale, shape [height, width]."""
    img = Image.open(path)
    if img.mode != "L":
        img = img.convert("L")
    return np.ascontiguousarray(np.asarray(img, dtype=np.uint8))


def to_uint8(image: np.ndarray) -> np.ndarray:
    """
    Bring a grayscale image to uint8.

    Integer images are clipped to [0, 255]. Float images in [0, 1] are scaled,
    float images outside that range are min-max normalized to [0, 1] first.
    """
    arr = np.asarray(image)
    if arr.dtype == np.uint8:
        return arr
    if arr.dtype == np.bool_:
        return arr.astype(np.uint8) * 255
    if np.issubdtype(arr.dtype, np.integer):
        return np.clip(arr, 0, 255).astype(np.uint8)
    if np.issubdtype(arr.dtype, np.floating):
        if np.isnan(arr).any():
            raise ValueError("Image contains NaN values")
        arr = arr.astype(np.float64)
        # Normalize image to [0,1] if needed
        if arr.size and (arr.min() < 0 or arr.max() > 1):
            vmin, vmax = float(arr.min()), float(arr.max())
            arr = np.zeros_like(arr) if vmax <= vmin else (arr - vmin) / (vmax - vmin)
        return np.clip(np.rint(arr * 255.0), 0, 255).astype(np.uint8)
    raise ValueError(f"Unsupported image dtype {arr.dtype}")


def blur_image(image: np.ndarray, sigma: float) -> np.ndarray:
    """
    Gaussian blur a uint8 grayscale image, returning uint8.

    sigma == 0 returns an unmodified copy.
    """
    if not sigma >= 0:
        raise ValueError(f"sigma must be >= 0, got {sigma}")
    image = to_uint8(image)
    if sigma == 0 or image.size == 0:
        return image.copy()
    blurred = filters.gaussian(image.astype(np.float64), sigma=sigma, preserve_range=True)
    return np.clip(np.rint(blurred), 0, 255).astype(np.uint8)


def group_pixels(grid: PixelGrid, result: Segmentation) -> List[List[PixelCoordinate]]:
    """Collect pixel coordinates per segment, each list in row-major order."""
    groups: List[List[PixelCoordinate]] = [[] for _ in range(result.num_segments)]
    for index, segment_id in enumerate(result.node_components.tolist()):
        groups[segment_id].append(grid.from_index(index))
    return groups


def _segment_grid(image: np.ndarray, k: float, sigma: float):
    if image.ndim != 2:
        raise ValueError(f"Image must be 2-D grayscale, got shape {image.shape}")
    grid = PixelGrid(blur_image(image, sigma))
    result = segment(grid, k)
    logger.debug(f"{grid}: k {k}, sigma {sigma}, segments {result.num_segments}")
    return grid, result


def segment_image(image: np.ndarray, k: float = DEFAULT_K,
                  sigma: float = DEFAULT_SIGMA) -> List[List[PixelCoordinate]]:
    """
    Segment a grayscale image into regions of similar intensity.

    Parameters:
    ----------
    image : np.ndarray
        Grayscale image, shape [height, width]. uint8, or float (normalized
        to [0,1] when outside that range)

    k : float, optional
        Scale parameter, larger means fewer and larger segments
        Default: 1.0

    sigma : float, optional
        Standard deviation of the gaussian blur applied first
        Default: 0.8

    Returns:
    -------
    List[List[PixelCoordinate]]
        One list of (x, y) coordinates per segment. Together they cover every
        pixel exactly once.
    """
    image = np.asarray(image)
    grid, result = _segment_grid(image, k, sigma)
    return group_pixels(grid, result)


def label_image(image: np.ndarray, k: float = DEFAULT_K,
                sigma: float = DEFAULT_SIGMA) -> np.ndarray:
    """
    Segment a grayscale image and return the label map.

    Returns:
    -------
    np.ndarray
        int32 segment id per pixel, same shape as the input image
    """
    image = np.asarray(image)
    grid, result = _segment_grid(image, k, sigma)
    return result.node_components.astype(np.int32).reshape(grid.height, grid.width)


def process_image_file(image_path: str, k: float = DEFAULT_K,
                       sigma: float = DEFAULT_SIGMA) -> np.ndarray:
    """Load an image file as grayscale and return its label map."""
    return label_image(load_image_grayscale(image_path), k=k, sigma=sigma)
