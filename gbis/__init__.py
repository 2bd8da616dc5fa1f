"""
Graph-Based Image Segmentation (GBIS)
-------------------------------------
Felzenszwalb-Huttenlocher segmentation over any weighted graph, with a pixel
grid adapter for 8-bit grayscale images.

Each pixel starts as its own segment. Edges are visited by increasing weight
and two segments C1, C2 are merged along an edge of weight w when
    w <= min(Int(C1) + k/|C1|, Int(C2) + k/|C2|)
where Int(C) is the largest edge weight already merged inside C.

Example:
    >>> import numpy as np
    >>> from gbis import segment_image
    >>>
    >>> # Load your grayscale image as a numpy array (uint8)
    >>> image = ...  # Your image loading code here
    >>>
    >>> # One list of (x, y) coordinates per segment
    >>> segments = segment_image(image, k=1.0, sigma=0.8)

Reference:
@article{Felzenszwalb_2004,
  title={Efficient Graph-Based Image Segmentation},
  author={Felzenszwalb, Pedro F. and Huttenlocher, Daniel P.},
  journal={International Journal of Computer Vision},
  year={2004}
}
"""

from .core import Component, InvalidEdgeWeightError, Segmentation, segment
from .graph import EdgeListGraph, Graph
from .pipeline import blur_image, group_pixels, label_image, load_image_grayscale, process_image_file, segment_image
from .pixel_grid import Neighbor, PixelCoordinate, PixelGrid

__version__ = "0.1.0"
__all__ = [
    "Component",
    "EdgeListGraph",
    "Graph",
    "InvalidEdgeWeightError",
    "Neighbor",
    "PixelCoordinate",
    "PixelGrid",
    "Segmentation",
    "blur_image",
    "group_pixels",
    "label_image",
    "load_image_grayscale",
    "process_image_file",
    "segment",
    "segment_image",
]
