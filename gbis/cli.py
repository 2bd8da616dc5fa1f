#!/usr/bin/env python3
"""
Batch Felzenszwalb segmentation of a directory of images.

Each image is loaded as 8-bit grayscale, blurred, segmented and written as
<output_dir>/felzenszwalb/<stem>_index.png. Label maps with at most 256
segments are saved as indexed PNGs with the VOC palette so neighbouring
segments get distinct colours, larger ones as 16-bit grayscale PNGs holding
the raw segment ids.
"""

import argparse, json, logging, time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional

import numpy as np
from PIL import Image
from tqdm import tqdm

from .core import Component, segment
from .pipeline import DEFAULT_K, DEFAULT_SIGMA, label_image, load_image_grayscale, segment_image
from .pixel_grid import PixelGrid

METHOD_NAME = "felzenszwalb"
IMG_EXTS = {".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff"}


# --------------------------- VOC colormap and saving ---------------------------

def voc_colormap(N: int = 256, normalized: bool = False) -> np.ndarray:
    """PASCAL VOC colormap, same bit trick as common implementations."""
    def bitget(byteval, idx):
        return (byteval & (1 << idx)) != 0

    dtype = np.float32 if normalized else np.uint8
    colormap = np.zeros((N, 3), dtype=dtype)
    for i in range(N):
        r = g = b = 0
        c = i
        for j in range(8):
            r |= (int(bitget(c, 0)) << (7 - j))
            g |= (int(bitget(c, 1)) << (7 - j))
            b |= (int(bitget(c, 2)) << (7 - j))
            c >>= 3
        colormap[i] = [r, g, b]
    if normalized:
        colormap /= 255.0
    return colormap


def save_label_png(labels: np.ndarray,
                   out_path: str,
                   palette: Optional[np.ndarray] = None) -> None:
    """
    Save an H x W segment id map as PNG.

    Up to 256 segments: indexed PNG, segment id = palette index.
    Up to 65536 segments: 16-bit grayscale PNG with the raw ids.
    """
    m = np.asarray(labels, dtype=np.int64)
    top = int(m.max()) if m.size else 0
    if top < 256:
        # putpalette switches an "L" image to "P" with the same indices
        im = Image.fromarray(m.astype(np.uint8))
        pal = palette if palette is not None else voc_colormap()
        im.putpalette(pal.astype(np.uint8).flatten().tolist())
    elif top < 65536:
        im = Image.fromarray(m.astype(np.uint16))
    else:
        raise ValueError(f"Too many segments to store as PNG: {top + 1}")
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    im.save(out_path, format="PNG")


def find_images(images_dir: str) -> List[str]:
    """List image files in a directory, sorted by name."""
    images_dir = Path(images_dir)
    return [str(p) for p in sorted(images_dir.iterdir())
            if p.is_file() and p.suffix.lower() in IMG_EXTS]


# --------------------------- Runner ---------------------------

def run_single_image(image_path: str, args) -> np.ndarray:
    image = load_image_grayscale(image_path)

    t0 = time.time()
    labels = label_image(image, k=args.k, sigma=args.sigma)
    ms = (time.time() - t0) * 1000.0

    H, W = image.shape
    n_segments = int(labels.max()) + 1 if labels.size else 0
    logging.info(f"{Path(image_path).stem}, {H}x{W}, segments {n_segments}, runtime_ms {ms:.2f}")
    return labels


def _save_outputs(base: str, labels: np.ndarray, out_root: Path, args) -> None:
    save_label_png(labels, str(out_root / f"{base}_index.png"), palette=voc_colormap())
    if args.save_npy:
        np.save(out_root / f"{base}_labels.npy", labels)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Felzenszwalb graph-based segmentation of grayscale images")
    ap.add_argument("--images_dir", type=str)
    ap.add_argument("--output_dir", type=str)
    ap.add_argument("--k", type=float, default=DEFAULT_K, help="scale parameter, larger means bigger segments")
    ap.add_argument("--sigma", type=float, default=DEFAULT_SIGMA, help="gaussian blur sigma, 0 disables blurring")
    ap.add_argument("--num-images", type=int, default=0, help="0 means all")
    ap.add_argument("--start-one", type=int, default=1, help="1-indexed start position")
    ap.add_argument("--workers", type=int, default=0, help="process images in a thread pool")
    ap.add_argument("--save-npy", action="store_true", help="also save raw label maps as .npy")
    ap.add_argument("--run-tests", action="store_true")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    if args.run_tests:
        _run_tests()
        return 0

    if not args.images_dir or not args.output_dir:
        ap.error("--images_dir and --output_dir are required")
    if not args.k >= 0:
        ap.error(f"--k must be >= 0, got {args.k}")
    if not args.sigma >= 0:
        ap.error(f"--sigma must be >= 0, got {args.sigma}")

    images = find_images(args.images_dir)
    start_idx = max(0, int(args.start_one) - 1)
    if start_idx >= len(images):
        logging.info(json.dumps({"processed": 0, "skipped": len(images), "reason": "start index beyond input"}))
        return 0
    end_idx = len(images) if args.num_images == 0 else min(len(images), start_idx + int(args.num_images))
    work_list = images[start_idx:end_idx]

    out_root = Path(args.output_dir) / METHOD_NAME
    out_root.mkdir(parents=True, exist_ok=True)

    processed, skipped = 0, 0
    times = []

    if args.workers and args.workers > 0:
        def task(img_path):
            t0 = time.time()
            labels = run_single_image(img_path, args)
            return labels, (time.time() - t0) * 1000.0

        with tqdm(total=len(work_list), desc="FH") as pbar, ThreadPoolExecutor(max_workers=int(args.workers)) as ex:
            futs = {ex.submit(task, p): p for p in work_list}
            for f in as_completed(futs):
                base = Path(futs[f]).stem
                try:
                    labels, ms = f.result()
                    _save_outputs(base, labels, out_root, args)
                    processed += 1
                    times.append(ms)
                except Exception as e:
                    logging.error(f"Error on {base}: {e}")
                    skipped += 1
                pbar.update(1)
    else:
        with tqdm(total=len(work_list), desc="FH") as pbar:
            for img_path in work_list:
                base = Path(img_path).stem
                try:
                    t0 = time.time()
                    labels = run_single_image(img_path, args)
                    ms = (time.time() - t0) * 1000.0
                    _save_outputs(base, labels, out_root, args)
                    processed += 1
                    times.append(ms)
                except Exception as e:
                    logging.error(f"Error on {base}: {e}")
                    skipped += 1
                pbar.update(1)

    print(json.dumps({
        "total": len(work_list),
        "processed": processed,
        "skipped": skipped,
        "avg_runtime_ms": float(np.mean(times)) if times else None,
        "median_runtime_ms": float(np.median(times)) if times else None,
        "k": float(args.k),
        "sigma": float(args.sigma),
        "method": METHOD_NAME
    }))
    return 0


# --------------------------- Minimal tests ---------------------------

def _synthetic_case(H: int = 32, W: int = 32) -> np.ndarray:
    """Two flat halves with a hard vertical edge."""
    img = np.full((H, W), 40, dtype=np.uint8)
    img[:, W // 2:] = 220
    return img


def _run_tests():
    logging.info("Running synthetic test")
    img = _synthetic_case()
    H, W = img.shape

    segments = segment_image(img, k=0.5, sigma=0.0)
    assert len(segments) == 2, f"expected 2 segments, got {len(segments)}"
    assert sum(len(s) for s in segments) == H * W, "segments must cover every pixel"

    result = segment(PixelGrid(img), k=0.5)
    assert result.components == [Component(0.0, H * W // 2)] * 2, "halves must be flat and equal"
    logging.info(f"OK, segments {len(segments)}")
    print(json.dumps({"test": "ok", "segments": len(segments)}))


if __name__ == "__main__":
    raise SystemExit(main())
