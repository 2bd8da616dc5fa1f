#!/usr/bin/env python3
"""
Example script demonstrating the usage of graph-based segmentation.
"""

import argparse
import numpy as np
import matplotlib.pyplot as plt
from gbis import blur_image, label_image, load_image_grayscale

def create_test_image(size=96):
    """Create a synthetic image with a few flat shapes and some noise."""
    rng = np.random.default_rng(0)
    image = np.full((size, size), 60, dtype=np.float32)

    # Bright square in the center
    c, half = size // 2, size // 6
    image[c-half:c+half, c-half:c+half] = 200

    # Darker disc in the bottom-left quadrant
    yy, xx = np.mgrid[0:size, 0:size]
    disc = (yy - size * 3 // 4) ** 2 + (xx - size // 4) ** 2 < (size // 8) ** 2
    image[disc] = 20

    image += rng.normal(0, 6, image.shape)
    return np.clip(image, 0, 255).astype(np.uint8)

def visualize_results(image, blurred, labels):
    """Visualize the input image, the blurred image and the segment map."""
    fig, axes = plt.subplots(1, 3, figsize=(15, 5))

    axes[0].imshow(image, cmap='gray')
    axes[0].set_title('Original Image')
    axes[0].axis('off')

    axes[1].imshow(blurred, cmap='gray')
    axes[1].set_title('Blurred')
    axes[1].axis('off')

    axes[2].imshow(labels, cmap='nipy_spectral')
    axes[2].set_title(f'Segmentation ({labels.max() + 1} segments)')
    axes[2].axis('off')

    plt.tight_layout()
    plt.show()

def main():
    parser = argparse.ArgumentParser(description='Test graph-based segmentation on an image')
    parser.add_argument('image_path', nargs='?', help='Path to the input image (synthetic if omitted)')
    parser.add_argument('--k', type=float, default=1.0,
                       help='Scale parameter (default: 1.0)')
    parser.add_argument('--sigma', type=float, default=0.8,
                       help='Gaussian blur sigma (default: 0.8)')
    args = parser.parse_args()

    print("Loading image...")
    if args.image_path:
        image = load_image_grayscale(args.image_path)
    else:
        image = create_test_image()

    print("Running segmentation...")
    labels = label_image(image, k=args.k, sigma=args.sigma)

    # Every pixel must carry a dense segment id
    n_segments = int(labels.max()) + 1
    assert set(np.unique(labels)) == set(range(n_segments)), \
           "Error: segment ids are not dense!"

    print("\nSegmentation Statistics:")
    print(f"Image shape: {image.shape}")
    print(f"Number of segments: {n_segments}")
    ids, counts = np.unique(labels, return_counts=True)
    for label in ids[np.argsort(-counts)][:10]:
        count = np.sum(labels == label)
        percentage = 100 * count / labels.size
        print(f"Segment {label}: {count} pixels ({percentage:.1f}%)")

    print("\nDisplaying visualization...")
    visualize_results(image, blur_image(image, args.sigma), labels)

if __name__ == "__main__":
    main()
