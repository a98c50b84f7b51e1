#!/usr/bin/env python3
"""
Visualize multi-character segmentation and model preprocessing on drawn images
"""

import argparse
import sys
from pathlib import Path

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
from PIL import Image

sys.path.append(str(Path(__file__).resolve().parent.parent))

from ink_ctc import (MODEL_TIME_STRIDE, EmptyInkError, MultiCharSegmenter, PreprocessConfig,
                     SegmentationConfig, preprocess)
from ink_ctc.raster import compose_grid, to_gray_array


def create_segmentation_figure(image, title, seg_config=None, prep_config=None):
    """Three rows: input with cut lines, per-character crops, model canvas"""
    segmenter = MultiCharSegmenter(seg_config)
    gray = to_gray_array(image)
    cuts = segmenter.estimate_char_cut_points(gray)
    parts = segmenter.split_to_characters(gray)

    fig, axes = plt.subplots(3, 1, figsize=(12, 9))
    fig.suptitle(f'Segmentation: "{title}" ({len(parts)} part(s))', fontsize=16, fontweight='bold')

    ax = axes[0]
    ax.imshow(gray, cmap='gray', vmin=0, vmax=255, aspect='auto')
    for x in cuts:
        ax.axvline(x, color='red', linestyle='--', linewidth=1.5)
    ax.set_title(f"Input with {len(cuts)} cut line(s)", fontsize=14, pad=10)
    ax.axis('off')

    ax = axes[1]
    grid = compose_grid(parts, cell_size_px=128, cols=max(1, len(parts)))
    if grid is not None:
        ax.imshow(grid, cmap='gray', vmin=0, vmax=255)
    ax.set_title("Per-character crops", fontsize=14, pad=10)
    ax.axis('off')

    ax = axes[2]
    try:
        prep = preprocess(gray, prep_config)
        canvas = prep.data[0, 0]
        ax.imshow(canvas, cmap='gray', vmin=0.0, vmax=1.0, aspect='auto')
        ax.axvline(prep.valid_time_steps * MODEL_TIME_STRIDE, color='blue', linewidth=1)
        ax.set_title(f"Model canvas {prep.width}x{prep.height}, "
                     f"{prep.valid_time_steps} valid time steps", fontsize=14, pad=10)
    except EmptyInkError:
        ax.set_title("Nothing drawn", fontsize=14, pad=10)
    ax.axis('off')

    plt.tight_layout()
    return fig


def main():
    parser = argparse.ArgumentParser(description='Visualize segmentation of drawn images')
    parser.add_argument('images', nargs='+', help='Image files to visualize')
    parser.add_argument('--output_dir', type=str, default='segmentation_examples')
    parser.add_argument('--seg_target_height', type=int, default=48)
    parser.add_argument('--min_gap_px', type=int, default=10)
    parser.add_argument('--show', action='store_true', help='Open a window for each figure')
    args = parser.parse_args()

    if not args.show:
        matplotlib.use('Agg')

    seg_config = SegmentationConfig(seg_target_height=args.seg_target_height,
                                    min_gap_px=args.min_gap_px)
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("Creating Segmentation Visualizations")
    print("=" * 50)
    for path in args.images:
        path = Path(path)
        image = Image.open(path)
        fig = create_segmentation_figure(np.asarray(image.convert('RGBA')), path.stem,
                                         seg_config, PreprocessConfig())
        output_path = output_dir / f"{path.stem}_segmentation.png"
        fig.savefig(output_path, dpi=150, bbox_inches='tight', facecolor='white')
        print(f"Saved {output_path}")
        if args.show:
            plt.show()
        plt.close(fig)


if __name__ == "__main__":
    main()
