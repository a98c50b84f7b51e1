"""
Splitting of a horizontally written raster into single characters.

The ink is cropped and shrunk to a small working height, columns are marked
as ink or blank, and runs of blank columns wide enough to be a gap between
characters split the ink into ranges. Thin or tightly spaced ranges are
merged back since they are usually parts of one character (e.g. "い", "り").
"""

import logging
import math
from typing import List, NamedTuple, Optional, Tuple

import numpy as np

from .config import SegmentationConfig
from .raster import Bounds, crop, find_ink_bounds, resize_to_height, to_gray_array

logger = logging.getLogger(__name__)

MIN_WORKING_HEIGHT = 8

XRange = Tuple[int, int]  # first, last (inclusive)


def _width(r: XRange) -> int:
    return r[1] - r[0] + 1


def detect_x_ranges(gray, config: SegmentationConfig) -> List[XRange]:
    """Ink column ranges separated by gaps of at least min_gap_px blank columns"""
    h, w = gray.shape[:2]
    if w <= 1 or h <= 1:
        return []

    counts = (gray < config.ink_threshold).sum(axis=0)
    ink_col = counts >= config.min_ink_pixels_per_column

    ranges = []
    i = 0
    while i < w:
        # Skip leading blank columns
        while i < w and not ink_col[i]:
            i += 1
        if i >= w:
            break

        start = i
        last_ink = i
        while i < w:
            if ink_col[i]:
                last_ink = i
                i += 1
                continue
            j = i
            while j < w and not ink_col[j]:
                j += 1
            gap = j - i
            i = j
            if gap >= config.min_gap_px:
                break
            # Short gap: still the same character
        ranges.append((start, last_ink))

    # Narrow ranges are noise
    return [r for r in ranges if _width(r) >= config.min_segment_width_px]


def merge_ranges(ranges: List[XRange], config: SegmentationConfig) -> List[XRange]:
    """Merge ranges that are too thin or too close to be separate characters"""
    if len(ranges) <= 1:
        return list(ranges)

    ordered = sorted(ranges, key=lambda r: r[0])
    out = []
    cur = ordered[0]
    for nxt in ordered[1:]:
        gap = nxt[0] - cur[1] - 1
        cur_thin = _width(cur) <= config.thin_segment_width_px
        nxt_thin = _width(nxt) <= config.thin_segment_width_px
        if gap <= config.merge_gap_px or cur_thin or nxt_thin:
            cur = (cur[0], max(cur[1], nxt[1]))
        else:
            out.append(cur)
            cur = nxt
    out.append(cur)

    # Two thin strokes are one character
    if len(out) == 2:
        if (_width(out[0]) <= config.thin_segment_width_px
                and _width(out[1]) <= config.thin_segment_width_px):
            return [(out[0][0], out[1][1])]

    return out


class SegmentPlan(NamedTuple):
    bounds: Bounds
    source_width: int
    crop: np.ndarray
    spans: List[Tuple[int, int]]  # [left, right) in crop coordinates
    single: bool


class MultiCharSegmenter:
    """Column projection segmenter for multi-character input"""

    def __init__(self, config: Optional[SegmentationConfig] = None):
        self.config = config or SegmentationConfig()

    def plan(self, raster) -> Optional[SegmentPlan]:
        """Locate the characters, or None when the raster holds no ink"""
        cfg = self.config
        gray = to_gray_array(raster)
        bounds = find_ink_bounds(gray, cfg.ink_threshold)
        if bounds is None:
            return None

        cropped = crop(gray, bounds)
        working = resize_to_height(cropped, max(MIN_WORKING_HEIGHT, cfg.seg_target_height),
                                   round_width=False)
        seg_w = working.shape[1]

        merged = merge_ranges(detect_x_ranges(working, cfg), cfg)
        single = len(merged) <= 1
        if single:
            final = [(0, seg_w - 1)]
        else:
            final = merged[:max(1, cfg.max_chars)]

        crop_w = cropped.shape[1]
        scale_x = crop_w / seg_w
        pad = max(0, cfg.out_pad_px)
        spans = []
        for first, last in final:
            x0 = int(math.floor(first * scale_x))
            x1 = int(math.ceil((last + 1) * scale_x))
            lx = min(max(x0 - pad, 0), crop_w - 1)
            rx = min(max(x1 + pad, 0), crop_w)
            spans.append((lx, min(lx + max(1, rx - lx), crop_w)))

        logger.debug("Segmented %d working columns into %s (crop spans %s)",
                     seg_w, final, spans)
        return SegmentPlan(bounds=bounds, source_width=gray.shape[1], crop=cropped, spans=spans, single=single)

    def split_to_characters(self, raster) -> List[np.ndarray]:
        """Per-character grayscale rasters, left to right.

        A single element means the input was judged to be one character;
        an empty list means nothing was drawn.
        """
        plan = self.plan(raster)
        if plan is None:
            return []
        return [plan.crop[:, lx:rx].copy() for lx, rx in plan.spans]

    def estimate_char_cut_points(self, raster) -> List[int]:
        """x coordinates of guide lines between characters in raster space.

        Empty when the input is judged to be a single character.
        """
        plan = self.plan(raster)
        if plan is None or plan.single or len(plan.spans) <= 1:
            return []

        left = plan.bounds[0]
        crop_w = plan.crop.shape[1]

        lines = set()
        for (_, left_end), (right_start, _) in zip(plan.spans, plan.spans[1:]):
            cut = min(max((left_end + right_start) // 2, 0), crop_w)
            lines.add(min(max(left + cut, 0), plan.source_width))
        return sorted(lines)


def split_to_characters(raster, config: Optional[SegmentationConfig] = None) -> List[np.ndarray]:
    return MultiCharSegmenter(config).split_to_characters(raster)


def estimate_char_cut_points(raster, config: Optional[SegmentationConfig] = None) -> List[int]:
    return MultiCharSegmenter(config).estimate_char_cut_points(raster)
