"""
Ink raster helpers.

Every raster handed to the pipeline (a PIL image or a numpy array) is turned
into a 2-D grayscale array once, white background and dark ink. The model
input is built from the unrounded luminance (to_luminance); thresholds and
segmentation work on its uint8 form (to_gray_array). No helper in this
module modifies its input.
"""

import math
from typing import List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from .config import SQUARE_NORMALIZATION

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

Bounds = Tuple[int, int, int, int]  # left, top, right, bottom (exclusive)


def _luminance(rgb):
    r = rgb[..., 0].astype(np.float64)
    g = rgb[..., 1].astype(np.float64)
    b = rgb[..., 2].astype(np.float64)
    return LUMA_WEIGHTS[0] * r + LUMA_WEIGHTS[1] * g + LUMA_WEIGHTS[2] * b


def _as_0_255(arr):
    """Numeric array on the 0..255 scale; float arrays are read as [0, 1]"""
    if arr.dtype == np.bool_:
        return arr.astype(np.float64) * 255.0
    if np.issubdtype(arr.dtype, np.floating):
        if arr.size and (np.nanmin(arr) < 0.0 or np.nanmax(arr) > 1.0):
            raise ValueError("Float rasters must hold intensities in [0, 1]")
        return arr.astype(np.float64) * 255.0
    return np.clip(arr, 0, 255).astype(np.float64)


def to_luminance(image) -> np.ndarray:
    """Convert a PIL image or numpy array to float64 grayscale in [0, 255].

    Color is reduced with the BT.601 weights and not rounded. Fully
    transparent pixels (alpha 0) count as white background, whatever their
    color channels hold. Other alpha values are ignored.
    """
    if isinstance(image, Image.Image):
        if image.mode in ('L', '1'):
            lum = np.asarray(image.convert('L'), dtype=np.float64)
        else:
            rgba = np.asarray(image.convert('RGBA'))
            lum = _luminance(rgba)
            lum[rgba[..., 3] == 0] = 255.0
    elif isinstance(image, np.ndarray):
        arr = image
        if arr.ndim == 2:
            lum = _as_0_255(arr)
        elif arr.ndim == 3 and arr.shape[2] == 1:
            lum = _as_0_255(arr[..., 0])
        elif arr.ndim == 3 and arr.shape[2] in (3, 4):
            lum = _luminance(_as_0_255(arr))
            if arr.shape[2] == 4:
                lum[arr[..., 3] == 0] = 255.0
        else:
            raise ValueError(f"Unsupported raster shape: {arr.shape}")
    else:
        raise TypeError(f"Unsupported raster type: {type(image).__name__}")

    if lum.shape[0] < 1 or lum.shape[1] < 1:
        raise ValueError(f"Raster must be at least 1x1, got {lum.shape[1]}x{lum.shape[0]}")
    return lum


def quantize(lum) -> np.ndarray:
    # 1e-6 keeps pure white at 255 despite float rounding of the weights
    return np.clip(np.floor(lum + 1e-6), 0, 255).astype(np.uint8)


def to_gray_array(image) -> np.ndarray:
    """Convert a PIL image or numpy array to a uint8 grayscale array"""
    return quantize(to_luminance(image))


def ink_mask(gray, ink_threshold=245):
    return gray < ink_threshold


def find_ink_bounds(gray, ink_threshold=245) -> Optional[Bounds]:
    """Tight bounding box of all ink pixels, or None when nothing is drawn"""
    mask = ink_mask(gray, ink_threshold)
    cols = np.flatnonzero(mask.any(axis=0))
    if cols.size == 0:
        return None
    rows = np.flatnonzero(mask.any(axis=1))
    return int(cols[0]), int(rows[0]), int(cols[-1]) + 1, int(rows[-1]) + 1


def last_ink_column(gray, ink_threshold=245) -> int:
    """Index of the right-most column holding ink, -1 if there is none"""
    cols = np.flatnonzero(ink_mask(gray, ink_threshold).any(axis=0))
    return int(cols[-1]) if cols.size else -1


def crop(gray, bounds: Bounds) -> np.ndarray:
    left, top, right, bottom = bounds
    return gray[top:bottom, left:right]


def resize(gray, width, height) -> np.ndarray:
    """Bilinear resize to exactly width x height"""
    width = max(1, int(width))
    height = max(1, int(height))
    if gray.shape == (height, width):
        return gray
    return cv2.resize(np.ascontiguousarray(gray), (width, height),
                      interpolation=cv2.INTER_LINEAR)


def resize_to_height(gray, target_height, round_width=True) -> np.ndarray:
    """Resize keeping the aspect ratio so that the height is target_height.

    With round_width the new width is rounded half up, otherwise truncated.
    """
    h, w = gray.shape[:2]
    if h == target_height:
        return gray
    scaled = w * target_height / h
    new_width = int(math.floor(scaled + 0.5)) if round_width else int(scaled)
    return resize(gray, max(1, new_width), target_height)


def white_canvas(width, height, dtype=np.uint8) -> np.ndarray:
    return np.full((height, width), 255, dtype=dtype)


def paste(canvas, patch, x, y):
    """Copy patch into canvas at (x, y), in place"""
    ph, pw = patch.shape[:2]
    canvas[y:y + ph, x:x + pw] = patch
    return canvas


def tight_center_square(gray,
                        ink_threshold=SQUARE_NORMALIZATION['ink_threshold'],
                        inner_pad_px=SQUARE_NORMALIZATION['inner_pad_px'],
                        outer_margin_px=SQUARE_NORMALIZATION['outer_margin_px'],
                        min_side_px=SQUARE_NORMALIZATION['min_side_px']) -> np.ndarray:
    """Crop the ink (grown by inner_pad_px) and center it on a white square.

    The square side is the larger crop side plus outer_margin_px on both
    sides, and never less than min_side_px. A raster without ink is
    returned unchanged.
    """
    bounds = find_ink_bounds(gray, ink_threshold)
    if bounds is None:
        return gray

    h, w = gray.shape[:2]
    pad = max(0, inner_pad_px)
    left = max(0, bounds[0] - pad)
    top = max(0, bounds[1] - pad)
    right = min(w, bounds[2] + pad)
    bottom = min(h, bounds[3] + pad)
    cropped = gray[top:bottom, left:right]
    ch, cw = cropped.shape

    margin = max(0, outer_margin_px)
    side = max(max(1, min_side_px), max(cw, ch) + margin * 2)
    out = white_canvas(side, side)
    return paste(out, cropped, (side - cw) // 2, (side - ch) // 2)


def concat_horizontal(left, right) -> np.ndarray:
    """Place two rasters side by side on white, vertically centered"""
    height = max(left.shape[0], right.shape[0], 1)
    width = max(left.shape[1] + right.shape[1], 1)
    out = white_canvas(width, height)
    paste(out, left, 0, (height - left.shape[0]) // 2)
    paste(out, right, left.shape[1], (height - right.shape[0]) // 2)
    return out


def compose_grid(images: List[np.ndarray], cell_size_px=128, cols=4, pad_px=10) -> Optional[np.ndarray]:
    """Tile rasters into a preview grid, each scaled to fit its cell"""
    if not images:
        return None

    cols = max(1, cols)
    rows = max(1, math.ceil(len(images) / cols))
    cell = max(8, cell_size_px)
    pad = max(0, pad_px)

    out = white_canvas(pad + cols * (cell + pad), pad + rows * (cell + pad))
    for i, src in enumerate(images):
        r, c = divmod(i, cols)
        x0 = pad + c * (cell + pad)
        y0 = pad + r * (cell + pad)

        sh, sw = max(1, src.shape[0]), max(1, src.shape[1])
        scale = min(cell / sw, cell / sh)
        dw = max(1, int(sw * scale))
        dh = max(1, int(sh * scale))
        scaled = resize(src, dw, dh)
        paste(out, scaled, x0 + (cell - dw) // 2, y0 + (cell - dh) // 2)
    return out
