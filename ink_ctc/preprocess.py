"""
Normalization of an ink raster into the recognition model input
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import torch

from .config import MODEL_TIME_STRIDE, PasteMode, PreprocessConfig
from .errors import EmptyInkError
from .raster import (crop, find_ink_bounds, last_ink_column, paste, quantize, resize,
                     resize_to_height, to_luminance, white_canvas)

logger = logging.getLogger(__name__)


@dataclass
class PreprocessResult:
    data: np.ndarray  # float32 [1, 1, height, width]
    height: int
    width: int
    valid_time_steps: int

    def to_tensor(self, device='cpu'):
        """Model input tensor of shape [1, 1, H, W]"""
        return torch.from_numpy(self.data).to(device)


class InkPreprocessor:
    """Crops the ink, scales it to the model height and pastes it on a fixed canvas"""

    def __init__(self, config: Optional[PreprocessConfig] = None):
        self.config = config or PreprocessConfig()

    def run(self, raster) -> PreprocessResult:
        cfg = self.config
        # Unrounded luminance feeds the canvas, its uint8 form the ink tests
        lum = to_luminance(raster)

        bounds = find_ink_bounds(quantize(lum), cfg.ink_threshold)
        if bounds is None:
            raise EmptyInkError("Nothing drawn.")

        resized = resize_to_height(crop(lum, bounds), cfg.target_height)

        H, W = cfg.target_height, cfg.max_width
        canvas = white_canvas(W, H, dtype=np.float64)

        margin = max(0, cfg.min_paste_margin_px)
        paste_w = max(1, min(resized.shape[1], W - margin * 2))
        paste_h = max(1, min(resized.shape[0], H - margin * 2))
        patch = resize(resized, paste_w, paste_h)
        ph, pw = patch.shape

        if cfg.paste_mode is PasteMode.LEFT:
            dx = margin
        else:
            dx = (W - pw) // 2
        dx = min(max(dx, 0), W - pw)
        dy = min(max((H - ph) // 2, 0), H - ph)
        paste(canvas, patch, dx, dy)

        # Valid width is measured on the final canvas, after resampling
        last = last_ink_column(quantize(canvas), cfg.ink_threshold)
        valid_width = W if last < 0 else min(max(last + 1, 1), W)
        valid_steps = max(1, valid_width // MODEL_TIME_STRIDE)

        floats = (np.clip(canvas, 0.0, 255.0) / 255.0).astype(np.float32)
        if cfg.invert_input:
            floats = 1.0 - floats

        logger.debug("Ink bounds %s -> patch %dx%d at (%d, %d), valid width %d, %d time steps",
                     bounds, pw, ph, dx, dy, valid_width, valid_steps)

        return PreprocessResult(
            data=floats.reshape(1, 1, H, W),
            height=H,
            width=W,
            valid_time_steps=valid_steps,
        )


def preprocess(raster, config: Optional[PreprocessConfig] = None) -> PreprocessResult:
    """Shortcut for InkPreprocessor(config).run(raster)"""
    return InkPreprocessor(config).run(raster)
