"""
Configuration for ink preprocessing, segmentation and CTC decoding.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Tuple


# Temporal downsampling of the paired recognition model: one output time
# step per MODEL_TIME_STRIDE input columns. Re-check when swapping models.
MODEL_TIME_STRIDE = 2

# Log-domain zero. Anything at or below this is treated as probability 0.
NEG_INF = -1e30

BLANK_ID = 0

# Punctuation that is only accepted when a single character was drawn
DEFAULT_BANNED_PUNCT = frozenset({'、', '。'})

# Square normalization applied to every segment before recognition
SQUARE_NORMALIZATION = {
    'ink_threshold': 245,
    'inner_pad_px': 8,
    'outer_margin_px': 24,
    'min_side_px': 192,
}
MIN_PART_SIDE_PX = 16
MIN_NORMALIZED_SIDE_PX = 32

DEFAULT_DECODING = {
    'top_k': 5,
    'beam_width': 25,
    'per_step_top': 25,
}

# Small kana and voiced forms offered next to a recognized last character
KANA_VARIANTS = {
    'あ': ('ぁ',),
    'い': ('ぃ',),
    'う': ('ぅ', 'ゔ'),
    'え': ('ぇ',),
    'お': ('ぉ',),
    'や': ('ゃ',),
    'ゆ': ('ゅ',),
    'よ': ('ょ',),
    'わ': ('ゎ',),
    'か': ('が',),
    'き': ('ぎ',),
    'く': ('ぐ',),
    'け': ('げ',),
    'こ': ('ご',),
    'さ': ('ざ',),
    'し': ('じ',),
    'す': ('ず',),
    'せ': ('ぜ',),
    'そ': ('ぞ',),
    'た': ('だ',),
    'ち': ('ぢ',),
    'つ': ('づ', 'っ'),
    'て': ('で',),
    'と': ('ど',),
    'は': ('ば', 'ぱ'),
    'ひ': ('び', 'ぴ'),
    'ふ': ('ぶ', 'ぷ'),
    'へ': ('べ', 'ぺ'),
    'ほ': ('ぼ', 'ぽ'),
}


class PasteMode(Enum):
    LEFT = 'left'
    CENTER = 'center'


@dataclass(frozen=True)
class PreprocessConfig:
    """Settings for normalizing a raster into the model input tensor"""
    target_height: int = 32
    max_width: int = 512
    ink_threshold: int = 245
    paste_mode: PasteMode = PasteMode.LEFT  # must match the training layout
    min_paste_margin_px: int = 0
    # True for models trained on inverted input (white=0.0, black=1.0)
    invert_input: bool = False


@dataclass(frozen=True)
class SegmentationConfig:
    """Settings for splitting one raster into characters.

    Pixel values other than out_pad_px are measured on the reduced working
    image of height seg_target_height. out_pad_px is in crop pixels.
    """
    ink_threshold: int = 245
    seg_target_height: int = 48
    min_ink_pixels_per_column: int = 1
    min_gap_px: int = 10
    min_segment_width_px: int = 10
    thin_segment_width_px: int = 12
    merge_gap_px: int = 6
    out_pad_px: int = 6
    max_chars: int = 12


@dataclass(frozen=True)
class VariantConfig:
    """Expansion of candidates with kana variants of their last character.

    The n-th variant of a character gets the base percent scaled by
    variant_percent_factor - n * 0.02, clamped to [0, 1].
    """
    enabled: bool = True
    dedupe_by_text: bool = True
    variant_percent_factor: float = 0.90
    variants: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: dict(KANA_VARIANTS))
