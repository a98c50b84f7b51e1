"""
Handwritten character recognition from ink rasters with a CTC model.

This package turns a drawn raster into the fixed-size input of a CTC
recognition model, splits multi-character input by ink column projection,
and decodes the model's log-probabilities with greedy collapse, prefix beam
search or the two-state single-character score.
"""

from .config import (MODEL_TIME_STRIDE, NEG_INF, PasteMode, PreprocessConfig,
                     SegmentationConfig, VariantConfig)
from .errors import (DegenerateBeamError, EmptyInkError, InkCTCError,
                     UnexpectedOutputShapeError)
from .preprocess import InkPreprocessor, PreprocessResult, preprocess
from .segmenter import MultiCharSegmenter, estimate_char_cut_points, split_to_characters
from .vocab import CTCVocab
from .CTC_Decoder import CTCDecoder, log_add_exp
from .single_char import score_all_single_chars, top_k_from_scores
from .ranking import Candidate, expand_candidates_with_variants, to_percents
from .model_output import OutputLayout, extract_log_probs
from .recognizer import InkRecognizer, MultiCharResult, load_model

__version__ = "1.0.0"
__author__ = "HTR Team"

__all__ = [
    "MODEL_TIME_STRIDE",
    "NEG_INF",
    "PasteMode",
    "PreprocessConfig",
    "SegmentationConfig",
    "VariantConfig",
    "InkCTCError",
    "EmptyInkError",
    "UnexpectedOutputShapeError",
    "DegenerateBeamError",
    "InkPreprocessor",
    "PreprocessResult",
    "preprocess",
    "MultiCharSegmenter",
    "split_to_characters",
    "estimate_char_cut_points",
    "CTCVocab",
    "CTCDecoder",
    "log_add_exp",
    "score_all_single_chars",
    "top_k_from_scores",
    "Candidate",
    "to_percents",
    "expand_candidates_with_variants",
    "OutputLayout",
    "extract_log_probs",
    "InkRecognizer",
    "MultiCharResult",
    "load_model",
]
