"""
End-to-end recognition around an opaque CTC model.

The model is any callable taking a [1, 1, H, W] float tensor and returning
log-probabilities shaped [T, 1, V], [1, T, V] or [T, V]; normally a
TorchScript module loaded with InkRecognizer.from_files.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import numpy as np
import torch

from .CTC_Decoder import CTCDecoder
from .config import (DEFAULT_BANNED_PUNCT, DEFAULT_DECODING, MIN_NORMALIZED_SIDE_PX,
                     MIN_PART_SIDE_PX, PreprocessConfig, SegmentationConfig,
                     VariantConfig)
from .errors import DegenerateBeamError, EmptyInkError
from .model_output import extract_log_probs
from .preprocess import InkPreprocessor
from .ranking import Candidate, expand_candidates_with_variants, to_percents
from .raster import concat_horizontal, tight_center_square, to_gray_array
from .segmenter import MultiCharSegmenter
from .single_char import score_all_single_chars, top_k_from_scores
from .vocab import CTCVocab

logger = logging.getLogger(__name__)


@dataclass
class MultiCharResult:
    composed_text: str = ''
    candidates: List[Candidate] = field(default_factory=list)


def load_model(model_path, device='cpu'):
    """Load a TorchScript recognition model in eval mode"""
    model = torch.jit.load(str(model_path), map_location=device)
    model.eval()
    return model


class InkRecognizer:
    """Preprocess, run the model and decode"""

    def __init__(self, model, vocab: CTCVocab, config: Optional[PreprocessConfig] = None,
                 device='cpu'):
        self.model = model
        self.vocab = vocab
        self.config = config or PreprocessConfig()
        self.device = torch.device(device)
        self.preprocessor = InkPreprocessor(self.config)
        self.decoder = CTCDecoder(vocab)

    @classmethod
    def from_files(cls, model_path, vocab_path, config=None, device='cpu'):
        model = load_model(model_path, device)
        vocab = CTCVocab.from_file(vocab_path)
        logger.info("Loaded model %s with %d classes", model_path, vocab.size)
        return cls(model, vocab, config=config, device=device)

    def log_probs(self, raster) -> np.ndarray:
        """[T, V] log-probabilities for the ink part of one raster"""
        prep = self.preprocessor.run(raster)
        with torch.no_grad():
            output = self.model(prep.to_tensor(self.device))
        return extract_log_probs(output, prep.valid_time_steps)

    def infer(self, raster) -> str:
        """Greedy decoding"""
        return self.decoder.decode_greedy_log_probs(self.log_probs(raster))

    def infer_top_k(self, raster, top_k=DEFAULT_DECODING['top_k']) -> List[Candidate]:
        """Single-character candidates ranked by the two-state CTC score"""
        scores = score_all_single_chars(self.log_probs(raster), blank_id=self.vocab.blank)
        top_ids = top_k_from_scores(scores, top_k)
        ranked = to_percents([(self.vocab.id_to_char(i), float(scores[i])) for i in top_ids])
        out = [c for c in ranked if c.text]
        return out if out else [Candidate(text='', percent=100.0)]

    def infer_beam_top_k(self, raster, top_k=DEFAULT_DECODING['top_k'],
                         beam_width=DEFAULT_DECODING['beam_width'],
                         per_step_top=DEFAULT_DECODING['per_step_top']) -> List[Candidate]:
        """Multi-character candidates from prefix beam search"""
        log_probs = self.log_probs(raster)
        try:
            top = self.decoder.decode_top_k(log_probs, top_k=top_k, beam_width=beam_width,
                                            per_step_top=per_step_top)
        except DegenerateBeamError as e:
            logger.warning("Beam search returned nothing: %s", e)
            return []
        return to_percents(top)

    def infer_parts_punctuation_single_only(self, parts: List, banned_punct: Iterable[str] = DEFAULT_BANNED_PUNCT,
                                            top_k=DEFAULT_DECODING['top_k']) -> List[str]:
        """Recognize segmented parts, allowing punctuation only for single input.

        When a part's best guess is banned punctuation, the part is joined
        with its right neighbour and recognized again; if that yields a
        proper character both parts are consumed.
        """
        if not parts:
            return []
        if len(parts) == 1:
            return [self.infer(parts[0])]

        banned = set(banned_punct)
        out = []
        i = 0
        while i < len(parts):
            part = to_gray_array(parts[i])
            top = self.infer_top_k(part, top_k=top_k)
            best = top[0].text if top else ''

            if best in banned and i < len(parts) - 1:
                merged = concat_horizontal(part, to_gray_array(parts[i + 1]))
                pick_merged = _best_allowed(self.infer_top_k(merged, top_k=top_k), banned)
                if pick_merged:
                    out.append(pick_merged)
                    i += 2
                    continue
                out.append(_best_allowed(top, banned))
                i += 1
                continue

            if best and best not in banned:
                out.append(best)
            else:
                out.append(_best_allowed(top, banned))
            i += 1

        return out

    def _part_candidates(self, part, top_k) -> List[Candidate]:
        """Candidates for one segmented part, empty when it is unusable"""
        if part.shape[0] < MIN_PART_SIDE_PX or part.shape[1] < MIN_PART_SIDE_PX:
            return []
        normalized = tight_center_square(part)
        if normalized.shape[0] < MIN_NORMALIZED_SIDE_PX or normalized.shape[1] < MIN_NORMALIZED_SIDE_PX:
            return []
        try:
            cands = self.infer_top_k(normalized, top_k=max(1, top_k))
        except EmptyInkError:
            return []
        return [c for c in cands if c.text.strip() and c.percent > 0.0]

    def recognize_multi(self, raster, seg_config: Optional[SegmentationConfig] = None,
                        top_k=6, variant_config: Optional[VariantConfig] = None) -> MultiCharResult:
        """Split the raster into characters and recognize each one.

        Every character but the last is fixed to its best guess; the
        candidates offered are those of the last character behind that
        prefix. With a variant_config the candidates are expanded with kana
        variants of their last character; composed_text is unaffected.
        """
        parts = MultiCharSegmenter(seg_config).split_to_characters(raster)
        all_cands = [self._part_candidates(part, top_k) for part in parts]
        if not all_cands:
            return MultiCharResult()

        if len(all_cands) == 1:
            only = all_cands[0]
            top1 = only[0].text.strip() if only else ''
            return MultiCharResult(composed_text=top1,
                                   candidates=_with_variants(only, variant_config))

        prefix = ''
        for cands in all_cands[:-1]:
            t = cands[0].text.strip() if cands else ''
            if not t:
                break
            prefix += t
        if not prefix:
            return MultiCharResult()

        last = all_cands[-1]
        if not last:
            return MultiCharResult()

        logger.debug("Composed prefix %r from %d parts", prefix, len(all_cands) - 1)
        display = [Candidate(text=prefix + c.text, percent=c.percent) for c in last]
        return MultiCharResult(
            composed_text=prefix + last[0].text.strip(),
            candidates=_with_variants(display, variant_config),
        )


def _best_allowed(top: List[Candidate], banned) -> str:
    for c in top:
        if c.text and c.text not in banned:
            return c.text
    return ''


def _with_variants(candidates: List[Candidate], variant_config) -> List[Candidate]:
    if variant_config is None:
        return candidates
    return expand_candidates_with_variants(candidates, variant_config)
