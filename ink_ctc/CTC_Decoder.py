"""
CTC decoding: greedy collapse and prefix beam search in log space
"""

import logging
import math
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .config import DEFAULT_DECODING, NEG_INF
from .errors import DegenerateBeamError
from .vocab import CTCVocab

logger = logging.getLogger(__name__)


def log_add_exp(a: float, b: float) -> float:
    """log(exp(a) + exp(b)), with values <= NEG_INF treated as probability zero"""
    if a <= NEG_INF:
        return b
    if b <= NEG_INF:
        return a
    m = max(a, b)
    return m + math.log(math.exp(a - m) + math.exp(b - m))


def top_indices(row: np.ndarray, k: int) -> np.ndarray:
    """Ids of the k largest entries, best first (ties keep id order)"""
    return np.argsort(-row, kind='stable')[:k]


class BeamState:
    """Log probabilities of a prefix ending in blank / in a character"""

    __slots__ = ('log_blank', 'log_non_blank')

    def __init__(self, log_blank=NEG_INF, log_non_blank=NEG_INF):
        self.log_blank = log_blank
        self.log_non_blank = log_non_blank

    @property
    def total(self) -> float:
        return log_add_exp(self.log_blank, self.log_non_blank)


class CTCDecoder:
    """CTC decoder over a character vocabulary with blank id 0"""

    def __init__(self, vocab: CTCVocab):
        self.vocab = vocab
        self.blank_id = vocab.blank

    def greedy_ids(self, log_probs) -> List[int]:
        """Per-timestep argmax ids of a [T, V] matrix"""
        log_probs = np.asarray(log_probs)
        if log_probs.shape[0] == 0:
            return []
        return [int(i) for i in np.argmax(log_probs, axis=-1)]

    def greedy_decode(self, ids: Sequence[int]) -> str:
        """Collapse a raw id sequence: drop blanks and repeats not split by a blank"""
        decoded = []
        prev = None
        for idx in ids:
            idx = int(idx)
            if idx == self.blank_id:
                prev = idx
                continue
            if prev is not None and prev == idx:
                continue
            decoded.append(self.vocab.id_to_char(idx))
            prev = idx
        return ''.join(decoded)

    def decode_greedy_log_probs(self, log_probs) -> str:
        return self.greedy_decode(self.greedy_ids(log_probs))

    def decode_top_k(self, log_probs, top_k=DEFAULT_DECODING['top_k'],
                     beam_width=DEFAULT_DECODING['beam_width'],
                     per_step_top=DEFAULT_DECODING['per_step_top']) -> List[Tuple[str, float]]:
        """Prefix beam search.

        Args:
            log_probs: [T, V] log-softmax output
            top_k: number of hypotheses returned
            beam_width: prefixes kept after every time step
            per_step_top: ids expanded per time step

        Returns:
            Up to top_k (text, log_score) pairs, best first.
        """
        log_probs = np.asarray(log_probs, dtype=np.float64)
        if log_probs.ndim != 2 or log_probs.shape[0] == 0:
            raise ValueError(f"Expected a non-empty [T, V] matrix, got shape {log_probs.shape}")
        T, V = log_probs.shape

        beams: Dict[str, BeamState] = {'': BeamState(log_blank=0.0, log_non_blank=NEG_INF)}

        for t in range(T):
            lp = log_probs[t]
            step_ids = top_indices(lp, min(per_step_top, V))

            # Fresh map per step; the previous one is only read
            next_beams: Dict[str, BeamState] = {}

            def state(key):
                st = next_beams.get(key)
                if st is None:
                    st = next_beams[key] = BeamState()
                return st

            for prefix, st in beams.items():
                p_blank = st.log_blank
                p_non_blank = st.log_non_blank
                p_total = st.total

                for c in step_ids:
                    p = float(lp[c])

                    if c == self.blank_id:
                        ns = state(prefix)
                        ns.log_blank = log_add_exp(ns.log_blank, p_total + p)
                        continue

                    ch = self.vocab.id_to_char(int(c))
                    if prefix[-1:] == ch:
                        # A doubled character needs a blank in between
                        extended = state(prefix + ch)
                        extended.log_non_blank = log_add_exp(extended.log_non_blank, p_blank + p)
                        # Repeat without blank collapses into the same prefix
                        same = state(prefix)
                        same.log_non_blank = log_add_exp(same.log_non_blank, p_non_blank + p)
                    else:
                        extended = state(prefix + ch)
                        extended.log_non_blank = log_add_exp(extended.log_non_blank, p_total + p)

            ranked = sorted(next_beams.items(), key=lambda kv: kv[1].total, reverse=True)
            beams = dict(ranked[:beam_width])
            if not beams:
                raise DegenerateBeamError(
                    f"No prefix survived step {t} (beam_width={beam_width}, per_step_top={per_step_top})")

        finals = sorted(((prefix, st.total) for prefix, st in beams.items()),
                        key=lambda item: item[1], reverse=True)
        return finals[:max(1, top_k)]
