"""
Two-state CTC score of every single-character label.

For a label of length 1 the CTC lattice has two states per time step,
"blank so far" and "character emitted", so the forward pass is closed form:

    a0(t) = logaddexp(a0(t-1), a1(t-1)) + lp[t, blank]
    a1(t) = logaddexp(a0(t-1), a1(t-1)) + lp[t, c]

and the score of c is logaddexp(a0(T-1), a1(T-1)). Because both states take
the same predecessor sum, this is sum_t log(p_blank[t] + p_c[t]); it also
counts paths emitting c in several separate runs, so it is a ranking score
rather than the CTC probability of the label "c".
"""

from typing import List

import numpy as np

from .CTC_Decoder import log_add_exp
from .config import BLANK_ID, NEG_INF


def score_all_single_chars(log_probs, blank_id=BLANK_ID) -> np.ndarray:
    """Per-id log score of the whole matrix collapsing to that one character"""
    log_probs = np.asarray(log_probs, dtype=np.float64)
    if log_probs.ndim != 2 or log_probs.shape[0] == 0:
        raise ValueError(f"Expected a non-empty [T, V] matrix, got shape {log_probs.shape}")
    T, V = log_probs.shape
    scores = np.full(V, NEG_INF, dtype=np.float64)
    blank = log_probs[:, blank_id]

    for c in range(V):
        if c == blank_id:
            continue
        a0 = blank[0]
        a1 = log_probs[0, c]
        for t in range(1, T):
            total_prev = log_add_exp(a0, a1)
            a0 = total_prev + blank[t]
            a1 = total_prev + log_probs[t, c]
        scores[c] = log_add_exp(a0, a1)

    return scores


def top_k_from_scores(scores, top_k) -> List[int]:
    """Best ids by score, ignoring ids that are effectively impossible"""
    scores = np.asarray(scores, dtype=np.float64)
    candidates = [i for i in range(scores.shape[0]) if scores[i] > NEG_INF / 2]
    candidates.sort(key=lambda i: scores[i], reverse=True)
    return candidates[:max(1, top_k)]
