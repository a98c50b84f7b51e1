"""
Turning log scores into percentages for display, and kana variants of candidates
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .config import VariantConfig

MIN_SUM = 1e-12
VARIANT_PENALTY_STEP = 0.02


@dataclass
class Candidate:
    text: str
    percent: float


def to_percents(scored: Sequence[Tuple[str, float]]) -> List[Candidate]:
    """Softmax over the given candidates only, scaled to 100.

    This is a relative confidence within the set, not a model probability.
    """
    if not scored:
        return []

    max_log = max(score for _, score in scored)
    exps = [math.exp(score - max_log) for _, score in scored]
    total = max(sum(exps), MIN_SUM)
    return [Candidate(text=text, percent=100.0 * e / total)
            for (text, _), e in zip(scored, exps)]


def _clamp(value, low, high):
    return min(max(value, low), high)


def expand_candidates_with_variants(candidates: Sequence[Candidate],
                                    config: Optional[VariantConfig] = None) -> List[Candidate]:
    """Follow each candidate with the kana variants of its last character.

    Variants keep the rest of the text, so "かき" also offers "かぎ". With
    dedupe_by_text the first candidate for a text wins.
    """
    config = config or VariantConfig()
    if not config.enabled or not candidates or not config.variants:
        return list(candidates)

    factor = _clamp(config.variant_percent_factor, 0.0, 1.0)
    out = []
    seen = set()

    def add(candidate):
        if config.dedupe_by_text:
            if candidate.text in seen:
                return
            seen.add(candidate.text)
        out.append(candidate)

    for base in candidates:
        add(base)
        if not base.text:
            continue
        prefix, last = base.text[:-1], base.text[-1]
        for idx, variant in enumerate(config.variants.get(last, ())):
            penalty = _clamp(factor - idx * VARIANT_PENALTY_STEP, 0.0, 1.0)
            add(Candidate(text=prefix + variant,
                          percent=_clamp(base.percent * penalty, 0.0, 100.0)))
    return out
