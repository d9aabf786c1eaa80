# pricing/text.py
"""
Free-text similarity for listing descriptions: cosine over term frequency.
"""
from __future__ import annotations

import math
import re
from collections import Counter
from typing import List, Optional

STOPWORDS = frozenset([
    "the", "and", "a", "an", "to", "of", "in", "on", "for", "is", "it", "this",
    "that", "with", "as", "by", "at", "from", "are", "was", "be", "or", "we",
    "you", "your", "our",
    # domain filler
    "car", "vehicle",
])

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_text(s: Optional[str]) -> str:
    return _NON_ALNUM.sub(" ", (s or "").lower()).strip()


def tokenize(s: Optional[str]) -> List[str]:
    norm = normalize_text(s)
    if not norm:
        return []
    return [t for t in norm.split() if len(t) > 1 and t not in STOPWORDS]


def term_freq(tokens: List[str]) -> Counter:
    return Counter(tokens)


def cosine_sim(a_text: Optional[str], b_text: Optional[str]) -> float:
    """
    0 when either side has no usable tokens, 1 for identical texts.
    Order of words does not matter.
    """
    a_tf = term_freq(tokenize(a_text))
    b_tf = term_freq(tokenize(b_text))
    if not a_tf or not b_tf:
        return 0.0

    dot = sum(av * b_tf.get(t, 0) for t, av in a_tf.items())
    a_sq = sum(v * v for v in a_tf.values())
    b_sq = sum(v * v for v in b_tf.values())
    if a_sq == 0 or b_sq == 0:
        return 0.0
    # integer product keeps identical vectors at exactly 1
    return min(1.0, max(0.0, dot / math.sqrt(a_sq * b_sq)))
