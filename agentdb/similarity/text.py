"""
Text similarity for the embedding cache.

Normalized Levenshtein: 1 - distance / max(len(a), len(b)), in [0, 1].
"""

import math
from typing import Optional


def levenshtein_distance(a: str, b: str, limit: Optional[int] = None) -> int:
    """
    Edit distance (insert, delete, substitute; unit costs).

    With limit set, stops early and returns limit + 1 once every cell of a
    row exceeds it.
    """
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        if limit is not None and min(current) > limit:
            return limit + 1
        previous = current

    return previous[-1]


def levenshtein_similarity(a: str, b: str, threshold: float = 0.0) -> float:
    """
    Normalized similarity of two strings (1.0 means identical).

    With threshold > 0, pairs that cannot reach it return 0.0 without
    running the full distance computation. Any other score is exact.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0

    # The distance is at least the length difference
    if 1.0 - abs(len(a) - len(b)) / longest < threshold:
        return 0.0

    if threshold <= 0:
        return 1.0 - levenshtein_distance(a, b) / longest

    # 10 * (1 - 0.9) is 0.999..., not 1
    limit = math.floor(longest * (1.0 - threshold) + 1e-9)
    distance = levenshtein_distance(a, b, limit=limit)
    if distance > limit:
        return 0.0
    return 1.0 - distance / longest
