"""
Similarity Scorer

Percentage of detected levels corroborated by an independently validated
level.
"""

from typing import Iterable, Union

from ..utils.helpers import ensure_positive_price, relative_difference
from .validator import ValidatedLevel


def similarity_score(
    detected: Iterable[float],
    validated: Iterable[Union[ValidatedLevel, float]],
    tolerance: float = 0.02
) -> float:
    """
    ``100 * matched / len(detected)`` where a detected level matches when
    some validated level is within ``tolerance`` (relative to the validated
    level). Returns 0.0 when either side is empty.
    """
    detected = [float(level) for level in detected]
    references = [
        v.level if isinstance(v, ValidatedLevel) else ensure_positive_price(v, "validated_level")
        for v in validated
    ]
    if not detected or not references:
        return 0.0

    matched = sum(
        1 for level in detected
        if any(relative_difference(level, ref) <= tolerance for ref in references)
    )
    return 100.0 * matched / len(detected)
