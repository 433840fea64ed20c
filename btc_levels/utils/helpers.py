"""
Helper utilities for BTC Levels system.

Price validation, relative comparisons and text formatting shared by the
pipeline stages and the API layer.
"""

import math
from typing import Iterable, List, Optional, Union

import numpy as np

from .exceptions import InvalidDataException

Number = Union[int, float, np.floating]

SECONDS_PER_DAY = 24 * 60 * 60


def ensure_positive_price(value: Number, name: str = "price") -> float:
    """
    Validate a single price at the boundary

    Raises:
        InvalidDataException: If the value is not a finite positive number
    """
    try:
        price = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidDataException(
            f"{name} must be numeric, got {value!r}",
            original_exception=e
        )

    if not math.isfinite(price) or price <= 0:
        raise InvalidDataException(
            f"{name} must be a finite positive number, got {value!r}",
            validation_errors={name: value}
        )
    return price


def ensure_positive_prices(values: Optional[Iterable[Number]], name: str = "levels") -> List[float]:
    """Validate a collection of prices; ``None`` is treated as empty"""
    if values is None:
        return []
    return [ensure_positive_price(v, name) for v in values]


def relative_difference(value: float, reference: float) -> float:
    """``|value - reference| / reference``; reference must be positive"""
    return abs(value - reference) / reference


def format_price(value: Optional[float], decimals: int = 0) -> str:
    """Format a price as ``$12,345``; ``None`` becomes ``N/A``"""
    if value is None:
        return "N/A"
    return f"${value:,.{decimals}f}"


def format_levels_report(report, max_predefined: int = 10) -> str:
    """
    Render a levels report as a plain text message

    Args:
        report: ``LevelsReport`` produced by the pipeline
        max_predefined: Number of predefined levels listed before "+N more"
    """
    lines = [
        f"BTC Levels Report (Price: {format_price(report.current_price, 2)})",
        "",
        "Closest:",
        f"Support: {format_price(report.support)}",
        f"Resistance: {format_price(report.resistance)}",
        "",
        "Predefined Levels:",
    ]

    predefined = list(report.predefined_levels)
    if predefined:
        lines.extend(f"- {format_price(level)}" for level in predefined[:max_predefined])
        if len(predefined) > max_predefined:
            lines.append(f"... +{len(predefined) - max_predefined} more")
    else:
        lines.append("None loaded.")

    lines.extend(["", "Dynamic Levels (Detected + Blended):"])
    for title, side in (("Supports:", report.supports), ("Resistances:", report.resistances)):
        lines.append(title)
        if side:
            lines.extend(f"- {format_price(level)}" for level in side)
        else:
            lines.append("None")
        lines.append("")
    lines.pop()

    lines.extend(["", f"Similarity with validated levels: {report.similarity:.1f}%"])

    if report.stale:
        lines.append("Warning: historical data is stale (refresh failed)")
    if report.insufficient_data:
        lines.append("Not enough history to detect levels")

    return "\n".join(lines)
