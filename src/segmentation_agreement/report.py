"""
Plain-text reports for agreement results.
"""

from __future__ import annotations

import math
from typing import Union

from segmentation_agreement.models import GammaResult, UnitizingResult


def interpret_agreement(value: float) -> str:
    """
    Get human-readable interpretation of an agreement value.

    Based on Landis & Koch (1977) interpretation scale.
    """
    if math.isnan(value):
        return "undefined"
    elif value < 0.0:
        return "poor (worse than chance)"
    elif value < 0.20:
        return "slight"
    elif value < 0.40:
        return "fair"
    elif value < 0.60:
        return "moderate"
    elif value < 0.80:
        return "substantial"
    else:
        return "almost perfect"


def _format_value(value: float, decimals: int) -> str:
    return "n/a" if math.isnan(value) else f"{value:.{decimals}f}"


def generate_text_report(result: Union[GammaResult, UnitizingResult], decimals: int = 4) -> str:
    """
    Generate human-readable text report.

    Args:
        result: Gamma or unitizing alpha result
        decimals: Digits shown after the decimal point

    Returns:
        Formatted text report
    """
    if isinstance(result, GammaResult):
        title = "SEGMENTATION AGREEMENT: GAMMA"
        summary = [
            f"Raters:                 {', '.join(result.raters)}",
            f"Observed Disorder:      {_format_value(result.observed_disorder, decimals)}",
            f"Expected Disorder:      {_format_value(result.expected_disorder, decimals)}",
            f"Alignments Retained:    {result.alignment_count}",
            f"Samples Drawn:          {result.samples}"
            + ("" if result.converged else " (precision not reached)"),
        ]
    else:
        title = "SEGMENTATION AGREEMENT: UNITIZING ALPHA"
        summary = [
            f"Raters:                 {result.rater_count}",
            f"Continuum:              [{result.continuum.begin}, {result.continuum.end})",
            f"Categories:             {len(result.categories)}",
        ]

    lines = [
        "=" * 70,
        title,
        "=" * 70,
        "",
        "SUMMARY",
        "-" * 40,
        *summary,
        "",
        "AGREEMENT",
        "-" * 40,
        f"Overall: {_format_value(result.agreement, decimals)} "
        f"({interpret_agreement(result.agreement)})",
    ]

    if isinstance(result, UnitizingResult) and result.categories:
        lines.extend(
            [
                "",
                "BY CATEGORY (observed / expected / agreement)",
                "-" * 40,
            ]
        )
        for category in result.categories:
            lines.append(
                f"  {str(category.category):20s}: "
                f"{_format_value(category.observed, decimals)} / "
                f"{_format_value(category.expected, decimals)} / "
                f"{_format_value(category.agreement, decimals)} "
                f"({interpret_agreement(category.agreement)})"
            )

    lines.extend(
        [
            "",
            "=" * 70,
            "END OF REPORT",
            "=" * 70,
        ]
    )

    return "\n".join(lines)
