"""
Krippendorff's alpha for unitizing studies.

Raters place categorized units on a continuum ``[begin, begin + length)``.
Every rater's units of one category, together with the uncovered stretches
between them (gaps), partition the continuum. Alpha compares the observed
disagreement between these partitions with the disagreement expected by
chance (Krippendorff 1995, 2004):

    alpha_c = 1 - D_O(c) / D_E(c)
    alpha   = 1 - mean_c D_O(c) / mean_c D_E(c)

Sums are kept as exact integers or Decimals; each disagreement is rounded
once, at its final division, using a context of configurable precision.
"""

from __future__ import annotations

import logging
import math
from decimal import Context, Decimal, localcontext
from typing import TYPE_CHECKING, Hashable, Iterator, List, Optional, Tuple

from segmentation_agreement.exceptions import InsufficientDataError
from segmentation_agreement.models import (
    CategoryAgreement,
    ContinuumStudy,
    ContinuumUnit,
    Coordinate,
    UnitizingResult,
)

if TYPE_CHECKING:
    from segmentation_agreement.config import AgreementConfig

logger = logging.getLogger(__name__)

DEFAULT_DECIMAL_PRECISION = 34

# A segment of a rater's partition: (offset, length, category or None for a gap)
_Segment = Tuple[Decimal, Decimal, Optional[Hashable]]


def _decimal(value: Coordinate) -> Decimal:
    if isinstance(value, int):
        return Decimal(value)
    return Decimal(str(value))


class KrippendorffAlphaUnitizing:
    """
    Unitizing alpha over a continuum study with two or more raters.

    The measure keeps no state besides its inputs: repeated calls return
    identical results.

    Args:
        study: The unitizing study
        decimal_precision: Significant digits used for the final divisions

    Example:
        >>> study = (
        ...     ContinuumStudyBuilder(rater_count=2, begin=0, length=10)
        ...     .add_unit(1, 8, 0, "A")
        ...     .add_unit(2, 1, 1, "A")
        ...     .add_unit(4, 1, 1, "A")
        ...     .add_unit(6, 1, 1, "A")
        ...     .build()
        ... )
        >>> round(KrippendorffAlphaUnitizing(study).category_agreement("A"), 4)
        -0.7003
    """

    def __init__(
        self,
        study: ContinuumStudy,
        decimal_precision: int = DEFAULT_DECIMAL_PRECISION,
    ) -> None:
        if decimal_precision < 1:
            raise ValueError(f"decimal_precision must be positive, got {decimal_precision}")
        self.study = study
        self.decimal_precision = decimal_precision

    @classmethod
    def from_config(cls, study: ContinuumStudy, config: AgreementConfig) -> KrippendorffAlphaUnitizing:
        return cls(study, decimal_precision=config.unitizing.decimal_precision)

    @property
    def _context(self) -> Context:
        return Context(prec=self.decimal_precision)

    def _check_raters(self) -> None:
        if self.study.rater_count < 2:
            raise InsufficientDataError(
                f"Unitizing alpha needs at least 2 raters, got {self.study.rater_count}"
            )

    # =========================================================================
    # Distance
    # =========================================================================

    @staticmethod
    def measure_distance(
        offset1: Coordinate,
        length1: Coordinate,
        category1: Optional[Hashable],
        offset2: Coordinate,
        length2: Coordinate,
        category2: Optional[Hashable],
    ):
        """
        Squared distance between two segments of two raters.

        A category of None marks a gap. Two units only differ if they
        overlap; a unit differs from a gap only if the gap contains it.

        Example:
            >>> KrippendorffAlphaUnitizing.measure_distance(1, 8, "A", 2, 1, "A")
            37
        """
        begin_diff = offset1 - offset2
        length_diff = length1 - length2

        if category1 is not None and category2 is not None:
            if -length1 < begin_diff < length2:
                return begin_diff * begin_diff + (begin_diff + length_diff) ** 2
        elif category1 is not None and category2 is None:
            if -length_diff >= begin_diff >= 0:
                return length1 * length1
        elif category1 is None and category2 is not None:
            if -length_diff <= begin_diff <= 0:
                return length2 * length2
        return 0

    # =========================================================================
    # Partitions
    # =========================================================================

    def _units(self, rater: int, category: Hashable) -> Iterator[ContinuumUnit]:
        return iter(self.study.units_of(rater, category))

    def _next_segment(
        self,
        position: Decimal,
        upcoming: Optional[ContinuumUnit],
        units: Iterator[ContinuumUnit],
    ) -> Tuple[_Segment, Optional[ContinuumUnit]]:
        """The segment starting at ``position`` and the next pending unit."""
        if upcoming is not None and _decimal(upcoming.begin) == position:
            segment = (position, _decimal(upcoming.length), upcoming.category)
            return segment, next(units, None)

        end = _decimal(upcoming.begin) if upcoming is not None else self._continuum_end
        return (position, end - position, None), upcoming

    @property
    def _continuum_end(self) -> Decimal:
        return _decimal(self.study.begin) + _decimal(self.study.length)

    def _gap_lengths(self, category: Hashable) -> List[Decimal]:
        """All gap lengths of all raters for one category, longest first."""
        gaps: List[Decimal] = []
        end = self._continuum_end

        for rater in range(self.study.rater_count):
            position = _decimal(self.study.begin)
            for unit in self.study.units_of(rater, category):
                begin = _decimal(unit.begin)
                if begin > position:
                    gaps.append(begin - position)
                position = begin + _decimal(unit.length)
            if end > position:
                gaps.append(end - position)

        gaps.sort(reverse=True)
        return gaps

    # =========================================================================
    # Disagreement
    # =========================================================================

    def _observed_sum(self, category: Hashable) -> Decimal:
        total = Decimal(0)
        begin = _decimal(self.study.begin)
        end = self._continuum_end
        raters = self.study.rater_count

        for r1 in range(raters):
            for r2 in range(r1 + 1, raters):
                units1 = self._units(r1, category)
                units2 = self._units(r2, category)
                next1 = next(units1, None)
                next2 = next(units2, None)

                segment1: _Segment = (begin, Decimal(0), None)
                segment2: _Segment = (begin, Decimal(0), None)
                position = begin

                while position < end and (next1 is not None or next2 is not None):
                    if position == segment1[0] + segment1[1]:
                        segment1, next1 = self._next_segment(position, next1, units1)
                    if position == segment2[0] + segment2[1]:
                        segment2, next2 = self._next_segment(position, next2, units2)

                    total += self.measure_distance(
                        segment1[0], segment1[1], segment1[2],
                        segment2[0], segment2[1], segment2[2],
                    )
                    position = min(segment1[0] + segment1[1], segment2[0] + segment2[1])

        return total

    def _observed(self, category: Hashable) -> Decimal:
        self._check_raters()
        raters = self.study.rater_count

        with localcontext(self._context):
            length = _decimal(self.study.length)
            numerator = 2 * self._observed_sum(category)
            denominator = raters * (raters - 1) * length * length
            return numerator / denominator

    def _expected(self, category: Hashable) -> Decimal:
        self._check_raters()
        raters = self.study.rater_count

        with localcontext(self._context):
            length = _decimal(self.study.length)
            lengths = [_decimal(u.length) for u in self.study.units if u.category == category]
            count = len(lengths)
            squared_lengths = sum((l * (l - 1) for l in lengths), Decimal(0))
            gaps = self._gap_lengths(category)

            # Scaled by 3 so that the only division is the final one
            total = Decimal(0)
            for l in lengths:
                across = Decimal(0)
                for gap in gaps:
                    if gap < l:
                        break
                    across += gap - l + 1
                total += (count - 1) * (2 * l ** 3 - 3 * l ** 2 + l) + 3 * l * l * across

            denominator = length * (raters * length * (raters * length - 1) - squared_lengths)
            if denominator == 0:
                raise InsufficientDataError(
                    f"Expected disagreement for category {category!r} is undefined"
                )
            return 2 * total / (3 * denominator)

    def observed_category_disagreement(self, category: Hashable) -> float:
        """Observed disagreement D_O for one category."""
        return float(self._observed(category))

    def expected_category_disagreement(self, category: Hashable) -> float:
        """Expected disagreement D_E for one category."""
        return float(self._expected(category))

    def observed_disagreement(self) -> float:
        """Mean observed disagreement over all categories (NaN without categories)."""
        categories = self.study.categories
        if not categories:
            return math.nan
        return float(sum(self._observed(c) for c in categories) / len(categories))

    def expected_disagreement(self) -> float:
        """Mean expected disagreement over all categories (NaN without categories)."""
        categories = self.study.categories
        if not categories:
            return math.nan
        return float(sum(self._expected(c) for c in categories) / len(categories))

    # =========================================================================
    # Agreement
    # =========================================================================

    @staticmethod
    def _agreement(observed: Decimal, expected: Decimal, what: str) -> float:
        if observed == expected:
            return 0.0
        if expected == 0:
            raise InsufficientDataError(
                f"No disagreement is expected for {what}, but {observed} is observed"
            )
        return 1.0 - float(observed) / float(expected)

    def category_agreement(self, category: Hashable) -> float:
        """
        Alpha for one category.

        Args:
            category: Category label as used by the study's units

        Returns:
            ``1 - D_O / D_E``, or 0 if both disagreements are equal
        """
        return self._agreement(
            self._observed(category), self._expected(category), f"category {category!r}"
        )

    def calculate_agreement(self) -> float:
        """
        Joint alpha over all categories of the study.

        Returns:
            ``1 - mean D_O / mean D_E``; NaN if the study has no units

        Raises:
            InsufficientDataError: With fewer than two raters or when no
                disagreement is expected but some is observed
        """
        self._check_raters()
        categories = self.study.categories
        if not categories:
            logger.info("Unitizing study has no units; alpha is undefined")
            return math.nan

        observed = sum((self._observed(c) for c in categories), Decimal(0))
        expected = sum((self._expected(c) for c in categories), Decimal(0))
        agreement = self._agreement(observed, expected, "the study")

        logger.info(f"Unitizing alpha = {agreement:.4f} over {len(categories)} category(ies)")
        return agreement

    def result(self) -> UnitizingResult:
        """Joint alpha with a per-category breakdown."""
        breakdown = [
            CategoryAgreement(
                category=category,
                observed=self.observed_category_disagreement(category),
                expected=self.expected_category_disagreement(category),
                agreement=self.category_agreement(category),
            )
            for category in self.study.categories
        ]
        return UnitizingResult(
            agreement=self.calculate_agreement(),
            rater_count=self.study.rater_count,
            continuum=self.study.continuum,
            categories=breakdown,
        )
