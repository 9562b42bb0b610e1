"""
Dissimilarity strategies for aligned spans.

A dissimilarity scores how different two spans are that were aligned to each
other. Either side may be ``None`` when a rater has no span in a unitary
alignment.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Set

from segmentation_agreement.models import Span, TextSpan


class Dissimilarity(ABC):
    """Pairwise distance between two spans (or a span and nothing)."""

    @abstractmethod
    def dissimilarity(self, unit1: Optional[Span], unit2: Optional[Span]) -> float:
        """Score the difference between two aligned spans."""

    def __call__(self, unit1: Optional[Span], unit2: Optional[Span]) -> float:
        return self.dissimilarity(unit1, unit2)


class NominalFeatureDissimilarity(Dissimilarity):
    """
    Nominal comparison of position, type and features.

    - Two missing spans are identical (0); a span against nothing scores 1
    - Spans of different type score 1
    - Otherwise: 0/1 for (non-)coextensive position plus the share of
      differing features among all feature names of both spans

    Example:
        >>> a, b = Rater("A", 0), Rater("B", 1)
        >>> NominalFeatureDissimilarity()(Span(a, 0, 3), Span(b, 0, 3))
        0.0
    """

    def dissimilarity(self, unit1: Optional[Span], unit2: Optional[Span]) -> float:
        if unit1 is None and unit2 is None:
            return 0.0
        if unit1 is None or unit2 is None:
            return 1.0
        if unit1.type != unit2.type:
            return 1.0

        return self.position_dissimilarity(unit1, unit2) + self._feature_dissimilarity(
            unit1, unit2
        )

    @staticmethod
    def feature_names(*units: Span) -> Set[str]:
        names: Set[str] = set()
        for unit in units:
            names.update(unit.feature_names)
        return names

    def count_differing_features(self, unit1: Span, unit2: Span) -> int:
        return sum(
            1
            for name in self.feature_names(unit1, unit2)
            if unit1.feature(name) != unit2.feature(name)
        )

    @staticmethod
    def position_dissimilarity(unit1: Span, unit2: Span) -> float:
        return 0.0 if unit1.is_coextensive(unit2) else 1.0

    def _feature_dissimilarity(self, unit1: Span, unit2: Span) -> float:
        names = self.feature_names(unit1, unit2)
        if not names:
            return 0.0
        return self.count_differing_features(unit1, unit2) / len(names)


class NominalFeatureTextDissimilarity(NominalFeatureDissimilarity):
    """
    Nominal comparison of position, features and covered text.

    The covered text counts as one additional feature slot:
    ``position + (differing features + text differs) / (feature names + 1)``.
    Only text spans can be compared.
    """

    def dissimilarity(self, unit1: Optional[Span], unit2: Optional[Span]) -> float:
        if unit1 is None and unit2 is None:
            return 0.0
        if unit1 is None or unit2 is None:
            return 1.0

        if not isinstance(unit1, TextSpan) or not isinstance(unit2, TextSpan):
            raise TypeError("Text dissimilarity requires text spans on both sides")

        text_diff = 0 if unit1.text == unit2.text else 1
        slots = len(self.feature_names(unit1, unit2)) + 1

        return self.position_dissimilarity(unit1, unit2) + (
            self.count_differing_features(unit1, unit2) + text_diff
        ) / slots
