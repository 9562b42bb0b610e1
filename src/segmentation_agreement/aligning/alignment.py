"""
Unitary alignments, alignments and their disorder.

A unitary alignment groups at most one span per rater that are taken to
describe the same segment. An alignment is a set of unitary alignments that
partitions all spans of an annotation set.
"""

from __future__ import annotations

from itertools import combinations
from math import comb
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from segmentation_agreement.aligning.dissimilarity import Dissimilarity
from segmentation_agreement.models import AnnotationSet, Rater, Span


class UnitaryAlignment:
    """
    One span (or none) for each rater of a fixed rater set.

    Args:
        units: Spans grouped together, at most one per rater
        raters: The full rater set; raters without a span get an empty slot

    Raises:
        ValueError: If two spans share a rater or a span's rater is not in
            the rater set

    Example:
        >>> ua = UnitaryAlignment([Span(a, 0, 3), Span(b, 0, 3)], [a, b, c])
        >>> ua.arity, ua.present
        (3, 2)
    """

    def __init__(self, units: Iterable[Span], raters: Iterable[Rater]) -> None:
        rater_set = set(raters)
        members: Dict[Rater, Optional[Span]] = {}

        for unit in units:
            if unit.rater in members:
                raise ValueError(
                    f"Unitary alignment may not contain two units from rater {unit.rater}"
                )
            if unit.rater not in rater_set:
                raise ValueError(
                    f"Unit rater {unit.rater} is not part of the alignment's rater set"
                )
            members[unit.rater] = unit

        present = [u for u in members.values() if u is not None]
        self._begin = min((u.begin for u in present), default=None)
        self._end = max((u.end for u in present), default=None)

        for rater in rater_set:
            members.setdefault(rater, None)
        self._members = {rater: members[rater] for rater in sorted(members)}

    @property
    def begin(self) -> Optional[int]:
        return self._begin

    @property
    def end(self) -> Optional[int]:
        return self._end

    @property
    def arity(self) -> int:
        """Number of rater slots, filled or empty."""
        return len(self._members)

    @property
    def present(self) -> int:
        """Number of raters with a span in this alignment."""
        return sum(1 for unit in self._members.values() if unit is not None)

    @property
    def raters(self) -> Tuple[Rater, ...]:
        return tuple(self._members)

    @property
    def units(self) -> Tuple[Span, ...]:
        return tuple(u for u in self._members.values() if u is not None)

    def unit(self, rater: Rater) -> Optional[Span]:
        return self._members.get(rater)

    def disorder(self, dissimilarity: Dissimilarity) -> float:
        """Mean dissimilarity over all pairs of rater slots (empty slots included)."""
        pairs = comb(self.arity, 2)
        if pairs == 0:
            return 0.0

        total = sum(
            dissimilarity(u, v) for u, v in combinations(self._members.values(), 2)
        )
        return total / pairs

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnitaryAlignment):
            return NotImplemented
        return self._members == other._members

    def __hash__(self) -> int:
        return hash(tuple(self._members.items()))

    def __repr__(self) -> str:
        slots = ", ".join(
            f"{rater.name}=[{u.begin},{u.end})" if u is not None else f"{rater.name}=--"
            for rater, u in self._members.items()
        )
        return f"UnitaryAlignment({slots})"


class Alignment:
    """
    A partition of an annotation set into unitary alignments.

    Args:
        unitary_alignments: Groups covering every span of the set exactly once
        annotation_set: The spans being partitioned

    Raises:
        ValueError: If the set has a single rater, a group uses another rater
            set, a span is repeated, unknown, or left uncovered
    """

    def __init__(
        self,
        unitary_alignments: Iterable[UnitaryAlignment],
        annotation_set: AnnotationSet,
    ) -> None:
        if annotation_set.rater_count == 1:
            raise ValueError("An alignment needs units from at least 2 raters")

        raters = set(annotation_set.raters)
        groups = list(unitary_alignments)
        covered: Set[Span] = set()

        for group in groups:
            if set(group.raters) != raters:
                raise ValueError("All unitary alignments must share the set's raters")

            for unit in group.units:
                if unit in covered:
                    raise ValueError(f"Unit {unit} is contained twice in the alignment")
                if unit not in annotation_set:
                    raise ValueError(f"Unit {unit} is not part of the annotation set")
                covered.add(unit)

        if len(covered) != annotation_set.unit_count:
            raise ValueError("Not all units of the set are covered by the alignment")

        self._groups: Tuple[UnitaryAlignment, ...] = tuple(groups)
        self._annotation_set = annotation_set

    @property
    def unitary_alignments(self) -> Tuple[UnitaryAlignment, ...]:
        return self._groups

    @property
    def annotation_set(self) -> AnnotationSet:
        return self._annotation_set

    def disorder(self, dissimilarity: Dissimilarity) -> float:
        """
        Total unitary disorder normalized by the average annotations per rater.

        Args:
            dissimilarity: Strategy scoring pairs of aligned spans

        Returns:
            Disorder of the alignment (0 for perfect agreement)
        """
        total = sum(group.disorder(dissimilarity) for group in self._groups)
        average = self._annotation_set.average_annotations
        if average == 0:
            return 0.0
        return total / average

    def __iter__(self) -> Iterator[UnitaryAlignment]:
        return iter(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    def __repr__(self) -> str:
        return f"Alignment(groups={len(self._groups)}, units={self._annotation_set.unit_count})"

    def describe(self) -> List[str]:
        """One line per unitary alignment, sorted by position."""
        ordered = sorted(
            self._groups,
            key=lambda g: (g.begin if g.begin is not None else -1, g.end or -1),
        )
        return [repr(group) for group in ordered]
