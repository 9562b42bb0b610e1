"""
Merging two annotated texts into candidate alignments.

The two texts are aligned character by character (see ``aligner``). Each
co-optimal character alignment places the units of both texts into one
shared coordinate system. The reconstructions that make the most units of
the two raters coincide are kept and turned into Alignments.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from segmentation_agreement.aligning.aligner import (
    CLOSE_UNIT,
    DEFAULT_MAX_ALIGNMENTS,
    OPEN_UNIT,
    PairwiseAligner,
)
from segmentation_agreement.aligning.alignment import Alignment, UnitaryAlignment
from segmentation_agreement.aligning.dissimilarity import Dissimilarity
from segmentation_agreement.models import AnnotatedText, AnnotationSet, Span

logger = logging.getLogger(__name__)


def reconstruct_units(
    aligned_texts: Sequence[str],
    units: Sequence[Sequence[Span]],
    open_char: str = OPEN_UNIT,
    close_char: str = CLOSE_UNIT,
) -> List[List[Span]]:
    """
    Re-derive unit offsets in the coordinate system of an alignment.

    The aligned strings are scanned left to right. Markers do not occupy
    positions of their own, so a shared offset grows by one at each position
    where any of the strings has a marker.

    Args:
        aligned_texts: Aligned, marker-augmented strings of equal length
        units: Original sorted units of each text, in marker order

    Returns:
        For each text, its units moved to the aligned offsets
    """
    if len(aligned_texts) != len(units):
        raise ValueError("Numbers of annotation lists and texts differ")
    lengths = {len(text) for text in aligned_texts}
    if len(lengths) > 1:
        raise ValueError("Aligned texts must be of the same length")

    width = lengths.pop() if lengths else 0
    moved: List[List[Span]] = [[] for _ in aligned_texts]
    begins = [0] * len(aligned_texts)
    offset = 0

    for position in range(width):
        marker_seen = False

        for index, text in enumerate(aligned_texts):
            char = text[position]
            if char == open_char:
                begins[index] = position - offset
                marker_seen = True
            elif char == close_char:
                original = units[index][len(moved[index])]
                moved[index].append(original.with_offsets(begins[index], position - offset))
                marker_seen = True

        if marker_seen:
            offset += 1

    return moved


def count_coincident_units(units1: Sequence[Span], units2: Sequence[Span]) -> int:
    """Number of cross-text unit pairs with identical begin and end."""
    return sum(1 for u in units1 for v in units2 if u.is_coextensive(v))


def _partition(units: Sequence[Span]) -> Alignment:
    annotation_set = AnnotationSet(units)
    groups: List[UnitaryAlignment] = []
    current: List[Span] = []

    for unit in annotation_set.units:
        if current and not unit.is_coextensive(current[-1]):
            groups.append(UnitaryAlignment(current, annotation_set.raters))
            current = []
        current.append(unit)

    if current:
        groups.append(UnitaryAlignment(current, annotation_set.raters))

    return Alignment(groups, annotation_set)


def merge_annotated_texts(
    text1: AnnotatedText,
    text2: AnnotatedText,
    max_distance: Optional[int] = None,
    gap_weight: int = 1,
    max_alignments: Optional[int] = DEFAULT_MAX_ALIGNMENTS,
) -> List[Alignment]:
    """
    Merge two segmented texts into their best candidate alignments.

    Args:
        text1: First annotated text (one rater)
        text2: Second annotated text (another rater)
        max_distance: Fail if the texts need more insertions and deletions
            than this to be aligned (None disables the check)
        gap_weight: Cost of one insertion or deletion
        max_alignments: Cap on enumerated character alignments

    Returns:
        The distinct alignments with maximal unit coincidence, in discovery order

    Raises:
        ValueError: If the texts differ more than ``max_distance``

    Example:
        >>> alignments = merge_annotated_texts(text1, text2)
        >>> min(a.disorder(NominalFeatureTextDissimilarity()) for a in alignments)
        0.4
    """
    aligner = PairwiseAligner.from_texts(
        text1, text2, gap_weight=gap_weight, max_alignments=max_alignments
    )

    if max_distance is not None:
        distance = aligner.insertions + aligner.deletions + aligner.substitutions
        if distance > max_distance:
            raise ValueError(
                f"The texts differ by {distance} edits, more than the allowed {max_distance}"
            )

    originals = [text1.units, text2.units]
    best: Dict[Tuple[Span, ...], None] = {}
    best_coincidence = 0

    for aligned in aligner.alignments:
        units1, units2 = reconstruct_units(aligned, originals)
        coincidence = count_coincident_units(units1, units2)

        if coincidence > best_coincidence:
            best.clear()
            best_coincidence = coincidence
        if coincidence == best_coincidence:
            best[tuple(units1 + units2)] = None

    logger.debug(
        f"{len(aligner.alignments)} character alignment(s), {len(best)} distinct "
        f"reconstruction(s) with {best_coincidence} coincident unit pair(s)"
    )

    return [_partition(units) for units in best]


def observed_disorder(
    text1: AnnotatedText,
    text2: AnnotatedText,
    dissimilarity: Dissimilarity,
    max_distance: Optional[int] = None,
    gap_weight: int = 1,
    max_alignments: Optional[int] = DEFAULT_MAX_ALIGNMENTS,
) -> float:
    """Minimum disorder over the best alignments of two texts."""
    alignments = merge_annotated_texts(
        text1,
        text2,
        max_distance=max_distance,
        gap_weight=gap_weight,
        max_alignments=max_alignments,
    )
    return min(alignment.disorder(dissimilarity) for alignment in alignments)
