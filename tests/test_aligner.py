"""Unit tests for segmentation_agreement.aligning.aligner.

Tests cover:
    - Marker insertion and its error cases
    - Enumeration of co-optimal alignments
    - Edit statistics along the greedy optimal path
"""
import pytest

from segmentation_agreement.aligning.aligner import (
    CLOSE_UNIT,
    GAP,
    OPEN_UNIT,
    PairwiseAligner,
    insert_markers,
)
from segmentation_agreement.exceptions import OverlappingUnitsError, ReservedCharacterError
from segmentation_agreement.models import AnnotatedText

from conftest import RATER_A, text_unit


def visible_aligner(source, target, **kwargs):
    return PairwiseAligner(source, target, gap_char="-", open_char="{", close_char="}", **kwargs)


# ===== Markers =====

class TestInsertMarkers:
    def test_frames_units(self):
        text = AnnotatedText("kaufmann", [
            text_unit(RATER_A, 0, 4, "kauf"),
            text_unit(RATER_A, 4, 8, "mann"),
        ])
        assert insert_markers(text, "{", "}", "-") == "{kauf}{mann}"

    def test_uncovered_text_kept(self):
        text = AnnotatedText("so so", [text_unit(RATER_A, 3, 5, "so")])
        assert insert_markers(text) == "so " + OPEN_UNIT + "so" + CLOSE_UNIT

    def test_reserved_character(self):
        text = AnnotatedText("so" + GAP, [text_unit(RATER_A, 0, 2, "so")])
        with pytest.raises(ReservedCharacterError):
            insert_markers(text)

    def test_overlapping_units(self):
        text = AnnotatedText("kaufmann", [
            text_unit(RATER_A, 0, 5, "kaufm"),
            text_unit(RATER_A, 4, 8, "mann"),
        ])
        with pytest.raises(OverlappingUnitsError):
            insert_markers(text)

    def test_overlap_is_value_error(self):
        assert issubclass(OverlappingUnitsError, ValueError)


# ===== Alignments =====

class TestAlignments:
    def test_single_optimal_alignment(self):
        aligner = visible_aligner("their", "there")
        assert len(aligner.alignments) == 1
        aligned_a, aligned_b = aligner.alignments[0]
        assert len(aligned_a) == len(aligned_b) == aligner.length
        assert aligned_a.replace("-", "") == "their"
        assert aligned_b.replace("-", "") == "there"

    def test_identical_sequences(self):
        aligner = visible_aligner("{kauf}{mann}", "{kauf}{mann}")
        assert aligner.cost == 0
        assert aligner.alignments == [("{kauf}{mann}", "{kauf}{mann}")]

    def test_boundary_shift(self):
        assert len(visible_aligner("{a}{bbccc}", "{abb}{ccc}").alignments) == 1
        assert len(visible_aligner("{a}{bccc}", "{ab}{ccc}").alignments) == 1

    def test_many_units_against_one(self):
        assert len(visible_aligner("{t}{t}{t}{t}", "{aaaa}").alignments) == 4
        assert len(visible_aligner("{aaaa}", "{t}{t}{t}{t}").alignments) == 4

    def test_cap_on_alignments(self):
        aligner = visible_aligner("{t}{t}{t}{t}", "{aaaa}", max_alignments=2)
        assert len(aligner.alignments) == 2
        assert aligner.truncated

    def test_no_substitution_in_alignment(self):
        aligner = visible_aligner("ab", "cd")
        for aligned_a, aligned_b in aligner.alignments:
            for char_a, char_b in zip(aligned_a, aligned_b):
                assert char_a == char_b or "-" in (char_a, char_b)

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            PairwiseAligner("a", "b", gap_weight=0)
        with pytest.raises(ValueError):
            PairwiseAligner("a", "b", max_alignments=0)
        with pytest.raises(ValueError):
            PairwiseAligner("a", "b", gap_char="-", open_char="-", close_char="}")


# ===== Edit statistics =====

class TestEditStatistics:
    def test_deletion(self):
        aligner = visible_aligner("Te", "T")
        assert (aligner.insertions, aligner.deletions, aligner.substitutions) == (0, 1, 0)

    def test_insertion(self):
        aligner = visible_aligner("Tes", "Test")
        assert (aligner.insertions, aligner.deletions, aligner.substitutions) == (1, 0, 0)

    def test_insertion_and_deletion(self):
        aligner = visible_aligner("their", "there")
        assert (aligner.insertions, aligner.deletions, aligner.substitutions) == (1, 1, 0)
        assert aligner.cost == 2

    def test_gap_weight_scales_cost(self):
        assert visible_aligner("their", "there", gap_weight=3).cost == 6
