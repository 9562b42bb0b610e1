"""Unit tests for segmentation_agreement.aligning.alignment.

Tests cover:
    - UnitaryAlignment construction, arity, disorder and equality
    - Alignment validation and normalized disorder
"""
import pytest

from segmentation_agreement.aligning.alignment import Alignment, UnitaryAlignment
from segmentation_agreement.aligning.dissimilarity import NominalFeatureDissimilarity
from segmentation_agreement.models import AnnotationSet, Rater, Span

RATER_1 = Rater("1", 0)
RATER_2 = Rater("2", 1)
RATER_3 = Rater("3", 2)


# ===== Unitary alignments =====

class TestUnitaryAlignment:
    def test_two_units_of_one_rater(self):
        units = [Span(RATER_1, 0, 3), Span(RATER_1, 0, 4)]
        with pytest.raises(ValueError):
            UnitaryAlignment(units, [RATER_1])

    def test_unknown_rater(self):
        units = [Span(RATER_1, 0, 3), Span(RATER_2, 0, 4)]
        with pytest.raises(ValueError):
            UnitaryAlignment(units, [RATER_1])

    def test_arity_and_slots(self):
        ua = UnitaryAlignment([Span(RATER_1, 0, 3), Span(RATER_2, 0, 3)], [RATER_1, RATER_2, RATER_3])
        assert ua.arity == 3
        assert ua.present == 2
        assert ua.unit(RATER_3) is None
        assert (ua.begin, ua.end) == (0, 3)

    def test_disorder(self):
        diss = NominalFeatureDissimilarity()
        units = [Span(RATER_1, 0, 3), Span(RATER_2, 0, 3)]
        assert UnitaryAlignment(units, [RATER_1, RATER_2]).disorder(diss) == 0.0

        units.append(Span(RATER_3, 3, 4))
        ua = UnitaryAlignment(units, [RATER_1, RATER_2, RATER_3])
        assert ua.disorder(diss) == pytest.approx(2 / 3)

    def test_disorder_counts_empty_slots(self):
        diss = NominalFeatureDissimilarity()
        ua = UnitaryAlignment([Span(RATER_3, 3, 4)], [RATER_1, RATER_2, RATER_3])
        assert ua.disorder(diss) == pytest.approx(2 / 3)

    def test_single_slot_has_no_disorder(self):
        ua = UnitaryAlignment([Span(RATER_1, 0, 3)], [RATER_1])
        assert ua.disorder(NominalFeatureDissimilarity()) == 0.0

    def test_equality(self):
        units = [Span(RATER_1, 0, 3), Span(RATER_2, 0, 3)]
        a = UnitaryAlignment(units, [RATER_1, RATER_2])

        assert a != UnitaryAlignment(units, [RATER_1, RATER_2, RATER_3])
        assert a != UnitaryAlignment([Span(RATER_1, 0, 3), Span(RATER_3, 0, 3)], [RATER_1, RATER_3])
        assert a != UnitaryAlignment([Span(RATER_1, 0, 3), Span(RATER_2, 0, 2)], [RATER_1, RATER_2])

        same = UnitaryAlignment([Span(RATER_2, 0, 3), Span(RATER_1, 0, 3)], [RATER_2, RATER_1])
        assert a == same
        assert hash(a) == hash(same)


# ===== Alignments =====

class TestAlignment:
    def test_differing_rater_sets(self):
        first = [Span(RATER_1, 0, 3), Span(RATER_2, 0, 4)]
        second = [Span(RATER_1, 1, 3), Span(RATER_3, 0, 4)]
        groups = [
            UnitaryAlignment(first, [RATER_1, RATER_2]),
            UnitaryAlignment(second, [RATER_1, RATER_2, RATER_3]),
        ]
        with pytest.raises(ValueError):
            Alignment(groups, AnnotationSet(first + second))

    def test_unit_contained_twice(self):
        raters = [RATER_1, RATER_2]
        first = [Span(RATER_1, 0, 3), Span(RATER_2, 0, 4)]
        second = [Span(RATER_1, 1, 3), Span(RATER_2, 0, 4)]
        groups = [UnitaryAlignment(first, raters), UnitaryAlignment(second, raters)]
        with pytest.raises(ValueError):
            Alignment(groups, AnnotationSet(first + second))

    def test_unit_not_in_annotation_set(self):
        raters = [RATER_1, RATER_2]
        first = [Span(RATER_1, 0, 3), Span(RATER_2, 0, 4)]
        groups = [
            UnitaryAlignment(first, raters),
            UnitaryAlignment([Span(RATER_1, 1, 3)], raters),
        ]
        with pytest.raises(ValueError):
            Alignment(groups, AnnotationSet(first))

    def test_unit_not_covered(self):
        raters = [RATER_1, RATER_2]
        first = [Span(RATER_1, 0, 3), Span(RATER_2, 0, 4)]
        with pytest.raises(ValueError):
            Alignment([UnitaryAlignment(first, raters)], AnnotationSet(first + [Span(RATER_1, 1, 3)]))

    def test_single_rater(self):
        units = [Span(RATER_1, 0, 3)]
        with pytest.raises(ValueError):
            Alignment([UnitaryAlignment(units, [RATER_1])], AnnotationSet(units))

    def test_disorder_normalized_by_average_annotations(self):
        raters = [RATER_1, RATER_2, RATER_3]
        first = [Span(RATER_1, 0, 3), Span(RATER_2, 0, 3), Span(RATER_3, 0, 3)]
        second = [Span(RATER_3, 3, 4)]
        alignment = Alignment(
            [UnitaryAlignment(first, raters), UnitaryAlignment(second, raters)],
            AnnotationSet(first + second),
        )
        average_annotations = 4 / 3
        expected = (0 + 2 / 3) / average_annotations
        assert alignment.disorder(NominalFeatureDissimilarity()) == pytest.approx(expected)
        assert len(alignment) == 2

    def test_describe_sorted_by_position(self):
        raters = [RATER_1, RATER_2]
        late = [Span(RATER_1, 3, 4)]
        early = [Span(RATER_1, 0, 3), Span(RATER_2, 0, 3)]
        alignment = Alignment(
            [UnitaryAlignment(late, raters), UnitaryAlignment(early, raters)],
            AnnotationSet(late + early),
        )
        lines = alignment.describe()
        assert lines[0] == "UnitaryAlignment(1=[0,3), 2=[0,3))"
        assert lines[1] == "UnitaryAlignment(1=[3,4), 2=--)"
