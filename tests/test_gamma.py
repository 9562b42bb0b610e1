"""Unit tests for segmentation_agreement.aligning.gamma.

Tests cover:
    - Input validation (texts vs. study, sampler vs. factory, raters)
    - Observed disorder
    - Gamma with a normally distributed disorder sampler
    - Gamma with the simple disorder sampler on label disagreements
    - Result collection and configuration defaults
"""
import numpy as np
import pytest

from segmentation_agreement.aligning.gamma import TextGammaAgreement
from segmentation_agreement.aligning.sampler import SimpleDisorderSampler
from segmentation_agreement.config import AgreementConfig
from segmentation_agreement.exceptions import InsufficientDataError
from segmentation_agreement.models import PLACEHOLDER_CHAR, AnnotatedText, TextStudy

from conftest import RATER_A, RATER_B, text_unit


def study_of(units_b, text="so so so", labels_a=None):
    """Rater A labels 'so so so' as a/b/c; rater B is given explicitly."""
    units_a = [(0, 2, "a"), (3, 5, "b"), (6, 8, "c")]
    units = []
    for index, (begin, end, label) in enumerate(units_a):
        features = {"label": labels_a[index]} if labels_a else {}
        units.append(text_unit(RATER_A, begin, end, label, **features))
    for begin, end, label, *rest in units_b:
        features = {"label": rest[0]} if rest and rest[0] is not None else {}
        units.append(text_unit(RATER_B, begin, end, label, **features))
    return TextStudy(text, units)


def normal_sampler(seed=0):
    rng = np.random.default_rng(seed)
    return lambda: rng.normal(1.0, 1.0)


# ===== Validation =====

class TestValidation:
    def test_texts_and_study_exclusive(self, three_units_text, two_units_text):
        study = study_of([(0, 2, "a")])
        with pytest.raises(ValueError):
            TextGammaAgreement(texts=[three_units_text, two_units_text], study=study, sampler=lambda: 1.0)
        with pytest.raises(ValueError):
            TextGammaAgreement(sampler=lambda: 1.0)

    def test_sampler_and_factory_exclusive(self, three_units_text, two_units_text):
        texts = [three_units_text, two_units_text]
        with pytest.raises(ValueError):
            TextGammaAgreement(
                texts=texts, sampler=lambda: 1.0, sampler_factory=SimpleDisorderSampler.factory()
            )
        with pytest.raises(ValueError):
            TextGammaAgreement(texts=texts)

    def test_wrong_number_of_texts(self, three_units_text):
        with pytest.raises(ValueError):
            TextGammaAgreement(texts=[three_units_text], sampler=lambda: 1.0)

    def test_study_needs_two_raters(self):
        study = TextStudy("so", [text_unit(RATER_A, 0, 2, "so")])
        with pytest.raises(ValueError):
            TextGammaAgreement(study=study, sampler=lambda: 1.0)

    def test_same_rater_twice(self, three_units_text):
        with pytest.raises(ValueError):
            TextGammaAgreement(texts=[three_units_text, three_units_text], sampler=lambda: 1.0)

    def test_text_with_two_raters(self, three_units_text):
        mixed = AnnotatedText("so", [text_unit(RATER_A, 0, 2, "so"), text_unit(RATER_B, 0, 2, "so")])
        with pytest.raises(ValueError):
            TextGammaAgreement(texts=[three_units_text, mixed], sampler=lambda: 1.0)

    def test_text_without_units(self, three_units_text):
        with pytest.raises(InsufficientDataError):
            TextGammaAgreement(texts=[three_units_text, AnnotatedText("so")], sampler=lambda: 1.0)


# ===== Observed disorder =====

class TestObservedDisorder:
    def test_position_and_text_disagreement(self, three_units_text, two_units_text):
        measure = TextGammaAgreement(texts=[three_units_text, two_units_text], sampler=lambda: 0.0)
        assert measure.observed_disorder() == pytest.approx(0.4, abs=0.001)
        assert len(measure.alignments()) == 3

    def test_alignments_are_cached(self, three_units_text, two_units_text):
        measure = TextGammaAgreement(texts=[three_units_text, two_units_text], sampler=lambda: 0.0)
        assert measure.alignments() is measure.alignments()

    def test_study_without_raw_text(self):
        filler = PLACEHOLDER_CHAR
        study = TextStudy(None, [
            text_unit(RATER_A, 0, 4, filler * 4),
            text_unit(RATER_A, 4, 8, filler * 4),
            text_unit(RATER_B, 0, 8, filler * 8),
        ])
        measure = TextGammaAgreement(study=study, sampler=lambda: 1.0)
        assert measure.alignments()
        assert measure.observed_disorder() > 0.0


# ===== Normally distributed disorder =====

class TestNormalDisorderSampler:
    @pytest.mark.parametrize("units_b, expected", [
        pytest.param([(0, 2, "a"), (3, 5, "b"), (6, 8, "c")], 1.0, id="full text agreement"),
        pytest.param([(3, 5, "b"), (6, 8, "c")], 0.6, id="missing annotation"),
        pytest.param([(0, 2, "a"), (3, 5, "c")], 0.2, id="some text disagreement"),
        pytest.param([(0, 2, "c"), (3, 5, "a"), (6, 8, "b")], 0.0, id="total text disagreement"),
    ])
    def test_agreement(self, units_b, expected):
        measure = TextGammaAgreement(study=study_of(units_b), sampler=normal_sampler())
        assert measure.calculate_agreement() == pytest.approx(expected, abs=0.02)

    def test_texts_of_different_length(self, three_units_text, two_units_text):
        measure = TextGammaAgreement(
            texts=[three_units_text, two_units_text], sampler=normal_sampler(3)
        )
        assert measure.calculate_agreement() == pytest.approx(0.6, abs=0.02)


# ===== Simple disorder sampler =====

class TestSimpleDisorderSampler:
    @pytest.mark.parametrize("labels_b, expected", [
        pytest.param(["A", "B", "C"], 1.0, id="full label agreement"),
        pytest.param([None, "B", "C"], 0.538, id="missing label"),
        pytest.param(["A", "A", "C"], 0.4545, id="some label disagreement"),
        pytest.param(["B", "C", "A"], -0.5, id="total label disagreement"),
    ])
    def test_agreement(self, labels_b, expected):
        units_b = [
            (begin, end, text, label)
            for (begin, end, text), label in zip([(0, 2, "a"), (3, 5, "b"), (6, 8, "c")], labels_b)
        ]
        study = study_of(units_b, labels_a=["A", "B", "C"])
        measure = TextGammaAgreement(
            study=study, sampler_factory=SimpleDisorderSampler.factory(seed=2024)
        )
        assert measure.calculate_agreement() == pytest.approx(expected, abs=0.03)

    def test_no_chance_disorder(self):
        # Without labels and perturbations every sample is 0
        study = study_of([(0, 2, "a"), (3, 5, "c")])
        measure = TextGammaAgreement(study=study, sampler_factory=SimpleDisorderSampler.factory())
        with pytest.raises(InsufficientDataError):
            measure.calculate_agreement()


# ===== Results and configuration =====

class TestResult:
    def test_equal_disorders_give_zero(self):
        study = study_of([(0, 2, "a"), (3, 5, "b"), (6, 8, "c")])
        measure = TextGammaAgreement(study=study, sampler=lambda: 0.0)
        assert measure.calculate_agreement() == 0.0

    def test_result_fields(self):
        study = study_of([(0, 2, "a"), (3, 5, "b"), (6, 8, "c")])
        result = TextGammaAgreement(study=study, sampler=lambda: 0.5).result()
        assert result.agreement == pytest.approx(1.0)
        assert result.observed_disorder == 0.0
        assert result.expected_disorder == pytest.approx(0.5)
        assert result.alignment_count == 1
        assert result.samples == 30
        assert result.converged
        assert result.raters == ["A", "B"]

    def test_settings_from_config(self, three_units_text, two_units_text):
        config = AgreementConfig(gamma={"precision": 0.05, "min_samples": 10, "max_samples": 50})
        measure = TextGammaAgreement(
            config, texts=[three_units_text, two_units_text], sampler=normal_sampler()
        )
        assert measure.precision == 0.05
        assert measure.estimate().samples == 50
        assert not measure.estimate().converged

    def test_arguments_override_config(self, three_units_text, two_units_text):
        config = AgreementConfig(gamma={"precision": 0.05})
        measure = TextGammaAgreement(
            config, texts=[three_units_text, two_units_text], sampler=lambda: 1.0, precision=0.2
        )
        assert measure.precision == 0.2
        assert measure.gap_weight == 1
