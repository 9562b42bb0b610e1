"""Unit tests for segmentation_agreement.aligning.estimator.

Tests cover:
    - Required sample size
    - Adaptive estimation of the expected disorder
    - Sample cap and degenerate samplers
"""
import itertools
import math

import numpy as np
import pytest

from segmentation_agreement.aligning.estimator import (
    ExpectationEstimate,
    estimate_expected_disorder,
    required_sample_count,
)


# ===== Required sample size =====

class TestRequiredSampleCount:
    def test_reference_value(self):
        # (1.96 / 0.01) ** 2 rounded half up
        assert required_sample_count(1.0, 1.0, 0.01, 0.05) == 38415

    def test_grows_with_variation(self):
        low = required_sample_count(1.0, 0.5, 0.01, 0.05)
        high = required_sample_count(1.0, 1.0, 0.01, 0.05)
        assert low < high

    def test_shrinks_with_precision(self):
        fine = required_sample_count(1.0, 1.0, 0.01, 0.05)
        coarse = required_sample_count(1.0, 1.0, 0.1, 0.05)
        assert coarse < fine

    def test_zero_mean(self):
        assert required_sample_count(0.0, 0.0, 0.01, 0.05) == 0
        assert math.isinf(required_sample_count(0.0, 0.1, 0.01, 0.05))

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            required_sample_count(1.0, 1.0, 0.0, 0.05)
        with pytest.raises(ValueError):
            required_sample_count(1.0, 1.0, 0.01, 1.0)


# ===== Estimation =====

class TestEstimateExpectedDisorder:
    def test_constant_sampler(self):
        estimate = estimate_expected_disorder(lambda: 0.5)
        assert estimate.mean == pytest.approx(0.5)
        assert estimate.std == 0.0
        assert estimate.samples == 30
        assert estimate.converged

    def test_zero_sampler_converges(self):
        estimate = estimate_expected_disorder(lambda: 0.0)
        assert estimate.mean == 0.0
        assert estimate.converged
        assert estimate.coefficient_of_variation == 0.0

    def test_cyclic_sampler(self):
        values = itertools.cycle([0.9, 1.0, 1.1])
        estimate = estimate_expected_disorder(lambda: next(values), min_samples=30)
        assert estimate.mean == pytest.approx(1.0, abs=0.01)
        assert estimate.samples >= estimate.required_samples

    def test_normal_sampler(self):
        rng = np.random.default_rng(1)
        estimate = estimate_expected_disorder(lambda: rng.normal(1.0, 1.0), precision=0.02)
        assert estimate.mean == pytest.approx(1.0, abs=0.05)
        assert estimate.samples > 5000
        assert estimate.converged

    def test_sample_cap(self):
        rng = np.random.default_rng(7)
        estimate = estimate_expected_disorder(
            lambda: rng.normal(1.0, 1.0), min_samples=10, max_samples=100
        )
        assert estimate.samples == 100
        assert not estimate.converged
        assert estimate.required_samples > 100

    def test_invalid_batch_sizes(self):
        with pytest.raises(ValueError):
            estimate_expected_disorder(lambda: 1.0, min_samples=1)
        with pytest.raises(ValueError):
            estimate_expected_disorder(lambda: 1.0, min_samples=50, max_samples=10)

    def test_to_dict(self):
        estimate = ExpectationEstimate(mean=1.0, std=0.5, samples=40, required_samples=30, converged=True)
        assert estimate.to_dict()["samples"] == 40
        assert estimate.coefficient_of_variation == pytest.approx(0.5)
