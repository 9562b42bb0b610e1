"""
Adaptive estimation of chance-level disorder.

The expected disorder is the mean of disorder values sampled from randomly
perturbed versions of a study. Samples are drawn in batches until the
sample size required for the requested relative precision at confidence
``1 - alpha`` has been reached:

    n = round((cv * z / precision) ** 2)

where ``cv`` is the coefficient of variation of the samples so far and
``z`` the standard normal quantile at ``1 - alpha / 2``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from scipy import stats

logger = logging.getLogger(__name__)

DEFAULT_MIN_SAMPLES = 30
DEFAULT_MAX_SAMPLES = 1_000_000


@dataclass
class ExpectationEstimate:
    """
    Result of an adaptive expectation estimate.

    Attributes:
        mean: Estimated expected disorder
        std: Sample standard deviation (N - 1 denominator)
        samples: Number of samples drawn
        required_samples: Sample size demanded by the last stopping check
        converged: False if ``max_samples`` ended the loop first
    """

    mean: float
    std: float
    samples: int
    required_samples: int
    converged: bool

    @property
    def coefficient_of_variation(self) -> float:
        if self.mean == 0:
            return 0.0 if self.std == 0 else math.inf
        return self.std / self.mean

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mean": self.mean,
            "std": self.std,
            "samples": self.samples,
            "required_samples": self.required_samples,
            "converged": self.converged,
        }


def required_sample_count(mean: float, std: float, precision: float, alpha: float) -> float:
    """
    Sample size needed to estimate ``mean`` within relative ``precision``.

    Args:
        mean: Current sample mean
        std: Current sample standard deviation
        precision: Desired relative precision (e.g. 0.01)
        alpha: Confidence complement (e.g. 0.05 for 95% confidence)

    Returns:
        Required number of samples, rounded half up; ``inf`` when the mean
        is zero but the samples still vary

    Example:
        >>> required_sample_count(1.0, 1.0, 0.01, 0.05)
        38415
    """
    if not 0 < precision:
        raise ValueError(f"Precision must be positive, got {precision}")
    if not 0 < alpha < 1:
        raise ValueError(f"Alpha must be between 0 and 1, got {alpha}")

    if mean == 0:
        return 0 if std == 0 else math.inf

    z = stats.norm.ppf(1 - alpha / 2)
    cv = std / mean
    return math.floor((cv * z / precision) ** 2 + 0.5)


def estimate_expected_disorder(
    sampler: Callable[[], float],
    alpha: float = 0.05,
    precision: float = 0.01,
    min_samples: int = DEFAULT_MIN_SAMPLES,
    max_samples: Optional[int] = DEFAULT_MAX_SAMPLES,
) -> ExpectationEstimate:
    """
    Sample disorder values until the estimate of their mean is precise enough.

    Args:
        sampler: Zero-argument callable returning one disorder sample
        alpha: Confidence complement of the stopping rule
        precision: Desired relative precision of the mean
        min_samples: Size of the first batch
        max_samples: Upper bound on drawn samples (None for unbounded)

    Returns:
        ExpectationEstimate with the mean and convergence statistics

    Example:
        >>> estimate = estimate_expected_disorder(lambda: rng.normal(1, 1))
        >>> round(estimate.mean, 1)
        1.0
    """
    if min_samples < 2:
        raise ValueError(f"min_samples must be at least 2, got {min_samples}")
    if max_samples is not None and max_samples < min_samples:
        raise ValueError(
            f"max_samples ({max_samples}) must not be smaller than min_samples ({min_samples})"
        )

    samples: List[float] = []
    required: float = min_samples
    mean = std = 0.0

    while len(samples) < required:
        target = required if max_samples is None else min(required, max_samples)
        while len(samples) < target:
            samples.append(float(sampler()))

        values = np.asarray(samples, dtype=float)
        mean = float(values.mean())
        std = float(values.std(ddof=1))
        required = required_sample_count(mean, std, precision, alpha)

        logger.debug(
            f"Drew {len(samples)} samples: mean={mean:.6f}, std={std:.6f}, "
            f"required={required}"
        )

        if max_samples is not None and len(samples) >= max_samples and required > len(samples):
            logger.warning(
                f"Expected disorder did not reach precision {precision} within "
                f"{max_samples} samples (required {required})"
            )
            return ExpectationEstimate(
                mean=mean,
                std=std,
                samples=len(samples),
                required_samples=_as_count(required),
                converged=False,
            )

    return ExpectationEstimate(
        mean=mean,
        std=std,
        samples=len(samples),
        required_samples=_as_count(required),
        converged=True,
    )


def _as_count(required: float) -> int:
    return -1 if math.isinf(required) else int(required)
