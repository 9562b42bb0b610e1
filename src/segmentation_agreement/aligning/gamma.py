"""
Gamma agreement for segmented texts.

Gamma compares the disorder observed between two raters' segmentations with
the disorder expected by chance:

    gamma = 1 - observed_disorder / expected_disorder

The observed disorder is the minimum disorder over the best alignments of
the two texts. The expected disorder is estimated adaptively from a disorder
sampler (see ``estimator`` and ``sampler``).
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from segmentation_agreement.aligning.alignment import Alignment
from segmentation_agreement.aligning.dissimilarity import (
    Dissimilarity,
    NominalFeatureTextDissimilarity,
)
from segmentation_agreement.aligning.estimator import (
    ExpectationEstimate,
    estimate_expected_disorder,
)
from segmentation_agreement.aligning.merge import merge_annotated_texts
from segmentation_agreement.aligning.sampler import DisorderSampler, SamplerFactory
from segmentation_agreement.config import AgreementConfig
from segmentation_agreement.exceptions import InsufficientDataError
from segmentation_agreement.models import AnnotatedText, GammaResult, TextStudy

logger = logging.getLogger(__name__)


class TextGammaAgreement:
    """
    Chance-corrected agreement between two segmentations of a text.

    Exactly one of ``texts`` and ``study`` must be given, and exactly one of
    ``sampler`` and ``sampler_factory``. Tunables left as None are taken from
    the ``gamma`` section of the configuration.

    Args:
        config: Agreement configuration (defaults are used if None)
        texts: Two annotated texts with one rater each
        study: A two-rater text study, split into one text per rater
        dissimilarity: Span dissimilarity (default: nominal feature/text)
        sampler: Zero-argument callable drawing one chance disorder value
        sampler_factory: Callable creating a sampler for this measure
        precision: Relative precision of the expected disorder estimate
        alpha: Confidence complement of the estimate
        gap_weight: Aligner cost of one insertion or deletion
        max_alignments: Cap on enumerated character alignments
        min_samples: First batch size of the estimator
        max_samples: Cap on drawn disorder samples
        max_distance: Largest allowed edit distance between the texts

    Raises:
        ValueError: On invalid combinations of inputs or a wrong rater count
        InsufficientDataError: If a text carries no units

    Example:
        >>> measure = TextGammaAgreement(
        ...     texts=[text1, text2],
        ...     sampler_factory=SimpleDisorderSampler.factory(seed=42),
        ... )
        >>> measure.observed_disorder()
        0.4
    """

    def __init__(
        self,
        config: Optional[AgreementConfig] = None,
        *,
        texts: Optional[Sequence[AnnotatedText]] = None,
        study: Optional[TextStudy] = None,
        dissimilarity: Optional[Dissimilarity] = None,
        sampler: Optional[DisorderSampler] = None,
        sampler_factory: Optional[SamplerFactory] = None,
        precision: Optional[float] = None,
        alpha: Optional[float] = None,
        gap_weight: Optional[int] = None,
        max_alignments: Optional[int] = None,
        min_samples: Optional[int] = None,
        max_samples: Optional[int] = None,
        max_distance: Optional[int] = None,
    ) -> None:
        self.config = config if config is not None else AgreementConfig()
        settings = self.config.gamma

        if (texts is None) == (study is None):
            raise ValueError("Provide either two annotated texts or a study, not both or neither")
        if (sampler is None) == (sampler_factory is None):
            raise ValueError("Provide either a sampler or a sampler factory, not both or neither")

        self._texts = self._texts_from_study(study) if study is not None else list(texts)
        self._check_texts(self._texts)

        self.dissimilarity = dissimilarity or NominalFeatureTextDissimilarity()
        self.precision = precision if precision is not None else settings.precision
        self.alpha = alpha if alpha is not None else settings.alpha
        self.gap_weight = gap_weight if gap_weight is not None else settings.gap_weight
        self.max_alignments = (
            max_alignments if max_alignments is not None else settings.max_alignments
        )
        self.min_samples = min_samples if min_samples is not None else settings.min_samples
        self.max_samples = max_samples if max_samples is not None else settings.max_samples
        self.max_distance = max_distance if max_distance is not None else settings.max_distance

        self._sampler = sampler if sampler is not None else sampler_factory(self)

        self._alignments: Optional[List[Alignment]] = None
        self._observed: Optional[float] = None
        self._estimate: Optional[ExpectationEstimate] = None

    @staticmethod
    def _texts_from_study(study: TextStudy) -> List[AnnotatedText]:
        if study.rater_count != 2:
            raise ValueError(f"Gamma needs a study with exactly 2 raters, got {study.rater_count}")
        return study.texts()

    @staticmethod
    def _check_texts(texts: Sequence[AnnotatedText]) -> None:
        if len(texts) != 2:
            raise ValueError(f"Gamma needs exactly 2 annotated texts, got {len(texts)}")

        for index, text in enumerate(texts, 1):
            if text.rater_count != 1:
                if text.unit_count == 0:
                    raise InsufficientDataError(f"Annotated text {index} carries no units")
                raise ValueError(
                    f"Annotated text {index} must hold units of exactly one rater, "
                    f"got {text.rater_count}"
                )

        if texts[0].rater == texts[1].rater:
            raise ValueError(f"Both annotated texts belong to rater {texts[0].rater}")

    @property
    def texts(self) -> List[AnnotatedText]:
        return list(self._texts)

    # =========================================================================
    # Disorder
    # =========================================================================

    def alignments(self) -> List[Alignment]:
        """The alignments with maximal unit coincidence between the two texts."""
        if self._alignments is None:
            self._alignments = merge_annotated_texts(
                self._texts[0],
                self._texts[1],
                max_distance=self.max_distance,
                gap_weight=self.gap_weight,
                max_alignments=self.max_alignments,
            )
        return self._alignments

    def observed_disorder(self) -> float:
        """Minimum disorder over the retained alignments."""
        if self._observed is None:
            self._observed = min(a.disorder(self.dissimilarity) for a in self.alignments())
            logger.debug(
                f"Observed disorder {self._observed:.6f} over "
                f"{len(self.alignments())} alignment(s)"
            )
        return self._observed

    def estimate(self) -> ExpectationEstimate:
        """Adaptive estimate of the chance-level disorder."""
        if self._estimate is None:
            self._estimate = estimate_expected_disorder(
                self._sampler,
                alpha=self.alpha,
                precision=self.precision,
                min_samples=self.min_samples,
                max_samples=self.max_samples,
            )
            logger.debug(
                f"Expected disorder {self._estimate.mean:.6f} from "
                f"{self._estimate.samples} sample(s)"
            )
        return self._estimate

    def expected_disorder(self) -> float:
        return self.estimate().mean

    # =========================================================================
    # Agreement
    # =========================================================================

    def calculate_agreement(self) -> float:
        """
        Compute gamma.

        Returns:
            ``1 - observed / expected``, or 0 if both disorders are equal

        Raises:
            InsufficientDataError: If no disorder is expected by chance but
                some is observed
        """
        observed = self.observed_disorder()
        expected = self.expected_disorder()

        if observed == expected:
            return 0.0
        if expected == 0:
            raise InsufficientDataError(
                f"Expected disorder is 0 while observed disorder is {observed}; "
                f"gamma is undefined"
            )

        agreement = 1.0 - observed / expected
        logger.info(
            f"Gamma = {agreement:.4f} (observed {observed:.4f}, expected {expected:.4f})"
        )
        return agreement

    def result(self) -> GammaResult:
        """Compute gamma and collect the diagnostics into a GammaResult."""
        agreement = self.calculate_agreement()
        estimate = self.estimate()
        return GammaResult(
            agreement=agreement,
            observed_disorder=self.observed_disorder(),
            expected_disorder=estimate.mean,
            alignment_count=len(self.alignments()),
            samples=estimate.samples,
            converged=estimate.converged,
            raters=[text.rater.name for text in self._texts],
        )
