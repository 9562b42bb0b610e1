"""
Segmentation Agreement
======================

Inter-rater agreement measures for segmentation and unitizing studies.

This package provides:
- Span, annotated text and continuum study models
- Character-level alignment of segmented texts
- The gamma measure with adaptive estimation of chance disorder
- Krippendorff's unitizing alpha with per-category breakdown

Example usage::

    from segmentation_agreement import SimpleDisorderSampler, TextGammaAgreement

    measure = TextGammaAgreement(
        texts=[text1, text2],
        sampler_factory=SimpleDisorderSampler.factory(seed=42),
    )
    gamma = measure.calculate_agreement()

Or via CLI::

    seg-agreement gamma study.json

"""

__version__ = "1.0.0"

from segmentation_agreement.aligning import (
    Alignment,
    NominalFeatureDissimilarity,
    NominalFeatureTextDissimilarity,
    PairwiseAligner,
    SimpleDisorderSampler,
    TextGammaAgreement,
    UnitaryAlignment,
    estimate_expected_disorder,
    merge_annotated_texts,
)
from segmentation_agreement.config import AgreementConfig, load_config
from segmentation_agreement.exceptions import (
    AgreementError,
    InsufficientDataError,
    OverlappingUnitsError,
    ReservedCharacterError,
)
from segmentation_agreement.models import (
    AnnotatedText,
    AnnotationSet,
    ContinuumStudy,
    ContinuumStudyBuilder,
    GammaResult,
    Rater,
    Span,
    TextSpan,
    TextStudy,
    UnitizingResult,
)
from segmentation_agreement.unitizing import KrippendorffAlphaUnitizing

__all__ = [
    # Version
    "__version__",
    # Configuration
    "AgreementConfig",
    "load_config",
    # Models
    "AnnotatedText",
    "AnnotationSet",
    "ContinuumStudy",
    "ContinuumStudyBuilder",
    "GammaResult",
    "Rater",
    "Span",
    "TextSpan",
    "TextStudy",
    "UnitizingResult",
    # Gamma
    "Alignment",
    "NominalFeatureDissimilarity",
    "NominalFeatureTextDissimilarity",
    "PairwiseAligner",
    "SimpleDisorderSampler",
    "TextGammaAgreement",
    "UnitaryAlignment",
    "estimate_expected_disorder",
    "merge_annotated_texts",
    # Unitizing
    "KrippendorffAlphaUnitizing",
    # Errors
    "AgreementError",
    "InsufficientDataError",
    "OverlappingUnitsError",
    "ReservedCharacterError",
]
