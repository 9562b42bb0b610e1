"""
Alignment-based agreement for segmented texts.

Modules:
- dissimilarity: Span dissimilarity strategies
- aligner: Character-level DP alignment of marker-augmented texts
- alignment: Unitary alignments, alignments and their disorder
- merge: Candidate alignments from two annotated texts
- estimator: Adaptive estimation of chance-level disorder
- sampler: Disorder samplers built from perturbed texts
- gamma: The gamma agreement measure
"""

from segmentation_agreement.aligning.aligner import PairwiseAligner, insert_markers
from segmentation_agreement.aligning.alignment import Alignment, UnitaryAlignment
from segmentation_agreement.aligning.dissimilarity import (
    Dissimilarity,
    NominalFeatureDissimilarity,
    NominalFeatureTextDissimilarity,
)
from segmentation_agreement.aligning.estimator import (
    ExpectationEstimate,
    estimate_expected_disorder,
    required_sample_count,
)
from segmentation_agreement.aligning.gamma import TextGammaAgreement
from segmentation_agreement.aligning.merge import merge_annotated_texts, observed_disorder
from segmentation_agreement.aligning.sampler import SimpleDisorderSampler

__all__ = [
    "Alignment",
    "Dissimilarity",
    "ExpectationEstimate",
    "NominalFeatureDissimilarity",
    "NominalFeatureTextDissimilarity",
    "PairwiseAligner",
    "SimpleDisorderSampler",
    "TextGammaAgreement",
    "UnitaryAlignment",
    "estimate_expected_disorder",
    "insert_markers",
    "merge_annotated_texts",
    "observed_disorder",
    "required_sample_count",
]
