"""
Disorder samplers for estimating chance-level disorder.

A disorder sampler is any zero-argument callable returning one disorder
value drawn under the chance hypothesis. ``SimpleDisorderSampler`` derives
such values from the studied texts themselves: it perturbs two copies of
every text (characters, segmentation and feature labels) and measures the
observed disorder between the copies.
"""

from __future__ import annotations

import logging
from collections import Counter
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from segmentation_agreement.aligning.merge import observed_disorder
from segmentation_agreement.models import AnnotatedText, Rater, TextSpan

if TYPE_CHECKING:
    from segmentation_agreement.aligning.gamma import TextGammaAgreement

logger = logging.getLogger(__name__)

DisorderSampler = Callable[[], float]
SamplerFactory = Callable[["TextGammaAgreement"], DisorderSampler]

SAMPLE_RATER_A = Rater("A", 0)
SAMPLE_RATER_B = Rater("B", 1)


class TextChange(Enum):
    """Kinds of random text edits."""

    INSERTION = "insertion"
    DELETION = "deletion"
    SUBSTITUTION = "substitution"


class SegmentationChange(Enum):
    """Kinds of random segmentation edits."""

    MERGE = "merge"
    SPLIT = "split"


class SimpleDisorderSampler:
    """
    Sample disorder between randomly perturbed copies of the measured texts.

    For every text of the measure, two copies are perturbed independently:

    1. Text changes: ``Binomial(units, text_change_rate)`` edits, each an
       insertion, a deletion (never removing a unit) or a substitution,
       with characters drawn from the character frequencies of all units
    2. Segmentation changes: ``Binomial(units, segment_change_rate)`` merges
       of adjacent units with equal features, or splits of one unit
    3. Label changes: every feature of every unit is redrawn from the label
       frequencies over all units

    The copies are assigned to raters ``A`` and ``B`` and their observed
    disorder is computed. A sample is the mean over all texts.

    Args:
        measure: Gamma measure providing texts, dissimilarity and aligner settings
        text_change_rate: Probability per unit of a text change
        segment_change_rate: Probability per unit of a segmentation change
        seed: Seed for the random generator
        merge_gap: Largest gap between two units that may be merged

    Example:
        >>> sampler = SimpleDisorderSampler(measure, seed=42)
        >>> sampler()
        0.3333333333333333
    """

    def __init__(
        self,
        measure: TextGammaAgreement,
        text_change_rate: float = 0.0,
        segment_change_rate: float = 0.0,
        seed: Optional[int] = None,
        merge_gap: int = 0,
    ) -> None:
        for name, rate in (
            ("text_change_rate", text_change_rate),
            ("segment_change_rate", segment_change_rate),
        ):
            if not 0.0 <= rate <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {rate}")

        self.measure = measure
        self.text_change_rate = text_change_rate
        self.segment_change_rate = segment_change_rate
        self.merge_gap = merge_gap
        self._rng = np.random.default_rng(seed)

        units = [unit for text in measure.texts for unit in text.units]
        self._characters, self._character_probs = self._character_distribution(units)
        self._labels = self._label_distributions(units)

        logger.debug(
            f"Disorder sampler over {len(measure.texts)} text(s): "
            f"{len(self._characters)} distinct character(s), "
            f"{len(self._labels)} randomized feature(s)"
        )

    @classmethod
    def factory(
        cls,
        text_change_rate: float = 0.0,
        segment_change_rate: float = 0.0,
        seed: Optional[int] = None,
    ) -> SamplerFactory:
        """Create a sampler factory for ``TextGammaAgreement(sampler_factory=...)``."""

        def create(measure: TextGammaAgreement) -> SimpleDisorderSampler:
            return cls(measure, text_change_rate, segment_change_rate, seed)

        return create

    def __call__(self) -> float:
        texts = self.measure.texts
        return sum(self._sample_text(text) for text in texts) / len(texts)

    # =========================================================================
    # Distributions
    # =========================================================================

    @staticmethod
    def _character_distribution(units: Sequence[TextSpan]) -> Tuple[List[str], np.ndarray]:
        counts = Counter(char for unit in units for char in unit.text)
        characters = sorted(counts)
        total = sum(counts.values())
        probs = np.array([counts[c] / total for c in characters], dtype=float)
        return characters, probs

    @staticmethod
    def _label_distributions(
        units: Sequence[TextSpan],
    ) -> Dict[str, Tuple[List[Optional[str]], np.ndarray]]:
        names = sorted({name for unit in units for name in unit.feature_names})
        distributions: Dict[str, Tuple[List[Optional[str]], np.ndarray]] = {}

        for name in names:
            # Units without the feature contribute an "absent" label
            counts = Counter(unit.feature(name) for unit in units)
            labels = sorted(counts, key=lambda label: (label is None, label or ""))
            probs = np.array([counts[label] / len(units) for label in labels], dtype=float)
            distributions[name] = (labels, probs)

        return distributions

    def _draw_character(self) -> str:
        return self._characters[self._rng.choice(len(self._characters), p=self._character_probs)]

    # =========================================================================
    # Sampling
    # =========================================================================

    def _sample_text(self, text: AnnotatedText) -> float:
        count = text.unit_count

        version1 = self._change_text(text, int(self._rng.binomial(count, self.text_change_rate)))
        version2 = self._change_text(text, int(self._rng.binomial(count, self.text_change_rate)))

        units1 = self._change_segmentation(
            list(version1.units), int(self._rng.binomial(count, self.segment_change_rate))
        )
        units2 = self._change_segmentation(
            list(version2.units), int(self._rng.binomial(count, self.segment_change_rate))
        )

        units1 = self._randomize_labels(units1)
        units2 = self._randomize_labels(units2)

        sample1 = AnnotatedText(version1.text, [u.with_rater(SAMPLE_RATER_A) for u in units1])
        sample2 = AnnotatedText(version2.text, [u.with_rater(SAMPLE_RATER_B) for u in units2])

        return observed_disorder(
            sample1,
            sample2,
            self.measure.dissimilarity,
            gap_weight=self.measure.gap_weight,
            max_alignments=self.measure.max_alignments,
        )

    def _randomize_labels(self, units: List[TextSpan]) -> List[TextSpan]:
        for name, (labels, probs) in self._labels.items():
            drawn = self._rng.choice(len(labels), size=len(units), p=probs)
            units = [unit.with_feature(name, labels[i]) for unit, i in zip(units, drawn)]
        return units

    # =========================================================================
    # Text changes
    # =========================================================================

    def _change_text(self, text: AnnotatedText, changes: int) -> AnnotatedText:
        chars = list(text.text)
        units: List[TextSpan] = list(text.units)
        changed: Set[int] = set()

        if not self._characters:
            return text

        kinds = list(TextChange)
        for _ in range(min(changes, len(units))):
            done = False
            while not done:
                kind = kinds[self._rng.integers(len(kinds))]
                if kind is TextChange.INSERTION:
                    done = self._insert_character(chars, units, changed)
                elif kind is TextChange.DELETION:
                    done = self._delete_character(chars, units, changed)
                else:
                    done = self._substitute_character(chars, units, changed)

        return AnnotatedText("".join(chars), units)

    def _pick_unchanged(self, units: List[TextSpan], changed: Set[int]) -> int:
        candidates = [i for i in range(len(units)) if i not in changed]
        return candidates[self._rng.integers(len(candidates))]

    @staticmethod
    def _shift_following(units: List[TextSpan], index: int, delta: int) -> None:
        for i in range(index + 1, len(units)):
            unit = units[i]
            units[i] = unit.with_offsets(unit.begin + delta, unit.end + delta)

    def _insert_character(
        self, chars: List[str], units: List[TextSpan], changed: Set[int]
    ) -> bool:
        index = self._pick_unchanged(units, changed)
        unit = units[index]
        position = unit.begin + int(self._rng.integers(unit.length + 1))

        chars.insert(position, self._draw_character())
        end = unit.end + 1
        units[index] = unit.with_offsets(unit.begin, end).with_text("".join(chars[unit.begin:end]))
        self._shift_following(units, index, 1)
        changed.add(index)
        return True

    def _delete_character(
        self, chars: List[str], units: List[TextSpan], changed: Set[int]
    ) -> bool:
        index = self._pick_unchanged(units, changed)
        unit = units[index]
        if unit.length == 1:
            return False

        position = unit.begin + int(self._rng.integers(unit.length))
        del chars[position]
        end = unit.end - 1
        units[index] = unit.with_offsets(unit.begin, end).with_text("".join(chars[unit.begin:end]))
        self._shift_following(units, index, -1)
        changed.add(index)
        return True

    def _substitute_character(
        self, chars: List[str], units: List[TextSpan], changed: Set[int]
    ) -> bool:
        index = self._pick_unchanged(units, changed)
        unit = units[index]
        position = unit.begin + int(self._rng.integers(unit.length))

        original = chars[position]
        if all(c == original for c in self._characters):
            return False

        replacement = self._draw_character()
        while replacement == original:
            replacement = self._draw_character()

        chars[position] = replacement
        units[index] = unit.with_text("".join(chars[unit.begin:unit.end]))
        changed.add(index)
        return True

    # =========================================================================
    # Segmentation changes
    # =========================================================================

    def _change_segmentation(self, units: List[TextSpan], changes: int) -> List[TextSpan]:
        kinds = list(SegmentationChange)
        for _ in range(changes):
            if not units:
                break
            kind = kinds[self._rng.integers(len(kinds))]
            if kind is SegmentationChange.MERGE:
                self._merge_units(units)
            else:
                self._split_unit(units)
        return units

    def _merge_units(self, units: List[TextSpan]) -> None:
        index = int(self._rng.integers(len(units)))
        base = units[index]

        candidate = index + 1
        while candidate < len(units) and units[candidate].begin <= base.end + self.merge_gap:
            other = units[candidate]
            if (
                other.begin >= base.end
                and other.rater == base.rater
                and other.category == base.category
            ):
                separator = " " if other.begin > base.end else ""
                units[index] = base.with_offsets(base.begin, other.end).with_text(
                    base.text + separator + other.text
                )
                del units[candidate]
                return
            candidate += 1

    def _split_unit(self, units: List[TextSpan]) -> None:
        index = int(self._rng.integers(len(units)))
        unit = units[index]
        if unit.length <= 1:
            return

        cut = int(self._rng.integers(1, unit.length))
        first = unit.with_offsets(unit.begin, unit.begin + cut).with_text(unit.text[:cut])
        second = unit.with_offsets(unit.begin + cut, unit.end).with_text(unit.text[cut:])
        units[index:index + 1] = [first, second]
