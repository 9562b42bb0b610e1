"""
Data models for segmentation agreement.

This module defines the data structures shared by all measures:
- Raters and annotation spans (plain and text-bearing)
- Frozen annotation sets, annotated texts and text studies
- Continuum units and unitizing studies
- Result objects returned by the agreement measures

All collections are frozen snapshots: everything derived from their units is
computed once at construction time. Use the builder classes to assemble them
incrementally.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field, replace
from functools import total_ordering
from typing import (
    Any,
    Dict,
    FrozenSet,
    Hashable,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

TEXT_UNIT_TYPE = "textunit"

# Filler for studies over an abstract interval without raw text
PLACEHOLDER_CHAR = "x"

Coordinate = Union[int, float]
FeatureItems = Tuple[Tuple[str, str], ...]


# =============================================================================
# Raters and Spans
# =============================================================================


@dataclass(frozen=True, order=True)
class Rater:
    """
    A participant of an annotation study.

    Raters compare, sort and hash by name only. The index is kept for
    array-style access (e.g. rater columns in a matrix).

    Attributes:
        name: Unique rater name
        index: Position of the rater in its study
    """

    name: str
    index: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return self.name


def _freeze_features(features: Any) -> FeatureItems:
    """Normalize a feature mapping (or pair sequence) into sorted name/value pairs."""
    if not features:
        return ()

    items = features.items() if isinstance(features, Mapping) else features

    frozen: Dict[str, str] = {}
    for name, value in items:
        if name in frozen:
            raise ValueError(f"Duplicate feature name: {name}")
        # A missing value means the feature is absent
        if value is None:
            continue
        frozen[str(name)] = str(value)

    return tuple(sorted(frozen.items()))


@total_ordering
@dataclass(frozen=True)
class Span:
    """
    An annotated interval ``[begin, end)`` created by a single rater.

    Spans are immutable; the ``with_*`` methods return modified copies.

    Attributes:
        rater: Rater who created the span
        begin: Inclusive start offset
        end: Exclusive end offset
        features: Feature name/value pairs (a dict is accepted on creation)
        type: Optional type tag

    Example:
        >>> a = Rater("A", 0)
        >>> span = Span(a, 0, 4, features={"label": "noun"})
        >>> span.feature("label")
        'noun'
    """

    rater: Rater
    begin: int
    end: int
    features: FeatureItems = ()
    type: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "features", _freeze_features(self.features))
        if self.begin >= self.end:
            raise ValueError(
                f"Span begin ({self.begin}) must be smaller than its end ({self.end})"
            )

    def __lt__(self, other: Span) -> bool:
        if not isinstance(other, Span):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def sort_key(self) -> Tuple[Any, ...]:
        """Total order: offsets, type, rater, then features."""
        names = [name for name, _ in self.features]
        values = tuple(value for _, value in self.features)
        return (
            self.begin,
            self.end,
            self.type or "",
            self.rater.name,
            len(self.features),
            ",".join(names),
            values,
            self._text_key(),
        )

    def _text_key(self) -> str:
        return ""

    @property
    def length(self) -> int:
        return self.end - self.begin

    @property
    def feature_map(self) -> Dict[str, str]:
        return dict(self.features)

    @property
    def feature_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.features)

    @property
    def category(self) -> FeatureItems:
        """The full feature assignment, used to compare span categories."""
        return self.features

    def feature(self, name: str) -> Optional[str]:
        """Get the value of a feature, or None if the span does not carry it."""
        for feature_name, value in self.features:
            if feature_name == name:
                return value
        return None

    def is_coextensive(self, other: Span) -> bool:
        return self.begin == other.begin and self.end == other.end

    def overlaps(self, other: Span) -> bool:
        return self.begin < other.end and other.begin < self.end

    def with_offsets(self, begin: int, end: int) -> Span:
        return replace(self, begin=begin, end=end)

    def with_rater(self, rater: Rater) -> Span:
        return replace(self, rater=rater)

    def with_feature(self, name: str, value: Optional[str]) -> Span:
        """Copy with one feature set to ``value`` (None removes the feature)."""
        features = self.feature_map
        features.pop(name, None)
        if value is not None:
            features[name] = value
        return replace(self, features=features)


@dataclass(frozen=True)
class TextSpan(Span):
    """
    A span over a text that also carries the text it covers.

    The stored text is free-form and is not required to match the slice of
    the underlying raw text.
    """

    type: Optional[str] = TEXT_UNIT_TYPE
    text: str = ""

    def _text_key(self) -> str:
        return self.text

    def with_text(self, text: str) -> TextSpan:
        return replace(self, text=text)


# =============================================================================
# Annotation Sets and Texts
# =============================================================================


class AnnotationSet:
    """
    Frozen, sorted collection of unique spans.

    Derived values (raters, categories, feature names, covered bounds) are
    computed once when the set is created.

    Example:
        >>> a, b = Rater("A", 0), Rater("B", 1)
        >>> units = AnnotationSet([Span(a, 0, 3), Span(b, 0, 4)])
        >>> units.rater_count, units.average_annotations
        (2, 1.0)
    """

    def __init__(self, units: Iterable[Span] = ()) -> None:
        unique = set(units)

        self._units: Tuple[Span, ...] = tuple(sorted(unique, key=Span.sort_key))
        self._unit_set: FrozenSet[Span] = frozenset(unique)
        self._raters: Tuple[Rater, ...] = tuple(sorted({u.rater for u in unique}))
        self._categories: FrozenSet[FeatureItems] = frozenset(u.category for u in unique)
        self._feature_names: FrozenSet[str] = frozenset(
            name for u in unique for name in u.feature_names
        )
        self._lowest: Optional[int] = min((u.begin for u in unique), default=None)
        self._highest: Optional[int] = max((u.end for u in unique), default=None)

    @classmethod
    def builder(cls) -> AnnotationSetBuilder:
        return AnnotationSetBuilder()

    @property
    def units(self) -> Tuple[Span, ...]:
        return self._units

    @property
    def raters(self) -> Tuple[Rater, ...]:
        return self._raters

    @property
    def rater_count(self) -> int:
        return len(self._raters)

    @property
    def unit_count(self) -> int:
        return len(self._units)

    @property
    def categories(self) -> FrozenSet[FeatureItems]:
        return self._categories

    @property
    def feature_names(self) -> FrozenSet[str]:
        return self._feature_names

    @property
    def lowest_offset(self) -> Optional[int]:
        return self._lowest

    @property
    def highest_offset(self) -> Optional[int]:
        return self._highest

    @property
    def average_annotations(self) -> float:
        """Average number of units per rater."""
        if not self._raters:
            return 0.0
        return self.unit_count / self.rater_count

    def units_of(self, rater: Rater) -> Tuple[Span, ...]:
        return tuple(u for u in self._units if u.rater == rater)

    def __contains__(self, unit: object) -> bool:
        return unit in self._unit_set

    def __iter__(self) -> Iterator[Span]:
        return iter(self._units)

    def __len__(self) -> int:
        return len(self._units)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(units={self.unit_count}, "
            f"raters={[r.name for r in self._raters]})"
        )


class AnnotationSetBuilder:
    """Collects spans and freezes them into an AnnotationSet."""

    def __init__(self) -> None:
        self._units: List[Span] = []

    def add(self, unit: Span) -> AnnotationSetBuilder:
        self._units.append(unit)
        return self

    def add_all(self, units: Iterable[Span]) -> AnnotationSetBuilder:
        self._units.extend(units)
        return self

    def build(self) -> AnnotationSet:
        return AnnotationSet(self._units)


class AnnotatedText(AnnotationSet):
    """
    Text spans over a raw text string.

    Every span must lie within the bounds of the text. Gamma measures expect
    each annotated text to hold the segmentation of exactly one rater.

    Args:
        text: The raw text. If None, a placeholder of ``PLACEHOLDER_CHAR``
            reaching up to the highest unit offset stands in for it.
        units: Text spans over the text
    """

    def __init__(self, text: Optional[str], units: Iterable[TextSpan] = ()) -> None:
        super().__init__(units)

        for unit in self._units:
            if not isinstance(unit, TextSpan):
                raise TypeError(
                    f"Annotated texts only hold text spans, got {type(unit).__name__}"
                )

        if text is None:
            text = PLACEHOLDER_CHAR * max(self._highest or 0, 0)

        if self._units and (self._lowest < 0 or self._highest > len(text)):
            raise ValueError(
                f"Units cover [{self._lowest}, {self._highest}) which exceeds "
                f"the text of length {len(text)}"
            )

        self._text = text

    @property
    def text(self) -> str:
        return self._text

    @property
    def rater(self) -> Optional[Rater]:
        """The single rater of this text, or None if there is not exactly one."""
        return self._raters[0] if len(self._raters) == 1 else None

    def with_units(self, units: Iterable[TextSpan]) -> AnnotatedText:
        return AnnotatedText(self._text, units)


class TextStudy:
    """
    A raw text segmented independently by several raters.

    Without a raw text, all raters share one placeholder text spanning the
    highest offset of any rater.

    Example:
        >>> a, b = Rater("A", 0), Rater("B", 1)
        >>> study = TextStudy("so so", [
        ...     TextSpan(a, 0, 2, text="so"),
        ...     TextSpan(b, 3, 5, text="so"),
        ... ])
        >>> [t.rater.name for t in study.texts()]
        ['A', 'B']
    """

    def __init__(self, text: Optional[str], units: Iterable[TextSpan] = ()) -> None:
        self._annotations = AnnotatedText(text, units)

    @property
    def text(self) -> str:
        return self._annotations.text

    @property
    def units(self) -> Tuple[Span, ...]:
        return self._annotations.units

    @property
    def raters(self) -> Tuple[Rater, ...]:
        return self._annotations.raters

    @property
    def rater_count(self) -> int:
        return self._annotations.rater_count

    def texts(self) -> List[AnnotatedText]:
        """Split the study into one annotated text per rater, in rater order."""
        return [
            AnnotatedText(self.text, self._annotations.units_of(rater))
            for rater in self.raters
        ]


# =============================================================================
# Continuum (Unitizing) Studies
# =============================================================================


@dataclass(frozen=True)
class Continuum:
    """The coordinate domain ``[begin, begin + length)`` of a unitizing study."""

    begin: Coordinate
    length: Coordinate

    def __post_init__(self) -> None:
        if self.length <= 0:
            raise ValueError(f"Continuum length must be positive, got {self.length}")

    @property
    def end(self) -> Coordinate:
        return self.begin + self.length


@dataclass(frozen=True)
class ContinuumUnit:
    """
    A categorized interval placed by one rater on a continuum.

    Categories are opaque hashable labels; units are only ever grouped by
    category equality.

    Attributes:
        begin: Start of the unit
        length: Positive length of the unit
        rater: Index of the rater who placed the unit
        category: Hashable category label (None is reserved for gaps)
    """

    begin: Coordinate
    length: Coordinate
    rater: int
    category: Hashable

    def __post_init__(self) -> None:
        if self.length <= 0:
            raise ValueError(f"Unit length must be positive, got {self.length}")
        if self.rater < 0:
            raise ValueError(f"Rater index must not be negative, got {self.rater}")
        if self.category is None:
            raise ValueError("Unit category must not be None")
        try:
            hash(self.category)
        except TypeError as e:
            raise TypeError(f"Unit category must be hashable: {e}") from e

    @property
    def end(self) -> Coordinate:
        return self.begin + self.length

    def sort_key(self) -> Tuple[Coordinate, Coordinate, int]:
        return (self.begin, self.length, self.rater)


class ContinuumStudy:
    """
    Frozen unitizing study: raters placing categorized units on a continuum.

    Units of the same rater and category may not overlap.

    Args:
        rater_count: Number of raters taking part
        continuum: Coordinate domain of the study
        units: Units placed by the raters

    Example:
        >>> study = (
        ...     ContinuumStudyBuilder(rater_count=2, begin=0, length=10)
        ...     .add_unit(1, 8, 0, "A")
        ...     .add_unit(2, 1, 1, "A")
        ...     .build()
        ... )
        >>> study.categories
        ('A',)
    """

    def __init__(
        self,
        rater_count: int,
        continuum: Continuum,
        units: Iterable[ContinuumUnit] = (),
    ) -> None:
        if rater_count < 1:
            raise ValueError(f"A study needs at least one rater, got {rater_count}")

        self._rater_count = rater_count
        self._continuum = continuum
        self._units: Tuple[ContinuumUnit, ...] = tuple(
            sorted(units, key=ContinuumUnit.sort_key)
        )

        streams: Dict[Tuple[int, Hashable], List[ContinuumUnit]] = defaultdict(list)
        for unit in self._units:
            self._check_unit(unit)
            stream = streams[(unit.rater, unit.category)]
            if stream and stream[-1].end > unit.begin:
                raise ValueError(
                    f"Units of rater {unit.rater} with category {unit.category!r} "
                    f"overlap at {unit.begin}"
                )
            stream.append(unit)

        self._streams: Dict[Tuple[int, Hashable], Tuple[ContinuumUnit, ...]] = {
            key: tuple(stream) for key, stream in streams.items()
        }
        self._categories: Tuple[Hashable, ...] = tuple(
            dict.fromkeys(u.category for u in self._units)
        )

    def _check_unit(self, unit: ContinuumUnit) -> None:
        if unit.rater >= self._rater_count:
            raise ValueError(
                f"Rater index {unit.rater} out of range for {self._rater_count} raters"
            )
        if unit.begin < self._continuum.begin or unit.end > self._continuum.end:
            raise ValueError(
                f"Unit [{unit.begin}, {unit.end}) lies outside the continuum "
                f"[{self._continuum.begin}, {self._continuum.end})"
            )

    @property
    def rater_count(self) -> int:
        return self._rater_count

    @property
    def continuum(self) -> Continuum:
        return self._continuum

    @property
    def begin(self) -> Coordinate:
        return self._continuum.begin

    @property
    def length(self) -> Coordinate:
        return self._continuum.length

    @property
    def units(self) -> Tuple[ContinuumUnit, ...]:
        return self._units

    @property
    def unit_count(self) -> int:
        return len(self._units)

    @property
    def categories(self) -> Tuple[Hashable, ...]:
        """Categories in order of first appearance along the continuum."""
        return self._categories

    def units_of(self, rater: int, category: Hashable) -> Tuple[ContinuumUnit, ...]:
        """Sorted units of one rater for one category."""
        return self._streams.get((rater, category), ())

    def __repr__(self) -> str:
        return (
            f"ContinuumStudy(raters={self._rater_count}, begin={self.begin}, "
            f"length={self.length}, units={self.unit_count})"
        )


class ContinuumStudyBuilder:
    """Collects units and freezes them into a ContinuumStudy."""

    def __init__(self, rater_count: int, begin: Coordinate, length: Coordinate) -> None:
        self.rater_count = rater_count
        self.continuum = Continuum(begin, length)
        self._units: List[ContinuumUnit] = []

    def add_unit(
        self,
        begin: Coordinate,
        length: Coordinate,
        rater: int,
        category: Hashable,
    ) -> ContinuumStudyBuilder:
        self._units.append(ContinuumUnit(begin, length, rater, category))
        return self

    def build(self) -> ContinuumStudy:
        return ContinuumStudy(self.rater_count, self.continuum, self._units)


# =============================================================================
# Results
# =============================================================================


def _rounded(value: float, digits: int) -> Optional[float]:
    if math.isnan(value):
        return None
    return round(value, digits)


@dataclass
class GammaResult:
    """
    Outcome of a text gamma computation.

    Attributes:
        agreement: Chance-corrected agreement (1 - observed / expected)
        observed_disorder: Minimum disorder over the retained alignments
        expected_disorder: Estimated chance-level disorder
        alignment_count: Number of equally good alignments retained
        samples: Number of disorder samples drawn
        converged: False if the sample cap stopped the estimation early
        raters: Names of the two raters
    """

    agreement: float
    observed_disorder: float
    expected_disorder: float
    alignment_count: int
    samples: int
    converged: bool
    raters: List[str] = field(default_factory=list)

    def to_dict(self, digits: int = 4) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "measure": "gamma",
            "agreement": _rounded(self.agreement, digits),
            "observed_disorder": _rounded(self.observed_disorder, digits),
            "expected_disorder": _rounded(self.expected_disorder, digits),
            "alignment_count": self.alignment_count,
            "samples": self.samples,
            "converged": self.converged,
            "raters": self.raters,
        }


@dataclass
class CategoryAgreement:
    """Observed/expected disagreement and agreement for one category."""

    category: Hashable
    observed: float
    expected: float
    agreement: float

    def to_dict(self, digits: int = 4) -> Dict[str, Any]:
        return {
            "category": str(self.category),
            "observed": _rounded(self.observed, digits),
            "expected": _rounded(self.expected, digits),
            "agreement": _rounded(self.agreement, digits),
        }


@dataclass
class UnitizingResult:
    """
    Outcome of a continuum alpha computation.

    Attributes:
        agreement: Joint agreement over all categories (NaN for empty studies)
        rater_count: Number of raters in the study
        continuum: Coordinate domain of the study
        categories: Per-category breakdown
    """

    agreement: float
    rater_count: int
    continuum: Continuum
    categories: List[CategoryAgreement] = field(default_factory=list)

    def to_dict(self, digits: int = 4) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "measure": "alpha_u",
            "agreement": _rounded(self.agreement, digits),
            "rater_count": self.rater_count,
            "continuum": {
                "begin": self.continuum.begin,
                "length": self.continuum.length,
            },
            "categories": [c.to_dict(digits) for c in self.categories],
        }
