import pytest

from segmentation_agreement.models import AnnotatedText, Rater, TextSpan

RATER_A = Rater("A", 0)
RATER_B = Rater("B", 1)


def text_unit(rater, begin, end, text, **features):
    """Shorthand for a text span; keyword arguments become features."""
    return TextSpan(rater, begin, end, features=features, text=text)


@pytest.fixture
def rater_a():
    return RATER_A


@pytest.fixture
def rater_b():
    return RATER_B


@pytest.fixture
def three_units_text():
    """'so so so' segmented into three units by rater A."""
    return AnnotatedText("so so so", [
        text_unit(RATER_A, 0, 2, "a"),
        text_unit(RATER_A, 3, 5, "b"),
        text_unit(RATER_A, 6, 8, "c"),
    ])


@pytest.fixture
def two_units_text():
    """'so so' segmented into two units by rater B."""
    return AnnotatedText("so so", [
        text_unit(RATER_B, 0, 2, "b"),
        text_unit(RATER_B, 3, 5, "c"),
    ])
