import pytest

from colourflow.persistence import Colour
from colourflow.service import classify


@pytest.mark.parametrize(
    "is_red, is_blue, colour, problem",
    [
        (False, False, Colour.BLACK, "Missing colour choice"),
        (False, True, Colour.BLUE, None),
        (True, False, Colour.RED, None),
        (True, True, Colour.PURPLE, "Invalid colour choices"),
    ],
)
def test_classify_flags(is_red, is_blue, colour, problem):
    assert classify(is_red, is_blue) == (colour, problem)
