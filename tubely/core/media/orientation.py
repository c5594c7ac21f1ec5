"""
Aspect-ratio classification for uploaded videos.

Videos are filed under landscape/, portrait/ or other/ depending on how
close they are to 16:9 or 9:16. Phone footage is rarely a perfect 9:16
(1080x1918, 720x1284 and friends), so besides the exact integer check we
accept anything within 5% of the target ratio.

The ratio band is compared with Fractions rather than floats so that a
resolution sitting exactly on the 5% boundary classifies the same way on
every platform.
"""

from fractions import Fraction
from typing import Union

from .errors import InvalidDimensions
from .models import OrientationCategory

LANDSCAPE_RATIO = Fraction(16, 9)
PORTRAIT_RATIO = Fraction(9, 16)
RATIO_TOLERANCE = Fraction(5, 100)

Number = Union[int, float, Fraction]


def is_approximately(
    actual: Number,
    expected: Number,
    tolerance: Number = RATIO_TOLERANCE,
) -> bool:
    """True when actual is within `tolerance` (relative) of expected, inclusive."""
    allowed_diff = abs(expected) * tolerance
    return abs(actual - expected) <= allowed_diff


def classify_orientation(width: int, height: int) -> OrientationCategory:
    """
    Map pixel dimensions to a storage category.

    The exact cross-multiplied check runs before the tolerance band, and
    landscape is tested before portrait.
    """
    if height <= 0 or width <= 0:
        raise InvalidDimensions(
            f"Video dimensions must be positive, got {width}x{height}"
        )

    ratio = Fraction(width, height)

    if width * 9 == height * 16 or is_approximately(ratio, LANDSCAPE_RATIO):
        return OrientationCategory.LANDSCAPE

    if width * 16 == height * 9 or is_approximately(ratio, PORTRAIT_RATIO):
        return OrientationCategory.PORTRAIT

    return OrientationCategory.OTHER
