"""
Service area check for private-chef bookings.

Served: Manhattan (100xx-102xx) plus Queens, Brooklyn, Nassau and Suffolk
(110xx-119xx). New York State only.
"""

import re
from typing import Optional

from chef_bookings.errors import ServiceAreaError

SERVED_STATES = {"NY"}
SERVED_ZIP_RANGES = (
    (10000, 10299),
    (11000, 11999),
)

ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")

OUT_OF_AREA_MESSAGE = (
    "We currently serve Manhattan, Brooklyn, Queens, Nassau & Suffolk. "
    "For other locations, please contact us by email."
)


def in_service_area(state: Optional[str], postal_code: Optional[str]) -> bool:
    """Return True if the address is inside the served area. ZIP+4 is accepted."""
    if (state or "").strip().upper() not in SERVED_STATES:
        return False

    postal = (postal_code or "").strip()
    if not ZIP_RE.match(postal):
        return False

    zip5 = int(postal[:5])
    return any(low <= zip5 <= high for low, high in SERVED_ZIP_RANGES)


def ensure_in_service_area(state: Optional[str], postal_code: Optional[str]) -> None:
    if not in_service_area(state, postal_code):
        raise ServiceAreaError(OUT_OF_AREA_MESSAGE)
