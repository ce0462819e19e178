"""Heart-rate to stamina bar zone mapping.

The stamina bar simplifies heart-rate zones into sixteen discrete bands.
Each band is named after the image the watch face shows for it: ``"100"``
is a full bar at rest, ``"20"`` the nearly empty bar at maximum effort and
``"Refresh"`` the placeholder shown before any heart rate has arrived.
"""

from __future__ import annotations

import math
from typing import Dict, Optional, Tuple

NO_DATA_BAND = "Refresh"
FALLBACK_BAND = "20"

# Upper bounds are exclusive; the first matching row wins.
ZONE_LADDER: Tuple[Tuple[float, str], ...] = (
    (70, "100"),
    (75, "95"),
    (80, "90"),
    (100, "85"),
    (105, "80"),
    (115, "75"),
    (135, "70"),
    (145, "65"),
    (155, "60"),
    (160, "55"),
    (165, "50"),
    (169, "45"),
    (177, "40"),
    (180, "35"),
    (185, "30"),
)

ZONE_BANDS: Tuple[str, ...] = (NO_DATA_BAND,) + tuple(band for _, band in ZONE_LADDER) + (FALLBACK_BAND,)

ZONE_COLOURS: Dict[str, str] = {
    **{band: "green" for band in ("100", "95", "90", "85")},
    **{band: "yellow" for band in ("80", "75", "70", "65", "60", "55")},
    **{band: "orange" for band in ("50", "45", "40")},
    **{band: "red" for band in ("35", "30", "20")},
}


def zone_band(heart_rate: float) -> str:
    """Return the stamina bar band for ``heart_rate`` in beats per minute.

    A rate of exactly zero means no sample has been received yet.  Boundary
    values belong to the next band up the ladder, so ``70`` maps to ``"95"``
    and ``185`` to ``"20"``.
    """

    if heart_rate is None or not math.isfinite(heart_rate) or heart_rate <= 0:
        return NO_DATA_BAND
    for upper, band in ZONE_LADDER:
        if heart_rate < upper:
            return band
    return FALLBACK_BAND


def zone_colour(band: str) -> Optional[str]:
    """Return the colour group for ``band`` or ``None`` for the no-data band."""

    return ZONE_COLOURS.get(band)


def describe_zone(heart_rate: float) -> Dict[str, object]:
    """Return a JSON friendly description of the zone for ``heart_rate``."""

    band = zone_band(heart_rate)
    return {
        "bpm": heart_rate,
        "band": band,
        "colour": zone_colour(band),
        "image": band,
    }


__all__ = [
    "NO_DATA_BAND",
    "FALLBACK_BAND",
    "ZONE_LADDER",
    "ZONE_BANDS",
    "ZONE_COLOURS",
    "zone_band",
    "zone_colour",
    "describe_zone",
]
