"""Quality label to CRF mapping.

Lower CRF means higher visual quality and a larger file.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

DEFAULT_QUALITY = "medium"

QUALITY_CRF: Mapping[str, int] = MappingProxyType(
    {
        "high": 20,
        "medium": 23,
        "low": 28,
    }
)


def resolve_quality(label: str | None) -> int:
    """Resolve a quality label to an x264 CRF value.

    Args:
        label: One of "high", "medium", "low" (case-insensitive). Anything
            else, including None and "", falls back to the medium default.

    Returns:
        CRF value to pass to the encoder.
    """
    if label:
        crf = QUALITY_CRF.get(label.strip().casefold())
        if crf is not None:
            return crf
    return QUALITY_CRF[DEFAULT_QUALITY]
