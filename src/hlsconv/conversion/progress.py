"""Translation of ffmpeg's raw completion percentage into client progress.

ffmpeg's percentage reflects encoded media time only. For an HLS input it
sits near zero for a long time while playlist segments are fetched, then
moves quickly. The curve below stretches the low range and compresses the
high range so the client sees steady forward movement:

    raw [0, 10)   -> 10 + raw * 2          (10..30)
    raw [10, 50)  -> 30 + (raw - 10)       (30..70)
    raw >= 50     -> 70 + (raw - 50) * 0.5, capped at 90

The result is floored at 10. The pieces meet at the breakpoints, so the
mapped value is continuous, but a raw value that goes backwards still maps
to a smaller value; regressions are passed through.

The breakpoints and factors were tuned by observation. They are kept as
defaults of ProgressCurve so they can be changed without touching the
mapping code.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProgressCurve:
    """Piecewise-linear curve parameters."""

    floor: float = 10.0
    """Minimum reported value once the engine has started."""

    ceiling: float = 90.0
    """Maximum reported value before the job completes."""

    low_break: float = 10.0
    """Raw percent where the fetch phase ends."""

    high_break: float = 50.0
    """Raw percent where the tail phase starts."""

    low_scale: float = 2.0
    mid_scale: float = 1.0
    high_scale: float = 0.5

    def __post_init__(self) -> None:
        if not 0 < self.low_break < self.high_break:
            raise ValueError(
                f"breakpoints must satisfy 0 < low_break < high_break, "
                f"got {self.low_break}, {self.high_break}"
            )
        if self.floor > self.ceiling:
            raise ValueError("floor must not exceed ceiling")

    @property
    def mid_base(self) -> float:
        """Mapped value at low_break."""
        return self.floor + self.low_break * self.low_scale

    @property
    def high_base(self) -> float:
        """Mapped value at high_break."""
        return self.mid_base + (self.high_break - self.low_break) * self.mid_scale


DEFAULT_CURVE = ProgressCurve()


def map_progress(
    raw_percent: float | None,
    curve: ProgressCurve = DEFAULT_CURVE,
) -> tuple[float, str]:
    """Map a raw engine percentage onto the client-facing scale.

    Args:
        raw_percent: Percentage reported by ffmpeg. None or negative values
            are treated as 0.
        curve: Curve parameters.

    Returns:
        Tuple of (mapped_percent, message).
    """
    raw = raw_percent if raw_percent is not None and raw_percent > 0 else 0.0

    if raw < curve.low_break:
        mapped = curve.floor + raw * curve.low_scale
    elif raw < curve.high_break:
        mapped = curve.mid_base + (raw - curve.low_break) * curve.mid_scale
    else:
        mapped = min(
            curve.ceiling,
            curve.high_base + (raw - curve.high_break) * curve.high_scale,
        )

    mapped = max(curve.floor, mapped)
    return mapped, f"Converting... {round(mapped)}%"
