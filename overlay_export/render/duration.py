"""Duration cap policy.

An optional global cap shortens the exported video; overlay windows are
clamped so nothing is scheduled past the new end.
"""

from typing import Optional, Sequence

from overlay_export.schemas.overlay import TextOverlay

# Minimum window kept when an overlay starts at or after the cap (seconds).
CLAMP_EPSILON = 0.5


def effective_duration(natural_duration: float, max_duration: Optional[float] = None) -> float:
    """Return the output duration after applying the optional cap.

    A cap that is unset, non-positive, or not shorter than the video leaves
    the natural duration unchanged.
    """
    if max_duration is not None and 0 < max_duration < natural_duration:
        return max_duration
    return natural_duration


def is_capped(natural_duration: float, max_duration: Optional[float]) -> bool:
    return effective_duration(natural_duration, max_duration) < natural_duration


def clamp_overlay(overlay: TextOverlay, duration: float) -> TextOverlay:
    """Return a copy of the overlay with its window clamped to ``duration``."""
    start = max(0.0, min(overlay.start_time, duration - CLAMP_EPSILON))
    end = min(overlay.end_time, duration)
    if start == overlay.start_time and end == overlay.end_time:
        return overlay
    return overlay.model_copy(update={"start_time": start, "end_time": end})


def clamp_overlays(overlays: Sequence[TextOverlay], duration: float) -> list[TextOverlay]:
    return [clamp_overlay(overlay, duration) for overlay in overlays]
