"""Text overlay compilation into an FFmpeg filter graph.

Features:
- One drawtext filter per overlay, joined in draw order (last on top)
- Percent positions resolved to pixels for the probed frame size
- Font size scaled from the editor's 400px reference frame
- Outline, opacity, font family lookup, box alignment
- Fade-in / slide-up entrance animations
- Two-level escaping so overlay text can never break the filter grammar
"""

import logging
import math
from pathlib import Path
from typing import Optional, Sequence

from overlay_export.config import Settings, get_settings
from overlay_export.exceptions import FilterCompileError
from overlay_export.schemas.overlay import TextOverlay

logger = logging.getLogger(__name__)

# Frame width the editor preview uses when an overlay's fontSize is authored.
REFERENCE_FRAME_WIDTH = 400

# Entrance animation length (seconds), shortened for shorter windows.
ANIMATION_DURATION_S = 0.5
# slideUp starts this fraction of the frame height below its final position.
SLIDE_OFFSET_RATIO = 0.05

# Family -> (regular, bold) file names under settings.font_dir.
# "Inter" is the editor default and uses ffmpeg's default font.
FONT_FILES: dict[str, tuple[str, str]] = {
    "Arial": ("Arial.ttf", "Arial_Bold.ttf"),
    "Helvetica": ("Arial.ttf", "Arial_Bold.ttf"),
    "Georgia": ("Georgia.ttf", "Georgia_Bold.ttf"),
    "Times New Roman": ("Times_New_Roman.ttf", "Times_New_Roman_Bold.ttf"),
}

# Characters with meaning in drawtext option values, then in the filter graph.
# Whitespace is escaped too: ffmpeg trims unescaped whitespace around values.
_OPTION_SPECIAL = "\\': \t\r\n"
_GRAPH_SPECIAL = "\\'[],;"


def _escape_level(value: str, special: str) -> str:
    return "".join(f"\\{ch}" if ch in special else ch for ch in value)


def _unescape_level(value: str) -> str:
    out = []
    chars = iter(value)
    for ch in chars:
        out.append(next(chars, "") if ch == "\\" else ch)
    return "".join(out)


def escape_drawtext(value: str) -> str:
    """Escape a literal for use as a drawtext option value inside a filter graph.

    Option-level escaping protects the ``key=value:key=value`` list; the
    filter-graph level protects the ``filter,filter;[label]`` structure.
    """
    return _escape_level(_escape_level(value, _OPTION_SPECIAL), _GRAPH_SPECIAL)


def unescape_drawtext(value: str) -> str:
    """Inverse of ``escape_drawtext``."""
    return _unescape_level(_unescape_level(value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _fmt(value: float) -> str:
    """Format seconds/pixels compactly: 5.0 -> '5', 19.25 -> '19.25'."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def _is_bold(font_weight: str) -> bool:
    weight = font_weight.strip().lower()
    if weight in ("bold", "bolder"):
        return True
    return weight.isdigit() and int(weight) >= 600


class TextRenderer:
    """Compiles ordered text overlays into a drawtext filter graph."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._font_dir = Path(self.settings.font_dir)

    def resolve_font_file(self, font_family: str, font_weight: str = "400") -> Optional[str]:
        """Map a declared family to a font file, or None for ffmpeg's default."""
        files = FONT_FILES.get(font_family.strip())
        if files is None:
            return None
        regular, bold = files
        return str(self._font_dir / (bold if _is_bold(font_weight) else regular))

    def overlay_position(self, overlay: TextOverlay, width: int, height: int) -> tuple[int, int]:
        """Top-left anchor of the overlay box in pixels."""
        return (
            round_half_up(overlay.x / 100 * width),
            round_half_up(overlay.y / 100 * height),
        )

    def scaled_font_size(self, overlay: TextOverlay, width: int) -> int:
        return max(1, round_half_up(overlay.font_size * (width / REFERENCE_FRAME_WIDTH)))

    def compile_filter_graph(
        self,
        overlays: Sequence[TextOverlay],
        width: int,
        height: int,
    ) -> Optional[str]:
        """Compile overlays into one comma-joined filter graph.

        Args:
            overlays: Overlays in draw order
            width: Frame width in pixels
            height: Frame height in pixels

        Returns:
            Filter graph string, or None when there are no overlays

        Raises:
            FilterCompileError: If the frame size or any overlay is invalid
        """
        if width <= 0 or height <= 0:
            raise FilterCompileError(f"Invalid frame size {width}x{height}")
        if not overlays:
            return None

        filters = [
            self.build_drawtext(overlay, width, height, index)
            for index, overlay in enumerate(overlays)
        ]
        logger.info(f"[TEXT] Compiled {len(filters)} overlays for {width}x{height}")
        return ",".join(filters)

    def build_drawtext(
        self,
        overlay: TextOverlay,
        width: int,
        height: int,
        index: int = 0,
    ) -> str:
        """Build the drawtext filter for a single overlay."""
        self._validate(overlay, index)

        px, py = self.overlay_position(overlay, width, height)
        params = [
            f"drawtext=text={escape_drawtext(overlay.text)}",
            "expansion=none",
            f"x={self._x_expr(overlay, px, width)}",
            f"y={self._y_expr(overlay, py, height)}",
            f"fontsize={self.scaled_font_size(overlay, width)}",
            f"fontcolor={escape_drawtext(self._color(overlay.color, overlay.opacity))}",
        ]

        if overlay.outline_width > 0:
            params.extend([
                f"borderw={round_half_up(overlay.outline_width)}",
                f"bordercolor={escape_drawtext(self._color(overlay.outline_color, overlay.opacity))}",
            ])

        font_file = self.resolve_font_file(overlay.font_family, overlay.font_weight)
        if font_file:
            params.append(f"fontfile={escape_drawtext(font_file)}")

        alpha = self._alpha_expr(overlay)
        if alpha:
            params.append(f"alpha='{alpha}'")

        params.append(
            f"enable='between(t,{_fmt(overlay.start_time)},{_fmt(overlay.end_time)})'"
        )
        return ":".join(params)

    def _validate(self, overlay: TextOverlay, index: int) -> None:
        """Re-check invariants; clamped copies bypass model validation."""
        if not overlay.text:
            raise FilterCompileError("text must not be empty", index=index)
        numbers = {
            "x": overlay.x,
            "y": overlay.y,
            "width": overlay.width,
            "height": overlay.height,
            "fontSize": overlay.font_size,
            "outlineWidth": overlay.outline_width,
            "opacity": overlay.opacity,
            "startTime": overlay.start_time,
            "endTime": overlay.end_time,
        }
        for name, value in numbers.items():
            if not math.isfinite(value):
                raise FilterCompileError(f"{name} must be finite", index=index, value=value)
        for name in ("x", "y", "width", "height"):
            if not 0 <= numbers[name] <= 100:
                raise FilterCompileError(f"{name} must be within 0-100", index=index, value=numbers[name])
        if overlay.font_size <= 0:
            raise FilterCompileError("fontSize must be positive", index=index, value=overlay.font_size)
        if overlay.outline_width < 0:
            raise FilterCompileError("outlineWidth must not be negative", index=index, value=overlay.outline_width)
        if not 0 <= overlay.opacity <= 1:
            raise FilterCompileError("opacity must be within 0-1", index=index, value=overlay.opacity)
        if overlay.start_time < 0:
            raise FilterCompileError("startTime must not be negative", index=index, value=overlay.start_time)
        if overlay.end_time <= overlay.start_time:
            raise FilterCompileError(
                f"endTime must be greater than startTime ({overlay.start_time} >= {overlay.end_time})",
                index=index,
            )

    def _color(self, color: str, opacity: float) -> str:
        if opacity >= 1:
            return color
        return f"{color}@{_fmt(opacity)}"

    def _x_expr(self, overlay: TextOverlay, px: int, width: int) -> str:
        """Horizontal position, aligning the text inside the overlay box."""
        if overlay.text_align == "left":
            return str(px)
        box_w = round_half_up(overlay.width / 100 * width)
        if overlay.text_align == "center":
            return f"{px}+({box_w}-text_w)/2"
        return f"{px}+{box_w}-text_w"

    def _animation_window(self, overlay: TextOverlay) -> float:
        return max(0.001, min(ANIMATION_DURATION_S, overlay.end_time - overlay.start_time))

    def _y_expr(self, overlay: TextOverlay, py: int, height: int) -> str:
        if overlay.animation != "slideUp":
            return str(py)
        offset = round_half_up(height * SLIDE_OFFSET_RATIO)
        ramp = self._animation_window(overlay)
        start = _fmt(overlay.start_time)
        return f"'{py}+{offset}*max(0,1-(t-{start})/{_fmt(ramp)})'"

    def _alpha_expr(self, overlay: TextOverlay) -> Optional[str]:
        """Build alpha expression for entrance fades."""
        if overlay.animation not in ("fadeIn", "slideUp"):
            return None
        ramp = self._animation_window(overlay)
        start = _fmt(overlay.start_time)
        return f"if(lt(t,{start}+{_fmt(ramp)}),(t-{start})/{_fmt(ramp)},1)"
