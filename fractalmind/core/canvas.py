# ═══════════════════════════════════════════════════════════════════════════════
# DRAWING CONTEXTS
# Design: I1 (Systems Architect) | Implementation: I4 (Integration)
# ═══════════════════════════════════════════════════════════════════════════════

"""
I4: "Simulations draw through a tiny interface: circles, lines, rects, text.
The recording canvas keeps a list of draw calls for headless runs and tests;
the matplotlib canvas turns them into a picture."
"""

from __future__ import annotations

import colorsys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

Color = Tuple[float, float, float]  # RGB, 0-255


@dataclass
class CanvasConfig:
    """Canvas geometry."""
    width: float = 800.0
    height: float = 600.0
    background: Color = (0.0, 0.0, 0.0)


def hsl_to_rgb(hue: float, saturation: float, lightness: float) -> Color:
    """hue in degrees, saturation/lightness in percent -> RGB 0-255."""
    r, g, b = colorsys.hls_to_rgb(
        (hue % 360) / 360.0,
        min(max(lightness, 0.0), 100.0) / 100.0,
        min(max(saturation, 0.0), 100.0) / 100.0,
    )
    return (r * 255, g * 255, b * 255)


class Canvas(ABC):
    """Abstract 2D drawing context."""

    def __init__(self, width: float, height: float) -> None:
        self.width = width
        self.height = height
        self.alpha = 1.0

    def set_alpha(self, alpha: float) -> None:
        """Global alpha multiplied into every subsequent draw call."""
        self.alpha = min(max(alpha, 0.0), 1.0)

    @abstractmethod
    def clear(self) -> None:
        """Erase everything."""

    @abstractmethod
    def circle(
        self, x: float, y: float, radius: float, color: Color,
        alpha: float = 1.0, fill: bool = True, width: float = 1.0,
    ) -> None:
        """Filled disc or outline ring."""

    @abstractmethod
    def line(
        self, x1: float, y1: float, x2: float, y2: float, color: Color,
        alpha: float = 1.0, width: float = 1.0,
    ) -> None:
        """Straight segment."""

    @abstractmethod
    def rect(
        self, x: float, y: float, w: float, h: float, color: Color, alpha: float = 1.0,
    ) -> None:
        """Filled axis-aligned rectangle."""

    @abstractmethod
    def text(self, x: float, y: float, content: str, color: Color, size: float = 10.0) -> None:
        """Text anchored at its top-left corner."""


@dataclass
class DrawCommand:
    """One recorded draw call."""
    op: str
    args: Dict[str, Any] = field(default_factory=dict)


class RecordingCanvas(Canvas):
    """Canvas that records draw calls instead of drawing."""

    def __init__(self, width: float = 800.0, height: float = 600.0) -> None:
        super().__init__(width, height)
        self.commands: List[DrawCommand] = []

    def clear(self) -> None:
        self.commands.clear()

    def circle(self, x, y, radius, color, alpha=1.0, fill=True, width=1.0) -> None:
        self._record("circle", x=x, y=y, radius=radius, color=color,
                     alpha=alpha * self.alpha, fill=fill, width=width)

    def line(self, x1, y1, x2, y2, color, alpha=1.0, width=1.0) -> None:
        self._record("line", x1=x1, y1=y1, x2=x2, y2=y2, color=color,
                     alpha=alpha * self.alpha, width=width)

    def rect(self, x, y, w, h, color, alpha=1.0) -> None:
        self._record("rect", x=x, y=y, w=w, h=h, color=color, alpha=alpha * self.alpha)

    def text(self, x, y, content, color, size=10.0) -> None:
        self._record("text", x=x, y=y, content=content, color=color, size=size)

    def count(self, op: str) -> int:
        return sum(1 for c in self.commands if c.op == op)

    def _record(self, op: str, **args: Any) -> None:
        self.commands.append(DrawCommand(op, args))


class MatplotlibCanvas(Canvas):
    """
    Canvas backed by a matplotlib Axes (y axis points down, like a screen).

    Requires: pip install matplotlib
    """

    def __init__(self, width: float = 800.0, height: float = 600.0, dpi: int = 100) -> None:
        super().__init__(width, height)
        try:
            from matplotlib.figure import Figure
        except ImportError as exc:
            raise ImportError(
                "matplotlib package required: pip install matplotlib"
            ) from exc

        self.figure = Figure(figsize=(width / dpi, height / dpi), dpi=dpi)
        self.axes = self.figure.add_axes((0, 0, 1, 1))
        self.clear()

    def clear(self) -> None:
        ax = self.axes
        ax.clear()
        ax.set_xlim(0, self.width)
        ax.set_ylim(self.height, 0)
        ax.set_facecolor("black")
        ax.set_axis_off()
        self.figure.set_facecolor("black")

    def circle(self, x, y, radius, color, alpha=1.0, fill=True, width=1.0) -> None:
        from matplotlib.patches import Circle

        self.axes.add_patch(Circle(
            (x, y), max(radius, 0.1),
            facecolor=_rgb01(color) if fill else "none",
            edgecolor=_rgb01(color),
            alpha=_alpha(alpha * self.alpha),
            linewidth=width if not fill else 0,
        ))

    def line(self, x1, y1, x2, y2, color, alpha=1.0, width=1.0) -> None:
        self.axes.plot([x1, x2], [y1, y2], color=_rgb01(color),
                       alpha=_alpha(alpha * self.alpha), linewidth=width)

    def rect(self, x, y, w, h, color, alpha=1.0) -> None:
        from matplotlib.patches import Rectangle

        self.axes.add_patch(Rectangle(
            (x, y), w, h, facecolor=_rgb01(color), edgecolor="none",
            alpha=_alpha(alpha * self.alpha),
        ))

    def text(self, x, y, content, color, size=10.0) -> None:
        self.axes.text(x, y, content, color=_rgb01(color), fontsize=size * 0.8,
                       family="monospace", va="top")

    def save(self, path: str) -> None:
        self.figure.savefig(path, facecolor=self.figure.get_facecolor())


def _rgb01(color: Color) -> Tuple[float, float, float]:
    return tuple(min(max(c / 255.0, 0.0), 1.0) for c in color)  # type: ignore[return-value]


def _alpha(alpha: float) -> float:
    return min(max(alpha, 0.0), 1.0)
