"""Declarative value objects for panel encodings, placements and annotations.

These objects describe *how* a figure should look without touching
matplotlib; the plotting workflows interpret them at render time.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

import numpy as np

AXIS_TRANSFORMS = ("identity", "log2")
ANNOTATION_KINDS = ("text", "image", "curve", "arrow")
FRAMES = ("canvas", "data")


def _frozen_mapping(value: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(value or {}))


@dataclass(frozen=True)
class Rect:
    """Placement rectangle ``(xmin, xmax, ymin, ymax)`` in a shared frame."""

    xmin: float
    xmax: float
    ymin: float
    ymax: float

    def __post_init__(self) -> None:
        """Validate Rect parameters."""
        if not (self.xmax > self.xmin and self.ymax > self.ymin):
            raise ValueError(
                f"Rect must satisfy xmin < xmax and ymin < ymax, got "
                f"({self.xmin}, {self.xmax}, {self.ymin}, {self.ymax})"
            )

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    def bounds(self) -> Tuple[float, float, float, float]:
        """Return ``[left, bottom, width, height]`` as used by ``add_axes``."""
        return (self.xmin, self.ymin, self.width, self.height)

    def within(self, outer: "Rect") -> "Rect":
        """Map this rect, given in unit coordinates, into ``outer``."""
        return Rect(
            outer.xmin + self.xmin * outer.width,
            outer.xmin + self.xmax * outer.width,
            outer.ymin + self.ymin * outer.height,
            outer.ymin + self.ymax * outer.height,
        )

    @classmethod
    def unit(cls) -> "Rect":
        return cls(0.0, 1.0, 0.0, 1.0)


@dataclass(frozen=True)
class ColorScale:
    """Continuous colour scale with explicit limits.

    Panels sharing one ColorScale map equal values to equal colours, and
    values outside ``limits`` are clipped to the end colours.

    Attributes:
        limits: ``(low, high)`` data limits.
        cmap: Matplotlib colormap name.
        label: Colourbar label.
        clip: Clip out-of-range values to the limits.
    """

    limits: Tuple[float, float]
    cmap: str = "viridis"
    label: Optional[str] = None
    clip: bool = True

    def __post_init__(self) -> None:
        """Validate ColorScale parameters."""
        low, high = (float(v) for v in self.limits)
        if not (np.isfinite(low) and np.isfinite(high)) or high <= low:
            raise ValueError(f"limits must be finite with low < high, got {self.limits}")
        object.__setattr__(self, "limits", (low, high))


@dataclass(frozen=True)
class EncodingSpec:
    """How table columns map to visual channels.

    Attributes:
        x, y: Position columns.
        color: Line/marker colour column (categorical or continuous).
        fill: Area fill column (categorical or continuous).
        shape: Marker shape column (categorical).
        group: Grouping column for lines and polygons.
        facet: Column splitting a table into one panel per level.
        ymin, ymax: Interval columns for error bars.
        include: Boolean column; rows that are False are omitted and counted.
        x_transform, y_transform: 'identity' or 'log2'.
        color_scale: Continuous scale used when the colour/fill column is numeric.
        palette: Discrete colours assigned to categorical levels in order.
        show_legend: Draw a legend (or colourbar) for the colour/fill channel.
        legend_title: Legend title; defaults to the channel column name.
        xlabel, ylabel, title: Axis text.
        xlim, ylim: Explicit axis limits.
        position: Bar placement, 'dodge' or 'stack'.
        orientation: Bar orientation, 'vertical' or 'horizontal'.
        style: Extra keyword arguments forwarded to the matplotlib call.
    """

    x: Optional[str] = None
    y: Optional[str] = None
    color: Optional[str] = None
    fill: Optional[str] = None
    shape: Optional[str] = None
    group: Optional[str] = None
    facet: Optional[str] = None
    ymin: Optional[str] = None
    ymax: Optional[str] = None
    include: Optional[str] = None
    x_transform: str = "identity"
    y_transform: str = "identity"
    color_scale: Optional[ColorScale] = None
    palette: Optional[Tuple[str, ...]] = None
    show_legend: bool = True
    legend_title: Optional[str] = None
    xlabel: Optional[str] = None
    ylabel: Optional[str] = None
    title: Optional[str] = None
    xlim: Optional[Tuple[float, float]] = None
    ylim: Optional[Tuple[float, float]] = None
    position: str = "dodge"
    orientation: str = "vertical"
    style: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate EncodingSpec parameters."""
        for attr in ("x_transform", "y_transform"):
            value = getattr(self, attr)
            if value not in AXIS_TRANSFORMS:
                raise ValueError(f"{attr} must be one of {AXIS_TRANSFORMS}, got {value}")
        if self.position not in ("dodge", "stack"):
            raise ValueError(f"position must be 'dodge' or 'stack', got {self.position}")
        if self.orientation not in ("vertical", "horizontal"):
            raise ValueError(
                f"orientation must be 'vertical' or 'horizontal', got {self.orientation}"
            )
        if self.palette is not None:
            object.__setattr__(self, "palette", tuple(self.palette))
        object.__setattr__(self, "style", _frozen_mapping(self.style))

    @property
    def hue(self) -> Optional[str]:
        """The colour-carrying column: ``fill`` for areas, else ``color``."""
        return self.fill or self.color


@dataclass(frozen=True, eq=False)
class Annotation:
    """A non-destructive overlay drawn after all panels.

    Attributes:
        kind: 'text', 'image', 'curve' or 'arrow'.
        anchor: Anchor point ``(x, y)``; in [0, 1] x [0, 1] for the canvas frame.
        frame: 'canvas' (figure fraction) or 'data' (host panel data coordinates).
        host: Index of the host placement when ``frame == 'data'``.
        text: Text for 'text' annotations.
        image: RGB(A) array for 'image' annotations.
        size: ``(width, height)`` of an image in frame units.
        end: End point for 'curve' and 'arrow'.
        curvature: Arc curvature for 'curve' (and optionally 'arrow').
        style: Extra keyword arguments forwarded to matplotlib.
    """

    kind: str
    anchor: Tuple[float, float]
    frame: str = "canvas"
    host: Optional[int] = None
    text: Optional[str] = None
    image: Optional[np.ndarray] = None
    size: Optional[Tuple[float, float]] = None
    end: Optional[Tuple[float, float]] = None
    curvature: float = 0.0
    style: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate Annotation parameters."""
        if self.kind not in ANNOTATION_KINDS:
            raise ValueError(f"kind must be one of {ANNOTATION_KINDS}, got {self.kind}")
        if self.frame not in FRAMES:
            raise ValueError(f"frame must be one of {FRAMES}, got {self.frame}")
        if self.frame == "data" and self.host is None:
            raise ValueError("data-frame annotations need a host placement index")

        anchor = tuple(float(v) for v in self.anchor)
        if len(anchor) != 2:
            raise ValueError(f"anchor must be an (x, y) pair, got {self.anchor}")
        if self.frame == "canvas" and not all(0.0 <= v <= 1.0 for v in anchor):
            raise ValueError(f"canvas anchors must lie in [0, 1] x [0, 1], got {anchor}")
        object.__setattr__(self, "anchor", anchor)

        if self.kind == "text" and self.text is None:
            raise ValueError("text annotations need text")
        if self.kind == "image" and (self.image is None or self.size is None):
            raise ValueError("image annotations need an image and a size")
        if self.kind in ("curve", "arrow") and self.end is None:
            raise ValueError(f"{self.kind} annotations need an end point")
        object.__setattr__(self, "style", _frozen_mapping(self.style))
