"""Base utilities for plotting modules.

Common imports, colour helpers, tick formatting and rc settings shared
across the panel, layout and export modules.

Layer 4: Workflows - Public entry points with plotting.
"""

import logging
from typing import Optional, Sequence

import matplotlib
import numpy as np
from matplotlib import colors as mcolors
from matplotlib.axes import Axes
from matplotlib.figure import Figure
from matplotlib.ticker import FuncFormatter, LogLocator

from spectrafigs.objects.encoding import ColorScale

logger = logging.getLogger(__name__)

# Fallback when neither the encoding nor the config supplies a palette.
DEFAULT_PALETTE = (
    "#E41A1C",
    "#377EB8",
    "#4DAF4A",
    "#984EA3",
    "#FF7F00",
    "#FFFF33",
    "#A65628",
    "#F781BF",
    "#999999",
)

MARKERS = ("o", "^", "s", "D", "v", "P", "X", "*", "h")


def rc_params(font_family: str = "sans-serif", base_font_size: float = 11.0) -> dict:
    """Matplotlib rc settings applied while a composite figure renders."""
    return {
        "font.family": font_family,
        "font.size": base_font_size,
        "axes.titlesize": base_font_size + 1,
        "axes.labelsize": base_font_size,
        "xtick.labelsize": base_font_size - 1,
        "ytick.labelsize": base_font_size - 1,
        "legend.fontsize": base_font_size - 1,
        "axes.spines.top": False,
        "axes.spines.right": False,
    }


def log2_tick_label(value: float, _pos: Optional[int] = None) -> str:
    """Label a log2 axis tick as a power of two, e.g. ``$2^{3}$``."""
    if value <= 0 or not np.isfinite(value):
        return ""
    exponent = np.log2(value)
    if not np.isclose(exponent, np.round(exponent)):
        return ""
    return f"$2^{{{int(np.round(exponent))}}}$"


def apply_axis_transform(ax: Axes, axis: str, transform: str) -> None:
    """Set a 'log2' or 'identity' scale on ``ax.xaxis`` or ``ax.yaxis``."""
    if transform == "identity":
        return
    target = ax.xaxis if axis == "x" else ax.yaxis
    setter = ax.set_xscale if axis == "x" else ax.set_yscale
    setter("log", base=2)
    target.set_major_locator(LogLocator(base=2))
    target.set_major_formatter(FuncFormatter(log2_tick_label))


def level_colors(levels: Sequence, palette: Optional[Sequence[str]] = None) -> dict:
    """Assign palette colours to categorical levels in declared order."""
    palette = tuple(palette or DEFAULT_PALETTE)
    return {level: palette[i % len(palette)] for i, level in enumerate(levels)}


def scale_norm(scale: ColorScale) -> mcolors.Normalize:
    """Normalization shared by every panel using ``scale``."""
    return mcolors.Normalize(vmin=scale.limits[0], vmax=scale.limits[1], clip=scale.clip)


def scale_colors(values, scale: ColorScale) -> np.ndarray:
    """RGBA colours of ``values`` under ``scale``; out-of-range values clip."""
    cmap = matplotlib.colormaps[scale.cmap]
    return cmap(scale_norm(scale)(np.asarray(values, dtype=float)))


def new_figure(width: float, height: float, dpi: float = 100) -> Figure:
    """A standalone Figure, independent of pyplot's global figure manager."""
    return Figure(figsize=(width, height), dpi=dpi)
