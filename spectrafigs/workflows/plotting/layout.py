"""Composite Layout Engine: grids, absolute insets and annotations.

All placement rectangles are ``(xmin, xmax, ymin, ymax)``. Canvas-frame
rectangles are fractions of the composite's own canvas (so composites nest),
data-frame rectangles are in the data coordinates of an earlier placement
and are converted when the composite renders.

Layer 4: Workflows - Public entry points with plotting.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple, Union

import matplotlib
from matplotlib.axes import Axes
from matplotlib.figure import Figure
from matplotlib.patches import FancyArrowPatch

from spectrafigs.objects.encoding import Annotation, Rect
from spectrafigs.utils.errors import raise_parameter_error
from spectrafigs.workflows.plotting._base import new_figure
from spectrafigs.workflows.plotting.panels import Panel

logger = logging.getLogger(__name__)

RectLike = Union[Rect, Tuple[float, float, float, float]]

# Annotations draw above every panel artist, in call order.
ANNOTATION_ZORDER = 100.0


@dataclass(frozen=True, eq=False)
class Placement:
    """A child drawn into ``rect`` of the given frame."""

    child: Union[Panel, "CompositeFigure"]
    rect: Rect
    frame: str = "canvas"
    host: Optional[int] = None


class CompositeFigure:
    """Ordered placements plus annotations.

    Each placed Panel is a private copy, so no Panel instance is shared
    between two composites.
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name
        self.placements: list[Placement] = []
        self.annotations: list[Annotation] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    def __len__(self) -> int:
        return len(self.placements)

    def __repr__(self) -> str:
        return (
            f"CompositeFigure(name={self.name!r}, placements={len(self.placements)}, "
            f"annotations={len(self.annotations)})"
        )

    @property
    def panels(self) -> list[Panel]:
        """Directly placed panels in placement order."""
        return [p.child for p in self.placements if isinstance(p.child, Panel)]

    def copy(self) -> "CompositeFigure":
        """Deep copy of the placement tree with freshly adopted panels."""
        clone = CompositeFigure(self.name)
        clone.placements = [replace(p, child=_adopt(p.child)) for p in self.placements]
        clone.annotations = list(self.annotations)
        return clone

    def diagnostics(self) -> dict[str, int]:
        """Sum of the diagnostics counters of every panel in the tree."""
        totals: dict[str, int] = {}
        for placement in self.placements:
            child = placement.child
            counters = child.diagnostics if isinstance(child, Panel) else child.diagnostics()
            for key, value in counters.items():
                totals[key] = totals.get(key, 0) + int(value)
        return totals

    def render(
        self,
        width: float,
        height: float,
        dpi: float = 100,
        rc: Optional[dict] = None,
    ) -> Figure:
        """Draw the composite onto a new ``width`` x ``height`` inch Figure."""
        with matplotlib.rc_context(rc or {}):
            fig = new_figure(width, height, dpi=dpi)
            self._draw(fig, Rect.unit())
        return fig

    def _draw(self, fig: Figure, outer: Rect) -> list[Optional[Axes]]:
        axes: list[Optional[Axes]] = []
        for index, placement in enumerate(self.placements):
            if placement.frame == "canvas":
                rect = placement.rect.within(outer)
            else:
                rect = _data_rect_to_figure(fig, _host_axes(axes, placement.host, index), placement.rect)

            if isinstance(placement.child, Panel):
                ax = fig.add_axes(rect.bounds())
                placement.child.draw(ax)
                axes.append(ax)
            else:
                placement.child._draw(fig, rect)
                axes.append(None)

        overlay = None
        for i, annotation in enumerate(self.annotations):
            zorder = ANNOTATION_ZORDER + i
            if annotation.frame == "canvas":
                if overlay is None:
                    overlay = _overlay_axes(fig, outer)
                _draw_annotation(overlay, annotation, zorder)
            else:
                target = _host_axes(axes, annotation.host, len(axes))
                _draw_annotation(target, annotation, zorder)
        return axes


def _adopt(child: Union[Panel, CompositeFigure]) -> Union[Panel, CompositeFigure]:
    if isinstance(child, Panel):
        return replace(child)
    if isinstance(child, CompositeFigure):
        return child.copy()
    raise TypeError(f"Can only place Panel or CompositeFigure, got {type(child)}")


def _as_rect(rect: RectLike) -> Rect:
    return rect if isinstance(rect, Rect) else Rect(*rect)


def _host_axes(axes: list, host: Optional[int], limit: int) -> Axes:
    if host is None or not 0 <= host < limit:
        raise_parameter_error("host", host, constraint=f"index of an earlier placement (< {limit})")
    target = axes[host]
    if target is None:
        raise_parameter_error("host", host, constraint="host must be a Panel, not a CompositeFigure")
    return target


def _data_rect_to_figure(fig: Figure, ax: Axes, rect: Rect) -> Rect:
    """Convert a data-space rect of ``ax`` into figure fractions."""
    ax.apply_aspect()
    corners = ax.transData.transform([(rect.xmin, rect.ymin), (rect.xmax, rect.ymax)])
    (x0, y0), (x1, y1) = fig.transFigure.inverted().transform(corners)
    return Rect(min(x0, x1), max(x0, x1), min(y0, y1), max(y0, y1))


def _overlay_axes(fig: Figure, outer: Rect) -> Axes:
    overlay = fig.add_axes(outer.bounds(), label="annotations")
    overlay.set_xlim(0, 1)
    overlay.set_ylim(0, 1)
    overlay.set_axis_off()
    overlay.set_zorder(ANNOTATION_ZORDER)
    overlay.patch.set_visible(False)
    return overlay


def _draw_annotation(ax: Axes, annotation: Annotation, zorder: float) -> None:
    x, y = annotation.anchor
    style = dict(annotation.style)

    if annotation.kind == "text":
        style.setdefault("ha", "center")
        style.setdefault("va", "center")
        ax.text(x, y, annotation.text, zorder=zorder, **style)
    elif annotation.kind == "image":
        w, h = annotation.size
        xlim, ylim = ax.get_xlim(), ax.get_ylim()
        ax.imshow(annotation.image, extent=(x, x + w, y, y + h), aspect="auto", zorder=zorder, **style)
        # imshow autoscales; the host keeps its own view.
        ax.set_xlim(xlim)
        ax.set_ylim(ylim)
    else:
        arrowstyle = "-" if annotation.kind == "curve" else "-|>"
        style.setdefault("color", "black")
        style.setdefault("linewidth", 0.8)
        patch = FancyArrowPatch(
            posA=(x, y),
            posB=tuple(annotation.end),
            arrowstyle=style.pop("arrowstyle", arrowstyle),
            connectionstyle=f"arc3,rad={annotation.curvature}",
            mutation_scale=style.pop("mutation_scale", 10),
            transform=ax.transData,
            zorder=zorder,
            **style,
        )
        ax.add_patch(patch)


def layout(
    panels: Sequence[Union[Panel, CompositeFigure, None]],
    grid: Tuple[int, int],
    margins: Tuple[float, float, float, float] = (0.07, 0.03, 0.08, 0.05),
    spacing: Tuple[float, float] = (0.08, 0.1),
    name: Optional[str] = None,
) -> CompositeFigure:
    """Arrange panels row-major on a regular grid.

    Args:
        panels: Panels or composites; ``None`` leaves a cell empty.
        grid: ``(rows, cols)``.
        margins: ``(left, right, bottom, top)`` canvas margins.
        spacing: ``(horizontal, vertical)`` gap between cells.
        name: Optional composite name.

    Returns:
        CompositeFigure with one canvas placement per non-empty cell.
    """
    rows, cols = grid
    if rows < 1 or cols < 1:
        raise_parameter_error("grid", grid, constraint="rows and cols must be >= 1")
    if len(panels) > rows * cols:
        raise_parameter_error("panels", len(panels), constraint=f"at most {rows * cols} for grid {grid}")

    left, right, bottom, top = margins
    wspace, hspace = spacing
    cell_w = (1.0 - left - right - wspace * (cols - 1)) / cols
    cell_h = (1.0 - bottom - top - hspace * (rows - 1)) / rows
    if cell_w <= 0 or cell_h <= 0:
        raise_parameter_error("margins", margins, constraint="margins and spacing leave no room")

    figure = CompositeFigure(name)
    for i, child in enumerate(panels):
        if child is None:
            continue
        r, c = divmod(i, cols)
        xmin = left + c * (cell_w + wspace)
        ymax = 1.0 - top - r * (cell_h + hspace)
        place(figure, child, Rect(xmin, xmin + cell_w, ymax - cell_h, ymax))
    return figure


def place(
    figure: CompositeFigure,
    child: Union[Panel, CompositeFigure],
    rect: RectLike,
    frame: str = "canvas",
    host: Optional[int] = None,
) -> CompositeFigure:
    """Place ``child`` at an absolute rectangle.

    Args:
        figure: Parent composite (modified in place and returned).
        child: Panel or fully built composite to embed.
        rect: ``(xmin, xmax, ymin, ymax)``; canvas fractions when
            ``frame == 'canvas'``, host data coordinates when ``frame == 'data'``.
        frame: 'canvas' or 'data'.
        host: Index of the host placement for the data frame.

    Returns:
        ``figure``.
    """
    rect = _as_rect(rect)
    if child is figure:
        raise_parameter_error("child", child, constraint="a figure cannot contain itself")
    if frame == "canvas":
        if not (0.0 <= rect.xmin and rect.xmax <= 1.0 and 0.0 <= rect.ymin and rect.ymax <= 1.0):
            raise_parameter_error("rect", rect, constraint="canvas rects lie within [0, 1] x [0, 1]")
    elif frame == "data":
        if host is None or not 0 <= host < len(figure.placements):
            raise_parameter_error("host", host, constraint="index of an existing placement")
        if not isinstance(figure.placements[host].child, Panel):
            raise_parameter_error("host", host, constraint="host must be a Panel")
    else:
        raise_parameter_error("frame", frame, valid_values=["canvas", "data"])

    figure.placements.append(Placement(_adopt(child), rect, frame, host))
    return figure


def annotate(figure: CompositeFigure, annotation: Annotation) -> CompositeFigure:
    """Append a non-destructive overlay; later annotations draw on top."""
    if annotation.frame == "data":
        host = annotation.host
        if not 0 <= host < len(figure.placements) or not isinstance(figure.placements[host].child, Panel):
            raise_parameter_error("annotation.host", host, constraint="index of a placed Panel")
    figure.annotations.append(annotation)
    return figure


def label(
    figure: CompositeFigure,
    text: str,
    rect: RectLike,
    frame: str = "canvas",
    host: Optional[int] = None,
    **style,
) -> CompositeFigure:
    """Tag a panel with ``text`` (e.g. 'A') at the top-left of an explicit rect.

    Label positions are never inferred; ``rect`` is given in the same frame
    as a placement (canvas fractions, or host data coordinates).
    """
    rect = _as_rect(rect)
    style = {"ha": "left", "va": "top", "fontweight": "bold", "fontsize": 14, **style}
    return annotate(
        figure,
        Annotation(
            kind="text", anchor=(rect.xmin, rect.ymax), frame=frame, host=host, text=text, style=style
        ),
    )


def panel_rects(figure: CompositeFigure) -> list[Rect]:
    """Canvas rects of the figure's canvas placements, for labelling."""
    return [p.rect for p in figure.placements if p.frame == "canvas"]


__all__ = [
    "CompositeFigure",
    "Placement",
    "annotate",
    "label",
    "layout",
    "panel_rects",
    "place",
]
