"""Export Manager: write a composite once per output format.

Every format is rendered at ``height * aspect_ratio`` by ``height`` inches;
no tight bounding box is applied, so all formats share the same aspect.

Layer 4: Workflows - file output lives here.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from matplotlib.figure import Figure

from spectrafigs.config import EXPORT_FORMATS
from spectrafigs.objects.encoding import Rect
from spectrafigs.utils.errors import ExportIOError, raise_parameter_error
from spectrafigs.workflows.plotting.layout import CompositeFigure, place
from spectrafigs.workflows.plotting.panels import Panel

logger = logging.getLogger(__name__)

# format name -> (subdirectory, extension)
FORMAT_PATHS = {
    "raster": ("png", "png"),
    "vector_pdf": ("pdf", "pdf"),
    "vector_eps": ("eps", "eps"),
}

# Fixed metadata keeps repeated PDF exports byte-stable.
_METADATA = {"vector_pdf": {"CreationDate": None}}


@dataclass(frozen=True)
class ExportResult:
    """One written file."""

    format: str
    path: Path
    width: float
    height: float
    dpi: int


def output_path(base_name: str, fmt: str, output_root: Union[str, Path] = "output/figs") -> Path:
    """``<output_root>/<subdir>/<base_name>.<ext>`` for a format name."""
    if fmt not in FORMAT_PATHS:
        raise_parameter_error("format", fmt, valid_values=list(EXPORT_FORMATS))
    subdir, ext = FORMAT_PATHS[fmt]
    return Path(output_root) / subdir / f"{base_name}.{ext}"


def _write(fig: Figure, path: Path, fmt: str, dpi: int) -> None:
    _, ext = FORMAT_PATHS[fmt]
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ExportIOError(
            f"Cannot create output directory {path.parent}: {e}",
            details={"path": str(path), "format": fmt},
        ) from e

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=f".{ext}")
    os.close(fd)
    try:
        fig.savefig(tmp_name, format=ext, dpi=dpi, metadata=_METADATA.get(fmt))
        os.replace(tmp_name, path)
    except (OSError, ValueError, RuntimeError) as e:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise ExportIOError(
            f"Failed to write {fmt} output {path}: {e}",
            suggestion="Check free disk space and write permissions",
            details={"path": str(path), "format": fmt},
        ) from e


def export(
    figure: Union[CompositeFigure, Panel],
    base_name: str,
    formats: Iterable[str] = EXPORT_FORMATS,
    dpi: int = 300,
    height: float = 10.0,
    aspect_ratio: float = 1.618,
    output_root: Union[str, Path] = "output/figs",
    rc: Optional[dict] = None,
) -> list[ExportResult]:
    """Render ``figure`` and write it once per requested format.

    Args:
        figure: Composite (or a single panel, placed full-canvas).
        base_name: File stem shared by every format.
        formats: Any of 'raster', 'vector_pdf', 'vector_eps'.
        dpi: Raster resolution; vector formats embed images at this dpi.
        height: Height in inches.
        aspect_ratio: Width / height.
        output_root: Root of the per-format directories.
        rc: Matplotlib rc settings applied while rendering.

    Returns:
        One ExportResult per written file, in the order requested.

    Raises:
        ParameterError: On an unknown format or non-positive size.
        ExportIOError: If a file cannot be written; no partial file is left.

    Example:
        >>> results = export(composite, "fig1_site_map", formats=["raster"])
        >>> results[0].path
        PosixPath('output/figs/png/fig1_site_map.png')
    """
    formats = list(dict.fromkeys(formats))
    unknown = [f for f in formats if f not in FORMAT_PATHS]
    if unknown:
        raise_parameter_error("formats", unknown, valid_values=list(EXPORT_FORMATS))
    if height <= 0 or aspect_ratio <= 0 or dpi <= 0:
        raise_parameter_error(
            "height/aspect_ratio/dpi", (height, aspect_ratio, dpi), constraint="must be positive"
        )

    if isinstance(figure, Panel):
        figure = place(CompositeFigure(base_name), figure, Rect(0.1, 0.95, 0.1, 0.92))

    width = height * aspect_ratio
    fig = figure.render(width, height, dpi=dpi, rc=rc)

    results = []
    for fmt in formats:
        path = output_path(base_name, fmt, output_root)
        _write(fig, path, fmt, dpi)
        logger.info(f"Exported {base_name} as {fmt} to {path}")
        results.append(ExportResult(format=fmt, path=path, width=width, height=height, dpi=dpi))
    return results


__all__ = ["ExportResult", "FORMAT_PATHS", "export", "output_path"]
