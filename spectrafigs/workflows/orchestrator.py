"""Figure registry and batch runner.

Figures are registered by name and run one at a time. A figure that fails
with a :class:`SpectraFigsError` is logged and recorded in the
:class:`BatchReport`; the remaining figures still run.
"""

import logging
import warnings
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Union

from spectrafigs.config import FigureConfig, load_config
from spectrafigs.utils.errors import InsufficientDataWarning, SpectraFigsError, raise_parameter_error
from spectrafigs.workflows.plotting._base import rc_params
from spectrafigs.workflows.plotting.export import ExportResult, export
from spectrafigs.workflows.plotting.layout import CompositeFigure

logger = logging.getLogger(__name__)

FigureBuilder = Callable[[Path, FigureConfig], CompositeFigure]

# Registry of available figures, in registration order
FIGURE_REGISTRY: dict[str, FigureBuilder] = {}


def register_figure(name: str, func: Optional[FigureBuilder] = None):
    """Register a figure builder under ``name``.

    Usable directly, ``register_figure("fig", build)``, or as a decorator,
    ``@register_figure("fig")``.
    """

    def decorator(builder: FigureBuilder) -> FigureBuilder:
        FIGURE_REGISTRY[name] = builder
        logger.debug(f"Registered figure: {name}")
        return builder

    if func is not None:
        return decorator(func)
    return decorator


def _register_default_figures():
    """Register the packaged figures."""
    from spectrafigs.workflows.figures import latitude_slopes, site_map, size_spectra

    register_figure("fig1_site_map", site_map)
    register_figure("fig2_size_spectra", size_spectra)
    register_figure("fig3_latitude_slopes", latitude_slopes)


@dataclass
class BatchReport:
    """Outcome of one batch run.

    Attributes:
        exported: Figure name -> files written.
        failures: Figure name -> error message.
        diagnostics: Figure name -> counters (omitted rows, insufficient
            groups, skipped passes, insufficient-data warnings).
    """

    exported: dict[str, list[ExportResult]] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)
    diagnostics: dict[str, dict[str, int]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def paths(self) -> list[Path]:
        return [r.path for results in self.exported.values() for r in results]

    def summary(self) -> str:
        lines = [f"{len(self.exported)} figure(s) exported, {len(self.failures)} failed"]
        for name, results in self.exported.items():
            lines.append(f"  ok   {name}: {', '.join(str(r.path) for r in results)}")
        for name, message in self.failures.items():
            lines.append(f"  FAIL {name}: {message.splitlines()[0]}")
        return "\n".join(lines)


class FigureRunner:
    """Build and export registered figures sequentially, each in isolation."""

    def __init__(
        self,
        config: Optional[FigureConfig] = None,
        data_dir: Union[str, Path] = "data",
    ):
        """Initialize the runner.

        Args:
            config: Read-only configuration. If None, the packaged defaults.
            data_dir: Directory holding the input tables, boundaries and icons.
        """
        self.config = config or load_config()
        self.data_dir = Path(data_dir)
        self.logger = logging.getLogger(self.__class__.__name__)

    def build(self, name: str) -> CompositeFigure:
        """Assemble one registered figure without writing it."""
        builder = FIGURE_REGISTRY.get(name)
        if builder is None:
            raise_parameter_error("figure", name, valid_values=list(FIGURE_REGISTRY))
        self.logger.info(f"Building {name}")
        return builder(self.data_dir, self.config)

    def run_one(self, name: str) -> tuple[list[ExportResult], dict[str, int]]:
        """Build and export ``name``; returns the written files and diagnostics."""
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", InsufficientDataWarning)
            figure = self.build(name)
        diagnostics = figure.diagnostics()
        n_warnings = sum(issubclass(w.category, InsufficientDataWarning) for w in caught)
        if n_warnings:
            diagnostics["insufficient_warnings"] = n_warnings

        config = self.config
        results = export(
            figure,
            name,
            formats=config.formats,
            dpi=config.dpi,
            height=config.height,
            aspect_ratio=config.aspect_ratio,
            output_root=config.output_root,
            rc=rc_params(config.font_family, config.base_font_size),
        )
        return results, diagnostics

    def run(self, names: Optional[Iterable[str]] = None) -> BatchReport:
        """Run ``names`` (default: every registered figure) and report.

        Unknown names are reported as failures rather than raised.
        """
        names = list(names) if names else list(FIGURE_REGISTRY)
        report = BatchReport()
        self.logger.info(f"Running {len(names)} figure(s) from {self.data_dir}")

        for name in names:
            try:
                results, diagnostics = self.run_one(name)
            except SpectraFigsError as e:
                self.logger.error(f"✗ Figure {name} failed: {e.message}")
                report.failures[name] = str(e)
                continue
            report.exported[name] = results
            report.diagnostics[name] = diagnostics
            self.logger.info(f"✓ Figure {name} exported ({len(results)} file(s))")

        return report


def run_figures(
    names: Optional[Iterable[str]] = None,
    data_dir: Union[str, Path] = "data",
    config: Optional[FigureConfig] = None,
) -> BatchReport:
    """Convenience wrapper around :class:`FigureRunner`."""
    return FigureRunner(config=config, data_dir=data_dir).run(names)


# Initialize default figures
_register_default_figures()


__all__ = [
    "FIGURE_REGISTRY",
    "BatchReport",
    "FigureRunner",
    "register_figure",
    "run_figures",
]
