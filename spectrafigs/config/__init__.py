"""Process-wide, read-only figure configuration.

The packaged ``default_config.yaml`` is merged with an optional user file and
keyword overrides into a frozen :class:`FigureConfig`, which is then passed
explicitly to every figure builder.
"""

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional, Tuple, Union

import yaml

from spectrafigs.utils.errors import DataNotFoundError, ParameterError, raise_parameter_error

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default_config.yaml"
EXPORT_FORMATS = ("raster", "vector_pdf", "vector_eps")

# Nested YAML sections are flattened into FigureConfig fields.
_SECTIONS = ("export", "binning", "style")


@dataclass(frozen=True)
class FigureConfig:
    """Shared style and export settings.

    Attributes:
        palette: Nine discrete colours assigned to categorical levels in order.
        projection: PROJ definition of the map projection.
        dpi: Raster resolution.
        height: Figure height in inches.
        aspect_ratio: Width / height for every exported format.
        output_root: Root of the ``<format>/<name>.<ext>`` output tree.
        formats: Formats exported per figure.
        bin_width: Latitude bin width in degrees.
        min_bin_count: Minimum observations for a bin to be drawn.
        font_family: Matplotlib font family.
        base_font_size: Base font size in points.
    """

    palette: Tuple[str, ...]
    projection: str
    dpi: int = 300
    height: float = 10.0
    aspect_ratio: float = 1.618
    output_root: str = "output/figs"
    formats: Tuple[str, ...] = EXPORT_FORMATS
    bin_width: float = 5.0
    min_bin_count: int = 3
    font_family: str = "sans-serif"
    base_font_size: float = 11.0

    def __post_init__(self) -> None:
        """Validate FigureConfig parameters."""
        object.__setattr__(self, "palette", tuple(self.palette))
        object.__setattr__(self, "formats", tuple(self.formats))
        if len(self.palette) < 1:
            raise_parameter_error("palette", self.palette, constraint="at least one colour")
        unknown = [f for f in self.formats if f not in EXPORT_FORMATS]
        if unknown:
            raise_parameter_error("formats", unknown, valid_values=list(EXPORT_FORMATS))
        for name in ("dpi", "height", "aspect_ratio", "bin_width", "min_bin_count"):
            if getattr(self, name) <= 0:
                raise_parameter_error(name, getattr(self, name), constraint="must be positive")

    @property
    def width(self) -> float:
        """Figure width in inches, ``height * aspect_ratio``."""
        return self.height * self.aspect_ratio

    def with_overrides(self, **overrides: Any) -> "FigureConfig":
        """Return a copy with ``overrides`` applied."""
        _check_keys(overrides)
        return replace(self, **overrides)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _check_keys(values: dict[str, Any]) -> None:
    valid = {f.name for f in fields(FigureConfig)}
    unknown = sorted(set(values) - valid)
    if unknown:
        raise ParameterError(
            f"Unknown configuration key(s): {', '.join(unknown)}",
            suggestion=f"Valid keys: {', '.join(sorted(valid))}",
        )


def _flatten(raw: dict[str, Any]) -> dict[str, Any]:
    flat = {}
    for key, value in (raw or {}).items():
        if key in _SECTIONS and isinstance(value, dict):
            flat.update(value)
        else:
            flat[key] = value
    return flat


def _read_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise DataNotFoundError(f"Config file not found: {path}")
    suffix = path.suffix.lower()
    with open(path) as f:
        if suffix in (".yaml", ".yml"):
            return yaml.safe_load(f) or {}
        if suffix == ".json":
            return json.load(f)
    raise ParameterError(
        f"Unsupported config file format: {suffix}",
        suggestion="Use .yaml, .yml, or .json",
    )


def load_config(
    path: Optional[Union[str, Path]] = None, **overrides: Any
) -> FigureConfig:
    """Load the default configuration, then a user file, then overrides.

    Args:
        path: Optional YAML or JSON file; nested ``export``, ``binning`` and
            ``style`` sections are accepted as well as flat keys.
        **overrides: Final per-call overrides.

    Returns:
        Frozen FigureConfig.

    Raises:
        DataNotFoundError: If ``path`` does not exist.
        ParameterError: On unknown keys or invalid values.

    Example:
        >>> config = load_config(dpi=150)
        >>> config.width
        16.18
    """
    values = _flatten(_read_file(DEFAULT_CONFIG_PATH))
    if path is not None:
        user = _flatten(_read_file(Path(path)))
        _check_keys(user)
        values.update(user)
        logger.info(f"Loaded config from {path}")
    _check_keys(overrides)
    values.update(overrides)
    return FigureConfig(**values)


__all__ = ["DEFAULT_CONFIG_PATH", "EXPORT_FORMATS", "FigureConfig", "load_config"]
