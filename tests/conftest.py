"""Shared fixtures: synthetic inputs written to a temporary data directory."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest
import yaml
from matplotlib import image as mpimg

from spectrafigs.config import load_config

DATA_TYPES = ("fish-only", "combined")


def _site_frame(seed: int = 7) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    # Dense bands in the tropics and mid latitudes, a lone site near the pole.
    latitudes = np.concatenate([
        rng.uniform(-40.0, -20.0, 12),
        rng.uniform(0.0, 25.0, 14),
        rng.uniform(30.0, 55.0, 12),
        [72.5],
    ])
    longitudes = rng.uniform(-170.0, 170.0, latitudes.size)
    rows = []
    for i, (lat, lon) in enumerate(zip(latitudes, longitudes)):
        for j, data_type in enumerate(DATA_TYPES):
            rows.append({
                "site": f"S{i:02d}",
                "ecoregion": f"E{i % 4}",
                "latitude": lat,
                "longitude": lon,
                "data_type": data_type,
                "slope": -1.2 - 0.01 * abs(lat) + 0.1 * j + rng.normal(0, 0.05),
            })
    return pd.DataFrame(rows)


@pytest.fixture
def site_frame():
    return _site_frame()


@pytest.fixture
def nass_frame():
    mass = 2.0 ** np.arange(1, 6)
    rows = []
    for data_type, intercept in zip(DATA_TYPES, (10.0, 12.0)):
        for m in mass:
            rows.append({
                "data_type": data_type,
                "mass": m,
                "normalized_abundance": 2.0 ** (intercept - 1.5 * np.log2(m)),
            })
    return pd.DataFrame(rows)


@pytest.fixture
def body_mass_frame():
    rng = np.random.default_rng(3)
    frames = []
    for data_type, meanlog in zip(DATA_TYPES, (1.0, 0.5)):
        frames.append(pd.DataFrame({
            "data_type": data_type,
            "mass": rng.lognormal(meanlog, 0.8, 50),
            "meanlog": meanlog,
            "sdlog": 0.8,
        }))
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def summaries():
    return {
        "fish-only": {"slope": -1.5, "intercept": 10.0},
        "combined": {"slope": -1.4, "intercept": 12.0, "slope_se": 0.05},
        "latitude": {"slope": -0.01, "intercept": -1.2},
    }


@pytest.fixture
def land_frame():
    squares = []
    for group, (lon0, lat0) in enumerate([(-100.0, 10.0), (10.0, -30.0)]):
        for dlon, dlat in [(0, 0), (40, 0), (40, 30), (0, 30), (0, 0)]:
            squares.append({"long": lon0 + dlon, "lat": lat0 + dlat, "group": group})
    return pd.DataFrame(squares)


@pytest.fixture
def data_dir(tmp_path, site_frame, nass_frame, body_mass_frame, summaries, land_frame):
    """A complete input directory for every packaged figure."""
    root = tmp_path / "data"
    (root / "icons").mkdir(parents=True)
    site_frame.to_csv(root / "site_slopes.csv", index=False)
    nass_frame.to_csv(root / "nass_bins.csv", index=False)
    body_mass_frame.to_csv(root / "body_mass.csv", index=False)
    land_frame.to_csv(root / "land.csv", index=False)
    with open(root / "model_summaries.yaml", "w") as f:
        yaml.safe_dump(summaries, f)

    icon = np.zeros((8, 12, 4))
    icon[..., 2] = 0.6
    icon[2:6, 2:10, 3] = 1.0
    mpimg.imsave(root / "icons" / "fish.png", icon)
    mpimg.imsave(root / "icons" / "invertebrate.png", icon[::-1])
    return root


@pytest.fixture
def config(tmp_path):
    """Small, fast export settings writing under ``tmp_path``."""
    return load_config(output_root=str(tmp_path / "figs"), dpi=40, height=3.0)
