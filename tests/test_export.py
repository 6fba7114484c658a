"""Tests for the export manager."""

import re

import matplotlib.image as mpimg
import pandas as pd
import pytest
from matplotlib.figure import Figure

from spectrafigs.objects import EncodingSpec, Table
from spectrafigs.utils.errors import ExportIOError, ParameterError
from spectrafigs.workflows.plotting import build, export, layout, output_path


@pytest.fixture
def composite():
    table = Table.from_frame(pd.DataFrame({"x": [1.0, 2.0, 3.0], "y": [3.0, 1.0, 2.0]}))
    panel = build(table, EncodingSpec(x="x", y="y", xlabel="x", ylabel="y"), "scatter")
    return layout([panel, panel], grid=(1, 2), name="demo")


class TestOutputPath:
    """Tests for output_path()."""

    def test_layout(self, tmp_path):
        """Test the per-format directory layout."""
        assert output_path("fig1", "raster", tmp_path) == tmp_path / "png" / "fig1.png"
        assert output_path("fig1", "vector_pdf", tmp_path) == tmp_path / "pdf" / "fig1.pdf"
        assert output_path("fig1", "vector_eps", tmp_path) == tmp_path / "eps" / "fig1.eps"

    def test_unknown_format(self, tmp_path):
        """Test unknown formats are rejected."""
        with pytest.raises(ParameterError, match="format"):
            output_path("fig1", "svg", tmp_path)


class TestExport:
    """Tests for export()."""

    def test_one_file_per_format(self, composite, tmp_path):
        """Test each format is written once with the right content type."""
        results = export(composite, "demo", dpi=40, height=3.0, output_root=tmp_path)
        assert [r.format for r in results] == ["raster", "vector_pdf", "vector_eps"]
        assert all(r.path.exists() for r in results)
        assert results[1].path.read_bytes().startswith(b"%PDF")
        assert results[2].path.read_bytes().startswith(b"%!PS")

    def test_raster_aspect_ratio(self, composite, tmp_path):
        """Test the raster keeps height * aspect_ratio by height."""
        (result,) = export(composite, "demo", formats=["raster"], dpi=50, height=4.0, aspect_ratio=1.618, output_root=tmp_path)
        pixels = mpimg.imread(result.path)
        rows, cols = pixels.shape[:2]
        assert rows == 200
        assert cols / rows == pytest.approx(1.618, abs=0.01)
        assert result.width == pytest.approx(4.0 * 1.618)

    def test_vector_aspect_ratio(self, composite, tmp_path):
        """Test the PDF and EPS page boxes keep height * aspect_ratio by height."""
        pdf, eps = export(
            composite, "demo", formats=["vector_pdf", "vector_eps"], height=3.0, aspect_ratio=1.618,
            output_root=tmp_path,
        )
        media_box = re.search(rb"/MediaBox\s*\[\s*([-\d.\s]+)\]", pdf.path.read_bytes())
        x0, y0, x1, y1 = map(float, media_box.group(1).split())
        assert y1 - y0 == pytest.approx(3.0 * 72)
        assert (x1 - x0) / (y1 - y0) == pytest.approx(1.618, abs=0.01)

        bounding_box = re.search(rb"%%BoundingBox:\s*([-\d.\s]+?)\s*\n", eps.path.read_bytes())
        x0, y0, x1, y1 = map(float, bounding_box.group(1).split())
        assert (x1 - x0) / (y1 - y0) == pytest.approx(1.618, abs=0.01)

    def test_rerun_overwrites(self, composite, tmp_path):
        """Test re-exporting replaces files and leaves nothing else behind."""
        first = export(composite, "demo", formats=["raster"], dpi=40, height=3.0, output_root=tmp_path)
        second = export(composite, "demo", formats=["raster"], dpi=40, height=3.0, output_root=tmp_path)
        assert first[0].path == second[0].path
        assert sorted(p.name for p in (tmp_path / "png").iterdir()) == ["demo.png"]

    def test_duplicate_formats_written_once(self, composite, tmp_path):
        """Test repeated format names are collapsed."""
        results = export(composite, "demo", formats=["raster", "raster"], dpi=40, height=3.0, output_root=tmp_path)
        assert len(results) == 1

    def test_unknown_format(self, composite, tmp_path):
        """Test unknown formats fail before anything is written."""
        with pytest.raises(ParameterError, match="formats"):
            export(composite, "demo", formats=["raster", "tiff"], output_root=tmp_path)
        assert not (tmp_path / "png").exists()

    def test_non_positive_size(self, composite, tmp_path):
        """Test sizes must be positive."""
        with pytest.raises(ParameterError, match="positive"):
            export(composite, "demo", height=0.0, output_root=tmp_path)

    def test_unwritable_root(self, composite, tmp_path):
        """Test an output root that is a file raises ExportIOError."""
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        with pytest.raises(ExportIOError):
            export(composite, "demo", formats=["raster"], dpi=40, height=3.0, output_root=blocker)

    def test_failed_write_leaves_no_partial_file(self, composite, tmp_path, monkeypatch):
        """Test a failed save removes its temporary file."""

        def failing_savefig(self, *args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(Figure, "savefig", failing_savefig)
        with pytest.raises(ExportIOError, match="disk full"):
            export(composite, "demo", formats=["raster"], dpi=40, height=3.0, output_root=tmp_path)
        assert list((tmp_path / "png").iterdir()) == []

    def test_bare_panel(self, tmp_path):
        """Test a single Panel can be exported directly."""
        table = Table.from_frame(pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 2.0]}))
        panel = build(table, EncodingSpec(x="x", y="y"), "line")
        (result,) = export(panel, "single", formats=["vector_pdf"], height=3.0, output_root=tmp_path)
        assert result.path == tmp_path / "pdf" / "single.pdf"
        assert result.path.stat().st_size > 0
