"""Tests for ExportService."""

import pytest

from conftest import make_diagram
from flowcraft.errors import UnsupportedOperationError
from flowcraft.models import DiagramCategory, DiagramType
from flowcraft.services.export import ExportFormat, ExportService, safe_file_name


@pytest.fixture
def exporter() -> ExportService:
    return ExportService()


@pytest.fixture
def svg_diagram():
    return make_diagram(
        "svg-1",
        title="Q3 Results",
        diagram_type=DiagramType.INFOGRAPHIC,
        category=DiagramCategory.SVG,
        content="<svg><rect/></svg>",
    )


@pytest.fixture
def image_diagram():
    return make_diagram(
        "img-1",
        title="Sunset",
        diagram_type=DiagramType.GENERATED_IMAGE,
        category=DiagramCategory.IMAGE,
        content="https://cdn.test/sunset.png",
    )


class TestFileNames:
    @pytest.mark.parametrize(
        ("title", "fmt", "expected"),
        [
            ("Login Flow", "svg", "login_flow.svg"),
            ('a<b>:"c"/d', ExportFormat.MERMAID, "a_b___c__d.mmd"),
            ("Report", "markdown", "report.md"),
            ("Photo", "jpeg", "photo.jpg"),
            ("   ", "svg", "diagram.svg"),
        ],
    )
    def test_safe_file_name(self, title, fmt, expected) -> None:
        assert safe_file_name(title, fmt) == expected


class TestRender:
    def test_svg_verbatim(self, exporter, svg_diagram) -> None:
        assert exporter.render(svg_diagram, "svg") == "<svg><rect/></svg>"

    def test_mermaid_source(self, exporter) -> None:
        diagram = make_diagram(content="flowchart TD\n  A --> B")
        assert exporter.render(diagram, ExportFormat.MERMAID) == "flowchart TD\n  A --> B\n"

    def test_markdown_mermaid(self, exporter) -> None:
        diagram = make_diagram(title="Login", description="", content="flowchart TD\n  A --> B\n")

        assert exporter.render(diagram, "markdown") == (
            "# Login\n\n```mermaid\nflowchart TD\n  A --> B\n```\n"
        )

    def test_markdown_image(self, exporter, image_diagram) -> None:
        text = exporter.render(image_diagram, "markdown")
        assert text.endswith("![Sunset](https://cdn.test/sunset.png)\n")
        assert image_diagram.description in text

    def test_markdown_svg_inline(self, exporter, svg_diagram) -> None:
        assert "<svg><rect/></svg>" in exporter.render(svg_diagram, "markdown")

    @pytest.mark.parametrize("fmt", ["png", "pdf", "jpeg"])
    def test_raster_formats_unsupported(self, exporter, svg_diagram, fmt) -> None:
        with pytest.raises(UnsupportedOperationError):
            exporter.render(svg_diagram, fmt)

    def test_mermaid_to_svg_unsupported(self, exporter) -> None:
        with pytest.raises(UnsupportedOperationError, match="mermaid"):
            exporter.render(make_diagram(), "svg")

    def test_image_as_mermaid_unsupported(self, exporter, image_diagram) -> None:
        with pytest.raises(UnsupportedOperationError):
            exporter.render(image_diagram, "mermaid")

    def test_unknown_format(self, exporter) -> None:
        with pytest.raises(ValueError):
            exporter.render(make_diagram(), "gif")


class TestExport:
    def test_writes_file(self, exporter, svg_diagram, tmp_path) -> None:
        path = exporter.export(svg_diagram, tmp_path / "out", "svg")

        assert path == tmp_path / "out" / "q3_results.svg"
        assert path.read_text(encoding="utf-8") == "<svg><rect/></svg>"

    def test_unsupported_writes_nothing(self, exporter, svg_diagram, tmp_path) -> None:
        with pytest.raises(UnsupportedOperationError):
            exporter.export(svg_diagram, tmp_path, "png")
        assert list(tmp_path.iterdir()) == []
