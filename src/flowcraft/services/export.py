"""
Diagram export to text formats.

Rendering Mermaid or images to raster or PDF is out of reach for this
package, so only formats that can be written from the stored content are
supported.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from flowcraft.errors import UnsupportedOperationError
from flowcraft.logging import get_logger
from flowcraft.models import Diagram, DiagramCategory
from flowcraft.validation import sanitize_file_name

logger = get_logger("services.export")


class ExportFormat(str, Enum):
    SVG = "svg"
    MERMAID = "mermaid"
    MARKDOWN = "markdown"
    PNG = "png"
    PDF = "pdf"
    JPEG = "jpeg"


_EXTENSIONS: dict[ExportFormat, str] = {
    ExportFormat.SVG: "svg",
    ExportFormat.MERMAID: "mmd",
    ExportFormat.MARKDOWN: "md",
    ExportFormat.PNG: "png",
    ExportFormat.PDF: "pdf",
    ExportFormat.JPEG: "jpg",
}

_RASTER_FORMATS = (ExportFormat.PNG, ExportFormat.PDF, ExportFormat.JPEG)


def safe_file_name(title: str, fmt: ExportFormat | str) -> str:
    """File name for exporting a diagram titled *title* as *fmt*."""
    stem = sanitize_file_name(title.strip()) or "diagram"
    return f"{stem}.{_EXTENSIONS[ExportFormat(fmt)]}"


class ExportService:
    def render(self, diagram: Diagram, fmt: ExportFormat | str) -> str:
        """
        Return the exported text for *diagram*.

        Raises:
            UnsupportedOperationError: If *fmt* needs rendering or does not
                apply to the diagram's category
        """
        fmt = ExportFormat(fmt)
        if fmt in _RASTER_FORMATS:
            raise UnsupportedOperationError(f"{fmt.value.upper()} export is not supported")

        if fmt == ExportFormat.SVG:
            if diagram.category != DiagramCategory.SVG:
                raise UnsupportedOperationError(
                    f"Cannot export {diagram.category.value} diagram to SVG"
                )
            return diagram.content

        if fmt == ExportFormat.MERMAID:
            if diagram.category != DiagramCategory.MERMAID:
                raise UnsupportedOperationError(
                    f"Cannot export {diagram.category.value} diagram as Mermaid source"
                )
            return diagram.content if diagram.content.endswith("\n") else diagram.content + "\n"

        return self._markdown(diagram)

    @staticmethod
    def _markdown(diagram: Diagram) -> str:
        lines = [f"# {diagram.title}", ""]
        if diagram.description:
            lines += [diagram.description, ""]

        if diagram.category == DiagramCategory.MERMAID:
            lines += ["```mermaid", diagram.content.rstrip("\n"), "```"]
        elif diagram.category == DiagramCategory.SVG:
            lines.append(diagram.content)
        else:
            lines.append(f"![{diagram.title}]({diagram.content})")
        return "\n".join(lines) + "\n"

    def export(
        self,
        diagram: Diagram,
        directory: str | Path,
        fmt: ExportFormat | str,
    ) -> Path:
        """Write *diagram* into *directory* and return the file path."""
        content = self.render(diagram, fmt)
        target_dir = Path(directory).expanduser()
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / safe_file_name(diagram.title, fmt)
        path.write_text(content, encoding="utf-8")
        logger.info("Exported diagram %s to %s", diagram.id, path)
        return path
