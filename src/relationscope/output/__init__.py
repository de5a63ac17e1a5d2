"""Report renderers: self-contained HTML and raster PDF."""

from relationscope.output.html_report import (
    HTMLReportGenerator,
    ReportConfig,
    ReportSection,
    generate_report,
    generate_report_string,
    visible_sections,
)
from relationscope.output.pdf_export import PDFExporter, export_pdf, pdf_file_name

__all__ = [
    "HTMLReportGenerator",
    "PDFExporter",
    "ReportConfig",
    "ReportSection",
    "export_pdf",
    "generate_report",
    "generate_report_string",
    "pdf_file_name",
    "visible_sections",
]
