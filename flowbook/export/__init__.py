"""Report export package."""

from flowbook.export.exporter import CSV_HEADER, ExportError, ReportExporter

__all__ = ["CSV_HEADER", "ExportError", "ReportExporter"]
