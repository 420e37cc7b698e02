"""Report exporters."""

from .base import BaseExporter
from .file_exporter import CSV_HEADERS, ReportExporter, format_score, report_filename

__all__ = ["BaseExporter", "CSV_HEADERS", "ReportExporter", "format_score", "report_filename"]
