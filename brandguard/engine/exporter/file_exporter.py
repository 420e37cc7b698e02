"""File based report exporter supporting CSV and JSON lines."""

from __future__ import annotations

import csv
import json
from datetime import date
from pathlib import Path

from ...models import AnalysisResult, Severity
from .base import BaseExporter

CSV_HEADERS = (
    "URL",
    "Status",
    "Score",
    "Timestamp",
    "Critical Issues",
    "Major Issues",
    "Minor Issues",
    "Discrepancy Details",
)
SUPPORTED_FORMATS = ("csv", "json")


def report_filename(fmt: str, day: date | None = None) -> str:
    day = day or date.today()
    extension = "jsonl" if fmt == "json" else fmt
    return f"analysis_report_{day.isoformat()}.{extension}"


def discrepancy_details(result: AnalysisResult) -> str:
    return "; ".join(
        f"[{item.severity.value}] {item.field}: {item.description}" for item in result.discrepancies
    )


def format_score(score: float) -> str:
    return f"{score:g}"


def csv_row(result: AnalysisResult) -> list[str]:
    return [
        result.url,
        result.status.value,
        format_score(result.compliance_score),
        result.timestamp,
        str(result.count_severity(Severity.CRITICAL)),
        str(result.count_severity(Severity.MAJOR)),
        str(result.count_severity(Severity.MINOR)),
        discrepancy_details(result),
    ]


class ReportExporter(BaseExporter):
    """Write analysis results to ``analysis_report_{date}`` files."""

    def __init__(self, output_dir: Path, fmt: str = "csv", day: date | None = None) -> None:
        if fmt not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported export format: {fmt}")
        self.output_dir = output_dir
        self.format = fmt
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.output_dir / report_filename(fmt, day)
        self._file = self.path.open("w", encoding="utf-8", newline="")
        self._csv_writer = None
        if fmt == "csv":
            self._csv_writer = csv.writer(self._file)
            self._csv_writer.writerow(CSV_HEADERS)
        self.count = 0

    def export(self, result: AnalysisResult) -> None:
        if self._csv_writer is not None:
            self._csv_writer.writerow(csv_row(result))
        else:
            payload = result.to_dict()
            # Screenshots are large data URLs; reports keep the text only.
            payload.pop("screenshot", None)
            json.dump(payload, self._file, ensure_ascii=False)
            self._file.write("\n")
        self.count += 1

    def flush(self) -> None:
        self._file.flush()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()


__all__ = [
    "CSV_HEADERS",
    "ReportExporter",
    "SUPPORTED_FORMATS",
    "csv_row",
    "discrepancy_details",
    "format_score",
    "report_filename",
]
