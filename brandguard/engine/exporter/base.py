"""Report exporter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from ...models import AnalysisResult


class BaseExporter(ABC):
    """Uniform contract for writing analysis results to an output."""

    @abstractmethod
    def export(self, result: AnalysisResult) -> None:
        """Write a single result."""

    def export_many(self, results: Iterable[AnalysisResult]) -> None:
        for result in results:
            self.export(result)

    @abstractmethod
    def flush(self) -> None:
        """Flush buffered data to destination."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""

    def __enter__(self) -> "BaseExporter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["BaseExporter"]
