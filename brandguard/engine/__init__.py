"""Engine components: fetch → aggregate → compare → record."""

from .aggregator import AggregatedReference, ReferenceAggregator
from .assembler import ResultAssembler, RunStatistics, SortOrder, StatusFilter, filter_results, sort_results
from .comparison import ComparisonEngine, ComparisonVerdict, GeminiComparisonEngine, parse_verdict
from .errors import (
    BrandGuardError,
    ComparisonError,
    FetchError,
    FetchErrorKind,
    MissingPrimaryContent,
    PipelineError,
    ReferenceFetchError,
)
from .fetcher import FetchOptions, FetchResult, Fetcher, is_valid_url
from .processor import TargetOutcome, TargetProcessor
from .worker_pool import WorkerPool

__all__ = [
    "AggregatedReference",
    "BrandGuardError",
    "ComparisonEngine",
    "ComparisonError",
    "ComparisonVerdict",
    "FetchError",
    "FetchErrorKind",
    "FetchOptions",
    "FetchResult",
    "Fetcher",
    "GeminiComparisonEngine",
    "MissingPrimaryContent",
    "PipelineError",
    "ReferenceAggregator",
    "ReferenceFetchError",
    "ResultAssembler",
    "RunStatistics",
    "SortOrder",
    "StatusFilter",
    "TargetOutcome",
    "TargetProcessor",
    "WorkerPool",
    "filter_results",
    "is_valid_url",
    "parse_verdict",
    "sort_results",
]
