"""Combine prioritized reference sources into one grounding document."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Sequence

import structlog

from ..models import Enrichment, EnrichmentKind, ReferenceSource
from .errors import FetchError, MissingPrimaryContent, ReferenceFetchError
from .fetcher import FetchOptions, Fetcher

PRIMARY_LABEL = "PRIMARY (overrides conflicts on disagreement)"
SECONDARY_LABEL = "SECONDARY (lower priority)"


@dataclass(slots=True)
class AggregatedReference:
    combined_text: str
    primary_screenshot: str | None
    sources: list[ReferenceSource]
    enrichments: list[Enrichment] = field(default_factory=list)

    @property
    def primary(self) -> ReferenceSource:
        return self.sources[0]


def format_source_block(position: int, source: ReferenceSource) -> str:
    label = PRIMARY_LABEL if position == 0 else SECONDARY_LABEL
    lines = [
        f"=== SOURCE #{position + 1} - {label} ===",
        f"Name: {source.name or 'Unnamed source'}",
        f"URL: {source.url or 'Manual Input'}",
        "",
        source.content.strip(),
    ]
    return "\n".join(lines)


class ReferenceAggregator:
    """Resolve reference sources in priority order and label them by authority."""

    def __init__(
        self,
        fetcher: Fetcher,
        options: FetchOptions | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.options = options
        self.logger = logger or structlog.get_logger("brandguard.aggregator")

    def aggregate(
        self, sources: Sequence[ReferenceSource], credential: str | None
    ) -> AggregatedReference:
        working = sorted((replace(source) for source in sources), key=lambda s: s.priority)
        enrichments: list[Enrichment] = []

        for position, source in enumerate(working):
            if source.content.strip() or not source.url.strip():
                continue
            try:
                fetched = self.fetcher.fetch(source.url, credential, self.options)
            except FetchError as exc:
                self.logger.error(
                    "reference_fetch_failed",
                    ordinal=position + 1,
                    url=source.url,
                    kind=exc.kind.value,
                )
                raise ReferenceFetchError(position + 1, exc, enrichments) from exc
            source.content = fetched.content
            source.screenshot = fetched.screenshot
            enrichments.append(
                Enrichment(
                    kind=EnrichmentKind.REFERENCE,
                    item_id=source.id,
                    content=fetched.content,
                    screenshot=fetched.screenshot,
                )
            )
            self.logger.info(
                "reference_fetched",
                ordinal=position + 1,
                url=source.url,
                attempts=fetched.attempts,
                has_screenshot=fetched.screenshot is not None,
            )

        if not working or not working[0].content.strip():
            raise MissingPrimaryContent(enrichments)

        blocks = [
            format_source_block(position, source)
            for position, source in enumerate(working)
            if source.content.strip()
        ]
        return AggregatedReference(
            combined_text="\n\n".join(blocks),
            primary_screenshot=working[0].screenshot,
            sources=working,
            enrichments=enrichments,
        )


__all__ = [
    "AggregatedReference",
    "PRIMARY_LABEL",
    "ReferenceAggregator",
    "SECONDARY_LABEL",
    "format_source_block",
]
