"""Records flowing through the compliance pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Sequence, TypeVar

MANUAL_INPUT_LABEL = "Manual Input"
MANUAL_INPUT_URL = "Manual Input Text"


class Severity(str, Enum):
    """Severity tiers assigned by the comparison engine."""

    CRITICAL = "CRITICAL"
    MAJOR = "MAJOR"
    MINOR = "MINOR"


class AnalysisStatus(str, Enum):
    COMPLIANT = "COMPLIANT"
    NON_COMPLIANT = "NON_COMPLIANT"
    ERROR = "ERROR"


class AuditAction(str, Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    ANALYSIS_RUN = "ANALYSIS_RUN"
    SCRAPE_URL = "SCRAPE_URL"
    VIEW_HISTORY = "VIEW_HISTORY"


class EnrichmentKind(str, Enum):
    REFERENCE = "reference"
    TARGET = "target"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(slots=True)
class ReferenceSource:
    """Authoritative document; ``priority`` 0 is the highest authority."""

    id: str
    name: str = ""
    url: str = ""
    content: str = ""
    screenshot: str | None = None
    priority: int = 0


@dataclass(slots=True)
class TargetPage:
    """Page checked against the combined reference."""

    id: str
    url: str = ""
    content: str = ""
    screenshot: str | None = None


@dataclass(frozen=True, slots=True)
class Discrepancy:
    id: str
    field: str
    reference_value: str
    found_value: str
    severity: Severity
    description: str
    suggestion: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "field": self.field,
            "referenceValue": self.reference_value,
            "foundValue": self.found_value,
            "severity": self.severity.value,
            "description": self.description,
            "suggestion": self.suggestion,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Discrepancy":
        return cls(
            id=str(payload["id"]),
            field=str(payload.get("field", "")),
            reference_value=str(payload.get("referenceValue", "")),
            found_value=str(payload.get("foundValue", "")),
            severity=Severity(payload["severity"]),
            description=str(payload.get("description", "")),
            suggestion=str(payload.get("suggestion", "")),
        )


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Verdict for a single target within one run."""

    id: str
    url: str
    timestamp: str
    status: AnalysisStatus
    compliance_score: float
    discrepancies: tuple[Discrepancy, ...] = ()
    raw_text: str | None = None
    screenshot: str | None = None

    @classmethod
    def error(cls, target_id: str, url: str, reason: str) -> "AnalysisResult":
        return cls(
            id=target_id,
            url=url,
            timestamp=utc_now(),
            status=AnalysisStatus.ERROR,
            compliance_score=0,
            discrepancies=(),
            raw_text=reason,
        )

    def count_severity(self, severity: Severity) -> int:
        return sum(1 for item in self.discrepancies if item.severity is severity)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "url": self.url,
            "timestamp": self.timestamp,
            "status": self.status.value,
            "complianceScore": self.compliance_score,
            "discrepancies": [item.to_dict() for item in self.discrepancies],
        }
        if self.raw_text is not None:
            payload["rawText"] = self.raw_text
        if self.screenshot is not None:
            payload["screenshot"] = self.screenshot
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "AnalysisResult":
        return cls(
            id=str(payload["id"]),
            url=str(payload.get("url", "")),
            timestamp=str(payload.get("timestamp", "")),
            status=AnalysisStatus(payload["status"]),
            compliance_score=payload.get("complianceScore", 0),
            discrepancies=tuple(
                Discrepancy.from_dict(item) for item in payload.get("discrepancies") or []
            ),
            raw_text=payload.get("rawText"),
            screenshot=payload.get("screenshot"),
        )


@dataclass(slots=True)
class AnalysisSession:
    id: str
    owner_id: str
    project_name: str
    reference_url: str
    timestamp: str
    results: list[AnalysisResult] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class AuditEntry:
    id: str
    owner_id: str
    actor_name: str
    action: AuditAction
    details: str
    timestamp: str


@dataclass(frozen=True, slots=True)
class Enrichment:
    """Content fetched during a run for a caller-owned record."""

    kind: EnrichmentKind
    item_id: str
    content: str
    screenshot: str | None = None


RecordT = TypeVar("RecordT", ReferenceSource, TargetPage)


def apply_enrichments(records: Sequence[RecordT], enrichments: Iterable[Enrichment]) -> list[RecordT]:
    """Return copies of ``records`` with fetched content/screenshots applied.

    Only enrichments matching the record type are considered, so the same
    enrichment list from a run report can be applied to references and
    targets separately.
    """

    if not records:
        return []
    kind = (
        EnrichmentKind.REFERENCE
        if isinstance(records[0], ReferenceSource)
        else EnrichmentKind.TARGET
    )
    by_id = {item.item_id: item for item in enrichments if item.kind is kind}
    updated: list[RecordT] = []
    for record in records:
        enrichment = by_id.get(record.id)
        if enrichment is None:
            updated.append(replace(record))
        else:
            updated.append(
                replace(record, content=enrichment.content, screenshot=enrichment.screenshot)
            )
    return updated


__all__ = [
    "AnalysisResult",
    "AnalysisSession",
    "AnalysisStatus",
    "AuditAction",
    "AuditEntry",
    "Discrepancy",
    "Enrichment",
    "EnrichmentKind",
    "MANUAL_INPUT_LABEL",
    "MANUAL_INPUT_URL",
    "ReferenceSource",
    "Severity",
    "TargetPage",
    "apply_enrichments",
    "utc_now",
]
