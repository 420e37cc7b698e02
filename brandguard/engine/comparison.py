"""Comparison engine contract and the Gemini-backed implementation."""

from __future__ import annotations

import base64
import os
from typing import Any, Mapping, Protocol

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import ComparisonConfig
from .errors import ComparisonError


class DiscrepancyVerdict(BaseModel):
    """A single mismatch as reported by the engine."""

    model_config = ConfigDict(populate_by_name=True)

    field: str
    reference_value: str = Field(alias="referenceValue")
    found_value: str = Field(alias="foundValue")
    severity: str
    description: str
    suggestion: str


class ComparisonVerdict(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    compliance_score: float = Field(alias="complianceScore", ge=0, le=100)
    discrepancies: list[DiscrepancyVerdict]


class ComparisonEngine(Protocol):
    """Anything able to compare a reference document with a target."""

    def compare(
        self,
        reference_text: str,
        target_text: str,
        target_label: str,
        reference_image: str | None = None,
        target_image: str | None = None,
    ) -> ComparisonVerdict | Mapping[str, Any]:
        ...


def parse_verdict(raw: ComparisonVerdict | Mapping[str, Any] | str) -> ComparisonVerdict:
    """Validate engine output; any schema violation raises ``ComparisonError``."""

    if isinstance(raw, ComparisonVerdict):
        return raw
    try:
        if isinstance(raw, str):
            return ComparisonVerdict.model_validate_json(raw)
        return ComparisonVerdict.model_validate(raw)
    except ValidationError as exc:
        raise ComparisonError(f"Comparison engine returned malformed output: {exc}") from exc


_PROMPT = """You are a brand compliance auditor.
Compare the "Reference Data" (official sources) against the "Published Page Data".
Identify every discrepancy in pricing, location, dates, amenities, specifications,
contact details, legal terms, or visual branding and imagery.

The reference data may contain several labeled sources. The PRIMARY source is
authoritative and overrides any SECONDARY source it disagrees with.

Classify discrepancies by severity:
- CRITICAL: wrong price, wrong location, wrong completion date, misleading legal terms,
  completely wrong product imagery.
- MAJOR: missing key features, wrong contact information, significantly wrong description,
  mismatched or low quality images.
- MINOR: typos, tone differences, vague wording.

Calculate a compliance score from 0 to 100, where 100 is a perfect match.

Reference Data (Text):
\"\"\"
{reference}
\"\"\"

Published Page Data (Text from {label}):
\"\"\"
{target}
\"\"\"
"""

_IMAGES_NOTE = (
    "\n\nIMAGES PROVIDED: screenshots of the pages are attached. Compare them visually "
    "as well and report any text overlays that contradict the reference data."
)

_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "complianceScore": {"type": "NUMBER"},
        "discrepancies": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "field": {"type": "STRING"},
                    "referenceValue": {"type": "STRING"},
                    "foundValue": {"type": "STRING"},
                    "severity": {"type": "STRING", "enum": ["CRITICAL", "MAJOR", "MINOR"]},
                    "description": {"type": "STRING"},
                    "suggestion": {"type": "STRING"},
                },
                "required": [
                    "field",
                    "referenceValue",
                    "foundValue",
                    "severity",
                    "description",
                    "suggestion",
                ],
            },
        },
    },
    "required": ["complianceScore", "discrepancies"],
}


class GeminiComparisonEngine:
    """Ask Gemini for a structured verdict through the ``generateContent`` REST API."""

    def __init__(
        self,
        config: ComparisonConfig | None = None,
        api_key: str | None = None,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config or ComparisonConfig()
        self.api_key = api_key or os.environ.get(self.config.api_key_env, "")
        self._client = client or httpx.Client(timeout=self.config.timeout, follow_redirects=True)
        self._owns_client = client is None
        self.logger = logger or structlog.get_logger("brandguard.comparison")

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def compare(
        self,
        reference_text: str,
        target_text: str,
        target_label: str,
        reference_image: str | None = None,
        target_image: str | None = None,
    ) -> ComparisonVerdict:
        if not self.api_key:
            raise ComparisonError(
                f"Comparison engine API key is missing (set {self.config.api_key_env})."
            )

        prompt = _PROMPT.format(reference=reference_text, target=target_text, label=target_label)
        if self.config.attach_screenshots and (reference_image or target_image):
            prompt += _IMAGES_NOTE
        parts: list[dict[str, Any]] = [{"text": prompt}]
        if self.config.attach_screenshots:
            for image_url, caption in (
                (reference_image, "Above is the REFERENCE PAGE SCREENSHOT."),
                (target_image, "Above is the TARGET PAGE SCREENSHOT."),
            ):
                encoded = self._download_image(image_url) if image_url else None
                if encoded:
                    parts.append({"inlineData": {"mimeType": "image/png", "data": encoded}})
                    parts.append({"text": caption})

        body = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": _RESPONSE_SCHEMA,
            },
        }
        url = f"{self.config.base_url.rstrip('/')}/models/{self.config.model}:generateContent"
        try:
            response = self._client.post(
                url,
                json=body,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            self.logger.error("comparison_request_failed", label=target_label, error=str(exc))
            raise ComparisonError(f"Comparison request failed: {exc}") from exc
        except ValueError as exc:
            raise ComparisonError("Comparison engine returned a non-JSON body") from exc

        text = self._extract_text(payload)
        if not text:
            raise ComparisonError("Empty response from comparison engine")
        return parse_verdict(text)

    # ------------------------------------------------------------------
    def _download_image(self, url: str) -> str | None:
        try:
            response = self._client.get(url, timeout=self.config.timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            self.logger.warning("screenshot_download_failed", url=url, error=str(exc))
            return None
        return base64.b64encode(response.content).decode("ascii")

    @staticmethod
    def _extract_text(payload: Any) -> str:
        try:
            parts = payload["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return ""
        chunks = [part.get("text", "") for part in parts if isinstance(part, dict)]
        return "".join(chunks).strip()


__all__ = [
    "ComparisonEngine",
    "ComparisonVerdict",
    "DiscrepancyVerdict",
    "GeminiComparisonEngine",
    "parse_verdict",
]
