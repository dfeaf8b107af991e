"""Client for the cloud summary service (Gemini `generateContent`)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from cabinsight.core.analytics.report import build_summary_prompt

logger = logging.getLogger(__name__)

GENERATION_CONFIG = {
    "temperature": 0.7,
    "topP": 0.8,
    "topK": 40,
    "maxOutputTokens": 1024,
}


class SummaryServiceError(RuntimeError):
    """The summary service could not produce a report."""


def build_generate_request(prompt: str) -> dict[str, Any]:
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": dict(GENERATION_CONFIG),
    }


def parse_generate_response(payload: Any) -> str:
    """Extract the first candidate's text from a `generateContent` response."""

    if not isinstance(payload, dict):
        raise SummaryServiceError("Unexpected response body")
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        raise SummaryServiceError("No candidates in response")
    candidate = candidates[0]
    content = candidate.get("content") if isinstance(candidate, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts:
        raise SummaryServiceError("No content parts in response")
    part = parts[0]
    if not isinstance(part, dict) or "text" not in part:
        raise SummaryServiceError("No text content in response")
    return str(part["text"])


class GeminiSummaryClient:
    """Turns the detection-data text into a natural-language report.

    A single attempt per call; any failure raises `SummaryServiceError` so the
    caller can substitute the local report.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        timeout_s: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = httpx.Timeout(timeout_s)
        self._client = client
        self._owns_client = client is None

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def generate(self, detection_data: str) -> str:
        if not self.api_key:
            raise SummaryServiceError("Summary API key is not configured")

        body = build_generate_request(build_summary_prompt(detection_data))
        try:
            res = self._http().post(self.api_url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as exc:
            logger.warning("Summary service request failed: %s", exc)
            raise SummaryServiceError(f"Summary service unreachable: {exc}") from exc

        if res.status_code != 200:
            logger.warning("Summary service error %s: %s", res.status_code, res.text[:200])
            raise SummaryServiceError(f"API Error: {res.status_code}")
        try:
            payload = res.json()
        except ValueError as exc:
            raise SummaryServiceError("Summary response is not JSON") from exc
        return parse_generate_response(payload)
