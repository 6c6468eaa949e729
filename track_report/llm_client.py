"""
Summarizer Client Module

This module talks to the external text-generation service that turns the
engine's structured output into a JSON report with a short narrative.

Features:
- OpenAI-compatible chat completions over httpx
- SSL certificate handling (certifi bundle) and proxy support
- Retry with exponential backoff on transport errors and 429/5xx
- Strict parsing: a malformed payload raises UpstreamFormatError
"""

import logging
from typing import Any, Sequence

import httpx
from pydantic import ValidationError

from .config import AppConfig, RetryConfig, SummarizerConfig, get_config
from .errors import SummarizerConnectionError, SummarizerError, UpstreamFormatError
from .http_utils import create_httpx_client, request_with_retry
from .models import AiLastLocation, AiSummary, ReportSummary, TrackDetail
from .prompt_builder import PromptBuilder


logger = logging.getLogger(__name__)


class SummarizerClient:
    """
    Async client for an OpenAI-compatible chat completion endpoint.

    The service is a black box: whatever it returns is either a valid
    AiSummary or an UpstreamFormatError, never a silently patched result.
    """

    def __init__(
        self,
        settings: SummarizerConfig | None = None,
        prompt_builder: PromptBuilder | None = None,
        app_config: AppConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize summarizer client.

        Args:
            settings: Endpoint, model and retry settings (from env if None)
            prompt_builder: Prompt builder (default instance if None)
            app_config: Application config for SSL/proxy settings
            transport: Optional httpx transport (used by tests)
        """
        self.app_config = app_config or get_config()
        self.settings = settings or self.app_config.summarizer
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.transport = transport

        logger.info(
            f"Summarizer client: {self.settings.url} "
            f"(model {self.settings.model}, retries {self.settings.retry.max_attempts})"
        )

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "SummarizerClient":
        """
        Create a client from the ``summarizer`` section of config.yaml.

        Values from the file override environment defaults.
        """
        summarizer_config = config.get("summarizer", {})
        app_config = get_config()
        env = app_config.summarizer

        settings = SummarizerConfig(
            base_url=summarizer_config.get("base_url", env.base_url),
            endpoint=summarizer_config.get("endpoint", env.endpoint),
            api_key=env.api_key,
            model=summarizer_config.get("model", env.model),
            temperature=summarizer_config.get("temperature", env.temperature),
            max_tokens=summarizer_config.get("max_tokens", env.max_tokens),
            timeout=summarizer_config.get("timeout", env.timeout),
            retry=RetryConfig(
                max_attempts=summarizer_config.get("retry_attempts", 3),
                base_delay=summarizer_config.get("retry_delay", 2.0),
            ),
        )

        return cls(
            settings=settings,
            prompt_builder=PromptBuilder(config),
            app_config=app_config,
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self.settings.model

    def _create_client(self) -> httpx.AsyncClient:
        return create_httpx_client(
            config=self.app_config,
            timeout=self.settings.timeout,
            transport=self.transport,
        )

    async def summarize(
        self,
        summary: ReportSummary,
        details: Sequence[TrackDetail],
        timeline: Sequence[str] | None = None,
    ) -> AiSummary:
        """
        Ask the service for a structured report.

        Args:
            summary: Engine-computed summary
            details: Per-point track details
            timeline: Rendered timeline entries

        Returns:
            Parsed AiSummary

        Raises:
            SummarizerConnectionError: If the service cannot be reached
            SummarizerError: If the service answers with an HTTP error
            UpstreamFormatError: If the answer is not the expected JSON
        """
        prompt = self.prompt_builder.build_prompt(details, summary, timeline)
        messages = [
            {"role": "system", "content": self.prompt_builder.get_system_prompt()},
            {"role": "user", "content": prompt},
        ]

        raw = await self.chat_completion(messages)
        return self.parse_summary(raw)

    async def chat_completion(self, messages: list[dict[str, str]]) -> str:
        """
        Send a chat completion request and return the assistant's content.
        """
        payload = {
            "model": self.settings.model,
            "messages": messages,
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
            "stream": False,
        }
        headers = {"Content-Type": "application/json"}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"

        try:
            logger.info("Calling summarizer...")
            async with self._create_client() as client:
                response = await request_with_retry(
                    client,
                    "POST",
                    self.settings.url,
                    retry_config=self.settings.retry,
                    json=payload,
                    headers=headers,
                )
        except httpx.HTTPError as e:
            logger.error(f"Summarizer not reachable at {self.settings.url}: {e}")
            raise SummarizerConnectionError(
                f"Summarizer not reachable at {self.settings.url}: {e}"
            ) from e

        if response.status_code >= 400:
            raise SummarizerError(
                f"Summarizer HTTP error {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamFormatError(
                "Summarizer response body is not JSON", raw=response.text
            ) from e

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise UpstreamFormatError("No choices in summarizer response", raw=response.text)

        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise UpstreamFormatError("Empty content in summarizer response", raw=response.text)

        usage = data.get("usage", {})
        logger.info(
            f"Summarizer call succeeded "
            f"(prompt: {usage.get('prompt_tokens', 'N/A')}, "
            f"completion: {usage.get('completion_tokens', 'N/A')} tokens)"
        )
        return content.strip()

    @staticmethod
    def parse_summary(raw: str) -> AiSummary:
        """
        Parse the assistant's content into an AiSummary.

        Raises:
            UpstreamFormatError: If raw is not a JSON object of the expected shape
        """
        try:
            return AiSummary.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Failed to parse summarizer response as JSON: {raw[:200]!r}")
            raise UpstreamFormatError(
                f"Summarizer returned an unparseable payload: {e.error_count()} error(s)",
                raw=raw,
            ) from e


class MockSummarizerClient(SummarizerClient):
    """
    Summarizer stand-in for running without network access.

    Echoes the engine's figures and stitches the timeline into a narrative.
    """

    def __init__(self, *args: Any, **kwargs: Any):
        # Skip parent __init__: no settings, env or HTTP client needed
        self.settings = SummarizerConfig(model="mock-model")
        self.prompt_builder = PromptBuilder()
        self.transport = None

        logger.info("Using mock summarizer (no external service required)")

    async def summarize(
        self,
        summary: ReportSummary,
        details: Sequence[TrackDetail],
        timeline: Sequence[str] | None = None,
    ) -> AiSummary:
        """Build a deterministic summary from the engine output."""
        last = summary.last_location
        state = "moving" if last.motion else "stationary"

        narrative = (
            f"The device reported {summary.total_points} location points, "
            f"covering {summary.total_distance} over {summary.total_time}. "
            f"It was last seen {state} at ({last.latitude:.5f}, {last.longitude:.5f})."
        )
        if timeline:
            narrative += f" Timeline: {'; '.join(timeline)}."
        if summary.anomalies:
            narrative += " The last fix has low confidence and may be unreliable."

        return AiSummary(
            total_points=summary.total_points,
            total_distance=summary.total_distance,
            total_time=summary.total_time,
            last_location=AiLastLocation(lat=last.latitude, lng=last.longitude, motion=last.motion),
            last_confidence=summary.last_confidence,
            anomalies=summary.anomalies,
            narrative=narrative,
        )
