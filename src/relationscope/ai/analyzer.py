"""Transcript analyzer: the boundary between RelationScope and Gemini.

``TranscriptAnalyzer.analyze`` sends a (possibly truncated) transcript to the
model together with the report response schema, and returns a validated
``ReportBody``. Every failure leaves this module as one of three
``AnalysisError`` subclasses:

- ``TransportError``: the call could not complete
- ``ContentError``: the model answered with nothing usable
- ``SchemaValidationError``: the answer does not match the report schema
"""

from __future__ import annotations

import logging

from relationscope.ai.client import (
    AIClient,
    AIClientError,
    AIContentBlockedError,
    StructuredResponse,
    get_client,
)
from relationscope.ai.prompts import get_analysis_prompt
from relationscope.config import AppConfig, get_config
from relationscope.core.errors import ContentError, SchemaValidationError, TransportError
from relationscope.core.models import AnalysisMode, PrivacySettings, ReportBody
from relationscope.core.schema import build_response_schema, parse_report_body
from relationscope.utils.logging import LogContext

logger = logging.getLogger(__name__)

DEFAULT_MAX_TRANSCRIPT_CHARS = 3_000_000


def truncate_transcript(text: str, max_chars: int = DEFAULT_MAX_TRANSCRIPT_CHARS) -> str:
    """Keep only the last ``max_chars`` characters of ``text``.

    Example:
        >>> truncate_transcript("abcdef", max_chars=4)
        'cdef'
    """
    if max_chars < 1:
        raise ValueError(f"max_chars must be positive, got {max_chars}")
    if len(text) <= max_chars:
        return text
    return text[len(text) - max_chars :]


class TranscriptAnalyzer:
    """Run a single transcript analysis against Gemini.

    The analyzer has no side effects beyond the remote call: it neither
    assembles nor persists reports.

    Attributes:
        max_chars: Transcript length ceiling (the tail is kept).
    """

    def __init__(
        self,
        client: AIClient | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self._config = config or get_config()
        self._client = client
        self.max_chars = self._config.ai.max_transcript_chars

    def _get_client(self) -> AIClient:
        if self._client is None:
            try:
                self._client = get_client(self._config)
            except AIClientError as e:
                raise TransportError(f"AI client unavailable: {e.message}", original_error=e) from e
        return self._client

    def analyze(
        self,
        transcript: str,
        mode: AnalysisMode | str = AnalysisMode.DEEP,
        anonymize: bool = True,
    ) -> ReportBody:
        """Analyze a transcript and return the validated report body.

        Args:
            transcript: The raw chat text.
            mode: ``quick`` or ``deep``.
            anonymize: Whether names must be replaced by "Person A"/"Person B".

        Returns:
            ReportBody whose ``analysisMode`` and ``privacy.anonymize`` match
            the request.

        Raises:
            ContentError: If the transcript is empty, or the model blocked,
                truncated or omitted its answer.
            TransportError: If the call could not complete.
            SchemaValidationError: If the answer does not match the schema.
        """
        mode = AnalysisMode(mode)
        if not transcript or not transcript.strip():
            raise ContentError(
                "Transcript is empty", user_message="The transcript is empty. Nothing to analyze."
            )

        original_length = len(transcript)
        transcript = truncate_transcript(transcript, self.max_chars)
        if len(transcript) < original_length:
            logger.info(
                f"Transcript truncated from {original_length:,} to {len(transcript):,} characters"
            )

        system, user = get_analysis_prompt(mode).render(anonymize=anonymize, transcript=transcript)
        client = self._get_client()

        with LogContext(f"Running {mode.value} analysis", logger=logger):
            try:
                response = client.generate_structured(
                    user,
                    response_schema=build_response_schema(),
                    system_instruction=system,
                )
            except AIContentBlockedError as e:
                raise ContentError(f"Analysis blocked: {e.message}", original_error=e) from e
            except AIClientError as e:
                raise TransportError(
                    f"Analysis request failed ({type(e).__name__}): {e.message}", original_error=e
                ) from e

        body = self._parse(response)
        return body.model_copy(
            update={"analysis_mode": mode, "privacy": PrivacySettings(anonymize=anonymize)}
        )

    @staticmethod
    def _parse(response: StructuredResponse) -> ReportBody:
        if response.is_truncated():
            raise ContentError("Analysis output was truncated at the token limit")
        if not response.raw_text.strip():
            raise ContentError(
                f"Analyzer returned no content (finish reason: {response.finish_reason})"
            )
        if not response.parse_success:
            raise SchemaValidationError(
                f"Analyzer output is not valid JSON: {response.parse_error}"
            )
        if not isinstance(response.data, dict):
            raise SchemaValidationError("Analyzer output must be a JSON object")
        return parse_report_body(response.data)
