"""Central Gemini API Client for RelationScope.

This module is the SOLE INTERFACE to the Gemini API. No other file in the
codebase should import google-genai.

The client provides:
- Retry logic with exponential backoff and jitter
- Typed exceptions for predictable error handling
- Structured (JSON + response schema) generation
- Security-first logging (never logs secrets, prompts or responses)

Example:
    >>> from relationscope.ai.client import get_client, AIClientError
    >>>
    >>> client = get_client()
    >>> response = client.generate_structured(
    ...     "Analyze this chat...",
    ...     response_schema=schema,
    ...     system_instruction="You are a relationship analyst.",
    ... )
    >>> response.data["tldr"]

Security Rules:
- NEVER log API keys (ever, in any form)
- NEVER log prompts (they contain private conversations)
- NEVER log responses (they contain personal analysis)
"""

from __future__ import annotations

import logging
import random
import re
import time
from typing import Any, Callable, Literal

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, Field

from relationscope.config import APIKeyNotFoundError, AppConfig, get_api_key, get_config
from relationscope.core.schema import extract_json_text

# =============================================================================
# Secure Logging Filter
# =============================================================================


class RedactingFilter(logging.Filter):
    """Logging filter that redacts anything resembling an API key or token.

    Example:
        >>> logger.addFilter(RedactingFilter())
        >>> logger.info("Using api_key=AIzaSy123456789...")
        # Output: "Using api_key=[REDACTED]"
    """

    PATTERNS = [
        # Key-value patterns
        re.compile(r'(api_key\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r'(key\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r'(token\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r"(bearer\s+)([a-zA-Z0-9_\-]{20,})", re.IGNORECASE),
        # Standalone Gemini keys start with AIza
        re.compile(r"\bAIza[a-zA-Z0-9_\-]{30,}\b"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._redact(record.msg)

        if record.args:
            record.args = tuple(
                self._redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )

        return True

    def _redact(self, text: str) -> str:
        for pattern in self.PATTERNS[:4]:
            text = pattern.sub(r"\1[REDACTED]", text)
        for pattern in self.PATTERNS[4:]:
            text = pattern.sub("[REDACTED]", text)
        return text


logger = logging.getLogger(__name__)
logger.addFilter(RedactingFilter())


# =============================================================================
# Exception Hierarchy
# =============================================================================


class AIClientError(Exception):
    """Base exception for all AI client errors.

    Attributes:
        message: Human-readable error description (safe to log).
        retriable: Whether the operation can be retried.
        details: Additional error context (may contain sensitive data, don't log).
        original_error: The underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        retriable: bool = False,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retriable = retriable
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        return self.message


class AIUnavailableError(AIClientError):
    """AI service cannot be used (no key, offline, service down)."""

    def __init__(
        self,
        reason: Literal["no_api_key", "offline", "service_down"],
        message: str | None = None,
    ) -> None:
        self.reason = reason

        default_messages = {
            "no_api_key": "No Gemini API key configured",
            "offline": "Cannot reach Gemini API (network offline)",
            "service_down": "Gemini service is temporarily unavailable",
        }

        msg = message or default_messages.get(reason, f"AI unavailable: {reason}")
        super().__init__(msg, retriable=False)


class AIAuthError(AIClientError):
    """API key is invalid, expired or lacks permission. Never retriable."""

    def __init__(
        self,
        message: str = "API authentication failed. Please check your API key.",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class AIRateLimitError(AIClientError):
    """Rate limit exceeded. Retriable after ``retry_after_seconds`` when known."""

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please wait before retrying.",
        retry_after_seconds: float | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=True, original_error=original_error)
        self.retry_after_seconds = retry_after_seconds


class AIQuotaExceededError(AIClientError):
    """Quota or billing limit reached. Not retriable."""

    def __init__(
        self,
        message: str = "API quota exceeded. Check your billing and usage limits.",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class AIServerError(AIClientError):
    """Server-side error (5xx). Retriable."""

    def __init__(
        self,
        message: str = "AI server error. The service may be temporarily unavailable.",
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=True, original_error=original_error)
        self.status_code = status_code


class AINetworkError(AIClientError):
    """The request never reached the service (DNS, refused connection, reset). Retriable."""

    def __init__(
        self,
        message: str = "Network error while contacting the AI service.",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=True, original_error=original_error)


class AIBadRequestError(AIClientError):
    """Invalid request (malformed schema, bad parameters). Not retriable."""

    def __init__(
        self,
        message: str = "Invalid request to AI service.",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class AITimeoutError(AIClientError):
    """Request timed out. Retriable.

    Attributes:
        timeout_seconds: The timeout duration that was exceeded.
    """

    def __init__(
        self,
        timeout_seconds: float,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        msg = message or f"Request timed out after {timeout_seconds} seconds"
        super().__init__(msg, retriable=True, original_error=original_error)
        self.timeout_seconds = timeout_seconds


class AITokenLimitError(AIClientError):
    """Input exceeded the model's token limit. Not retriable with the same input."""

    def __init__(
        self,
        message: str = "Token limit exceeded. Please reduce input size.",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class AIModelNotFoundError(AIClientError):
    """Requested model doesn't exist or isn't available to this key."""

    def __init__(
        self,
        model_name: str,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        msg = message or f"Model '{model_name}' not found. Check model name in configuration."
        super().__init__(msg, retriable=False, original_error=original_error)
        self.model_name = model_name


class AIContentBlockedError(AIClientError):
    """Prompt or response was blocked by safety filters.

    Attributes:
        blocked_reason: The reason for blocking if available.
    """

    def __init__(
        self,
        message: str = "Content blocked by safety filters.",
        blocked_reason: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)
        self.blocked_reason = blocked_reason


# =============================================================================
# Response Models
# =============================================================================


class AIResponse(BaseModel):
    """Standardized response from AI generation.

    Attributes:
        text: The generated content.
        model: Name of the model that generated this response.
        prompt_tokens: Number of tokens in the input prompt.
        completion_tokens: Number of tokens in the generated output.
        total_tokens: Total tokens used.
        finish_reason: Why generation stopped (e.g., "STOP", "MAX_TOKENS").
        latency_ms: Time taken for generation in milliseconds.
    """

    text: str = Field(..., description="The generated content")
    model: str = Field(..., description="Model that generated this response")
    prompt_tokens: int | None = Field(None, description="Tokens in input prompt")
    completion_tokens: int | None = Field(None, description="Tokens in output")
    total_tokens: int | None = Field(None, description="Total tokens used")
    finish_reason: str | None = Field(None, description="Why generation stopped")
    latency_ms: float | None = Field(None, description="Generation time in ms")


class StructuredResponse(BaseModel):
    """Response when requesting JSON output.

    If JSON parsing fails, ``parse_success`` is False and ``parse_error``
    holds the reason; ``raw_text`` is always kept.
    """

    data: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Parsed JSON content"
    )
    raw_text: str = Field(..., description="Original text before parsing")
    model: str = Field(..., description="Model that generated this response")
    tokens_used: int | None = Field(None, description="Total tokens consumed")
    latency_ms: float | None = Field(None, description="Generation time in ms")
    finish_reason: str | None = Field(None, description="Why generation stopped")
    parse_success: bool = Field(True, description="Whether JSON parsing succeeded")
    parse_error: str | None = Field(None, description="Error if parsing failed")

    def is_truncated(self) -> bool:
        return self.finish_reason == "MAX_TOKENS"


# =============================================================================
# Main AI Client Class
# =============================================================================


# Finish reasons that mean the output was withheld
BLOCKED_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "RECITATION"}


def _enum_name(value: Any) -> str | None:
    if value is None:
        return None
    name = getattr(value, "name", None)
    return name if isinstance(name, str) else str(value)


def _int_or_none(value: Any) -> int | None:
    return value if isinstance(value, int) else None


class AIClient:
    """Central client for all Gemini API communication.

    No API calls are made during initialization.

    Example:
        >>> client = AIClient()
        >>> if client.is_available():
        ...     response = client.generate("Say hello", system_instruction="Be brief.")
        ...     print(response.text)

    Class Constants:
        MAX_RETRY_DELAY: Maximum delay between retries.
    """

    MAX_RETRY_DELAY: float = 60.0

    def __init__(
        self,
        config: AppConfig | None = None,
        api_key: str | None = None,
    ) -> None:
        """Initialize the AI client.

        Args:
            config: Application configuration. If None, loads from get_config().
            api_key: Override API key. If None, loads from configured sources.
        """
        self._config = config or get_config()
        self._client: Any = None
        self._logger = logging.getLogger(f"{__name__}.AIClient")
        self._logger.addFilter(RedactingFilter())

        try:
            key = api_key or get_api_key().get_secret_value()
        except APIKeyNotFoundError:
            self._logger.warning("No API key configured")
            return

        # Never log the key
        self._client = genai.Client(
            api_key=key,
            http_options=types.HttpOptions(timeout=self._config.ai.timeout_seconds * 1000),
        )
        self._logger.debug(f"AI client configured for model {self._config.ai.model_name}")

    @property
    def model_name(self) -> str:
        return self._config.ai.model_name

    def is_available(self) -> bool:
        """Check if AI is usable without making an API call."""
        return self._client is not None

    def _ensure_available(self) -> None:
        if self._client is None:
            raise AIUnavailableError("no_api_key")

    def _get_safety_settings(self) -> list[types.SafetySetting]:
        """Block only high-probability harms for every category."""
        categories = [
            types.HarmCategory.HARM_CATEGORY_HARASSMENT,
            types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
            types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
            types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
        ]
        return [
            types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_ONLY_HIGH)
            for category in categories
        ]

    def _get_generation_config(
        self,
        system_instruction: str | None,
        **overrides: Any,
    ) -> types.GenerateContentConfig:
        params: dict[str, Any] = {
            "temperature": self._config.ai.temperature,
            "max_output_tokens": self._config.ai.max_output_tokens,
            "safety_settings": self._get_safety_settings(),
        }
        if system_instruction:
            params["system_instruction"] = system_instruction
        params.update(overrides)
        return types.GenerateContentConfig(**params)

    def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        model: str | None = None,
        **overrides: Any,
    ) -> AIResponse:
        """Generate text from a prompt.

        Args:
            prompt: The user content.
            system_instruction: Optional system instruction to guide the model.
            model: Specific model name to use (overrides config).
            **overrides: Per-call GenerateContentConfig fields
                (temperature, response_mime_type, response_schema, ...).

        Returns:
            AIResponse with the generated text and metadata.

        Raises:
            AIUnavailableError: If no API key is configured.
            AIContentBlockedError: If the prompt or the output was blocked.
            AIClientError: For any other failure, after retries.
        """
        self._ensure_available()

        model_name = model or self.model_name
        gen_config = self._get_generation_config(system_instruction, **overrides)
        start_time = time.time()

        try:
            raw_response = self._execute_with_retry(
                self._do_generate,
                model=model_name,
                contents=prompt,
                config=gen_config,
            )
        except AIClientError as e:
            # No prompt content in logs
            self._logger.error(f"Generation failed: {type(e).__name__}: {e.message}")
            raise

        latency_ms = (time.time() - start_time) * 1000

        feedback = getattr(raw_response, "prompt_feedback", None)
        block_reason = _enum_name(getattr(feedback, "block_reason", None)) if feedback else None
        if block_reason:
            raise AIContentBlockedError(
                f"Prompt blocked by safety filters ({block_reason})", blocked_reason=block_reason
            )

        finish_reason = None
        candidates = getattr(raw_response, "candidates", None) or []
        if candidates:
            finish_reason = _enum_name(getattr(candidates[0], "finish_reason", None))
        if finish_reason in BLOCKED_FINISH_REASONS:
            raise AIContentBlockedError(
                f"Response withheld by the model ({finish_reason})", blocked_reason=finish_reason
            )

        usage = getattr(raw_response, "usage_metadata", None)
        response = AIResponse(
            text=raw_response.text or "",
            model=model_name,
            prompt_tokens=_int_or_none(getattr(usage, "prompt_token_count", None)),
            completion_tokens=_int_or_none(getattr(usage, "candidates_token_count", None)),
            total_tokens=_int_or_none(getattr(usage, "total_token_count", None)),
            finish_reason=finish_reason,
            latency_ms=latency_ms,
        )

        self._logger.info(
            f"Generation finished ({finish_reason or 'unknown'}): "
            f"{response.total_tokens or '?'} tokens in {latency_ms:.0f}ms"
        )
        return response

    def generate_structured(
        self,
        prompt: str,
        response_schema: dict[str, Any] | None = None,
        system_instruction: str | None = None,
        **overrides: Any,
    ) -> StructuredResponse:
        """Generate JSON output, optionally constrained by a response schema.

        Parsing failures do not raise; they are reported through
        ``parse_success`` and ``parse_error``.
        """
        overrides["response_mime_type"] = "application/json"
        if response_schema is not None:
            overrides["response_schema"] = response_schema

        response = self.generate(prompt, system_instruction=system_instruction, **overrides)

        data: dict[str, Any] | list[Any] = {}
        parse_success = False
        parse_error: str | None = None

        if not response.text.strip():
            parse_error = "Empty response"
        else:
            try:
                parsed = extract_json_text(response.text)
            except ValueError as e:
                parse_error = f"JSON parse error: {e}"
            else:
                if isinstance(parsed, (dict, list)):
                    data = parsed
                    parse_success = True
                else:
                    parse_error = f"Expected a JSON object, got {type(parsed).__name__}"

        return StructuredResponse(
            data=data,
            raw_text=response.text,
            model=response.model,
            tokens_used=response.total_tokens,
            latency_ms=response.latency_ms,
            finish_reason=response.finish_reason,
            parse_success=parse_success,
            parse_error=parse_error,
        )

    def _do_generate(self, model: str, contents: str, config: types.GenerateContentConfig) -> Any:
        """Execute the actual API call. Wrapped by retry logic."""
        return self._client.models.generate_content(model=model, contents=contents, config=config)

    def _execute_with_retry(
        self,
        func: Callable[..., Any],
        *args: Any,
        max_retries: int | None = None,
        **kwargs: Any,
    ) -> Any:
        """Execute function with retry on transient failures.

        Uses exponential backoff with jitter.

        Raises:
            AIClientError: On a non-retriable failure or after all retries.
        """
        retries = max_retries if max_retries is not None else self._config.ai.max_retries
        base_delay = self._config.ai.retry_base_delay

        for attempt in range(retries + 1):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                mapped_error = self._map_exception(e)
                if mapped_error is not e:
                    mapped_error.__cause__ = e

                if not mapped_error.retriable:
                    raise mapped_error

                if attempt >= retries:
                    self._logger.error(
                        f"Max retries ({retries}) exhausted: {type(mapped_error).__name__}"
                    )
                    raise mapped_error

                delay = min(base_delay * (2**attempt), self.MAX_RETRY_DELAY)
                total_delay = delay + random.uniform(0, 1)

                if isinstance(mapped_error, AIRateLimitError) and mapped_error.retry_after_seconds:
                    total_delay = max(total_delay, mapped_error.retry_after_seconds)

                self._logger.warning(
                    f"Retry {attempt + 1}/{retries} after {total_delay:.1f}s: "
                    f"{type(mapped_error).__name__}"
                )
                time.sleep(total_delay)

        raise AIClientError("Unknown error during retry")

    @staticmethod
    def _retry_after(text: str) -> float | None:
        match = re.search(r"retry(?:delay)?\D{0,12}(\d+(?:\.\d+)?)\s*s", text, re.IGNORECASE)
        return float(match.group(1)) if match else None

    def _map_exception(self, error: Exception) -> AIClientError:
        """Map SDK and transport exceptions to the AIClientError hierarchy."""
        if isinstance(error, AIClientError):
            return error

        error_str = str(error).lower()
        timeout = self._config.ai.timeout_seconds

        if isinstance(error, genai_errors.APIError):
            code = error.code or 0

            if code == 400:
                if "api key" in error_str:
                    return AIAuthError(original_error=error)
                if "token" in error_str and ("limit" in error_str or "exceed" in error_str):
                    return AITokenLimitError(original_error=error)
                return AIBadRequestError(f"Invalid request: {error.message}", original_error=error)
            if code in (401, 403):
                return AIAuthError(original_error=error)
            if code == 404:
                return AIModelNotFoundError(self.model_name, original_error=error)
            if code in (408, 504):
                return AITimeoutError(timeout, original_error=error)
            if code == 429:
                if "billing" in error_str or "per day" in error_str:
                    return AIQuotaExceededError(original_error=error)
                return AIRateLimitError(
                    retry_after_seconds=self._retry_after(str(error)), original_error=error
                )
            if code >= 500:
                return AIServerError(status_code=code, original_error=error)

        if isinstance(error, TimeoutError):
            return AITimeoutError(timeout, original_error=error)

        if isinstance(error, ConnectionError):
            return AINetworkError(original_error=error)

        # Fallback pattern matching on error message and type name
        type_name = type(error).__name__.lower()

        if "blocked" in error_str or "safety" in error_str:
            return AIContentBlockedError(original_error=error)

        if "timeout" in type_name or "timeout" in error_str or "timed out" in error_str:
            return AITimeoutError(timeout, original_error=error)

        if "connect" in type_name or "network" in type_name or "connection" in error_str:
            return AINetworkError(original_error=error)

        if "401" in error_str or "403" in error_str or "unauthorized" in error_str:
            return AIAuthError(original_error=error)

        if "429" in error_str or "rate limit" in error_str:
            return AIRateLimitError(original_error=error)

        if "quota" in error_str or "billing" in error_str:
            return AIQuotaExceededError(original_error=error)

        if "500" in error_str or "502" in error_str or "503" in error_str:
            return AIServerError(original_error=error)

        return AIClientError(str(error), retriable=False, original_error=error)


# =============================================================================
# Module-Level Functions
# =============================================================================


def get_client(config: AppConfig | None = None) -> AIClient:
    """Create a configured AI client.

    Raises:
        AIUnavailableError: If no API key is configured.
    """
    client = AIClient(config=config)
    if not client.is_available():
        raise AIUnavailableError("no_api_key")
    return client
