"""Assemble analyzer output into a persist-ready AnalysisReport."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from relationscope.core.models import (
    NOT_AVAILABLE,
    AnalysisMode,
    AnalysisReport,
    PrivacySettings,
    ReportBody,
    ReportMeta,
)
from relationscope.core.schema import parse_report_body

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "Uploaded Transcript"
REPORT_ID_PREFIX = "rs-"


def _to_epoch_millis(timestamp: datetime) -> int:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return int(timestamp.timestamp() * 1000)


def _to_iso(timestamp: datetime) -> str:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class ReportAssembler:
    """Attach metadata to a validated report body.

    The assembler has no persistence side effects. It owns the id sequence:
    ids are ``rs-<epoch millis>`` of the request timestamp, bumped forward when
    two reports would otherwise share (or go back on) a millisecond, so every
    id issued by one assembler is strictly greater than the previous one.

    Example:
        >>> assembler = ReportAssembler()
        >>> report = assembler.assemble(body, AnalysisMode.DEEP, datetime.now(timezone.utc))
        >>> report.meta.id
        'rs-1718000000000'
    """

    def __init__(self) -> None:
        self._last_millis: int | None = None

    def _next_id(self, request_timestamp: datetime) -> str:
        millis = _to_epoch_millis(request_timestamp)
        if self._last_millis is not None and millis <= self._last_millis:
            millis = self._last_millis + 1
        self._last_millis = millis
        return f"{REPORT_ID_PREFIX}{millis}"

    def assemble(
        self,
        raw_body: ReportBody | dict[str, Any] | str,
        mode: AnalysisMode | str,
        request_timestamp: datetime,
        file_name: str = DEFAULT_FILE_NAME,
        anonymize: bool | None = None,
    ) -> AnalysisReport:
        """Build the final report.

        Args:
            raw_body: Analyzer output. Dicts and JSON text are validated first.
            mode: The requested analysis mode; always overrides the body's value.
            request_timestamp: When the analysis was requested.
            file_name: Name recorded in ``meta.fileName``.
            anonymize: The requested privacy flag; overrides the body's value
                when given.

        Returns:
            The assembled AnalysisReport.

        Raises:
            SchemaValidationError: If ``raw_body`` is not a valid report body.
        """
        body = raw_body if isinstance(raw_body, ReportBody) else parse_report_body(raw_body)
        mode = AnalysisMode(mode)

        if body.analysis_mode != mode:
            logger.debug(f"Overriding analysis mode {body.analysis_mode.value} -> {mode.value}")

        privacy = body.privacy
        if anonymize is not None and privacy.anonymize != anonymize:
            privacy = PrivacySettings(anonymize=anonymize)

        timeline = body.timeline
        meta = ReportMeta(
            id=self._next_id(request_timestamp),
            analysis_date=_to_iso(request_timestamp),
            file_name=file_name or DEFAULT_FILE_NAME,
            first_message_date=timeline[0].period if timeline else NOT_AVAILABLE,
            last_message_date=timeline[-1].period if timeline else NOT_AVAILABLE,
        )

        fields = {name: getattr(body, name) for name in ReportBody.model_fields}
        fields.update(analysis_mode=mode, privacy=privacy, meta=meta)
        report = AnalysisReport(**fields)

        logger.info(f"Assembled report {meta.id} ({mode.value} mode)")
        return report
