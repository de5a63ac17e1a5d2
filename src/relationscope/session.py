"""Analysis session: analyze, assemble and record one report at a time.

Example:
    >>> session = AnalysisSession(TranscriptAnalyzer(), HistoryStore(path))
    >>> report = session.run(chat_text, mode="deep", anonymize=True, file_name="chat.txt")
    >>> report.meta.id
    'rs-1718000000000'
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Protocol

from relationscope.core.assembler import DEFAULT_FILE_NAME, ReportAssembler
from relationscope.core.errors import AnalysisInProgressError
from relationscope.core.history import HistoryStore
from relationscope.core.models import AnalysisMode, AnalysisReport, ReportBody

logger = logging.getLogger(__name__)


class Analyzer(Protocol):
    def analyze(self, transcript: str, mode: AnalysisMode | str, anonymize: bool) -> ReportBody:
        ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisSession:
    """Single-flight coordinator for the analyze -> assemble -> record flow.

    A second ``run`` while one is in progress is rejected with
    ``AnalysisInProgressError`` rather than queued. A failed analysis is
    neither assembled nor added to history.

    Attributes:
        history: The store successful reports are appended to.
    """

    def __init__(
        self,
        analyzer: Analyzer,
        history: HistoryStore,
        clock: Callable[[], datetime] = _utc_now,
        assembler: ReportAssembler | None = None,
    ) -> None:
        self._analyzer = analyzer
        self.history = history
        self._clock = clock
        self._assembler = assembler or ReportAssembler()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def run(
        self,
        transcript: str,
        mode: AnalysisMode | str = AnalysisMode.DEEP,
        anonymize: bool = True,
        file_name: str = DEFAULT_FILE_NAME,
    ) -> AnalysisReport:
        """Analyze ``transcript`` and record the assembled report.

        Raises:
            AnalysisInProgressError: If another run is active on this session.
            AnalysisError: Any failure from the analyzer, unchanged.
            HistoryWriteError: The report was produced but could not be saved.
        """
        if not self._lock.acquire(blocking=False):
            raise AnalysisInProgressError("Rejected analysis request: another analysis is running")

        try:
            mode = AnalysisMode(mode)
            requested_at = self._clock()
            body = self._analyzer.analyze(transcript, mode, anonymize)
            report = self._assembler.assemble(
                body, mode, requested_at, file_name=file_name, anonymize=anonymize
            )
            self.history.append(report)
            return report
        finally:
            self._lock.release()
