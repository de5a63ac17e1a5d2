"""Tests for AnalysisSession: single-flight analysis and history recording."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest

from relationscope.core.errors import (
    AnalysisInProgressError,
    HistoryWriteError,
    SchemaValidationError,
    TransportError,
)
from relationscope.core.history import HistoryStore
from relationscope.core.models import AnalysisMode
from relationscope.session import AnalysisSession

from conftest import REQUEST_TIME


@pytest.fixture
def mock_analyzer(sample_body):
    analyzer = MagicMock()
    analyzer.analyze.return_value = sample_body
    return analyzer


@pytest.fixture
def session(mock_analyzer, history_store) -> AnalysisSession:
    return AnalysisSession(mock_analyzer, history_store, clock=lambda: REQUEST_TIME)


class TestRun:
    """Tests for AnalysisSession.run()."""

    def test_success_records_report(self, session, history_store, mock_analyzer):
        report = session.run("A: hi", mode="quick", anonymize=False, file_name="chat.txt")

        mock_analyzer.analyze.assert_called_once_with("A: hi", AnalysisMode.QUICK, False)
        assert report.meta.file_name == "chat.txt"
        assert report.analysis_mode is AnalysisMode.QUICK
        assert report.privacy.anonymize is False
        assert history_store.list() == [report]

    def test_timestamp_from_clock(self, session):
        report = session.run("A: hi")
        assert report.meta.analysis_date == "2024-06-10T12:00:00.000Z"

    def test_consecutive_runs_get_distinct_ids(self, session, history_store):
        first = session.run("A: hi")
        second = session.run("A: hi again")

        assert first.meta.id != second.meta.id
        assert [r.meta.id for r in history_store] == [second.meta.id, first.meta.id]

    @pytest.mark.parametrize(
        "error",
        [TransportError("down"), SchemaValidationError("bad shape")],
    )
    def test_failure_not_recorded(self, session, history_store, mock_analyzer, error):
        """Test a failed analysis is neither assembled nor persisted."""
        mock_analyzer.analyze.side_effect = error

        with pytest.raises(type(error)):
            session.run("A: hi")

        assert len(history_store) == 0
        assert not session.is_running

    def test_lock_released_after_failure(self, session, mock_analyzer, sample_body):
        mock_analyzer.analyze.side_effect = [TransportError("down"), sample_body]

        with pytest.raises(TransportError):
            session.run("A: hi")

        assert session.run("A: hi").meta.id.startswith("rs-")

    def test_history_write_failure(self, session, history_store):
        """Test a report that cannot be saved surfaces a history error and is not kept."""
        with patch("relationscope.core.history.tempfile.mkstemp", side_effect=OSError("disk full")):
            with pytest.raises(HistoryWriteError):
                session.run("A: hi")

        assert len(history_store) == 0
        assert not session.is_running


class TestSingleFlight:
    """Tests for rejecting a concurrent submission."""

    def test_second_run_rejected(self, history_path, sample_body):
        """Test a run started while another is in progress raises immediately."""
        started = threading.Event()
        release = threading.Event()

        def slow_analyze(transcript, mode, anonymize):
            started.set()
            release.wait(timeout=5)
            return sample_body

        analyzer = MagicMock()
        analyzer.analyze.side_effect = slow_analyze
        store = HistoryStore(history_path)
        session = AnalysisSession(analyzer, store, clock=lambda: REQUEST_TIME)

        results = []
        worker = threading.Thread(target=lambda: results.append(session.run("A: hi")))
        worker.start()
        try:
            assert started.wait(timeout=5)
            assert session.is_running

            with pytest.raises(AnalysisInProgressError) as exc_info:
                session.run("A: second")
            assert "already running" in exc_info.value.user_message
        finally:
            release.set()
            worker.join(timeout=5)

        assert len(results) == 1
        assert len(store) == 1
        assert analyzer.analyze.call_count == 1
        assert not session.is_running
