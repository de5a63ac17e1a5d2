"""Tests for ReportAssembler."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from relationscope.core.assembler import DEFAULT_FILE_NAME, ReportAssembler
from relationscope.core.errors import SchemaValidationError
from relationscope.core.models import NOT_AVAILABLE, AnalysisMode, ReportBody

from conftest import REQUEST_TIME


class TestAssemble:
    """Tests for ReportAssembler.assemble()."""

    def test_meta_fields(self, sample_body):
        """Test id, date and file name are attached."""
        report = ReportAssembler().assemble(
            sample_body, AnalysisMode.DEEP, REQUEST_TIME, file_name="chat.txt"
        )

        assert report.meta.id == f"rs-{int(REQUEST_TIME.timestamp() * 1000)}"
        assert report.meta.analysis_date == "2024-06-10T12:00:00.000Z"
        assert report.meta.file_name == "chat.txt"

    def test_default_file_name(self, sample_body):
        report = ReportAssembler().assemble(sample_body, AnalysisMode.DEEP, REQUEST_TIME)
        assert report.meta.file_name == DEFAULT_FILE_NAME == "Uploaded Transcript"

    def test_message_dates_from_timeline(self, sample_body):
        """Test first/last message dates come from the tabular timeline periods."""
        report = ReportAssembler().assemble(sample_body, AnalysisMode.DEEP, REQUEST_TIME)

        assert report.meta.first_message_date == "2024-01"
        assert report.meta.last_message_date == "2024-03"

    def test_empty_timeline_gives_not_available(self, sample_body_dict):
        """Test an empty timeline yields N/A for both dates."""
        sample_body_dict["timeline"] = []
        report = ReportAssembler().assemble(sample_body_dict, AnalysisMode.QUICK, REQUEST_TIME)

        assert report.meta.first_message_date == NOT_AVAILABLE
        assert report.meta.last_message_date == NOT_AVAILABLE

    def test_body_fields_preserved(self, sample_body):
        """Test everything but meta, mode and privacy is carried unchanged."""
        report = ReportAssembler().assemble(sample_body, AnalysisMode.DEEP, REQUEST_TIME)

        for name in ReportBody.model_fields:
            assert getattr(report, name) == getattr(sample_body, name)

    def test_mode_is_forced(self, sample_body):
        """Test the requested mode overrides what the analyzer claimed."""
        assert sample_body.analysis_mode is AnalysisMode.DEEP

        report = ReportAssembler().assemble(sample_body, "quick", REQUEST_TIME)
        assert report.analysis_mode is AnalysisMode.QUICK

    def test_anonymize_is_forced_when_given(self, sample_body):
        assembler = ReportAssembler()

        assert assembler.assemble(sample_body, "deep", REQUEST_TIME).privacy.anonymize is True
        report = assembler.assemble(sample_body, "deep", REQUEST_TIME, anonymize=False)
        assert report.privacy.anonymize is False

    def test_accepts_json_text(self, sample_body_dict):
        report = ReportAssembler().assemble(json.dumps(sample_body_dict), "deep", REQUEST_TIME)
        assert report.tldr == sample_body_dict["tldr"]

    def test_invalid_body_rejected(self, sample_body_dict):
        """Test a body that fails the schema is never assembled."""
        del sample_body_dict["flags"]

        with pytest.raises(SchemaValidationError):
            ReportAssembler().assemble(sample_body_dict, "deep", REQUEST_TIME)

    def test_naive_timestamp_treated_as_utc(self, sample_body):
        naive = datetime(2024, 6, 10, 12, 0, 0)
        report = ReportAssembler().assemble(sample_body, "deep", naive)

        assert report.meta.analysis_date == "2024-06-10T12:00:00.000Z"

    def test_to_json_dict_uses_camel_case(self, sample_report):
        data = sample_report.to_json_dict()

        assert data["meta"]["analysisDate"] == "2024-06-10T12:00:00.000Z"
        assert data["meta"]["fileName"] == "chat.txt"
        assert "personAAnalysis" in data


class TestReportIds:
    """Tests for report id uniqueness."""

    def test_same_millisecond_ids_are_distinct(self, sample_body):
        """Test two reports requested in the same millisecond get different ids."""
        assembler = ReportAssembler()

        first = assembler.assemble(sample_body, "deep", REQUEST_TIME)
        second = assembler.assemble(sample_body, "deep", REQUEST_TIME)

        assert first.meta.id != second.meta.id
        assert int(second.meta.id[3:]) == int(first.meta.id[3:]) + 1

    def test_clock_going_backwards(self, sample_body):
        """Test ids keep increasing even if the clock regresses."""
        assembler = ReportAssembler()

        first = assembler.assemble(sample_body, "deep", REQUEST_TIME)
        second = assembler.assemble(sample_body, "deep", REQUEST_TIME - timedelta(seconds=5))

        assert int(second.meta.id[3:]) > int(first.meta.id[3:])

    def test_ids_follow_time(self, sample_body):
        assembler = ReportAssembler()
        later = REQUEST_TIME + timedelta(seconds=1)

        first = assembler.assemble(sample_body, "deep", REQUEST_TIME)
        second = assembler.assemble(sample_body, "deep", later.astimezone(timezone.utc))

        assert int(second.meta.id[3:]) - int(first.meta.id[3:]) == 1000
