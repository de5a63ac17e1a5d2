"""Central Pytest Fixtures for RelationScope.

This module provides reusable report payloads, configuration and temporary
storage across all test modules.

Fixtures included:
- Report data: sample_body_dict, sample_body, sample_report, quick_report
- Timeline fragments: make_event, make_phase
- Configuration: app_config, config_file
- Storage: history_path, history_store
"""

import copy
import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from relationscope.config import AppConfig, reset_config
from relationscope.core.assembler import ReportAssembler
from relationscope.core.history import HistoryStore
from relationscope.core.models import AnalysisMode, ReportBody, TimelineEvent, TimelinePhase

REQUEST_TIME = datetime(2024, 6, 10, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Helper Functions
# =============================================================================


def _person(name: str) -> dict:
    return {
        "name": name,
        "oceanScore": {
            "openness": 72,
            "conscientiousness": 58,
            "extraversion": 64,
            "agreeableness": 81,
            "neuroticism": 35,
        },
        "oceanEvidence": {
            "openness": "Suggests new date ideas often.",
            "conscientiousness": "Keeps plans made in chat.",
            "extraversion": "Initiates most group outings.",
            "agreeableness": "Apologizes quickly after conflict.",
            "neuroticism": "Occasional late-night worry spirals.",
        },
        "messagingStyle": {
            "directness": "Mostly direct",
            "roleFlavor": "Caretaker",
            "selfLabeling": "Calls self 'the planner'",
            "boundaryClarity": "Clear about weekday availability",
            "valueEthics": "Honesty first",
        },
    }


def generate_report_body(mode: str = "deep") -> dict:
    """Build a complete, schema-valid report body as the analyzer returns it."""
    return {
        "tldr": "A warm, communicative pair with a rough patch in spring that they repaired.",
        "verdict": {"text": "Healthy with minor friction", "confidence": 78},
        "generalMetrics": [
            {
                "name": "Total Messages",
                "value": "1,284",
                "insight": "High volume suggests strong engagement.",
                "evidence": ["good morning ❤️", "can't wait to see you"],
            },
            {
                "name": "Reciprocity Ratio",
                "value": "52:48",
                "insight": "Effort is balanced.",
                "evidence": ["your turn to pick the movie"],
            },
        ],
        "timeline": [
            {
                "period": "2024-01",
                "phase": "Dating",
                "phaseDescription": "Frequent affectionate messages.",
                "affectionToConflictRatio": "6:1",
                "topicMentions": {
                    "ex": 1,
                    "past": 2,
                    "cheat": 0,
                    "trust": 1,
                    "jealousy": 0,
                    "breakup": 0,
                    "block": 0,
                },
            },
            {
                "period": "2024-03",
                "phase": "Strain",
                "phaseDescription": "Arguments about time together.",
                "affectionToConflictRatio": "2:1",
                "topicMentions": {
                    "ex": 0,
                    "past": 1,
                    "cheat": 0,
                    "trust": 3,
                    "jealousy": 2,
                    "breakup": 1,
                    "block": 0,
                },
            },
        ],
        "personAAnalysis": _person("Person A"),
        "personBAnalysis": _person("Person B"),
        "soloPatterns": [
            {
                "title": "Late-night venting",
                "description": "Person B shares worries after midnight.",
                "evidence": ["can't sleep again"],
            }
        ],
        "coupleDynamics": [
            {
                "title": "Quick repair",
                "description": "Conflicts rarely last more than a day.",
                "evidence": ["sorry about earlier", "me too"],
            }
        ],
        "flags": [
            {"type": "Green", "description": "Consistent apologies", "evidence": ["I was wrong"]},
            {"type": "Red", "description": "Threat to block", "evidence": ["I'll block you"]},
        ],
        "fixingKit": [{"category": "Communication", "items": ["Schedule weekly check-ins"]}],
        "discussionTopics": [
            {"topic": "Weekend plans", "when": "Now", "reason": "Recurring friction point."}
        ],
        "giftAndDateIdeas": ["Sunset picnic", "Pottery class"],
        "finalSnapshot": [
            {"name": "Trust", "value": 72, "emoji": "🔒"},
            {"name": "Love", "value": 85, "emoji": "❤️"},
        ],
        "safetyWarning": {"isTriggered": False, "details": "", "resources": []},
        "analysisMode": mode,
        "privacy": {"anonymize": True},
        "visualizations": {
            "timeOfDay": {"morning": 120, "afternoon": 300, "evening": 540, "night": 324},
            "reciprocity": {
                "personAInitiations": 40,
                "personBInitiations": 37,
                "personAResponseSpeedMinutes": 6,
                "personBResponseSpeedMinutes": 9,
            },
            "visualTimelineEvents": [
                {
                    "date": "2024-01-14",
                    "type": "Positive",
                    "description": "First date",
                    "inference": "Strong mutual interest.",
                    "evidence": "that was amazing",
                },
                {
                    "date": "2024-03-02",
                    "type": "Negative",
                    "description": "Argument about weekend",
                    "inference": "Unmet expectations.",
                    "evidence": "you never make time",
                },
            ],
            "visualTimelinePhases": [
                {"name": "Dating", "startDate": "2024-01-01", "endDate": "2024-02-28"},
                {"name": "Strain", "startDate": "2024-03-01", "endDate": "2024-03-31"},
            ],
        },
    }


def make_event(date: str, type: str = "Positive", description: str = "event") -> TimelineEvent:
    """Helper to build a TimelineEvent."""
    return TimelineEvent(
        date=date, type=type, description=description, inference="-", evidence="-"
    )


def make_phase(name: str, start: str, end: str) -> TimelinePhase:
    """Helper to build a TimelinePhase."""
    return TimelinePhase(name=name, start_date=start, end_date=end)


# =============================================================================
# Report Fixtures
# =============================================================================


@pytest.fixture
def sample_body_dict() -> dict:
    """A fresh, deep-mode report body dict (safe to mutate)."""
    return copy.deepcopy(generate_report_body())


@pytest.fixture
def sample_body(sample_body_dict: dict) -> ReportBody:
    return ReportBody.model_validate(sample_body_dict)


@pytest.fixture
def sample_report(sample_body: ReportBody):
    """An assembled deep-mode report."""
    return ReportAssembler().assemble(
        sample_body, AnalysisMode.DEEP, REQUEST_TIME, file_name="chat.txt", anonymize=True
    )


@pytest.fixture
def quick_report():
    """An assembled quick-mode report."""
    return ReportAssembler().assemble(
        generate_report_body("quick"), AnalysisMode.QUICK, REQUEST_TIME, file_name="quick.txt"
    )


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch):
    """Keep the host environment and earlier logging setup out of every test."""
    monkeypatch.setattr(logging.getLogger("relationscope"), "propagate", True)
    for name in ("GEMINI_API_KEY", "API_KEY"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """AppConfig with every path under tmp_path and fast retries."""
    return AppConfig(
        ai={"retry_base_delay": 0.1, "max_retries": 2, "timeout_seconds": 30},
        paths={
            "data_dir": str(tmp_path / "data"),
            "output_dir": str(tmp_path / "output"),
        },
    )


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """YAML config pointing all state under tmp_path."""
    path = tmp_path / "relationscope.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "paths": {
                    "data_dir": str(tmp_path / "data"),
                    "output_dir": str(tmp_path / "output"),
                },
                "history": {"capacity": 10},
            }
        ),
        encoding="utf-8",
    )
    return path


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def history_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "history.json"


@pytest.fixture
def history_store(history_path: Path) -> HistoryStore:
    return HistoryStore(history_path)
