"""Report data models for RelationScope.

These pydantic models are the single source of truth for the shape of a
relationship diagnostic report. They serve two purposes:

1. ANALYZER CONTRACT: ``ReportBody`` is turned into the response schema that
   constrains Gemini's output (see ``relationscope.core.schema``).
2. PARSE BOUNDARY: the same models validate whatever comes back, so nothing
   downstream ever sees an unvalidated payload.

JSON field names are camelCase (``generalMetrics``, ``personAAnalysis``);
Python attributes are snake_case. Both spellings are accepted on input and
``model_dump(by_alias=True)`` produces the camelCase form used on disk.

Models follow a tiered flow:
1. FRAGMENTS (Verdict, GeneralMetric, TimelineEvent, TimelinePhase, ...)
2. ANALYZER OUTPUT (ReportBody)
3. ASSEMBLED REPORT (ReportMeta + ReportBody = AnalysisReport)
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

NOT_AVAILABLE = "N/A"


# =============================================================================
# Enums
# =============================================================================


class AnalysisMode(str, Enum):
    """Depth of the requested analysis.

    Attributes:
        QUICK: High-level metrics, flags, TL;DR and verdict.
        DEEP: Every parameter, including the monthly timeline tables and the
            visual timeline of events and phases.
    """

    QUICK = "quick"
    DEEP = "deep"


class FlagType(str, Enum):
    """Severity of a relationship flag."""

    GREEN = "Green"
    YELLOW = "Yellow"
    RED = "Red"


class DiscussionTiming(str, Enum):
    """When a discussion topic should be raised."""

    NOW = "Now"
    LATER = "Later"


class TimelineEventType(str, Enum):
    """Category of a point-in-time timeline event."""

    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"
    STOP = "Stop"


# =============================================================================
# Base
# =============================================================================


class SchemaModel(BaseModel):
    """Base for every report model: camelCase aliases, immutable, extra keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


# =============================================================================
# Report Fragments
# =============================================================================


class Verdict(SchemaModel):
    """Overall verdict with a 0-100 confidence."""

    text: str
    confidence: int = Field(ge=0, le=100)


class GeneralMetric(SchemaModel):
    """A single headline metric with its justification.

    ``value`` is free-form: "1,284", "62%" and "Balanced" are all valid.
    """

    name: str
    value: str
    insight: str
    evidence: list[str] = Field(
        min_length=1,
        max_length=3,
        description="1-3 direct quotes from the chat, 25 words or fewer each.",
    )


class TopicMentions(SchemaModel):
    """Per-period counts of sensitive topics."""

    ex: int = Field(ge=0)
    past: int = Field(ge=0)
    cheat: int = Field(ge=0)
    trust: int = Field(ge=0)
    jealousy: int = Field(ge=0)
    breakup: int = Field(ge=0)
    block: int = Field(ge=0)


class TimelineEntry(SchemaModel):
    """One row of the tabular (period-level) timeline."""

    period: str
    phase: str
    phase_description: str
    affection_to_conflict_ratio: str = Field(description='Ratio such as "3:1".')
    topic_mentions: TopicMentions


class OceanScore(SchemaModel):
    """Big Five (OCEAN) personality scores, 0-100 each."""

    openness: int = Field(ge=0, le=100)
    conscientiousness: int = Field(ge=0, le=100)
    extraversion: int = Field(ge=0, le=100)
    agreeableness: int = Field(ge=0, le=100)
    neuroticism: int = Field(ge=0, le=100)


class OceanEvidence(SchemaModel):
    """Free-text justification for each OCEAN score."""

    openness: str
    conscientiousness: str
    extraversion: str
    agreeableness: str
    neuroticism: str


class MessagingStyle(SchemaModel):
    directness: str
    role_flavor: str
    self_labeling: str
    boundary_clarity: str
    value_ethics: str


class PersonAnalysis(SchemaModel):
    """Personality profile of one participant."""

    name: str = Field(
        description='The name of the person, or "Person A" / "Person B" if anonymized.'
    )
    ocean_score: OceanScore
    ocean_evidence: OceanEvidence
    messaging_style: MessagingStyle


class DynamicPattern(SchemaModel):
    """A behavioural pattern of one person (solo) or of the couple."""

    title: str
    description: str
    evidence: list[str] = Field(min_length=1)


class Flag(SchemaModel):
    type: FlagType
    description: str
    evidence: list[str] = Field(min_length=1)


class FixingKitItem(SchemaModel):
    category: str
    items: list[str]


class DiscussionTopic(SchemaModel):
    topic: str
    when: DiscussionTiming
    reason: str


class FinalSnapshotMeter(SchemaModel):
    """Headline percentage meter, e.g. Trust 72% 🔒."""

    name: str
    value: int = Field(ge=0, le=100)
    emoji: str


class SafetyResource(SchemaModel):
    name: str
    contact: str


class SafetyWarning(SchemaModel):
    """Urgent warning block, triggered when signs of abuse are detected."""

    is_triggered: bool
    details: str
    resources: list[SafetyResource]


class PrivacySettings(SchemaModel):
    anonymize: bool


class TimeOfDayDistribution(SchemaModel):
    """Message counts per part of the day."""

    morning: int = Field(ge=0)
    afternoon: int = Field(ge=0)
    evening: int = Field(ge=0)
    night: int = Field(ge=0)

    @property
    def total(self) -> int:
        return self.morning + self.afternoon + self.evening + self.night


class ReciprocityData(SchemaModel):
    """Initiation counts and median response latency per participant."""

    person_a_initiations: int = Field(ge=0)
    person_b_initiations: int = Field(ge=0)
    person_a_response_speed_minutes: int = Field(ge=0)
    person_b_response_speed_minutes: int = Field(ge=0)


class TimelineEvent(SchemaModel):
    """A dated, categorized point-in-time occurrence.

    ``date`` is kept exactly as the analyzer returned it (normally
    ``YYYY-MM-DD``, possibly inferred). It is parsed by the timeline
    reconstructor, not here.
    """

    date: str = Field(description="YYYY-MM-DD")
    type: TimelineEventType
    description: str
    inference: str
    evidence: str = Field(description="A single short quote from the chat.")


class TimelinePhase(SchemaModel):
    """A named, date-ranged segment of the relationship.

    ``start_date <= end_date`` is expected but not enforced.
    """

    name: str = Field(description='Phase label such as "Dating", "Commitment", "Strain".')
    start_date: str = Field(description="YYYY-MM-DD")
    end_date: str = Field(description="YYYY-MM-DD")


class Visualizations(SchemaModel):
    """Raw numbers behind the report's charts and the visual timeline."""

    time_of_day: TimeOfDayDistribution
    reciprocity: ReciprocityData
    visual_timeline_events: list[TimelineEvent]
    visual_timeline_phases: list[TimelinePhase]


# =============================================================================
# Analyzer Output & Assembled Report
# =============================================================================


class ReportBody(SchemaModel):
    """Everything the analyzer returns: an AnalysisReport minus ``meta``."""

    tldr: str = Field(description="A 2-3 line summary of the entire analysis.")
    verdict: Verdict
    general_metrics: list[GeneralMetric]
    timeline: list[TimelineEntry]
    person_a_analysis: PersonAnalysis
    person_b_analysis: PersonAnalysis
    solo_patterns: list[DynamicPattern]
    couple_dynamics: list[DynamicPattern]
    flags: list[Flag]
    fixing_kit: list[FixingKitItem]
    discussion_topics: list[DiscussionTopic]
    gift_and_date_ideas: list[str]
    final_snapshot: list[FinalSnapshotMeter]
    safety_warning: SafetyWarning
    analysis_mode: AnalysisMode
    privacy: PrivacySettings
    visualizations: Visualizations


class ReportMeta(SchemaModel):
    """Metadata attached once at assembly time.

    Attributes:
        id: Unique report token (``rs-<epoch millis>``).
        analysis_date: ISO-8601 UTC timestamp of the request.
        file_name: Name of the analyzed transcript.
        first_message_date: ``period`` of the first tabular timeline row, or "N/A".
        last_message_date: ``period`` of the last tabular timeline row, or "N/A".
    """

    id: str
    analysis_date: str
    file_name: str
    first_message_date: str = NOT_AVAILABLE
    last_message_date: str = NOT_AVAILABLE


class AnalysisReport(ReportBody):
    """A fully assembled, persist-ready report."""

    meta: ReportMeta

    @property
    def events(self) -> list[TimelineEvent]:
        return self.visualizations.visual_timeline_events

    @property
    def phases(self) -> list[TimelinePhase]:
        return self.visualizations.visual_timeline_phases

    def to_json_dict(self) -> dict:
        """Serialize to the camelCase JSON structure used on disk."""
        return self.model_dump(mode="json", by_alias=True)
