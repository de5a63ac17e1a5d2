"""
HTML Report Generator - Render an AnalysisReport as a self-contained page.

The page is deterministic for a given report: no scripts, no external
assets, no generation timestamp. Sections are rendered individually with
Jinja2 and assembled into the base template in a fixed order.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from jinja2 import Environment

from relationscope.core.models import AnalysisMode, AnalysisReport, FlagType, TimelineEventType
from relationscope.core.timeline import TimelineReconstructor

logger = logging.getLogger(__name__)

# Icon and colour per event type
EVENT_STYLES: Dict[TimelineEventType, Dict[str, str]] = {
    TimelineEventType.POSITIVE: {"icon": "✅", "color": "#16a34a", "label": "Positive"},
    TimelineEventType.NEGATIVE: {"icon": "❌", "color": "#dc2626", "label": "Negative"},
    TimelineEventType.NEUTRAL: {"icon": "⚠️", "color": "#ca8a04", "label": "Neutral"},
    TimelineEventType.STOP: {"icon": "⏸️", "color": "#4b5563", "label": "Stop"},
}

# Colour band per phase, keyed by the first word of the phase name
PHASE_COLORS: Dict[str, Dict[str, str]] = {
    "default": {"border": "#fda4af", "background": "#ffe4e6", "text": "#be123c"},
    "dating": {"border": "#f9a8d4", "background": "#fce7f3", "text": "#be185d"},
    "commitment": {"border": "#fca5a5", "background": "#fee2e2", "text": "#b91c1c"},
    "strain": {"border": "#fde047", "background": "#fef9c3", "text": "#a16207"},
    "repair": {"border": "#86efac", "background": "#dcfce7", "text": "#15803d"},
    "conflict": {"border": "#fdba74", "background": "#ffedd5", "text": "#c2410c"},
}

FLAG_COLORS: Dict[FlagType, str] = {
    FlagType.GREEN: "#16a34a",
    FlagType.YELLOW: "#ca8a04",
    FlagType.RED: "#dc2626",
}

EMPTY_TIMELINE_MESSAGE = "Not enough data to generate a timeline."

OCEAN_TRAITS = ["openness", "conscientiousness", "extraversion", "agreeableness", "neuroticism"]
TOPIC_KEYS = ["ex", "past", "cheat", "trust", "jealousy", "breakup", "block"]


# =============================================================================
# EMBEDDED CSS
# =============================================================================

EMBEDDED_CSS = """
:root {
    --primary: #e11d48;
    --primary-dark: #9f1239;
    --bg-primary: #ffffff;
    --bg-secondary: #fff1f2;
    --text-primary: #4c0519;
    --text-secondary: #881337;
    --border: #fecdd3;
    --radius: 12px;
}
* { margin: 0; padding: 0; box-sizing: border-box; }
body {
    font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, "Helvetica Neue", Arial, sans-serif;
    background: var(--bg-secondary);
    color: var(--text-primary);
    line-height: 1.6;
}
.container { max-width: 1100px; margin: 0 auto; padding: 2rem; }
header { text-align: center; padding: 2rem 0 1rem; }
h1 { font-size: 2.25rem; color: var(--primary-dark); font-family: Georgia, serif; }
h2 { font-size: 1.5rem; color: var(--primary-dark); margin-bottom: 1rem; }
h3 { font-size: 1.1rem; margin: 0.75rem 0 0.5rem; }
section {
    background: var(--bg-primary);
    border: 1px solid var(--border);
    border-radius: var(--radius);
    padding: 1.5rem;
    margin-bottom: 1.5rem;
}
.subtitle { color: var(--text-secondary); }
.badge {
    display: inline-block;
    padding: 0.2rem 0.75rem;
    border-radius: 999px;
    background: var(--bg-secondary);
    border: 1px solid var(--border);
    font-size: 0.85rem;
    margin: 0.25rem;
}
.safety-warning { background: #fee2e2; border: 2px solid #dc2626; }
.safety-warning h2 { color: #991b1b; }
.verdict { font-size: 1.2rem; font-weight: 600; margin-top: 0.75rem; }
.meters { display: grid; grid-template-columns: repeat(auto-fit, minmax(180px, 1fr)); gap: 1rem; }
.meter { text-align: center; padding: 1rem; border: 1px solid var(--border); border-radius: var(--radius); }
.meter-value { font-size: 2rem; font-weight: 700; color: var(--primary); }
.meter-bar { height: 8px; background: var(--border); border-radius: 4px; overflow: hidden; }
.meter-fill { height: 100%; background: var(--primary); }
.metric { border-left: 4px solid var(--primary); padding-left: 1rem; margin-bottom: 1rem; }
blockquote { font-style: italic; color: var(--text-secondary); margin: 0.25rem 0 0.25rem 1rem; }
table { width: 100%; border-collapse: collapse; margin-top: 0.5rem; }
th, td { border: 1px solid var(--border); padding: 0.4rem 0.6rem; text-align: left; }
th { background: var(--bg-secondary); }
.timeline { border-left: 2px solid var(--border); padding-left: 1.25rem; }
.timeline-item { margin-bottom: 1rem; }
.timeline-date { font-size: 0.85rem; color: var(--text-secondary); }
.timeline-phase { border-left: 4px solid; padding: 0.5rem 0.75rem; border-radius: 6px; }
.timeline-invalid { color: #991b1b; font-size: 0.9rem; }
.flag { margin-bottom: 0.75rem; }
.columns { display: grid; grid-template-columns: 1fr 1fr; gap: 1.5rem; }
.empty { color: var(--text-secondary); font-style: italic; }
"""


# =============================================================================
# TEMPLATES
# =============================================================================

BASE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }} - {{ report.meta.id }}</title>
    <style>{{ css | safe }}</style>
</head>
<body>
<main class="container">
{% for section in sections %}
<!-- section:{{ section.id }} -->
{{ section.content | safe }}
{% endfor %}
</main>
</body>
</html>
"""

HEADER_TEMPLATE = """
<header>
    <h1>{{ title }}</h1>
    <p class="subtitle">{{ report.meta.file_name }}</p>
    <div>
        <span class="badge">{{ report.analysis_mode.value | title }} Analysis</span>
        <span class="badge">Analyzed {{ report.meta.analysis_date }}</span>
        <span class="badge">{{ report.meta.first_message_date }} &rarr; {{ report.meta.last_message_date }}</span>
        {% if report.privacy.anonymize %}<span class="badge">Names anonymized</span>{% endif %}
    </div>
</header>
"""

SAFETY_TEMPLATE = """
<section class="safety-warning" id="safety">
    <h2>🚨 Urgent Safety Warning</h2>
    <p>{{ warning.details }}</p>
    {% if warning.resources %}
    <ul>
        {% for resource in warning.resources %}
        <li><strong>{{ resource.name }}</strong>: {{ resource.contact }}</li>
        {% endfor %}
    </ul>
    {% endif %}
</section>
"""

SUMMARY_TEMPLATE = """
<section id="summary">
    <h2>TL;DR</h2>
    <p>{{ report.tldr }}</p>
    <p class="verdict">Verdict: {{ report.verdict.text }}</p>
    <p class="subtitle">Confidence: {{ report.verdict.confidence }}%</p>
</section>
"""

SNAPSHOT_TEMPLATE = """
<section id="snapshot">
    <h2>Final Snapshot</h2>
    <div class="meters">
        {% for meter in meters %}
        <div class="meter">
            <div>{{ meter.emoji }} {{ meter.name }}</div>
            <div class="meter-value">{{ meter.value }}%</div>
            <div class="meter-bar"><div class="meter-fill" style="width: {{ meter.value }}%"></div></div>
        </div>
        {% endfor %}
    </div>
</section>
"""

METRICS_TEMPLATE = """
<section id="metrics">
    <h2>General Metrics</h2>
    {% for metric in metrics %}
    <div class="metric">
        <h3>{{ metric.name }}: {{ metric.value }}</h3>
        <p>{{ metric.insight }}</p>
        {% for quote in metric.evidence %}<blockquote>&ldquo;{{ quote }}&rdquo;</blockquote>{% endfor %}
    </div>
    {% endfor %}
</section>
"""

PERSONALITY_TEMPLATE = """
<section id="personality">
    <h2>Personality Analysis (OCEAN)</h2>
    <table>
        <tr><th>Trait</th><th>{{ person_a.name }}</th><th>{{ person_b.name }}</th></tr>
        {% for trait in traits %}
        <tr>
            <td>{{ trait | title }}</td>
            <td>{{ person_a.ocean_score[trait] }} <div class="subtitle">{{ person_a.ocean_evidence[trait] }}</div></td>
            <td>{{ person_b.ocean_score[trait] }} <div class="subtitle">{{ person_b.ocean_evidence[trait] }}</div></td>
        </tr>
        {% endfor %}
    </table>
    <div class="columns">
        {% for person in [person_a, person_b] %}
        <div>
            <h3>{{ person.name }}'s Style</h3>
            <ul>
                <li><strong>Directness:</strong> {{ person.messaging_style.directness }}</li>
                <li><strong>Role flavor:</strong> {{ person.messaging_style.role_flavor }}</li>
                <li><strong>Self-labeling:</strong> {{ person.messaging_style.self_labeling }}</li>
                <li><strong>Boundary clarity:</strong> {{ person.messaging_style.boundary_clarity }}</li>
                <li><strong>Value ethics:</strong> {{ person.messaging_style.value_ethics }}</li>
            </ul>
        </div>
        {% endfor %}
    </div>
</section>
"""

COMMUNICATION_TEMPLATE = """
<section id="communication">
    <h2>Communication Patterns</h2>
    <div class="columns">
        <div>
            <h3>Time of Day Distribution</h3>
            <table>
                {% for label, count in time_of_day %}
                <tr><td>{{ label }}</td><td>{{ count }}</td><td>{{ "%.0f" | format(100 * count / total if total else 0) }}%</td></tr>
                {% endfor %}
            </table>
        </div>
        <div>
            <h3>Reciprocity</h3>
            <table>
                <tr><th></th><th>{{ person_a }}</th><th>{{ person_b }}</th></tr>
                <tr><td>Initiations</td><td>{{ reciprocity.person_a_initiations }}</td><td>{{ reciprocity.person_b_initiations }}</td></tr>
                <tr><td>Response speed (min)</td><td>{{ reciprocity.person_a_response_speed_minutes }}</td><td>{{ reciprocity.person_b_response_speed_minutes }}</td></tr>
            </table>
        </div>
    </div>
</section>
"""

TIMELINE_TEMPLATE = """
<section id="timeline">
    <h2>Relationship Timeline</h2>
    {% if not entries %}
    <p class="empty">{{ empty_message }}</p>
    {% else %}
    <div class="timeline">
        {% for entry in entries %}
        {% if entry.is_event %}
        <div class="timeline-item timeline-event" data-type="{{ entry.source.type.value }}">
            <div class="timeline-date">{{ entry.source.date }}</div>
            <div style="color: {{ entry.style.color }}"><span class="icon">{{ entry.style.icon }}</span> <strong>{{ entry.source.description }}</strong></div>
            <p>{{ entry.source.inference }}</p>
            <blockquote>&ldquo;{{ entry.source.evidence }}&rdquo;</blockquote>
        </div>
        {% else %}
        <div class="timeline-item timeline-phase" style="border-color: {{ entry.style.border }}; background: {{ entry.style.background }}; color: {{ entry.style.text }}">
            <div class="timeline-date">{{ entry.source.start_date }} &rarr; {{ entry.source.end_date }}{% if entry.is_inverted %} (dates inverted){% endif %}</div>
            <strong>Phase Change: {{ entry.source.name }}</strong>
        </div>
        {% endif %}
        {% endfor %}
    </div>
    {% endif %}
    {% if errors %}
    <div class="timeline-invalid">
        <h3>Items with invalid dates</h3>
        <ul>{% for error in errors %}<li>{{ error }}</li>{% endfor %}</ul>
    </div>
    {% endif %}
</section>
"""

TABULAR_TIMELINE_TEMPLATE = """
<section id="timeline-table">
    <h2>Timeline by Period</h2>
    <table>
        <tr>
            <th>Period</th><th>Phase</th><th>Affection:Conflict</th>
            {% for topic in topics %}<th>{{ topic | title }}</th>{% endfor %}
        </tr>
        {% for row in rows %}
        <tr>
            <td>{{ row.period }}</td>
            <td><strong>{{ row.phase }}</strong><div class="subtitle">{{ row.phase_description }}</div></td>
            <td>{{ row.affection_to_conflict_ratio }}</td>
            {% for topic in topics %}<td>{{ row.topic_mentions[topic] }}</td>{% endfor %}
        </tr>
        {% endfor %}
    </table>
</section>
"""

PATTERNS_TEMPLATE = """
<section id="patterns">
    <h2>Patterns</h2>
    <div class="columns">
        {% for heading, patterns in groups %}
        <div>
            <h3>{{ heading }}</h3>
            {% for pattern in patterns %}
            <div class="metric">
                <strong>{{ pattern.title }}</strong>
                <p>{{ pattern.description }}</p>
                {% for quote in pattern.evidence %}<blockquote>&ldquo;{{ quote }}&rdquo;</blockquote>{% endfor %}
            </div>
            {% else %}
            <p class="empty">None observed.</p>
            {% endfor %}
        </div>
        {% endfor %}
    </div>
</section>
"""

FLAGS_TEMPLATE = """
<section id="flags">
    <h2>Flags &amp; Observations</h2>
    {% for flag_type, flags, color in groups %}
    <h3 style="color: {{ color }}">{{ flag_type.value }} Flags</h3>
    {% for flag in flags %}
    <div class="flag">
        <p>{{ flag.description }}</p>
        {% for quote in flag.evidence %}<blockquote>&ldquo;{{ quote }}&rdquo;</blockquote>{% endfor %}
    </div>
    {% else %}
    <p class="empty">None.</p>
    {% endfor %}
    {% endfor %}
</section>
"""

FIXING_KIT_TEMPLATE = """
<section id="fixing-kit">
    <h2>Fixing Kit &amp; Scripts</h2>
    {% for kit in kits %}
    <h3>{{ kit.category }}</h3>
    <ul>{% for item in kit.items %}<li>{{ item }}</li>{% endfor %}</ul>
    {% endfor %}
    {% if topics %}
    <h3>Discussion Topics</h3>
    <table>
        <tr><th>Topic</th><th>When</th><th>Why</th></tr>
        {% for topic in topics %}
        <tr><td>{{ topic.topic }}</td><td>{{ topic.when.value }}</td><td>{{ topic.reason }}</td></tr>
        {% endfor %}
    </table>
    {% endif %}
</section>
"""

IDEAS_TEMPLATE = """
<section id="ideas">
    <h2>Gift &amp; Date Ideas</h2>
    <ul>{% for idea in ideas %}<li>{{ idea }}</li>{% endfor %}</ul>
</section>
"""


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass
class ReportConfig:
    """Configuration for HTML report generation."""

    title: str = "Relationship Diagnostic Report"
    include_timeline: bool = True
    custom_css: Optional[str] = None


@dataclass
class ReportSection:
    """A section of the report."""

    id: str
    title: str
    content: str
    order: int
    visible: bool = True


@dataclass
class TimelineDisplayItem:
    """A merged timeline item with its display style."""

    source: Any
    style: Dict[str, str]
    is_event: bool
    is_inverted: bool = False


def phase_style(name: str) -> Dict[str, str]:
    """Colour band for a phase, keyed by the first word of its name."""
    words = name.lower().split()
    key = words[0] if words else "default"
    return PHASE_COLORS.get(key, PHASE_COLORS["default"])


def visible_sections(report: AnalysisReport, include_timeline: bool = True) -> List[Tuple[str, str]]:
    """
    Return ``(section_id, title)`` for every section shown for ``report``.

    The order is the display order shared by the HTML page and the PDF
    export. Timeline sections are shown for deep reports only.
    """
    is_deep = report.analysis_mode == AnalysisMode.DEEP
    candidates = [
        ("header", "Header", True),
        ("safety", "Urgent Safety Warning", report.safety_warning.is_triggered),
        ("summary", "TL;DR", True),
        ("snapshot", "Final Snapshot", True),
        ("metrics", "General Metrics", True),
        ("personality", "Personality Analysis (OCEAN)", True),
        ("communication", "Communication Patterns", True),
        ("timeline", "Relationship Timeline", is_deep and include_timeline),
        ("timeline-table", "Timeline by Period", is_deep and bool(report.timeline)),
        ("patterns", "Patterns", True),
        ("flags", "Flags & Observations", True),
        ("fixing-kit", "Fixing Kit & Scripts", True),
        ("ideas", "Gift & Date Ideas", bool(report.gift_and_date_ideas)),
    ]
    return [(section_id, title) for section_id, title, visible in candidates if visible]


# =============================================================================
# HTML REPORT GENERATOR
# =============================================================================


class HTMLReportGenerator:
    """
    Generates self-contained HTML pages from AnalysisReport data.

    Deep-mode reports additionally get the merged relationship timeline and
    the per-period timeline table.
    """

    def __init__(self, config: Optional[ReportConfig] = None) -> None:
        self._config = config or ReportConfig()
        self._env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self._timeline = TimelineReconstructor()

    def generate(self, report: AnalysisReport, output_path: Optional[Path] = None) -> str:
        """
        Generate the HTML report.

        Args:
            report: The assembled report
            output_path: Optional path to write HTML file

        Returns:
            HTML string
        """
        logger.info(f"Generating HTML report for {report.meta.id}")

        context = self._build_context(report)
        sections = self._render_all_sections(report)
        html_output = self._assemble_html(sections, context)

        if output_path:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(html_output, encoding="utf-8")
            logger.info(f"Report written to {output_path}")

        return html_output

    def generate_to_file(self, report: AnalysisReport, output_path: Path) -> Path:
        self.generate(report, output_path=output_path)
        return Path(output_path)

    def _build_context(self, report: AnalysisReport) -> Dict[str, Any]:
        return {
            "title": self._config.title,
            "css": EMBEDDED_CSS + (self._config.custom_css or ""),
            "report": report,
        }

    def _render(self, template: str, **context: Any) -> str:
        return self._env.from_string(template).render(**context)

    def _render_all_sections(self, report: AnalysisReport) -> List[ReportSection]:
        """Render the visible report sections in display order."""
        renderers: Dict[str, Callable[[AnalysisReport], str]] = {
            "header": self._render_header,
            "safety": self._render_safety_warning,
            "summary": self._render_summary,
            "snapshot": self._render_snapshot,
            "metrics": self._render_metrics,
            "personality": self._render_personality,
            "communication": self._render_communication,
            "timeline": self._render_timeline,
            "timeline-table": self._render_tabular_timeline,
            "patterns": self._render_patterns,
            "flags": self._render_flags,
            "fixing-kit": self._render_fixing_kit,
            "ideas": self._render_ideas,
        }
        return [
            ReportSection(section_id, title, renderers[section_id](report), order=order)
            for order, (section_id, title) in enumerate(
                visible_sections(report, include_timeline=self._config.include_timeline)
            )
        ]

    def _render_header(self, report: AnalysisReport) -> str:
        return self._render(HEADER_TEMPLATE, title=self._config.title, report=report)

    def _render_safety_warning(self, report: AnalysisReport) -> str:
        return self._render(SAFETY_TEMPLATE, warning=report.safety_warning)

    def _render_summary(self, report: AnalysisReport) -> str:
        return self._render(SUMMARY_TEMPLATE, report=report)

    def _render_snapshot(self, report: AnalysisReport) -> str:
        return self._render(SNAPSHOT_TEMPLATE, meters=report.final_snapshot)

    def _render_metrics(self, report: AnalysisReport) -> str:
        return self._render(METRICS_TEMPLATE, metrics=report.general_metrics)

    def _render_personality(self, report: AnalysisReport) -> str:
        return self._render(
            PERSONALITY_TEMPLATE,
            person_a=report.person_a_analysis,
            person_b=report.person_b_analysis,
            traits=OCEAN_TRAITS,
        )

    def _render_communication(self, report: AnalysisReport) -> str:
        tod = report.visualizations.time_of_day
        return self._render(
            COMMUNICATION_TEMPLATE,
            time_of_day=[
                ("Morning", tod.morning),
                ("Afternoon", tod.afternoon),
                ("Evening", tod.evening),
                ("Night", tod.night),
            ],
            total=tod.total,
            reciprocity=report.visualizations.reciprocity,
            person_a=report.person_a_analysis.name,
            person_b=report.person_b_analysis.name,
        )

    def _render_timeline(self, report: AnalysisReport) -> str:
        """Render the merged events/phases timeline with invalid items listed separately."""
        items, errors = self._timeline.merge_valid(report.events, report.phases)
        entries = [
            TimelineDisplayItem(
                source=item.source,
                style=EVENT_STYLES[item.source.type] if item.is_event else phase_style(item.source.name),
                is_event=item.is_event,
                is_inverted=item.is_inverted,
            )
            for item in items
        ]
        return self._render(
            TIMELINE_TEMPLATE,
            entries=entries,
            errors=[str(error) for error in errors],
            empty_message=EMPTY_TIMELINE_MESSAGE,
        )

    def _render_tabular_timeline(self, report: AnalysisReport) -> str:
        return self._render(
            TABULAR_TIMELINE_TEMPLATE,
            rows=report.timeline,
            topics=TOPIC_KEYS,
        )

    def _render_patterns(self, report: AnalysisReport) -> str:
        return self._render(
            PATTERNS_TEMPLATE,
            groups=[("Solo Patterns", report.solo_patterns), ("Couple Dynamics", report.couple_dynamics)],
        )

    def _render_flags(self, report: AnalysisReport) -> str:
        groups = [
            (flag_type, [f for f in report.flags if f.type == flag_type], FLAG_COLORS[flag_type])
            for flag_type in FlagType
        ]
        return self._render(FLAGS_TEMPLATE, groups=groups)

    def _render_fixing_kit(self, report: AnalysisReport) -> str:
        return self._render(
            FIXING_KIT_TEMPLATE, kits=report.fixing_kit, topics=report.discussion_topics
        )

    def _render_ideas(self, report: AnalysisReport) -> str:
        return self._render(IDEAS_TEMPLATE, ideas=report.gift_and_date_ideas)

    def _assemble_html(self, sections: List[ReportSection], context: Dict[str, Any]) -> str:
        visible = sorted((s for s in sections if s.visible), key=lambda s: s.order)
        return self._render(BASE_TEMPLATE, sections=visible, **context)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def generate_report(
    report: AnalysisReport,
    output_path: Path,
    config: Optional[ReportConfig] = None,
) -> Path:
    """Generate HTML report and write to file."""
    generator = HTMLReportGenerator(config=config)
    return generator.generate_to_file(report, output_path)


def generate_report_string(
    report: AnalysisReport,
    config: Optional[ReportConfig] = None,
) -> str:
    """Generate HTML report as string without writing to file."""
    generator = HTMLReportGenerator(config=config)
    return generator.generate(report)
