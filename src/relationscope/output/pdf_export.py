"""Raster PDF export of a report.

The report is laid out as text on a single page of fixed width whose height
grows with the content, then saved as ``RelationScope_Report_<id>.pdf``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from relationscope.core.models import AnalysisReport, FlagType
from relationscope.core.timeline import TimelineReconstructor
from relationscope.output.html_report import (
    EMPTY_TIMELINE_MESSAGE,
    OCEAN_TRAITS,
    TOPIC_KEYS,
    visible_sections,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_WIDTH = 1240
MARGIN = 60
LINE_SPACING = 1.35
RESOLUTION_DPI = 150.0

BACKGROUND = (255, 241, 242)
STYLES = {
    "title": (40, (159, 18, 57)),
    "heading": (30, (159, 18, 57)),
    "body": (20, (76, 5, 25)),
    "quote": (18, (136, 19, 55)),
    "warning": (22, (153, 27, 27)),
}


@dataclass
class TextBlock:
    text: str
    style: str = "body"
    indent: int = 0


def pdf_file_name(report: AnalysisReport) -> str:
    return f"RelationScope_Report_{report.meta.id}.pdf"


def _timeline_blocks(report: AnalysisReport) -> list[TextBlock]:
    items, errors = TimelineReconstructor().merge_valid(report.events, report.phases)
    blocks = [] if items else [TextBlock(EMPTY_TIMELINE_MESSAGE, "quote")]
    for item in items:
        source = item.source
        if item.is_event:
            blocks.append(
                TextBlock(f"{source.date} [{source.type.value}] {source.description}", indent=1)
            )
            blocks.append(TextBlock(source.inference, indent=2))
            blocks.append(TextBlock(f'"{source.evidence}"', "quote", indent=2))
        else:
            inverted = " (dates inverted)" if item.is_inverted else ""
            blocks.append(
                TextBlock(
                    f"{source.start_date} to {source.end_date}{inverted} Phase Change: {source.name}",
                    indent=1,
                )
            )
    for error in errors:
        blocks.append(TextBlock(str(error), "warning", indent=1))
    return blocks


def _section_blocks(report: AnalysisReport, section_id: str) -> list[TextBlock]:
    """Body blocks of one report section, without its heading."""
    blocks: list[TextBlock] = []

    if section_id == "header":
        blocks.append(
            TextBlock(
                f"{report.meta.file_name} | {report.analysis_mode.value.title()} analysis | "
                f"{report.meta.first_message_date} to {report.meta.last_message_date}"
            )
        )
        blocks.append(TextBlock(f"Analyzed {report.meta.analysis_date}", "quote"))

    elif section_id == "safety":
        blocks.append(TextBlock(report.safety_warning.details, "warning"))
        for resource in report.safety_warning.resources:
            blocks.append(TextBlock(f"{resource.name}: {resource.contact}", "warning", indent=1))

    elif section_id == "summary":
        blocks.append(TextBlock(report.tldr))
        blocks.append(
            TextBlock(f"Verdict: {report.verdict.text} ({report.verdict.confidence}% confidence)")
        )

    elif section_id == "snapshot":
        for meter in report.final_snapshot:
            blocks.append(TextBlock(f"{meter.name}: {meter.value}%", indent=1))

    elif section_id == "metrics":
        for metric in report.general_metrics:
            blocks.append(TextBlock(f"{metric.name}: {metric.value}"))
            blocks.append(TextBlock(metric.insight, indent=1))
            for quote in metric.evidence:
                blocks.append(TextBlock(f'"{quote}"', "quote", indent=2))

    elif section_id == "personality":
        for person in (report.person_a_analysis, report.person_b_analysis):
            blocks.append(TextBlock(person.name))
            for trait in OCEAN_TRAITS:
                score = getattr(person.ocean_score, trait)
                evidence = getattr(person.ocean_evidence, trait)
                blocks.append(TextBlock(f"{trait.title()}: {score}", indent=1))
                blocks.append(TextBlock(evidence, "quote", indent=2))
            style = person.messaging_style
            blocks.append(TextBlock(f"{person.name}'s Style", indent=1))
            for label, value in (
                ("Directness", style.directness),
                ("Role flavor", style.role_flavor),
                ("Self-labeling", style.self_labeling),
                ("Boundary clarity", style.boundary_clarity),
                ("Value ethics", style.value_ethics),
            ):
                blocks.append(TextBlock(f"{label}: {value}", indent=2))

    elif section_id == "communication":
        tod = report.visualizations.time_of_day
        blocks.append(TextBlock("Time of Day Distribution"))
        for label, count in (
            ("Morning", tod.morning),
            ("Afternoon", tod.afternoon),
            ("Evening", tod.evening),
            ("Night", tod.night),
        ):
            share = round(100 * count / tod.total) if tod.total else 0
            blocks.append(TextBlock(f"{label}: {count} ({share}%)", indent=1))
        rec = report.visualizations.reciprocity
        names = (report.person_a_analysis.name, report.person_b_analysis.name)
        blocks.append(TextBlock("Reciprocity"))
        blocks.append(
            TextBlock(
                f"Initiations: {names[0]} {rec.person_a_initiations}, "
                f"{names[1]} {rec.person_b_initiations}",
                indent=1,
            )
        )
        blocks.append(
            TextBlock(
                f"Response speed (min): {names[0]} {rec.person_a_response_speed_minutes}, "
                f"{names[1]} {rec.person_b_response_speed_minutes}",
                indent=1,
            )
        )

    elif section_id == "timeline":
        blocks.extend(_timeline_blocks(report))

    elif section_id == "timeline-table":
        for row in report.timeline:
            blocks.append(
                TextBlock(
                    f"{row.period}: {row.phase} "
                    f"(affection:conflict {row.affection_to_conflict_ratio})"
                )
            )
            blocks.append(TextBlock(row.phase_description, indent=1))
            mentions = ", ".join(
                f"{topic} {getattr(row.topic_mentions, topic)}" for topic in TOPIC_KEYS
            )
            blocks.append(TextBlock(f"Topic mentions: {mentions}", "quote", indent=1))

    elif section_id == "patterns":
        for heading, patterns in (
            ("Solo Patterns", report.solo_patterns),
            ("Couple Dynamics", report.couple_dynamics),
        ):
            blocks.append(TextBlock(heading))
            if not patterns:
                blocks.append(TextBlock("None observed.", "quote", indent=1))
            for pattern in patterns:
                blocks.append(TextBlock(f"{pattern.title}: {pattern.description}", indent=1))
                for quote in pattern.evidence:
                    blocks.append(TextBlock(f'"{quote}"', "quote", indent=2))

    elif section_id == "flags":
        for flag_type in FlagType:
            flags = [flag for flag in report.flags if flag.type == flag_type]
            blocks.append(TextBlock(f"{flag_type.value} Flags"))
            if not flags:
                blocks.append(TextBlock("None.", "quote", indent=1))
            for flag in flags:
                blocks.append(TextBlock(flag.description, indent=1))
                for quote in flag.evidence:
                    blocks.append(TextBlock(f'"{quote}"', "quote", indent=2))

    elif section_id == "fixing-kit":
        for kit in report.fixing_kit:
            blocks.append(TextBlock(kit.category))
            for item in kit.items:
                blocks.append(TextBlock(f"- {item}", indent=1))
        if report.discussion_topics:
            blocks.append(TextBlock("Discussion Topics"))
            for topic in report.discussion_topics:
                blocks.append(TextBlock(f"{topic.topic} ({topic.when.value})", indent=1))
                blocks.append(TextBlock(topic.reason, "quote", indent=2))

    elif section_id == "ideas":
        for idea in report.gift_and_date_ideas:
            blocks.append(TextBlock(f"- {idea}", indent=1))

    return blocks


def build_blocks(report: AnalysisReport) -> list[TextBlock]:
    """Flatten a report into styled text blocks, section by section as the HTML page shows them."""
    blocks = [TextBlock("Relationship Diagnostic Report", "title")]
    for section_id, title in visible_sections(report):
        if section_id != "header":
            blocks.append(TextBlock(title, "heading"))
        blocks.extend(_section_blocks(report, section_id))
    return blocks


class PDFExporter:
    """Draw report text onto one raster page and save it as PDF."""

    def __init__(self, page_width: int = DEFAULT_PAGE_WIDTH) -> None:
        self.page_width = page_width
        self._fonts: dict[int, ImageFont.ImageFont | ImageFont.FreeTypeFont] = {}

    def _font(self, size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
        if size not in self._fonts:
            self._fonts[size] = ImageFont.load_default(size=size)
        return self._fonts[size]

    def _wrap(self, draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> list[str]:
        lines: list[str] = []
        for paragraph in text.splitlines() or [""]:
            current = ""
            for word in paragraph.split():
                candidate = f"{current} {word}".strip()
                if current and draw.textlength(candidate, font=font) > max_width:
                    lines.append(current)
                    current = word
                else:
                    current = candidate
            lines.append(current)
        return lines

    def _layout(self, blocks: list[TextBlock]) -> list[tuple[int, int, str, str]]:
        """Return (x, y, text, style) for every line plus the total height as last y."""
        scratch = ImageDraw.Draw(Image.new("RGB", (1, 1)))
        placed: list[tuple[int, int, str, str]] = []
        y = MARGIN
        for block in blocks:
            size, _ = STYLES[block.style]
            font = self._font(size)
            x = MARGIN + block.indent * 30
            if block.style in ("heading", "title") and placed:
                y += size
            for line in self._wrap(scratch, block.text, font, self.page_width - x - MARGIN):
                placed.append((x, y, line, block.style))
                y += int(size * LINE_SPACING)
        placed.append((0, y + MARGIN, "", "body"))
        return placed

    def render(self, report: AnalysisReport) -> Image.Image:
        placed = self._layout(build_blocks(report))
        height = placed[-1][1]
        image = Image.new("RGB", (self.page_width, height), BACKGROUND)
        draw = ImageDraw.Draw(image)
        for x, y, text, style in placed[:-1]:
            size, color = STYLES[style]
            draw.text((x, y), text, fill=color, font=self._font(size))
        return image

    def export(self, report: AnalysisReport, output_dir: Path) -> Path:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / pdf_file_name(report)

        image = self.render(report)
        image.save(path, "PDF", resolution=RESOLUTION_DPI)
        logger.info(f"PDF written to {path} ({image.width}x{image.height}px)")
        return path


def export_pdf(
    report: AnalysisReport, output_dir: Path, page_width: int = DEFAULT_PAGE_WIDTH
) -> Path:
    """Export ``report`` as ``RelationScope_Report_<id>.pdf`` under ``output_dir``."""
    return PDFExporter(page_width=page_width).export(report, output_dir)
