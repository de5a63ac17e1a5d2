"""
Command Line Interface for RelationScope.

This module provides the user interface for running relationship diagnostics
on chat transcripts, browsing the report history and exporting reports.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.prompt import Confirm
from rich.table import Table

from relationscope import __version__
from relationscope.ai.analyzer import TranscriptAnalyzer
from relationscope.config import AppConfig, APIKeyNotFoundError, get_api_key, get_config, load_config
from relationscope.core.errors import AnalysisError, HistoryWriteError
from relationscope.core.history import HistoryStore
from relationscope.core.models import AnalysisMode, AnalysisReport
from relationscope.core.timeline import TimelineReconstructor
from relationscope.output.html_report import EMPTY_TIMELINE_MESSAGE, ReportConfig, generate_report
from relationscope.output.pdf_export import export_pdf
from relationscope.session import AnalysisSession
from relationscope.utils.logging import setup_logging

logger = logging.getLogger(__name__)

console = Console()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def print_header(text: str) -> None:
    """Print styled header."""
    console.print(f"\n[bold magenta]{text}[/bold magenta]\n")


def print_success(text: str) -> None:
    """Print green success message."""
    console.print(f"[bold green]✓[/bold green] {text}")


def print_warning(text: str) -> None:
    """Print yellow warning message."""
    console.print(f"[bold yellow]⚠[/bold yellow] {text}")


def print_error(text: str) -> None:
    """Print red error message."""
    console.print(f"[bold red]✗[/bold red] {text}")


def print_info_panel(title: str, content: str, border_style: str = "magenta") -> None:
    """Print info panel box."""
    console.print(Panel(content, title=title, border_style=border_style))


def confirm(prompt: str, default: bool = False) -> bool:
    """Prompt for yes/no confirmation."""
    return Confirm.ask(prompt, default=default, console=console)


def create_progress() -> Progress:
    """Create the spinner shown while an analysis runs."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def print_report_summary(report: AnalysisReport) -> None:
    """Print the headline of a report."""
    meta = report.meta
    content = (
        f"[bold]ID:[/bold] {meta.id}\n"
        f"[bold]File:[/bold] {escape(meta.file_name)}\n"
        f"[bold]Mode:[/bold] {report.analysis_mode.value}\n"
        f"[bold]Analyzed:[/bold] {meta.analysis_date}\n"
        f"[bold]Messages:[/bold] {escape(meta.first_message_date)} to {escape(meta.last_message_date)}\n\n"
        f"{escape(report.tldr)}\n\n"
        f"[bold]Verdict:[/bold] {escape(report.verdict.text)} "
        f"({report.verdict.confidence}% confidence)"
    )
    print_info_panel("Relationship Diagnostic", content)

    if report.safety_warning.is_triggered:
        resources = "\n".join(
            f"• {escape(r.name)}: {escape(r.contact)}" for r in report.safety_warning.resources
        )
        print_info_panel(
            "Urgent Safety Warning",
            f"{escape(report.safety_warning.details)}\n\n{resources}".strip(),
            border_style="red",
        )


def _config(ctx: click.Context) -> AppConfig:
    return ctx.obj["config"]


def _history(ctx: click.Context) -> HistoryStore:
    cfg = _config(ctx)
    return HistoryStore(cfg.history_path, capacity=cfg.history.capacity, namespace=cfg.history.namespace)


def _get_report(ctx: click.Context, report_id: str) -> AnalysisReport:
    report = _history(ctx).get(report_id)
    if report is None:
        print_error(f"No report with ID {escape(report_id)} in history")
        sys.exit(1)
    return report


def _write_json(report: AnalysisReport, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_json_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def _default_html_path(cfg: AppConfig, report: AnalysisReport) -> Path:
    return cfg.paths.output_dir / f"RelationScope_Report_{report.meta.id}.html"


# =============================================================================
# MAIN CLI GROUP
# =============================================================================


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Custom config file")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.version_option(__version__, prog_name="RelationScope")
@click.pass_context
def cli(ctx, verbose, debug, config_path, quiet):
    """
    RelationScope - Relationship diagnostics for chat transcripts.

    Sends a chat export to Gemini and turns the answer into a structured
    report with metrics, personality profiles, flags and a relationship
    timeline.
    """
    cfg = load_config(config_path) if config_path else get_config()
    debug = debug or cfg.debug
    verbose = verbose or cfg.verbose

    if debug:
        level = "DEBUG"
    elif quiet:
        level = "ERROR"
    elif verbose:
        level = "INFO"
    else:
        level = "WARNING"
    log_file = cfg.paths.log_dir / "relationscope.log" if debug and cfg.paths.log_dir else None
    setup_logging(level=level, log_file=log_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["quiet"] = quiet


# =============================================================================
# ANALYZE COMMAND - Main workflow
# =============================================================================


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--mode",
    type=click.Choice([m.value for m in AnalysisMode]),
    default=AnalysisMode.DEEP.value,
    show_default=True,
    help="Quick covers headline metrics; deep adds timeline and personality detail",
)
@click.option("--anonymize/--no-anonymize", default=True, show_default=True, help="Replace names with Person A/B")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="HTML report path")
@click.option("--pdf", "also_pdf", is_flag=True, help="Also export a PDF to the output directory")
@click.option("--json", "json_path", type=click.Path(dir_okay=False, path_type=Path), help="Also write the report JSON")
@click.pass_context
def analyze(ctx, file, mode, anonymize, output, also_pdf, json_path):
    """
    Analyze a chat transcript and generate a report.

    The report is saved to history, written as HTML and optionally exported
    as PDF and JSON.

    Example:
        relationscope analyze chat.txt --mode quick -o report.html
    """
    cfg = _config(ctx)
    quiet = ctx.obj.get("quiet")
    if not quiet:
        print_header("💞 RelationScope")

    transcript = file.read_text(encoding="utf-8", errors="replace")
    session = AnalysisSession(TranscriptAnalyzer(config=cfg), _history(ctx))

    try:
        with create_progress() as progress:
            progress.add_task(f"Running {mode} analysis of {escape(file.name)}...", total=None)
            report = session.run(transcript, mode=mode, anonymize=anonymize, file_name=file.name)
    except AnalysisError as e:
        logger.debug(f"Analysis failed: {e.message}")
        if ctx.obj.get("debug"):
            logger.exception("Analysis failure details")
        print_error(e.user_message)
        sys.exit(1)
    except HistoryWriteError as e:
        logger.debug(str(e))
        print_error(f"Could not save the report to history: {escape(str(e.path))}")
        sys.exit(1)

    print_success(f"Analysis complete: {report.meta.id}")
    if not quiet:
        print_report_summary(report)

    html_path = output or _default_html_path(cfg, report)
    generate_report(report, html_path, ReportConfig(title=cfg.report.title))
    print_success(f"HTML report saved to: [bold cyan]{escape(str(html_path))}[/bold cyan]")

    if also_pdf:
        pdf_path = export_pdf(report, cfg.paths.output_dir, page_width=cfg.report.page_width)
        print_success(f"PDF saved to: [bold cyan]{escape(str(pdf_path))}[/bold cyan]")

    if json_path:
        _write_json(report, json_path)
        print_success(f"JSON saved to: [bold cyan]{escape(str(json_path))}[/bold cyan]")


# =============================================================================
# HISTORY GROUP
# =============================================================================


@cli.group()
def history():
    """Browse and manage saved reports."""
    pass


@history.command("list")
@click.pass_context
def history_list(ctx):
    """List saved reports, newest first."""
    reports = _history(ctx).list()
    if not reports:
        print_warning("No reports in history")
        return

    table = Table(title="Report History")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Analyzed", no_wrap=True)
    table.add_column("File")
    table.add_column("Mode")
    table.add_column("Verdict")

    for report in reports:
        table.add_row(
            report.meta.id,
            report.meta.analysis_date[:10],
            escape(report.meta.file_name),
            report.analysis_mode.value,
            escape(report.verdict.text),
        )

    console.print(table)


@history.command("show")
@click.argument("report_id")
@click.pass_context
def history_show(ctx, report_id):
    """Show the summary of a saved report."""
    print_report_summary(_get_report(ctx, report_id))


@history.command("clear")
@click.option("--force", is_flag=True, help="Skip confirmation")
@click.pass_context
def history_clear(ctx, force):
    """Remove every saved report."""
    store = _history(ctx)
    if not force and not confirm(f"Remove {len(store)} saved report(s)?"):
        return

    try:
        store.clear()
    except HistoryWriteError as e:
        print_error(f"Could not clear history: {escape(str(e.path))}")
        sys.exit(1)
    print_success("History cleared")


# =============================================================================
# TIMELINE COMMAND
# =============================================================================


@cli.command()
@click.argument("report_id")
@click.pass_context
def timeline(ctx, report_id):
    """Show the merged event/phase timeline of a saved report."""
    report = _get_report(ctx, report_id)
    items, errors = TimelineReconstructor().merge_valid(report.events, report.phases)

    if not items:
        print_warning(EMPTY_TIMELINE_MESSAGE)
    else:
        table = Table(title=f"Relationship Timeline - {report.meta.id}")
        table.add_column("Date", style="cyan", no_wrap=True)
        table.add_column("Kind")
        table.add_column("Type / Phase")
        table.add_column("Description")

        for item in items:
            source = item.source
            if item.is_event:
                table.add_row(source.date, "event", source.type.value, escape(source.description))
            else:
                span = f"{source.start_date} → {source.end_date}"
                name = escape(source.name) + (" (inverted)" if item.is_inverted else "")
                table.add_row(span, "phase", name, "")

        console.print(table)

    for error in errors:
        print_warning(escape(str(error)))


# =============================================================================
# EXPORT COMMAND
# =============================================================================


@cli.command()
@click.argument("report_id")
@click.option("--format", "fmt", type=click.Choice(["html", "pdf", "json"]), default="html", show_default=True)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="File path (html, json) or directory (pdf); defaults to the output directory",
)
@click.pass_context
def export(ctx, report_id, fmt, output):
    """
    Export a saved report.

    Example:
        relationscope export rs-1718000000000 --format pdf -o ./exports
    """
    cfg = _config(ctx)
    report = _get_report(ctx, report_id)

    if fmt == "html":
        path = generate_report(report, output or _default_html_path(cfg, report), ReportConfig(title=cfg.report.title))
    elif fmt == "pdf":
        path = export_pdf(report, output or cfg.paths.output_dir, page_width=cfg.report.page_width)
    else:
        path = _write_json(report, output or cfg.paths.output_dir / f"RelationScope_Report_{report.meta.id}.json")

    print_success(f"Exported {fmt.upper()} to: [bold cyan]{escape(str(path))}[/bold cyan]")


# =============================================================================
# CONFIG GROUP
# =============================================================================


@cli.group()
def config():
    """Inspect configuration settings."""
    pass


@config.command()
@click.pass_context
def show(ctx):
    """Display current configuration."""
    cfg = _config(ctx)
    print_header("Current Configuration")

    try:
        get_api_key()
        key_status = "[CONFIGURED]"
    except APIKeyNotFoundError:
        key_status = "[NOT SET]"

    table = Table(title="Settings")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("AI Provider", "Google Gemini")
    table.add_row("API Key", escape(key_status))
    table.add_row("Model", cfg.ai.model_name)
    table.add_row("Temperature", str(cfg.ai.temperature))
    table.add_row("Timeout (s)", str(cfg.ai.timeout_seconds))
    table.add_row("Max transcript chars", f"{cfg.ai.max_transcript_chars:,}")
    table.add_row("History capacity", str(cfg.history.capacity))
    table.add_row("History file", escape(str(cfg.history_path)))
    table.add_row("Output dir", escape(str(cfg.paths.output_dir)))

    console.print(table)


# =============================================================================
# VERSION COMMAND
# =============================================================================


@cli.command()
def version():
    """Show version and system information."""
    print_header("RelationScope")

    console.print(f"Version: [bold]{__version__}[/bold]")
    console.print(f"Python: {sys.version.split()[0]}")


def main():
    """Entry point for the console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
