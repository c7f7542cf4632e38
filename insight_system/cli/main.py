"""Command-line interface for the project insight system using Typer and Rich."""

import asyncio
import sys
import uuid
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from insight_system import __version__
from insight_system.api.project_service import ProjectInsightService
from insight_system.config.logging import configure_logging, get_logger
from insight_system.config.sections import get_section_display_name
from insight_system.config.settings import settings
from insight_system.data_management.repository import Storage
from insight_system.parsers.weather_file import read_weather_text
from insight_system.utils.confidence import format_confidence
from insight_system.utils.logging import configure_structured_logging

app = typer.Typer(
    help="Project Insight System CLI - fact extraction, reconciliation and consolidation",
    add_completion=False,
)

console = Console()

logger = get_logger("cli")

ProjectOption = typer.Option(..., "--project", "-p", help="Project identifier")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="console or json"),
) -> None:
    """Adjust logging before any command runs."""
    if not (verbose or log_format):
        return
    level = "DEBUG" if verbose else None
    configure_logging(level, log_format)
    configure_structured_logging(level, log_format)


def _service(project: str) -> ProjectInsightService:
    return ProjectInsightService(project, Storage.open(settings.data_dir))


@app.command()
def status() -> None:
    """Display configuration and stored projects."""
    table = Table(title="Insight System Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", width=20)
    table.add_column("Status", style="green", width=15)
    table.add_column("Details", style="yellow")

    python_version = f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    table.add_row("Environment", "✓ Ready", python_version)

    api_status = "✓ Configured" if settings.gemini_api_key else "⚠ Not Configured"
    table.add_row(
        "Gemini API",
        api_status,
        f"{settings.gemini_model} (RPM: {settings.max_rpm}, TPM: {settings.max_tpm:,})",
    )

    geo_status = "✓ Configured" if settings.geocoding_api_key else "✗ Disabled"
    table.add_row("Geocoding", geo_status, settings.geocoding_base_url)

    table.add_row(
        "Reconciliation",
        "✓ Active",
        f"{settings.reconciliation_strategy} (exact > {settings.exact_match_threshold}, "
        f"near > {settings.near_match_threshold})",
    )

    projects = asyncio.run(Storage.open(settings.data_dir).fact_store.list_projects())
    table.add_row("Storage", "✓ Active", f"{settings.data_dir} ({len(projects)} projects)")

    table.add_row("Logging", "✓ Active", f"Level: {settings.log_level}, Format: {settings.log_format}")

    console.print(table)


@app.command()
def ingest(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Plain-text document"),
    project: str = ProjectOption,
    document_type: str = typer.Option("GENERAL", "--type", "-t", help="Document type, e.g. FEASIBILITY_STUDY"),
    document_id: Optional[str] = typer.Option(None, "--document-id", help="Defaults to a new UUID"),
    reconcile: bool = typer.Option(False, "--reconcile", help="Reconcile each fact on ingest"),
) -> None:
    """Extract facts from a document and store them in the project."""
    text = file.read_text(encoding="utf-8", errors="replace")
    doc_id = document_id or str(uuid.uuid4())
    logger.info(f"Ingesting {file.name} into {project}")

    with console.status(f"Extracting facts from {file.name}..."):
        stats = asyncio.run(
            _service(project).ingest(doc_id, text, document_type, file.name, reconcile_on_ingest=reconcile)
        )

    if stats.skipped:
        console.print(f"[yellow]Document [bold]{doc_id}[/bold] was already ingested; nothing to do[/yellow]")
        return

    console.print(f"[green]✓[/green] Document [bold]{doc_id}[/bold]: {stats.candidates} candidate facts")
    console.print(
        f"  inserted {stats.inserted}, updated {stats.updated}, conflicts {stats.conflicts} "
        f"({stats.duration_seconds:.2f}s)"
    )
    if stats.failed_passes:
        console.print(f"[yellow]⚠ Failed extraction passes: {', '.join(stats.failed_passes)}[/yellow]")


@app.command()
def consolidate(project: str = ProjectOption) -> None:
    """Run the consolidation pipeline with live progress."""
    service = _service(project)

    async def run() -> str:
        terminal = "failed"
        with Progress(
            TextColumn("[bold cyan]{task.fields[stage]:<12}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Starting...", total=100, stage="starting")
            async for event in service.consolidate_stream():
                progress.update(task, completed=event.percent, description=event.message, stage=event.stage)
                if event.is_terminal:
                    terminal = event.stage
        return terminal

    terminal = asyncio.run(run())
    if terminal == "failed":
        console.print("[red]✗ Consolidation failed[/red]")
        raise typer.Exit(1)
    console.print("[green]✓ Consolidation complete[/green]")


@app.command()
def facts(project: str = ProjectOption) -> None:
    """List live facts grouped by section."""
    grouped = asyncio.run(_service(project).facts_by_section())
    if not grouped:
        console.print(f"[dim]No facts stored for {project}[/dim]")
        return

    for section, section_facts in grouped.items():
        table = Table(title=get_section_display_name(section), show_header=True, header_style="bold magenta")
        table.add_column("Key", style="cyan")
        table.add_column("Statement")
        table.add_column("Conf.", justify="right", style="green")
        table.add_column("Sources", justify="right")
        table.add_column("Method", style="dim")
        for fact in section_facts:
            flag = " ⚠" if fact.conflict_id else ""
            table.add_row(
                fact.canonical_key,
                fact.statement + flag,
                format_confidence(fact.confidence),
                str(len(fact.source_document_ids)),
                fact.extraction_method,
            )
        console.print(table)


@app.command()
def conflicts(project: str = ProjectOption) -> None:
    """List pending conflicts with both sides."""
    views = asyncio.run(_service(project).pending_conflicts())
    if not views:
        console.print(f"[green]✓ No pending conflicts for {project}[/green]")
        return

    table = Table(title="Pending Conflicts", show_header=True, header_style="bold magenta")
    table.add_column("Conflict", style="cyan", no_wrap=True)
    table.add_column("Type", style="yellow")
    table.add_column("Fact A")
    table.add_column("Fact B")
    for view in views:
        table.add_row(
            view.conflict_id,
            view.conflict_type,
            f"{view.fact_a.statement}\n[dim]{format_confidence(view.fact_a.confidence)} · {view.fact_a.source_count} docs[/dim]",
            f"{view.fact_b.statement}\n[dim]{format_confidence(view.fact_b.confidence)} · {view.fact_b.source_count} docs[/dim]",
        )
    console.print(table)


@app.command()
def resolve(
    conflict_id: str = typer.Argument(..., help="Conflict to resolve"),
    action: str = typer.Argument(..., help="accept_a, accept_b, merge or ignore"),
    project: str = ProjectOption,
    text: Optional[str] = typer.Option(None, "--text", help="Merged statement (required for merge)"),
) -> None:
    """Resolve a pending conflict."""
    outcome = asyncio.run(_service(project).resolve(conflict_id, action, text))
    if not outcome.success:
        console.print(f"[red]✗[/red] {outcome.reason}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Conflict {conflict_id} {outcome.reason}")


@app.command()
def weather(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="PVGIS CSV, EPW or hourly CSV"),
    project: str = ProjectOption,
) -> None:
    """Upload a weather file; it is parsed during the next consolidation."""
    content = read_weather_text(file.read_bytes())
    weather_file = asyncio.run(_service(project).add_weather_file(file.name, content))
    console.print(f"[green]✓[/green] Stored weather file {file.name} ({weather_file.id})")


@app.command()
def narratives(project: str = ProjectOption) -> None:
    """Show the synthesized narrative of each section."""
    texts = asyncio.run(_service(project).narratives())
    if not texts:
        console.print(f"[dim]No narratives for {project}; run consolidate first[/dim]")
        return
    for section, text in texts.items():
        console.print(Panel(text, title=get_section_display_name(section), border_style="green"))


@app.command()
def readiness(project: str = ProjectOption) -> None:
    """Check whether the project has the inputs a performance simulation needs."""
    report = asyncio.run(_service(project).readiness())
    if report.ready:
        console.print("[green]✓ Ready for performance validation[/green]")
    else:
        console.print(f"[yellow]⚠ {report.reason}[/yellow]")


@app.command()
def version() -> None:
    """Display version information."""
    console.print("[bold]Project Insight System[/bold]")
    console.print(f"Version: {__version__}")


if __name__ == "__main__":
    app()
