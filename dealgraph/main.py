"""
Deal Graph Intelligence CLI

Command-line interface for building the relationship graph from CRM data
and reporting on influence and deal health.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.table import Table

# Initialize console for rich output
console = Console()


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure logging with rich handler."""
    handlers = [RichHandler(console=console, show_path=False)]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


def source_options(func):
    """Options that choose where graph data comes from."""
    func = click.option(
        "--sample",
        is_flag=True,
        help="Use the built-in sample accounts instead of real data",
    )(func)
    func = click.option(
        "--hubspot",
        is_flag=True,
        help="Fetch records from the HubSpot backend configured in config.yaml",
    )(func)
    func = click.option(
        "--provider",
        type=click.Choice(["native", "hubspot"]),
        default=None,
        help="Field layout of the export files (default from config)",
    )(func)
    func = click.option(
        "--input", "-i",
        "input_dir",
        default=None,
        type=click.Path(exists=True, file_okay=False, dir_okay=True),
        help="Directory containing CRM export files",
    )(func)
    return func


def _load_graph(
    config,
    input_dir: Optional[str],
    provider: Optional[str],
    hubspot: bool,
    sample: bool,
):
    """Build a graph from the chosen source, exiting on failure."""
    from dealgraph.graph import RelationshipGraph
    from dealgraph.pipeline.fixtures import sample_batch
    from dealgraph.pipeline.ingest import load_crm_export
    from dealgraph.providers.hubspot import HubSpotSource

    chosen = sum([bool(input_dir), hubspot, sample])
    if chosen != 1:
        console.print("[red]Choose exactly one of --input, --hubspot or --sample[/red]")
        sys.exit(1)

    if sample:
        batch = sample_batch()
    else:
        if hubspot:
            settings = config.importer.hubspot

            async def fetch():
                source = HubSpotSource(
                    base_url=settings.get("base_url"),
                    api_key=settings.get("api_key") or None,
                    timeout=config.enrichment.timeout_seconds,
                    page_size=int(settings.get("page_size", 100)),
                    include_interactions=bool(settings.get("include_interactions", True)),
                )
                try:
                    return await source.fetch()
                finally:
                    await source.close()

            result = asyncio.run(fetch())
        else:
            result = load_crm_export(input_dir, provider=provider or config.importer.provider)

        if not result.ok:
            console.print(f"  [red]✗[/red] Failed to load data: {result.error}")
            sys.exit(1)
        batch = result.batch

    graph = RelationshipGraph.from_config(config)
    summary = graph.load(batch)
    return graph, batch, summary


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool) -> None:
    """Deal Graph Intelligence - Map buying committees and spot deals at risk."""
    ctx.ensure_object(dict)

    if verbose:
        ctx.obj["log_level"] = "DEBUG"
    elif quiet:
        ctx.obj["log_level"] = "WARNING"
    else:
        ctx.obj["log_level"] = "INFO"

    setup_logging(ctx.obj["log_level"])


@cli.command()
@source_options
@click.option(
    "--output", "-o",
    "output_dir",
    default=None,
    type=click.Path(file_okay=False, dir_okay=True),
    help="Output directory for reports",
)
@click.option(
    "--format", "-f",
    "formats",
    multiple=True,
    type=click.Choice(["csv", "markdown", "json"]),
    default=["csv", "markdown", "json"],
    help="Output formats to generate",
)
@click.option(
    "--enrich/--no-enrich",
    default=None,
    help="Enrich contacts from the profile provider (default from config)",
)
@click.option(
    "--no-cache",
    is_flag=True,
    help="Disable enrichment lookup caching",
)
@click.pass_context
def process(
    ctx: click.Context,
    input_dir: Optional[str],
    provider: Optional[str],
    hubspot: bool,
    sample: bool,
    output_dir: Optional[str],
    formats: tuple[str, ...],
    enrich: Optional[bool],
    no_cache: bool,
) -> None:
    """Build the graph, score contacts and generate reports."""
    from dealgraph.pipeline.enrich import EnrichmentPipeline
    from dealgraph.pipeline.outputs import OutputGenerator
    from dealgraph.utils.cache import EnrichmentCache
    from dealgraph.utils.config import load_config

    config = load_config()
    enrich = config.enrichment.enabled if enrich is None else enrich

    console.print("\n[bold blue]Deal Graph Intelligence[/bold blue]")
    console.print("=" * 50)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        # Load data
        task = progress.add_task("Loading CRM records...", total=None)
        graph, batch, summary = _load_graph(config, input_dir, provider, hubspot, sample)
        progress.update(task, completed=True)
        console.print(
            f"  [green]✓[/green] Imported {summary.contacts} contacts, {summary.accounts} accounts, "
            f"{summary.deals} deals, {summary.interactions} interactions"
        )
        if summary.dropped or summary.skipped_rows:
            console.print(
                f"  [yellow]![/yellow] Dropped {summary.dropped} unresolved references, "
                f"skipped {summary.skipped_rows} malformed rows"
            )

        # Enrichment
        if enrich:
            task = progress.add_task("Enriching contacts...", total=100)
            cache = EnrichmentCache(
                cache_path=config.cache.path,
                ttl_days=config.cache.ttl_days,
                max_size_mb=config.cache.max_size_mb,
                enabled=config.cache.enabled and not no_cache,
            )

            async def run_enrichment():
                pipeline = EnrichmentPipeline(
                    provider_name=config.enrichment.provider,
                    cache=cache,
                    scorer=graph.scorer,
                    batch_size=config.enrichment.batch_size,
                    base_url=config.enrichment.base_url,
                    api_key=config.enrichment.get_api_key(),
                    timeout=config.enrichment.timeout_seconds,
                )

                def progress_cb(current, total):
                    progress.update(task, completed=int(current / total * 100))

                try:
                    return await pipeline.enrich_contacts(graph.store, progress_callback=progress_cb)
                finally:
                    await pipeline.provider.close()

            try:
                results = asyncio.run(run_enrichment())
            finally:
                cache.close()
            progress.update(task, completed=100)
            console.print(
                f"  [green]✓[/green] Enriched {sum(r.enriched for r in results)} contacts, "
                f"{sum(r.suggestions_added for r in results)} suggested relationships"
            )
        else:
            console.print("  [yellow]![/yellow] Skipping profile enrichment")

        # Deal health
        task = progress.add_task("Analyzing deal health...", total=None)
        report = graph.analyze_deals()
        progress.update(task, completed=True)
        console.print(
            f"  [green]✓[/green] {len(report.hot_leads)} hot leads, {len(report.risks)} risks"
        )

        # Generate outputs
        task = progress.add_task("Generating reports...", total=None)
        generator = OutputGenerator(
            output_dir=output_dir or config.output.directory,
            formats=list(formats),
            timestamp_filenames=config.output.timestamp_filenames,
            max_items_per_section=config.output.markdown.get("max_items_per_section", 20),
            include_methodology=config.output.markdown.get("include_methodology", True),
        )
        output_files = {
            "contact_influence": generator.generate_influence_report(graph),
            "deal_health": generator.generate_deal_health_report(report),
        }
        for account in graph.store.accounts():
            output_files[f"org_chart_{account.id}"] = generator.generate_org_chart(graph, account.id)
        progress.update(task, completed=True)

    # Print summary
    console.print("\n[bold]Reports Generated:[/bold]")
    for report_type, files in output_files.items():
        for fmt, path in files.items():
            console.print(f"  • {report_type}.{fmt}: [cyan]{path}[/cyan]")

    # Print top contacts
    console.print("\n[bold]Top 5 Contacts by Influence:[/bold]")
    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Title")
    table.add_column("Company")
    table.add_column("Influence", justify="right")

    for contact in graph.get_top_contacts(5):
        table.add_row(
            contact.name,
            contact.title or "-",
            contact.company or "Unknown",
            str(contact.influence_score),
        )

    console.print(table)
    console.print()


@cli.command()
@click.argument("source_id")
@click.argument("target_id")
@source_options
@click.option(
    "--max-depth",
    default=None,
    type=int,
    help="Maximum hops (default from config)",
)
@click.pass_context
def path(
    ctx: click.Context,
    source_id: str,
    target_id: str,
    input_dir: Optional[str],
    provider: Optional[str],
    hubspot: bool,
    sample: bool,
    max_depth: Optional[int],
) -> None:
    """Find the shortest introduction path between two contacts."""
    from dealgraph.utils.config import load_config

    config = load_config()
    graph, _, _ = _load_graph(config, input_dir, provider, hubspot, sample)

    console.print(f"\n[bold blue]Path from {source_id} to {target_id}[/bold blue]")
    console.print("=" * 50)

    nodes = graph.find_path(source_id, target_id, max_depth)
    if nodes is None:
        console.print(f"\n[yellow]No path found within {max_depth or config.query.max_path_depth} hops[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Link to next")

    for i, node in enumerate(nodes):
        link = ""
        if i + 1 < len(nodes):
            edge = graph.store.edge_between(node.id, nodes[i + 1].id)
            if edge is not None:
                status = "" if edge.confirmed else ", unconfirmed"
                link = f"{edge.type.value} ({edge.strength:.2f}{status})"
        table.add_row(str(i + 1), node.name, node.type, link)

    console.print(table)
    console.print()


@cli.command("org-chart")
@click.argument("account_id")
@source_options
@click.pass_context
def org_chart(
    ctx: click.Context,
    account_id: str,
    input_dir: Optional[str],
    provider: Optional[str],
    hubspot: bool,
    sample: bool,
) -> None:
    """Show the reporting hierarchy of an account."""
    from dealgraph.utils.config import load_config

    config = load_config()
    graph, _, _ = _load_graph(config, input_dir, provider, hubspot, sample)

    account = graph.store.find_node(account_id)
    if account is None:
        console.print(f"[red]Unknown account: {account_id}[/red]")
        sys.exit(1)

    console.print(f"\n[bold blue]Org Chart: {account.name}[/bold blue]")
    console.print("=" * 50)

    chart = graph.get_org_chart(account_id)
    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Title")
    table.add_column("Level", justify="right")
    table.add_column("Reports To")
    table.add_column("Influence", justify="right")

    for entry in sorted(chart.values(), key=lambda e: (e.level, -e.contact.influence_score)):
        manager = chart.get(entry.reports_to) if entry.reports_to else None
        name = f"{'  ' * entry.level}{entry.contact.name}"
        if entry.in_cycle:
            name += " [yellow](cycle)[/yellow]"
        table.add_row(
            name,
            entry.contact.title or "-",
            str(entry.level),
            manager.contact.name if manager else "-",
            str(entry.contact.influence_score),
        )

    console.print(table)
    console.print()


@cli.command()
@source_options
@click.option(
    "--telemetry", "-t",
    "telemetry_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with engagement events",
)
@click.pass_context
def analyze(
    ctx: click.Context,
    input_dir: Optional[str],
    provider: Optional[str],
    hubspot: bool,
    sample: bool,
    telemetry_file: Optional[str],
) -> None:
    """Rank hot leads, risks and next actions across open deals."""
    from dealgraph.models.deal_health import TelemetryEvent
    from dealgraph.utils.config import load_config

    config = load_config()
    graph, _, _ = _load_graph(config, input_dir, provider, hubspot, sample)

    telemetry = []
    if telemetry_file:
        try:
            raw = json.loads(Path(telemetry_file).read_text())
            telemetry = [TelemetryEvent.model_validate(e) for e in raw]
        except (ValueError, ValidationError) as e:
            console.print(f"[red]Invalid telemetry file: {e}[/red]")
            sys.exit(1)

    report = graph.analyze_deals(telemetry=telemetry)

    console.print("\n[bold blue]Deal Health[/bold blue]")
    console.print("=" * 50)

    console.print("\n[bold]Hot Leads:[/bold]")
    if report.hot_leads:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Deal")
        table.add_column("Signal")
        table.add_column("Urgency", justify="right")
        for lead in report.hot_leads:
            table.add_row(lead.lead_name, lead.signal_reason, f"{lead.urgency_score}/10")
        console.print(table)
    else:
        console.print("  [dim]No deals with recent momentum[/dim]")

    console.print("\n[bold]Risks:[/bold]")
    if report.risks:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Deal")
        table.add_column("Value", justify="right")
        table.add_column("Issue")
        for risk in report.risks:
            table.add_row(risk.deal_name, f"${risk.deal_value:,.0f}", risk.issue)
        console.print(table)
    else:
        console.print("  [dim]No stalled or ghosted deals[/dim]")

    console.print("\n[bold]Smart Actions:[/bold]")
    for action in report.smart_actions:
        console.print(f"  • [bold]{action.action_type}[/bold] → {action.target_name}: {action.rationale}")

    console.print()


@cli.command()
@source_options
@click.pass_context
def stats(
    ctx: click.Context,
    input_dir: Optional[str],
    provider: Optional[str],
    hubspot: bool,
    sample: bool,
) -> None:
    """Show quick statistics about the imported graph."""
    from dealgraph.utils.config import load_config

    config = load_config()
    graph, batch, summary = _load_graph(config, input_dir, provider, hubspot, sample)

    console.print("\n[bold blue]Graph Statistics[/bold blue]")
    console.print("=" * 50)

    console.print(f"\n[bold]Source:[/bold] {batch.source or batch.provider}")
    if batch.loaded_files:
        console.print("\n[bold]Files loaded:[/bold]")
        for f in batch.loaded_files:
            console.print(f"  • {f}")

    graph_stats = graph.get_stats()

    console.print("\n[bold]Nodes:[/bold]")
    table = Table(show_header=False)
    table.add_column("Type", style="bold")
    table.add_column("Count", justify="right")
    for node_type, count in graph_stats["nodes"].items():
        table.add_row(node_type, str(count))
    console.print(table)

    console.print("\n[bold]Edges:[/bold]")
    table = Table(show_header=False)
    table.add_column("Type", style="bold")
    table.add_column("Count", justify="right")
    for edge_type, count in sorted(graph_stats["edges"].items()):
        table.add_row(edge_type, str(count))
    table.add_row("unconfirmed", str(graph_stats["unconfirmed_edges"]))
    console.print(table)

    console.print(f"\n[bold]Interactions:[/bold] {graph_stats['interactions']}")
    if summary.dropped:
        console.print(f"[dim]Unresolved references dropped: {summary.dropped}[/dim]")
    if batch.errors:
        console.print(f"[dim]Malformed rows skipped: {len(batch.errors)}[/dim]")

    console.print()


@cli.command()
@click.pass_context
def version(ctx: click.Context) -> None:
    """Show version information."""
    from dealgraph import __version__

    console.print(f"Deal Graph Intelligence v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
