"""
Neurobrief CLI.

Usage:
    neurobrief run                        # Run or resume today's pipeline
    neurobrief run --date 2026-01-31      # Run or resume a specific date
    neurobrief run --from enrich          # Re-run enrich and everything after it
    neurobrief run --stop-after gpt       # Stop once extraction is checkpointed
    neurobrief status                     # Checkpoints for today
    neurobrief search "eeg" --tag bci     # Query the final corpus
    neurobrief similar ARTICLE_ID         # Nearest articles by embedding
    neurobrief config                     # Verify configuration
"""

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from neurobrief import __version__
from neurobrief.config import XDG_CONFIG_PATH, Settings, SourceConfig, get_settings
from neurobrief.logging_config import setup_logging
from neurobrief.models import Article
from neurobrief.pipeline.phases import PIPELINE_PHASES, PipelinePhase
from neurobrief.pipeline.runner import run_pipeline
from neurobrief.query import (
    build_article_index,
    filter_by_date_range,
    filter_by_source,
    filter_by_tags,
    find_similar_articles,
    load_corpus,
    search_articles,
    sort_by_ranking,
)
from neurobrief.resilience import Err
from neurobrief.storage import CheckpointManager, open_checkpoints, validate_run_date

console = Console()

state = {"verbose": False}

DateOption = typer.Option(None, "--date", "-d", help="Run date (YYYY-MM-DD, default: today UTC)")


def _load_settings() -> Settings:
    """Load settings with a user-friendly error on failure."""
    try:
        settings = get_settings()
    except Exception as e:
        console.print(
            "[red]Configuration error.[/red] "
            "Check your config file or environment variables.\n"
        )
        for error in getattr(e, "errors", lambda: [])():
            loc = ".".join(str(part) for part in error["loc"])
            console.print(f"  [red]✗[/red] {loc}: {error['msg']}")
        if not getattr(e, "errors", None):
            console.print(f"  [red]✗[/red] {e}")
        console.print("\n[dim]Run 'neurobrief config' to verify.[/dim]")
        raise typer.Exit(code=1) from None

    setup_logging("DEBUG" if state["verbose"] else settings.log_level, settings.log_format)
    return settings


def _resolve_date(value: str | None) -> str:
    run_date = value or datetime.now(UTC).date().isoformat()
    try:
        return validate_run_date(run_date)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--date") from None


def _parse_phase(value: str | None, option: str) -> PipelinePhase | None:
    if value is None:
        return None
    phase = PipelinePhase.parse(value)
    if phase is None:
        choices = ", ".join(p.value for p in PIPELINE_PHASES)
        raise typer.BadParameter(
            f"unknown phase '{value}' (choose from {choices})", param_hint=option
        )
    return phase


def _checkpoints(settings: Settings) -> CheckpointManager:
    checkpoint_dir = settings.checkpoint_dir or settings.data_dir / "checkpoints"
    return open_checkpoints(settings.checkpoint_backend, checkpoint_dir)


def _load_articles(settings: Settings, run_date: str) -> list[Article]:
    corpus = load_corpus(_checkpoints(settings), run_date)
    if corpus is None:
        console.print(
            f"[yellow]No final corpus for {run_date}. Run 'neurobrief run' first.[/yellow]"
        )
        raise typer.Exit(code=1)
    return corpus.all_articles


def _print_articles(articles: list[Article], title: str) -> None:
    if not articles:
        console.print("[dim]No matching articles[/dim]")
        return

    table = Table(title=title)
    table.add_column("Score", style="green", justify="right")
    table.add_column("Title", style="white", max_width=60)
    table.add_column("Source", style="dim")
    table.add_column("Tags", style="cyan", max_width=30)
    table.add_column("ID", style="dim")

    for article in articles:
        score = article.ranking_score
        if score is None:
            score = article.relevance_score
        table.add_row(
            f"{score:.2f}",
            article.title[:60] + "..." if len(article.title) > 60 else article.title,
            article.source,
            ", ".join(article.tags[:3]),
            article.id,
        )
    console.print(table)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"Neurobrief CLI v{__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="neurobrief",
    help="Neurobrief - daily neurotech news pipeline",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="markdown",
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging output."
    ),
    version: bool | None = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit."
    ),
):
    """
    Neurobrief - daily neurotech news pipeline
    """
    state["verbose"] = verbose


@app.command()
def run(
    date: str | None = DateOption,
    rerun_from: str | None = typer.Option(
        None, "--from", help="Discard checkpoints from this phase onward and re-run them"
    ),
    stop_after: str | None = typer.Option(
        None, "--stop-after", help="Stop after this phase completes"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Skip moderation, embedding and speech calls"
    ),
) -> None:
    """Run or resume the eight-phase pipeline for a date."""
    settings = _load_settings()
    run_date = _resolve_date(date)
    start_phase = _parse_phase(rerun_from, "--from")
    last_phase = _parse_phase(stop_after, "--stop-after")
    if dry_run:
        settings.dry_run = True

    try:
        sources = SourceConfig(settings.sources_path).sources
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    console.print(Panel.fit(
        "[bold]Neurobrief[/bold]\n"
        f"Pipeline run for {run_date} ({len(sources)} sources)",
        border_style="blue",
    ))

    started = datetime.now()
    result = asyncio.run(
        run_pipeline(
            settings,
            run_date,
            sources,
            rerun_from=start_phase,
            stop_after=last_phase,
        )
    )
    elapsed = (datetime.now() - started).total_seconds()

    if isinstance(result, Err):
        failure = result.error
        completed = ", ".join(phase.value for phase in failure.completed) or "none"
        console.print(f"\n[red]✗ Phase {failure.phase.value} failed:[/red] {failure.error}")
        console.print(f"[dim]Completed phases: {completed}. Re-run to resume.[/dim]")
        raise typer.Exit(code=1)

    pipeline_run = result.value
    for phase in pipeline_run.completed:
        marker = "resumed" if phase in pipeline_run.resumed else "ran"
        console.print(f"  ✓ {phase.value} [dim]({marker})[/dim]")

    console.print(Panel.fit(
        f"[bold green]✓ Complete[/bold green] in {elapsed:.1f}s",
        border_style="green",
    ))


@app.command()
def status(
    date: str | None = DateOption,
    json_format: bool = typer.Option(False, "--json", help="Output status as JSON"),
) -> None:
    """Show checkpointed phases for a date."""
    settings = _load_settings()
    run_date = _resolve_date(date)
    checkpoints = _checkpoints(settings)

    completed = checkpoints.list_checkpoints(run_date)
    latest = checkpoints.get_latest_phase(run_date)
    data = {
        "date": run_date,
        "completed": [phase.value for phase in completed],
        "latest_phase": latest.value if latest else None,
        "finished": PipelinePhase.FINAL in completed,
    }

    if json_format:
        print(json.dumps(data, indent=2))
        return

    table = Table(title=f"Checkpoints for {run_date}")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Phase", style="cyan")
    table.add_column("Status", style="green")

    for phase in PIPELINE_PHASES:
        done = phase in completed
        table.add_row(
            str(phase.order),
            phase.value,
            "[green]✓ done[/green]" if done else "[dim]pending[/dim]",
        )

    console.print(table)
    if latest is None:
        console.print("\n[dim]No checkpoints yet[/dim]")
    else:
        console.print(f"\n[dim]Latest phase: {latest.value}[/dim]")


@app.command()
def search(
    query: str = typer.Argument("", help="Text to find in title, description or summary"),
    date: str | None = DateOption,
    tags: list[str] = typer.Option([], "--tag", "-t", help="Match any of these tags"),
    source: str | None = typer.Option(None, "--source", "-s", help="Exact source name"),
    date_from: str | None = typer.Option(None, "--from", help="Earliest article date"),
    date_to: str | None = typer.Option(None, "--to", help="Latest article date"),
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Maximum results"),
) -> None:
    """Search the final corpus of a run."""
    settings = _load_settings()
    run_date = _resolve_date(date)

    index = build_article_index(_load_articles(settings, run_date))
    index = build_article_index(search_articles(index, query))
    index = build_article_index(filter_by_tags(index, tags))
    if source:
        index = build_article_index(filter_by_source(index, source))
    matches = filter_by_date_range(index.all, date_from, date_to)

    results = sort_by_ranking(matches)[:limit]
    _print_articles(results, f"{len(matches)} matches in {run_date}")


@app.command()
def similar(
    article_id: str = typer.Argument(..., help="Article id"),
    date: str | None = DateOption,
    limit: int = typer.Option(5, "--limit", "-n", min=1, help="Maximum results"),
) -> None:
    """List the articles closest to one article by embedding."""
    settings = _load_settings()
    run_date = _resolve_date(date)

    index = build_article_index(_load_articles(settings, run_date))
    target = index.by_id.get(article_id)
    if target is None:
        console.print(f"[red]Unknown article id: {article_id}[/red]")
        raise typer.Exit(code=1)
    if not target.embedding:
        console.print("[yellow]That article has no embedding[/yellow]")
        raise typer.Exit(code=1)

    results = find_similar_articles(index, article_id, limit)
    _print_articles(results, f"Similar to: {target.title}")


@app.command()
def config() -> None:
    """Verify configuration and show settings."""
    console.print("[bold]Verifying configuration...[/bold]\n")

    console.print("[dim]Config search paths:[/dim]")
    xdg_config = XDG_CONFIG_PATH / "config.env"
    xdg_status = "[green](exists)[/green]" if xdg_config.exists() else "[dim](not found)[/dim]"
    console.print(f"  1. {xdg_config} {xdg_status}")
    local_env = Path(".env")
    local_status = "[green](exists)[/green]" if local_env.exists() else "[dim](not found)[/dim]"
    console.print(f"  2. {local_env.absolute()} {local_status}")
    console.print()

    errors = []
    warnings = []
    settings = None

    try:
        settings = get_settings()
        console.print("[green]✓[/green] Settings loaded")

        if settings.llm_api_key:
            console.print(f"  LLM API key: {settings.llm_api_key[:10]}...")
        else:
            errors.append("Missing LLM_API_KEY")

        if settings.auxiliary_openai_key:
            console.print(f"  OpenAI key: {settings.auxiliary_openai_key[:10]}...")
        else:
            errors.append("Missing OPENAI_API_KEY (moderation, embeddings and speech)")

        if settings.elevenlabs_api_key:
            console.print(f"  ElevenLabs key: {settings.elevenlabs_api_key[:10]}...")
        else:
            warnings.append("No ELEVENLABS_API_KEY; podcasts will be script-only")

        if settings.newsapi_key:
            console.print(f"  News search key: {settings.newsapi_key[:10]}...")
        else:
            warnings.append("No NEWSAPI_KEY; search sources will be skipped")

        console.print(f"  LLM provider: {settings.llm_provider}")
        console.print(f"  LLM model: {settings.llm_model}")
        console.print(f"  Checkpoints: {settings.checkpoint_backend} in {settings.checkpoint_dir}")
        console.print(
            f"  Retry: {settings.retry_max_attempts} attempts, "
            f"{settings.retry_base_delay_ms}-{settings.retry_max_delay_ms}ms"
        )
        console.print(
            f"  Breaker: opens after {settings.breaker_failure_threshold} failures, "
            f"cools down {settings.breaker_reset_timeout_ms}ms"
        )

    except Exception as e:
        errors.append(f"Settings error: {e}")

    console.print()
    if settings is not None:
        try:
            sources = SourceConfig(settings.sources_path).sources

            if sources:
                console.print(f"[green]✓[/green] Sources configured: {len(sources)}")
                for name, entry in list(sources.items())[:5]:
                    console.print(f"  • {name}: {entry['kind']} {entry['url']}")
                if len(sources) > 5:
                    console.print(f"  ... and {len(sources) - 5} more")
            else:
                errors.append(f"No sources configured in {settings.sources_path}")
        except Exception as e:
            errors.append(f"Sources config error: {e}")

        console.print()
        console.print(f"[green]✓[/green] Config dir: {settings.config_dir}")
        console.print(f"[green]✓[/green] Data dir: {settings.data_dir}")
    else:
        console.print(
            "[yellow]⚠ Skipping sources and directory checks (settings not loaded)[/yellow]"
        )

    console.print()
    for warning in warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")
    if errors:
        console.print("[red]Configuration errors:[/red]")
        for error in errors:
            console.print(f"  [red]✗[/red] {error}")
        raise typer.Exit(code=1)
    else:
        console.print("[green]✓ Configuration valid[/green]")


def cli() -> None:
    """Entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[dim]Aborted.[/dim]")
        raise SystemExit(130) from None
    except Exception as e:
        console.print(f"\n[red]Unexpected error:[/red] {e}")
        console.print("[dim]Run with --verbose for more details.[/dim]")
        raise SystemExit(1) from e


if __name__ == "__main__":
    cli()
