"""Command-line entry points for the event pipeline."""

import dataclasses
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import BaseModel, ValidationError
from rich import print as rprint
from rich.markup import escape

from .canonical import parse_summary
from .config import get_settings
from .detection import analyze_recent_events
from .exceptions import NewsEventsError
from .grouping import GroupingOptions, group_recent_items_into_events
from .ingest import ingest_feed_entries
from .log import configure_logging
from .models import FeedEntry
from .store import JsonFileStore, open_store
from .summaries import auto_summarize_events, generate_event_summary_with_ollama

app = typer.Typer(
    help="Group news headlines into events, score them and generate neutral summaries."
)


def _to_plain(value: Any) -> Any:
    """
    Convert dataclasses, pydantic models, Paths, and date-like objects into
    JSON-serializable primitives. Sets are returned as lists.
    """
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value):
        return _to_plain(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_plain(item) for item in value]
    return value


def _write_output(out_path: Path, markdown: str, json_payload: dict) -> None:
    suffix = out_path.suffix.lower()
    if suffix == ".json":
        out_path.write_text(
            json.dumps(json_payload, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
    else:
        out_path.write_text(markdown, encoding="utf-8")


def _load_entries(path: Path) -> List[FeedEntry]:
    """Read feed entries from a JSON list (or an object with an "items" list)."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Could not read {path}: {exc}") from exc
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise typer.BadParameter("The JSON file must contain a list of feed entries.")
    try:
        return [FeedEntry(**entry) for entry in data]
    except (TypeError, ValidationError) as exc:
        raise typer.BadParameter(f"Invalid feed entry in {path}: {exc}") from exc


def _fail(exc: Exception) -> None:
    rprint(f"[red]{escape(str(exc))}[/red]")
    raise typer.Exit(code=1)


def _store(ctx: typer.Context) -> JsonFileStore:
    try:
        return open_store(ctx.obj.get("data_path") if ctx.obj else None)
    except NewsEventsError as exc:
        _fail(exc)


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_path: Optional[Path] = typer.Option(
        None, "--data", "-d", help="Event store JSON file (defaults to DATA_PATH)."
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override LOG_LEVEL for this run."
    ),
):
    """Configure logging and the store location shared by every command."""
    settings = get_settings()
    configure_logging(log_level or settings.log_level, json_output=settings.log_json)
    ctx.obj = {"data_path": data_path}


@app.command("ingest")
def ingest_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="JSON file with feed entries."),
    source: str = typer.Option(..., "--source", "-s", help="Publisher name."),
    feed_url: Optional[str] = typer.Option(None, "--feed-url", help="Feed URL to record."),
):
    """Store feed entries as items; already-seen entries are skipped."""
    entries = _load_entries(path)
    store = _store(ctx)
    try:
        result = ingest_feed_entries(store, source, entries, feed_url=feed_url)
    except NewsEventsError as exc:
        _fail(exc)
    rprint(
        f"[green]{result.source}: {result.created} created, "
        f"{result.skipped} skipped of {result.total}[/green]"
    )


@app.command("group")
def group_command(
    ctx: typer.Context,
    hours_window: Optional[int] = typer.Option(None, "--hours-window", min=1),
    threshold: Optional[float] = typer.Option(None, "--threshold", min=0.0, max=1.0),
    max_items: Optional[int] = typer.Option(None, "--max-items", min=1),
):
    """Cluster recent unlinked items into events."""
    options = GroupingOptions.from_settings()
    if hours_window is not None:
        options.hours_window = hours_window
    if threshold is not None:
        options.similarity_threshold = threshold
    if max_items is not None:
        options.max_items_to_consider = max_items

    store = _store(ctx)
    try:
        result = group_recent_items_into_events(store, options)
    except NewsEventsError as exc:
        _fail(exc)
    rprint(
        f"[green]Considered {result.considered_items} items: "
        f"{result.linked_items} linked, {result.created_events} new events[/green]"
    )


@app.command("analyze")
def analyze_command(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Events to analyze."),
):
    """Score recent events for breaking news and duplicate coverage."""
    store = _store(ctx)
    try:
        result = analyze_recent_events(store, limit)
    except NewsEventsError as exc:
        _fail(exc)
    rprint(
        f"[green]Analyzed {result.analyzed} events: {result.breaking} breaking, "
        f"{result.duplicates} with duplicates[/green]"
    )


@app.command("generate")
def generate_command(
    ctx: typer.Context,
    event_id: str = typer.Argument(..., help="Event id to summarize."),
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Optional path to write output (.md or .json). Defaults to stdout.",
    ),
):
    """Generate and store a canonical summary for one event."""
    store = _store(ctx)
    try:
        output = generate_event_summary_with_ollama(store, event_id)
    except NewsEventsError as exc:
        _fail(exc)

    if out:
        _write_output(out, output.output_text, _to_plain(output))
        rprint(f"[cyan]Wrote output to {out}[/cyan]")
    else:
        typer.echo(output.output_text)


@app.command("auto-summarize")
def auto_summarize_command(
    ctx: typer.Context,
    max_events: int = typer.Option(20, "--max-events", "-n", min=1),
    regenerate_all: bool = typer.Option(
        False, "--all", help="Regenerate recent events that already have a summary."
    ),
):
    """Summarize recent events in one pass."""
    store = _store(ctx)
    try:
        result = auto_summarize_events(
            store, max_events=max_events, only_without_summary=not regenerate_all
        )
    except NewsEventsError as exc:
        _fail(exc)
    rprint(
        f"[cyan]Processed {result.processed}: {result.summarized} summarized, "
        f"{result.skipped} skipped, {result.errors} failed.[/cyan]"
    )
    if result.errors:
        raise typer.Exit(code=1)


@app.command("list-events")
def list_events_command(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", min=1),
    as_json: bool = typer.Option(False, "--json", help="Print events as JSON."),
):
    """Show the most recently updated events."""
    store = _store(ctx)
    events = store.recent_events(limit)
    if as_json:
        typer.echo(json.dumps(_to_plain(events), ensure_ascii=False, indent=2))
        return
    if not events:
        rprint("[yellow]No events yet.[/yellow]")
        return
    for event in events:
        flags = []
        if event.is_breaking:
            flags.append("[red]breaking[/red]")
        if event.has_duplicates:
            flags.append("[yellow]duplicates[/yellow]")
        latest = store.ai_outputs(event.id, limit=1)
        title = parse_summary(latest[0].output_text).title if latest else None
        rprint(
            f"{event.id}  items={event.item_count}  score={event.breaking_score}  "
            + " ".join(flags)
        )
        if title:
            rprint(f"  {escape(title)}")


def main():
    app()


if __name__ == "__main__":
    main()
