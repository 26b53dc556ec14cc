"""CLI interface for photo-discovery."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from . import __version__
from .discovery.adapter import format_structured
from .discovery.config import SearchConfig
from .discovery.errors import DiscoveryError
from .discovery.models import SearchResult
from .discovery.providers import DirectoryPhotoProvider, JsonCollectionProvider
from .discovery.service import PhotoDiscoveryService

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("quit", "exit", ":q")


@click.group()
@click.version_option(version=__version__, prog_name="photo-discovery")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--debug", is_flag=True, help="Enable debug mode.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Search configuration file (JSON).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, config_path: Optional[str]) -> None:
    """photo-discovery - semantic photo search with natural-language queries."""
    # Ensure ctx.obj exists
    if ctx.obj is None:
        ctx.obj = {}

    # Configure logging
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["config"] = SearchConfig.load_from_file(Path(config_path) if config_path else None)

    if debug:
        logger.debug("Debug mode enabled")
    elif verbose:
        logger.info("Verbose mode enabled")


def _create_service(ctx: click.Context, collection: Optional[str]) -> PhotoDiscoveryService:
    """Build a service and index the collection (JSON file or image directory)."""
    service = PhotoDiscoveryService(config=ctx.obj.get("config"))
    if collection is None:
        return service

    path = Path(collection)
    try:
        if path.is_dir():
            records = DirectoryPhotoProvider(path).load_photos()
        else:
            records = JsonCollectionProvider(path).load_records()
    except (OSError, ValueError) as e:
        click.echo(f"Error: Could not load collection {collection}: {e}", err=True)
        ctx.exit(1)

    index = service.index_photos(records)
    if ctx.obj.get("verbose"):
        click.echo(f"Indexed {len(index)} photos ({len(index.skipped)} skipped)")
    return service


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def _fail(ctx: click.Context, error: DiscoveryError) -> None:
    click.echo(f"Error: {error.message}", err=True)
    ctx.exit(1)


def _echo_results(result: SearchResult) -> None:
    if not result.photos:
        click.echo("No results found.")
        return
    click.echo(f"Found {result.total_count} results (showing {len(result.photos)}):")
    for i, ranked in enumerate(result.photos, result.offset + 1):
        photo = ranked.photo
        click.echo(f"\n{i}. {photo.display_name}  [{ranked.relevance_score:.3f}]")
        if photo.metadata.location:
            click.echo(f"   Location: {photo.metadata.location}")
        if photo.metadata.taken_at:
            click.echo(f"   Taken: {photo.metadata.taken_at:%Y-%m-%d}")
        if ranked.matched_criteria:
            click.echo(f"   Matched: {', '.join(ranked.matched_criteria)}")
    for warning in result.warnings:
        click.echo(f"\nWarning: {warning}", err=True)
    if result.next_offset is not None:
        click.echo(f"\nMore results: --offset {result.next_offset}")


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Display package and configuration information."""
    import platform
    click.echo(f"photo-discovery v{__version__}")
    click.echo(f"Python {platform.python_version()} on {platform.system()} {platform.release()}")
    click.echo("Search configuration:")
    for key, value in ctx.obj["config"].to_dict().items():
        click.echo(f"  {key}: {value}")


@cli.command()
@click.argument("collection", type=click.Path(exists=True))
@click.option("--output-format", type=click.Choice(["text", "json"]), default="text", help="Output format")
@click.pass_context
def index(ctx: click.Context, collection: str, output_format: str) -> None:
    """Index a photo collection and show statistics."""
    service = _create_service(ctx, collection)
    if output_format == "json":
        _echo_json(service.index.stats())
        return

    stats = service.index.stats()
    click.echo(f"Indexed {stats['photos']} photos in {stats['build_time_ms']} ms")
    click.echo(f"  Keywords: {stats['keywords_terms']}")
    click.echo(f"  Objects: {stats['objects_terms']}")
    click.echo(f"  Scenes: {stats['scenes_terms']}")
    click.echo(f"  Locations: {stats['locations_terms']}")
    click.echo(f"  People: {stats['people_terms']}")
    click.echo(f"  Dated photos: {stats['dated_photos']}")
    if service.index.skipped:
        click.echo(f"  Skipped records: {len(service.index.skipped)}")
        for error in service.index.skipped:
            click.echo(f"    {error.message}")


@cli.command()
@click.argument("collection", type=click.Path(exists=True))
@click.argument("query")
@click.option("--limit", type=int, default=None, help="Maximum results to show")
@click.option("--offset", type=int, default=0, help="Number of results to skip")
@click.option("--output-format", type=click.Choice(["text", "json", "jsonld"]), default="text", help="Output format")
@click.pass_context
def search(ctx: click.Context, collection: str, query: str, limit: Optional[int], offset: int, output_format: str) -> None:
    """Search a collection with a natural-language query."""
    service = _create_service(ctx, collection)
    parsed = service.extract_parameters(query)
    if parsed.is_empty():
        click.echo(f"Could not find anything to search for in '{query}'.", err=True)
        for suggestion in service.suggest_refinements(query):
            click.echo(f"  - {suggestion.suggestion}: {'; '.join(suggestion.examples)}", err=True)
        ctx.exit(1)

    try:
        result = asyncio.run(service.search(parsed, {"limit": limit, "offset": offset}))
    except DiscoveryError as e:
        _fail(ctx, e)
        return

    if output_format == "json":
        _echo_json(service.format_interactive(result))
    elif output_format == "jsonld":
        _echo_json(format_structured(result, query))
    else:
        click.echo(f"Searching for: '{query}'")
        _echo_results(result)


@cli.command()
@click.argument("query")
@click.pass_context
def parse(ctx: click.Context, query: str) -> None:
    """Show tokens, entities, intent and parameters of a query."""
    service = PhotoDiscoveryService(config=ctx.obj["config"])
    tokenized = service.tokenize(query)
    intent = service.extract_intent(query)
    data: Dict[str, Any] = tokenized.to_dict()
    data["intent"] = intent.to_dict()
    data["parameters"] = service.extract_parameters(query, intent.type).to_dict()
    _echo_json(data)


@cli.command()
@click.argument("query")
@click.pass_context
def validate(ctx: click.Context, query: str) -> None:
    """Validate a query; exits non-zero when it is not usable."""
    service = PhotoDiscoveryService(config=ctx.obj["config"])
    result = service.validate_query(query)
    _echo_json(result.to_dict())
    if not result.is_valid:
        ctx.exit(1)


@cli.command()
@click.argument("query")
@click.pass_context
def suggest(ctx: click.Context, query: str) -> None:
    """Suggest refinements for a vague query."""
    service = PhotoDiscoveryService(config=ctx.obj["config"])
    suggestions = service.suggest_refinements(query)
    if not suggestions:
        click.echo("Query is specific enough.")
        return
    for suggestion in suggestions:
        click.echo(f"{suggestion.suggestion} ({suggestion.type})")
        for example in suggestion.examples:
            click.echo(f"  e.g. {example}")


@cli.command()
@click.argument("collection", type=click.Path(exists=True))
@click.option("--limit", type=int, default=5, help="Results shown per turn")
@click.pass_context
def converse(ctx: click.Context, collection: str, limit: int) -> None:
    """Search conversationally; each line refines or replaces the last search."""
    service = _create_service(ctx, collection)
    click.echo("Type a query, 'reset' to start over, or 'quit' to exit.")
    stream = click.get_text_stream("stdin")
    while True:
        click.echo("> ", nl=False)
        line = stream.readline()
        if not line:
            break
        text = line.strip()
        if not text:
            continue
        if text.lower() in EXIT_COMMANDS:
            break
        if text.lower() == "reset":
            service.reset_context()
            click.echo("Context cleared.")
            continue

        query = service.process_query(text)
        context = service.get_context()
        click.echo(f"[{context.last_decision}] {json.dumps(query.to_dict(), default=str)}")
        if query.is_empty():
            continue
        try:
            result = asyncio.run(service.search(query, {"limit": limit}))
        except DiscoveryError as e:
            click.echo(f"Error: {e.message}", err=True)
            continue
        _echo_results(result)


@cli.command()
@click.argument("collection", type=click.Path(exists=True))
@click.argument("command_json", required=False)
@click.pass_context
def command(ctx: click.Context, collection: str, command_json: Optional[str]) -> None:
    """Run an agent command given as JSON (argument or stdin)."""
    raw = command_json if command_json is not None else click.get_text_stream("stdin").read()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        click.echo(f"Error: Invalid command JSON: {e}", err=True)
        ctx.exit(1)
        return

    service = _create_service(ctx, collection)
    result = asyncio.run(service.process_agent_command(payload))
    _echo_json(result.to_dict())
    if not result.success:
        ctx.exit(1)


@cli.command()
@click.option("--collection", type=click.Path(exists=True), help="Photo collection to index at startup")
@click.option("--host", default=None, help="Host to bind")
@click.option("--port", type=int, default=None, help="Port to bind")
@click.pass_context
def serve(ctx: click.Context, collection: Optional[str], host: Optional[str], port: Optional[int]) -> None:
    """Run the web API server."""
    import uvicorn

    from .web.api import create_app
    from .web.config import WebConfig

    config = WebConfig.load_from_file()
    config.search = ctx.obj["config"]
    if collection:
        config.collection_path = collection
    if host:
        config.host = host
    if port:
        config.port = port

    click.echo(f"Starting photo-discovery web server on {config.host}:{config.port}")
    click.echo(f"API documentation: http://{config.host}:{config.port}/docs")
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level="info")


def main() -> None:
    """Entry point for the CLI."""
    try:
        cli(obj={})
    except Exception as e:
        click.echo(f"Fatal error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
