"""
Command-line interface for newsfed.

Provides commands to run the discovery engine, sync sources on demand,
manage sources, initialize the database, and run diagnostic checks.

Usage:
    newsfed discover              # Run the discovery loop
    newsfed sync [--source-id ID] # Fetch sources once, now
    newsfed init-db               # Create the sources table
    newsfed health                # Check database and item store
    newsfed sources list          # Show configured sources
"""

import asyncio
import json
import signal
import sys
from datetime import timedelta
from pathlib import Path
from uuid import UUID, uuid4

import click

from newsfed.config.settings import get_settings
from newsfed.observability.logging import setup_logging
from newsfed.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """newsfed - discover news from RSS/Atom feeds and websites."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()

    settings = get_settings()
    if settings.tracing_enabled:
        from newsfed.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )


@main.command()
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def discover(metrics: bool, metrics_port: int | None) -> None:
    """Run the discovery engine until SIGTERM/SIGINT (SIGHUP re-lists sources)."""
    from newsfed.services.discovery_service import DiscoveryService
    from newsfed.sources.repository import SourcesRepository
    from newsfed.storage.database import Database
    from newsfed.storage.items import FileItemStore

    async def run():
        settings = get_settings()
        db = Database()
        await db.connect()

        try:
            service = DiscoveryService(
                SourcesRepository(db),
                FileItemStore(settings.feed_dir),
            )

            if metrics:
                get_metrics().start_server(port=metrics_port)

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda: asyncio.create_task(service.stop()))
            loop.add_signal_handler(signal.SIGHUP, service.request_reload)

            await service.run()
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
@click.option("--source-id", default=None, type=click.UUID, help="Sync only this source")
def sync(source_id: UUID | None) -> None:
    """Fetch enabled sources (or one source) immediately."""
    from newsfed.services.discovery_service import DiscoveryService
    from newsfed.sources.repository import SourcesRepository
    from newsfed.storage.database import Database
    from newsfed.storage.items import FileItemStore

    async def run():
        settings = get_settings()
        db = Database()
        await db.connect()

        try:
            service = DiscoveryService(
                SourcesRepository(db),
                FileItemStore(settings.feed_dir),
            )
            return await service.sync_sources(source_id)
        finally:
            await db.close()

    try:
        result = asyncio.run(run())
    except LookupError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(f"Sources synced: {result.sources_synced}")
    click.echo(f"Sources failed: {result.sources_failed}")
    click.echo(f"New items:      {result.items_discovered}")

    for name, error in result.errors.items():
        click.echo(click.style(f"  ✗ {name}: {error}", fg="red"))

    if result.sources_failed:
        sys.exit(1)


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from newsfed.sources.repository import SourcesRepository
    from newsfed.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        repo = SourcesRepository(db)
        await repo.create_table()

        click.echo("Database initialized successfully")

        await db.close()

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check() -> dict[str, bool]:
        results: dict[str, bool] = {}

        try:
            from newsfed.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        from newsfed.storage.items import FileItemStore
        results["item_store"] = FileItemStore(get_settings().feed_dir).health_check()

        return results

    results = asyncio.run(check())

    click.echo("\nHealth Check Results:")
    click.echo("-" * 40)

    for name, status in results.items():
        icon = "✓" if status else "✗"
        color = "green" if status else "red"
        click.echo(click.style(f"  {icon} {name}: {status}", fg=color))

    click.echo("-" * 40)

    if all(results.values()):
        click.echo(click.style("All services healthy!", fg="green"))
        sys.exit(0)
    else:
        click.echo(click.style("Some services unhealthy!", fg="red"))
        sys.exit(1)


@main.group()
def sources() -> None:
    """Manage configured sources."""


@sources.command("add")
@click.option(
    "--type", "source_type",
    required=True,
    type=click.Choice(["rss", "atom", "website"]),
    help="Source type",
)
@click.option("--url", required=True, help="Feed or page URL")
@click.option("--name", required=True, help="Display name")
@click.option("--interval", default=None, type=int, help="Polling interval in minutes")
@click.option(
    "--scraper-config", "scraper_config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON scraper configuration (website sources)",
)
@click.option("--disabled", is_flag=True, help="Create the source disabled")
def sources_add(
    source_type: str,
    url: str,
    name: str,
    interval: int | None,
    scraper_config_path: Path | None,
    disabled: bool,
) -> None:
    """Add a source."""
    from datetime import datetime, timezone

    from pydantic import ValidationError

    from newsfed.sources.repository import SourcesRepository
    from newsfed.sources.schemas import ScraperConfig, Source
    from newsfed.storage.database import Database

    try:
        scraper_config = None
        if scraper_config_path is not None:
            scraper_config = ScraperConfig.model_validate(
                json.loads(scraper_config_path.read_text(encoding="utf-8"))
            )
        source = Source(
            source_id=uuid4(),
            source_type=source_type,
            url=url,
            name=name,
            enabled_at=None if disabled else datetime.now(timezone.utc),
            polling_interval=timedelta(minutes=interval) if interval else None,
            scraper_config=scraper_config,
        )
    except (ValueError, ValidationError) as e:
        raise click.BadParameter(str(e)) from e

    async def run():
        db = Database()
        await db.connect()
        try:
            return await SourcesRepository(db).create(source)
        finally:
            await db.close()

    created = asyncio.run(run())
    click.echo(f"Created source {created.source_id} ({created.source_type.value}): {created.url}")


@sources.command("list")
@click.option("--enabled-only", is_flag=True, help="Only show enabled sources")
def sources_list(enabled_only: bool) -> None:
    """List sources with their fetch status."""
    from newsfed.discovery.health import state_of
    from newsfed.sources.repository import SourcesRepository
    from newsfed.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            return await SourcesRepository(db).list_sources(enabled_only=enabled_only)
        finally:
            await db.close()

    rows = asyncio.run(run())
    if not rows:
        click.echo("No sources configured")
        return

    for source in rows:
        state = state_of(source)
        color = {"healthy": "green", "degraded": "yellow", "disabled": "red"}[state.value]
        last = source.last_fetched_at.strftime("%Y-%m-%d %H:%M") if source.last_fetched_at else "never"
        click.echo(
            f"{source.source_id}  {source.source_type.value:<7} "
            + click.style(f"{state.value:<8}", fg=color)
            + f"  last={last}  errors={source.fetch_error_count}  {source.name}"
        )
        if source.last_error:
            click.echo(f"    last error: {source.last_error}")


def _set_enabled(source_id: UUID, enabled: bool) -> bool:
    from newsfed.sources.repository import SourcesRepository
    from newsfed.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            return await SourcesRepository(db).set_enabled(source_id, enabled)
        finally:
            await db.close()

    return asyncio.run(run())


@sources.command("enable")
@click.argument("source_id", type=click.UUID)
def sources_enable(source_id: UUID) -> None:
    """Re-enable a source."""
    if not _set_enabled(source_id, True):
        click.echo(click.style(f"Source {source_id} not found", fg="red"), err=True)
        sys.exit(1)
    click.echo(f"Enabled source {source_id}")


@sources.command("disable")
@click.argument("source_id", type=click.UUID)
def sources_disable(source_id: UUID) -> None:
    """Disable a source."""
    if not _set_enabled(source_id, False):
        click.echo(click.style(f"Source {source_id} not found", fg="red"), err=True)
        sys.exit(1)
    click.echo(f"Disabled source {source_id}")


@sources.command("delete")
@click.argument("source_id", type=click.UUID)
@click.confirmation_option(prompt="Delete this source? Items it produced are kept.")
def sources_delete(source_id: UUID) -> None:
    """Delete a source."""
    from newsfed.sources.repository import SourcesRepository
    from newsfed.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            return await SourcesRepository(db).delete(source_id)
        finally:
            await db.close()

    if not asyncio.run(run()):
        click.echo(click.style(f"Source {source_id} not found", fg="red"), err=True)
        sys.exit(1)
    click.echo(f"Deleted source {source_id}")


if __name__ == "__main__":
    main()
