"""Command-line interface for the mockaws emulator."""

import json
import logging
import sys

import click
import uvicorn

from .config import Settings
from .engine import ItemStoreEngine
from .exceptions import MockAWSError
from .server import create_app
from .store import RecordStore


def _open_store(database_url: str | None) -> RecordStore:
    try:
        return RecordStore.from_url(database_url or Settings().database_url)
    except MockAWSError as e:
        click.echo(f"✗ Failed to open store: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option()
def cli() -> None:
    """mockaws local DynamoDB emulator CLI."""
    pass


@cli.command()
@click.option("--host", help="Interface to bind (default: MOCKAWS_HOST or 0.0.0.0)")
@click.option("--port", type=int, help="Port to listen on (default: MOCKAWS_PORT or 3000)")
@click.option(
    "--database-url",
    help="SQLAlchemy database URL (default: MOCKAWS_DATABASE_URL or sqlite:///mockaws.sqlite)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (default: MOCKAWS_LOG_LEVEL or INFO)",
)
def serve(
    host: str | None,
    port: int | None,
    database_url: str | None,
    log_level: str | None,
) -> None:
    """Run the emulator HTTP server."""
    settings = Settings()
    host = host or settings.host
    port = port or settings.port
    log_level = (log_level or settings.log_level).upper()
    logging.basicConfig(level=log_level)

    store = _open_store(database_url or settings.database_url)
    app = create_app(ItemStoreEngine(store))

    click.echo(f"Serving DynamoDB API on http://{host}:{port}")
    try:
        uvicorn.run(app, host=host, port=port, log_level=log_level.lower())
    finally:
        store.close()


@cli.command()
@click.option("--database-url", help="SQLAlchemy database URL")
def tables(database_url: str | None) -> None:
    """List created tables and their key schema."""
    store = _open_store(database_url)
    try:
        descriptions = store.list_tables()
    except MockAWSError as e:
        click.echo(f"✗ Failed to list tables: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()

    if not descriptions:
        click.echo("No tables found")
        return

    for description in descriptions:
        key = description.key_schema
        line = f"{description.name}  HASH={key.partition_key}"
        if key.sort_key is not None:
            line += f"  RANGE={key.sort_key}"
        click.echo(line)


@cli.command()
@click.argument("table_name")
@click.option("--database-url", help="SQLAlchemy database URL")
@click.option("--limit", type=click.IntRange(min=1), help="Maximum number of items to print")
def scan(table_name: str, database_url: str | None, limit: int | None) -> None:
    """Print the items of a table as JSON lines, in key order."""
    store = _open_store(database_url)
    try:
        records = store.list_all(table_name)
    except MockAWSError as e:
        click.echo(f"✗ Failed to scan {table_name}: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()

    for record in records[:limit]:
        click.echo(json.dumps(record.item, sort_keys=True, default=str))


if __name__ == "__main__":
    cli()
