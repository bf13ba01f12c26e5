"""
Command-line interface for chain-ingest.

This module provides the main CLI entry points using Click.

Commands:
- ingest-tx: Index every transaction into the partitioned table
- ingest-blocks: Upload every raw block to the blob container
- checkpoint show: Print the saved cursor of each stream
- checkpoint reset: Delete a stream's progress file
- stats: Show what the local stores hold

Example:
    $ chain-ingest --help
    $ chain-ingest ingest-tx --blocks-dir ~/.bitcoin/blocks
    $ chain-ingest -c config/local.toml ingest-blocks --workers 8
    $ chain-ingest checkpoint show
"""

from __future__ import annotations

import signal
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from chain_ingest import __version__
from chain_ingest.config import Settings, get_settings, load_settings
from chain_ingest.config.settings import NETWORKS
from chain_ingest.ingest import (
    TX_STREAM,
    BlockIngestionPipeline,
    BlockUploader,
    CheckpointStore,
    IngestionPipeline,
    PipelineOptions,
    PipelineStats,
    RetryPolicy,
    TransactionBatchWriter,
    TransactionIngestionPipeline,
)
from chain_ingest.sources import BlockSource, get_source
from chain_ingest.storage import (
    FileBlobStore,
    MemoryBlobStore,
    MemoryTableStore,
    SQLiteTableStore,
)
from chain_ingest.utils.logging import get_logger, setup_logging

console = Console()

STREAMS = {"tx": TX_STREAM, "blocks": None}


@click.group()
@click.version_option(version=__version__, prog_name="chain-ingest")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Configuration file path",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """chain-ingest CLI.

    Pump a local block store into a partitioned transaction table and a
    write-once blob container, resuming from the last checkpoint.
    """
    ctx.ensure_object(dict)

    if config:
        settings = load_settings(config)
    else:
        settings = get_settings()

    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose

    log_level = "DEBUG" if verbose else settings.logging.level
    setup_logging(
        level=log_level,
        format=settings.logging.format,
        include_timestamp=settings.logging.include_timestamp,
        include_location=settings.logging.include_location,
    )


def ingest_options(func: Callable) -> Callable:
    """Options shared by both ingest commands."""
    options = [
        click.option(
            "--blocks-dir",
            type=click.Path(file_okay=False, path_type=Path),
            help="Directory holding blkNNNNN.dat files (overrides config)",
        ),
        click.option(
            "--network",
            type=click.Choice(NETWORKS, case_sensitive=False),
            help="Network magic (overrides config)",
        ),
        click.option(
            "--workers",
            type=click.IntRange(min=1),
            help="Concurrent remote writers (overrides config)",
        ),
        click.option(
            "--progress-file",
            help="Default stream progress file name (overrides config)",
        ),
        click.option(
            "--max-blocks",
            type=click.IntRange(min=1),
            help="Stop after this many blocks",
        ),
        click.option(
            "--dry-run",
            is_flag=True,
            help="Write to in-memory stores instead of the configured ones",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _checkpoints(settings: Settings, progress_file: str | None = None) -> CheckpointStore:
    return CheckpointStore(
        settings.checkpoint.directory,
        progress_file or settings.checkpoint.progress_file,
    )


def _retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        delay_seconds=settings.ingestion.retry_delay_seconds,
        max_attempts=settings.ingestion.max_attempts,
    )


def _pipeline_options(settings: Settings, workers: int | None, max_blocks: int | None) -> PipelineOptions:
    ingestion = settings.ingestion
    return PipelineOptions(
        workers=workers or ingestion.workers,
        queue_capacity=ingestion.queue_capacity,
        checkpoint_interval_seconds=ingestion.checkpoint_interval_seconds,
        max_batch_size=ingestion.max_batch_size,
        max_blocks=max_blocks,
        progress_every_blocks=ingestion.progress_every_blocks,
    )


@contextmanager
def _stop_on_signal(pipeline: IngestionPipeline) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into a graceful drain-and-checkpoint."""

    def handler(signum, frame):
        console.print(f"[yellow]Received {signal.Signals(signum).name}, draining...[/yellow]")
        pipeline.request_stop()

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def _run(
    ctx: click.Context,
    title: str,
    pipeline: IngestionPipeline,
    store_label: str,
) -> PipelineStats | None:
    logger = get_logger(__name__)

    console.print(f"[bold]chain-ingest - {title}[/bold]")
    console.print(f"Blocks: [cyan]{pipeline.source}[/cyan]")
    console.print(f"Target: [cyan]{store_label}[/cyan]")
    console.print(f"Progress: [cyan]{pipeline.checkpoints.path_for(pipeline.stream)}[/cyan]")

    stats = None
    try:
        with pipeline, _stop_on_signal(pipeline):
            with console.status("[bold green]Ingesting blocks..."):
                stats = pipeline.run()
    except Exception as e:
        logger.error("ingestion_failed", error=str(e), error_type=type(e).__name__)
        console.print(f"[red]Error:[/red] {e}")

    run = pipeline.run_record
    console.print()

    table = Table(title=f"{title} Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    if run is not None:
        color = "green" if run.is_complete else "yellow" if stats else "red"
        table.add_row("Status", f"[{color}]{run.status.value}[/]")
        table.add_row("Start Cursor", run.start_cursor)
        table.add_row("Saved Cursor", run.end_cursor or "-")
        table.add_row("Blocks", f"{run.blocks_read:,}")
        if pipeline.stream == TX_STREAM:
            table.add_row("Transactions", f"{run.transactions_indexed:,}")
        table.add_row("Work Units", f"{run.units_submitted:,}")
        table.add_row("Checkpoints", f"{run.checkpoints_saved:,}")
        if run.duration_seconds:
            rate = run.blocks_read / run.duration_seconds
            table.add_row("Duration", f"{run.duration_seconds:.1f}s ({rate:.0f} blocks/sec)")
    table.add_row("Retries", f"{pipeline.writer.stats.retries:,}")

    console.print(table)

    if stats is None:
        ctx.exit(1)

    if run is not None:
        logger.debug("run_summary", **run.summary_dict())
    return stats


def _source(settings: Settings, blocks_dir: Path | None, network: str | None) -> BlockSource:
    return get_source(
        "blockfile",
        blocks_dir or settings.source.blocks_dir,
        network=(network or settings.source.network).lower(),
    )


@main.command("ingest-tx")
@ingest_options
@click.pass_context
def ingest_tx(
    ctx: click.Context,
    blocks_dir: Path | None,
    network: str | None,
    workers: int | None,
    progress_file: str | None,
    max_blocks: int | None,
    dry_run: bool,
) -> None:
    """Index transactions into the partitioned table.

    Each transaction becomes one row keyed by its partition key and
    '<txid>-b<blockid>'. Rows are upserted in batches of at most 100.
    """
    settings: Settings = ctx.obj["settings"]

    if dry_run:
        store = MemoryTableStore()
        label = f"memory:{settings.table.name}"
    else:
        store = SQLiteTableStore(settings.table.path, timeout=settings.transport.timeout_seconds)
        label = f"{settings.table.path}:{settings.table.name}"

    writer = TransactionBatchWriter(store, settings.table.name, _retry_policy(settings))
    pipeline = TransactionIngestionPipeline(
        _source(settings, blocks_dir, network),
        _checkpoints(settings, progress_file),
        writer,
        _pipeline_options(settings, workers, max_blocks),
    )

    try:
        _run(ctx, "Transaction Index", pipeline, label)
    finally:
        store.close()


@main.command("ingest-blocks")
@ingest_options
@click.pass_context
def ingest_blocks(
    ctx: click.Context,
    blocks_dir: Path | None,
    network: str | None,
    workers: int | None,
    progress_file: str | None,
    max_blocks: int | None,
    dry_run: bool,
) -> None:
    """Upload raw blocks to the blob container.

    Each block is zero-padded to a 512-byte multiple and stored under its
    hash. Blocks that were already uploaded are left untouched.
    """
    settings: Settings = ctx.obj["settings"]

    if dry_run:
        store = MemoryBlobStore()
        label = f"memory:{settings.blobs.container}"
    else:
        store = FileBlobStore(settings.blobs.directory)
        label = f"{settings.blobs.directory}/{settings.blobs.container}"

    writer = BlockUploader(store, settings.blobs.container, _retry_policy(settings))
    pipeline = BlockIngestionPipeline(
        _source(settings, blocks_dir, network),
        _checkpoints(settings, progress_file),
        writer,
        _pipeline_options(settings, workers, max_blocks),
    )

    try:
        _run(ctx, "Block Upload", pipeline, label)
    finally:
        store.close()


@main.group("checkpoint")
def checkpoint() -> None:
    """Inspect or reset saved cursors."""


@checkpoint.command("show")
@click.option("--progress-file", help="Default stream progress file name (overrides config)")
@click.pass_context
def checkpoint_show(ctx: click.Context, progress_file: str | None) -> None:
    """Show the saved cursor of each stream."""
    store = _checkpoints(ctx.obj["settings"], progress_file)

    table = Table(title="Checkpoints")
    table.add_column("Stream", style="cyan")
    table.add_column("File")
    table.add_column("Cursor", justify="right")

    for name, stream in STREAMS.items():
        path = store.path_for(stream)
        if path.exists():
            cursor = str(store.load(stream))
        else:
            cursor = "[dim]none[/dim]"
        table.add_row(name, str(path), cursor)

    console.print(table)


@checkpoint.command("reset")
@click.option(
    "--stream",
    type=click.Choice(sorted(STREAMS)),
    required=True,
    help="Stream whose progress file is deleted",
)
@click.option("--progress-file", help="Default stream progress file name (overrides config)")
@click.confirmation_option(prompt="The stream will restart from the first block. Continue?")
@click.pass_context
def checkpoint_reset(ctx: click.Context, stream: str, progress_file: str | None) -> None:
    """Delete a stream's progress file so it restarts from the origin."""
    store = _checkpoints(ctx.obj["settings"], progress_file)
    path = store.path_for(STREAMS[stream])

    if store.reset(STREAMS[stream]):
        console.print(f"[green]✓[/green] Removed {path}")
    else:
        console.print(f"[yellow]No checkpoint at[/yellow] {path}")


@main.command("stats")
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show row and blob counts of the local stores."""
    settings: Settings = ctx.obj["settings"]

    table = Table(title="Store Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    db_path = settings.table.path
    table.add_row("Table Store", str(db_path))
    if db_path.exists():
        store = SQLiteTableStore(db_path, timeout=settings.transport.timeout_seconds)
        try:
            store.create_table_if_missing(settings.table.name)
            partitions = store.partition_counts(settings.table.name)
        finally:
            store.close()
        table.add_row("Rows", f"{sum(partitions.values()):,}")
        table.add_row("Partitions", f"{len(partitions):,}")
    else:
        table.add_row("Rows", "[dim]not created[/dim]")

    blobs = FileBlobStore(settings.blobs.directory)
    keys = blobs.list_keys(settings.blobs.container)
    table.add_row("", "")
    table.add_row("Blob Store", f"{settings.blobs.directory}/{settings.blobs.container}")
    table.add_row("Blocks", f"{len(keys):,}")

    console.print(table)


if __name__ == "__main__":
    main()
