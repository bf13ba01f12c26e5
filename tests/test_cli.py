"""
Tests for the command-line interface.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from chain_ingest import __version__
from chain_ingest.cli import main
from chain_ingest.config.settings import ENV_PREFIX
from chain_ingest.ingest import CheckpointStore
from chain_ingest.models import Cursor
from chain_ingest.sources import MemoryBlockSource
from chain_ingest.sources.protocol import _SOURCE_REGISTRY
from chain_ingest.storage import FileBlobStore, SQLiteTableStore

CONFIG = """
[source]
blocks_dir = "blocks"

[checkpoint]
directory = "state"

[table]
path = "data/tx.db"

[blobs]
directory = "blobs"

[ingestion]
workers = 2
retry_delay_seconds = 0

[logging]
level = "WARNING"
"""


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop handlers bound to the runner's streams after each invocation."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    structlog.reset_defaults()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def workspace(tmp_path, blocks_dir, monkeypatch):
    """A working directory with block files and a config using relative paths."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    (tmp_path / "test.toml").write_text(CONFIG)
    return tmp_path


def invoke(runner, *args):
    return runner.invoke(main, ["-c", "test.toml", *args], catch_exceptions=False)


class TestMain:
    """Tests for the command group."""

    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        for command in ("ingest-tx", "ingest-blocks", "checkpoint", "stats"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_config(self, runner, tmp_path):
        result = runner.invoke(main, ["-c", str(tmp_path / "nope.toml"), "stats"])
        assert result.exit_code != 0


class TestIngestTx:
    """Tests for the ingest-tx command."""

    def test_ingest(self, runner, workspace):
        result = invoke(runner, "ingest-tx")

        assert result.exit_code == 0, result.output
        assert "Transaction Index Summary" in result.output

        store = SQLiteTableStore(workspace / "data" / "tx.db")
        assert store.count("transactions") == 20
        store.close()
        assert (workspace / "state" / "progress-tx.dat").exists()
        assert not (workspace / "state" / "progress.dat").exists()

    def test_source_from_registry(self, runner, workspace, chain, monkeypatch):
        """Test that the command builds its source by registered name."""
        calls = []

        def factory(directory, *, network):
            calls.append((directory, network))
            return MemoryBlockSource(chain[:4])

        monkeypatch.setitem(_SOURCE_REGISTRY, "blockfile", factory)
        result = invoke(runner, "ingest-tx", "--dry-run", "--network", "TEST")

        assert result.exit_code == 0, result.output
        assert calls == [(Path("blocks"), "test")]
        assert CheckpointStore(workspace / "state").load("tx") > Cursor.origin()

    def test_dry_run(self, runner, workspace):
        result = invoke(runner, "ingest-tx", "--dry-run")

        assert result.exit_code == 0, result.output
        assert not (workspace / "data" / "tx.db").exists()
        assert (workspace / "state" / "progress-tx.dat").exists()

    def test_max_blocks(self, runner, workspace):
        result = invoke(runner, "ingest-tx", "--max-blocks", "3")

        assert result.exit_code == 0, result.output
        store = SQLiteTableStore(workspace / "data" / "tx.db")
        assert store.count("transactions") == 6
        store.close()

    def test_progress_file_option(self, runner, workspace):
        result = invoke(runner, "ingest-tx", "--progress-file", "cursor.dat", "--workers", "1")

        assert result.exit_code == 0, result.output
        assert (workspace / "state" / "cursor-tx.dat").exists()

    def test_missing_blocks_dir(self, runner, workspace):
        """Test that a failed run exits non-zero."""
        result = invoke(runner, "ingest-tx", "--blocks-dir", "missing")

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_wrong_network(self, runner, workspace):
        result = invoke(runner, "ingest-tx", "--network", "test")

        assert result.exit_code == 1
        assert "magic" in result.output
        assert not (workspace / "state" / "progress-tx.dat").exists()


class TestIngestBlocks:
    """Tests for the ingest-blocks command."""

    def test_ingest(self, runner, workspace, chain):
        result = invoke(runner, "ingest-blocks")

        assert result.exit_code == 0, result.output
        blobs = FileBlobStore(workspace / "blobs")
        assert blobs.list_keys("nbitcoinindexer") == sorted(block.hash for block in chain)
        assert (workspace / "state" / "progress.dat").exists()

    def test_dry_run(self, runner, workspace):
        result = invoke(runner, "ingest-blocks", "--dry-run")

        assert result.exit_code == 0, result.output
        assert not (workspace / "blobs").exists()


class TestCheckpointCommands:
    """Tests for the checkpoint subcommands."""

    def test_show_empty(self, runner, workspace):
        result = invoke(runner, "checkpoint", "show")

        assert result.exit_code == 0
        assert "none" in result.output

    def test_show_after_ingest(self, runner, workspace):
        invoke(runner, "ingest-tx")
        cursor = CheckpointStore(workspace / "state").load("tx")

        result = invoke(runner, "checkpoint", "show")

        assert result.exit_code == 0
        assert str(cursor) in result.output

    def test_reset(self, runner, workspace):
        invoke(runner, "ingest-tx")

        result = invoke(runner, "checkpoint", "reset", "--stream", "tx", "--yes")

        assert result.exit_code == 0
        assert not (workspace / "state" / "progress-tx.dat").exists()

    def test_reset_missing(self, runner, workspace):
        result = invoke(runner, "checkpoint", "reset", "--stream", "blocks", "--yes")

        assert result.exit_code == 0
        assert "No checkpoint" in result.output

    def test_reset_requires_confirmation(self, runner, workspace):
        invoke(runner, "ingest-tx")

        result = runner.invoke(main, ["-c", "test.toml", "checkpoint", "reset", "--stream", "tx"], input="n\n")

        assert result.exit_code != 0
        assert (workspace / "state" / "progress-tx.dat").exists()


class TestStats:
    """Tests for the stats command."""

    def test_stats_empty(self, runner, workspace):
        result = invoke(runner, "stats")

        assert result.exit_code == 0
        assert "not created" in result.output

    def test_stats_after_ingest(self, runner, workspace):
        invoke(runner, "ingest-tx")
        invoke(runner, "ingest-blocks")

        result = invoke(runner, "stats")

        assert result.exit_code == 0
        assert "Rows" in result.output
        assert "20" in result.output
        assert "10" in result.output
