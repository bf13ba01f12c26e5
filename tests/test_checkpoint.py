"""
Tests for cursor persistence.
"""

from __future__ import annotations

import pytest

from chain_ingest.ingest import CheckpointStore
from chain_ingest.models import Cursor


class TestPaths:
    """Tests for per-stream file naming."""

    def test_default_stream(self, tmp_path):
        store = CheckpointStore(tmp_path)
        assert store.path_for() == tmp_path / "progress.dat"
        assert store.path_for(None) == tmp_path / "progress.dat"

    def test_named_stream(self, tmp_path):
        store = CheckpointStore(tmp_path)
        assert store.path_for("tx") == tmp_path / "progress-tx.dat"

    def test_custom_progress_file(self, tmp_path):
        store = CheckpointStore(tmp_path, "cursor.txt")
        assert store.path_for() == tmp_path / "cursor.txt"
        assert store.path_for("tx") == tmp_path / "cursor-tx.txt"

    @pytest.mark.parametrize("name", ["", "sub/progress.dat", "../progress.dat"])
    def test_rejects_paths(self, tmp_path, name):
        with pytest.raises(ValueError, match="plain file name"):
            CheckpointStore(tmp_path, name)


class TestLoadSave:
    """Tests for load/save/reset."""

    def test_missing_is_origin(self, checkpoints):
        """Test that a fresh store resumes from the origin."""
        assert checkpoints.load("tx") == Cursor.origin()
        assert checkpoints.load() == Cursor.origin()

    def test_round_trip(self, checkpoints):
        cursor = Cursor(4, 123_456)

        path = checkpoints.save(cursor, "tx")

        assert path.read_text() == "4:123456"
        assert checkpoints.load("tx") == cursor

    def test_streams_are_independent(self, checkpoints):
        """Test that the tx stream and the default stream never share a file."""
        checkpoints.save(Cursor(1, 10), "tx")
        checkpoints.save(Cursor(7, 70))

        assert checkpoints.load("tx") == Cursor(1, 10)
        assert checkpoints.load() == Cursor(7, 70)

    def test_overwrite(self, checkpoints):
        checkpoints.save(Cursor(1, 10), "tx")
        checkpoints.save(Cursor(2, 0), "tx")

        assert checkpoints.load("tx") == Cursor(2, 0)

    def test_no_temp_files_left(self, checkpoints):
        checkpoints.save(Cursor(1, 10), "tx")
        checkpoints.save(Cursor(1, 20), "tx")

        assert [p.name for p in checkpoints.directory.iterdir()] == ["progress-tx.dat"]

    def test_corrupt_is_origin(self, checkpoints):
        """Test that an unreadable file resumes from the origin."""
        path = checkpoints.path_for("tx")
        path.parent.mkdir(parents=True)
        path.write_text("garbage")

        assert checkpoints.load("tx") == Cursor.origin()

    def test_reset(self, checkpoints):
        checkpoints.save(Cursor(3, 3), "tx")

        assert checkpoints.reset("tx") is True
        assert checkpoints.load("tx") == Cursor.origin()
        assert checkpoints.reset("tx") is False

    def test_reset_leaves_other_stream(self, checkpoints):
        checkpoints.save(Cursor(3, 3), "tx")
        checkpoints.save(Cursor(5, 5))

        checkpoints.reset()

        assert checkpoints.load("tx") == Cursor(3, 3)
