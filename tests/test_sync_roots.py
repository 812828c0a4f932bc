"""Unit tests for sync roots."""

import dataclasses
import tempfile
from pathlib import Path

import pytest

from pymirror.exceptions import MirrorConfigError
from pymirror.sync.roots import SyncRoots
from pymirror.utils import DEFAULT_MMAP_MIN_SIZE


class TestSyncRoots:
    """Tests for SyncRoots class."""

    def test_create_sync_roots(self):
        """Test creating basic sync roots."""
        roots = SyncRoots(source=Path("/srv/data"), destination=Path("/mnt/mirror"))

        assert roots.source == Path("/srv/data")
        assert roots.destination == Path("/mnt/mirror")
        assert roots.recursive is False
        assert roots.copy_threshold == DEFAULT_MMAP_MIN_SIZE

    def test_normalization(self):
        """Test that strings are converted to Path and sizes are parsed."""
        roots = SyncRoots(
            source="/srv/data",
            destination="/mnt/mirror",
            recursive=1,
            copy_threshold="1M",
        )

        assert isinstance(roots.source, Path)
        assert isinstance(roots.destination, Path)
        assert roots.recursive is True
        assert roots.copy_threshold == 1024 * 1024

    def test_is_immutable(self):
        """Roots cannot be changed once built."""
        roots = SyncRoots(source="/a", destination="/b")

        with pytest.raises(dataclasses.FrozenInstanceError):
            roots.recursive = True

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            SyncRoots(source="/a", destination="/b", copy_threshold=-1)

    def test_from_dict(self):
        """Test creating sync roots from dictionary."""
        data = {
            "source": "/srv/data",
            "destination": "/mnt/mirror",
            "recursive": True,
            "copyThreshold": 4096,
        }

        roots = SyncRoots.from_dict(data)

        assert roots.source == Path("/srv/data")
        assert roots.destination == Path("/mnt/mirror")
        assert roots.recursive is True
        assert roots.copy_threshold == 4096

    def test_from_dict_minimal(self):
        roots = SyncRoots.from_dict({"source": "/a", "destination": "/b"})

        assert roots.recursive is False
        assert roots.copy_threshold == DEFAULT_MMAP_MIN_SIZE

    def test_from_dict_missing_required_field(self):
        """Test that missing required fields raise ValueError."""
        with pytest.raises(ValueError, match="Missing required fields: destination"):
            SyncRoots.from_dict({"source": "/a"})

    def test_to_dict_round_trip(self):
        roots = SyncRoots(source="/a", destination="/b", recursive=True)

        assert SyncRoots.from_dict(roots.to_dict()) == roots
        assert roots.to_dict() == {
            "source": "/a",
            "destination": "/b",
            "recursive": True,
            "copyThreshold": DEFAULT_MMAP_MIN_SIZE,
        }

    def test_parse_literal(self):
        roots = SyncRoots.parse_literal("/srv/data:/mnt/mirror", recursive=True)

        assert roots.source == Path("/srv/data")
        assert roots.destination == Path("/mnt/mirror")
        assert roots.recursive is True

    def test_parse_literal_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid sync roots literal"):
            SyncRoots.parse_literal("invalid")

        with pytest.raises(ValueError, match="Invalid sync roots literal"):
            SyncRoots.parse_literal("a:b:c")

    def test_parse_literal_empty_paths(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            SyncRoots.parse_literal(":/mnt/mirror")

    def test_str_representation(self):
        roots = SyncRoots(source="/srv/data", destination="/mnt/mirror")

        assert str(roots) == "/srv/data -> /mnt/mirror (flat)"


class TestValidate:
    """Tests for SyncRoots.validate()."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_valid_roots(self, temp_dir):
        (temp_dir / "src").mkdir()
        (temp_dir / "dest").mkdir()

        SyncRoots(temp_dir / "src", temp_dir / "dest").validate()

    def test_missing_source(self, temp_dir):
        (temp_dir / "dest").mkdir()

        with pytest.raises(MirrorConfigError, match="Source does not exist"):
            SyncRoots(temp_dir / "src", temp_dir / "dest").validate()

    def test_destination_is_a_file(self, temp_dir):
        (temp_dir / "src").mkdir()
        (temp_dir / "dest").write_text("file")

        with pytest.raises(MirrorConfigError, match="Destination is not a directory"):
            SyncRoots(temp_dir / "src", temp_dir / "dest").validate()

    def test_same_directory(self, temp_dir):
        with pytest.raises(MirrorConfigError, match="same directory"):
            SyncRoots(temp_dir, temp_dir / ".").validate()

    def test_nested_roots(self, temp_dir):
        (temp_dir / "src" / "inner").mkdir(parents=True)

        with pytest.raises(MirrorConfigError, match="nested"):
            SyncRoots(temp_dir / "src", temp_dir / "src" / "inner").validate()

        with pytest.raises(MirrorConfigError, match="nested"):
            SyncRoots(temp_dir / "src" / "inner", temp_dir / "src").validate()
