"""Tests for formatting helpers and models."""

from __future__ import annotations

from pathlib import Path

from capacity.models.scan_result import ChildEntry, SkipCounts, VolumeUsage
from capacity.utils import bytes_to_human, format_elapsed, percent_string


class TestFormatting:
    def test_bytes_to_human(self):
        assert bytes_to_human(0) == "0 B"
        assert bytes_to_human(512) == "512 B"
        assert bytes_to_human(4096) == "4.0 KB"
        assert bytes_to_human(3 * 1024**3) == "3.0 GB"
        assert bytes_to_human(-2048) == "-2.0 KB"

    def test_percent_string(self):
        assert percent_string(0.7) == "70.0%"
        assert percent_string(0) == "0.0%"

    def test_format_elapsed(self):
        assert format_elapsed(0.25) == "250 ms"
        assert format_elapsed(12.34) == "12.3s"
        assert format_elapsed(125) == "2m 5s"


class TestModels:
    def test_volume_usage_from_free(self):
        usage = VolumeUsage.from_free(1000, 300)
        assert usage.used_bytes == 700
        assert usage.total_bytes == 1000
        assert usage.fraction_used == 0.7

    def test_volume_usage_clamped(self):
        assert VolumeUsage.from_free(1000, 1500).used_bytes == 0
        assert VolumeUsage.from_free(0, 0).fraction_used == 0

    def test_entry_name(self):
        assert ChildEntry(Path("/tmp/a/b"), 1, True).name == "b"
        assert ChildEntry(Path("/"), 1, True).name == "/"

    def test_skip_counts_total(self):
        assert SkipCounts(symlinks=1, unreadable=2, empty=3).total == 6

