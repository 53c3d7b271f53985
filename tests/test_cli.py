"""Tests for the command line interface."""

from __future__ import annotations

import json

from click.testing import CliRunner

from capacity.cli import main
from capacity.settings import Settings


class TestScanCommand:
    def test_lists_children(self, usage_tree):
        result = CliRunner().invoke(main, ["scan", str(usage_tree)])
        assert result.exit_code == 0, result.output
        assert "Scan complete" in result.output
        assert "Total of listed items" in result.output
        lines = result.output.splitlines()
        b_line = next(i for i, line in enumerate(lines) if line.endswith(" b"))
        f_line = next(i for i, line in enumerate(lines) if line.endswith(" f"))
        assert b_line < f_line

    def test_json_output(self, usage_tree):
        result = CliRunner().invoke(main, ["scan", "--json", str(usage_tree)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["status"] == "complete"
        assert [e["path"] for e in data["entries"]] == [str(usage_tree / "b"), str(usage_tree / "f")]
        assert data["selection_total"] == sum(e["size_bytes"] for e in data["entries"])

    def test_empty_folder(self, tmp_path):
        result = CliRunner().invoke(main, ["scan", str(tmp_path / "nothing_here_yet")])
        assert result.exit_code != 0

        (tmp_path / "hollow").mkdir()
        result = CliRunner().invoke(main, ["scan", str(tmp_path / "hollow")])
        assert result.exit_code == 0
        assert "Nothing to show here." in result.output

    def test_default_root_from_settings(self, usage_tree):
        Settings.instance().set("scan.default_root", str(usage_tree))
        result = CliRunner().invoke(main, ["scan", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["root"] == str(usage_tree)


class TestBrowseCommand:
    def test_drill_down_and_back(self, usage_tree):
        result = CliRunner().invoke(main, ["browse", str(usage_tree)], input="1\nb\nq\n")
        assert result.exit_code == 0, result.output
        assert f"Current root: {usage_tree / 'b'}" in result.output
        assert result.output.count(f"Current root: {usage_tree}\n") == 2

    def test_invalid_choices(self, usage_tree):
        result = CliRunner().invoke(main, ["browse", str(usage_tree)], input="2\n9\nb\nzz\nq\n")
        assert result.exit_code == 0, result.output
        assert "f is not a folder." in result.output
        assert "No entry #9." in result.output
        assert "Nothing to go back to." in result.output
        assert "Unknown choice 'zz'." in result.output


class TestConfigCommand:
    def test_set_and_show(self, isolate_settings):
        runner = CliRunner()
        result = runner.invoke(main, ["config", "set", "scan.one_filesystem", "true"])
        assert result.exit_code == 0, result.output
        assert Settings.instance().get("scan.one_filesystem") is True
        assert json.loads(isolate_settings.read_text())["scan"]["one_filesystem"] is True

        result = runner.invoke(main, ["config", "show"])
        assert '"one_filesystem": true' in result.output
