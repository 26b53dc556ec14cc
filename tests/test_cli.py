"""Tests for CLI interface."""

import json
import subprocess
import sys

import pytest
from click.testing import CliRunner

from photo_discovery.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


def test_cli_help(runner):
    """Test CLI help command."""
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Usage:" in result.output
    assert "photo-discovery" in result.output


def test_cli_version(runner):
    """Test CLI version command."""
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "version" in result.output.lower()


def test_cli_info(runner):
    """Test info lists the search configuration."""
    result = runner.invoke(cli, ["info"])
    assert result.exit_code == 0
    assert "fuzzy_threshold" in result.output


def test_cli_index(runner, collection_file):
    """Test indexing a JSON collection."""
    result = runner.invoke(cli, ["index", str(collection_file)])
    assert result.exit_code == 0
    assert "Indexed 3 photos" in result.output


def test_cli_index_json(runner, collection_file):
    """Test index statistics as JSON."""
    result = runner.invoke(cli, ["index", str(collection_file), "--output-format", "json"])
    assert result.exit_code == 0
    assert json.loads(result.output)["photos"] == 3


def test_cli_search(runner, collection_file):
    """Test a natural-language search."""
    result = runner.invoke(cli, ["search", str(collection_file), "Show me sunset photos from Hawaii"])
    assert result.exit_code == 0
    assert "Found 1 results" in result.output
    assert "sunset.jpg" in result.output


def test_cli_search_jsonld(runner, collection_file):
    """Test structured output."""
    result = runner.invoke(cli, ["search", str(collection_file), "snow photos", "--output-format", "jsonld"])
    assert result.exit_code == 0
    page = json.loads(result.output)
    assert page["@type"] == "SearchResultsPage"
    assert page["numberOfItems"] == 1


def test_cli_search_without_parameters(runner, collection_file):
    """Test an unusable query exits non-zero with suggestions."""
    result = runner.invoke(cli, ["search", str(collection_file), "hmm"])
    assert result.exit_code == 1


def test_cli_parse(runner):
    """Test parse output."""
    result = runner.invoke(cli, ["parse", "Show me sunset photos from Hawaii"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["intent"]["type"] == "discovery"
    assert data["parameters"]["spatial"]["location"] == "Hawaii"


def test_cli_validate(runner):
    """Test validation exit codes."""
    assert runner.invoke(cli, ["validate", "Show me sunset photos from Hawaii"]).exit_code == 0
    result = runner.invoke(cli, ["validate", "photos"])
    assert result.exit_code == 1
    assert json.loads(result.output)["is_valid"] is False


def test_cli_suggest(runner):
    """Test refinement suggestions."""
    result = runner.invoke(cli, ["suggest", "photos"])
    assert result.exit_code == 0
    assert "e.g." in result.output


def test_cli_command(runner, collection_file):
    """Test agent commands from an argument."""
    command = json.dumps({"action": "search", "parameters": {"semantic": {"keywords": ["snow"]}}})
    result = runner.invoke(cli, ["command", str(collection_file), command])
    assert result.exit_code == 0
    assert json.loads(result.output)["success"] is True


def test_cli_command_unknown_parameter(runner, collection_file):
    """Test invalid agent commands exit non-zero."""
    command = json.dumps({"action": "search", "parameters": {"colour": "red"}})
    result = runner.invoke(cli, ["command", str(collection_file)], input=command)
    assert result.exit_code == 1
    assert json.loads(result.output)["error"] == "Unknown parameter: colour"


def test_cli_converse(runner, collection_file):
    """Test a conversational session."""
    session = "Show me sunset photos\nbut only from 2023\nfind mountain pictures\nquit\n"
    result = runner.invoke(cli, ["converse", str(collection_file)], input=session)
    assert result.exit_code == 0
    assert result.output.count("[new_topic]") == 2
    assert "[refinement]" in result.output
    assert "alps.jpg" in result.output


@pytest.mark.integration
def test_cli_subprocess():
    """Test CLI via subprocess."""
    result = subprocess.run(
        [sys.executable, "-m", "photo_discovery.cli", "--help"],
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0
    assert "Usage:" in result.stdout
