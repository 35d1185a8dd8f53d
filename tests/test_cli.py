"""
Tests for the Command-Line Interface
"""

import json
from datetime import datetime

from click.testing import CliRunner

from dealgraph.main import cli


class TestCli:
    """Smoke tests for CLI commands against the sample data."""

    def test_requires_one_source(self):
        """Test that a command without a data source fails."""
        result = CliRunner().invoke(cli, ["stats"])
        assert result.exit_code == 1
        assert "Choose exactly one" in result.output

    def test_stats(self):
        """Test stats on the sample graph."""
        result = CliRunner().invoke(cli, ["stats", "--sample"])
        assert result.exit_code == 0
        assert "Graph Statistics" in result.output
        assert "contact" in result.output

    def test_path(self):
        """Test path output lists the introducer."""
        result = CliRunner().invoke(cli, ["path", "contact_4", "contact_5", "--sample"])
        assert result.exit_code == 0
        assert "Sarah Johnson" in result.output

    def test_path_not_found(self):
        """Test the message for unreachable targets."""
        result = CliRunner().invoke(cli, ["path", "contact_1", "account_1", "--sample"])
        assert result.exit_code == 0
        assert "No path found" in result.output

    def test_org_chart_unknown_account(self):
        """Test unknown accounts exit with an error."""
        result = CliRunner().invoke(cli, ["org-chart", "nope", "--sample"])
        assert result.exit_code == 1

    def test_analyze_with_telemetry(self, tmp_path):
        """Test telemetry events produce a hot lead."""
        telemetry = tmp_path / "telemetry.json"
        telemetry.write_text(json.dumps([
            {"deal_id": "deal_1", "type": "document_view", "timestamp": datetime.now().isoformat()},
        ]))

        result = CliRunner().invoke(cli, ["analyze", "--sample", "--telemetry", str(telemetry)])

        assert result.exit_code == 0
        assert "Opened proposal 1x" in result.output

    def test_process_writes_reports(self, tmp_path):
        """Test the full run writes JSON reports."""
        result = CliRunner().invoke(cli, ["process", "--sample", "-o", str(tmp_path), "-f", "json"])

        assert result.exit_code == 0
        assert list(tmp_path.glob("contact_influence*.json"))
        assert list(tmp_path.glob("deal_health*.json"))
