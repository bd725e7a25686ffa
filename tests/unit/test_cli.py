"""
Unit tests for the audit_nodesync command line script.
"""

import importlib.util
import json
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from cassandra.cluster import NoHostAvailable
from hvac.exceptions import VaultError

from nodesync_audit.config import DEFAULT_TABLES

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "audit_nodesync.py"


@pytest.fixture(scope="module")
def cli():
    """Load the script as a module."""
    spec = importlib.util.spec_from_file_location("audit_nodesync", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("HOST", "PORT", "DC", "KEYSPACE", "TABLES", "USERNAME", "PASSWORD",
                 "VAULT_PATH", "TIMEOUT", "WORKERS", "METRICS_PORT", "PUSHGATEWAY"):
        monkeypatch.delenv(f"NODESYNC_AUDIT_{name}", raising=False)


@pytest.fixture
def mocks(cli, fake_source, make_row, make_validation):
    """Patch logging setup, credentials and the live data source."""
    source = fake_source({
        "users": [make_row(0, 10, table="users", keyspace="app", success=make_validation())],
    })
    with patch.object(cli, "configure_logging"), \
            patch.object(cli, "resolve_credentials", return_value=None) as credentials, \
            patch.object(cli, "NodeSyncStatusSource") as source_class:
        source_class.from_config.return_value.__enter__.return_value = source
        yield {"credentials": credentials, "source_class": source_class, "source": source}


class TestArgumentParsing:
    """Test command line parsing."""

    def test_positional_connection_arguments(self, cli):
        args = cli.build_parser().parse_args(["10.0.0.12", "19042", "DC2"])

        assert (args.host, args.port, args.dc) == ("10.0.0.12", 19042, "DC2")

    def test_no_arguments(self, cli):
        """Test that every argument is optional."""
        args = cli.build_parser().parse_args([])

        assert args.host is None
        assert args.tables is None
        assert args.json is False

    def test_repeated_tables(self, cli):
        args = cli.build_parser().parse_args(["--table", "users", "--table", "orders"])

        assert args.tables == ["users", "orders"]

    def test_load_config_applies_overrides(self, cli, monkeypatch):
        """Test that command line values win over the environment."""
        monkeypatch.setenv("NODESYNC_AUDIT_HOST", "env-host")
        monkeypatch.setenv("NODESYNC_AUDIT_DC", "DC9")

        config = cli.load_config(cli.build_parser().parse_args(["cli-host", "--workers", "2"]))

        assert config.host == "cli-host"
        assert config.local_dc == "DC9"
        assert config.workers == 2
        assert config.tables == DEFAULT_TABLES


class TestMain:
    """Test the main entry point."""

    def test_text_report(self, cli, mocks, capsys):
        """Test a successful audit printing one header and three ranges."""
        exit_code = cli.main(["--keyspace", "app", "--table", "users"])

        assert exit_code == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "Checking app.users..."
        assert len(lines) == 4
        assert lines[2] == "app.users, range [0;10], lastOutcome=0 (fully in sync)"
        assert mocks["source"].calls == [("app", "users")]

    def test_json_report(self, cli, mocks, capsys):
        exit_code = cli.main(["--keyspace", "app", "--table", "users", "--json"])

        assert exit_code == 0
        document = json.loads(capsys.readouterr().out)
        assert document["tables"][0]["table"] == "users"
        assert len(document["tables"][0]["ranges"]) == 3

    def test_table_failure_exit_code(self, cli, mocks, capsys):
        """Test that a failed table makes the run fail after reporting all tables."""
        mocks["source"].errors_by_table["orders"] = ValueError("bad row")

        exit_code = cli.main(["--keyspace", "app", "--table", "users", "--table", "orders"])

        assert exit_code == 1
        out = capsys.readouterr().out
        assert "Checking app.users..." in out
        assert "Audit failed: ValueError: bad row" in out

    def test_connection_settings_passed_to_source(self, cli, mocks):
        cli.main(["db-1", "9142", "DC2", "--keyspace", "app", "--table", "users"])

        config = mocks["source_class"].from_config.call_args.args[0]
        assert (config.host, config.port, config.local_dc) == ("db-1", 9142, "DC2")
        mocks["credentials"].assert_called_once_with(None, None, None)

    def test_no_host_available(self, cli, mocks):
        """Test that an unreachable cluster exits with 1."""
        mocks["source_class"].from_config.return_value.__enter__.side_effect = NoHostAvailable(
            "Unable to connect", {}
        )

        assert cli.main(["--table", "users"]) == 1

    def test_vault_error(self, cli, mocks):
        mocks["credentials"].side_effect = VaultError("sealed")

        assert cli.main(["--table", "users"]) == 1

    def test_invalid_configuration(self, cli, mocks):
        assert cli.main(["--workers", "0"]) == 2

    def test_pushes_metrics(self, cli, mocks):
        with patch.object(cli.CoverageMetrics, "push") as push:
            exit_code = cli.main(["--keyspace", "app", "--table", "users", "--pushgateway", "gw:9091"])

        assert exit_code == 0
        push.assert_called_once_with("gw:9091")

    def test_push_failure_does_not_fail_run(self, cli, mocks):
        with patch.object(cli.CoverageMetrics, "push", side_effect=OSError("unreachable")):
            assert cli.main(["--keyspace", "app", "--table", "users", "--pushgateway", "gw:9091"]) == 0

    def test_metrics_server(self, cli, mocks):
        with patch.object(cli.CoverageMetrics, "start_server") as start_server:
            cli.main(["--keyspace", "app", "--table", "users", "--metrics-port", "9108"])

        start_server.assert_called_once_with(9108)

    def test_emit_alert_rules(self, cli, mocks, tmp_path):
        """Test that alert rules are written without contacting the cluster."""
        path = tmp_path / "rules.yml"

        assert cli.main(["--emit-alert-rules", str(path)]) == 0

        assert yaml.safe_load(path.read_text())["groups"][0]["name"] == "nodesync_coverage"
        mocks["source_class"].from_config.assert_not_called()
