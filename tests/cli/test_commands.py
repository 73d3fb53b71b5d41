"""Tests for the hunter command line."""

import logging
from datetime import timedelta

import pytest
from typer.testing import CliRunner

from hunter_scheduler import __version__
from hunter_scheduler.cli.exit_codes import ExitCode
from hunter_scheduler.config import HunterConfig, set_config
from hunter_scheduler.database.connection import create_tables, get_db_session
from hunter_scheduler.database.models import PlatformIntegration, utcnow
from hunter_scheduler.database.repositories import RepositoryFactory
from hunter_scheduler.main import app
from hunter_scheduler.strategies.registry import set_registry

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_config(tmp_path, registry) -> HunterConfig:
    """Global config on an in-memory database with the stub strategy registered."""
    config = HunterConfig(
        config_dir=tmp_path,
        data_dir=tmp_path,
        database_url="sqlite://",
        worker_id="cli-worker",
    )
    config.scheduler.throttle_interval = 0
    set_config(config)
    set_registry(registry)
    create_tables(config)
    yield config
    # The CLI callback points the root logger at the runner's stderr
    for handler in logging.getLogger().handlers[:]:
        logging.getLogger().removeHandler(handler)


@pytest.fixture
def create_integration(cli_config):
    """Create an integration through the repository and return its ID."""

    def _create(project_id="acme", platform_type="reddit", **kwargs) -> str:
        with get_db_session(cli_config) as session:
            integration = RepositoryFactory(session).integrations.create(
                project_id=project_id, platform_type=platform_type, **kwargs
            )
            return integration.id

    return _create


def fetch(config, integration_id) -> PlatformIntegration:
    with get_db_session(config) as session:
        return session.get(PlatformIntegration, integration_id)


class TestMainCallback:
    """Tests for global options."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == ExitCode.SUCCESS
        assert f"hunter v{__version__}" in result.output

    def test_quiet_and_verbose_conflict(self) -> None:
        result = runner.invoke(app, ["--quiet", "--verbose", "recover"])
        assert result.exit_code == ExitCode.INVALID_ARGUMENT

    def test_config_file_option(self, tmp_path) -> None:
        """Test --config loads the given TOML file."""
        config_file = tmp_path / "hunter.toml"
        config_file.write_text(
            'database_url = "sqlite://"\n'
            'worker_id = "from-file"\n'
            "[scheduler]\n"
            "batch_cap = 9\n"
        )

        result = runner.invoke(app, ["--config", str(config_file), "config", "show", "scheduler"])

        assert result.exit_code == ExitCode.SUCCESS
        assert "batch_cap = 9" in result.output


class TestIntegrationsCommands:
    """Tests for `hunter integrations`."""

    def test_create(self, cli_config) -> None:
        result = runner.invoke(app, [
            "integrations", "create",
            "--project", "acme",
            "--platform", "reddit",
            "--frequency", "30",
            "--config", '{"subreddits": ["python"]}',
        ])

        assert result.exit_code == ExitCode.SUCCESS, result.output
        assert "Integration created" in result.output
        with get_db_session(cli_config) as session:
            integration = RepositoryFactory(session).integrations.get_all(project_id="acme")[0]
        assert integration.scan_frequency_minutes == 30
        assert integration.config == {"subreddits": ["python"]}
        assert integration.status == "active"

    def test_create_paused_uses_default_frequency(self, cli_config) -> None:
        cli_config.scheduler.default_scan_frequency = 45
        result = runner.invoke(app, [
            "integrations", "create", "--project", "acme", "--platform", "hackernews", "--paused",
        ])

        assert result.exit_code == ExitCode.SUCCESS, result.output
        with get_db_session(cli_config) as session:
            integration = RepositoryFactory(session).integrations.get_all(project_id="acme")[0]
        assert integration.status == "paused"
        assert integration.scan_frequency_minutes == 45

    def test_create_unknown_platform(self) -> None:
        result = runner.invoke(app, [
            "integrations", "create", "--project", "acme", "--platform", "myspace",
        ])
        assert result.exit_code == ExitCode.CONFIGURATION_ERROR

    def test_create_duplicate(self, create_integration) -> None:
        """Test a project can have only one integration per platform."""
        create_integration()
        result = runner.invoke(app, [
            "integrations", "create", "--project", "acme", "--platform", "reddit",
        ])
        assert result.exit_code == ExitCode.INVALID_ARGUMENT

    @pytest.mark.parametrize("config_json", ["{not json", "[1, 2]"])
    def test_create_bad_config(self, config_json) -> None:
        result = runner.invoke(app, [
            "integrations", "create", "--project", "acme", "--platform", "reddit",
            "--config", config_json,
        ])
        assert result.exit_code == ExitCode.INVALID_ARGUMENT

    def test_list_json(self, create_integration) -> None:
        create_integration(project_id="acme")
        create_integration(project_id="globex", platform_type="github", status="paused")

        result = runner.invoke(app, ["integrations", "list", "--status", "paused", "--json"])

        assert result.exit_code == ExitCode.SUCCESS
        assert '"project_id": "globex"' in result.output
        assert '"project_id": "acme"' not in result.output

    def test_list_empty(self) -> None:
        result = runner.invoke(app, ["integrations", "list"])
        assert result.exit_code == ExitCode.SUCCESS
        assert "No integrations found" in result.output

    def test_show_by_prefix(self, create_integration) -> None:
        integration_id = create_integration()
        result = runner.invoke(app, ["integrations", "show", integration_id[:8], "--json"])
        assert result.exit_code == ExitCode.SUCCESS
        assert integration_id in result.output

    def test_show_missing(self) -> None:
        result = runner.invoke(app, ["integrations", "show", "nope"])
        assert result.exit_code == ExitCode.NOT_FOUND

    def test_pause_and_resume(self, cli_config, create_integration) -> None:
        """Test pausing and resuming keeps the due time."""
        integration_id = create_integration()
        due = fetch(cli_config, integration_id).next_due_at

        result = runner.invoke(app, ["integrations", "pause", integration_id])
        assert result.exit_code == ExitCode.SUCCESS
        assert fetch(cli_config, integration_id).status == "paused"

        result = runner.invoke(app, ["integrations", "resume", integration_id])
        assert result.exit_code == ExitCode.SUCCESS
        row = fetch(cli_config, integration_id)
        assert row.status == "active"
        assert row.next_due_at == due

    def test_delete_force(self, cli_config, create_integration) -> None:
        integration_id = create_integration()
        result = runner.invoke(app, ["integrations", "delete", integration_id, "--force"])
        assert result.exit_code == ExitCode.SUCCESS
        assert fetch(cli_config, integration_id) is None

    def test_delete_declined(self, cli_config, create_integration) -> None:
        integration_id = create_integration()
        result = runner.invoke(app, ["integrations", "delete", integration_id], input="n\n")
        assert result.exit_code != ExitCode.SUCCESS
        assert fetch(cli_config, integration_id) is not None


class TestScanNowCommand:
    """Tests for `hunter integrations scan-now`."""

    def test_scan_now(self, cli_config, stub, create_integration) -> None:
        """Test an integration not yet due is scanned and rescheduled."""
        integration_id = create_integration(next_due_at=utcnow() + timedelta(days=1))

        result = runner.invoke(app, ["integrations", "scan-now", integration_id])

        assert result.exit_code == ExitCode.SUCCESS, result.output
        assert "Scan completed" in result.output
        assert len(stub.calls) == 1
        row = fetch(cli_config, integration_id)
        assert row.total_scans == 1
        assert row.next_due_at < utcnow() + timedelta(days=1)

    def test_dry_run(self, cli_config, stub, create_integration) -> None:
        """Test a dry run records a test log and keeps the schedule."""
        due = utcnow() + timedelta(days=1)
        integration_id = create_integration(next_due_at=due)

        result = runner.invoke(app, ["integrations", "scan-now", integration_id, "--dry-run"])

        assert result.exit_code == ExitCode.SUCCESS, result.output
        row = fetch(cli_config, integration_id)
        assert row.next_due_at == due
        assert row.total_scans == 0
        with get_db_session(cli_config) as session:
            logs = RepositoryFactory(session).scan_logs.get_history(integration_id=integration_id)
            assert [log.trigger for log in logs] == ["test"]

    def test_failed_scan(self, stub, create_integration) -> None:
        stub.error = RuntimeError("HTTP 429")
        integration_id = create_integration()

        result = runner.invoke(app, ["integrations", "scan-now", integration_id])

        assert result.exit_code == ExitCode.STRATEGY_ERROR
        assert "HTTP 429" in result.output

    def test_paused(self, create_integration) -> None:
        integration_id = create_integration(status="paused")
        result = runner.invoke(app, ["integrations", "scan-now", integration_id])
        assert result.exit_code == ExitCode.INVALID_ARGUMENT


class TestTriggerCommands:
    """Tests for `hunter scan` and `hunter recover`."""

    def test_scan(self, stub, create_integration) -> None:
        create_integration(project_id="acme")
        create_integration(project_id="globex")

        result = runner.invoke(app, ["scan", "--json"])

        assert result.exit_code == ExitCode.SUCCESS, result.output
        assert '"succeeded": 2' in result.output
        assert len(stub.calls) == 2

    def test_scan_nothing_due(self) -> None:
        result = runner.invoke(app, ["scan"])
        assert result.exit_code == ExitCode.SUCCESS
        assert "No integrations due" in result.output

    def test_scan_table(self, create_integration) -> None:
        create_integration()
        result = runner.invoke(app, ["scan"])
        assert result.exit_code == ExitCode.SUCCESS
        assert "Selected 1, scanned 1" in result.output

    def test_recover(self, cli_config, create_integration) -> None:
        """Test an expired lease is released."""
        integration_id = create_integration()
        with get_db_session(cli_config) as session:
            row = session.get(PlatformIntegration, integration_id)
            row.lease_owner = "dead-worker"
            row.locked_at = utcnow() - timedelta(hours=2)
            row.lease_expires_at = utcnow() - timedelta(hours=1)

        result = runner.invoke(app, ["recover"])

        assert result.exit_code == ExitCode.SUCCESS
        assert "Recovered 1 stale lease(s)" in result.output
        assert fetch(cli_config, integration_id).lease_owner is None

    def test_run_rejects_invalid_config(self, cli_config) -> None:
        cli_config.scheduler.batch_cap = 0
        result = runner.invoke(app, ["run"])
        assert result.exit_code == ExitCode.CONFIGURATION_ERROR


class TestHistoryCommands:
    """Tests for `hunter history`."""

    def test_history_after_scan(self, create_integration) -> None:
        integration_id = create_integration()
        runner.invoke(app, ["integrations", "scan-now", integration_id])

        result = runner.invoke(app, ["history", "--integration", integration_id[:8], "--json"])

        assert result.exit_code == ExitCode.SUCCESS
        assert '"trigger": "manual"' in result.output
        assert '"items_found": 10' in result.output

    def test_history_empty(self) -> None:
        result = runner.invoke(app, ["history"])
        assert result.exit_code == ExitCode.SUCCESS
        assert "No scan history" in result.output

    def test_prune(self, create_integration) -> None:
        integration_id = create_integration()
        runner.invoke(app, ["integrations", "scan-now", integration_id])

        result = runner.invoke(app, ["history", "prune", "--days", "7"])

        assert result.exit_code == ExitCode.SUCCESS
        assert "Deleted 0 scan log(s)" in result.output


class TestConfigCommands:
    """Tests for `hunter config`."""

    def test_show_masks_secret(self, cli_config) -> None:
        cli_config.server.cron_secret = "hunter2"
        result = runner.invoke(app, ["config", "show", "server"])
        assert result.exit_code == ExitCode.SUCCESS
        assert "hunter2" not in result.output
        assert "********" in result.output

    def test_show_unknown_section(self) -> None:
        result = runner.invoke(app, ["config", "show", "nope"])
        assert result.exit_code == ExitCode.INVALID_ARGUMENT

    def test_validate_ok(self) -> None:
        result = runner.invoke(app, ["config", "validate"])
        assert result.exit_code == ExitCode.SUCCESS
        assert "Configuration is valid" in result.output

    def test_validate_serving_warns(self) -> None:
        result = runner.invoke(app, ["config", "validate", "--serving"])
        assert result.exit_code == ExitCode.SUCCESS
        assert "cron_secret" in result.output

    def test_validate_error(self, cli_config) -> None:
        cli_config.scheduler.lease_timeout = -1
        result = runner.invoke(app, ["config", "validate"])
        assert result.exit_code == ExitCode.CONFIGURATION_ERROR


class TestStrategiesCommand:
    """Tests for `hunter strategies list`."""

    def test_list(self) -> None:
        result = runner.invoke(app, ["strategies", "list"])
        assert result.exit_code == ExitCode.SUCCESS
        assert "reddit" in result.output
        assert "registered" in result.output
        assert "not installed" in result.output
