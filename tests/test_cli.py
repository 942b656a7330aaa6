"""Integration tests for CLI commands."""

import json
from pathlib import Path

from typer.testing import CliRunner

from m365bridge.cli import app, parse_arg

from .conftest import LIST_GET_DOCS, posix_only

runner = CliRunner()


class TestMainApp:
    """Test main CLI app."""

    def test_help_shows_description(self):
        """Help text shows application description."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Microsoft 365" in result.stdout

    def test_version_flag(self):
        """--version flag shows version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "m365bridge" in result.stdout.lower()

    def test_no_args_shows_help(self):
        """Running without args shows help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.stdout or "Commands:" in result.stdout

    def test_missing_config(self, tmp_path: Path):
        """A config path that doesn't exist is an error."""
        result = runner.invoke(app, ["--config", str(tmp_path / "missing.toml"), "config"])
        assert result.exit_code == 1
        assert "not found" in result.stdout.lower()

    def test_invalid_config(self, tmp_path: Path):
        """A config file that doesn't parse is an error."""
        bad_config = tmp_path / "bad.toml"
        bad_config.write_text("not valid toml = = =")

        result = runner.invoke(app, ["--config", str(bad_config), "config"])
        assert result.exit_code == 1
        assert "failed to load config" in result.stdout.lower()

    def test_show_config(self, config_file: Path, package_root: Path):
        """The effective configuration is printed as JSON."""
        result = runner.invoke(app, ["--config", str(config_file), "config"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["tool"]["package_root"] == str(package_root)
        assert data["execution"]["timeout"] == 10
        assert data["search"]["max_limit"] == 50


class TestDiscoveryCommands:
    """Test 'commands', 'search' and 'docs'."""

    def test_commands_json(self, config_file: Path):
        """Commands are printed as the JSON payload."""
        result = runner.invoke(app, ["--config", str(config_file), "commands", "--json"])

        assert result.exit_code == 0
        commands = json.loads(result.stdout)
        assert [c["name"] for c in commands][:2] == ["m365 spo list add", "m365 spo list get"]

    def test_commands_table(self, config_file: Path):
        """Without --json a table is shown."""
        result = runner.invoke(app, ["--config", str(config_file), "commands"])

        assert result.exit_code == 0
        assert "Commands" in result.stdout
        assert "m365" in result.stdout

    def test_commands_unavailable(self, tmp_path: Path):
        """A missing package prints the error and fails."""
        config = tmp_path / "config.toml"
        config.write_text(f'[tool]\npackage_root = "{tmp_path / "empty"}"\n')

        result = runner.invoke(app, ["--config", str(config), "commands", "--json"])

        assert result.exit_code == 1
        assert '{"error": "Failed to retrieve commands: ' in result.stdout

    def test_search_json(self, config_file: Path):
        """Search results are ranked and limited."""
        result = runner.invoke(
            app,
            ["--config", str(config_file), "search", "sharepoint list", "--limit", "2", "--json"],
        )

        assert result.exit_code == 0
        assert [c["name"] for c in json.loads(result.stdout)] == [
            "m365 spo list add",
            "m365 spo list get",
        ]

    def test_search_no_results(self, config_file: Path):
        """An empty result says so."""
        result = runner.invoke(app, ["--config", str(config_file), "search", "zzzz qqqq"])

        assert result.exit_code == 0
        assert "No commands found" in result.stdout

    def test_docs(self, config_file: Path):
        """Docs text is printed as-is."""
        result = runner.invoke(
            app,
            ["--config", str(config_file), "docs", "m365 spo list get", "spo/list/list-get.mdx"],
        )

        assert result.exit_code == 0
        assert LIST_GET_DOCS.strip() in result.stdout

    def test_docs_missing(self, config_file: Path):
        """A missing doc fails with the command named."""
        result = runner.invoke(
            app,
            ["--config", str(config_file), "docs", "m365 spo web get", "spo/web/web-get.mdx"],
        )

        assert result.exit_code == 1
        assert "m365 spo web get" in result.stdout


class TestRunCommand:
    """Test 'run' command."""

    def test_run_requires_one_form(self, config_file: Path):
        """Either a command line or --name is needed, not both."""
        neither = runner.invoke(app, ["--config", str(config_file), "run"])
        both = runner.invoke(app, ["--config", str(config_file), "run", "m365 status", "-n", "x"])

        assert neither.exit_code == 1
        assert both.exit_code == 1
        assert "either a command line or --name" in neither.stdout

    def test_arg_requires_name(self, config_file: Path):
        """--arg only makes sense with --name."""
        result = runner.invoke(
            app, ["--config", str(config_file), "run", "m365 status", "--arg", "x=1"]
        )
        assert result.exit_code == 1

    @posix_only
    def test_run_command_line(self, config_file: Path, fake_m365: Path):
        """Output of a raw command line is printed."""
        result = runner.invoke(
            app, ["--config", str(config_file), "run", f"{fake_m365} spo site get --url https://x"]
        )

        assert result.exit_code == 0
        assert result.stdout.strip() == '{"args":"spo site get --url https://x --output json"}'

    @posix_only
    def test_run_structured(self, config_file: Path):
        """--name and --arg build a structured request."""
        result = runner.invoke(
            app,
            [
                "--config",
                str(config_file),
                "run",
                "--name",
                "spo list get",
                "--arg",
                "title=Docs",
                "--arg",
                "webUrl=https://x",
                "--arg",
                "withPermissions",
            ],
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {
            "args": "spo list get --title Docs --webUrl https://x --withPermissions true "
            "--output json"
        }

    def test_run_invalid_arguments(self, config_file: Path):
        """Schema violations are reported without running anything."""
        result = runner.invoke(
            app, ["--config", str(config_file), "run", "--name", "spo list add", "-a", "title=x"]
        )

        assert result.exit_code == 1
        assert "webUrl" in result.stdout

    @posix_only
    def test_run_failure(self, config_file: Path, tmp_path: Path):
        """Command failures are printed and exit 1."""
        failing = tmp_path / "fail.sh"
        failing.write_text("echo 'Access denied' >&2\nexit 2\n")

        result = runner.invoke(app, ["--config", str(config_file), "run", f"sh {failing}"])

        assert result.exit_code == 1
        assert "Error: Access denied" in result.stdout


class TestParseArg:
    """Test --arg parsing."""

    def test_key_value(self):
        assert parse_arg("webUrl=https://x?a=b") == ("webUrl", "https://x?a=b")

    def test_bare_key_is_true(self):
        assert parse_arg("withPermissions") == ("withPermissions", True)

    def test_leading_dashes_dropped(self):
        assert parse_arg("--title=Docs") == ("title", "Docs")
