"""
CLI interface tests for dep-promoter.
Tests the command-line interface and main entry points.
"""

import json

import toml
from click.testing import CliRunner

from dep_promoter.main import __version__, cli


def read_toml(path):
    return toml.loads(path.read_text(encoding="utf-8"))


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self):
        """Test CLI help message."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "dep-promoter" in result.output.lower()

    def test_cli_version(self):
        """Test CLI version display."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_info_command(self):
        """Test the info command."""
        runner = CliRunner()
        result = runner.invoke(cli, ["info"])

        assert result.exit_code == 0
        assert "DEP_PROMOTER_MIN_OCCURRENCES" in result.output

    def test_completion_scripts(self):
        """Test completion script output for every shell."""
        runner = CliRunner()
        for shell in ("bash", "zsh", "fish"):
            result = runner.invoke(cli, ["completion", shell])
            assert result.exit_code == 0
            assert "dep-promoter" in result.output

    def test_completion_unknown_shell(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["completion", "powershell"])

        assert result.exit_code != 0


class TestPromoteCommand:
    """Test the promote and plan commands."""

    def test_promote_rewrites_manifests(self, serde_workspace):
        """Test promote writes the workspace and member entries."""
        runner = CliRunner()
        result = runner.invoke(cli, ["promote", "--workspace-root", str(serde_workspace)])

        assert result.exit_code == 0
        root = read_toml(serde_workspace / "Cargo.toml")
        assert root["workspace"]["dependencies"]["serde"]["version"] == "1.0"
        assert "Updated" in result.output

    def test_promote_twice_reports_up_to_date(self, serde_workspace):
        runner = CliRunner()
        runner.invoke(cli, ["promote", "-w", str(serde_workspace)])
        result = runner.invoke(cli, ["promote", "-w", str(serde_workspace)])

        assert result.exit_code == 0
        assert "already up to date" in result.output

    def test_plan_does_not_write(self, serde_workspace):
        """Test plan leaves every manifest untouched."""
        root_manifest = serde_workspace / "Cargo.toml"
        before = root_manifest.read_text(encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(cli, ["plan", "-w", str(serde_workspace), "--verbose"])

        assert result.exit_code == 0
        assert "Would update" in result.output
        assert root_manifest.read_text(encoding="utf-8") == before

    def test_promote_dry_run(self, serde_workspace):
        alpha = serde_workspace / "crates" / "alpha" / "Cargo.toml"
        before = alpha.read_text(encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(cli, ["promote", "-w", str(serde_workspace), "--dry-run"])

        assert result.exit_code == 0
        assert alpha.read_text(encoding="utf-8") == before

    def test_plan_json_output(self, serde_workspace):
        """Test machine-readable plan output."""
        runner = CliRunner()
        result = runner.invoke(
            cli, ["plan", "-w", str(serde_workspace), "--output-format", "json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["promoted"][0]["name"] == "serde"
        assert data["written"] == []
        assert [op["op"] for op in data["ops"]] == [
            "workspace_entry",
            "member_entry",
            "member_entry",
        ]

    def test_json_output_file(self, serde_workspace, temp_dir):
        output_file = temp_dir / "plan.json"
        runner = CliRunner()
        result = runner.invoke(
            cli,
            [
                "plan",
                "-w",
                str(serde_workspace),
                "--output-format",
                "json",
                "-o",
                str(output_file),
            ],
        )

        assert result.exit_code == 0
        data = json.loads(output_file.read_text(encoding="utf-8"))
        assert data["minimum_occurrences"] == 2

    def test_output_file_requires_json(self, serde_workspace, temp_dir):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["plan", "-w", str(serde_workspace), "-o", str(temp_dir / "plan.json")]
        )

        assert result.exit_code != 0
        assert "JSON format" in result.output

    def test_min_occurrences_option(self, serde_workspace):
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["plan", "-w", str(serde_workspace), "-m", "3", "--output-format", "json"],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["promoted"] == []
        assert data["ops"] == []

    def test_quiet_mode(self, serde_workspace):
        runner = CliRunner()
        result = runner.invoke(cli, ["promote", "-w", str(serde_workspace), "--quiet"])

        assert result.exit_code == 0
        assert result.output.strip() == ""


class TestErrorHandling:
    """Test CLI error handling."""

    def test_invalid_min_occurrences(self, serde_workspace):
        runner = CliRunner()
        result = runner.invoke(cli, ["promote", "-w", str(serde_workspace), "-m", "0"])

        assert result.exit_code == 2

    def test_zero_min_occurrences_from_environment(self, serde_workspace, monkeypatch):
        """Test that a zero threshold from the environment is refused, not ignored."""
        monkeypatch.setenv("DEP_PROMOTER_MIN_OCCURRENCES", "0")
        runner = CliRunner()
        result = runner.invoke(
            cli, ["plan", "-w", str(serde_workspace), "--output-format", "json"]
        )

        assert result.exit_code == 2
        assert "minimum occurrences" in result.output

    def test_zero_min_occurrences_from_config_file(self, serde_workspace, monkeypatch):
        (serde_workspace / ".dep-promoter.json").write_text(
            json.dumps({"promotion": {"minimum_occurrences": 0}})
        )
        monkeypatch.chdir(serde_workspace)
        runner = CliRunner()
        result = runner.invoke(cli, ["promote"])

        assert result.exit_code == 2
        assert "dependencies" not in (serde_workspace / "Cargo.toml").read_text(encoding="utf-8")

    def test_missing_workspace_root(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["promote", "-w", "/nonexistent/workspace"])

        assert result.exit_code == 2

    def test_directory_without_manifest(self, temp_dir):
        runner = CliRunner()
        result = runner.invoke(cli, ["promote", "-w", str(temp_dir)])

        assert result.exit_code == 1
        assert "Cargo.toml" in result.output

    def test_missing_workspace_entry(self, make_workspace):
        workspace = make_workspace(
            {
                "alpha": """
                [dependencies]
                rand = { workspace = true }
                """,
            }
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["promote", "-w", str(workspace)])

        assert result.exit_code == 1
        assert "rand" in result.output


class TestConfigCommands:
    """Test configuration management commands."""

    def test_config_init(self, temp_dir):
        config_path = temp_dir / "config.json"
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "init", "--path", str(config_path)])

        assert result.exit_code == 0
        data = json.loads(config_path.read_text(encoding="utf-8"))
        assert data["promotion"]["minimum_occurrences"] == 2

    def test_config_init_existing(self, temp_dir):
        config_path = temp_dir / "config.json"
        config_path.write_text("{}")
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "init", "--path", str(config_path)])

        assert result.exit_code == 0
        assert "already exists" in result.output
        assert config_path.read_text() == "{}"

    def test_config_show(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "Minimum Occurrences: 2" in result.output

    def test_config_show_environment_override(self, monkeypatch):
        monkeypatch.setenv("DEP_PROMOTER_MIN_OCCURRENCES", "4")
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show"])

        assert "Minimum Occurrences: 4" in result.output

    def test_zero_max_file_size_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("DEP_PROMOTER_MAX_FILE_SIZE_MB", "0")
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "max_file_size_mb must be positive" in result.output
        assert "Max Manifest Size: 5 MB" in result.output

    def test_config_validate_valid(self, temp_dir):
        config_path = temp_dir / "config.yaml"
        config_path.write_text("promotion:\n  minimum_occurrences: 3\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(config_path)])

        assert result.exit_code == 0
        assert "valid" in result.output

    def test_config_validate_invalid(self, temp_dir):
        config_path = temp_dir / "config.json"
        config_path.write_text(json.dumps({"promotion": {"minimum_occurrences": 0}}))
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(config_path)])

        assert result.exit_code == 1
        assert "minimum_occurrences" in result.output

    def test_project_config_file_is_used(self, serde_workspace, monkeypatch):
        (serde_workspace / ".dep-promoter.json").write_text(
            json.dumps({"promotion": {"minimum_occurrences": 3}})
        )
        monkeypatch.chdir(serde_workspace)
        runner = CliRunner()
        result = runner.invoke(cli, ["plan", "--output-format", "json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["minimum_occurrences"] == 3
