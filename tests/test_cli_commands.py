"""Tests for command wiring and exit codes."""
import pytest
from typer.testing import CliRunner

from mystic.cli import app

from conftest import FakeDockerClient

runner = CliRunner()


@pytest.fixture
def workspace(project_dir, monkeypatch):
    """Run commands from inside the project with a clean environment."""
    for var in ("MYSTIC_ROOT", "MYSTIC_PROJECT_DIR", "MYSTIC_NETWORK", "MYSTIC_DOMAIN"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(project_dir)
    return project_dir


@pytest.fixture
def docker(monkeypatch):
    fake = FakeDockerClient()
    for module in ("images", "volumes", "bundler", "deployer"):
        monkeypatch.setattr(f"mystic.core.{module}.DockerClient", lambda: fake)
    return fake


class TestInfoCommands:
    def test_services(self):
        result = runner.invoke(app, ["services"])

        assert result.exit_code == 0
        assert "Known Services" in result.stdout
        assert "jenkins" in result.stdout

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "mystic 0.1.0" in result.stdout


class TestImageCommands:
    """Test images save/load exit codes."""

    def _archives(self, directory):
        directory.mkdir()
        (directory / "jenkins_jenkins_lts.tar").write_bytes(b"tar")
        (directory / "postgres_15.tar").write_bytes(b"tar")
        return directory

    def test_load_empty_directory_fails(self, workspace, docker, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()

        result = runner.invoke(app, ["images", "load", str(empty)])

        assert result.exit_code == 1
        assert docker.mutations == []

    def test_partial_failure_exits_zero(self, workspace, docker, tmp_path):
        docker.fail_load = {"postgres_15.tar"}
        images = self._archives(tmp_path / "images")

        result = runner.invoke(app, ["images", "load", str(images)])

        assert result.exit_code == 0
        assert len([c for c in docker.calls if c[0] == "load"]) == 2

    def test_partial_failure_with_strict(self, workspace, docker, tmp_path):
        docker.fail_load = {"postgres_15.tar"}
        images = self._archives(tmp_path / "images")

        result = runner.invoke(app, ["images", "load", str(images), "--strict"])

        assert result.exit_code == 2

    def test_save_dry_run(self, workspace, docker, tmp_path):
        out = tmp_path / "images"

        result = runner.invoke(app, ["images", "save", str(out), "--dry-run", "--filter", "jenkins"])

        assert result.exit_code == 0
        assert not out.exists()
        assert docker.mutations == []

    def test_save_filter_without_match(self, workspace, docker, tmp_path):
        result = runner.invoke(app, ["images", "save", str(tmp_path / "images"), "--filter", "nginx"])

        assert result.exit_code == 1


class TestVolumeCommands:
    """Test volumes export/import/setup argument handling."""

    def test_export_requires_selection(self, workspace, docker, tmp_path):
        result = runner.invoke(app, ["volumes", "export", str(tmp_path / "out")])

        assert result.exit_code == 1
        assert "--all" in result.stdout

    def test_export_unknown_service(self, workspace, docker, tmp_path):
        result = runner.invoke(app, ["volumes", "export", str(tmp_path / "out"), "--services", "bogus"])

        assert result.exit_code == 1
        assert "Unknown service: bogus" in result.stdout

    def test_export_dry_run(self, workspace, docker, volume_root, tmp_path):
        (volume_root / "jenkins").mkdir()
        out = tmp_path / "out"

        result = runner.invoke(
            app,
            ["volumes", "export", str(out), "--services", "jenkins", "--root", str(volume_root), "--dry-run"],
        )

        assert result.exit_code == 0
        assert not out.exists()
        assert docker.mutations == []

    def test_import_missing_directory(self, workspace, volume_root, tmp_path):
        result = runner.invoke(
            app, ["volumes", "import", str(tmp_path / "missing"), "--root", str(volume_root), "--yes"]
        )

        assert result.exit_code == 1

    def test_setup_dry_run(self, workspace, volume_root):
        result = runner.invoke(app, ["volumes", "setup", str(volume_root), "--dry-run"])

        assert result.exit_code == 0
        assert list(volume_root.iterdir()) == []


class TestWorkflowCommands:
    """Test bundle and deploy wiring."""

    def test_bundle_requires_selection(self, workspace, docker, tmp_path):
        result = runner.invoke(app, ["bundle", str(tmp_path / "bundle")])

        assert result.exit_code == 1

    def test_bundle_dry_run(self, workspace, docker, tmp_path):
        out = tmp_path / "bundle"

        result = runner.invoke(app, ["bundle", str(out), "--services", "jenkins", "--dry-run"])

        assert result.exit_code == 0
        assert not out.exists()
        assert docker.mutations == []

    def test_deploy_dry_run(self, workspace, docker, monkeypatch):
        monkeypatch.setenv("MYSTIC_ROOT", str(workspace.parent / "data"))

        result = runner.invoke(app, ["deploy", "--dry-run"])

        assert result.exit_code == 0
        assert docker.mutations == []
        assert not (workspace / ".env").exists()
