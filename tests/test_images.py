"""Tests for image save and load."""
import pytest

from mystic.core.errors import PreconditionError
from mystic.core.images import ImageLoader, ImageSaver, filter_images, image_archive_name
from mystic.core.results import UnitStatus

from conftest import FakeDockerClient, console_output


class TestImageNames:
    """Test archive naming and filtering."""

    def test_archive_name(self):
        assert image_archive_name("ollama/ollama:latest") == "ollama_ollama_latest.tar"
        assert image_archive_name("postgres:15") == "postgres_15.tar"
        assert image_archive_name("alpine") == "alpine.tar"

    def test_filter_is_case_insensitive(self):
        images = ["jenkins/jenkins:lts", "Ollama/ollama:latest"]
        assert filter_images(images, "OLLAMA") == ["Ollama/ollama:latest"]
        assert filter_images(images, None) == images


class TestImageSaver:
    """Test pulling and saving compose images."""

    def test_collect_images(self, config, console, fake_docker):
        saver = ImageSaver(config, docker=fake_docker, console=console)
        assert saver.collect_images() == [
            "jenkins/jenkins:lts",
            "ollama/ollama:latest",
            "postgres:15",
            "traefik:v2.10",
        ]

    def test_collect_with_filter(self, config, console, fake_docker):
        saver = ImageSaver(config, docker=fake_docker, console=console)
        assert saver.collect_images("jenkins") == ["jenkins/jenkins:lts"]

    def test_filter_without_match_is_fatal(self, config, console, fake_docker):
        saver = ImageSaver(config, docker=fake_docker, console=console)
        with pytest.raises(PreconditionError, match="No images matching"):
            saver.collect_images("nginx")

    def test_save_continues_after_failures(self, config, console, tmp_path):
        docker = FakeDockerClient(fail_pull={"postgres:15"}, fail_save={"traefik:v2.10"})
        saver = ImageSaver(config, docker=docker, console=console)
        out = tmp_path / "images"

        report = saver.run(out)

        statuses = {r.name: r.status for r in report.results}
        assert statuses == {
            "jenkins/jenkins:lts": UnitStatus.OK,
            "ollama/ollama:latest": UnitStatus.OK,
            "postgres:15": UnitStatus.FAILED,
            "traefik:v2.10": UnitStatus.FAILED,
        }
        assert (out / "jenkins_jenkins_lts.tar").is_file()
        assert not (out / "postgres_15.tar").exists()
        # Partial archive from the failed save is removed
        assert not (out / "traefik_v2.10.tar").exists()
        assert ("save", "postgres:15", str(out / "postgres_15.tar")) not in docker.calls
        assert report.exit_code() == 0
        assert report.exit_code(strict=True) == 2

    def test_dry_run_saves_nothing(self, config, console, fake_docker, tmp_path):
        saver = ImageSaver(config, docker=fake_docker, console=console, dry_run=True)
        out = tmp_path / "images"

        report = saver.run(out)

        assert not out.exists()
        assert fake_docker.mutations == []
        assert report.skipped == 4
        output = console_output(console)
        assert "ollama/ollama:latest  ->  ollama_ollama_latest.tar" in output
        assert "[DRY RUN] Would pull and save: traefik:v2.10" in output

    def test_missing_compose_file(self, config, console, fake_docker):
        config.compose_file.unlink()
        with pytest.raises(PreconditionError, match="compose file not found"):
            ImageSaver(config, docker=fake_docker, console=console).check_requirements()

    def test_docker_not_installed(self, config, console):
        saver = ImageSaver(config, docker=FakeDockerClient(installed=False), console=console)
        with pytest.raises(PreconditionError, match="not installed"):
            saver.check_requirements()

    def test_daemon_not_running(self, config, console):
        saver = ImageSaver(config, docker=FakeDockerClient(daemon=False), console=console)
        with pytest.raises(PreconditionError, match="daemon is not running"):
            saver.check_requirements()


class TestImageLoader:
    """Test loading image archives."""

    def _archives(self, directory):
        directory.mkdir()
        for name in ("traefik_v2.10.tar", "jenkins_jenkins_lts.tar", "ollama_ollama_latest.tar"):
            (directory / name).write_bytes(b"tar")
        (directory / "README.txt").write_text("not an image")
        return directory

    def test_find_archives_sorted(self, console, fake_docker, tmp_path):
        images = self._archives(tmp_path / "images")
        loader = ImageLoader(docker=fake_docker, console=console)

        names = [p.name for p in loader.find_archives(images)]
        assert names == ["jenkins_jenkins_lts.tar", "ollama_ollama_latest.tar", "traefik_v2.10.tar"]

    def test_find_archives_filter(self, console, fake_docker, tmp_path):
        images = self._archives(tmp_path / "images")
        loader = ImageLoader(docker=fake_docker, console=console)

        assert [p.name for p in loader.find_archives(images, "OLLAMA")] == ["ollama_ollama_latest.tar"]

    def test_missing_directory_is_fatal(self, console, fake_docker, tmp_path):
        loader = ImageLoader(docker=fake_docker, console=console)
        with pytest.raises(PreconditionError, match="Input directory not found"):
            loader.find_archives(tmp_path / "missing")

    def test_no_archives_is_fatal(self, console, fake_docker, tmp_path):
        loader = ImageLoader(docker=fake_docker, console=console)
        with pytest.raises(PreconditionError, match="No .tar files"):
            loader.find_archives(tmp_path)

    def test_load_continues_after_failure(self, console, tmp_path):
        images = self._archives(tmp_path / "images")
        docker = FakeDockerClient(fail_load={"ollama_ollama_latest.tar"})
        loader = ImageLoader(docker=docker, console=console)

        report = loader.run(images)

        assert report.succeeded == 2
        assert report.failed == 1
        assert [c[1] for c in docker.calls if c[0] == "load"] == [
            "jenkins_jenkins_lts.tar",
            "ollama_ollama_latest.tar",
            "traefik_v2.10.tar",
        ]
        output = console_output(console)
        assert "Loaded image: jenkins_jenkins_lts" in output
        assert "Error: invalid tar header" in output

    def test_dry_run_loads_nothing(self, console, fake_docker, tmp_path):
        images = self._archives(tmp_path / "images")
        loader = ImageLoader(docker=fake_docker, console=console, dry_run=True)

        report = loader.run(images)

        assert fake_docker.mutations == []
        assert report.skipped == 3
