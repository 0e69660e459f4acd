"""Tests for offline bundle creation."""
import os

import pytest

from mystic.core.bundler import Bundler, bundle_contents
from mystic.core.catalog import Service
from mystic.core.errors import PreconditionError

from conftest import FakeDockerClient, console_output, make_service_data


@pytest.fixture
def full_project(project_dir):
    (project_dir / ".env.example").write_text("MYSTIC_ROOT=/data/docker\n")
    (project_dir / "README.md").write_text("# Mystic\n")
    (project_dir / "scripts").mkdir()
    script = project_dir / "scripts" / "helper.sh"
    script.write_text("#!/bin/sh\necho hi\n")
    script.chmod(0o644)
    return project_dir


class TestBundler:
    """Test bundle layout and step selection."""

    def test_bundle_layout(self, config, console, full_project, volume_root, tmp_path):
        make_service_data(volume_root, "jenkins")
        docker = FakeDockerClient(running={"jenkins"})
        out = tmp_path / "bundle"

        bundler = Bundler(config, docker=docker, console=console, privileged=True)
        bundler.run([Service.JENKINS, Service.GATEWAY], out)

        assert (out / "docker-compose.yml").is_file()
        assert (out / ".env.example").is_file()
        assert (out / "README.md").is_file()
        assert (out / "config" / "traefik.toml").is_file()
        assert os.access(out / "scripts" / "helper.sh", os.X_OK)
        assert (out / "docker-images" / "jenkins_jenkins_lts.tar").is_file()
        assert (out / "volume-exports" / "jenkins-volume.tar.gz").is_file()
        assert not (out / "volume-exports" / "gateway-volume.tar.gz").exists()

        # Volume export runs forced: no prompt, container restarted afterwards
        assert ("stop", "jenkins") in docker.calls
        assert "jenkins" in docker.running

        output = console_output(console)
        assert "Not found (skipping): LICENSE" in output
        assert "No image found for service: gateway" in output
        assert "docker-images/ (1 image archives)" in output
        assert "volume-exports/ (1 volume archives)" in output
        assert "it is not part of the bundle" in output

    def test_shared_image_saved_once(self, config, console, full_project, tmp_path):
        config.compose_file.write_text(
            "services:\n"
            "  postgresdbone:\n    image: postgres:15\n"
            "  postgresdbtwo:\n    image: postgres:15\n"
        )
        docker = FakeDockerClient()
        bundler = Bundler(config, docker=docker, console=console, privileged=True, skip_volumes=True)

        assert bundler.images_for([Service.POSTGRESDBONE, Service.POSTGRESDBTWO]) == ["postgres:15"]

    def test_skip_flags(self, config, console, full_project, volume_root, tmp_path):
        make_service_data(volume_root, "jenkins")
        docker = FakeDockerClient()
        out = tmp_path / "bundle"

        Bundler(
            config, docker=docker, console=console, privileged=True,
            skip_images=True, skip_volumes=True,
        ).run([Service.JENKINS], out)

        assert (out / "docker-compose.yml").is_file()
        assert not (out / "docker-images").exists()
        assert not (out / "volume-exports").exists()
        assert docker.mutations == []
        output = console_output(console)
        assert "Skipping image save (--skip-images)" in output
        assert "Skipping volume export (--skip-volumes)" in output

    def test_dry_run(self, config, console, full_project, volume_root, tmp_path):
        make_service_data(volume_root, "jenkins")
        docker = FakeDockerClient(running={"jenkins"})
        out = tmp_path / "bundle"

        report = Bundler(config, docker=docker, console=console, dry_run=True, privileged=False).run(
            [Service.JENKINS], out
        )

        assert not out.exists()
        assert docker.mutations == []
        assert report.succeeded == 0
        output = console_output(console)
        assert "[DRY RUN] Would copy repo files" in output
        assert "[DRY RUN] Would pull and save: jenkins/jenkins:lts" in output
        assert "[DRY RUN] Would export volumes for: jenkins" in output

    def test_requires_root(self, config, console, tmp_path):
        bundler = Bundler(config, docker=FakeDockerClient(), console=console, privileged=False)
        with pytest.raises(PreconditionError, match="root"):
            bundler.run([Service.JENKINS], tmp_path / "bundle")

    def test_requires_docker_daemon(self, config, console, tmp_path):
        bundler = Bundler(config, docker=FakeDockerClient(daemon=False), console=console, privileged=True)
        with pytest.raises(PreconditionError, match="daemon"):
            bundler.run([Service.JENKINS], tmp_path / "bundle")


class TestBundleContents:
    """Test the contents listing."""

    def test_counts(self, tmp_path):
        (tmp_path / "docker-compose.yml").write_text("services: {}\n")
        (tmp_path / "docker-images").mkdir()
        (tmp_path / "docker-images" / "a.tar").write_bytes(b"x")
        (tmp_path / "docker-images" / "b.tar").write_bytes(b"x")
        (tmp_path / "volume-exports").mkdir()

        assert bundle_contents(tmp_path) == [
            "docker-compose.yml",
            "docker-images/ (2 image archives)",
            "volume-exports/ (0 volume archives)",
        ]
