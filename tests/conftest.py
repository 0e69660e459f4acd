"""Shared test fixtures for mystic tests."""
import io
from pathlib import Path

import pytest
from rich.console import Console

from mystic.core.config import MysticConfig
from mystic.services.docker import DockerCommandError

COMPOSE_YAML = """\
services:
  traefik:
    image: traefik:v2.10
    container_name: traefik
    volumes:
      - /var/run/docker.sock:/var/run/docker.sock:ro
      - ${MYSTIC_ROOT:-/data/docker}/traefik/traefik.toml:/etc/traefik/traefik.toml:ro
      - ${MYSTIC_ROOT:-/data/docker}/traefik/acme:/acme
  jenkins:
    image: jenkins/jenkins:lts
    container_name: jenkins
    volumes:
      - /data/docker/jenkins:/var/jenkins_home
  postgresdbone:
    image: postgres:15
    container_name: postgresdbone
    volumes:
      - type: bind
        source: /data/docker/postgresdbone/data
        target: /var/lib/postgresql/data
      - pgdata:/var/lib/named
  ollama:
    image: ollama/ollama:latest
    volumes:
      - /data/docker/ollama:/root/.ollama
      - /dev/shm:/dev/shm
  helper:
    build: .
volumes:
  pgdata:
"""

MUTATING_CALLS = {"pull", "save", "load", "stop", "start", "create_network", "compose_up"}


class FakeDockerClient:
    """In-memory stand-in for DockerClient that records every call."""

    def __init__(
        self,
        installed=True,
        daemon=True,
        running=(),
        fail_pull=(),
        fail_save=(),
        fail_load=(),
        compose_version="2.24.0",
        network_ok=True,
        up_error=False,
    ):
        self.installed = installed
        self.daemon = daemon
        self.running = set(running)
        self.fail_pull = set(fail_pull)
        self.fail_save = set(fail_save)
        self.fail_load = set(fail_load)
        self._compose_version = compose_version
        self.network_ok = network_ok
        self.up_error = up_error
        self.calls = []

    @property
    def mutations(self):
        return [call for call in self.calls if call[0] in MUTATING_CALLS]

    def is_installed(self):
        self.calls.append(("is_installed",))
        return self.installed

    def is_daemon_running(self):
        self.calls.append(("is_daemon_running",))
        return self.daemon

    def compose_version(self):
        self.calls.append(("compose_version",))
        return self._compose_version

    def running_containers(self):
        return set(self.running)

    def is_running(self, container):
        self.calls.append(("is_running", container))
        return container in self.running

    def stop(self, container):
        self.calls.append(("stop", container))
        self.running.discard(container)
        return True

    def start(self, container):
        self.calls.append(("start", container))
        self.running.add(container)
        return True

    def pull(self, image):
        self.calls.append(("pull", image))
        return image not in self.fail_pull

    def save(self, image, output):
        self.calls.append(("save", image, str(output)))
        Path(output).write_bytes(b"image " + image.encode())
        return image not in self.fail_save

    def load(self, archive):
        self.calls.append(("load", Path(archive).name))
        if Path(archive).name in self.fail_load:
            return False, "Error: invalid tar header"
        return True, f"Loaded image: {Path(archive).stem}"

    def list_images(self, limit=20):
        return ["jenkins/jenkins:lts  (480MB)"][:limit]

    def create_network(self, name):
        self.calls.append(("create_network", name))
        return self.network_ok

    def compose_up(self, compose_file):
        self.calls.append(("compose_up", str(compose_file)))
        if self.up_error:
            raise DockerCommandError(["docker", "compose", "-f", str(compose_file), "up", "-d"], 1)

    def compose_ps(self, compose_file):
        self.calls.append(("compose_ps", str(compose_file)))
        return "NAME      STATUS\njenkins   Up 2 seconds"


def console_output(console: Console) -> str:
    """Everything printed to a console built by the console fixture."""
    return console.file.getvalue()


@pytest.fixture
def console():
    """Console writing plain text into a buffer."""
    return Console(file=io.StringIO(), width=200, color_system=None, highlight=False)


@pytest.fixture
def fake_docker():
    return FakeDockerClient()


@pytest.fixture
def project_dir(tmp_path):
    """Project directory with a compose file and reverse-proxy config."""
    project = tmp_path / "project"
    project.mkdir()
    (project / "docker-compose.yml").write_text(COMPOSE_YAML)
    (project / "config").mkdir()
    (project / "config" / "traefik.toml").write_text("[entryPoints]\n")
    return project


@pytest.fixture
def volume_root(tmp_path):
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture
def config(project_dir, volume_root):
    return MysticConfig(
        project_dir=project_dir,
        root_path=volume_root,
        compose_file=project_dir / "docker-compose.yml",
        environment={},
    )


def make_service_data(root: Path, service: str) -> Path:
    """Create a small data tree for a service under root."""
    service_dir = root / service
    (service_dir / "jobs" / "build").mkdir(parents=True)
    (service_dir / "config.xml").write_text(f"<{service}/>")
    (service_dir / "jobs" / "build" / "log.txt").write_text("line 1\nline 2\n")
    (service_dir / "secret.key").write_text("s3cret")
    (service_dir / "secret.key").chmod(0o600)
    return service_dir
