"""Tests for the compose document parser."""
import pytest

from mystic.services.docker_compose import ComposeFileError, ComposeParser, interpolate

from conftest import COMPOSE_YAML


class TestInterpolate:
    """Test ${VAR} substitution."""

    def test_braced_and_plain(self):
        env = {"ROOT": "/srv", "NAME": "jenkins"}
        assert interpolate("${ROOT}/$NAME", env) == "/srv/jenkins"

    def test_defaults(self):
        assert interpolate("${MYSTIC_ROOT:-/data/docker}/x", {}) == "/data/docker/x"
        assert interpolate("${EMPTY:-fallback}", {"EMPTY": ""}) == "fallback"
        assert interpolate("${EMPTY-fallback}", {"EMPTY": ""}) == ""
        assert interpolate("${UNSET-fallback}", {}) == "fallback"

    def test_unset_without_default(self):
        assert interpolate("${UNSET}/data", {}) == "/data"

    def test_escaped_dollar(self):
        assert interpolate("price: $$5", {}) == "price: $5"


class TestComposeParser:
    """Test parsing compose files into typed documents."""

    def test_images_sorted_unique(self):
        document = ComposeParser().parse(COMPOSE_YAML)
        assert document.images() == [
            "jenkins/jenkins:lts",
            "ollama/ollama:latest",
            "postgres:15",
            "traefik:v2.10",
        ]
        assert "helper" in document.service_names

    def test_bind_mounts_short_and_long_syntax(self):
        document = ComposeParser({"MYSTIC_ROOT": "/srv"}).parse(COMPOSE_YAML)
        sources = [m.source for m in document.bind_mounts()]

        assert "/srv/traefik/traefik.toml" in sources
        assert "/data/docker/jenkins" in sources
        assert "/data/docker/postgresdbone/data" in sources
        # Named volume is not a bind mount
        assert not any(s.startswith("pgdata") for s in sources)

    def test_read_only_and_excluded(self):
        document = ComposeParser().parse(COMPOSE_YAML)
        mounts = {m.source: m for m in document.bind_mounts()}

        socket = mounts["/var/run/docker.sock"]
        assert socket.read_only
        assert socket.is_excluded
        assert mounts["/dev/shm"].is_excluded
        assert not mounts["/data/docker/ollama"].is_excluded

    def test_relative_mounts_are_not_absolute(self):
        content = "services:\n  app:\n    image: app\n    volumes:\n      - ./conf:/etc/app\n"
        mounts = ComposeParser().parse(content).bind_mounts()
        assert len(mounts) == 1
        assert not mounts[0].is_absolute

    def test_find_service_falls_back_to_container_name(self):
        content = (
            "services:\n"
            "  db:\n"
            "    image: postgres:15\n"
            "    container_name: postgresdbone\n"
        )
        document = ComposeParser().parse(content)

        assert document.find_service("db").image == "postgres:15"
        assert document.find_service("postgresdbone").name == "db"
        assert document.find_service("missing") is None

    def test_container_name_defaults_to_service(self):
        document = ComposeParser().parse(COMPOSE_YAML)
        assert document.services["ollama"].effective_container_name == "ollama"
        assert document.services["jenkins"].effective_container_name == "jenkins"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ComposeFileError, match="not found"):
            ComposeParser().load(tmp_path / "docker-compose.yml")

    def test_invalid_yaml(self):
        with pytest.raises(ComposeFileError, match="Invalid YAML"):
            ComposeParser().parse("services: [unclosed")

    def test_missing_services_section(self):
        with pytest.raises(ComposeFileError, match="no services"):
            ComposeParser().parse("version: '3'\n")
