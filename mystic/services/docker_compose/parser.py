"""
Docker Compose file parser.

Loads a compose file into a typed ComposeDocument:
- Interpolates ${VAR} / ${VAR:-default} references the way compose does
- Keeps each service's image, container_name and volume declarations
"""

import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from mystic.core.errors import PreconditionError
from mystic.core.logger import get_logger
from mystic.services.docker_compose.models import ComposeDocument, ComposeService

logger = get_logger(__name__)

# $$ | ${VAR} | ${VAR:-default} | ${VAR-default} | $VAR
_VARIABLE = re.compile(
    r"\$(?:(?P<escaped>\$)"
    r"|\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)(?:(?P<sep>:?-)(?P<default>[^}]*))?\}"
    r"|(?P<named>[A-Za-z_][A-Za-z0-9_]*))"
)


class ComposeFileError(PreconditionError):
    """Raised when a compose file is missing or cannot be parsed."""
    pass


def interpolate(value: str, environment: Mapping[str, str]) -> str:
    """Substitute environment references in a compose string value.

    Unset variables without a default expand to an empty string, matching
    docker compose. ``:-`` also applies the default when the variable is
    set but empty; ``-`` only when it is unset.
    """

    def _replace(match: re.Match) -> str:
        if match.group("escaped"):
            return "$"
        name = match.group("braced") or match.group("named")
        current = environment.get(name)
        sep = match.group("sep")
        if sep == ":-" and not current:
            return match.group("default")
        if sep == "-" and current is None:
            return match.group("default")
        return current or ""

    return _VARIABLE.sub(_replace, value)


def _interpolate_tree(node: Any, environment: Mapping[str, str]) -> Any:
    if isinstance(node, str):
        return interpolate(node, environment)
    if isinstance(node, list):
        return [_interpolate_tree(item, environment) for item in node]
    if isinstance(node, dict):
        return {key: _interpolate_tree(item, environment) for key, item in node.items()}
    return node


class ComposeParser:
    """
    Parses compose files into ComposeDocument models.

    Example:
        document = ComposeParser(environment={"MYSTIC_ROOT": "/srv"}).load("docker-compose.yml")
        document.images()
    """

    def __init__(self, environment: Optional[Mapping[str, str]] = None):
        self.environment = dict(environment or {})

    def load(self, path: Union[str, Path]) -> ComposeDocument:
        """Read and parse a compose file.

        Raises:
            ComposeFileError: File missing, unreadable, or not a compose file
        """
        path = Path(path)
        if not path.is_file():
            raise ComposeFileError(f"Docker compose file not found: {path}")

        try:
            content = path.read_text()
        except OSError as e:
            raise ComposeFileError(f"Failed to read compose file {path}: {e}") from e

        document = self.parse(content, source=str(path))
        logger.debug(f"Parsed {len(document.services)} service(s) from {path}")
        return document

    def parse(self, content: str, source: str = "<string>") -> ComposeDocument:
        """Parse compose YAML text."""
        try:
            raw = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ComposeFileError(f"Invalid YAML in {source}: {e}") from e

        if not isinstance(raw, dict) or not isinstance(raw.get("services"), dict):
            raise ComposeFileError(f"Invalid compose file {source}: no services section found")

        return self.parse_dict(raw, source=source)

    def parse_dict(self, compose: Dict[str, Any], source: str = "<dict>") -> ComposeDocument:
        """Build a ComposeDocument from an already loaded compose mapping."""
        services: Dict[str, ComposeService] = {}
        for name, service_config in (compose.get("services") or {}).items():
            config = _interpolate_tree(service_config or {}, self.environment)
            if not isinstance(config, dict):
                raise ComposeFileError(f"Service '{name}' in {source} is not a mapping")
            try:
                services[str(name)] = ComposeService(name=str(name), **_known_keys(config))
            except ValidationError as e:
                raise ComposeFileError(f"Invalid service '{name}' in {source}: {e}") from e

        return ComposeDocument(services=services)


def _known_keys(config: Dict[str, Any]) -> Dict[str, Any]:
    return {key: config[key] for key in ("image", "container_name", "volumes") if key in config}
