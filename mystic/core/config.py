"""mystic runtime configuration.

Configuration is loaded once per command and passed explicitly to every
operation. Each setting is resolved with the precedence:

    explicit CLI flag > project .env file > process environment > default
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from mystic.core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_ROOT = "/data/docker"
DEFAULT_NETWORK = "web"
DEFAULT_DOMAIN = "mystic.home"
COMPOSE_FILENAME = "docker-compose.yml"
ENV_FILENAME = ".env"
ENV_EXAMPLE_FILENAME = ".env.example"

ROOT_VAR = "MYSTIC_ROOT"
NETWORK_VAR = "MYSTIC_NETWORK"
DOMAIN_VAR = "MYSTIC_DOMAIN"
PROJECT_DIR_VAR = "MYSTIC_PROJECT_DIR"


@dataclass
class MysticConfig:
    """Resolved settings for one mystic invocation.

    Attributes:
        project_dir: Directory holding docker-compose.yml, .env and config/
        root_path: Volume root; every service's data lives in <root>/<service>
        compose_file: Compose file used for image and bind-mount discovery
        network: External docker network the stack attaches to
        domain: Base domain services are published under
        environment: Merged process environment and .env values, used for
            ${VAR} interpolation in the compose file
    """

    project_dir: Path
    root_path: Path
    compose_file: Path
    network: str = DEFAULT_NETWORK
    domain: str = DEFAULT_DOMAIN
    environment: Dict[str, str] = field(default_factory=dict)

    @property
    def env_file(self) -> Path:
        return self.project_dir / ENV_FILENAME

    @property
    def env_example_file(self) -> Path:
        return self.project_dir / ENV_EXAMPLE_FILENAME

    @property
    def images_dir(self) -> Path:
        return self.project_dir / "docker-images"

    @property
    def volumes_dir(self) -> Path:
        return self.project_dir / "volume-exports"


def parse_env_file(path: Path) -> Dict[str, str]:
    """Parse a shell-style .env file.

    Supports comments, blank lines, an optional ``export`` prefix and
    single or double quoted values. Lines without ``=`` are ignored.
    """
    values: Dict[str, str] = {}
    for raw_line in Path(path).read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()

        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        elif " #" in value:
            value = value.split(" #", 1)[0].rstrip()

        if key:
            values[key] = value
    return values


def load_config(
    project_dir: Optional[str] = None,
    root_path: Optional[str] = None,
    compose_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> MysticConfig:
    """Build the configuration for a command.

    Args:
        project_dir: Explicit project directory (default: $MYSTIC_PROJECT_DIR or cwd)
        root_path: Explicit --root value
        compose_file: Explicit --file value
        environ: Process environment (default: os.environ)

    Returns:
        Fully resolved MysticConfig
    """
    process_env = dict(os.environ if environ is None else environ)

    project = Path(project_dir or process_env.get(PROJECT_DIR_VAR) or ".")

    env_file = project / ENV_FILENAME
    file_env: Dict[str, str] = {}
    if env_file.is_file():
        file_env = parse_env_file(env_file)
        logger.debug(f"Loaded {len(file_env)} setting(s) from {env_file}")

    # .env wins over the process environment, like `set -a; source .env`
    merged = {**process_env, **file_env}

    def resolve(flag: Optional[str], var: str, default: str) -> str:
        if flag:
            return flag
        return merged.get(var) or default

    config = MysticConfig(
        project_dir=project,
        root_path=Path(resolve(root_path, ROOT_VAR, DEFAULT_ROOT)),
        compose_file=Path(compose_file) if compose_file else project / COMPOSE_FILENAME,
        network=resolve(None, NETWORK_VAR, DEFAULT_NETWORK),
        domain=resolve(None, DOMAIN_VAR, DEFAULT_DOMAIN),
        environment=merged,
    )
    logger.debug(
        f"Configuration: project={config.project_dir} root={config.root_path} "
        f"compose={config.compose_file}"
    )
    return config
