"""Static catalog of the services deployed on the home server.

Every service has one host data directory (``<root>/<name>``) and one
identically named container. Ownership and permissions for the data
directory are part of the descriptor so volume setup never has to guess
from path fragments.
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Union

from mystic.core.errors import PreconditionError, UnknownServiceError

DEFAULT_MODE = 0o755
DATABASE_MODE = 0o750


@dataclass(frozen=True)
class ServiceDescriptor:
    """Ownership and publishing details for one service."""
    name: str
    uid: int = 0
    gid: int = 0
    mode: int = DEFAULT_MODE
    hostname: Optional[str] = None  # Sub-domain published through traefik
    description: str = ""

    @property
    def owner(self) -> str:
        return f"{self.uid}:{self.gid}"

    @property
    def mode_str(self) -> str:
        return format(self.mode, "o")


class Service(Enum):
    """Known services, in deployment order."""

    TRAEFIK = ServiceDescriptor("traefik", description="Reverse proxy")
    GATEWAY = ServiceDescriptor("gateway", 101, 101, hostname="home", description="Nginx gateway/landing page")
    NEXTCLOUD = ServiceDescriptor("nextcloud", 33, 33, hostname="cloud", description="Nextcloud")
    MARIADBONE = ServiceDescriptor("mariadbone", 999, 999, DATABASE_MODE, description="MariaDB for Nextcloud")
    JENKINS = ServiceDescriptor("jenkins", 1000, 1000, hostname="jenkins", description="Jenkins CI")
    BAMBOO = ServiceDescriptor("bamboo", 2005, 2005, hostname="bamboo", description="Bamboo")
    POSTGRESDBFIVE = ServiceDescriptor("postgresdbfive", 999, 999, DATABASE_MODE, description="PostgreSQL for Bamboo")
    CONFLUENCE = ServiceDescriptor("confluence", 2002, 2002, hostname="confluence", description="Confluence")
    POSTGRESDBONE = ServiceDescriptor("postgresdbone", 999, 999, DATABASE_MODE, description="PostgreSQL for Confluence")
    JIRA = ServiceDescriptor("jira", 2001, 2001, hostname="jira", description="Jira")
    POSTGRESDBTWO = ServiceDescriptor("postgresdbtwo", 999, 999, DATABASE_MODE, description="PostgreSQL for Jira")
    BITBUCKET = ServiceDescriptor("bitbucket", 2003, 2003, hostname="bitbucket", description="Bitbucket")
    POSTGRESDBTHREE = ServiceDescriptor("postgresdbthree", 999, 999, DATABASE_MODE, description="PostgreSQL for Bitbucket")
    POSTGRESDBFOUR = ServiceDescriptor("postgresdbfour", 999, 999, DATABASE_MODE, description="PostgreSQL for Mattermost")
    MAILSERVER = ServiceDescriptor("mailserver", description="Mail server")
    MATTERMOST = ServiceDescriptor("mattermost", 2000, 2000, hostname="chat", description="Mattermost")
    OLLAMA = ServiceDescriptor("ollama", description="Ollama model runtime")
    OPENWEBUI = ServiceDescriptor("openwebui", hostname="ai", description="Open WebUI (Ollama)")
    ELASTICSEARCH = ServiceDescriptor("elasticsearch", 1000, 1000, description="Elasticsearch")
    LOGSTASH = ServiceDescriptor("logstash", 1000, 1000, description="Logstash")
    KIBANA = ServiceDescriptor("kibana", 1000, 1000, hostname="kibana", description="Kibana (ELK)")

    @property
    def descriptor(self) -> ServiceDescriptor:
        return self.value

    @property
    def service_name(self) -> str:
        return self.value.name

    @classmethod
    def names(cls) -> List[str]:
        """Return every known service name in catalog order."""
        return [member.value.name for member in cls]

    @classmethod
    def from_name(cls, name: str) -> "Service":
        """Look up a service by exact name.

        Raises:
            UnknownServiceError: If the name is not in the catalog
        """
        for member in cls:
            if member.value.name == name:
                return member
        raise UnknownServiceError(name, cls.names())

    @classmethod
    def for_path(
        cls,
        path: Union[str, Path],
        root: Union[str, Path],
    ) -> Optional["Service"]:
        """Resolve the service owning a host path.

        The first path segment below ``root`` must equal a service name
        exactly. Paths outside the root, the root itself and unknown
        segments resolve to None.
        """
        try:
            relative = Path(path).relative_to(Path(root))
        except ValueError:
            return None

        if not relative.parts:
            return None

        try:
            return cls.from_name(relative.parts[0])
        except UnknownServiceError:
            return None


def parse_service_selection(
    all_services: bool = False,
    services: Optional[str] = None,
) -> List[Service]:
    """Build the ordered service selection from --all / --services.

    Args:
        all_services: Select every known service
        services: Comma-separated service names

    Returns:
        Selected services, validated, without duplicates

    Raises:
        PreconditionError: Neither option given
        UnknownServiceError: A name is not in the catalog
    """
    if all_services:
        return list(Service)

    if not services or not services.strip():
        raise PreconditionError(
            "You must specify either --all or --services SERVICE1,SERVICE2,..."
        )

    return _unique(Service.from_name(name) for name in _split_csv(services))


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _unique(services: Iterable[Service]) -> List[Service]:
    selected: List[Service] = []
    for service in services:
        if service not in selected:
            selected.append(service)
    return selected
