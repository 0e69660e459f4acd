"""Typed model of the parts of a compose file mystic relies on."""
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Host paths that are never treated as service data directories
EXCLUDED_HOST_PATHS = ("/var/run/docker.sock", "/dev/shm")


class BindMount(BaseModel):
    """A host bind mount declared by a compose service."""

    model_config = ConfigDict(frozen=True)

    service: str
    source: str
    target: str
    read_only: bool = False

    @property
    def is_absolute(self) -> bool:
        return self.source.startswith("/")

    @property
    def is_excluded(self) -> bool:
        return any(
            self.source == excluded or self.source.startswith(excluded + "/")
            for excluded in EXCLUDED_HOST_PATHS
        )


class ComposeService(BaseModel):
    """One entry under ``services:``."""

    model_config = ConfigDict(extra="ignore")

    name: str
    image: Optional[str] = None
    container_name: Optional[str] = None
    volumes: List[Union[str, Dict[str, object]]] = Field(default_factory=list)

    @field_validator("image", "container_name", mode="before")
    @classmethod
    def strip_strings(cls, v):
        """Trim whitespace and treat empty strings as missing."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("volumes", mode="before")
    @classmethod
    def default_volumes(cls, v):
        return v or []

    @property
    def effective_container_name(self) -> str:
        return self.container_name or self.name

    def bind_mounts(self) -> List[BindMount]:
        """Return host bind mounts in declaration order.

        Short syntax ``source:target[:options]`` and long syntax
        ``{type: bind, source: ..., target: ...}`` are both understood.
        Named volumes are not bind mounts and are left out.
        """
        mounts: List[BindMount] = []
        for volume in self.volumes:
            mount = self._parse_volume(volume)
            if mount is not None:
                mounts.append(mount)
        return mounts

    def _parse_volume(self, volume) -> Optional[BindMount]:
        if isinstance(volume, dict):
            if volume.get("type") != "bind":
                return None
            source = str(volume.get("source", "")).strip()
            if not source:
                return None
            return BindMount(
                service=self.name,
                source=source,
                target=str(volume.get("target", "")),
                read_only=bool(volume.get("read_only", False)),
            )

        if isinstance(volume, str):
            if ":" not in volume:
                return None  # anonymous volume
            parts = volume.split(":")
            source, target = parts[0].strip(), parts[1].strip()
            options = parts[2] if len(parts) > 2 else ""
            if not source or not _looks_like_host_path(source):
                return None  # named volume
            return BindMount(
                service=self.name,
                source=source,
                target=target,
                read_only="ro" in options.split(","),
            )

        return None


class ComposeDocument(BaseModel):
    """Parsed compose file."""

    services: Dict[str, ComposeService] = Field(default_factory=dict)

    @property
    def service_names(self) -> List[str]:
        return list(self.services)

    def images(self) -> List[str]:
        """Unique image references across all services, sorted."""
        return sorted({s.image for s in self.services.values() if s.image})

    def find_service(self, name: str) -> Optional[ComposeService]:
        """Find a service by key, falling back to its container_name."""
        if name in self.services:
            return self.services[name]
        for service in self.services.values():
            if service.container_name == name:
                return service
        return None

    def bind_mounts(self) -> List[BindMount]:
        mounts: List[BindMount] = []
        for service in self.services.values():
            mounts.extend(service.bind_mounts())
        return mounts


def _looks_like_host_path(source: str) -> bool:
    return source.startswith(("/", ".", "~"))
