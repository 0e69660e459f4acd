"""Docker CLI access."""

from .client import DockerClient, DockerCommandError

__all__ = ["DockerClient", "DockerCommandError"]
