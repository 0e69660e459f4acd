"""
Docker CLI wrapper.

All container runtime access goes through the docker CLI, one blocking call
at a time. Long-running calls (pull, save, load, stop, compose up) run
without a timeout.
"""

import shutil
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Set, Tuple, Union

from mystic.core.logger import get_logger

logger = get_logger(__name__)

Runner = Callable[[List[str], bool], subprocess.CompletedProcess]


def _subprocess_runner(cmd: List[str], capture: bool) -> subprocess.CompletedProcess:
    if capture:
        return subprocess.run(cmd, capture_output=True, text=True)
    return subprocess.run(cmd)


class DockerCommandError(RuntimeError):
    """Raised when a docker command that must succeed fails."""

    def __init__(self, cmd: List[str], returncode: int, stderr: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command failed ({returncode}): {' '.join(cmd)}"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message)


class DockerClient:
    """
    Thin wrapper around the docker and docker compose CLIs.

    Args:
        binary: Docker executable name or path
        runner: Callable taking (cmd, capture) and returning a
            CompletedProcess; defaults to subprocess.run
    """

    def __init__(self, binary: str = "docker", runner: Optional[Runner] = None):
        self.binary = binary
        self.runner = runner or _subprocess_runner

    def _run(self, args: List[str], capture: bool = True) -> subprocess.CompletedProcess:
        cmd = [self.binary, *args]
        logger.debug(f"$ {' '.join(cmd)}")
        try:
            return self.runner(cmd, capture)
        except OSError as e:
            logger.debug(f"Failed to execute {cmd[0]}: {e}")
            return subprocess.CompletedProcess(cmd, 127, "", str(e))

    def _ok(self, args: List[str]) -> bool:
        result = self._run(args)
        if result.returncode != 0:
            logger.debug(f"docker {' '.join(args)} exited {result.returncode}: {result.stderr}")
        return result.returncode == 0

    # Runtime checks

    def is_installed(self) -> bool:
        """Check the docker binary is on PATH."""
        return shutil.which(self.binary) is not None

    def is_daemon_running(self) -> bool:
        """Check the daemon answers `docker info`."""
        return self._ok(["info"])

    def compose_version(self) -> Optional[str]:
        """Return the compose plugin version, or None if the plugin is missing."""
        result = self._run(["compose", "version", "--short"])
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip() or "unknown"

    # Containers

    def running_containers(self) -> Set[str]:
        """Names of running containers."""
        result = self._run(["ps", "--format", "{{.Names}}"])
        if result.returncode != 0:
            return set()
        return {line.strip() for line in (result.stdout or "").splitlines() if line.strip()}

    def is_running(self, container: str) -> bool:
        return container in self.running_containers()

    def stop(self, container: str) -> bool:
        return self._ok(["stop", container])

    def start(self, container: str) -> bool:
        return self._ok(["start", container])

    # Images

    def pull(self, image: str) -> bool:
        return self._ok(["pull", image])

    def save(self, image: str, output: Union[str, Path]) -> bool:
        return self._ok(["save", "-o", str(output), image])

    def load(self, archive: Union[str, Path]) -> Tuple[bool, str]:
        """Load an image archive; returns (success, combined output)."""
        result = self._run(["load", "-i", str(archive)])
        output = "\n".join(part for part in (result.stdout, result.stderr) if part)
        return result.returncode == 0, output.strip()

    def list_images(self, limit: int = 20) -> List[str]:
        """Local images as 'repository:tag  (size)' lines."""
        result = self._run(["images", "--format", "{{.Repository}}:{{.Tag}}  ({{.Size}})"])
        if result.returncode != 0:
            return []
        lines = [line for line in (result.stdout or "").splitlines() if line.strip()]
        return lines[:limit]

    # Networks and compose

    def create_network(self, name: str) -> bool:
        return self._ok(["network", "create", name])

    def compose_up(self, compose_file: Union[str, Path]) -> None:
        """Start the stack detached; output streams to the terminal.

        Raises:
            DockerCommandError: If docker compose exits non-zero
        """
        args = ["compose", "-f", str(compose_file), "up", "-d"]
        result = self._run(args, capture=False)
        if result.returncode != 0:
            raise DockerCommandError([self.binary, *args], result.returncode, result.stderr or "")

    def compose_ps(self, compose_file: Union[str, Path]) -> str:
        result = self._run(["compose", "-f", str(compose_file), "ps"])
        return (result.stdout or "").rstrip()
