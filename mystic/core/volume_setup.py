"""Host data directory setup.

Creates every bind-mount source directory the compose file declares under
the volume root, owned by the UID/GID of the service it belongs to, and
installs the static configuration files services expect to find there.
"""
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from rich.console import Console

from mystic.core.catalog import DEFAULT_MODE, Service
from mystic.core.config import DEFAULT_ROOT, ROOT_VAR, MysticConfig
from mystic.core.errors import PreconditionError
from mystic.core.filesystem import is_root
from mystic.core.logger import get_logger
from mystic.core.output import (
    print_batch_summary,
    print_error,
    print_info,
    print_settings,
    print_success,
    print_warning,
)
from mystic.core.results import BatchReport, UnitResult
from mystic.services.docker_compose import ComposeParser

logger = get_logger(__name__)


@dataclass(frozen=True)
class StaticConfigFile:
    """A repository file copied into a service's data directory."""
    source: str  # Relative to the project directory
    target: str  # Relative to the volume root
    uid: int = 0
    gid: int = 0
    mode: int = 0o644


STATIC_CONFIG_FILES = (
    StaticConfigFile("config/traefik.toml", "traefik/traefik.toml"),
)


@dataclass(frozen=True)
class DirectoryPlan:
    """One directory to create and the ownership to apply."""
    path: Path
    uid: int
    gid: int
    mode: int
    service: Optional[str] = None

    @property
    def owner(self) -> str:
        return f"{self.uid}:{self.gid}"


def rebase(path: str, root: Path, default_root: str = DEFAULT_ROOT) -> Path:
    """Move a path under the compose file's default root to root."""
    if path == default_root or path.startswith(default_root.rstrip("/") + "/"):
        return Path(str(root) + path[len(default_root.rstrip("/")):])
    return Path(path)


def directory_for(path: Path) -> Path:
    """The directory to create for a bind-mount source.

    A last segment with an extension names a file mount (``traefik.toml``),
    so its parent is used, unless the path already exists as a directory.
    """
    if path.suffix and not path.is_dir():
        return path.parent
    return path


class VolumeSetup:
    """Creates the volume directory tree with per-service ownership."""

    def __init__(
        self,
        config: MysticConfig,
        console: Optional[Console] = None,
        dry_run: bool = False,
        verbose: bool = False,
        privileged: Optional[bool] = None,
        chown: Optional[Callable[[str, int, int], None]] = None,
    ):
        self.config = config
        self.console = console or Console()
        self.dry_run = dry_run
        self.verbose = verbose
        self.privileged = is_root() if privileged is None else privileged
        self.chown = chown or os.chown

    @property
    def root_path(self) -> Path:
        return self.config.root_path

    def check_requirements(self) -> None:
        print_info(self.console, "Checking requirements...")
        if not self.config.compose_file.is_file():
            raise PreconditionError(f"Docker compose file not found: {self.config.compose_file}")
        print_success(self.console, f"Found {self.config.compose_file}")

        if not self.privileged and not self.dry_run:
            raise PreconditionError("Volume setup MUST be run as root to set ownership (use sudo)")
        self.console.print()

    def discover_paths(self) -> List[Path]:
        """Directories to create, derived from the compose bind mounts.

        Raises:
            PreconditionError: The compose file declares no usable bind mounts
        """
        environment = {**self.config.environment, ROOT_VAR: str(self.root_path)}
        document = ComposeParser(environment).load(self.config.compose_file)

        paths = set()
        for mount in document.bind_mounts():
            if not mount.is_absolute or mount.is_excluded:
                continue
            paths.add(directory_for(rebase(mount.source, self.root_path)))

        if not paths:
            raise PreconditionError(f"No volumes found in {self.config.compose_file}")

        return sorted(paths)

    def plan(self, paths: List[Path]) -> List[DirectoryPlan]:
        """Attach ownership and mode to each path from the service catalog.

        Paths that do not belong to a known service get 0:0 and 755.
        """
        plans = []
        for path in paths:
            service = Service.for_path(path, self.root_path)
            if service is None:
                plans.append(DirectoryPlan(path, 0, 0, DEFAULT_MODE))
                continue
            descriptor = service.descriptor
            plans.append(
                DirectoryPlan(path, descriptor.uid, descriptor.gid, descriptor.mode, descriptor.name)
            )
        return plans

    def apply(self, plans: List[DirectoryPlan]) -> BatchReport:
        report = BatchReport(title="Volume setup", dry_run=self.dry_run)
        for plan in plans:
            report.add(self._apply_one(plan))
        return report

    def _apply_one(self, plan: DirectoryPlan) -> UnitResult:
        mode = format(plan.mode, "o")
        if self.dry_run:
            print_info(
                self.console,
                f"[DRY RUN] Would create: {plan.path} (owner: {plan.owner}, mode: {mode})",
            )
            return UnitResult.skipped(str(plan.path), "dry run")

        try:
            if plan.path.is_dir():
                print_warning(self.console, f"Directory already exists: {plan.path}")
            else:
                plan.path.mkdir(parents=True, exist_ok=True)
                print_success(self.console, f"Created: {plan.path}")

            # Ownership first, then narrow permissions
            self.chown(str(plan.path), plan.uid, plan.gid)
            os.chmod(plan.path, plan.mode)
        except OSError as e:
            print_error(self.console, f"Failed to prepare {plan.path}: {e}")
            logger.info(f"Setup failed for {plan.path}: {e}")
            return UnitResult.failed(str(plan.path), str(e))

        if self.verbose:
            print_info(self.console, f"  Set ownership: {plan.owner}, permissions: {mode}")
        logger.debug(f"Prepared {plan.path} ({plan.owner} {mode})")
        return UnitResult.ok(str(plan.path))

    def install_static_configs(self) -> List[UnitResult]:
        """Copy static config files into place with fixed ownership."""
        return [self._install(entry) for entry in STATIC_CONFIG_FILES]

    def _install(self, entry: StaticConfigFile) -> UnitResult:
        source = self.config.project_dir / entry.source
        target = self.root_path / entry.target

        if not source.is_file():
            print_warning(self.console, f"{source} not found - skipping config copy")
            return UnitResult.skipped(entry.target, "source not found")

        if self.dry_run:
            print_info(self.console, f"[DRY RUN] Would copy {source} -> {target}")
            return UnitResult.skipped(entry.target, "dry run")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
            self.chown(str(target), entry.uid, entry.gid)
            os.chmod(target, entry.mode)
        except OSError as e:
            print_error(self.console, f"Failed to copy {source}: {e}")
            return UnitResult.failed(entry.target, str(e))

        print_success(self.console, f"Copied {entry.source} -> {target}")
        return UnitResult.ok(entry.target, detail=str(target))

    def run(self) -> BatchReport:
        """Full setup: checks, discovery, directory creation, config copy."""
        print_settings(self.console, [
            ("Root Path", self.root_path),
            ("Compose File", self.config.compose_file),
            ("Dry Run", self.dry_run),
        ])
        self.check_requirements()

        paths = self.discover_paths()
        print_success(self.console, f"Found {len(paths)} volume paths")
        self.console.print()

        plans = self.plan(paths)
        if self.verbose:
            print_info(self.console, "Volume paths:")
            for plan in plans:
                self.console.print(f"  - {plan.path}  ({plan.service or 'unassigned'})")
            self.console.print()

        print_info(self.console, "Creating directories...")
        report = self.apply(plans)
        self.console.print()

        print_info(self.console, "Installing static configuration...")
        for result in self.install_static_configs():
            report.add(result)

        print_batch_summary(
            self.console,
            "Setup Complete!",
            report,
            "Directories",
            [("Root Path", self.root_path)],
            unit="path(s)",
        )
        self.console.print()
        print_info(self.console, "Next steps:")
        self.console.print(f"  1. Review the created directories: ls -la {self.root_path}")
        self.console.print(f"  2. Create the external network: docker network create {self.config.network}")
        self.console.print("  3. Start your services: docker compose up -d")

        if self.dry_run:
            self.console.print()
            print_warning(self.console, "This was a DRY RUN - no changes were made")
        return report
