"""Single-command deployment on the offline machine.

The deployment is a fixed sequence of steps. Each step records a
StepResult; preflight failures and a failed service start stop the run,
every other step reports and moves on.
"""
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from rich.console import Console
from rich.table import Table

from mystic.core.catalog import Service
from mystic.core.config import MysticConfig, ROOT_VAR, load_config
from mystic.core.errors import DeploymentError, PreconditionError
from mystic.core.filesystem import find_archives
from mystic.core.images import IMAGE_ARCHIVE_SUFFIX, ImageLoader, check_docker
from mystic.core.logger import get_logger
from mystic.core.output import (
    print_error,
    print_info,
    print_settings,
    print_success,
    print_warning,
)
from mystic.core.results import BatchReport
from mystic.core.volume_setup import VolumeSetup
from mystic.core.volumes import VOLUME_ARCHIVE_SUFFIX, VolumeImporter
from mystic.discovery import SystemDetector
from mystic.services.docker import DockerClient, DockerCommandError

logger = get_logger(__name__)

MIN_DISK_GB = 50
MIN_MEMORY_GB = 8
RECOMMENDED_MEMORY_GB = 16


class StepStatus(Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StepResult:
    """Outcome of one deployment step."""
    number: int
    title: str
    status: StepStatus
    message: str = ""


DEPLOY_STEPS = (
    "Preflight checks",
    "Setting up environment",
    "Loading Docker images",
    "Setting up volume directories",
    "Importing volume data",
    "Creating Docker network",
    "Starting services",
)


def service_urls(domain: str) -> List[tuple]:
    """(url, description) for every service published under domain."""
    return [
        (f"{service.descriptor.hostname}.{domain}", service.descriptor.description)
        for service in Service
        if service.descriptor.hostname
    ]


class Deployer:
    """Runs the deployment steps in order against one project directory."""

    def __init__(
        self,
        config: MysticConfig,
        docker: Optional[DockerClient] = None,
        console: Optional[Console] = None,
        dry_run: bool = False,
        skip_images: bool = False,
        skip_volumes: bool = False,
        detector: Optional[SystemDetector] = None,
        privileged: Optional[bool] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config = config
        self.docker = docker or DockerClient()
        self.console = console or Console()
        self.dry_run = dry_run
        self.skip_images = skip_images
        self.skip_volumes = skip_volumes
        self.detector = detector or SystemDetector()
        self.privileged = self.detector.is_root() if privileged is None else privileged
        self.environ = environ
        self.steps: List[StepResult] = []

    def _step(self, status: StepStatus, message: str = "") -> StepResult:
        number = len(self.steps)
        result = StepResult(number, DEPLOY_STEPS[number], status, message)
        self.steps.append(result)
        logger.info(f"Step {number} {result.title}: {status.value} {message}".rstrip())
        return result

    def _banner(self, number: int) -> None:
        self.console.print()
        self.console.rule(
            f"[blue]Step {number}/{len(DEPLOY_STEPS) - 1}: {DEPLOY_STEPS[number]}[/blue]"
        )
        self.console.print()

    # -----------------------------
    #  Step 0: preflight
    # -----------------------------
    def preflight(self) -> StepResult:
        """Fatal checks first, then advisory host facts.

        Raises:
            PreconditionError: Not root (outside dry-run), no compose file,
                docker missing or daemon down
        """
        print_info(self.console, "Running preflight checks...")
        self.console.print()

        if not self.privileged:
            if not self.dry_run:
                raise PreconditionError("Deployment MUST be run as root (use sudo)")
            print_warning(self.console, "Not running as root (allowed in dry-run mode)")
        else:
            print_success(self.console, "Running as root")

        if not self.config.compose_file.is_file():
            raise PreconditionError(f"docker-compose.yml not found at {self.config.compose_file}")
        print_success(self.console, f"Found {self.config.compose_file.name}")

        check_docker(self.docker, self.console)

        version = self.docker.compose_version()
        if version is None:
            print_warning(self.console, "Docker Compose v2 is not installed (docker compose plugin)")
        else:
            print_success(self.console, f"Docker Compose v2 is installed ({version})")

        self._check_host()

        self.console.print()
        print_success(self.console, "Preflight checks passed")
        return self._step(StepStatus.PASSED)

    def _check_host(self) -> None:
        facts = self.detector.detect_all(self.config.project_dir)

        disk = facts["disk_free_gb"]
        if disk is None:
            print_warning(self.console, "Could not determine available disk space")
        elif disk < MIN_DISK_GB:
            print_warning(
                self.console,
                f"Low disk space: {disk}GB available (recommended: {MIN_DISK_GB}GB+)",
            )
        else:
            print_success(self.console, f"Disk space: {disk}GB available")

        memory = facts["memory_gb"]
        if memory is None:
            print_warning(self.console, "Could not determine total RAM")
        elif memory < MIN_MEMORY_GB:
            print_warning(
                self.console,
                f"Low RAM: {memory}GB total (recommended: {RECOMMENDED_MEMORY_GB}GB+, "
                f"minimum: {MIN_MEMORY_GB}GB)",
            )
        elif memory < RECOMMENDED_MEMORY_GB:
            print_info(
                self.console,
                f"RAM: {memory}GB total ({RECOMMENDED_MEMORY_GB}GB+ recommended for all services)",
            )
        else:
            print_success(self.console, f"RAM: {memory}GB total")

        gpu = facts["gpu"]
        if gpu:
            print_success(self.console, f"GPU detected: {gpu}")
        else:
            print_info(self.console, "No NVIDIA GPU detected - Ollama will not use GPU acceleration")

    # -----------------------------
    #  Step 1: environment
    # -----------------------------
    def setup_env(self) -> StepResult:
        env_file = self.config.env_file

        if self.dry_run:
            if env_file.is_file():
                print_info(self.console, "[DRY RUN] .env already exists, would load it")
            else:
                print_info(self.console, "[DRY RUN] Would copy .env.example to .env")
            print_info(self.console, f"[DRY RUN] Would remind to review {ROOT_VAR} setting")
            return self._step(StepStatus.SKIPPED, "dry run")

        if env_file.is_file():
            print_success(self.console, ".env already exists")
        elif self.config.env_example_file.is_file():
            shutil.copyfile(self.config.env_example_file, env_file)
            print_success(self.console, "Created .env from .env.example")
        else:
            print_warning(self.console, ".env.example not found - skipping .env creation")
            return self._step(StepStatus.SKIPPED, ".env.example not found")

        print_info(self.console, f"Reminder: review {ROOT_VAR} in {env_file}")

        self.config = load_config(
            project_dir=str(self.config.project_dir),
            compose_file=str(self.config.compose_file),
            environ=self.environ,
        )
        print_success(self.console, f"Loaded .env ({ROOT_VAR}={self.config.root_path})")
        return self._step(StepStatus.PASSED)

    # -----------------------------
    #  Step 2: images
    # -----------------------------
    def load_images(self) -> StepResult:
        if self.skip_images:
            print_info(self.console, "Skipping image loading (--skip-images)")
            return self._step(StepStatus.SKIPPED, "--skip-images")

        images_dir = self.config.images_dir
        return self._from_archives(
            images_dir,
            IMAGE_ARCHIVE_SUFFIX,
            kind="image",
            verb="load",
            missing="images must be pulled or already loaded",
            run=lambda: ImageLoader(docker=self.docker, console=self.console).run(images_dir),
        )

    # -----------------------------
    #  Step 3: volume directories
    # -----------------------------
    def setup_volumes(self) -> StepResult:
        if self.dry_run:
            print_info(self.console, "[DRY RUN] Would run volume setup in dry-run mode")
        else:
            print_info(self.console, "Creating volume directories with correct ownership...")

        setup = VolumeSetup(
            self.config,
            console=self.console,
            dry_run=self.dry_run,
            privileged=self.privileged,
        )
        report = setup.run()
        if self.dry_run:
            return self._step(StepStatus.SKIPPED, "dry run")
        if report.failed:
            return self._step(StepStatus.FAILED, f"{report.failed} path(s) failed")
        print_success(self.console, "Volume directories ready")
        return self._step(StepStatus.PASSED)

    # -----------------------------
    #  Step 4: volume data
    # -----------------------------
    def import_volumes(self) -> StepResult:
        if self.skip_volumes:
            print_info(self.console, "Skipping volume import (--skip-volumes)")
            return self._step(StepStatus.SKIPPED, "--skip-volumes")

        volumes_dir = self.config.volumes_dir
        importer = VolumeImporter(
            self.config,
            console=self.console,
            force=True,
            privileged=self.privileged,
        )
        return self._from_archives(
            volumes_dir,
            VOLUME_ARCHIVE_SUFFIX,
            kind="volume",
            verb="import",
            missing="volumes will start empty",
            run=lambda: importer.run(volumes_dir),
        )

    def _from_archives(
        self,
        directory: Path,
        suffix: str,
        kind: str,
        verb: str,
        missing: str,
        run: Callable[[], BatchReport],
    ) -> StepResult:
        if not directory.is_dir():
            print_info(self.console, f"No {directory.name}/ directory found - {missing}")
            return self._step(StepStatus.SKIPPED, f"no {directory.name}/ directory")

        count = len(find_archives(directory, suffix))
        if count == 0:
            print_info(self.console, f"{directory.name}/ directory exists but contains no archives")
            return self._step(StepStatus.SKIPPED, "no archives")

        if self.dry_run:
            print_info(self.console, f"[DRY RUN] Would {verb} {count} {kind} archive(s) from {directory}")
            return self._step(StepStatus.SKIPPED, "dry run")

        print_info(self.console, f"{verb.capitalize()}ing {count} {kind} archive(s) from {directory}...")
        report = run()
        if report.failed:
            return self._step(StepStatus.FAILED, f"{report.failed} {kind} archive(s) failed")
        print_success(self.console, f"{kind.capitalize()} archives processed")
        return self._step(StepStatus.PASSED)

    # -----------------------------
    #  Step 5: network
    # -----------------------------
    def create_network(self) -> StepResult:
        network = self.config.network
        if self.dry_run:
            print_info(self.console, f"[DRY RUN] Would create Docker network '{network}'")
            return self._step(StepStatus.SKIPPED, "dry run")

        if not self.docker.create_network(network):
            # Usually the network already exists
            logger.debug(f"docker network create {network} failed; continuing")
        print_success(self.console, f"Docker network '{network}' is ready")
        return self._step(StepStatus.PASSED)

    # -----------------------------
    #  Step 6: start
    # -----------------------------
    def start_services(self) -> StepResult:
        """Bring the stack up.

        Raises:
            DeploymentError: docker compose up failed
        """
        compose_file = self.config.compose_file
        if self.dry_run:
            print_info(self.console, "[DRY RUN] Would run: docker compose up -d")
            print_info(self.console, "[DRY RUN] Would display service status")
            self.console.print()
            print_info(self.console, "Service URLs that would be available:")
            self._print_urls()
            return self._step(StepStatus.SKIPPED, "dry run")

        print_info(self.console, "Starting all services...")
        try:
            self.docker.compose_up(compose_file)
        except DockerCommandError as e:
            self._step(StepStatus.FAILED, str(e))
            raise DeploymentError(f"Failed to start services: {e}") from e
        self.console.print()

        print_info(self.console, "Service status:")
        status = self.docker.compose_ps(compose_file)
        if status:
            self.console.print(status, markup=False, highlight=False)
        self.console.print()

        print_info(self.console, "Service URLs:")
        self._print_urls()
        self.console.print()
        print_info(self.console, "DNS: Add these hostnames to your local DNS server or /etc/hosts")
        return self._step(StepStatus.PASSED)

    def _print_urls(self) -> None:
        for url, description in service_urls(self.config.domain):
            self.console.print(f"  {url:<24}{description}")

    # -----------------------------
    #  Workflow
    # -----------------------------
    def run(self) -> List[StepResult]:
        """Execute every step in order and print the final summary."""
        if self.dry_run:
            print_warning(self.console, "DRY RUN MODE - no changes will be made")
            self.console.print()

        print_settings(self.console, [
            ("Project Dir", self.config.project_dir),
            ("Dry Run", self.dry_run),
            ("Skip Images", self.skip_images),
            ("Skip Volumes", self.skip_volumes),
        ])

        actions = (
            self.preflight,
            self.setup_env,
            self.load_images,
            self.setup_volumes,
            self.import_volumes,
            self.create_network,
            self.start_services,
        )
        for number, action in enumerate(actions):
            self._banner(number)
            action()

        self._print_summary()
        return self.steps

    def _print_summary(self) -> None:
        self.console.print()
        if self.dry_run:
            self.console.rule("[yellow]Dry Run Complete![/yellow]")
        else:
            self.console.rule("[green]Deployment Complete![/green]")

        table = Table(show_header=True, header_style="bold")
        table.add_column("Step", justify="right")
        table.add_column("Description")
        table.add_column("Status")
        table.add_column("Notes")
        colors = {StepStatus.PASSED: "green", StepStatus.SKIPPED: "yellow", StepStatus.FAILED: "red"}
        for step in self.steps:
            color = colors[step.status]
            table.add_row(str(step.number), step.title, f"[{color}]{step.status.value}[/{color}]", step.message)
        self.console.print(table)
        self.console.print()

        failed = [step for step in self.steps if step.status == StepStatus.FAILED]
        if self.dry_run:
            print_warning(self.console, "This was a DRY RUN - no changes were made")
            print_info(self.console, "Run without --dry-run to perform the deployment")
            return

        if failed:
            print_error(self.console, f"{len(failed)} step(s) reported failures - review the output above")
        else:
            print_success(self.console, "All services have been started")

        compose_file = self.config.compose_file
        self.console.print()
        print_info(self.console, "Next steps:")
        self.console.print(
            f"  1. Configure DNS: add *.{self.config.domain} entries to your DNS server or /etc/hosts"
        )
        self.console.print(f"  2. Verify services: docker compose -f {compose_file} ps")
        self.console.print(f"  3. View logs: docker compose -f {compose_file} logs -f \\[service]")
        self.console.print("  4. Traefik dashboard: http://<server-ip>:8080")
