"""Volume archive transfer.

Exports service data directories as ownership-preserving tarballs on the
online machine and extracts them under the volume root on the offline one.
An archive for service ``jenkins`` is ``jenkins-volume.tar.gz`` and its only
top-level entry is ``jenkins/``.
"""
import shutil
import stat
import tarfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.prompt import Confirm, Prompt

from mystic.core.catalog import Service
from mystic.core.config import MysticConfig
from mystic.core.errors import PreconditionError
from mystic.core.filesystem import describe_size, find_archives, is_root
from mystic.core.logger import get_logger
from mystic.core.output import (
    print_batch_summary,
    print_error,
    print_info,
    print_progress,
    print_settings,
    print_success,
    print_warning,
)
from mystic.core.results import BatchReport, UnitResult
from mystic.services.docker import DockerClient
from mystic.services.docker_compose import ComposeFileError, ComposeParser

logger = get_logger(__name__)

VOLUME_ARCHIVE_SUFFIX = "-volume.tar.gz"


def volume_archive_name(service: str) -> str:
    return f"{service}{VOLUME_ARCHIVE_SUFFIX}"


def service_from_archive(archive) -> str:
    """Service name encoded in an archive filename.

    Only the exact ``-volume.tar.gz`` suffix is removed, so hyphenated
    names survive: ``my-svc-volume.tar.gz`` -> ``my-svc``.
    """
    name = Path(archive).name
    if name.endswith(VOLUME_ARCHIVE_SUFFIX):
        return name[: -len(VOLUME_ARCHIVE_SUFFIX)]
    return name


def _numeric_owner(info: tarfile.TarInfo) -> tarfile.TarInfo:
    # Keep uid/gid only; names differ between hosts
    info.uname = ""
    info.gname = ""
    return info


def _contained_member(member: tarfile.TarInfo, dest_path: str) -> tarfile.TarInfo:
    # tar_filter raises for absolute names and paths escaping dest_path;
    # the member itself is kept so modes and ownership extract unchanged.
    tarfile.tar_filter(member, dest_path)
    return member


def create_volume_archive(root: Path, service: str, archive: Path) -> None:
    """Write <root>/<service> to archive as gzip tar with numeric ownership."""
    with tarfile.open(archive, "w:gz") as tar:
        tar.add(str(Path(root) / service), arcname=service, filter=_numeric_owner)


def extract_volume_archive(archive: Path, root: Path) -> None:
    """Extract a volume archive under root, restoring numeric ownership.

    Ownership is applied only when running as root, as with tar itself.
    """
    with tarfile.open(archive, "r:gz") as tar:
        tar.extractall(str(root), numeric_owner=True, filter=_contained_member)


def _confirm(console: Console) -> Callable[[str], bool]:
    return lambda message: Confirm.ask(message, default=False, console=console)


class VolumeExporter:
    """Archives service data directories, stopping their containers meanwhile."""

    def __init__(
        self,
        config: MysticConfig,
        docker: Optional[DockerClient] = None,
        console: Optional[Console] = None,
        dry_run: bool = False,
        force: bool = False,
        confirm: Optional[Callable[[str], bool]] = None,
        privileged: Optional[bool] = None,
    ):
        self.config = config
        self.docker = docker or DockerClient()
        self.console = console or Console()
        self.dry_run = dry_run
        self.force = force
        self.confirm = confirm or _confirm(self.console)
        self.privileged = is_root() if privileged is None else privileged
        self._container_names: Optional[Dict[str, str]] = None

    @property
    def root_path(self) -> Path:
        return self.config.root_path

    def check_requirements(self) -> None:
        print_info(self.console, "Checking requirements...")
        if not self.privileged and not self.dry_run:
            raise PreconditionError(
                "This command MUST be run as root to preserve file ownership (use sudo)"
            )
        if self.privileged:
            print_success(self.console, "Running as root")

        if not self.docker.is_installed():
            raise PreconditionError("Docker is not installed or not in PATH")
        print_success(self.console, "Docker is available")
        self.console.print()

        if not self.root_path.is_dir():
            raise PreconditionError(f"Volume root directory not found: {self.root_path}")
        print_success(self.console, f"Volume root exists: {self.root_path}")

    def container_for(self, service: str) -> str:
        """Container name for a service.

        Uses the compose service's container_name when the compose file
        declares one, otherwise the service name itself.
        """
        if self._container_names is None:
            self._container_names = {}
            try:
                document = ComposeParser(self.config.environment).load(self.config.compose_file)
            except ComposeFileError as e:
                logger.debug(f"Container names default to service names: {e}")
            else:
                self._container_names = {
                    name: svc.effective_container_name
                    for name, svc in document.services.items()
                }
        return self._container_names.get(service, service)

    def export_service(self, service: str, output_dir: Path) -> UnitResult:
        """Archive one service directory into output_dir."""
        service_path = self.root_path / service
        if not service_path.is_dir():
            print_warning(self.console, f"Volume directory not found: {service_path} (skipping)")
            return UnitResult.skipped(service, "volume directory not found")

        archive = Path(output_dir) / volume_archive_name(service)
        container = self.container_for(service)

        if self.dry_run:
            print_info(
                self.console,
                f"[DRY RUN] Would export: {service_path} ({describe_size(service_path)})"
                f" -> {archive.name}",
            )
            print_info(self.console, f"           Container to stop: {container}")
            return UnitResult.skipped(service, "dry run")

        was_running = self.docker.is_running(container)
        if was_running:
            if not self.force and not self.confirm(
                f"  Container [yellow]{container}[/yellow] is running. Stop it for export?"
            ):
                print_warning(self.console, f"  Skipping {service} (container still running)")
                return UnitResult.skipped(service, "container still running")
            self._stop(container)
        else:
            print_info(self.console, f"  Container {container} is not running")

        try:
            return self._archive(service, service_path, archive)
        finally:
            if was_running:
                self._start(container)

    def _archive(self, service: str, service_path: Path, archive: Path) -> UnitResult:
        print_info(self.console, f"  Archiving {service_path}...")
        try:
            create_volume_archive(self.root_path, service, archive)
        except (OSError, tarfile.TarError) as e:
            print_error(self.console, f"  Failed to archive {service}: {e}")
            archive.unlink(missing_ok=True)
            logger.info(f"Archive failed for {service}: {e}")
            return UnitResult.failed(service, str(e))

        size = describe_size(archive)
        print_success(self.console, f"  Created {archive.name} ({size})")
        logger.info(f"Exported {service_path} to {archive} ({size})")
        return UnitResult.ok(service, detail=str(archive))

    def _stop(self, container: str) -> None:
        print_info(self.console, f"  Stopping container: {container}")
        if self.docker.stop(container):
            print_success(self.console, f"  Stopped {container}")
        else:
            # Archiving proceeds with the container still up
            print_warning(self.console, f"  Could not stop {container} (may not exist)")

    def _start(self, container: str) -> None:
        print_info(self.console, f"  Restarting container: {container}")
        if self.docker.start(container):
            print_success(self.console, f"  Restarted {container}")
        else:
            print_warning(self.console, f"  Could not restart {container}")

    def run(self, services: List[Service], output_dir: Path) -> BatchReport:
        """Export every selected service, one at a time."""
        output_dir = Path(output_dir)
        names = [service.service_name for service in services]

        print_settings(self.console, [
            ("Volume Root", self.root_path),
            ("Output Dir", output_dir),
            ("Services", " ".join(names)),
            ("Force", self.force),
            ("Dry Run", self.dry_run),
        ])
        self.check_requirements()
        self.console.print()

        if not self.dry_run:
            output_dir.mkdir(parents=True, exist_ok=True)
            print_success(self.console, f"Output directory ready: {output_dir}")
            self.console.print()

        report = BatchReport(title="Volume export", dry_run=self.dry_run)
        for index, name in enumerate(names, start=1):
            print_progress(self.console, index, len(names), f"Exporting: {name}")
            report.add(self.export_service(name, output_dir))
            self.console.print()

        self._print_summary(report, output_dir)
        return report

    def _print_summary(self, report: BatchReport, output_dir: Path) -> None:
        rows = [("Output Dir", output_dir)]
        if not self.dry_run and output_dir.is_dir():
            rows.append(("Total Size", describe_size(output_dir)))
        print_batch_summary(
            self.console, "Export Complete!", report, "Volumes Exported", rows, unit="volume(s)"
        )

        if not self.dry_run and output_dir.is_dir():
            self.console.print()
            print_info(self.console, "Archives created:")
            for archive in find_archives(output_dir, VOLUME_ARCHIVE_SUFFIX):
                self.console.print(f"  {archive.name}  ({describe_size(archive)})")

        self.console.print()
        print_info(self.console, "Next steps:")
        self.console.print(f"  1. Copy the {output_dir} directory to portable media")
        self.console.print("  2. Transfer to the offline/air-gapped machine")
        self.console.print("  3. Run `mystic volumes import` to restore the volumes")


class VolumeImporter:
    """Extracts volume archives under the volume root with conflict handling."""

    def __init__(
        self,
        config: MysticConfig,
        console: Optional[Console] = None,
        dry_run: bool = False,
        force: bool = False,
        confirm: Optional[Callable[[str], bool]] = None,
        choose: Optional[Callable[[str], str]] = None,
        privileged: Optional[bool] = None,
    ):
        self.config = config
        self.console = console or Console()
        self.dry_run = dry_run
        self.force = force
        self.confirm = confirm or _confirm(self.console)
        self.choose = choose or (
            lambda message: Prompt.ask(message, default="s", console=self.console)
        )
        self.privileged = is_root() if privileged is None else privileged

    @property
    def root_path(self) -> Path:
        return self.config.root_path

    def check_requirements(self) -> None:
        print_info(self.console, "Checking requirements...")
        if not self.privileged and not self.dry_run:
            raise PreconditionError(
                "This command MUST be run as root to preserve file ownership (use sudo)"
            )
        if self.privileged:
            print_success(self.console, "Running as root")
        self.console.print()

    def find_archives(self, input_dir: Path, pattern: Optional[str] = None) -> List[Path]:
        """Volume archives to import.

        Raises:
            PreconditionError: Input directory missing or no matching archives
        """
        input_dir = Path(input_dir)
        if not input_dir.is_dir():
            raise PreconditionError(
                f"Input directory not found: {input_dir}. "
                "Run `mystic volumes export` on a configured machine first to create archives"
            )

        archives = find_archives(input_dir, VOLUME_ARCHIVE_SUFFIX, pattern)
        if not archives:
            if pattern:
                raise PreconditionError(f"No volume archives matching '{pattern}' in {input_dir}")
            raise PreconditionError(f"No *{VOLUME_ARCHIVE_SUFFIX} files found in {input_dir}")

        print_success(self.console, f"Found {len(archives)} volume archive(s) in {input_dir}")
        return archives

    def import_archive(self, archive: Path) -> UnitResult:
        """Extract one archive, resolving a conflict with existing data first."""
        service = service_from_archive(archive)
        target_dir = self.root_path / service

        if self.dry_run:
            print_info(
                self.console,
                f"[DRY RUN] Would import: {archive.name} ({describe_size(archive)})",
            )
            print_info(self.console, f"           Target: {target_dir}")
            if target_dir.is_dir():
                print_warning(self.console, "           Target directory already exists!")
            return UnitResult.skipped(service, "dry run")

        if target_dir.is_dir() and not self._clear_target(target_dir):
            print_info(self.console, f"  Skipping {service}")
            return UnitResult.skipped(service, "target directory kept")

        self.root_path.mkdir(parents=True, exist_ok=True)

        print_info(self.console, f"  Extracting to {self.root_path}...")
        try:
            extract_volume_archive(archive, self.root_path)
        except (OSError, tarfile.TarError) as e:
            print_error(self.console, f"  Failed to extract {archive.name}: {e}")
            print_warning(
                self.console,
                f"  Partial extraction may remain at {target_dir} - verify manually",
            )
            logger.info(f"Extraction failed for {archive}: {e}")
            return UnitResult.failed(service, str(e))

        size = describe_size(target_dir) if target_dir.is_dir() else "unknown"
        print_success(self.console, f"  Extracted {service} ({size})")
        logger.info(f"Imported {archive} into {target_dir} ({size})")
        return UnitResult.ok(service, detail=str(target_dir))

    def _clear_target(self, target_dir: Path) -> bool:
        """Apply the conflict policy; True when extraction may proceed."""
        if self.force:
            choice = "o"
        else:
            print_warning(self.console, f"  Target directory already exists: {target_dir}")
            choice = self.choose("  [S]kip, [O]verwrite, or [B]ackup and replace? \\[s/o/b]")
        choice = (choice or "").strip().lower()

        if choice in ("o", "overwrite"):
            print_info(self.console, "  Removing existing directory...")
            shutil.rmtree(target_dir)
            return True

        if choice in ("b", "backup"):
            timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
            backup = target_dir.with_name(f"{target_dir.name}.backup.{timestamp}")
            print_info(self.console, f"  Backing up to: {backup}")
            target_dir.rename(backup)
            print_success(self.console, "  Backup created")
            return True

        return False

    def run(self, input_dir: Path, pattern: Optional[str] = None) -> BatchReport:
        """Import every matching archive from input_dir."""
        input_dir = Path(input_dir)
        print_settings(self.console, [
            ("Input Dir", input_dir),
            ("Volume Root", self.root_path),
            ("Filter", pattern or "<none>"),
            ("Dry Run", self.dry_run),
        ])
        self.check_requirements()

        archives = self.find_archives(input_dir, pattern)
        self.console.print()

        print_info(self.console, "Archives to import:")
        for archive in archives:
            self.console.print(
                f"  - {archive.name}  ({describe_size(archive)})  ->  "
                f"{self.root_path / service_from_archive(archive)}"
            )
        self.console.print()

        report = BatchReport(title="Volume import", dry_run=self.dry_run)

        if not self.dry_run and not self.force:
            if not self.confirm(
                f"Proceed with importing {len(archives)} volume(s) to [blue]{self.root_path}[/blue]?"
            ):
                print_info(self.console, "Aborted by user")
                for archive in archives:
                    report.add(UnitResult.skipped(service_from_archive(archive), "aborted by user"))
                return report
            self.console.print()

        if not self.dry_run:
            self.root_path.mkdir(parents=True, exist_ok=True)
            print_success(self.console, f"Volume root directory ready: {self.root_path}")
            self.console.print()

        for index, archive in enumerate(archives, start=1):
            if not self.dry_run:
                print_progress(
                    self.console, index, len(archives),
                    f"Importing: {archive.name} ({describe_size(archive)})",
                )
            report.add(self.import_archive(archive))
            self.console.print()

        if self.dry_run:
            print_warning(self.console, "This was a DRY RUN - no changes were made")

        self._print_summary(report)
        return report

    def _print_summary(self, report: BatchReport) -> None:
        print_batch_summary(
            self.console,
            "Import Complete!",
            report,
            "Volumes Imported",
            [("Volume Root", self.root_path)],
            unit="volume(s)",
        )

        if not self.dry_run and self.root_path.is_dir():
            self.console.print()
            print_info(self.console, "Imported directories:")
            for entry in sorted(p for p in self.root_path.iterdir() if p.is_dir()):
                info = entry.stat()
                self.console.print(
                    f"  {stat.filemode(info.st_mode)} {info.st_uid}:{info.st_gid}  {entry.name}"
                )

        self.console.print()
        print_info(self.console, "Next steps:")
        self.console.print(f"  1. Verify volume permissions: ls -lan {self.root_path}")
        self.console.print("  2. Load Docker images: `mystic images load`")
        self.console.print(f"  3. Create the external network: docker network create {self.config.network}")
        self.console.print("  4. Start services: docker compose up -d")
