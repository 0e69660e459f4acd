"""Offline bundle creation.

A bundle is a directory holding everything the offline machine needs:
the repository files, image archives for the selected services and their
volume archives. ``mystic deploy`` run from inside it does the rest.
"""
import os
import shutil
import stat
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from mystic.core.catalog import Service
from mystic.core.config import MysticConfig
from mystic.core.errors import PreconditionError
from mystic.core.filesystem import describe_size, find_archives, is_root
from mystic.core.images import IMAGE_ARCHIVE_SUFFIX, ImageSaver, check_docker
from mystic.core.logger import get_logger
from mystic.core.output import (
    print_info,
    print_section,
    print_settings,
    print_success,
    print_warning,
)
from mystic.core.results import BatchReport, UnitResult
from mystic.core.volumes import VOLUME_ARCHIVE_SUFFIX, VolumeExporter
from mystic.services.docker import DockerClient
from mystic.services.docker_compose import ComposeParser

logger = get_logger(__name__)

REPO_FILES = ("docker-compose.yml", ".env.example", "README.md", "LICENSE")
REPO_DIRS = ("config", "scripts")

IMAGES_SUBDIR = "docker-images"
VOLUMES_SUBDIR = "volume-exports"


class Bundler:
    """Packages repo files, images and volume data for an offline machine."""

    def __init__(
        self,
        config: MysticConfig,
        docker: Optional[DockerClient] = None,
        console: Optional[Console] = None,
        dry_run: bool = False,
        skip_images: bool = False,
        skip_volumes: bool = False,
        privileged: Optional[bool] = None,
    ):
        self.config = config
        self.docker = docker or DockerClient()
        self.console = console or Console()
        self.dry_run = dry_run
        self.skip_images = skip_images
        self.skip_volumes = skip_volumes
        self.privileged = is_root() if privileged is None else privileged

    def check_requirements(self) -> None:
        print_info(self.console, "Checking requirements...")
        if not self.privileged and not self.dry_run:
            raise PreconditionError(
                "This command MUST be run as root to preserve file ownership (use sudo)"
            )
        if self.privileged:
            print_success(self.console, "Running as root")

        check_docker(self.docker, self.console)

        if not self.config.compose_file.is_file():
            raise PreconditionError(f"Docker compose file not found: {self.config.compose_file}")
        print_success(self.console, f"Found {self.config.compose_file}")
        self.console.print()

    # -----------------------------
    #  Repository files
    # -----------------------------
    def copy_repo_files(self, output_dir: Path) -> List[UnitResult]:
        print_section(self.console, "Copying repo files")
        project = self.config.project_dir

        if self.dry_run:
            print_info(self.console, f"[DRY RUN] Would copy repo files to {output_dir}/")
            for name in REPO_FILES:
                if (project / name).is_file():
                    print_info(self.console, f"  {name}")
            for name in REPO_DIRS:
                if (project / name).is_dir():
                    print_info(self.console, f"  {name}/ (directory)")
            return [UnitResult.skipped(name, "dry run") for name in REPO_FILES + REPO_DIRS]

        output_dir.mkdir(parents=True, exist_ok=True)
        results = []

        for name in REPO_FILES:
            source = project / name
            if not source.is_file():
                print_warning(self.console, f"Not found (skipping): {name}")
                results.append(UnitResult.skipped(name, "not found"))
                continue
            shutil.copy2(source, output_dir / name)
            print_success(self.console, f"Copied {name}")
            results.append(UnitResult.ok(name))

        for name in REPO_DIRS:
            source = project / name
            if not source.is_dir():
                print_warning(self.console, f"Not found (skipping): {name}/")
                results.append(UnitResult.skipped(name, "not found"))
                continue
            shutil.copytree(source, output_dir / name, dirs_exist_ok=True)
            if name == "scripts":
                _make_scripts_executable(output_dir / name)
            print_success(self.console, f"Copied {name}/")
            results.append(UnitResult.ok(name))

        return results

    # -----------------------------
    #  Images
    # -----------------------------
    def images_for(self, services: List[Service]) -> List[str]:
        """Unique images used by the selected services.

        A service the compose file does not define, or defines without an
        image, is reported and left out.
        """
        document = ComposeParser(self.config.environment).load(self.config.compose_file)

        images = set()
        for service in services:
            compose_service = document.find_service(service.service_name)
            if compose_service is None or not compose_service.image:
                print_warning(
                    self.console,
                    f"No image found for service: {service.service_name} "
                    "(skipping image save for this service)",
                )
                continue
            images.add(compose_service.image)
        return sorted(images)

    def save_images(self, services: List[Service], output_dir: Path) -> BatchReport:
        print_section(self.console, "Saving Docker images")
        if self.skip_images:
            print_warning(self.console, "Skipping image save (--skip-images)")
            return BatchReport(title="Image save", dry_run=self.dry_run)

        images = self.images_for(services)
        if not images:
            print_warning(self.console, "No images to save")
            return BatchReport(title="Image save", dry_run=self.dry_run)

        saver = ImageSaver(self.config, docker=self.docker, console=self.console, dry_run=self.dry_run)
        report = saver.save(images, output_dir / IMAGES_SUBDIR)
        if not self.dry_run:
            print_success(self.console, f"Saved {report.succeeded} / {report.total} images")
        return report

    # -----------------------------
    #  Volumes
    # -----------------------------
    def export_volumes(self, services: List[Service], output_dir: Path) -> BatchReport:
        print_section(self.console, "Exporting volumes")
        if self.skip_volumes:
            print_warning(self.console, "Skipping volume export (--skip-volumes)")
            return BatchReport(title="Volume export", dry_run=self.dry_run)

        volume_dir = output_dir / VOLUMES_SUBDIR
        exporter = VolumeExporter(
            self.config,
            docker=self.docker,
            console=self.console,
            dry_run=self.dry_run,
            force=True,
            privileged=self.privileged,
        )

        if self.dry_run:
            print_info(
                self.console,
                f"[DRY RUN] Would export volumes for: {','.join(s.service_name for s in services)}",
            )
            print_info(self.console, f"  Volume root: {self.config.root_path}")
            print_info(self.console, f"  Output: {volume_dir}")
        else:
            volume_dir.mkdir(parents=True, exist_ok=True)

        report = BatchReport(title="Volume export", dry_run=self.dry_run)
        for service in services:
            report.add(exporter.export_service(service.service_name, volume_dir))
        return report

    # -----------------------------
    #  Workflow
    # -----------------------------
    def run(self, services: List[Service], output_dir: Path) -> BatchReport:
        """Create the bundle; returns every unit processed along the way."""
        output_dir = Path(output_dir)
        names = [service.service_name for service in services]

        print_settings(self.console, [
            ("Output Dir", output_dir),
            ("Services", " ".join(names)),
            ("Skip Images", self.skip_images),
            ("Skip Volumes", self.skip_volumes),
            ("Dry Run", self.dry_run),
        ])
        self.check_requirements()

        report = BatchReport(title="Bundle", dry_run=self.dry_run)
        for result in self.copy_repo_files(output_dir):
            report.add(result)
        for result in self.save_images(services, output_dir).results:
            report.add(result)
        for result in self.export_volumes(services, output_dir).results:
            report.add(result)

        self._print_summary(report, output_dir, names)
        return report

    def _print_summary(self, report: BatchReport, output_dir: Path, names: List[str]) -> None:
        def included(skipped: bool) -> str:
            return "[yellow]skipped[/yellow]" if skipped else "[green]included[/green]"

        self.console.print()
        self.console.rule("[green]Bundle Complete![/green]")
        self.console.print(f"{'Output Dir:':<18}[blue]{output_dir}[/blue]")
        self.console.print(f"{'Services:':<18}[blue]{' '.join(names)}[/blue]")
        self.console.print(f"{'Images:':<18}{included(self.skip_images)}")
        self.console.print(f"{'Volumes:':<18}{included(self.skip_volumes)}")

        if not self.dry_run and output_dir.is_dir():
            self.console.print(f"{'Total Size:':<18}[blue]{describe_size(output_dir)}[/blue]")
            self.console.print()
            print_info(self.console, "Bundle contents:")
            for line in bundle_contents(output_dir):
                self.console.print(f"  {line}")

        if report.failed:
            self.console.print()
            print_warning(self.console, f"{report.failed} item(s) failed")
            for failure in report.failures:
                self.console.print(f"  [red]-[/red] {failure.name}: {failure.reason}")

        self.console.print()
        print_info(self.console, "To deploy on the offline machine:")
        self.console.print("  1. Copy this directory to the target machine")
        self.console.print("  2. cd into the directory")
        self.console.print("  3. Install mystic there; it is not part of the bundle")
        self.console.print("  4. Run: sudo mystic deploy")

        if self.dry_run:
            self.console.print()
            print_warning(self.console, "This was a DRY RUN - no changes were made")
            print_info(self.console, "Run without --dry-run to create the bundle")


def bundle_contents(output_dir: Path) -> List[str]:
    """Describe what a bundle directory holds, with archive counts."""
    output_dir = Path(output_dir)
    lines = []
    for name in ("docker-compose.yml", ".env.example"):
        if (output_dir / name).is_file():
            lines.append(name)
    for name in REPO_DIRS:
        if (output_dir / name).is_dir():
            lines.append(f"{name}/")

    images_dir = output_dir / IMAGES_SUBDIR
    if images_dir.is_dir():
        count = len(find_archives(images_dir, IMAGE_ARCHIVE_SUFFIX))
        lines.append(f"{IMAGES_SUBDIR}/ ({count} image archives)")

    volumes_dir = output_dir / VOLUMES_SUBDIR
    if volumes_dir.is_dir():
        count = len(find_archives(volumes_dir, VOLUME_ARCHIVE_SUFFIX))
        lines.append(f"{VOLUMES_SUBDIR}/ ({count} volume archives)")
    return lines


def _make_scripts_executable(directory: Path) -> None:
    for script in directory.glob("*.sh"):
        mode = script.stat().st_mode
        os.chmod(script, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
